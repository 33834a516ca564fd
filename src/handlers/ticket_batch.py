"""
Batch worker handler (SQS FIFO consumer).

Each message is one batch job. Failed jobs are reported through
``batchItemFailures`` so only they are redelivered; after the queue's
max receive count they land in the dead-letter queue. Configuration and
lookup failures fail the whole invocation.
"""

from __future__ import annotations

from typing import Optional

from models.ticket import BatchJob
from utils.error_handling import describe
from utils.logging_config import get_logger

logger = get_logger(__name__)

# Stop enrichment this long before Lambda would kill the invocation.
DEADLINE_MARGIN_SECONDS = 10.0

# Lazy-loaded service to avoid import-time DB connections
_batch_service: Optional["TicketBatchService"] = None


def _get_batch_service():
    """Lazy-load TicketBatchService."""
    global _batch_service
    if _batch_service is None:
        from repositories.postgres_repo import get_db_engine
        from repositories.ticket_repo import TicketRepository
        from services.classification_service import TicketClassifier
        from services.enrichment_service import EnrichmentService
        from services.lookup_service import CachedLookupProvider, LookupProvider
        from services.ticket_batch_service import TicketBatchService
        from services.ticketing_client import TicketingApiClient
        from utils.settings import PipelineSettings

        settings = PipelineSettings.from_environment()
        engine = get_db_engine()
        enrichment = EnrichmentService(
            client=TicketingApiClient(settings),
            classifier=TicketClassifier(sla_thresholds_hours=settings.sla_thresholds_hours),
            concurrency=settings.enrichment_concurrency,
        )
        _batch_service = TicketBatchService(
            enrichment=enrichment,
            repository=TicketRepository(engine),
            lookups=CachedLookupProvider(
                LookupProvider(engine), refresh_seconds=settings.lookup_refresh_seconds
            ),
        )
    return _batch_service


def _remaining_seconds(context) -> Optional[float]:
    if context is None or not hasattr(context, "get_remaining_time_in_millis"):
        return None
    remaining = context.get_remaining_time_in_millis() / 1000.0 - DEADLINE_MARGIN_SECONDS
    return max(remaining, 1.0)


def lambda_handler(event, context):
    """Process every queued job; report the failed ones for redelivery."""
    service = _get_batch_service()
    failures = []

    for record in (event or {}).get("Records", []):
        message_id = record.get("messageId")
        try:
            job = BatchJob.model_validate_json(record.get("body") or "{}")
            service.process(job, timeout=_remaining_seconds(context))
        except Exception as exc:
            if getattr(exc, "fatal", False):
                logger.exception("Batch worker aborted", extra=describe(exc))
                raise
            logger.exception(
                "Batch job failed", extra={"message_id": message_id, **describe(exc)}
            )
            failures.append({"itemIdentifier": message_id})

    return {"batchItemFailures": failures}
