"""Handler for pre-parsed export rows: ``{"rows": [{...}, ...]}``."""

from typing import Optional

from utils.error_handling import describe
from utils.logging_config import get_logger

logger = get_logger(__name__)

# Lazy-loaded service to avoid import-time DB connections
_ingestion_service: Optional["ExportIngestionService"] = None


def _get_ingestion_service():
    """Lazy-load ExportIngestionService."""
    global _ingestion_service
    if _ingestion_service is None:
        from repositories.postgres_repo import get_db_engine
        from repositories.ticket_repo import TicketRepository
        from services.classification_service import TicketClassifier
        from services.export_ingestion_service import ExportIngestionService
        from services.lookup_service import CachedLookupProvider, LookupProvider
        from utils.settings import PipelineSettings

        settings = PipelineSettings.from_environment()
        engine = get_db_engine()
        _ingestion_service = ExportIngestionService(
            repository=TicketRepository(engine),
            lookups=CachedLookupProvider(
                LookupProvider(engine), refresh_seconds=settings.lookup_refresh_seconds
            ),
            classifier=TicketClassifier(sla_thresholds_hours=settings.sla_thresholds_hours),
            batch_size=settings.export_batch_size,
        )
    return _ingestion_service


def lambda_handler(event, context):
    """Classify and upsert export rows."""
    rows = (event or {}).get("rows")
    if not isinstance(rows, list) or not all(isinstance(row, dict) for row in rows):
        logger.warning("Export request rejected: rows must be a list of objects")
        return {"status": "rejected", "error": "rows must be a list of objects"}

    try:
        summary = _get_ingestion_service().ingest(rows)
    except Exception as exc:
        logger.exception("Export ingestion failed", extra=describe(exc))
        raise

    return {"status": "completed", **summary.model_dump()}
