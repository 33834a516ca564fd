"""
Scheduled ticket sync handler.

Triggered hourly by EventBridge. A manual invocation may pass
``{"start_date": "YYYY-MM-DD", "end_date": "YYYY-MM-DD"}`` to backfill a
specific window.
"""

from __future__ import annotations

from datetime import date
from typing import Any, Optional

from utils.error_handling import ConfigurationError, describe
from utils.logging_config import get_logger

logger = get_logger(__name__)

# Lazy-loaded scheduler to avoid import-time DB connections
_scheduler: Optional["SyncScheduler"] = None


def _get_scheduler():
    """Lazy-load SyncScheduler and its collaborators."""
    global _scheduler
    if _scheduler is None:
        from repositories.postgres_repo import get_db_engine
        from repositories.sync_cursor_repo import SyncCursorRepository
        from repositories.ticket_repo import TicketRepository
        from services.queue_service import SqsBatchQueue
        from services.sync_service import SyncScheduler
        from services.ticketing_client import TicketingApiClient
        from utils.settings import PipelineSettings

        settings = PipelineSettings.from_environment()
        if not settings.batch_queue_url:
            raise ConfigurationError("BATCH_QUEUE_URL must be set")
        engine = get_db_engine()
        _scheduler = SyncScheduler(
            client=TicketingApiClient(settings),
            ticket_repo=TicketRepository(engine),
            cursor_repo=SyncCursorRepository(engine),
            queue=SqsBatchQueue(settings.batch_queue_url),
            settings=settings,
        )
    return _scheduler


def _parse_date(value: Any, name: str) -> Optional[date]:
    if value in (None, ""):
        return None
    try:
        return date.fromisoformat(str(value))
    except ValueError as exc:
        raise ValueError(f"{name} must be YYYY-MM-DD, got {value!r}") from exc


def lambda_handler(event, context):
    """Run one sync cycle."""
    event = event or {}
    try:
        start_date = _parse_date(event.get("start_date"), "start_date")
        end_date = _parse_date(event.get("end_date"), "end_date")
        if start_date and end_date and start_date > end_date:
            raise ValueError("start_date must not be after end_date")
    except ValueError as exc:
        logger.warning("Sync request rejected", extra={"error": str(exc)})
        return {"status": "rejected", "error": str(exc)}

    try:
        result = _get_scheduler().run_cycle(start_date=start_date, end_date=end_date)
    except Exception as exc:
        logger.exception("Ticket sync failed", extra=describe(exc))
        raise

    return {"status": "completed", **result.model_dump(mode="json")}
