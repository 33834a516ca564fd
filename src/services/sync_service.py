"""
Incremental sync scheduler.

One cycle pages through the date-filtered ticket list, drops tickets whose
stored ``last_update`` is already current, dispatches the rest as one batch
job per page and finally moves the sync cursor to "now". Pages are fetched
sequentially; a failing page is retried a bounded number of times before
the whole cycle fails (leaving the cursor untouched).
"""

from __future__ import annotations

import time
from datetime import date, datetime, timedelta, timezone
from typing import Callable, Dict, List, Optional, Sequence, Tuple
from zoneinfo import ZoneInfo

from models.results import SyncCycleResult
from models.ticket import BatchJob, TicketPage, TicketStub
from repositories.sync_cursor_repo import SyncCursorRepository
from repositories.ticket_repo import TicketRepository
from services.queue_service import SqsBatchQueue
from services.ticketing_client import TicketingApiClient
from utils.dates import parse_timestamp
from utils.error_handling import UpstreamApiError
from utils.logging_config import get_logger
from utils.settings import PipelineSettings

logger = get_logger(__name__)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def needs_sync(stub: TicketStub, stored: Dict[str, Optional[datetime]]) -> bool:
    """
    True when the ticket is unseen or strictly newer than the stored row.

    A ticket whose timestamps cannot be compared is kept: re-enriching an
    unchanged ticket is harmless, silently skipping a changed one is not.
    """
    if stub.ticket_number not in stored:
        return True
    stored_update = stored[stub.ticket_number]
    incoming_update = parse_timestamp(stub.updated_at)
    if stored_update is None or incoming_update is None:
        return True
    return incoming_update > stored_update


def make_job_id(page: int, tickets: Sequence[TicketStub], now: datetime) -> str:
    return f"batch-{page}-{tickets[0].ticket_id}-{int(now.timestamp())}"


class SyncScheduler:
    """Runs sync cycles; the only writer of the sync cursor."""

    def __init__(
        self,
        client: TicketingApiClient,
        ticket_repo: TicketRepository,
        cursor_repo: SyncCursorRepository,
        queue: SqsBatchQueue,
        settings: PipelineSettings,
        clock: Callable[[], datetime] = _utc_now,
        sleep: Callable[[float], None] = time.sleep,
        retry_delay_seconds: float = 2.0,
    ):
        self.client = client
        self.ticket_repo = ticket_repo
        self.cursor_repo = cursor_repo
        self.queue = queue
        self.settings = settings
        self.clock = clock
        self.sleep = sleep
        self.retry_delay_seconds = retry_delay_seconds

    def sync_window(self, last_sync: Optional[datetime], now: datetime) -> Tuple[date, date]:
        """Window from the last sync's local date (bounded by the lookback) to today."""
        tz = ZoneInfo(self.settings.timezone)
        today = now.astimezone(tz).date()
        if last_sync is None:
            return today, today

        earliest = today - timedelta(days=self.settings.lookback_days)
        start = min(max(last_sync.astimezone(tz).date(), earliest), today)
        return start, today

    def run_cycle(
        self, start_date: Optional[date] = None, end_date: Optional[date] = None
    ) -> SyncCycleResult:
        started_at = self.clock()
        previous_sync = self.cursor_repo.get_last_sync()

        default_start, default_end = self.sync_window(previous_sync, started_at)
        start_date = start_date or default_start
        end_date = end_date or default_end
        if start_date > end_date:
            raise ValueError(f"start_date {start_date} is after end_date {end_date}")

        result = SyncCycleResult(
            start_date=start_date, end_date=end_date, previous_sync=previous_sync
        )
        logger.info(
            "Ticket sync started",
            extra={
                "start_date": start_date.isoformat(),
                "end_date": end_date.isoformat(),
                "previous_sync": previous_sync.isoformat() if previous_sync else None,
            },
        )

        page = 1
        while True:
            ticket_page = self._fetch_page(page, start_date, end_date)
            result.pages_processed += 1
            result.tickets_seen += len(ticket_page.tickets)

            changed = self._changed_tickets(ticket_page.tickets)
            if changed:
                job = BatchJob(
                    job_id=make_job_id(page, changed, started_at), page=page, tickets=changed
                )
                self.queue.dispatch(job)
                result.job_ids.append(job.job_id)
                result.tickets_dispatched += len(changed)

            logger.info(
                "Ticket page processed",
                extra={
                    "page": page,
                    "pages": ticket_page.pages,
                    "tickets": len(ticket_page.tickets),
                    "changed": len(changed),
                },
            )
            if page >= ticket_page.pages or not ticket_page.tickets:
                break
            page += 1

        # A cycle that found nothing new is still a successful sync.
        result.last_sync = self.clock()
        self.cursor_repo.set_last_sync(result.last_sync)

        logger.info(
            "Ticket sync completed",
            extra={
                "pages_processed": result.pages_processed,
                "tickets_seen": result.tickets_seen,
                "tickets_dispatched": result.tickets_dispatched,
                "jobs": len(result.job_ids),
                "last_sync": result.last_sync.isoformat(),
            },
        )
        return result

    def _changed_tickets(self, tickets: List[TicketStub]) -> List[TicketStub]:
        if not tickets:
            return []
        stored = self.ticket_repo.get_last_updates([stub.ticket_number for stub in tickets])
        return [stub for stub in tickets if needs_sync(stub, stored)]

    def _fetch_page(self, page: int, start_date: date, end_date: date) -> TicketPage:
        attempts = self.settings.page_attempts
        for attempt in range(1, attempts + 1):
            try:
                return self.client.list_tickets(page, start_date, end_date)
            except UpstreamApiError as exc:
                if attempt >= attempts:
                    logger.error(
                        "Ticket page fetch failed",
                        extra={"page": page, "attempts": attempts, "error": str(exc)},
                    )
                    raise
                logger.warning(
                    "Ticket page fetch failed, retrying",
                    extra={"page": page, "attempt": attempt, "error": str(exc)},
                )
                self.sleep(self.retry_delay_seconds * attempt)
        raise UpstreamApiError(f"No attempts made for page {page}")
