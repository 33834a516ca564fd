"""
Export ingestion.

Rows arrive already shaped by the external CSV/Excel parser, keyed by the
canonical record field names. They skip activity replay but share the same
lookup resolution, classification and conditional upsert as API tickets.
"""

from typing import Any, Iterable, Iterator, List, Mapping, Optional, Sequence

from pydantic import ValidationError

from models.results import IngestionSummary
from models.ticket import TicketRecord
from repositories.ticket_repo import TicketRepository
from services.classification_service import TicketClassifier
from services.enrichment_service import finalize_record
from services.lookup_service import CachedLookupProvider, LookupSnapshot
from utils.logging_config import get_logger

logger = get_logger(__name__)


def chunked(rows: Iterable[Mapping[str, Any]], size: int) -> Iterator[List[Mapping[str, Any]]]:
    chunk: List[Mapping[str, Any]] = []
    for row in rows:
        chunk.append(row)
        if len(chunk) >= size:
            yield chunk
            chunk = []
    if chunk:
        yield chunk


class ExportIngestionService:
    """Classifies and upserts export rows in fixed-size chunks."""

    def __init__(
        self,
        repository: TicketRepository,
        lookups: CachedLookupProvider,
        classifier: Optional[TicketClassifier] = None,
        batch_size: int = 500,
    ):
        self.repository = repository
        self.lookups = lookups
        self.classifier = classifier or TicketClassifier()
        self.batch_size = max(1, batch_size)

    def ingest(self, rows: Iterable[Mapping[str, Any]]) -> IngestionSummary:
        summary = IngestionSummary()
        snapshot = self.lookups.current()

        for chunk in chunked(rows, self.batch_size):
            summary.rows_read += len(chunk)
            records = self._build_records(chunk, snapshot)
            if not records:
                continue
            saved = self.repository.save_batch(records)
            summary.rows_saved += len(records)
            summary.inserted += saved.inserted
            summary.updated += saved.updated

        logger.info("Export ingestion completed", extra=summary.model_dump())
        return summary

    def _build_records(
        self, chunk: Sequence[Mapping[str, Any]], snapshot: LookupSnapshot
    ) -> List[TicketRecord]:
        records: List[TicketRecord] = []
        for row in chunk:
            draft = {**row, "source": "export"}
            try:
                records.append(finalize_record(draft, snapshot, self.classifier))
            except ValidationError as exc:
                logger.warning(
                    "Skipping malformed export row",
                    extra={"ticket_number": row.get("ticket_number"), "error": str(exc)},
                )
        return records
