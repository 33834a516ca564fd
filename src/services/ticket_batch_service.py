"""
Batch worker: enrich one queued job and persist it in a single upsert.

Only records that were fully enriched reach the repository. A cancelled
batch writes nothing; database errors propagate so the queue retries the job.
"""

from typing import Optional

from models.results import BatchResult, SaveResult
from models.ticket import BatchJob
from repositories.ticket_repo import TicketRepository
from services.enrichment_service import EnrichmentService
from services.lookup_service import CachedLookupProvider
from utils.logging_config import get_logger

logger = get_logger(__name__)


class TicketBatchService:
    """Runs enrichment, classification and the conditional upsert for one job."""

    def __init__(
        self,
        enrichment: EnrichmentService,
        repository: TicketRepository,
        lookups: CachedLookupProvider,
    ):
        self.enrichment = enrichment
        self.repository = repository
        self.lookups = lookups

    def process(self, job: BatchJob, timeout: Optional[float] = None) -> BatchResult:
        logger.info(
            "Processing batch job",
            extra={"job_id": job.job_id, "page": job.page, "tickets": len(job.tickets)},
        )
        snapshot = self.lookups.current()
        outcome = self.enrichment.enrich_batch(job.tickets, snapshot, timeout=timeout)

        saved = self.repository.save_batch(outcome.records) if outcome.records else SaveResult()

        result = BatchResult(
            job_id=job.job_id,
            received=len(job.tickets),
            enriched=len(outcome.records),
            failed_ticket_ids=outcome.failed_ticket_ids,
            inserted=saved.inserted,
            updated=saved.updated,
        )
        logger.info("Batch job completed", extra=result.model_dump())
        return result
