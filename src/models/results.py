"""Outcome models reported by the pipeline stages."""

from datetime import date, datetime
from typing import List, Optional

from pydantic import BaseModel, Field


class SaveResult(BaseModel):
    """Row counts from one conditional bulk upsert."""

    inserted: int = 0
    updated: int = 0

    @property
    def written(self) -> int:
        return self.inserted + self.updated


class BatchResult(BaseModel):
    """Outcome of one queued batch job."""

    job_id: str
    received: int
    enriched: int
    failed_ticket_ids: List[Optional[str]] = Field(default_factory=list)
    inserted: int = 0
    updated: int = 0


class SyncCycleResult(BaseModel):
    """Outcome of one scheduler cycle."""

    start_date: date
    end_date: date
    pages_processed: int = 0
    tickets_seen: int = 0
    tickets_dispatched: int = 0
    job_ids: List[str] = Field(default_factory=list)
    previous_sync: Optional[datetime] = None
    last_sync: Optional[datetime] = None


class IngestionSummary(BaseModel):
    """Outcome of ingesting pre-shaped export rows."""

    rows_read: int = 0
    rows_saved: int = 0
    inserted: int = 0
    updated: int = 0
