"""Pydantic models for ticket payloads and pipeline results."""

from models.results import (  # noqa: F401
    BatchResult,
    IngestionSummary,
    SaveResult,
    SyncCycleResult,
)
from models.ticket import (  # noqa: F401
    ActivityChange,
    ActivityRecord,
    BatchJob,
    TicketPage,
    TicketRecord,
    TicketStub,
)
