"""Pipeline exceptions, split by how far a failure is allowed to travel."""

from typing import Any, Dict, Optional


class PipelineError(Exception):
    """Base class for pipeline errors."""

    fatal: bool = False


class ConfigurationError(PipelineError):
    """Raised when settings or the database URL are missing or malformed."""

    fatal = True


class LookupLoadError(PipelineError):
    """Raised when reference tables cannot be loaded; aborts the run."""

    fatal = True


class SyncCursorError(PipelineError):
    """Raised when the last-sync cursor cannot be read or written."""

    fatal = True


class DispatchError(PipelineError):
    """Raised when a non-empty batch could not be queued."""

    fatal = True

    def __init__(self, message: str, job_id: Optional[str] = None):
        super().__init__(message)
        self.job_id = job_id


class UpstreamApiError(PipelineError):
    """Raised for transport failures, bad statuses or malformed payloads."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class TicketEnrichmentError(PipelineError):
    """Raised when a single ticket could not be enriched."""

    def __init__(self, ticket_id: Optional[str], message: str):
        super().__init__(f"ticket {ticket_id}: {message}")
        self.ticket_id = ticket_id


class BatchCancelledError(PipelineError):
    """Raised when a batch runs out of time before enrichment completes."""

    def __init__(self, message: str = "Batch deadline exceeded", pending: int = 0):
        super().__init__(message)
        self.pending = pending


def describe(error: BaseException) -> Dict[str, Any]:
    """Flatten an exception into log-friendly ``extra`` fields."""
    return {
        "error": str(error),
        "error_type": type(error).__name__,
        "fatal": getattr(error, "fatal", False),
    }
