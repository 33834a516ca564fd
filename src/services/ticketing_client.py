"""
Ticketing API client.

Wraps the two endpoints the pipeline consumes: the date-filtered ticket
list and the per-ticket activity history. Transport errors, non-2xx
responses and payloads that do not match the expected shape all surface
as ``UpstreamApiError`` so callers can decide whether to retry or isolate.
"""

from __future__ import annotations

from datetime import date
from typing import Any, Dict, List, Optional

import requests
from pydantic import ValidationError
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from models.ticket import ActivityRecord, TicketPage, TicketStub
from utils.error_handling import UpstreamApiError
from utils.logging_config import get_logger
from utils.settings import PipelineSettings

logger = get_logger(__name__)

RETRY_STATUS_CODES = (429, 500, 502, 503, 504)


def build_session(max_retries: int, pool_size: int, backoff_factor: float = 0.5) -> requests.Session:
    """Session with transport-level retry and a pool sized for concurrent calls."""
    retry_strategy = Retry(
        total=max_retries,
        backoff_factor=backoff_factor,
        status_forcelist=list(RETRY_STATUS_CODES),
        allowed_methods=["GET", "POST"],
        raise_on_status=False,
    )
    adapter = HTTPAdapter(
        max_retries=retry_strategy, pool_connections=pool_size, pool_maxsize=pool_size
    )
    session = requests.Session()
    session.mount("http://", adapter)
    session.mount("https://", adapter)
    return session


class TicketingApiClient:
    """Thin client for the list and activity endpoints."""

    def __init__(self, settings: PipelineSettings, session: Optional[requests.Session] = None):
        self.settings = settings
        self.session = session or build_session(
            max_retries=settings.http_retries,
            pool_size=max(settings.enrichment_concurrency, 10),
        )
        if settings.api_username:
            self.session.auth = (settings.api_username, settings.api_password)

    def list_tickets(self, page: int, start_date: date, end_date: date) -> TicketPage:
        """Fetch one page of tickets whose date falls inside the window."""
        body = {
            "agent_id": self.settings.agent_id,
            "application": self.settings.application_id,
            "filterOptions": [
                {
                    "key": "range_date",
                    "values": {
                        "start_date": start_date.isoformat(),
                        "end_date": end_date.isoformat(),
                    },
                }
            ],
            "limit": self.settings.page_size,
            "page": page,
            "search": {"key": "", "value": ""},
            "sort": {"created": -1},
        }
        payload = self._post("get-list", body)

        results = payload.get("results") if isinstance(payload, dict) else None
        if not isinstance(results, dict) or not isinstance(results.get("data"), list):
            raise UpstreamApiError(f"Malformed ticket list response for page {page}")

        try:
            return TicketPage(
                tickets=[TicketStub.model_validate(item) for item in results["data"]],
                pages=int(results.get("pages") or 0),
            )
        except (ValidationError, TypeError, ValueError) as exc:
            raise UpstreamApiError(f"Malformed ticket list response for page {page}: {exc}") from exc

    def list_activities(self, ticket_id: Optional[str]) -> List[ActivityRecord]:
        """Fetch a ticket's full activity history (order not guaranteed)."""
        payload = self._post("list-activity", {"ticket_id": ticket_id})

        results = (payload.get("results") or []) if isinstance(payload, dict) else None
        if not isinstance(results, list):
            raise UpstreamApiError(f"Malformed activity response for ticket {ticket_id}")

        try:
            return [ActivityRecord.model_validate(item) for item in results]
        except ValidationError as exc:
            raise UpstreamApiError(
                f"Malformed activity response for ticket {ticket_id}: {exc}"
            ) from exc

    def _post(self, endpoint: str, body: Dict[str, Any]) -> Any:
        url = f"{self.settings.ticketing_base_url}/{endpoint}"
        try:
            response = self.session.post(url, json=body, timeout=self.settings.http_timeout_seconds)
        except requests.RequestException as exc:
            raise UpstreamApiError(f"POST {endpoint} failed: {exc}") from exc

        if not response.ok:
            raise UpstreamApiError(
                f"POST {endpoint} returned {response.status_code}",
                status_code=response.status_code,
            )
        try:
            return response.json()
        except ValueError as exc:
            raise UpstreamApiError(f"POST {endpoint} returned invalid JSON") from exc
