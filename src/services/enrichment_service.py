"""
Ticket enrichment.

Turns a list-endpoint stub into a canonical, classified ``TicketRecord``:
fetch the activity history, replay it oldest-first to recover custom
fields that only ever appear as deltas, merge with the stub, resolve
product and account tier from the lookup snapshot, then classify.

Batches fan out over a bounded thread pool. One ticket failing never
cancels its siblings; it is logged and left out of the batch output.
"""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from pydantic import ValidationError

from models.ticket import ActivityRecord, TicketRecord, TicketStub
from services.classification_service import TicketClassifier
from services.lookup_service import LookupSnapshot
from services.ticketing_client import TicketingApiClient
from utils.error_handling import BatchCancelledError, TicketEnrichmentError, UpstreamApiError
from utils.logging_config import get_logger
from utils.normalizers import to_text

logger = get_logger(__name__)

# API field label -> (record attribute, value before any activity sets it)
TRACKED_FIELDS: Mapping[str, Tuple[str, str]] = {
    "Amount Revenue": ("amount_revenue", "0"),
    "Jumlah MSISDN": ("msisdn_count", "0"),
    "ID Remedy_NO": ("remedy_ticket_id", ""),
    "Eskalasi/ID Remedy_IT/AO/EMS": ("escalation_reference", ""),
    "Sub Category": ("sub_category", ""),
    "Detail Category": ("detail_category", ""),
    "Nama Perusahaan": ("company_name", ""),
    "category": ("category", ""),
    "Tags": ("tags", ""),
    "Reason OSL": ("reason_code", ""),
    "Project ID": ("project_id", ""),
    "Roaming": ("roaming", ""),
    "IOT": ("iot", ""),
    "Reporter": ("reporter", ""),
}

_UNDATED = datetime.min.replace(tzinfo=timezone.utc)


def _activity_sort_key(activity: ActivityRecord) -> Tuple[bool, datetime]:
    # Undated activities replay first; sorted() keeps API order for ties.
    return (activity.timestamp is not None, activity.timestamp or _UNDATED)


def replay_custom_fields(activities: Iterable[ActivityRecord]) -> Dict[str, str]:
    """Rebuild the latest value of every tracked custom field from its change log."""
    state = {attribute: default for attribute, default in TRACKED_FIELDS.values()}

    for activity in sorted(activities, key=_activity_sort_key):
        for change in activity.changes:
            target = TRACKED_FIELDS.get(change.field_name or "")
            if target is not None:
                state[target[0]] = to_text(change.to_value)
        if activity.actor:
            state["reporter"] = activity.actor

    return state


def merge_stub(stub: TicketStub, custom_fields: Mapping[str, str]) -> Dict[str, Any]:
    """Combine stub values with replayed custom fields into a raw record draft."""
    return {
        "ticket_number": stub.ticket_number,
        "ticket_id": stub.ticket_id,
        "subject": stub.subject,
        "channel": stub.channel,
        "assignee": stub.assignee,
        "department": stub.department,
        "priority": stub.priority,
        "last_status": stub.status,
        "created_at": stub.created_at,
        "last_update": stub.updated_at,
        "description": stub.description,
        "customer_name": stub.client_name,
        "customer_phone": stub.phone_number,
        "customer_email": stub.client_email or stub.client_name,
        "first_response_at": stub.first_response_at,
        "resolved_at": stub.resolved_at,
        "closed_at": stub.resolved_at,
        "escalation_target": stub.escalation_target,
        "room_id": stub.room_id,
        "converse": stub.converse,
        **custom_fields,
        "source": "api",
    }


def finalize_record(
    draft: Mapping[str, Any], lookups: LookupSnapshot, classifier: TicketClassifier
) -> TicketRecord:
    """Resolve lookups, classify the raw draft and build the canonical record."""
    product = lookups.product_for(draft.get("sub_category"))
    account_tier = lookups.tier_for(draft.get("company_name"))
    classification = classifier.classify(draft, product, account_tier)

    return TicketRecord.model_validate(
        {
            **draft,
            "product": product,
            "account_tier": account_tier,
            "validation_status": classification.validation_status,
            "is_valid_for_reporting": classification.is_valid_for_reporting,
            "in_sla": classification.in_sla,
            "is_fcr": classification.is_fcr,
            "escalation_type": classification.escalation_type,
            "is_vip": classification.is_vip,
            "is_pareto": classification.is_pareto,
        }
    )


@dataclass
class EnrichmentOutcome:
    """Successful records plus the ids of tickets that were left out."""

    records: List[TicketRecord] = field(default_factory=list)
    failed_ticket_ids: List[Optional[str]] = field(default_factory=list)


class EnrichmentService:
    """Per-ticket enrichment with bounded concurrency across a batch."""

    def __init__(
        self,
        client: TicketingApiClient,
        classifier: Optional[TicketClassifier] = None,
        concurrency: int = 20,
    ):
        self.client = client
        self.classifier = classifier or TicketClassifier()
        self.concurrency = max(1, concurrency)

    def enrich(self, stub: TicketStub, lookups: LookupSnapshot) -> TicketRecord:
        """Enrich one ticket; any upstream or payload problem becomes TicketEnrichmentError."""
        try:
            activities = self.client.list_activities(stub.ticket_id)
            custom_fields = replay_custom_fields(activities)
            return finalize_record(merge_stub(stub, custom_fields), lookups, self.classifier)
        except (UpstreamApiError, ValidationError) as exc:
            raise TicketEnrichmentError(stub.ticket_id, str(exc)) from exc

    def enrich_batch(
        self,
        stubs: Sequence[TicketStub],
        lookups: LookupSnapshot,
        timeout: Optional[float] = None,
    ) -> EnrichmentOutcome:
        """
        Enrich every stub concurrently and collect the successes.

        If ``timeout`` elapses first the batch is abandoned with
        BatchCancelledError; no partial output is returned.
        """
        outcome = EnrichmentOutcome()
        if not stubs:
            return outcome

        pool = ThreadPoolExecutor(
            max_workers=min(self.concurrency, len(stubs)), thread_name_prefix="enrich"
        )
        try:
            futures = [(pool.submit(self.enrich, stub, lookups), stub) for stub in stubs]
            _, pending = wait([future for future, _ in futures], timeout=timeout)
            if pending:
                raise BatchCancelledError(pending=len(pending))

            for future, stub in futures:
                try:
                    outcome.records.append(future.result())
                except TicketEnrichmentError as exc:
                    logger.warning(
                        "Ticket enrichment failed",
                        extra={
                            "ticket_id": stub.ticket_id,
                            "ticket_number": stub.ticket_number,
                            "error": str(exc),
                        },
                    )
                    outcome.failed_ticket_ids.append(stub.ticket_id)
        finally:
            pool.shutdown(wait=False, cancel_futures=True)

        return outcome
