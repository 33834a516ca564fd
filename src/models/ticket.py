"""Ticket models: list-endpoint stubs, activity history and the persisted record."""

from __future__ import annotations

from datetime import datetime
from typing import Annotated, Any, List, Optional

from pydantic import (
    AliasChoices,
    AliasPath,
    BaseModel,
    BeforeValidator,
    ConfigDict,
    Field,
    field_validator,
)

from utils.dates import as_utc, parse_timestamp
from utils.normalizers import parse_amount, parse_count


def _to_optional_text(value: Any) -> Optional[str]:
    """Keep raw API values as text; dates stay unparsed until the record is built."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.isoformat()
    return str(value)


def _to_text(value: Any) -> str:
    return "" if value is None else str(value)


RawText = Annotated[Optional[str], BeforeValidator(_to_optional_text)]
Text = Annotated[str, BeforeValidator(_to_text)]
LenientTimestamp = Annotated[Optional[datetime], BeforeValidator(parse_timestamp)]


class TicketStub(BaseModel):
    """One entry of the "list tickets" endpoint, as received."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    ticket_id: RawText = None
    ticket_number: RawText = None
    subject: RawText = Field(default=None, validation_alias=AliasChoices("ticket_subject", "subject"))
    channel: RawText = None
    status: RawText = None
    priority: RawText = None
    created_at: RawText = None
    updated_at: RawText = None
    assignee: RawText = Field(
        default="-", validation_alias=AliasChoices(AliasPath("assigned_data", "name"), "assignee")
    )
    department: RawText = Field(
        default="-",
        validation_alias=AliasChoices(AliasPath("department_data", "name"), "department"),
    )
    description: RawText = Field(default=None, validation_alias=AliasChoices("detail", "description"))
    client_name: RawText = None
    client_email: RawText = Field(default=None, validation_alias=AliasChoices("client_email", "email"))
    phone_number: RawText = None
    first_response_at: RawText = Field(
        default=None,
        validation_alias=AliasChoices(AliasPath("as_ticket", "first_executed_at"), "first_response_at"),
    )
    resolved_at: RawText = Field(
        default=None,
        validation_alias=AliasChoices(AliasPath("as_ticket", "resolved_at"), "resolved_at"),
    )
    escalation_target: RawText = Field(
        default=None, validation_alias=AliasChoices("escalation_to", "escalation_target")
    )
    room_id: RawText = Field(default=None, validation_alias=AliasChoices("room", "room_id"))
    converse: RawText = None

    @field_validator("assignee", "department")
    @classmethod
    def default_placeholder(cls, value: Optional[str]) -> str:
        """Missing assignee/department data is reported as '-'."""
        return value if value else "-"


class TicketPage(BaseModel):
    """One page of the list endpoint."""

    tickets: List[TicketStub]
    pages: int = 0


class ActivityChange(BaseModel):
    """A single field-level delta inside an activity."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    field_name: RawText = Field(default=None, validation_alias=AliasChoices("name", "field_name"))
    from_value: Any = Field(default=None, validation_alias=AliasChoices("from", "from_value"))
    to_value: Any = Field(default=None, validation_alias=AliasChoices("to", "to_value"))


class ActivityRecord(BaseModel):
    """One entry of a ticket's change log."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    timestamp: Optional[datetime] = None
    actor: RawText = Field(
        default=None,
        validation_alias=AliasChoices(AliasPath("object", "creator_info", "name"), "actor"),
    )
    changes: List[ActivityChange] = Field(
        default_factory=list,
        validation_alias=AliasChoices(AliasPath("object", "additional_info", "changes"), "changes"),
    )

    @field_validator("timestamp")
    @classmethod
    def timestamp_to_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return as_utc(value)

    @field_validator("changes", mode="before")
    @classmethod
    def ignore_non_list_changes(cls, value: Any) -> Any:
        """Some activities carry a dict instead of a list of changes; skip those."""
        return value if isinstance(value, list) else []


class TicketRecord(BaseModel):
    """Canonical, classified ticket row keyed by ``ticket_number``."""

    model_config = ConfigDict(extra="ignore")

    ticket_number: RawText = None
    ticket_id: RawText = None
    subject: Text = ""
    channel: RawText = None
    category: Text = ""
    reporter: Text = ""
    assignee: RawText = None
    department: RawText = None
    priority: RawText = None
    last_status: RawText = None
    created_at: LenientTimestamp = None
    last_update: LenientTimestamp = None
    description: RawText = None
    customer_name: RawText = None
    customer_phone: RawText = None
    customer_email: RawText = None
    first_response_at: LenientTimestamp = None
    resolved_at: LenientTimestamp = None
    closed_at: LenientTimestamp = None
    escalation_target: RawText = None
    room_id: RawText = None
    converse: RawText = None

    # Replayed custom fields
    amount_revenue: Annotated[Optional[int], BeforeValidator(parse_amount)] = None
    msisdn_count: Annotated[int, BeforeValidator(parse_count)] = 0
    sub_category: Text = ""
    detail_category: Text = ""
    company_name: Text = ""
    remedy_ticket_id: Text = ""
    escalation_reference: Text = ""
    tags: Text = ""
    roaming: Text = ""
    project_id: Text = ""
    reason_code: Text = ""
    iot: Text = ""

    # Derived fields
    validation_status: str = "Valid"
    is_valid_for_reporting: bool = True
    product: Optional[str] = None
    account_tier: Optional[str] = None
    in_sla: bool = False
    is_fcr: bool = False
    escalation_type: str = ""
    is_vip: bool = False
    is_pareto: bool = False

    source: str = "api"
    exported_at: LenientTimestamp = None


class BatchJob(BaseModel):
    """Queue payload: one page worth of changed tickets."""

    job_id: str
    page: int = 0
    tickets: List[TicketStub]
