"""
Ticket classification rulebook.

Pure functions over an already-merged ticket draft: validity, SLA, FCR,
escalation category, VIP and Pareto flags. Nothing here raises on bad
business data; malformed values fall back to the documented defaults
(fail-closed SLA, ``Valid`` verdict, empty escalation category).
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import timedelta
from enum import Enum
from types import MappingProxyType
from typing import Any, Mapping, Optional, Pattern, Sequence

from utils.dates import parse_timestamp
from utils.normalizers import is_placeholder, normalize_key, parse_leading_int, to_text

VALID = "Valid"
PARETO_TOP_TIER = "P1"
FCR_MSISDN_LIMIT = 10
DEFAULT_SLA_THRESHOLDS_HOURS: Mapping[str, float] = MappingProxyType(
    {"connectivity": 3, "solution": 6}
)
VIP_PATTERN = re.compile(r"vvip|vip|direk|director|komisaris", re.IGNORECASE)
COMPLETED_BY_HIA = re.compile(r"completed by hia", re.IGNORECASE)


class MatchKind(str, Enum):
    """How a validity rule compares its field value to its pattern."""

    EXACT = "exact"
    SUBSTRING = "substring"
    REGEX = "regex"


class EscalationType(str, Enum):
    """Escalation buckets, in evaluation order."""

    NETWORK = "NO"
    IT = "IT"
    EBO = "EBO"
    GTM = "GTM"
    BILLCO = "Billco"
    NONE = ""


def phrase_pattern(phrases: str) -> str:
    """Turn 'spam / out of topic / ...' into an escaped alternation."""
    return "|".join(re.escape(part.strip()) for part in phrases.split("/") if part.strip())


@dataclass(frozen=True)
class ValidityRule:
    """One row of the validity rulebook."""

    status: str
    source_field: str
    kind: MatchKind
    pattern: str
    ignore_case: bool = False
    _regex: Optional[Pattern[str]] = field(default=None, init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        if self.kind is MatchKind.REGEX:
            flags = re.IGNORECASE if self.ignore_case else 0
            object.__setattr__(self, "_regex", re.compile(self.pattern, flags))

    def matches(self, value: Any) -> bool:
        text = to_text(value)
        if not text:
            return False
        if self.kind is MatchKind.EXACT:
            if self.ignore_case:
                return text.casefold() == self.pattern.casefold()
            return text == self.pattern
        if self.kind is MatchKind.SUBSTRING:
            if self.ignore_case:
                return self.pattern.casefold() in text.casefold()
            return self.pattern in text
        return self._regex.search(text) is not None


# Declaration order is the tie-break: sender/channel rules beat the broad
# "looks like a duplicate" text rules, which beat the description override.
VALIDITY_RULES: Sequence[ValidityRule] = (
    ValidityRule("EMS", "customer_email", MatchKind.EXACT, "ems@telkomsel.co.id"),
    ValidityRule("RPA", "customer_email", MatchKind.EXACT, "rpa_ces@telkomsel.co.id"),
    ValidityRule("HIA", "subject", MatchKind.EXACT, "UAT HIA"),
    ValidityRule("Double", "department", MatchKind.EXACT, "Tiket Take Out"),
    ValidityRule("Double", "channel", MatchKind.EXACT, "Live Chat"),
    ValidityRule("Double", "assignee", MatchKind.EXACT, "TL Iwan Hermawan"),
    ValidityRule(
        "Double",
        "description",
        MatchKind.REGEX,
        phrase_pattern(
            "spam / out of topic / double ticket / dobel ticket / double tiket / "
            "dobel tiket / balikan ems / balasan ems"
        ),
        ignore_case=True,
    ),
    ValidityRule(
        "Double",
        "detail_category",
        MatchKind.REGEX,
        phrase_pattern(
            "I12-Status ticket / I12-Ticket ID / I11-Interaksi terputus / "
            "I12-Out Of Topic / Out Of Topic"
        ),
        ignore_case=True,
    ),
    ValidityRule("RPA", "description", MatchKind.REGEX, r"^\s*RPA\s*$"),
)


@dataclass(frozen=True)
class ValidityVerdict:
    status: str
    is_valid: bool
    reason: str


@dataclass(frozen=True)
class Classification:
    """All derived flags for one ticket."""

    validation_status: str
    is_valid_for_reporting: bool
    reason: str
    in_sla: bool
    is_fcr: bool
    escalation_type: str
    is_vip: bool
    is_pareto: bool


def classify_validity(
    draft: Mapping[str, Any], rules: Sequence[ValidityRule] = VALIDITY_RULES
) -> ValidityVerdict:
    """First matching rule wins; then the description override; then Valid."""
    for rule in rules:
        if rule.matches(draft.get(rule.source_field)):
            return ValidityVerdict(
                status=rule.status,
                is_valid=False,
                reason=f"Matched {rule.status} rule on {rule.source_field}",
            )

    if COMPLETED_BY_HIA.search(to_text(draft.get("description"))):
        return ValidityVerdict(status=VALID, is_valid=True, reason="Completed by HIA")

    return ValidityVerdict(status=VALID, is_valid=True, reason="Passed all checks")


def classify_sla(
    product: Any,
    created_at: Any,
    resolved_at: Any,
    thresholds_hours: Mapping[str, float] = DEFAULT_SLA_THRESHOLDS_HOURS,
) -> bool:
    """
    Return True when the ticket is within its product's resolution SLA.

    An unresolved ticket has accrued no breach yet and counts as in SLA.
    Unknown products and unparseable dates count as out of SLA.
    """
    if is_placeholder(resolved_at):
        return True

    limit_hours = thresholds_hours.get(normalize_key(product))
    if limit_hours is None:
        return False

    created = parse_timestamp(created_at)
    resolved = parse_timestamp(resolved_at)
    if created is None or resolved is None:
        return False

    return resolved - created <= timedelta(hours=limit_hours)


def classify_fcr(remedy_ticket_id: Any, escalation_reference: Any, msisdn_count: Any) -> bool:
    """FCR: no remedy ticket, no escalation reference and fewer than 10 MSISDNs."""
    return (
        is_placeholder(remedy_ticket_id)
        and is_placeholder(escalation_reference)
        and parse_leading_int(msisdn_count) < FCR_MSISDN_LIMIT
    )


def classify_escalation(remedy_ticket_id: Any, escalation_reference: Any) -> str:
    """Strict if/elif chain; the first applicable category is the only one assigned."""
    remedy = to_text(remedy_ticket_id).strip()
    escalation = to_text(escalation_reference).strip()

    if "INC" in remedy:
        return EscalationType.NETWORK.value
    if "INC" in escalation:
        return EscalationType.IT.value
    if "EBO" in escalation:
        return EscalationType.EBO.value
    if "GTM" in escalation:
        return EscalationType.GTM.value
    if "Billco" in escalation:
        return EscalationType.BILLCO.value
    return EscalationType.NONE.value


def is_vip(subject: Any, pattern: Pattern[str] = VIP_PATTERN) -> bool:
    return pattern.search(to_text(subject)) is not None


def is_pareto(account_tier: Optional[str], top_tier: str = PARETO_TOP_TIER) -> bool:
    return account_tier == top_tier


@dataclass(frozen=True)
class TicketClassifier:
    """Bundles the rulebook configuration and applies every rule to a draft."""

    rules: Sequence[ValidityRule] = VALIDITY_RULES
    sla_thresholds_hours: Mapping[str, float] = field(
        default_factory=lambda: DEFAULT_SLA_THRESHOLDS_HOURS
    )
    vip_pattern: Pattern[str] = VIP_PATTERN
    pareto_tier: str = PARETO_TOP_TIER

    def classify(
        self,
        draft: Mapping[str, Any],
        product: Optional[str],
        account_tier: Optional[str],
    ) -> Classification:
        verdict = classify_validity(draft, self.rules)
        # Tickets excluded from reporting never count towards SLA compliance.
        in_sla = verdict.is_valid and classify_sla(
            product,
            draft.get("created_at"),
            draft.get("resolved_at"),
            self.sla_thresholds_hours,
        )
        return Classification(
            validation_status=verdict.status,
            is_valid_for_reporting=verdict.is_valid,
            reason=verdict.reason,
            in_sla=in_sla,
            is_fcr=classify_fcr(
                draft.get("remedy_ticket_id"),
                draft.get("escalation_reference"),
                draft.get("msisdn_count"),
            ),
            escalation_type=classify_escalation(
                draft.get("remedy_ticket_id"), draft.get("escalation_reference")
            ),
            is_vip=is_vip(draft.get("subject"), self.vip_pattern),
            is_pareto=is_pareto(account_tier, self.pareto_tier),
        )
