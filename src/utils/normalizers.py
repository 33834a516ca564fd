"""Small value helpers shared by the lookup, replay and classification code."""

import math
import re
from typing import Any, Optional

from utils.logging_config import get_logger

logger = get_logger(__name__)

PLACEHOLDERS = frozenset({"", "-"})
_LEADING_INT = re.compile(r"^\s*([+-]?\d+)")

# Bounds of the INTEGER and BIGINT columns the parsed values land in.
INT32_MIN, INT32_MAX = -(2**31), 2**31 - 1
INT64_MIN, INT64_MAX = -(2**63), 2**63 - 1


def normalize_key(value: Any) -> str:
    """Trim and lower-case a lookup key; non-strings normalize to ''."""
    if not isinstance(value, str):
        return ""
    return value.strip().lower()


def to_text(value: Any) -> str:
    """Stringify a value, mapping None to ''."""
    if value is None:
        return ""
    return str(value)


def is_placeholder(value: Any) -> bool:
    """True for None, blank strings and the literal '-' placeholder."""
    return to_text(value).strip() in PLACEHOLDERS


def parse_leading_int(value: Any, default: int = 0) -> int:
    """Parse the leading integer of a value ('12 nomor' -> 12), else default."""
    if isinstance(value, bool):
        return default
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if math.isfinite(value) else default
    match = _LEADING_INT.match(to_text(value))
    return int(match.group(1)) if match else default


def parse_count(value: Any, default: int = 0) -> int:
    """
    Parse a count stored in a 32-bit column.

    Values outside the column range (a phone number typed into the MSISDN
    count, say) are clamped to the range bound and logged.
    """
    count = parse_leading_int(value, default)
    if INT32_MIN <= count <= INT32_MAX:
        return count
    logger.warning("Count out of range, clamped", extra={"raw_value": to_text(value)})
    return INT32_MAX if count > 0 else INT32_MIN


def parse_amount(value: Any) -> Optional[int]:
    """
    Parse revenue amounts such as 'Rp 13.513.500.000' into an integer.

    '-', '~' and blanks mean "no amount" and return None. Amounts that do
    not fit a 64-bit column are logged and dropped to None.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        amount = value
    elif isinstance(value, float):
        if not math.isfinite(value):
            return None
        amount = int(value)
    else:
        text = to_text(value).strip()
        if text in ("", "-", "~"):
            return None
        digits = re.sub(r"[^0-9-]", "", text)
        try:
            amount = int(digits)
        except ValueError:
            return None
    if not INT64_MIN <= amount <= INT64_MAX:
        logger.warning("Amount out of range, dropped", extra={"raw_value": to_text(value)})
        return None
    return amount
