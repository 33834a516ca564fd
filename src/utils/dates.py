"""Lenient timestamp parsing for API payloads and export rows."""

from datetime import datetime, timedelta, timezone
from typing import Any, Optional

# Excel's day zero; serial 25569 is 1970-01-01.
EXCEL_EPOCH = datetime(1899, 12, 30, tzinfo=timezone.utc)
MAX_EXCEL_SERIAL = 2958465

DAY_FIRST_FORMATS = (
    "%d/%m/%Y %H:%M:%S",
    "%d/%m/%Y %H:%M",
    "%d/%m/%Y",
)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Normalize to an aware UTC datetime; naive values are taken as UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _from_excel_serial(serial: float) -> Optional[datetime]:
    if not 0 < serial < MAX_EXCEL_SERIAL:
        return None
    return EXCEL_EPOCH + timedelta(days=serial)


def _as_number(text: str) -> Optional[float]:
    try:
        return float(text.replace(",", "."))
    except ValueError:
        return None


def parse_timestamp(value: Any) -> Optional[datetime]:
    """
    Parse ISO-8601, ``dd/MM/yyyy HH:mm:ss`` or an Excel serial into UTC.

    Returns None for blanks, placeholders and anything unparseable so callers
    can apply their own fallback instead of failing the whole record.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        return as_utc(value)
    if isinstance(value, (int, float)):
        return _from_excel_serial(float(value))

    text = str(value).strip()
    if not text or text in ("-", "~"):
        return None

    try:
        return as_utc(datetime.fromisoformat(text))
    except ValueError:
        pass

    for fmt in DAY_FIRST_FORMATS:
        try:
            return as_utc(datetime.strptime(text, fmt))
        except ValueError:
            continue

    number = _as_number(text)
    if number is not None:
        return _from_excel_serial(number)
    return None
