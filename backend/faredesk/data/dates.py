"""Date helpers for passenger forms and segment timestamps."""

import re
from datetime import date, datetime

_ISO_DATE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_ISO_DURATION = re.compile(r"^PT(?:(\d+)H)?(?:(\d+)M)?(?:\d+(?:\.\d+)?S)?$")


def to_iso_date(value: str | None) -> str:
    """Normalize a user-entered date to YYYY-MM-DD.

    Accepts YYYY-MM-DD, DD-MM-YYYY and MM-DD-YYYY with ``-`` or ``/``
    separators. When the first part is greater than 12 it is read as the day,
    otherwise as the month. Unparseable input is returned unchanged.
    """
    if not value:
        return ""
    value = value.strip()
    if _ISO_DATE.match(value):
        return value

    parts = value.split("-") if len(value.split("-")) == 3 else value.split("/")
    if len(parts) == 3:
        first, second, third = parts
        if len(first) == 4:
            return f"{first}-{second.zfill(2)}-{third.zfill(2)}"
        if first.isdigit() and int(first) > 12:
            return f"{third}-{second.zfill(2)}-{first.zfill(2)}"
        return f"{third}-{first.zfill(2)}-{second.zfill(2)}"

    try:
        return datetime.fromisoformat(value).date().isoformat()
    except ValueError:
        return value


def parse_timestamp(value: str | None) -> datetime | None:
    """Parse an API timestamp; None when missing or malformed."""
    if not value:
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None


def years_before(anchor: date, years: int) -> date:
    """Same calendar day ``years`` earlier; Feb 29 falls back to Feb 28."""
    try:
        return anchor.replace(year=anchor.year - years)
    except ValueError:
        return anchor.replace(year=anchor.year - years, day=28)


def months_after(anchor: date, months: int) -> date:
    month_index = anchor.month - 1 + months
    year = anchor.year + month_index // 12
    month = month_index % 12 + 1
    day = anchor.day
    while True:
        try:
            return date(year, month, day)
        except ValueError:
            day -= 1


def parse_duration(duration_str: str | int | None) -> int:
    """Segment duration to minutes. Accepts plain minutes or ISO 8601 (PT2H30M).

    Seconds are dropped. Anything else is 0.
    """
    if duration_str is None:
        return 0
    if isinstance(duration_str, int):
        return duration_str
    duration_str = str(duration_str).strip()
    if duration_str.isdigit():
        return int(duration_str)
    match = _ISO_DURATION.match(duration_str)
    if not match:
        return 0
    hours, minutes = match.group(1), match.group(2)
    return int(hours or 0) * 60 + int(minutes or 0)
