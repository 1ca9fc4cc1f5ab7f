from datetime import date, datetime, timezone
import re

ISO_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")

MS_PER_DAY = 24 * 3600 * 1000


def is_iso_date(value) -> bool:
    """True for a zero-padded YYYY-MM-DD string naming a real calendar day."""
    s = str(value or "")
    if not ISO_DATE_RE.match(s):
        return False
    try:
        date.fromisoformat(s)
    except ValueError:
        return False
    return True


def get_current_datetime() -> datetime:
    return datetime.now(timezone.utc)


def today_iso(now: datetime = None) -> str:
    """UTC calendar date, e.g. '2024-01-10'."""
    now = now or get_current_datetime()
    return now.astimezone(timezone.utc).date().isoformat()


def utc_timestamp(now: datetime = None) -> str:
    """Fixed-width ISO-8601 UTC timestamp with milliseconds, sortable as a string."""
    now = now or get_current_datetime()
    return now.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def whole_days_between(from_iso: str, to_iso: str) -> int:
    """Whole days from one calendar date to another, both taken as UTC midnight.

    Floors toward negative infinity, so the result is antisymmetric.
    """
    a = datetime.combine(date.fromisoformat(from_iso), datetime.min.time(), tzinfo=timezone.utc)
    b = datetime.combine(date.fromisoformat(to_iso), datetime.min.time(), tzinfo=timezone.utc)
    delta_ms = int((b - a).total_seconds() * 1000)
    return delta_ms // MS_PER_DAY
