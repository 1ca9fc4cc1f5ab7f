"""Derived status for a record relative to a reference date.

Nothing here is persisted; annotations are recomputed on every query.

A record with an end date is *expired* once ``days_to_end`` reaches 0 (an end
date of today already counts as expired) and *soon* while ``days_to_end`` is
in ``(0, SOON_THRESHOLD_DAYS]``. Unlimited records are never either.
"""

from vault.types import Annotation, Record
from vault.utils.dates import is_iso_date, whole_days_between

SOON_THRESHOLD_DAYS = 7


def annotate(record: Record, today: str, soon_days: int = SOON_THRESHOLD_DAYS) -> Annotation:
    # unreadable stored dates are treated like missing ones
    start = record.start_date if is_iso_date(record.start_date) else today
    age_days = max(0, whole_days_between(start, today))

    if record.unlimited:
        return Annotation(age_days=age_days, days_to_end=None, expired=False, soon=False)

    stored_end = record.end_date if is_iso_date(record.end_date) else today
    days_to_end = whole_days_between(today, stored_end)
    expired = days_to_end <= 0
    soon = not expired and days_to_end <= soon_days
    return Annotation(age_days=age_days, days_to_end=days_to_end, expired=expired, soon=soon)
