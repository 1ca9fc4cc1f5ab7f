"""Filtering, sorting and statistics over the status-annotated record set."""

from datetime import datetime
from typing import Callable, Iterable, List

from vault.obs.logger import log_event
from vault.records.expiry import SOON_THRESHOLD_DAYS, annotate
from vault.records.store import RecordStore
from vault.types import AnnotatedRecord, QueryFilter, QueryResult, Record, Stats
from vault.utils.dates import get_current_datetime, today_iso

SEARCH_FIELDS = ("name", "email", "password", "start_date", "end_date", "note")


def search_text(record: Record) -> str:
    parts = [getattr(record, f) for f in SEARCH_FIELDS]
    return " ".join(str(p) for p in parts if p).lower()


def matches_status(record: AnnotatedRecord, status: str) -> bool:
    if status == "active":
        return not record.expired
    if status == "expired":
        return record.expired
    if status == "soon":
        return record.soon
    return True


def sort_records(records: List[AnnotatedRecord], sort: str) -> List[AnnotatedRecord]:
    if sort == "name":
        return sorted(records, key=lambda r: ((r.name or "").casefold(), r.name or ""))
    if sort == "created":
        return sorted(records, key=lambda r: r.created_at or "", reverse=True)
    if sort == "updated":
        return sorted(records, key=lambda r: r.updated_at or "", reverse=True)

    # due: expired first, then earliest end date (missing first), newest update on ties
    ordered = sorted(records, key=lambda r: r.updated_at or "", reverse=True)
    return sorted(ordered, key=lambda r: (not r.expired, r.end_date or ""))


def compute_stats(records: Iterable[AnnotatedRecord]) -> Stats:
    records = list(records)
    expired = sum(1 for r in records if r.expired)
    return Stats(
        total=len(records),
        active=len(records) - expired,
        soon=sum(1 for r in records if r.soon),
        expired=expired,
    )


class QueryEngine:
    def __init__(
        self,
        store: RecordStore,
        clock: Callable[[], datetime] = get_current_datetime,
        soon_days: int = SOON_THRESHOLD_DAYS,
    ):
        self.store = store
        self.clock = clock
        self.soon_days = soon_days

    def list(self, query: QueryFilter = None, today: str = None) -> QueryResult:
        query = query or QueryFilter()
        today = today or today_iso(self.clock())

        selected: List[AnnotatedRecord] = []
        skipped = 0
        for record_id in self.store.list_ids():
            record = self.store.get(record_id)
            if record is None:
                skipped += 1
                continue
            if query.q and query.q not in search_text(record):
                continue
            annotated = AnnotatedRecord.from_record(record, annotate(record, today, self.soon_days))
            if not matches_status(annotated, query.status):
                continue
            selected.append(annotated)

        records = sort_records(selected, query.sort)
        log_event(
            "records_listed",
            status=query.status,
            sort=query.sort,
            returned=len(records),
            orphaned=skipped,
        )
        return QueryResult(today=today, stats=compute_stats(records), records=records)
