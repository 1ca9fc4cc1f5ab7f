import secrets
from datetime import datetime
from typing import Callable, List, Optional, Tuple

from vault.errors import InvalidDate, InvalidRange, MissingIdentifier, NotFound
from vault.obs.logger import log_event
from vault.storage.backend import KeyValueBackend
from vault.storage.repositories import IndexRepository, RecordRepository
from vault.types import Record, RecordInput, RecordPatch
from vault.utils.dates import get_current_datetime, is_iso_date, utc_timestamp

ID_BYTES = 12

TEXT_FIELDS = ("name", "email", "password", "note")


def make_id() -> str:
    return secrets.token_hex(ID_BYTES)


def validate_window(start_date: str, end_date: Optional[str], unlimited: bool) -> Tuple[str, Optional[str]]:
    """Check the validity window and return the (start, end) pair to store.

    Unlimited records always store ``end_date=None``, whatever was supplied.
    """
    start_date = (start_date or "").strip()
    if not is_iso_date(start_date):
        raise InvalidDate("startDate")
    if unlimited:
        return start_date, None

    end_date = (end_date or "").strip()
    if not is_iso_date(end_date):
        raise InvalidDate("endDate")
    # zero-padded ISO dates compare correctly as strings
    if end_date < start_date:
        raise InvalidRange(f"endDate {end_date} is before startDate {start_date}")
    return start_date, end_date


class RecordStore:
    """Create, read, update and delete records, keeping the id index in step."""

    def __init__(
        self,
        backend: KeyValueBackend,
        clock: Callable[[], datetime] = get_current_datetime,
        id_factory: Callable[[], str] = make_id,
    ):
        self.index = IndexRepository(backend)
        self.records = RecordRepository(backend)
        self.clock = clock
        self.id_factory = id_factory

    def create(self, data: RecordInput) -> Record:
        start_date, end_date = validate_window(data.start_date, data.end_date, data.unlimited)

        ts = utc_timestamp(self.clock())
        record = Record(
            id=self.id_factory(),
            name=data.name,
            email=data.email,
            password=data.password,
            start_date=start_date,
            end_date=end_date,
            unlimited=data.unlimited,
            note=data.note,
            created_at=ts,
            updated_at=ts,
        )
        # Blob first: a failure in between leaves an unindexed record rather
        # than an index entry pointing at nothing.
        self.records.save(record)
        self.index.prepend(record.id)
        log_event("record_created", record_id=record.id, unlimited=record.unlimited)
        return record

    def update(self, record_id: str, patch: RecordPatch) -> Record:
        if not record_id:
            raise MissingIdentifier()
        existing = self.records.get(record_id)
        if existing is None:
            raise NotFound(record_id)

        unlimited = patch.pick("unlimited", existing.unlimited)
        start_date, end_date = validate_window(
            patch.pick("start_date", existing.start_date),
            patch.pick("end_date", existing.end_date),
            unlimited,
        )

        changes = {f: (patch.pick(f, getattr(existing, f)) or "").strip() for f in TEXT_FIELDS}
        record = existing.model_copy(update={
            **changes,
            "start_date": start_date,
            "end_date": end_date,
            "unlimited": unlimited,
            "updated_at": utc_timestamp(self.clock()),
        })
        self.records.save(record)
        log_event("record_updated", record_id=record.id, fields=sorted(patch.model_fields_set))
        return record

    def delete(self, record_id: str) -> bool:
        """Remove a record and its index entry. Deleting an unknown id still succeeds."""
        if not record_id:
            raise MissingIdentifier()
        self.index.remove(record_id)
        self.records.delete(record_id)
        log_event("record_deleted", record_id=record_id)
        return True

    def get(self, record_id: str) -> Optional[Record]:
        return self.records.get(record_id)

    def list_ids(self) -> List[str]:
        return self.index.list_ids()
