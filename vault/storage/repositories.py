"""Two-tier record storage: an ordered id index plus one JSON blob per record.

Keys:
    index:records   JSON array of ids, newest first
    rec:<id>        JSON record
"""

import json
from typing import List, Optional

from pydantic import ValidationError

from vault.obs.logger import log_event
from vault.storage.backend import KeyValueBackend
from vault.types import Record

INDEX_KEY = "index:records"
RECORD_PREFIX = "rec:"


def record_key(record_id: str) -> str:
    return f"{RECORD_PREFIX}{record_id}"


def _decode_ids(raw: Optional[str]) -> List[str]:
    if not raw:
        return []
    try:
        ids = json.loads(raw)
    except ValueError:
        return []
    return ids if isinstance(ids, list) else []


class IndexRepository:
    def __init__(self, backend: KeyValueBackend):
        self.backend = backend

    def list_ids(self) -> List[str]:
        return _decode_ids(self.backend.get(INDEX_KEY))

    def prepend(self, record_id: str) -> List[str]:
        def _apply(raw: Optional[str]) -> str:
            ids = [x for x in _decode_ids(raw) if x != record_id]
            return json.dumps([record_id] + ids)

        return json.loads(self.backend.update(INDEX_KEY, _apply))

    def remove(self, record_id: str) -> List[str]:
        def _apply(raw: Optional[str]) -> str:
            return json.dumps([x for x in _decode_ids(raw) if x != record_id])

        return json.loads(self.backend.update(INDEX_KEY, _apply))


class RecordRepository:
    def __init__(self, backend: KeyValueBackend):
        self.backend = backend

    def get(self, record_id: str) -> Optional[Record]:
        raw = self.backend.get(record_key(record_id))
        if not raw:
            return None
        try:
            return Record.model_validate_json(raw)
        except ValidationError:
            log_event("record_unreadable", level="WARNING", record_id=record_id)
            return None

    def save(self, record: Record) -> None:
        self.backend.put(record_key(record.id), json.dumps(record.to_wire()))

    def delete(self, record_id: str) -> None:
        self.backend.delete(record_key(record_id))
