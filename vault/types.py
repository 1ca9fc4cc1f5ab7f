from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

STATUSES = ("all", "active", "expired", "soon")
SORTS = ("due", "updated", "created", "name")


class WireModel(BaseModel):
    # camelCase on the wire, snake_case in Python
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    def to_wire(self) -> dict:
        return self.model_dump(by_alias=True)


class Record(WireModel):
    id: str
    name: str = ""
    email: str = ""
    password: str = ""
    start_date: str = Field("", description="YYYY-MM-DD")
    end_date: Optional[str] = Field(None, description="YYYY-MM-DD, null when unlimited")
    unlimited: bool = False
    note: str = ""
    created_at: str = ""
    updated_at: str = ""


class Annotation(BaseModel):
    age_days: int
    days_to_end: Optional[int] = None
    expired: bool = False
    soon: bool = False


class AnnotatedRecord(Record):
    days_to_end: Optional[int] = None
    expired: bool = False
    soon: bool = False
    age_days: int = 0

    @classmethod
    def from_record(cls, record: Record, annotation: Annotation) -> "AnnotatedRecord":
        return cls(**record.model_dump(), **annotation.model_dump())


def _as_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value).strip()


class RecordInput(WireModel):
    """Create request. Missing or falsy text fields become empty strings."""

    name: str = ""
    email: str = ""
    password: str = ""
    start_date: str = ""
    end_date: str = ""
    unlimited: bool = False
    note: str = ""

    @field_validator("name", "email", "password", "start_date", "end_date", "note", mode="before")
    @classmethod
    def _coerce_text(cls, v: Any) -> str:
        if not v:
            return ""
        return _as_text(v)

    @field_validator("unlimited", mode="before")
    @classmethod
    def _truthy(cls, v: Any) -> bool:
        return bool(v)


class RecordPatch(WireModel):
    """Partial update. Text and date fields count as supplied only when present
    and not null; ``unlimited`` counts as supplied whenever present.
    """

    name: Optional[str] = None
    email: Optional[str] = None
    password: Optional[str] = None
    start_date: Optional[str] = None
    end_date: Optional[str] = None
    unlimited: Optional[bool] = None
    note: Optional[str] = None

    @field_validator("name", "email", "password", "start_date", "end_date", "note", mode="before")
    @classmethod
    def _coerce_text(cls, v: Any) -> Optional[str]:
        return _as_text(v)

    @field_validator("unlimited", mode="before")
    @classmethod
    def _truthy(cls, v: Any) -> bool:
        # an explicit null is supplied and means false
        return bool(v)

    def provided(self, field: str) -> bool:
        if field == "unlimited":
            return field in self.model_fields_set
        return field in self.model_fields_set and getattr(self, field) is not None

    def pick(self, field: str, existing: Any) -> Any:
        return getattr(self, field) if self.provided(field) else existing


class QueryFilter(BaseModel):
    q: str = ""
    status: str = "all"
    sort: str = "due"

    @field_validator("q", mode="before")
    @classmethod
    def _normalize_q(cls, v: Any) -> str:
        return str(v or "").strip().lower()

    @field_validator("status", mode="before")
    @classmethod
    def _normalize_status(cls, v: Any) -> str:
        s = str(v or "all").strip()
        return s if s in STATUSES else "all"

    @field_validator("sort", mode="before")
    @classmethod
    def _normalize_sort(cls, v: Any) -> str:
        s = str(v or "due").strip()
        return s if s in SORTS else "due"


class Stats(BaseModel):
    total: int = 0
    active: int = 0
    soon: int = 0
    expired: int = 0


class QueryResult(BaseModel):
    ok: bool = True
    today: str
    stats: Stats
    records: List[AnnotatedRecord]

    def to_wire(self) -> dict:
        return {
            "ok": self.ok,
            "today": self.today,
            "stats": self.stats.model_dump(),
            "records": [r.to_wire() for r in self.records],
        }
