import pytest

from vault.records.query import QueryEngine, compute_stats, search_text
from vault.storage.repositories import IndexRepository
from vault.types import QueryFilter, RecordInput, RecordPatch


@pytest.fixture
def engine(store, clock):
    return QueryEngine(store, clock=clock)


def add(store, clock=None, when=None, **fields):
    if clock and when:
        clock.set(when)
    base = {"startDate": "2024-01-01", "endDate": "2024-01-10"}
    base.update(fields)
    return store.create(RecordInput.model_validate(base))


@pytest.fixture
def populated(store, clock):
    """Five records with known status on 2024-01-05."""
    recs = {
        "expired": add(store, clock, "2024-01-01T08:00:00", name="Old Gym", endDate="2024-01-03"),
        "today": add(store, clock, "2024-01-01T09:00:00", name="ending today", endDate="2024-01-05"),
        "soon": add(store, clock, "2024-01-02T08:00:00", name="Spotify", email="me@music.fm", endDate="2024-01-09"),
        "later": add(store, clock, "2024-01-03T08:00:00", name="azure", endDate="2024-03-01", note="Work account"),
        "forever": add(store, clock, "2024-01-04T08:00:00", name="Bank", unlimited=True),
    }
    clock.set("2024-01-05T12:00:00")
    return recs


def ids(result):
    return [r.id for r in result.records]


def test_today_defaults_to_clock_utc_date(engine, populated):
    assert engine.list().today == "2024-01-05"


def test_scenarios_for_one_record_across_days(store, engine):
    rec = add(store)
    expectations = {
        "2024-01-10": dict(expired=True, days_to_end=0, soon=False),
        "2024-01-05": dict(expired=False, days_to_end=5, soon=True),
        "2024-01-04": dict(expired=False, days_to_end=6, soon=True),
        "2024-01-02": dict(expired=False, days_to_end=8, soon=False),
    }
    for today, want in expectations.items():
        (row,) = engine.list(today=today).records
        assert row.id == rec.id
        for field, value in want.items():
            assert getattr(row, field) == value, (today, field)


def test_unlimited_record_is_always_active(store, engine):
    add(store, unlimited=True, endDate=None)
    for today in ("2020-01-01", "2024-01-10", "2100-01-01"):
        (row,) = engine.list(today=today).records
        assert row.expired is False and row.soon is False and row.days_to_end is None


def test_stats_over_full_set(engine, populated):
    stats = engine.list().stats
    assert stats.total == 5
    assert stats.expired == 2
    assert stats.soon == 1
    assert stats.active == 3
    assert stats.active + stats.expired == stats.total


@pytest.mark.parametrize("sort", ["due", "updated", "created", "name"])
def test_soon_filter_returns_exactly_soon_records(engine, populated, sort):
    result = engine.list(QueryFilter(status="soon", sort=sort))
    assert ids(result) == [populated["soon"].id]
    assert all(r.soon for r in result.records)
    assert result.stats.total == 1
    assert result.stats.soon == 1
    assert result.stats.active == 1


def test_active_includes_soon_records(engine, populated):
    result = engine.list(QueryFilter(status="active"))
    assert set(ids(result)) == {populated[k].id for k in ("soon", "later", "forever")}
    assert result.stats.expired == 0


def test_expired_filter(engine, populated):
    result = engine.list(QueryFilter(status="expired"))
    assert set(ids(result)) == {populated["expired"].id, populated["today"].id}


def test_unknown_status_and_sort_fall_back(engine, populated):
    result = engine.list(QueryFilter(status="bogus", sort="bogus"))
    assert result.stats.total == 5
    assert ids(result) == ids(engine.list(QueryFilter(sort="due")))


def test_text_search_is_case_insensitive_over_all_fields(engine, populated):
    assert ids(engine.list(QueryFilter(q="SPOTIFY"))) == [populated["soon"].id]
    assert ids(engine.list(QueryFilter(q="music.fm"))) == [populated["soon"].id]
    assert ids(engine.list(QueryFilter(q="work"))) == [populated["later"].id]
    assert ids(engine.list(QueryFilter(q="2024-03-01"))) == [populated["later"].id]
    assert ids(engine.list(QueryFilter(q="  nothing matches  "))) == []


def test_search_text_skips_empty_fields(store):
    rec = add(store, name="A", unlimited=True)
    assert search_text(rec) == "a 2024-01-01"


def test_search_applies_before_stats(engine, populated):
    stats = engine.list(QueryFilter(q="gym")).stats
    assert stats.total == 1 and stats.expired == 1 and stats.active == 0


def test_due_sort_puts_expired_first_then_earliest_end(engine, populated):
    order = ids(engine.list(QueryFilter(sort="due")))
    assert order == [
        populated["expired"].id,
        populated["today"].id,
        # unlimited has no end date and sorts first among the active ones
        populated["forever"].id,
        populated["soon"].id,
        populated["later"].id,
    ]


def test_due_sort_ties_break_on_latest_update(store, clock, engine):
    a = add(store, clock, "2024-01-01T08:00:00", endDate="2024-02-01")
    b = add(store, clock, "2024-01-01T09:00:00", endDate="2024-02-01")
    clock.set("2024-01-02T08:00:00")
    store.update(a.id, RecordPatch(note="touched"))
    assert ids(engine.list(today="2024-01-05")) == [a.id, b.id]


def test_name_sort_ignores_case(engine, populated):
    names = [r.name for r in engine.list(QueryFilter(sort="name")).records]
    assert names == ["azure", "Bank", "ending today", "Old Gym", "Spotify"]


def test_created_and_updated_sort_newest_first(engine, populated, store, clock):
    created = ids(engine.list(QueryFilter(sort="created")))
    assert created == [populated[k].id for k in ("forever", "later", "soon", "today", "expired")]

    clock.set("2024-01-05T13:00:00")
    store.update(populated["expired"].id, RecordPatch(name="Old Gym 2"))
    updated = ids(engine.list(QueryFilter(sort="updated")))
    assert updated[0] == populated["expired"].id


def test_orphaned_index_ids_are_skipped(engine, populated, backend):
    IndexRepository(backend).prepend("ghost")
    result = engine.list()
    assert "ghost" not in ids(result)
    assert result.stats.total == 5


def test_wire_shape(engine, populated):
    wire = engine.list(QueryFilter(q="bank")).to_wire()
    assert wire["ok"] is True
    assert wire["today"] == "2024-01-05"
    assert wire["stats"] == {"total": 1, "active": 1, "soon": 0, "expired": 0}
    (row,) = wire["records"]
    assert set(row) == {
        "id", "name", "email", "password", "startDate", "endDate", "unlimited",
        "note", "createdAt", "updatedAt", "daysToEnd", "expired", "soon", "ageDays",
    }
    assert row["endDate"] is None
    assert row["daysToEnd"] is None
    assert row["ageDays"] == 4


def test_compute_stats_empty():
    stats = compute_stats([])
    assert stats.model_dump() == {"total": 0, "active": 0, "soon": 0, "expired": 0}
