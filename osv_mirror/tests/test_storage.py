"""
Lightweight tests for storage layer.

These tests validate core functionality without heavy mocking:
- Database schema initialization
- Advisory upsert semantics and created_at preservation
- Ecosystem seeding and creation
- Reader primitives (get, paginated list, delete)
- Storage failures surfacing as StorageError
"""
import json

import pytest

from ingestion.record_parser import AdvisoryRecord, parse_record
from storage import (
    DEFAULT_ECOSYSTEMS,
    DuplicateEcosystemError,
    EcosystemRecord,
    RecordWriteError,
    StorageError,
)
from storage.database import utcnow
from conftest import advisory


def _record(document) -> AdvisoryRecord:
    return parse_record(f"{document['id']}.json", json.dumps(document).encode("utf-8"))


def test_database_initialization(temp_db):
    """Verify database schema is created correctly."""
    conn = temp_db.connect()

    tables = conn.execute("""
        SELECT table_name FROM information_schema.tables
        WHERE table_schema = 'main'
    """).fetchall()

    table_names = {t[0] for t in tables}

    assert "vulnerabilities" in table_names
    assert "ecosystems" in table_names
    assert "sync_runs" in table_names


def test_schema_initialization_is_idempotent(temp_db, store):
    store.upsert_advisory(_record(advisory("GHSA-1")))
    temp_db.initialize_schema()
    assert store.count() == 1


def test_run_id_generation(temp_db):
    run_id = temp_db.get_current_run_id()
    assert run_id.startswith("run_")
    assert len(run_id) == 26  # run_YYYYMMDD_HHMMSS_ffffff


def test_empty_store(store):
    assert store.is_empty() is True
    assert store.count() == 0


def test_upsert_and_get_round_trip(store, sample_advisories):
    for document in sample_advisories:
        store.upsert_advisory(_record(document))

    assert store.is_empty() is False
    assert store.count() == 3
    for document in sample_advisories:
        stored = store.get_advisory(document["id"])
        assert stored["id"] == document["id"]
        assert stored["data"] == document


def test_get_missing_advisory_returns_none(store):
    assert store.get_advisory("GHSA-missing") is None


def test_upsert_replaces_payload_and_preserves_created_at(store):
    store.upsert_advisory(_record(advisory("GHSA-1", summary="first")))
    first = store.get_advisory("GHSA-1")

    store.upsert_advisory(_record(advisory("GHSA-1", summary="second")))
    second = store.get_advisory("GHSA-1")

    assert store.count() == 1
    assert second["data"]["summary"] == "second"
    assert second["created_at"] == first["created_at"]
    assert second["updated_at"] >= first["updated_at"]


def test_upsert_rejected_content_raises_record_write_error(store):
    record = AdvisoryRecord(id="GHSA-bad", payload={}, raw="{this is not json")

    with pytest.raises(RecordWriteError) as exc_info:
        store.upsert_advisory(record)

    assert exc_info.value.record_id == "GHSA-bad"
    assert store.is_empty()


def test_seed_ecosystems_inserts_defaults(store):
    inserted = store.seed_ecosystems(DEFAULT_ECOSYSTEMS)

    assert inserted == 5
    names = {eco.id: eco.name for eco in store.list_ecosystems()}
    assert names == {"npm": "npm", "pypi": "PyPI", "maven": "Maven", "nuget": "NuGet", "cargo": "Cargo"}


def test_seed_ecosystems_twice_is_noop(store):
    store.seed_ecosystems(DEFAULT_ECOSYSTEMS)
    before = store.list_ecosystems()

    inserted = store.seed_ecosystems(DEFAULT_ECOSYSTEMS)

    assert inserted == 0
    assert store.list_ecosystems() == before


def test_seed_never_overwrites_existing_name(store):
    store.seed_ecosystems([EcosystemRecord("pypi", "PyPI")])

    store.seed_ecosystems([EcosystemRecord("pypi", "Python Package Index")])

    names = {eco.id: eco.name for eco in store.list_ecosystems()}
    assert names["pypi"] == "PyPI"


def test_list_ecosystems_ordered_by_name(store):
    store.seed_ecosystems(DEFAULT_ECOSYSTEMS)
    names = [eco.name for eco in store.list_ecosystems()]
    assert names == sorted(names)


def test_create_ecosystem(store):
    created = store.create_ecosystem("go", "Go")

    assert created.id == "go"
    assert [eco.id for eco in store.list_ecosystems()] == ["go"]


def test_create_duplicate_ecosystem_raises(store):
    store.create_ecosystem("go", "Go")

    with pytest.raises(DuplicateEcosystemError):
        store.create_ecosystem("go", "Golang")


def test_create_ecosystem_requires_fields(store):
    with pytest.raises(ValueError):
        store.create_ecosystem("", "Go")


def test_put_advisory_creates_and_replaces(store):
    store.put_advisory("GHSA-1", {"id": "GHSA-1", "summary": "v1"})
    store.put_advisory("GHSA-1", {"id": "GHSA-1", "summary": "v2"})

    assert store.count() == 1
    assert store.get_advisory("GHSA-1")["data"]["summary"] == "v2"


def test_put_advisory_requires_fields(store):
    with pytest.raises(ValueError, match="Missing required fields"):
        store.put_advisory("GHSA-1", {})


def test_list_advisories_paginates(store):
    for i in range(25):
        store.upsert_advisory(_record(advisory(f"GHSA-{i:04d}")))

    page = store.list_advisories(page=3, limit=10)

    assert page.total == 25
    assert page.total_pages == 3
    assert page.page == 3
    assert len(page.items) == 5
    assert set(page.items[0]) == {"id", "created_at"}


def test_list_advisories_pages_do_not_overlap(store):
    for i in range(12):
        store.upsert_advisory(_record(advisory(f"GHSA-{i:04d}")))

    ids = []
    for number in range(1, 4):
        ids.extend(item["id"] for item in store.list_advisories(page=number, limit=5).items)

    assert len(ids) == 12
    assert len(set(ids)) == 12


def test_list_advisories_newest_first(store):
    store.upsert_advisory(_record(advisory("GHSA-old")))
    store.upsert_advisory(_record(advisory("GHSA-new")))

    items = store.list_advisories().items

    assert items[0]["created_at"] >= items[1]["created_at"]


@pytest.mark.parametrize("page, limit", [(None, None), (0, 0), (-1, -5)])
def test_list_advisories_defaults(store, page, limit):
    result = store.list_advisories(page=page, limit=limit)

    assert result.page == 1
    assert result.limit == 10
    assert result.total == 0
    assert result.total_pages == 0
    assert result.items == []


def test_delete_advisory(store):
    store.upsert_advisory(_record(advisory("GHSA-1")))

    assert store.delete_advisory("GHSA-1") is True
    assert store.get_advisory("GHSA-1") is None
    assert store.delete_advisory("GHSA-1") is False


def test_record_run(store):
    started = utcnow()
    store.record_run(
        run_id="run_test_001",
        started_at=started,
        completed_at=utcnow(),
        status="success",
        final_state="done",
        downloaded=True,
        imported=True,
        processed=10,
        failed=1,
        metadata={"records_processed": 10},
    )

    runs = store.get_runs()

    assert len(runs) == 1
    assert runs[0]["run_id"] == "run_test_001"
    assert runs[0]["status"] == "success"
    assert runs[0]["failed"] == 1
    assert json.loads(runs[0]["metadata"])["records_processed"] == 10


def test_closed_connection_raises_storage_error(temp_db, store):
    temp_db.conn.close()

    with pytest.raises(StorageError):
        store.count()

    with pytest.raises(StorageError):
        store.upsert_advisory(_record(advisory("GHSA-1")))
