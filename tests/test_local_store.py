"""Tests for the JSON-backed local fallback store."""

from __future__ import annotations

import json
import threading
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from namaste_sync.core.errors import StoreUnavailableError
from namaste_sync.repositories.local_store import LocalFallbackStore
from namaste_sync.schemas.audit import AuditAction, AuditEntry, AuditFilter
from namaste_sync.schemas.terminology import Category

from tests.conftest import make_record

BASE_TIME = datetime(2024, 1, 1, tzinfo=timezone.utc)


def make_entry(index: int, **overrides) -> AuditEntry:
    values = {
        "id": f"audit-{index}",
        "timestamp": BASE_TIME + timedelta(minutes=index),
        "actor_id": "demo-user-123",
        "action": AuditAction.SEARCH,
        "query": f"q{index}",
        "result_count": index,
        "success": True,
    }
    values.update(overrides)
    return AuditEntry(**values)


@pytest.mark.asyncio
async def test_audit_is_capped_and_newest_first(store_dir: Path) -> None:
    store = LocalFallbackStore(store_dir, audit_cap=3)
    store.open()

    for i in range(1, 6):
        await store.insert_audit(make_entry(i))

    entries, total = await store.list_audit(AuditFilter(), page=1, limit=10)
    assert total == 3
    assert [e.id for e in entries] == ["audit-5", "audit-4", "audit-3"]

    persisted = json.loads((store_dir / "audit_logs.json").read_text(encoding="utf-8"))
    assert [item["id"] for item in persisted] == ["audit-5", "audit-4", "audit-3"]


@pytest.mark.asyncio
async def test_audit_filters(local_store: LocalFallbackStore) -> None:
    local_store.open()
    await local_store.insert_audit(make_entry(1, action=AuditAction.TRANSLATE))
    await local_store.insert_audit(make_entry(2, success=False))
    await local_store.insert_audit(make_entry(3, actor_id="someone-else"))

    translate, _ = await local_store.list_audit(AuditFilter(action=AuditAction.TRANSLATE), page=1, limit=10)
    failed, _ = await local_store.list_audit(AuditFilter(success=False), page=1, limit=10)
    mine, _ = await local_store.list_audit(AuditFilter(actor_id="someone-else"), page=1, limit=10)
    recent, _ = await local_store.list_audit(
        AuditFilter(date_from=(BASE_TIME + timedelta(minutes=2)).replace(tzinfo=None)),
        page=1,
        limit=10,
    )

    assert [e.id for e in translate] == ["audit-1"]
    assert [e.id for e in failed] == ["audit-2"]
    assert [e.id for e in mine] == ["audit-3"]
    assert [e.id for e in recent] == ["audit-3", "audit-2"]


@pytest.mark.asyncio
async def test_corrupt_file_starts_empty(store_dir: Path) -> None:
    store_dir.mkdir(parents=True)
    (store_dir / "mappings.json").write_text("{not json", encoding="utf-8")
    store = LocalFallbackStore(store_dir)

    await store.ping()

    assert await store.count() == 0


@pytest.mark.asyncio
async def test_invalid_persisted_items_are_skipped(store_dir: Path) -> None:
    store_dir.mkdir(parents=True)
    good = make_record("AYU-1").model_dump(mode="json")
    bad = {"code": "AYU-2", "confidence": 7}
    (store_dir / "mappings.json").write_text(json.dumps([good, bad]), encoding="utf-8")
    store = LocalFallbackStore(store_dir)
    store.open()

    assert await store.count() == 1
    assert await store.get_by_code("AYU-1") is not None


@pytest.mark.asyncio
async def test_distinct_and_stats(local_store: LocalFallbackStore) -> None:
    local_store.open()
    await local_store.insert_many(
        [
            make_record("A-1", category=Category.AYURVEDA, group="Digestive", confidence=0.8),
            make_record("A-2", category=Category.AYURVEDA, group="Respiratory", confidence=0.6),
            make_record("U-1", category=Category.UNANI, group="Digestive", confidence=1.0),
        ]
    )

    assert await local_store.distinct("category") == ["Ayurveda", "Unani"]
    assert await local_store.distinct("group") == ["Digestive", "Respiratory"]
    with pytest.raises(ValueError):
        await local_store.distinct("term")

    stats = await local_store.stats()
    assert stats.total_mappings == 3
    assert stats.category_counts == {"Ayurveda": 2, "Unani": 1}
    assert stats.group_counts == {"Digestive": 2, "Respiratory": 1}
    assert stats.avg_confidence == pytest.approx(0.8)


@pytest.mark.asyncio
async def test_clear_mappings_is_persisted(store_dir: Path) -> None:
    store = LocalFallbackStore(store_dir)
    store.open()
    await store.insert_many([make_record("A-1")])
    await store.clear_mappings()

    reopened = LocalFallbackStore(store_dir)
    reopened.open()
    assert await reopened.count() == 0


class TestFailedWrites:
    """A write that cannot reach disk leaves the in-memory state untouched."""

    @pytest.fixture
    def unwritable_store(self, tmp_path: Path) -> LocalFallbackStore:
        blocker = tmp_path / "not-a-directory"
        blocker.write_text("", encoding="utf-8")
        store = LocalFallbackStore(blocker / "store")
        store.open()
        return store

    @pytest.mark.asyncio
    async def test_insert_is_rolled_back(self, unwritable_store: LocalFallbackStore) -> None:
        with pytest.raises(StoreUnavailableError):
            await unwritable_store.insert_many([make_record("NEW-1")])

        assert await unwritable_store.count() == 0
        assert await unwritable_store.get_by_code("NEW-1") is None

    @pytest.mark.asyncio
    async def test_retry_is_not_reported_as_duplicate(self, store_dir: Path) -> None:
        store = LocalFallbackStore(store_dir)
        store.open()
        store_dir.write_text("", encoding="utf-8")

        with pytest.raises(StoreUnavailableError):
            await store.insert_many([make_record("NEW-1")])

        store_dir.unlink()
        outcome = await store.insert_many([make_record("NEW-1")])

        assert outcome.inserted == 1
        assert outcome.duplicates == []
        persisted = json.loads((store_dir / "mappings.json").read_text(encoding="utf-8"))
        assert [item["code"] for item in persisted] == ["NEW-1"]

    @pytest.mark.asyncio
    async def test_audit_insert_is_rolled_back(self, unwritable_store: LocalFallbackStore) -> None:
        with pytest.raises(StoreUnavailableError):
            await unwritable_store.insert_audit(make_entry(1))

        assert (await unwritable_store.list_audit(AuditFilter(), page=1, limit=10))[1] == 0

    @pytest.mark.asyncio
    async def test_clear_is_rolled_back(self, store_dir: Path) -> None:
        store = LocalFallbackStore(store_dir)
        store.open()
        await store.insert_many([make_record("A-1")])
        (store_dir / "mappings.json").unlink()
        store_dir.rmdir()
        store_dir.write_text("", encoding="utf-8")

        with pytest.raises(StoreUnavailableError):
            await store.clear_mappings()

        assert await store.count() == 1


@pytest.mark.asyncio
async def test_file_writes_run_off_the_event_loop_thread(local_store: LocalFallbackStore) -> None:
    local_store.open()
    write = local_store._write
    threads: list[int] = []

    def recording_write(key, items) -> None:
        threads.append(threading.get_ident())
        write(key, items)

    local_store._write = recording_write
    await local_store.insert_audit(make_entry(1))

    assert threads and threads[0] != threading.get_ident()
