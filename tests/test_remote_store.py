"""Tests for the SQLAlchemy-backed store, run against in-memory SQLite."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from namaste_sync.repositories.remote_store import RemoteMappingStore
from namaste_sync.schemas.audit import AuditAction, AuditEntry, AuditFilter
from namaste_sync.schemas.terminology import Category, CodeSystem, MappingFilter

from tests.conftest import make_record


@pytest.mark.asyncio
async def test_ping(remote_store: RemoteMappingStore) -> None:
    await remote_store.ping()


@pytest.mark.asyncio
async def test_insert_many_skips_existing_and_repeated_codes(remote_store: RemoteMappingStore) -> None:
    first = await remote_store.insert_many([make_record("A-1"), make_record("A-2")])
    second = await remote_store.insert_many([make_record("A-2", term="changed"), make_record("A-3"), make_record("A-3")])

    assert first.inserted == 2
    assert second.inserted == 1
    assert sorted(second.duplicates) == ["A-2", "A-3"]
    assert (await remote_store.get_by_code("A-2")).term == "Term A-2"
    assert await remote_store.count() == 3


@pytest.mark.asyncio
async def test_find_orders_and_filters(remote_store: RemoteMappingStore) -> None:
    await remote_store.insert_many(
        [
            make_record("B-2", confidence=0.9, category=Category.SIDDHA, group="Digestive System"),
            make_record("B-1", confidence=0.9, category=Category.SIDDHA, group="Respiratory"),
            make_record("A-9", confidence=0.95, term="100% match_term"),
        ]
    )

    everything = await remote_store.find(MappingFilter(), page=1, limit=10)
    assert [r.code for r in everything.records] == ["A-9", "B-1", "B-2"]
    assert everything.total == 3

    siddha = await remote_store.find(MappingFilter(category=Category.SIDDHA), page=1, limit=1)
    assert siddha.total == 2
    assert [r.code for r in siddha.records] == ["B-1"]

    digestive = await remote_store.find(MappingFilter(group="DIGESTIVE"), page=1, limit=10)
    assert [r.code for r in digestive.records] == ["B-2"]

    literal = await remote_store.find(MappingFilter(search="100%"), page=1, limit=10)
    assert [r.code for r in literal.records] == ["A-9"]
    underscore = await remote_store.find(MappingFilter(search="tc_"), page=1, limit=10)
    assert underscore.total == 0


@pytest.mark.asyncio
async def test_find_by_target(remote_store: RemoteMappingStore) -> None:
    await remote_store.insert_many([make_record("A-1", tm2_code="XF1", biomedicine_code="BB1")])

    assert (await remote_store.find_by_target(CodeSystem.ICD11_TM2, "XF1")).code == "A-1"
    assert (await remote_store.find_by_target(CodeSystem.ICD11_BIOMEDICINE, "BB1")).code == "A-1"
    assert (await remote_store.find_by_target(CodeSystem.NAMASTE, "A-1")).code == "A-1"
    assert await remote_store.find_by_target(CodeSystem.ICD11_TM2, "xf1") is None


@pytest.mark.asyncio
async def test_distinct_and_stats(remote_store: RemoteMappingStore) -> None:
    await remote_store.insert_many(
        [
            make_record("A-1", group="Digestive", confidence=0.5),
            make_record("U-1", category=Category.UNANI, group="Skin", confidence=1.0),
        ]
    )

    assert await remote_store.distinct("category") == ["Ayurveda", "Unani"]
    assert await remote_store.distinct("group") == ["Digestive", "Skin"]

    stats = await remote_store.stats()
    assert stats.total_mappings == 2
    assert stats.category_counts == {"Ayurveda": 1, "Unani": 1}
    assert stats.avg_confidence == pytest.approx(0.75)

    await remote_store.clear_mappings()
    assert await remote_store.count() == 0


@pytest.mark.asyncio
async def test_audit_round_trip_newest_first(remote_store: RemoteMappingStore) -> None:
    base = datetime(2024, 5, 1, tzinfo=timezone.utc)
    for i, action in enumerate([AuditAction.SEARCH, AuditAction.TRANSLATE, AuditAction.SEARCH]):
        await remote_store.insert_audit(
            AuditEntry(
                id=f"audit-{i}",
                timestamp=base + timedelta(seconds=i),
                actor_id="demo-user-123",
                action=action,
                query=f"q{i}",
                result_count=i,
                success=i != 1,
            )
        )

    entries, total = await remote_store.list_audit(AuditFilter(), page=1, limit=10)
    assert total == 3
    assert [e.id for e in entries] == ["audit-2", "audit-1", "audit-0"]

    searches, search_total = await remote_store.list_audit(
        AuditFilter(action=AuditAction.SEARCH), page=1, limit=1
    )
    assert search_total == 2
    assert [e.id for e in searches] == ["audit-2"]

    failures, _ = await remote_store.list_audit(AuditFilter(success=False), page=1, limit=10)
    assert [e.action for e in failures] == [AuditAction.TRANSLATE]

    await remote_store.clear_audit()
    assert (await remote_store.list_audit(AuditFilter(), page=1, limit=10))[1] == 0
