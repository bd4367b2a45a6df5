"""Networked mapping store backed by SQLAlchemy (PostgreSQL in production).

Every driver or connection failure is re-raised as ``StoreUnavailableError`` so
callers never depend on SQLAlchemy exception types.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any, Optional, Sequence

from sqlalchemy import delete, func, insert, or_, select, text
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from namaste_sync.core.errors import StoreUnavailableError
from namaste_sync.db.async_session import build_sessionmaker
from namaste_sync.db.models import AuditLogRow, Base, MappingRecordRow
from namaste_sync.repositories.store import FindResult, InsertOutcome, StoreMode, dedupe_by_code
from namaste_sync.schemas.audit import AuditEntry, AuditFilter
from namaste_sync.schemas.terminology import CodeSystem, MappingFilter, MappingRecord, MappingStats

logger = logging.getLogger(__name__)


def _contains(value: str) -> str:
    escaped = value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


def _mapping_conditions(filters: MappingFilter) -> list[Any]:
    conditions: list[Any] = []
    if filters.category is not None:
        conditions.append(MappingRecordRow.category == filters.category.value)
    if filters.group:
        conditions.append(MappingRecordRow.group.ilike(_contains(filters.group), escape="\\"))
    if filters.search:
        pattern = _contains(filters.search)
        conditions.append(
            or_(
                MappingRecordRow.term.ilike(pattern, escape="\\"),
                MappingRecordRow.code.ilike(pattern, escape="\\"),
                MappingRecordRow.tm2_description.ilike(pattern, escape="\\"),
            )
        )
    return conditions


def _audit_conditions(filters: AuditFilter) -> list[Any]:
    conditions: list[Any] = []
    if filters.action is not None:
        conditions.append(AuditLogRow.action == filters.action.value)
    if filters.actor_id is not None:
        conditions.append(AuditLogRow.actor_id == filters.actor_id)
    if filters.success is not None:
        conditions.append(AuditLogRow.success == filters.success)
    if filters.date_from is not None:
        conditions.append(AuditLogRow.timestamp >= filters.date_from)
    if filters.date_to is not None:
        conditions.append(AuditLogRow.timestamp <= filters.date_to)
    return conditions


def _to_row_values(record: MappingRecord) -> dict[str, Any]:
    return {
        "code": record.code,
        "term": record.term,
        "category": record.category.value,
        "group_name": record.group,
        "tm2_code": record.tm2_code,
        "tm2_description": record.tm2_description,
        "biomedicine_code": record.biomedicine_code,
        "confidence": record.confidence,
    }


class RemoteMappingStore:
    mode = StoreMode.REMOTE

    def __init__(
        self,
        engine: AsyncEngine,
        sessionmaker: async_sessionmaker[AsyncSession] | None = None,
    ) -> None:
        self.engine = engine
        self.sessionmaker = sessionmaker or build_sessionmaker(engine)

    @property
    def dialect_name(self) -> str:
        return getattr(self.engine.dialect, "name", "")

    @asynccontextmanager
    async def _session(self) -> AsyncIterator[AsyncSession]:
        try:
            async with self.sessionmaker() as db:
                yield db
        except (SQLAlchemyError, OSError) as exc:
            raise StoreUnavailableError(f"remote store failure: {exc}") from exc

    async def create_schema(self) -> None:
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Remote schema ensured tables=%s", sorted(Base.metadata.tables))

    async def ping(self) -> None:
        async with self.engine.connect() as conn:
            value = (await conn.execute(text("SELECT 1"))).scalar()
        if value != 1:
            raise StoreUnavailableError(f"unexpected probe result: {value!r}")

    # ------------------------------------------------------------------
    # Mappings
    # ------------------------------------------------------------------

    async def find(self, filters: MappingFilter, *, page: int, limit: int) -> FindResult:
        conditions = _mapping_conditions(filters)
        async with self._session() as db:
            total = (
                await db.execute(select(func.count()).select_from(MappingRecordRow).where(*conditions))
            ).scalar_one()
            stmt = (
                select(MappingRecordRow)
                .where(*conditions)
                .order_by(MappingRecordRow.confidence.desc(), MappingRecordRow.code.asc())
                .offset((page - 1) * limit)
                .limit(limit)
            )
            rows = (await db.execute(stmt)).scalars().all()
        return FindResult(records=[MappingRecord.model_validate(r) for r in rows], total=int(total))

    async def get_by_code(self, code: str) -> Optional[MappingRecord]:
        async with self._session() as db:
            row = (
                await db.execute(select(MappingRecordRow).where(MappingRecordRow.code == code))
            ).scalar_one_or_none()
        return MappingRecord.model_validate(row) if row is not None else None

    async def find_by_target(self, system: CodeSystem, code: str) -> Optional[MappingRecord]:
        if system is CodeSystem.NAMASTE:
            return await self.get_by_code(code)

        column = MappingRecordRow.tm2_code if system is CodeSystem.ICD11_TM2 else MappingRecordRow.biomedicine_code
        stmt = select(MappingRecordRow).where(column == code).order_by(MappingRecordRow.code.asc()).limit(1)
        async with self._session() as db:
            row = (await db.execute(stmt)).scalar_one_or_none()
        return MappingRecord.model_validate(row) if row is not None else None

    def _insert_ignoring_conflicts(self, values: list[dict[str, Any]]) -> Any:
        table = MappingRecordRow.__table__
        if self.dialect_name == "postgresql":
            return pg_insert(table).values(values).on_conflict_do_nothing(index_elements=["code"])
        if self.dialect_name == "sqlite":
            return sqlite_insert(table).values(values).on_conflict_do_nothing(index_elements=["code"])
        return insert(table).values(values)

    async def insert_many(self, records: Sequence[MappingRecord]) -> InsertOutcome:
        unique, duplicates = dedupe_by_code(records)
        if not unique:
            return InsertOutcome(inserted=0, duplicates=duplicates)

        codes = [r.code for r in unique]
        async with self._session() as db:
            existing = set(
                (await db.execute(select(MappingRecordRow.code).where(MappingRecordRow.code.in_(codes))))
                .scalars()
                .all()
            )
            fresh = [r for r in unique if r.code not in existing]
            if fresh:
                await db.execute(self._insert_ignoring_conflicts([_to_row_values(r) for r in fresh]))
                await db.commit()

        duplicates.extend(code for code in codes if code in existing)
        if duplicates:
            logger.warning("Some mappings already exist, skipping duplicates count=%s", len(duplicates))
        logger.info("Inserted %s mappings into remote store", len(fresh))
        return InsertOutcome(inserted=len(fresh), duplicates=duplicates)

    async def count(self) -> int:
        async with self._session() as db:
            total = (await db.execute(select(func.count()).select_from(MappingRecordRow))).scalar_one()
        return int(total)

    async def distinct(self, field_name: str) -> list[str]:
        columns = {"category": MappingRecordRow.category, "group": MappingRecordRow.group}
        if field_name not in columns:
            raise ValueError(f"distinct is not supported for field {field_name!r}")
        column = columns[field_name]
        async with self._session() as db:
            values = (await db.execute(select(column).distinct().order_by(column.asc()))).scalars().all()
        return [v for v in values if v]

    async def stats(self) -> MappingStats:
        async with self._session() as db:
            total, avg_confidence = (
                await db.execute(select(func.count(), func.avg(MappingRecordRow.confidence)))
            ).one()
            category_rows = (
                await db.execute(
                    select(MappingRecordRow.category, func.count()).group_by(MappingRecordRow.category)
                )
            ).all()
            group_rows = (
                await db.execute(select(MappingRecordRow.group, func.count()).group_by(MappingRecordRow.group))
            ).all()
        return MappingStats(
            total_mappings=int(total or 0),
            category_counts={str(c): int(n) for c, n in category_rows},
            group_counts={str(g): int(n) for g, n in group_rows},
            avg_confidence=float(avg_confidence or 0.0),
        )

    async def clear_mappings(self) -> None:
        async with self._session() as db:
            await db.execute(delete(MappingRecordRow))
            await db.commit()

    # ------------------------------------------------------------------
    # Audit log
    # ------------------------------------------------------------------

    async def insert_audit(self, entry: AuditEntry) -> None:
        async with self._session() as db:
            db.add(
                AuditLogRow(
                    id=entry.id,
                    timestamp=entry.timestamp,
                    actor_id=entry.actor_id,
                    actor_name=entry.actor_name,
                    action=entry.action.value,
                    query=entry.query,
                    result_count=entry.result_count,
                    success=entry.success,
                    duration_ms=entry.duration_ms,
                    ip_address=entry.ip_address,
                    user_agent=entry.user_agent,
                )
            )
            await db.commit()

    async def list_audit(self, filters: AuditFilter, *, page: int, limit: int) -> tuple[list[AuditEntry], int]:
        conditions = _audit_conditions(filters)
        async with self._session() as db:
            total = (
                await db.execute(select(func.count()).select_from(AuditLogRow).where(*conditions))
            ).scalar_one()
            stmt = (
                select(AuditLogRow)
                .where(*conditions)
                .order_by(AuditLogRow.timestamp.desc(), AuditLogRow.id.desc())
                .offset((page - 1) * limit)
                .limit(limit)
            )
            rows = (await db.execute(stmt)).scalars().all()
        return [AuditEntry.model_validate(r) for r in rows], int(total)

    async def clear_audit(self) -> None:
        async with self._session() as db:
            await db.execute(delete(AuditLogRow))
            await db.commit()
