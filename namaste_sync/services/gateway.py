"""Hybrid persistence gateway.

Owns the storage-mode decision for the life of the process. The networked
store is probed once; if it does not answer in time the local fallback store
takes over for good. Either way an empty store is seeded with sample data.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator
from pathlib import Path
from typing import Optional, Sequence

from namaste_sync.core.search_config import SearchTuning, search_tuning
from namaste_sync.data.sample_mappings import SAMPLE_MAPPINGS
from namaste_sync.repositories.local_store import LocalFallbackStore
from namaste_sync.repositories.store import InsertOutcome, StoreMode, TerminologyStore
from namaste_sync.schemas.audit import AuditEntry, AuditFilter
from namaste_sync.schemas.terminology import (
    Category,
    CodeSystem,
    MappingFilter,
    MappingRecord,
    MappingStats,
    Page,
)
from namaste_sync.services.ingestion import BulkIngestionValidator

logger = logging.getLogger(__name__)

DEFAULT_PROBE_TIMEOUT_SECONDS = 2.0


def sample_records() -> list[MappingRecord]:
    records: list[MappingRecord] = []
    for category, rows in SAMPLE_MAPPINGS.items():
        for code, term, group, tm2_code, tm2_description, biomedicine_code, confidence in rows:
            records.append(
                MappingRecord(
                    code=code,
                    term=term,
                    category=Category(category),
                    group=group,
                    tm2_code=tm2_code,
                    tm2_description=tm2_description,
                    biomedicine_code=biomedicine_code,
                    confidence=confidence,
                )
            )
    return records


class HybridPersistenceGateway:
    def __init__(
        self,
        remote: Optional[TerminologyStore],
        local: LocalFallbackStore,
        *,
        probe_timeout: float = DEFAULT_PROBE_TIMEOUT_SECONDS,
        validator: Optional[BulkIngestionValidator] = None,
        seed_csv_path: Optional[str] = None,
        tuning: SearchTuning = search_tuning,
    ) -> None:
        self._remote = remote
        self._local = local
        self._probe_timeout = probe_timeout
        self._validator = validator or BulkIngestionValidator()
        self._seed_csv_path = seed_csv_path
        self._tuning = tuning
        self._active: Optional[TerminologyStore] = None
        self._lock = asyncio.Lock()

    @property
    def mode(self) -> StoreMode:
        if self._active is None:
            return StoreMode.UNINITIALIZED
        return self._active.mode

    # ------------------------------------------------------------------
    # Mode selection and seeding
    # ------------------------------------------------------------------

    async def initialize(self) -> StoreMode:
        async with self._lock:
            if self._active is not None:
                return self._active.mode

            store = await self._select_store()
            logger.info("Storage mode selected mode=%s", store.mode.value)
            await self._seed_if_empty(store)
            self._active = store
            return store.mode

    async def ensure_ready(self) -> TerminologyStore:
        if self._active is None:
            await self.initialize()
        return self._active

    async def _select_store(self) -> TerminologyStore:
        if self._remote is not None:
            try:
                await asyncio.wait_for(self._remote.ping(), timeout=self._probe_timeout)
                return self._remote
            except asyncio.TimeoutError:
                logger.warning(
                    "Remote store probe timed out after %.2fs; using local fallback store",
                    self._probe_timeout,
                )
            except Exception as exc:
                logger.warning("Remote store unavailable (%s); using local fallback store", exc)
        else:
            logger.info("No remote store configured; using local fallback store")

        self._local.open()
        return self._local

    def _load_seed_records(self) -> list[MappingRecord]:
        if self._seed_csv_path:
            path = Path(self._seed_csv_path)
            try:
                raw_text = path.read_text(encoding="utf-8")
            except OSError:
                logger.warning("Seed CSV not readable path=%s; using built-in sample corpus", path.as_posix())
            else:
                result = self._validator.parse(raw_text)
                for error in result.errors:
                    logger.warning("Seed CSV line %s skipped: %s", error.line_number, error.message)
                return result.records
        return sample_records()

    async def _seed_if_empty(self, store: TerminologyStore) -> None:
        try:
            if await store.count() > 0:
                return
            records = self._load_seed_records()
            outcome = await store.insert_many(records)
            logger.info("Seeded empty store inserted=%s mode=%s", outcome.inserted, store.mode.value)
        except Exception:
            logger.exception("Failed to seed empty store")

    # ------------------------------------------------------------------
    # Mappings
    # ------------------------------------------------------------------

    async def insert_many(self, records: Sequence[MappingRecord]) -> InsertOutcome:
        store = await self.ensure_ready()
        if not records:
            return InsertOutcome()
        return await store.insert_many(records)

    async def query(
        self,
        filters: Optional[MappingFilter] = None,
        *,
        page: int = 1,
        page_size: int = 10,
    ) -> Page[MappingRecord]:
        if page < 1 or page_size < 1:
            raise ValueError("page and page_size must be positive")
        store = await self.ensure_ready()
        found = await store.find(filters or MappingFilter(), page=page, limit=page_size)
        return Page[MappingRecord].build(found.records, total=found.total, page=page, page_size=page_size)

    async def iter_records(self) -> AsyncIterator[MappingRecord]:
        """Yield every stored record, confidence desc then code asc."""
        store = await self.ensure_ready()
        page = 1
        batch_size = self._tuning.scan_batch_size
        while True:
            found = await store.find(MappingFilter(), page=page, limit=batch_size)
            for record in found.records:
                yield record
            if page * batch_size >= found.total or not found.records:
                return
            page += 1

    async def all_records(self) -> list[MappingRecord]:
        return [record async for record in self.iter_records()]

    async def get_by_code(self, code: str) -> Optional[MappingRecord]:
        store = await self.ensure_ready()
        return await store.get_by_code(code)

    async def find_by_target(self, system: CodeSystem, code: str) -> Optional[MappingRecord]:
        store = await self.ensure_ready()
        return await store.find_by_target(system, code)

    async def distinct(self, field_name: str) -> list[str]:
        store = await self.ensure_ready()
        return await store.distinct(field_name)

    async def count(self) -> int:
        store = await self.ensure_ready()
        return await store.count()

    async def stats(self) -> MappingStats:
        store = await self.ensure_ready()
        return await store.stats()

    async def clear_mappings(self) -> None:
        store = await self.ensure_ready()
        await store.clear_mappings()
        logger.warning("All mappings cleared mode=%s", store.mode.value)

    # ------------------------------------------------------------------
    # Audit log
    # ------------------------------------------------------------------

    async def insert_audit(self, entry: AuditEntry) -> None:
        store = await self.ensure_ready()
        await store.insert_audit(entry)

    async def list_audit(
        self,
        filters: Optional[AuditFilter] = None,
        *,
        page: int = 1,
        page_size: int = 50,
    ) -> Page[AuditEntry]:
        if page < 1 or page_size < 1:
            raise ValueError("page and page_size must be positive")
        store = await self.ensure_ready()
        entries, total = await store.list_audit(filters or AuditFilter(), page=page, limit=page_size)
        return Page[AuditEntry].build(entries, total=total, page=page, page_size=page_size)

    async def clear_audit(self) -> None:
        store = await self.ensure_ready()
        await store.clear_audit()
        logger.warning("Audit log cleared mode=%s", store.mode.value)

