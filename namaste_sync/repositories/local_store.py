"""Local fallback store.

Keeps mappings and audit entries in memory and mirrors every write to a
directory of JSON documents (one file per key) so data survives a restart of
the process. Used only when the remote store is unreachable.
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
from pathlib import Path
from typing import Any, Optional, Sequence

from pydantic import ValidationError as PydanticValidationError

from namaste_sync.core.errors import DuplicateKeyError, StoreUnavailableError
from namaste_sync.repositories.store import DISTINCT_FIELDS, FindResult, InsertOutcome, StoreMode
from namaste_sync.schemas.audit import AuditEntry, AuditFilter
from namaste_sync.schemas.terminology import CodeSystem, MappingFilter, MappingRecord, MappingStats

logger = logging.getLogger(__name__)

MAPPINGS_KEY = "mappings"
AUDIT_KEY = "audit_logs"
DEFAULT_AUDIT_CAP = 1000


def _matches(record: MappingRecord, filters: MappingFilter) -> bool:
    if filters.category is not None and record.category != filters.category:
        return False
    if filters.group and filters.group.lower() not in record.group.lower():
        return False
    if filters.search:
        needle = filters.search.lower()
        haystacks = (record.term, record.code, record.tm2_description)
        if not any(needle in h.lower() for h in haystacks):
            return False
    return True


class LocalFallbackStore:
    mode = StoreMode.LOCAL

    def __init__(self, directory: str | os.PathLike[str], *, audit_cap: int = DEFAULT_AUDIT_CAP) -> None:
        self.directory = Path(directory)
        self.audit_cap = audit_cap
        self._records: dict[str, MappingRecord] = {}
        self._audit: list[AuditEntry] = []
        self._opened = False
        self._write_lock = asyncio.Lock()

    # ------------------------------------------------------------------
    # Key-value persistence
    # ------------------------------------------------------------------

    def _path(self, key: str) -> Path:
        return self.directory / f"{key}.json"

    def _read(self, key: str) -> list[dict[str, Any]]:
        path = self._path(key)
        if not path.exists():
            return []
        try:
            payload = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, ValueError):
            logger.exception("Failed to read local store key=%s; starting empty", key)
            return []
        if not isinstance(payload, list):
            logger.warning("Local store key=%s does not hold a list; starting empty", key)
            return []
        return payload

    def _write(self, key: str, items: list[dict[str, Any]]) -> None:
        path = self._path(key)
        tmp_path = path.with_suffix(".json.tmp")
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            tmp_path.write_text(json.dumps(items, ensure_ascii=False), encoding="utf-8")
            os.replace(tmp_path, path)
        except OSError as exc:
            raise StoreUnavailableError(f"local store write failed for key {key!r}: {exc}") from exc

    async def _persist_mappings(self, records: dict[str, MappingRecord]) -> None:
        items = [r.model_dump(mode="json") for r in records.values()]
        await asyncio.to_thread(self._write, MAPPINGS_KEY, items)

    async def _persist_audit(self, entries: list[AuditEntry]) -> None:
        items = [e.model_dump(mode="json") for e in entries]
        await asyncio.to_thread(self._write, AUDIT_KEY, items)

    def open(self) -> None:
        """Load persisted state. Idempotent."""
        if self._opened:
            return

        for item in self._read(MAPPINGS_KEY):
            try:
                record = MappingRecord.model_validate(item)
            except PydanticValidationError:
                logger.warning("Skipping invalid persisted mapping: %r", item)
                continue
            self._records.setdefault(record.code, record)

        entries: list[AuditEntry] = []
        for item in self._read(AUDIT_KEY):
            try:
                entries.append(AuditEntry.model_validate(item))
            except PydanticValidationError:
                logger.warning("Skipping invalid persisted audit entry: %r", item)
        self._audit = entries[: self.audit_cap]

        self._opened = True
        logger.info(
            "Local fallback store opened dir=%s mappings=%s audit_entries=%s",
            self.directory.as_posix(),
            len(self._records),
            len(self._audit),
        )

    async def ping(self) -> None:
        self.open()

    # ------------------------------------------------------------------
    # Mappings
    # ------------------------------------------------------------------

    async def find(self, filters: MappingFilter, *, page: int, limit: int) -> FindResult:
        matched = [r for r in self._records.values() if _matches(r, filters)]
        matched.sort(key=lambda r: (-r.confidence, r.code))
        start = (page - 1) * limit
        return FindResult(records=matched[start : start + limit], total=len(matched))

    async def get_by_code(self, code: str) -> Optional[MappingRecord]:
        return self._records.get(code)

    async def find_by_target(self, system: CodeSystem, code: str) -> Optional[MappingRecord]:
        if system is CodeSystem.NAMASTE:
            return self._records.get(code)

        for record in sorted(self._records.values(), key=lambda r: r.code):
            value = record.tm2_code if system is CodeSystem.ICD11_TM2 else record.biomedicine_code
            if value == code:
                return record
        return None

    @staticmethod
    def _insert_one(staged: dict[str, MappingRecord], record: MappingRecord) -> None:
        if record.code in staged:
            raise DuplicateKeyError(record.code)
        staged[record.code] = record

    async def insert_many(self, records: Sequence[MappingRecord]) -> InsertOutcome:
        outcome = InsertOutcome()
        async with self._write_lock:
            staged = dict(self._records)
            for record in records:
                try:
                    self._insert_one(staged, record)
                except DuplicateKeyError as exc:
                    outcome.duplicates.append(exc.code)
                    continue
                outcome.inserted += 1

            # Memory only changes once the file write has succeeded.
            if outcome.inserted:
                await self._persist_mappings(staged)
                self._records = staged
        if outcome.duplicates:
            logger.warning("Some mappings already exist, skipping duplicates count=%s", len(outcome.duplicates))
        return outcome

    async def count(self) -> int:
        return len(self._records)

    async def distinct(self, field_name: str) -> list[str]:
        if field_name not in DISTINCT_FIELDS:
            raise ValueError(f"distinct is not supported for field {field_name!r}")
        if field_name == "category":
            values = {r.category.value for r in self._records.values()}
        else:
            values = {r.group for r in self._records.values()}
        return sorted(v for v in values if v)

    async def stats(self) -> MappingStats:
        category_counts: dict[str, int] = {}
        group_counts: dict[str, int] = {}
        total_confidence = 0.0
        for record in self._records.values():
            category_counts[record.category.value] = category_counts.get(record.category.value, 0) + 1
            group_counts[record.group] = group_counts.get(record.group, 0) + 1
            total_confidence += record.confidence

        total = len(self._records)
        return MappingStats(
            total_mappings=total,
            category_counts=category_counts,
            group_counts=group_counts,
            avg_confidence=(total_confidence / total) if total else 0.0,
        )

    async def clear_mappings(self) -> None:
        async with self._write_lock:
            await self._persist_mappings({})
            self._records = {}

    # ------------------------------------------------------------------
    # Audit log (newest first, capped)
    # ------------------------------------------------------------------

    async def insert_audit(self, entry: AuditEntry) -> None:
        async with self._write_lock:
            staged = [entry, *self._audit][: self.audit_cap]
            await self._persist_audit(staged)
            self._audit = staged

    async def list_audit(self, filters: AuditFilter, *, page: int, limit: int) -> tuple[list[AuditEntry], int]:
        matched = [e for e in self._audit if filters.matches(e)]
        start = (page - 1) * limit
        return matched[start : start + limit], len(matched)

    async def clear_audit(self) -> None:
        async with self._write_lock:
            await self._persist_audit([])
            self._audit = []
