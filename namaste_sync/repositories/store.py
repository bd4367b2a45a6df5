"""Storage contract shared by the remote and local fallback stores.

The gateway holds exactly one ``TerminologyStore`` once a session has picked
its mode; nothing else in the engine knows which backend is active.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Protocol, Sequence

from namaste_sync.schemas.audit import AuditEntry, AuditFilter
from namaste_sync.schemas.terminology import CodeSystem, MappingFilter, MappingRecord, MappingStats

DISTINCT_FIELDS = ("category", "group")


class StoreMode(str, Enum):
    UNINITIALIZED = "uninitialized"
    REMOTE = "remote"
    LOCAL = "local"


@dataclass
class InsertOutcome:
    inserted: int = 0
    duplicates: list[str] = field(default_factory=list)


@dataclass
class FindResult:
    records: list[MappingRecord]
    total: int


def dedupe_by_code(records: Sequence[MappingRecord]) -> tuple[list[MappingRecord], list[str]]:
    """Keep the first record per code; report the codes of the dropped ones."""
    seen: set[str] = set()
    unique: list[MappingRecord] = []
    dropped: list[str] = []
    for record in records:
        if record.code in seen:
            dropped.append(record.code)
            continue
        seen.add(record.code)
        unique.append(record)
    return unique, dropped


class TerminologyStore(Protocol):
    mode: StoreMode

    async def ping(self) -> None: ...

    async def find(self, filters: MappingFilter, *, page: int, limit: int) -> FindResult: ...

    async def get_by_code(self, code: str) -> Optional[MappingRecord]: ...

    async def find_by_target(self, system: CodeSystem, code: str) -> Optional[MappingRecord]: ...

    async def insert_many(self, records: Sequence[MappingRecord]) -> InsertOutcome: ...

    async def count(self) -> int: ...

    async def distinct(self, field_name: str) -> list[str]: ...

    async def stats(self) -> MappingStats: ...

    async def clear_mappings(self) -> None: ...

    async def insert_audit(self, entry: AuditEntry) -> None: ...

    async def list_audit(self, filters: AuditFilter, *, page: int, limit: int) -> tuple[list[AuditEntry], int]: ...

    async def clear_audit(self) -> None: ...
