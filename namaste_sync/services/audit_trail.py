"""Dual-sink audit trail.

Every significant operation is recorded once in the active store and
mirrored to the analytics sink. Neither write may ever break the operation
being audited.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from namaste_sync.schemas.audit import ActorContext, AuditAction, AuditEntry
from namaste_sync.services.analytics_sink import AnalyticsSink, NullAnalyticsSink
from namaste_sync.services.gateway import HybridPersistenceGateway

logger = logging.getLogger(__name__)


class WriteMode(str, Enum):
    REQUIRED = "required"
    BEST_EFFORT = "best_effort"


def new_audit_id() -> str:
    return f"audit-{uuid.uuid4().hex}"


class AuditTrailWriter:
    def __init__(self, gateway: HybridPersistenceGateway, sink: Optional[AnalyticsSink] = None) -> None:
        self._gateway = gateway
        self._sink = sink or NullAnalyticsSink()
        self._pending: set[asyncio.Task[None]] = set()

    async def record(
        self,
        action: AuditAction,
        *,
        actor: ActorContext,
        query: Optional[str] = None,
        result_count: Optional[int] = None,
        success: bool = True,
        duration_ms: float = 0.0,
    ) -> Optional[AuditEntry]:
        """Build and write one audit entry. Never raises.

        Returns the entry when the primary write succeeded, otherwise None.
        """
        try:
            entry = AuditEntry(
                id=new_audit_id(),
                timestamp=datetime.now(timezone.utc),
                actor_id=actor.actor_id,
                actor_name=actor.actor_name,
                action=action,
                query=query,
                result_count=result_count,
                success=success,
                duration_ms=round(duration_ms, 2),
                ip_address=actor.ip_address,
                user_agent=actor.user_agent,
            )
        except Exception:
            logger.exception("Failed to build audit entry action=%s", action)
            return None

        stored = await self._write_primary(entry)
        self._schedule_mirror(entry)
        return entry if stored else None

    async def _write_primary(self, entry: AuditEntry) -> bool:
        try:
            await self._gateway.insert_audit(entry)
        except Exception:
            logger.exception(
                "Audit write failed mode=%s id=%s action=%s",
                WriteMode.REQUIRED.value,
                entry.id,
                entry.action.value,
            )
            return False
        return True

    async def _write_mirror(self, entry: AuditEntry) -> None:
        try:
            await self._sink.send(entry)
        except Exception as exc:
            logger.warning(
                "Audit mirror failed mode=%s id=%s error=%r",
                WriteMode.BEST_EFFORT.value,
                entry.id,
                exc,
            )

    def _schedule_mirror(self, entry: AuditEntry) -> None:
        if isinstance(self._sink, NullAnalyticsSink):
            return
        task = asyncio.get_running_loop().create_task(self._write_mirror(entry))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    @property
    def pending(self) -> int:
        return len(self._pending)

    async def drain(self) -> None:
        """Wait for outstanding mirror writes."""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)
