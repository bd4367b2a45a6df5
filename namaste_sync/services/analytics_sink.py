"""Secondary audit sinks.

The analytics sink mirrors audit entries to an external table endpoint (for
example a Supabase REST table). It is strictly best-effort: callers log and
swallow whatever it raises.
"""

from __future__ import annotations

import logging
from typing import Any, Optional, Protocol

import httpx

from namaste_sync.schemas.audit import AuditEntry

logger = logging.getLogger(__name__)


class AnalyticsSinkError(RuntimeError):
    pass


class AnalyticsSink(Protocol):
    async def send(self, entry: AuditEntry) -> None: ...


def to_analytics_row(entry: AuditEntry) -> dict[str, Any]:
    return {
        "id": entry.id,
        "timestamp": entry.timestamp.isoformat(),
        "user_id": entry.actor_id,
        "user_name": entry.actor_name,
        "action": entry.action.value,
        "table_name": "mappings",
        "record_id": entry.query or "unknown",
        "new_values": {
            "query": entry.query,
            "result_count": entry.result_count,
            "duration_ms": entry.duration_ms,
            "success": entry.success,
        },
        "ip_address": entry.ip_address,
        "user_agent": entry.user_agent,
    }


class NullAnalyticsSink:
    async def send(self, entry: AuditEntry) -> None:
        return None


class HttpAnalyticsSink:
    def __init__(
        self,
        url: str,
        *,
        api_key: Optional[str] = None,
        timeout: float = 3.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.url = url
        self.timeout = timeout
        self.transport = transport
        self.headers = {"Content-Type": "application/json", "Prefer": "return=minimal"}
        if api_key:
            self.headers["Authorization"] = f"Bearer {api_key}"
            self.headers["apikey"] = api_key

    async def send(self, entry: AuditEntry) -> None:
        async with httpx.AsyncClient(transport=self.transport) as client:
            response = await client.post(
                self.url,
                headers=self.headers,
                json=to_analytics_row(entry),
                timeout=self.timeout,
            )
        if response.status_code >= 400:
            raise AnalyticsSinkError(
                f"analytics sink rejected audit entry {entry.id}: {response.status_code} {response.text}"
            )
        logger.debug("Mirrored audit entry id=%s status=%s", entry.id, response.status_code)
