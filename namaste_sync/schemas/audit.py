from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class AuditAction(str, Enum):
    SEARCH = "search"
    TRANSLATE = "translate"
    BULK_UPLOAD = "bulk_upload"
    FHIR_GENERATION = "fhir_generation"
    ENCOUNTER_UPLOAD = "encounter_upload"


class ActorContext(BaseModel):
    """Who triggered an operation and from where."""

    actor_id: str
    actor_name: str = ""
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None


class AuditEntry(BaseModel):
    model_config = ConfigDict(from_attributes=True, frozen=True)

    id: str
    timestamp: datetime
    actor_id: str
    actor_name: str = ""
    action: AuditAction
    query: Optional[str] = None
    result_count: Optional[int] = None
    success: bool
    duration_ms: float = 0.0
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None


class AuditFilter(BaseModel):
    action: Optional[AuditAction] = None
    actor_id: Optional[str] = None
    success: Optional[bool] = None
    date_from: Optional[datetime] = None
    date_to: Optional[datetime] = None

    @field_validator("date_from", "date_to")
    @classmethod
    def _assume_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        if value is not None and value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

    def matches(self, entry: AuditEntry) -> bool:
        if self.action is not None and entry.action != self.action:
            return False
        if self.actor_id is not None and entry.actor_id != self.actor_id:
            return False
        if self.success is not None and entry.success != self.success:
            return False
        if self.date_from is not None and entry.timestamp < self.date_from:
            return False
        if self.date_to is not None and entry.timestamp > self.date_to:
            return False
        return True


class AuditLogResponse(BaseModel):
    entries: list[AuditEntry] = Field(default_factory=list)
    total: int
    page: int
    page_size: int
