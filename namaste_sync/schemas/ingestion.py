from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field

from namaste_sync.schemas.terminology import MappingRecord


class IngestionError(BaseModel):
    line_number: int
    message: str


class IngestionResult(BaseModel):
    records: list[MappingRecord] = Field(default_factory=list)
    errors: list[IngestionError] = Field(default_factory=list)


class BulkUploadRequest(BaseModel):
    content: str = Field(..., description="CSV text including the header line")
    persist: bool = True


class BulkUploadResult(BaseModel):
    records: list[MappingRecord]
    errors: list[IngestionError]
    inserted: int = 0
    duplicates: list[str] = Field(default_factory=list)
    bundle: dict[str, Any]
