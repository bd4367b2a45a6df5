from __future__ import annotations

import math
from enum import Enum
from typing import Generic, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field, field_validator

T = TypeVar("T")


class Category(str, Enum):
    AYURVEDA = "Ayurveda"
    SIDDHA = "Siddha"
    UNANI = "Unani"


class CodeSystem(str, Enum):
    NAMASTE = "namaste"
    ICD11_TM2 = "icd11-tm2"
    ICD11_BIOMEDICINE = "icd11-biomedicine"


class MappingRecord(BaseModel):
    model_config = ConfigDict(from_attributes=True, frozen=True)

    code: str = Field(..., min_length=1, max_length=32)
    term: str
    category: Category
    group: str = ""
    tm2_code: str = ""
    tm2_description: str = ""
    biomedicine_code: str = ""
    confidence: float = Field(..., ge=0.0, le=1.0)

    @field_validator("code", mode="before")
    @classmethod
    def _strip_code(cls, value: object) -> str:
        if value is None:
            raise ValueError("code is required")
        cleaned = str(value).strip()
        if not cleaned:
            raise ValueError("code must not be empty")
        return cleaned

    @field_validator("confidence")
    @classmethod
    def _finite_confidence(cls, value: float) -> float:
        if not math.isfinite(value):
            raise ValueError("confidence must be a finite number")
        return value


class MappingFilter(BaseModel):
    category: Optional[Category] = None
    group: Optional[str] = None
    search: Optional[str] = None

    @field_validator("group", "search", mode="before")
    @classmethod
    def _strip_optional(cls, value: object) -> str | None:
        if value is None:
            return None
        cleaned = str(value).strip()
        return cleaned or None


class SearchResult(BaseModel):
    record: MappingRecord
    highlights: dict[str, str] = Field(default_factory=dict)
    relevance_score: float


class LookupResponse(BaseModel):
    results: list[SearchResult]
    total: int
    page: int
    page_size: int
    query: str
    sequence: int


class TranslationEntry(BaseModel):
    target_code: str
    target_system: CodeSystem
    target_display: str
    equivalence: str = "equivalent"
    confidence: float


class TranslationResponse(BaseModel):
    source_code: str
    source_system: CodeSystem
    target_system: CodeSystem
    translations: list[TranslationEntry]


class Page(BaseModel, Generic[T]):
    items: list[T]
    total: int
    page: int
    page_size: int
    total_pages: int

    @classmethod
    def build(cls, items: list[T], *, total: int, page: int, page_size: int) -> "Page[T]":
        total_pages = math.ceil(total / page_size) if page_size > 0 else 0
        return cls(items=items, total=total, page=page, page_size=page_size, total_pages=total_pages)


class MappingStats(BaseModel):
    total_mappings: int
    category_counts: dict[str, int]
    group_counts: dict[str, int]
    avg_confidence: float


class TerminologyMetadata(BaseModel):
    categories: list[str]
    groups: list[str]
