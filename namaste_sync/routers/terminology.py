"""Terminology router.

Endpoints:
- GET /terminology/lookup?q=...
- GET /terminology/translate?code=...&source=...&target=...
- GET /terminology/metadata
- GET /terminology/mappings, /terminology/mappings/stats, /terminology/mappings/{code}
- DELETE /terminology/mappings
- POST /terminology/bulk-upload, /terminology/bulk-upload/validate
"""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from namaste_sync.core.errors import (
    FormatError,
    IngestionRejectedError,
    NotFoundError,
    StoreUnavailableError,
)
from namaste_sync.core.search_config import search_tuning
from namaste_sync.dependencies import get_actor, get_terminology_service
from namaste_sync.schemas.audit import ActorContext
from namaste_sync.schemas.ingestion import BulkUploadRequest, BulkUploadResult, IngestionResult
from namaste_sync.schemas.terminology import (
    Category,
    CodeSystem,
    LookupResponse,
    MappingFilter,
    MappingRecord,
    MappingStats,
    Page,
    TerminologyMetadata,
    TranslationResponse,
)
from namaste_sync.services.terminology_service import TerminologyService
from namaste_sync.services.translator import coerce_system

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/terminology", tags=["terminology"])


def _store_unavailable(exc: StoreUnavailableError) -> HTTPException:
    return HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc))


@router.get("/lookup", response_model=LookupResponse)
async def lookup(
    q: str = Query("", description="Free-text query (term, code, chapter or ICD-11 description)"),
    page: int = Query(1, ge=1),
    page_size: int = Query(search_tuning.default_page_size, ge=1, le=search_tuning.max_page_size),
    service: TerminologyService = Depends(get_terminology_service),
    actor: ActorContext = Depends(get_actor),
) -> LookupResponse:
    try:
        return await service.lookup(q, actor=actor, page=page, page_size=page_size)
    except StoreUnavailableError as exc:
        raise _store_unavailable(exc) from exc


@router.get("/translate", response_model=TranslationResponse)
async def translate(
    code: str = Query(..., min_length=1),
    source: str = Query(CodeSystem.NAMASTE.value),
    target: str = Query(CodeSystem.ICD11_TM2.value),
    service: TerminologyService = Depends(get_terminology_service),
    actor: ActorContext = Depends(get_actor),
) -> TranslationResponse:
    try:
        translations = await service.translate(code, source, target, actor=actor)
    except NotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except StoreUnavailableError as exc:
        raise _store_unavailable(exc) from exc
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc)) from exc

    return TranslationResponse(
        source_code=code,
        source_system=coerce_system(source),
        target_system=coerce_system(target),
        translations=translations,
    )


@router.get("/metadata", response_model=TerminologyMetadata)
async def metadata(service: TerminologyService = Depends(get_terminology_service)) -> TerminologyMetadata:
    try:
        return await service.get_metadata()
    except StoreUnavailableError as exc:
        raise _store_unavailable(exc) from exc


@router.get("/mappings", response_model=Page[MappingRecord])
async def list_mappings(
    category: Optional[Category] = Query(None),
    group: Optional[str] = Query(None),
    search: Optional[str] = Query(None),
    page: int = Query(1, ge=1),
    page_size: int = Query(search_tuning.default_page_size, ge=1, le=search_tuning.max_page_size),
    service: TerminologyService = Depends(get_terminology_service),
) -> Page[MappingRecord]:
    filters = MappingFilter(category=category, group=group, search=search)
    try:
        return await service.list_mappings(filters, page=page, page_size=page_size)
    except StoreUnavailableError as exc:
        raise _store_unavailable(exc) from exc


@router.get("/mappings/stats", response_model=MappingStats)
async def mapping_stats(service: TerminologyService = Depends(get_terminology_service)) -> MappingStats:
    try:
        return await service.mapping_stats()
    except StoreUnavailableError as exc:
        raise _store_unavailable(exc) from exc


@router.get("/mappings/{code}", response_model=MappingRecord)
async def get_mapping(code: str, service: TerminologyService = Depends(get_terminology_service)) -> MappingRecord:
    try:
        return await service.get_mapping(code)
    except NotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except StoreUnavailableError as exc:
        raise _store_unavailable(exc) from exc


@router.delete("/mappings", status_code=status.HTTP_204_NO_CONTENT)
async def clear_mappings(service: TerminologyService = Depends(get_terminology_service)) -> None:
    try:
        await service.clear_mappings()
    except StoreUnavailableError as exc:
        raise _store_unavailable(exc) from exc


@router.post("/bulk-upload", response_model=BulkUploadResult)
async def bulk_upload(
    payload: BulkUploadRequest,
    service: TerminologyService = Depends(get_terminology_service),
    actor: ActorContext = Depends(get_actor),
) -> BulkUploadResult:
    try:
        return await service.bulk_upload(payload.content, actor=actor, persist=payload.persist)
    except (FormatError, IngestionRejectedError) as exc:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc)) from exc
    except StoreUnavailableError as exc:
        raise _store_unavailable(exc) from exc


@router.post("/bulk-upload/validate", response_model=IngestionResult)
async def validate_upload(
    payload: BulkUploadRequest,
    service: TerminologyService = Depends(get_terminology_service),
) -> IngestionResult:
    try:
        return service.parse_and_validate(payload.content)
    except FormatError as exc:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc)) from exc
