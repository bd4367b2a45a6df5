"""Audit trail router: paginated listing (newest first) and administrative clear."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from namaste_sync.core.errors import StoreUnavailableError
from namaste_sync.dependencies import get_terminology_service
from namaste_sync.schemas.audit import AuditAction, AuditEntry, AuditFilter
from namaste_sync.schemas.terminology import Page
from namaste_sync.services.terminology_service import TerminologyService

router = APIRouter(prefix="/audit", tags=["audit"])

DEFAULT_PAGE_SIZE = 50
MAX_PAGE_SIZE = 500


@router.get("", response_model=Page[AuditEntry])
async def list_audit(
    action: Optional[AuditAction] = Query(None),
    actor_id: Optional[str] = Query(None),
    success: Optional[bool] = Query(None),
    date_from: Optional[datetime] = Query(None),
    date_to: Optional[datetime] = Query(None),
    page: int = Query(1, ge=1),
    page_size: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    service: TerminologyService = Depends(get_terminology_service),
) -> Page[AuditEntry]:
    filters = AuditFilter(
        action=action,
        actor_id=actor_id,
        success=success,
        date_from=date_from,
        date_to=date_to,
    )
    try:
        return await service.list_audit(filters, page=page, page_size=page_size)
    except StoreUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc


@router.delete("", status_code=status.HTTP_204_NO_CONTENT)
async def clear_audit(service: TerminologyService = Depends(get_terminology_service)) -> None:
    try:
        await service.clear_audit()
    except StoreUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
