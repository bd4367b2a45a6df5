from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, HTTPException, status

from namaste_sync.core.errors import StoreUnavailableError
from namaste_sync.dependencies import get_actor, get_terminology_service
from namaste_sync.schemas.audit import ActorContext
from namaste_sync.services.terminology_service import TerminologyService

router = APIRouter(prefix="/fhir", tags=["fhir"])


@router.get("/CodeSystem/namaste")
async def code_system(
    service: TerminologyService = Depends(get_terminology_service),
    actor: ActorContext = Depends(get_actor),
) -> dict[str, Any]:
    try:
        return await service.code_system(actor=actor)
    except StoreUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc


@router.get("/ConceptMap/namaste-icd11")
async def concept_map(
    service: TerminologyService = Depends(get_terminology_service),
    actor: ActorContext = Depends(get_actor),
) -> dict[str, Any]:
    try:
        return await service.concept_map(actor=actor)
    except StoreUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
