from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, status

from namaste_sync.core.errors import StoreUnavailableError
from namaste_sync.dependencies import get_terminology_service
from namaste_sync.services.terminology_service import TerminologyService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


@router.get("/health")
async def health(service: TerminologyService = Depends(get_terminology_service)) -> dict[str, Any]:
    try:
        return await service.health()
    except StoreUnavailableError as exc:
        logger.warning("Health check failed: %s", exc)
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
