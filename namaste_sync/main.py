"""NAMASTE Sync FastAPI application.

Terminology resolution between NAMASTE (Ayurveda, Siddha, Unani) and ICD-11
(TM2 and Biomedicine axes): free-text lookup, code translation, bulk CSV
ingestion to FHIR and an activity audit trail. Storage fails over from
PostgreSQL to a local JSON store when the database is unreachable.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from namaste_sync.core.config import get_settings
from namaste_sync.core.log_config import configure_logging
from namaste_sync.routers import audit, fhir, health, terminology
from namaste_sync.services.terminology_service import TerminologyService, build_terminology_service

logger = logging.getLogger(__name__)


def create_app(service: Optional[TerminologyService] = None) -> FastAPI:
    settings = get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        terminology_service = service or build_terminology_service(settings)
        app.state.terminology_service = terminology_service
        await terminology_service.initialize()
        logger.info("NAMASTE Sync ready store_mode=%s", terminology_service.gateway.mode.value)
        try:
            yield
        finally:
            await terminology_service.shutdown()

    app = FastAPI(
        title="NAMASTE Sync",
        version="0.1.0",
        description="NAMASTE to ICD-11 terminology resolution with hybrid persistence.",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(health.router)
    app.include_router(terminology.router)
    app.include_router(fhir.router)
    app.include_router(audit.router)

    return app


configure_logging()
app = create_app()
