"""TerminologyService: single entry point used by routers and scripts.

Wires the gateway, search engine, translator, ingestion validator and audit
writer together. One instance is built per application by
``build_terminology_service``.
"""

from __future__ import annotations

import logging
import time
from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy.ext.asyncio import AsyncEngine

from namaste_sync.core.config import Settings
from namaste_sync.core.errors import FormatError, IngestionRejectedError, NotFoundError
from namaste_sync.db.async_session import build_async_engine
from namaste_sync.repositories.local_store import LocalFallbackStore
from namaste_sync.repositories.remote_store import RemoteMappingStore
from namaste_sync.schemas.audit import ActorContext, AuditAction, AuditEntry, AuditFilter
from namaste_sync.schemas.ingestion import BulkUploadResult, IngestionResult
from namaste_sync.schemas.terminology import (
    LookupResponse,
    MappingFilter,
    MappingRecord,
    MappingStats,
    Page,
    TerminologyMetadata,
    TranslationEntry,
)
from namaste_sync.services import fhir_resources
from namaste_sync.services.analytics_sink import AnalyticsSink, HttpAnalyticsSink, NullAnalyticsSink
from namaste_sync.services.audit_trail import AuditTrailWriter
from namaste_sync.services.gateway import HybridPersistenceGateway
from namaste_sync.services.ingestion import BulkIngestionValidator
from namaste_sync.services.search_engine import RelevanceSearchEngine
from namaste_sync.services.translator import CodeTranslator

logger = logging.getLogger(__name__)


class TerminologyService:
    def __init__(
        self,
        gateway: HybridPersistenceGateway,
        *,
        sink: Optional[AnalyticsSink] = None,
        validator: Optional[BulkIngestionValidator] = None,
        require_clean_ingestion: bool = False,
        engine: Optional[AsyncEngine] = None,
    ) -> None:
        self.gateway = gateway
        self.validator = validator or BulkIngestionValidator()
        self.audit = AuditTrailWriter(gateway, sink)
        self.search_engine = RelevanceSearchEngine(gateway, self.audit)
        self.translator = CodeTranslator(gateway, self.audit)
        self.require_clean_ingestion = require_clean_ingestion
        self.engine = engine

    async def initialize(self) -> None:
        await self.gateway.initialize()

    async def shutdown(self) -> None:
        await self.audit.drain()
        if self.engine is not None:
            await self.engine.dispose()

    async def health(self) -> dict[str, Any]:
        return {
            "status": "ok",
            "store_mode": self.gateway.mode.value,
            "mappings": await self.gateway.count(),
        }

    # ------------------------------------------------------------------
    # Lookup and translate
    # ------------------------------------------------------------------

    async def lookup(
        self,
        query: str,
        *,
        actor: ActorContext,
        page: int = 1,
        page_size: Optional[int] = None,
    ) -> LookupResponse:
        return await self.search_engine.lookup(query, actor=actor, page=page, page_size=page_size)

    async def translate(
        self,
        code: str,
        source_system: str,
        target_system: str,
        *,
        actor: ActorContext,
    ) -> list[TranslationEntry]:
        return await self.translator.translate(code, source_system, target_system, actor=actor)

    # ------------------------------------------------------------------
    # Bulk ingestion
    # ------------------------------------------------------------------

    def parse_and_validate(self, raw_text: str) -> IngestionResult:
        return self.validator.parse(raw_text)

    async def bulk_upload(self, raw_text: str, *, actor: ActorContext, persist: bool = True) -> BulkUploadResult:
        t0 = time.perf_counter()
        query = "bulk CSV upload"
        try:
            result = self.validator.parse(raw_text)
            if self.require_clean_ingestion and result.errors:
                raise IngestionRejectedError(
                    f"Upload rejected: {len(result.errors)} invalid row(s); first at line {result.errors[0].line_number}"
                )

            inserted = 0
            duplicates: list[str] = []
            if persist and result.records:
                outcome = await self.gateway.insert_many(result.records)
                inserted, duplicates = outcome.inserted, outcome.duplicates

            bundle = fhir_resources.build_bundle(result.records)
        except (FormatError, IngestionRejectedError) as exc:
            logger.warning("Bulk upload rejected: %s", exc)
            await self._record_failure(AuditAction.BULK_UPLOAD, actor, query, t0)
            raise
        except Exception:
            logger.exception("Bulk upload failed")
            await self._record_failure(AuditAction.BULK_UPLOAD, actor, query, t0)
            raise

        await self.audit.record(
            AuditAction.BULK_UPLOAD,
            actor=actor,
            query=query,
            result_count=len(result.records),
            success=True,
            duration_ms=(time.perf_counter() - t0) * 1000,
        )
        logger.info(
            "Bulk upload processed valid=%s errors=%s inserted=%s duplicates=%s",
            len(result.records),
            len(result.errors),
            inserted,
            len(duplicates),
        )
        return BulkUploadResult(
            records=result.records,
            errors=result.errors,
            inserted=inserted,
            duplicates=duplicates,
            bundle=bundle,
        )

    async def _record_failure(self, action: AuditAction, actor: ActorContext, query: str, t0: float) -> None:
        await self.audit.record(
            action,
            actor=actor,
            query=query,
            success=False,
            duration_ms=(time.perf_counter() - t0) * 1000,
        )

    # ------------------------------------------------------------------
    # FHIR generation
    # ------------------------------------------------------------------

    async def code_system(self, *, actor: ActorContext) -> dict[str, Any]:
        return await self._generate("CodeSystem", fhir_resources.build_code_system, actor)

    async def concept_map(self, *, actor: ActorContext) -> dict[str, Any]:
        return await self._generate("ConceptMap", fhir_resources.build_concept_map, actor)

    async def _generate(self, resource_type: str, builder: Any, actor: ActorContext) -> dict[str, Any]:
        t0 = time.perf_counter()
        try:
            records = await self.gateway.all_records()
            resource = builder(records, generated_at=datetime.now(timezone.utc))
        except Exception:
            logger.exception("FHIR %s generation failed", resource_type)
            await self._record_failure(AuditAction.FHIR_GENERATION, actor, resource_type, t0)
            raise

        await self.audit.record(
            AuditAction.FHIR_GENERATION,
            actor=actor,
            query=resource_type,
            result_count=len(records),
            success=True,
            duration_ms=(time.perf_counter() - t0) * 1000,
        )
        return resource

    # ------------------------------------------------------------------
    # Read surface
    # ------------------------------------------------------------------

    async def get_metadata(self) -> TerminologyMetadata:
        return TerminologyMetadata(
            categories=await self.gateway.distinct("category"),
            groups=await self.gateway.distinct("group"),
        )

    async def list_mappings(
        self,
        filters: Optional[MappingFilter] = None,
        *,
        page: int = 1,
        page_size: int = 10,
    ) -> Page[MappingRecord]:
        return await self.gateway.query(filters, page=page, page_size=page_size)

    async def get_mapping(self, code: str) -> MappingRecord:
        record = await self.gateway.get_by_code(code)
        if record is None:
            raise NotFoundError(f"Mapping {code} not found")
        return record

    async def mapping_stats(self) -> MappingStats:
        return await self.gateway.stats()

    async def list_audit(
        self,
        filters: Optional[AuditFilter] = None,
        *,
        page: int = 1,
        page_size: int = 50,
    ) -> Page[AuditEntry]:
        return await self.gateway.list_audit(filters, page=page, page_size=page_size)

    async def clear_mappings(self) -> None:
        await self.gateway.clear_mappings()

    async def clear_audit(self) -> None:
        await self.gateway.clear_audit()


def build_analytics_sink(settings: Settings) -> AnalyticsSink:
    if not settings.analytics_sink_url:
        return NullAnalyticsSink()
    return HttpAnalyticsSink(
        settings.analytics_sink_url,
        api_key=settings.analytics_sink_api_key,
        timeout=settings.analytics_sink_timeout_seconds,
    )


def build_terminology_service(settings: Settings) -> TerminologyService:
    engine = build_async_engine(settings)
    validator = BulkIngestionValidator()
    gateway = HybridPersistenceGateway(
        RemoteMappingStore(engine),
        LocalFallbackStore(settings.local_store_dir, audit_cap=settings.audit_retention_cap),
        probe_timeout=settings.remote_probe_timeout_seconds,
        validator=validator,
        seed_csv_path=settings.seed_csv_path,
    )
    return TerminologyService(
        gateway,
        sink=build_analytics_sink(settings),
        validator=validator,
        require_clean_ingestion=settings.ingestion_require_clean,
        engine=engine,
    )
