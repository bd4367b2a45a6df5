from __future__ import annotations

import logging
import time
from typing import List, Union

from namaste_sync.core.errors import NotFoundError
from namaste_sync.schemas.audit import ActorContext, AuditAction
from namaste_sync.schemas.terminology import CodeSystem, MappingRecord, TranslationEntry
from namaste_sync.services.audit_trail import AuditTrailWriter
from namaste_sync.services.gateway import HybridPersistenceGateway

logger = logging.getLogger(__name__)

EQUIVALENT = "equivalent"


def coerce_system(value: Union[str, CodeSystem]) -> CodeSystem:
    if isinstance(value, CodeSystem):
        return value
    try:
        return CodeSystem((value or "").strip().lower())
    except ValueError as exc:
        allowed = ", ".join(s.value for s in CodeSystem)
        raise ValueError(f"Unknown code system {value!r}. Must be one of: {allowed}") from exc


def _target_for(record: MappingRecord, target: CodeSystem) -> TranslationEntry:
    if target is CodeSystem.NAMASTE:
        code, display = record.code, record.term
    elif target is CodeSystem.ICD11_TM2:
        code, display = record.tm2_code, record.tm2_description
    else:
        # No biomedicine display is stored; the TM2 description stands in.
        code, display = record.biomedicine_code, record.tm2_description
    return TranslationEntry(
        target_code=code,
        target_system=target,
        target_display=display,
        equivalence=EQUIVALENT,
        confidence=record.confidence,
    )


class CodeTranslator:
    """Resolves a code in one system to its equivalent in another."""

    def __init__(self, gateway: HybridPersistenceGateway, audit: AuditTrailWriter) -> None:
        self._gateway = gateway
        self._audit = audit

    async def resolve(self, code: str, source: CodeSystem) -> MappingRecord:
        record = await self._gateway.find_by_target(source, code)
        if record is None:
            raise NotFoundError(f"Code {code} not found in {source.value}")
        return record

    async def translate(
        self,
        code: str,
        source_system: Union[str, CodeSystem],
        target_system: Union[str, CodeSystem],
        *,
        actor: ActorContext,
    ) -> List[TranslationEntry]:
        t0 = time.perf_counter()
        source_label = getattr(source_system, "value", source_system)
        target_label = getattr(target_system, "value", target_system)
        query = f"{code} from {source_label} to {target_label}"

        try:
            source = coerce_system(source_system)
            target = coerce_system(target_system)
            record = await self.resolve(code, source)
            translations = [] if source is target else [_target_for(record, target)]
        except Exception as exc:
            logger.warning("Translation failed query=%r error=%s", query, exc)
            await self._audit.record(
                AuditAction.TRANSLATE,
                actor=actor,
                query=query,
                success=False,
                duration_ms=(time.perf_counter() - t0) * 1000,
            )
            raise

        await self._audit.record(
            AuditAction.TRANSLATE,
            actor=actor,
            query=query,
            result_count=len(translations),
            success=True,
            duration_ms=(time.perf_counter() - t0) * 1000,
        )
        return translations
