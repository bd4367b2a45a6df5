"""Relevance search over NAMASTE mappings.

Two phases:

1. **Exact**: case-insensitive substring containment of the whole query in
   the term, code, group and TM2 description. Each matching field adds its
   weight; the sum is scaled by the mapping confidence. Matching fields get a
   highlighted copy with ``<mark>`` tags.
2. **Fuzzy** (only when the exact phase finds nothing): every whitespace
   token found in ``term group description`` adds a fixed increment, scaled by
   confidence; results at or below the threshold are dropped.

Results are ranked by score desc then code asc and paginated afterwards.
Every lookup writes exactly one ``search`` audit entry.
"""

from __future__ import annotations

import itertools
import logging
import re
import time
from dataclasses import dataclass
from typing import Iterable, List, Optional

from namaste_sync.core.search_config import SearchTuning, SearchWeights, search_tuning, search_weights
from namaste_sync.schemas.audit import ActorContext, AuditAction
from namaste_sync.schemas.terminology import LookupResponse, MappingRecord, SearchResult
from namaste_sync.services.audit_trail import AuditTrailWriter
from namaste_sync.services.gateway import HybridPersistenceGateway

logger = logging.getLogger(__name__)

MARK_OPEN = "<mark>"
MARK_CLOSE = "</mark>"


def highlight(text: str, needle: str) -> str:
    """Wrap every case-insensitive occurrence of ``needle`` in ``<mark>`` tags."""
    if not needle:
        return text
    pattern = re.compile(re.escape(needle), re.IGNORECASE)
    return pattern.sub(lambda m: f"{MARK_OPEN}{m.group(0)}{MARK_CLOSE}", text)


@dataclass
class SearchEvent:
    query_raw: str
    phase: str
    candidate_count: int
    result_count: int
    duration_ms: float
    top_code: Optional[str] = None
    top_score: Optional[float] = None


class RelevanceSearchEngine:
    def __init__(
        self,
        gateway: HybridPersistenceGateway,
        audit: AuditTrailWriter,
        *,
        weights: SearchWeights = search_weights,
        tuning: SearchTuning = search_tuning,
    ) -> None:
        self._gateway = gateway
        self._audit = audit
        self._weights = weights
        self._tuning = tuning
        self._sequence = itertools.count(1)

    # ------------------------------------------------------------------
    # Scoring
    # ------------------------------------------------------------------

    def score_exact(self, record: MappingRecord, needle: str) -> Optional[SearchResult]:
        fields = (
            ("term", record.term, self._weights.term),
            ("code", record.code, self._weights.code),
            ("group", record.group, self._weights.group),
            ("description", record.tm2_description, self._weights.description),
        )
        score = 0.0
        highlights: dict[str, str] = {}
        for key, value, weight in fields:
            if needle in value.lower():
                score += weight
                highlights[key] = highlight(value, needle)

        score *= record.confidence
        if score <= 0:
            return None
        return SearchResult(record=record, highlights=highlights, relevance_score=score)

    def score_fuzzy(self, record: MappingRecord, tokens: List[str]) -> Optional[SearchResult]:
        haystack = f"{record.term} {record.group} {record.tm2_description}".lower()
        hits = sum(1 for token in tokens if token in haystack)
        score = hits * self._weights.fuzzy_token_increment * record.confidence
        if score <= self._weights.fuzzy_threshold:
            return None
        return SearchResult(record=record, highlights={}, relevance_score=score)

    def rank(self, records: Iterable[MappingRecord], query: str) -> tuple[List[SearchResult], str]:
        """Score ``records`` against ``query``; returns the ranked results and the phase used."""
        needle = query.strip().lower()
        if not needle:
            return [], "blank"

        records = list(records)
        results = [r for r in (self.score_exact(rec, needle) for rec in records) if r is not None]
        phase = "exact"
        if not results:
            tokens = needle.split()
            results = [r for r in (self.score_fuzzy(rec, tokens) for rec in records) if r is not None]
            phase = "fuzzy"

        results.sort(key=lambda r: (-r.relevance_score, r.record.code))
        return results, phase

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def lookup(
        self,
        query: str,
        *,
        actor: ActorContext,
        page: int = 1,
        page_size: Optional[int] = None,
    ) -> LookupResponse:
        t0 = time.perf_counter()
        sequence = next(self._sequence)
        page_size = min(page_size or self._tuning.default_page_size, self._tuning.max_page_size)
        query = query or ""

        try:
            if page < 1 or page_size < 1:
                raise ValueError("page and page_size must be positive")

            candidate_count = 0
            if query.strip():
                records = await self._gateway.all_records()
                candidate_count = len(records)
                ranked, phase = self.rank(records, query)
            else:
                ranked, phase = [], "blank"

            start = (page - 1) * page_size
            page_results = ranked[start : start + page_size]
        except Exception:
            duration_ms = (time.perf_counter() - t0) * 1000
            logger.exception("Lookup failed query=%r", query)
            await self._audit.record(
                AuditAction.SEARCH,
                actor=actor,
                query=query,
                success=False,
                duration_ms=duration_ms,
            )
            raise

        duration_ms = (time.perf_counter() - t0) * 1000
        await self._audit.record(
            AuditAction.SEARCH,
            actor=actor,
            query=query,
            result_count=len(ranked),
            success=True,
            duration_ms=duration_ms,
        )
        self._emit_search_event(
            SearchEvent(
                query_raw=query,
                phase=phase,
                candidate_count=candidate_count,
                result_count=len(ranked),
                duration_ms=round(duration_ms, 2),
                top_code=ranked[0].record.code if ranked else None,
                top_score=ranked[0].relevance_score if ranked else None,
            )
        )
        return LookupResponse(
            results=page_results,
            total=len(ranked),
            page=page,
            page_size=page_size,
            query=query,
            sequence=sequence,
        )

    # ------------------------------------------------------------------
    # Structured logging
    # ------------------------------------------------------------------

    def _emit_search_event(self, event: SearchEvent) -> None:
        logger.info(
            "search_event query=%r phase=%s candidates=%d results=%d duration_ms=%.2f top_code=%s top_score=%s",
            event.query_raw,
            event.phase,
            event.candidate_count,
            event.result_count,
            event.duration_ms,
            event.top_code or "-",
            f"{event.top_score:.4f}" if event.top_score is not None else "-",
        )
