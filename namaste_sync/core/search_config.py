"""Search configuration for NAMASTE Sync.

Centralizes field weights and thresholds for the relevance search engine.
All values are loaded from environment variables with defaults matching the
reference ranking, so the system works out-of-the-box.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field


def _env_float(name: str, default: float) -> float:
    try:
        return float(os.getenv(name, str(default)))
    except (TypeError, ValueError):
        return default


def _env_int(name: str, default: int) -> int:
    try:
        return int(os.getenv(name, str(default)))
    except (TypeError, ValueError):
        return default


# ---------------------------------------------------------------------------
# Ranking weights
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class SearchWeights:
    """Tunable weights used by the exact and fuzzy lookup phases."""

    # Exact phase: substring containment per field
    term: float = field(default_factory=lambda: _env_float("SEARCH_W_TERM", 3.0))
    code: float = field(default_factory=lambda: _env_float("SEARCH_W_CODE", 2.0))
    group: float = field(default_factory=lambda: _env_float("SEARCH_W_GROUP", 1.0))
    description: float = field(default_factory=lambda: _env_float("SEARCH_W_DESCRIPTION", 2.0))

    # Fuzzy phase: fixed increment per token hit, minimum score to keep
    fuzzy_token_increment: float = field(
        default_factory=lambda: _env_float("SEARCH_FUZZY_TOKEN_INCREMENT", 0.5),
    )
    fuzzy_threshold: float = field(
        default_factory=lambda: _env_float("SEARCH_FUZZY_THRESHOLD", 0.3),
    )


# ---------------------------------------------------------------------------
# Pagination tuning
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class SearchTuning:
    default_page_size: int = field(default_factory=lambda: _env_int("SEARCH_DEFAULT_PAGE_SIZE", 10))
    max_page_size: int = field(default_factory=lambda: _env_int("SEARCH_MAX_PAGE_SIZE", 100))
    # Page size used when the engine scans the whole corpus through the gateway.
    scan_batch_size: int = field(default_factory=lambda: _env_int("SEARCH_SCAN_BATCH_SIZE", 500))


search_weights = SearchWeights()
search_tuning = SearchTuning()
