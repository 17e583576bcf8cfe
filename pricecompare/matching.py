"""Re-ranking of raw retailer candidates against the user's query.

The pipeline in :meth:`ProductMatcher.match`:

1. Canonicalize the query and every candidate name.
2. Hard filters: combo and zero/diet variants are dropped unless the query asks
   for them.
3. Token gate: multi-token queries require every core token as a whole word.
4. Size band: when the query carries a volume (or, failing that, a weight) and
   some candidates carry the same dimension, keep those inside a tolerance band.
5. Weighted score: fuzzy core similarity plus a size closeness step function,
   minus combo/zero/missing-size penalties.
6. Threshold, sort with deterministic tie-breaks, truncate.

The step functions and thresholds are tuned values; keep the band edges as
they are.
"""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

from rapidfuzz import fuzz

from .canonical import (
    CanonicalQuery,
    canonicalize,
    combo_markers,
    has_word,
    is_combo_name,
    is_zero_name,
    normalize_text,
)
from .models import Product

logger = logging.getLogger(__name__)

MIN_CORE_WITH_SIZE = 0.45
MIN_SCORE = 0.25
MIN_SCORE_GENERIC = -0.2
CORE_GATE_PENALTY = -999.0
MISSING_SIZE_PENALTY = 0.55
PLUS_PENALTY = 0.55
PACK_PENALTY = 0.45
ZERO_PENALTY = 0.6
GENERIC_MIN_LIMIT = 40

WEIGHTS_WITHOUT_SIZE = (0.85, 0.15)
WEIGHTS_WITH_SIZE = (0.65, 0.35)


@dataclass(frozen=True)
class ScoredCandidate:
    product: Product
    canonical: CanonicalQuery
    score: float


def fuzzy_similarity(query_core: str, candidate_core: str) -> float:
    """Best partial alignment of the query core inside the candidate core, 0..1."""
    if not query_core or not candidate_core:
        return 0.0
    return fuzz.partial_ratio(query_core, candidate_core) / 100.0


def volume_tolerance_liters(query_liters: float) -> float:
    if query_liters < 0.2:
        return max(0.01, query_liters * 0.12)
    if query_liters < 1:
        return max(0.05, query_liters * 0.12)
    if query_liters < 2:
        return max(0.12, query_liters * 0.1)
    return max(0.25, query_liters * 0.12)


def weight_tolerance_kg(query_kg: float) -> float:
    if query_kg < 0.5:
        return max(0.02, query_kg * 0.1)
    if query_kg < 2:
        return max(0.05, query_kg * 0.07)
    return max(0.08, query_kg * 0.06)


def volume_closeness_score(query_liters: Optional[float], product_liters: Optional[float]) -> float:
    if query_liters is None or product_liters is None:
        return 0.0
    diff = abs(product_liters - query_liters)

    if query_liters < 1:
        if diff <= 0.015:
            return 0.55
        if diff <= 0.03:
            return 0.4
        if diff <= 0.06:
            return 0.15
        if diff <= 0.12:
            return -0.2
        return -0.7

    if diff <= 0.05:
        return 0.45
    if diff <= 0.1:
        return 0.3
    if diff <= 0.2:
        return 0.1
    if diff <= 0.35:
        return -0.2
    if diff <= 0.5:
        return -0.45
    return -0.7


def weight_closeness_score(query_kg: Optional[float], product_kg: Optional[float]) -> float:
    if query_kg is None or product_kg is None:
        return 0.0
    diff = abs(product_kg - query_kg)

    if query_kg < 0.5:
        if diff <= 0.01:
            return 0.55
        if diff <= 0.02:
            return 0.4
        if diff <= 0.05:
            return 0.15
        if diff <= 0.1:
            return -0.2
        return -0.7

    if diff <= 0.05:
        return 0.45
    if diff <= 0.1:
        return 0.3
    if diff <= 0.25:
        return 0.1
    if diff <= 0.4:
        return -0.2
    if diff <= 0.6:
        return -0.45
    return -0.7


def is_generic_query(query: CanonicalQuery) -> bool:
    tokens = query.tokens
    return len(tokens) == 1 and len(tokens[0]) >= 4 and not query.has_size


Candidate = Tuple[Product, CanonicalQuery]


class ProductMatcher:
    """Scores and orders a candidate pool for one query."""

    def match(self, query: str, products: Sequence[Product], limit: int = 15) -> List[Product]:
        if not products:
            return []

        canonical_query = canonicalize(query)
        pool: List[Candidate] = [(product, canonicalize(product.name)) for product in products]

        if not canonical_query.wants_combo:
            pool = [c for c in pool if not is_combo_name(c[0].name)]
        if not canonical_query.wants_zero:
            pool = [c for c in pool if not is_zero_name(c[0].name)]

        pool = self._token_gate(pool, canonical_query)
        pool = self._size_filter(pool, canonical_query)

        ranked = self._rank(pool, canonical_query, limit)
        logger.debug(
            "match q=%r core=%r volume=%s weight=%s candidates=%s kept=%s",
            query,
            canonical_query.core,
            canonical_query.volume_liters,
            canonical_query.weight_kg,
            len(products),
            len(ranked),
        )
        return ranked

    def _token_gate(self, pool: List[Candidate], query: CanonicalQuery) -> List[Candidate]:
        # A spaced "+" survives in the core but can never match as a word.
        tokens = [token for token in query.tokens if any(ch.isalnum() for ch in token)]
        if len(tokens) < 2:
            return pool
        kept: List[Candidate] = []
        for product, canonical in pool:
            name = normalize_text(product.name)
            if all(has_word(name, token) for token in tokens):
                kept.append((product, canonical))
        return kept

    def _size_filter(self, pool: List[Candidate], query: CanonicalQuery) -> List[Candidate]:
        if query.volume_liters is not None:
            target = query.volume_liters
            tolerance = volume_tolerance_liters(target)
            sized = [c for c in pool if c[1].volume_liters is not None]
            in_band = [c for c in sized if abs(c[1].volume_liters - target) <= tolerance]
        elif query.weight_kg is not None:
            target = query.weight_kg
            tolerance = weight_tolerance_kg(target)
            sized = [c for c in pool if c[1].weight_kg is not None]
            in_band = [c for c in sized if abs(c[1].weight_kg - target) <= tolerance]
        else:
            return pool

        if not sized:
            return pool
        return in_band or sized

    def _score(self, product: Product, canonical: CanonicalQuery, query: CanonicalQuery, generic: bool) -> float:
        has_volume = query.volume_liters is not None
        has_size = query.has_size

        core_score = fuzzy_similarity(query.core, canonical.core)

        if has_volume:
            size_score = volume_closeness_score(query.volume_liters, canonical.volume_liters)
            missing_size = MISSING_SIZE_PENALTY if canonical.volume_liters is None else 0.0
        elif has_size:
            size_score = weight_closeness_score(query.weight_kg, canonical.weight_kg)
            missing_size = MISSING_SIZE_PENALTY if canonical.weight_kg is None else 0.0
        else:
            size_score = 0.0
            missing_size = 0.0

        combo_penalty = 0.0
        if not query.wants_combo:
            has_plus, has_pack = combo_markers(product.name)
            combo_penalty = (PLUS_PENALTY if has_plus else 0.0) + (PACK_PENALTY if has_pack else 0.0)

        zero_penalty = ZERO_PENALTY if not query.wants_zero and is_zero_name(product.name) else 0.0

        core_gate = 0.0
        if has_size and not generic and core_score < MIN_CORE_WITH_SIZE:
            core_gate = CORE_GATE_PENALTY

        w_core, w_size = WEIGHTS_WITH_SIZE if has_size else WEIGHTS_WITHOUT_SIZE
        return core_gate + w_core * core_score + w_size * size_score - combo_penalty - zero_penalty - missing_size

    def _rank(self, pool: List[Candidate], query: CanonicalQuery, limit: int) -> List[Product]:
        generic = is_generic_query(query)
        threshold = MIN_SCORE_GENERIC if generic else MIN_SCORE

        scored = [
            ScoredCandidate(product=product, canonical=canonical, score=self._score(product, canonical, query, generic))
            for product, canonical in pool
        ]
        working = [s for s in scored if s.score >= threshold] or scored

        target = query.volume_liters

        def sort_key(candidate: ScoredCandidate) -> tuple:
            key: tuple = (-candidate.score,)
            if target is not None:
                volume = candidate.canonical.volume_liters
                distance = math.inf if volume is None else abs(volume - target)
                below = 0 if volume is not None and volume >= target else 1
                key += (distance, below)
            name = candidate.product.name or ""
            return key + (candidate.product.price, name.casefold(), name)

        working.sort(key=sort_key)

        effective_limit = max(limit, GENERIC_MIN_LIMIT) if generic else limit
        return [s.product for s in working[:effective_limit]]
