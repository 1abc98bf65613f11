"""
Similarity Layer

RESPONSIBILITY: Compare texts and group near-duplicates
ALLOWED INPUTS: Plain strings or TextItem collections
OUTPUTS: SimilarityResult, VariantMatch, TextCluster (immutable)

WHAT THIS LAYER MUST NOT DO:
============================
- Own or mutate families
- Decide family membership (the registry does)
- Raise on malformed text (falls back to plain lexical Jaccard)

SCORING:
========
overall = min(1.0, lexical + cluster_boost)

- lexical: Jaccard over canonical significant tokens
- cluster_boost: +0.1 for each semantic cluster hit in BOTH texts
- structural: word/sentence count ratio, reported only

Every component is symmetric, so similarity(a, b) == similarity(b, a).
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Callable, FrozenSet, List, Optional, Sequence, Tuple, Union
import hashlib
import logging
import re

from rapidfuzz.distance import Levenshtein

from ..contracts.events import (
    SimilarityResult, SimilarityBreakdown, VariantAnalysis,
    TextItem, VariantMatch, TextCluster
)
from ..normalization import TextProfile, profile, cluster_hits
from ..normalization.vocabulary import SEMANTIC_CLUSTER_KEYWORDS, CLUSTER_ORDER
from ..classification import MutationClassifier

logger = logging.getLogger(__name__)


@dataclass
class SimilarityConfig:
    """Configuration for similarity scoring and variant search."""
    similarity_threshold: float = 0.75
    cluster_boost: float = 0.1
    variant_min_similarity: float = 0.6
    variant_max_results: int = 20
    label_relatedness_threshold: float = 0.6


def jaccard(a: FrozenSet[str], b: FrozenSet[str]) -> float:
    union = a | b
    if not union:
        return 0.0
    return len(a & b) / len(union)


def _ratio(x: int, y: int) -> float:
    if x == 0 and y == 0:
        return 1.0
    return min(x, y) / max(x, y)


_BASIC_WORD_RE = re.compile(r'\b\w+\b')


class SimilarityEngine:
    """
    Symmetric content similarity, variant search and greedy clustering.

    Deterministic: no caches that change results, no randomness.
    """

    def __init__(
        self,
        config: Optional[SimilarityConfig] = None,
        classifier: Optional[MutationClassifier] = None,
        on_fallback: Optional[Callable[[], None]] = None
    ):
        self._config = config or SimilarityConfig()
        self._classifier = classifier or MutationClassifier()
        self._on_fallback = on_fallback

    @property
    def config(self) -> SimilarityConfig:
        return self._config

    # =========================================================================
    # PAIRWISE SIMILARITY
    # =========================================================================

    def calculate_similarity(self, a: str, b: str) -> SimilarityResult:
        """
        Compare two texts.

        When is_variant holds, variant_analysis classifies `a` as a mutation
        of `b`.
        """
        breakdown, fallback_used = self._breakdown(a, b)
        overall = min(1.0, breakdown.lexical + breakdown.cluster_boost)
        is_variant = overall >= self._config.similarity_threshold

        analysis = VariantAnalysis()
        if is_variant:
            analysis = VariantAnalysis(
                primary_type=self._classifier.classify(a, b),
                mutation_patterns=tuple(
                    label.value for label in self._classifier.matching_rules(a, b)
                )
            )

        return SimilarityResult(
            overall_similarity=overall,
            breakdown=breakdown,
            is_variant=is_variant,
            confidence=overall,
            variant_analysis=analysis,
            fallback_used=fallback_used
        )

    def score(self, a: str, b: str) -> float:
        """overall_similarity alone, without classification."""
        breakdown, _ = self._breakdown(a, b)
        return min(1.0, breakdown.lexical + breakdown.cluster_boost)

    def basic_similarity(self, a: str, b: str) -> float:
        """Plain Jaccard over all lowercase words plus cluster boost."""
        breakdown = self._basic_breakdown(a, b)
        return min(1.0, breakdown.lexical + breakdown.cluster_boost)

    def _breakdown(self, a: str, b: str) -> Tuple[SimilarityBreakdown, bool]:
        """Composite breakdown, or the plain lexical one if the composite fails."""
        try:
            return self._composite_breakdown(profile(a), profile(b)), False
        except Exception as exc:
            logger.warning("Composite similarity failed, using lexical fallback: %s", exc)
            if self._on_fallback is not None:
                self._on_fallback()
        try:
            return self._basic_breakdown(a, b), True
        except Exception as exc:
            logger.error("Lexical similarity fallback failed, scoring 0.0: %s", exc)
            return SimilarityBreakdown(lexical=0.0, cluster_boost=0.0, structural=0.0), True

    def _composite_breakdown(self, pa: TextProfile, pb: TextProfile) -> SimilarityBreakdown:
        lexical = jaccard(pa.tokens, pb.tokens)

        shared: List[str] = []
        for (cluster, hits_a), (_, hits_b) in zip(cluster_hits(pa), cluster_hits(pb)):
            if hits_a > 0 and hits_b > 0:
                shared.append(cluster.value)

        structural = (
            _ratio(pa.word_count, pb.word_count) +
            _ratio(pa.sentence_count, pb.sentence_count)
        ) / 2

        return SimilarityBreakdown(
            lexical=lexical,
            cluster_boost=self._config.cluster_boost * len(shared),
            structural=structural,
            shared_clusters=tuple(shared)
        )

    def _basic_breakdown(self, a: str, b: str) -> SimilarityBreakdown:
        words_a = frozenset(_BASIC_WORD_RE.findall(a.lower()))
        words_b = frozenset(_BASIC_WORD_RE.findall(b.lower()))

        shared = [
            cluster.value for cluster in CLUSTER_ORDER
            if SEMANTIC_CLUSTER_KEYWORDS[cluster] & words_a
            and SEMANTIC_CLUSTER_KEYWORDS[cluster] & words_b
        ]
        return SimilarityBreakdown(
            lexical=jaccard(words_a, words_b),
            cluster_boost=self._config.cluster_boost * len(shared),
            structural=0.0,
            shared_clusters=tuple(shared)
        )

    # =========================================================================
    # BATCH OPERATIONS
    # =========================================================================

    def find_variants(
        self,
        query: str,
        collection: Sequence[Union[str, TextItem]],
        min_similarity: Optional[float] = None,
        max_results: Optional[int] = None
    ) -> Tuple[VariantMatch, ...]:
        """
        Linear scan of `collection`: keep matches at or above min_similarity,
        highest score first (stable for ties), truncated to max_results.
        """
        floor = self._config.variant_min_similarity if min_similarity is None else min_similarity
        limit = self._config.variant_max_results if max_results is None else max_results

        matches: List[VariantMatch] = []
        for entry in collection:
            item = _as_item(entry)
            result = self.calculate_similarity(query, item.content)
            if result.overall_similarity >= floor:
                matches.append(VariantMatch(item=item, similarity=result))

        matches.sort(key=lambda m: -m.similarity_score)
        return tuple(matches[:max(0, limit)])

    def cluster_similar_texts(
        self,
        texts: Sequence[Union[str, TextItem]],
        threshold: Optional[float] = None
    ) -> Tuple[TextCluster, ...]:
        """
        Greedy single-pass clustering.

        Each text joins the first existing cluster whose representative
        scores at or above `threshold`, otherwise it founds a new cluster.
        Deterministic for a given input order; clusters are returned
        largest first, creation order breaking ties.
        """
        limit = self._config.similarity_threshold if threshold is None else threshold

        groups: List[Tuple[List[TextItem], List[float]]] = []
        for entry in texts:
            item = _as_item(entry)
            for members, scores in groups:
                value = self.score(item.content, members[0].content)
                if value >= limit:
                    members.append(item)
                    scores.append(value)
                    break
            else:
                groups.append(([item], []))

        clusters = [
            TextCluster(
                cluster_id=_cluster_id(members[0].content, index),
                members=tuple(members),
                similarity_scores=tuple(scores)
            )
            for index, (members, scores) in enumerate(groups)
        ]
        clusters.sort(key=lambda c: -c.cluster_size)
        return tuple(clusters)

    # =========================================================================
    # LABEL RELATEDNESS (variant-type labels, not content)
    # =========================================================================

    def string_similarity(self, first: str, second: str) -> float:
        """(len(longer) - edit_distance) / len(longer); 1.0 for two empty strings."""
        return Levenshtein.normalized_similarity(first, second)

    def labels_related(self, first: Optional[str], second: Optional[str]) -> bool:
        if not first or not second:
            return False
        return self.string_similarity(first, second) > self._config.label_relatedness_threshold


def _as_item(entry: Union[str, TextItem]) -> TextItem:
    if isinstance(entry, TextItem):
        return entry
    return TextItem(content=entry)


def _cluster_id(representative: str, index: int) -> str:
    digest = hashlib.sha256(f"{index}|{representative}".encode('utf-8')).hexdigest()[:12]
    return f"cluster_{digest}"


__all__ = [
    'SimilarityConfig', 'SimilarityEngine', 'jaccard',
]
