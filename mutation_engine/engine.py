"""
Engine Orchestration Module

This module provides the unified interface for coordinating all
layers while maintaining strict boundary separation.

DESIGN PRINCIPLES:
==================
1. Layers communicate ONLY through contracts
2. Engine orchestrates flow without creating coupling
3. All operations are traceable through observability
4. Nothing raises across this boundary: failures come back as data
"""

from __future__ import annotations
from collections import Counter
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, List, Mapping, Optional, Tuple, TypeVar, Union
import logging
import os
import random

from .contracts.base import Error, ErrorCode, Timestamp, IngestStatus, MutationType, NodeKind
from .contracts.events import (
    IngestResult, FamilyView, GenealogyPath, DescendantsResult, CommonAncestorResult,
    FamilyPatternAnalysis, RegistryStatistics, RegistryTrends, AuditLogEntry,
    FamilyContext, VariantRelationship, SemanticVariant, VariantSearchResult,
    MutationCluster, ClusterResult, TextCluster, MutationFamily, VariantMatch
)
from .contracts.prediction import PredictionReport
from .normalization import FingerprintGenerator, determine_semantic_cluster
from .classification import MutationClassifier, ClassifierConfig
from .similarity import SimilarityEngine, SimilarityConfig
from .storage import FamilyRepository
from .core import FamilyRegistry, RegistryConfig, utc_now
from .query import GenealogyGraph, GenealogyQueryEngine, GenealogyQueryConfig
from .prediction import MutationPredictor, PredictionConfig
from .observability import AuditLogCollector, MetricsCollector

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class EngineConfig:
    """Unified configuration for every layer."""
    similarity: SimilarityConfig = None
    classifier: ClassifierConfig = None
    registry: RegistryConfig = None
    query: GenealogyQueryConfig = None
    prediction: PredictionConfig = None
    log_level: str = "INFO"

    def __post_init__(self):
        self.similarity = self.similarity or SimilarityConfig()
        self.classifier = self.classifier or ClassifierConfig()
        self.registry = self.registry or RegistryConfig()
        self.query = self.query or GenealogyQueryConfig()
        self.prediction = self.prediction or PredictionConfig()

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> EngineConfig:
        """
        Defaults overridden by MUTATION_SIMILARITY_THRESHOLD,
        MUTATION_TIME_WINDOW_HOURS, MAX_MUTATION_DEPTH and MUTATION_LOG_LEVEL.
        Unparseable values are logged and ignored.
        """
        env = os.environ if environ is None else environ
        config = cls()

        threshold = _env_number(env, "MUTATION_SIMILARITY_THRESHOLD", float)
        if threshold is not None and 0.0 <= threshold <= 1.0:
            config.similarity.similarity_threshold = threshold

        window = _env_number(env, "MUTATION_TIME_WINDOW_HOURS", float)
        if window is not None and window > 0:
            config.registry.mutation_time_window_hours = window

        depth = _env_number(env, "MAX_MUTATION_DEPTH", int)
        if depth is not None and depth > 0:
            config.registry.max_mutation_depth = depth

        level = env.get("MUTATION_LOG_LEVEL")
        if level and level.upper() in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            config.log_level = level.upper()

        return config


def _env_number(env: Mapping[str, str], name: str, kind: Callable[[str], T]) -> Optional[T]:
    raw = env.get(name)
    if raw is None or raw == "":
        return None
    try:
        return kind(raw)
    except ValueError:
        logger.warning("Ignoring invalid %s=%r", name, raw)
        return None


class MutationGenealogyEngine:
    """
    Unified interface of the mutation detection and genealogy engine.

    LAYER FLOW:
    ===========
    1. Normalization: content -> fingerprint, tokens
    2. Similarity + Classification: best parent, mutation type
    3. Core registry: family creation / append (sole writer)
    4. Query: read-only genealogy over family snapshots
    5. Prediction: signals -> ranked forecasts
    6. Observability: audit entries and metrics from every layer

    NO LAYER BYPASSES THIS FLOW.
    """

    def __init__(
        self,
        config: Optional[EngineConfig] = None,
        repository: Optional[FamilyRepository] = None,
        clock: Optional[Callable[[], datetime]] = None,
        rng: Optional[random.Random] = None
    ):
        self._config = config or EngineConfig()
        self._clock = clock or utc_now
        self._metrics = MetricsCollector()
        self._core_audit = AuditLogCollector(layer_name="core")
        self._query_audit = AuditLogCollector(layer_name="query")
        self._prediction_audit = AuditLogCollector(layer_name="prediction")

        self._classifier = MutationClassifier(self._config.classifier)
        self._similarity = SimilarityEngine(
            config=self._config.similarity,
            classifier=self._classifier,
            on_fallback=lambda: self._metrics.record("similarity_fallback_total", 1)
        )
        self._registry = FamilyRegistry(
            repository=repository or FamilyRepository(),
            similarity=self._similarity,
            classifier=self._classifier,
            fingerprints=FingerprintGenerator(),
            config=self._config.registry,
            clock=self._clock,
            audit=self._core_audit,
            metrics=self._metrics
        )
        self._query = GenealogyQueryEngine(
            repository=self._registry.repository,
            config=self._config.query,
            audit=self._query_audit
        )
        self._predictor = MutationPredictor(
            config=self._config.prediction,
            rng=rng,
            clock=self._clock,
            audit=self._prediction_audit,
            metrics=self._metrics
        )

    @property
    def config(self) -> EngineConfig:
        return self._config

    @property
    def metrics(self) -> MetricsCollector:
        return self._metrics

    @property
    def similarity(self) -> SimilarityEngine:
        return self._similarity

    @property
    def registry(self) -> FamilyRegistry:
        return self._registry

    # =========================================================================
    # INGESTION INTERFACE
    # =========================================================================

    def ingest(
        self,
        content: str,
        metadata: Optional[Mapping[str, object]] = None,
        timestamp: Optional[Timestamp] = None
    ) -> IngestResult:
        return self._guarded(
            "ingest",
            lambda: self._registry.ingest(content, metadata, timestamp),
            lambda error: IngestResult(status=IngestStatus.REJECTED, error=error)
        )

    # =========================================================================
    # FAMILY INTERFACE
    # =========================================================================

    def get_family(self, identifier: str) -> FamilyView:
        return self._guarded(
            "get_family",
            lambda: self._registry.get_family(identifier),
            FamilyView.not_found
        )

    def predict_mutations(self, identifier: str) -> PredictionReport:
        def run() -> PredictionReport:
            family = self._snapshot(identifier)
            if family is None:
                return PredictionReport.failed(identifier, Error.create(
                    ErrorCode.FAMILY_NOT_FOUND, "Family not found", identifier=identifier
                ))
            return self._predictor.predict(family)

        return self._guarded(
            "predict_mutations", run,
            lambda error: PredictionReport.failed(identifier, error)
        )

    def get_statistics(self) -> Union[RegistryStatistics, Error]:
        return self._guarded("get_statistics", self._registry.get_statistics, lambda error: error)

    def get_trends(self) -> Union[RegistryTrends, Error]:
        return self._guarded("get_trends", self._registry.get_trends, lambda error: error)

    # =========================================================================
    # GENEALOGY INTERFACE
    # =========================================================================

    def genealogy_path(self, node_id: str) -> GenealogyPath:
        return self._guarded(
            "genealogy_path",
            lambda: self._query.genealogy_path(node_id),
            lambda error: GenealogyPath(found=False, node_id=node_id, error=error)
        )

    def descendants(
        self,
        node_id: str,
        max_depth: Optional[int] = None,
        filter_by_type: Optional[Union[MutationType, str]] = None
    ) -> DescendantsResult:
        return self._guarded(
            "descendants",
            lambda: self._query.descendants(node_id, max_depth, filter_by_type),
            lambda error: DescendantsResult(found=False, node_id=node_id, error=error)
        )

    def common_ancestors(self, node_id_1: str, node_id_2: str) -> CommonAncestorResult:
        return self._guarded(
            "common_ancestors",
            lambda: self._query.common_ancestors(node_id_1, node_id_2),
            lambda error: CommonAncestorResult(found=False, error=error)
        )

    def analyze_family_patterns(self, identifier: str) -> FamilyPatternAnalysis:
        def run() -> FamilyPatternAnalysis:
            family_id = self._registry.resolve_family_id(identifier) or identifier
            return self._query.analyze_family_patterns(family_id)

        return self._guarded(
            "analyze_family_patterns", run,
            lambda error: FamilyPatternAnalysis(found=False, error=error)
        )

    # =========================================================================
    # CROSS-FAMILY SEARCH
    # =========================================================================

    def find_semantic_variants(
        self,
        content: str,
        min_similarity: Optional[float] = None,
        max_results: Optional[int] = None
    ) -> VariantSearchResult:
        """Variant search over every stored text, enriched with family context."""
        return self._guarded(
            "find_semantic_variants",
            lambda: self._find_semantic_variants(content, min_similarity, max_results),
            lambda error: VariantSearchResult(query_content=content, error=error)
        )

    def _find_semantic_variants(
        self,
        content: str,
        min_similarity: Optional[float],
        max_results: Optional[int]
    ) -> VariantSearchResult:
        matches = self._similarity.find_variants(
            content, self._registry.all_text_items(), min_similarity, max_results
        )

        families = {}
        variants: List[SemanticVariant] = []
        for match in matches:
            family_id = match.item.family_id
            if family_id not in families:
                families[family_id] = self._registry.snapshot(family_id)
            family = families[family_id]
            if family is None:
                continue
            variants.append(SemanticVariant(
                match=match,
                family_context=FamilyContext(
                    family_id=family.family_id,
                    creation_date=family.creation_date,
                    semantic_cluster=family.semantic_cluster,
                    total_mutations=family.mutation_count
                ),
                variant_relationship=_variant_relationship(match, family),
                related_variant_types=self._similarity.labels_related(
                    _label(match.variant_type), _label(match.item.mutation_type)
                )
            ))

        return VariantSearchResult(
            query_content=content,
            variants=tuple(variants),
            analysis_timestamp=self._registry.now()
        )

    def cluster_mutations(self, threshold: Optional[float] = None) -> ClusterResult:
        """Greedy clustering of every stored text, enriched with family spread."""
        return self._guarded(
            "cluster_mutations",
            lambda: ClusterResult(clusters=tuple(
                _enrich_cluster(c) for c in self._similarity.cluster_similar_texts(
                    self._registry.all_text_items(), threshold
                )
            )),
            lambda error: ClusterResult(error=error)
        )

    # =========================================================================
    # OBSERVABILITY INTERFACE
    # =========================================================================

    def get_audit_log(self) -> List[AuditLogEntry]:
        """Audit entries of every layer, oldest first."""
        entries = (
            self._core_audit.get_entries()
            + self._query_audit.get_entries()
            + self._prediction_audit.get_entries()
        )
        return sorted(entries, key=lambda e: e.timestamp.value)

    # =========================================================================
    # INTERNALS
    # =========================================================================

    def _snapshot(self, identifier: str) -> Optional[MutationFamily]:
        family_id = self._registry.resolve_family_id(identifier)
        return self._registry.snapshot(family_id) if family_id else None

    def _guarded(self, operation: str, run: Callable[[], T], on_error: Callable[[Error], T]) -> T:
        try:
            return run()
        except Exception as exc:
            logger.exception("%s failed", operation)
            return on_error(Error.create(ErrorCode.INTERNAL, f"{operation} failed: {exc}"))


def _label(mutation_type: Optional[MutationType]) -> Optional[str]:
    return mutation_type.value if mutation_type is not None else None


def _variant_relationship(match: VariantMatch, family: MutationFamily) -> VariantRelationship:
    item = match.item
    if item.kind == NodeKind.ORIGINAL:
        return VariantRelationship(
            relationship_type="original_variant",
            confidence=match.confidence,
            generation_distance=0
        )

    graph = GenealogyGraph(family)
    path: Tuple = ()
    if item.content_hash and graph.contains(item.content_hash):
        path = tuple(graph.step(h) for h in graph.path_to(item.content_hash))
    return VariantRelationship(
        relationship_type="mutation_variant",
        confidence=match.confidence,
        generation_distance=item.generation or 1,
        mutation_path=path
    )


def _enrich_cluster(cluster: TextCluster) -> MutationCluster:
    members = cluster.members
    home = cluster.representative.family_id

    families: List[str] = []
    for member in members:
        if member.family_id and member.family_id not in families:
            families.append(member.family_id)

    domains = Counter(determine_semantic_cluster(m.content).value for m in members)
    dominant = max(domains, key=lambda d: domains[d])

    patterns = Counter(
        m.mutation_type.value for m in members
        if m.kind == NodeKind.MUTATION and m.mutation_type is not None
    )

    return MutationCluster(
        cluster=cluster,
        families_involved=tuple(families),
        cross_family_variants=sum(1 for m in members if m.family_id != home),
        dominant_domain=dominant,
        mutation_patterns=tuple(patterns.items())
    )
