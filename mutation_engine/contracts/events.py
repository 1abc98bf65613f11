"""
Layer-Specific Contracts

These contracts define the explicit interfaces between layers.
Each layer exposes its contracts here, and other layers consume only these.

Design notes:
1. Family members (original + mutation nodes) are immutable records
2. A family's mutation list is append-only and owned by the registry
3. Every public operation answers with a result type carrying either a
   value or an Error, never an exception
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple
from enum import Enum

from .base import (
    Error, Timestamp, MutationType, SemanticCluster, IngestStatus, NodeKind
)


def _iso(ts: Optional[Timestamp]) -> Optional[str]:
    return ts.to_iso() if ts is not None else None


def _type_name(mutation_type: Optional[MutationType]) -> Optional[str]:
    return mutation_type.value if mutation_type is not None else None


# =============================================================================
# NORMALIZATION LAYER CONTRACTS
# =============================================================================

@dataclass(frozen=True)
class ContentFingerprint:
    """
    Derived keys for a piece of content.

    content_hash: exact-match key (sha256 of normalized text)
    semantic_fingerprint: coarse bucketing key, NOT an equality key
    """
    content_hash: str
    semantic_fingerprint: str


@dataclass(frozen=True)
class AdvancedFingerprint:
    """Multi-representation fingerprint used for auxiliary indexing."""
    basic_fingerprint: str
    word_fingerprint: str
    ngram_fingerprint: str
    domain_fingerprint: str
    combined_hash: str


# =============================================================================
# FAMILY MODEL (owned by the registry)
# =============================================================================

@dataclass(frozen=True)
class NumericChange:
    """Positional difference between numeric tokens of parent and child."""
    from_value: Optional[str]
    to_value: Optional[str]
    position: int


@dataclass(frozen=True)
class ChangeAnalysis:
    """
    Structural diff of a parent -> child edge.

    Computed once at insertion time and attached to the MutationNode.
    """
    length_change: int
    word_count_change: int
    added_words: Tuple[str, ...]
    removed_words: Tuple[str, ...]
    changed_numbers: Tuple[NumericChange, ...]

    def to_dict(self) -> dict:
        return {
            'length_change': self.length_change,
            'word_count_change': self.word_count_change,
            'added_words': list(self.added_words),
            'removed_words': list(self.removed_words),
            'changed_numbers': [
                {'from': c.from_value, 'to': c.to_value, 'position': c.position}
                for c in self.changed_numbers
            ],
        }


@dataclass(frozen=True)
class OriginalContent:
    """Root of a mutation family. Created once, never modified."""
    content: str
    content_hash: str
    fingerprint: ContentFingerprint
    timestamp: Timestamp
    metadata: Tuple[Tuple[str, str], ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class MutationNode:
    """
    A variant attached to a family.

    INVARIANTS:
    - parent_hash resolves to the family original or another node of the
      same family
    - generation == generation(parent) + 1
    """
    mutation_id: str
    content: str
    content_hash: str
    fingerprint: ContentFingerprint
    parent_hash: str
    mutation_type: MutationType
    similarity_score: float
    generation: int
    timestamp: Timestamp
    metadata: Tuple[Tuple[str, str], ...] = field(default_factory=tuple)
    change_analysis: Optional[ChangeAnalysis] = None


@dataclass
class MutationFamily:
    """
    Rooted tree of content variants sharing one original.

    The original is immutable; `mutations` is append-only and only the
    FamilyRegistry appends to it (through the repository).
    """
    family_id: str
    creation_date: Timestamp
    semantic_cluster: SemanticCluster
    original: OriginalContent
    mutations: List[MutationNode] = field(default_factory=list)

    @property
    def mutation_count(self) -> int:
        return len(self.mutations)


# =============================================================================
# SIMILARITY LAYER CONTRACTS (ephemeral, never persisted)
# =============================================================================

@dataclass(frozen=True)
class SimilarityBreakdown:
    """Per-component scores behind an overall similarity."""
    lexical: float
    cluster_boost: float
    structural: float
    shared_clusters: Tuple[str, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class VariantAnalysis:
    """Best-effort classification of a variant pair."""
    primary_type: Optional[MutationType] = None
    mutation_patterns: Tuple[str, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class SimilarityResult:
    """
    Symmetric comparison of two texts.

    confidence mirrors overall_similarity; it is kept as a separate field
    so envelopes carry a uniform `confidence` key.
    """
    overall_similarity: float
    breakdown: SimilarityBreakdown
    is_variant: bool
    confidence: float
    variant_analysis: VariantAnalysis = field(default_factory=VariantAnalysis)
    fallback_used: bool = False

    def to_dict(self) -> dict:
        return {
            'overall_similarity': self.overall_similarity,
            'is_variant': self.is_variant,
            'confidence': self.confidence,
            'breakdown': {
                'lexical': self.breakdown.lexical,
                'semantic_cluster': self.breakdown.cluster_boost,
                'structural': self.breakdown.structural,
                'shared_clusters': list(self.breakdown.shared_clusters),
            },
            'variant_analysis': {
                'primary_type': _type_name(self.variant_analysis.primary_type),
                'mutation_patterns': list(self.variant_analysis.mutation_patterns),
            },
            'fallback_used': self.fallback_used,
        }


@dataclass(frozen=True)
class TextItem:
    """
    A searchable text plus optional provenance inside the registry.
    Plain strings handed to the similarity layer are wrapped in this.
    """
    content: str
    content_hash: Optional[str] = None
    family_id: Optional[str] = None
    mutation_id: Optional[str] = None
    kind: Optional[NodeKind] = None
    mutation_type: Optional[MutationType] = None
    generation: Optional[int] = None
    timestamp: Optional[Timestamp] = None

    def to_dict(self) -> dict:
        return {
            'content': self.content,
            'content_hash': self.content_hash,
            'family_id': self.family_id,
            'mutation_id': self.mutation_id,
            'type': self.kind.value if self.kind else None,
            'mutation_type': _type_name(self.mutation_type),
            'generation': self.generation,
            'timestamp': _iso(self.timestamp),
        }


@dataclass(frozen=True)
class VariantMatch:
    """One ranked hit of a variant search."""
    item: TextItem
    similarity: SimilarityResult

    @property
    def similarity_score(self) -> float:
        return self.similarity.overall_similarity

    @property
    def variant_type(self) -> Optional[MutationType]:
        return self.similarity.variant_analysis.primary_type

    @property
    def confidence(self) -> float:
        return self.similarity.confidence

    def to_dict(self) -> dict:
        data = self.item.to_dict()
        data.update({
            'similarity_score': self.similarity_score,
            'variant_type': _type_name(self.variant_type),
            'confidence': self.confidence,
            'similarity_analysis': self.similarity.to_dict(),
        })
        return data


@dataclass(frozen=True)
class TextCluster:
    """
    Output of greedy clustering.

    members[0] is the representative; similarity_scores[i] is the score of
    members[i + 1] against the representative.
    """
    cluster_id: str
    members: Tuple[TextItem, ...]
    similarity_scores: Tuple[float, ...] = field(default_factory=tuple)

    @property
    def representative(self) -> TextItem:
        return self.members[0]

    @property
    def cluster_size(self) -> int:
        return len(self.members)

    @property
    def average_similarity(self) -> float:
        if not self.similarity_scores:
            return 1.0
        return sum(self.similarity_scores) / len(self.similarity_scores)

    def to_dict(self) -> dict:
        return {
            'cluster_id': self.cluster_id,
            'representative_text': self.representative.to_dict(),
            'members': [m.to_dict() for m in self.members],
            'similarity_scores': list(self.similarity_scores),
            'cluster_size': self.cluster_size,
            'average_similarity': self.average_similarity,
        }


# =============================================================================
# REGISTRY CONTRACTS
# =============================================================================

@dataclass(frozen=True)
class IngestResult:
    """
    Discriminated outcome of FamilyRegistry.ingest.

    confidence: 1.0 for originals and exact duplicates, the parent
    similarity for mutations, 0.0 for rejected input.
    """
    status: IngestStatus
    family_id: Optional[str] = None
    confidence: float = 0.0
    content_hash: Optional[str] = None
    mutation_id: Optional[str] = None
    mutation_type: Optional[MutationType] = None
    generation: Optional[int] = None
    parent_hash: Optional[str] = None
    semantic_cluster: Optional[SemanticCluster] = None
    error: Optional[Error] = None

    @property
    def is_mutation(self) -> bool:
        return self.status == IngestStatus.MUTATION

    @property
    def is_original(self) -> bool:
        return self.status == IngestStatus.ORIGINAL

    @property
    def is_duplicate(self) -> bool:
        return self.status == IngestStatus.EXACT_DUPLICATE

    def to_dict(self) -> dict:
        if self.error is not None:
            return {
                'is_mutation': False,
                'family_id': self.family_id,
                'confidence': self.confidence,
                'error': self.error.to_dict(),
            }
        data: Dict[str, object] = {
            'is_mutation': self.is_mutation,
            'family_id': self.family_id,
            'confidence': self.confidence,
        }
        if self.is_original:
            data['is_original'] = True
            data['semantic_cluster'] = self.semantic_cluster.value if self.semantic_cluster else None
        elif self.is_duplicate:
            data['mutation_type'] = IngestStatus.EXACT_DUPLICATE.value
        else:
            data['mutation_id'] = self.mutation_id
            data['mutation_type'] = _type_name(self.mutation_type)
            data['generation'] = self.generation
        return data


@dataclass(frozen=True)
class TreeNode:
    """Materialized node of a family tree view."""
    node_id: str
    content: str
    content_hash: str
    kind: NodeKind
    generation: int
    timestamp: Timestamp
    mutation_type: Optional[MutationType] = None
    children: Tuple[TreeNode, ...] = field(default_factory=tuple)

    def to_dict(self) -> dict:
        data = {
            'node_id': self.node_id,
            'content': self.content,
            'hash': self.content_hash,
            'type': self.kind.value,
            'generation': self.generation,
            'timestamp': _iso(self.timestamp),
            'children': [c.to_dict() for c in self.children],
        }
        if self.mutation_type is not None:
            data['mutation_type'] = self.mutation_type.value
        return data


@dataclass(frozen=True)
class TimelineEntry:
    """One event of a family's chronological timeline."""
    event: str  # "ORIGINAL" or "MUTATION"
    content: str
    content_hash: str
    timestamp: Timestamp
    generation: int = 0
    mutation_type: Optional[MutationType] = None

    def to_dict(self) -> dict:
        return {
            'type': self.event,
            'content': self.content,
            'hash': self.content_hash,
            'timestamp': _iso(self.timestamp),
            'generation': self.generation,
            'mutation_type': _type_name(self.mutation_type),
        }


@dataclass(frozen=True)
class SpreadAnalysis:
    """Derived spread metrics, recomputed on every read."""
    spread_rate: float
    active_branches: int
    mutation_velocity: float
    total_generations: int
    mutation_types: Tuple[Tuple[str, int], ...] = field(default_factory=tuple)

    def to_dict(self) -> dict:
        return {
            'spread_rate': self.spread_rate,
            'active_branches': self.active_branches,
            'mutation_velocity': self.mutation_velocity,
            'total_generations': self.total_generations,
            'mutation_types': dict(self.mutation_types),
        }


@dataclass(frozen=True)
class FamilyView:
    """Answer of get_family: the tree plus derived views, or an error."""
    found: bool
    family_id: Optional[str] = None
    original_content: Optional[str] = None
    creation_date: Optional[Timestamp] = None
    semantic_cluster: Optional[SemanticCluster] = None
    mutation_count: int = 0
    mutation_tree: Optional[TreeNode] = None
    mutation_timeline: Tuple[TimelineEntry, ...] = field(default_factory=tuple)
    spread_analysis: Optional[SpreadAnalysis] = None
    error: Optional[Error] = None

    @staticmethod
    def not_found(error: Error) -> FamilyView:
        return FamilyView(found=False, error=error)

    def to_dict(self) -> dict:
        if not self.found:
            return {'found': False, 'error': self.error.to_dict() if self.error else None}
        return {
            'found': True,
            'family_id': self.family_id,
            'original_content': self.original_content,
            'creation_date': _iso(self.creation_date),
            'semantic_cluster': self.semantic_cluster.value if self.semantic_cluster else None,
            'mutation_count': self.mutation_count,
            'mutation_tree': self.mutation_tree.to_dict() if self.mutation_tree else None,
            'mutation_timeline': [e.to_dict() for e in self.mutation_timeline],
            'spread_analysis': self.spread_analysis.to_dict() if self.spread_analysis else None,
        }


@dataclass(frozen=True)
class RecentActivity:
    """A family with mutations inside the active window."""
    family_id: str
    recent_mutations: int
    latest_mutation: Timestamp


@dataclass(frozen=True)
class RegistryStatistics:
    """Registry-wide counters, derived on every call."""
    total_families: int
    total_mutations: int
    active_families: int
    mutation_types: Tuple[Tuple[str, int], ...] = field(default_factory=tuple)
    semantic_clusters: Tuple[Tuple[str, int], ...] = field(default_factory=tuple)
    recent_activity: Tuple[RecentActivity, ...] = field(default_factory=tuple)

    def to_dict(self) -> dict:
        return {
            'total_families': self.total_families,
            'total_mutations': self.total_mutations,
            'active_families': self.active_families,
            'mutation_types': dict(self.mutation_types),
            'semantic_clusters': dict(self.semantic_clusters),
            'recent_activity': [
                {
                    'family_id': a.family_id,
                    'recent_mutations': a.recent_mutations,
                    'latest_mutation': a.latest_mutation.to_iso(),
                }
                for a in self.recent_activity
            ],
        }


@dataclass(frozen=True)
class RegistryTrends:
    most_active_cluster: Optional[str]
    dominant_mutation_type: Optional[str]
    activity_level: str

    def to_dict(self) -> dict:
        return {
            'most_active_cluster': self.most_active_cluster,
            'dominant_mutation_type': self.dominant_mutation_type,
            'activity_level': self.activity_level,
        }


# =============================================================================
# GENEALOGY QUERY CONTRACTS
# =============================================================================

@dataclass(frozen=True)
class PathStep:
    """A node as it appears in genealogy answers."""
    node_id: str
    content_hash: str
    content: str
    kind: NodeKind
    generation: int
    timestamp: Timestamp
    mutation_type: Optional[MutationType] = None

    def to_dict(self) -> dict:
        return {
            'node_id': self.node_id,
            'hash': self.content_hash,
            'content': self.content,
            'type': self.kind.value,
            'generation': self.generation,
            'mutation_type': _type_name(self.mutation_type),
            'timestamp': _iso(self.timestamp),
        }


@dataclass(frozen=True)
class GenealogyPath:
    """Root-to-node path. path[0] is the family original."""
    found: bool
    node_id: Optional[str] = None
    family_id: Optional[str] = None
    path: Tuple[PathStep, ...] = field(default_factory=tuple)
    error: Optional[Error] = None

    def to_dict(self) -> dict:
        if not self.found:
            return {'found': False, 'error': self.error.to_dict() if self.error else None}
        return {
            'found': True,
            'node_id': self.node_id,
            'family_id': self.family_id,
            'path': [s.to_dict() for s in self.path],
        }


@dataclass(frozen=True)
class Descendant:
    """A descendant with its depth below the queried node."""
    step: PathStep
    depth: int
    parent_hash: str


@dataclass(frozen=True)
class DescendantsResult:
    found: bool
    node_id: Optional[str] = None
    family_id: Optional[str] = None
    descendants: Tuple[Descendant, ...] = field(default_factory=tuple)
    error: Optional[Error] = None

    def to_dict(self) -> dict:
        if not self.found:
            return {'found': False, 'error': self.error.to_dict() if self.error else None}
        return {
            'found': True,
            'node_id': self.node_id,
            'family_id': self.family_id,
            'descendants': [
                dict(d.step.to_dict(), depth=d.depth, parent_hash=d.parent_hash)
                for d in self.descendants
            ],
        }


class RelationshipType(Enum):
    """Kinship of two nodes relative to their nearest common ancestor."""
    ANCESTOR_DESCENDANT = "ancestor-descendant"
    DESCENDANT_ANCESTOR = "descendant-ancestor"
    SIBLINGS = "siblings"
    UNCLE_NEPHEW = "uncle-nephew"
    COUSINS = "cousins"


@dataclass(frozen=True)
class CommonAncestorResult:
    """
    Nearest common ancestor of two nodes of the same family.

    generation_distance_N is the number of edges from node N up to the
    nearest common ancestor.
    """
    found: bool
    family_id: Optional[str] = None
    nearest_common_ancestor: Optional[PathStep] = None
    all_common_ancestors: Tuple[PathStep, ...] = field(default_factory=tuple)
    generation_distance_1: int = 0
    generation_distance_2: int = 0
    relationship_type: Optional[RelationshipType] = None
    error: Optional[Error] = None

    def to_dict(self) -> dict:
        if not self.found:
            return {'found': False, 'error': self.error.to_dict() if self.error else None}
        return {
            'found': True,
            'family_id': self.family_id,
            'most_recent_common_ancestor': self.nearest_common_ancestor.to_dict(),
            'all_common_ancestors': [s.to_dict() for s in self.all_common_ancestors],
            'relationship_analysis': {
                'generation_distance_1': self.generation_distance_1,
                'generation_distance_2': self.generation_distance_2,
                'relationship_type': self.relationship_type.value,
            },
        }


@dataclass(frozen=True)
class TreeMetrics:
    """Structural metrics of a family tree."""
    total_nodes: int
    max_depth: int
    average_branching_factor: float
    max_branching_factor: int
    leaf_nodes: int

    @property
    def leaf_ratio(self) -> float:
        return self.leaf_nodes / self.total_nodes if self.total_nodes else 0.0


@dataclass(frozen=True)
class EvolutionInsight:
    insight_type: str
    message: str
    severity: str


@dataclass(frozen=True)
class FamilyPatternAnalysis:
    """Whole-tree mutation pattern analysis."""
    found: bool
    family_id: Optional[str] = None
    tree_metrics: Optional[TreeMetrics] = None
    mutation_type_analysis: Dict[str, Dict[str, float]] = field(default_factory=dict)
    generation_distribution: Dict[int, int] = field(default_factory=dict)
    temporal: Dict[str, float] = field(default_factory=dict)
    evolution_complexity: float = 0.0
    insights: Tuple[EvolutionInsight, ...] = field(default_factory=tuple)
    error: Optional[Error] = None

    def to_dict(self) -> dict:
        if not self.found:
            return {'found': False, 'error': self.error.to_dict() if self.error else None}
        m = self.tree_metrics
        return {
            'found': True,
            'family_id': self.family_id,
            'tree_metrics': {
                'total_nodes': m.total_nodes,
                'max_depth': m.max_depth,
                'average_branching_factor': m.average_branching_factor,
                'max_branching_factor': m.max_branching_factor,
                'leaf_nodes': m.leaf_nodes,
                'leaf_node_ratio': m.leaf_ratio,
            },
            'mutation_type_analysis': self.mutation_type_analysis,
            'generation_distribution': {str(k): v for k, v in self.generation_distribution.items()},
            'temporal': self.temporal,
            'evolution_complexity': self.evolution_complexity,
            'insights': [
                {'type': i.insight_type, 'message': i.message, 'severity': i.severity}
                for i in self.insights
            ],
        }


# =============================================================================
# CROSS-FAMILY SEARCH CONTRACTS
# =============================================================================

@dataclass(frozen=True)
class FamilyContext:
    family_id: str
    creation_date: Timestamp
    semantic_cluster: SemanticCluster
    total_mutations: int

    def to_dict(self) -> dict:
        return {
            'family_id': self.family_id,
            'creation_date': self.creation_date.to_iso(),
            'semantic_cluster': self.semantic_cluster.value,
            'total_mutations': self.total_mutations,
        }


@dataclass(frozen=True)
class VariantRelationship:
    """
    How a matched text sits in its family.

    relationship_type: "original_variant" or "mutation_variant"
    mutation_path: root-to-match path (empty for originals)
    """
    relationship_type: str
    confidence: float
    generation_distance: int
    mutation_path: Tuple[PathStep, ...] = field(default_factory=tuple)

    def to_dict(self) -> dict:
        return {
            'relationship_type': self.relationship_type,
            'confidence': self.confidence,
            'generation_distance': self.generation_distance,
            'mutation_path': [s.to_dict() for s in self.mutation_path],
        }


@dataclass(frozen=True)
class SemanticVariant:
    """A variant match enriched with its family context."""
    match: VariantMatch
    family_context: FamilyContext
    variant_relationship: VariantRelationship
    related_variant_types: bool = False

    def to_dict(self) -> dict:
        data = self.match.to_dict()
        data.update({
            'family_context': self.family_context.to_dict(),
            'variant_relationship': self.variant_relationship.to_dict(),
            'related_variant_types': self.related_variant_types,
        })
        return data


@dataclass(frozen=True)
class VariantSearchResult:
    query_content: str
    variants: Tuple[SemanticVariant, ...] = field(default_factory=tuple)
    analysis_timestamp: Optional[Timestamp] = None
    error: Optional[Error] = None

    @property
    def total_variants_found(self) -> int:
        return len(self.variants)

    def to_dict(self) -> dict:
        data = {
            'query_content': self.query_content,
            'total_variants_found': self.total_variants_found,
            'variants': [v.to_dict() for v in self.variants],
            'analysis_timestamp': _iso(self.analysis_timestamp),
        }
        if self.error is not None:
            data['error'] = self.error.to_dict()
        return data


@dataclass(frozen=True)
class MutationCluster:
    """A content cluster enriched with the families it spans."""
    cluster: TextCluster
    families_involved: Tuple[str, ...]
    cross_family_variants: int
    dominant_domain: str
    mutation_patterns: Tuple[Tuple[str, int], ...] = field(default_factory=tuple)

    def to_dict(self) -> dict:
        data = self.cluster.to_dict()
        data.update({
            'mutation_families_involved': list(self.families_involved),
            'cross_family_variants': self.cross_family_variants,
            'semantic_analysis': {
                'dominant_domain': self.dominant_domain,
                'mutation_patterns': dict(self.mutation_patterns),
            },
        })
        return data


@dataclass(frozen=True)
class ClusterResult:
    clusters: Tuple[MutationCluster, ...] = field(default_factory=tuple)
    error: Optional[Error] = None

    def to_dict(self) -> dict:
        data = {'clusters': [c.to_dict() for c in self.clusters]}
        if self.error is not None:
            data['error'] = self.error.to_dict()
        return data


# =============================================================================
# OBSERVABILITY CONTRACTS
# =============================================================================

class AuditEventType(Enum):
    """Explicit audit event types."""
    FAMILY_CREATED = "family_created"
    MUTATION_RECORDED = "mutation_recorded"
    DUPLICATE_DETECTED = "duplicate_detected"
    INPUT_REJECTED = "input_rejected"
    PREDICTION = "prediction"
    QUERY = "query"
    ERROR = "error"


@dataclass(frozen=True)
class AuditLogEntry:
    """Immutable audit log entry."""
    entry_id: str
    event_type: AuditEventType
    timestamp: Timestamp
    layer: str
    action: str
    entity_id: Optional[str] = None
    entity_type: Optional[str] = None
    metadata: Tuple[Tuple[str, str], ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class MetricPoint:
    """Immutable metric data point."""
    metric_name: str
    value: float
    timestamp: Timestamp
    labels: Tuple[Tuple[str, str], ...] = field(default_factory=tuple)
