"""
Genealogy Query Interfaces

RESPONSIBILITY: Read-only ancestor, descendant, common-ancestor and
                whole-tree pattern queries over one family
ALLOWED INPUTS: Node identifiers (mutation_id, content_hash or family_id)
OUTPUTS: GenealogyPath, DescendantsResult, CommonAncestorResult,
         FamilyPatternAnalysis (immutable, explicit error states)

WHAT THIS LAYER MUST NOT DO:
============================
- Mutate any family or index
- Attach, classify or score content
- Predict future mutations
- Raise on unknown identifiers (answers found=False with an Error)

BOUNDARY ENFORCEMENT:
=====================
- Reads families through the FamilyRepository interface only
- Every query works on a point-in-time GenealogyGraph built from a copy of
  the family's node list
- Structural metrics come from networkx; no ranking or importance scores
"""

from __future__ import annotations
from collections import Counter, deque
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple, Union
import hashlib
import logging
import math

import networkx as nx

from ..contracts.base import Error, ErrorCode, Timestamp, MutationType, NodeKind
from ..contracts.events import (
    MutationFamily, PathStep, GenealogyPath, Descendant, DescendantsResult,
    RelationshipType, CommonAncestorResult, TreeMetrics, EvolutionInsight,
    FamilyPatternAnalysis, AuditLogEntry, AuditEventType
)
from ..storage import FamilyRepository
from ..observability import AuditLogCollector

logger = logging.getLogger(__name__)


# =============================================================================
# GENEALOGY GRAPH (networkx view of one family)
# =============================================================================

class GenealogyGraph:
    """
    Directed parent -> child graph of a single family.

    Nodes are content hashes; each carries its PathStep under the "step"
    attribute. Edges follow parent_hash, so the graph is an arborescence
    rooted at the original.
    """

    def __init__(self, family: MutationFamily):
        self._family_id = family.family_id
        self._root = family.original.content_hash
        self._graph = nx.DiGraph()

        original = family.original
        self._graph.add_node(self._root, step=PathStep(
            node_id=family.family_id,
            content_hash=self._root,
            content=original.content,
            kind=NodeKind.ORIGINAL,
            generation=0,
            timestamp=original.timestamp
        ))

        for node in list(family.mutations):
            self._graph.add_node(node.content_hash, step=PathStep(
                node_id=node.mutation_id,
                content_hash=node.content_hash,
                content=node.content,
                kind=NodeKind.MUTATION,
                generation=node.generation,
                timestamp=node.timestamp,
                mutation_type=node.mutation_type
            ), similarity=node.similarity_score)
            self._graph.add_edge(node.parent_hash, node.content_hash)

    @property
    def family_id(self) -> str:
        return self._family_id

    @property
    def root(self) -> str:
        return self._root

    @property
    def graph(self) -> nx.DiGraph:
        return self._graph

    def contains(self, content_hash: str) -> bool:
        return self._graph.has_node(content_hash)

    def step(self, content_hash: str) -> PathStep:
        return self._graph.nodes[content_hash]['step']

    def is_tree(self) -> bool:
        """Every parent resolved and no cycles: a single arborescence."""
        return nx.is_arborescence(self._graph)

    def path_to(self, content_hash: str) -> List[str]:
        """Root-first list of hashes ending at `content_hash`."""
        return nx.shortest_path(self._graph, self._root, content_hash)

    def children(self, content_hash: str) -> List[str]:
        return list(self._graph.successors(content_hash))

    def parent(self, content_hash: str) -> Optional[str]:
        parents = list(self._graph.predecessors(content_hash))
        return parents[0] if parents else None

    def metrics(self) -> TreeMetrics:
        depths = nx.single_source_shortest_path_length(self._graph, self._root)
        out_degrees = [degree for _, degree in self._graph.out_degree()]
        branching = [d for d in out_degrees if d > 0]
        return TreeMetrics(
            total_nodes=self._graph.number_of_nodes(),
            max_depth=max(depths.values()),
            average_branching_factor=sum(branching) / len(branching) if branching else 0.0,
            max_branching_factor=max(out_degrees),
            leaf_nodes=sum(1 for d in out_degrees if d == 0)
        )


# =============================================================================
# QUERY ENGINE
# =============================================================================

@dataclass
class GenealogyQueryConfig:
    """Trigger constants of the evolution insights."""
    rapid_evolution_depth: int = 5
    viral_branching_factor: float = 3.0
    high_diversity_types: int = 4
    max_complexity: float = 10.0


NodeRef = Tuple[str, str]  # (family_id, content_hash)


class GenealogyQueryEngine:
    """
    Genealogy queries over the families held by a FamilyRepository.

    BOUNDARY ENFORCEMENT:
    - ONLY performs read operations
    - Returns explicit found/error results for every query
    """

    def __init__(
        self,
        repository: FamilyRepository,
        config: Optional[GenealogyQueryConfig] = None,
        audit: Optional[AuditLogCollector] = None
    ):
        self._repository = repository
        self._config = config or GenealogyQueryConfig()
        self._audit = audit or AuditLogCollector(layer_name="query")
        self._query_counter = 0

    # -------------------------------------------------------------------------
    # Resolution
    # -------------------------------------------------------------------------

    def resolve(self, node_id: str) -> Optional[NodeRef]:
        """Map a mutation_id, content_hash or family_id onto (family_id, content_hash)."""
        entry = self._repository.get_entry(node_id) or self._repository.resolve_mutation(node_id)
        if entry is not None:
            return entry.family_id, entry.content_hash
        family = self._repository.get_family(node_id)
        if family is not None:
            return family.family_id, family.original.content_hash
        return None

    def graph_for(self, family_id: str) -> Optional[GenealogyGraph]:
        family = self._repository.get_family(family_id)
        return GenealogyGraph(family) if family is not None else None

    def _locate(self, node_id: str) -> Tuple[Optional[GenealogyGraph], Optional[str], Optional[Error]]:
        ref = self.resolve(node_id)
        if ref is None:
            return None, None, Error.create(ErrorCode.NODE_NOT_FOUND, "Node not found", node_id=node_id)
        family_id, content_hash = ref
        graph = self.graph_for(family_id)
        if graph is None or not graph.contains(content_hash):
            return None, None, Error.create(
                ErrorCode.INTERNAL, "Indexed node is missing from its family",
                node_id=node_id, family_id=family_id
            )
        return graph, content_hash, None

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def genealogy_path(self, node_id: str) -> GenealogyPath:
        """Walk parent links up to the original; the answer is root first."""
        graph, content_hash, error = self._locate(node_id)
        if error is not None:
            return GenealogyPath(found=False, node_id=node_id, error=error)

        try:
            hashes = graph.path_to(content_hash)
        except nx.NetworkXNoPath:
            return GenealogyPath(found=False, node_id=node_id, error=Error.create(
                ErrorCode.INTERNAL, "Node is not connected to its family original",
                node_id=node_id, family_id=graph.family_id
            ))

        self._log_audit("genealogy_path", node_id, (("length", str(len(hashes))),))
        return GenealogyPath(
            found=True,
            node_id=node_id,
            family_id=graph.family_id,
            path=tuple(graph.step(h) for h in hashes)
        )

    def descendants(
        self,
        node_id: str,
        max_depth: Optional[int] = None,
        filter_by_type: Optional[Union[MutationType, str]] = None
    ) -> DescendantsResult:
        """
        Breadth-first descendants of a node, the node itself excluded.

        max_depth bounds the distance below the node (1 = direct children).
        filter_by_type only filters the answer; traversal still passes
        through nodes of other types.
        """
        graph, content_hash, error = self._locate(node_id)
        if error is not None:
            return DescendantsResult(found=False, node_id=node_id, error=error)

        wanted = _as_mutation_type(filter_by_type)
        if filter_by_type is not None and wanted is None:
            return DescendantsResult(found=False, node_id=node_id, error=Error.create(
                ErrorCode.VALIDATION, "Unknown mutation type filter", filter_by_type=str(filter_by_type)
            ))

        found: List[Descendant] = []
        queue = deque((child, 1) for child in graph.children(content_hash))
        while queue:
            current, depth = queue.popleft()
            if max_depth is not None and depth > max_depth:
                continue
            step = graph.step(current)
            if wanted is None or step.mutation_type == wanted:
                found.append(Descendant(step=step, depth=depth, parent_hash=graph.parent(current)))
            queue.extend((child, depth + 1) for child in graph.children(current))

        self._log_audit("descendants", node_id, (("count", str(len(found))),))
        return DescendantsResult(
            found=True,
            node_id=node_id,
            family_id=graph.family_id,
            descendants=tuple(found)
        )

    def common_ancestors(self, node_id_1: str, node_id_2: str) -> CommonAncestorResult:
        """
        Nearest shared ancestor of two nodes of one family.

        A node counts as its own ancestor, so an ancestor/descendant pair
        answers with the ancestor itself.
        """
        path_1 = self.genealogy_path(node_id_1)
        if not path_1.found:
            return CommonAncestorResult(found=False, error=path_1.error)
        path_2 = self.genealogy_path(node_id_2)
        if not path_2.found:
            return CommonAncestorResult(found=False, error=path_2.error)

        if path_1.family_id != path_2.family_id:
            return CommonAncestorResult(found=False, error=Error.create(
                ErrorCode.FAMILY_NOT_FOUND,
                "Nodes belong to different families and share no ancestor",
                family_1=path_1.family_id, family_2=path_2.family_id
            ))

        hashes_2 = {step.content_hash for step in path_2.path}
        shared = [step for step in path_1.path if step.content_hash in hashes_2]
        nearest = shared[-1]

        distance_1 = len(path_1.path) - 1 - path_1.path.index(nearest)
        distance_2 = len(path_2.path) - 1 - path_2.path.index(nearest)

        return CommonAncestorResult(
            found=True,
            family_id=path_1.family_id,
            nearest_common_ancestor=nearest,
            all_common_ancestors=tuple(reversed(shared)),
            generation_distance_1=distance_1,
            generation_distance_2=distance_2,
            relationship_type=relationship_between(distance_1, distance_2)
        )

    def analyze_family_patterns(self, family_id: str) -> FamilyPatternAnalysis:
        """Tree shape, type mix, generation spread and timing of one family."""
        family = self._repository.get_family(family_id)
        if family is None:
            return FamilyPatternAnalysis(found=False, family_id=family_id, error=Error.create(
                ErrorCode.FAMILY_NOT_FOUND, "Family not found", family_id=family_id
            ))

        graph = GenealogyGraph(family)
        if not graph.is_tree():
            return FamilyPatternAnalysis(found=False, family_id=family_id, error=Error.create(
                ErrorCode.INTERNAL, "Family graph is not a rooted tree", family_id=family_id
            ))

        mutations = list(family.mutations)
        metrics = graph.metrics()

        type_analysis: Dict[str, Dict[str, float]] = {}
        for label, count in Counter(m.mutation_type.value for m in mutations).items():
            members = [m for m in mutations if m.mutation_type.value == label]
            type_analysis[label] = {
                'count': count,
                'percentage': count / len(mutations) * 100,
                'average_generation': sum(m.generation for m in members) / count,
                'average_similarity': sum(m.similarity_score for m in members) / count,
            }

        complexity = min(
            self._config.max_complexity,
            0.3 * metrics.max_depth
            + 0.4 * metrics.average_branching_factor
            + 0.3 * math.log(metrics.total_nodes)
        )

        self._log_audit("analyze_family_patterns", family_id, (("nodes", str(metrics.total_nodes)),))
        return FamilyPatternAnalysis(
            found=True,
            family_id=family_id,
            tree_metrics=metrics,
            mutation_type_analysis=type_analysis,
            generation_distribution=dict(sorted(Counter(m.generation for m in mutations).items())),
            temporal=_temporal_summary(mutations),
            evolution_complexity=complexity,
            insights=self._insights(metrics, len(type_analysis))
        )

    def _insights(self, metrics: TreeMetrics, distinct_types: int) -> Tuple[EvolutionInsight, ...]:
        insights: List[EvolutionInsight] = []
        if metrics.max_depth > self._config.rapid_evolution_depth:
            insights.append(EvolutionInsight(
                insight_type="rapid_evolution",
                message=f"This misinformation has evolved through {metrics.max_depth + 1} generations",
                severity="high"
            ))
        if metrics.average_branching_factor > self._config.viral_branching_factor:
            insights.append(EvolutionInsight(
                insight_type="viral_spread",
                message=(
                    f"High branching factor ({metrics.average_branching_factor:.1f}) "
                    "indicates viral spread"
                ),
                severity="high"
            ))
        if distinct_types > self._config.high_diversity_types:
            insights.append(EvolutionInsight(
                insight_type="high_diversity",
                message=f"{distinct_types} different mutation types detected - highly adaptive misinformation",
                severity="medium"
            ))
        return tuple(insights)

    # -------------------------------------------------------------------------
    # Audit
    # -------------------------------------------------------------------------

    def _log_audit(self, action: str, entity_id: Optional[str] = None, metadata: tuple = ()):
        """Add entry to the audit collector."""
        self._query_counter += 1
        stamp = Timestamp.now()
        entry_id = hashlib.sha256(
            f"query_{action}|{self._query_counter}|{stamp.value.timestamp()}".encode()
        ).hexdigest()[:16]

        self._audit.collect(AuditLogEntry(
            entry_id=f"audit_{entry_id}",
            event_type=AuditEventType.QUERY,
            timestamp=stamp,
            layer="query",
            action=action,
            entity_id=entity_id,
            entity_type="node",
            metadata=metadata
        ))


def relationship_between(distance_1: int, distance_2: int) -> RelationshipType:
    """Kinship label from each node's edge distance to the nearest common ancestor."""
    if distance_1 == 0:
        return RelationshipType.ANCESTOR_DESCENDANT
    if distance_2 == 0:
        return RelationshipType.DESCENDANT_ANCESTOR
    if distance_1 == 1 and distance_2 == 1:
        return RelationshipType.SIBLINGS
    if distance_1 == 1 or distance_2 == 1:
        return RelationshipType.UNCLE_NEPHEW
    return RelationshipType.COUSINS


def _as_mutation_type(value: Optional[Union[MutationType, str]]) -> Optional[MutationType]:
    if value is None or isinstance(value, MutationType):
        return value
    try:
        return MutationType(str(value).upper())
    except ValueError:
        return None


def _temporal_summary(mutations) -> Dict[str, float]:
    stamps = sorted(m.timestamp.value for m in mutations)
    if len(stamps) < 2:
        return {'total_timespan_hours': 0.0, 'average_interval_hours': 0.0, 'mutation_rate': 0.0}

    span = (stamps[-1] - stamps[0]).total_seconds() / 3600.0
    intervals = [(b - a).total_seconds() / 3600.0 for a, b in zip(stamps, stamps[1:])]
    return {
        'total_timespan_hours': span,
        'average_interval_hours': sum(intervals) / len(intervals),
        'mutation_rate': len(mutations) / span if span > 0 else 0.0,
    }


__all__ = [
    'GenealogyGraph', 'GenealogyQueryConfig', 'GenealogyQueryEngine', 'relationship_between',
]
