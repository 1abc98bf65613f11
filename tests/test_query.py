"""
Genealogy Query Tests

Tree used throughout (built through the registry):

    A ── B ── C ── E
    └── D

A is the original; B and D add one word each, C adds a time reference,
E adds one more word to C.
"""

import dataclasses
import math

import pytest

from mutation_engine.contracts.base import ErrorCode, MutationType, NodeKind
from mutation_engine.contracts.events import AuditEventType, RelationshipType
from mutation_engine.core import FamilyRegistry
from mutation_engine.observability import AuditLogCollector
from mutation_engine.query import (
    GenealogyGraph, GenealogyQueryConfig, GenealogyQueryEngine, relationship_between
)
from mutation_engine.storage import FamilyRepository

from tests.fixtures import (
    ORIGINAL, PARAPHRASE, NUMERIC_VARIANT, UNRELATED, FixedClock, make_family, stamp
)


TEXT_A = "alpha beta gamma delta epsilon zeta"
TEXT_B = TEXT_A + " eta"
TEXT_C = TEXT_B + " today"
TEXT_D = TEXT_A + " theta"
TEXT_E = TEXT_C + " iota"


@pytest.fixture
def tree():
    """Registry holding the A..E family plus an unrelated family."""
    registry = FamilyRegistry(clock=FixedClock())
    ids = {}
    for name, text, hours in (
        ("A", TEXT_A, 0), ("B", TEXT_B, 1), ("C", TEXT_C, 2), ("D", TEXT_D, 3), ("E", TEXT_E, 5),
    ):
        result = registry.ingest(text, timestamp=stamp(hours))
        ids[name] = result.mutation_id or result.family_id
    ids["X"] = registry.ingest(UNRELATED).family_id
    return registry, ids


@pytest.fixture
def queries(tree):
    registry, _ = tree
    return GenealogyQueryEngine(registry.repository)


def _node_ids(steps):
    return [s.node_id for s in steps]


class TestTreeShape:
    """Sanity checks on the fixture itself."""

    def test_parents(self, tree):
        registry, ids = tree
        view = registry.get_family(ids["A"])
        root = view.mutation_tree
        assert [c.node_id for c in root.children] == [ids["B"], ids["D"]]
        assert root.children[0].children[0].node_id == ids["C"]
        assert root.children[0].children[0].children[0].node_id == ids["E"]


class TestGenealogyPath:
    """Root-first ancestry of a node."""

    def test_leaf_path(self, queries, tree):
        _, ids = tree
        result = queries.genealogy_path(ids["E"])
        assert result.found
        assert _node_ids(result.path) == [ids["A"], ids["B"], ids["C"], ids["E"]]
        assert result.path[0].kind == NodeKind.ORIGINAL
        assert [s.generation for s in result.path] == [0, 1, 2, 3]

    def test_root_path_by_family_id(self, queries, tree):
        _, ids = tree
        result = queries.genealogy_path(ids["A"])
        assert _node_ids(result.path) == [ids["A"]]

    def test_lookup_by_content_hash(self, queries, tree):
        registry, ids = tree
        content_hash = registry.repository.resolve_mutation(ids["C"]).content_hash
        assert _node_ids(queries.genealogy_path(content_hash).path)[-1] == ids["C"]

    def test_unknown_node(self, queries):
        result = queries.genealogy_path("mut_missing")
        assert not result.found
        assert result.error.code == ErrorCode.NODE_NOT_FOUND


class TestDescendants:
    """Breadth-first descendants with depth and type filters."""

    def test_all_descendants(self, queries, tree):
        _, ids = tree
        result = queries.descendants(ids["A"])
        assert _node_ids(d.step for d in result.descendants) == [ids["B"], ids["D"], ids["C"], ids["E"]]
        assert [d.depth for d in result.descendants] == [1, 1, 2, 3]

    def test_max_depth(self, queries, tree):
        _, ids = tree
        result = queries.descendants(ids["A"], max_depth=1)
        assert _node_ids(d.step for d in result.descendants) == [ids["B"], ids["D"]]

    def test_type_filter_traverses_other_types(self, queries, tree):
        """E is reachable only through C, and C is not a word substitution."""
        _, ids = tree
        result = queries.descendants(ids["A"], filter_by_type=MutationType.WORD_SUBSTITUTION)
        assert _node_ids(d.step for d in result.descendants) == [ids["B"], ids["D"], ids["E"]]

    def test_type_filter_accepts_strings(self, queries, tree):
        _, ids = tree
        result = queries.descendants(ids["A"], filter_by_type="time_shift")
        assert _node_ids(d.step for d in result.descendants) == [ids["C"]]

    def test_unknown_type_filter(self, queries, tree):
        _, ids = tree
        result = queries.descendants(ids["A"], filter_by_type="bogus")
        assert not result.found
        assert result.error.code == ErrorCode.VALIDATION

    def test_leaf_has_no_descendants(self, queries, tree):
        _, ids = tree
        result = queries.descendants(ids["E"])
        assert result.found
        assert result.descendants == ()


class TestCommonAncestors:
    """Nearest common ancestor and kinship labels."""

    def test_siblings(self, queries, tree):
        _, ids = tree
        result = queries.common_ancestors(ids["B"], ids["D"])
        assert result.nearest_common_ancestor.node_id == ids["A"]
        assert result.relationship_type == RelationshipType.SIBLINGS

    def test_uncle_nephew(self, queries, tree):
        _, ids = tree
        result = queries.common_ancestors(ids["C"], ids["D"])
        assert result.generation_distance_1 == 2
        assert result.generation_distance_2 == 1
        assert result.relationship_type == RelationshipType.UNCLE_NEPHEW

    def test_ancestor_is_its_own_common_ancestor(self, queries, tree):
        _, ids = tree
        result = queries.common_ancestors(ids["B"], ids["E"])
        assert result.nearest_common_ancestor.node_id == ids["B"]
        assert _node_ids(result.all_common_ancestors) == [ids["B"], ids["A"]]
        assert result.relationship_type == RelationshipType.ANCESTOR_DESCENDANT

        reverse = queries.common_ancestors(ids["E"], ids["B"])
        assert reverse.relationship_type == RelationshipType.DESCENDANT_ANCESTOR

    def test_different_families(self, queries, tree):
        _, ids = tree
        result = queries.common_ancestors(ids["B"], ids["X"])
        assert not result.found
        assert result.error.code == ErrorCode.FAMILY_NOT_FOUND

    def test_unknown_node(self, queries, tree):
        _, ids = tree
        result = queries.common_ancestors(ids["B"], "mut_missing")
        assert result.error.code == ErrorCode.NODE_NOT_FOUND

    @pytest.mark.parametrize("d1,d2,expected", [
        (0, 3, RelationshipType.ANCESTOR_DESCENDANT),
        (2, 0, RelationshipType.DESCENDANT_ANCESTOR),
        (1, 1, RelationshipType.SIBLINGS),
        (1, 3, RelationshipType.UNCLE_NEPHEW),
        (2, 2, RelationshipType.COUSINS),
    ])
    def test_relationship_table(self, d1, d2, expected):
        assert relationship_between(d1, d2) == expected


class TestFamilyPatterns:
    """Whole-tree analysis."""

    def test_tree_metrics(self, queries, tree):
        _, ids = tree
        analysis = queries.analyze_family_patterns(ids["A"])
        m = analysis.tree_metrics
        assert (m.total_nodes, m.max_depth, m.max_branching_factor, m.leaf_nodes) == (5, 3, 2, 2)
        assert m.average_branching_factor == pytest.approx(4 / 3)
        assert analysis.evolution_complexity == pytest.approx(0.9 + 0.4 * 4 / 3 + 0.3 * math.log(5))
        assert analysis.generation_distribution == {1: 2, 2: 1, 3: 1}
        assert analysis.mutation_type_analysis["WORD_SUBSTITUTION"]["count"] == 3
        assert analysis.mutation_type_analysis["TIME_SHIFT"]["percentage"] == pytest.approx(25.0)
        assert analysis.insights == ()

    def test_temporal_summary(self, queries, tree):
        _, ids = tree
        temporal = queries.analyze_family_patterns(ids["A"]).temporal
        assert temporal["total_timespan_hours"] == pytest.approx(4.0)
        assert temporal["average_interval_hours"] == pytest.approx(4 / 3)
        assert temporal["mutation_rate"] == pytest.approx(1.0)

    def test_star_family_complexity(self):
        """Root with two children: depth 1, branching 2, three nodes."""
        registry = FamilyRegistry(clock=FixedClock())
        family_id = registry.ingest(ORIGINAL).family_id
        registry.ingest(PARAPHRASE)
        registry.ingest(NUMERIC_VARIANT)
        analysis = GenealogyQueryEngine(registry.repository).analyze_family_patterns(family_id)
        assert analysis.evolution_complexity == pytest.approx(0.3 + 0.8 + 0.3 * math.log(3))
        assert analysis.tree_metrics.leaf_ratio == pytest.approx(2 / 3)

    def test_insights_fire_on_low_thresholds(self, tree):
        registry, ids = tree
        config = GenealogyQueryConfig(rapid_evolution_depth=2, viral_branching_factor=1.0, high_diversity_types=1)
        analysis = GenealogyQueryEngine(registry.repository, config=config).analyze_family_patterns(ids["A"])
        assert [i.insight_type for i in analysis.insights] == ["rapid_evolution", "viral_spread", "high_diversity"]
        assert "4 generations" in analysis.insights[0].message

    def test_unknown_family(self, queries):
        analysis = queries.analyze_family_patterns("family_missing")
        assert not analysis.found
        assert analysis.error.code == ErrorCode.FAMILY_NOT_FOUND

    def test_broken_family_is_reported(self):
        """A node whose parent is outside the family breaks the tree."""
        family = make_family(ORIGINAL, [(PARAPHRASE, MutationType.CONTEXT_SHIFT, 1)], family_id="family_broken")
        family.mutations[0] = dataclasses.replace(family.mutations[0], parent_hash="dangling")
        repository = FamilyRepository()
        repository.put_family(family)

        analysis = GenealogyQueryEngine(repository).analyze_family_patterns("family_broken")
        assert not analysis.found
        assert analysis.error.code == ErrorCode.INTERNAL


class TestGenealogyGraph:

    def test_graph_is_arborescence(self):
        family = make_family(ORIGINAL, [
            (PARAPHRASE, MutationType.CONTEXT_SHIFT, 1),
            (NUMERIC_VARIANT, MutationType.NUMERICAL_CHANGE, 2),
        ])
        graph = GenealogyGraph(family)
        assert graph.is_tree()
        assert graph.root == family.original.content_hash
        assert len(graph.children(graph.root)) == 2
        assert graph.parent(graph.root) is None


class TestQueryAudit:

    def test_queries_are_audited(self, tree):
        registry, ids = tree
        audit = AuditLogCollector(layer_name="query")
        engine = GenealogyQueryEngine(registry.repository, audit=audit)
        engine.genealogy_path(ids["E"])
        engine.descendants(ids["A"])

        entries = audit.get_entries(event_type=AuditEventType.QUERY)
        assert [e.action for e in entries] == ["genealogy_path", "descendants"]
        assert all(e.layer == "query" for e in entries)
