"""
Storage Layer Tests

Key-value backend semantics and the indices the repository maintains.
"""

import pytest

from mutation_engine.contracts.base import MutationType, NodeKind
from mutation_engine.storage import InMemoryKeyValueStore, FamilyRepository, KeyValueStore

from tests.fixtures import ORIGINAL, PARAPHRASE, NUMERIC_VARIANT, UNRELATED, make_family


def _with_nodes():
    """A stored root-only family plus two nodes ready to append."""
    donor = make_family(ORIGINAL, [
        (PARAPHRASE, MutationType.CONTEXT_SHIFT, 1),
        (NUMERIC_VARIANT, MutationType.NUMERICAL_CHANGE, 2),
    ], family_id="family_a")
    repo = FamilyRepository()
    repo.put_family(make_family(ORIGINAL, family_id="family_a"))
    return repo, donor.mutations


class TestInMemoryKeyValueStore:

    def test_get_put(self):
        store = InMemoryKeyValueStore()
        assert store.get("missing") is None
        store.put("k", 1)
        assert store.get("k") == 1
        assert len(store) == 1

    def test_scan_by_prefix_insertion_order(self):
        store = InMemoryKeyValueStore()
        store.put("b:2", "x")
        store.put("a:1", "y")
        store.put("b:1", "z")
        assert list(store.scan_by_prefix("b:")) == [("b:2", "x"), ("b:1", "z")]

    def test_scan_tolerates_writes_during_iteration(self):
        store = InMemoryKeyValueStore()
        store.put("p:1", 1)
        for key, _ in store.scan_by_prefix("p:"):
            store.put(key + "x", 2)
        assert store.get("p:1x") == 2

    def test_abstract_backend_raises(self):
        with pytest.raises(NotImplementedError):
            KeyValueStore().get("k")


class TestFamilyRepository:
    """Domain mapping onto namespaced keys."""

    def test_put_family_indexes_original(self):
        repo = FamilyRepository()
        family = make_family(ORIGINAL, family_id="family_a")
        repo.put_family(family)

        assert repo.get_family("family_a") is family
        entry = repo.get_entry(family.original.content_hash)
        assert entry.is_original
        assert entry.node_id == "family_a"
        assert entry.generation == 0
        assert repo.family_count() == 1

    def test_append_mutation_updates_indices(self):
        repo, nodes = _with_nodes()
        root_hash = repo.get_family("family_a").original.content_hash
        for node in nodes:
            repo.append_mutation("family_a", node)

        assert repo.get_family("family_a").mutation_count == 2
        assert repo.children_of(root_hash) == [n.content_hash for n in nodes]
        resolved = repo.resolve_mutation("mut_0001")
        assert resolved.kind == NodeKind.MUTATION
        assert resolved.content == NUMERIC_VARIANT

    def test_append_to_unknown_family_raises(self):
        repo, nodes = _with_nodes()
        with pytest.raises(KeyError):
            repo.append_mutation("family_missing", nodes[0])

    def test_children_of_returns_copy(self):
        repo, nodes = _with_nodes()
        repo.append_mutation("family_a", nodes[0])
        children = repo.children_of(nodes[0].parent_hash)
        children.append("tampered")
        assert repo.children_of(nodes[0].parent_hash) == [nodes[0].content_hash]

    def test_scan_entries_and_prefix(self):
        repo, nodes = _with_nodes()
        repo.append_mutation("family_a", nodes[0])
        repo.put_family(make_family(UNRELATED, family_id="family_b"))

        assert [e.content for e in repo.scan_entries()] == [ORIGINAL, PARAPHRASE, UNRELATED]
        assert [f.family_id for f in repo.scan_by_prefix()] == ["family_a", "family_b"]
        assert [f.family_id for f in repo.scan_by_prefix("family_b")] == ["family_b"]

    def test_fingerprint_bucket(self):
        repo, _ = _with_nodes()
        family = repo.get_family("family_a")
        bucket = repo.scan_fingerprint_bucket(family.original.fingerprint.semantic_fingerprint)
        assert [e.content_hash for e in bucket] == [family.original.content_hash]

    def test_unknown_lookups(self):
        repo = FamilyRepository()
        assert repo.get_family("nope") is None
        assert repo.resolve_mutation("nope") is None
        assert not repo.contains_hash("nope")
        assert repo.children_of("nope") == []
