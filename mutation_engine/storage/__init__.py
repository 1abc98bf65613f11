"""
Family Storage Layer

RESPONSIBILITY: Hold families, the content-hash index and the child index
ALLOWED INPUTS: MutationFamily, MutationNode, ContentIndexEntry
OUTPUTS: Stored records and prefix scans

WHAT THIS LAYER MUST NOT DO:
============================
- Compare texts or classify mutations
- Decide where a node attaches (the registry does)
- Delete or rewrite stored records (append-only)

BOUNDARY ENFORCEMENT:
=====================
- KeyValueStore is the only persistence seam: get / put / scan_by_prefix
- FamilyRepository maps the domain onto namespaced keys
- The parent_hash -> children index is maintained on insert, never
  re-derived by scanning
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Dict, Iterator, List, Optional, Tuple

from ..contracts.base import Timestamp, NodeKind
from ..contracts.events import MutationFamily, MutationNode


# =============================================================================
# STORAGE INTERFACES (Dependency Inversion)
# =============================================================================

class KeyValueStore:
    """
    Abstract key-value backend.

    Implementations can use different storage systems (memory, file,
    database) as long as scan_by_prefix yields keys in insertion order.
    """

    def get(self, key: str) -> Optional[object]:
        """Retrieve the value stored under `key`."""
        raise NotImplementedError

    def put(self, key: str, value: object) -> None:
        """Store `value` under `key`."""
        raise NotImplementedError

    def scan_by_prefix(self, prefix: str) -> Iterator[Tuple[str, object]]:
        """Yield (key, value) pairs whose key starts with `prefix`."""
        raise NotImplementedError


class InMemoryKeyValueStore(KeyValueStore):
    """
    In-memory implementation of the key-value backend.

    Suitable for testing and single-process deployments.
    """

    def __init__(self):
        self._data: Dict[str, object] = {}

    def get(self, key: str) -> Optional[object]:
        return self._data.get(key)

    def put(self, key: str, value: object) -> None:
        self._data[key] = value

    def scan_by_prefix(self, prefix: str) -> Iterator[Tuple[str, object]]:
        # Snapshot keys so concurrent puts do not break iteration
        for key in list(self._data.keys()):
            if key.startswith(prefix):
                yield key, self._data[key]

    def __len__(self) -> int:
        return len(self._data)


# =============================================================================
# CONTENT INDEX RECORD
# =============================================================================

@dataclass(frozen=True)
class ContentIndexEntry:
    """
    content_hash -> location of that content in the registry.

    node_id is the mutation_id for mutations and the family_id for an
    original.
    """
    content_hash: str
    family_id: str
    node_id: str
    kind: NodeKind
    generation: int
    content: str
    semantic_fingerprint: str
    timestamp: Timestamp

    @property
    def is_original(self) -> bool:
        return self.kind == NodeKind.ORIGINAL


# =============================================================================
# FAMILY REPOSITORY
# =============================================================================

class FamilyRepository:
    """
    Domain view over a KeyValueStore.

    Key namespaces:
        family:{family_id}             -> MutationFamily
        hash:{content_hash}            -> ContentIndexEntry
        mutation:{mutation_id}         -> content_hash
        children:{parent_hash}         -> list of child content hashes
        fingerprint:{semantic_fp}:{h}  -> content_hash

    Not thread-safe on its own; the registry serializes writers.
    """

    def __init__(self, store: Optional[KeyValueStore] = None):
        self._store = store or InMemoryKeyValueStore()

    # -------------------------------------------------------------------------
    # Families
    # -------------------------------------------------------------------------

    def get_family(self, family_id: str) -> Optional[MutationFamily]:
        return self._store.get(f"family:{family_id}")

    def put_family(self, family: MutationFamily) -> None:
        """Register a new family and index its original."""
        self._store.put(f"family:{family.family_id}", family)
        original = family.original
        self._put_index(ContentIndexEntry(
            content_hash=original.content_hash,
            family_id=family.family_id,
            node_id=family.family_id,
            kind=NodeKind.ORIGINAL,
            generation=0,
            content=original.content,
            semantic_fingerprint=original.fingerprint.semantic_fingerprint,
            timestamp=original.timestamp
        ))

    def append_mutation(self, family_id: str, node: MutationNode) -> None:
        """Append a node to its family and update every index."""
        family = self.get_family(family_id)
        if family is None:
            raise KeyError(f"family {family_id} is not stored")
        family.mutations.append(node)
        self._store.put(f"family:{family_id}", family)
        self._store.put(f"mutation:{node.mutation_id}", node.content_hash)

        children = self._store.get(f"children:{node.parent_hash}") or []
        self._store.put(f"children:{node.parent_hash}", list(children) + [node.content_hash])

        self._put_index(ContentIndexEntry(
            content_hash=node.content_hash,
            family_id=family_id,
            node_id=node.mutation_id,
            kind=NodeKind.MUTATION,
            generation=node.generation,
            content=node.content,
            semantic_fingerprint=node.fingerprint.semantic_fingerprint,
            timestamp=node.timestamp
        ))

    def scan_by_prefix(self, prefix: str = "") -> List[MutationFamily]:
        """Families whose id starts with `prefix`, in creation order."""
        return [family for _, family in self._store.scan_by_prefix(f"family:{prefix}")]

    def family_count(self) -> int:
        return sum(1 for _ in self._store.scan_by_prefix("family:"))

    # -------------------------------------------------------------------------
    # Content index
    # -------------------------------------------------------------------------

    def get_entry(self, content_hash: str) -> Optional[ContentIndexEntry]:
        return self._store.get(f"hash:{content_hash}")

    def contains_hash(self, content_hash: str) -> bool:
        return self.get_entry(content_hash) is not None

    def resolve_mutation(self, mutation_id: str) -> Optional[ContentIndexEntry]:
        content_hash = self._store.get(f"mutation:{mutation_id}")
        return self.get_entry(content_hash) if content_hash else None

    def scan_entries(self) -> List[ContentIndexEntry]:
        """Every indexed piece of content, in insertion order."""
        return [entry for _, entry in self._store.scan_by_prefix("hash:")]

    def scan_fingerprint_bucket(self, semantic_fingerprint: str) -> List[ContentIndexEntry]:
        """Content sharing a semantic fingerprint (coarse pre-filter bucket)."""
        return [
            self.get_entry(content_hash)
            for _, content_hash in self._store.scan_by_prefix(f"fingerprint:{semantic_fingerprint}:")
        ]

    def children_of(self, content_hash: str) -> List[str]:
        return list(self._store.get(f"children:{content_hash}") or [])

    def _put_index(self, entry: ContentIndexEntry) -> None:
        self._store.put(f"hash:{entry.content_hash}", entry)
        self._store.put(
            f"fingerprint:{entry.semantic_fingerprint}:{entry.content_hash}",
            entry.content_hash
        )
