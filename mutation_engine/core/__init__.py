"""
Core Family Registry

RESPONSIBILITY: Ingest content, extend or create mutation families
ALLOWED INPUTS: Raw content strings with opaque string metadata
OUTPUTS: IngestResult, FamilyView, RegistryStatistics (immutable)

WHAT THIS LAYER MUST NOT DO:
============================
- Delete or rewrite any family member (append-only)
- Create cross-family edges (a node's parent always lives in its family)
- Raise across its public surface (failures are returned as data)
- Predict future mutations (prediction layer's job)
- Answer ancestor/descendant queries (query layer's job)

BOUNDARY ENFORCEMENT:
=====================
- Sole writer of the FamilyRepository
- Ingest is atomic per content_hash: concurrent ingests of one text cannot
  create two families
- Appends to one family are serialized by a per-family lock
- Every state change is written to the audit collector

INGEST PIPELINE:
================
content -> content_hash -> exact duplicate?      -> EXACT_DUPLICATE
                        -> best parent (all content, highest score,
                           earliest on ties) >= threshold -> MUTATION
                        -> otherwise                       -> ORIGINAL
"""

from __future__ import annotations
from collections import Counter
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Dict, List, Mapping, Optional, Tuple
import hashlib
import logging
import threading
import time
import zlib

# ONLY import from contracts and lower layers
from ..contracts.base import (
    Error, ErrorCode, Timestamp, IngestStatus, NodeKind
)
from ..contracts.events import (
    OriginalContent, MutationNode, MutationFamily, IngestResult,
    TreeNode, TimelineEntry, SpreadAnalysis, FamilyView, TextItem,
    RecentActivity, RegistryStatistics, RegistryTrends,
    AuditLogEntry, AuditEventType
)
from ..normalization import FingerprintGenerator, determine_semantic_cluster
from ..classification import MutationClassifier
from ..similarity import SimilarityEngine
from ..storage import FamilyRepository, ContentIndexEntry
from ..observability import AuditLogCollector, MetricsCollector

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class RegistryConfig:
    """Configuration for the family registry."""
    mutation_time_window_hours: float = 24.0
    max_mutation_depth: int = 10
    max_content_length: int = 10000
    lock_stripes: int = 64


def family_id_for(content_hash: str) -> str:
    """Deterministic family id derived from the original's content hash."""
    digest = hashlib.sha256(content_hash.encode('utf-8')).hexdigest()[:16]
    return f"family_{digest}"


def mutation_id_for(family_id: str, content_hash: str) -> str:
    digest = hashlib.sha256(f"{family_id}|{content_hash}".encode('utf-8')).hexdigest()[:16]
    return f"mut_{digest}"


def _metadata_tuple(metadata: Optional[Mapping[str, object]]) -> Tuple[Tuple[str, str], ...]:
    if not metadata:
        return ()
    return tuple((str(k), str(v)) for k, v in sorted(metadata.items()))


def _count_in_order(values) -> Tuple[Tuple[str, int], ...]:
    """Counts keyed by value, in first-seen order."""
    return tuple(Counter(values).items())


class FamilyRegistry:
    """
    Owner of every MutationFamily and of the content-hash index.

    Storage goes through FamilyRepository; time comes from the injected
    clock so tests can pin "now".
    """

    def __init__(
        self,
        repository: Optional[FamilyRepository] = None,
        similarity: Optional[SimilarityEngine] = None,
        classifier: Optional[MutationClassifier] = None,
        fingerprints: Optional[FingerprintGenerator] = None,
        config: Optional[RegistryConfig] = None,
        clock: Optional[Clock] = None,
        audit: Optional[AuditLogCollector] = None,
        metrics: Optional[MetricsCollector] = None
    ):
        self._repository = repository or FamilyRepository()
        self._classifier = classifier or MutationClassifier()
        self._similarity = similarity or SimilarityEngine(classifier=self._classifier)
        self._fingerprints = fingerprints or FingerprintGenerator()
        self._config = config or RegistryConfig()
        self._clock = clock or utc_now
        self._audit = audit or AuditLogCollector(layer_name="core")
        self._metrics = metrics or MetricsCollector()

        # Lock discipline: hash lock -> family lock -> index lock
        # Keys hash onto a fixed pool of striped locks.
        self._index_lock = threading.RLock()
        stripes = max(1, self._config.lock_stripes)
        self._hash_locks: Tuple[threading.Lock, ...] = tuple(threading.Lock() for _ in range(stripes))
        self._family_locks: Tuple[threading.Lock, ...] = tuple(threading.Lock() for _ in range(stripes))

    @property
    def repository(self) -> FamilyRepository:
        return self._repository

    @property
    def config(self) -> RegistryConfig:
        return self._config

    def now(self) -> Timestamp:
        return Timestamp(value=self._clock())

    # =========================================================================
    # INGEST
    # =========================================================================

    def ingest(
        self,
        content: str,
        metadata: Optional[Mapping[str, object]] = None,
        timestamp: Optional[Timestamp] = None
    ) -> IngestResult:
        """
        Record `content` as an exact duplicate, a mutation of the most
        similar known content, or the original of a new family.
        """
        started = time.perf_counter()
        try:
            result = self._ingest(content, metadata, timestamp)
        except Exception as exc:
            logger.exception("Ingest failed")
            error = Error.create(ErrorCode.INTERNAL, f"Ingest failed: {exc}")
            self._log_audit(AuditEventType.ERROR, "ingest_failed", metadata=(("error", str(exc)),))
            result = IngestResult(status=IngestStatus.REJECTED, error=error)

        outcome = result.status.value.lower() if result.error is None else "error"
        self._metrics.record("ingest_total", 1, {"outcome": outcome})
        self._metrics.record("ingest_duration_ms", (time.perf_counter() - started) * 1000)
        return result

    def _ingest(
        self,
        content: str,
        metadata: Optional[Mapping[str, object]],
        timestamp: Optional[Timestamp]
    ) -> IngestResult:
        error = self._validate(content)
        if error is not None:
            logger.warning("Rejected content: %s", error.message)
            self._log_audit(
                AuditEventType.INPUT_REJECTED, "input_rejected",
                metadata=(("reason", error.message),)
            )
            return IngestResult(status=IngestStatus.REJECTED, error=error)

        fingerprint = self._fingerprints.fingerprint(content)
        content_hash = fingerprint.content_hash
        observed_at = timestamp or self.now()
        meta = _metadata_tuple(metadata)

        with self._lock_for(self._hash_locks, content_hash):
            existing = self._repository.get_entry(content_hash)
            if existing is not None:
                logger.debug("Exact duplicate of %s in %s", content_hash[:12], existing.family_id)
                self._log_audit(
                    AuditEventType.DUPLICATE_DETECTED, "duplicate_detected",
                    entity_id=existing.family_id,
                    metadata=(("content_hash", content_hash),)
                )
                return IngestResult(
                    status=IngestStatus.EXACT_DUPLICATE,
                    family_id=existing.family_id,
                    confidence=1.0,
                    content_hash=content_hash
                )

            parent, score = self._find_best_parent(content)
            if parent is not None and score >= self._similarity.config.similarity_threshold:
                return self._append_mutation(content, fingerprint, parent, score, observed_at, meta)

            return self._create_family(content, fingerprint, observed_at, meta)

    def _validate(self, content: str) -> Optional[Error]:
        if not isinstance(content, str) or not content.strip():
            return Error.create(ErrorCode.VALIDATION, "Content must be a non-empty string")
        if len(content) > self._config.max_content_length:
            return Error.create(
                ErrorCode.VALIDATION,
                f"Content exceeds {self._config.max_content_length} characters",
                length=str(len(content))
            )
        return None

    def _find_best_parent(self, content: str) -> Tuple[Optional[ContentIndexEntry], float]:
        """Linear scan of all known content; strict improvement keeps the earliest on ties."""
        with self._index_lock:
            entries = self._repository.scan_entries()

        best: Optional[ContentIndexEntry] = None
        best_score = -1.0
        for entry in entries:
            score = self._similarity.score(content, entry.content)
            if score > best_score:
                best, best_score = entry, score
        return best, best_score

    def _create_family(self, content, fingerprint, observed_at, meta) -> IngestResult:
        family_id = family_id_for(fingerprint.content_hash)
        cluster = determine_semantic_cluster(content)
        family = MutationFamily(
            family_id=family_id,
            creation_date=observed_at,
            semantic_cluster=cluster,
            original=OriginalContent(
                content=content,
                content_hash=fingerprint.content_hash,
                fingerprint=fingerprint,
                timestamp=observed_at,
                metadata=meta
            )
        )

        with self._index_lock:
            self._repository.put_family(family)
            family_count = self._repository.family_count()

        logger.info("Created family %s (%s)", family_id, cluster.value)
        self._log_audit(
            AuditEventType.FAMILY_CREATED, "family_created",
            entity_id=family_id,
            metadata=(
                ("content_hash", fingerprint.content_hash),
                ("semantic_cluster", cluster.value),
            )
        )
        self._metrics.record("families_total", family_count)

        return IngestResult(
            status=IngestStatus.ORIGINAL,
            family_id=family_id,
            confidence=1.0,
            content_hash=fingerprint.content_hash,
            generation=0,
            semantic_cluster=cluster
        )

    def _append_mutation(self, content, fingerprint, parent, score, observed_at, meta) -> IngestResult:
        mutation_type = self._classifier.classify(content, parent.content)
        changes = self._classifier.analyze_changes(content, parent.content)
        generation = parent.generation + 1
        mutation_id = mutation_id_for(parent.family_id, fingerprint.content_hash)

        if generation > self._config.max_mutation_depth:
            logger.warning(
                "Family %s reached generation %d (max depth %d)",
                parent.family_id, generation, self._config.max_mutation_depth
            )

        node = MutationNode(
            mutation_id=mutation_id,
            content=content,
            content_hash=fingerprint.content_hash,
            fingerprint=fingerprint,
            parent_hash=parent.content_hash,
            mutation_type=mutation_type,
            similarity_score=score,
            generation=generation,
            timestamp=observed_at,
            metadata=meta,
            change_analysis=changes
        )

        with self._lock_for(self._family_locks, parent.family_id):
            with self._index_lock:
                self._repository.append_mutation(parent.family_id, node)
                total = self._total_mutations()

        logger.info(
            "Recorded %s in %s (generation %d, similarity %.3f)",
            mutation_type.value, parent.family_id, generation, score
        )
        self._log_audit(
            AuditEventType.MUTATION_RECORDED, "mutation_recorded",
            entity_id=mutation_id,
            entity_type="mutation",
            metadata=(
                ("family_id", parent.family_id),
                ("parent_hash", parent.content_hash),
                ("mutation_type", mutation_type.value),
                ("generation", str(generation)),
            )
        )
        self._metrics.record("mutations_total", total)

        return IngestResult(
            status=IngestStatus.MUTATION,
            family_id=parent.family_id,
            confidence=score,
            content_hash=fingerprint.content_hash,
            mutation_id=mutation_id,
            mutation_type=mutation_type,
            generation=generation,
            parent_hash=parent.content_hash
        )

    # =========================================================================
    # FAMILY VIEW
    # =========================================================================

    def resolve_family_id(self, identifier: str) -> Optional[str]:
        """Map a content_hash, mutation_id or family_id onto its family_id."""
        entry = self._repository.get_entry(identifier) or self._repository.resolve_mutation(identifier)
        if entry is not None:
            return entry.family_id
        if self._repository.get_family(identifier) is not None:
            return identifier
        return None

    def snapshot(self, family_id: str) -> Optional[MutationFamily]:
        """Point-in-time copy of a family; later appends do not show up in it."""
        with self._lock_for(self._family_locks, family_id):
            family = self._repository.get_family(family_id)
            if family is None:
                return None
            return MutationFamily(
                family_id=family.family_id,
                creation_date=family.creation_date,
                semantic_cluster=family.semantic_cluster,
                original=family.original,
                mutations=list(family.mutations)
            )

    def get_family(self, identifier: str) -> FamilyView:
        try:
            return self._get_family(identifier)
        except Exception as exc:
            logger.exception("get_family failed for %s", identifier)
            return FamilyView.not_found(
                Error.create(ErrorCode.INTERNAL, f"Failed to build family: {exc}", identifier=identifier)
            )

    def _get_family(self, identifier: str) -> FamilyView:
        family_id = self.resolve_family_id(identifier)
        family = self.snapshot(family_id) if family_id else None
        if family is None:
            return FamilyView.not_found(
                Error.create(ErrorCode.FAMILY_NOT_FOUND, "Family not found", identifier=identifier)
            )

        tree, error = self._build_tree(family)
        if error is not None:
            logger.error("Family %s is inconsistent: %s", family.family_id, error.message)
            return FamilyView.not_found(error)

        return FamilyView(
            found=True,
            family_id=family.family_id,
            original_content=family.original.content,
            creation_date=family.creation_date,
            semantic_cluster=family.semantic_cluster,
            mutation_count=family.mutation_count,
            mutation_tree=tree,
            mutation_timeline=self._build_timeline(family),
            spread_analysis=self.spread_analysis(family)
        )

    def _build_tree(self, family: MutationFamily) -> Tuple[Optional[TreeNode], Optional[Error]]:
        """
        Materialize the tree from the parent_hash -> children index.

        Built bottom-up without recursion so long chains cannot exhaust
        the interpreter stack.
        """
        root_hash = family.original.content_hash
        nodes = {m.content_hash: m for m in family.mutations}

        for node in family.mutations:
            if node.parent_hash != root_hash and node.parent_hash not in nodes:
                return None, Error.create(
                    ErrorCode.INTERNAL,
                    "Mutation parent does not resolve inside its family",
                    family_id=family.family_id,
                    mutation_id=node.mutation_id,
                    parent_hash=node.parent_hash
                )

        order: List[str] = [root_hash]
        children: Dict[str, List[str]] = {}
        cursor = 0
        while cursor < len(order):
            current = order[cursor]
            cursor += 1
            kids = [h for h in self._repository.children_of(current) if h in nodes]
            children[current] = kids
            order.extend(kids)

        built: Dict[str, TreeNode] = {}
        for content_hash in reversed(order):
            kids = tuple(built[h] for h in children.get(content_hash, []))
            if content_hash == root_hash:
                built[content_hash] = TreeNode(
                    node_id=family.family_id,
                    content=family.original.content,
                    content_hash=root_hash,
                    kind=NodeKind.ORIGINAL,
                    generation=0,
                    timestamp=family.original.timestamp,
                    children=kids
                )
            else:
                node = nodes[content_hash]
                built[content_hash] = TreeNode(
                    node_id=node.mutation_id,
                    content=node.content,
                    content_hash=content_hash,
                    kind=NodeKind.MUTATION,
                    generation=node.generation,
                    timestamp=node.timestamp,
                    mutation_type=node.mutation_type,
                    children=kids
                )
        return built[root_hash], None

    def _build_timeline(self, family: MutationFamily) -> Tuple[TimelineEntry, ...]:
        timeline = [TimelineEntry(
            event="ORIGINAL",
            content=family.original.content,
            content_hash=family.original.content_hash,
            timestamp=family.original.timestamp
        )]
        for node in sorted(family.mutations, key=lambda m: m.timestamp.value):
            timeline.append(TimelineEntry(
                event="MUTATION",
                content=node.content,
                content_hash=node.content_hash,
                timestamp=node.timestamp,
                generation=node.generation,
                mutation_type=node.mutation_type
            ))
        return tuple(timeline)

    def spread_analysis(self, family: MutationFamily) -> SpreadAnalysis:
        mutations = family.mutations
        if not mutations:
            return SpreadAnalysis(
                spread_rate=0.0, active_branches=0, mutation_velocity=0.0, total_generations=0
            )

        ordered = sorted(m.timestamp.value for m in mutations)
        span_hours = (ordered[-1] - ordered[0]).total_seconds() / 3600.0
        spread_rate = len(mutations) / span_hours if span_hours > 0 else 0.0

        window = self._config.mutation_time_window_hours
        active = len(self._recent(mutations, window))

        return SpreadAnalysis(
            spread_rate=spread_rate,
            active_branches=active,
            mutation_velocity=active / window,
            total_generations=max(m.generation for m in mutations),
            mutation_types=_count_in_order(m.mutation_type.value for m in mutations)
        )

    def _recent(self, mutations: List[MutationNode], window_hours: float) -> List[MutationNode]:
        now = self.now()
        return [m for m in mutations if m.timestamp.hours_until(now) < window_hours]

    # =========================================================================
    # REGISTRY-WIDE VIEWS
    # =========================================================================

    def families(self) -> List[MutationFamily]:
        """Snapshots of every family, in creation order."""
        with self._index_lock:
            family_ids = [f.family_id for f in self._repository.scan_by_prefix()]
        return [f for f in (self.snapshot(fid) for fid in family_ids) if f is not None]

    def all_text_items(self) -> List[TextItem]:
        """Every stored text (originals and mutations) with provenance."""
        items: List[TextItem] = []
        for family in self.families():
            items.append(TextItem(
                content=family.original.content,
                content_hash=family.original.content_hash,
                family_id=family.family_id,
                kind=NodeKind.ORIGINAL,
                generation=0,
                timestamp=family.original.timestamp
            ))
            for node in family.mutations:
                items.append(TextItem(
                    content=node.content,
                    content_hash=node.content_hash,
                    family_id=family.family_id,
                    mutation_id=node.mutation_id,
                    kind=NodeKind.MUTATION,
                    mutation_type=node.mutation_type,
                    generation=node.generation,
                    timestamp=node.timestamp
                ))
        return items

    def get_statistics(self) -> RegistryStatistics:
        families = self.families()
        window = self._config.mutation_time_window_hours

        activity: List[RecentActivity] = []
        for family in families:
            recent = self._recent(family.mutations, window)
            if recent:
                activity.append(RecentActivity(
                    family_id=family.family_id,
                    recent_mutations=len(recent),
                    latest_mutation=max((m.timestamp for m in recent), key=lambda t: t.value)
                ))
        activity.sort(key=lambda a: a.latest_mutation.value, reverse=True)

        return RegistryStatistics(
            total_families=len(families),
            total_mutations=sum(f.mutation_count for f in families),
            active_families=len(activity),
            mutation_types=_count_in_order(
                m.mutation_type.value for f in families for m in f.mutations
            ),
            semantic_clusters=_count_in_order(f.semantic_cluster.value for f in families),
            recent_activity=tuple(activity[:10])
        )

    def get_trends(self) -> RegistryTrends:
        stats = self.get_statistics()
        return RegistryTrends(
            most_active_cluster=_most_common(stats.semantic_clusters),
            dominant_mutation_type=_most_common(stats.mutation_types),
            activity_level="high" if stats.active_families > 0 else "low"
        )

    def get_audit_log(self) -> List[AuditLogEntry]:
        return self._audit.get_entries()

    # =========================================================================
    # INTERNALS
    # =========================================================================

    def _total_mutations(self) -> int:
        return sum(f.mutation_count for f in self._repository.scan_by_prefix())

    @staticmethod
    def _lock_for(stripes: Tuple[threading.Lock, ...], key: str) -> threading.Lock:
        return stripes[zlib.crc32(key.encode('utf-8')) % len(stripes)]

    def _log_audit(
        self,
        event_type: AuditEventType,
        action: str,
        entity_id: Optional[str] = None,
        entity_type: str = "family",
        metadata: tuple = ()
    ):
        """Add entry to the audit collector."""
        stamp = self.now()
        entry_id = hashlib.sha256(
            f"core_{action}|{entity_id}|{stamp.value.timestamp()}|{self._audit.entry_count}".encode()
        ).hexdigest()[:16]

        self._audit.collect(AuditLogEntry(
            entry_id=f"audit_{entry_id}",
            event_type=event_type,
            timestamp=stamp,
            layer="core",
            action=action,
            entity_id=entity_id,
            entity_type=entity_type,
            metadata=metadata
        ))


def _most_common(counts: Tuple[Tuple[str, int], ...]) -> Optional[str]:
    """Label with the highest count; the first seen wins ties."""
    best: Optional[str] = None
    best_count = 0
    for label, count in counts:
        if count > best_count:
            best, best_count = label, count
    return best


__all__ = [
    'RegistryConfig', 'FamilyRegistry', 'family_id_for', 'mutation_id_for', 'utc_now',
]
