"""
Test Fixtures

Fixed clocks, texts and hand-built families. Everything here is explicit:
no wall-clock time and no unseeded randomness.
"""

from datetime import datetime, timedelta, timezone
from typing import List, Sequence, Tuple

from mutation_engine.contracts.base import MutationType, SemanticCluster, Timestamp
from mutation_engine.contracts.events import (
    ContentFingerprint, OriginalContent, MutationNode, MutationFamily
)
from mutation_engine.normalization import FingerprintGenerator


# =============================================================================
# FIXED TIMESTAMPS
# =============================================================================

T0 = datetime(2026, 1, 1, 0, 0, 0, tzinfo=timezone.utc)


def at(hours: float) -> datetime:
    return T0 + timedelta(hours=hours)


def stamp(hours: float) -> Timestamp:
    return Timestamp(value=at(hours))


class FixedClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start: datetime = T0):
        self.current = start

    def __call__(self) -> datetime:
        return self.current

    def advance(self, hours: float) -> None:
        self.current = self.current + timedelta(hours=hours)


# =============================================================================
# TEXTS
# =============================================================================

ORIGINAL = "Turmeric can cure COVID-19 completely in 3 days"
PARAPHRASE = "Turmeric completely cures coronavirus in just 3 days"
NUMERIC_VARIANT = "COVID-19 can be fully healed with turmeric in 72 hours"
UNRELATED = "The weather is nice today"

SCENARIO_A = (ORIGINAL, PARAPHRASE, NUMERIC_VARIANT, UNRELATED)


# =============================================================================
# HAND-BUILT FAMILIES (bypass the registry)
# =============================================================================

_fingerprints = FingerprintGenerator()


def _fingerprint(content: str) -> ContentFingerprint:
    return _fingerprints.fingerprint(content)


def make_family(
    original: str,
    mutations: Sequence[Tuple[str, MutationType, float]] = (),
    family_id: str = "family_fixture",
    original_hours: float = 0.0
) -> MutationFamily:
    """
    Family whose mutations are all direct children of the original.

    mutations: (content, mutation type, hours after T0)
    """
    root = _fingerprint(original)
    nodes: List[MutationNode] = []
    for index, (content, mutation_type, hours) in enumerate(mutations):
        fp = _fingerprint(f"{content} #{index}")
        nodes.append(MutationNode(
            mutation_id=f"mut_{index:04d}",
            content=content,
            content_hash=fp.content_hash,
            fingerprint=fp,
            parent_hash=root.content_hash,
            mutation_type=mutation_type,
            similarity_score=0.8,
            generation=1,
            timestamp=stamp(hours)
        ))
    return MutationFamily(
        family_id=family_id,
        creation_date=stamp(original_hours),
        semantic_cluster=SemanticCluster.GENERAL,
        original=OriginalContent(
            content=original,
            content_hash=root.content_hash,
            fingerprint=root,
            timestamp=stamp(original_hours)
        ),
        mutations=nodes
    )
