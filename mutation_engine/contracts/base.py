"""
Base Contracts and Shared Types

These are the foundational types used across all layers of the mutation
engine. All types here are IMMUTABLE and represent pure data.
No behavior beyond construction helpers, no side effects.

BOUNDARY ENFORCEMENT:
=====================
- This module is READ-ONLY from all layers
- Layers may import types but MUST NOT modify this module
- All types are frozen dataclasses or enums
"""

from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Tuple
from enum import Enum, auto


# =============================================================================
# ERROR STATES (Explicit, never silent)
# =============================================================================

class ErrorCode(Enum):
    """
    Explicit error codes for deterministic error handling.
    Every failure mode of the public API is enumerated here.
    """
    # Caller input errors
    VALIDATION = auto()

    # Matching errors
    SIMILARITY_FAILURE = auto()

    # Lookup errors
    FAMILY_NOT_FOUND = auto()
    NODE_NOT_FOUND = auto()

    # Analysis errors
    PREDICTION_FAILURE = auto()

    # Invariant violations
    INTERNAL = auto()


@dataclass(frozen=True)
class Error:
    """
    Immutable error representation with full context.
    Errors are data, not exceptions - they can be stored and serialized.
    """
    code: ErrorCode
    message: str
    timestamp: datetime
    context: Tuple[Tuple[str, str], ...] = field(default_factory=tuple)

    @staticmethod
    def create(code: ErrorCode, message: str, **context: str) -> Error:
        return Error(
            code=code,
            message=message,
            timestamp=datetime.now(timezone.utc),
            context=tuple((k, str(v)) for k, v in sorted(context.items()))
        )

    def to_dict(self) -> dict:
        return {
            'code': self.code.name,
            'message': self.message,
            'context': dict(self.context),
        }


# =============================================================================
# TEMPORAL TYPES (Immutable, explicit semantics)
# =============================================================================

@dataclass(frozen=True)
class Timestamp:
    """
    Immutable timestamp with explicit semantics.
    All timestamps are UTC, never local time.
    """
    value: datetime

    def __post_init__(self):
        # Ensure UTC timezone
        if self.value.tzinfo is None:
            object.__setattr__(self, 'value', self.value.replace(tzinfo=timezone.utc))

    @staticmethod
    def now() -> Timestamp:
        return Timestamp(value=datetime.now(timezone.utc))

    def to_iso(self) -> str:
        return self.value.isoformat()

    def hours_until(self, other: Timestamp) -> float:
        """Signed number of hours from this timestamp to `other`."""
        return (other.value - self.value).total_seconds() / 3600.0


# =============================================================================
# DOMAIN ENUMERATIONS
# =============================================================================

class MutationType(Enum):
    """
    Label assigned to a parent -> child edge by the mutation classifier.
    Values are the wire representation used in result envelopes.
    """
    NUMERICAL_CHANGE = "NUMERICAL_CHANGE"
    EMOTIONAL_AMPLIFICATION = "EMOTIONAL_AMPLIFICATION"
    LOCATION_CHANGE = "LOCATION_CHANGE"
    TIME_SHIFT = "TIME_SHIFT"
    SOURCE_MODIFICATION = "SOURCE_MODIFICATION"
    PHRASE_ADDITION = "PHRASE_ADDITION"
    WORD_SUBSTITUTION = "WORD_SUBSTITUTION"
    CONTEXT_SHIFT = "CONTEXT_SHIFT"


class SemanticCluster(Enum):
    """Fixed topical keyword groups used to bucket families and boost similarity."""
    MEDICAL = "medical"
    DISASTER = "disaster"
    FINANCIAL = "financial"
    POLITICAL = "political"
    CONSPIRACY = "conspiracy"
    GENERAL = "general"


class IngestStatus(Enum):
    """Discriminator of an ingest outcome."""
    ORIGINAL = "ORIGINAL"
    MUTATION = "MUTATION"
    EXACT_DUPLICATE = "EXACT_DUPLICATE"
    REJECTED = "REJECTED"


class NodeKind(Enum):
    """Position of a node inside a mutation family."""
    ORIGINAL = "original"
    MUTATION = "mutation"
