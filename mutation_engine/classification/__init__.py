"""
Mutation Classification Layer

RESPONSIBILITY: Assign exactly one MutationType to a confirmed parent -> child edge.

The classification is an ordered rule table of (predicate, label) pairs.
Rules are evaluated in priority order and the first match wins, so a
change that is both numeric and emotional reports NUMERICAL_CHANGE.
CONTEXT_SHIFT is the fallback when no rule matches.

BOUNDARY ENFORCEMENT:
- Pure functions of the two texts
- No access to families, storage or time
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Callable, List, Optional, Tuple

from ..contracts.base import MutationType
from ..contracts.events import ChangeAnalysis, NumericChange
from ..normalization import TextProfile, profile, keyword_hits
from ..normalization.vocabulary import (
    EMOTIONAL_WORDS, LOCATION_WORDS, TIME_WORDS, SOURCE_WORDS
)


@dataclass
class ClassifierConfig:
    """Thresholds of the length and overlap rules."""
    phrase_addition_ratio: float = 1.3
    substitution_min_overlap: float = 0.7
    substitution_max_overlap: float = 0.95


RulePredicate = Callable[[TextProfile, TextProfile], bool]


# =============================================================================
# RULE PREDICATES (child, parent) -> bool
# =============================================================================

def numbers_differ(child: TextProfile, parent: TextProfile) -> bool:
    return child.numbers != parent.numbers


def _hits(words, p: TextProfile) -> int:
    return keyword_hits(words, p.word_set, p.lower)


def emotion_increased(child: TextProfile, parent: TextProfile) -> bool:
    return _hits(EMOTIONAL_WORDS, child) > _hits(EMOTIONAL_WORDS, parent)


def locations_differ(child: TextProfile, parent: TextProfile) -> bool:
    return _hits(LOCATION_WORDS, child) != _hits(LOCATION_WORDS, parent)


def time_references_differ(child: TextProfile, parent: TextProfile) -> bool:
    return _hits(TIME_WORDS, child) != _hits(TIME_WORDS, parent)


def sources_differ(child: TextProfile, parent: TextProfile) -> bool:
    return _hits(SOURCE_WORDS, child) != _hits(SOURCE_WORDS, parent)


def shared_word_ratio(child: TextProfile, parent: TextProfile) -> float:
    """Child tokens found in the parent, over the longer token count."""
    longest = max(child.word_count, parent.word_count)
    if longest == 0:
        return 0.0
    common = sum(1 for w in child.words if w in parent.word_set)
    return common / longest


class MutationClassifier:
    """
    Ordered-cascade classifier over a fixed rule table.

    The table is exposed through `rules` so each rule can be exercised
    on its own.
    """

    def __init__(self, config: Optional[ClassifierConfig] = None):
        self._config = config or ClassifierConfig()
        self._rules: Tuple[Tuple[RulePredicate, MutationType], ...] = (
            (numbers_differ, MutationType.NUMERICAL_CHANGE),
            (emotion_increased, MutationType.EMOTIONAL_AMPLIFICATION),
            (locations_differ, MutationType.LOCATION_CHANGE),
            (time_references_differ, MutationType.TIME_SHIFT),
            (sources_differ, MutationType.SOURCE_MODIFICATION),
            (self._phrase_added, MutationType.PHRASE_ADDITION),
            (self._words_substituted, MutationType.WORD_SUBSTITUTION),
        )

    @property
    def rules(self) -> Tuple[Tuple[RulePredicate, MutationType], ...]:
        return self._rules

    def classify(self, child: str, parent: str) -> MutationType:
        child_p, parent_p = profile(child), profile(parent)
        for predicate, label in self._rules:
            if predicate(child_p, parent_p):
                return label
        return MutationType.CONTEXT_SHIFT

    def matching_rules(self, child: str, parent: str) -> List[MutationType]:
        """Every rule label that fires, in priority order."""
        child_p, parent_p = profile(child), profile(parent)
        return [label for predicate, label in self._rules if predicate(child_p, parent_p)]

    def analyze_changes(self, child: str, parent: str) -> ChangeAnalysis:
        """Length, word-count, vocabulary and positional numeric deltas."""
        child_p, parent_p = profile(child), profile(parent)

        numeric_changes: List[NumericChange] = []
        for i in range(max(len(child_p.numbers), len(parent_p.numbers))):
            before = parent_p.numbers[i] if i < len(parent_p.numbers) else None
            after = child_p.numbers[i] if i < len(child_p.numbers) else None
            if before != after:
                numeric_changes.append(NumericChange(from_value=before, to_value=after, position=i))

        return ChangeAnalysis(
            length_change=len(child) - len(parent),
            word_count_change=child_p.word_count - parent_p.word_count,
            added_words=tuple(sorted(child_p.word_set - parent_p.word_set)),
            removed_words=tuple(sorted(parent_p.word_set - child_p.word_set)),
            changed_numbers=tuple(numeric_changes)
        )

    # -------------------------------------------------------------------------
    # Config-dependent rules
    # -------------------------------------------------------------------------

    def _phrase_added(self, child: TextProfile, parent: TextProfile) -> bool:
        return child.word_count > parent.word_count * self._config.phrase_addition_ratio

    def _words_substituted(self, child: TextProfile, parent: TextProfile) -> bool:
        ratio = shared_word_ratio(child, parent)
        return self._config.substitution_min_overlap < ratio < self._config.substitution_max_overlap
