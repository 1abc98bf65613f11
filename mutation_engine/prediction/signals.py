"""
Signal Detectors

Independent pure functions: (family history, now) -> signal. None of them
reads the wall clock, touches storage or depends on another detector.
`analyze_patterns` runs them all over one timestamp-ordered history.
"""

from __future__ import annotations
from collections import Counter
from dataclasses import dataclass
from typing import FrozenSet, Iterable, List, Optional, Sequence, Tuple
import math
import re

import numpy as np

from ..contracts.base import Timestamp
from ..contracts.events import MutationFamily, MutationNode
from ..contracts.prediction import (
    OK, INSUFFICIENT_DATA, NO_DATA,
    RecentTrend, VelocitySignal, PatternEvolutionSignal, SemanticDriftSignal,
    ViralitySignal, AudienceSignal, GeographySignal, TemporalSignal,
    ComplexitySignal, PlatformSignal, PatternAnalysis
)
from ..normalization import profile, keyword_hits
from ..normalization.vocabulary import (
    VIRAL_KEYWORDS, EMOTIONAL_INTENSIFIERS, AUDIENCE_INDICATORS,
    GEO_KEYWORDS, METRO_LOCATIONS, WIDE_LOCATIONS, LOCAL_TREND_LOCATIONS,
    GLOBAL_TREND_LOCATIONS, PLATFORM_INDICATORS
)


NONE_LABEL = "none"
_URL_RE = re.compile(r'https?://')


@dataclass
class SignalThresholds:
    """Windows and ratio cut-offs used by the detectors."""
    recent_window_hours: float = 24.0
    velocity_window_hours: float = 6.0
    accelerating_ratio: float = 1.5
    decelerating_ratio: float = 0.5
    drift_increase_ratio: float = 1.2
    drift_decrease_ratio: float = 0.8
    stable_drift_below: float = 0.3
    moderate_drift_below: float = 0.6
    virality_increase_ratio: float = 1.3
    virality_decrease_ratio: float = 0.7
    high_viral_score: float = 0.1
    medium_viral_score: float = 0.05
    diverse_spread_ratio: float = 0.7
    short_interval_hours: float = 1.0
    long_interval_hours: float = 24.0
    clustered_ratio: float = 0.6
    complexity_trend_ratio: float = 1.5
    strong_simplification: float = -0.1
    increasing_complexity: float = 0.1
    twitter_char_limit: int = 280
    facebook_char_limit: int = 2000
    shortening_ratio: float = 0.8
    lengthening_ratio: float = 1.2


# =============================================================================
# HELPERS
# =============================================================================

def _hours_before(node: MutationNode, now: Timestamp) -> float:
    return node.timestamp.hours_until(now)


def _halves(values: Sequence[float]) -> Tuple[float, float]:
    """Means of the first floor(n/2) values and of the rest. Requires n >= 2."""
    split = len(values) // 2
    return float(np.mean(values[:split])), float(np.mean(values[split:]))


def _dominant(scores: Iterable[Tuple[str, int]]) -> str:
    """Label with the highest positive score; later labels win ties, all-zero gives "none"."""
    best, best_score = NONE_LABEL, 0
    for label, score in scores:
        if score > 0 and score >= best_score:
            best, best_score = label, score
    return best


def _scores(text: str, indicators: Sequence[Tuple[str, FrozenSet[str]]]) -> List[Tuple[str, int]]:
    p = profile(text)
    return [(label, keyword_hits(words, p.word_set, p.lower)) for label, words in indicators]


# =============================================================================
# DETECTORS
# =============================================================================

def recent_trend(
    mutations: Sequence[MutationNode],
    now: Timestamp,
    thresholds: SignalThresholds
) -> RecentTrend:
    count = sum(1 for m in mutations if _hours_before(m, now) < thresholds.recent_window_hours)
    return RecentTrend(recent_count=count, trend="increasing" if count > 0 else "stable")


def mutation_velocity(
    mutations: Sequence[MutationNode],
    now: Timestamp,
    thresholds: SignalThresholds
) -> VelocitySignal:
    """
    Lifetime mutations per hour versus the rate inside the recent window.

    accelerating: recent > 1.5 x lifetime; decelerating: recent < 0.5 x lifetime.
    """
    if len(mutations) < 2:
        return VelocitySignal(0.0, 0.0, "stable", 0.0, status=INSUFFICIENT_DATA)

    span_hours = mutations[0].timestamp.hours_until(mutations[-1].timestamp)
    if span_hours == 0:
        return VelocitySignal(0.0, 0.0, "stable", 0.0, status=INSUFFICIENT_DATA)

    velocity = len(mutations) / span_hours
    window = thresholds.velocity_window_hours
    recent = sum(1 for m in mutations if _hours_before(m, now) < window)
    recent_velocity = recent / window

    trend = "stable"
    if recent_velocity > velocity * thresholds.accelerating_ratio:
        trend = "accelerating"
    elif recent_velocity < velocity * thresholds.decelerating_ratio:
        trend = "decelerating"

    return VelocitySignal(
        velocity=velocity,
        recent_velocity=recent_velocity,
        trend=trend,
        acceleration_factor=recent_velocity / (velocity or 1)
    )


def pattern_evolution(mutations: Sequence[MutationNode]) -> PatternEvolutionSignal:
    """Split history into thirds (ceil-sized) and compare their dominant types."""
    if len(mutations) < 3:
        return PatternEvolutionSignal(
            early_dominant="unknown",
            middle_dominant="unknown",
            late_dominant="unknown",
            pattern_shift=False,
            evolution_trend=(INSUFFICIENT_DATA,),
            status=INSUFFICIENT_DATA
        )

    size = math.ceil(len(mutations) / 3)
    phases = [
        Counter(m.mutation_type.value for m in mutations[start:start + size])
        for start in (0, size, 2 * size)
    ]
    early, middle, late = (_dominant(phase.items()) for phase in phases)

    labels: List[str] = []
    for phase in phases:
        labels.extend(label for label in phase if label not in labels)

    trend: List[str] = []
    for label in labels:
        first, last = phases[0].get(label, 0), phases[2].get(label, 0)
        if last > first:
            trend.append(f"{label}_increasing")
        elif last < first:
            trend.append(f"{label}_decreasing")

    return PatternEvolutionSignal(
        early_dominant=early,
        middle_dominant=middle,
        late_dominant=late,
        pattern_shift=early != late and NONE_LABEL not in (early, late),
        evolution_trend=tuple(trend) or ("stable",),
        phase_counts=tuple(tuple(phase.items()) for phase in phases)
    )


def semantic_drift(
    original: str,
    mutations: Sequence[MutationNode],
    thresholds: SignalThresholds
) -> SemanticDriftSignal:
    if not mutations:
        return SemanticDriftSignal(
            average_drift=0.0,
            max_drift=0.0,
            drift_progression=(),
            drift_trend=NO_DATA,
            semantic_stability="stable",
            status=INSUFFICIENT_DATA
        )

    original_words = profile(original).word_set
    drifts: List[float] = []
    for node in mutations:
        words = profile(node.content).word_set
        union = original_words | words
        similarity = len(original_words & words) / len(union) if union else 1.0
        drifts.append(1.0 - similarity)

    average = float(np.mean(drifts))
    if len(drifts) < 2:
        trend = INSUFFICIENT_DATA
    else:
        first, second = _halves(drifts)
        if second > first * thresholds.drift_increase_ratio:
            trend = "increasing_drift"
        elif second < first * thresholds.drift_decrease_ratio:
            trend = "decreasing_drift"
        else:
            trend = "stable_drift"

    if average < thresholds.stable_drift_below:
        stability = "stable"
    elif average < thresholds.moderate_drift_below:
        stability = "moderate"
    else:
        stability = "high_drift"

    return SemanticDriftSignal(
        average_drift=average,
        max_drift=max(drifts),
        drift_progression=tuple(drifts),
        drift_trend=trend,
        semantic_stability=stability
    )


def virality(mutations: Sequence[MutationNode], thresholds: SignalThresholds) -> ViralitySignal:
    """Density of urgency keywords and emotional intensifiers per word."""
    scores: List[float] = []
    intensifiers = 0
    for node in mutations:
        p = profile(node.content)
        viral = keyword_hits(VIRAL_KEYWORDS, p.word_set, p.lower)
        emotional = keyword_hits(EMOTIONAL_INTENSIFIERS, p.word_set, p.lower)
        intensifiers += emotional
        scores.append((viral + emotional) / p.word_count if p.word_count else 0.0)

    if not scores:
        return ViralitySignal(0.0, 0, (), INSUFFICIENT_DATA, NONE_LABEL, status=INSUFFICIENT_DATA)

    average = float(np.mean(scores))
    if len(scores) < 2:
        trend = INSUFFICIENT_DATA
    else:
        first, second = _halves(scores)
        if second > first * thresholds.virality_increase_ratio:
            trend = "increasing_virality"
        elif second < first * thresholds.virality_decrease_ratio:
            trend = "decreasing_virality"
        else:
            trend = "stable_virality"

    if average > thresholds.high_viral_score:
        potential = "high"
    elif average > thresholds.medium_viral_score:
        potential = "medium"
    else:
        potential = "low"

    return ViralitySignal(
        average_viral_score=average,
        total_emotional_intensifiers=intensifiers,
        viral_scores=tuple(scores),
        virality_trend=trend,
        viral_potential=potential
    )


def audience_targeting(mutations: Sequence[MutationNode]) -> AudienceSignal:
    dominants = tuple(_dominant(_scores(m.content, AUDIENCE_INDICATORS)) for m in mutations)
    targeted: List[str] = []
    for label in dominants:
        if label != NONE_LABEL and label not in targeted:
            targeted.append(label)

    if len(dominants) < 2:
        focus = INSUFFICIENT_DATA
    else:
        recent = dominants[-3:]
        unique_recent = len(set(recent))
        if unique_recent == 1:
            focus = "focusing"
        elif unique_recent == len(recent):
            focus = "diversifying"
        else:
            focus = "mixed"

    return AudienceSignal(
        dominant_audiences=dominants,
        unique_audiences=len(targeted),
        diversity_score=len(targeted) / max(len(dominants), 1),
        audiences_targeted=tuple(targeted),
        audience_focus_trend=focus,
        status=OK if dominants else INSUFFICIENT_DATA
    )


def geographic_spread(mutations: Sequence[MutationNode], thresholds: SignalThresholds) -> GeographySignal:
    locations = tuple(_dominant(_scores(m.content, GEO_KEYWORDS)) for m in mutations)
    if len(locations) < 2:
        return GeographySignal(
            dominant_locations=locations,
            spread_pattern=INSUFFICIENT_DATA,
            localization_trend=INSUFFICIENT_DATA,
            status=INSUFFICIENT_DATA
        )

    unique = len(set(locations))
    if any(loc in METRO_LOCATIONS for loc in locations) and any(loc in WIDE_LOCATIONS for loc in locations):
        pattern = "local_to_global"
    elif unique > len(locations) * thresholds.diverse_spread_ratio:
        pattern = "diverse_spread"
    elif unique == 1:
        pattern = "localized"
    else:
        pattern = "moderate_spread"

    recent = locations[-3:]
    recent_global = sum(1 for loc in recent if loc in GLOBAL_TREND_LOCATIONS)
    recent_local = sum(1 for loc in recent if loc in LOCAL_TREND_LOCATIONS)
    if recent_global > recent_local:
        localization = "globalizing"
    elif recent_local > recent_global:
        localization = "localizing"
    else:
        localization = "mixed"

    return GeographySignal(
        dominant_locations=locations,
        spread_pattern=pattern,
        localization_trend=localization
    )


def temporal_patterns(mutations: Sequence[MutationNode], thresholds: SignalThresholds) -> TemporalSignal:
    if len(mutations) < 2:
        return TemporalSignal(status=INSUFFICIENT_DATA)

    intervals = [
        a.timestamp.hours_until(b.timestamp) for a, b in zip(mutations, mutations[1:])
    ]
    hours = Counter(m.timestamp.value.hour for m in mutations)
    peak = max(hours.values())

    if len(intervals) < 3:
        clustering = INSUFFICIENT_DATA
    else:
        short = sum(1 for i in intervals if i < thresholds.short_interval_hours)
        long_ = sum(1 for i in intervals if i >= thresholds.long_interval_hours)
        if short > len(intervals) * thresholds.clustered_ratio:
            clustering = "highly_clustered"
        elif long_ > len(intervals) * thresholds.clustered_ratio:
            clustering = "sparse"
        else:
            clustering = "moderate_clustering"

    return TemporalSignal(
        average_interval_hours=float(np.mean(intervals)),
        min_interval_hours=min(intervals),
        max_interval_hours=max(intervals),
        interval_variance=float(np.var(intervals)),
        hour_distribution=tuple(sorted(hours.items())),
        peak_hours=tuple(sorted(h for h, c in hours.items() if c == peak)),
        temporal_clustering=clustering
    )


def complexity_score(text: str) -> float:
    """Average words per sentence times lexical diversity."""
    p = profile(text)
    per_sentence = p.word_count / max(p.sentence_count, 1)
    diversity = len(p.word_set) / max(p.word_count, 1)
    return per_sentence * diversity


def complexity_evolution(
    original: str,
    mutations: Sequence[MutationNode],
    thresholds: SignalThresholds
) -> ComplexitySignal:
    base = complexity_score(original)
    changes = tuple(complexity_score(m.content) - base for m in mutations)

    if len(changes) < 2:
        trend = INSUFFICIENT_DATA
    else:
        rising = sum(1 for c in changes if c > 0)
        falling = sum(1 for c in changes if c < 0)
        if rising > falling * thresholds.complexity_trend_ratio:
            trend = "increasing_complexity"
        elif falling > rising * thresholds.complexity_trend_ratio:
            trend = "decreasing_complexity"
        else:
            trend = "stable_complexity"

    if not changes:
        tendency = NO_DATA
    else:
        recent = float(np.mean(changes[-3:]))
        if recent < thresholds.strong_simplification:
            tendency = "strong_simplification"
        elif recent < 0:
            tendency = "mild_simplification"
        elif recent > thresholds.increasing_complexity:
            tendency = "increasing_complexity"
        else:
            tendency = "stable"

    return ComplexitySignal(
        original_complexity=base,
        complexity_changes=changes,
        complexity_trend=trend,
        simplification_tendency=tendency,
        status=OK if len(changes) >= 2 else INSUFFICIENT_DATA
    )


def platform_adaptation(mutations: Sequence[MutationNode], thresholds: SignalThresholds) -> PlatformSignal:
    """Platform vocabulary plus format markers (hashtags, mentions, URLs, length)."""
    if not mutations:
        return PlatformSignal(optimization_trend=NO_DATA, status=NO_DATA)

    n = len(mutations)
    contents = [m.content for m in mutations]
    platforms = tuple(_dominant(_scores(c, PLATFORM_INDICATORS)) for c in contents)
    hashtags = sum(1 for c in contents if '#' in c)
    mentions = sum(1 for c in contents if '@' in c)
    urls = sum(1 for c in contents if _URL_RE.search(c.lower()))
    lengths = [len(c) for c in contents]

    if n < 2:
        trend = INSUFFICIENT_DATA
    else:
        first, second = _halves(lengths)
        if second < first * thresholds.shortening_ratio:
            trend = "shortening"
        elif second > first * thresholds.lengthening_ratio:
            trend = "lengthening"
        else:
            trend = "stable"

    return PlatformSignal(
        dominant_platforms=platforms,
        platform_diversity=len(set(platforms)),
        hashtag_adoption=hashtags / n,
        mention_adoption=mentions / n,
        url_adoption=urls / n,
        adaptation_score=(hashtags + mentions + urls) / (n * 3),
        average_character_count=float(np.mean(lengths)),
        twitter_optimized_ratio=sum(1 for l in lengths if l <= thresholds.twitter_char_limit) / n,
        facebook_optimized_ratio=sum(
            1 for l in lengths
            if thresholds.twitter_char_limit < l <= thresholds.facebook_char_limit
        ) / n,
        optimization_trend=trend
    )


# =============================================================================
# ENTRY POINT
# =============================================================================

def analyze_patterns(
    family: MutationFamily,
    now: Timestamp,
    thresholds: Optional[SignalThresholds] = None
) -> PatternAnalysis:
    """Run every detector over the family history, ordered by timestamp."""
    t = thresholds or SignalThresholds()
    history = sorted(family.mutations, key=lambda m: m.timestamp.value)
    original = family.original.content

    return PatternAnalysis(
        family_id=family.family_id,
        total_mutations=len(history),
        type_counts=tuple(Counter(m.mutation_type.value for m in history).items()),
        recent_trend=recent_trend(history, now, t),
        velocity=mutation_velocity(history, now, t),
        pattern_evolution=pattern_evolution(history),
        semantic_drift=semantic_drift(original, history, t),
        virality=virality(history, t),
        audience=audience_targeting(history),
        geography=geographic_spread(history, t),
        temporal=temporal_patterns(history, t),
        complexity=complexity_evolution(original, history, t),
        platform=platform_adaptation(history, t)
    )
