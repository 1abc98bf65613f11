"""
Signal Detector Tests

Each detector is a pure function of a timestamp-ordered history and "now".
Short histories must report insufficient data rather than fake a trend.
"""

import pytest

from mutation_engine.contracts.base import MutationType
from mutation_engine.contracts.prediction import OK, INSUFFICIENT_DATA, NO_DATA
from mutation_engine.prediction.signals import (
    SignalThresholds, recent_trend, mutation_velocity, pattern_evolution,
    semantic_drift, virality, audience_targeting, geographic_spread,
    temporal_patterns, complexity_score, complexity_evolution,
    platform_adaptation, analyze_patterns
)

from tests.fixtures import make_family, stamp


CS = MutationType.CONTEXT_SHIFT
NUM = MutationType.NUMERICAL_CHANGE
EMO = MutationType.EMOTIONAL_AMPLIFICATION
TIME = MutationType.TIME_SHIFT

T = SignalThresholds()


def history(*entries, original="alpha beta gamma delta"):
    """Mutation nodes from (content, type, hours) triples."""
    return make_family(original, list(entries)).mutations


def timed(*hours, mutation_type=CS):
    return history(*[(f"text {h}", mutation_type, h) for h in hours])


class TestRecentTrend:

    def test_counts_recent_window(self):
        signal = recent_trend(timed(0, 10, 30), stamp(30), T)
        assert signal.recent_count == 2
        assert signal.trend == "increasing"

    def test_empty_history(self):
        signal = recent_trend([], stamp(0), T)
        assert signal.recent_count == 0
        assert signal.trend == "stable"


class TestMutationVelocity:
    """Lifetime rate versus the six-hour window."""

    def test_stable(self):
        signal = mutation_velocity(timed(0, 10, 20), stamp(20), T)
        assert signal.velocity == pytest.approx(0.15)
        assert signal.recent_velocity == pytest.approx(1 / 6)
        assert signal.trend == "stable"
        assert signal.acceleration_factor == pytest.approx((1 / 6) / 0.15)
        assert signal.has_data

    def test_accelerating(self):
        signal = mutation_velocity(timed(0, 100, 101, 102), stamp(102), T)
        assert signal.trend == "accelerating"

    def test_decelerating(self):
        signal = mutation_velocity(timed(0, 1, 2), stamp(100), T)
        assert signal.velocity == pytest.approx(1.5)
        assert signal.trend == "decelerating"

    def test_single_mutation(self):
        signal = mutation_velocity(timed(0), stamp(0), T)
        assert signal.status == INSUFFICIENT_DATA
        assert not signal.has_data

    def test_zero_span(self):
        signal = mutation_velocity(timed(5, 5), stamp(5), T)
        assert signal.status == INSUFFICIENT_DATA
        assert signal.velocity == 0.0


class TestPatternEvolution:
    """Dominant type per third of the history."""

    def test_shift_detected(self):
        mutations = history(
            ("a", NUM, 0), ("b", NUM, 1), ("c", EMO, 2), ("d", EMO, 3), ("e", TIME, 4), ("f", TIME, 5)
        )
        signal = pattern_evolution(mutations)
        assert (signal.early_dominant, signal.middle_dominant, signal.late_dominant) == (
            "NUMERICAL_CHANGE", "EMOTIONAL_AMPLIFICATION", "TIME_SHIFT"
        )
        assert signal.pattern_shift
        assert signal.evolution_trend == ("NUMERICAL_CHANGE_decreasing", "TIME_SHIFT_increasing")

    def test_empty_last_third_is_no_shift(self):
        """Four items in thirds of two leave the late phase empty."""
        signal = pattern_evolution(history(("a", NUM, 0), ("b", NUM, 1), ("c", EMO, 2), ("d", EMO, 3)))
        assert signal.late_dominant == "none"
        assert not signal.pattern_shift

    def test_tied_phase_goes_to_later_type(self):
        mutations = history(
            ("a", NUM, 0), ("b", EMO, 1), ("c", EMO, 2), ("d", NUM, 3), ("e", TIME, 4), ("f", TIME, 5)
        )
        signal = pattern_evolution(mutations)
        assert (signal.early_dominant, signal.middle_dominant, signal.late_dominant) == (
            "EMOTIONAL_AMPLIFICATION", "NUMERICAL_CHANGE", "TIME_SHIFT"
        )
        assert signal.pattern_shift

    def test_same_type_throughout_is_stable(self):
        signal = pattern_evolution(timed(0, 1, 2))
        assert not signal.pattern_shift
        assert signal.evolution_trend == ("stable",)

    def test_short_history(self):
        signal = pattern_evolution(timed(0, 1))
        assert signal.status == INSUFFICIENT_DATA
        assert signal.early_dominant == "unknown"


class TestSemanticDrift:
    """1 - word Jaccard against the original."""

    def test_increasing_drift(self):
        mutations = history(("alpha beta gamma delta", CS, 0), ("alpha beta epsilon zeta", CS, 1))
        signal = semantic_drift("alpha beta gamma delta", mutations, T)
        assert signal.drift_progression == pytest.approx((0.0, 2 / 3))
        assert signal.average_drift == pytest.approx(1 / 3)
        assert signal.max_drift == pytest.approx(2 / 3)
        assert signal.drift_trend == "increasing_drift"
        assert signal.semantic_stability == "moderate"

    def test_stable_drift(self):
        mutations = history(("alpha beta gamma delta", CS, 0), ("Alpha, beta gamma delta!", CS, 1))
        signal = semantic_drift("alpha beta gamma delta", mutations, T)
        assert signal.drift_trend == "stable_drift"
        assert signal.semantic_stability == "stable"

    def test_single_mutation_has_no_trend(self):
        signal = semantic_drift("alpha", history(("omega", CS, 0)), T)
        assert signal.drift_trend == INSUFFICIENT_DATA
        assert signal.semantic_stability == "high_drift"
        assert signal.status == OK

    def test_no_mutations(self):
        signal = semantic_drift("alpha", [], T)
        assert signal.drift_trend == NO_DATA
        assert signal.status == INSUFFICIENT_DATA


class TestVirality:
    """Urgency keywords and intensifiers per word."""

    def test_scores_and_trend(self):
        mutations = history(("very urgent news", CS, 0), ("calm text here ok", CS, 1))
        signal = virality(mutations, T)
        assert signal.viral_scores == pytest.approx((2 / 3, 0.0))
        assert signal.total_emotional_intensifiers == 1
        assert signal.virality_trend == "decreasing_virality"
        assert signal.viral_potential == "high"

    def test_low_potential(self):
        signal = virality(history(("calm text here ok", CS, 0), ("quiet words only", CS, 1)), T)
        assert signal.viral_potential == "low"
        assert signal.virality_trend == "stable_virality"

    def test_empty(self):
        signal = virality([], T)
        assert signal.status == INSUFFICIENT_DATA
        assert signal.viral_potential == "none"


class TestAudienceTargeting:

    def test_diversifying(self):
        mutations = history(
            ("for grandparents and seniors", CS, 0), ("school kids", CS, 1), ("plain text", CS, 2)
        )
        signal = audience_targeting(mutations)
        assert signal.dominant_audiences == ("elderly", "parents", "none")
        assert signal.audiences_targeted == ("elderly", "parents")
        assert signal.unique_audiences == 2
        assert signal.diversity_score == pytest.approx(2 / 3)
        assert signal.audience_focus_trend == "diversifying"

    def test_tied_scores_go_to_later_audience(self):
        signal = audience_targeting(history(("seniors and school", CS, 0), ("plain text", CS, 1)))
        assert signal.dominant_audiences == ("parents", "none")

    def test_focusing(self):
        signal = audience_targeting(history(("seniors pension", CS, 0), ("elderly retirement", CS, 1)))
        assert signal.audience_focus_trend == "focusing"

    def test_empty(self):
        assert audience_targeting([]).status == INSUFFICIENT_DATA


class TestGeographicSpread:

    def test_local_to_global(self):
        signal = geographic_spread(history(("flood in mumbai", CS, 0), ("flood in india", CS, 1)), T)
        assert signal.dominant_locations == ("mumbai", "india")
        assert signal.spread_pattern == "local_to_global"
        assert signal.localization_trend == "localizing"

    def test_localized(self):
        signal = geographic_spread(history(("news from chennai", CS, 0), ("more from madras", CS, 1)), T)
        assert signal.spread_pattern == "localized"

    def test_globalizing(self):
        signal = geographic_spread(history(("global alert", CS, 0), ("world news", CS, 1)), T)
        assert signal.localization_trend == "globalizing"

    def test_short_history(self):
        signal = geographic_spread(history(("flood in mumbai", CS, 0)), T)
        assert signal.status == INSUFFICIENT_DATA


class TestTemporalPatterns:

    def test_clustered(self):
        signal = temporal_patterns(timed(0, 0.5, 0.75, 1.0), T)
        assert signal.average_interval_hours == pytest.approx(1 / 3)
        assert signal.min_interval_hours == pytest.approx(0.25)
        assert signal.max_interval_hours == pytest.approx(0.5)
        assert signal.interval_variance == pytest.approx(1 / 72)
        assert signal.hour_distribution == ((0, 3), (1, 1))
        assert signal.peak_hours == (0,)
        assert signal.temporal_clustering == "highly_clustered"

    def test_sparse(self):
        assert temporal_patterns(timed(0, 30, 60, 90), T).temporal_clustering == "sparse"

    def test_two_intervals_not_enough_for_clustering(self):
        signal = temporal_patterns(timed(0, 1, 2), T)
        assert signal.status == OK
        assert signal.temporal_clustering == INSUFFICIENT_DATA

    def test_short_history(self):
        assert temporal_patterns(timed(0), T).status == INSUFFICIENT_DATA


class TestComplexity:

    def test_score(self):
        assert complexity_score("One two three. Four five six.") == pytest.approx(3.0)
        assert complexity_score("a a a a") == pytest.approx(1.0)
        assert complexity_score("") == 0.0

    def test_simplifying_history(self):
        mutations = history(("alpha beta", CS, 0), ("alpha", CS, 1))
        signal = complexity_evolution("alpha beta gamma delta", mutations, T)
        assert signal.original_complexity == pytest.approx(4.0)
        assert signal.complexity_changes == pytest.approx((-2.0, -3.0))
        assert signal.complexity_trend == "decreasing_complexity"
        assert signal.simplification_tendency == "strong_simplification"
        assert signal.status == OK

    def test_single_change(self):
        signal = complexity_evolution("alpha beta", history(("alpha beta gamma", CS, 0)), T)
        assert signal.status == INSUFFICIENT_DATA
        assert signal.complexity_trend == INSUFFICIENT_DATA
        assert signal.simplification_tendency == "increasing_complexity"

    def test_no_changes(self):
        signal = complexity_evolution("alpha", [], T)
        assert signal.simplification_tendency == NO_DATA


class TestPlatformAdaptation:

    def test_format_markers(self):
        mutations = history(
            ("#vaccine alert @who", CS, 0), ("share on facebook", CS, 1), ("see https://x.io now", CS, 2)
        )
        signal = platform_adaptation(mutations, T)
        assert signal.dominant_platforms == ("twitter", "facebook", "none")
        assert signal.platform_diversity == 3
        assert signal.hashtag_adoption == pytest.approx(1 / 3)
        assert signal.url_adoption == pytest.approx(1 / 3)
        assert signal.adaptation_score == pytest.approx(1 / 3)
        assert signal.twitter_optimized_ratio == 1.0
        assert signal.optimization_trend == "stable"

    def test_lengthening(self):
        signal = platform_adaptation(history(("ab", CS, 0), ("a much longer text here", CS, 1)), T)
        assert signal.optimization_trend == "lengthening"

    def test_no_mutations(self):
        signal = platform_adaptation([], T)
        assert signal.status == NO_DATA
        assert signal.optimization_trend == NO_DATA


class TestAnalyzePatterns:
    """Runs all detectors over one sorted history."""

    def test_history_sorted_by_timestamp(self):
        family = make_family("alpha beta", [("late", TIME, 5), ("early", NUM, 1)])
        analysis = analyze_patterns(family, stamp(5))
        assert analysis.total_mutations == 2
        assert analysis.type_counts == (("NUMERICAL_CHANGE", 1), ("TIME_SHIFT", 1))
        assert analysis.type_count("TIME_SHIFT") == 1
        assert analysis.type_count("CONTEXT_SHIFT") == 0
        assert analysis.velocity.velocity == pytest.approx(0.5)

    def test_empty_family(self):
        analysis = analyze_patterns(make_family("alpha beta"), stamp(0))
        assert analysis.total_mutations == 0
        assert not analysis.velocity.has_data
        assert not analysis.pattern_evolution.has_data
        assert analysis.to_dict()['family_id'] == "family_fixture"
