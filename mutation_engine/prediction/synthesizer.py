"""
Prediction Synthesizer

Maps a PatternAnalysis to ranked predictions. Every trigger is a named
constant on PredictionConfig; a signal without enough history never
triggers a prediction.
"""

from __future__ import annotations
from dataclasses import dataclass
from datetime import timedelta
from typing import Callable, List, Optional, Sequence, Tuple

from ..contracts.base import MutationType, Timestamp
from ..contracts.prediction import (
    PatternAnalysis, Prediction, PredictionSummary, ConfidenceAnalysis, NextAnalysis
)
from ..normalization.vocabulary import AUDIENCE_INDICATORS, AUDIENCE_VULNERABILITY, TARGETING_STRATEGIES
from .templates import ContentTemplates


@dataclass
class PredictionConfig:
    """Trigger thresholds, probabilities and confidence weights."""
    # Triggers
    velocity_trigger: float = 0.1
    audience_diversity_trigger: float = 0.3
    audience_diversity_high: float = 0.5
    platform_adaptation_trigger: float = 0.1
    platform_adaptation_high: float = 0.3

    # Probabilities
    velocity_accelerating_probability: float = 0.85
    velocity_probability: float = 0.65
    pattern_evolution_probability: float = 0.75
    viral_amplification_probability: float = 0.9
    audience_high_probability: float = 0.7
    audience_probability: float = 0.55
    geographical_expansion_probability: float = 0.8
    platform_high_probability: float = 0.65
    platform_probability: float = 0.45
    semantic_mutation_probability: float = 0.6
    complexity_shift_probability: float = 0.55
    pattern_intensification_probability: float = 0.6
    high_probability_cutoff: float = 0.8

    # Confidence
    base_confidence_none: float = 0.1
    base_confidence_some: float = 0.4
    base_confidence_many: float = 0.7
    base_confidence_most: float = 0.9
    some_mutations: int = 3
    many_mutations: int = 10
    most_mutations: int = 20
    accelerating_weight: float = 0.2
    pattern_shift_weight: float = 0.1
    high_virality_weight: float = 0.15
    stable_semantics_weight: float = 0.1
    high_drift_penalty: float = 0.1
    recent_activity_weight: float = 0.1
    min_confidence: float = 0.05
    max_confidence: float = 0.95

    # Timing
    default_velocity: float = 0.1
    min_eta_hours: float = 0.5
    max_eta_hours: float = 48.0
    accelerating_eta_confidence: float = 0.8
    eta_confidence: float = 0.5
    default_analysis_hours: float = 24.0
    min_accelerating_analysis_hours: float = 2.0
    accelerating_analysis_numerator: float = 12.0
    max_decelerating_analysis_hours: float = 72.0
    decelerating_analysis_numerator: float = 48.0

    # Content
    drift_growth_factor: float = 1.3


# Ties between equally frequent types resolve in this order.
INTENSIFICATION_ORDER: Tuple[Tuple[MutationType, str], ...] = (
    (MutationType.EMOTIONAL_AMPLIFICATION, 'escalate_urgency_and_fear'),
    (MutationType.NUMERICAL_CHANGE, 'accelerate_timeline_compression'),
    (MutationType.LOCATION_CHANGE, 'expand_geographical_scope'),
    (MutationType.PHRASE_ADDITION, 'add_credibility_markers'),
    (MutationType.WORD_SUBSTITUTION, 'strengthen_language_intensity'),
    (MutationType.CONTEXT_SHIFT, 'reframe_narrative_angle'),
    (MutationType.SOURCE_MODIFICATION, 'enhance_authority_claims'),
    (MutationType.TIME_SHIFT, 'create_temporal_urgency'),
)

COMPLEXITY_TARGETS = {
    'simplify': (0.3, 'aggressive_simplification'),
    'complexify': (0.8, 'detail_expansion'),
    'maintain': (0.5, 'stability'),
}

LOCAL_CITIES = ('Mumbai', 'Delhi', 'Bangalore', 'Chennai', 'Kolkata')

# Every platform prediction targets Twitter.
TARGET_PLATFORM = 'twitter'
TARGET_OPTIMIZATIONS = ('hashtags', 'mentions', 'character_limit')


class PredictionSynthesizer:
    """Signals in, ranked and explained predictions out."""

    def __init__(self, config: Optional[PredictionConfig] = None, templates: Optional[ContentTemplates] = None):
        self.config = config or PredictionConfig()
        self.templates = templates or ContentTemplates()

    # =========================================================================
    # PREDICTIONS
    # =========================================================================

    def predictions(self, analysis: PatternAnalysis, content: str) -> Tuple[Prediction, ...]:
        """Every triggered prediction, highest probability first (stable)."""
        builders: Sequence[Callable[[PatternAnalysis, str], Optional[Prediction]]] = (
            self._velocity,
            self._pattern_evolution,
            self._virality,
            self._audience,
            self._geography,
            self._platform,
            self._semantic,
            self._complexity,
            self._intensification,
        )
        found: List[Prediction] = []
        for build in builders:
            prediction = build(analysis, content)
            if prediction is not None:
                found.append(prediction)
        return tuple(sorted(found, key=lambda p: -p.probability))

    def _velocity(self, analysis: PatternAnalysis, content: str) -> Optional[Prediction]:
        signal = analysis.velocity
        if not signal.has_data or signal.velocity <= self.config.velocity_trigger:
            return None
        accelerating = signal.trend == "accelerating"
        hours, timing_confidence = self.next_mutation_eta(analysis)
        return Prediction(
            prediction_type="VELOCITY_ACCELERATION",
            category="temporal",
            probability=(
                self.config.velocity_accelerating_probability if accelerating
                else self.config.velocity_probability
            ),
            predicted_content=self.templates.velocity_content(content),
            reasoning=(
                f"Mutation velocity detected ({signal.velocity:.2f}/hour, trend: {signal.trend}). "
                f"Next mutation predicted within {hours:.1f} hours."
            ),
            confidence_factors=(
                ('high_velocity', 'acceleration_trend', 'recent_activity') if accelerating
                else ('moderate_velocity', 'pattern_detected')
            ),
            details={'predicted_timing': {
                'next_mutation_hours': hours,
                'timing_confidence': timing_confidence,
            }}
        )

    def _pattern_evolution(self, analysis: PatternAnalysis, content: str) -> Optional[Prediction]:
        signal = analysis.pattern_evolution
        if not signal.has_data or not signal.pattern_shift:
            return None
        predicted = next_evolution_type(signal.evolution_trend)
        return Prediction(
            prediction_type="PATTERN_EVOLUTION",
            category="structural",
            probability=self.config.pattern_evolution_probability,
            predicted_content=self.templates.evolved_content(content, predicted),
            reasoning=(
                f"Pattern evolution detected: {signal.early_dominant} → {signal.late_dominant}. "
                f"Next evolution: {predicted}"
            ),
            confidence_factors=('pattern_shift_detected', 'evolution_trend', 'historical_progression'),
            details={'predicted_mutation_type': predicted}
        )

    def _virality(self, analysis: PatternAnalysis, content: str) -> Optional[Prediction]:
        signal = analysis.virality
        if not signal.has_data or signal.viral_potential != "high":
            return None
        return Prediction(
            prediction_type="VIRAL_AMPLIFICATION",
            category="engagement",
            probability=self.config.viral_amplification_probability,
            predicted_content=self.templates.viral_content(content),
            reasoning=(
                f"High viral potential detected (score: {signal.average_viral_score:.3f}). "
                f"Trend: {signal.virality_trend}"
            ),
            confidence_factors=('high_viral_score', 'viral_trend', 'emotional_escalation'),
            details={'viral_enhancement': {
                'urgency_amplification': True,
                'emotional_intensification': True,
                'shareability_optimization': True,
            }}
        )

    def _audience(self, analysis: PatternAnalysis, content: str) -> Optional[Prediction]:
        signal = analysis.audience
        if not signal.has_data or signal.diversity_score < self.config.audience_diversity_trigger:
            return None
        audience, strategy = next_audience(signal.audiences_targeted, signal.dominant_audiences)
        return Prediction(
            prediction_type="AUDIENCE_TARGETING",
            category="demographic",
            probability=(
                self.config.audience_high_probability
                if signal.diversity_score > self.config.audience_diversity_high
                else self.config.audience_probability
            ),
            predicted_content=self.templates.audience_content(content, audience),
            reasoning=(
                f"Audience diversification detected ({signal.unique_audiences} audiences targeted). "
                f"Next target: {audience}"
            ),
            confidence_factors=('audience_diversity', 'targeting_pattern', 'demographic_analysis'),
            details={'target_audience': audience, 'targeting_strategy': strategy}
        )

    def _geography(self, analysis: PatternAnalysis, content: str) -> Optional[Prediction]:
        signal = analysis.geography
        if not signal.has_data or signal.spread_pattern == "localized":
            return None
        if signal.spread_pattern == "local_to_global" or signal.localization_trend == "globalizing":
            location, strategy = "global", "international_expansion"
        elif signal.localization_trend == "localizing":
            location, strategy = self.templates.choice(LOCAL_CITIES).lower(), "local_targeting"
        else:
            location, strategy = "india", "national_spread"
        return Prediction(
            prediction_type="GEOGRAPHICAL_EXPANSION",
            category="location",
            probability=self.config.geographical_expansion_probability,
            predicted_content=self.templates.location_content(content, location),
            reasoning=(
                f"Geographical spread pattern: {signal.spread_pattern}. "
                f"Localization trend: {signal.localization_trend}"
            ),
            confidence_factors=('spread_pattern', 'localization_trend', 'geographical_analysis'),
            details={'target_location': location, 'expansion_strategy': strategy}
        )

    def _platform(self, analysis: PatternAnalysis, content: str) -> Optional[Prediction]:
        signal = analysis.platform
        if not signal.has_data or signal.adaptation_score < self.config.platform_adaptation_trigger:
            return None
        return Prediction(
            prediction_type="PLATFORM_OPTIMIZATION",
            category="format",
            probability=(
                self.config.platform_high_probability
                if signal.adaptation_score > self.config.platform_adaptation_high
                else self.config.platform_probability
            ),
            predicted_content=self.templates.platform_content(content),
            reasoning=(
                f"Cross-platform adaptation detected (score: {signal.adaptation_score:.2f}). "
                f"Next platform: {TARGET_PLATFORM}"
            ),
            confidence_factors=('adaptation_score', 'platform_diversity', 'format_evolution'),
            details={
                'target_platform': TARGET_PLATFORM,
                'format_optimizations': list(TARGET_OPTIMIZATIONS),
            }
        )

    def _semantic(self, analysis: PatternAnalysis, content: str) -> Optional[Prediction]:
        signal = analysis.semantic_drift
        if not signal.has_data or signal.drift_trend != "increasing_drift":
            return None
        return Prediction(
            prediction_type="SEMANTIC_MUTATION",
            category="content",
            probability=self.config.semantic_mutation_probability,
            predicted_content=self.templates.drifted_content(content),
            reasoning=(
                f"Semantic drift increasing (avg: {signal.average_drift:.2f}, "
                f"max: {signal.max_drift:.2f}). Stability: {signal.semantic_stability}"
            ),
            confidence_factors=('drift_trend', 'semantic_analysis', 'content_evolution'),
            details={'drift_analysis': {
                'current_drift': signal.average_drift,
                'predicted_drift': signal.average_drift * self.config.drift_growth_factor,
                'stability_risk': signal.semantic_stability,
            }}
        )

    def _complexity(self, analysis: PatternAnalysis, content: str) -> Optional[Prediction]:
        signal = analysis.complexity
        if not signal.has_data or signal.complexity_trend == "stable_complexity":
            return None
        if signal.simplification_tendency == "strong_simplification":
            direction = "simplify"
        elif signal.complexity_trend == "increasing_complexity":
            direction = "complexify"
        else:
            direction = "maintain"
        target, strategy = COMPLEXITY_TARGETS[direction]
        return Prediction(
            prediction_type="COMPLEXITY_SHIFT",
            category="structure",
            probability=self.config.complexity_shift_probability,
            predicted_content=self.templates.complexity_content(content, direction),
            reasoning=(
                f"Complexity trend: {signal.complexity_trend}. "
                f"Simplification tendency: {signal.simplification_tendency}"
            ),
            confidence_factors=('complexity_trend', 'simplification_pattern', 'structural_analysis'),
            details={'complexity_prediction': {
                'direction': direction,
                'target_complexity': target,
                'strategy': strategy,
            }}
        )

    def _intensification(self, analysis: PatternAnalysis, content: str) -> Optional[Prediction]:
        total = analysis.total_mutations
        if total == 0:
            return None
        dominant, strategy, count = dominant_pattern(analysis)
        return Prediction(
            prediction_type="PATTERN_INTENSIFICATION",
            category="behavioral",
            probability=self.config.pattern_intensification_probability,
            predicted_content=self.templates.intensified_content(content, dominant),
            reasoning=(
                f"Dominant pattern identified: {dominant} ({count}/{total} mutations). "
                "Intensification likely."
            ),
            confidence_factors=('pattern_dominance', 'historical_data', 'behavioral_analysis'),
            details={'predicted_pattern': dominant, 'intensification_strategy': strategy}
        )

    # =========================================================================
    # REPORT PARTS
    # =========================================================================

    def summary(self, predictions: Sequence[Prediction]) -> PredictionSummary:
        categories: List[str] = []
        for p in predictions:
            if p.category not in categories:
                categories.append(p.category)
        return PredictionSummary(
            total_predictions=len(predictions),
            high_probability_predictions=sum(
                1 for p in predictions if p.probability >= self.config.high_probability_cutoff
            ),
            prediction_categories=tuple(categories),
            dominant_prediction_type=predictions[0].prediction_type if predictions else "none"
        )

    def confidence(self, analysis: PatternAnalysis) -> ConfidenceAnalysis:
        """
        Trust in the analysis as a whole.

        base (by mutation count) + per-signal adjustments, clamped to
        [min_confidence, max_confidence].
        """
        cfg = self.config
        total = analysis.total_mutations
        if total >= cfg.most_mutations:
            base = cfg.base_confidence_most
        elif total >= cfg.many_mutations:
            base = cfg.base_confidence_many
        elif total >= cfg.some_mutations:
            base = cfg.base_confidence_some
        else:
            base = cfg.base_confidence_none

        strength = 0.0
        if analysis.velocity.trend == "accelerating":
            strength += cfg.accelerating_weight
        if analysis.pattern_evolution.pattern_shift:
            strength += cfg.pattern_shift_weight
        if analysis.virality.viral_potential == "high":
            strength += cfg.high_virality_weight
        drift = analysis.semantic_drift
        if drift.has_data and drift.semantic_stability == "stable":
            strength += cfg.stable_semantics_weight
        elif drift.has_data and drift.semantic_stability == "high_drift":
            strength -= cfg.high_drift_penalty
        if analysis.recent_trend.trend == "increasing":
            strength += cfg.recent_activity_weight

        if total >= cfg.many_mutations:
            count_factor = "high"
        elif total >= cfg.some_mutations:
            count_factor = "medium"
        else:
            count_factor = "low"

        return ConfidenceAnalysis(
            confidence=min(cfg.max_confidence, max(cfg.min_confidence, base + strength)),
            base_confidence=base,
            pattern_strength=strength,
            mutation_count_factor=count_factor,
            velocity_factor=analysis.velocity.trend,
            virality_factor=analysis.virality.viral_potential,
            stability_factor=analysis.semantic_drift.semantic_stability
        )

    def next_mutation_eta(self, analysis: PatternAnalysis) -> Tuple[float, float]:
        """(hours until the next expected mutation, timing confidence)."""
        cfg = self.config
        signal = analysis.velocity
        base_hours = 1.0 / (signal.velocity or cfg.default_velocity)
        acceleration = signal.acceleration_factor or 1.0
        hours = min(cfg.max_eta_hours, max(cfg.min_eta_hours, base_hours / acceleration))
        confidence = (
            cfg.accelerating_eta_confidence if signal.trend == "accelerating" else cfg.eta_confidence
        )
        return hours, confidence

    def next_analysis(self, analysis: PatternAnalysis, now: Timestamp) -> NextAnalysis:
        cfg = self.config
        velocity = analysis.velocity.velocity or cfg.default_velocity
        trend = analysis.velocity.trend
        if trend == "accelerating":
            hours = max(cfg.min_accelerating_analysis_hours, cfg.accelerating_analysis_numerator / velocity)
            frequency = "high"
        elif trend == "decelerating":
            hours = min(cfg.max_decelerating_analysis_hours, cfg.decelerating_analysis_numerator / velocity)
            frequency = "low"
        else:
            hours = cfg.default_analysis_hours
            frequency = "medium"
        return NextAnalysis(
            next_analysis_time=Timestamp(value=now.value + timedelta(hours=hours)),
            hours_until_next=hours,
            analysis_frequency=frequency
        )


# =============================================================================
# SELECTION HELPERS
# =============================================================================

def next_evolution_type(evolution_trend: Sequence[str]) -> str:
    """First type whose share grew between the early and late thirds."""
    for entry in evolution_trend:
        if entry.endswith("_increasing"):
            return entry[:-len("_increasing")].upper()
    return MutationType.EMOTIONAL_AMPLIFICATION.value


def next_audience(targeted: Sequence[str], dominants: Sequence[str]) -> Tuple[str, str]:
    """Most vulnerable audience not yet targeted, else retarget the first one."""
    best: Optional[str] = None
    for audience, _ in AUDIENCE_INDICATORS:
        if audience in targeted:
            continue
        if best is None or AUDIENCE_VULNERABILITY[audience] > AUDIENCE_VULNERABILITY[best]:
            best = audience
    if best is not None:
        return best, TARGETING_STRATEGIES[best]
    first = dominants[0] if dominants else "none"
    return ("parents" if first == "none" else first), "retargeting"


def dominant_pattern(analysis: PatternAnalysis) -> Tuple[str, str, int]:
    """(dominant mutation type, intensification strategy, its count)."""
    best_type, best_strategy, best_count = INTENSIFICATION_ORDER[0][0].value, INTENSIFICATION_ORDER[0][1], 0
    for mutation_type, strategy in INTENSIFICATION_ORDER:
        count = analysis.type_count(mutation_type.value)
        if count > best_count:
            best_type, best_strategy, best_count = mutation_type.value, strategy, count
    return best_type, best_strategy, best_count
