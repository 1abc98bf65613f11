"""
Prediction Contracts

Signals are pure summaries of one family's mutation history; the report
is what the synthesizer derives from them. Everything here is immutable
and serializes through to_dict().

Each signal carries a `status`: "ok" when it had enough history,
"insufficient_data" (or "no_data") otherwise. Callers never have to guess
whether a zero means "nothing happened" or "nothing to look at".
"""

from __future__ import annotations
from dataclasses import dataclass, field, asdict
from typing import Dict, Optional, Tuple

from .base import Error, Timestamp


OK = "ok"
INSUFFICIENT_DATA = "insufficient_data"
NO_DATA = "no_data"


class _Signal:
    """Shared serialization for signal dataclasses."""

    status: str

    @property
    def has_data(self) -> bool:
        return self.status == OK

    def to_dict(self) -> dict:
        return asdict(self)


# =============================================================================
# SIGNALS
# =============================================================================

@dataclass(frozen=True)
class RecentTrend(_Signal):
    recent_count: int
    trend: str
    status: str = OK


@dataclass(frozen=True)
class VelocitySignal(_Signal):
    """Mutations per hour over the family lifetime versus the recent window."""
    velocity: float
    recent_velocity: float
    trend: str
    acceleration_factor: float
    status: str = OK


@dataclass(frozen=True)
class PatternEvolutionSignal(_Signal):
    """Dominant mutation type in the early, middle and late thirds of history."""
    early_dominant: str
    middle_dominant: str
    late_dominant: str
    pattern_shift: bool
    evolution_trend: Tuple[str, ...]
    phase_counts: Tuple[Tuple[Tuple[str, int], ...], ...] = field(default_factory=tuple)
    status: str = OK


@dataclass(frozen=True)
class SemanticDriftSignal(_Signal):
    """1 - word Jaccard of every mutation against the original."""
    average_drift: float
    max_drift: float
    drift_progression: Tuple[float, ...]
    drift_trend: str
    semantic_stability: str
    status: str = OK


@dataclass(frozen=True)
class ViralitySignal(_Signal):
    average_viral_score: float
    total_emotional_intensifiers: int
    viral_scores: Tuple[float, ...]
    virality_trend: str
    viral_potential: str
    status: str = OK


@dataclass(frozen=True)
class AudienceSignal(_Signal):
    dominant_audiences: Tuple[str, ...]
    unique_audiences: int
    diversity_score: float
    audiences_targeted: Tuple[str, ...]
    audience_focus_trend: str
    status: str = OK


@dataclass(frozen=True)
class GeographySignal(_Signal):
    dominant_locations: Tuple[str, ...]
    spread_pattern: str
    localization_trend: str
    status: str = OK


@dataclass(frozen=True)
class TemporalSignal(_Signal):
    average_interval_hours: float = 0.0
    min_interval_hours: float = 0.0
    max_interval_hours: float = 0.0
    interval_variance: float = 0.0
    hour_distribution: Tuple[Tuple[int, int], ...] = field(default_factory=tuple)
    peak_hours: Tuple[int, ...] = field(default_factory=tuple)
    temporal_clustering: str = INSUFFICIENT_DATA
    status: str = OK


@dataclass(frozen=True)
class ComplexitySignal(_Signal):
    """Average words per sentence times lexical diversity, relative to the original."""
    original_complexity: float
    complexity_changes: Tuple[float, ...]
    complexity_trend: str
    simplification_tendency: str
    status: str = OK


@dataclass(frozen=True)
class PlatformSignal(_Signal):
    dominant_platforms: Tuple[str, ...] = field(default_factory=tuple)
    platform_diversity: int = 0
    hashtag_adoption: float = 0.0
    mention_adoption: float = 0.0
    url_adoption: float = 0.0
    adaptation_score: float = 0.0
    average_character_count: float = 0.0
    twitter_optimized_ratio: float = 0.0
    facebook_optimized_ratio: float = 0.0
    optimization_trend: str = INSUFFICIENT_DATA
    status: str = OK


@dataclass(frozen=True)
class PatternAnalysis:
    """Every signal derived from one family history at one instant."""
    family_id: str
    total_mutations: int
    type_counts: Tuple[Tuple[str, int], ...]
    recent_trend: RecentTrend
    velocity: VelocitySignal
    pattern_evolution: PatternEvolutionSignal
    semantic_drift: SemanticDriftSignal
    virality: ViralitySignal
    audience: AudienceSignal
    geography: GeographySignal
    temporal: TemporalSignal
    complexity: ComplexitySignal
    platform: PlatformSignal

    def type_count(self, label: str) -> int:
        return dict(self.type_counts).get(label, 0)

    def to_dict(self) -> dict:
        return {
            'family_id': self.family_id,
            'total_mutations': self.total_mutations,
            'type_counts': dict(self.type_counts),
            'recent_trend': self.recent_trend.to_dict(),
            'mutation_velocity': self.velocity.to_dict(),
            'pattern_evolution': self.pattern_evolution.to_dict(),
            'semantic_drift': self.semantic_drift.to_dict(),
            'virality_indicators': self.virality.to_dict(),
            'target_audience_shifts': self.audience.to_dict(),
            'geographical_spread': self.geography.to_dict(),
            'temporal_patterns': self.temporal.to_dict(),
            'complexity_evolution': self.complexity.to_dict(),
            'cross_platform_adaptation': self.platform.to_dict(),
        }


# =============================================================================
# REPORT
# =============================================================================

@dataclass(frozen=True)
class Prediction:
    """
    One forecast.

    probability is the only likelihood figure on a prediction; the
    report-level `confidence` describes trust in the analysis as a whole.
    """
    prediction_type: str
    category: str
    probability: float
    predicted_content: str
    reasoning: str
    confidence_factors: Tuple[str, ...]
    details: Dict[str, object] = field(default_factory=dict)

    def to_dict(self) -> dict:
        data = {
            'type': self.prediction_type,
            'category': self.category,
            'probability': self.probability,
            'predicted_content': self.predicted_content,
            'reasoning': self.reasoning,
            'confidence_factors': list(self.confidence_factors),
        }
        data.update(self.details)
        return data


@dataclass(frozen=True)
class ConfidenceAnalysis:
    confidence: float
    base_confidence: float
    pattern_strength: float
    mutation_count_factor: str
    velocity_factor: str
    virality_factor: str
    stability_factor: str

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class PredictionSummary:
    total_predictions: int
    high_probability_predictions: int
    prediction_categories: Tuple[str, ...]
    dominant_prediction_type: str

    def to_dict(self) -> dict:
        return {
            'total_predictions': self.total_predictions,
            'high_probability_predictions': self.high_probability_predictions,
            'prediction_categories': list(self.prediction_categories),
            'dominant_prediction_type': self.dominant_prediction_type,
        }


@dataclass(frozen=True)
class NextAnalysis:
    next_analysis_time: Timestamp
    hours_until_next: float
    analysis_frequency: str

    def to_dict(self) -> dict:
        return {
            'next_analysis_time': self.next_analysis_time.to_iso(),
            'hours_until_next': self.hours_until_next,
            'analysis_frequency': self.analysis_frequency,
        }


@dataclass(frozen=True)
class PredictionReport:
    """Answer of predict_mutations, or an empty report carrying an Error."""
    family_id: Optional[str]
    predictions: Tuple[Prediction, ...] = field(default_factory=tuple)
    summary: Optional[PredictionSummary] = None
    confidence: float = 0.0
    confidence_analysis: Optional[ConfidenceAnalysis] = None
    pattern_analysis: Optional[PatternAnalysis] = None
    analysis_date: Optional[Timestamp] = None
    next_analysis: Optional[NextAnalysis] = None
    next_mutation_eta_hours: Optional[float] = None
    error: Optional[Error] = None

    @staticmethod
    def failed(family_id: Optional[str], error: Error) -> PredictionReport:
        return PredictionReport(family_id=family_id, error=error)

    @property
    def is_success(self) -> bool:
        return self.error is None

    def to_dict(self) -> dict:
        if self.error is not None:
            return {
                'family_id': self.family_id,
                'predictions': [],
                'error': self.error.to_dict(),
            }
        analysis = self.pattern_analysis
        return {
            'family_id': self.family_id,
            'predictions': [p.to_dict() for p in self.predictions],
            'prediction_summary': self.summary.to_dict() if self.summary else None,
            'confidence': self.confidence,
            'confidence_analysis': (
                self.confidence_analysis.to_dict() if self.confidence_analysis else None
            ),
            'pattern_analysis': analysis.to_dict() if analysis else None,
            'analysis_date': self.analysis_date.to_iso() if self.analysis_date else None,
            'next_mutation_eta_hours': self.next_mutation_eta_hours,
            'next_analysis_recommended': (
                self.next_analysis.to_dict() if self.next_analysis else None
            ),
        }
