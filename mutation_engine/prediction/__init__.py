"""
Mutation Prediction Layer

RESPONSIBILITY: Forecast how a mutation family is likely to evolve next
ALLOWED INPUTS: A MutationFamily snapshot
OUTPUTS: PredictionReport (immutable, explicit error state)

WHAT THIS LAYER MUST NOT DO:
============================
- Modify the family it analyzes
- Feed predicted content back into any family
- Raise on short or empty histories (signals report insufficient_data)
- Read the wall clock directly (time comes from the injected clock)

BOUNDARY ENFORCEMENT:
=====================
- signals.py: independent pure detectors, history -> signal
- synthesizer.py: signals -> ranked predictions, confidence and timing
- templates.py: illustrative rewrites driven by an injectable random.Random
"""

from __future__ import annotations
from datetime import datetime, timezone
from typing import Callable, Optional
import hashlib
import logging
import random
import time

from ..contracts.base import Error, ErrorCode, Timestamp
from ..contracts.events import MutationFamily, AuditLogEntry, AuditEventType
from ..contracts.prediction import PredictionReport
from ..observability import AuditLogCollector, MetricsCollector
from .signals import SignalThresholds, analyze_patterns
from .synthesizer import PredictionConfig, PredictionSynthesizer
from .templates import ContentTemplates

logger = logging.getLogger(__name__)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class MutationPredictor:
    """
    Runs the signal detectors over a family and synthesizes a report.

    Pass a seeded random.Random to make predicted_content reproducible.
    """

    def __init__(
        self,
        config: Optional[PredictionConfig] = None,
        thresholds: Optional[SignalThresholds] = None,
        rng: Optional[random.Random] = None,
        clock: Optional[Callable[[], datetime]] = None,
        audit: Optional[AuditLogCollector] = None,
        metrics: Optional[MetricsCollector] = None
    ):
        self._thresholds = thresholds or SignalThresholds()
        self._synthesizer = PredictionSynthesizer(
            config=config,
            templates=ContentTemplates(rng=rng)
        )
        self._clock = clock or _utc_now
        self._audit = audit or AuditLogCollector(layer_name="prediction")
        self._metrics = metrics or MetricsCollector()

    @property
    def config(self) -> PredictionConfig:
        return self._synthesizer.config

    def predict(self, family: MutationFamily) -> PredictionReport:
        started = time.perf_counter()
        try:
            report = self._predict(family)
        except Exception as exc:
            logger.exception("Prediction failed for %s", family.family_id)
            report = PredictionReport.failed(family.family_id, Error.create(
                ErrorCode.PREDICTION_FAILURE, f"Prediction failed: {exc}",
                family_id=family.family_id
            ))
        self._metrics.record("prediction_duration_ms", (time.perf_counter() - started) * 1000)
        return report

    def _predict(self, family: MutationFamily) -> PredictionReport:
        now = Timestamp(value=self._clock())
        analysis = analyze_patterns(family, now, self._thresholds)

        synth = self._synthesizer
        predictions = synth.predictions(analysis, family.original.content)
        confidence = synth.confidence(analysis)
        eta_hours, _ = synth.next_mutation_eta(analysis)

        logger.debug(
            "Family %s: %d predictions from %d mutations",
            family.family_id, len(predictions), analysis.total_mutations
        )
        self._log_audit(family.family_id, now, (
            ("predictions", str(len(predictions))),
            ("confidence", f"{confidence.confidence:.2f}"),
        ))

        return PredictionReport(
            family_id=family.family_id,
            predictions=predictions,
            summary=synth.summary(predictions),
            confidence=confidence.confidence,
            confidence_analysis=confidence,
            pattern_analysis=analysis,
            analysis_date=now,
            next_analysis=synth.next_analysis(analysis, now),
            next_mutation_eta_hours=eta_hours
        )

    def _log_audit(self, family_id: str, stamp: Timestamp, metadata: tuple):
        entry_id = hashlib.sha256(
            f"prediction_{family_id}|{stamp.value.timestamp()}|{self._audit.entry_count}".encode()
        ).hexdigest()[:16]

        self._audit.collect(AuditLogEntry(
            entry_id=f"audit_{entry_id}",
            event_type=AuditEventType.PREDICTION,
            timestamp=stamp,
            layer="prediction",
            action="predict_mutations",
            entity_id=family_id,
            entity_type="family",
            metadata=metadata
        ))


__all__ = [
    'MutationPredictor', 'PredictionConfig', 'SignalThresholds', 'analyze_patterns',
    'ContentTemplates', 'PredictionSynthesizer',
]
