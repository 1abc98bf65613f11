"""
Observability & Audit Layer

RESPONSIBILITY: Audit trail, metrics, diagnostic logging setup
ALLOWED INPUTS: AuditLogEntry and metric values from other layers
OUTPUTS: Queryable audit entries, metric series and aggregates

WHAT THIS LAYER MUST NOT DO:
============================
- Modify engine behavior
- Filter or interpret events (only record them)
- Make decisions based on logged data
- Access mutable state in other layers

BOUNDARY ENFORCEMENT:
=====================
- Receives immutable entries (never references to families)
- Collectors are append-only
- Provides read-only access to logs and metrics
"""

from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, List, Optional, Tuple
import json
import logging
import sys
import threading

from ..contracts.base import Timestamp
from ..contracts.events import AuditLogEntry, AuditEventType, MetricPoint


# =============================================================================
# AUDIT LOG COLLECTOR
# =============================================================================

class AuditLogCollector:
    """
    Append-only audit trail for one engine instance.

    Every state change of the registry lands here as an AuditLogEntry.
    """

    def __init__(self, layer_name: str = "engine"):
        self._layer_name = layer_name
        self._entries: List[AuditLogEntry] = []
        self._lock = threading.Lock()

    def collect(self, entry: AuditLogEntry):
        """Collect an audit entry (append-only)."""
        with self._lock:
            self._entries.append(entry)

    def get_entries(
        self,
        event_type: Optional[AuditEventType] = None,
        entity_id: Optional[str] = None
    ) -> List[AuditLogEntry]:
        """Get entries, optionally filtered."""
        with self._lock:
            entries = list(self._entries)

        if event_type:
            entries = [e for e in entries if e.event_type == event_type]

        if entity_id:
            entries = [e for e in entries if e.entity_id == entity_id]

        return entries

    @property
    def layer_name(self) -> str:
        return self._layer_name

    @property
    def entry_count(self) -> int:
        return len(self._entries)


# =============================================================================
# METRICS COLLECTOR
# =============================================================================

class MetricType(Enum):
    """Types of metrics collected."""
    COUNTER = "counter"
    GAUGE = "gauge"
    TIMING = "timing"


@dataclass
class MetricDefinition:
    """Definition of a metric to collect."""
    name: str
    metric_type: MetricType
    description: str
    labels: Tuple[str, ...] = field(default_factory=tuple)


class MetricsCollector:
    """
    Collect and aggregate engine metrics.

    Metrics are append-only time series data points.
    """

    def __init__(self):
        self._metrics: Dict[str, List[MetricPoint]] = {}
        self._definitions: Dict[str, MetricDefinition] = {}
        self._lock = threading.Lock()
        self._register_default_metrics()

    def _register_default_metrics(self):
        """Register standard metrics."""
        defaults = [
            MetricDefinition(
                name="ingest_total",
                metric_type=MetricType.COUNTER,
                description="Ingest calls by outcome",
                labels=("outcome",)
            ),
            MetricDefinition(
                name="similarity_fallback_total",
                metric_type=MetricType.COUNTER,
                description="Comparisons that fell back to plain lexical Jaccard"
            ),
            MetricDefinition(
                name="families_total",
                metric_type=MetricType.GAUGE,
                description="Number of mutation families"
            ),
            MetricDefinition(
                name="mutations_total",
                metric_type=MetricType.GAUGE,
                description="Number of mutation nodes across all families"
            ),
            MetricDefinition(
                name="ingest_duration_ms",
                metric_type=MetricType.TIMING,
                description="Ingest processing time in milliseconds"
            ),
            MetricDefinition(
                name="prediction_duration_ms",
                metric_type=MetricType.TIMING,
                description="Prediction processing time in milliseconds"
            ),
        ]

        for definition in defaults:
            self.register_metric(definition)

    def register_metric(self, definition: MetricDefinition):
        """Register a new metric definition."""
        self._definitions[definition.name] = definition
        if definition.name not in self._metrics:
            self._metrics[definition.name] = []

    def definition(self, metric_name: str) -> Optional[MetricDefinition]:
        return self._definitions.get(metric_name)

    def record(
        self,
        metric_name: str,
        value: float,
        labels: Optional[Dict[str, str]] = None
    ):
        """Record a metric data point."""
        label_tuple = tuple(sorted(labels.items())) if labels else ()
        point = MetricPoint(
            metric_name=metric_name,
            value=value,
            timestamp=Timestamp.now(),
            labels=label_tuple
        )
        with self._lock:
            self._metrics.setdefault(metric_name, []).append(point)

    def get_metric(
        self,
        metric_name: str,
        labels: Optional[Dict[str, str]] = None
    ) -> List[MetricPoint]:
        """Get metric data points, optionally filtered by an exact label set."""
        with self._lock:
            points = list(self._metrics.get(metric_name, []))

        if labels:
            wanted = tuple(sorted(labels.items()))
            points = [p for p in points if p.labels == wanted]

        return points

    def get_latest(self, metric_name: str) -> Optional[MetricPoint]:
        """Get the latest value for a metric."""
        points = self.get_metric(metric_name)
        return points[-1] if points else None

    def compute_aggregates(
        self,
        metric_name: str,
        labels: Optional[Dict[str, str]] = None
    ) -> Dict[str, float]:
        """Compute aggregate statistics for a metric."""
        points = self.get_metric(metric_name, labels)

        if not points:
            return {}

        values = [p.value for p in points]

        return {
            'count': len(values),
            'sum': sum(values),
            'min': min(values),
            'max': max(values),
            'avg': sum(values) / len(values),
        }


# =============================================================================
# DIAGNOSTIC LOGGING
# =============================================================================

class JSONFormatter(logging.Formatter):
    """JSON log formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        if record.funcName:
            log_data["function"] = record.funcName
        if record.lineno:
            log_data["line"] = record.lineno

        return json.dumps(log_data, default=str)


class TextFormatter(logging.Formatter):
    """Human-readable log formatter."""

    def __init__(self):
        super().__init__(
            fmt="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )


def setup_logging(level: str = "INFO", json_format: bool = False) -> logging.Logger:
    """
    Attach a single stderr handler to the package logger.

    Only the `mutation_engine` logger is configured; the root logger of the
    embedding application is left alone.
    """
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(JSONFormatter() if json_format else TextFormatter())

    package_logger = logging.getLogger("mutation_engine")
    package_logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    package_logger.handlers = [handler]
    package_logger.propagate = False
    return package_logger
