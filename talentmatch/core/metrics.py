"""
In-process metrics rendered in Prometheus text format.

One registry holds every counter and histogram; `/metrics` exports it and
the test suite resets it between cases.
"""

from __future__ import annotations

import re
import threading
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

LabelValues = Tuple[str, ...]


def _escape(value: str) -> str:
    return value.replace("\\", "\\\\").replace("\"", "\\\"")


def _render_labels(names: Sequence[str], values: LabelValues, extra: Sequence[Tuple[str, str]] = ()) -> str:
    pairs = list(zip(names, values)) + list(extra)
    if not pairs:
        return ""
    return "{" + ",".join(f'{name}="{_escape(val)}"' for name, val in pairs) + "}"


class _Metric:
    kind = "untyped"

    def __init__(self, name: str, label_names: Optional[Iterable[str]] = None, help_text: str = ""):
        self.name = name
        self.label_names = tuple(label_names or ())
        self.help_text = help_text
        self._lock = threading.Lock()

    def _key(self, labels: Optional[Dict[str, str]]) -> LabelValues:
        labels = labels or {}
        unknown = set(labels) - set(self.label_names)
        if unknown:
            raise ValueError(f"{self.name}: unknown labels {sorted(unknown)}")
        return tuple(str(labels.get(name, "")) for name in self.label_names)

    def _header(self) -> List[str]:
        lines = [f"# HELP {self.name} {self.help_text}"] if self.help_text else []
        lines.append(f"# TYPE {self.name} {self.kind}")
        return lines


class Counter(_Metric):
    kind = "counter"

    def __init__(self, name: str, label_names: Optional[Iterable[str]] = None, help_text: str = ""):
        super().__init__(name, label_names, help_text)
        self._values: Dict[LabelValues, float] = {}

    def inc(self, labels: Optional[Dict[str, str]] = None, amount: float = 1.0):
        if amount < 0:
            raise ValueError(f"{self.name}: counters cannot decrease")
        key = self._key(labels)
        with self._lock:
            self._values[key] = self._values.get(key, 0.0) + float(amount)

    def value(self, labels: Optional[Dict[str, str]] = None) -> float:
        key = self._key(labels)
        with self._lock:
            return self._values.get(key, 0.0)

    def export(self) -> List[str]:
        lines = self._header()
        with self._lock:
            for key, value in self._values.items():
                lines.append(f"{self.name}{_render_labels(self.label_names, key)} {value}")
        return lines

    def reset(self):
        with self._lock:
            self._values.clear()


class Histogram(_Metric):
    """Cumulative-bucket histogram; bucket bounds are upper-inclusive."""

    kind = "histogram"
    DEFAULT_BUCKETS = (0.5, 1.0, 2.5, 5.0, 10.0, 30.0)

    def __init__(
        self,
        name: str,
        label_names: Optional[Iterable[str]] = None,
        help_text: str = "",
        buckets: Sequence[float] = DEFAULT_BUCKETS,
    ):
        super().__init__(name, label_names, help_text)
        self.buckets = tuple(sorted(float(b) for b in buckets))
        self._series: Dict[LabelValues, dict] = {}

    def observe(self, value: float, labels: Optional[Dict[str, str]] = None):
        key = self._key(labels)
        with self._lock:
            series = self._series.setdefault(key, {"buckets": [0] * len(self.buckets), "sum": 0.0, "count": 0})
            for i, bound in enumerate(self.buckets):
                if value <= bound:
                    series["buckets"][i] += 1
            series["sum"] += float(value)
            series["count"] += 1

    def count(self, labels: Optional[Dict[str, str]] = None) -> int:
        key = self._key(labels)
        with self._lock:
            series = self._series.get(key)
            return series["count"] if series else 0

    def export(self) -> List[str]:
        lines = self._header()
        with self._lock:
            for key, series in self._series.items():
                for bound, hits in zip(self.buckets, series["buckets"]):
                    labels = _render_labels(self.label_names, key, [("le", str(bound))])
                    lines.append(f"{self.name}_bucket{labels} {hits}")
                labels = _render_labels(self.label_names, key, [("le", "+Inf")])
                lines.append(f"{self.name}_bucket{labels} {series['count']}")
                plain = _render_labels(self.label_names, key)
                lines.append(f"{self.name}_sum{plain} {series['sum']}")
                lines.append(f"{self.name}_count{plain} {series['count']}")
        return lines

    def reset(self):
        with self._lock:
            self._series.clear()


class MetricsRegistry:
    def __init__(self):
        self._metrics: Dict[str, _Metric] = {}
        self._lock = threading.Lock()

    def _register(self, metric: _Metric) -> _Metric:
        with self._lock:
            existing = self._metrics.get(metric.name)
            if existing is not None:
                if type(existing) is not type(metric):
                    raise ValueError(f"metric {metric.name} already registered as {existing.kind}")
                return existing
            self._metrics[metric.name] = metric
            return metric

    def counter(self, name: str, label_names: Optional[Iterable[str]] = None, help_text: str = "") -> Counter:
        return self._register(Counter(name, label_names, help_text))

    def histogram(
        self,
        name: str,
        label_names: Optional[Iterable[str]] = None,
        help_text: str = "",
        buckets: Sequence[float] = Histogram.DEFAULT_BUCKETS,
    ) -> Histogram:
        return self._register(Histogram(name, label_names, help_text, buckets))

    def export_prometheus(self) -> str:
        lines: List[str] = []
        for metric in list(self._metrics.values()):
            lines.extend(metric.export())
        return "\n".join(lines) + "\n"

    def reset(self):
        for metric in list(self._metrics.values()):
            metric.reset()


METRICS = MetricsRegistry()

http_requests_total = METRICS.counter(
    "http_requests_total", ["method", "path", "status"], "HTTP requests by route and status"
)
http_request_duration_seconds = METRICS.histogram(
    "http_request_duration_seconds",
    ["method", "path"],
    "HTTP request latency",
    buckets=(0.01, 0.05, 0.1, 0.5, 1.0, 5.0, 30.0),
)
admissions_total = METRICS.counter(
    "admissions_total", ["outcome"], "Analysis admissions by outcome"
)
scoring_duration_seconds = METRICS.histogram(
    "scoring_duration_seconds", ["result"], "Scoring engine latency (assess + draft)"
)
entitlement_changes_total = METRICS.counter(
    "entitlement_changes_total", ["result"], "Entitlement changes by result"
)
billing_webhooks_total = METRICS.counter(
    "billing_webhooks_total", ["status"], "Billing webhooks by processing status"
)


_ID_SEGMENT_RE = re.compile(r"^(\d+|[0-9a-fA-F]{8}-[0-9a-fA-F-]{27,})$")


def normalize_path(path: str) -> str:
    """Collapse numeric and UUID path segments to :id to bound label cardinality."""
    segments = [s for s in path.split("/") if s]
    return "/" + "/".join(":id" if _ID_SEGMENT_RE.match(s) else s for s in segments)
