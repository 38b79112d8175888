"""
In-memory metrics for the authentication gateway.

Counters and histograms exposed at ``GET /api/metrics``:
- auth_attempts_total: Authentication attempts by surface and outcome
- auth_duration_seconds: Time spent in the verification sequence
- oracle_calls_total: Outbound oracle calls by oracle and result
- session_tokens_issued_total: Session tokens minted

Histograms keep running count/sum/min/max over every observation, but only
the most recent ``HISTOGRAM_WINDOW`` samples for quantiles, so memory per
series stays fixed however long the process runs.
"""
from collections import defaultdict, deque
from typing import Any

_PROM_PREFIX = "convos_"

HISTOGRAM_WINDOW = 1024

LabelSet = tuple[tuple[str, str], ...]


def _label_set(labels: dict[str, str] | None) -> LabelSet:
    return tuple(sorted((labels or {}).items()))


def _series_key(name: str, labels: LabelSet) -> str:
    """``oracle_calls_total{oracle=xmtp,result=error}``; the key used in summaries."""
    if not labels:
        return name
    return name + "{" + ",".join(f"{k}={v}" for k, v in labels) + "}"


class Counter:
    __slots__ = ("name", "labels", "value")

    def __init__(self, name: str, labels: LabelSet):
        self.name = name
        self.labels = labels
        self.value = 0


class Histogram:
    """One labelled histogram series."""

    __slots__ = ("name", "labels", "count", "total", "min", "max", "recent")

    def __init__(self, name: str, labels: LabelSet, window: int):
        self.name = name
        self.labels = labels
        self.count = 0
        self.total = 0.0
        self.min: float | None = None
        self.max: float | None = None
        self.recent: deque[float] = deque(maxlen=window)

    def __len__(self) -> int:
        return len(self.recent)

    def observe(self, value: float) -> None:
        self.count += 1
        self.total += value
        self.min = value if self.min is None else min(self.min, value)
        self.max = value if self.max is None else max(self.max, value)
        self.recent.append(value)

    def stats(self) -> dict[str, Any]:
        if not self.count:
            return {"count": 0, "sum": 0, "min": 0, "max": 0, "avg": 0, "p95": 0}
        window = sorted(self.recent)
        return {
            "count": self.count,
            "sum": self.total,
            "min": self.min,
            "max": self.max,
            "avg": self.total / self.count,
            "p95": window[max(0, int(len(window) * 0.95) - 1)],
        }


class MetricsCollector:
    """Process-local counters and windowed histograms, keyed by name and labels."""

    def __init__(self, histogram_window: int = HISTOGRAM_WINDOW):
        self.histogram_window = histogram_window
        self.counters: dict[str, Counter] = {}
        self.histograms: dict[str, Histogram] = {}

    def increment_counter(self, name: str, value: int = 1, labels: dict[str, str] | None = None):
        label_set = _label_set(labels)
        key = _series_key(name, label_set)
        counter = self.counters.get(key)
        if counter is None:
            counter = self.counters[key] = Counter(name, label_set)
        counter.value += value

    def observe_histogram(self, name: str, value: float, labels: dict[str, str] | None = None):
        label_set = _label_set(labels)
        key = _series_key(name, label_set)
        histogram = self.histograms.get(key)
        if histogram is None:
            histogram = self.histograms[key] = Histogram(name, label_set, self.histogram_window)
        histogram.observe(value)

    def get_counter(self, name: str, labels: dict[str, str] | None = None) -> int:
        counter = self.counters.get(_series_key(name, _label_set(labels)))
        return counter.value if counter else 0

    def get_histogram_stats(self, name: str, labels: dict[str, str] | None = None) -> dict[str, Any]:
        """count, sum, min, max and avg over all observations; p95 over the recent window."""
        histogram = self.histograms.get(_series_key(name, _label_set(labels)))
        if histogram is None:
            histogram = Histogram(name, (), 1)
        return histogram.stats()

    def get_all_metrics(self) -> dict[str, Any]:
        return {
            "counters": {key: c.value for key, c in self.counters.items()},
            "histograms": {key: h.stats() for key, h in self.histograms.items()},
        }

    def reset(self):
        self.counters.clear()
        self.histograms.clear()


# Global metrics collector instance
metrics = MetricsCollector()


def record_auth_attempt(surface: str, outcome: str, duration_seconds: float):
    """
    Record one pass through the verification sequence.

    Args:
        surface: ``token`` (POST /authenticate) or ``gate`` (request dependency)
        outcome: ``success`` or the failure code, e.g. ``invalid_signature``
        duration_seconds: Wall time spent verifying
    """
    metrics.increment_counter("auth_attempts_total", labels={"surface": surface, "outcome": outcome})
    metrics.observe_histogram("auth_duration_seconds", duration_seconds, labels={"surface": surface})


def record_oracle_call(oracle: str, result: str):
    """Record an outbound call to the XMTP network or App Check."""
    metrics.increment_counter("oracle_calls_total", labels={"oracle": oracle, "result": result})


def record_session_token_issued():
    metrics.increment_counter("session_tokens_issued_total")


def get_metrics_summary() -> dict:
    return metrics.get_all_metrics()


def _prom_labels(labels: LabelSet, *extra: tuple[str, str]) -> str:
    pairs = list(labels) + list(extra)
    if not pairs:
        return ""
    return "{" + ",".join(f'{k}="{v}"' for k, v in pairs) + "}"


def to_prometheus_text() -> str:
    """Render all in-memory metrics as Prometheus text exposition format.

    Each metric family gets exactly one ``# TYPE`` line; histograms are
    rendered as summaries with count, sum and the 0.95 / 1.0 quantiles.
    """
    lines: list[str] = []

    counter_families: dict[str, list[Counter]] = defaultdict(list)
    for counter in metrics.counters.values():
        counter_families[_PROM_PREFIX + counter.name].append(counter)
    for prom_name, series in counter_families.items():
        lines.append(f"# TYPE {prom_name} counter")
        for counter in series:
            lines.append(f"{prom_name}{_prom_labels(counter.labels)} {counter.value}")

    histogram_families: dict[str, list[Histogram]] = defaultdict(list)
    for histogram in metrics.histograms.values():
        histogram_families[_PROM_PREFIX + histogram.name].append(histogram)
    for prom_name, series in histogram_families.items():
        lines.append(f"# TYPE {prom_name} summary")
        for histogram in series:
            stats = histogram.stats()
            labels = histogram.labels
            lines.append(f"{prom_name}_count{_prom_labels(labels)} {stats['count']}")
            lines.append(f"{prom_name}_sum{_prom_labels(labels)} {stats['sum']:.6f}")
            lines.append(f"{prom_name}{_prom_labels(labels, ('quantile', '0.95'))} {stats['p95']:.6f}")
            lines.append(f"{prom_name}{_prom_labels(labels, ('quantile', '1.0'))} {stats['max']:.6f}")
    return "\n".join(lines) + "\n"
