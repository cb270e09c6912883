"""Lightweight metrics registry for Prometheus compatible exports."""

from __future__ import annotations

from threading import Lock
from typing import Sequence


def _format_value(value: float) -> str:
    """Format floating point values using Prometheus conventions."""

    return f"{value:.6f}".rstrip("0").rstrip(".") if not value.is_integer() else str(int(value))


def _format_labels(names: Sequence[str], values: Sequence[str]) -> str:
    if not names:
        return ""

    pairs = []
    for name, value in zip(names, values, strict=False):
        escaped = value.replace("\\", r"\\").replace("\n", r"\n").replace('"', r"\"")
        pairs.append(f'{name}="{escaped}"')
    return "{" + ",".join(pairs) + "}"


class MetricsRegistry:
    """In-memory registry that collects relay metric samples."""

    def __init__(self) -> None:
        self._metrics: dict[str, _MetricBase] = {}
        self._lock = Lock()

    def register(self, metric: "_MetricBase") -> None:
        with self._lock:
            if metric.name in self._metrics:
                raise ValueError(f"Metric '{metric.name}' already registered")
            self._metrics[metric.name] = metric

    def counter(self, name: str, description: str, *, label_names: Sequence[str] = ()) -> "CounterMetric":
        metric = CounterMetric(name=name, description=description, label_names=label_names)
        self.register(metric)
        return metric

    def gauge(self, name: str, description: str, *, label_names: Sequence[str] = ()) -> "GaugeMetric":
        metric = GaugeMetric(name=name, description=description, label_names=label_names)
        self.register(metric)
        return metric

    def reset(self) -> None:
        """Drop every recorded sample; used between test runs."""

        with self._lock:
            metrics = list(self._metrics.values())
        for metric in metrics:
            metric.clear()

    def render(self) -> str:
        """Render all registered metrics using the Prometheus text format."""

        lines: list[str] = []
        for name in sorted(self._metrics):
            lines.extend(self._metrics[name].render())
        return "\n".join(lines) + "\n"


class _MetricBase:
    metric_type: str = "untyped"

    def __init__(self, *, name: str, description: str, label_names: Sequence[str]) -> None:
        self.name = name
        self.description = description
        self.label_names = tuple(label_names)
        self._samples: dict[tuple[str, ...], float] = {}
        self._lock = Lock()

    def value(self, *label_values: object) -> float:
        key = self._key(label_values)
        with self._lock:
            return self._samples.get(key, 0.0)

    def clear(self) -> None:
        with self._lock:
            self._samples.clear()

    def render(self) -> list[str]:
        lines = [f"# HELP {self.name} {self.description}", f"# TYPE {self.name} {self.metric_type}"]
        with self._lock:
            samples = sorted(self._samples.items())

        if not samples:
            # Prometheus expects at least one sample; expose zero value without labels.
            lines.append(f"{self.name} 0")
            return lines

        for labels, value in samples:
            label_block = _format_labels(self.label_names, labels)
            lines.append(f"{self.name}{label_block} {_format_value(value)}")
        return lines

    def labels(self, *values: object) -> "_LabeledMetric":
        return _LabeledMetric(self, self._key(values))

    def _key(self, values: Sequence[object]) -> tuple[str, ...]:
        if len(values) != len(self.label_names):
            expected = ", ".join(self.label_names) or "<none>"
            raise ValueError(
                f"Metric '{self.name}' expected {len(self.label_names)} label values [{expected}] "
                f"but received {len(values)}"
            )
        return tuple(str(value) for value in values)

    def _add(self, key: tuple[str, ...], amount: float) -> None:
        with self._lock:
            self._samples[key] = self._samples.get(key, 0.0) + amount

    def _set(self, key: tuple[str, ...], value: float) -> None:
        with self._lock:
            self._samples[key] = float(value)


class CounterMetric(_MetricBase):
    metric_type = "counter"

    def inc(self, amount: float = 1.0) -> None:
        self.labels().inc(amount)


class GaugeMetric(_MetricBase):
    metric_type = "gauge"

    def set(self, value: float) -> None:
        self.labels().set(value)

    def inc(self, amount: float = 1.0) -> None:
        self.labels().inc(amount)

    def dec(self, amount: float = 1.0) -> None:
        self.labels().dec(amount)


class _LabeledMetric:
    """Metric bound to a concrete label value tuple.

    Allows Prometheus-style usage: ``metric.labels("send-msg", "in").inc()``.
    """

    def __init__(self, metric: _MetricBase, label_values: tuple[str, ...]) -> None:
        self._metric = metric
        self._label_values = label_values

    def inc(self, amount: float = 1.0) -> None:
        if amount < 0:
            raise ValueError("Increment amount must be non-negative")
        self._metric._add(self._label_values, amount)

    def dec(self, amount: float = 1.0) -> None:
        if not isinstance(self._metric, GaugeMetric):
            raise AttributeError("Only gauges support dec()")
        if amount < 0:
            raise ValueError("Decrement amount must be non-negative")
        self._metric._add(self._label_values, -amount)

    def set(self, value: float) -> None:
        if not isinstance(self._metric, GaugeMetric):
            raise AttributeError("Only gauges support set()")
        self._metric._set(self._label_values, value)


# Shared registry instance used across the backend.
registry = MetricsRegistry()
