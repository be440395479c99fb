"""User-defined counter and gauge metrics with labelled stat names."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable

MetricFactory = Callable[[str], Any]


def create_stats_name(name: str, *args: str) -> str:
    """Build a stats name from a base name and label key/value pairs.

    An odd number of label items yields ``<name>_bad_labels``.
    """
    if len(args) % 2 != 0:
        return f"{name}_bad_labels"
    pairs = zip(args[::2], args[1::2])
    labels = "_".join(f"{key.replace('-', '_')}={value}" for key, value in pairs)
    return f"{name}_{labels}"


@dataclass
class Metrics:
    """Caches metrics created through the host's define functions."""

    counter_func: MetricFactory | None = None
    gauge_func: MetricFactory | None = None
    _counters: dict[str, Any] = field(default_factory=dict, init=False, repr=False)
    _gauges: dict[str, Any] = field(default_factory=dict, init=False, repr=False)

    def gauge(self, name: str, *args: str) -> Any:
        """Return the gauge for ``name`` and labels, defining it once."""
        if self.gauge_func is None:
            raise RuntimeError("metric gauge handler is not set")
        stats = create_stats_name(name, *args)
        if stats not in self._gauges:
            self._gauges[stats] = self.gauge_func(stats)
        return self._gauges[stats]

    def counter(self, name: str, *args: str) -> Any:
        """Return the counter for ``name`` and labels, defining it once."""
        if self.counter_func is None:
            raise RuntimeError("metric counter handler is not set")
        stats = create_stats_name(name, *args)
        if stats not in self._counters:
            self._counters[stats] = self.counter_func(stats)
        return self._counters[stats]