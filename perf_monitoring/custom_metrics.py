"""Timers, gauges, counters and a decorator built on custom metrics."""

from __future__ import annotations

import functools
import time
from typing import Any, Callable, Dict, Optional, Protocol, TypeVar

from .runtime import get_performance_monitor

F = TypeVar("F", bound=Callable[..., Any])


class CustomMetricTarget(Protocol):
    """Anything that records custom metrics (collector or monitor)."""

    def track_custom_metric(self, name: str, value: float, metadata: Optional[Dict[str, Any]] = None) -> None:
        ...


class Timer:
    """Measures wall time in milliseconds; usable as a context manager."""

    def __init__(self, manager: "CustomMetricsManager", name: str, tags: Optional[Dict[str, str]] = None):
        self.manager = manager
        self.name = name
        self.tags = tags
        self._start = time.perf_counter()
        self.duration: Optional[float] = None

    def stop(self) -> float:
        """Record ``{name}_duration`` once and return the elapsed milliseconds."""
        if self.duration is None:
            self.duration = (time.perf_counter() - self._start) * 1000.0
            self.manager.track(f"{self.name}_duration", self.duration, self.tags)
        return self.duration

    def __enter__(self) -> "Timer":
        self._start = time.perf_counter()
        self.duration = None
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.stop()


class Gauge:
    def __init__(self, manager: "CustomMetricsManager", name: str, tags: Optional[Dict[str, str]] = None):
        self.manager = manager
        self.name = name
        self.tags = tags

    def set_value(self, value: float) -> None:
        self.manager.track(self.name, value, self.tags)


class Counter:
    def __init__(self, manager: "CustomMetricsManager", name: str, tags: Optional[Dict[str, str]] = None):
        self.manager = manager
        self.name = name
        self.tags = tags

    def increment(self, amount: float = 1) -> None:
        self.manager.track(self.name, amount, self.tags)


class CustomMetricsManager:
    """Convenience helpers recording through a collector or monitor."""

    def __init__(self, target: CustomMetricTarget):
        self.target = target

    def track(self, name: str, value: float, tags: Optional[Dict[str, str]] = None) -> None:
        self.target.track_custom_metric(name, value, {"tags": dict(tags or {})})

    def create_timer(self, name: str, tags: Optional[Dict[str, str]] = None) -> Timer:
        return Timer(self, name, tags)

    def create_gauge(self, name: str, tags: Optional[Dict[str, str]] = None) -> Gauge:
        return Gauge(self, name, tags)

    def create_counter(self, name: str, tags: Optional[Dict[str, str]] = None) -> Counter:
        return Counter(self, name, tags)


def monitored(metric_name: str, tags: Optional[Dict[str, str]] = None) -> Callable[[F], F]:
    """Record each call's duration as ``{metric_name}_duration`` on the shared monitor.

    Failed calls also increment ``{metric_name}_errors``.
    """

    def decorator(func: F) -> F:
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            manager = CustomMetricsManager(get_performance_monitor())
            timer = manager.create_timer(metric_name, tags)
            try:
                return func(*args, **kwargs)
            except Exception:
                manager.create_counter(f"{metric_name}_errors", tags).increment()
                raise
            finally:
                timer.stop()

        return wrapper  # type: ignore[return-value]

    return decorator


__all__ = ["Counter", "CustomMetricTarget", "CustomMetricsManager", "Gauge", "Timer", "monitored"]
