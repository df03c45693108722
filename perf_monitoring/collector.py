"""
Metrics collection: turns raw observations into metric records, keeps them in
a bounded buffer and fans them out to channel subscribers.
"""

from __future__ import annotations

import itertools
import math
import re
import threading
import time
from typing import Any, Callable, Dict, Mapping, Optional, Pattern, Set, Union

from .buffer import MetricBuffer
from .constants import (
    BUFFER_DEFAULT_SIZE,
    MEMORY_DEFAULT_INTERVAL_MS,
    MEMORY_MAX_INTERVAL_MS,
    MEMORY_MIN_INTERVAL_MS,
    NETWORK_ERROR_STATUS,
    NETWORK_MAX_URL_LENGTH,
)
from .models import (
    CollectedMetrics,
    MemoryStats,
    Metric,
    MetricCallback,
    MetricKind,
    NetworkStats,
)
from .probes import MemoryProbe, default_memory_probe
from .scheduling import RepeatingTask
from .structured_logging import LogCategory, StructuredLogger, get_structured_logger


def _noop() -> None:
    return None


def _now_ms() -> int:
    return int(time.time() * 1000)


class MetricsCollector:
    """Produces typed metrics, stores them and notifies subscribers."""

    def __init__(
        self,
        buffer_size: int = BUFFER_DEFAULT_SIZE,
        *,
        memory_probe: Optional[MemoryProbe] = None,
        logger: Optional[StructuredLogger] = None,
    ) -> None:
        self.logger = logger or get_structured_logger()
        self._buffer = MetricBuffer(buffer_size)
        self._memory_probe = memory_probe or default_memory_probe()
        self._subscribers: Dict[str, Set[MetricCallback]] = {}
        self._record_listeners: Dict[MetricKind, Set[Callable[[Metric], None]]] = {}
        self._memory_task: Optional[RepeatingTask] = None
        self._enabled = True
        self._sequence = itertools.count(1)
        self._lock = threading.RLock()

    # ------------------------------------------------------------------
    @property
    def is_enabled(self) -> bool:
        return self._enabled

    @property
    def is_memory_tracking(self) -> bool:
        return self._memory_task is not None

    @property
    def buffer(self) -> MetricBuffer:
        return self._buffer

    @staticmethod
    def is_valid_input(name: Any, value: Any = None, *, check_value: bool = False) -> bool:
        """Names must be non-empty strings; values finite numbers >= 0."""

        if not isinstance(name, str) or not name.strip():
            return False
        if not check_value:
            return True
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            return False
        return math.isfinite(value) and value >= 0

    def _make_metric(self, kind: MetricKind, key: str, value: float, metadata: Mapping[str, Any]) -> Metric:
        timestamp = _now_ms()
        metric_id = f"{kind.value}_{key}_{timestamp}_{next(self._sequence)}" if key else \
            f"{kind.value}_{timestamp}_{next(self._sequence)}"
        return Metric(id=metric_id, timestamp=timestamp, type=kind, value=float(value), metadata=metadata)

    def _record(self, metric: Metric, channel: str) -> None:
        with self._lock:
            self._buffer.push(metric)
            listeners = tuple(self._record_listeners.get(metric.type, ()))
        self._notify_subscribers(channel, metric.value)

        for listener in listeners:
            try:
                listener(metric)
            except Exception as e:
                self.logger.error(
                    LogCategory.COLLECTOR,
                    f"Error in {metric.type.value} record listener",
                    exception=e,
                    metric_id=metric.id,
                )

    def _notify_subscribers(self, name: str, value: float) -> None:
        with self._lock:
            callbacks = tuple(self._subscribers.get(name, ()))

        for callback in callbacks:
            try:
                callback(value)
            except Exception as e:
                self.logger.error(
                    LogCategory.COLLECTOR,
                    f"Error in metric subscriber for {name}",
                    exception=e,
                    channel=name,
                )

    # ------------------------------------------------------------------
    def track_render(self, component_id: str, duration: Optional[float] = None) -> Callable[[], None]:
        """Record a render duration (ms) or return a function that measures one.

        With ``duration`` the metric is recorded immediately and a no-op is
        returned. Without it, the returned function records the time elapsed
        since this call the first time it is invoked.
        """

        if not self._enabled or not self.is_valid_input(component_id):
            return _noop

        if duration is not None:
            if self.is_valid_input(component_id, duration, check_value=True):
                self._record_render(component_id, duration)
            return _noop

        start = time.perf_counter()
        finished = threading.Event()

        def complete() -> None:
            if finished.is_set() or not self._enabled:
                return
            finished.set()
            elapsed_ms = (time.perf_counter() - start) * 1000.0
            if self.is_valid_input(component_id, elapsed_ms, check_value=True):
                self._record_render(component_id, elapsed_ms)

        return complete

    def _record_render(self, component_id: str, duration: float) -> None:
        metric = self._make_metric(MetricKind.RENDER, component_id, duration, {"component_id": component_id})
        self._record(metric, MetricKind.RENDER.value)

    def track_memory(self) -> MemoryStats:
        """Sample host memory, record it and return normalised stats."""

        if not self._enabled:
            return MemoryStats(used=0.0, total=0.0, limit=0.0)

        reading = self._memory_probe.read()
        used = float(reading.heap_used)
        total = float(reading.heap_total)
        metric = self._make_metric(
            MetricKind.MEMORY,
            "",
            used,
            {"heap_used": used, "heap_total": total},
        )
        self._record(metric, MetricKind.MEMORY.value)

        limit = float(reading.limit) if reading.limit is not None else total
        return MemoryStats(used=used, total=total, limit=limit)

    def start_memory_tracking(self, interval_ms: float = MEMORY_DEFAULT_INTERVAL_MS) -> None:
        """Sample memory every ``interval_ms``, replacing any running sampler."""

        self.stop_memory_tracking()
        interval_ms = min(max(interval_ms, MEMORY_MIN_INTERVAL_MS), MEMORY_MAX_INTERVAL_MS)
        task = RepeatingTask(
            self.track_memory,
            interval_ms,
            name="perf-monitoring-memory",
            category=LogCategory.COLLECTOR,
            logger=self.logger,
        )
        with self._lock:
            self._memory_task = task
        task.start()
        self.logger.debug(LogCategory.COLLECTOR, "Memory tracking started", interval_ms=interval_ms)

    def stop_memory_tracking(self) -> None:
        with self._lock:
            task, self._memory_task = self._memory_task, None
        if task is None:
            return
        task.stop()
        self.logger.debug(LogCategory.COLLECTOR, "Memory tracking stopped")

    def track_network(
        self,
        url_pattern: Optional[Union[str, Pattern[str]]] = None,
        on_stats: Optional[Callable[[NetworkStats], None]] = None,
    ) -> Callable[[], None]:
        """Accumulate request statistics from recorded network metrics.

        Only metrics recorded by :meth:`track_network_request` are counted.
        Returns a function that removes this tracker only.
        """

        pattern = re.compile(url_pattern) if isinstance(url_pattern, str) else url_pattern
        stats = {"requests": 0, "errors": 0, "total_time": 0.0}
        stats_lock = threading.Lock()

        def handle(metric: Metric) -> None:
            url = str(metric.metadata.get("url", ""))
            if pattern is not None and not pattern.search(url):
                return

            status = metric.metadata.get("status")
            with stats_lock:
                stats["requests"] += 1
                if status is not None and status >= NETWORK_ERROR_STATUS:
                    stats["errors"] += 1
                stats["total_time"] += metric.value
                current = NetworkStats(
                    requests=stats["requests"],
                    errors=stats["errors"],
                    average_time=stats["total_time"] / stats["requests"],
                )

            if on_stats is not None:
                on_stats(current)

        with self._lock:
            self._record_listeners.setdefault(MetricKind.NETWORK, set()).add(handle)

        def unsubscribe() -> None:
            with self._lock:
                self._record_listeners.get(MetricKind.NETWORK, set()).discard(handle)

        return unsubscribe

    def network_tracker_count(self) -> int:
        with self._lock:
            return len(self._record_listeners.get(MetricKind.NETWORK, ()))

    def track_network_request(self, url: str, duration: float, status: Optional[int] = None) -> None:
        if not self._enabled:
            return

        url = str(url)[:NETWORK_MAX_URL_LENGTH]
        metric = self._make_metric(MetricKind.NETWORK, "", duration, {"url": url, "status": status})
        self._record(metric, MetricKind.NETWORK.value)

    def track_custom_metric(self, name: str, value: float, metadata: Optional[Mapping[str, Any]] = None) -> None:
        """Record a named metric; ``metadata['tag']`` and ``metadata['tags']`` become tags."""

        if not self._enabled or not self.is_valid_input(name, value, check_value=True):
            return

        metadata = dict(metadata or {})
        tags = {str(key): str(val) for key, val in dict(metadata.pop("tags", None) or {}).items()}
        if "tag" in metadata:
            tags["tag"] = str(metadata.pop("tag"))
        metadata.pop("name", None)

        metric = self._make_metric(MetricKind.CUSTOM, name, value, {"name": name, "tags": tags, **metadata})
        self._record(metric, name)

    # ------------------------------------------------------------------
    def subscribe_to_metric(self, name: str, callback: MetricCallback) -> Callable[[], None]:
        with self._lock:
            self._subscribers.setdefault(name, set()).add(callback)

        def unsubscribe() -> None:
            self.unsubscribe_from_metric(name, callback)

        return unsubscribe

    def unsubscribe_from_metric(self, name: str, callback: Optional[MetricCallback] = None) -> None:
        """Remove one callback, or the whole channel when ``callback`` is None."""

        with self._lock:
            if name not in self._subscribers:
                return
            if callback is None:
                del self._subscribers[name]
            else:
                self._subscribers[name].discard(callback)

    def subscriber_count(self, name: str) -> int:
        with self._lock:
            return len(self._subscribers.get(name, ()))

    # ------------------------------------------------------------------
    def enable(self) -> None:
        self._enabled = True

    def disable(self) -> None:
        self._enabled = False
        self.stop_memory_tracking()

    def get_metrics(self) -> CollectedMetrics:
        collected = CollectedMetrics()
        buckets = {
            MetricKind.RENDER: collected.renders,
            MetricKind.MEMORY: collected.memory,
            MetricKind.NETWORK: collected.network,
            MetricKind.CUSTOM: collected.custom,
        }
        for metric in self._buffer.get_data():
            buckets[metric.type].append(metric)
        return collected

    def clear_metrics(self) -> None:
        with self._lock:
            self._buffer.clear()


__all__ = ["MetricsCollector"]
