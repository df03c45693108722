"""
Process-wide performance monitor.

:class:`PerformanceMonitor` is the entry point used by applications. It gates
every observation behind the enabled flag and the sampling rate, delegates to
a :class:`~perf_monitoring.collector.MetricsCollector` and loads the alerting
machinery only when it is first needed.
"""

from __future__ import annotations

import random
import threading
from contextlib import contextmanager
from importlib import import_module
from typing import TYPE_CHECKING, Any, Callable, Dict, Iterator, List, Mapping, Optional, Pattern, Union

from .aggregator import MetricsAggregator
from .collector import MetricsCollector
from .constants import ALERT_MIN_CHECK_INTERVAL_MS
from .config import MonitorConfig
from .models import Alert, AlertConfig, CollectedMetrics, MemoryStats, MetricCallback, NetworkStats
from .probes import MemoryProbe
from .scheduling import RepeatingTask
from .structured_logging import LogCategory, StructuredLogger, get_structured_logger

if TYPE_CHECKING:
    from .alerts import AlertCallback, AlertManager


def _noop() -> None:
    return None


class PerformanceMonitor:
    """Sampling facade over the collector with lazily enabled alerting."""

    def __init__(
        self,
        config: Optional[Union[MonitorConfig, Mapping[str, Any]]] = None,
        *,
        collector: Optional[MetricsCollector] = None,
        memory_probe: Optional[MemoryProbe] = None,
        logger: Optional[StructuredLogger] = None,
        random_source: Callable[[], float] = random.random,
    ):
        if config is None:
            config = MonitorConfig()
        elif not isinstance(config, MonitorConfig):
            config = MonitorConfig.from_dict(dict(config))

        self.config = config.copy()
        self.logger = logger or get_structured_logger()
        self._random = random_source
        self.collector = collector or MetricsCollector(
            self.config.buffer_size,
            memory_probe=memory_probe,
            logger=self.logger,
        )

        self._alert_manager: Optional["AlertManager"] = None
        self._pending_alert_subscribers: List["AlertCallback"] = []
        self._alert_unsubscribers: Dict[int, Callable[[], None]] = {}
        self._alert_task: Optional[RepeatingTask] = None
        self._network_cursor: Optional[str] = None
        self._lock = threading.RLock()

        if self.config.memory_tracking:
            self.start_memory_tracking(self.config.memory_interval)
        if self.config.alerts.enabled:
            self._ensure_alerting()

        if self.config.development:
            self.logger.info(
                LogCategory.MONITOR,
                "Performance monitor created",
                enabled=self.config.enabled,
                sample_rate=self.config.sample_rate,
                buffer_size=self.collector.buffer.get_max_size(),
                memory_tracking=self.config.memory_tracking,
                alerting=self.config.alerts.enabled,
            )

    # ------------------------------------------------------------------
    # process-wide handle
    @classmethod
    def get_instance(cls, config: Optional[Union[MonitorConfig, Mapping[str, Any]]] = None) -> "PerformanceMonitor":
        """Return the shared monitor, creating it on first use.

        ``config`` only applies when the instance is created.
        """
        global _global_monitor

        with _monitor_lock:
            if _global_monitor is None:
                _global_monitor = cls(config)
            return _global_monitor

    @classmethod
    def reset_instance(cls, config: Optional[Union[MonitorConfig, Mapping[str, Any]]] = None) -> "PerformanceMonitor":
        """Dispose the shared monitor and install a fresh one."""
        global _global_monitor

        with _monitor_lock:
            if _global_monitor is not None:
                _global_monitor.dispose()
            _global_monitor = cls(config)
            return _global_monitor

    # ------------------------------------------------------------------
    def should_track(self) -> bool:
        if not self.config.enabled:
            return False
        rate = self.config.sample_rate
        if rate <= 0:
            return False
        if rate >= 1:
            return True
        return self._random() < rate

    @property
    def is_enabled(self) -> bool:
        return self.config.enabled

    def track_render(self, component_id: str, duration: Optional[float] = None) -> Callable[[], None]:
        if not self.should_track():
            return _noop
        return self.collector.track_render(component_id, duration)

    @contextmanager
    def measure_render(self, component_id: str) -> Iterator[None]:
        """Record the duration of the ``with`` block as a render of ``component_id``."""
        complete = self.track_render(component_id)
        try:
            yield
        finally:
            complete()

    def track_interaction(self, component_id: str, interaction_type: str, duration: float) -> None:
        if not self.config.custom_metrics or not self.should_track():
            return
        self.collector.track_custom_metric(
            f"interaction_{interaction_type}",
            duration,
            {"component": component_id, "type": interaction_type},
        )

    def track_memory(self) -> MemoryStats:
        if not self.should_track():
            return MemoryStats(used=0.0, total=0.0, limit=0.0)
        return self.collector.track_memory()

    def track_network(
        self,
        url_pattern: Optional[Union[str, Pattern[str]]] = None,
        on_stats: Optional[Callable[[NetworkStats], None]] = None,
    ) -> Callable[[], None]:
        if not self.config.network_tracking:
            return _noop
        return self.collector.track_network(url_pattern, on_stats)

    def track_network_request(self, url: str, duration: float, status: Optional[int] = None) -> None:
        if not self.config.network_tracking or not self.should_track():
            return
        self.collector.track_network_request(url, duration, status)

    def track_custom_metric(self, name: str, value: float, metadata: Optional[Mapping[str, Any]] = None) -> None:
        if not self.config.custom_metrics or not self.should_track():
            return
        self.collector.track_custom_metric(name, value, metadata)

    def start_memory_tracking(self, interval_ms: Optional[float] = None) -> None:
        self.collector.start_memory_tracking(interval_ms if interval_ms is not None else self.config.memory_interval)

    def stop_memory_tracking(self) -> None:
        self.collector.stop_memory_tracking()

    def subscribe_to_metric(self, name: str, callback: MetricCallback) -> Callable[[], None]:
        return self.collector.subscribe_to_metric(name, callback)

    def unsubscribe_from_metric(self, name: str, callback: Optional[MetricCallback] = None) -> None:
        self.collector.unsubscribe_from_metric(name, callback)

    def get_metrics(self) -> CollectedMetrics:
        return self.collector.get_metrics()

    def clear_metrics(self) -> None:
        with self._lock:
            self._network_cursor = None
        self.collector.clear_metrics()

    def get_summary(self) -> Dict[str, Any]:
        summary = MetricsAggregator.aggregate(self.get_metrics())
        summary["status"] = {
            "enabled": self.config.enabled,
            "sample_rate": self.config.sample_rate,
            "memory_tracking": self.collector.is_memory_tracking,
            "alerting": self._alert_manager is not None,
            "active_alerts": len(self.get_active_alerts()),
            "buffered_metrics": len(self.collector.buffer),
        }
        return summary

    def enable(self) -> None:
        self.config.enabled = True
        self.collector.enable()

    def disable(self) -> None:
        self.config.enabled = False
        self.collector.disable()

    # ------------------------------------------------------------------
    # alerting
    @property
    def alert_manager(self) -> Optional["AlertManager"]:
        return self._alert_manager

    async def enable_alerting(self) -> "AlertManager":
        """Load the alert manager and start periodic evaluation if configured."""
        return self._ensure_alerting()

    def _ensure_alerting(self) -> "AlertManager":
        with self._lock:
            if self._alert_manager is not None:
                return self._alert_manager

            alerts_module = import_module(".alerts", __package__)
            manager = alerts_module.AlertManager(self.config.alerts.thresholds, logger=self.logger)
            self._alert_manager = manager

            pending, self._pending_alert_subscribers = self._pending_alert_subscribers, []
            for callback in pending:
                self._alert_unsubscribers[id(callback)] = manager.subscribe(callback)

            interval = self.config.alerts.check_interval_ms
            if interval:
                self._alert_task = RepeatingTask(
                    self.evaluate_alerts,
                    max(interval, ALERT_MIN_CHECK_INTERVAL_MS),
                    name="perf-monitoring-alerts",
                    category=LogCategory.ALERTS,
                    logger=self.logger,
                )
                self._alert_task.start()

        self.logger.info(
            LogCategory.MONITOR,
            "Alerting enabled",
            thresholds=len(manager.get_thresholds()),
            check_interval_ms=interval,
        )
        return manager

    async def configure_alert(
        self,
        metric_name: str,
        config: Union[AlertConfig, Mapping[str, Any]],
    ) -> Callable[[], None]:
        manager = await self.enable_alerting()
        return manager.configure_alert(metric_name, config)

    def subscribe_to_alerts(self, callback: "AlertCallback") -> Callable[[], None]:
        """Subscribe to alert transitions; queued until alerting is enabled."""
        with self._lock:
            if self._alert_manager is not None:
                self._alert_unsubscribers[id(callback)] = self._alert_manager.subscribe(callback)
            else:
                self._pending_alert_subscribers.append(callback)

        def unsubscribe() -> None:
            with self._lock:
                if callback in self._pending_alert_subscribers:
                    self._pending_alert_subscribers.remove(callback)
                remover = self._alert_unsubscribers.pop(id(callback), None)
            if remover is not None:
                remover()

        return unsubscribe

    def evaluate_alerts(self) -> List[Alert]:
        """Check thresholds against the buffered metrics.

        Network thresholds only see requests recorded since the previous
        evaluation.
        """
        manager = self._alert_manager
        if manager is None:
            return []

        collected = self.get_metrics()
        with self._lock:
            snapshot = MetricsAggregator.build_alert_snapshot(collected, network_after=self._network_cursor)
            if collected.network:
                self._network_cursor = collected.network[-1].id
        return manager.check_thresholds(snapshot)

    def get_active_alerts(self) -> List[Alert]:
        if self._alert_manager is None:
            return []
        return self._alert_manager.get_active_alerts()

    def dispose(self) -> None:
        """Stop background work and disable collection."""
        with self._lock:
            task, self._alert_task = self._alert_task, None
        if task is not None:
            task.stop()
        self.config.enabled = False
        self.collector.disable()
        self.stop_memory_tracking()
        self.logger.debug(LogCategory.MONITOR, "Performance monitor disposed")


# module level handle guarded by _monitor_lock
_global_monitor: Optional[PerformanceMonitor] = None
_monitor_lock = threading.Lock()


def get_performance_monitor(config: Optional[Union[MonitorConfig, Mapping[str, Any]]] = None) -> PerformanceMonitor:
    """Return the process-wide performance monitor."""
    return PerformanceMonitor.get_instance(config)


def reset_performance_monitor(config: Optional[Union[MonitorConfig, Mapping[str, Any]]] = None) -> PerformanceMonitor:
    return PerformanceMonitor.reset_instance(config)


def stop_global_monitoring() -> None:
    """Dispose and drop the process-wide monitor, if any."""
    global _global_monitor

    with _monitor_lock:
        if _global_monitor is not None:
            _global_monitor.dispose()
            _global_monitor = None


__all__ = [
    "PerformanceMonitor",
    "get_performance_monitor",
    "reset_performance_monitor",
    "stop_global_monitoring",
]
