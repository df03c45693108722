"""
Threshold based alerting over metric snapshots.

Each threshold is evaluated per context (a component, the memory gauge, the
network window or a custom metric). An alert is emitted when a context starts
exceeding its threshold and a resolved copy is emitted the first time a later
evaluation of the same context no longer exceeds it.
"""

from __future__ import annotations

import itertools
import threading
import time
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Set, Tuple, Union

from .constants import DEFAULT_ALERT_THRESHOLDS
from .models import (
    Alert,
    AlertConfig,
    AlertKey,
    AlertThreshold,
    ComponentMetrics,
    MemoryUsage,
    MetricKind,
    MetricsSnapshot,
    NetworkRequest,
)
from .structured_logging import LogCategory, StructuredLogger, get_structured_logger

AlertCallback = Callable[[Alert], None]

_ALERT_SUFFIX = " alert"


def _now_ms() -> int:
    return int(time.time() * 1000)


def _format_number(value: float) -> str:
    if float(value).is_integer():
        return str(int(value))
    return f"{value:.2f}".rstrip("0").rstrip(".")


def derive_metric_name(threshold_name: str) -> str:
    """Custom metric channel implied by a threshold name ("Latency Alert" -> "latency")."""

    lowered = threshold_name.lower()
    if lowered.endswith(_ALERT_SUFFIX):
        lowered = lowered[: -len(_ALERT_SUFFIX)]
    return lowered


class AlertManager:
    """Owns thresholds, active alerts and alert subscribers."""

    def __init__(
        self,
        thresholds: Optional[Iterable[AlertThreshold]] = None,
        *,
        include_defaults: bool = True,
        logger: Optional[StructuredLogger] = None,
    ) -> None:
        self.logger = logger or get_structured_logger()
        self._thresholds: Dict[str, AlertThreshold] = {}
        self._active_alerts: Dict[AlertKey, Alert] = {}
        self._subscribers: Set[AlertCallback] = set()
        self._sequence = itertools.count(1)
        self._lock = threading.RLock()

        if include_defaults:
            self.setup_default_thresholds()
        for threshold in thresholds or ():
            self.add_threshold(threshold)

    # ------------------------------------------------------------------
    def setup_default_thresholds(self) -> None:
        for threshold in DEFAULT_ALERT_THRESHOLDS:
            self.add_threshold(threshold)

    def add_threshold(self, threshold: AlertThreshold) -> None:
        with self._lock:
            self._thresholds[threshold.id] = threshold

    def remove_threshold(self, threshold_id: str) -> None:
        """Drop a threshold and forget its active alerts without emitting them."""

        with self._lock:
            if self._thresholds.pop(threshold_id, None) is None:
                return
            for key in [key for key in self._active_alerts if key.threshold_id == threshold_id]:
                del self._active_alerts[key]

    def get_thresholds(self) -> List[AlertThreshold]:
        with self._lock:
            return list(self._thresholds.values())

    def configure_alert(
        self,
        metric_name: str,
        config: Union[AlertConfig, Mapping[str, Any]],
    ) -> Callable[[], None]:
        """Create a custom threshold on ``metric_name`` with trigger/resolve hooks.

        Returns a function that unsubscribes the hooks and removes the threshold.
        """

        config = AlertConfig.coerce(config)
        threshold = AlertThreshold(
            id=f"{metric_name}_{_now_ms()}_{next(self._sequence)}",
            name=f"{metric_name} Alert",
            description=config.description
            or f"{metric_name} exceeded threshold of {_format_number(config.threshold)}",
            type=MetricKind.CUSTOM,
            severity=config.level,
            value=float(config.threshold),
            metric_name=metric_name,
        )
        self.add_threshold(threshold)

        def route(alert: Alert) -> None:
            if alert.threshold_id != threshold.id:
                return
            if not alert.resolved:
                if config.on_trigger is not None:
                    config.on_trigger(alert.message, alert.severity)
            elif config.on_resolve is not None:
                config.on_resolve()

        unsubscribe = self.subscribe(route)

        def dispose() -> None:
            unsubscribe()
            self.remove_threshold(threshold.id)

        return dispose

    # ------------------------------------------------------------------
    def check_thresholds(self, snapshot: Union[MetricsSnapshot, Mapping[str, Any]]) -> List[Alert]:
        """Evaluate every threshold and return the alerts emitted, in order."""

        snapshot = MetricsSnapshot.coerce(snapshot)
        emitted: List[Alert] = []

        with self._lock:
            for threshold in list(self._thresholds.values()):
                if threshold.type is MetricKind.RENDER:
                    self._check_render(threshold, snapshot.components, emitted)
                elif threshold.type is MetricKind.MEMORY:
                    self._check_memory(threshold, snapshot.memory, emitted)
                elif threshold.type is MetricKind.NETWORK:
                    self._check_network(threshold, snapshot.network, emitted)
                elif threshold.type is MetricKind.CUSTOM:
                    self._check_custom(threshold, snapshot.custom, emitted)

        for alert in emitted:
            self._notify_subscribers(alert)
        return emitted

    def _check_render(
        self,
        threshold: AlertThreshold,
        components: Mapping[str, ComponentMetrics],
        emitted: List[Alert],
    ) -> None:
        for component_id, metrics in components.items():
            key = AlertKey(threshold.id, ("component", component_id))
            value = metrics.last_render_time
            if value > threshold.value:
                message = self._render_alert_message(threshold, value, component_id=component_id)
                self._trigger(key, threshold, value, message, emitted)
            else:
                self._resolve(key, emitted)

    def _check_memory(self, threshold: AlertThreshold, memory: MemoryUsage, emitted: List[Alert]) -> None:
        key = AlertKey(threshold.id, ("memory",))
        percent = memory.used / memory.total * 100.0 if memory.total > 0 else 0.0
        if percent > threshold.value:
            self._trigger(key, threshold, percent, self._render_alert_message(threshold, percent), emitted)
        else:
            self._resolve(key, emitted)

    def _check_network(
        self,
        threshold: AlertThreshold,
        requests: List[NetworkRequest],
        emitted: List[Alert],
    ) -> None:
        key = AlertKey(threshold.id, ("network",))
        slow_requests = [request for request in requests if request.duration > threshold.value]
        if not slow_requests:
            self._resolve(key, emitted)
            return

        worst = max(slow_requests, key=lambda request: request.duration)
        message = self._render_alert_message(
            threshold,
            worst.duration,
            url=worst.url,
            slow_count=len(slow_requests),
        )
        self._trigger(key, threshold, worst.duration, message, emitted)

    def _check_custom(self, threshold: AlertThreshold, custom: Mapping[str, float], emitted: List[Alert]) -> None:
        metric_name = threshold.metric_name or derive_metric_name(threshold.name)
        key = AlertKey(threshold.id, ("metric", metric_name))
        value = custom.get(metric_name)
        if value is not None and value > threshold.value:
            self._trigger(key, threshold, value, self._render_alert_message(threshold, value), emitted)
        else:
            self._resolve(key, emitted)

    def _trigger(
        self,
        key: AlertKey,
        threshold: AlertThreshold,
        value: float,
        message: str,
        emitted: List[Alert],
    ) -> None:
        if key in self._active_alerts:
            return

        alert = Alert(
            id=key.render(),
            threshold_id=threshold.id,
            message=message,
            severity=threshold.severity,
            timestamp=_now_ms(),
            value=value,
            context=key.context,
        )
        self._active_alerts[key] = alert
        emitted.append(alert)
        self.logger.warning(
            LogCategory.ALERTS,
            f"Alert triggered: {alert.message}",
            alert_id=alert.id,
            severity=alert.severity.value,
            value=alert.value,
        )

    def _resolve(self, key: AlertKey, emitted: List[Alert]) -> None:
        alert = self._active_alerts.pop(key, None)
        if alert is None:
            return

        resolved = alert.resolve(_now_ms())
        emitted.append(resolved)
        self.logger.info(
            LogCategory.ALERTS,
            f"Alert resolved: {resolved.message}",
            alert_id=resolved.id,
            duration_ms=resolved.resolved_at - resolved.timestamp,
        )

    @staticmethod
    def _render_alert_message(
        threshold: AlertThreshold,
        value: float,
        *,
        component_id: Optional[str] = None,
        url: Optional[str] = None,
        slow_count: Optional[int] = None,
    ) -> str:
        message = (
            f"{threshold.name}: {threshold.description} "
            f"({_format_number(value)} > {_format_number(threshold.value)})"
        )
        if component_id:
            message += f" in component {component_id}"
        if url:
            message += f" for request {url}"
        if slow_count and slow_count > 1:
            message += f" ({slow_count} slow requests)"
        return message

    # ------------------------------------------------------------------
    def subscribe(self, callback: AlertCallback) -> Callable[[], None]:
        with self._lock:
            self._subscribers.add(callback)

        def unsubscribe() -> None:
            with self._lock:
                self._subscribers.discard(callback)

        return unsubscribe

    def _notify_subscribers(self, alert: Alert) -> None:
        with self._lock:
            callbacks: Tuple[AlertCallback, ...] = tuple(self._subscribers)

        for callback in callbacks:
            try:
                callback(alert)
            except Exception as e:
                self.logger.error(
                    LogCategory.ALERTS,
                    "Error in alert subscriber",
                    exception=e,
                    alert_id=alert.id,
                )

    def get_active_alerts(self) -> List[Alert]:
        with self._lock:
            return list(self._active_alerts.values())


__all__ = ["AlertCallback", "AlertManager", "derive_metric_name"]
