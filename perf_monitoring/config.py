"""Configuration objects for the performance monitor."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Optional, Union

from .constants import BUFFER_DEFAULT_SIZE, MEMORY_DEFAULT_INTERVAL_MS
from .models import AlertSeverity, AlertThreshold, MetricKind


def _ensure_threshold(item: Union[AlertThreshold, Dict[str, Any]]) -> AlertThreshold:
    if isinstance(item, AlertThreshold):
        return item

    item = dict(item)
    severity = item.get("severity", AlertSeverity.WARNING)
    if isinstance(severity, str):
        try:
            severity = AlertSeverity(severity.lower())
        except ValueError as exc:
            raise ValueError(f"Unknown alert severity: {severity}") from exc
    kind = item.get("type", MetricKind.CUSTOM)
    if isinstance(kind, str):
        try:
            kind = MetricKind(kind.lower())
        except ValueError as exc:
            raise ValueError(f"Unknown metric type: {kind}") from exc

    item.update(severity=severity, type=kind, value=float(item["value"]))
    item.setdefault("description", item.get("name", item["id"]))
    return AlertThreshold(**item)


@dataclass
class AlertingConfig:
    """Alerting section of :class:`MonitorConfig`."""

    enabled: bool = False
    thresholds: List[AlertThreshold] = field(default_factory=list)
    check_interval_ms: Optional[int] = None

    def __post_init__(self) -> None:
        self.thresholds = [_ensure_threshold(threshold) for threshold in self.thresholds]


@dataclass
class MonitorConfig:
    """Runtime configuration for :class:`~perf_monitoring.runtime.PerformanceMonitor`."""

    enabled: bool = True
    sample_rate: float = 1.0
    custom_metrics: bool = True
    buffer_size: int = BUFFER_DEFAULT_SIZE
    memory_tracking: bool = False
    memory_interval: int = MEMORY_DEFAULT_INTERVAL_MS
    network_tracking: bool = True
    development: bool = False
    alerts: AlertingConfig = field(default_factory=AlertingConfig)

    def __post_init__(self) -> None:
        if isinstance(self.alerts, dict):
            self.alerts = AlertingConfig(**self.alerts)
        elif self.alerts is None:
            self.alerts = AlertingConfig()
        self.sample_rate = min(max(float(self.sample_rate), 0.0), 1.0)

    def copy(self) -> "MonitorConfig":
        """Independent copy, including the alerting section."""

        return replace(self, alerts=replace(self.alerts, thresholds=list(self.alerts.thresholds)))

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MonitorConfig":
        """Build a config from a mapping, ignoring unknown keys."""

        known = set(cls.__dataclass_fields__)
        return cls(**{key: value for key, value in data.items() if key in known})


__all__ = ["AlertingConfig", "MonitorConfig"]
