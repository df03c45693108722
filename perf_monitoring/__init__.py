"""Client-side performance telemetry: metric collection, sampling and alerting."""
from __future__ import annotations

from importlib import import_module
from typing import Any, Dict, Tuple

__version__ = "0.1.0"

_LOOKUP: Dict[str, Tuple[str, str]] = {
    "Alert": ("perf_monitoring.models", "Alert"),
    "AlertConfig": ("perf_monitoring.models", "AlertConfig"),
    "AlertManager": ("perf_monitoring.alerts", "AlertManager"),
    "AlertSeverity": ("perf_monitoring.models", "AlertSeverity"),
    "AlertThreshold": ("perf_monitoring.models", "AlertThreshold"),
    "AlertingConfig": ("perf_monitoring.config", "AlertingConfig"),
    "CollectedMetrics": ("perf_monitoring.models", "CollectedMetrics"),
    "ConfigLoader": ("perf_monitoring.config_loader", "ConfigLoader"),
    "ConfigValidator": ("perf_monitoring.config_validator", "ConfigValidator"),
    "CustomMetricsManager": ("perf_monitoring.custom_metrics", "CustomMetricsManager"),
    "Metric": ("perf_monitoring.models", "Metric"),
    "MetricBuffer": ("perf_monitoring.buffer", "MetricBuffer"),
    "MetricKind": ("perf_monitoring.models", "MetricKind"),
    "MetricsAggregator": ("perf_monitoring.aggregator", "MetricsAggregator"),
    "MetricsCollector": ("perf_monitoring.collector", "MetricsCollector"),
    "MetricsSnapshot": ("perf_monitoring.models", "MetricsSnapshot"),
    "MonitorConfig": ("perf_monitoring.config", "MonitorConfig"),
    "PerformanceMonitor": ("perf_monitoring.runtime", "PerformanceMonitor"),
    "get_performance_monitor": ("perf_monitoring.runtime", "get_performance_monitor"),
    "load_monitor_config": ("perf_monitoring.config_loader", "load_monitor_config"),
    "monitored": ("perf_monitoring.custom_metrics", "monitored"),
    "reset_performance_monitor": ("perf_monitoring.runtime", "reset_performance_monitor"),
    "stop_global_monitoring": ("perf_monitoring.runtime", "stop_global_monitoring"),
}

__all__ = sorted(_LOOKUP)


def __getattr__(name: str) -> Any:  # pragma: no cover - thin wrapper
    try:
        module_name, attr_name = _LOOKUP[name]
    except KeyError as exc:
        raise AttributeError(name) from exc
    module = import_module(module_name)
    return getattr(module, attr_name)
