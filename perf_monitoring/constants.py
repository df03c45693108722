"""Default configuration values and limits."""

from __future__ import annotations

from typing import Tuple

from .models import AlertSeverity, AlertThreshold, MetricKind

# Buffer capacity bounds (records)
BUFFER_MIN_SIZE = 100
BUFFER_MAX_SIZE = 10_000
BUFFER_DEFAULT_SIZE = 1_000

# Memory sampling interval bounds (milliseconds)
MEMORY_MIN_INTERVAL_MS = 1_000
MEMORY_MAX_INTERVAL_MS = 60_000
MEMORY_DEFAULT_INTERVAL_MS = 5_000

# Alert evaluation loop floor (milliseconds)
ALERT_MIN_CHECK_INTERVAL_MS = 100

RENDER_TIME_THRESHOLD_MS = 16.0  # one frame at 60fps
MEMORY_USAGE_THRESHOLD_PERCENT = 90.0
NETWORK_TIME_THRESHOLD_MS = 1_000.0

NETWORK_ERROR_STATUS = 400
NETWORK_MAX_URL_LENGTH = 2_000

DEFAULT_ALERT_THRESHOLDS: Tuple[AlertThreshold, ...] = (
    AlertThreshold(
        id="default_render_time",
        name="Slow Render",
        description="Component render time exceeded threshold",
        type=MetricKind.RENDER,
        severity=AlertSeverity.WARNING,
        value=RENDER_TIME_THRESHOLD_MS,
    ),
    AlertThreshold(
        id="default_memory_usage",
        name="High Memory Usage",
        description="Memory usage exceeded threshold",
        type=MetricKind.MEMORY,
        severity=AlertSeverity.ERROR,
        value=MEMORY_USAGE_THRESHOLD_PERCENT,
    ),
    AlertThreshold(
        id="default_network_time",
        name="Slow Network Request",
        description="Network request time exceeded threshold",
        type=MetricKind.NETWORK,
        severity=AlertSeverity.WARNING,
        value=NETWORK_TIME_THRESHOLD_MS,
    ),
)


__all__ = [
    "ALERT_MIN_CHECK_INTERVAL_MS",
    "BUFFER_DEFAULT_SIZE",
    "BUFFER_MAX_SIZE",
    "BUFFER_MIN_SIZE",
    "DEFAULT_ALERT_THRESHOLDS",
    "MEMORY_DEFAULT_INTERVAL_MS",
    "MEMORY_MAX_INTERVAL_MS",
    "MEMORY_MIN_INTERVAL_MS",
    "MEMORY_USAGE_THRESHOLD_PERCENT",
    "NETWORK_ERROR_STATUS",
    "NETWORK_MAX_URL_LENGTH",
    "NETWORK_TIME_THRESHOLD_MS",
    "RENDER_TIME_THRESHOLD_MS",
]
