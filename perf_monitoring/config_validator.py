"""Validation of the ``monitoring`` configuration section."""
from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from .config_loader import SECTION, ConfigLoader
from .constants import (
    ALERT_MIN_CHECK_INTERVAL_MS,
    BUFFER_MAX_SIZE,
    BUFFER_MIN_SIZE,
    MEMORY_MAX_INTERVAL_MS,
    MEMORY_MIN_INTERVAL_MS,
)
from .models import AlertSeverity, MetricKind

_BOOL_FIELDS = ("enabled", "custom_metrics", "memory_tracking", "network_tracking", "development")
_THRESHOLD_REQUIRED = ("id", "name", "type", "value")


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


class ConfigValidationError(Exception):
    """Raised by callers that treat validation errors as fatal."""


class ConfigValidator:
    """Collects errors and warnings for a monitoring configuration."""

    def __init__(self, config_loader: Optional[ConfigLoader] = None):
        self.config_loader = config_loader or ConfigLoader()
        self.errors: List[str] = []
        self.warnings: List[str] = []

    def validate_config(self) -> bool:
        self.errors.clear()
        self.warnings.clear()

        try:
            config = self.config_loader.load_config()
        except RuntimeError as e:
            self.errors.append(f"Failed to load config: {e}")
            return False

        section = config.get(SECTION)
        if section is None:
            self.warnings.append(f"Missing '{SECTION}' section, defaults will be used")
            return True
        if not isinstance(section, dict):
            self.errors.append(f"'{SECTION}' must be a mapping")
            return False

        self._validate_flags(section)
        self._validate_sampling(section)
        self._validate_buffer(section)
        self._validate_memory(section)
        self._validate_alerts(section.get("alerts") or {})

        return len(self.errors) == 0

    def _validate_flags(self, section: Dict[str, Any]) -> None:
        for name in _BOOL_FIELDS:
            if name in section and not isinstance(section[name], bool):
                self.errors.append(f"monitoring.{name} must be a boolean: {section[name]}")

    def _validate_sampling(self, section: Dict[str, Any]) -> None:
        sample_rate = section.get("sample_rate", 1.0)
        if not _is_number(sample_rate):
            self.errors.append(f"monitoring.sample_rate must be a number: {sample_rate}")
        elif not 0 <= sample_rate <= 1:
            self.warnings.append(f"monitoring.sample_rate {sample_rate} will be clamped to [0, 1]")
        elif sample_rate == 0:
            self.warnings.append("monitoring.sample_rate is 0, nothing will be tracked")

    def _validate_buffer(self, section: Dict[str, Any]) -> None:
        buffer_size = section.get("buffer_size")
        if buffer_size is None:
            return
        if not isinstance(buffer_size, int) or isinstance(buffer_size, bool):
            self.errors.append(f"monitoring.buffer_size must be an integer: {buffer_size}")
        elif not BUFFER_MIN_SIZE <= buffer_size <= BUFFER_MAX_SIZE:
            self.warnings.append(
                f"monitoring.buffer_size {buffer_size} will be clamped to "
                f"[{BUFFER_MIN_SIZE}, {BUFFER_MAX_SIZE}]"
            )

    def _validate_memory(self, section: Dict[str, Any]) -> None:
        interval = section.get("memory_interval")
        if interval is None:
            return
        if not _is_number(interval):
            self.errors.append(f"monitoring.memory_interval must be a number: {interval}")
        elif not MEMORY_MIN_INTERVAL_MS <= interval <= MEMORY_MAX_INTERVAL_MS:
            self.warnings.append(
                f"monitoring.memory_interval {interval} will be clamped to "
                f"[{MEMORY_MIN_INTERVAL_MS}, {MEMORY_MAX_INTERVAL_MS}]"
            )

    def _validate_alerts(self, alerts: Any) -> None:
        if not isinstance(alerts, dict):
            self.errors.append("monitoring.alerts must be a mapping")
            return

        enabled = alerts.get("enabled", False)
        if not isinstance(enabled, bool):
            self.errors.append(f"monitoring.alerts.enabled must be a boolean: {enabled}")

        interval = alerts.get("check_interval_ms")
        if interval is not None:
            if not _is_number(interval) or interval <= 0:
                self.errors.append(f"monitoring.alerts.check_interval_ms must be a positive number: {interval}")
            elif interval < ALERT_MIN_CHECK_INTERVAL_MS:
                self.warnings.append(
                    f"monitoring.alerts.check_interval_ms {interval} is below {ALERT_MIN_CHECK_INTERVAL_MS}"
                )

        thresholds = alerts.get("thresholds") or []
        if not isinstance(thresholds, list):
            self.errors.append("monitoring.alerts.thresholds must be a list")
            return

        seen = set()
        for index, threshold in enumerate(thresholds):
            self._validate_threshold(index, threshold, seen)

    def _validate_threshold(self, index: int, threshold: Any, seen: set) -> None:
        prefix = f"monitoring.alerts.thresholds[{index}]"
        if not isinstance(threshold, dict):
            self.errors.append(f"{prefix} must be a mapping")
            return

        missing = [name for name in _THRESHOLD_REQUIRED if name not in threshold]
        if missing:
            self.errors.append(f"{prefix} missing fields: {', '.join(missing)}")

        threshold_id = threshold.get("id")
        if threshold_id is not None:
            if threshold_id in seen:
                self.errors.append(f"{prefix} duplicate id: {threshold_id}")
            seen.add(threshold_id)

        kind = threshold.get("type")
        valid_kinds = [item.value for item in MetricKind]
        if kind is not None and str(kind).lower() not in valid_kinds:
            self.errors.append(f"{prefix} invalid type: {kind}, must be one of: {', '.join(valid_kinds)}")

        severity = threshold.get("severity", AlertSeverity.WARNING.value)
        valid_severities = [item.value for item in AlertSeverity]
        if str(severity).lower() not in valid_severities:
            self.errors.append(
                f"{prefix} invalid severity: {severity}, must be one of: {', '.join(valid_severities)}"
            )

        value = threshold.get("value")
        if value is not None and (not _is_number(value) or value < 0):
            self.errors.append(f"{prefix} value must be a non-negative number: {value}")

    def get_errors(self) -> List[str]:
        return self.errors.copy()

    def get_warnings(self) -> List[str]:
        return self.warnings.copy()

    def raise_for_errors(self) -> None:
        if self.errors:
            raise ConfigValidationError("; ".join(self.errors))


def validate_config_file(config_path: Optional[Union[str, Path]] = None) -> bool:
    """Validate a config file, returning True when it has no errors."""
    validator = ConfigValidator(ConfigLoader(config_path))
    return validator.validate_config()


__all__ = ["ConfigValidationError", "ConfigValidator", "validate_config_file"]
