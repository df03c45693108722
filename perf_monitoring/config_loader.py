"""YAML configuration loading with environment variable substitution."""
from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml

from .config import AlertingConfig, MonitorConfig
from .constants import BUFFER_DEFAULT_SIZE, MEMORY_DEFAULT_INTERVAL_MS
from .structured_logging import LogCategory, get_structured_logger

SECTION = "monitoring"
ENV_ENABLED = "PERF_MONITORING_ENABLED"
ENV_SAMPLE_RATE = "PERF_MONITORING_SAMPLE_RATE"
ENV_BUFFER_SIZE = "PERF_MONITORING_BUFFER_SIZE"

# ${VAR_NAME} or ${VAR_NAME:-default_value}
_ENV_PATTERN = re.compile(r"\$\{([^}]+)\}")
_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


def _parse_bool(raw: str) -> bool:
    lowered = raw.strip().lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    raise ValueError(f"Invalid boolean value: {raw}")


class ConfigLoader:
    """Loads the ``monitoring`` section of a YAML file into a :class:`MonitorConfig`."""

    def __init__(self, config_path: Optional[Union[str, Path]] = None):
        self.config_path = Path(config_path) if config_path else Path("config.yaml")
        self._config_cache: Optional[Dict[str, Any]] = None
        self.logger = get_structured_logger()

    def load_config(self) -> Dict[str, Any]:
        """Return the raw configuration mapping (cached after the first read)."""
        if self._config_cache is not None:
            return self._config_cache

        if not self.config_path.exists():
            self.logger.debug(
                LogCategory.CONFIG,
                "Config file not found, using defaults",
                path=str(self.config_path),
            )
            self._config_cache = self._get_default_config()
            return self._config_cache

        try:
            with open(self.config_path, "r", encoding="utf-8") as f:
                config = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            raise RuntimeError(f"Failed to load config file {self.config_path}: {e}") from e

        if not isinstance(config, dict):
            raise RuntimeError(f"Config file {self.config_path} must contain a mapping")

        config = self._process_env_vars(config)
        self._config_cache = config
        return config

    def reload(self) -> Dict[str, Any]:
        self._config_cache = None
        return self.load_config()

    def _get_default_config(self) -> Dict[str, Any]:
        return {
            SECTION: {
                "enabled": True,
                "sample_rate": 1.0,
                "custom_metrics": True,
                "buffer_size": BUFFER_DEFAULT_SIZE,
                "memory_tracking": False,
                "memory_interval": MEMORY_DEFAULT_INTERVAL_MS,
                "network_tracking": True,
                "development": False,
                "alerts": {"enabled": False, "thresholds": [], "check_interval_ms": None},
            }
        }

    def _process_env_vars(self, config: Any) -> Any:
        """Recursively substitute environment variables in string values."""
        if isinstance(config, dict):
            return {k: self._process_env_vars(v) for k, v in config.items()}
        elif isinstance(config, list):
            return [self._process_env_vars(item) for item in config]
        elif isinstance(config, str):
            return self._replace_env_vars(config)
        else:
            return config

    def _replace_env_vars(self, text: str) -> Any:
        def replace_match(match):
            var_expr = match.group(1)
            if ":-" in var_expr:
                var_name, default_value = var_expr.split(":-", 1)
                return os.environ.get(var_name, default_value)
            return os.environ.get(var_expr, "")

        replaced = _ENV_PATTERN.sub(replace_match, text)
        if replaced != text and _ENV_PATTERN.fullmatch(text):
            # a value that is exactly one placeholder keeps its YAML scalar type
            return yaml.safe_load(replaced) if replaced.strip() else None
        return replaced

    def get_section(self) -> Dict[str, Any]:
        config = self.load_config()
        return dict(config.get(SECTION) or {})

    def _apply_env_overrides(self, section: Dict[str, Any]) -> Dict[str, Any]:
        if ENV_ENABLED in os.environ:
            section["enabled"] = _parse_bool(os.environ[ENV_ENABLED])
        if ENV_SAMPLE_RATE in os.environ:
            section["sample_rate"] = float(os.environ[ENV_SAMPLE_RATE])
        if ENV_BUFFER_SIZE in os.environ:
            section["buffer_size"] = int(os.environ[ENV_BUFFER_SIZE])
        return section

    def get_monitor_config(self) -> MonitorConfig:
        """Build a :class:`MonitorConfig` from the file, defaults and env overrides."""
        section = self._apply_env_overrides(self.get_section())
        alerts = section.get("alerts")
        if isinstance(alerts, dict):
            section["alerts"] = AlertingConfig(**alerts)
        config = MonitorConfig.from_dict(section)
        self.logger.debug(
            LogCategory.CONFIG,
            "Monitor config loaded",
            path=str(self.config_path),
            enabled=config.enabled,
            sample_rate=config.sample_rate,
            buffer_size=config.buffer_size,
        )
        return config


def create_config_loader(config_path: Optional[Union[str, Path]] = None) -> ConfigLoader:
    return ConfigLoader(config_path)


def load_monitor_config(config_path: Optional[Union[str, Path]] = None) -> MonitorConfig:
    return ConfigLoader(config_path).get_monitor_config()


__all__ = [
    "ConfigLoader",
    "ENV_BUFFER_SIZE",
    "ENV_ENABLED",
    "ENV_SAMPLE_RATE",
    "create_config_loader",
    "load_monitor_config",
]
