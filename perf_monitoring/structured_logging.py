"""
Structured logging for the performance monitoring package.

Every entry is a JSON document routed through a per-category stdlib logger
(``perf_monitoring.<category>``), so host applications keep full control of
handlers and levels while still getting machine readable records.
"""

from __future__ import annotations

import json
import logging as std_logging
import threading
import traceback
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional

_LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s - %(message)s"
_LOGGER_PREFIX = "perf_monitoring"


class LogLevel(Enum):
    """Log levels understood by :class:`StructuredLogger`."""
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"


class LogCategory(Enum):
    """Subsystem that produced a log entry."""
    COLLECTOR = "collector"
    ALERTS = "alerts"
    MONITOR = "monitor"
    CONFIG = "config"


@dataclass
class LogConfig:
    """Configuration for the structured logger."""
    log_level: str = "INFO"
    log_dir: Optional[str] = None
    include_traceback: bool = True


class StructuredLogger:
    """Category aware logger emitting one JSON document per entry."""

    def __init__(self, config: Optional[LogConfig] = None):
        self.config = config or LogConfig()
        self.loggers: Dict[LogCategory, std_logging.Logger] = {}
        self._setup_loggers()

    def _setup_loggers(self):
        for category in LogCategory:
            self.loggers[category] = self._create_category_logger(category)

    def _create_category_logger(self, category: LogCategory) -> std_logging.Logger:
        logger = std_logging.getLogger(f"{_LOGGER_PREFIX}.{category.value}")
        logger.setLevel(getattr(std_logging, self.config.log_level.upper(), std_logging.INFO))

        if self.config.log_dir:
            log_dir = Path(self.config.log_dir)
            log_dir.mkdir(parents=True, exist_ok=True)
            file_path = log_dir / f"{category.value}.log"
            already_attached = any(
                isinstance(handler, std_logging.FileHandler)
                and Path(handler.baseFilename) == file_path.resolve()
                for handler in logger.handlers
            )
            if not already_attached:
                handler = std_logging.FileHandler(file_path, encoding="utf-8")
                handler.setFormatter(std_logging.Formatter(_LOG_FORMAT))
                logger.addHandler(handler)

        return logger

    def _log(self, level: LogLevel, category: LogCategory, message: str, **kwargs: Any):
        logger = self.loggers.get(category)
        if logger is None:
            return

        entry = {
            "timestamp": datetime.now().isoformat(),
            "level": level.value,
            "category": category.value,
            "message": message,
            **kwargs,
        }
        logger.log(getattr(std_logging, level.value), json.dumps(entry, ensure_ascii=False, default=str))

    def debug(self, category: LogCategory, message: str, **kwargs: Any):
        self._log(LogLevel.DEBUG, category, message, **kwargs)

    def info(self, category: LogCategory, message: str, **kwargs: Any):
        self._log(LogLevel.INFO, category, message, **kwargs)

    def warning(self, category: LogCategory, message: str, **kwargs: Any):
        self._log(LogLevel.WARNING, category, message, **kwargs)

    def error(self, category: LogCategory, message: str, exception: Optional[BaseException] = None, **kwargs: Any):
        """Log an error, attaching exception details when given."""
        if exception is not None:
            details = {
                "type": type(exception).__name__,
                "message": str(exception),
            }
            if self.config.include_traceback:
                details["traceback"] = "".join(
                    traceback.format_exception(type(exception), exception, exception.__traceback__)
                )
            kwargs["exception"] = details
        self._log(LogLevel.ERROR, category, message, **kwargs)


class StructuredLogManager:
    """Process wide holder for the shared :class:`StructuredLogger`."""

    _instance: Optional[StructuredLogger] = None
    _lock = threading.Lock()

    @classmethod
    def get_instance(cls, config: Optional[LogConfig] = None) -> StructuredLogger:
        with cls._lock:
            if cls._instance is None:
                cls._instance = StructuredLogger(config)
            return cls._instance

    @classmethod
    def initialize(cls, config: LogConfig) -> StructuredLogger:
        with cls._lock:
            cls._instance = StructuredLogger(config)
            return cls._instance


def get_structured_logger() -> StructuredLogger:
    """Return the shared structured logger."""
    return StructuredLogManager.get_instance()


def configure(level: str = "INFO") -> None:
    """Configure root logging with the package's console format."""
    std_logging.basicConfig(level=getattr(std_logging, level.upper(), std_logging.INFO), format=_LOG_FORMAT)


__all__ = [
    "LogCategory",
    "LogConfig",
    "LogLevel",
    "StructuredLogManager",
    "StructuredLogger",
    "configure",
    "get_structured_logger",
]
