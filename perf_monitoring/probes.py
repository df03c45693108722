"""Host memory probes used by the collector."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Protocol

import psutil

from .structured_logging import LogCategory, StructuredLogger, get_structured_logger


@dataclass(frozen=True)
class MemoryReading:
    """Raw memory figures in bytes. ``limit`` is None when no ceiling is known."""

    heap_used: float = 0.0
    heap_total: float = 0.0
    limit: Optional[float] = None


class MemoryProbe(Protocol):
    """Capability implemented by memory sources."""

    def read(self) -> MemoryReading:
        ...


class NullMemoryProbe(MemoryProbe):
    """Probe for hosts without a usable memory API; always reports zeros."""

    def read(self) -> MemoryReading:
        return MemoryReading()


class PsutilMemoryProbe(MemoryProbe):
    """Reads the current process' resident memory against system memory."""

    def __init__(self, pid: Optional[int] = None, logger: Optional[StructuredLogger] = None) -> None:
        self._pid = pid
        self._process: Optional[psutil.Process] = None
        self.logger = logger or get_structured_logger()

    def _get_process(self) -> psutil.Process:
        if self._process is None:
            self._process = psutil.Process(self._pid)
        return self._process

    def read(self) -> MemoryReading:
        try:
            process = self._get_process()
            used = float(process.memory_info().rss)
            total = float(psutil.virtual_memory().total)
            limit = self._read_limit(process)
        except (psutil.Error, OSError) as exc:
            self.logger.warning(
                LogCategory.COLLECTOR,
                "Memory probe unavailable, reporting zeros",
                error=str(exc),
            )
            return MemoryReading()
        return MemoryReading(heap_used=used, heap_total=total, limit=limit)

    @staticmethod
    def _read_limit(process: psutil.Process) -> Optional[float]:
        rlimit_as = getattr(psutil, "RLIMIT_AS", None)
        if rlimit_as is None or not hasattr(process, "rlimit"):
            return None
        soft, _hard = process.rlimit(rlimit_as)
        if soft in (psutil.RLIM_INFINITY, -1) or soft <= 0:
            return None
        return float(soft)


def default_memory_probe() -> MemoryProbe:
    return PsutilMemoryProbe()


__all__ = [
    "MemoryProbe",
    "MemoryReading",
    "NullMemoryProbe",
    "PsutilMemoryProbe",
    "default_memory_probe",
]
