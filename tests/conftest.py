"""Shared fixtures for the perf_monitoring test-suite."""
from __future__ import annotations

from typing import List, Optional

import pytest

from perf_monitoring.collector import MetricsCollector
from perf_monitoring.config import MonitorConfig
from perf_monitoring.probes import MemoryReading
from perf_monitoring.runtime import PerformanceMonitor, stop_global_monitoring


class FakeMemoryProbe:
    """Memory probe returning scripted readings."""

    def __init__(self, used: float = 80.0, total: float = 100.0, limit: Optional[float] = None):
        self.reading = MemoryReading(heap_used=used, heap_total=total, limit=limit)
        self.calls = 0

    def read(self) -> MemoryReading:
        self.calls += 1
        return self.reading


class SequenceRandom:
    """Deterministic stand-in for ``random.random``."""

    def __init__(self, values: List[float]):
        self.values = list(values)
        self.index = 0

    def __call__(self) -> float:
        value = self.values[self.index % len(self.values)]
        self.index += 1
        return value


@pytest.fixture
def memory_probe():
    return FakeMemoryProbe()


@pytest.fixture
def collector(memory_probe):
    collector = MetricsCollector(memory_probe=memory_probe)
    yield collector
    collector.disable()


@pytest.fixture
def monitor(memory_probe):
    monitor = PerformanceMonitor(MonitorConfig(), memory_probe=memory_probe)
    yield monitor
    monitor.dispose()


@pytest.fixture(autouse=True)
def _reset_global_monitor():
    yield
    stop_global_monitoring()
