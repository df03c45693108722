"""Fixed capacity FIFO store for metric records."""

from __future__ import annotations

import threading
from collections import deque
from typing import Deque, List

from .constants import BUFFER_DEFAULT_SIZE, BUFFER_MAX_SIZE, BUFFER_MIN_SIZE
from .models import Metric


class MetricBuffer:
    """Bounded buffer keeping the most recent metrics.

    Capacity is clamped once at construction to ``[min_size, max_size]``.
    """

    def __init__(
        self,
        size: int = BUFFER_DEFAULT_SIZE,
        *,
        min_size: int = BUFFER_MIN_SIZE,
        max_size: int = BUFFER_MAX_SIZE,
    ) -> None:
        self._max_size = min(max(int(size), min_size), max_size)
        self._data: Deque[Metric] = deque()
        self._lock = threading.Lock()

    def push(self, metric: Metric) -> None:
        with self._lock:
            if len(self._data) >= self._max_size:
                self._data.popleft()
            self._data.append(metric)

    def clear(self) -> None:
        with self._lock:
            self._data.clear()

    def get_data(self) -> List[Metric]:
        """Return a copy of the buffered metrics, oldest first."""
        with self._lock:
            return list(self._data)

    def get_size(self) -> int:
        return len(self._data)

    def get_max_size(self) -> int:
        return self._max_size

    def __len__(self) -> int:
        return len(self._data)


__all__ = ["MetricBuffer"]
