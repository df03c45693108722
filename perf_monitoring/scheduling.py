"""Cancellable background loop used for periodic sampling."""

from __future__ import annotations

import threading
from typing import Callable, Optional

from .structured_logging import LogCategory, StructuredLogger, get_structured_logger


class RepeatingTask:
    """Run ``action`` every ``interval_ms`` on a daemon thread until stopped.

    The first run happens one interval after :meth:`start`.
    """

    def __init__(
        self,
        action: Callable[[], object],
        interval_ms: float,
        *,
        name: str = "perf-monitoring-task",
        category: LogCategory = LogCategory.MONITOR,
        logger: Optional[StructuredLogger] = None,
    ) -> None:
        self.action = action
        self.interval_ms = interval_ms
        self.name = name
        self.category = category
        self.logger = logger or get_structured_logger()
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive() and not self._stop_event.is_set()

    def start(self) -> None:
        if self._thread is not None:
            return
        self._thread = threading.Thread(target=self._loop, name=self.name, daemon=True)
        self._thread.start()

    def stop(self, timeout: Optional[float] = 1.0) -> None:
        self._stop_event.set()
        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout)

    def _loop(self) -> None:
        interval = self.interval_ms / 1000.0
        while not self._stop_event.wait(interval):
            try:
                self.action()
            except Exception as e:
                self.logger.error(self.category, f"Error in background task {self.name}", exception=e)


__all__ = ["RepeatingTask"]
