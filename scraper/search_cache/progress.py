"""Progress events and sinks.

Fetch tasks report one event per page attempt. Sinks may be called from
several tasks (or threads) at once, so each concrete sink serializes its
own state behind a lock. Reporting is fire-and-forget: a sink that raises
is logged and ignored, it never fails the fetch that reported.
"""

from __future__ import annotations

import logging
import sys
import threading
import time
from dataclasses import dataclass
from typing import Callable, Optional, TextIO


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProgressEvent:
    current_page: int
    total_pages: int
    error: Optional[BaseException] = None

    @property
    def is_error(self) -> bool:
        return self.error is not None

    @property
    def percent(self) -> float:
        if self.total_pages <= 0:
            return 100.0
        return round(self.current_page * 100.0 / self.total_pages, 2)


class ProgressSink:
    """Receives progress events. Subclasses override ``_handle``."""

    def __init__(self) -> None:
        self._lock = threading.Lock()

    def report(self, event: ProgressEvent) -> None:
        try:
            with self._lock:
                self._handle(event)
        except Exception as exc:  # sink problems must not reach the fetcher
            logger.warning("Progress sink %s failed: %s", type(self).__name__, exc)

    def _handle(self, event: ProgressEvent) -> None:
        raise NotImplementedError

    def close(self) -> None:
        pass


class NullProgressSink(ProgressSink):
    def _handle(self, event: ProgressEvent) -> None:
        pass


class CallbackProgressSink(ProgressSink):
    """Forward each event to a plain callable."""

    def __init__(self, callback: Callable[[ProgressEvent], None]):
        super().__init__()
        self._callback = callback

    def _handle(self, event: ProgressEvent) -> None:
        self._callback(event)


class LoggingProgressSink(ProgressSink):
    def _handle(self, event: ProgressEvent) -> None:
        if event.is_error:
            logger.error("Error while fetching page %s: %s", event.current_page, event.error)
        else:
            logger.info(
                "Fetched %s/%s pages (%.2f%%)",
                event.current_page,
                event.total_pages,
                event.percent,
            )


class ConsoleProgressSink(ProgressSink):
    """Single-line progress bar with failure count and ETA."""

    def __init__(self, stream: Optional[TextIO] = None, width: int = 40):
        super().__init__()
        self._stream = stream or sys.stdout
        self._width = width
        self._start = time.perf_counter()
        self._done = 0
        self._failed = 0
        self._total = 0

    def _handle(self, event: ProgressEvent) -> None:
        self._done += 1
        if event.is_error:
            self._failed += 1
        else:
            self._total = event.total_pages
        total = max(self._total, self._done)
        elapsed = max(1e-6, time.perf_counter() - self._start)
        speed = self._done / elapsed
        frac = min(1.0, self._done / max(1, total))
        filled = int(self._width * frac)
        bar = f"[{'#' * filled}{'.' * (self._width - filled)}]"
        remaining = max(0, total - self._done)
        eta_s = (remaining / speed) if speed > 0 else 0.0
        line = (
            f"{bar} {self._done}/{total} pages | {frac * 100:.1f}% | "
            f"{speed:.1f} p/s | failed: {self._failed} | "
            f"ETA: {int(eta_s // 60):02d}:{int(eta_s % 60):02d}"
        )
        self._stream.write("\r" + line)
        self._stream.flush()

    def close(self) -> None:
        with self._lock:
            if self._done:
                self._stream.write("\n")
                self._stream.flush()
