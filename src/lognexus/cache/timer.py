"""Periodic garbage collection for long-running processes."""

from __future__ import annotations

import asyncio
import gc
from typing import Callable, Optional

from lognexus.monitoring.metrics import CACHE_CLEARS
from lognexus.utils.durations import DurationLike, parse_duration
from lognexus.utils.logging import get_logger

logger = get_logger(__name__)

DEFAULT_INTERVAL = "3h"


def clear_cache() -> int:
    """Run a full garbage collection. Never raises; returns the collected count."""
    try:
        collected = gc.collect()
    except Exception as exc:  # noqa: BLE001 - timer callbacks must not raise
        CACHE_CLEARS.labels(outcome="failed").inc()
        logger.error("cache_clear_failed", exc_info=exc)
        return 0
    CACHE_CLEARS.labels(outcome="ok").inc()
    logger.info("cache_cleared", collected=collected)
    return collected


class CacheClearTimer:
    """Restartable periodic task; starting it again replaces the running one."""

    def __init__(self, clear: Callable[[], object] = clear_cache) -> None:
        self._clear = clear
        self._task: Optional[asyncio.Task[None]] = None
        self.interval: Optional[float] = None

    def start(self, interval: DurationLike = DEFAULT_INTERVAL) -> "CacheClearTimer":
        """Cancel any running timer, then clear every ``interval``. Needs a running loop."""
        seconds = parse_duration(interval)
        loop = asyncio.get_running_loop()
        self.stop()
        self.interval = seconds
        self._task = loop.create_task(self._run(seconds), name="lognexus-cache-clear")
        logger.info("cache_clear_scheduled", interval_seconds=seconds)
        return self

    def stop(self) -> None:
        if self._task is not None:
            self._task.cancel()
            self._task = None
            self.interval = None

    @property
    def active(self) -> bool:
        return self._task is not None and not self._task.done()

    async def _run(self, seconds: float) -> None:
        while True:
            await asyncio.sleep(seconds)
            try:
                self._clear()
            except Exception as exc:  # noqa: BLE001 - keep the timer alive
                CACHE_CLEARS.labels(outcome="failed").inc()
                logger.error("cache_clear_failed", exc_info=exc)


_timer = CacheClearTimer()


def default_timer() -> CacheClearTimer:
    """The process-wide timer used by start_cache_clear/stop_cache_clear."""
    return _timer


def start_cache_clear(interval: DurationLike = DEFAULT_INTERVAL) -> CacheClearTimer:
    return _timer.start(interval)


def stop_cache_clear() -> None:
    _timer.stop()


__all__ = [
    "CacheClearTimer",
    "clear_cache",
    "default_timer",
    "start_cache_clear",
    "stop_cache_clear",
]
