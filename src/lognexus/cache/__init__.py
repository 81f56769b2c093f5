"""Cache clearing timer."""

from lognexus.cache.timer import (
    CacheClearTimer,
    clear_cache,
    default_timer,
    start_cache_clear,
    stop_cache_clear,
)

__all__ = [
    "CacheClearTimer",
    "clear_cache",
    "default_timer",
    "start_cache_clear",
    "stop_cache_clear",
]
