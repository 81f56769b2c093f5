"""
Utility helpers for lognexus.
"""

from .durations import DurationLike, parse_duration
from .retry import async_retry, backoff_delay

__all__ = ["DurationLike", "parse_duration", "async_retry", "backoff_delay"]
