"""Parsing of human-friendly durations ("500ms", "30s", "1h", "1d")."""

from __future__ import annotations

import re
from datetime import timedelta
from typing import Union

DurationLike = Union[str, int, float, timedelta]

_UNITS = {
    "ms": 0.001,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
    "d": 86400.0,
    "w": 604800.0,
}

_DURATION_RE = re.compile(r"^\s*(\d+(?:\.\d+)?)\s*(ms|s|m|h|d|w)?\s*$", re.IGNORECASE)


def parse_duration(value: DurationLike) -> float:
    """
    Return the duration in seconds.

    Plain numbers (and unit-less strings) are seconds. Raises ValueError for
    anything that is not a positive duration.
    """
    if isinstance(value, bool):
        raise ValueError(f"Invalid duration: {value!r}")
    if isinstance(value, timedelta):
        seconds = value.total_seconds()
    elif isinstance(value, (int, float)):
        seconds = float(value)
    elif isinstance(value, str):
        match = _DURATION_RE.match(value)
        if not match:
            raise ValueError(f"Invalid duration: {value!r}")
        amount, unit = match.groups()
        seconds = float(amount) * _UNITS[(unit or "s").lower()]
    else:
        raise ValueError(f"Invalid duration: {value!r}")

    if seconds <= 0:
        raise ValueError(f"Duration must be positive: {value!r}")
    return seconds


__all__ = ["DurationLike", "parse_duration"]
