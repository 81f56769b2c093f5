"""Async retry utilities with bounded exponential backoff and jitter."""

import asyncio
import functools
import random
from typing import (
    Awaitable,
    Callable,
    Iterable,
    Optional,
    ParamSpec,
    Tuple,
    Type,
    TypeVar,
)

import structlog

logger = structlog.get_logger(__name__)

P = ParamSpec("P")
R = TypeVar("R")


def backoff_delay(
    attempt: int,
    backoff_base: float,
    max_wait: Optional[float] = None,
    jitter: bool = True,
) -> float:
    """Wait before retry number ``attempt`` (1-based): ``backoff_base ** attempt``."""
    wait = backoff_base**attempt
    if max_wait is not None:
        wait = min(wait, max_wait)
    if jitter:
        wait *= random.uniform(0.5, 1.5)
    return wait


def async_retry(
    *,
    max_attempts: int = 3,
    backoff_base: float = 2.0,
    max_wait: Optional[float] = None,
    exceptions: Iterable[Type[BaseException]] = (Exception,),
    jitter: bool = True,
    on_retry: Optional[Callable[[int, BaseException], None]] = None,
) -> Callable[[Callable[P, Awaitable[R]]], Callable[P, Awaitable[R]]]:
    """
    Decorator to retry async functions with exponential backoff.

    Args:
        max_attempts: Maximum number of attempts before giving up.
        backoff_base: Base for exponential backoff (wait = backoff_base ** attempt).
        max_wait: Upper bound for a single wait, applied before jitter.
        exceptions: Exception types that trigger a retry.
        jitter: Whether to apply random jitter to backoff waits.
        on_retry: Called with (attempt, error) before each wait.
    """

    exc_tuple: Tuple[Type[BaseException], ...] = tuple(exceptions)

    def decorator(func: Callable[P, Awaitable[R]]) -> Callable[P, Awaitable[R]]:
        @functools.wraps(func)
        async def wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
            attempt = 1
            while True:
                try:
                    return await func(*args, **kwargs)
                except exc_tuple as exc:
                    if attempt >= max_attempts:
                        raise exc
                    wait = backoff_delay(attempt, backoff_base, max_wait, jitter)

                    logger.warning(
                        "retrying_operation",
                        function=func.__name__,
                        attempt=attempt,
                        max_attempts=max_attempts,
                        wait_seconds=wait,
                        error=str(exc),
                    )
                    if on_retry is not None:
                        on_retry(attempt, exc)

                    await asyncio.sleep(wait)
                    attempt += 1

        return wrapper

    return decorator


__all__ = ["async_retry", "backoff_delay"]
