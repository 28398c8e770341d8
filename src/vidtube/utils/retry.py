from __future__ import annotations

import random
import time
from collections.abc import Callable, Iterator
from typing import Any, TypeVar

T = TypeVar("T")


def backoff_delays(
    retries: int, *, base: float = 0.5, cap: float = 6.0, jitter: bool = True
) -> Iterator[float]:
    """Sleep durations between attempts: base * 2**n, capped, optionally scaled by 0.5..1.5."""
    for n in range(max(0, int(retries))):
        delay = min(float(cap), float(base) * (2**n))
        if jitter:
            delay *= 0.5 + random.random()
        yield max(0.0, delay)


def retry_call(
    fn: Callable[[], T],
    *,
    retries: int = 2,
    base: float = 0.5,
    cap: float = 6.0,
    jitter: bool = True,
    retry_on: tuple[type[BaseException], ...] = (Exception,),
    on_retry: Callable[[int, float, BaseException], Any] | None = None,
) -> T:
    """
    Call fn() up to 1 + retries times.

    Only exceptions in `retry_on` trigger another attempt; the last one propagates.
    """
    delays = backoff_delays(retries, base=base, cap=cap, jitter=jitter)
    attempt = 0
    while True:
        try:
            return fn()
        except retry_on as ex:
            delay = next(delays, None)
            if delay is None:
                raise
            attempt += 1
            if on_retry is not None:
                on_retry(attempt, delay, ex)
            time.sleep(delay)
