from __future__ import annotations

import random
import time
from typing import Callable, Tuple, Type, TypeVar


T = TypeVar("T")


def exponential_backoff(
    attempt: int,
    base_seconds: float,
    cap_seconds: float,
) -> float:
    return min(cap_seconds, base_seconds * (2 ** max(0, attempt - 1)))


def linear_backoff(attempt: int, base_seconds: float) -> float:
    """Reconnect delay: ``base_seconds`` times the 1-based attempt number."""
    return base_seconds * max(1, attempt)


def with_retries(
    func: Callable[[], T],
    max_attempts: int,
    base_seconds: float,
    cap_seconds: float,
    jitter_fraction: float = 0.1,
    retry_on: Tuple[Type[BaseException], ...] = (Exception,),
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    attempt = 1
    while True:
        try:
            return func()
        except retry_on:
            if attempt >= max_attempts:
                raise
            delay = exponential_backoff(attempt, base_seconds, cap_seconds)
            jitter = delay * jitter_fraction * (2 * random.random() - 1)
            sleep(max(0.0, delay + jitter))
            attempt += 1
