"""Exponential backoff delay calculation shared by the HTTP client retries."""

from __future__ import annotations

import random


def backoff_delay(
    attempt: int,
    base_delay: float = 1.0,
    max_delay: float = 60.0,
    jitter: float = 0.0,
) -> float:
    """Return the delay before retrying after ``attempt`` (0-indexed).

    Delay formula: ``min(max_delay, base_delay * 2^attempt) * (1 + uniform(0, jitter))``.
    Jitter only ever lengthens the delay, so the exponential floor is kept.
    """
    delay = min(max_delay, max(0.0, base_delay * (2**attempt)))
    if jitter > 0:
        delay += delay * jitter * random.random()
    return delay
