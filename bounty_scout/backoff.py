from __future__ import annotations

import random


class BackoffStrategy:
    """Exponential backoff for retry delays.

    Computes sleep duration as base * 2^(attempt-1), capped at a configurable
    maximum, plus an optional random jitter proportional to the delay."""

    def __init__(self, base_seconds: float = 1.0, max_seconds: float = 30.0, jitter_ratio: float = 0.0) -> None:
        self._base = base_seconds
        self._max = max_seconds
        self._jitter_ratio = max(jitter_ratio, 0.0)

    def get_sleep(self, attempt: int) -> float:
        """Calculate the backoff sleep duration in seconds for a given retry attempt."""
        exp = min(self._max, self._base * (2 ** max(attempt - 1, 0)))
        if not self._jitter_ratio:
            return exp
        return exp + random.uniform(0, exp * self._jitter_ratio)
