from __future__ import annotations

import logging
import threading
import time
from datetime import datetime, timezone
from typing import Callable, Mapping, Optional

from .config import rate_limit_sleep_disabled
from .errors import ScanCancelled
from .models import RateLimitState

logger = logging.getLogger(__name__)

REMAINING_HEADER = "X-RateLimit-Remaining"
RESET_HEADER = "X-RateLimit-Reset"


class RateLimiter:
    """Thread-safe pacing for the requests of one source instance.

    acquire() blocks until the next request is allowed: if the server reported
    a nearly exhausted quota it waits for the reported reset, then it enforces
    a minimum spacing since the previous request. The state is only touched
    under the limiter's lock, which is held across the wait."""

    def __init__(
        self,
        min_interval: float,
        low_watermark: int = 5,
        sleep_disabled: bool = False,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._state = RateLimitState(min_interval=max(min_interval, 0.0))
        self._low_watermark = low_watermark
        self._sleep_disabled = sleep_disabled
        self._clock = clock
        self._lock = threading.Lock()

    @property
    def state(self) -> RateLimitState:
        return self._state

    def acquire(self, cancel: Optional[threading.Event] = None) -> None:
        """Block until the next request is permitted."""
        if self._sleep_disabled or rate_limit_sleep_disabled():
            return
        with self._lock:
            state = self._state
            if state.remaining is not None and state.remaining <= self._low_watermark:
                wait = state.reset_at - self._clock()
                if wait > 0:
                    logger.debug("Approaching rate limit (%d remaining), waiting %.1fs", state.remaining, wait)
                    self._wait(wait, cancel)

            since_last = self._clock() - state.last_request_at
            if since_last < state.min_interval:
                wait = state.min_interval - since_last
                logger.debug("Enforcing minimum request interval, waiting %.1fs", wait)
                self._wait(wait, cancel)

    def record_response_headers(self, headers: Optional[Mapping[str, str]]) -> None:
        """Update quota counters from server headers and stamp the request time."""
        with self._lock:
            state = self._state
            if headers:
                remaining = _header(headers, REMAINING_HEADER)
                if remaining is not None:
                    try:
                        state.remaining = int(remaining)
                    except ValueError:
                        pass
                reset = _header(headers, RESET_HEADER)
                if reset is not None:
                    try:
                        state.reset_at = float(int(reset))
                    except ValueError:
                        pass
            state.request_count += 1
            state.last_request_at = self._clock()

    def mark_exhausted(self, reset_at: float) -> None:
        """Force the next acquire() to wait for `reset_at` (epoch seconds)."""
        with self._lock:
            self._state.remaining = 0
            if reset_at > self._state.reset_at:
                self._state.reset_at = reset_at

    def status(self) -> str:
        with self._lock:
            state = self._state
            reset = datetime.fromtimestamp(state.reset_at, tz=timezone.utc).isoformat() if state.reset_at else "-"
            remaining = "?" if state.remaining is None else state.remaining
            return f"Remaining: {remaining}, Reset: {reset}, Requests: {state.request_count}"

    @staticmethod
    def _wait(seconds: float, cancel: Optional[threading.Event]) -> None:
        if cancel is None:
            time.sleep(seconds)
            return
        if cancel.wait(seconds):
            raise ScanCancelled("cancelled while waiting for rate limit")


def _header(headers: Mapping[str, str], name: str) -> Optional[str]:
    # requests and curl_cffi both return case-insensitive mappings; plain dicts may not be.
    value = headers.get(name)
    if value is None:
        lowered = name.lower()
        for key, candidate in headers.items():
            if key.lower() == lowered:
                value = candidate
                break
    if value is None:
        return None
    value = str(value).strip()
    return value or None
