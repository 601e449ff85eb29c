from __future__ import annotations

import logging
import threading
import time
from typing import Any, Callable, Optional

import requests
from curl_cffi import CurlError

from .backoff import BackoffStrategy
from .errors import RateLimitExceeded, ScanCancelled, TransientNetworkError

logger = logging.getLogger(__name__)

TRANSPORT_ERRORS = (requests.ConnectionError, requests.Timeout, CurlError)


def is_retryable_status(status_code: Optional[int]) -> bool:
    return status_code is not None and (status_code >= 500 or status_code == 429)


class RetryExecutor:
    """Runs one outbound request, retrying server errors with exponential backoff.

    Retries HTTP 5xx, HTTP 429 and transport failures (connection errors,
    timeouts) up to `max_retries` times after the first attempt. Any other
    exception propagates immediately; any other response, successful or not,
    is returned to the caller."""

    def __init__(
        self,
        backoff: Optional[BackoffStrategy] = None,
        max_retries: int = 3,
        sleep: Optional[Callable[[float], Any]] = None,
    ) -> None:
        self._backoff = backoff or BackoffStrategy()
        self._max_retries = max(max_retries, 0)
        self._sleep = sleep

    def execute(
        self,
        send: Callable[[], Any],
        target: str = "",
        cancel: Optional[threading.Event] = None,
    ) -> Any:
        last_status: Optional[int] = None
        last_error: Optional[BaseException] = None
        last_response: Any = None

        for attempt in range(self._max_retries + 1):
            if attempt > 0:
                self._pause(self._backoff.get_sleep(attempt), cancel)
                logger.info("Retrying request to %s (attempt %d/%d)", target, attempt, self._max_retries)
            if cancel is not None and cancel.is_set():
                raise ScanCancelled(f"cancelled before requesting {target}")

            try:
                response = send()
            except TRANSPORT_ERRORS as exc:
                last_error = exc
                last_status = None
                continue

            status_code = getattr(response, "status_code", None)
            if is_retryable_status(status_code):
                last_status = status_code
                last_response = response
                last_error = None
                continue
            return response

        if last_status == 429:
            reset = _reset_from(last_response)
            raise RateLimitExceeded(
                f"rate limited by {target} after {self._max_retries} retries", reset_at=reset
            )
        if last_status is not None:
            raise TransientNetworkError(
                f"after {self._max_retries} retries, server returned status {last_status}",
                status_code=last_status,
            )
        raise TransientNetworkError(f"after {self._max_retries} retries, last error: {last_error}") from last_error

    def _pause(self, seconds: float, cancel: Optional[threading.Event]) -> None:
        if self._sleep is not None:
            self._sleep(seconds)
        elif cancel is None:
            time.sleep(seconds)
        elif cancel.wait(seconds):
            raise ScanCancelled("cancelled during retry backoff")
        if cancel is not None and cancel.is_set():
            raise ScanCancelled("cancelled during retry backoff")


def _reset_from(response: Any) -> float:
    headers = getattr(response, "headers", None) or {}
    try:
        return float(headers.get("X-RateLimit-Reset") or 0)
    except (TypeError, ValueError):
        return 0.0
