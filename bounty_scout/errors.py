from __future__ import annotations

from typing import Optional


class ScoutError(Exception):
    """Base class for pipeline errors."""


class TransientNetworkError(ScoutError):
    """A request kept failing with a retryable condition."""

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class RateLimitExceeded(ScoutError):
    """Server quota is exhausted; callers wait rather than fail."""

    def __init__(self, message: str, reset_at: float = 0.0) -> None:
        super().__init__(message)
        self.reset_at = reset_at


class MalformedResponse(ScoutError):
    """A page could not be parsed or failed schema checks."""


class UnsafeContent(MalformedResponse):
    """A page contained injection patterns; the whole page is rejected."""


class InvalidRecord(ScoutError):
    """A single record failed the funnel."""

    def __init__(self, message: str, reason: str = "invalid_url") -> None:
        super().__init__(message)
        self.reason = reason


class DuplicateRecord(ScoutError):
    """The record's canonical URL is already persisted."""


class ScanCancelled(ScoutError):
    """The cancellation token was set while waiting."""
