from __future__ import annotations

import logging
from typing import Any, Callable, Dict, List, Mapping, Optional

import requests
from curl_cffi import requests as curl_requests

from .backoff import BackoffStrategy
from .base import BaseScanner
from .config import Settings
from .rate_limiter import RateLimiter
from .retry import RetryExecutor
from .scanners import BountycasterScanner, GitHubScanner, SuperteamScanner

logger = logging.getLogger(__name__)

IMPERSONATE = "chrome120"

SCANNER_ALIASES = {
    "GITHUB": "GITHUB_AGGREGATOR",
    "GITHUB_AGGREGATOR": "GITHUB_AGGREGATOR",
    "SUPERTEAM": "SUPERTEAM",
    "BOUNTYCASTER": "BOUNTYCASTER",
}


class ScannerFactory:
    """Builds the enabled source adapters from settings.

    Each adapter gets its own RateLimiter (quotas are per source) and its
    own session. Sessions can be injected per scanner name for tests:
    `sessions={"SUPERTEAM": fake}`.
    """

    def __init__(
        self,
        settings: Settings,
        sessions: Optional[Mapping[str, Any]] = None,
        sleep: Optional[Callable[[float], Any]] = None,
    ) -> None:
        self._settings = settings
        self._sessions = dict(sessions or {})
        self._sleep = sleep

    def create_all(self) -> List[BaseScanner]:
        scanners: List[BaseScanner] = []
        seen = set()
        for raw_name in self._settings.enabled_scanners:
            name = SCANNER_ALIASES.get(raw_name.strip().upper())
            if name is None:
                logger.warning("Unknown scanner %r in configuration, skipping", raw_name)
                continue
            if name in seen:
                continue
            seen.add(name)
            scanners.append(self.create_scanner(name))
        return scanners

    def create_scanner(self, name: str) -> BaseScanner:
        settings = self._settings
        canonical = SCANNER_ALIASES.get(name.upper())

        if canonical == "GITHUB_AGGREGATOR":
            interval = (
                settings.min_interval_authenticated if settings.github_token else settings.min_interval_unauthenticated
            )
            scanner: BaseScanner = GitHubScanner(
                **self._common(canonical, requests.Session, interval, settings.github_per_page, settings.github_max_pages),
                token=settings.github_token,
                base_url=settings.github_base_url,
                labels=settings.github_labels,
            )
            if not settings.github_token:
                logger.warning("%s: no GitHub token set, using unauthenticated rate limits", scanner.name)
        elif canonical == "SUPERTEAM":
            scanner = SuperteamScanner(
                **self._common(
                    canonical,
                    lambda: curl_requests.Session(impersonate=IMPERSONATE),
                    settings.public_min_interval,
                    settings.superteam_per_page,
                    settings.superteam_max_pages,
                ),
                base_url=settings.superteam_base_url,
                statuses=settings.superteam_statuses,
                emit_fallback_samples=settings.emit_fallback_samples,
            )
        elif canonical == "BOUNTYCASTER":
            scanner = BountycasterScanner(
                **self._common(
                    canonical,
                    requests.Session,
                    settings.public_min_interval,
                    settings.bountycaster_per_page,
                    settings.bountycaster_max_pages,
                ),
                base_url=settings.bountycaster_base_url,
                statuses=settings.bountycaster_statuses,
                emit_fallback_samples=settings.emit_fallback_samples,
            )
        else:
            raise ValueError(f"Unknown scanner: {name}")

        logger.info("Initialized scanner %s", scanner.name)
        return scanner

    def _common(
        self,
        name: str,
        new_session: Callable[[], Any],
        min_interval: float,
        per_page: int,
        max_pages: int,
    ) -> Dict[str, Any]:
        settings = self._settings
        session = self._sessions.get(name)
        if session is None:
            session = new_session()
        return {
            "session": session,
            "rate_limiter": RateLimiter(
                min_interval,
                low_watermark=settings.rate_limit_low_watermark,
                sleep_disabled=settings.sleep_disabled,
            ),
            "retry": RetryExecutor(
                BackoffStrategy(base_seconds=settings.retry_base_seconds),
                max_retries=settings.max_retries,
                sleep=self._sleep,
            ),
            "per_page": per_page,
            "max_pages": max_pages,
            "timeout": settings.request_timeout,
            "heuristics": settings.heuristics,
            "strict": settings.strict_validation,
        }
