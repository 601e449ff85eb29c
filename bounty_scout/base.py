from __future__ import annotations

import logging
import threading
from abc import ABC, abstractmethod
from typing import Any, Dict, Iterator, List, Sequence, Tuple

from .config import DEFAULT_HEURISTICS, Heuristics
from .errors import MalformedResponse, RateLimitExceeded, ScanCancelled, ScoutError
from .models import CandidateRecord
from .rate_limiter import RateLimiter
from .retry import RetryExecutor
from .validation import snippet

logger = logging.getLogger(__name__)


class BaseScanner(ABC):
    """Abstract base class for a source adapter.

    Subclasses paginate one external source and map its items to
    CandidateRecord. The shared pipeline is:
    - one query (label, status) at a time, pages in increasing order
    - rate limiter, then retry executor, then fail-closed page parsing
    - a failing page ends that query only; the next query still runs
    - run() never lets an exception escape into the orchestrator
    """

    source_id: str = "base"
    display_name: str = "Base"

    def __init__(
        self,
        session: Any,
        rate_limiter: RateLimiter,
        retry: RetryExecutor,
        per_page: int = 100,
        max_pages: int = 10,
        timeout: float = 30,
        heuristics: Heuristics = DEFAULT_HEURISTICS,
        strict: bool = True,
    ) -> None:
        self._session = session
        self._rate_limiter = rate_limiter
        self._retry = retry
        self._per_page = max(per_page, 1)
        self._max_pages = max(max_pages, 1)
        self._timeout = timeout
        self._heuristics = heuristics
        self._strict = strict

    @property
    def name(self) -> str:
        return self.display_name

    @property
    def rate_limiter(self) -> RateLimiter:
        return self._rate_limiter

    def run(self, cancel: threading.Event) -> Iterator[CandidateRecord]:
        """Yield records from scan(), absorbing any failure of the source."""
        try:
            yield from self.scan(cancel)
        except ScanCancelled:
            logger.debug("%s: scan cancelled", self.name)
        except Exception as exc:  # noqa: BLE001
            logger.error("%s: scan aborted: %s", self.name, exc)

    def scan(self, cancel: threading.Event) -> Iterator[CandidateRecord]:
        for query in self.queries():
            if cancel.is_set():
                return
            yield from self._scan_query(query, cancel)

    def _scan_query(self, query: str, cancel: threading.Event) -> Iterator[CandidateRecord]:
        for page in range(1, self._max_pages + 1):
            if cancel.is_set():
                return
            try:
                raw = self.fetch(query, page, cancel)
                item_count, records = self.parse_page(query, page, raw)
            except ScanCancelled:
                raise
            except ScoutError as exc:
                logger.error("%s: error on %s (page %d): %s", self.name, query, page, exc)
                yield from self.fallback_records(query)
                return

            for record in records:
                if cancel.is_set():
                    return
                yield record

            if item_count < self._per_page:
                return

    def fetch(self, query: str, page: int, cancel: threading.Event) -> bytes:
        url, params = self.build_request(query, page)
        headers = self.request_headers()

        self._rate_limiter.acquire(cancel)
        try:
            response = self._retry.execute(
                lambda: self._session.get(url, params=params, headers=headers, timeout=self._timeout),
                target=url,
                cancel=cancel,
            )
        except RateLimitExceeded as exc:
            self._rate_limiter.mark_exhausted(exc.reset_at)
            raise
        self._rate_limiter.record_response_headers(getattr(response, "headers", None))

        body = getattr(response, "content", b"") or b""
        status_code = getattr(response, "status_code", None)
        if status_code is None or not 200 <= int(status_code) < 300:
            raise MalformedResponse(f"unexpected status {status_code} from {url}: {snippet(body)}")
        return body

    def request_headers(self) -> Dict[str, str]:
        return {"Accept": "application/json", "User-Agent": "bounty-scout/1.0"}

    def fallback_records(self, query: str) -> List[CandidateRecord]:
        """Records to emit in place of a failed query. None by default."""
        return []

    @abstractmethod
    def queries(self) -> Sequence[str]:
        ...

    @abstractmethod
    def build_request(self, query: str, page: int) -> Tuple[str, Dict[str, Any]]:
        ...

    @abstractmethod
    def parse_page(self, query: str, page: int, raw: bytes) -> Tuple[int, List[CandidateRecord]]:
        """Return the number of raw items on the page and the mapped records."""
        ...
