"""Normalization, validation and dedup of candidate records.

Order per record:
1. canonicalize the URL
2. reject unsafe URLs (scheme, localhost, loopback/link-local IPs)
3. optional reachability probe
4. sanitize free-text fields
5. dedup on canonical URL, then score, persist and broadcast
"""

from __future__ import annotations

import dataclasses
import logging
import threading
from datetime import datetime, timezone
from typing import Callable, Optional

from .config import DEFAULT_HEURISTICS, Heuristics
from .errors import DuplicateRecord, InvalidRecord
from .metrics import (
    OUTCOME_ACCEPTED,
    OUTCOME_DUPLICATE,
    OUTCOME_INVALID_URL,
    OUTCOME_STORAGE_ERROR,
    OUTCOME_UNREACHABLE,
    MetricsCollector,
)
from .models import CandidateRecord, PersistedRecord
from .notify import Broadcaster
from .scoring import score
from .storage import StorageBase
from .urls import ReachabilityProbe, canonicalize_url, unsafe_reason
from .validation import sanitize_text

logger = logging.getLogger(__name__)

SHORT_FIELD_LIMIT = 100


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Funnel:
    def __init__(
        self,
        storage: StorageBase,
        broadcaster: Broadcaster,
        heuristics: Heuristics = DEFAULT_HEURISTICS,
        probe: Optional[ReachabilityProbe] = None,
        metrics: Optional[MetricsCollector] = None,
        allow_local: bool = False,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._storage = storage
        self._broadcaster = broadcaster
        self._heuristics = heuristics
        self._probe = probe
        self._metrics = metrics or MetricsCollector()
        self._allow_local = allow_local
        self._clock = clock
        self._lock = threading.Lock()

    @property
    def metrics(self) -> MetricsCollector:
        return self._metrics

    def process(self, record: CandidateRecord) -> str:
        """Run one record through the funnel and return its outcome."""
        try:
            outcome = self._process(record)
        except InvalidRecord as exc:
            logger.debug("Rejected %s record: %s", record.source_id, exc)
            outcome = exc.reason
        except DuplicateRecord:
            outcome = OUTCOME_DUPLICATE
        self._metrics.record_outcome(record.source_id, outcome)
        return outcome

    def _process(self, record: CandidateRecord) -> str:
        url = canonicalize_url(record.source_url)
        reason = unsafe_reason(url, allow_local=self._allow_local)
        if reason is not None:
            raise InvalidRecord(f"{reason}: {record.source_url[:100]!r}", OUTCOME_INVALID_URL)

        if self._probe is not None and not self._probe.is_reachable(url):
            logger.warning("Dropping unreachable link from %s: %s", record.source_id, url)
            raise InvalidRecord(f"unreachable: {url}", OUTCOME_UNREACHABLE)

        clean = self.sanitize(dataclasses.replace(record, source_url=url))

        with self._lock:
            if not self._storage.is_new(url):
                raise DuplicateRecord(url)
            now = self._clock()
            persisted = PersistedRecord.from_candidate(clean, score(clean, self._heuristics, now=now), now)
            try:
                self._storage.save(persisted)
            except Exception as exc:  # noqa: BLE001
                logger.error("Failed to save %s: %s", url, exc)
                return OUTCOME_STORAGE_ERROR

        logger.info("New bounty [%d] %s (%s)", persisted.score, persisted.title, persisted.origin_source)
        self._broadcaster.publish(persisted)
        return OUTCOME_ACCEPTED

    @staticmethod
    def sanitize(record: CandidateRecord) -> CandidateRecord:
        return dataclasses.replace(
            record,
            title=sanitize_text(record.title),
            description=sanitize_text(record.description),
            payment_amount=sanitize_text(record.payment_amount, SHORT_FIELD_LIMIT),
            payment_currency=sanitize_text(record.payment_currency, SHORT_FIELD_LIMIT),
            origin_source=sanitize_text(record.origin_source, SHORT_FIELD_LIMIT),
        )
