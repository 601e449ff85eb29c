from __future__ import annotations

import time
from collections import Counter, deque
from dataclasses import dataclass, field
from threading import Lock
from typing import Deque, Dict, List, Optional, Tuple

OUTCOME_ACCEPTED = "accepted"
OUTCOME_DUPLICATE = "duplicate"
OUTCOME_INVALID_URL = "invalid_url"
OUTCOME_UNREACHABLE = "unreachable"
OUTCOME_STORAGE_ERROR = "storage_error"

OUTCOMES = (
    OUTCOME_ACCEPTED,
    OUTCOME_DUPLICATE,
    OUTCOME_INVALID_URL,
    OUTCOME_UNREACHABLE,
    OUTCOME_STORAGE_ERROR,
)


@dataclass(frozen=True)
class FunnelSnapshot:
    """Aggregated funnel outcomes over a time window."""

    window_secs: int
    total: int
    by_outcome: Dict[str, int] = field(default_factory=dict)
    by_source: Dict[str, int] = field(default_factory=dict)
    timestamp: float = 0.0

    def count(self, outcome: str) -> int:
        return self.by_outcome.get(outcome, 0)

    def summary(self) -> str:
        parts = [f"{outcome}={self.count(outcome)}" for outcome in OUTCOMES]
        return f"processed={self.total} " + " ".join(parts)


class MetricsCollector:
    """Thread-safe collector for funnel outcomes.

    Keeps the last `maxlen` events for windowed snapshots plus running totals
    that never expire."""

    def __init__(self, maxlen: int = 10000) -> None:
        self._lock = Lock()
        self._events: Deque[Tuple[float, str, str]] = deque(maxlen=maxlen)
        self._totals: Counter = Counter()

    def record_outcome(self, source_id: str, outcome: str) -> None:
        with self._lock:
            self._events.append((time.time(), source_id, outcome))
            self._totals[outcome] += 1

    def totals(self) -> Dict[str, int]:
        with self._lock:
            return dict(self._totals)

    def snapshot(self, window_secs: Optional[int] = None) -> FunnelSnapshot:
        """Return outcome counts for the last window_secs seconds (all retained events when None)."""
        now = time.time()
        cutoff = now - window_secs if window_secs is not None else float("-inf")
        with self._lock:
            events: List[Tuple[str, str]] = [(src, out) for ts, src, out in self._events if ts >= cutoff]

        by_outcome = Counter(out for _, out in events)
        accepted_by_source = Counter(src for src, out in events if out == OUTCOME_ACCEPTED)
        return FunnelSnapshot(
            window_secs=window_secs or 0,
            total=len(events),
            by_outcome=dict(by_outcome),
            by_source=dict(accepted_by_source),
            timestamp=now,
        )
