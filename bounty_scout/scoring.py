"""Deterministic priority scoring.

The score is a plain sum of independent bonuses, so the order in which the
rules run never changes the result and no rule caps another.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from enum import IntEnum
from typing import Iterable, Optional, Tuple, Union

from .config import DEFAULT_HEURISTICS, Heuristics
from .models import CandidateRecord, PersistedRecord

Scorable = Union[CandidateRecord, PersistedRecord]


class PaymentTier(IntEnum):
    CRYPTO = 0
    P2P = 1
    FIAT = 2
    LOW = 3


TIER_POINTS = {
    PaymentTier.CRYPTO: 50,
    PaymentTier.P2P: 45,
    PaymentTier.FIAT: 25,
    PaymentTier.LOW: 5,
}

URGENCY_POINTS = 30
DEV_TASK_POINTS = 15
AUTOMATION_POINTS = 20
SECURITY_POINTS = 25
AUDIT_POINTS = 35

RECENCY_STEPS: Tuple[Tuple[timedelta, int], ...] = (
    (timedelta(hours=1), 40),
    (timedelta(hours=6), 25),
    (timedelta(hours=24), 10),
)

PLATFORM_BONUSES: Tuple[Tuple[Tuple[str, ...], int], ...] = (
    (("SUPERTEAM",), 15),
    (("BOUNTYCASTER",), 10),
    (("IMMUNEFI", "HACKEN"), 30),
)

TAG_BONUSES: Tuple[Tuple[str, int], ...] = (
    ("URGENT", 20),
    ("HOT", 15),
    ("DEADLINE", 10),
)


def contains_currency(value: str, tokens: Iterable[str]) -> bool:
    """Case-insensitive substring match, also tried with spaces removed."""
    upper = (value or "").upper()
    compact = upper.replace(" ", "")
    for token in tokens:
        if not token:
            continue
        target = token.upper()
        if target in upper or target.replace(" ", "") in compact:
            return True
    return False


def payment_tier(currency: str, heuristics: Heuristics = DEFAULT_HEURISTICS) -> PaymentTier:
    if contains_currency(currency, heuristics.crypto_currencies):
        return PaymentTier.CRYPTO
    if contains_currency(currency, heuristics.p2p_methods):
        return PaymentTier.P2P
    if contains_currency(currency, heuristics.fiat_methods):
        return PaymentTier.FIAT
    return PaymentTier.LOW


def _contains_any(text: str, keywords: Iterable[str]) -> bool:
    return any(keyword and keyword in text for keyword in keywords)


def keyword_points(title: str, heuristics: Heuristics = DEFAULT_HEURISTICS) -> int:
    upper = (title or "").upper()
    points = 0
    if _contains_any(upper, heuristics.urgency_keywords):
        points += URGENCY_POINTS
    if _contains_any(upper, heuristics.dev_task_keywords):
        points += DEV_TASK_POINTS
    if _contains_any(upper, heuristics.automation_keywords):
        points += AUTOMATION_POINTS
    if _contains_any(upper, heuristics.security_keywords):
        points += SECURITY_POINTS
    if _contains_any(upper, heuristics.audit_keywords):
        points += AUDIT_POINTS
    return points


def recency_points(created_at: datetime, now: Optional[datetime] = None) -> int:
    now = now or datetime.now(timezone.utc)
    if created_at.tzinfo is None:
        created_at = created_at.replace(tzinfo=timezone.utc)
    age = now - created_at
    for limit, points in RECENCY_STEPS:
        if age < limit:
            return points
    return 0


def platform_points(origin: str) -> int:
    upper = (origin or "").upper()
    return sum(points for names, points in PLATFORM_BONUSES if any(name in upper for name in names))


def tag_points(tags: Iterable[str]) -> int:
    total = 0
    for tag in tags:
        upper = tag.upper()
        total += sum(points for name, points in TAG_BONUSES if name in upper)
    return total


def score(record: Scorable, heuristics: Heuristics = DEFAULT_HEURISTICS, now: Optional[datetime] = None) -> int:
    """Compute the priority of a record. Higher is more worth chasing."""
    return (
        TIER_POINTS[payment_tier(record.payment_currency, heuristics)]
        + keyword_points(record.title, heuristics)
        + recency_points(record.created_at, now)
        + platform_points(record.origin_source)
        + tag_points(record.tags)
    )
