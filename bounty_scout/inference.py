"""Payment and tag heuristics shared by the source adapters.

Ordering matters and is kept reproducible:
- structured fields (labels, token fields) are trusted first
- the free-text body is scanned only when no structured crypto hint exists
- otherwise a neutral default is used
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterable, List, Sequence

from .config import DEFAULT_HEURISTICS, Heuristics
from .models import PAYMENT_CRYPTO, PAYMENT_FIAT, PAYMENT_P2P

CRYPTO_TOKEN_RE = re.compile(r"\b(usdc|usdt|eth|sol)\b", re.IGNORECASE)
PAYPAL_RE = re.compile(r"paypal", re.IGNORECASE)
CASHAPP_RE = re.compile(r"cash\s?app", re.IGNORECASE)

DEV_TAG_WORDS = ("fix", "bug")
AUTOMATION_TAG_WORDS = ("script", "bot")

BASE_TAG = "active"


@dataclass(frozen=True)
class PaymentInfo:
    amount: str
    currency: str
    kind: str


def infer_payment(
    labels: Sequence[str],
    body: str = "",
    default_amount: str = "Funded",
    default_currency: str = "USD",
    default_kind: str = PAYMENT_FIAT,
) -> PaymentInfo:
    """Infer amount, currency and payment kind from labels first, then body text."""
    amount = default_amount
    currency = default_currency
    kind = default_kind

    for label in labels:
        if "$" in label:
            amount = label
            currency = "USD"
            kind = PAYMENT_FIAT
        match = CRYPTO_TOKEN_RE.search(label)
        if match:
            amount = label
            currency = match.group(1).upper()
            kind = PAYMENT_CRYPTO

    if kind == PAYMENT_CRYPTO:
        return PaymentInfo(amount, currency, kind)

    text = body or ""
    match = CRYPTO_TOKEN_RE.search(text)
    if match:
        return PaymentInfo(amount, match.group(1).upper(), PAYMENT_CRYPTO)
    if PAYPAL_RE.search(text):
        return PaymentInfo(amount, "PAYPAL", PAYMENT_FIAT)
    if CASHAPP_RE.search(text):
        return PaymentInfo(amount, "CASHAPP", PAYMENT_P2P)
    return PaymentInfo(amount, currency, kind)


def _contains_any(text: str, words: Iterable[str]) -> bool:
    return any(word and word.lower() in text for word in words)


def derive_tags(
    title: str,
    labels: Sequence[str] = (),
    source_tags: Sequence[str] = (),
    heuristics: Heuristics = DEFAULT_HEURISTICS,
) -> List[str]:
    """Build the ordered tag list: base tag, source tags, then title-derived tags."""
    tags = [BASE_TAG]
    tags.extend(tag for tag in source_tags if tag)

    lowered = (title or "").lower()
    if _contains_any(lowered, heuristics.urgency_keywords):
        tags.append("urgent")
    if _contains_any(lowered, DEV_TAG_WORDS):
        tags.append("dev")
    if _contains_any(lowered, AUTOMATION_TAG_WORDS):
        tags.append("automation")
    if any("funded" in label.lower() for label in labels):
        tags.append("funded")
    return tags
