from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Optional, Tuple

PAYMENT_CRYPTO = "crypto"
PAYMENT_P2P = "p2p"
PAYMENT_FIAT = "fiat"
PAYMENT_UNKNOWN = "unknown"

PAYMENT_KINDS = (PAYMENT_CRYPTO, PAYMENT_P2P, PAYMENT_FIAT, PAYMENT_UNKNOWN)


@dataclass(frozen=True)
class CandidateRecord:
    """An opportunity pulled from one source, before the funnel has seen it."""

    source_id: str
    external_id: str
    title: str
    description: str
    source_url: str
    created_at: datetime
    payment_amount: str = ""
    payment_currency: str = ""
    payment_kind: str = PAYMENT_UNKNOWN
    tags: Tuple[str, ...] = ()
    origin_source: str = ""
    expires_at: Optional[datetime] = None

    def __post_init__(self) -> None:
        if self.payment_kind not in PAYMENT_KINDS:
            raise ValueError(f"unknown payment kind: {self.payment_kind}")


@dataclass(frozen=True)
class PersistedRecord:
    """Canonical stored shape; `source_url` is the primary key."""

    source_id: str
    external_id: str
    title: str
    description: str
    source_url: str
    created_at: datetime
    score: int
    persisted_at: datetime
    payment_amount: str = ""
    payment_currency: str = ""
    payment_kind: str = PAYMENT_UNKNOWN
    tags: Tuple[str, ...] = ()
    origin_source: str = ""
    expires_at: Optional[datetime] = None

    @classmethod
    def from_candidate(cls, record: CandidateRecord, score: int, persisted_at: datetime) -> "PersistedRecord":
        return cls(
            source_id=record.source_id,
            external_id=record.external_id,
            title=record.title,
            description=record.description,
            source_url=record.source_url,
            created_at=record.created_at,
            score=score,
            persisted_at=persisted_at,
            payment_amount=record.payment_amount,
            payment_currency=record.payment_currency,
            payment_kind=record.payment_kind,
            tags=tuple(record.tags),
            origin_source=record.origin_source,
            expires_at=record.expires_at,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "source_id": self.source_id,
            "external_id": self.external_id,
            "title": self.title,
            "description": self.description,
            "source_url": self.source_url,
            "created_at": self.created_at.isoformat(),
            "score": self.score,
            "persisted_at": self.persisted_at.isoformat(),
            "payment_amount": self.payment_amount,
            "payment_currency": self.payment_currency,
            "payment_kind": self.payment_kind,
            "tags": list(self.tags),
            "origin_source": self.origin_source,
            "expires_at": self.expires_at.isoformat() if self.expires_at else None,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PersistedRecord":
        expires_at = data.get("expires_at")
        return cls(
            source_id=data.get("source_id", ""),
            external_id=data.get("external_id", ""),
            title=data.get("title", ""),
            description=data.get("description", ""),
            source_url=data["source_url"],
            created_at=datetime.fromisoformat(data["created_at"]),
            score=int(data.get("score", 0)),
            persisted_at=datetime.fromisoformat(data["persisted_at"]),
            payment_amount=data.get("payment_amount", ""),
            payment_currency=data.get("payment_currency", ""),
            payment_kind=data.get("payment_kind", PAYMENT_UNKNOWN),
            tags=tuple(data.get("tags") or ()),
            origin_source=data.get("origin_source", ""),
            expires_at=datetime.fromisoformat(expires_at) if expires_at else None,
        )


@dataclass
class RateLimitState:
    """Mutable pacing state for one source instance.

    `remaining` is None until the server has reported a quota."""

    min_interval: float
    remaining: Optional[int] = None
    reset_at: float = 0.0
    last_request_at: float = 0.0
    request_count: int = 0


@dataclass(frozen=True)
class PageItem:
    """One validated entry of a source page, in a source-neutral shape."""

    title: str
    url: str
    created_at: Optional[datetime]
    body: str = ""
    labels: Tuple[str, ...] = ()
    raw: Dict[str, Any] = field(default_factory=dict, compare=False)


@dataclass(frozen=True)
class ValidatedResponse:
    items: Tuple[PageItem, ...] = ()

    def __len__(self) -> int:
        return len(self.items)
