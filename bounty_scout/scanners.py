from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Sequence, Tuple

from .base import BaseScanner
from .errors import MalformedResponse
from .inference import derive_tags, infer_payment
from .models import PAYMENT_CRYPTO, PAYMENT_UNKNOWN, CandidateRecord, PageItem
from .validation import decode_json, parse_rfc3339, validate_items, validate_response

logger = logging.getLogger(__name__)

DEFAULT_GITHUB_LABELS = ("algora-bounty", "polar", "opire", "gitpay", "issuehunt", "bounty", "funded")

SUPERTEAM_LISTING_URL = "https://earn.superteam.fun/listings/bounty/"
BOUNTYCASTER_SITE = "https://www.bountycaster.xyz"

# Sources that do not expose a creation time get an age past every recency bonus.
UNKNOWN_AGE = timedelta(hours=48)


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _dedupe(items: Sequence[str]) -> List[str]:
    seen = set()
    out = []
    for item in items:
        if item and item not in seen:
            seen.add(item)
            out.append(item)
    return out


def format_amount(value: float) -> str:
    """Render a reward without trailing zeros: 500.0 -> '500', 12.50 -> '12.5'."""
    formatted = f"{value:.2f}".rstrip("0").rstrip(".")
    return formatted or "0"


class GitHubScanner(BaseScanner):
    """Searches GitHub issues carrying bounty labels.

    One query per label:
        is:issue is:open label:<LABEL> sort:created-desc
    paginated with `page`/`per_page` (max 100)."""

    source_id = "github"
    display_name = "GitHub Aggregator"

    def __init__(
        self,
        *args: Any,
        token: str = "",
        base_url: str = "https://api.github.com",
        labels: Optional[Sequence[str]] = None,
        **kwargs: Any,
    ) -> None:
        kwargs["per_page"] = min(max(kwargs.get("per_page", 100), 1), 100)
        super().__init__(*args, **kwargs)
        self._token = token
        self._base_url = (base_url or "https://api.github.com").rstrip("/")
        self._labels = tuple(labels or DEFAULT_GITHUB_LABELS)

    @property
    def authenticated(self) -> bool:
        return bool(self._token)

    def queries(self) -> Sequence[str]:
        return self._labels

    def build_request(self, query: str, page: int) -> Tuple[str, Dict[str, Any]]:
        params = {
            "q": f"is:issue is:open label:{query} sort:created-desc",
            "per_page": self._per_page,
            "page": page,
        }
        return f"{self._base_url}/search/issues", params

    def request_headers(self) -> Dict[str, str]:
        headers = {
            "Accept": "application/vnd.github.v3+json",
            "User-Agent": "bounty-scout/1.0",
        }
        if self._token:
            headers["Authorization"] = f"token {self._token}"
        return headers

    def parse_page(self, query: str, page: int, raw: bytes) -> Tuple[int, List[CandidateRecord]]:
        validated = validate_response(raw, strict=self._strict)
        records = [self._to_record(query, item) for item in validated.items]
        return len(validated), records

    def _to_record(self, label: str, item: PageItem) -> CandidateRecord:
        payment = infer_payment(item.labels, item.body)
        tags = derive_tags(item.title, labels=item.labels, heuristics=self._heuristics)
        return CandidateRecord(
            source_id=self.source_id,
            external_id=item.url,
            title=item.title,
            description=item.body,
            source_url=item.url,
            created_at=item.created_at or _now(),
            payment_amount=payment.amount,
            payment_currency=payment.currency,
            payment_kind=payment.kind,
            tags=tuple(tags),
            origin_source=f"GITHUB/{label.upper()}",
        )


def normalize_superteam_status(status: str) -> str:
    normalized = (status or "").strip().lower()
    if normalized in ("active", "funded"):
        return "open"
    if normalized == "in-progress":
        return "review"
    return normalized


def normalize_bountycaster_status(status: str) -> str:
    normalized = (status or "").strip().lower()
    if normalized in ("active", "funded"):
        return "open"
    if normalized == "inprogress":
        return "in-progress"
    return normalized


class SuperteamScanner(BaseScanner):
    """Superteam Earn listings (Solana ecosystem), one query per status."""

    source_id = "superteam"
    display_name = "Superteam Earn"

    def __init__(
        self,
        *args: Any,
        base_url: str = "https://earn.superteam.fun/api/listings",
        statuses: Optional[Sequence[str]] = None,
        emit_fallback_samples: bool = False,
        **kwargs: Any,
    ) -> None:
        super().__init__(*args, **kwargs)
        self._base_url = (base_url or "https://earn.superteam.fun/api/listings").rstrip("/")
        self._statuses = tuple(_dedupe([normalize_superteam_status(s) for s in statuses or ()])) or ("open",)
        self._emit_fallback = emit_fallback_samples

    def queries(self) -> Sequence[str]:
        return self._statuses

    def build_request(self, query: str, page: int) -> Tuple[str, Dict[str, Any]]:
        params: Dict[str, Any] = {"type": "bounties", "take": self._per_page, "skip": (page - 1) * self._per_page}
        if query:
            params["status"] = query
        return self._base_url, params

    def parse_page(self, query: str, page: int, raw: bytes) -> Tuple[int, List[CandidateRecord]]:
        payload = decode_json(raw)
        if isinstance(payload, dict):
            payload = payload.get("bounties") or payload.get("listings") or []
        if not isinstance(payload, list):
            raise MalformedResponse("expected a list of listings")

        listings = []
        for listing in payload:
            if not isinstance(listing, dict):
                raise MalformedResponse("listing is not an object")
            if str(listing.get("type") or "").strip().lower() != "bounty":
                continue
            slug = str(listing.get("slug") or "").strip()
            listings.append(
                {
                    "title": listing.get("title"),
                    "url": SUPERTEAM_LISTING_URL + slug if slug else "",
                    "created_at": None,
                    "body": listing.get("description") or "",
                    "raw": listing,
                }
            )

        validated = validate_items(listings, require_timestamp=False, strict=self._strict)
        created_at = _now() - UNKNOWN_AGE
        records = [self._to_record(query, item, created_at) for item in validated.items]
        return len(payload), records

    def _to_record(self, status: str, item: PageItem, created_at: datetime) -> CandidateRecord:
        listing = item.raw
        token = str(listing.get("token") or "").strip().upper()
        source_tags = ["solana", "web3"]
        if status:
            source_tags.append(status)
        return CandidateRecord(
            source_id=self.source_id,
            external_id=str(listing.get("id") or item.url),
            title=item.title,
            description=item.body or item.title,
            source_url=item.url,
            created_at=created_at,
            expires_at=parse_rfc3339(listing.get("deadline")),
            payment_amount=_superteam_reward(listing),
            payment_currency=token,
            payment_kind=PAYMENT_CRYPTO,
            tags=tuple(derive_tags(item.title, source_tags=source_tags, heuristics=self._heuristics)),
            origin_source="SUPERTEAM",
        )

    def fallback_records(self, query: str) -> List[CandidateRecord]:
        if not self._emit_fallback:
            return []
        status = query or "active"
        now = _now()
        samples = (
            ("st-1", "ERA Wallet Comparison Bounty", "500", "era-wallet-comparison-bounty",
             timedelta(hours=1), "Compare ERA wallet with other Solana wallets.", ("wallet", "research")),
            ("st-2", "Marketing Growth Lead", "2000", "marketing-growth-lead-launchpadtrade",
             timedelta(hours=5), "Lead marketing growth for LaunchpadTrade.", ("marketing",)),
        )
        logger.warning("%s: emitting %d illustrative samples for %s", self.name, len(samples), status)
        return [
            CandidateRecord(
                source_id=self.source_id,
                external_id=f"{sample_id}-{status}",
                title=title,
                description=description,
                source_url=f"{SUPERTEAM_LISTING_URL}{slug}?status={status}",
                created_at=now - age,
                payment_amount=amount,
                payment_currency="USDC",
                payment_kind=PAYMENT_CRYPTO,
                tags=("solana",) + extra_tags + (status,),
                origin_source="SUPERTEAM",
            )
            for sample_id, title, amount, slug, age, description, extra_tags in samples
        ]


def _superteam_reward(listing: Dict[str, Any]) -> str:
    reward_amount = listing.get("rewardAmount")
    if isinstance(reward_amount, (int, float)):
        return format_amount(float(reward_amount))

    low = listing.get("minRewardAsk")
    high = listing.get("maxRewardAsk")
    low_text = format_amount(float(low)) if isinstance(low, (int, float)) else ""
    high_text = format_amount(float(high)) if isinstance(high, (int, float)) else ""
    if low_text and high_text:
        return f"{low_text}-{high_text}"
    if low_text or high_text:
        return low_text or high_text
    return "Variable"


class BountycasterScanner(BaseScanner):
    """Bountycaster (Farcaster) bounties, one query per status."""

    source_id = "bountycaster"
    display_name = "Bountycaster"

    def __init__(
        self,
        *args: Any,
        base_url: str = "https://www.bountycaster.xyz/api/v1/bounties",
        statuses: Optional[Sequence[str]] = None,
        emit_fallback_samples: bool = False,
        **kwargs: Any,
    ) -> None:
        super().__init__(*args, **kwargs)
        self._base_url = (base_url or "https://www.bountycaster.xyz/api/v1/bounties").rstrip("/")
        self._statuses = tuple(_dedupe([normalize_bountycaster_status(s) for s in statuses or ()])) or ("open",)
        self._emit_fallback = emit_fallback_samples

    def queries(self) -> Sequence[str]:
        return self._statuses

    def build_request(self, query: str, page: int) -> Tuple[str, Dict[str, Any]]:
        return f"{self._base_url}/{query}", {"page": page}

    def parse_page(self, query: str, page: int, raw: bytes) -> Tuple[int, List[CandidateRecord]]:
        payload = decode_json(raw)
        if not isinstance(payload, dict):
            raise MalformedResponse("expected a JSON object")
        bounties = payload.get("bounties") or []
        if not isinstance(bounties, list):
            raise MalformedResponse("bounties must be a list")

        items = []
        for bounty in bounties:
            if not isinstance(bounty, dict):
                raise MalformedResponse("bounty is not an object")
            items.append(
                {
                    "title": bounty.get("title"),
                    "url": _bountycaster_url(bounty),
                    "created_at": bounty.get("created_at"),
                    "body": bounty.get("summary_text") or "",
                    "labels": [slug for slug in bounty.get("tag_slugs") or () if isinstance(slug, str)],
                    "raw": bounty,
                }
            )

        validated = validate_items(items, require_timestamp=False, strict=self._strict)
        records = [self._to_record(query, item) for item in validated.items]
        return len(bounties), records

    def _to_record(self, status: str, item: PageItem) -> CandidateRecord:
        bounty = item.raw
        reward = bounty.get("reward_summary") or {}
        amount = str(reward.get("unit_amount") or "").strip() or str(reward.get("usd_value") or "").strip()
        currency = str(reward.get("symbol") or "").strip()
        if not currency and isinstance(reward.get("token"), dict):
            currency = str(reward["token"].get("symbol") or "").strip()

        source_tags = ["farcaster", "social"]
        if status:
            source_tags.append(status)
        source_tags.extend(label.strip() for label in item.labels if label.strip())

        return CandidateRecord(
            source_id=self.source_id,
            external_id=str(bounty.get("uid") or item.url),
            title=item.title,
            description=item.body,
            source_url=item.url,
            created_at=item.created_at or _now() - UNKNOWN_AGE,
            expires_at=parse_rfc3339(bounty.get("expiration_date")),
            payment_amount=amount,
            payment_currency=currency.upper(),
            payment_kind=PAYMENT_CRYPTO if currency else PAYMENT_UNKNOWN,
            tags=tuple(derive_tags(item.title, labels=item.labels, source_tags=source_tags, heuristics=self._heuristics)),
            origin_source="BOUNTYCASTER",
        )

    def fallback_records(self, query: str) -> List[CandidateRecord]:
        if not self._emit_fallback:
            return []
        status = query or "active"
        now = _now()
        samples = (
            ("bc-1", "Dune Dashboard for Seamless Protocol", "15000", "0x11ce0fa8",
             timedelta(minutes=30), "Create a Dune dashboard for Seamless Protocol metrics.", ("dune", "data")),
            ("bc-2", "Restaurant recommendations in NYC", "50", "0x22df1gb9",
             timedelta(hours=2), "Looking for the best pizza spots in Brooklyn.", ("nyc", "pizza")),
        )
        logger.warning("%s: emitting %d illustrative samples for %s", self.name, len(samples), status)
        return [
            CandidateRecord(
                source_id=self.source_id,
                external_id=f"{sample_id}-{status}",
                title=title,
                description=description,
                source_url=f"{BOUNTYCASTER_SITE}/bounty/{bounty_hash}?status={status}",
                created_at=now - age,
                payment_amount=amount,
                payment_currency="USDC",
                payment_kind=PAYMENT_CRYPTO,
                tags=("farcaster",) + extra_tags + (status,),
                origin_source="BOUNTYCASTER",
            )
            for sample_id, title, amount, bounty_hash, age, description, extra_tags in samples
        ]


def _bountycaster_url(bounty: Dict[str, Any]) -> str:
    links = bounty.get("links") or {}
    platform = bounty.get("platform") or {}
    resource = str(links.get("resource") or "").strip()
    if resource:
        return BOUNTYCASTER_SITE + resource
    external = str(links.get("external") or "").strip()
    if external:
        return external
    platform_hash = str(platform.get("hash") or "").strip()
    if platform_hash:
        return f"{BOUNTYCASTER_SITE}/bounty/{platform_hash}"
    return ""
