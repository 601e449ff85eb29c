"""Fail-closed validation of source pages.

Every item of a page must pass, or the whole page is rejected: callers treat
the page as empty and stop paginating that query for the cycle.
`strict=False` switches to dropping bad items one by one
and must be requested explicitly.
"""
from __future__ import annotations

import json
import logging
import re
from datetime import datetime
from typing import Any, List, Mapping, Optional, Sequence
from urllib.parse import urlsplit

from .errors import MalformedResponse, UnsafeContent
from .models import PageItem, ValidatedResponse

logger = logging.getLogger(__name__)

MAX_TITLE_LENGTH = 500
MAX_TEXT_LENGTH = 1000

INJECTION_RE = re.compile(
    r"<script[^>]*>|</script>|javascript:|onerror\s*=|onclick\s*=|onload\s*=",
    re.IGNORECASE,
)

_RFC3339_RE = re.compile(
    r"^\d{4}-\d{2}-\d{2}[Tt]\d{2}:\d{2}:\d{2}(\.\d+)?([Zz]|[+-]\d{2}:\d{2})$"
)

_FRACTION_RE = re.compile(r"\.(\d+)(?=[+-]\d{2}:\d{2}$)")

_CONTROL_RE = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]")


def contains_injection(text: Optional[str]) -> bool:
    return bool(text) and INJECTION_RE.search(text) is not None


def parse_rfc3339(value: Any) -> Optional[datetime]:
    """Parse a strict RFC 3339 timestamp; returns None when it is not one."""
    if not isinstance(value, str):
        return None
    value = value.strip()
    if not _RFC3339_RE.match(value):
        return None
    normalized = value.replace("t", "T")
    if normalized[-1] in "Zz":
        normalized = normalized[:-1] + "+00:00"
    # fromisoformat before 3.11 only takes 3 or 6 fractional digits
    normalized = _FRACTION_RE.sub(lambda m: "." + m.group(1)[:6].ljust(6, "0"), normalized)
    try:
        return datetime.fromisoformat(normalized)
    except ValueError:
        return None


def is_absolute_url(value: Any) -> bool:
    if not isinstance(value, str) or not value.strip():
        return False
    try:
        parts = urlsplit(value.strip())
    except ValueError:
        return False
    return bool(parts.scheme) and bool(parts.netloc)


def check_item(item: Mapping[str, Any], require_timestamp: bool = True) -> PageItem:
    """Validate one raw item and convert it to a PageItem.

    Expects the keys `title`, `url`, `created_at`, `body` and optionally
    `labels` (a list of strings). Raises UnsafeContent or MalformedResponse."""
    title = item.get("title")
    if not isinstance(title, str) or not title.strip():
        raise MalformedResponse("title cannot be empty")
    if len(title) > MAX_TITLE_LENGTH:
        raise MalformedResponse(f"title too long (max {MAX_TITLE_LENGTH} characters)")

    url = item.get("url")
    if not isinstance(url, str) or not url.strip():
        raise MalformedResponse("url cannot be empty")
    if not is_absolute_url(url):
        raise MalformedResponse(f"invalid url format: {url[:100]!r}")

    created_at = None
    raw_created = item.get("created_at")
    if require_timestamp or raw_created:
        created_at = parse_rfc3339(raw_created)
        if created_at is None:
            raise MalformedResponse("invalid created_at format (expected RFC3339)")

    body = item.get("body") or ""
    if not isinstance(body, str):
        raise MalformedResponse("body must be a string")

    if contains_injection(title) or contains_injection(body):
        raise UnsafeContent("potential XSS content detected")

    labels = tuple(str(label) for label in (item.get("labels") or ()) if label)
    return PageItem(
        title=title,
        url=url.strip(),
        created_at=created_at,
        body=body,
        labels=labels,
        raw=dict(item.get("raw") or {}),
    )


def validate_items(
    items: Sequence[Mapping[str, Any]],
    require_timestamp: bool = True,
    strict: bool = True,
) -> ValidatedResponse:
    """Validate a whole page. One bad item fails the batch unless strict is off."""
    validated: List[PageItem] = []
    dropped = 0
    for index, item in enumerate(items):
        if not isinstance(item, Mapping):
            error: Exception = MalformedResponse(f"invalid item at index {index}: not an object")
        else:
            try:
                validated.append(check_item(item, require_timestamp=require_timestamp))
                continue
            except MalformedResponse as exc:
                error = type(exc)(f"invalid item at index {index}: {exc}")
        if strict:
            raise error
        dropped += 1
        logger.warning("Dropping %s", error)

    if dropped:
        logger.warning("Lenient validation dropped %d of %d items", dropped, len(items))
    return ValidatedResponse(items=tuple(validated))


def decode_json(raw: bytes) -> Any:
    if not raw:
        raise MalformedResponse("empty response body")
    try:
        return json.loads(raw)
    except (ValueError, UnicodeDecodeError) as exc:
        raise MalformedResponse(f"invalid JSON format: {exc}") from exc


def validate_response(raw: bytes, strict: bool = True) -> ValidatedResponse:
    """Validate a GitHub search page: `{items: [{title, html_url, created_at, body, labels}]}`."""
    payload = decode_json(raw)
    if not isinstance(payload, dict):
        raise MalformedResponse("expected a JSON object")
    items = payload.get("items") or []
    if not isinstance(items, list):
        raise MalformedResponse("items must be a list")

    mapped = []
    for item in items:
        if not isinstance(item, dict):
            mapped.append(item)
            continue
        mapped.append(
            {
                "title": item.get("title"),
                "url": item.get("html_url"),
                "created_at": item.get("created_at"),
                "body": item.get("body") or "",
                "labels": _label_names(item.get("labels")),
                "raw": item,
            }
        )
    return validate_items(mapped, require_timestamp=True, strict=strict)


def _label_names(labels: Any) -> List[str]:
    names = []
    for label in labels or ():
        if isinstance(label, dict):
            name = label.get("name")
        else:
            name = label
        if isinstance(name, str) and name:
            names.append(name)
    return names


def sanitize_text(value: Optional[str], limit: int = MAX_TEXT_LENGTH) -> str:
    """Strip control characters, collapse to one line, bound the length."""
    if not value:
        return ""
    text = value.replace("\r\n", " ").replace("\n", " ").replace("\r", " ").replace("\t", " ")
    text = _CONTROL_RE.sub("", text)
    if len(text) > limit:
        text = text[:limit] + "..."
    return text


def snippet(raw: bytes, limit: int = 200) -> str:
    text = raw.decode("utf-8", errors="replace").strip() if raw else ""
    if len(text) > limit:
        text = text[:limit] + "..."
    return sanitize_text(text)
