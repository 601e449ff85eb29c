"""URL canonicalization, safety checks and reachability probing for the funnel."""

from __future__ import annotations

import ipaddress
import logging
import re
from typing import Any, Optional
from urllib.parse import urlsplit

import requests

logger = logging.getLogger(__name__)

TRAILING_PUNCTUATION = ".,;!?)\"'"
BLOCKED_HOSTNAMES = ("localhost", "localhost.localdomain")
REACHABLE_CLIENT_CODES = (401, 403, 405, 429)
RANGE_NOT_SATISFIABLE = 416

_CONTROL_RE = re.compile(r"[\x00-\x1f\x7f]")


def canonicalize_url(url: Optional[str]) -> str:
    """Normalize a URL into the primary key used for dedup.

    Drops control characters, keeps only the first whitespace-delimited
    token and strips trailing punctuation picked up from free text."""
    if not url:
        return ""
    text = url.strip()
    if not text:
        return ""
    text = _CONTROL_RE.sub("", text)
    tokens = text.split()
    if not tokens:
        return ""
    return tokens[0].rstrip(TRAILING_PUNCTUATION)


def unsafe_reason(url: str, allow_local: bool = False) -> Optional[str]:
    """Return why a URL must not be stored or fetched, or None when it is fine."""
    if not url:
        return "empty_url"
    try:
        parts = urlsplit(url)
        hostname = parts.hostname
    except ValueError:
        return "invalid_url"
    if parts.scheme not in ("http", "https"):
        return "bad_scheme"
    host = (hostname or "").strip().lower()
    if not host:
        return "missing_host"
    if allow_local:
        return None
    if host in BLOCKED_HOSTNAMES:
        return "blocked_host"
    try:
        ip = ipaddress.ip_address(host)
    except ValueError:
        return None
    if ip.is_loopback or ip.is_link_local or ip.is_unspecified:
        return "blocked_local_ip"
    return None


def is_safe_url(url: str, allow_local: bool = False) -> bool:
    return unsafe_reason(url, allow_local=allow_local) is None


def _status_reachable(code: int) -> bool:
    return 200 <= code < 400 or code in REACHABLE_CLIENT_CODES


class ReachabilityProbe:
    """Checks that a URL answers with an acceptable status.

    Sends HEAD first; when HEAD errors out or is answered with 405 it falls
    back to a one-byte ranged GET."""

    def __init__(self, timeout: float = 5.0, session: Optional[Any] = None, allow_local: bool = False) -> None:
        self._timeout = timeout if timeout > 0 else 5.0
        self._session = session or requests.Session()
        self._allow_local = allow_local

    def is_reachable(self, url: str) -> bool:
        if not is_safe_url(url, allow_local=self._allow_local):
            return False

        try:
            response = self._session.head(url, timeout=self._timeout, allow_redirects=True)
            code = response.status_code
            if code != 405 and _status_reachable(code):
                return True
            if code != 405:
                return False
        except requests.RequestException as exc:
            logger.debug("HEAD %s failed: %s", url, exc)

        try:
            response = self._session.get(
                url,
                headers={"Range": "bytes=0-0"},
                timeout=self._timeout,
                allow_redirects=True,
                stream=True,
            )
        except requests.RequestException as exc:
            logger.debug("Ranged GET %s failed: %s", url, exc)
            return False
        try:
            code = response.status_code
        finally:
            response.close()
        return _status_reachable(code) or code == RANGE_NOT_SATISFIABLE
