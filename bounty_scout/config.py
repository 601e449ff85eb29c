"""Immutable runtime configuration.

`Settings` is built once at startup by `load_settings()` and handed by
reference to the scanners, the funnel and the scoring engine. Nothing in the
pipeline mutates it; tests build their own instances with `Settings()` or
`dataclasses.replace`.

Precedence: built-in defaults, then the YAML file, then environment
variables. Keys use the upper-case names below in both the file and the
environment.
"""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Dict, Iterable, Mapping, Optional, Tuple

import yaml

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = "config/config.yaml"

DISABLE_SLEEP_ENV = "BOUNTY_SCOUT_DISABLE_RATE_LIMIT_SLEEP"

KNOWN_CRYPTO = ("USDC", "USDT", "SOL", "ETH", "BTC", "MATIC", "AVAX", "ARB", "OP")
KNOWN_P2P = ("CASHAPP", "VENMO", "CASH APP")


def normalize_upper(items: Iterable[str]) -> Tuple[str, ...]:
    """Upper-case, trim and dedupe while preserving first-seen order."""
    seen = set()
    out = []
    for item in items:
        value = str(item).strip().upper()
        if not value or value in seen:
            continue
        seen.add(value)
        out.append(value)
    return tuple(out)


def normalize_lower(items: Iterable[str]) -> Tuple[str, ...]:
    seen = set()
    out = []
    for item in items:
        value = str(item).strip().lower()
        if not value or value in seen:
            continue
        seen.add(value)
        out.append(value)
    return tuple(out)


def _coalesce(items: Optional[Iterable[str]], fallback: Tuple[str, ...]) -> Tuple[str, ...]:
    items = tuple(items or ())
    return items if items else fallback


def _remove_overlap(base: Tuple[str, ...], deny: Tuple[str, ...]) -> Tuple[str, ...]:
    blocked = set(deny)
    return tuple(item for item in base if item not in blocked)


@dataclass(frozen=True)
class Heuristics:
    """Keyword and payment-tier lists shared by the scoring engine and adapters.

    Construct through `Heuristics.build()` so overrides are normalized and the
    overlapping lists stay disjoint."""

    urgency_keywords: Tuple[str, ...] = ("URGENT", "ASAP", "CRITICAL", "IMMEDIATE", "EMERGENCY")
    dev_task_keywords: Tuple[str, ...] = ("FIX", "BUG", "API", "INTEGRATION", "SMART CONTRACT", "BLOCKCHAIN")
    automation_keywords: Tuple[str, ...] = ("SCRIPT", "BOT")
    security_keywords: Tuple[str, ...] = ("SECURITY", "VULNERABILITY", "PENTEST", "HACK", "EXPLOIT")
    audit_keywords: Tuple[str, ...] = ("AUDIT",)
    crypto_currencies: Tuple[str, ...] = KNOWN_CRYPTO
    p2p_methods: Tuple[str, ...] = KNOWN_P2P
    fiat_methods: Tuple[str, ...] = ("USD", "PAYPAL", "STRIPE", "WISE")

    @classmethod
    def build(
        cls,
        urgency_keywords: Optional[Iterable[str]] = None,
        dev_task_keywords: Optional[Iterable[str]] = None,
        automation_keywords: Optional[Iterable[str]] = None,
        security_keywords: Optional[Iterable[str]] = None,
        audit_keywords: Optional[Iterable[str]] = None,
        crypto_currencies: Optional[Iterable[str]] = None,
        p2p_methods: Optional[Iterable[str]] = None,
        fiat_methods: Optional[Iterable[str]] = None,
        payment_preferences: Optional[Iterable[str]] = None,
    ) -> "Heuristics":
        """Apply overrides on top of the defaults.

        An empty or missing override keeps the default list; a non-empty one
        replaces it entirely. When no tier list is given but
        `payment_preferences` is, the tiers are derived from it."""
        defaults = cls()

        crypto = normalize_upper(crypto_currencies or ())
        p2p = normalize_upper(p2p_methods or ())
        fiat = normalize_upper(fiat_methods or ())
        if not (crypto or p2p or fiat) and payment_preferences:
            crypto, p2p, fiat = _derive_tiers(normalize_upper(payment_preferences))

        automation = normalize_upper(_coalesce(automation_keywords, defaults.automation_keywords))
        audit = normalize_upper(_coalesce(audit_keywords, defaults.audit_keywords))
        dev = normalize_upper(_coalesce(dev_task_keywords, defaults.dev_task_keywords))
        security = normalize_upper(_coalesce(security_keywords, defaults.security_keywords))

        return cls(
            urgency_keywords=normalize_upper(_coalesce(urgency_keywords, defaults.urgency_keywords)),
            dev_task_keywords=_remove_overlap(dev, automation),
            automation_keywords=automation,
            security_keywords=_remove_overlap(security, audit),
            audit_keywords=audit,
            crypto_currencies=crypto or defaults.crypto_currencies,
            p2p_methods=p2p or defaults.p2p_methods,
            fiat_methods=fiat or defaults.fiat_methods,
        )


def _derive_tiers(preferences: Tuple[str, ...]) -> Tuple[Tuple[str, ...], Tuple[str, ...], Tuple[str, ...]]:
    crypto, p2p, fiat = [], [], []
    for item in preferences:
        if item in KNOWN_CRYPTO:
            crypto.append(item)
        elif item in KNOWN_P2P:
            p2p.append(item)
        else:
            fiat.append(item)
    return tuple(crypto), tuple(p2p), tuple(fiat)


DEFAULT_HEURISTICS = Heuristics.build()


@dataclass(frozen=True)
class Settings:
    github_token: str = ""
    enabled_scanners: Tuple[str, ...] = ("GITHUB_AGGREGATOR", "SUPERTEAM", "BOUNTYCASTER")
    poll_interval_seconds: int = 60
    min_score: int = 60
    storage_backend: str = "sqlite"
    storage_path: str = "./data/bounties.db"
    log_path: str = "./data/bounty_scout.log"
    log_level: str = "INFO"
    validate_links_http: bool = True
    link_validation_timeout: int = 5
    allow_local_urls: bool = False
    disable_rate_limit_sleep: bool = False
    github_base_url: str = "https://api.github.com"
    github_labels: Tuple[str, ...] = ("algora-bounty", "polar", "opire", "gitpay", "issuehunt", "bounty", "funded")
    github_per_page: int = 100
    github_max_pages: int = 10
    superteam_base_url: str = "https://earn.superteam.fun/api/listings"
    superteam_statuses: Tuple[str, ...] = ("open",)
    superteam_per_page: int = 50
    superteam_max_pages: int = 5
    bountycaster_base_url: str = "https://www.bountycaster.xyz/api/v1/bounties"
    bountycaster_statuses: Tuple[str, ...] = ("open",)
    bountycaster_per_page: int = 50
    bountycaster_max_pages: int = 5
    min_interval_authenticated: float = 2.0
    min_interval_unauthenticated: float = 10.0
    public_min_interval: float = 1.0
    rate_limit_low_watermark: int = 5
    retry_base_seconds: float = 1.0
    max_retries: int = 3
    request_timeout: int = 30
    queue_size: int = 100
    strict_validation: bool = True
    emit_fallback_samples: bool = False
    heuristics: Heuristics = field(default_factory=Heuristics.build)

    @property
    def sleep_disabled(self) -> bool:
        return self.disable_rate_limit_sleep or rate_limit_sleep_disabled()


def rate_limit_sleep_disabled(env: Optional[Mapping[str, str]] = None) -> bool:
    """Global switch that lets the whole pipeline run without wall-clock waits."""
    env = os.environ if env is None else env
    return _parse_bool(env.get(DISABLE_SLEEP_ENV, "")) is True


_HEURISTIC_KEYS = {
    "URGENCY_KEYWORDS": "urgency_keywords",
    "DEV_TASK_KEYWORDS": "dev_task_keywords",
    "AUTOMATION_KEYWORDS": "automation_keywords",
    "SECURITY_KEYWORDS": "security_keywords",
    "AUDIT_KEYWORDS": "audit_keywords",
    "CRYPTO_CURRENCIES": "crypto_currencies",
    "P2P_METHODS": "p2p_methods",
    "FIAT_METHODS": "fiat_methods",
    "PAYMENT_PREFERENCES": "payment_preferences",
}

# Statuses are lower-cased, scanner names upper-cased, labels kept verbatim.
_LOWER_LISTS = {"superteam_statuses", "bountycaster_statuses"}
_UPPER_LISTS = {"enabled_scanners"}


def load_settings(path: Optional[str] = None, env: Optional[Mapping[str, str]] = None) -> Settings:
    """Build Settings from defaults, an optional YAML file and the environment.

    A missing file is not an error; an unreadable or malformed one is, since
    configuration failures at startup are fatal."""
    env = os.environ if env is None else env
    raw: Dict[str, Any] = {}

    config_path = Path(path or DEFAULT_CONFIG_PATH)
    if config_path.exists():
        with open(config_path, "r", encoding="utf-8") as f:
            loaded = yaml.safe_load(f) or {}
        if not isinstance(loaded, dict):
            raise ValueError(f"config file {config_path} must contain a mapping")
        raw.update({str(k).upper(): v for k, v in loaded.items()})
        logger.info("Loaded config from %s", config_path)

    for key in list(_setting_keys()) + list(_HEURISTIC_KEYS) + [DISABLE_SLEEP_ENV]:
        value = env.get(key)
        if value is not None and str(value).strip():
            raw[key] = value

    return _build(raw)


def _setting_keys() -> Iterable[str]:
    for f in fields(Settings):
        if f.name != "heuristics":
            yield f.name.upper()


def _build(raw: Mapping[str, Any]) -> Settings:
    defaults = Settings()
    values: Dict[str, Any] = {}

    for f in fields(Settings):
        if f.name == "heuristics":
            continue
        key = f.name.upper()
        if key not in raw:
            continue
        default = getattr(defaults, f.name)
        parsed = _coerce(raw[key], default)
        if parsed is None:
            logger.warning("Ignoring invalid value for %s", key)
            continue
        values[f.name] = parsed

    if DISABLE_SLEEP_ENV in raw:
        values["disable_rate_limit_sleep"] = bool(_parse_bool(raw[DISABLE_SLEEP_ENV]))

    heuristic_overrides = {
        attr: _as_list(raw[key]) for key, attr in _HEURISTIC_KEYS.items() if key in raw
    }
    values["heuristics"] = Heuristics.build(**heuristic_overrides)

    return _normalize(replace(defaults, **values), defaults)


def _normalize(settings: Settings, defaults: Settings) -> Settings:
    changes: Dict[str, Any] = {}
    for f in fields(Settings):
        value = getattr(settings, f.name)
        default = getattr(defaults, f.name)
        if isinstance(default, bool):
            continue
        if isinstance(default, (int, float)) and value <= 0:
            changes[f.name] = default
        elif isinstance(default, tuple) and f.name != "heuristics":
            if f.name in _LOWER_LISTS:
                normalized = normalize_lower(value)
            elif f.name in _UPPER_LISTS:
                normalized = normalize_upper(value)
            else:
                normalized = tuple(v.strip() for v in value if v.strip())
            changes[f.name] = normalized or default
        elif f.name.endswith("_base_url"):
            changes[f.name] = (value or default).rstrip("/")

    for name in ("github_per_page", "superteam_per_page", "bountycaster_per_page"):
        value = changes.get(name, getattr(settings, name))
        changes[name] = min(max(value, 1), 100)
    for name in ("github_max_pages", "superteam_max_pages", "bountycaster_max_pages"):
        value = changes.get(name, getattr(settings, name))
        changes[name] = min(max(value, 1), 100)

    return replace(settings, **changes)


def _coerce(value: Any, default: Any) -> Any:
    if isinstance(default, bool):
        return _parse_bool(value)
    if isinstance(default, int):
        try:
            return int(value)
        except (TypeError, ValueError):
            return None
    if isinstance(default, float):
        try:
            return float(value)
        except (TypeError, ValueError):
            return None
    if isinstance(default, tuple):
        return _as_list(value)
    return str(value).strip()


def _as_list(value: Any) -> Tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, str):
        return tuple(part.strip() for part in value.split(",") if part.strip())
    return tuple(str(part).strip() for part in value if str(part).strip())


def _parse_bool(value: Any) -> Optional[bool]:
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in ("1", "true", "t", "yes", "y", "on"):
        return True
    if text in ("0", "false", "f", "no", "n", "off"):
        return False
    return None
