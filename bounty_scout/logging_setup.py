from __future__ import annotations

import logging
import os
import threading
from typing import Iterable, Optional

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def mask_token(token: str) -> str:
    """Keep the first and last two characters of a secret, star the rest."""
    if not token:
        return ""
    if len(token) <= 4:
        return "****"
    return token[:2] + "*" * (len(token) - 4) + token[-2:]


class SecretMaskingFilter(logging.Filter):
    """Rewrites log records so registered secrets never reach a handler."""

    def __init__(self, secrets: Iterable[str] = ()) -> None:
        super().__init__()
        self._lock = threading.Lock()
        self._masks: dict[str, str] = {}
        for secret in secrets:
            self.register(secret)

    def register(self, secret: str) -> None:
        if not secret:
            return
        with self._lock:
            self._masks[secret] = mask_token(secret)

    def filter(self, record: logging.LogRecord) -> bool:
        with self._lock:
            masks = dict(self._masks)
        if not masks:
            return True
        message = record.getMessage()
        for secret, masked in masks.items():
            message = message.replace(secret, masked)
        record.msg = message
        record.args = None
        return True


def configure_logging(
    level: str = "INFO",
    log_path: Optional[str] = None,
    secrets: Iterable[str] = (),
) -> SecretMaskingFilter:
    """Install stream (and optional file) handlers on the package logger."""
    masking = SecretMaskingFilter(secrets)
    formatter = logging.Formatter(LOG_FORMAT)

    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if log_path:
        directory = os.path.dirname(log_path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        handlers.append(logging.FileHandler(log_path, encoding="utf-8"))

    root = logging.getLogger("bounty_scout")
    root.setLevel(getattr(logging, str(level).upper(), logging.INFO))
    for handler in list(root.handlers):
        root.removeHandler(handler)
    for handler in handlers:
        handler.setFormatter(formatter)
        handler.addFilter(masking)
        root.addHandler(handler)
    root.propagate = False
    return masking
