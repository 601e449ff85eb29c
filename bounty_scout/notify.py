from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Callable, Iterable, List

from .models import PersistedRecord

logger = logging.getLogger(__name__)

Listener = Callable[[PersistedRecord], None]


class Notifier(ABC):
    """Delivers alerts about high-value records."""

    name: str = "notifier"

    @abstractmethod
    def alert(self, record: PersistedRecord) -> None:
        ...


class LoggingNotifier(Notifier):
    name = "log"

    def alert(self, record: PersistedRecord) -> None:
        logger.warning(
            "High-value bounty [%d] %s | %s %s | %s",
            record.score,
            record.title,
            record.payment_amount,
            record.payment_currency,
            record.source_url,
        )


class Broadcaster:
    """Fan-out sink for persisted records.

    Every record goes to all listeners; notifiers are only alerted when the
    score reaches min_score. A failing listener or notifier is logged and
    never stops the others."""

    def __init__(self, notifiers: Iterable[Notifier] = (), min_score: int = 60, listeners: Iterable[Listener] = ()) -> None:
        self._notifiers: List[Notifier] = list(notifiers)
        self._listeners: List[Listener] = list(listeners)
        self._min_score = min_score

    @property
    def min_score(self) -> int:
        return self._min_score

    def subscribe(self, listener: Listener) -> None:
        self._listeners.append(listener)

    def publish(self, record: PersistedRecord) -> int:
        """Deliver a record; returns how many notifiers were alerted."""
        for listener in self._listeners:
            try:
                listener(record)
            except Exception as exc:  # noqa: BLE001
                logger.error("Listener failed for %s: %s", record.source_url, exc)

        if record.score < self._min_score:
            return 0

        alerted = 0
        for notifier in self._notifiers:
            try:
                notifier.alert(record)
                alerted += 1
            except Exception as exc:  # noqa: BLE001
                logger.error("Notifier %s failed for %s: %s", notifier.name, record.source_url, exc)
        return alerted
