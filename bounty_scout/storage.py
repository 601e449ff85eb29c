from __future__ import annotations

import json
import logging
import os
import queue
import sqlite3
import threading
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Dict, List, Optional

from .config import Settings
from .models import PAYMENT_UNKNOWN, PersistedRecord
from .urls import ReachabilityProbe, canonicalize_url, is_safe_url

logger = logging.getLogger(__name__)


class StorageBase(ABC):
    """Abstract base class for all storage backends.

    Records are keyed by canonical URL; saving a URL that already exists
    replaces the stored row, so a backend never holds two records for one URL.
    """

    @abstractmethod
    def save(self, record: PersistedRecord) -> None:
        """Persist a record, replacing any previous one with the same URL."""

    @abstractmethod
    def is_new(self, url: str) -> bool:
        """True when no record with this URL has been stored."""

    @abstractmethod
    def get_recent(self, limit: int) -> List[PersistedRecord]:
        """Return up to `limit` records, newest created_at first."""

    @abstractmethod
    def close(self) -> None:
        """Flush pending writes and release resources."""


def _ensure_parent(path: str) -> None:
    parent = os.path.dirname(os.path.abspath(path))
    if parent:
        os.makedirs(parent, exist_ok=True)


class JsonlStorage(StorageBase):
    """Stores records as JSON Lines using a background writer thread.

    The file is an append-only log; the in-memory index is rebuilt from it on
    open, and the last line for a URL wins."""

    def __init__(self, path: str) -> None:
        self._path = path
        self._lock = threading.Lock()
        self._index: Dict[str, PersistedRecord] = {}
        _ensure_parent(path)
        self._load()
        self._queue: queue.Queue[Optional[PersistedRecord]] = queue.Queue()
        self._thread = threading.Thread(target=self._writer, name="jsonl-writer", daemon=True)
        self._thread.start()

    def save(self, record: PersistedRecord) -> None:
        """Index the record and enqueue it for background writing."""
        with self._lock:
            self._index[record.source_url] = record
        self._queue.put(record)

    def is_new(self, url: str) -> bool:
        with self._lock:
            return url not in self._index

    def get_recent(self, limit: int) -> List[PersistedRecord]:
        with self._lock:
            records = list(self._index.values())
        records.sort(key=lambda r: r.created_at.timestamp(), reverse=True)
        return records[: max(limit, 0)]

    def close(self) -> None:
        """Signal the writer thread to flush and stop."""
        self._queue.put(None)
        self._thread.join(timeout=5)

    def _load(self) -> None:
        if not os.path.exists(self._path):
            return
        with open(self._path, "r", encoding="utf-8") as f:
            for line_no, line in enumerate(f, start=1):
                line = line.strip()
                if not line:
                    continue
                try:
                    record = PersistedRecord.from_dict(json.loads(line))
                except (ValueError, KeyError, TypeError) as exc:
                    logger.warning("Skipping corrupt line %d in %s: %s", line_no, self._path, exc)
                    continue
                self._index[record.source_url] = record
        logger.info("Loaded %d records from %s", len(self._index), self._path)

    def _writer(self) -> None:
        with open(self._path, "a", encoding="utf-8") as f:
            while True:
                item = self._queue.get()
                if item is None:
                    break
                f.write(json.dumps(item.to_dict(), ensure_ascii=False) + "\n")
                f.flush()


_SCHEMA = """
CREATE TABLE IF NOT EXISTS bounties (
    url TEXT PRIMARY KEY,
    source_id TEXT NOT NULL,
    external_id TEXT,
    title TEXT NOT NULL,
    description TEXT,
    created_at TEXT NOT NULL,
    created_ts REAL NOT NULL,
    expires_at TEXT,
    payment_amount TEXT,
    payment_currency TEXT,
    payment_kind TEXT,
    tags TEXT,
    origin_source TEXT,
    score INTEGER NOT NULL,
    persisted_at TEXT NOT NULL
)
"""

_COLUMNS = (
    "url, source_id, external_id, title, description, created_at, created_ts, expires_at, "
    "payment_amount, payment_currency, payment_kind, tags, origin_source, score, persisted_at"
)


class SqliteStorage(StorageBase):
    """SQLite backend. One connection shared across threads behind a lock."""

    def __init__(self, path: str) -> None:
        self._path = path
        if path != ":memory:":
            _ensure_parent(path)
        self._lock = threading.Lock()
        self._conn = sqlite3.connect(path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        with self._lock, self._conn:
            self._conn.execute(_SCHEMA)
            self._conn.execute("CREATE INDEX IF NOT EXISTS idx_bounties_created ON bounties (created_ts DESC)")

    def save(self, record: PersistedRecord) -> None:
        row = (
            record.source_url,
            record.source_id,
            record.external_id,
            record.title,
            record.description,
            record.created_at.isoformat(),
            record.created_at.timestamp(),
            record.expires_at.isoformat() if record.expires_at else None,
            record.payment_amount,
            record.payment_currency,
            record.payment_kind,
            json.dumps(list(record.tags)),
            record.origin_source,
            record.score,
            record.persisted_at.isoformat(),
        )
        with self._lock, self._conn:
            self._conn.execute(f"INSERT OR REPLACE INTO bounties ({_COLUMNS}) VALUES ({', '.join('?' * 15)})", row)

    def is_new(self, url: str) -> bool:
        with self._lock:
            row = self._conn.execute("SELECT 1 FROM bounties WHERE url = ?", (url,)).fetchone()
        return row is None

    def get_recent(self, limit: int) -> List[PersistedRecord]:
        with self._lock:
            rows = self._conn.execute(
                f"SELECT {_COLUMNS} FROM bounties ORDER BY created_ts DESC LIMIT ?", (max(limit, 0),)
            ).fetchall()
        return [_row_to_record(row) for row in rows]

    def count(self) -> int:
        with self._lock:
            return int(self._conn.execute("SELECT COUNT(*) FROM bounties").fetchone()[0])

    def purge_invalid_urls(self, probe: Optional[ReachabilityProbe] = None, allow_local: bool = False) -> int:
        """Delete rows whose URL is unsafe, not canonical, or (with a probe) unreachable.

        Returns the number of rows removed."""
        with self._lock:
            urls = [row[0] for row in self._conn.execute("SELECT url FROM bounties").fetchall()]

        doomed = []
        for url in urls:
            if canonicalize_url(url) != url or not is_safe_url(url, allow_local=allow_local):
                doomed.append(url)
            elif probe is not None and not probe.is_reachable(url):
                doomed.append(url)

        if doomed:
            with self._lock, self._conn:
                self._conn.executemany("DELETE FROM bounties WHERE url = ?", [(url,) for url in doomed])
            logger.info("Purged %d stored records with invalid URLs", len(doomed))
        return len(doomed)

    def close(self) -> None:
        with self._lock:
            self._conn.close()


def _row_to_record(row: Any) -> PersistedRecord:
    expires_at = row["expires_at"]
    return PersistedRecord(
        source_id=row["source_id"],
        external_id=row["external_id"] or "",
        title=row["title"],
        description=row["description"] or "",
        source_url=row["url"],
        created_at=datetime.fromisoformat(row["created_at"]),
        score=int(row["score"]),
        persisted_at=datetime.fromisoformat(row["persisted_at"]),
        payment_amount=row["payment_amount"] or "",
        payment_currency=row["payment_currency"] or "",
        payment_kind=row["payment_kind"] or PAYMENT_UNKNOWN,
        tags=tuple(json.loads(row["tags"] or "[]")),
        origin_source=row["origin_source"] or "",
        expires_at=datetime.fromisoformat(expires_at) if expires_at else None,
    )


def open_storage(settings: Settings) -> StorageBase:
    """Open the configured backend. Errors propagate: storage is required to run."""
    backend = settings.storage_backend.strip().lower()
    if backend == "jsonl":
        return JsonlStorage(settings.storage_path)
    if backend == "sqlite":
        storage = SqliteStorage(settings.storage_path)
        storage.purge_invalid_urls(allow_local=settings.allow_local_urls)
        return storage
    raise ValueError(f"Unknown storage backend: {settings.storage_backend}")
