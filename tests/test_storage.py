"""Tests for the JSONL and SQLite storage backends."""

import os
import tempfile
import unittest
from dataclasses import replace
from datetime import datetime, timedelta, timezone

from bounty_scout.config import Settings
from bounty_scout.models import PersistedRecord
from bounty_scout.storage import JsonlStorage, SqliteStorage, open_storage

BASE = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)


def _record(url, hours_ago=0, score=50, title="Bounty"):
    return PersistedRecord(
        source_id="github",
        external_id=url,
        title=title,
        description="",
        source_url=url,
        created_at=BASE - timedelta(hours=hours_ago),
        score=score,
        persisted_at=BASE,
        tags=("active",),
    )


class StorageContract:
    """Behaviour shared by every backend."""

    def make_storage(self):
        raise NotImplementedError

    def test_is_new_then_saved(self):
        storage = self.make_storage()
        self.assertTrue(storage.is_new("https://a.example/1"))
        storage.save(_record("https://a.example/1"))
        self.assertFalse(storage.is_new("https://a.example/1"))
        storage.close()

    def test_save_replaces_same_url(self):
        storage = self.make_storage()
        storage.save(_record("https://a.example/1", title="old"))
        storage.save(_record("https://a.example/1", title="new"))
        recent = storage.get_recent(10)
        self.assertEqual([r.title for r in recent], ["new"])
        storage.close()

    def test_get_recent_newest_first(self):
        storage = self.make_storage()
        storage.save(_record("https://a.example/old", hours_ago=10))
        storage.save(_record("https://a.example/new", hours_ago=1))
        storage.save(_record("https://a.example/mid", hours_ago=5))
        urls = [r.source_url for r in storage.get_recent(2)]
        self.assertEqual(urls, ["https://a.example/new", "https://a.example/mid"])
        storage.close()


class TestSqliteStorage(StorageContract, unittest.TestCase):
    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.path = os.path.join(self.tmp.name, "db", "bounties.db")

    def tearDown(self):
        self.tmp.cleanup()

    def make_storage(self):
        return SqliteStorage(self.path)

    def test_round_trip_fields(self):
        storage = self.make_storage()
        record = replace(_record("https://a.example/1"), expires_at=BASE + timedelta(days=2), payment_kind="crypto")
        storage.save(record)
        self.assertEqual(storage.get_recent(1), [record])
        storage.close()

    def test_purge_invalid_urls(self):
        """Unsafe or non-canonical rows are removed at startup."""
        storage = self.make_storage()
        storage.save(_record("https://a.example/ok"))
        storage.save(_record("javascript:alert(1)"))
        storage.save(_record("http://127.0.0.1/admin"))
        storage.save(_record("https://a.example/trailing)."))
        self.assertEqual(storage.purge_invalid_urls(), 3)
        self.assertEqual(storage.count(), 1)
        storage.close()

    def test_purge_with_probe(self):
        class DeadProbe:
            def is_reachable(self, url):
                return url.endswith("/alive")

        storage = self.make_storage()
        storage.save(_record("https://a.example/alive"))
        storage.save(_record("https://a.example/dead"))
        self.assertEqual(storage.purge_invalid_urls(probe=DeadProbe()), 1)
        self.assertFalse(storage.is_new("https://a.example/alive"))
        storage.close()


class TestJsonlStorage(StorageContract, unittest.TestCase):
    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.path = os.path.join(self.tmp.name, "bounties.jsonl")

    def tearDown(self):
        self.tmp.cleanup()

    def make_storage(self):
        return JsonlStorage(self.path)

    def test_index_rebuilt_on_open(self):
        """The last line for a URL wins after reopening."""
        storage = self.make_storage()
        storage.save(_record("https://a.example/1", title="first"))
        storage.save(_record("https://a.example/1", title="second"))
        storage.save(_record("https://a.example/2"))
        storage.close()

        reopened = self.make_storage()
        self.assertFalse(reopened.is_new("https://a.example/1"))
        titles = {r.source_url: r.title for r in reopened.get_recent(10)}
        self.assertEqual(titles["https://a.example/1"], "second")
        self.assertEqual(len(titles), 2)
        reopened.close()

    def test_corrupt_lines_are_skipped(self):
        with open(self.path, "w", encoding="utf-8") as f:
            f.write("{not json}\n\n")
        storage = self.make_storage()
        self.assertEqual(storage.get_recent(10), [])
        storage.close()


class TestOpenStorage(unittest.TestCase):
    def test_backends(self):
        with tempfile.TemporaryDirectory() as tmp:
            sqlite = open_storage(replace(Settings(), storage_path=os.path.join(tmp, "b.db")))
            self.assertIsInstance(sqlite, SqliteStorage)
            sqlite.close()
            jsonl = open_storage(
                replace(Settings(), storage_backend="jsonl", storage_path=os.path.join(tmp, "b.jsonl"))
            )
            self.assertIsInstance(jsonl, JsonlStorage)
            jsonl.close()

    def test_unknown_backend(self):
        with self.assertRaises(ValueError):
            open_storage(replace(Settings(), storage_backend="redis"))


if __name__ == "__main__":
    unittest.main()
