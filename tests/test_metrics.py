"""Tests for the MetricsCollector class."""

import unittest

from bounty_scout.metrics import (
    OUTCOME_ACCEPTED,
    OUTCOME_DUPLICATE,
    OUTCOME_INVALID_URL,
    MetricsCollector,
)


class TestMetricsCollector(unittest.TestCase):
    """Verify outcome recording and snapshot aggregation."""

    def test_empty_snapshot(self):
        """Snapshot with no events should have all zeros."""
        snap = MetricsCollector().snapshot(window_secs=30)
        self.assertEqual(snap.total, 0)
        self.assertEqual(snap.count(OUTCOME_ACCEPTED), 0)

    def test_counts_by_outcome_and_source(self):
        """Accepted records are also counted per source."""
        metrics = MetricsCollector()
        metrics.record_outcome("github", OUTCOME_ACCEPTED)
        metrics.record_outcome("github", OUTCOME_DUPLICATE)
        metrics.record_outcome("superteam", OUTCOME_ACCEPTED)
        metrics.record_outcome("superteam", OUTCOME_INVALID_URL)
        snap = metrics.snapshot(window_secs=30)
        self.assertEqual(snap.total, 4)
        self.assertEqual(snap.count(OUTCOME_ACCEPTED), 2)
        self.assertEqual(snap.by_source, {"github": 1, "superteam": 1})
        self.assertIn("duplicate=1", snap.summary())

    def test_totals_survive_eviction(self):
        """Running totals keep counting after the event window is full."""
        metrics = MetricsCollector(maxlen=2)
        for _ in range(5):
            metrics.record_outcome("github", OUTCOME_ACCEPTED)
        self.assertEqual(metrics.snapshot().total, 2)
        self.assertEqual(metrics.totals()[OUTCOME_ACCEPTED], 5)


if __name__ == "__main__":
    unittest.main()
