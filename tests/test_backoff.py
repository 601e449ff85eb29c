"""Tests for the BackoffStrategy class."""

import unittest

from bounty_scout.backoff import BackoffStrategy


class TestBackoffStrategy(unittest.TestCase):
    """Verify exponential backoff produces correct sleep durations."""

    def test_first_attempt_returns_base(self):
        """First retry should sleep exactly the base duration without jitter."""
        backoff = BackoffStrategy(base_seconds=1.0, max_seconds=30.0)
        self.assertEqual(backoff.get_sleep(attempt=1), 1.0)

    def test_exponential_growth(self):
        """Each subsequent attempt doubles the sleep time."""
        backoff = BackoffStrategy(base_seconds=0.5, max_seconds=100.0)
        self.assertEqual([backoff.get_sleep(a) for a in (1, 2, 3)], [0.5, 1.0, 2.0])

    def test_respects_max_seconds(self):
        """Sleep duration should never exceed max_seconds."""
        backoff = BackoffStrategy(base_seconds=1.0, max_seconds=5.0)
        self.assertEqual(backoff.get_sleep(attempt=20), 5.0)

    def test_jitter_stays_within_ratio(self):
        """Jitter adds at most jitter_ratio of the delay and never subtracts."""
        backoff = BackoffStrategy(base_seconds=1.0, max_seconds=30.0, jitter_ratio=0.1)
        for attempt in range(1, 6):
            base = 2 ** (attempt - 1)
            sleep = backoff.get_sleep(attempt)
            self.assertGreaterEqual(sleep, base)
            self.assertLessEqual(sleep, base * 1.1)


if __name__ == "__main__":
    unittest.main()
