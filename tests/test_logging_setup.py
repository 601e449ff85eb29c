"""Tests for secret masking in logs."""

import logging
import unittest

from bounty_scout.logging_setup import SecretMaskingFilter, mask_token


class ListHandler(logging.Handler):
    def __init__(self):
        super().__init__()
        self.messages = []

    def emit(self, record):
        self.messages.append(self.format(record))


class TestMasking(unittest.TestCase):
    def test_mask_token(self):
        self.assertEqual(mask_token("ghp_abcdef"), "gh******ef")
        self.assertEqual(mask_token("abc"), "****")
        self.assertEqual(mask_token(""), "")

    def test_filter_masks_formatted_message(self):
        """Secrets passed as log arguments are masked after formatting."""
        logger = logging.getLogger("bounty_scout.tests.masking")
        logger.propagate = False
        handler = ListHandler()
        handler.addFilter(SecretMaskingFilter(["ghp_secret123"]))
        logger.addHandler(handler)
        try:
            logger.warning("token=%s on %s", "ghp_secret123", "github")
        finally:
            logger.removeHandler(handler)
        self.assertEqual(handler.messages, ["token=gh*********23 on github"])

    def test_register_later(self):
        masking = SecretMaskingFilter()
        masking.register("hunter22")
        record = logging.LogRecord("x", logging.INFO, __file__, 1, "pw %s", ("hunter22",), None)
        masking.filter(record)
        self.assertEqual(record.getMessage(), "pw hu****22")


if __name__ == "__main__":
    unittest.main()
