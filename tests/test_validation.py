"""Tests for fail-closed page validation and text sanitizing."""

import json
import unittest

from bounty_scout.errors import MalformedResponse, UnsafeContent
from bounty_scout.validation import (
    parse_rfc3339,
    sanitize_text,
    validate_items,
    validate_response,
)


def issue(title="Fix login bug", url="https://github.com/o/r/issues/1", created_at="2024-05-01T12:00:00Z", body=""):
    return {
        "title": title,
        "html_url": url,
        "created_at": created_at,
        "body": body,
        "labels": [{"name": "bounty"}, {"name": "$200"}],
    }


def page(*items):
    return json.dumps({"items": list(items)}).encode()


class TestValidateResponse(unittest.TestCase):
    """Verify the GitHub page validator rejects whole batches."""

    def test_valid_page(self):
        """All items pass and labels are flattened to names."""
        result = validate_response(page(issue(), issue(url="https://github.com/o/r/issues/2")))
        self.assertEqual(len(result), 2)
        self.assertEqual(result.items[0].labels, ("bounty", "$200"))
        self.assertEqual(result.items[0].url, "https://github.com/o/r/issues/1")
        self.assertEqual(result.items[0].created_at.year, 2024)

    def test_script_item_fails_whole_batch(self):
        """One item with a <script> tag rejects the other valid items too."""
        raw = page(issue(), issue(body="<script>alert(1)</script>"), issue())
        with self.assertRaises(UnsafeContent) as ctx:
            validate_response(raw)
        self.assertIn("index 1", str(ctx.exception))

    def test_javascript_scheme_in_title(self):
        with self.assertRaises(UnsafeContent):
            validate_response(page(issue(title="click javascript:alert(1)")))

    def test_event_handler_attributes(self):
        for payload in ('<img onerror="x">', "<b onclick = go()>", "<body ONLOAD=run>"):
            with self.assertRaises(UnsafeContent):
                validate_response(page(issue(body=payload)))

    def test_empty_body_and_invalid_json(self):
        with self.assertRaises(MalformedResponse):
            validate_response(b"")
        with self.assertRaises(MalformedResponse):
            validate_response(b"{not json")

    def test_bad_timestamp(self):
        """Timestamps must be RFC 3339 with a zone."""
        with self.assertRaises(MalformedResponse) as ctx:
            validate_response(page(issue(created_at="2024-05-01 12:00")))
        self.assertIn("created_at", str(ctx.exception))

    def test_relative_url(self):
        with self.assertRaises(MalformedResponse):
            validate_response(page(issue(url="/o/r/issues/1")))

    def test_title_limits(self):
        with self.assertRaises(MalformedResponse):
            validate_response(page(issue(title="   ")))
        with self.assertRaises(MalformedResponse):
            validate_response(page(issue(title="x" * 501)))
        self.assertEqual(len(validate_response(page(issue(title="x" * 500)))), 1)

    def test_no_items(self):
        self.assertEqual(len(validate_response(b'{"items": []}')), 0)


class TestValidateItems(unittest.TestCase):
    """Verify the shared item check and the lenient opt-in."""

    def test_lenient_mode_drops_only_bad_items(self):
        items = [
            {"title": "ok", "url": "https://a.example/1", "created_at": "2024-01-01T00:00:00+02:00"},
            {"title": "bad", "url": "https://a.example/2", "created_at": "2024-01-01T00:00:00Z",
             "body": "<script>x</script>"},
            {"title": "", "url": "https://a.example/3", "created_at": "2024-01-01T00:00:00Z"},
        ]
        result = validate_items(items, strict=False)
        self.assertEqual([item.title for item in result.items], ["ok"])

    def test_timestamp_optional_when_not_required(self):
        items = [{"title": "listing", "url": "https://earn.example/x", "created_at": None}]
        result = validate_items(items, require_timestamp=False)
        self.assertIsNone(result.items[0].created_at)

    def test_present_timestamp_still_checked(self):
        items = [{"title": "listing", "url": "https://earn.example/x", "created_at": "yesterday"}]
        with self.assertRaises(MalformedResponse):
            validate_items(items, require_timestamp=False)

    def test_non_object_item(self):
        with self.assertRaises(MalformedResponse):
            validate_items(["just a string"])


class TestHelpers(unittest.TestCase):
    def test_parse_rfc3339(self):
        self.assertIsNotNone(parse_rfc3339("2024-05-01T12:00:00.123Z"))
        self.assertIsNotNone(parse_rfc3339("2024-05-01T12:00:00-05:00"))
        self.assertIsNone(parse_rfc3339("2024-05-01"))
        self.assertIsNone(parse_rfc3339(12345))

    def test_parse_rfc3339_fraction_precision(self):
        """Any number of fractional digits parses, truncated to microseconds."""
        self.assertEqual(parse_rfc3339("2024-05-01T12:00:00.1Z").microsecond, 100000)
        self.assertEqual(parse_rfc3339("2024-05-01T12:00:00.12345+02:00").microsecond, 123450)
        self.assertEqual(parse_rfc3339("2024-05-01T12:00:00.123456789Z").microsecond, 123456)

    def test_sanitize_text(self):
        """Newlines and tabs collapse to spaces; long text is truncated with an ellipsis."""
        self.assertEqual(sanitize_text("a\nb\tc\r\nd"), "a b c d")
        self.assertEqual(sanitize_text("a\x00b\x07c"), "abc")
        self.assertEqual(sanitize_text("x" * 1005), "x" * 1000 + "...")
        self.assertEqual(sanitize_text(None), "")


if __name__ == "__main__":
    unittest.main()
