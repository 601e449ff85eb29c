"""Tests for URL canonicalization, safety checks and the reachability probe."""

import unittest

import requests

from bounty_scout.urls import ReachabilityProbe, canonicalize_url, is_safe_url, unsafe_reason


class FakeResponse:
    def __init__(self, status_code):
        self.status_code = status_code
        self.closed = False

    def close(self):
        self.closed = True


class FakeSession:
    def __init__(self, head=None, get=None):
        self._head = head
        self._get = get
        self.calls = []

    def head(self, url, **kwargs):
        self.calls.append(("HEAD", kwargs))
        if isinstance(self._head, BaseException):
            raise self._head
        return FakeResponse(self._head)

    def get(self, url, **kwargs):
        self.calls.append(("GET", kwargs))
        if isinstance(self._get, BaseException):
            raise self._get
        return FakeResponse(self._get)


class TestCanonicalizeUrl(unittest.TestCase):
    def test_strips_whitespace_and_trailing_punctuation(self):
        self.assertEqual(canonicalize_url("  https://x.io/a).  "), "https://x.io/a")
        self.assertEqual(canonicalize_url("https://x.io/a!?\"'"), "https://x.io/a")

    def test_keeps_first_token(self):
        self.assertEqual(canonicalize_url("https://x.io/a see also https://y.io"), "https://x.io/a")

    def test_drops_control_characters(self):
        self.assertEqual(canonicalize_url("https://x.io/\x00a\x1f"), "https://x.io/a")

    def test_empty(self):
        self.assertEqual(canonicalize_url(""), "")
        self.assertEqual(canonicalize_url(None), "")
        self.assertEqual(canonicalize_url("   "), "")


class TestUrlSafety(unittest.TestCase):
    def test_rejects_non_http_schemes(self):
        self.assertEqual(unsafe_reason("javascript:alert(1)"), "bad_scheme")
        self.assertEqual(unsafe_reason("ftp://x.io/file"), "bad_scheme")

    def test_rejects_local_hosts(self):
        self.assertEqual(unsafe_reason("http://localhost:8080/x"), "blocked_host")
        self.assertEqual(unsafe_reason("http://127.0.0.1/x"), "blocked_local_ip")
        self.assertEqual(unsafe_reason("http://169.254.169.254/latest"), "blocked_local_ip")
        self.assertEqual(unsafe_reason("http://[::1]/x"), "blocked_local_ip")
        self.assertEqual(unsafe_reason("http://0.0.0.0/x"), "blocked_local_ip")

    def test_allow_local_override(self):
        self.assertTrue(is_safe_url("http://localhost:8080/x", allow_local=True))

    def test_accepts_public_urls(self):
        self.assertTrue(is_safe_url("https://github.com/o/r/issues/1"))
        self.assertIsNone(unsafe_reason("http://93.184.216.34/x"))

    def test_missing_host(self):
        self.assertEqual(unsafe_reason("https:///path"), "missing_host")
        self.assertEqual(unsafe_reason(""), "empty_url")


class TestReachabilityProbe(unittest.TestCase):
    def test_head_success(self):
        session = FakeSession(head=200)
        self.assertTrue(ReachabilityProbe(session=session).is_reachable("https://x.io/a"))
        self.assertEqual([method for method, _ in session.calls], ["HEAD"])

    def test_auth_walls_count_as_reachable(self):
        for code in (401, 403, 429):
            self.assertTrue(ReachabilityProbe(session=FakeSession(head=code)).is_reachable("https://x.io"))

    def test_not_found_is_unreachable(self):
        session = FakeSession(head=404)
        self.assertFalse(ReachabilityProbe(session=session).is_reachable("https://x.io/gone"))
        self.assertEqual(len(session.calls), 1)

    def test_head_405_falls_back_to_ranged_get(self):
        session = FakeSession(head=405, get=206)
        self.assertTrue(ReachabilityProbe(session=session).is_reachable("https://x.io/a"))
        method, kwargs = session.calls[1]
        self.assertEqual(method, "GET")
        self.assertEqual(kwargs["headers"], {"Range": "bytes=0-0"})

    def test_head_error_falls_back_and_accepts_416(self):
        session = FakeSession(head=requests.ConnectionError("reset"), get=416)
        self.assertTrue(ReachabilityProbe(session=session).is_reachable("https://x.io/a"))

    def test_both_fail(self):
        session = FakeSession(head=requests.Timeout("slow"), get=requests.Timeout("slow"))
        self.assertFalse(ReachabilityProbe(session=session).is_reachable("https://x.io/a"))

    def test_unsafe_url_is_never_requested(self):
        session = FakeSession(head=200)
        self.assertFalse(ReachabilityProbe(session=session).is_reachable("http://127.0.0.1/admin"))
        self.assertEqual(session.calls, [])


if __name__ == "__main__":
    unittest.main()
