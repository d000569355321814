"""
Tests for the Playwright adapter helpers that do not need a browser.
"""

import unittest
from unittest import mock

import requests

from squirrel.browser import _http_get, from_playwright_cookie, to_playwright_cookie
from squirrel.errors import DriverError, DriverTimeout
from squirrel.model import StoredCookie


class TestCookieConversion(unittest.TestCase):
    def test_session_cookie_gets_minus_one_expiry(self) -> None:
        out = to_playwright_cookie(StoredCookie("JSESSIONID", "abc", "acorn.utoronto.ca"))
        self.assertEqual(out["expires"], -1)
        self.assertNotIn("sameSite", out)

    def test_roundtrip_keeps_flags(self) -> None:
        raw = {
            "name": "XSRF-TOKEN",
            "value": "tok",
            "domain": ".utoronto.ca",
            "path": "/sws",
            "expires": 1893456000.0,
            "httpOnly": True,
            "secure": True,
            "sameSite": "Lax",
        }
        cookie = from_playwright_cookie(raw)
        self.assertEqual(cookie.expires, 1893456000.0)
        self.assertTrue(cookie.http_only)
        self.assertEqual(to_playwright_cookie(cookie), raw)

    def test_negative_expiry_is_session_cookie(self) -> None:
        cookie = from_playwright_cookie({"name": "a", "value": "b", "domain": "x", "path": "/", "expires": -1})
        self.assertIsNone(cookie.expires)


class TestHttpGet(unittest.TestCase):
    def _session(self, get_side_effect=None, status=200):
        session = mock.MagicMock()
        session.__enter__.return_value = session
        session.cookies = requests.cookies.RequestsCookieJar()
        if get_side_effect is not None:
            session.get.side_effect = get_side_effect
        else:
            session.get.return_value = mock.Mock(status_code=status, reason="OK", text="{}")
        return session

    def test_cookies_are_sent(self) -> None:
        session = self._session()
        with mock.patch("squirrel.browser.requests.Session", return_value=session):
            resp = _http_get(
                "https://acorn.utoronto.ca/x",
                {"x-xsrf-token": "t"},
                [{"name": "JSESSIONID", "value": "abc", "domain": "acorn.utoronto.ca", "path": "/"}],
                30,
            )
        self.assertEqual(resp.status, 200)
        self.assertEqual(session.cookies.get("JSESSIONID"), "abc")
        _, kwargs = session.get.call_args
        self.assertEqual(kwargs["timeout"], 30)

    def test_timeout_maps_to_driver_timeout(self) -> None:
        session = self._session(get_side_effect=requests.exceptions.ReadTimeout("slow"))
        with mock.patch("squirrel.browser.requests.Session", return_value=session):
            with self.assertRaises(DriverTimeout):
                _http_get("https://acorn.utoronto.ca/x", {}, [], 1)

    def test_connection_error_maps_to_driver_error(self) -> None:
        session = self._session(get_side_effect=requests.exceptions.ConnectionError("reset"))
        with mock.patch("squirrel.browser.requests.Session", return_value=session):
            with self.assertRaises(DriverError):
                _http_get("https://acorn.utoronto.ca/x", {}, [], 1)


if __name__ == "__main__":
    unittest.main()
