"""
Unit tests for the session store (config.json).

Storage contract:
- Missing/invalid file -> defaults, never an exception
- save(load()) leaves the file content unchanged
- clear_session keeps bypass codes
- one cookie per (name, domain, path)
"""

import json
import tempfile
import unittest
from pathlib import Path

from squirrel.model import StoredConfig, StoredCookie
from squirrel.storage import SessionStore


def _cookie(name: str, value: str = "v", domain: str = "acorn.utoronto.ca", path: str = "/") -> StoredCookie:
    return StoredCookie(name=name, value=value, domain=domain, path=path)


class TestSessionStore(unittest.TestCase):
    def test_load_missing_file_returns_defaults(self) -> None:
        with tempfile.TemporaryDirectory() as d:
            store = SessionStore(Path(d) / "missing.json")
            self.assertEqual(store.load(), StoredConfig())

    def test_load_corrupt_file_returns_defaults(self) -> None:
        with tempfile.TemporaryDirectory() as d:
            p = Path(d) / "config.json"
            p.write_text("{not json", encoding="utf-8")
            self.assertEqual(SessionStore(p).load(), StoredConfig())

            p.write_text("[1, 2, 3]", encoding="utf-8")
            self.assertEqual(SessionStore(p).load(), StoredConfig())

    def test_bad_cookie_entries_are_dropped(self) -> None:
        with tempfile.TemporaryDirectory() as d:
            p = Path(d) / "config.json"
            p.write_text(
                json.dumps({"cookies": [{"name": "JSESSIONID"}, "junk", {"name": "a", "value": "1", "domain": "x"}]}),
                encoding="utf-8",
            )
            config = SessionStore(p).load()
            self.assertEqual([c.name for c in config.cookies], ["a"])

    def test_save_creates_directories_and_roundtrips(self) -> None:
        with tempfile.TemporaryDirectory() as d:
            p = Path(d) / "nested" / ".squirrel" / "config.json"
            store = SessionStore(p)
            store.save(StoredConfig(utorid="doej1", bypass_codes=["123456"]))
            store.update_session([_cookie("JSESSIONID", "abc"), _cookie("XSRF-TOKEN", "tok")])

            first = p.read_text(encoding="utf-8")

            again = SessionStore(p)
            again.save(again.load())
            self.assertEqual(p.read_text(encoding="utf-8"), first)

            loaded = SessionStore(p).load()
            self.assertEqual(loaded.utorid, "doej1")
            self.assertEqual(loaded.bypass_codes, ["123456"])
            self.assertEqual({c.name for c in loaded.cookies}, {"JSESSIONID", "XSRF-TOKEN"})
            self.assertIsNotNone(loaded.last_login)

    def test_save_leaves_no_temp_files(self) -> None:
        with tempfile.TemporaryDirectory() as d:
            p = Path(d) / "config.json"
            SessionStore(p).save(StoredConfig(utorid="x"))
            self.assertEqual([f.name for f in Path(d).iterdir()], ["config.json"])

    def test_update_session_keeps_one_cookie_per_key(self) -> None:
        with tempfile.TemporaryDirectory() as d:
            store = SessionStore(Path(d) / "config.json")
            store.load()
            store.update_session([_cookie("JSESSIONID", "old"), _cookie("JSESSIONID", "new")])
            cookies = SessionStore(store.path).load().cookies
            self.assertEqual(len(cookies), 1)
            self.assertEqual(cookies[0].value, "new")

    def test_clear_session_preserves_bypass_codes(self) -> None:
        with tempfile.TemporaryDirectory() as d:
            p = Path(d) / "config.json"
            store = SessionStore(p)
            store.save(StoredConfig(utorid="doej1", bypass_codes=["111", "222"]))
            store.update_session([_cookie("JSESSIONID")])

            store.clear_session()

            data = json.loads(p.read_text(encoding="utf-8"))
            self.assertNotIn("cookies", data)
            self.assertNotIn("last_login", data)
            self.assertEqual(data["bypass_codes"], ["111", "222"])
            self.assertFalse(SessionStore(p).load().has_session)

    def test_clear_session_keeps_unknown_keys(self) -> None:
        with tempfile.TemporaryDirectory() as d:
            p = Path(d) / "config.json"
            p.write_text(
                json.dumps(
                    {
                        "utorid": "x",
                        "note": "keep",
                        "bypass_codes": ["111"],
                        "cookies": [{"name": "JSESSIONID", "value": "abc", "domain": "acorn.utoronto.ca", "path": "/"}],
                    }
                ),
                encoding="utf-8",
            )
            store = SessionStore(p)
            store.load()
            store.clear_session()

            data = json.loads(p.read_text(encoding="utf-8"))
            self.assertEqual(data["note"], "keep")
            self.assertEqual(data["bypass_codes"], ["111"])
            self.assertNotIn("cookies", data)

    def test_camel_case_file_is_read_and_kept(self) -> None:
        # files written by the earlier Node version of the tool
        with tempfile.TemporaryDirectory() as d:
            p = Path(d) / "config.json"
            p.write_text(
                json.dumps(
                    {
                        "utorid": "x",
                        "bypassCodes": ["111"],
                        "lastLogin": "2026-01-05T10:00:00Z",
                        "cookies": [
                            {
                                "name": "XSRF-TOKEN",
                                "value": "t",
                                "domain": "acorn.utoronto.ca",
                                "path": "/",
                                "expires": -1,
                                "httpOnly": True,
                                "sameSite": "Lax",
                            }
                        ],
                    }
                ),
                encoding="utf-8",
            )
            store = SessionStore(p)
            config = store.load()
            self.assertEqual(config.bypass_codes, ["111"])
            self.assertEqual(config.last_login, "2026-01-05T10:00:00Z")
            self.assertTrue(config.cookies[0].http_only)
            self.assertEqual(config.cookies[0].same_site, "Lax")
            self.assertIsNone(config.cookies[0].expires)

            store.clear_session()
            data = json.loads(p.read_text(encoding="utf-8"))
            self.assertEqual(data["bypass_codes"], ["111"])
            self.assertNotIn("bypassCodes", data)
            self.assertNotIn("lastLogin", data)

    def test_consume_bypass_code(self) -> None:
        with tempfile.TemporaryDirectory() as d:
            p = Path(d) / "config.json"
            store = SessionStore(p)
            store.save(StoredConfig(bypass_codes=["111", "222"]))
            store.consume_bypass_code("111")
            self.assertEqual(SessionStore(p).load().bypass_codes, ["222"])


if __name__ == "__main__":
    unittest.main()
