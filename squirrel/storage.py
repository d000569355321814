"""
Persistent storage for the user's Acorn account data and session.

This module manages the file:

    ~/.squirrel/config.json

It holds the UTORid, credential placeholders, MFA bypass codes and - once
logged in - the browser cookies plus a last-login timestamp.

Design rationale:
- the file is plain indented JSON so users can inspect and edit it
- a missing or broken file never crashes the tool, it just means "no session"
- writes go to a temp file first and are then renamed over the target, so a
  reader never sees a half-written file
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterable

from squirrel.config import default_config_path
from squirrel.model import StoredConfig, StoredCookie, dedupe_cookies


log = logging.getLogger(__name__)


# Older config files use camelCase; those keys are read and rewritten as snake_case
KNOWN_KEYS = {
    "utorid",
    "password",
    "bypass_codes",
    "bypassCodes",
    "cookies",
    "last_login",
    "lastLogin",
}


def _first(data: dict[str, Any], *keys: str, default: Any = None) -> Any:
    for key in keys:
        if key in data:
            return data[key]
    return default


def _parse_config(data: Any) -> StoredConfig:
    """
    Turn decoded JSON into a StoredConfig, tolerating missing keys.

    Cookie entries that are not usable records are dropped instead of
    invalidating the whole file.
    """
    if not isinstance(data, dict):
        return StoredConfig()

    codes_raw = _first(data, "bypass_codes", "bypassCodes", default=[])
    codes = [str(c).strip() for c in codes_raw if str(c).strip()] if isinstance(codes_raw, list) else []

    cookies: list[StoredCookie] | None = None
    cookies_raw = data.get("cookies")
    if isinstance(cookies_raw, list):
        cookies = []
        for raw in cookies_raw:
            if not isinstance(raw, dict):
                continue
            try:
                cookies.append(StoredCookie.from_dict(raw))
            except (KeyError, TypeError, ValueError):
                continue
        cookies = dedupe_cookies(cookies)

    last_login = _first(data, "last_login", "lastLogin")
    extra = {k: v for k, v in data.items() if k not in KNOWN_KEYS}

    return StoredConfig(
        utorid=str(data.get("utorid") or ""),
        password=str(data.get("password") or ""),
        bypass_codes=codes,
        cookies=cookies,
        last_login=str(last_login) if last_login else None,
        extra=extra,
    )


def _serialize_config(config: StoredConfig) -> dict[str, Any]:
    payload: dict[str, Any] = dict(config.extra)
    payload.update({
        "utorid": config.utorid,
        "password": config.password,
        "bypass_codes": list(config.bypass_codes),
    })
    if config.cookies is not None:
        payload["cookies"] = [c.to_dict() for c in config.cookies]
    if config.last_login is not None:
        payload["last_login"] = config.last_login
    return payload


class SessionStore:
    """
    Owns config.json. Holds the last loaded / saved state in memory.
    """

    def __init__(self, path: str | Path | None = None) -> None:
        # Use custom path if provided (mainly for tests),
        # otherwise fall back to the per-user location
        self.path = Path(path) if path is not None else default_config_path()
        self.config = StoredConfig()

    def load(self) -> StoredConfig:
        """
        Load config.json.

        Returns defaults if the file does not exist or is invalid.
        """
        # First run: file does not exist yet -> no session stored
        if not self.path.exists():
            log.debug("No existing config found at %s, using defaults", self.path)
            self.config = StoredConfig()
            return self.config

        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError, UnicodeDecodeError) as exc:
            log.debug("Config at %s is unreadable (%s), using defaults", self.path, exc)
            self.config = StoredConfig()
            return self.config

        self.config = _parse_config(data)
        return self.config

    def save(self, config: StoredConfig | None = None) -> None:
        """
        Write the whole config atomically.

        Creates parent directories if needed. On failure the previous file is
        left untouched and the error propagates.
        """
        if config is not None:
            self.config = config

        self.path.parent.mkdir(parents=True, exist_ok=True)
        text = json.dumps(_serialize_config(self.config), indent=2, ensure_ascii=False)

        fd, tmp_name = tempfile.mkstemp(prefix=".config-", suffix=".tmp", dir=self.path.parent)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                fh.write(text)
                fh.flush()
                os.fsync(fh.fileno())
            os.replace(tmp_name, self.path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise
        log.debug("Config saved to %s", self.path)

    def update_session(self, cookies: Iterable[StoredCookie]) -> None:
        """
        Replace the stored cookies, stamp the login time and persist.
        """
        self.config.cookies = dedupe_cookies(list(cookies))
        self.config.last_login = datetime.now(timezone.utc).isoformat(timespec="seconds")
        self.save()
        log.debug("Session updated with %d cookies", len(self.config.cookies))

    def clear_session(self) -> None:
        """
        Drop cookies and last-login time, keep everything else (e.g. bypass codes).
        """
        self.config.cookies = None
        self.config.last_login = None
        self.save()
        log.debug("Session cleared")

    def consume_bypass_code(self, code: str) -> None:
        """
        Remove a used MFA bypass code and persist.
        """
        if code in self.config.bypass_codes:
            self.config.bypass_codes = [c for c in self.config.bypass_codes if c != code]
            self.save()
