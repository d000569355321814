"""
Central data model definitions used across the project.

This module defines the canonical structure of the objects passed between
the session store, the poller and the enrollment actor so that:
- all modules share the same field names
- the persisted config file and the in-memory objects stay in sync
- ephemeral values (snapshots, outcomes) are clearly separated from stored state
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional, List


LECTURE = "LEC"
TUTORIAL = "TUT"


@dataclass
class StoredCookie:
    """
    One cookie record of the authenticated session as stored in config.json.
    """

    name: str
    value: str
    domain: str
    path: str = "/"
    expires: Optional[float] = None
    http_only: bool = False
    secure: bool = False
    same_site: Optional[str] = None

    @property
    def key(self) -> tuple[str, str, str]:
        return (self.name, self.domain, self.path)

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "value": self.value,
            "domain": self.domain,
            "path": self.path,
            "expires": self.expires,
            "http_only": self.http_only,
            "secure": self.secure,
            "same_site": self.same_site,
        }

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> "StoredCookie":
        expires = raw.get("expires")
        same_site = raw.get("same_site", raw.get("sameSite"))
        return cls(
            name=str(raw["name"]),
            value=str(raw["value"]),
            domain=str(raw["domain"]),
            path=str(raw.get("path") or "/"),
            expires=float(expires) if expires is not None and float(expires) >= 0 else None,
            http_only=bool(raw.get("http_only", raw.get("httpOnly", False))),
            secure=bool(raw.get("secure", False)),
            same_site=str(same_site) if same_site else None,
        )


def dedupe_cookies(cookies: List[StoredCookie]) -> List[StoredCookie]:
    """
    Keep one cookie per (name, domain, path); the last occurrence wins.
    """
    by_key: dict[tuple[str, str, str], StoredCookie] = {}
    for c in cookies:
        by_key.pop(c.key, None)
        by_key[c.key] = c
    return list(by_key.values())


@dataclass
class StoredConfig:
    """
    Everything persisted in ~/.squirrel/config.json.

    cookies / last_login are None when no session is stored.
    """

    utorid: str = ""
    password: str = ""
    bypass_codes: List[str] = field(default_factory=list)
    cookies: Optional[List[StoredCookie]] = None
    last_login: Optional[str] = None
    # keys squirrel does not know about, written back unchanged
    extra: dict[str, Any] = field(default_factory=dict)

    @property
    def has_session(self) -> bool:
        return bool(self.cookies)


@dataclass(frozen=True)
class EnrollmentTarget:
    """
    What the user wants to get into.

    Empty lecture_sections / tutorial_sections means "any section of that kind".
    """

    course_code: str
    session_code: str
    section_code: str = "F"
    lecture_sections: tuple[str, ...] = ()
    tutorial_sections: tuple[str, ...] = ()
    wait_seconds: float = 30.0


@dataclass(frozen=True)
class SectionSnapshot:
    """
    One teaching-method instance of a course as reported by one availability fetch.
    """

    teach_method: str
    section_no: str
    display_name: str
    available: int
    total: int


class PollOutcome(Enum):
    """
    Result of one poll cycle, or the terminal result of the whole loop.
    """

    NO_ACTION = "no-action"
    ENROLLED = "enrolled"
    ENROLL_FAILED = "enroll-failed"
    SESSION_INVALID = "session-invalid"
    TRANSIENT_ERROR = "transient-error"
    FATAL_ERROR = "fatal-error"
    STOPPED = "stopped"
