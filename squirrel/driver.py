"""
The browser capability the core logic depends on.

Everything that talks to Acorn goes through a Driver. The real one lives in
squirrel/browser.py (Playwright); tests use a scripted fake. All timeouts are
in seconds and every wait must be bounded.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping, Protocol

from squirrel.model import StoredCookie


@dataclass(frozen=True)
class HttpResponse:
    status: int
    reason: str
    text: str

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 400


class Driver(Protocol):
    async def goto(self, url: str, timeout: float) -> None:
        """Navigate; raises ServerError on a 5xx document response."""

    async def wait_for_load(self, timeout: float) -> None:
        """Wait until the page stops doing network requests."""

    async def fill(self, selector: str, value: str, timeout: float) -> None: ...

    async def click(self, selector: str, timeout: float) -> None: ...

    async def has_element(self, selector: str) -> bool:
        """Immediate check, no waiting."""

    async def wait_for_selector(self, selector: str, timeout: float) -> None:
        """Raises DriverTimeout if the element does not show up in time."""

    async def wait_for_url(self, url: str, timeout: float) -> None:
        """Raises DriverTimeout if the page does not reach `url` in time."""

    async def get(self, url: str, headers: Mapping[str, str], timeout: float) -> HttpResponse:
        """GET using the current session's cookies."""

    async def cookies(self) -> list[StoredCookie]: ...

    async def add_cookies(self, cookies: list[StoredCookie]) -> None: ...

    async def close(self) -> None: ...
