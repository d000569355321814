"""
Playwright implementation of the Driver capability.

The browser keeps the authenticated cookie jar. Plain JSON requests are sent
with requests, reusing that jar, so the availability poll does not have to
render anything.
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager, contextmanager
from typing import Any, AsyncIterator, Iterator, Mapping

import requests
from playwright.async_api import (
    Browser,
    BrowserContext,
    Error as PlaywrightError,
    Page,
    Playwright,
    TimeoutError as PlaywrightTimeoutError,
    async_playwright,
)

from squirrel.config import USER_AGENT, Settings
from squirrel.driver import HttpResponse
from squirrel.errors import DriverError, DriverTimeout, ServerError
from squirrel.model import StoredCookie
from squirrel.storage import SessionStore


log = logging.getLogger(__name__)

SAME_SITE_VALUES = {"Strict", "Lax", "None"}


# ---------------------------------------------------------------------------
# Cookie conversion
# ---------------------------------------------------------------------------


def to_playwright_cookie(cookie: StoredCookie) -> dict[str, Any]:
    out: dict[str, Any] = {
        "name": cookie.name,
        "value": cookie.value,
        "domain": cookie.domain,
        "path": cookie.path or "/",
        # -1 => session cookie
        "expires": cookie.expires if cookie.expires is not None else -1,
        "httpOnly": cookie.http_only,
        "secure": cookie.secure,
    }
    if cookie.same_site in SAME_SITE_VALUES:
        out["sameSite"] = cookie.same_site
    return out


def from_playwright_cookie(raw: Mapping[str, Any]) -> StoredCookie:
    expires = raw.get("expires")
    same_site = raw.get("sameSite")
    return StoredCookie(
        name=str(raw["name"]),
        value=str(raw["value"]),
        domain=str(raw["domain"]),
        path=str(raw.get("path") or "/"),
        expires=float(expires) if expires is not None and expires >= 0 else None,
        http_only=bool(raw.get("httpOnly", False)),
        secure=bool(raw.get("secure", False)),
        same_site=same_site if same_site in SAME_SITE_VALUES else None,
    )


# ---------------------------------------------------------------------------
# HTTP
# ---------------------------------------------------------------------------


def _http_get(
    url: str,
    headers: Mapping[str, str],
    cookies: list[Mapping[str, Any]],
    timeout: float,
) -> HttpResponse:
    """
    Blocking GET with the browser's cookies. Runs in a worker thread.
    """
    with requests.Session() as session:
        session.headers.update({"User-Agent": USER_AGENT})
        for c in cookies:
            session.cookies.set(c["name"], c["value"], domain=c["domain"], path=c.get("path") or "/")
        try:
            resp = session.get(url, headers=dict(headers), timeout=timeout)
        except requests.exceptions.Timeout as exc:
            raise DriverTimeout(f"GET {url} timed out after {timeout:g}s") from exc
        except requests.exceptions.RequestException as exc:
            raise DriverError(f"GET {url} failed: {exc}") from exc
    return HttpResponse(status=resp.status_code, reason=resp.reason or "", text=resp.text)


# ---------------------------------------------------------------------------
# Driver
# ---------------------------------------------------------------------------


@contextmanager
def _translate_errors(action: str) -> Iterator[None]:
    try:
        yield
    except PlaywrightTimeoutError as exc:
        raise DriverTimeout(f"{action}: timed out") from exc
    except PlaywrightError as exc:
        raise DriverError(f"{action}: {exc.message}") from exc


def _ms(seconds: float) -> float:
    return seconds * 1000


class PlaywrightDriver:
    def __init__(self, context: BrowserContext, page: Page) -> None:
        self._context = context
        self._page = page

    async def goto(self, url: str, timeout: float) -> None:
        with _translate_errors(f"goto {url}"):
            resp = await self._page.goto(url, timeout=_ms(timeout))
        # Hash-route navigations within the SPA return no response
        if resp is not None and resp.status >= 500:
            raise ServerError(resp.status, resp.status_text, url)

    async def wait_for_load(self, timeout: float) -> None:
        with _translate_errors("wait for network idle"):
            await self._page.wait_for_load_state("networkidle", timeout=_ms(timeout))

    async def fill(self, selector: str, value: str, timeout: float) -> None:
        with _translate_errors(f"fill {selector}"):
            await self._page.fill(selector, value, timeout=_ms(timeout))

    async def click(self, selector: str, timeout: float) -> None:
        with _translate_errors(f"click {selector}"):
            await self._page.click(selector, timeout=_ms(timeout))

    async def has_element(self, selector: str) -> bool:
        with _translate_errors(f"query {selector}"):
            return await self._page.query_selector(selector) is not None

    async def wait_for_selector(self, selector: str, timeout: float) -> None:
        with _translate_errors(f"wait for {selector}"):
            await self._page.wait_for_selector(selector, timeout=_ms(timeout))

    async def wait_for_url(self, url: str, timeout: float) -> None:
        with _translate_errors(f"wait for {url}"):
            await self._page.wait_for_url(url, timeout=_ms(timeout))

    async def get(self, url: str, headers: Mapping[str, str], timeout: float) -> HttpResponse:
        with _translate_errors("read cookies"):
            cookies = await self._context.cookies(url)
        return await asyncio.to_thread(_http_get, url, headers, cookies, timeout)

    async def cookies(self) -> list[StoredCookie]:
        with _translate_errors("read cookies"):
            raw = await self._context.cookies()
        return [from_playwright_cookie(c) for c in raw]

    async def add_cookies(self, cookies: list[StoredCookie]) -> None:
        with _translate_errors("add cookies"):
            await self._context.add_cookies([to_playwright_cookie(c) for c in cookies])

    async def close(self) -> None:
        with _translate_errors("close context"):
            await self._context.close()


@asynccontextmanager
async def open_browser(settings: Settings, store: SessionStore) -> AsyncIterator[PlaywrightDriver]:
    """
    Launch Chromium, restore the stored session and hand out a driver.

    Browser and Playwright are always shut down on exit.
    """
    pw: Playwright = await async_playwright().start()
    browser: Browser | None = None
    try:
        launch_kwargs: dict[str, Any] = {"headless": settings.headless}
        if settings.browser_channel:
            launch_kwargs["channel"] = settings.browser_channel
        with _translate_errors("launch browser"):
            browser = await pw.chromium.launch(**launch_kwargs)
            context = await browser.new_context(user_agent=USER_AGENT)
            page = await context.new_page()

        driver = PlaywrightDriver(context, page)

        config = store.load()
        if config.cookies:
            await driver.add_cookies(config.cookies)
            log.debug("Restored %d session cookies", len(config.cookies))

        yield driver
    finally:
        if browser is not None:
            await browser.close()
        await pw.stop()
