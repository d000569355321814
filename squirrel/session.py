"""
Session handling: checking whether the stored cookies still work, and the
interactive login that produces them.

These two places (plus clearing after an expired session) are the only
writers of cookies in the config file.
"""

from __future__ import annotations

import logging

from squirrel.config import (
    ACORN_URL,
    ELEMENT_TIMEOUT,
    LOGIN_TIMEOUT,
    MFA_TIMEOUT,
    NAVIGATION_TIMEOUT,
    VERIFY_TIMEOUT,
)
from squirrel.driver import Driver
from squirrel.errors import LoginError, MissingCredentialsError
from squirrel.storage import SessionStore


log = logging.getLogger(__name__)

# Login page (UofT weblogin)
USERNAME_INPUT = "#username"
PASSWORD_INPUT = "#password"
SUBMIT_BUTTON = '[name="_eventId_proceed"]'

# Duo MFA
MFA_VIEW = "#auth-view-wrapper"
OTHER_OPTIONS_LINK = ".button--link"
BYPASS_OPTION = '[data-testid="test-id-bypass"]'
PASSCODE_INPUT = '[name="passcode-input"]'
VERIFY_BUTTON = '[data-testid="verify-button"]'
TRUST_BROWSER_BUTTON = "#trust-browser-button"


class SessionGuard:
    """
    Answers "are we still logged in?" by loading the Acorn landing page.
    """

    def __init__(self, driver: Driver, store: SessionStore, timeout: float = VERIFY_TIMEOUT) -> None:
        self.driver = driver
        self.store = store
        self.timeout = timeout

    async def verify_session(self) -> bool:
        """
        True only if the authenticated landing page shows up in time.

        A login form, a timeout or any other failure all count as "not
        logged in". Never touches the stored session.
        """
        try:
            await self.driver.goto(ACORN_URL, timeout=NAVIGATION_TIMEOUT)

            # Redirected to weblogin -> cookies are no longer accepted
            if await self.driver.has_element(USERNAME_INPUT):
                log.debug("Login form shown, session needs re-login")
                return False

            await self.driver.wait_for_url(ACORN_URL, timeout=self.timeout)
            return True
        except Exception as exc:
            log.debug("Session verification failed: %s", exc)
            return False

    def invalidate(self) -> None:
        """
        Forget the stored cookies after the session was found to be dead.
        """
        self.store.clear_session()


async def _enter_bypass_code(driver: Driver, code: str) -> None:
    await driver.click(OTHER_OPTIONS_LINK, timeout=ELEMENT_TIMEOUT)
    await driver.click(BYPASS_OPTION, timeout=ELEMENT_TIMEOUT)
    await driver.fill(PASSCODE_INPUT, code, timeout=ELEMENT_TIMEOUT)
    await driver.click(VERIFY_BUTTON, timeout=ELEMENT_TIMEOUT)


async def _approve_push(driver: Driver) -> None:
    await driver.click(TRUST_BROWSER_BUTTON, timeout=ELEMENT_TIMEOUT)
    log.info("Waiting for Duo mobile authentication...")


async def login(driver: Driver, store: SessionStore, utorid: str, password: str) -> None:
    """
    Log in through weblogin + Duo and persist the resulting cookies.

    Uses the first stored bypass code if there is one (and drops it afterwards,
    codes are single-use), otherwise waits for a Duo push approval.
    On any failure the stored session is cleared and LoginError is raised.
    """
    if not utorid or not password:
        raise MissingCredentialsError("Missing UTORid or password")

    config = store.load()
    code = config.bypass_codes[0] if config.bypass_codes else None

    try:
        await driver.goto(ACORN_URL, timeout=NAVIGATION_TIMEOUT)
        await driver.fill(USERNAME_INPUT, utorid, timeout=ELEMENT_TIMEOUT)
        await driver.fill(PASSWORD_INPUT, password, timeout=ELEMENT_TIMEOUT)
        await driver.click(SUBMIT_BUTTON, timeout=ELEMENT_TIMEOUT)

        await driver.wait_for_selector(MFA_VIEW, timeout=MFA_TIMEOUT)

        if code is not None:
            log.debug("Using stored bypass code")
            await _enter_bypass_code(driver, code)
        else:
            await _approve_push(driver)

        await driver.wait_for_url(ACORN_URL, timeout=LOGIN_TIMEOUT)
        cookies = await driver.cookies()
    except Exception as exc:
        log.error("Login failed: %s", exc)
        try:
            store.clear_session()
        except OSError as save_exc:
            log.error("Could not clear stored session: %s", save_exc)
        raise LoginError(f"Login failed: {exc}") from exc

    try:
        store.update_session(cookies)
        if code is not None:
            store.consume_bypass_code(code)
    except OSError as exc:
        raise LoginError(f"Logged in, but saving the session to {store.path} failed: {exc}") from exc
    log.info("Login successful, session saved")
