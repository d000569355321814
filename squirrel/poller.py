"""
The watch-and-act loop.

One cycle:
1. make sure the session is still logged in
2. open the courses page (retried on 5xx)
3. fetch the availability JSON for the target course (retried on 5xx)
4. parse it into SectionSnapshot objects
5. for every wanted section with free seats: report (monitor mode) or try
   to enroll; the first confirmed enrollment ends everything

run_poll_loop() repeats cycles until something terminal happens or the
StopToken is triggered. It is the only place that decides between
"wait and try again" and "give up".
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Awaitable, Callable
from urllib.parse import urlencode

from bs4 import BeautifulSoup

from squirrel.config import (
    COURSE_VIEW_URL,
    COURSES_URL,
    NAVIGATION_TIMEOUT,
    POST_CODE,
    REFERER,
    REQUEST_TIMEOUT,
)
from squirrel.driver import Driver, HttpResponse
from squirrel.enroll import EnrollmentActor
from squirrel.errors import (
    CaptchaDetectedError,
    CheckFailure,
    EnrollmentFailure,
    FatalError,
    ServerError,
    SessionExpiredError,
)
from squirrel.model import LECTURE, TUTORIAL, EnrollmentTarget, PollOutcome, SectionSnapshot
from squirrel.retry import retry_operation
from squirrel.session import SessionGuard


log = logging.getLogger(__name__)

XSRF_COOKIE = "XSRF-TOKEN"


# ---------------------------------------------------------------------------
# Cancellation
# ---------------------------------------------------------------------------


class StopToken:
    """
    Cooperative stop signal, checked between cycles.
    """

    def __init__(self) -> None:
        self._event = asyncio.Event()

    def stop(self) -> None:
        self._event.set()

    @property
    def stopped(self) -> bool:
        return self._event.is_set()

    async def wait(self, timeout: float) -> bool:
        """
        Sleep up to `timeout` seconds; wake early if stopped. Returns `stopped`.
        """
        if timeout <= 0:
            return self.stopped
        try:
            await asyncio.wait_for(self._event.wait(), timeout=timeout)
        except asyncio.TimeoutError:
            pass
        return self.stopped


# ---------------------------------------------------------------------------
# Query & parsing
# ---------------------------------------------------------------------------


def build_course_url(target: EnrollmentTarget) -> str:
    params = {
        "courseCode": target.course_code,
        "courseSessionCode": target.session_code,
        "postCode": POST_CODE,
        "sectionCode": target.section_code,
        "sessionCode": target.session_code,
    }
    return f"{COURSE_VIEW_URL}?{urlencode(params)}"


def is_captcha_page(text: str) -> bool:
    """
    Detect an hCaptcha challenge served instead of JSON.

    The marker anywhere in the raw body counts, inline scripts and attribute
    values included. Widget markup is checked as well for challenge pages that
    only reference the widget by class name.
    """
    if "hcaptcha" in text.lower():
        return True
    soup = BeautifulSoup(text, "html.parser")
    return soup.select_one(".h-captcha, [data-sitekey][class*='captcha']") is not None


def _to_int(x: Any) -> int:
    try:
        return int(x)
    except (TypeError, ValueError):
        return 0


def parse_availability(text: str) -> list[SectionSnapshot]:
    """
    Parse the course view JSON into snapshots.

    Raises:
        CaptchaDetectedError: body is not JSON and shows a CAPTCHA challenge
        CheckFailure: malformed body, API errors, or no meeting data
    """
    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        if is_captcha_page(text):
            raise CaptchaDetectedError("Captcha detected, please log in again") from exc
        raise CheckFailure(f"Malformed course data: {exc}") from exc

    if not isinstance(data, dict):
        raise CheckFailure("Malformed course data: expected a JSON object")

    messages = data.get("messages") or {}
    errors = messages.get("errors") if isinstance(messages, dict) else None
    if errors:
        raise CheckFailure(f"API Error: {', '.join(str(e) for e in errors)}")

    response_object = data.get("responseObject") or {}
    meetings = response_object.get("meetings") if isinstance(response_object, dict) else None
    if not isinstance(meetings, list):
        raise CheckFailure("No course meeting data found")

    snapshots: list[SectionSnapshot] = []
    for m in meetings:
        if not isinstance(m, dict):
            continue
        snapshots.append(
            SectionSnapshot(
                teach_method=str(m.get("teachMethod") or "").strip().upper(),
                section_no=str(m.get("sectionNo") or "").strip(),
                display_name=str(m.get("displayName") or ""),
                available=_to_int(m.get("enrollmentSpaceAvailable")),
                total=_to_int(m.get("totalSpace")),
            )
        )
    return snapshots


def is_wanted(target: EnrollmentTarget, snap: SectionSnapshot) -> bool:
    """
    Does this section match the user's filters?

    Tutorials are only considered when the user asked for tutorial sections.
    An empty lecture filter accepts any lecture.
    """
    if snap.teach_method == LECTURE:
        return not target.lecture_sections or snap.section_no in target.lecture_sections
    if snap.teach_method == TUTORIAL:
        return bool(target.tutorial_sections) and snap.section_no in target.tutorial_sections
    return False


def wanted_sections(target: EnrollmentTarget, snapshots: list[SectionSnapshot]) -> list[SectionSnapshot]:
    return [s for s in snapshots if is_wanted(target, s)]


# ---------------------------------------------------------------------------
# One cycle
# ---------------------------------------------------------------------------


class AvailabilityPoller:
    def __init__(
        self,
        driver: Driver,
        guard: SessionGuard,
        actor: EnrollmentActor,
        retry_delay: float = 2.0,
        retry_attempts: int = 3,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.driver = driver
        self.guard = guard
        self.actor = actor
        self.retry_delay = retry_delay
        self.retry_attempts = retry_attempts
        self._sleep = sleep

    async def _retry(self, operation: Callable[[], Awaitable[Any]], what: str) -> Any:
        return await retry_operation(
            operation,
            attempts=self.retry_attempts,
            delay=self.retry_delay,
            what=what,
            sleep=self._sleep,
        )

    async def _headers(self) -> dict[str, str]:
        cookies = await self.driver.cookies()
        xsrf = next((c.value for c in cookies if c.name == XSRF_COOKIE), "")
        return {
            "accept": "application/json, text/plain, */*",
            "accept-language": "en-CA,en;q=0.9",
            "content-type": "application/json",
            "x-xsrf-token": xsrf,
            "referer": REFERER,
        }

    async def fetch_sections(self, target: EnrollmentTarget) -> list[SectionSnapshot]:
        async def open_courses_page() -> None:
            await self.driver.goto(COURSES_URL.format(index=0), timeout=NAVIGATION_TIMEOUT)
            await self.driver.wait_for_load(timeout=NAVIGATION_TIMEOUT)

        await self._retry(open_courses_page, f"open courses page ({target.course_code})")

        url = build_course_url(target)

        async def fetch() -> HttpResponse:
            resp = await self.driver.get(url, headers=await self._headers(), timeout=REQUEST_TIMEOUT)
            if resp.status >= 500:
                raise ServerError(resp.status, resp.reason, url)
            return resp

        resp: HttpResponse = await self._retry(fetch, f"fetch {target.course_code}")

        if resp.status == 401:
            raise SessionExpiredError()
        if not resp.ok:
            raise CheckFailure(f"Failed to fetch course data for {target.course_code}: {resp.status} {resp.reason}")

        return parse_availability(resp.text)

    async def check(self, target: EnrollmentTarget, monitor_only: bool = False) -> PollOutcome:
        """
        Run one full cycle.

        Returns ENROLLED, ENROLL_FAILED (seats seen, every attempt failed) or
        NO_ACTION. Raises SessionExpiredError, FatalError or CheckFailure.
        """
        if not await self.guard.verify_session():
            raise SessionExpiredError()

        snapshots = await self.fetch_sections(target)
        log.info("Checking availability for %s", target.course_code)

        attempted = False
        for snap in wanted_sections(target, snapshots):
            if snap.available <= 0:
                log.debug("%s has no space left for %s", target.course_code, snap.display_name)
                continue

            msg = (
                f"{target.course_code} has {snap.available} spaces left "
                f"(total: {snap.total}) for {snap.display_name}"
            )
            if monitor_only:
                log.info("[MONITOR] %s", msg)
                continue

            log.info("[ENROLL] %s", msg)
            attempted = True
            try:
                await self.actor.enroll(target, snap.section_no, snap.teach_method)
            except EnrollmentFailure as exc:
                # other wanted sections may still work
                log.error("Enrollment attempt failed: %s", exc)
                continue
            return PollOutcome.ENROLLED

        return PollOutcome.ENROLL_FAILED if attempted else PollOutcome.NO_ACTION


# ---------------------------------------------------------------------------
# Loop
# ---------------------------------------------------------------------------


async def run_poll_loop(
    poller: AvailabilityPoller,
    target: EnrollmentTarget,
    token: StopToken,
    monitor_only: bool = False,
) -> PollOutcome:
    """
    Poll until enrolled, stopped, or a fatal condition.

    Returns ENROLLED, STOPPED, SESSION_INVALID or FATAL_ERROR.
    """
    cycle = 0
    while not token.stopped:
        cycle += 1
        try:
            outcome = await poller.check(target, monitor_only=monitor_only)
        except SessionExpiredError:
            log.error("Session expired while checking %s, please login again", target.course_code)
            try:
                poller.guard.invalidate()
            except OSError as exc:
                log.error("Could not clear stored session: %s", exc)
            return PollOutcome.SESSION_INVALID
        except FatalError as exc:
            log.error("Stopping: %s (%s)", exc, target.course_code)
            return PollOutcome.FATAL_ERROR
        except Exception as exc:
            log.error("Error during check of %s (cycle %d): %s", target.course_code, cycle, exc)
            outcome = PollOutcome.TRANSIENT_ERROR

        if outcome is PollOutcome.ENROLLED:
            return outcome

        log.debug("Cycle %d for %s: %s", cycle, target.course_code, outcome.value)
        await token.wait(target.wait_seconds)

    log.info("Stopped watching %s", target.course_code)
    return PollOutcome.STOPPED
