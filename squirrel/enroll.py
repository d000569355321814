"""
Claiming a seat through the Acorn enrollment UI.

The sequence mirrors what a student does by hand: open the enrollment tab for
the current period, search the course, pick the section, press enrol (or
modify, for tutorials) and wait for the course box to appear in the cart.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import date
from typing import Awaitable, Callable

from squirrel.config import CONFIRM_TIMEOUT, COURSES_URL, ELEMENT_TIMEOUT, NAVIGATION_TIMEOUT
from squirrel.driver import Driver
from squirrel.errors import DriverError, EnrollmentFailure, TransientError
from squirrel.model import TUTORIAL, EnrollmentTarget
from squirrel.terms import enrolment_period_index


log = logging.getLogger(__name__)

SEARCH_INPUT = "#typeaheadInput"

# UI settle pauses (seconds)
TYPEAHEAD_PAUSE = 2.0
COURSE_PAUSE = 2.0
SECTION_PAUSE = 1.0


def course_result_selector(target: EnrollmentTarget) -> str:
    return f'span:text-matches("{target.course_code} {target.section_code}")'


def section_selector(teach_method: str, section_no: str) -> str:
    return f"#course{teach_method}{section_no}"


def action_button_selector(teach_method: str) -> str:
    # Tutorials are changed via "modify", lectures/practicals via "enrol"
    return "#modify" if teach_method == TUTORIAL else "#enrol"


def confirmation_selector(target: EnrollmentTarget) -> str:
    return f"#{target.course_code}-courseBox"


class EnrollmentActor:
    def __init__(
        self,
        driver: Driver,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        today: Callable[[], date] = date.today,
        confirm_timeout: float = CONFIRM_TIMEOUT,
    ) -> None:
        self.driver = driver
        self._sleep = sleep
        self._today = today
        self.confirm_timeout = confirm_timeout

    async def enroll(self, target: EnrollmentTarget, section_no: str, teach_method: str) -> None:
        """
        Try to enroll in one section. Returns normally only on confirmed success.

        Raises EnrollmentFailure for every browser-level problem, including the
        confirmation box not showing up in time.
        """
        label = f"{teach_method}{section_no}"
        url = COURSES_URL.format(index=enrolment_period_index(self._today()))

        try:
            await self.driver.goto(url, timeout=NAVIGATION_TIMEOUT)
            await self.driver.wait_for_load(timeout=NAVIGATION_TIMEOUT)

            log.debug("Searching for %s on enrollment page...", target.course_code)
            await self.driver.wait_for_selector(SEARCH_INPUT, timeout=ELEMENT_TIMEOUT)
            await self.driver.fill(SEARCH_INPUT, target.course_code, timeout=ELEMENT_TIMEOUT)
            await self._sleep(TYPEAHEAD_PAUSE)

            await self.driver.click(course_result_selector(target), timeout=ELEMENT_TIMEOUT)
            await self._sleep(COURSE_PAUSE)

            await self.driver.click(section_selector(teach_method, section_no), timeout=ELEMENT_TIMEOUT)
            await self._sleep(SECTION_PAUSE)

            button = action_button_selector(teach_method)
            await self.driver.wait_for_selector(button, timeout=ELEMENT_TIMEOUT)
            await self.driver.click(button, timeout=ELEMENT_TIMEOUT)
        except (DriverError, TransientError) as exc:
            raise EnrollmentFailure(target.course_code, label, str(exc)) from exc

        try:
            await self.driver.wait_for_selector(confirmation_selector(target), timeout=self.confirm_timeout)
        except DriverError as exc:
            raise EnrollmentFailure(
                target.course_code, label, "course box not found after attempt"
            ) from exc

        log.info(
            "Enrollment SUCCESS! -- now enrolled in %s@%s (%s)",
            target.course_code,
            target.section_code,
            label,
        )
