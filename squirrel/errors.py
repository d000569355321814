"""
Error taxonomy.

Control flow dispatches on the exception class, never on message text:

- TransientError       -> retried inside one remote call (retry.py)
- CheckFailure         -> cycle failed, the loop waits and tries again
- SessionExpiredError  -> stop, the user has to log in again
- FatalError           -> stop immediately (CAPTCHA, login failure, ...)
- EnrollmentFailure    -> one candidate section failed, keep scanning
- DriverError          -> raised by the browser layer
"""

from __future__ import annotations


class SquirrelError(Exception):
    """Base class for every error raised by squirrel itself."""


class TransientError(SquirrelError):
    """A remote failure that is expected to go away on retry."""


class ServerError(TransientError):
    """The remote service answered with a 5xx status."""

    def __init__(self, status: int, reason: str = "", url: str = "") -> None:
        self.status = status
        self.reason = reason
        self.url = url
        msg = f"{status} {reason}".strip()
        super().__init__(f"{msg} ({url})" if url else msg)


class CheckFailure(SquirrelError):
    """An availability check produced no usable data."""


class SessionExpiredError(SquirrelError):
    """The stored session is no longer authenticated."""

    def __init__(self, message: str = "Session expired, please login again") -> None:
        super().__init__(message)


class FatalError(SquirrelError):
    """A condition the tool cannot recover from on its own."""


class CaptchaDetectedError(FatalError):
    """The remote service answered with a CAPTCHA challenge instead of data."""


class LoginError(FatalError):
    """Logging in did not produce an authenticated session."""


class MissingCredentialsError(FatalError):
    """No UTORid / password available for login."""


class EnrollmentFailure(SquirrelError):
    """Enrolling into one specific section did not succeed."""

    def __init__(self, course_code: str, section: str, reason: str) -> None:
        self.course_code = course_code
        self.section = section
        self.reason = reason
        super().__init__(f"Enrollment in {course_code} {section} failed: {reason}")


class DriverError(SquirrelError):
    """The browser automation layer failed to perform an action."""


class DriverTimeout(DriverError):
    """A bounded wait on the browser ran out."""
