"""
CLI (Command Line Interface).

    squirrel login
    squirrel enroll --course CSC108H1 [--section F] [--wait 30]
                    [--tutorial 0101,0102] [--lecture 0101] [--monitor]

Credentials for `login` come from UTORID / PASSWORD (environment or .env),
otherwise the user is prompted.

Exit codes:
- 0: graceful stop (Ctrl+C) or successful enrollment
- 1: missing credentials, failed login, expired session, CAPTCHA, ...
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import signal

from rich.prompt import Prompt

from squirrel.browser import open_browser
from squirrel.config import Settings, load_settings
from squirrel.enroll import EnrollmentActor
from squirrel.errors import SquirrelError
from squirrel.logs import setup_logging
from squirrel.model import EnrollmentTarget, PollOutcome
from squirrel.poller import AvailabilityPoller, StopToken, run_poll_loop
from squirrel.session import SessionGuard, login
from squirrel.storage import SessionStore
from squirrel.terms import session_code


log = logging.getLogger("squirrel.cli")

EXIT_OK = 0
EXIT_FATAL = 1


def parse_sections(raw: str | None) -> tuple[str, ...]:
    """
    "0101, 0201,," -> ("0101", "0201"). None/empty -> ().
    """
    if not raw:
        return ()
    return tuple(part.strip() for part in raw.split(",") if part.strip())


def build_target(args: argparse.Namespace) -> EnrollmentTarget:
    return EnrollmentTarget(
        course_code=args.course.strip().upper(),
        session_code=session_code(),
        section_code=(args.section or "F").strip().upper(),
        lecture_sections=parse_sections(args.lecture),
        tutorial_sections=parse_sections(args.tutorial),
        wait_seconds=float(args.wait),
    )


def _threadsafe_handler(loop: asyncio.AbstractEventLoop, callback):
    def handler(signum, frame):
        loop.call_soon_threadsafe(callback, signal.Signals(signum).name)

    return handler


def _install_stop_handlers(token: StopToken) -> None:
    loop = asyncio.get_running_loop()

    def _on_signal(name: str) -> None:
        log.info("Received %s, shutting down after the current check...", name)
        token.stop()

    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, _on_signal, sig.name)
        except (NotImplementedError, RuntimeError):
            # Windows event loops have no add_signal_handler
            signal.signal(sig, _threadsafe_handler(loop, _on_signal))


def _prompt_credentials(settings: Settings) -> tuple[str, str]:
    utorid, password = settings.utorid, settings.password
    if utorid and password:
        log.info("Using UTORid and password from environment variables")
        return utorid, password

    log.info("No UTORid or password provided, prompting user")
    utorid = Prompt.ask("Enter your UTORid").strip()
    password = Prompt.ask("Enter your password", password=True)
    return utorid, password


async def _login(settings: Settings, utorid: str, password: str) -> int:
    store = SessionStore(settings.config_path)
    async with open_browser(settings, store) as driver:
        await login(driver, store, utorid, password)
    log.info("Successfully logged in and saved session")
    return EXIT_OK


def _cmd_login(args: argparse.Namespace, settings: Settings) -> int:
    utorid, password = _prompt_credentials(settings)
    if not utorid or not password:
        log.error("Missing UTORid or password")
        return EXIT_FATAL

    try:
        return asyncio.run(_login(settings, utorid, password))
    except SquirrelError as exc:
        log.error("%s", exc)
        return EXIT_FATAL


def outcome_exit_code(outcome: PollOutcome) -> int:
    return EXIT_OK if outcome in (PollOutcome.ENROLLED, PollOutcome.STOPPED) else EXIT_FATAL


async def _enroll(settings: Settings, target: EnrollmentTarget, monitor_only: bool) -> int:
    store = SessionStore(settings.config_path)
    token = StopToken()
    _install_stop_handlers(token)

    async with open_browser(settings, store) as driver:
        guard = SessionGuard(driver, store)
        if not await guard.verify_session():
            log.error("Session expired, please login again")
            return EXIT_FATAL

        log.info(
            "Starting %s for %s (session %s, section %s)",
            "monitoring" if monitor_only else "enrollment process",
            target.course_code,
            target.session_code,
            target.section_code,
        )
        poller = AvailabilityPoller(driver, guard, EnrollmentActor(driver))
        outcome = await run_poll_loop(poller, target, token, monitor_only=monitor_only)

    return outcome_exit_code(outcome)


def _cmd_enroll(args: argparse.Namespace, settings: Settings) -> int:
    if args.wait <= 0:
        log.error("--wait must be a positive number of seconds")
        return EXIT_FATAL

    target = build_target(args)
    try:
        return asyncio.run(_enroll(settings, target, args.monitor))
    except SquirrelError as exc:
        log.error("Process failed for %s: %s", target.course_code, exc)
        return EXIT_FATAL


def build_parser() -> argparse.ArgumentParser:
    """
    Build the argparse CLI parser with sub-commands.
    """
    parser = argparse.ArgumentParser(prog="squirrel", description="CLI tool for UofT Acorn course enrollment")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("login", help="Login to Acorn and save the session")

    p_enroll = sub.add_parser("enroll", help="Watch a course and enroll when a seat opens")
    p_enroll.add_argument("-c", "--course", type=str, required=True, help="Course code (e.g. CSC108H1)")
    p_enroll.add_argument("-s", "--section", type=str, default="F", help="Section code (F/S/Y)")
    p_enroll.add_argument("-w", "--wait", type=int, default=30, help="Seconds between checks")
    p_enroll.add_argument("-t", "--tutorial", type=str, default=None, help="Tutorial sections (comma separated)")
    p_enroll.add_argument("-l", "--lecture", type=str, default=None, help="Lecture sections (comma separated)")
    p_enroll.add_argument(
        "-m", "--monitor", action="store_true", help="Monitor mode - don't enroll, just watch"
    )

    return parser


def main(argv: list[str] | None = None) -> None:
    """
    CLI entry point. Parses args, dispatches to command handlers,
    and exits via SystemExit with a return code.
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    settings = load_settings()
    setup_logging(debug=settings.debug, log_file=settings.log_file)

    try:
        if args.command == "login":
            raise SystemExit(_cmd_login(args, settings))
        if args.command == "enroll":
            raise SystemExit(_cmd_enroll(args, settings))
    except KeyboardInterrupt:
        log.info("Shutting down...")
        raise SystemExit(EXIT_OK)

    raise SystemExit(2)
