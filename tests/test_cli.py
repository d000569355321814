"""
Tests for CLI argument handling.

These tests never start a browser:
- argparse validation (enroll requires --course)
- flag parsing into an EnrollmentTarget
- login refuses to start without credentials
"""

import unittest
from pathlib import Path
from unittest import mock

from squirrel.cli import build_parser, build_target, main, outcome_exit_code, parse_sections
from squirrel.config import Settings
from squirrel.model import PollOutcome


class TestCLI(unittest.TestCase):
    def test_enroll_requires_course(self) -> None:
        with self.assertRaises(SystemExit) as ctx:
            main(["enroll"])
        self.assertNotEqual(ctx.exception.code, 0)

    def test_enroll_defaults(self) -> None:
        args = build_parser().parse_args(["enroll", "-c", "csc108h1"])
        self.assertEqual(args.section, "F")
        self.assertEqual(args.wait, 30)
        self.assertFalse(args.monitor)

        target = build_target(args)
        self.assertEqual(target.course_code, "CSC108H1")
        self.assertEqual(target.lecture_sections, ())
        self.assertEqual(target.tutorial_sections, ())
        self.assertEqual(target.wait_seconds, 30.0)
        self.assertEqual(len(target.session_code), 5)

    def test_enroll_section_lists(self) -> None:
        args = build_parser().parse_args(
            ["enroll", "-c", "MAT137Y1", "-s", "Y", "-w", "10", "-t", "0101, 0201", "-l", "0101", "-m"]
        )
        target = build_target(args)
        self.assertEqual(target.section_code, "Y")
        self.assertEqual(target.tutorial_sections, ("0101", "0201"))
        self.assertEqual(target.lecture_sections, ("0101",))
        self.assertTrue(args.monitor)

    def test_parse_sections(self) -> None:
        self.assertEqual(parse_sections(None), ())
        self.assertEqual(parse_sections(""), ())
        self.assertEqual(parse_sections("a,,b ,"), ("a", "b"))

    def test_exit_codes(self) -> None:
        self.assertEqual(outcome_exit_code(PollOutcome.ENROLLED), 0)
        self.assertEqual(outcome_exit_code(PollOutcome.STOPPED), 0)
        self.assertEqual(outcome_exit_code(PollOutcome.SESSION_INVALID), 1)
        self.assertEqual(outcome_exit_code(PollOutcome.FATAL_ERROR), 1)

    def test_login_without_credentials_exits_1(self) -> None:
        settings = Settings(config_path=Path("unused.json"), log_file="")
        with mock.patch("squirrel.cli.load_settings", return_value=settings), mock.patch(
            "squirrel.cli.Prompt.ask", return_value=""
        ), mock.patch("squirrel.cli.open_browser") as open_browser:
            with self.assertRaises(SystemExit) as ctx:
                main(["login"])
        self.assertEqual(ctx.exception.code, 1)
        open_browser.assert_not_called()


if __name__ == "__main__":
    unittest.main()
