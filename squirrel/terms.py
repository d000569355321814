"""
Date-derived academic period codes.

Acorn identifies a term by year + start month:
- Fall (Sep-Dec)   -> YYYY9
- Winter (Jan-Mar) -> YYYY1
- Summer (Apr-Aug) -> YYYY5

The enrollment page has two tabs; index 1 is the summer session
(Apr-Sep), index 0 the fall/winter session.
"""

from __future__ import annotations

from datetime import date


def session_code(today: date | None = None) -> str:
    d = today or date.today()
    if d.month >= 9:
        suffix = "9"
    elif d.month <= 3:
        suffix = "1"
    else:
        suffix = "5"
    return f"{d.year}{suffix}"


def enrolment_period_index(today: date | None = None) -> int:
    d = today or date.today()
    return 1 if 4 <= d.month <= 9 else 0
