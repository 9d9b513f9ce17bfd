# src/pocket_pilot/tasks/cron.py

"""
Minimal 5-field cron matching: minute hour day-of-month month day-of-week.

Each field supports:
- "*"          any value
- "*/N"        value divisible by N (N > 0)
- "a,b,c"      exact integers

There are no ranges, and day-of-month / day-of-week are ANDed like every other
field (no classic "either DOM or DOW" rule). Callers rely on these rules; keep them.
"""

from __future__ import annotations

from datetime import datetime


def _match_field(field: str, value: int) -> bool:
    if field == "*":
        return True

    if field.startswith("*/"):
        try:
            step = int(field[2:])
        except ValueError:
            return False
        return step > 0 and value % step == 0

    for part in field.split(","):
        try:
            if int(part.strip()) == value:
                return True
        except ValueError:
            continue
    return False


def _cron_dow(when: datetime) -> int:
    # Python: Monday=0..Sunday=6; cron: Sunday=0..Saturday=6.
    return (when.weekday() + 1) % 7


def matches_cron(expression: str, when: datetime) -> bool:
    """Return True if `expression` fires at `when`. Malformed input never matches."""
    if not isinstance(expression, str):
        return False
    fields = expression.split()
    if len(fields) != 5:
        return False

    minute_f, hour_f, dom_f, month_f, dow_f = fields
    return (
        _match_field(minute_f, when.minute)
        and _match_field(hour_f, when.hour)
        and _match_field(dom_f, when.day)
        and _match_field(month_f, when.month)
        and _match_field(dow_f, _cron_dow(when))
    )


def _field_is_valid(field: str) -> bool:
    if field == "*":
        return True
    if field.startswith("*/"):
        rest = field[2:]
        return rest.isdigit() and int(rest) > 0
    parts = field.split(",")
    return all(p.strip().isdigit() for p in parts)


def is_valid_cron(expression: str) -> bool:
    fields = (expression or "").split()
    return len(fields) == 5 and all(_field_is_valid(f) for f in fields)
