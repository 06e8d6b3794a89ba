from __future__ import annotations

import re
from decimal import ROUND_HALF_UP, Decimal

from internhours.core.errors import ValidationError

MINUTES_PER_DAY = 24 * 60
_CLOCK_PATTERN = re.compile(r"^(\d{1,2}):(\d{2})$")


def parse_clock(value: str | int) -> int:
    """Return the minute of day for an ``HH:MM`` string (or pass through ints)."""

    if isinstance(value, bool):
        raise ValidationError("time must be HH:MM", value=value)
    if isinstance(value, int):
        if not 0 <= value < MINUTES_PER_DAY:
            raise ValidationError("minute of day out of range", value=value)
        return value
    if not isinstance(value, str):
        raise ValidationError("time must be HH:MM", value=str(value))
    match = _CLOCK_PATTERN.match(value.strip())
    if not match:
        raise ValidationError("time must be HH:MM", value=value)
    hours, minutes = int(match.group(1)), int(match.group(2))
    if hours > 23 or minutes > 59:
        raise ValidationError("time must be HH:MM", value=value)
    return hours * 60 + minutes


def format_clock(minute_of_day: int) -> str:
    return f"{minute_of_day // 60:02d}:{minute_of_day % 60:02d}"


def validate_break_minutes(value: object) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError("break_minutes must be a whole number of minutes", value=str(value))
    if value < 0:
        raise ValidationError("break_minutes cannot be negative", value=value)
    return value


def _quantize(value: Decimal) -> Decimal:
    return value.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


def compute_total_hours(time_in: str | int, time_out: str | int, break_minutes: int = 0) -> Decimal:
    """Hours worked between ``time_in`` and ``time_out`` net of the break.

    A ``time_out`` earlier than ``time_in`` is an overnight shift ending on the
    following day.  The result never drops below zero.
    """

    start = parse_clock(time_in)
    end = parse_clock(time_out)
    break_minutes = validate_break_minutes(break_minutes)

    diff = end - start
    if diff < 0:
        diff += MINUTES_PER_DAY
    net = max(0, diff - break_minutes)
    return _quantize(Decimal(net) / Decimal(60))
