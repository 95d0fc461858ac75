"""Stay date arithmetic: night counts and validated date ranges."""

from __future__ import annotations

import math
from datetime import date, datetime, time, timedelta
from typing import Union

from pydantic import BaseModel, model_validator

from homestay.errors import InvalidRangeError

DateLike = Union[date, datetime, str]

_SECONDS_PER_DAY = 24 * 60 * 60


def _coerce(value: DateLike, label: str) -> date | datetime:
    # datetime is a subclass of date, keep it as-is so the time part counts
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            return date.fromisoformat(value.strip())
        except ValueError:
            raise InvalidRangeError(f"Invalid {label} date: {value!r}") from None
    raise InvalidRangeError(f"Invalid {label} date: {value!r}")


def to_date(value: DateLike, label: str = "stay") -> date:
    """Parse ``value`` into a calendar date, dropping any time component."""
    parsed = _coerce(value, label)
    if isinstance(parsed, datetime):
        return parsed.date()
    return parsed


def nights(check_in: DateLike, check_out: DateLike) -> int:
    """Number of nights between two dates.

    Plain dates give the calendar-day difference. When either side carries a
    time of day, a partial day counts as a whole night (ceiling), which is how
    a guest reads "number of nights".

    Returns 0 for the same day; callers that need a bookable stay must
    reject that. Raises InvalidRangeError when check-out precedes check-in.
    """
    start = _coerce(check_in, "check-in")
    end = _coerce(check_out, "check-out")

    if isinstance(start, datetime) or isinstance(end, datetime):
        start_dt = start if isinstance(start, datetime) else datetime.combine(start, time.min)
        end_dt = end if isinstance(end, datetime) else datetime.combine(end, time.min)
        if (start_dt.tzinfo is None) != (end_dt.tzinfo is None):
            raise InvalidRangeError("Check-in and check-out must use the same timezone style")
        delta = end_dt - start_dt
        if delta < timedelta(0):
            raise InvalidRangeError()
        return math.ceil(delta.total_seconds() / _SECONDS_PER_DAY)

    days = (end - start).days
    if days < 0:
        raise InvalidRangeError()
    return days


class DateRange(BaseModel):
    """A bookable stay: check-out strictly after check-in (at least one night)."""

    check_in: date
    check_out: date

    model_config = {"frozen": True}

    @model_validator(mode="after")
    def _at_least_one_night(self) -> "DateRange":
        if self.nights < 1:
            raise InvalidRangeError()
        return self

    @classmethod
    def between(cls, check_in: DateLike, check_out: DateLike) -> "DateRange":
        start = to_date(check_in, "check-in")
        end = to_date(check_out, "check-out")
        if nights(start, end) < 1:
            raise InvalidRangeError()
        return cls(check_in=start, check_out=end)

    @property
    def nights(self) -> int:
        return (self.check_out - self.check_in).days

    def to_dict(self) -> dict[str, str | int]:
        return {
            "check_in": self.check_in.isoformat(),
            "check_out": self.check_out.isoformat(),
            "nights": self.nights,
        }


def ensure_not_past(date_range: DateRange, today: date) -> None:
    """Reject stays that start before ``today``."""
    if date_range.check_in < today:
        raise InvalidRangeError("Check-in date cannot be in the past")
