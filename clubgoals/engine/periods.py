"""Period calculator: cadence intervals in UTC.

Every interval is half-open ``[start, end)``. Boundaries are computed in UTC
regardless of the member's locale; naive datetimes are read as UTC.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Iterator

from dateutil.relativedelta import relativedelta

from clubgoals.engine.errors import InvalidCadence
from clubgoals.engine.models import Cadence

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

_STEPS: dict[Cadence, relativedelta] = {
    Cadence.day: relativedelta(days=1),
    Cadence.week: relativedelta(days=7),
    Cadence.month: relativedelta(months=1),
    Cadence.quarter: relativedelta(months=3),
}


@dataclass(frozen=True, slots=True)
class Interval:
    start: datetime
    end: datetime

    def contains(self, instant: datetime) -> bool:
        return self.start <= instant < self.end


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(instant: datetime) -> datetime:
    if instant.tzinfo is None:
        return instant.replace(tzinfo=timezone.utc)
    return instant.astimezone(timezone.utc)


def to_cadence(value: Cadence | str | None) -> Cadence:
    try:
        return Cadence(value)
    except ValueError:
        raise InvalidCadence(value) from None


def _midnight(instant: datetime) -> datetime:
    return instant.replace(hour=0, minute=0, second=0, microsecond=0)


def week_start(instant: datetime) -> datetime:
    """Monday 00:00 UTC of the week containing `instant` (Sunday is day 6)."""
    instant = as_utc(instant)
    return _midnight(instant) - timedelta(days=instant.weekday())


def period_boundaries(cadence: Cadence | str | None, reference: datetime | None = None) -> Interval:
    """The interval of `cadence` that contains `reference` (default: now)."""
    cad = to_cadence(cadence)
    ref = as_utc(reference) if reference is not None else utc_now()

    if cad is Cadence.day:
        start = _midnight(ref)
    elif cad is Cadence.week:
        start = week_start(ref)
    elif cad is Cadence.month:
        start = _midnight(ref.replace(day=1))
    else:
        first_month = (ref.month - 1) // 3 * 3 + 1
        start = _midnight(ref.replace(month=first_month, day=1))

    return Interval(start, start + _STEPS[cad])


def previous_period_boundaries(cadence: Cadence | str | None, current_start: datetime) -> Interval:
    """Step exactly one cadence unit back from `current_start`."""
    step = _STEPS[to_cadence(cadence)]
    start = as_utc(current_start) - step
    return Interval(start, start + step)


def iter_weeks(range_start: datetime, range_end: datetime) -> Iterator[Interval]:
    """Monday–Sunday weeks from the one containing `range_start` up to `range_end`."""
    start = week_start(range_start)
    limit = as_utc(range_end)
    while start <= limit:
        end = start + timedelta(days=7)
        yield Interval(start, end)
        start = end


def elapsed_weeks(range_start: datetime, range_end: datetime, now: datetime) -> list[Interval]:
    """Weeks of `iter_weeks` that have fully ended by `now`."""
    now = as_utc(now)
    return [week for week in iter_weeks(range_start, range_end) if week.end <= now]
