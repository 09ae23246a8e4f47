"""Goal evaluator: did a goal's entries meet its target?

Pure functions over canonical records, plus one async helper that pulls the
entries for a live progress check through the store.
"""

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone
from typing import Iterable, Sequence

from clubgoals.engine.errors import GoalNotFound, InvalidMeasure, InvalidPeriod, MissingCadence
from clubgoals.engine.models import Goal, GoalEntry, GoalEvaluation, GoalType, Measure
from clubgoals.engine.periods import as_utc, period_boundaries, utc_now
from clubgoals.engine.store import GoalStore

Window = tuple[datetime | None, datetime | None]


def sum_quantity(entries: Iterable[GoalEntry]) -> float:
    """Σ quantity, missing quantities count as 0."""
    return sum((e.quantity or 0.0) for e in entries)


def _meets(actual: float, target: float | None) -> bool:
    # A goal with no target can never be met.
    if target is None:
        return False
    return actual >= target


def goal_satisfied(goal: Goal, entries: Sequence[GoalEntry]) -> bool:
    """Satisfaction verdict for `entries` already restricted to one interval."""
    if goal.type == GoalType.milestone:
        return bool(goal.milestones) and all(m.done for m in goal.milestones)
    if goal.type == GoalType.one_time:
        return goal.completed

    if goal.measure == Measure.count:
        return _meets(len(entries), goal.target_count)
    if goal.measure == Measure.sum:
        return _meets(sum_quantity(entries), goal.target_quantity)
    raise InvalidMeasure(goal.measure)


def _parse_day(value: str, period: str) -> date:
    try:
        return date.fromisoformat(value.strip())
    except ValueError:
        raise InvalidPeriod(period) from None


def resolve_window(goal: Goal, period: str = "current", now: datetime | None = None) -> Window:
    """Map a period token to an entry window.

    - ``current``: the goal's cadence interval containing `now`
    - ``all``: unbounded
    - ``YYYY-MM-DD,YYYY-MM-DD``: first day 00:00 UTC through the end of the last day
    """
    if period == "current":
        if not goal.cadence:
            raise MissingCadence(goal.id)
        interval = period_boundaries(goal.cadence, now)
        return interval.start, interval.end

    if period == "all":
        return None, None

    if "," in period:
        start_str, end_str = period.split(",", 1)
        start_day = _parse_day(start_str, period)
        end_day = _parse_day(end_str, period)
        start = datetime.combine(start_day, datetime.min.time(), tzinfo=timezone.utc)
        end = datetime.combine(end_day + timedelta(days=1), datetime.min.time(), tzinfo=timezone.utc)
        return start, end

    raise InvalidPeriod(period)


def entries_within(
    entries: Iterable[GoalEntry],
    start: datetime | None,
    end: datetime | None,
) -> list[GoalEntry]:
    """Half-open filter; a missing bound is open on that side."""
    result = []
    for entry in entries:
        occurred = as_utc(entry.occurred_at)
        if start is not None and occurred < start:
            continue
        if end is not None and occurred >= end:
            continue
        result.append(entry)
    return result


def evaluate_goal(
    goal: Goal,
    entries: Sequence[GoalEntry],
    period: str = "current",
    now: datetime | None = None,
) -> GoalEvaluation:
    """Progress of one goal for a period token.

    Milestone and one-time goals ignore `period` and `entries`.
    """
    if goal.type == GoalType.milestone:
        done = sum(1 for m in goal.milestones if m.done)
        return GoalEvaluation(
            completed=goal_satisfied(goal, entries),
            actual=done,
            target=len(goal.milestones),
        )

    if goal.type == GoalType.one_time:
        return GoalEvaluation(
            completed=goal.completed,
            actual=1 if goal.completed else 0,
            target=1,
        )

    start, end = resolve_window(goal, period, now)
    in_window = entries_within(entries, start, end)

    if goal.measure == Measure.count:
        return GoalEvaluation(
            completed=goal_satisfied(goal, in_window),
            actual=len(in_window),
            target=goal.target_count,
        )
    if goal.measure == Measure.sum:
        return GoalEvaluation(
            completed=goal_satisfied(goal, in_window),
            actual=sum_quantity(in_window),
            target=goal.target_quantity,
            unit=goal.unit,
        )
    raise InvalidMeasure(goal.measure)


def completion_percentage(actual: float, target: float | None) -> float:
    """actual / target as a percentage, capped at 100. 0 for a non-positive target."""
    if not target or target <= 0:
        return 0.0
    return min((actual / target) * 100.0, 100.0)


async def evaluate_goal_progress(
    store: GoalStore,
    actor_id: str,
    goal_id: int,
    period: str = "current",
    now: datetime | None = None,
) -> GoalEvaluation:
    """Live progress of a stored goal, fetching only the entries it needs."""
    goal = await store.fetch_goal(actor_id, goal_id)
    if goal is None:
        raise GoalNotFound(goal_id)

    if goal.type in (GoalType.milestone, GoalType.one_time):
        return evaluate_goal(goal, [], period, now)

    now = now or utc_now()
    start, end = resolve_window(goal, period, now)
    if start is not None and end is not None:
        entries = await store.fetch_entries(actor_id, goal_id, start, end)
    else:
        entries = await store.fetch_entries(actor_id, goal_id)
    return evaluate_goal(goal, entries, period, now)
