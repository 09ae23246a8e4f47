"""Consistency scorer: walks a habit's cadence backwards from now.

Only fully elapsed intervals are scored: a habit due today is neither a miss
nor a win until today's interval has ended.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import Sequence

from clubgoals.config import settings
from clubgoals.engine.errors import EngineError
from clubgoals.engine.evaluator import goal_satisfied
from clubgoals.engine.models import ConsistencyResult, Goal, GoalType, HabitScore, Period
from clubgoals.engine.periods import (
    EPOCH,
    Interval,
    as_utc,
    period_boundaries,
    previous_period_boundaries,
    utc_now,
)
from clubgoals.engine.store import GoalStore

logger = logging.getLogger(__name__)


def scoring_intervals(
    cadence: str,
    range_start: datetime | None,
    range_end: datetime | None,
    now: datetime,
    max_periods: int | None = None,
) -> list[tuple[int, Interval]]:
    """Fully elapsed intervals overlapping the range, most recent first.

    Each item is ``(steps_back_from_current, interval)``. The walk stops once
    an interval starts before `range_start` (the epoch when missing) or after
    `max_periods` steps, whichever comes first.
    """
    limit = settings.max_lookback_periods if max_periods is None else max_periods
    now = as_utc(now)
    floor = as_utc(range_start) if range_start is not None else EPOCH
    effective_end = now
    if range_end is not None and as_utc(range_end) < now:
        effective_end = as_utc(range_end)

    picked: list[tuple[int, Interval]] = []
    interval = period_boundaries(cadence, now)
    index = 0
    while interval.start >= floor and index < limit:
        overlaps = interval.end > floor and interval.start <= effective_end
        if overlaps and interval.end <= now:
            picked.append((index, interval))
        interval = previous_period_boundaries(cadence, interval.start)
        index += 1
    return picked


def consistency_rate(periods: Sequence[Period]) -> float:
    """Percentage of completed periods; 0 when there are none."""
    if not periods:
        return 0.0
    completed = sum(1 for p in periods if p.completed)
    return (completed / len(periods)) * 100.0


def current_streak(periods: Sequence[Period]) -> int:
    """Consecutive completed periods counted from the most recent one."""
    streak = 0
    for period in periods:
        if not period.completed:
            break
        streak += 1
    return streak


async def habit_consistency(
    store: GoalStore,
    actor_id: str,
    goal: Goal,
    range_start: datetime | None = None,
    range_end: datetime | None = None,
    include_streak: bool = True,
    now: datetime | None = None,
    max_periods: int | None = None,
) -> ConsistencyResult | None:
    """Period outcomes, consistency rate and streak for one habit goal.

    Returns None for goals that are not habits or have no cadence.
    """
    if goal.type != GoalType.habit or not goal.cadence:
        return None

    now = now or utc_now()
    intervals = scoring_intervals(goal.cadence, range_start, range_end, now, max_periods)
    batches = await asyncio.gather(
        *(store.fetch_entries(actor_id, goal.id, iv.start, iv.end) for _, iv in intervals)
    )

    periods = [
        Period(index=index, start=iv.start, end=iv.end, completed=goal_satisfied(goal, entries))
        for (index, iv), entries in zip(intervals, batches)
    ]
    return ConsistencyResult(
        consistency_rate=consistency_rate(periods),
        streak=current_streak(periods) if include_streak else None,
        periods=periods,
    )


async def score_habits(
    store: GoalStore,
    actor_id: str,
    goals: Sequence[Goal],
    range_start: datetime | None = None,
    range_end: datetime | None = None,
    include_streak: bool = True,
    now: datetime | None = None,
) -> list[HabitScore]:
    """Score many habit goals concurrently.

    A goal that fails evaluation scores as absent; store errors propagate.
    """
    now = now or utc_now()

    async def _score(goal: Goal) -> HabitScore:
        try:
            result = await habit_consistency(
                store, actor_id, goal, range_start, range_end, include_streak, now
            )
        except EngineError as exc:
            logger.warning("Skipping goal %s for user %s: %s", goal.id, actor_id, exc)
            result = None
        return HabitScore(
            goal=goal,
            consistency_rate=result.consistency_rate if result else 0.0,
            consistency=result,
        )

    return list(await asyncio.gather(*(_score(g) for g in goals)))
