"""Personal report assemblers.

Each assembler fetches through a `GoalStore`, composes the evaluator,
consistency scorer and ranking, and returns a plain report model. "Now" is
read once per call and passed down, so a frozen `now` makes every report
reproducible.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timedelta
from typing import Iterable, Sequence

from clubgoals.config import settings
from clubgoals.engine.consistency import score_habits
from clubgoals.engine.errors import EngineError
from clubgoals.engine.evaluator import completion_percentage, goal_satisfied, sum_quantity
from clubgoals.engine.models import (
    Cadence,
    EntrySummary,
    Goal,
    GoalEntry,
    GoalType,
    GoalTypeDistribution,
    GoalWeekDetail,
    HabitConsistencyReport,
    HabitStreak,
    HabitStreakReport,
    Measure,
    PersonalGoalsReport,
    WeekBreakdown,
    WeeklyGoalsBreakdownReport,
    WeeklyTrendPoint,
    WeeklyTrendReport,
)
from clubgoals.engine.periods import Interval, as_utc, elapsed_weeks, period_boundaries, utc_now
from clubgoals.engine.ranking import rank_and_weight
from clubgoals.engine.store import GoalStore

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Shared helpers
# ---------------------------------------------------------------------------


def quarter_window(now: datetime) -> tuple[datetime, datetime]:
    """Current UTC quarter, end inclusive to the last microsecond."""
    quarter = period_boundaries(Cadence.quarter, now)
    return quarter.start, quarter.end - timedelta(microseconds=1)


def trailing_window_start(now: datetime) -> datetime:
    return as_utc(now) - timedelta(days=settings.default_report_window_days)


def evaluable_goals(goals: Iterable[Goal], actor_id: str | None = None) -> list[Goal]:
    """Drop goals whose definition cannot be evaluated at all."""
    usable = []
    for goal in goals:
        try:
            goal_satisfied(goal, [])
        except EngineError as exc:
            logger.warning("Skipping goal %s for user %s: %s", goal.id, actor_id, exc)
            continue
        usable.append(goal)
    return usable


async def entries_by_week(
    store: GoalStore,
    actor_id: str,
    goals: Sequence[Goal],
    weeks: Sequence[Interval],
) -> list[list[list[GoalEntry]]]:
    """Entries for every (week, goal) pair, fetched concurrently.

    Result is indexed ``[week][goal]`` in the order of the inputs.
    """
    flat = await asyncio.gather(
        *(
            store.fetch_entries(actor_id, goal.id, week.start, week.end)
            for week in weeks
            for goal in goals
        )
    )
    n = len(goals)
    return [list(flat[i * n:(i + 1) * n]) for i in range(len(weeks))]


def tally_goal_types(goals: Iterable[Goal], include_completed: bool = False) -> GoalTypeDistribution:
    """Count non-archived goals by type (completed ones only when asked)."""
    dist = GoalTypeDistribution()
    for goal in goals:
        if goal.archived or (goal.completed and not include_completed):
            continue
        if goal.type == GoalType.habit:
            dist.habit += 1
        elif goal.type == GoalType.metric:
            dist.metric += 1
        elif goal.type == GoalType.milestone:
            dist.milestone += 1
        elif goal.type == GoalType.one_time:
            dist.one_time += 1
    return dist


# ---------------------------------------------------------------------------
# Habit consistency
# ---------------------------------------------------------------------------


async def habit_consistency_report(
    store: GoalStore,
    actor_id: str,
    club_id: int,
    range_start: datetime | None = None,
    range_end: datetime | None = None,
    now: datetime | None = None,
) -> HabitConsistencyReport:
    """Weighted consistency across a member's habits (default: current quarter)."""
    now = now or utc_now()
    q_start, q_end = quarter_window(now)
    range_start = range_start or q_start
    range_end = range_end or q_end

    goals = await store.fetch_goals(club_id, actor_id, goal_type=GoalType.habit.value)
    scores = await score_habits(
        store, actor_id, goals, range_start, range_end, include_streak=False, now=now
    )
    weighted = rank_and_weight(scores)
    logger.debug(
        "habit consistency user=%s club=%s habits=%d score=%.1f",
        actor_id, club_id, len(goals), weighted.weighted_average,
    )
    return HabitConsistencyReport(habit_consistency=weighted)


# ---------------------------------------------------------------------------
# Habit streaks
# ---------------------------------------------------------------------------


async def habit_streak_report(
    store: GoalStore,
    actor_id: str,
    club_id: int,
    range_start: datetime | None = None,
    range_end: datetime | None = None,
    now: datetime | None = None,
) -> HabitStreakReport:
    """Current streak per habit and the longest of them."""
    now = now or utc_now()
    goals = await store.fetch_goals(club_id, actor_id, goal_type=GoalType.habit.value)
    if not goals:
        return HabitStreakReport()

    scores = await score_habits(
        store, actor_id, goals, range_start, range_end or now, include_streak=True, now=now
    )
    streaks = [
        HabitStreak(
            goal_id=s.goal.id,
            title=s.goal.title,
            streak=(s.consistency.streak or 0) if s.consistency else 0,
        )
        for s in scores
    ]
    return HabitStreakReport(
        longest_streak=max((h.streak for h in streaks), default=0),
        habit_streaks=streaks,
    )


# ---------------------------------------------------------------------------
# Weekly trend / breakdown
# ---------------------------------------------------------------------------


async def _weekly_inputs(
    store: GoalStore,
    actor_id: str,
    club_id: int,
    range_start: datetime | None,
    range_end: datetime | None,
    now: datetime,
) -> tuple[list[Goal], list[Interval], list[list[list[GoalEntry]]]]:
    range_start = range_start or trailing_window_start(now)
    range_end = range_end or now

    goals = await store.fetch_goals(club_id, actor_id, cadence=Cadence.week.value)
    goals = evaluable_goals(goals, actor_id)
    if not goals:
        return [], [], []

    weeks = elapsed_weeks(range_start, range_end, now)
    return goals, weeks, await entries_by_week(store, actor_id, goals, weeks)


async def weekly_trend_report(
    store: GoalStore,
    actor_id: str,
    club_id: int,
    range_start: datetime | None = None,
    range_end: datetime | None = None,
    now: datetime | None = None,
) -> WeeklyTrendReport:
    """Fraction of weekly-cadence goals met in each fully elapsed week.

    Fewer than `settings.trend_min_weeks` weeks yields an empty series.
    """
    now = now or utc_now()
    goals, weeks, entries = await _weekly_inputs(store, actor_id, club_id, range_start, range_end, now)

    points: list[WeeklyTrendPoint] = []
    for week, per_goal in zip(weeks, entries):
        completed = sum(1 for goal, batch in zip(goals, per_goal) if goal_satisfied(goal, batch))
        total = len(goals)
        points.append(
            WeeklyTrendPoint(
                week_start=week.start,
                week_end=week.end,
                completion_rate=(completed / total) * 100.0 if total else 0.0,
                completed=completed,
                total=total,
            )
        )

    if len(points) < settings.trend_min_weeks:
        return WeeklyTrendReport()
    return WeeklyTrendReport(weekly_trend=points)


def _goal_week_detail(goal: Goal, entries: Sequence[GoalEntry]) -> GoalWeekDetail:
    actual_count = 0
    actual_quantity = 0.0
    if goal.measure == Measure.count:
        actual_count = len(entries)
        pct = completion_percentage(actual_count, goal.target_count)
    else:
        actual_quantity = sum_quantity(entries)
        pct = completion_percentage(actual_quantity, goal.target_quantity)

    return GoalWeekDetail(
        goal_id=goal.id,
        title=goal.title,
        type=goal.type,
        measure=goal.measure,
        target_count=goal.target_count,
        target_quantity=goal.target_quantity,
        unit=goal.unit,
        actual_count=actual_count,
        actual_quantity=actual_quantity,
        completed=goal_satisfied(goal, entries),
        completion_percentage=pct,
        entries=[
            EntrySummary(
                day=as_utc(e.occurred_at).date(),
                quantity=e.quantity or 1.0,
                occurred_at=e.occurred_at,
            )
            for e in entries
        ],
    )


async def weekly_goals_breakdown_report(
    store: GoalStore,
    actor_id: str,
    club_id: int,
    range_start: datetime | None = None,
    range_end: datetime | None = None,
    now: datetime | None = None,
) -> WeeklyGoalsBreakdownReport:
    """Goal-by-goal detail for each fully elapsed week."""
    now = now or utc_now()
    goals, weeks, entries = await _weekly_inputs(store, actor_id, club_id, range_start, range_end, now)

    breakdown: list[WeekBreakdown] = []
    for week, per_goal in zip(weeks, entries):
        details = [_goal_week_detail(goal, batch) for goal, batch in zip(goals, per_goal)]
        completed = sum(1 for d in details if d.completed)
        total = len(details)
        breakdown.append(
            WeekBreakdown(
                week_start=week.start,
                week_end=week.end,
                goals=details,
                overall_completion_rate=round((completed / total) * 100.0, 1) if total else 0.0,
                completed=completed,
                total=total,
            )
        )
    return WeeklyGoalsBreakdownReport(weekly_breakdown=breakdown)


# ---------------------------------------------------------------------------
# Goal type distribution / combined personal report
# ---------------------------------------------------------------------------


async def goal_type_distribution_report(
    store: GoalStore,
    club_id: int,
    actor_id: str | None = None,
    for_club: bool = False,
) -> GoalTypeDistribution:
    """Open goals by type, for one member or (`for_club`) the whole club."""
    if not for_club and actor_id is None:
        raise ValueError("actor_id is required unless for_club is set")
    goals = await store.fetch_goals(club_id, None if for_club else actor_id)
    return tally_goal_types(goals)


async def personal_goals_report(
    store: GoalStore,
    actor_id: str,
    club_id: int,
    range_start: datetime | None = None,
    range_end: datetime | None = None,
    now: datetime | None = None,
) -> PersonalGoalsReport:
    """Consistency, weekly trend and goal mix for one member's dashboard.

    Both series share one window, the current quarter unless given.
    """
    now = now or utc_now()
    q_start, q_end = quarter_window(now)
    range_start = range_start or q_start
    range_end = range_end or q_end
    consistency, trend, distribution = await asyncio.gather(
        habit_consistency_report(store, actor_id, club_id, range_start, range_end, now),
        weekly_trend_report(store, actor_id, club_id, range_start, range_end, now),
        goal_type_distribution_report(store, club_id, actor_id),
    )
    return PersonalGoalsReport(
        habit_consistency=consistency.habit_consistency,
        weekly_trend=trend.weekly_trend,
        goal_type_distribution=distribution,
    )
