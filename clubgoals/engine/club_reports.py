"""Club report assemblers: leaderboards, champions and per-member weekly trend.

Every member is scored independently and concurrently; ranking waits for
all of them. Scores are recomputed per call and per window, never cached.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timedelta
from typing import Sequence

from clubgoals.engine.consistency import score_habits
from clubgoals.engine.errors import EngineError, NotClubMember
from clubgoals.engine.evaluator import sum_quantity
from clubgoals.engine.models import (
    AverageCompletionByType,
    Champion,
    ClubGoalsReport,
    ClubMember,
    Goal,
    GoalType,
    LeaderboardEntry,
    LeaderboardReport,
    MemberEntryCount,
    MemberStanding,
    MemberWeekScore,
    MemberWeekTrend,
    ParticipationWeek,
    TopPerformers,
)
from clubgoals.engine.periods import Interval, iter_weeks, period_boundaries, utc_now
from clubgoals.engine.ranking import rank_and_weight
from clubgoals.engine.reports import tally_goal_types, trailing_window_start
from clubgoals.engine.store import GoalStore

logger = logging.getLogger(__name__)


async def require_membership(store: GoalStore, club_id: int, actor_id: str) -> None:
    if not await store.is_club_member(club_id, actor_id):
        raise NotClubMember(club_id, actor_id)


def _of_type(goals: Sequence[Goal], goal_type: GoalType) -> list[Goal]:
    return [g for g in goals if g.type == goal_type]


def _pct(part: float, whole: float) -> float:
    return (part / whole) * 100.0 if whole > 0 else 0.0


async def metric_progress(
    store: GoalStore,
    actor_id: str,
    goals: Sequence[Goal],
    now: datetime,
) -> float:
    """Average % of target reached in each metric goal's current period (uncapped)."""
    progresses: list[float] = []
    for goal in goals:
        if not goal.cadence:
            continue
        try:
            interval = period_boundaries(goal.cadence, now)
        except EngineError as exc:
            logger.warning("Skipping metric goal %s for user %s: %s", goal.id, actor_id, exc)
            continue
        entries = await store.fetch_entries(actor_id, goal.id, interval.start, interval.end)
        target = goal.target_quantity or 1.0
        progresses.append(_pct(sum_quantity(entries), target))
    return sum(progresses) / len(progresses) if progresses else 0.0


async def member_standing(
    store: GoalStore,
    member: ClubMember,
    goals: Sequence[Goal],
    range_start: datetime | None,
    range_end: datetime | None,
    now: datetime,
) -> MemberStanding:
    """Score one member's goals for the window."""
    habits = _of_type(goals, GoalType.habit)
    metrics = _of_type(goals, GoalType.metric)
    milestone_goals = _of_type(goals, GoalType.milestone)
    one_time = _of_type(goals, GoalType.one_time)

    scores = await score_habits(
        store, member.user_id, habits, range_start, range_end, include_streak=True, now=now
    )
    weighted = rank_and_weight(scores)
    streak = max(
        ((s.consistency.streak or 0) for s in scores if s.consistency is not None),
        default=0,
    )

    milestones = [m for g in milestone_goals for m in g.milestones]
    milestones_done = sum(1 for m in milestones if m.done)
    one_time_done = sum(1 for g in one_time if g.completed)

    return MemberStanding(
        user_id=member.user_id,
        user=member.profile,
        consistency_score=weighted.weighted_average,
        streak=streak,
        habit_goal_count=len(habits),
        metric_progress=await metric_progress(store, member.user_id, metrics, now),
        metric_goal_count=len(metrics),
        milestones_completed=milestones_done,
        milestones_total=len(milestones),
        milestone_completion_rate=_pct(milestones_done, len(milestones)),
        one_time_completed=one_time_done,
        one_time_total=len(one_time),
        one_time_completion_rate=_pct(one_time_done, len(one_time)),
    )


def rank_leaderboard(
    standings: Sequence[MemberStanding],
) -> tuple[list[LeaderboardEntry], list[LeaderboardEntry]]:
    """(by consistency score, by streak), both descending with stable ties."""
    entries = [
        LeaderboardEntry(
            user_id=s.user_id,
            user=s.user,
            consistency_score=s.consistency_score,
            streak=s.streak,
        )
        for s in standings
    ]
    by_score = sorted(entries, key=lambda e: -e.consistency_score)
    leaderboard = [e.model_copy(update={"rank": i + 1}) for i, e in enumerate(by_score)]
    by_streak = sorted(leaderboard, key=lambda e: -e.streak)
    streak_leaderboard = [e.model_copy(update={"rank": i + 1}) for i, e in enumerate(by_streak)]
    return leaderboard, streak_leaderboard


def _champion(standings: Sequence[MemberStanding], field: str) -> Champion | None:
    if not standings:
        return None
    # max() keeps the first of equal values
    best = max(standings, key=lambda s: getattr(s, field))
    return Champion(user_id=best.user_id, value=getattr(best, field), user=best.user)


def top_performers(
    standings: Sequence[MemberStanding],
    streak_leaderboard: Sequence[LeaderboardEntry],
) -> TopPerformers:
    streak_champion = None
    if streak_leaderboard:
        lead = streak_leaderboard[0]
        streak_champion = Champion(user_id=lead.user_id, value=lead.streak, user=lead.user)
    # members without a habit goal stay on the leaderboard but win nothing
    contenders = [s for s in standings if s.habit_goal_count > 0]
    return TopPerformers(
        most_consistent=_champion(contenders, "consistency_score"),
        top_metric_earner=_champion(contenders, "metric_progress"),
        milestone_master=_champion(contenders, "milestones_completed"),
        streak_champion=streak_champion,
    )


async def _club_standings(
    store: GoalStore,
    club_id: int,
    range_start: datetime,
    range_end: datetime,
    now: datetime,
) -> tuple[list[ClubMember], list[list[Goal]], list[MemberStanding]]:
    members = await store.fetch_club_members(club_id)
    member_goals = list(
        await asyncio.gather(*(store.fetch_goals(club_id, m.user_id) for m in members))
    )
    standings = list(
        await asyncio.gather(
            *(
                member_standing(store, member, goals, range_start, range_end, now)
                for member, goals in zip(members, member_goals)
            )
        )
    )
    return members, member_goals, standings


async def leaderboard_report(
    store: GoalStore,
    club_id: int,
    actor_id: str,
    range_start: datetime | None = None,
    range_end: datetime | None = None,
    now: datetime | None = None,
) -> LeaderboardReport:
    """Consistency and streak leaderboards plus champions (default: last 8 weeks)."""
    await require_membership(store, club_id, actor_id)
    now = now or utc_now()
    range_start = range_start or trailing_window_start(now)
    range_end = range_end or now

    _, _, standings = await _club_standings(store, club_id, range_start, range_end, now)
    leaderboard, streak_leaderboard = rank_leaderboard(standings)
    logger.debug("leaderboard club=%s members=%d", club_id, len(standings))
    return LeaderboardReport(
        leaderboard=leaderboard,
        streak_leaderboard=streak_leaderboard,
        top_performers=top_performers(standings, streak_leaderboard),
    )


async def _member_week_score(
    store: GoalStore,
    member: ClubMember,
    habits: Sequence[Goal],
    week: Interval,
    now: datetime,
) -> MemberWeekScore:
    rate = 0.0
    if habits:
        scores = await score_habits(
            store,
            member.user_id,
            habits,
            week.start,
            week.end - timedelta(microseconds=1),  # scoring ranges include their end
            include_streak=False,
            now=now,
        )
        rate = rank_and_weight(scores).weighted_average
    return MemberWeekScore(user_id=member.user_id, user=member.profile, completion_rate=rate)


async def weekly_trend_by_member(
    store: GoalStore,
    members: Sequence[ClubMember],
    member_goals: Sequence[Sequence[Goal]],
    weeks: Sequence[Interval],
    now: datetime,
) -> list[MemberWeekTrend]:
    """Each member's weighted habit consistency restricted to each week."""
    trend = []
    for week in weeks:
        scores = await asyncio.gather(
            *(
                _member_week_score(store, member, _of_type(goals, GoalType.habit), week, now)
                for member, goals in zip(members, member_goals)
            )
        )
        trend.append(MemberWeekTrend(week_start=week.start, week_end=week.end, members=list(scores)))
    return trend


async def _member_entry_count(
    store: GoalStore,
    member: ClubMember,
    goals: Sequence[Goal],
    week: Interval,
) -> MemberEntryCount:
    batches = await asyncio.gather(
        *(store.fetch_entries(member.user_id, g.id, week.start, week.end) for g in goals)
    )
    return MemberEntryCount(
        user_id=member.user_id,
        user=member.profile,
        entry_count=sum(len(b) for b in batches),
    )


async def participation_heatmap(
    store: GoalStore,
    members: Sequence[ClubMember],
    member_goals: Sequence[Sequence[Goal]],
    weeks: Sequence[Interval],
) -> list[ParticipationWeek]:
    """Entry counts per member per week, across all of their goals."""
    heatmap = []
    for week in weeks:
        counts = await asyncio.gather(
            *(
                _member_entry_count(store, member, goals, week)
                for member, goals in zip(members, member_goals)
            )
        )
        heatmap.append(ParticipationWeek(week_start=week.start, week_end=week.end, members=list(counts)))
    return heatmap


def average_completion_by_type(standings: Sequence[MemberStanding]) -> AverageCompletionByType:
    if not standings:
        return AverageCompletionByType()
    n = len(standings)
    return AverageCompletionByType(
        habit=sum(s.consistency_score for s in standings) / n,
        metric=sum(s.metric_progress for s in standings) / n,
        milestone=sum(s.milestone_completion_rate for s in standings) / n,
        one_time=sum(s.one_time_completion_rate for s in standings) / n,
    )


async def club_goals_report(
    store: GoalStore,
    club_id: int,
    actor_id: str,
    range_start: datetime | None = None,
    range_end: datetime | None = None,
    include_analytics: bool = False,
    now: datetime | None = None,
) -> ClubGoalsReport:
    """Full club goals screen: leaderboards, weekly member trend, champions.

    `include_analytics` adds per-type averages, the participation heatmap and
    the club-wide goal type tally, which cost one entry fetch per goal per week.
    """
    await require_membership(store, club_id, actor_id)
    now = now or utc_now()
    range_start = range_start or trailing_window_start(now)
    range_end = range_end or now

    members, member_goals, standings = await _club_standings(
        store, club_id, range_start, range_end, now
    )
    leaderboard, streak_leaderboard = rank_leaderboard(standings)
    weeks = list(iter_weeks(range_start, range_end))

    report = ClubGoalsReport(
        leaderboard=leaderboard,
        streak_leaderboard=streak_leaderboard,
        weekly_trend_by_member=await weekly_trend_by_member(store, members, member_goals, weeks, now),
        top_performers=top_performers(standings, streak_leaderboard),
    )

    if include_analytics:
        report.average_completion_by_type = average_completion_by_type(standings)
        report.participation_heatmap = await participation_heatmap(store, members, member_goals, weeks)
        report.club_goal_type_distribution = tally_goal_types(
            (g for goals in member_goals for g in goals), include_completed=True
        )

    return report
