"""Goals HTTP router: personal and club reports plus live goal progress."""

from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from clubgoals.auth import verify_api_key
from clubgoals.db import get_session
from clubgoals.engine import club_reports, reports
from clubgoals.engine.connector import SqlGoalStore
from clubgoals.engine.evaluator import evaluate_goal_progress
from clubgoals.engine.models import (
    ClubGoalsReport,
    GoalEvaluation,
    GoalTypeDistribution,
    HabitConsistencyReport,
    HabitStreakReport,
    LeaderboardReport,
    PersonalGoalsReport,
    WeeklyGoalsBreakdownReport,
    WeeklyTrendReport,
)
from clubgoals.engine.periods import as_utc
from clubgoals.engine.store import GoalStore

router = APIRouter(tags=["goals"])


async def get_store(session: AsyncSession = Depends(get_session)) -> GoalStore:
    return SqlGoalStore(session)


def _parse_instant(value: str | None, name: str) -> datetime | None:
    """ISO date or datetime; bare dates are midnight UTC."""
    if value is None:
        return None
    try:
        return as_utc(datetime.fromisoformat(value))
    except ValueError:
        raise HTTPException(status_code=422, detail=f"Invalid date for '{name}': {value}")


def _window(start_date: str | None, end_date: str | None) -> tuple[datetime | None, datetime | None]:
    return _parse_instant(start_date, "startDate"), _parse_instant(end_date, "endDate")


# ---------------------------------------------------------------------------
# /reports/*
# ---------------------------------------------------------------------------


@router.get("/reports/habit-consistency", response_model=HabitConsistencyReport)
async def habit_consistency(
    store: GoalStore = Depends(get_store),
    _: str = Depends(verify_api_key),
    user_id: str = Query(..., alias="userId"),
    club_id: int = Query(..., alias="clubId"),
    start_date: str | None = Query(default=None, alias="startDate"),
    end_date: str | None = Query(default=None, alias="endDate"),
) -> HabitConsistencyReport:
    start, end = _window(start_date, end_date)
    return await reports.habit_consistency_report(store, user_id, club_id, start, end)


@router.get("/reports/weekly-trend", response_model=WeeklyTrendReport)
async def weekly_trend(
    store: GoalStore = Depends(get_store),
    _: str = Depends(verify_api_key),
    user_id: str = Query(..., alias="userId"),
    club_id: int = Query(..., alias="clubId"),
    start_date: str | None = Query(default=None, alias="startDate"),
    end_date: str | None = Query(default=None, alias="endDate"),
) -> WeeklyTrendReport:
    start, end = _window(start_date, end_date)
    return await reports.weekly_trend_report(store, user_id, club_id, start, end)


@router.get("/reports/habit-streak", response_model=HabitStreakReport)
async def habit_streak(
    store: GoalStore = Depends(get_store),
    _: str = Depends(verify_api_key),
    user_id: str = Query(..., alias="userId"),
    club_id: int = Query(..., alias="clubId"),
    start_date: str | None = Query(default=None, alias="startDate"),
    end_date: str | None = Query(default=None, alias="endDate"),
) -> HabitStreakReport:
    start, end = _window(start_date, end_date)
    return await reports.habit_streak_report(store, user_id, club_id, start, end)


@router.get("/reports/leaderboard", response_model=LeaderboardReport)
async def leaderboard(
    store: GoalStore = Depends(get_store),
    _: str = Depends(verify_api_key),
    user_id: str = Query(..., alias="userId"),
    club_id: int = Query(..., alias="clubId"),
    start_date: str | None = Query(default=None, alias="startDate"),
    end_date: str | None = Query(default=None, alias="endDate"),
) -> LeaderboardReport:
    start, end = _window(start_date, end_date)
    return await club_reports.leaderboard_report(store, club_id, user_id, start, end)


@router.get("/reports/goal-type-distribution", response_model=GoalTypeDistribution)
async def goal_type_distribution(
    store: GoalStore = Depends(get_store),
    _: str = Depends(verify_api_key),
    club_id: int = Query(..., alias="clubId"),
    user_id: str | None = Query(default=None, alias="userId"),
    for_club: bool = Query(default=False, alias="forClub"),
) -> GoalTypeDistribution:
    if user_id is None and not for_club:
        raise HTTPException(status_code=400, detail="userId is required unless forClub=true")
    return await reports.goal_type_distribution_report(store, club_id, user_id, for_club)


@router.get("/reports/weekly-goals-breakdown", response_model=WeeklyGoalsBreakdownReport)
async def weekly_goals_breakdown(
    store: GoalStore = Depends(get_store),
    _: str = Depends(verify_api_key),
    user_id: str = Query(..., alias="userId"),
    club_id: int = Query(..., alias="clubId"),
    start_date: str | None = Query(default=None, alias="startDate"),
    end_date: str | None = Query(default=None, alias="endDate"),
) -> WeeklyGoalsBreakdownReport:
    start, end = _window(start_date, end_date)
    return await reports.weekly_goals_breakdown_report(store, user_id, club_id, start, end)


@router.get("/reports/personal", response_model=PersonalGoalsReport)
async def personal(
    store: GoalStore = Depends(get_store),
    _: str = Depends(verify_api_key),
    user_id: str = Query(..., alias="userId"),
    club_id: int = Query(..., alias="clubId"),
    start_date: str | None = Query(default=None, alias="startDate"),
    end_date: str | None = Query(default=None, alias="endDate"),
) -> PersonalGoalsReport:
    start, end = _window(start_date, end_date)
    return await reports.personal_goals_report(store, user_id, club_id, start, end)


# ---------------------------------------------------------------------------
# /clubs/{club_id}/goals-report
# ---------------------------------------------------------------------------


@router.get("/clubs/{club_id}/goals-report", response_model=ClubGoalsReport)
async def club_goals(
    club_id: int,
    store: GoalStore = Depends(get_store),
    _: str = Depends(verify_api_key),
    user_id: str = Query(..., alias="userId"),
    start_date: str | None = Query(default=None, alias="startDate"),
    end_date: str | None = Query(default=None, alias="endDate"),
    include_analytics: bool = Query(default=False, alias="includeAnalytics"),
) -> ClubGoalsReport:
    start, end = _window(start_date, end_date)
    return await club_reports.club_goals_report(
        store, club_id, user_id, start, end, include_analytics=include_analytics
    )


# ---------------------------------------------------------------------------
# /goals/{goal_id}/progress
# ---------------------------------------------------------------------------


@router.get("/goals/{goal_id}/progress", response_model=GoalEvaluation)
async def goal_progress(
    goal_id: int,
    store: GoalStore = Depends(get_store),
    _: str = Depends(verify_api_key),
    user_id: str = Query(..., alias="userId"),
    period: str = Query(default="current", description="current | all | YYYY-MM-DD,YYYY-MM-DD"),
) -> GoalEvaluation:
    return await evaluate_goal_progress(store, user_id, goal_id, period)
