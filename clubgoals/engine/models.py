"""Canonical goal records and report contracts: Pydantic v2 models."""

from __future__ import annotations

from datetime import date, datetime
from enum import Enum

from pydantic import BaseModel, Field


class GoalType(str, Enum):
    habit = "habit"
    metric = "metric"
    milestone = "milestone"
    one_time = "one_time"


class Measure(str, Enum):
    count = "count"
    sum = "sum"


class Cadence(str, Enum):
    day = "day"
    week = "week"
    month = "month"
    quarter = "quarter"


# ---------------------------------------------------------------------------
# Canonical records (produced by connector normalization)
# ---------------------------------------------------------------------------


class Milestone(BaseModel):
    id: int
    goal_id: int | None = None
    title: str = ""
    done: bool = False
    done_at: datetime | None = None
    order: int = 0


class Goal(BaseModel):
    id: int
    user_id: str
    club_id: int
    title: str = ""
    type: GoalType
    # Kept as raw strings: a corrupt value loads, then fails at evaluation.
    measure: str | None = None  # "count" | "sum"
    cadence: str | None = None  # "day" | "week" | "month" | "quarter"
    target_count: int | None = None
    target_quantity: float | None = None
    unit: str | None = None
    archived: bool = False
    completed: bool = False
    created_at: datetime | None = None
    milestones: list[Milestone] = Field(default_factory=list)


class GoalEntry(BaseModel):
    id: int | None = None
    goal_id: int
    user_id: str
    occurred_at: datetime
    quantity: float | None = None


class MemberProfile(BaseModel):
    uid: str
    email: str | None = None
    display_name: str | None = None
    photo_url: str | None = None


class ClubMember(BaseModel):
    user_id: str
    profile: MemberProfile


# ---------------------------------------------------------------------------
# Evaluation / scoring results
# ---------------------------------------------------------------------------


class Period(BaseModel):
    index: int  # steps back from the current interval; ordering only
    start: datetime
    end: datetime
    completed: bool


class ConsistencyResult(BaseModel):
    consistency_rate: float = 0.0  # 0–100
    streak: int | None = None  # None when not requested
    periods: list[Period] = Field(default_factory=list)  # most recent first


class GoalEvaluation(BaseModel):
    completed: bool
    actual: int | float
    target: int | float | None = None
    unit: str | None = None


class HabitScore(BaseModel):
    goal: Goal
    consistency_rate: float = 0.0
    consistency: ConsistencyResult | None = None


class HabitDetail(BaseModel):
    goal_id: int
    title: str
    habit_position: int
    weight: float
    consistency_rate: float


class WeightedConsistency(BaseModel):
    weighted_average: float = 0.0
    habit_details: list[HabitDetail] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Personal reports
# ---------------------------------------------------------------------------


class HabitConsistencyReport(BaseModel):
    habit_consistency: WeightedConsistency


class HabitStreak(BaseModel):
    goal_id: int
    title: str
    streak: int = 0


class HabitStreakReport(BaseModel):
    longest_streak: int = 0
    habit_streaks: list[HabitStreak] = Field(default_factory=list)


class WeeklyTrendPoint(BaseModel):
    week_start: datetime
    week_end: datetime
    completion_rate: float
    completed: int
    total: int


class WeeklyTrendReport(BaseModel):
    weekly_trend: list[WeeklyTrendPoint] = Field(default_factory=list)


class EntrySummary(BaseModel):
    day: date
    quantity: float
    occurred_at: datetime


class GoalWeekDetail(BaseModel):
    goal_id: int
    title: str
    type: GoalType
    measure: str | None = None
    target_count: int | None = None
    target_quantity: float | None = None
    unit: str | None = None
    actual_count: int = 0
    actual_quantity: float = 0.0
    completed: bool = False
    completion_percentage: float = 0.0  # capped at 100
    entries: list[EntrySummary] = Field(default_factory=list)


class WeekBreakdown(BaseModel):
    week_start: datetime
    week_end: datetime
    goals: list[GoalWeekDetail] = Field(default_factory=list)
    overall_completion_rate: float = 0.0
    completed: int = 0
    total: int = 0


class WeeklyGoalsBreakdownReport(BaseModel):
    weekly_breakdown: list[WeekBreakdown] = Field(default_factory=list)


class GoalTypeDistribution(BaseModel):
    habit: int = 0
    metric: int = 0
    milestone: int = 0
    one_time: int = 0


class PersonalGoalsReport(BaseModel):
    habit_consistency: WeightedConsistency
    weekly_trend: list[WeeklyTrendPoint] = Field(default_factory=list)
    goal_type_distribution: GoalTypeDistribution


# ---------------------------------------------------------------------------
# Club reports
# ---------------------------------------------------------------------------


class MemberStanding(BaseModel):
    """Everything the club reports know about one member for a window."""

    user_id: str
    user: MemberProfile
    consistency_score: float = 0.0
    streak: int = 0
    habit_goal_count: int = 0
    metric_progress: float = 0.0  # average % of current-period metric targets
    metric_goal_count: int = 0
    milestones_completed: int = 0
    milestones_total: int = 0
    milestone_completion_rate: float = 0.0
    one_time_completed: int = 0
    one_time_total: int = 0
    one_time_completion_rate: float = 0.0


class LeaderboardEntry(BaseModel):
    user_id: str
    user: MemberProfile
    consistency_score: float = 0.0
    streak: int = 0
    rank: int = 0


class Champion(BaseModel):
    user_id: str
    value: float
    user: MemberProfile


class TopPerformers(BaseModel):
    most_consistent: Champion | None = None
    top_metric_earner: Champion | None = None
    milestone_master: Champion | None = None
    streak_champion: Champion | None = None


class LeaderboardReport(BaseModel):
    leaderboard: list[LeaderboardEntry] = Field(default_factory=list)
    streak_leaderboard: list[LeaderboardEntry] = Field(default_factory=list)
    top_performers: TopPerformers = Field(default_factory=TopPerformers)


class MemberWeekScore(BaseModel):
    user_id: str
    user: MemberProfile
    completion_rate: float = 0.0


class MemberWeekTrend(BaseModel):
    week_start: datetime
    week_end: datetime
    members: list[MemberWeekScore] = Field(default_factory=list)


class MemberEntryCount(BaseModel):
    user_id: str
    user: MemberProfile
    entry_count: int = 0


class ParticipationWeek(BaseModel):
    week_start: datetime
    week_end: datetime
    members: list[MemberEntryCount] = Field(default_factory=list)


class AverageCompletionByType(BaseModel):
    habit: float = 0.0
    metric: float = 0.0
    milestone: float = 0.0
    one_time: float = 0.0


class ClubGoalsReport(BaseModel):
    leaderboard: list[LeaderboardEntry] = Field(default_factory=list)
    streak_leaderboard: list[LeaderboardEntry] = Field(default_factory=list)
    weekly_trend_by_member: list[MemberWeekTrend] = Field(default_factory=list)
    top_performers: TopPerformers = Field(default_factory=TopPerformers)
    average_completion_by_type: AverageCompletionByType | None = None
    participation_heatmap: list[ParticipationWeek] | None = None
    club_goal_type_distribution: GoalTypeDistribution | None = None
