"""Tests for goal satisfaction, period windows and live progress."""

from __future__ import annotations

import pytest

from clubgoals.engine.errors import GoalNotFound, InvalidMeasure, InvalidPeriod, MissingCadence
from clubgoals.engine.evaluator import (
    completion_percentage,
    entries_within,
    evaluate_goal,
    evaluate_goal_progress,
    goal_satisfied,
    resolve_window,
    sum_quantity,
)
from tests.conftest import NOW, MemoryStore, make_entry, make_goal, make_milestones, utc


# ---------------------------------------------------------------------------
# goal_satisfied
# ---------------------------------------------------------------------------

class TestGoalSatisfied:
    def test_count_met(self):
        goal = make_goal(target_count=3)
        entries = [make_entry(goal, utc(2026, 3, 17, h)) for h in (8, 12, 20)]
        assert goal_satisfied(goal, entries) is True

    def test_count_short(self):
        goal = make_goal(target_count=3)
        entries = [make_entry(goal, utc(2026, 3, 17, h)) for h in (8, 12)]
        assert goal_satisfied(goal, entries) is False

    def test_sum_met(self):
        goal = make_goal(type="metric", measure="sum", target_quantity=10.0, cadence="week")
        entries = [make_entry(goal, utc(2026, 3, 17), 5.0), make_entry(goal, utc(2026, 3, 18), 7.5)]
        assert goal_satisfied(goal, entries) is True

    def test_sum_missing_quantity_counts_zero(self):
        goal = make_goal(measure="sum", target_quantity=5.0)
        entries = [make_entry(goal, utc(2026, 3, 17), None), make_entry(goal, utc(2026, 3, 17), 4.0)]
        assert sum_quantity(entries) == 4.0
        assert goal_satisfied(goal, entries) is False

    def test_missing_target_never_met(self):
        goal = make_goal(target_count=None)
        assert goal_satisfied(goal, [make_entry(goal, utc(2026, 3, 17))]) is False

    def test_milestone_requires_all_done(self):
        goal = make_goal(id=9501, type="milestone", measure=None, milestones=make_milestones(9501, 2, 3))
        assert goal_satisfied(goal, []) is False
        done = make_goal(id=9502, type="milestone", measure=None, milestones=make_milestones(9502, 3, 3))
        assert goal_satisfied(done, []) is True

    def test_milestone_without_milestones_not_satisfied(self):
        goal = make_goal(type="milestone", measure=None, milestones=[])
        assert goal_satisfied(goal, []) is False

    def test_one_time_follows_completed_flag(self):
        assert goal_satisfied(make_goal(type="one_time", measure=None, completed=True), []) is True
        assert goal_satisfied(make_goal(type="one_time", measure=None, completed=False), []) is False

    @pytest.mark.parametrize("measure", ["avg", None, ""])
    def test_invalid_measure(self, measure):
        goal = make_goal(measure=measure)
        with pytest.raises(InvalidMeasure):
            goal_satisfied(goal, [])


# ---------------------------------------------------------------------------
# Period windows
# ---------------------------------------------------------------------------

class TestResolveWindow:
    def test_current_uses_cadence(self):
        goal = make_goal(cadence="week")
        assert resolve_window(goal, "current", NOW) == (utc(2026, 3, 16), utc(2026, 3, 23))

    def test_current_without_cadence(self):
        goal = make_goal(cadence=None)
        with pytest.raises(MissingCadence):
            resolve_window(goal, "current", NOW)

    def test_all_is_unbounded(self):
        assert resolve_window(make_goal(), "all", NOW) == (None, None)

    def test_explicit_range_includes_last_day(self):
        start, end = resolve_window(make_goal(), "2026-03-01,2026-03-07", NOW)
        assert start == utc(2026, 3, 1)
        assert end == utc(2026, 3, 8)

    @pytest.mark.parametrize("period", ["yesterday", "2026-13-01,2026-03-07", "2026-03-01,", ""])
    def test_invalid_period(self, period):
        with pytest.raises(InvalidPeriod):
            resolve_window(make_goal(), period, NOW)

    def test_entries_within_half_open(self):
        goal = make_goal()
        inside = make_entry(goal, utc(2026, 3, 16))
        at_end = make_entry(goal, utc(2026, 3, 23))
        before = make_entry(goal, utc(2026, 3, 15, 23, 59))
        assert entries_within([inside, at_end, before], utc(2026, 3, 16), utc(2026, 3, 23)) == [inside]


# ---------------------------------------------------------------------------
# evaluate_goal
# ---------------------------------------------------------------------------

class TestEvaluateGoal:
    def test_metric_sum_over_target(self):
        goal = make_goal(
            type="metric", measure="sum", cadence="week", target_quantity=10.0, unit="miles"
        )
        entries = [make_entry(goal, utc(2026, 3, 16, 7), 5.0), make_entry(goal, utc(2026, 3, 17, 7), 7.5)]
        result = evaluate_goal(goal, entries, "current", NOW)
        assert result.completed is True
        assert result.actual == 12.5
        assert result.target == 10.0
        assert result.unit == "miles"

    def test_current_week_excludes_previous_sunday(self):
        goal = make_goal(cadence="week", target_count=2)
        entries = [make_entry(goal, utc(2026, 3, 16)), make_entry(goal, utc(2026, 3, 15, 23, 59))]
        result = evaluate_goal(goal, entries, "current", NOW)
        assert result.actual == 1
        assert result.target == 2
        assert result.completed is False

    def test_all_period_counts_everything(self):
        goal = make_goal(target_count=2)
        entries = [make_entry(goal, utc(2025, 1, 1)), make_entry(goal, utc(2026, 3, 1))]
        assert evaluate_goal(goal, entries, "all", NOW).completed is True

    def test_milestone_progress(self):
        goal = make_goal(id=9601, type="milestone", measure=None, milestones=make_milestones(9601, 2, 3))
        result = evaluate_goal(goal, [], "current", NOW)
        assert (result.completed, result.actual, result.target) == (False, 2, 3)

    def test_one_time_ignores_period(self):
        goal = make_goal(type="one_time", measure=None, cadence=None, completed=True)
        result = evaluate_goal(goal, [], "bogus", NOW)
        assert (result.completed, result.actual, result.target) == (True, 1, 1)


class TestCompletionPercentage:
    def test_capped(self):
        assert completion_percentage(15, 10) == 100.0

    def test_partial(self):
        assert completion_percentage(4.0, 10.0) == pytest.approx(40.0)

    @pytest.mark.parametrize("target", [0, None, -3])
    def test_non_positive_target(self, target):
        assert completion_percentage(5, target) == 0.0


# ---------------------------------------------------------------------------
# evaluate_goal_progress (store-backed)
# ---------------------------------------------------------------------------

class TestEvaluateGoalProgress:
    @pytest.mark.asyncio
    async def test_current_period_from_store(self):
        goal = make_goal(cadence="week", target_count=2)
        store = MemoryStore(
            goals=[goal],
            entries=[
                make_entry(goal, utc(2026, 3, 16, 9)),
                make_entry(goal, utc(2026, 3, 17, 9)),
                make_entry(goal, utc(2026, 3, 10, 9)),
            ],
        )
        result = await evaluate_goal_progress(store, "u1", goal.id, "current", NOW)
        assert result.actual == 2
        assert result.completed is True

    @pytest.mark.asyncio
    async def test_all_period(self):
        goal = make_goal(cadence="week", target_count=5)
        store = MemoryStore(goals=[goal], entries=[make_entry(goal, utc(2025, 6, 1)) for _ in range(3)])
        result = await evaluate_goal_progress(store, "u1", goal.id, "all", NOW)
        assert result.actual == 3
        assert result.completed is False

    @pytest.mark.asyncio
    async def test_other_members_goal_not_found(self):
        goal = make_goal(user_id="someone-else")
        store = MemoryStore(goals=[goal])
        with pytest.raises(GoalNotFound):
            await evaluate_goal_progress(store, "u1", goal.id, "current", NOW)

    @pytest.mark.asyncio
    async def test_invalid_period_propagates(self):
        goal = make_goal()
        store = MemoryStore(goals=[goal])
        with pytest.raises(InvalidPeriod):
            await evaluate_goal_progress(store, "u1", goal.id, "last-week", NOW)
