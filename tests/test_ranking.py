"""Tests for rank weights and the weighted habit average."""

from __future__ import annotations

import math

import pytest

from clubgoals.engine.models import ConsistencyResult, HabitScore
from clubgoals.engine.ranking import habit_weight, rank_and_weight, sort_habits
from tests.conftest import make_goal, utc


def _score(rate: float, created=None, scored: bool = True, title: str = "") -> HabitScore:
    goal = make_goal(title=title or f"habit {rate}", created_at=created or utc(2026, 1, 1))
    return HabitScore(
        goal=goal,
        consistency_rate=rate,
        consistency=ConsistencyResult(consistency_rate=rate) if scored else None,
    )


class TestHabitWeight:
    def test_first_position_full_weight(self):
        assert habit_weight(1) == 1.0

    def test_third_position_half_weight(self):
        assert habit_weight(3) == pytest.approx(0.5)

    def test_weights_decrease(self):
        weights = [habit_weight(n) for n in range(1, 10)]
        assert all(later < earlier for earlier, later in zip(weights, weights[1:]))
        assert habit_weight(2) == pytest.approx(1 / math.log2(3))

    def test_weights_fade_toward_zero(self):
        assert 0.0 < habit_weight(10**6) < 0.06

    @pytest.mark.parametrize("position", [0, -1])
    def test_invalid_position(self, position):
        with pytest.raises(ValueError):
            habit_weight(position)


class TestRankAndWeight:
    def test_two_habits(self):
        result = rank_and_weight([_score(60.0), _score(80.0)])
        # (80 + 60 / log2(3)) / (1 + 1 / log2(3)) = 72.263, not 72.4
        assert result.weighted_average == pytest.approx(72.263, abs=1e-3)
        assert [d.consistency_rate for d in result.habit_details] == [80.0, 60.0]
        assert [d.habit_position for d in result.habit_details] == [1, 2]
        assert result.habit_details[0].weight == 1.0

    def test_single_habit_is_its_own_rate(self):
        assert rank_and_weight([_score(42.0)]).weighted_average == pytest.approx(42.0)

    def test_empty(self):
        result = rank_and_weight([])
        assert result.weighted_average == 0.0
        assert result.habit_details == []

    def test_tie_keeps_oldest_goal_first(self):
        newer = _score(50.0, created=utc(2026, 2, 1), title="newer")
        older = _score(50.0, created=utc(2025, 6, 1), title="older")
        assert [s.goal.title for s in sort_habits([newer, older])] == ["older", "newer"]
        details = rank_and_weight([newer, older]).habit_details
        assert details[0].title == "older"

    def test_missing_created_at_sorts_first_on_tie(self):
        undated = _score(50.0, title="undated")
        undated.goal.created_at = None
        dated = _score(50.0, created=utc(2025, 1, 1), title="dated")
        assert [s.goal.title for s in sort_habits([dated, undated])] == ["undated", "dated"]

    def test_unscored_habit_keeps_position_without_weight(self):
        result = rank_and_weight([_score(80.0), _score(0.0, scored=False), _score(60.0)])
        assert [d.habit_position for d in result.habit_details] == [1, 2]
        assert result.weighted_average == pytest.approx(72.263, abs=1e-3)

    def test_all_unscored(self):
        result = rank_and_weight([_score(0.0, scored=False)])
        assert result.weighted_average == 0.0
        assert result.habit_details == []
