"""Weighting & ranking of one member's habits into a single score."""

from __future__ import annotations

import math
from typing import Sequence

from clubgoals.engine.models import HabitDetail, HabitScore, WeightedConsistency
from clubgoals.engine.periods import EPOCH, as_utc


def habit_weight(position: int) -> float:
    """weight_n = 1 / log2(n + 1). Position 1 weighs 1.0, later ones decay toward 0."""
    if position < 1:
        raise ValueError(f"Habit position must be >= 1, got {position}")
    return 1.0 / math.log2(position + 1)


def _created(score: HabitScore):
    created = score.goal.created_at
    return as_utc(created) if created is not None else EPOCH


def sort_habits(scores: Sequence[HabitScore]) -> list[HabitScore]:
    """Best rate first; equal rates keep the oldest goal first."""
    return sorted(scores, key=lambda s: (-s.consistency_rate, _created(s)))


def rank_and_weight(scores: Sequence[HabitScore]) -> WeightedConsistency:
    """Weighted average of habit consistency rates by rank.

    Habits without a consistency result still occupy their position but
    contribute nothing.
    """
    weighted_sum = 0.0
    total_weight = 0.0
    details: list[HabitDetail] = []

    for i, score in enumerate(sort_habits(scores)):
        position = i + 1
        weight = habit_weight(position)
        if score.consistency is None:
            continue
        weighted_sum += score.consistency_rate * weight
        total_weight += weight
        details.append(
            HabitDetail(
                goal_id=score.goal.id,
                title=score.goal.title,
                habit_position=position,
                weight=weight,
                consistency_rate=score.consistency_rate,
            )
        )

    return WeightedConsistency(
        weighted_average=weighted_sum / total_weight if total_weight > 0 else 0.0,
        habit_details=details,
    )
