"""Persistence collaborator contract consumed by the engine.

The engine only ever reads through this interface; `connector.SqlGoalStore`
is the database-backed implementation.
"""

from __future__ import annotations

from datetime import datetime
from typing import Protocol

from clubgoals.engine.models import ClubMember, Goal, GoalEntry


class GoalStore(Protocol):
    async def fetch_entries(
        self,
        actor_id: str,
        goal_id: int,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> list[GoalEntry]:
        """Entries newest first; restricted to ``[start, end)`` when both are given."""
        ...

    async def fetch_goals(
        self,
        club_id: int,
        actor_id: str | None = None,
        *,
        goal_type: str | None = None,
        cadence: str | None = None,
        archived: bool = False,
    ) -> list[Goal]:
        """Goals oldest first, milestones included."""
        ...

    async def fetch_goal(self, actor_id: str, goal_id: int) -> Goal | None:
        ...

    async def fetch_club_members(self, club_id: int) -> list[ClubMember]:
        ...

    async def is_club_member(self, club_id: int, actor_id: str) -> bool:
        ...
