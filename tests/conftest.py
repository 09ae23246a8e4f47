"""Shared fixtures for the test suite."""

from __future__ import annotations

import itertools
from datetime import datetime, timezone
from typing import Any
import pytest
from httpx import ASGITransport, AsyncClient

from clubgoals.engine.models import ClubMember, Goal, GoalEntry, MemberProfile, Milestone
from clubgoals.engine.router import get_store
from clubgoals.main import app

# Wednesday, mid-day. Week of Monday 2026-03-16, Q1 2026.
NOW = datetime(2026, 3, 18, 12, 0, tzinfo=timezone.utc)


def utc(*args: int) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)


# ---------------------------------------------------------------------------
# Fake DB session (no real Postgres needed)
# ---------------------------------------------------------------------------

class FakeSession:
    """Minimal stand-in for AsyncSession used in connector tests.

    `results` is consumed one batch per execute() call; `rows` is returned
    for every call once it runs out.
    """

    def __init__(
        self,
        rows: list[dict[str, Any]] | None = None,
        results: list[list[dict[str, Any]]] | None = None,
    ):
        self._rows = rows or []
        self._results = list(results or [])
        self.calls: list[tuple[str, dict[str, Any]]] = []

    async def execute(self, stmt, params=None):
        self.calls.append((str(stmt), dict(params or {})))
        if self._results:
            return FakeResult(self._results.pop(0))
        return FakeResult(self._rows)

    async def __aenter__(self):
        return self

    async def __aexit__(self, *args):
        pass


class FakeResult:
    def __init__(self, rows: list[dict[str, Any]]):
        self._rows = rows
        self._keys = list(rows[0].keys()) if rows else []

    def keys(self):
        return self._keys

    def fetchall(self):
        return [tuple(r[k] for k in self._keys) for r in self._rows]

    def fetchone(self):
        rows = self.fetchall()
        return rows[0] if rows else None


# ---------------------------------------------------------------------------
# In-memory goal store
# ---------------------------------------------------------------------------

class MemoryStore:
    """GoalStore over plain lists, filtering the way the SQL queries do."""

    def __init__(
        self,
        goals: list[Goal] | None = None,
        entries: list[GoalEntry] | None = None,
        members: dict[int, list[ClubMember]] | None = None,
    ):
        self.goals = goals or []
        self.entries = entries or []
        self.members = members or {}
        self.entry_fetches = 0

    async def fetch_entries(self, actor_id, goal_id, start=None, end=None):
        self.entry_fetches += 1
        found = [e for e in self.entries if e.user_id == actor_id and e.goal_id == goal_id]
        if start is not None and end is not None:
            found = [e for e in found if start <= e.occurred_at < end]
        return sorted(found, key=lambda e: e.occurred_at, reverse=True)

    async def fetch_goals(self, club_id, actor_id=None, *, goal_type=None, cadence=None, archived=False):
        found = [
            g for g in self.goals
            if g.club_id == club_id
            and g.archived == archived
            and (actor_id is None or g.user_id == actor_id)
            and (goal_type is None or g.type.value == goal_type)
            and (cadence is None or g.cadence == cadence)
        ]
        return sorted(found, key=lambda g: g.created_at)

    async def fetch_goal(self, actor_id, goal_id):
        for g in self.goals:
            if g.id == goal_id and g.user_id == actor_id:
                return g
        return None

    async def fetch_club_members(self, club_id):
        return list(self.members.get(club_id, []))

    async def is_club_member(self, club_id, actor_id):
        return any(m.user_id == actor_id for m in self.members.get(club_id, []))


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture()
def memory_store():
    return MemoryStore()


@pytest.fixture()
def override_store(memory_store):
    """Override the FastAPI dependency so no real DB is needed."""
    async def _override():
        return memory_store

    app.dependency_overrides[get_store] = _override
    yield memory_store
    app.dependency_overrides.clear()


@pytest.fixture()
async def client(override_store):
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


# ---------------------------------------------------------------------------
# Record builders
# ---------------------------------------------------------------------------

_ids = itertools.count(1)


def make_goal(**overrides: Any) -> Goal:
    """Daily count habit with target 1, unless overridden."""
    fields: dict[str, Any] = {
        "id": next(_ids),
        "user_id": "u1",
        "club_id": 1,
        "title": "Read 20 pages",
        "type": "habit",
        "measure": "count",
        "cadence": "day",
        "target_count": 1,
        "created_at": utc(2025, 12, 1),
    }
    fields.update(overrides)
    return Goal(**fields)


def make_entry(
    goal: Goal,
    occurred_at: datetime,
    quantity: float | None = None,
    user_id: str | None = None,
) -> GoalEntry:
    return GoalEntry(
        id=next(_ids),
        goal_id=goal.id,
        user_id=user_id or goal.user_id,
        occurred_at=occurred_at,
        quantity=quantity,
    )


def make_milestones(goal_id: int, done: int, total: int) -> list[Milestone]:
    return [
        Milestone(id=next(_ids), goal_id=goal_id, title=f"Part {i + 1}", done=i < done, order=i)
        for i in range(total)
    ]


def make_member(user_id: str, name: str | None = None) -> ClubMember:
    return ClubMember(
        user_id=user_id,
        profile=MemberProfile(uid=user_id, email=f"{user_id}@example.com", display_name=name or user_id),
    )
