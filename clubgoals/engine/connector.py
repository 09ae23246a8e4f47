"""Database connector: async reads of goals, entries, milestones and club members.

All row shapes are normalized here, once, into the canonical engine records.
Column keys may arrive snake_case or camelCase; nothing past this module
has to care. Rows that cannot be normalized are logged and skipped.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from decimal import Decimal
from typing import Any, Iterable, Mapping, Sequence

from pydantic import ValidationError
from sqlalchemy import bindparam, text
from sqlalchemy.ext.asyncio import AsyncSession

from clubgoals.engine.models import ClubMember, Goal, GoalEntry, MemberProfile, Milestone
from clubgoals.engine.periods import as_utc

logger = logging.getLogger(__name__)

_GOAL_COLUMNS = (
    "id, user_id, club_id, title, type, measure, cadence, target_count, "
    "target_quantity, unit, archived, completed, created_at"
)


# ---------------------------------------------------------------------------
# Normalization
# ---------------------------------------------------------------------------


def _pick(row: Mapping[str, Any], *keys: str, default: Any = None) -> Any:
    for key in keys:
        if key in row and row[key] is not None:
            return row[key]
    return default


def _to_float(value: Any) -> float | None:
    if value is None:
        return None
    if isinstance(value, Decimal):
        return float(value)
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _to_utc(value: Any) -> datetime | None:
    if value is None:
        return None
    if isinstance(value, str):
        value = datetime.fromisoformat(value)
    return as_utc(value)


def milestone_from_row(row: Mapping[str, Any]) -> Milestone:
    return Milestone(
        id=row["id"],
        goal_id=_pick(row, "goal_id", "goalId"),
        title=_pick(row, "title", default=""),
        done=bool(_pick(row, "done", default=False)),
        done_at=_to_utc(_pick(row, "done_at", "doneAt")),
        order=_pick(row, "order", default=0),
    )


def goal_from_row(row: Mapping[str, Any], milestones: Iterable[Milestone] = ()) -> Goal:
    return Goal(
        id=row["id"],
        user_id=str(_pick(row, "user_id", "userId")),
        club_id=_pick(row, "club_id", "clubId"),
        title=_pick(row, "title", default=""),
        type=row["type"],
        measure=_pick(row, "measure"),
        cadence=_pick(row, "cadence"),
        target_count=_pick(row, "target_count", "targetCount"),
        target_quantity=_to_float(_pick(row, "target_quantity", "targetQuantity")),
        unit=_pick(row, "unit"),
        archived=bool(_pick(row, "archived", default=False)),
        completed=bool(_pick(row, "completed", default=False)),
        created_at=_to_utc(_pick(row, "created_at", "createdAt")),
        milestones=sorted(milestones, key=lambda m: (m.order, m.id)),
    )


def entry_from_row(row: Mapping[str, Any]) -> GoalEntry:
    return GoalEntry(
        id=_pick(row, "id"),
        goal_id=_pick(row, "goal_id", "goalId"),
        user_id=str(_pick(row, "user_id", "userId")),
        occurred_at=_to_utc(_pick(row, "occurred_at", "occurredAt")),
        quantity=_to_float(_pick(row, "quantity")),
    )


def member_from_row(row: Mapping[str, Any]) -> ClubMember:
    user_id = str(_pick(row, "user_id", "userId", "uid"))
    return ClubMember(
        user_id=user_id,
        profile=MemberProfile(
            uid=str(_pick(row, "uid", default=user_id)),
            email=_pick(row, "email"),
            display_name=_pick(row, "display_name", "displayName"),
            photo_url=_pick(row, "photo_url", "photoUrl"),
        ),
    )


def _normalize(rows: Iterable[Mapping[str, Any]], fn, kind: str) -> list:
    out = []
    for row in rows:
        try:
            out.append(fn(row))
        except (KeyError, TypeError, ValueError, ValidationError) as exc:
            logger.warning("Dropping malformed %s row %s: %s", kind, row.get("id"), exc)
    return out


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------


async def _rows(session: AsyncSession, stmt, params: dict[str, Any]) -> list[dict[str, Any]]:
    result = await session.execute(stmt, params)
    columns = result.keys()
    return [dict(zip(columns, r)) for r in result.fetchall()]


async def fetch_entries(
    session: AsyncSession,
    user_id: str,
    goal_id: int,
    start: datetime | None = None,
    end: datetime | None = None,
) -> list[GoalEntry]:
    """Entries for one goal, newest first. Half-open ``[start, end)`` when both are set."""
    query = (
        "SELECT id, goal_id, user_id, occurred_at, quantity "
        "FROM goal_entry "
        "WHERE goal_id = :goal_id AND user_id = :user_id"
    )
    params: dict[str, Any] = {"goal_id": goal_id, "user_id": user_id}
    if start is not None and end is not None:
        query += " AND occurred_at >= :start AND occurred_at < :end"
        params["start"] = start
        params["end"] = end
    query += " ORDER BY occurred_at DESC"

    rows = await _rows(session, text(query), params)
    return _normalize(rows, entry_from_row, "goal_entry")


async def fetch_milestones(
    session: AsyncSession,
    goal_ids: Sequence[int],
) -> dict[int, list[Milestone]]:
    """Milestones grouped by goal id."""
    if not goal_ids:
        return {}
    stmt = text(
        'SELECT id, goal_id, title, done, done_at, "order" '
        "FROM milestone "
        "WHERE goal_id IN :goal_ids "
        'ORDER BY "order", id'
    ).bindparams(bindparam("goal_ids", expanding=True))

    rows = await _rows(session, stmt, {"goal_ids": list(goal_ids)})
    grouped: dict[int, list[Milestone]] = {}
    for milestone in _normalize(rows, milestone_from_row, "milestone"):
        grouped.setdefault(milestone.goal_id, []).append(milestone)
    return grouped


async def _goals_with_milestones(session: AsyncSession, rows: list[dict[str, Any]]) -> list[Goal]:
    milestones = await fetch_milestones(session, [r["id"] for r in rows if "id" in r])
    return _normalize(
        rows,
        lambda r: goal_from_row(r, milestones.get(r["id"], [])),
        "goals",
    )


async def fetch_goals(
    session: AsyncSession,
    club_id: int,
    user_id: str | None = None,
    goal_type: str | None = None,
    cadence: str | None = None,
    archived: bool = False,
) -> list[Goal]:
    """Goals in a club, oldest first, optionally narrowed to one member/type/cadence."""
    query = f"SELECT {_GOAL_COLUMNS} FROM goals WHERE club_id = :club_id AND archived = :archived"
    params: dict[str, Any] = {"club_id": club_id, "archived": archived}
    if user_id is not None:
        query += " AND user_id = :user_id"
        params["user_id"] = user_id
    if goal_type is not None:
        query += " AND type = :goal_type"
        params["goal_type"] = goal_type
    if cadence is not None:
        query += " AND cadence = :cadence"
        params["cadence"] = cadence
    query += " ORDER BY created_at ASC"

    rows = await _rows(session, text(query), params)
    return await _goals_with_milestones(session, rows)


async def fetch_goal(session: AsyncSession, user_id: str, goal_id: int) -> Goal | None:
    query = f"SELECT {_GOAL_COLUMNS} FROM goals WHERE id = :goal_id AND user_id = :user_id"
    rows = await _rows(session, text(query), {"goal_id": goal_id, "user_id": user_id})
    goals = await _goals_with_milestones(session, rows)
    return goals[0] if goals else None


async def fetch_club_members(session: AsyncSession, club_id: int) -> list[ClubMember]:
    query = (
        "SELECT cm.user_id, u.uid, u.email, u.display_name, u.photo_url "
        "FROM club_members cm "
        "JOIN users u ON u.uid = cm.user_id "
        "WHERE cm.club_id = :club_id "
        "ORDER BY cm.id"
    )
    rows = await _rows(session, text(query), {"club_id": club_id})
    return _normalize(rows, member_from_row, "club_members")


async def is_club_member(session: AsyncSession, club_id: int, user_id: str) -> bool:
    query = "SELECT 1 FROM club_members WHERE club_id = :club_id AND user_id = :user_id LIMIT 1"
    result = await session.execute(text(query), {"club_id": club_id, "user_id": user_id})
    return result.fetchone() is not None


class SqlGoalStore:
    """`GoalStore` backed by one AsyncSession.

    Report assemblers fan out with `asyncio.gather`, but an AsyncSession
    allows one operation at a time, so every call holds `_lock`.
    """

    def __init__(self, session: AsyncSession):
        self.session = session
        self._lock = asyncio.Lock()

    async def fetch_entries(self, actor_id, goal_id, start=None, end=None):
        async with self._lock:
            return await fetch_entries(self.session, actor_id, goal_id, start, end)

    async def fetch_goals(self, club_id, actor_id=None, *, goal_type=None, cadence=None, archived=False):
        async with self._lock:
            return await fetch_goals(self.session, club_id, actor_id, goal_type, cadence, archived)

    async def fetch_goal(self, actor_id, goal_id):
        async with self._lock:
            return await fetch_goal(self.session, actor_id, goal_id)

    async def fetch_club_members(self, club_id):
        async with self._lock:
            return await fetch_club_members(self.session, club_id)

    async def is_club_member(self, club_id, actor_id):
        async with self._lock:
            return await is_club_member(self.session, club_id, actor_id)
