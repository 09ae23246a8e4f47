"""Engine error kinds.

All of these describe malformed input, never transient failure, so nothing
in the engine retries them. ``status_code`` is the response code the HTTP
layer uses when one escapes a request.
"""

from __future__ import annotations


class EngineError(ValueError):
    status_code: int = 400


class InvalidCadence(EngineError):
    def __init__(self, cadence: object):
        super().__init__(f"Invalid cadence: {cadence}")
        self.cadence = cadence


class MissingCadence(EngineError):
    def __init__(self, goal_id: int | None = None):
        super().__init__("Goal must have cadence for evaluation")
        self.goal_id = goal_id


class InvalidPeriod(EngineError):
    def __init__(self, period: str):
        super().__init__(
            f"Invalid period: {period}. Must be 'current', 'all', or 'YYYY-MM-DD,YYYY-MM-DD'"
        )
        self.period = period


class InvalidMeasure(EngineError):
    def __init__(self, measure: object):
        super().__init__(f"Invalid measure: {measure}")
        self.measure = measure


class GoalNotFound(EngineError):
    status_code = 404

    def __init__(self, goal_id: int):
        super().__init__("Goal not found")
        self.goal_id = goal_id


class NotClubMember(EngineError):
    status_code = 404

    def __init__(self, club_id: int, user_id: str | None = None):
        super().__init__("Club not found or user is not a member")
        self.club_id = club_id
        self.user_id = user_id
