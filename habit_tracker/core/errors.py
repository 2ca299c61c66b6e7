# habit_tracker/core/errors.py
from fastapi import status


class HabitEngineError(Exception):
    """Base class for errors raised by the habit services."""

    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail


class ValidationError(HabitEngineError):
    """Malformed or out-of-range input. Raised before anything is written."""

    status_code = status.HTTP_400_BAD_REQUEST


class NotFoundError(HabitEngineError):
    """Missing resource, or one owned by another user (same message either way)."""

    status_code = status.HTTP_404_NOT_FOUND


class ConflictError(HabitEngineError):
    """A second ledger row for the same habit and day."""

    status_code = status.HTTP_409_CONFLICT


class GamificationSideEffectFailure(HabitEngineError):
    """Awarding points or badges failed after the completion was committed."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
