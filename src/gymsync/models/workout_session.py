"""Recorded workout sessions."""

from __future__ import annotations

from datetime import datetime

from pydantic import Field

from gymsync.models._base import EntityModel, TrackerBaseModel, _new_id, _utcnow


class SetLog(TrackerBaseModel):
    id: str = Field(default_factory=_new_id)
    weight: float = Field(ge=0)
    """Load in kg."""
    reps: int = Field(ge=0)
    rir: int | None = Field(default=None, ge=0)
    """Reps in reserve."""
    created_at: datetime = Field(default_factory=_utcnow)


class ExerciseLog(TrackerBaseModel):
    id: str = Field(default_factory=_new_id)
    exercise_id: str
    exercise_type_id: str
    sets: list[SetLog] = Field(default_factory=list)
    notes: str | None = None
    created_at: datetime = Field(default_factory=_utcnow)

    @property
    def volume(self) -> float:
        return sum(s.weight * s.reps for s in self.sets)


class WorkoutSession(EntityModel):
    """One performed routine, with its exercise and set logs."""

    routine_id: str
    program_id: str | None = None
    exercise_logs: list[ExerciseLog] = Field(default_factory=list)
    exercise_selections: dict[str, str] | None = None
    """Exercise-type slot index (as string) → chosen exercise id."""
    start_time: datetime = Field(default_factory=_utcnow)
    end_time: datetime | None = None
    duration: float | None = None
    """Minutes."""
    total_volume: float | None = None
    """Total kg lifted."""

    def finish(self, end_time: datetime | None = None) -> WorkoutSession:
        """Return a copy closed at *end_time* with duration and volume filled in."""
        end = end_time or _utcnow()
        minutes = (end - self.start_time).total_seconds() / 60.0
        return self.model_copy(
            update={
                "end_time": end,
                "duration": round(minutes, 2),
                "total_volume": sum(log.volume for log in self.exercise_logs),
                "updated_at": end,
            }
        )
