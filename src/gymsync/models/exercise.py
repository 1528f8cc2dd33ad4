"""Exercise types and exercises."""

from __future__ import annotations

from pydantic import Field, field_validator

from gymsync.models._base import EntityModel


class ExerciseType(EntityModel):
    """A movement category (e.g. "Bench Press") that routines refer to."""

    name: str

    @field_validator("name")
    @classmethod
    def _strip_name(cls, value: str) -> str:
        name = value.strip()
        if not name:
            raise ValueError("name must be non-empty")
        return name


class Exercise(EntityModel):
    """A concrete exercise of one type, e.g. a specific machine."""

    name: str
    exercise_type_id: str
    target_rep_range: str
    machine_brand: str | None = None
    target_reps_in_reserve: int | None = Field(default=None, ge=0)
