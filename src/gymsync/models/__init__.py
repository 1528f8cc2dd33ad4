"""Entity shapes stored by the tracker."""

from gymsync.models._base import (
    Entity,
    EntityModel,
    Snapshot,
    TrackerBaseModel,
    add_to,
    entity_id,
    remove_from,
    touch,
    update_in,
)
from gymsync.models.exercise import Exercise, ExerciseType
from gymsync.models.routine import Program, Routine
from gymsync.models.workout_session import ExerciseLog, SetLog, WorkoutSession

__all__ = [
    "Entity",
    "EntityModel",
    "Exercise",
    "ExerciseLog",
    "ExerciseType",
    "Program",
    "Routine",
    "SetLog",
    "Snapshot",
    "TrackerBaseModel",
    "WorkoutSession",
    "add_to",
    "entity_id",
    "remove_from",
    "touch",
    "update_in",
]
