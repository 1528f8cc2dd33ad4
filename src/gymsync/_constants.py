"""Internal constants shared across the library."""

DEFAULT_NAMESPACE = "gym-tracker"
DEFAULT_ERROR_TTL = 5.0

#: Column injected into every remote row to record its owner.
OWNER_COLUMN = "user_id"

# ------------------------------------------------------------------
# Collections: name used in local keys → remote table name
# ------------------------------------------------------------------

EXERCISE_TYPES = "exercise-types"
EXERCISES = "exercises"
ROUTINES = "routines"
PROGRAMS = "programs"
WORKOUT_SESSIONS = "workout-sessions"

COLLECTION_TABLES: dict[str, str] = {
    EXERCISE_TYPES: "exercise_types",
    EXERCISES: "exercises",
    ROUTINES: "routines",
    PROGRAMS: "programs",
    WORKOUT_SESSIONS: "workout_sessions",
}


def table_for(collection: str) -> str:
    """Return the remote table name for *collection*.

    Raises :class:`KeyError` for an unknown collection.
    """
    return COLLECTION_TABLES[collection]
