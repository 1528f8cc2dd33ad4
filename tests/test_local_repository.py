from __future__ import annotations

import json
from datetime import UTC, datetime
from pathlib import Path

import pytest

from gymsync.exceptions import RepositoryError
from gymsync.repositories.local import (
    LocalRepository,
    MemoryKeyValueStore,
    SqliteKeyValueStore,
    storage_key,
)


def _session() -> dict[str, object]:
    started = datetime(2024, 5, 1, 17, 3, 0, 250000, tzinfo=UTC)
    return {
        "id": "s1",
        "routineId": "r1",
        "startTime": started,
        "exerciseLogs": [
            {
                "id": "l1",
                "exerciseId": "e1",
                "exerciseTypeId": "t1",
                "sets": [{"id": "set1", "weight": 80.0, "reps": 5, "createdAt": started}],
                "createdAt": started,
            }
        ],
        "createdAt": started,
        "updatedAt": started,
    }


class _BrokenStore:
    async def get(self, key: str) -> str | None:
        raise OSError("disk on fire")

    async def set(self, key: str, value: str) -> None:
        raise OSError("disk on fire")

    async def delete(self, key: str) -> None:
        raise OSError("disk on fire")


def test_storage_key_convention() -> None:
    assert storage_key("gym-tracker", "exercise-types") == "gym-tracker:exercise-types"


@pytest.mark.asyncio
async def test_empty_collection_reads_as_empty_list() -> None:
    repo = LocalRepository(MemoryKeyValueStore(), "routines", namespace="gym-tracker")
    assert await repo.get_all() == []
    assert await repo.get_by_id("missing") is None


@pytest.mark.asyncio
async def test_nested_dates_survive_a_round_trip() -> None:
    store = MemoryKeyValueStore()
    repo = LocalRepository(store, "workout-sessions", namespace="gym-tracker")

    await repo.create(_session())

    raw = json.loads(await store.get("gym-tracker:workout-sessions") or "[]")
    assert raw[0]["startTime"] == "2024-05-01T17:03:00.250Z"
    assert raw[0]["exerciseLogs"][0]["sets"][0]["createdAt"] == "2024-05-01T17:03:00.250Z"

    loaded = await repo.get_by_id("s1")
    assert loaded == _session()
    assert isinstance(loaded["exerciseLogs"][0]["sets"][0]["createdAt"], datetime)


@pytest.mark.asyncio
async def test_non_date_strings_are_left_alone() -> None:
    repo = LocalRepository(MemoryKeyValueStore(), "exercises", namespace="ns")
    await repo.create({"id": "e1", "targetRepRange": "8-12", "name": "2024 Row"})
    assert await repo.get_all() == [{"id": "e1", "targetRepRange": "8-12", "name": "2024 Row"}]


@pytest.mark.asyncio
async def test_crud_cycle() -> None:
    repo = LocalRepository(MemoryKeyValueStore(), "exercise-types", namespace="ns")

    await repo.batch_create([{"id": "1", "name": "Bench"}, {"id": "2", "name": "Squat"}])
    await repo.update("1", {"id": "1", "name": "Bench Heavy"})
    await repo.delete("2")

    assert await repo.get_all() == [{"id": "1", "name": "Bench Heavy"}]

    await repo.clear()
    assert await repo.get_all() == []


@pytest.mark.asyncio
async def test_create_with_existing_id_replaces_entity() -> None:
    repo = LocalRepository(MemoryKeyValueStore(), "exercise-types", namespace="ns")
    await repo.create({"id": "1", "name": "Bench"})
    await repo.create({"id": "1", "name": "Incline"})
    assert await repo.get_all() == [{"id": "1", "name": "Incline"}]


@pytest.mark.asyncio
async def test_update_of_unknown_id_fails() -> None:
    repo = LocalRepository(MemoryKeyValueStore(), "exercise-types", namespace="ns")
    with pytest.raises(RepositoryError) as excinfo:
        await repo.update("nope", {"id": "nope"})
    assert excinfo.value.operation == "update"
    assert excinfo.value.collection == "exercise-types"


@pytest.mark.asyncio
async def test_corrupt_stored_value_raises_repository_error() -> None:
    store = MemoryKeyValueStore({"ns:programs": "{not json"})
    repo = LocalRepository(store, "programs", namespace="ns")
    with pytest.raises(RepositoryError):
        await repo.get_all()


@pytest.mark.asyncio
async def test_stored_value_of_wrong_shape_raises_repository_error() -> None:
    store = MemoryKeyValueStore({"ns:programs": '{"id": "p1"}'})
    repo = LocalRepository(store, "programs", namespace="ns")
    with pytest.raises(RepositoryError):
        await repo.get_all()


@pytest.mark.asyncio
async def test_backend_errors_are_wrapped() -> None:
    repo = LocalRepository(_BrokenStore(), "programs", namespace="ns")
    with pytest.raises(RepositoryError) as excinfo:
        await repo.get_all()
    assert isinstance(excinfo.value.__cause__, OSError)

    with pytest.raises(RepositoryError):
        await repo.clear()


@pytest.mark.asyncio
async def test_sqlite_store_persists_between_instances(tmp_path: Path) -> None:
    db_file = str(tmp_path / "tracker.db")
    first = LocalRepository(SqliteKeyValueStore(db_file), "workout-sessions", namespace="gym-tracker")
    await first.create(_session())

    second = LocalRepository(SqliteKeyValueStore(db_file), "workout-sessions", namespace="gym-tracker")
    assert await second.get_all() == [_session()]

    await second.clear()
    assert await first.get_all() == []
