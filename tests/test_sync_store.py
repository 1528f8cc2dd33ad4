from __future__ import annotations

import asyncio
from collections.abc import Iterable
from datetime import UTC, datetime
from typing import Any

import pytest

from gymsync.exceptions import LoadError, RepositoryError
from gymsync.models._base import Entity
from gymsync.repositories.base import Repository
from gymsync.repositories.local import LocalRepository, MemoryKeyValueStore
from gymsync.sync.errors import ErrorReporter
from gymsync.sync.queue import SyncState
from gymsync.sync.store import EntityStore

_READS = {"get_all", "get_by_id"}


class _FakeRepository(Repository):
    """In-memory repository that records calls and can block or fail them."""

    def __init__(self, initial: Iterable[Entity] = (), *, collection: str = "exercise-types") -> None:
        self.collection = collection
        self.items: dict[str, Entity] = {item["id"]: dict(item) for item in initial}
        self.calls: list[tuple[str, str]] = []
        self.fail_on: set[str] = set()
        self.gate: asyncio.Event | None = None
        self.in_flight = 0
        self.max_in_flight = 0

    @property
    def writes(self) -> list[tuple[str, str]]:
        return [call for call in self.calls if call[0] not in _READS]

    async def _op(self, name: str, key: str = "") -> None:
        self.calls.append((name, key))
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.gate is not None:
                await self.gate.wait()
            if name in self.fail_on:
                raise RepositoryError(f"{name} failed", collection=self.collection, operation=name)
        finally:
            self.in_flight -= 1

    async def get_all(self) -> list[Entity]:
        await self._op("get_all")
        return [dict(item) for item in self.items.values()]

    async def get_by_id(self, item_id: str) -> Entity | None:
        await self._op("get_by_id", item_id)
        return self.items.get(item_id)

    async def create(self, item: Entity) -> Entity:
        await self._op("create", item["id"])
        self.items[item["id"]] = dict(item)
        return item

    async def update(self, item_id: str, item: Entity) -> Entity:
        await self._op("update", item_id)
        self.items[item_id] = dict(item)
        return item

    async def delete(self, item_id: str) -> None:
        await self._op("delete", item_id)
        self.items.pop(item_id, None)

    async def clear(self) -> None:
        await self._op("clear")
        self.items.clear()


def _store(repo: Repository, clock: Any) -> tuple[EntityStore, ErrorReporter]:
    errors = ErrorReporter(scheduler=clock)
    return EntityStore(repo, errors=errors), errors


def _ids(items: Iterable[Entity]) -> list[str]:
    return sorted(item["id"] for item in items)


@pytest.mark.asyncio
async def test_set_updates_state_before_sync_finishes(clock: Any) -> None:
    repo = _FakeRepository()
    store, _ = _store(repo, clock)
    await store.load()
    repo.gate = asyncio.Event()

    store.set([{"id": "a", "name": "Bench"}])

    assert store.get() == [{"id": "a", "name": "Bench"}]
    assert store.sync_state is SyncState.SYNCING
    assert store.snapshot == {}

    repo.gate.set()
    await store.wait_idle()
    assert store.sync_state is SyncState.IDLE
    assert store.snapshot == {"a": {"id": "a", "name": "Bench"}}


@pytest.mark.asyncio
async def test_setting_current_snapshot_issues_no_backend_calls(clock: Any) -> None:
    loaded_at = datetime(2024, 5, 1, tzinfo=UTC)
    repo = _FakeRepository([{"id": "1", "name": "Bench", "createdAt": loaded_at}])
    store, _ = _store(repo, clock)
    await store.load()

    # Same content, distinct datetime instance.
    store.set([{"id": "1", "name": "Bench", "createdAt": datetime(2024, 5, 1, tzinfo=UTC)}])
    await store.wait_idle()

    assert repo.writes == []
    assert store.batches_sent == 0


@pytest.mark.asyncio
async def test_rollback_restores_snapshot_and_error_expires(clock: Any) -> None:
    repo = _FakeRepository([{"id": "1", "name": "Bench"}])
    store, errors = _store(repo, clock)
    await store.load()
    repo.fail_on = {"update"}

    store.set([{"id": "1", "name": "Bench Heavy"}])
    assert store.get() == [{"id": "1", "name": "Bench Heavy"}]
    await store.wait_idle()

    assert store.get() == [{"id": "1", "name": "Bench"}]
    assert store.snapshot == {"1": {"id": "1", "name": "Bench"}}
    assert len(errors.errors) == 1
    assert errors.errors[0].message == "Failed to save exercise-types"

    clock.advance(4.999)
    assert len(errors.errors) == 1
    clock.advance(0.002)
    assert errors.errors == ()


@pytest.mark.asyncio
async def test_next_set_after_failure_retries_from_last_good_state(clock: Any) -> None:
    repo = _FakeRepository([{"id": "1", "name": "Bench"}])
    store, _ = _store(repo, clock)
    await store.load()

    repo.fail_on = {"update"}
    store.set([{"id": "1", "name": "Bench Heavy"}])
    await store.wait_idle()
    assert repo.writes == [("update", "1")]

    repo.fail_on = set()
    store.set([{"id": "1", "name": "Bench Heavy"}])
    await store.wait_idle()

    assert repo.writes == [("update", "1"), ("update", "1")]
    assert repo.items == {"1": {"id": "1", "name": "Bench Heavy"}}
    assert store.get() == [{"id": "1", "name": "Bench Heavy"}]


@pytest.mark.asyncio
async def test_latest_set_supersedes_pending_state(clock: Any) -> None:
    repo = _FakeRepository()
    store, _ = _store(repo, clock)
    await store.load()
    repo.gate = asyncio.Event()

    store.set([{"id": "a"}])
    await asyncio.sleep(0)
    assert repo.writes == [("create", "a")]

    store.set([{"id": "a"}, {"id": "b"}])
    store.set([{"id": "c"}])
    repo.gate.set()
    await store.wait_idle()

    assert repo.max_in_flight == 1
    assert store.batches_sent == 2
    # The intermediate state (a + b) is never sent.
    assert ("create", "b") not in repo.writes
    assert _ids(repo.items.values()) == ["c"]
    assert store.get() == [{"id": "c"}]
    assert _ids(store.snapshot.values()) == ["c"]


@pytest.mark.asyncio
async def test_applies_deletes_before_updates_before_creates(clock: Any) -> None:
    repo = _FakeRepository([{"id": "old"}, {"id": "keep", "v": 1}])
    store, _ = _store(repo, clock)
    await store.load()

    store.set([{"id": "keep", "v": 2}, {"id": "new"}])
    await store.wait_idle()

    assert repo.writes == [("delete", "old"), ("update", "keep"), ("create", "new")]


@pytest.mark.asyncio
async def test_failure_with_pending_state_converges_to_latest(clock: Any) -> None:
    repo = _FakeRepository([{"id": "1", "name": "Bench"}])
    store, errors = _store(repo, clock)
    await store.load()
    repo.gate = asyncio.Event()
    repo.fail_on = {"create"}

    store.set([{"id": "1", "name": "Bench"}, {"id": "2", "name": "Squat"}])
    await asyncio.sleep(0)
    store.set([{"id": "1", "name": "Bench Heavy"}])

    # The create batch fails; the pending update is diffed against the
    # unchanged snapshot and goes through.
    repo.gate.set()
    await store.wait_idle()

    assert len(errors.errors) == 1
    assert repo.writes == [("create", "2"), ("update", "1")]
    assert repo.items == {"1": {"id": "1", "name": "Bench Heavy"}}
    assert store.get() == [{"id": "1", "name": "Bench Heavy"}]
    assert store.snapshot == repo.items


@pytest.mark.asyncio
async def test_set_before_load_is_recorded_but_not_written(clock: Any) -> None:
    repo = _FakeRepository([{"id": "x"}])
    repo.gate = asyncio.Event()
    store, _ = _store(repo, clock)

    load = asyncio.create_task(store.load())
    await asyncio.sleep(0)
    assert store.is_loading

    store.set([{"id": "a"}])
    assert store.get() == [{"id": "a"}]
    assert repo.writes == []

    repo.gate.set()
    await load
    await store.wait_idle()

    # Changes made while booting are the first delta against the loaded state.
    assert repo.writes == [("delete", "x"), ("create", "a")]
    assert store.get() == [{"id": "a"}]


@pytest.mark.asyncio
async def test_load_failure_keeps_collection_empty_and_writes_disabled(clock: Any) -> None:
    repo = _FakeRepository([{"id": "x"}])
    repo.fail_on = {"get_all"}
    store, errors = _store(repo, clock)

    with pytest.raises(LoadError) as excinfo:
        await store.load()

    assert isinstance(excinfo.value.__cause__, RepositoryError)
    assert store.get() == []
    assert not store.is_loaded
    assert len(errors.errors) == 1

    store.set([{"id": "a"}])
    await store.wait_idle()
    assert repo.writes == []

    # A later successful load is the retry path.
    repo.fail_on = set()
    await store.load()
    await store.wait_idle()
    assert _ids(repo.items.values()) == ["a"]


def test_duplicate_ids_are_rejected_without_changing_state(clock: Any) -> None:
    store, _ = _store(_FakeRepository(), clock)
    store.set([{"id": "a"}])

    with pytest.raises(ValueError):
        store.set([{"id": "b"}, {"id": "b"}])
    with pytest.raises(ValueError):
        store.set([{"name": "no id"}])

    assert store.get() == [{"id": "a"}]


@pytest.mark.asyncio
async def test_collections_sync_independently(clock: Any) -> None:
    errors = ErrorReporter(scheduler=clock)
    failing = _FakeRepository(collection="routines")
    healthy = _FakeRepository(collection="programs")
    routines = EntityStore(failing, errors=errors)
    programs = EntityStore(healthy, errors=errors)
    await routines.load()
    await programs.load()
    failing.fail_on = {"create"}

    routines.set([{"id": "r1"}])
    programs.set([{"id": "p1"}])
    await asyncio.gather(routines.wait_idle(), programs.wait_idle())

    assert routines.get() == []
    assert programs.get() == [{"id": "p1"}]
    assert _ids(healthy.items.values()) == ["p1"]
    assert [e.message for e in errors.errors] == ["Failed to save routines"]


@pytest.mark.asyncio
async def test_state_matches_backend_after_sync(clock: Any) -> None:
    repo = LocalRepository(MemoryKeyValueStore(), "workout-sessions", namespace="gym-tracker")
    store, _ = _store(repo, clock)
    await store.load()
    started = datetime(2024, 5, 1, 17, 3, tzinfo=UTC)

    store.set(
        [
            {"id": "s1", "routineId": "r1", "startTime": started, "exerciseLogs": []},
            {"id": "s2", "routineId": "r2", "startTime": started, "exerciseLogs": [{"id": "l1", "sets": []}]},
        ]
    )
    await store.wait_idle()
    store.set([*store.get()[1:], {"id": "s3", "routineId": "r1", "startTime": started, "exerciseLogs": []}])
    await store.wait_idle()

    backend = {item["id"]: item for item in await repo.get_all()}
    assert {item["id"]: item for item in store.get()} == backend
    assert _ids(backend.values()) == ["s2", "s3"]


@pytest.mark.asyncio
async def test_in_place_edit_of_visible_entity_is_still_synced(clock: Any) -> None:
    repo = LocalRepository(MemoryKeyValueStore(), "exercise-types", namespace="gym-tracker")
    store, _ = _store(repo, clock)
    await store.load()
    store.set([{"id": "1", "name": "Bench"}])
    await store.wait_idle()

    item = store.get()[0]
    item["name"] = "Bench Heavy"
    assert store.snapshot == {"1": {"id": "1", "name": "Bench"}}

    store.set([item])
    await store.wait_idle()

    assert store.batches_sent == 2
    assert await repo.get_all() == [{"id": "1", "name": "Bench Heavy"}]


@pytest.mark.asyncio
async def test_rolled_back_state_does_not_alias_snapshot(clock: Any) -> None:
    repo = _FakeRepository([{"id": "1", "name": "Bench", "tags": ["push"]}])
    store, _ = _store(repo, clock)
    await store.load()
    repo.fail_on = {"update"}
    store.set([{"id": "1", "name": "Bench Heavy", "tags": ["push"]}])
    await store.wait_idle()
    repo.fail_on = set()

    restored = store.get()[0]
    restored["tags"].append("chest")
    store.set([restored])
    await store.wait_idle()

    assert repo.items["1"]["tags"] == ["push", "chest"]


@pytest.mark.asyncio
async def test_set_during_reload_is_synced_after_it(clock: Any) -> None:
    repo = _FakeRepository([{"id": "x"}])
    store, _ = _store(repo, clock)
    await store.load()
    repo.gate = asyncio.Event()

    reload = asyncio.create_task(store.load())
    await asyncio.sleep(0)
    assert store.is_loading
    store.set([{"id": "x"}, {"id": "y"}])
    assert repo.writes == []

    repo.gate.set()
    await reload
    await store.wait_idle()

    assert _ids(store.get()) == ["x", "y"]
    assert _ids(repo.items.values()) == ["x", "y"]
    assert _ids(store.snapshot.values()) == ["x", "y"]


@pytest.mark.asyncio
async def test_overlapping_loads_share_one_read(clock: Any) -> None:
    repo = _FakeRepository([{"id": "x"}])
    repo.gate = asyncio.Event()
    store, _ = _store(repo, clock)

    first = asyncio.create_task(store.load())
    second = asyncio.create_task(store.load())
    await asyncio.sleep(0)
    store.set([{"id": "x"}, {"id": "y"}])
    repo.gate.set()
    await asyncio.gather(first, second)
    await store.wait_idle()

    assert [call for call in repo.calls if call[0] == "get_all"] == [("get_all", "")]
    assert _ids(store.get()) == ["x", "y"]
    assert _ids(repo.items.values()) == ["x", "y"]


@pytest.mark.asyncio
async def test_set_during_failed_reload_is_still_synced(clock: Any) -> None:
    repo = _FakeRepository([{"id": "x"}])
    store, errors = _store(repo, clock)
    await store.load()
    repo.gate = asyncio.Event()
    repo.fail_on = {"get_all"}

    reload = asyncio.create_task(store.load())
    await asyncio.sleep(0)
    store.set([{"id": "x"}, {"id": "y"}])
    repo.gate.set()
    with pytest.raises(LoadError):
        await reload
    repo.fail_on = set()
    await store.wait_idle()

    assert len(errors.errors) == 1
    assert _ids(repo.items.values()) == ["x", "y"]
