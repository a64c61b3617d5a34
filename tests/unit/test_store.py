"""Tests for the in-memory, staged and SQL configuration stores."""

from __future__ import annotations

from pathlib import Path

import pytest

from readoutgen.core.contracts import ConfigObject
from readoutgen.core.errors import StoreError
from readoutgen.core.sql_store import SqlConfigStore
from readoutgen.core.store import (
    BatchConfigStore,
    ConfigStore,
    InMemoryConfigStore,
    StagedConfigStore,
)


def _populate(store: ConfigStore) -> tuple[ConfigObject, ConfigObject]:
    queue = store.create("app.data.xml", "Queue", "inputToDLH-1")
    store.set_value(queue, "capacity", 1000)
    store.set_value(queue, "data_type", "DataFrame")
    handler = store.create("app.data.xml", "DataLinkHandler", "DLH-1")
    store.set_reference_list(handler, "inputs", [queue])
    store.set_reference(handler, "handler_configuration", None)
    return queue, handler


@pytest.fixture(params=["memory", "sql"])
def any_store(request: pytest.FixtureRequest, tmp_path: Path) -> ConfigStore:
    if request.param == "memory":
        return InMemoryConfigStore()
    return SqlConfigStore(f"sqlite:///{tmp_path / 'config.db'}")


def test_store_keeps_values_and_references(any_store: ConfigStore) -> None:
    queue, handler = _populate(any_store)

    assert isinstance(any_store, ConfigStore)
    assert any_store.get("Queue", "inputToDLH-1") == queue
    assert any_store.values(queue) == {"capacity": 1000, "data_type": "DataFrame"}
    assert any_store.references(handler) == {"inputs": [queue], "handler_configuration": None}
    assert any_store.file_of(handler) == "app.data.xml"
    assert any_store.objects() == [queue, handler]


def test_store_rejects_duplicates_and_unknown_objects(any_store: ConfigStore) -> None:
    _populate(any_store)

    with pytest.raises(StoreError):
        any_store.create("other.data.xml", "Queue", "inputToDLH-1")
    with pytest.raises(StoreError):
        any_store.get("Queue", "missing")
    with pytest.raises(StoreError):
        any_store.set_value(ConfigObject(class_name="Queue", uid="missing"), "capacity", 1)
    # Same uid in a different class is a different object.
    assert any_store.create("app.data.xml", "NetworkConnection", "inputToDLH-1")


def test_staged_store_defers_writes_until_commit() -> None:
    target = InMemoryConfigStore()
    staged = StagedConfigStore(target)
    queue, handler = _populate(staged)

    assert len(target) == 0
    assert staged.get("Queue", "inputToDLH-1") == queue

    committed = staged.commit()

    assert committed == [queue, handler]
    assert len(staged) == 0
    assert target.values(queue)["capacity"] == 1000
    assert target.references(handler)["inputs"] == [queue]


def test_staged_store_checks_target_for_collisions() -> None:
    target = InMemoryConfigStore()
    existing = target.create("app.data.xml", "Queue", "inputToDLH-1")
    staged = StagedConfigStore(target)

    assert staged.get("Queue", "inputToDLH-1") == existing
    assert staged.exists("Queue", "inputToDLH-1")
    with pytest.raises(StoreError):
        staged.create("app.data.xml", "Queue", "inputToDLH-1")


def test_staged_store_discard_drops_buffer() -> None:
    target = InMemoryConfigStore()
    staged = StagedConfigStore(target)
    _populate(staged)

    staged.discard()

    assert staged.commit() == []
    assert len(target) == 0


def test_sql_store_persists_across_instances(tmp_path: Path) -> None:
    url = f"sqlite:///{tmp_path / 'config.db'}"
    queue, handler = _populate(SqlConfigStore(url))

    reopened = SqlConfigStore(url)

    assert reopened.exists("DataLinkHandler", "DLH-1")
    assert reopened.references(handler)["inputs"] == [queue]


def test_sql_store_in_memory_default() -> None:
    store = SqlConfigStore()
    queue, _ = _populate(store)
    assert store.values(queue)["data_type"] == "DataFrame"


class _UnbatchedStore(InMemoryConfigStore):
    """Store without batch support, so commits replay one operation at a time."""

    write_batch = None  # type: ignore[assignment]


def test_staged_commit_is_all_or_nothing(any_store: ConfigStore) -> None:
    staged = StagedConfigStore(any_store)
    _populate(staged)
    # Taken after staging, so the collision only shows up while committing.
    existing = any_store.create("other.data.xml", "DataLinkHandler", "DLH-1")

    assert isinstance(any_store, BatchConfigStore)
    with pytest.raises(StoreError):
        staged.commit()

    assert any_store.objects() == [existing]
    assert not any_store.exists("Queue", "inputToDLH-1")
    assert len(staged) == 2


def test_staged_commit_into_sql_store_keeps_references(tmp_path: Path) -> None:
    target = SqlConfigStore(f"sqlite:///{tmp_path / 'config.db'}")
    staged = StagedConfigStore(target)
    queue, handler = _populate(staged)

    assert staged.commit() == [queue, handler]

    assert target.objects() == [queue, handler]
    assert target.values(queue) == {"capacity": 1000, "data_type": "DataFrame"}
    assert target.references(handler) == {"inputs": [queue], "handler_configuration": None}


def test_staged_commit_replays_into_unbatched_store() -> None:
    target = _UnbatchedStore()
    staged = StagedConfigStore(target)
    queue, handler = _populate(staged)

    assert not isinstance(target, BatchConfigStore)
    staged.commit()

    assert target.values(queue)["capacity"] == 1000
    assert target.references(handler)["inputs"] == [queue]


def test_unbatched_replay_leaves_objects_written_before_a_failure() -> None:
    target = _UnbatchedStore()
    staged = StagedConfigStore(target)
    _populate(staged)
    target.create("other.data.xml", "DataLinkHandler", "DLH-1")

    with pytest.raises(StoreError):
        staged.commit()

    assert target.exists("Queue", "inputToDLH-1")
