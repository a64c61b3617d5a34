"""
Object-store adapter used by the topology generator.

The generator only needs a handful of operations from a configuration
database: create an object of a class with a unique id inside a target file,
look it up again, and set attribute values and references on it. Any
backend honouring `ConfigStore` can be plugged in; this module ships an
in-memory backend and a staging wrapper that defers writes until commit.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable

from .contracts import ConfigObject
from .errors import StoreError

logger = logging.getLogger(__name__)

Reference = ConfigObject | list[ConfigObject] | None


@runtime_checkable
class ConfigStore(Protocol):
    """Operations the generator performs against a configuration database."""

    def create(self, file: str, class_name: str, uid: str) -> ConfigObject: ...

    def get(self, class_name: str, uid: str) -> ConfigObject: ...

    def exists(self, class_name: str, uid: str) -> bool: ...

    def set_value(self, obj: ConfigObject, name: str, value: Any) -> None: ...

    def set_reference(self, obj: ConfigObject, name: str, target: ConfigObject | None) -> None: ...

    def set_reference_list(
        self, obj: ConfigObject, name: str, targets: Iterable[ConfigObject]
    ) -> None: ...

    def values(self, obj: ConfigObject) -> dict[str, Any]: ...

    def references(self, obj: ConfigObject) -> dict[str, Reference]: ...

    def file_of(self, obj: ConfigObject) -> str: ...

    def objects(self) -> list[ConfigObject]: ...


@dataclass
class StoredObject:
    """Attribute and relationship values of a single stored object."""

    file: str
    handle: ConfigObject
    values: dict[str, Any] = field(default_factory=dict)
    references: dict[str, Reference] = field(default_factory=dict)


@runtime_checkable
class BatchConfigStore(Protocol):
    """Store able to insert a set of complete objects atomically."""

    def write_batch(self, records: Sequence[StoredObject]) -> None: ...


class InMemoryConfigStore:
    """Dictionary-backed store; objects keep their creation order."""

    def __init__(self) -> None:
        self._objects: dict[tuple[str, str], StoredObject] = {}

    def __len__(self) -> int:
        return len(self._objects)

    def create(self, file: str, class_name: str, uid: str) -> ConfigObject:
        key = (class_name, uid)
        if key in self._objects:
            raise StoreError(f"Object {uid}@{class_name} already exists")
        handle = ConfigObject(class_name=class_name, uid=uid)
        self._objects[key] = StoredObject(file=file, handle=handle)
        return handle

    def get(self, class_name: str, uid: str) -> ConfigObject:
        return self._record(class_name, uid).handle

    def exists(self, class_name: str, uid: str) -> bool:
        return (class_name, uid) in self._objects

    def set_value(self, obj: ConfigObject, name: str, value: Any) -> None:
        self._record(obj.class_name, obj.uid).values[name] = value

    def set_reference(self, obj: ConfigObject, name: str, target: ConfigObject | None) -> None:
        self._record(obj.class_name, obj.uid).references[name] = target

    def set_reference_list(
        self, obj: ConfigObject, name: str, targets: Iterable[ConfigObject]
    ) -> None:
        self._record(obj.class_name, obj.uid).references[name] = list(targets)

    def values(self, obj: ConfigObject) -> dict[str, Any]:
        return dict(self._record(obj.class_name, obj.uid).values)

    def references(self, obj: ConfigObject) -> dict[str, Reference]:
        refs = self._record(obj.class_name, obj.uid).references
        return {name: list(ref) if isinstance(ref, list) else ref for name, ref in refs.items()}

    def file_of(self, obj: ConfigObject) -> str:
        return self._record(obj.class_name, obj.uid).file

    def objects(self) -> list[ConfigObject]:
        return [record.handle for record in self._objects.values()]

    def write_batch(self, records: Sequence[StoredObject]) -> None:
        """Insert complete objects; nothing is inserted if any uid is taken."""
        keys = [(record.handle.class_name, record.handle.uid) for record in records]
        if len(set(keys)) != len(keys):
            raise StoreError("Batch contains the same object twice")
        for class_name, uid in keys:
            if self.exists(class_name, uid):
                raise StoreError(f"Object {uid}@{class_name} already exists")
        for key, record in zip(keys, records):
            self._objects[key] = StoredObject(
                file=record.file,
                handle=record.handle,
                values=dict(record.values),
                references={
                    name: list(ref) if isinstance(ref, list) else ref
                    for name, ref in record.references.items()
                },
            )

    def _record(self, class_name: str, uid: str) -> StoredObject:
        try:
            return self._objects[(class_name, uid)]
        except KeyError as exc:
            raise StoreError(f"No object {uid}@{class_name} in store") from exc

    def _records(self) -> list[StoredObject]:
        return list(self._objects.values())

    def _clear(self) -> None:
        self._objects.clear()


class StagedConfigStore(InMemoryConfigStore):
    """
    Buffer writes destined for another store.

    New objects live in memory until `commit` writes them into the target,
    so a failed generation can be dropped without touching the target.
    Lookups of objects that were not staged fall through to the target.
    """

    def __init__(self, target: ConfigStore) -> None:
        super().__init__()
        self._target = target

    @property
    def target(self) -> ConfigStore:
        return self._target

    def create(self, file: str, class_name: str, uid: str) -> ConfigObject:
        if self._target.exists(class_name, uid):
            raise StoreError(f"Object {uid}@{class_name} already exists")
        return super().create(file, class_name, uid)

    def get(self, class_name: str, uid: str) -> ConfigObject:
        if super().exists(class_name, uid):
            return super().get(class_name, uid)
        return self._target.get(class_name, uid)

    def exists(self, class_name: str, uid: str) -> bool:
        return super().exists(class_name, uid) or self._target.exists(class_name, uid)

    def commit(self) -> list[ConfigObject]:
        """
        Write every staged object into the target and empty the buffer.

        Targets implementing `BatchConfigStore` receive all objects in one
        atomic call. Other targets get the objects replayed one operation at
        a time, so a failure part way leaves the objects already written.
        """
        records = self._records()
        if isinstance(self._target, BatchConfigStore):
            self._target.write_batch(records)
        else:
            self._replay(records)
        self._clear()
        logger.debug("Committed %d staged objects", len(records))
        return [record.handle for record in records]

    def discard(self) -> None:
        """Drop every staged object."""
        if len(self):
            logger.debug("Discarding %d staged objects", len(self))
        self._clear()

    def _replay(self, records: Sequence[StoredObject]) -> None:
        # Create everything first so references between staged objects resolve.
        for record in records:
            self._target.create(record.file, record.handle.class_name, record.handle.uid)
        for record in records:
            for name, value in record.values.items():
                self._target.set_value(record.handle, name, value)
            for name, ref in record.references.items():
                if isinstance(ref, list):
                    self._target.set_reference_list(record.handle, name, ref)
                else:
                    self._target.set_reference(record.handle, name, ref)


__all__ = [
    "BatchConfigStore",
    "ConfigStore",
    "InMemoryConfigStore",
    "Reference",
    "StagedConfigStore",
    "StoredObject",
]
