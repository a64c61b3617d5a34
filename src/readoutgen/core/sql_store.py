"""
Persistent configuration store backed by SQLModel/SQLAlchemy.

Each configuration object is one row keyed by class name and uid. Attribute
values and references are kept as JSON documents so the schema does not
depend on the classes being generated.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Callable, Iterable, Sequence
from typing import Any

from sqlalchemy import UniqueConstraint
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.pool import StaticPool
from sqlmodel import Field, Session, SQLModel, select
from sqlmodel import create_engine as sqlmodel_create_engine

from .contracts import ConfigObject
from .errors import StoreError
from .store import Reference, StoredObject

logger = logging.getLogger(__name__)


class ConfigRecord(SQLModel, table=True):
    """SQLModel table storing one configuration object per row."""

    __tablename__ = "config_objects"
    __table_args__ = (UniqueConstraint("class_name", "uid", name="uq_config_object"),)

    id: int | None = Field(default=None, primary_key=True)
    file: str = Field(index=True)
    class_name: str = Field(index=True)
    uid: str = Field(index=True)
    values_json: str = Field(default="{}")
    references_json: str = Field(default="{}")


def _encode_reference(ref: Reference) -> Any:
    if ref is None:
        return None
    if isinstance(ref, list):
        return [item.model_dump() for item in ref]
    return ref.model_dump()


def _decode_reference(raw: Any) -> Reference:
    if raw is None:
        return None
    if isinstance(raw, list):
        return [ConfigObject.model_validate(item) for item in raw]
    return ConfigObject.model_validate(raw)


class SqlConfigStore:
    """`ConfigStore` implementation persisting objects in a SQL database."""

    def __init__(
        self,
        database_url: str = "sqlite://",
        *,
        engine_factory: Callable[[str], Any] | None = None,
    ) -> None:
        self._database_url = database_url
        factory = engine_factory or self._default_engine_factory
        self._engine = factory(database_url)
        SQLModel.metadata.create_all(self._engine)
        logger.debug("Configuration store ready at %s", database_url)

    @property
    def database_url(self) -> str:
        return self._database_url

    def create(self, file: str, class_name: str, uid: str) -> ConfigObject:
        try:
            with Session(self._engine) as session:
                if self._find(session, class_name, uid) is not None:
                    raise StoreError(f"Object {uid}@{class_name} already exists")
                session.add(ConfigRecord(file=file, class_name=class_name, uid=uid))
                session.commit()
        except SQLAlchemyError as exc:
            raise StoreError(f"Failed to create {uid}@{class_name}: {exc}") from exc
        return ConfigObject(class_name=class_name, uid=uid)

    def get(self, class_name: str, uid: str) -> ConfigObject:
        with Session(self._engine) as session:
            self._require(session, class_name, uid)
        return ConfigObject(class_name=class_name, uid=uid)

    def exists(self, class_name: str, uid: str) -> bool:
        with Session(self._engine) as session:
            return self._find(session, class_name, uid) is not None

    def set_value(self, obj: ConfigObject, name: str, value: Any) -> None:
        self._update(obj, "values_json", name, value)

    def set_reference(self, obj: ConfigObject, name: str, target: ConfigObject | None) -> None:
        self._update(obj, "references_json", name, _encode_reference(target))

    def set_reference_list(
        self, obj: ConfigObject, name: str, targets: Iterable[ConfigObject]
    ) -> None:
        self._update(obj, "references_json", name, _encode_reference(list(targets)))

    def values(self, obj: ConfigObject) -> dict[str, Any]:
        with Session(self._engine) as session:
            record = self._require(session, obj.class_name, obj.uid)
            return json.loads(record.values_json)

    def references(self, obj: ConfigObject) -> dict[str, Reference]:
        with Session(self._engine) as session:
            record = self._require(session, obj.class_name, obj.uid)
            raw = json.loads(record.references_json)
        return {name: _decode_reference(value) for name, value in raw.items()}

    def file_of(self, obj: ConfigObject) -> str:
        with Session(self._engine) as session:
            return self._require(session, obj.class_name, obj.uid).file

    def objects(self) -> list[ConfigObject]:
        with Session(self._engine) as session:
            records = session.exec(select(ConfigRecord).order_by(ConfigRecord.id)).all()
            return [ConfigObject(class_name=r.class_name, uid=r.uid) for r in records]

    def write_batch(self, records: Sequence[StoredObject]) -> None:
        """
        Insert complete objects in a single transaction.

        Either every record is written or, on any collision or database
        error, none is.
        """
        try:
            with Session(self._engine) as session:
                for record in records:
                    handle = record.handle
                    if self._find(session, handle.class_name, handle.uid) is not None:
                        raise StoreError(f"Object {handle} already exists")
                    session.add(
                        ConfigRecord(
                            file=record.file,
                            class_name=handle.class_name,
                            uid=handle.uid,
                            values_json=json.dumps(record.values, sort_keys=True),
                            references_json=json.dumps(
                                {
                                    name: _encode_reference(ref)
                                    for name, ref in record.references.items()
                                },
                                sort_keys=True,
                            ),
                        )
                    )
                session.commit()
        except SQLAlchemyError as exc:
            raise StoreError(f"Failed to write {len(records)} objects: {exc}") from exc
        logger.debug("Wrote %d objects in one transaction", len(records))

    def _update(self, obj: ConfigObject, column: str, name: str, value: Any) -> None:
        try:
            with Session(self._engine) as session:
                record = self._require(session, obj.class_name, obj.uid)
                document = json.loads(getattr(record, column))
                document[name] = value
                setattr(record, column, json.dumps(document, sort_keys=True))
                session.add(record)
                session.commit()
        except SQLAlchemyError as exc:
            raise StoreError(f"Failed to update {obj}: {exc}") from exc

    @staticmethod
    def _find(session: Session, class_name: str, uid: str) -> ConfigRecord | None:
        stmt = select(ConfigRecord).where(
            ConfigRecord.class_name == class_name, ConfigRecord.uid == uid
        )
        return session.exec(stmt).first()

    def _require(self, session: Session, class_name: str, uid: str) -> ConfigRecord:
        record = self._find(session, class_name, uid)
        if record is None:
            raise StoreError(f"No object {uid}@{class_name} in {self._database_url}")
        return record

    def _default_engine_factory(self, database_url: str):
        if database_url in ("sqlite://", "sqlite:///:memory:"):
            # A single shared connection keeps the in-memory database alive.
            return sqlmodel_create_engine(
                database_url,
                echo=False,
                connect_args={"check_same_thread": False},
                poolclass=StaticPool,
            )
        connect_args = {"check_same_thread": False} if database_url.startswith("sqlite") else {}
        return sqlmodel_create_engine(database_url, echo=False, connect_args=connect_args)


__all__ = ["ConfigRecord", "SqlConfigStore"]
