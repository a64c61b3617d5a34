"""
Dynaconf-powered loader for readout application descriptions.

The configuration service loads the layered YAML files of a configuration
directory, validates them with Pydantic and builds the schema objects
(`ReadoutApplication`, `Session`) consumed by the module generators.
Descriptors are declared once by uid and referenced from connection rules;
resources are built from their ``class`` key.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

from dynaconf import Dynaconf
from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError

from .contracts import (
    ConfigObject,
    DataReaderConf,
    DROStreamConf,
    HandlerTemplate,
    LinkHandlerConf,
    NetworkConnectionDescriptor,
    NetworkConnectionRule,
    QueueConnectionRule,
    QueueDescriptor,
    ReadoutApplication,
    ReadoutGroup,
    Resource,
    ResourceSet,
    Session,
    TPHandlerConf,
)
from .store import ConfigStore

logger = logging.getLogger(__name__)


def _section(raw: dict[str, Any], key: str) -> dict[str, Any]:
    """Case-insensitive dictionary lookup helper."""
    value = raw.get(key) or raw.get(key.upper()) or raw.get(key.lower())
    if isinstance(value, dict):
        return value
    return {}


def _section_list(raw: dict[str, Any], key: str) -> list[dict[str, Any]]:
    """List-aware helper for case-insensitive lookups."""
    value = raw.get(key) or raw.get(key.upper()) or raw.get(key.lower())
    if isinstance(value, list):
        return [item for item in value if isinstance(item, dict)]
    if isinstance(value, dict):
        return [value]
    return []


def _deep_merge(base: dict[str, Any], updates: dict[str, Any]) -> dict[str, Any]:
    """Recursively merge dictionaries without mutating the originals."""
    result: dict[str, Any] = {**base}
    for key, value in updates.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def _match_keys(base: dict[str, Any], updates: dict[str, Any]) -> dict[str, Any]:
    """
    Rename update keys to the spelling already used in ``base``.

    Dynaconf upper-cases top-level keys, so ``session`` must land on ``SESSION``.
    """
    spelling = {str(key).lower(): key for key in base}
    result: dict[str, Any] = {}
    for key, value in updates.items():
        target = spelling.get(str(key).lower(), key)
        if isinstance(value, dict) and isinstance(base.get(target), dict):
            value = _match_keys(base[target], value)
        result[target] = value
    return result


CONFIG_FILENAMES = ("readout.yaml", "session.yaml", "overrides.yaml")
DEFAULT_CONFIG_DIR = Path.cwd() / "config"

RESOURCE_CLASSES: dict[str, type[Resource]] = {
    "DROStreamConf": DROStreamConf,
    "ReadoutGroup": ReadoutGroup,
    "ResourceSet": ResourceSet,
}


class ConfigError(RuntimeError):
    """Raised when configuration files are missing or invalid."""


class SessionSettings(BaseModel):
    """Session block: which resources are disabled for this run."""

    model_config = ConfigDict(extra="ignore")

    uid: str = Field(default="default-session")
    disabled: list[str] = Field(default_factory=list)

    def to_session(self) -> Session:
        return Session(uid=self.uid, disabled=frozenset(self.disabled))


class DescriptorSettings(BaseModel):
    """Connection descriptors shared by all applications."""

    model_config = ConfigDict(extra="ignore")

    queues: list[QueueDescriptor] = Field(default_factory=list)
    networks: list[NetworkConnectionDescriptor] = Field(default_factory=list)

    def queue(self, uid: str) -> QueueDescriptor:
        for descriptor in self.queues:
            if descriptor.uid == uid:
                return descriptor
        raise ConfigError(f"Unknown queue descriptor '{uid}'")

    def network(self, uid: str) -> NetworkConnectionDescriptor:
        for descriptor in self.networks:
            if descriptor.uid == uid:
                return descriptor
        raise ConfigError(f"Unknown network descriptor '{uid}'")


class RuleSettings(BaseModel):
    """Rule entry referencing a descriptor by uid."""

    model_config = ConfigDict(extra="ignore")

    uid: str | None = Field(default=None)
    consumer_class: str = Field(
        validation_alias=AliasChoices("consumer_class", "destination_class", "endpoint_class")
    )
    descriptor: str


class ApplicationSettings(BaseModel):
    """Raw application entry as written in ``readout.yaml``."""

    model_config = ConfigDict(extra="ignore")

    uid: str
    class_name: str = Field(
        default="ReadoutApplication",
        validation_alias=AliasChoices("class", "class_name"),
    )
    link_handler: dict[str, Any] | None = Field(default=None)
    data_reader: dict[str, Any] | None = Field(default=None)
    tp_handler: dict[str, Any] | None = Field(default=None)
    tp_src_id: int = Field(default=0, ge=0)
    queue_rules: list[RuleSettings] = Field(default_factory=list)
    network_rules: list[RuleSettings] = Field(default_factory=list)
    contains: list[dict[str, Any]] = Field(default_factory=list)


def _template(model: type[HandlerTemplate], data: dict[str, Any] | None) -> Any:
    if data is None:
        return None
    payload = dict(data)
    if "class" in payload:
        payload["class_name"] = payload.pop("class")
    return model.model_validate(payload)


def build_resource(data: dict[str, Any]) -> Resource:
    """Instantiate a resource (recursively for resource sets) from its ``class`` key."""

    payload = dict(data)
    class_name = str(payload.pop("class", payload.pop("class_name", "Resource")))
    model = RESOURCE_CLASSES.get(class_name, Resource)
    if issubclass(model, ResourceSet):
        payload["contains"] = [build_resource(item) for item in payload.get("contains", [])]
    return model(class_name=class_name, **payload)


class ConfigSnapshot(BaseModel):
    """
    Validated view of the merged configuration files.

    Provides helpers to build the schema objects handed to the generators.
    """

    model_config = ConfigDict(extra="ignore")

    session: SessionSettings = Field(default_factory=SessionSettings)
    descriptors: DescriptorSettings = Field(default_factory=DescriptorSettings)
    applications: list[ApplicationSettings] = Field(default_factory=list)

    def application_uids(self) -> list[str]:
        return [app.uid for app in self.applications]

    def build_session(self) -> Session:
        return self.session.to_session()

    def build_application(self, uid: str | None = None) -> ReadoutApplication:
        """Build the application ``uid`` (or the first declared one)."""

        if not self.applications:
            raise ConfigError("No applications declared")
        if uid is None:
            settings = self.applications[0]
        else:
            matches = [app for app in self.applications if app.uid == uid]
            if not matches:
                raise ConfigError(
                    f"No application '{uid}'. Available: {self.application_uids()}"
                )
            settings = matches[0]

        try:
            return ReadoutApplication(
                uid=settings.uid,
                class_name=settings.class_name,
                link_handler=_template(LinkHandlerConf, settings.link_handler),
                data_reader=_template(DataReaderConf, settings.data_reader),
                tp_handler=_template(TPHandlerConf, settings.tp_handler),
                tp_src_id=settings.tp_src_id,
                queue_rules=[
                    QueueConnectionRule(
                        uid=rule.uid or f"{settings.uid}-qrule-{index}",
                        destination_class=rule.consumer_class,
                        descriptor=self.descriptors.queue(rule.descriptor),
                    )
                    for index, rule in enumerate(settings.queue_rules)
                ],
                network_rules=[
                    NetworkConnectionRule(
                        uid=rule.uid or f"{settings.uid}-nrule-{index}",
                        endpoint_class=rule.consumer_class,
                        descriptor=self.descriptors.network(rule.descriptor),
                    )
                    for index, rule in enumerate(settings.network_rules)
                ],
                contains=[build_resource(item) for item in settings.contains],
            )
        except ValidationError as exc:
            raise ConfigError(f"Application '{settings.uid}' is invalid: {exc}") from exc


def seed_templates(
    store: ConfigStore, dbfile: str, app: ReadoutApplication
) -> list[ConfigObject]:
    """
    Write the application's template configurations into ``store``.

    Generated modules reference these objects, so they must exist before
    the topology is committed. Templates already present are left as is.
    """

    created: list[ConfigObject] = []
    for template in (app.link_handler, app.data_reader, app.tp_handler):
        if template is None:
            continue
        ref = template.config_object
        if store.exists(ref.class_name, ref.uid):
            continue
        obj = store.create(dbfile, ref.class_name, ref.uid)
        store.set_value(obj, "template_for", template.template_for)
        for name, value in template.options.items():
            store.set_value(obj, name, value)
        created.append(obj)
    if created:
        logger.debug("Seeded %d template objects into %s", len(created), dbfile)
    return created


class ConfigService:
    """
    Runtime facade for loading and validating application descriptions.
    """

    def __init__(
        self,
        *,
        config_dir: str | Path | None = None,
        settings: Dynaconf | None = None,
    ) -> None:
        self._config_dir = Path(config_dir) if config_dir else DEFAULT_CONFIG_DIR
        settings_files = [self._config_dir / name for name in CONFIG_FILENAMES]
        existing_files = [str(path) for path in settings_files if path.exists()]
        if settings is None and not existing_files:
            raise ConfigError(
                f"No configuration files found in {self._config_dir}. "
                "Expected at least readout.yaml."
            )

        self._settings = settings or Dynaconf(
            envvar_prefix="READOUTGEN",
            settings_files=existing_files,
            load_dotenv=False,
            environments=False,
        )
        self._snapshot = self._build_snapshot()

    @property
    def snapshot(self) -> ConfigSnapshot:
        """Latest validated configuration snapshot."""
        return self._snapshot

    def refresh(self) -> ConfigSnapshot:
        """Reload configuration files and rebuild the snapshot."""
        self._settings.reload()
        self._snapshot = self._build_snapshot()
        return self._snapshot

    def apply_changes(self, changes: dict[str, Any]) -> ConfigSnapshot:
        """
        Merge the provided changes into the current configuration snapshot.

        Nothing is written back to disk.
        """
        raw = self._settings.as_dict()
        merged = _deep_merge(raw, _match_keys(raw, changes))
        self._snapshot = self._build_snapshot(merged)
        return self._snapshot

    def application(self, uid: str | None = None) -> ReadoutApplication:
        return self._snapshot.build_application(uid)

    def session(self) -> Session:
        return self._snapshot.build_session()

    def _build_snapshot(self, raw: dict[str, Any] | None = None) -> ConfigSnapshot:
        data = self._extract_snapshot_data(raw or self._settings.as_dict())
        try:
            return ConfigSnapshot.model_validate(data)
        except ValidationError as exc:
            raise ConfigError("Configuration validation failed") from exc

    def _extract_snapshot_data(self, raw: dict[str, Any]) -> dict[str, Any]:
        descriptors_section = _section(raw, "descriptors")
        return {
            "session": _section(raw, "session"),
            "descriptors": {
                "queues": _section_list(descriptors_section, "queues"),
                "networks": _section_list(descriptors_section, "networks"),
            },
            "applications": _section_list(raw, "applications"),
        }


__all__ = [
    "ApplicationSettings",
    "ConfigError",
    "ConfigService",
    "ConfigSnapshot",
    "DescriptorSettings",
    "RuleSettings",
    "SessionSettings",
    "build_resource",
    "seed_templates",
]
