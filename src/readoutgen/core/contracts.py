"""
Contracts and schema models for readout topology generation.

These are the read-only inputs the generator consumes (descriptors, rules,
resources, templates, the application itself) and the opaque handle type
used to address objects in the configuration store.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

UINT16_MAX = 0xFFFF
UINT32_MAX = 0xFFFFFFFF


class ConfigObject(BaseModel):
    """Opaque reference to an object held by a configuration store."""

    model_config = ConfigDict(frozen=True)

    class_name: str
    uid: str

    def __str__(self) -> str:
        return f"{self.uid}@{self.class_name}"


class SchemaObject(BaseModel):
    """Base class for all schema-derived inputs."""

    model_config = ConfigDict(extra="allow", frozen=True)

    uid: str = Field(description="Unique identifier within the configuration database.")


class QueueDescriptor(SchemaObject):
    """Template for an in-process queue connection."""

    data_type: str
    queue_type: str = Field(default="kFollySPSCQueue")
    capacity: int = Field(default=1000, ge=0, le=UINT32_MAX)


class NetworkConnectionDescriptor(SchemaObject):
    """Template for a network connection; `uid_base` prefixes per-instance uids."""

    uid_base: str = Field(default="")
    data_type: str
    connection_type: str = Field(default="kSendRecv")
    uri: str = Field(default="")
    port: int = Field(
        default=0,
        ge=0,
        le=UINT16_MAX,
        description="Base port; 0 means no fixed port is assigned.",
    )


class QueueConnectionRule(SchemaObject):
    """Instances of `destination_class` receive queues matching `descriptor`."""

    destination_class: str
    descriptor: QueueDescriptor


class NetworkConnectionRule(SchemaObject):
    """Instances of `endpoint_class` receive network connections matching `descriptor`."""

    endpoint_class: str
    descriptor: NetworkConnectionDescriptor


class Resource(SchemaObject):
    """Anything an application or a resource set may contain."""

    class_name: str = Field(default="Resource")


class DROStreamConf(Resource):
    """One physical data stream feeding a single link handler."""

    class_name: str = Field(default="DROStreamConf")
    src_id: int = Field(ge=0, le=UINT32_MAX)


class ResourceSet(Resource):
    """Ordered container of resources."""

    class_name: str = Field(default="ResourceSet")
    contains: list[Resource] = Field(default_factory=list)


class ReadoutGroup(ResourceSet):
    """Streams sharing one data reader."""

    class_name: str = Field(default="ReadoutGroup")


class HandlerTemplate(SchemaObject):
    """
    Names the module class to instantiate and carries its configuration.

    The configuration payload is opaque to the generator; only the
    reference returned by `config_object` is forwarded to created modules.
    """

    class_name: str
    template_for: str = Field(description="Class of the module created from this template.")
    options: dict[str, Any] = Field(default_factory=dict)

    @property
    def config_object(self) -> ConfigObject:
        return ConfigObject(class_name=self.class_name, uid=self.uid)


class LinkHandlerConf(HandlerTemplate):
    class_name: str = Field(default="LinkHandlerConf")
    template_for: str = Field(default="DataLinkHandler")


class DataReaderConf(HandlerTemplate):
    class_name: str = Field(default="DataReaderConf")
    template_for: str = Field(default="DataReader")


class TPHandlerConf(HandlerTemplate):
    class_name: str = Field(default="TPHandlerConf")
    template_for: str = Field(default="TPHandler")


class ReadoutApplication(SchemaObject):
    """Declarative description of a readout application."""

    class_name: str = Field(default="ReadoutApplication")
    link_handler: LinkHandlerConf | None = None
    data_reader: DataReaderConf | None = None
    tp_handler: TPHandlerConf | None = None
    tp_src_id: int = Field(default=0, ge=0, le=UINT32_MAX)
    queue_rules: list[QueueConnectionRule] = Field(default_factory=list)
    network_rules: list[NetworkConnectionRule] = Field(default_factory=list)
    contains: list[Resource] = Field(default_factory=list)


class Session(SchemaObject):
    """Run context deciding which resources take part in generation."""

    disabled: frozenset[str] = Field(
        default_factory=frozenset, description="Uids of disabled resources."
    )

    def is_enabled(self, resource: Resource) -> bool:
        return resource.uid not in self.disabled


__all__ = [
    "ConfigObject",
    "DROStreamConf",
    "DataReaderConf",
    "HandlerTemplate",
    "LinkHandlerConf",
    "NetworkConnectionDescriptor",
    "NetworkConnectionRule",
    "QueueConnectionRule",
    "QueueDescriptor",
    "ReadoutApplication",
    "ReadoutGroup",
    "Resource",
    "ResourceSet",
    "SchemaObject",
    "Session",
    "TPHandlerConf",
    "UINT16_MAX",
    "UINT32_MAX",
]
