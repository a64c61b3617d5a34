"""
Builder for the optional shared trigger-primitive handler.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from ..core.contracts import (
    ConfigObject,
    NetworkConnectionDescriptor,
    QueueDescriptor,
    TPHandlerConf,
)
from ..core.errors import InvalidSourceId
from ..core.store import ConfigStore
from .rules import require_descriptor

logger = logging.getLogger(__name__)

TP_HANDLER_CLASS = "TPHandler"


@dataclass(frozen=True)
class TPHandlerObjects:
    """Objects created for the shared TP handler."""

    handler: ConfigObject
    queue: ConfigObject
    network: ConfigObject


def create_queue(
    store: ConfigStore, dbfile: str, uid: str, descriptor: QueueDescriptor
) -> ConfigObject:
    """Create a `Queue` object from a queue descriptor."""
    queue = store.create(dbfile, "Queue", uid)
    store.set_value(queue, "data_type", descriptor.data_type)
    store.set_value(queue, "queue_type", descriptor.queue_type)
    store.set_value(queue, "capacity", descriptor.capacity)
    return queue


def create_network_connection(
    store: ConfigStore,
    dbfile: str,
    uid: str,
    descriptor: NetworkConnectionDescriptor,
    port: int,
) -> ConfigObject:
    """Create a `NetworkConnection` object from a network descriptor."""
    network = store.create(dbfile, "NetworkConnection", uid)
    store.set_value(network, "data_type", descriptor.data_type)
    store.set_value(network, "connection_type", descriptor.connection_type)
    store.set_value(network, "uri", descriptor.uri)
    store.set_value(network, "port", port)
    return network


def build_tp_handler(
    store: ConfigStore,
    dbfile: str,
    config: TPHandlerConf | None,
    source_id: int,
    queue_desc: QueueDescriptor | None,
    net_desc: NetworkConnectionDescriptor | None,
) -> TPHandlerObjects | None:
    """
    Create the TP handler with its input queue and data-request connection.

    Returns ``None`` when no TP handler is configured. The network
    descriptor port is used unchanged.
    """

    if config is None:
        return None
    net_desc = require_descriptor(net_desc, "No TPHandler network descriptor given")
    queue_desc = require_descriptor(queue_desc, "No TPHandler input queue descriptor given")
    if source_id == 0:
        raise InvalidSourceId("No TPHandler src_id given")

    queue = create_queue(store, dbfile, f"inputToTPH-{source_id}", queue_desc)
    network = create_network_connection(
        store, dbfile, f"ReqToTPH-{source_id}", net_desc, net_desc.port
    )

    handler = store.create(dbfile, TP_HANDLER_CLASS, f"tphandler-{source_id}")
    store.set_value(handler, "source_id", source_id)
    store.set_reference(handler, "handler_configuration", config.config_object)
    store.set_reference_list(handler, "inputs", [queue, network])
    logger.debug("Created %s with inputs %s, %s", handler, queue, network)
    return TPHandlerObjects(handler=handler, queue=queue, network=network)


__all__ = [
    "TPHandlerObjects",
    "TP_HANDLER_CLASS",
    "build_tp_handler",
    "create_network_connection",
    "create_queue",
]
