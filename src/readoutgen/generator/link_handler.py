"""
Per-stream link handler construction.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from ..core.contracts import (
    UINT16_MAX,
    ConfigObject,
    DROStreamConf,
    LinkHandlerConf,
    NetworkConnectionDescriptor,
    QueueDescriptor,
    Session,
)
from ..core.errors import InvalidPort
from ..core.store import ConfigStore
from .rules import require_descriptor
from .tp_handler import create_network_connection, create_queue

logger = logging.getLogger(__name__)

HANDLER_UID_PREFIX = "DLH"


@dataclass(frozen=True)
class StreamHandlerObjects:
    """Objects created for one stream plus the port offset for the next stream."""

    handler: ConfigObject
    queue: ConfigObject
    network: ConfigObject
    next_port_offset: int


def handler_uid(src_id: int) -> str:
    return f"{HANDLER_UID_PREFIX}-{src_id}"


def queue_uid(src_id: int) -> str:
    return f"inputToDLH-{src_id}"


def network_uid(uid_base: str, src_id: int) -> str:
    return f"{uid_base}{src_id:08x}"


def offset_port(base_port: int, port_offset: int) -> int:
    """Apply the stream offset to a base port; port 0 stays unassigned."""
    if base_port == 0:
        return 0
    port = base_port + port_offset
    if port > UINT16_MAX:
        raise InvalidPort(f"Port {base_port}+{port_offset} exceeds {UINT16_MAX}")
    return port


def build_stream_handler(
    store: ConfigStore,
    dbfile: str,
    stream: DROStreamConf,
    session: Session,
    dlh_conf: LinkHandlerConf,
    dlh_class: str,
    queue_desc: QueueDescriptor | None,
    net_desc: NetworkConnectionDescriptor | None,
    tp_queue: ConfigObject | None,
    port_offset: int,
) -> StreamHandlerObjects | None:
    """
    Create the link handler, its input queue and its data-request connection.

    Disabled streams produce nothing and do not consume a port offset, so
    ``None`` is returned and the caller keeps its current offset.
    """

    if not session.is_enabled(stream):
        logger.debug("Ignoring disabled DROStreamConf %s", stream.uid)
        return None
    queue_desc = require_descriptor(queue_desc, "No link handler input queue descriptor given")
    net_desc = require_descriptor(net_desc, "No link handler network descriptor given")

    src_id = stream.src_id
    port = offset_port(net_desc.port, port_offset)

    logger.debug("Creating configuration object for link handler class %s", dlh_class)
    handler = store.create(dbfile, dlh_class, handler_uid(src_id))
    store.set_value(handler, "source_id", src_id)
    store.set_reference(handler, "handler_configuration", dlh_conf.config_object)
    if tp_queue is not None:
        store.set_reference_list(handler, "outputs", [tp_queue])

    queue = create_queue(store, dbfile, queue_uid(src_id), queue_desc)
    network = create_network_connection(
        store, dbfile, network_uid(net_desc.uid_base, src_id), net_desc, port
    )
    store.set_reference_list(handler, "inputs", [queue, network])

    return StreamHandlerObjects(
        handler=handler,
        queue=queue,
        network=network,
        next_port_offset=port_offset + 1,
    )


__all__ = [
    "HANDLER_UID_PREFIX",
    "StreamHandlerObjects",
    "build_stream_handler",
    "handler_uid",
    "network_uid",
    "offset_port",
    "queue_uid",
]
