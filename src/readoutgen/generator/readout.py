"""
Module generation for readout applications.

A readout application expands into one link handler per enabled data
stream, one data reader per readout group and, when configured, a single
TP handler shared by every link handler. All objects are written through a
`ConfigStore`; by default they are staged and committed only once the whole
topology has been built.
"""

from __future__ import annotations

import logging

from ..core.contracts import ConfigObject, DROStreamConf, ReadoutApplication, ReadoutGroup, Session
from ..core.errors import MissingConfiguration, StructuralMismatch
from ..core.store import ConfigStore, StagedConfigStore
from .factory import register
from .link_handler import build_stream_handler
from .rules import resolve_rules
from .tp_handler import build_tp_handler

logger = logging.getLogger(__name__)


def reader_uid(app_uid: str, index: int) -> str:
    return f"datareader-{app_uid}-{index}"


@register("ReadoutApplication")
def generate_readout_modules(
    app: ReadoutApplication,
    store: ConfigStore,
    dbfile: str,
    session: Session,
    *,
    transactional: bool = True,
    strict_rules: bool = False,
) -> list[ConfigObject]:
    """
    Create the module topology of ``app`` inside ``store``.

    Returns the TP handler (if any) followed, per processed group, by the
    group's link handlers and then its data reader. With ``transactional``
    disabled objects are written straight to ``store`` and anything created
    before a failure is left behind.
    """

    if not transactional:
        return _generate(app, store, dbfile, session, strict_rules=strict_rules)

    staged = StagedConfigStore(store)
    try:
        modules = _generate(app, staged, dbfile, session, strict_rules=strict_rules)
    except Exception:
        staged.discard()
        raise
    staged.commit()
    return modules


def _generate(
    app: ReadoutApplication,
    store: ConfigStore,
    dbfile: str,
    session: Session,
    *,
    strict_rules: bool,
) -> list[ConfigObject]:
    dlh_conf = app.link_handler
    if dlh_conf is None:
        raise MissingConfiguration(f"No link handler configuration given for {app.uid}")
    rdr_conf = app.data_reader
    if rdr_conf is None:
        raise MissingConfiguration(f"No DataReader configuration given for {app.uid}")
    dlh_class = dlh_conf.template_for

    descriptors = resolve_rules(app.queue_rules, app.network_rules, dlh_class, strict=strict_rules)

    modules: list[ConfigObject] = []
    tp = build_tp_handler(
        store,
        dbfile,
        app.tp_handler,
        app.tp_src_id,
        descriptors.tp_queue,
        descriptors.tp_network,
    )
    tp_queue = None
    if tp is not None:
        tp_queue = tp.queue
        modules.append(tp.handler)

    reader_index = 0
    port_offset = 0
    for item in app.contains:
        if not session.is_enabled(item):
            logger.debug("Ignoring disabled ReadoutGroup %s", item.uid)
            continue
        if not isinstance(item, ReadoutGroup):
            raise StructuralMismatch(
                f"{app.uid} contains {item.uid}@{item.class_name}, not a ReadoutGroup"
            )

        queues: list[ConfigObject] = []
        for resource in item.contains:
            if not isinstance(resource, DROStreamConf):
                raise StructuralMismatch(
                    f"ReadoutGroup {item.uid} contains {resource.uid}@{resource.class_name}, "
                    "not a DROStreamConf"
                )
            built = build_stream_handler(
                store,
                dbfile,
                resource,
                session,
                dlh_conf,
                dlh_class,
                descriptors.dlh_queue,
                descriptors.dlh_network,
                tp_queue,
                port_offset,
            )
            if built is None:
                continue
            port_offset = built.next_port_offset
            queues.append(built.queue)
            modules.append(built.handler)

        reader_class = rdr_conf.template_for
        logger.debug("Creating configuration object for data reader class %s", reader_class)
        reader = store.create(dbfile, reader_class, reader_uid(app.uid, reader_index))
        reader_index += 1
        store.set_reference_list(reader, "inputs", queues)
        store.set_reference(reader, "configuration", rdr_conf.config_object)
        modules.append(reader)

    logger.info(
        "Generated %d modules for %s (%d readers, %d stream handlers)",
        len(modules),
        app.uid,
        reader_index,
        port_offset,
    )
    return modules


__all__ = ["generate_readout_modules", "reader_uid"]
