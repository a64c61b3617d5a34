"""
Connection rule resolution.

Queue and network rules bind a consumer class to a connection descriptor.
Resolution classifies each rule by the role it feeds (link handler or TP
handler) in one pass per list. When several rules match the same role the
last one wins unless strict resolution is requested.
"""

from __future__ import annotations

import enum
import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from typing import TypeVar

from ..core.contracts import (
    NetworkConnectionDescriptor,
    NetworkConnectionRule,
    QueueConnectionRule,
    QueueDescriptor,
)
from ..core.errors import DuplicateRule, MissingDescriptor

logger = logging.getLogger(__name__)

LINK_HANDLER_TAG = "DLH"
TP_HANDLER_TAG = "TPHandler"

D = TypeVar("D")


class Role(enum.Enum):
    """Consumer roles that receive generated connections."""

    LINK_HANDLER = "link handler"
    TP_HANDLER = "TP handler"


def classify(consumer_class: str, handler_class: str) -> Role | None:
    """Map a rule's consumer class to the role it feeds, if any."""
    if consumer_class in (LINK_HANDLER_TAG, handler_class):
        return Role.LINK_HANDLER
    if consumer_class == TP_HANDLER_TAG:
        return Role.TP_HANDLER
    return None


@dataclass(frozen=True)
class ResolvedDescriptors:
    """Descriptors selected for each role; unset roles stay `None`."""

    dlh_queue: QueueDescriptor | None = None
    dlh_network: NetworkConnectionDescriptor | None = None
    tp_queue: QueueDescriptor | None = None
    tp_network: NetworkConnectionDescriptor | None = None


def require_descriptor(value: D | None, message: str) -> D:
    """Return a resolved descriptor, or raise `MissingDescriptor` when none matched."""
    if value is None:
        raise MissingDescriptor(message)
    return value


def _scan(
    rules: Iterable[tuple[str, str, D]],
    handler_class: str,
    *,
    strict: bool,
    kind: str,
) -> dict[Role, D]:
    table: dict[Role, D] = {}
    for rule_uid, consumer_class, descriptor in rules:
        role = classify(consumer_class, handler_class)
        if role is None:
            logger.debug("%s rule %s targets %s; not used here", kind, rule_uid, consumer_class)
            continue
        if role in table:
            if strict:
                raise DuplicateRule(f"More than one {kind} rule matches the {role.value} role")
            logger.debug("%s rule %s overrides earlier %s match", kind, rule_uid, role.value)
        table[role] = descriptor
    return table


def resolve_rules(
    queue_rules: Sequence[QueueConnectionRule],
    network_rules: Sequence[NetworkConnectionRule],
    handler_class: str,
    *,
    strict: bool = False,
) -> ResolvedDescriptors:
    """Select the queue and network descriptors feeding each handler role."""

    queues = _scan(
        ((rule.uid, rule.destination_class, rule.descriptor) for rule in queue_rules),
        handler_class,
        strict=strict,
        kind="queue",
    )
    networks = _scan(
        ((rule.uid, rule.endpoint_class, rule.descriptor) for rule in network_rules),
        handler_class,
        strict=strict,
        kind="network",
    )
    return ResolvedDescriptors(
        dlh_queue=queues.get(Role.LINK_HANDLER),
        dlh_network=networks.get(Role.LINK_HANDLER),
        tp_queue=queues.get(Role.TP_HANDLER),
        tp_network=networks.get(Role.TP_HANDLER),
    )


__all__ = [
    "LINK_HANDLER_TAG",
    "ResolvedDescriptors",
    "Role",
    "TP_HANDLER_TAG",
    "classify",
    "require_descriptor",
    "resolve_rules",
]
