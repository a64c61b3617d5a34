"""
Topology generators turning application descriptions into configuration objects.
"""

from .factory import MODULE_FACTORY, generate_modules, register
from .link_handler import StreamHandlerObjects, build_stream_handler
from .readout import generate_readout_modules
from .rules import ResolvedDescriptors, Role, resolve_rules
from .tp_handler import TPHandlerObjects, build_tp_handler

__all__ = [
    "MODULE_FACTORY",
    "ResolvedDescriptors",
    "Role",
    "StreamHandlerObjects",
    "TPHandlerObjects",
    "build_stream_handler",
    "build_tp_handler",
    "generate_modules",
    "generate_readout_modules",
    "register",
    "resolve_rules",
]
