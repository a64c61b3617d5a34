"""
readoutgen - readout application topology generator

Expands declarative readout application descriptions into linked
configuration objects: link handlers, data readers, the shared TP handler
and their queue and network connections.
"""

__version__ = "0.1.0"

from readoutgen.core import ConfigObject, ReadoutApplication, Session
from readoutgen.generator import generate_modules, generate_readout_modules

__all__ = [
    "ConfigObject",
    "ReadoutApplication",
    "Session",
    "generate_modules",
    "generate_readout_modules",
]
