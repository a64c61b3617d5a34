"""
Error taxonomy for topology generation.

Every error is fatal for the generation call that raised it. Disabled
groups and streams are not errors and never surface here.
"""

from __future__ import annotations


class ReadoutGenError(RuntimeError):
    """Base class for all readoutgen failures."""


class ConfigurationError(ReadoutGenError):
    """The application description cannot be turned into a topology."""


class MissingConfiguration(ConfigurationError):
    """A required template (link handler, data reader) is absent."""


class MissingDescriptor(ConfigurationError):
    """No queue or network descriptor matched a role that needs one."""


class InvalidSourceId(ConfigurationError):
    """The TP handler was configured with the zero source id sentinel."""


class StructuralMismatch(ConfigurationError):
    """A contained item is not of the expected resource class."""


class DuplicateRule(ConfigurationError):
    """More than one connection rule matched the same role (strict mode only)."""


class InvalidPort(ConfigurationError):
    """An offset network port does not fit into 16 bits."""


class StoreError(ReadoutGenError):
    """The configuration store rejected a create, get or set operation."""


__all__ = [
    "ConfigurationError",
    "DuplicateRule",
    "InvalidPort",
    "InvalidSourceId",
    "MissingConfiguration",
    "MissingDescriptor",
    "ReadoutGenError",
    "StoreError",
    "StructuralMismatch",
]
