"""
Core infrastructure for readout topology generation.

This package exposes the schema contracts, the configuration store
adapters, the YAML configuration service and the error taxonomy.
"""

from .config import ConfigError, ConfigService, ConfigSnapshot, seed_templates
from .contracts import (
    ConfigObject,
    DataReaderConf,
    DROStreamConf,
    LinkHandlerConf,
    NetworkConnectionDescriptor,
    NetworkConnectionRule,
    QueueConnectionRule,
    QueueDescriptor,
    ReadoutApplication,
    ReadoutGroup,
    Resource,
    Session,
    TPHandlerConf,
)
from .errors import (
    ConfigurationError,
    DuplicateRule,
    InvalidPort,
    InvalidSourceId,
    MissingConfiguration,
    MissingDescriptor,
    ReadoutGenError,
    StoreError,
    StructuralMismatch,
)
from .sql_store import SqlConfigStore
from .store import BatchConfigStore, ConfigStore, InMemoryConfigStore, StagedConfigStore

__all__ = [
    "BatchConfigStore",
    "ConfigError",
    "ConfigObject",
    "ConfigService",
    "ConfigSnapshot",
    "ConfigStore",
    "ConfigurationError",
    "DROStreamConf",
    "DataReaderConf",
    "DuplicateRule",
    "InMemoryConfigStore",
    "InvalidPort",
    "InvalidSourceId",
    "LinkHandlerConf",
    "MissingConfiguration",
    "MissingDescriptor",
    "NetworkConnectionDescriptor",
    "NetworkConnectionRule",
    "QueueConnectionRule",
    "QueueDescriptor",
    "ReadoutApplication",
    "ReadoutGenError",
    "ReadoutGroup",
    "Resource",
    "Session",
    "SqlConfigStore",
    "StagedConfigStore",
    "StoreError",
    "StructuralMismatch",
    "TPHandlerConf",
    "seed_templates",
]
