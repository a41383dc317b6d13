"""
hotconf

Path-addressed configuration with validated, atomic hot reload.  Files,
environment variables and in-memory data are bound to typed pydantic models
at startup; edits to a file's shadow copy are validated before they replace
the live value or the file.
"""

__version__ = "0.1.0"

from .tree import NodeKind, TreeNode, as_tree

from .addressing import ConfigPath, Segment, Directive, parse_path, resolve, lookup, select

from .exceptions import (
    HotconfError,
    AddressingError,
    BadPathError,
    NotFoundError,
    TypeMismatchError,
    OutOfRangeError,
    DecodeError,
    ConfigurationValidationError,
    FileOperationError,
    RegistryError,
    AlreadyRegisteredError,
    NotRegisteredError,
    NotAvailableError,
    SourceError,
    WatcherError,
    ConstructionError
)

from .formats import register_decoder, decoder_for, decode_bytes, decode_file, supported_extensions

from .sources import (
    ConfigurationSource,
    Resolution,
    DirectorySource,
    FileSource,
    MemorySource,
    EnvironmentSource,
    register_source_type,
    create_source
)

from .models import ConfigurationModel
from .fields import Date, Timestamp

from .handle import ConfigurationHandle
from .settings import RuntimeSettings, load_runtime_settings
from .supervisor import ReloadSupervisor, WatchEntry, WatchState
from .registry import ConfigurationRegistry
from .constructors import ConstructableModel, ConstructorRegistry
from .builder import RegistryBuilder
from .logging_setup import setup_logging

from .utils import (
    create_registry_builder,
    load_registry_from_directory,
    load_registry_with_environment
)

__all__ = [
    # Trees and paths
    'NodeKind',
    'TreeNode',
    'as_tree',
    'ConfigPath',
    'Segment',
    'Directive',
    'parse_path',
    'resolve',
    'lookup',
    'select',

    # Errors
    'HotconfError',
    'AddressingError',
    'BadPathError',
    'NotFoundError',
    'TypeMismatchError',
    'OutOfRangeError',
    'DecodeError',
    'ConfigurationValidationError',
    'FileOperationError',
    'RegistryError',
    'AlreadyRegisteredError',
    'NotRegisteredError',
    'NotAvailableError',
    'SourceError',
    'WatcherError',
    'ConstructionError',

    # Formats
    'register_decoder',
    'decoder_for',
    'decode_bytes',
    'decode_file',
    'supported_extensions',

    # Sources
    'ConfigurationSource',
    'Resolution',
    'DirectorySource',
    'FileSource',
    'MemorySource',
    'EnvironmentSource',
    'register_source_type',
    'create_source',

    # Models
    'ConfigurationModel',
    'Date',
    'Timestamp',

    # Runtime
    'ConfigurationHandle',
    'RuntimeSettings',
    'load_runtime_settings',
    'ReloadSupervisor',
    'WatchEntry',
    'WatchState',
    'ConfigurationRegistry',
    'ConstructableModel',
    'ConstructorRegistry',
    'RegistryBuilder',
    'setup_logging',

    # Utilities
    'create_registry_builder',
    'load_registry_from_directory',
    'load_registry_with_environment'
]
