"""
Registry builder for creating ConfigurationRegistry instances.
"""

from pathlib import Path
from typing import Any, List, Optional, Union

from .logging_setup import setup_logging
from .registry import ConfigurationRegistry
from .settings import RuntimeSettings
from .sources import (
    ConfigurationSource,
    DirectorySource,
    EnvironmentSource,
    FileSource,
    MemorySource,
)


class RegistryBuilder:
    """
    Builder for creating ConfigurationRegistry instances with multiple sources.

    Sources are consulted in the order they are added.
    """

    def __init__(self):
        self._sources: List[ConfigurationSource] = []
        self._settings: Optional[RuntimeSettings] = None
        self._enable_hot_reload: bool = False
        self._configure_logging: bool = False

    def add_directory_source(self, path: Union[str, Path], extensions: Optional[List[str]] = None) -> 'RegistryBuilder':
        """
        Add a directory of configuration files.

        Args:
            path: Directory holding ``<name>.<ext>`` files
            extensions: Extensions to try, in order (default: all registered)
        """
        self._sources.append(DirectorySource(path, extensions))
        return self

    def add_file_source(self, path: Union[str, Path]) -> 'RegistryBuilder':
        """Add a single file holding several configurations."""
        self._sources.append(FileSource(path))
        return self

    def add_memory_source(self, data: Any, label: str = "memory") -> 'RegistryBuilder':
        """Add fixed in-memory data, e.g. defaults."""
        self._sources.append(MemorySource(data, label))
        return self

    def add_environment_source(
        self,
        prefix: str = "HOTCONF_",
        separator: str = "__",
        env_file: Optional[Union[str, Path]] = None
    ) -> 'RegistryBuilder':
        """
        Add environment variable configuration source.

        Args:
            prefix: Environment variable prefix
            separator: Separator between nested keys
            env_file: Optional dotenv file read beneath the process environment
        """
        self._sources.append(EnvironmentSource(prefix, separator, env_file))
        return self

    def add_source(self, source: ConfigurationSource) -> 'RegistryBuilder':
        """Add a custom configuration source."""
        self._sources.append(source)
        return self

    def with_settings(self, settings: RuntimeSettings) -> 'RegistryBuilder':
        self._settings = settings
        return self

    def with_logging(self, enable: bool = True) -> 'RegistryBuilder':
        """Have ``build()`` configure the ``hotconf`` logger from the runtime settings."""
        self._configure_logging = enable
        return self

    def enable_hot_reload(self, enable: bool = True) -> 'RegistryBuilder':
        """
        Enable or disable hot-reloading of watched files.

        Args:
            enable: Whether ``build()`` starts the reload supervisor
        """
        self._enable_hot_reload = enable
        return self

    def build(self) -> ConfigurationRegistry:
        """
        Build the registry with all added sources.

        Raises:
            WatcherError: If hot reload is enabled and watching cannot start
        """
        registry = ConfigurationRegistry(self._sources.copy(), self._settings)
        if self._configure_logging:
            setup_logging(registry.settings)
        if self._enable_hot_reload:
            registry.start()
        return registry
