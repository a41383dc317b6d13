"""
Convenience functions for common registry setups.
"""

from pathlib import Path
from typing import Optional, Union

from .builder import RegistryBuilder
from .registry import ConfigurationRegistry
from .settings import RuntimeSettings


def create_registry_builder() -> RegistryBuilder:
    return RegistryBuilder()


def load_registry_from_directory(
    path: Union[str, Path],
    enable_hot_reload: bool = False,
    settings: Optional[RuntimeSettings] = None
) -> ConfigurationRegistry:
    """
    Registry reading ``<name>.<ext>`` files from ``path``.

    With ``enable_hot_reload`` the supervisor is already running; files
    added afterwards are watched as soon as they are registered.
    """
    builder = RegistryBuilder().add_directory_source(path)
    if settings is not None:
        builder.with_settings(settings)
    return builder.enable_hot_reload(enable_hot_reload).build()


def load_registry_with_environment(
    path: Union[str, Path],
    prefix: str = "HOTCONF_",
    env_file: Optional[Union[str, Path]] = None
) -> ConfigurationRegistry:
    """Registry where environment variables take precedence over files in ``path``."""
    return (
        RegistryBuilder()
        .add_environment_source(prefix, env_file=env_file)
        .add_directory_source(path)
        .build()
    )
