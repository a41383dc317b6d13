"""
Configuration registry.

Usage follows two phases.  At startup every configuration the process needs
is added; each one is found in the sources, decoded, validated and bound to a
handle, and any failure is reported right there.  After that the process only
reads handles, and the reload supervisor keeps them current.
"""

import logging
import threading
from pathlib import Path
from typing import Dict, List, Optional

from .addressing import parse_path
from .exceptions import (
    AlreadyRegisteredError,
    BadPathError,
    FileOperationError,
    NotAvailableError,
    NotRegisteredError,
)
from .files import copy_file, shadow_path_for
from .handle import ConfigurationHandle
from .models import Template, build_value, template_type
from .settings import RuntimeSettings
from .sources import ConfigurationSource, Resolution, create_source
from .supervisor import ReloadSupervisor, WatchEntry, content_digest

logger = logging.getLogger(__name__)


class ConfigurationRegistry:
    """
    Owns every configuration handle of a process.

    Sources are consulted in the order they were added; the first source that
    holds a name supplies it and the others are not merged in.
    """

    def __init__(
        self,
        sources: Optional[List[ConfigurationSource]] = None,
        settings: Optional[RuntimeSettings] = None,
        supervisor: Optional[ReloadSupervisor] = None
    ):
        self.settings = settings or RuntimeSettings()
        self._sources: List[ConfigurationSource] = list(sources or [])
        self._handles: Dict[str, ConfigurationHandle] = {}
        self._supervisor = supervisor or ReloadSupervisor(self.settings)
        self._lock = threading.RLock()

    # ----------------------------- sources -----------------------------

    def with_source(self, source: ConfigurationSource) -> "ConfigurationRegistry":
        """Append a source; returns the registry for chaining."""
        with self._lock:
            self._sources.append(source)
        logger.debug(f"Added configuration source {source.name}")
        return self

    def use_source(self, kind: str, address: str) -> ConfigurationSource:
        """Create a source of a registered kind and append it."""
        source = create_source(kind, address)
        self.with_source(source)
        return source

    @property
    def sources(self) -> List[ConfigurationSource]:
        with self._lock:
            return list(self._sources)

    @property
    def supervisor(self) -> ReloadSupervisor:
        return self._supervisor

    # ----------------------------- lookup -----------------------------

    def lookup(self, name: str) -> Resolution:
        """
        Find the raw tree for ``name`` in the sources, without registering it.

        Raises:
            BadPathError: If ``name`` is not a valid path.
            NotAvailableError: If no source holds ``name``.
        """
        if not name or parse_path(name).is_empty:
            raise BadPathError("Configuration name must not be empty", path=name)

        sources = self.sources
        for source in sources:
            resolution = source.resolve(name)
            if resolution is not None:
                return resolution

        tried = [source.name for source in sources]
        raise NotAvailableError(
            f"Configuration '{name}' not found in sources: {', '.join(tried) or 'none'}",
            name=name,
            sources=tried
        )

    # ----------------------------- add / get -----------------------------

    def add(self, name: str, template: Template) -> ConfigurationHandle:
        """
        Load, validate and register configuration ``name``.

        ``template`` is a pydantic model class (or an instance of one); each
        load produces a fresh instance of that type.

        Raises:
            AlreadyRegisteredError: ``name`` was added before.
            BadPathError: ``name`` is empty or malformed.
            NotAvailableError: No source holds ``name``.
            DecodeError: The backing file does not parse.
            ConfigurationValidationError: The value was rejected.
        """
        model_type = template_type(template)
        with self._lock:
            if name in self._handles:
                raise AlreadyRegisteredError(f"Configuration '{name}' is already registered", name=name)

            resolution = self.lookup(name)
            value = build_value(model_type, resolution.tree, name)

            handle = ConfigurationHandle(name, model_type, value, origin=resolution.source_name)
            if resolution.watchable:
                self._watch(handle, resolution)
            self._handles[name] = handle

        logger.info(
            f"Registered configuration '{name}' from {resolution.source_name}",
            extra={"configurations": name}
        )
        return handle

    def _watch(self, handle: ConfigurationHandle, resolution: Resolution) -> None:
        entry = self._supervisor.entry_for(resolution.file_path)
        if entry is None:
            entry = self._create_entry(resolution)
        entry.bind(handle, resolution.item_path)

    def _create_entry(self, resolution: Resolution) -> WatchEntry:
        file_path = Path(resolution.file_path)
        shadow_path = shadow_path_for(file_path, self.settings.shadow_dir_name)
        try:
            data = file_path.read_bytes()
        except OSError as e:
            raise FileOperationError(
                f"Failed to read {file_path}: {e}",
                file_path=str(file_path),
                operation="read",
                cause=e
            ) from e

        copy_file(file_path, shadow_path, allow_overwrite=True)
        entry = WatchEntry(file_path, shadow_path, resolution.format)
        entry.committed_digest = content_digest(data)
        return self._supervisor.watch(entry)

    def get(self, name: str) -> ConfigurationHandle:
        """
        Return the handle of a configuration registered with :meth:`add`.

        Raises:
            NotRegisteredError: ``name`` was never added.
        """
        with self._lock:
            try:
                return self._handles[name]
            except KeyError:
                raise NotRegisteredError(f"Configuration '{name}' is not registered", name=name) from None

    def names(self) -> List[str]:
        with self._lock:
            return sorted(self._handles)

    def __contains__(self, name: object) -> bool:
        with self._lock:
            return name in self._handles

    def __len__(self) -> int:
        with self._lock:
            return len(self._handles)

    # ----------------------------- lifecycle -----------------------------

    def start(self) -> "ConfigurationRegistry":
        """Start hot reload for every watched file."""
        self._supervisor.start()
        return self

    def stop(self) -> None:
        self._supervisor.stop()

    def __enter__(self) -> "ConfigurationRegistry":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.stop()
