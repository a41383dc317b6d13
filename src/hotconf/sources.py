"""
Configuration sources.

A source answers one question: "do you hold configuration ``name``?".
Returning None means no, and the registry moves on to the next source.
Raising means the source holds the name but its data is unusable, which
stops the search.
"""

import logging
import os
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Union

from dotenv import dotenv_values

from .addressing import lookup, parse_path
from .exceptions import SourceError
from .formats import decode_file, supported_extensions
from .tree import TreeNode

logger = logging.getLogger(__name__)

KIND_PATTERN = re.compile(r"^[a-z][a-zA-Z0-9]*$")


@dataclass(frozen=True)
class Resolution:
    """Where a configuration was found and the tree it resolved to."""

    tree: TreeNode
    source_name: str
    item_path: str = ""
    file_path: Optional[Path] = None
    format: Optional[str] = None

    @property
    def watchable(self) -> bool:
        return self.file_path is not None


class ConfigurationSource(ABC):
    """Abstract base class for configuration sources."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Human readable description used in logs and errors."""
        pass

    @abstractmethod
    def resolve(self, name: str) -> Optional[Resolution]:
        """Find configuration ``name``; None when this source does not hold it."""
        pass

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.name}>"


def _resolve_in_tree(tree: TreeNode, name: str) -> Optional[TreeNode]:
    node = lookup(tree, name)
    if node is None or node.is_null:
        return None
    return node


class DirectorySource(ConfigurationSource):
    """
    Loads configuration from files in a directory.

    For a dotted name the deepest matching file wins: ``a.b.c`` is looked
    for in ``a/b/c.<ext>``, then in ``a/b.<ext>`` under ``c``, then in
    ``a.<ext>`` under ``b.c``.  Within one depth, extensions are tried in
    decoder registration order.
    """

    def __init__(self, root: Union[str, Path], extensions: Optional[List[str]] = None):
        self.root = Path(root)
        self.extensions = [e.lower().lstrip(".") for e in extensions] if extensions else None

    @property
    def name(self) -> str:
        return f"files({self.root})"

    def _extensions(self) -> List[str]:
        return self.extensions or supported_extensions()

    def candidates(self, name: str):
        """Yield ``(file_path, remaining_path, ext)`` from deepest to shallowest."""
        path = parse_path(name)
        depth = path.plain_prefix_length()
        for count in range(depth, 0, -1):
            head, remaining = path.split(count)
            keys = [segment.key for segment in head.segments]
            directory = self.root.joinpath(*keys[:-1])
            for ext in self._extensions():
                yield directory / f"{keys[-1]}.{ext}", str(remaining), ext

    def resolve(self, name: str) -> Optional[Resolution]:
        for file_path, remaining, ext in self.candidates(name):
            if not file_path.is_file():
                continue

            tree = decode_file(file_path)
            node = _resolve_in_tree(tree, remaining)
            if node is None:
                logger.debug(f"{file_path} has no value at '{remaining}', trying next candidate")
                continue

            logger.debug(f"Resolved '{name}' from {file_path}")
            return Resolution(
                tree=node,
                source_name=self.name,
                item_path=remaining,
                file_path=file_path,
                format=ext
            )
        return None


class FileSource(ConfigurationSource):
    """A single file holding many configurations, addressed by full name."""

    def __init__(self, file_path: Union[str, Path]):
        self.file_path = Path(file_path)

    @property
    def name(self) -> str:
        return f"file({self.file_path})"

    def resolve(self, name: str) -> Optional[Resolution]:
        parse_path(name)
        if not self.file_path.is_file():
            logger.warning(f"Configuration file not found: {self.file_path}")
            return None

        tree = decode_file(self.file_path)
        node = _resolve_in_tree(tree, name)
        if node is None:
            return None
        return Resolution(
            tree=node,
            source_name=self.name,
            item_path=name,
            file_path=self.file_path,
            format=self.file_path.suffix.lstrip(".").lower()
        )


class MemorySource(ConfigurationSource):
    """A fixed in-memory tree. Never watched."""

    def __init__(self, data: Any, label: str = "memory"):
        self.tree = TreeNode.from_python(data)
        self.label = label

    @property
    def name(self) -> str:
        return self.label

    def resolve(self, name: str) -> Optional[Resolution]:
        node = _resolve_in_tree(self.tree, name)
        if node is None:
            return None
        return Resolution(tree=node, source_name=self.name, item_path=name)


class EnvironmentSource(ConfigurationSource):
    """
    Environment variable configuration source.

    ``PREFIX_SERVER__PORT=8080`` becomes ``{"server": {"port": 8080}}``.
    Values from ``env_file`` (dotenv syntax) are used when the process
    environment does not define the same variable.
    """

    def __init__(
        self,
        prefix: str = "HOTCONF_",
        separator: str = "__",
        env_file: Optional[Union[str, Path]] = None,
        environ: Optional[Dict[str, str]] = None
    ):
        self.prefix = prefix.upper()
        self.separator = separator
        self.env_file = Path(env_file) if env_file else None
        self._environ = environ

    @property
    def name(self) -> str:
        return f"env({self.prefix}*)"

    def _variables(self) -> Dict[str, str]:
        variables: Dict[str, str] = {}
        if self.env_file is not None:
            if self.env_file.is_file():
                variables.update({k: v for k, v in dotenv_values(self.env_file).items() if v is not None})
            else:
                logger.warning(f"Environment file not found: {self.env_file}")
        variables.update(self._environ if self._environ is not None else os.environ)
        return variables

    def load(self) -> Dict[str, Any]:
        """Collect the prefixed variables into nested plain data."""
        config: Dict[str, Any] = {}
        for key, value in self._variables().items():
            if key.upper().startswith(self.prefix) and len(key) > len(self.prefix):
                config_key = key[len(self.prefix):].lower()
                self._set_nested_value(config, config_key, self._parse_value(value))
        return config

    def _set_nested_value(self, config: Dict[str, Any], key: str, value: Any) -> None:
        parts = [part for part in key.split(self.separator) if part]
        if not parts:
            return
        current = config
        for part in parts[:-1]:
            if part not in current or not isinstance(current[part], dict):
                current[part] = {}
            current = current[part]
        if isinstance(current.get(parts[-1]), dict):
            logger.warning(f"Environment value for '{key}' ignored: it is also a group")
            return
        current[parts[-1]] = value

    def _parse_value(self, value: str) -> Any:
        """Parse environment variable value to appropriate type."""
        if value.lower() in ('true', 'false'):
            return value.lower() == 'true'

        try:
            return int(value)
        except ValueError:
            pass

        try:
            return float(value)
        except ValueError:
            pass

        if ',' in value:
            return [item.strip() for item in value.split(',')]

        return value

    def resolve(self, name: str) -> Optional[Resolution]:
        tree = TreeNode.from_python(self.load())
        node = _resolve_in_tree(tree, name)
        if node is None:
            return None
        return Resolution(tree=node, source_name=self.name, item_path=name)


# ----------------------------- source kinds -----------------------------

SourceFactory = Callable[[str], ConfigurationSource]

_SOURCE_TYPES: Dict[str, SourceFactory] = {}


def register_source_type(kind: str, factory: SourceFactory) -> None:
    """Register a factory that builds a source from an address string."""
    if not isinstance(kind, str) or not KIND_PATTERN.match(kind):
        raise SourceError(f"Invalid source kind '{kind}'", source_kind=str(kind))
    if kind in _SOURCE_TYPES:
        raise SourceError(f"Source kind '{kind}' is already registered", source_kind=kind)
    _SOURCE_TYPES[kind] = factory


def source_types() -> List[str]:
    return sorted(_SOURCE_TYPES)


def create_source(kind: str, address: str) -> ConfigurationSource:
    """Build a source of a registered kind, e.g. ``create_source("files", "./conf")``."""
    try:
        factory = _SOURCE_TYPES[kind]
    except KeyError:
        raise SourceError(
            f"Unknown source kind '{kind}'",
            source_kind=kind,
            context={"known": source_types()}
        ) from None
    return factory(address)


register_source_type("files", DirectorySource)
register_source_type("file", FileSource)
register_source_type("env", lambda prefix: EnvironmentSource(prefix=prefix))
