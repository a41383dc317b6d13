"""
Construction of configured items.

Several implementations of one role register under ``<role>.<impl>``, e.g.
``server.rest`` and ``server.nats``.  ``construct(registry, "server")`` reads
the ``server`` configuration, expects exactly one of its fields to name a
registered implementation, validates that field's configuration and builds
the item from it.
"""

import logging
import threading
from typing import Any, Dict, List, Optional, Tuple, Type

from .exceptions import ConfigurationValidationError, ConstructionError, NotFoundError
from .models import ConfigurationModel, build_value
from .registry import ConfigurationRegistry

logger = logging.getLogger(__name__)


class ConstructableModel(ConfigurationModel):
    """A configuration model that knows how to build the item it configures."""

    def build_item(self) -> Any:
        raise NotImplementedError


class ConstructorRegistry:
    """Maps dotted names such as ``server.nats`` to constructable models."""

    def __init__(self):
        self._constructors: Dict[str, Type[ConstructableModel]] = {}
        self._lock = threading.Lock()

    def register(self, name: str, model_type: Type[ConstructableModel]) -> None:
        parts = name.split(".") if name else []
        if len(parts) < 2:
            raise ValueError(f"Invalid constructor name '{name}': expected at least two parts")
        if any(not part for part in parts):
            raise ValueError(f"Invalid constructor name '{name}': empty part")
        if not (isinstance(model_type, type) and issubclass(model_type, ConstructableModel)):
            raise TypeError(f"Constructor '{name}' must be a ConstructableModel subclass")

        with self._lock:
            if name in self._constructors:
                raise ValueError(f"Duplicate constructor name '{name}'")
            self._constructors[name] = model_type
        logger.debug(f"Added constructor {name}")

    def names_for(self, kind: str) -> List[str]:
        """Implementation names registered under ``kind``."""
        prefix = kind + "."
        with self._lock:
            return sorted(n[len(prefix):] for n in self._constructors if n.startswith(prefix))

    def get(self, name: str) -> Optional[Type[ConstructableModel]]:
        with self._lock:
            return self._constructors.get(name)

    def construct(self, registry: ConfigurationRegistry, kind: str) -> Tuple[str, Any]:
        """
        Build the configured ``kind``.

        Returns:
            ``(full_name, item)``, e.g. ``("server.nats", <server>)``.

        Raises:
            ConstructionError: If nothing or more than one implementation is
                configured, the configuration is invalid, or construction fails.
        """
        available = self.names_for(kind)
        if not available:
            raise ConstructionError(f"No constructors registered for '{kind}'", constructor=kind)

        try:
            resolution = registry.lookup(kind)
        except NotFoundError as e:
            raise ConstructionError(
                f"Cannot get configuration for {kind}.* (expect one of {available})",
                constructor=kind,
                cause=e
            ) from e

        tree = resolution.tree
        configured = [field for field in tree.keys() if field in available] if tree.is_object else []
        if len(configured) != 1:
            raise ConstructionError(
                f"Construct({kind}): expected exactly 1 of {available} but found {len(configured)}",
                constructor=kind,
                context={"configured": configured}
            )

        full_name = f"{kind}.{configured[0]}"
        model_type = self.get(full_name)
        try:
            config = build_value(model_type, tree.get(configured[0]), full_name)
        except ConfigurationValidationError as e:
            raise ConstructionError(f"Invalid {full_name} configuration", constructor=full_name, cause=e) from e

        logger.debug(f"Constructing {full_name}")
        try:
            item = config.build_item()
        except Exception as e:
            raise ConstructionError(f"Failed to construct {full_name}: {e}", constructor=full_name, cause=e) from e

        logger.info(f"Constructed {full_name} from {resolution.source_name}")
        return full_name, item
