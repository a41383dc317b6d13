"""
Configuration handles: the stable reference callers keep to a live value.
"""

import logging
import threading
from datetime import datetime, timezone
from typing import Callable, List, Optional, Type

from pydantic import BaseModel

logger = logging.getLogger(__name__)

ChangeListener = Callable[["ConfigurationHandle", BaseModel, BaseModel], None]


class ConfigurationHandle:
    """
    Holds the current value of one registered configuration.

    Only the registry creates handles and only the reload supervisor replaces
    their value.  Reading ``value`` is safe from any thread; a reader sees the
    value before or after a reload, never a mix of both.
    """

    def __init__(
        self,
        name: str,
        template: Type[BaseModel],
        value: BaseModel,
        origin: Optional[str] = None
    ):
        self._name = name
        self._template = template
        self._value = value
        self._origin = origin
        self._revision = 1
        self._loaded_at = datetime.now(timezone.utc)
        self._lock = threading.RLock()
        self._listeners: List[ChangeListener] = []

    @property
    def name(self) -> str:
        return self._name

    @property
    def template(self) -> Type[BaseModel]:
        return self._template

    @property
    def value(self) -> BaseModel:
        with self._lock:
            return self._value

    def current(self) -> BaseModel:
        """Current validated value."""
        return self.value

    @property
    def revision(self) -> int:
        """1 after registration, incremented by every committed reload."""
        with self._lock:
            return self._revision

    @property
    def loaded_at(self) -> datetime:
        with self._lock:
            return self._loaded_at

    @property
    def origin(self) -> Optional[str]:
        """Name of the source the value came from."""
        return self._origin

    def add_change_listener(self, listener: ChangeListener) -> None:
        """Call ``listener(handle, old, new)`` after each committed reload."""
        with self._lock:
            self._listeners.append(listener)

    def remove_change_listener(self, listener: ChangeListener) -> None:
        with self._lock:
            if listener in self._listeners:
                self._listeners.remove(listener)

    def _swap(self, new_value: BaseModel) -> BaseModel:
        with self._lock:
            old_value = self._value
            self._value = new_value
            self._revision += 1
            self._loaded_at = datetime.now(timezone.utc)
            return old_value

    def _notify(self, old_value: BaseModel, new_value: BaseModel) -> None:
        with self._lock:
            listeners = list(self._listeners)
        for listener in listeners:
            try:
                listener(self, old_value, new_value)
            except Exception as e:
                logger.error(f"Change listener for configuration '{self._name}' failed: {e}", exc_info=True)

    def __repr__(self) -> str:
        return f"<ConfigurationHandle {self._name} rev={self.revision} from {self._origin}>"
