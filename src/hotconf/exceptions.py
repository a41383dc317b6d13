"""
Structured Exception Hierarchy

Every error raised by hotconf carries an error code, a context dictionary
and, where one exists, the underlying cause.
"""

from typing import Dict, List, Any, Optional
from datetime import datetime, timezone


class HotconfError(Exception):
    """
    Base exception class for all hotconf exceptions.

    Provides structured error information including an error code and
    context data for logging.
    """

    def __init__(
        self,
        message: str,
        error_code: str,
        context: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.context = context or {}
        self.cause = cause
        self.timestamp = datetime.now(timezone.utc)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging/serialization."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "error_code": self.error_code,
            "context": self.context,
            "timestamp": self.timestamp.isoformat(),
            "cause": str(self.cause) if self.cause else None
        }


# ----------------------------- Addressing -----------------------------

class AddressingError(HotconfError):
    """Base class for failures while resolving a path against a tree."""

    code = "ADDRESSING_ERROR"

    def __init__(self, message: str, path: Optional[str] = None, **kwargs):
        context = kwargs.pop('context', {})
        if path is not None:
            context['path'] = path
        self.path = path
        super().__init__(
            message=message,
            error_code=self.code,
            context=context,
            **kwargs
        )


class BadPathError(AddressingError):
    """The path text itself is malformed."""

    code = "BAD_PATH"


class NotFoundError(AddressingError):
    """A field named by the path does not exist."""

    code = "NOT_FOUND"


class TypeMismatchError(AddressingError):
    """The path asks for an operation the node kind does not support."""

    code = "TYPE_MISMATCH"


class OutOfRangeError(AddressingError):
    """A list index lies outside the list."""

    code = "OUT_OF_RANGE"


# ----------------------------- Content -----------------------------

class DecodeError(HotconfError):
    """Raised when configuration bytes cannot be parsed."""

    def __init__(
        self,
        message: str,
        file_path: Optional[str] = None,
        format_name: Optional[str] = None,
        **kwargs
    ):
        context = kwargs.pop('context', {})
        if file_path:
            context['file_path'] = file_path
        if format_name:
            context['format'] = format_name
        super().__init__(
            message=message,
            error_code="DECODE_ERROR",
            context=context,
            **kwargs
        )


class ConfigurationValidationError(HotconfError):
    """Exception raised when a decoded value fails validation."""

    def __init__(
        self,
        message: str,
        validation_errors: Optional[List[Dict[str, Any]]] = None,
        name: Optional[str] = None,
        **kwargs
    ):
        context = kwargs.pop('context', {})
        self.validation_errors = validation_errors or []
        if name:
            context['name'] = name
        context['validation_errors'] = self.validation_errors
        super().__init__(
            message=message,
            error_code="VALIDATION_ERROR",
            context=context,
            **kwargs
        )

    def get_detailed_message(self) -> str:
        """Get a detailed error message with all validation errors."""
        lines = [self.message]
        lines.append("Validation errors:")

        for error in self.validation_errors:
            location = " -> ".join(str(loc) for loc in error.get('loc', []))
            msg = error.get('msg', 'Unknown error')
            lines.append(f"- {location}: {msg}" if location else f"- {msg}")

        return "\n".join(lines)


class FileOperationError(HotconfError):
    """Raised when a file copy, write or directory creation fails."""

    def __init__(
        self,
        message: str,
        file_path: Optional[str] = None,
        operation: Optional[str] = None,
        **kwargs
    ):
        context = kwargs.pop('context', {})
        if file_path:
            context['file_path'] = file_path
        if operation:
            context['operation'] = operation
        super().__init__(
            message=message,
            error_code="IO_ERROR",
            context=context,
            **kwargs
        )


# ----------------------------- Registry -----------------------------

class RegistryError(HotconfError):
    """Base class for registration failures."""

    code = "REGISTRY_ERROR"

    def __init__(self, message: str, name: Optional[str] = None, **kwargs):
        context = kwargs.pop('context', {})
        if name is not None:
            context['name'] = name
        self.name = name
        super().__init__(
            message=message,
            error_code=self.code,
            context=context,
            **kwargs
        )


class AlreadyRegisteredError(RegistryError):
    """The name is already bound to a handle."""

    code = "ALREADY_REGISTERED"


class NotRegisteredError(RegistryError):
    """The name was never added to the registry."""

    code = "NOT_REGISTERED"


class NotAvailableError(NotFoundError):
    """No configured source holds the requested name."""

    code = "NOT_AVAILABLE"

    def __init__(self, message: str, name: Optional[str] = None, sources: Optional[List[str]] = None, **kwargs):
        context = kwargs.pop('context', {})
        if sources is not None:
            context['sources'] = sources
        self.name = name
        super().__init__(message, path=name, context=context, **kwargs)


class SourceError(HotconfError):
    """Raised when a source cannot be created or is misconfigured."""

    def __init__(self, message: str, source_kind: Optional[str] = None, **kwargs):
        context = kwargs.pop('context', {})
        if source_kind:
            context['source_kind'] = source_kind
        super().__init__(
            message=message,
            error_code="SOURCE_ERROR",
            context=context,
            **kwargs
        )


# ----------------------------- Runtime -----------------------------

class WatcherError(HotconfError):
    """Raised when the file watch subsystem cannot start or watch a directory."""

    def __init__(self, message: str, watch_path: Optional[str] = None, **kwargs):
        context = kwargs.pop('context', {})
        if watch_path:
            context['watch_path'] = watch_path
        super().__init__(
            message=message,
            error_code="WATCHER_ERROR",
            context=context,
            **kwargs
        )


class ConstructionError(HotconfError):
    """Raised when a configured item cannot be constructed."""

    def __init__(self, message: str, constructor: Optional[str] = None, **kwargs):
        context = kwargs.pop('context', {})
        if constructor:
            context['constructor'] = constructor
        super().__init__(
            message=message,
            error_code="CONSTRUCTION_ERROR",
            context=context,
            **kwargs
        )
