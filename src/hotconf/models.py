"""
Configuration model base and the tree-to-model mapping.
"""

import logging
from typing import Any, Dict, List, Optional, Type, Union

from pydantic import BaseModel, ConfigDict, ValidationError

from .exceptions import ConfigurationValidationError
from .tree import TreeNode

logger = logging.getLogger(__name__)

Template = Union[Type[BaseModel], BaseModel]


class ConfigurationModel(BaseModel):
    """
    Base class for registered configuration values.

    Subclasses declare their fields with pydantic and may override two hooks:

    * ``validate_config()`` runs after the fields are decoded and raises to
      reject the value.  It runs against the new candidate on every reload,
      before anything is replaced.
    * ``changed()`` runs on the new value after it replaced the old one.
    """

    model_config = ConfigDict(extra="ignore")

    def validate_config(self) -> None:
        pass

    def changed(self) -> None:
        pass


def template_type(template: Template) -> Type[BaseModel]:
    """Accept either a model class or an instance of one."""
    model_type = template if isinstance(template, type) else type(template)
    if not issubclass(model_type, BaseModel):
        raise TypeError(f"Configuration template must be a pydantic model, got {model_type.__name__}")
    return model_type


def _errors_from(e: ValidationError) -> List[Dict[str, Any]]:
    return [
        {'loc': list(error['loc']), 'msg': error['msg'], 'type': error['type']}
        for error in e.errors()
    ]


def decode_value(template: Template, tree: TreeNode, name: Optional[str] = None) -> BaseModel:
    """Map ``tree`` onto a fresh instance of the template's model type."""
    model_type = template_type(template)
    try:
        return model_type.model_validate(tree.to_python())
    except ValidationError as e:
        raise ConfigurationValidationError(
            f"Configuration '{name}' does not match {model_type.__name__}",
            validation_errors=_errors_from(e),
            name=name,
            cause=e
        ) from e
    except Exception as e:
        # pydantic does not wrap TypeError raised inside validators
        raise ConfigurationValidationError(
            f"Configuration '{name}' does not match {model_type.__name__}: {e}",
            validation_errors=[{'loc': [], 'msg': str(e), 'type': type(e).__name__}],
            name=name,
            cause=e
        ) from e


def run_validator(value: BaseModel, name: Optional[str] = None) -> None:
    """Call the value's ``validate_config()`` hook, if it has one."""
    hook = getattr(value, "validate_config", None)
    if not callable(hook):
        return
    try:
        hook()
    except ConfigurationValidationError:
        raise
    except ValidationError as e:
        raise ConfigurationValidationError(
            f"Configuration '{name}' is invalid",
            validation_errors=_errors_from(e),
            name=name,
            cause=e
        ) from e
    except Exception as e:
        raise ConfigurationValidationError(
            f"Configuration '{name}' is invalid: {e}",
            validation_errors=[{'loc': [], 'msg': str(e), 'type': type(e).__name__}],
            name=name,
            cause=e
        ) from e


def build_value(template: Template, tree: TreeNode, name: Optional[str] = None) -> BaseModel:
    """Decode and validate; the result is safe to publish."""
    value = decode_value(template, tree, name)
    run_validator(value, name)
    return value


def notify_changed(value: Any, name: Optional[str] = None) -> None:
    """Call the value's ``changed()`` hook. Failures are logged, not raised."""
    hook = getattr(value, "changed", None)
    if not callable(hook):
        return
    try:
        hook()
    except Exception as e:
        logger.error(f"changed() hook of configuration '{name}' failed: {e}", exc_info=True)
