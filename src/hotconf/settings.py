"""
Runtime settings for hotconf itself, read from ``HOTCONF_*`` environment
variables and an optional dotenv file.
"""

from pathlib import Path
from typing import Any, Optional, Union

from pydantic import BaseModel, Field, ValidationError, field_validator

from .exceptions import ConfigurationValidationError
from .sources import EnvironmentSource


class RuntimeSettings(BaseModel):
    """Settings that control watching, reloading and logging."""

    shadow_dir_name: str = Field(default="load", description="Directory beside each file that holds its shadow copy")
    observer: str = Field(default="native", description="File watch backend: native or polling")
    polling_interval: float = Field(default=1.0, gt=0, description="Polling observer interval in seconds")
    queue_poll_interval: float = Field(default=0.5, gt=0, description="Reload worker wake-up interval in seconds")
    stop_timeout: float = Field(default=5.0, gt=0, description="Seconds to wait for threads on stop()")
    log_level: str = Field(default="INFO", description="Log level for the hotconf logger")
    log_format: str = Field(default="pretty", description="Log format: pretty or json")

    @field_validator('shadow_dir_name')
    @classmethod
    def validate_shadow_dir_name(cls, v):
        v = v.strip()
        if not v or v in ('.', '..') or '/' in v or '\\' in v:
            raise ValueError(f"Invalid shadow directory name: {v!r}")
        return v

    @field_validator('observer')
    @classmethod
    def validate_observer(cls, v):
        v = v.lower()
        if v not in ('native', 'polling'):
            raise ValueError(f"Observer must be 'native' or 'polling', got {v!r}")
        return v

    @field_validator('log_level')
    @classmethod
    def validate_log_level(cls, v):
        valid_levels = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']
        if v.upper() not in valid_levels:
            raise ValueError(f"Log level must be one of {valid_levels}")
        return v.upper()

    @field_validator('log_format')
    @classmethod
    def validate_log_format(cls, v):
        v = v.lower()
        if v not in ('pretty', 'json'):
            raise ValueError(f"Log format must be 'pretty' or 'json', got {v!r}")
        return v


def load_runtime_settings(
    prefix: str = "HOTCONF_",
    env_file: Optional[Union[str, Path]] = None,
    **overrides: Any
) -> RuntimeSettings:
    """
    Build :class:`RuntimeSettings` from the environment.

    ``HOTCONF_OBSERVER=polling`` sets ``observer``; keyword overrides win over
    both the environment and ``env_file``.
    """
    source = EnvironmentSource(prefix=prefix, env_file=env_file)
    data = source.load()
    data.update(overrides)
    # EnvironmentSource parses "1" as an int; these fields are text
    for key in ('shadow_dir_name', 'observer', 'log_level', 'log_format'):
        if key in data and not isinstance(data[key], str):
            data[key] = str(data[key])
    try:
        return RuntimeSettings.model_validate(data)
    except ValidationError as e:
        raise ConfigurationValidationError(
            "Invalid hotconf runtime settings",
            validation_errors=[
                {'loc': list(error['loc']), 'msg': error['msg'], 'type': error['type']}
                for error in e.errors()
            ],
            cause=e
        ) from e
