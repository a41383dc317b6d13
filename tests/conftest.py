"""
Shared fixtures for the hotconf test suite.
"""

import json
from pathlib import Path

import pytest
from pydantic import field_validator

from hotconf import ConfigurationModel, ConfigurationRegistry, DirectorySource, RuntimeSettings


class StringConfig(ConfigurationModel):
    """Configuration used throughout the tests: one non-empty string."""

    s: str

    def validate_config(self) -> None:
        if not self.s:
            raise ValueError("s must not be empty")


class ServerConfig(ConfigurationModel):
    host: str = "localhost"
    port: int = 8080

    @field_validator('port')
    @classmethod
    def validate_port(cls, v):
        if not 0 < v < 65536:
            raise ValueError("port must be between 1 and 65535")
        return v


class TypeCheckedConfig(ConfigurationModel):
    """Its validator raises TypeError, which pydantic does not wrap."""

    s: str

    @field_validator('s')
    @classmethod
    def check_s(cls, v):
        if v == "bad":
            raise TypeError("bad type")
        return v


def write_json(path: Path, data) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data), encoding="utf-8")
    return path


@pytest.fixture
def conf_dir(tmp_path):
    """An empty configuration directory."""
    directory = tmp_path / "conf"
    directory.mkdir()
    return directory


@pytest.fixture
def settings():
    return RuntimeSettings(observer="polling", polling_interval=0.1, queue_poll_interval=0.05, stop_timeout=2.0)


@pytest.fixture
def registry(conf_dir, settings):
    """Registry over ``conf_dir``; the supervisor is stopped on teardown."""
    reg = ConfigurationRegistry([DirectorySource(conf_dir)], settings=settings)
    yield reg
    reg.stop()
