"""
Format decoders.

Each decoder is a pure ``bytes -> TreeNode`` function registered under one or
more file extensions.
"""

import json
import os
from collections import OrderedDict
from pathlib import Path
from typing import Any, Callable, Dict, List, Union

import javaproperties
import yaml

from .exceptions import DecodeError
from .tree import TreeNode

Decoder = Callable[[bytes], TreeNode]

_DECODERS: "OrderedDict[str, Decoder]" = OrderedDict()


def _text(data: bytes, format_name: str) -> str:
    try:
        return data.decode("utf-8")
    except UnicodeDecodeError as e:
        raise DecodeError(
            f"Content is not valid UTF-8 {format_name}",
            format_name=format_name,
            cause=e
        ) from e


def decode_json(data: bytes) -> TreeNode:
    """Decode JSON content."""
    text = _text(data, "json")
    try:
        return TreeNode.from_python(json.loads(text))
    except json.JSONDecodeError as e:
        raise DecodeError(
            f"Invalid JSON at line {e.lineno} column {e.colno}: {e.msg}",
            format_name="json",
            cause=e
        ) from e


def decode_yaml(data: bytes) -> TreeNode:
    """Decode YAML content. An empty document decodes to null."""
    text = _text(data, "yaml")
    try:
        loaded = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise DecodeError(f"Invalid YAML: {e}", format_name="yaml", cause=e) from e
    try:
        return TreeNode.from_python(loaded)
    except TypeError as e:
        raise DecodeError(f"Unsupported YAML value: {e}", format_name="yaml", cause=e) from e


def decode_properties(data: bytes) -> TreeNode:
    """
    Decode Java-style properties.

    Dotted keys become nested objects, so ``server.port=8080`` decodes to
    ``{"server": {"port": "8080"}}``.  All leaf values stay strings.
    """
    text = _text(data, "properties")
    try:
        flat = javaproperties.loads(text)
    except ValueError as e:
        raise DecodeError(f"Invalid properties: {e}", format_name="properties", cause=e) from e

    nested: Dict[str, Any] = {}
    # shorter keys first so that parents are seen before children
    for key in sorted(flat, key=lambda k: (k.count("."), k)):
        _set_nested_value(nested, key, flat[key])
    return TreeNode.from_python(nested)


def _set_nested_value(config: Dict[str, Any], key: str, value: str) -> None:
    parts = key.split(".")
    if any(not part for part in parts):
        raise DecodeError(f"Invalid property key '{key}'", format_name="properties")

    current = config
    for part in parts[:-1]:
        if part not in current:
            current[part] = {}
        elif not isinstance(current[part], dict):
            raise DecodeError(
                f"Property '{key}' conflicts with the value of '{part}'",
                format_name="properties"
            )
        current = current[part]

    if isinstance(current.get(parts[-1]), dict):
        raise DecodeError(
            f"Property '{key}' is both a value and a group",
            format_name="properties"
        )
    current[parts[-1]] = value


def register_decoder(extension: str, decoder: Decoder) -> None:
    """Register ``decoder`` for files ending in ``.extension``."""
    ext = extension.lower().lstrip(".")
    if not ext:
        raise ValueError("Decoder extension must not be empty")
    _DECODERS[ext] = decoder


def supported_extensions() -> List[str]:
    """Registered extensions, in the order sources try them."""
    return list(_DECODERS)


def decoder_for(path_or_ext: Union[str, Path]) -> Decoder:
    """Return the decoder for a file path or bare extension."""
    ext = _extension_of(path_or_ext)
    try:
        return _DECODERS[ext]
    except KeyError:
        raise DecodeError(
            f"Extension '{ext}' is not supported as a configuration format",
            file_path=str(path_or_ext),
            format_name=ext
        ) from None


def _extension_of(path_or_ext: Union[str, Path]) -> str:
    text = str(path_or_ext)
    _, ext = os.path.splitext(text)
    return (ext or text).lower().lstrip(".")


def _run_decoder(decoder: Decoder, data: bytes, ext: str) -> TreeNode:
    try:
        return decoder(data)
    except DecodeError:
        raise
    except Exception as e:
        # plugged-in decoders may raise anything
        raise DecodeError(f"Decoder for '{ext}' failed: {e}", format_name=ext, cause=e) from e


def decode_bytes(data: bytes, ext: str) -> TreeNode:
    return _run_decoder(decoder_for(ext), data, _extension_of(ext))


def decode_file(path: Union[str, Path]) -> TreeNode:
    """Read and decode a configuration file chosen by its extension."""
    decoder = decoder_for(path)
    try:
        data = Path(path).read_bytes()
    except OSError as e:
        raise DecodeError(
            f"Failed to read configuration file: {path}",
            file_path=str(path),
            cause=e
        ) from e
    try:
        return _run_decoder(decoder, data, _extension_of(path))
    except DecodeError as e:
        e.context.setdefault('file_path', str(path))
        raise


register_decoder("json", decode_json)
register_decoder("yaml", decode_yaml)
register_decoder("yml", decode_yaml)
register_decoder("properties", decode_properties)
register_decoder("props", decode_properties)
register_decoder("prop", decode_properties)
