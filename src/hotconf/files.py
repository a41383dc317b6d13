"""
File helpers for shadow copies and atomic replacement.
"""

import logging
import os
import shutil
import tempfile
from pathlib import Path
from typing import Union

from .exceptions import FileOperationError

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


def shadow_path_for(path: PathLike, shadow_dir_name: str = "load") -> Path:
    """``/etc/app/c.json`` -> ``/etc/app/load/c.json``."""
    path = Path(path)
    return path.parent / shadow_dir_name / path.name


def ensure_directory(path: PathLike) -> Path:
    path = Path(path)
    if path.exists() and not path.is_dir():
        raise FileOperationError(f"Not a directory: {path}", file_path=str(path), operation="mkdir")
    try:
        path.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise FileOperationError(
            f"Failed to create directory {path}: {e}",
            file_path=str(path),
            operation="mkdir",
            cause=e
        ) from e
    return path


def copy_file(src: PathLike, dst: PathLike, allow_overwrite: bool = False) -> Path:
    """Copy a regular file, creating the destination directory when needed."""
    src, dst = Path(src), Path(dst)
    if not src.is_file():
        raise FileOperationError(f"Not a regular file: {src}", file_path=str(src), operation="copy")
    if dst.exists():
        if not allow_overwrite:
            raise FileOperationError(f"File already exists: {dst}", file_path=str(dst), operation="copy")
        if not dst.is_file():
            raise FileOperationError(f"Cannot overwrite non-file: {dst}", file_path=str(dst), operation="copy")

    ensure_directory(dst.parent)
    try:
        shutil.copyfile(src, dst)
    except OSError as e:
        raise FileOperationError(
            f"Failed to copy {src} to {dst}: {e}",
            file_path=str(dst),
            operation="copy",
            cause=e
        ) from e
    logger.debug(f"Copied {src} to {dst}")
    return dst


def write_atomic(path: PathLike, data: bytes) -> Path:
    """
    Replace ``path`` with ``data`` so that readers see either the old or the
    new content, never a partial write.
    """
    path = Path(path)
    fd, tmp_name = None, None
    try:
        fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
        with os.fdopen(fd, "wb") as f:
            fd = None
            f.write(data)
            f.flush()
            os.fsync(f.fileno())
        if path.exists():
            shutil.copymode(path, tmp_name)
        os.replace(tmp_name, path)
        tmp_name = None
    except OSError as e:
        raise FileOperationError(
            f"Failed to write {path}: {e}",
            file_path=str(path),
            operation="write",
            cause=e
        ) from e
    finally:
        if fd is not None:
            os.close(fd)
        if tmp_name is not None and os.path.exists(tmp_name):
            os.unlink(tmp_name)
    return path
