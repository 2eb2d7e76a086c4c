"""Filesystem helpers shared by the file-backed stores."""

import functools
import os
import tempfile
from pathlib import Path
from typing import Callable, ParamSpec, TypeVar

from pkvstore.errors import StorageIOError

P = ParamSpec("P")
R = TypeVar("R")


def raise_storage_error(func: Callable[P, R]) -> Callable[P, R]:
    """Wrap a function so filesystem failures surface as StorageIOError."""

    @functools.wraps(func)
    def _wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
        try:
            return func(*args, **kwargs)
        except OSError as exc:
            raise StorageIOError(f"{func.__name__} failed: {exc}") from exc

    return _wrapper


def fsync_directory(directory: Path) -> None:
    """Flush a directory entry so a completed rename survives power loss."""
    if os.name != "posix":
        return
    fd = os.open(directory, os.O_RDONLY)
    try:
        os.fsync(fd)
    finally:
        os.close(fd)


def atomic_write(path: Path, data: bytes, sync: bool = True) -> None:
    """Replace ``path`` with ``data`` so readers see the old or new file, never half.

    Writes to a temporary file in the same directory, optionally fsyncs it,
    then renames it over the target.

    Args:
        path: Destination file
        data: Full new file contents
        sync: fsync the file and its directory
    """
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
    try:
        with os.fdopen(fd, "wb") as handle:
            handle.write(data)
            handle.flush()
            if sync:
                os.fsync(handle.fileno())
        os.replace(tmp_name, path)
    except BaseException:
        if os.path.exists(tmp_name):
            os.unlink(tmp_name)
        raise

    if sync:
        fsync_directory(path.parent)
