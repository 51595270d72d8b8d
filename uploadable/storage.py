"""
Filesystem access used by path resolution, moves and cleanup.

Kept behind a small protocol so the pipeline can run against a fake in tests.
"""

from __future__ import annotations

import logging
import os
import shutil
from typing import Protocol

logger = logging.getLogger(__name__)


class FileSystem(Protocol):
    """
    Blocking filesystem operations the upload pipeline relies on.
    Every mutating method raises OSError on failure.
    """

    def is_file(self, path: str) -> bool:
        ...

    def is_dir(self, path: str) -> bool:
        ...

    def is_writable(self, path: str) -> bool:
        ...

    def make_dirs(self, path: str) -> None:
        ...

    def remove(self, path: str) -> None:
        ...

    def move(self, source: str, destination: str) -> None:
        ...

    def copy(self, source: str, destination: str) -> None:
        ...


def _current_umask() -> int:
    mask = os.umask(0)
    os.umask(mask)
    return mask


class LocalFileSystem:
    """
    Local filesystem backend.

    move() relocates uploaded temp files and resets their permissions, since
    temp files are usually created with a restrictive private mode.
    """

    def __init__(self, file_mode: int | None = None) -> None:
        self._file_mode = file_mode if file_mode is not None else 0o666 & ~_current_umask()

    @property
    def file_mode(self) -> int:
        return self._file_mode

    def is_file(self, path: str) -> bool:
        return os.path.isfile(path)

    def is_dir(self, path: str) -> bool:
        return os.path.isdir(path)

    def is_writable(self, path: str) -> bool:
        return os.access(path, os.W_OK)

    def make_dirs(self, path: str) -> None:
        os.makedirs(path, exist_ok=True)

    def remove(self, path: str) -> None:
        os.unlink(path)

    def move(self, source: str, destination: str) -> None:
        shutil.move(source, destination)
        # The move already happened; a mode failure is only logged.
        try:
            os.chmod(destination, self._file_mode)
        except OSError:
            logger.warning(
                "Could not set mode %o on stored file %s", self._file_mode, destination, exc_info=True
            )

    def copy(self, source: str, destination: str) -> None:
        shutil.copyfile(source, destination)
