"""
Destination directory resolution for uploaded files.
"""

from __future__ import annotations

from typing import Any

from uploadable.errors import InvalidPathError, NoPathDefinedError, PathNotWritableError
from uploadable.metadata import UploadableConfig
from uploadable.storage import FileSystem, LocalFileSystem

_SEPARATORS = "/\\"


def strip_trailing_separators(path: str) -> str:
    stripped = path.rstrip(_SEPARATORS)
    return stripped or path[:1]


class PathResolver:
    """
    Resolve, create and check the directory an object's file is stored in.

    Order: the class path, then the class path method (called with the
    default path), then the default path itself.
    """

    def __init__(self, filesystem: FileSystem | None = None) -> None:
        self._filesystem = filesystem or LocalFileSystem()

    def select(self, instance: Any, config: UploadableConfig, default_path: str | None) -> Any:
        """
        Pick the configured directory without touching the filesystem.
        """

        if config.path:
            return config.path
        if config.path_method is not None:
            return config.path_method(instance, default_path)
        if default_path:
            return default_path
        raise NoPathDefinedError(
            "You have to define the path to save files either in the listener, "
            f'or in the class "{type(instance).__name__}".'
        )

    def resolve(self, instance: Any, config: UploadableConfig, default_path: str | None) -> str:
        path = self.select(instance, config, default_path)
        if not isinstance(path, str) or not path.strip():
            raise InvalidPathError(
                "Path must be a string containing the path to a valid directory. "
                f"{path!r} was given."
            )
        path = strip_trailing_separators(path)
        self.ensure_directory(path)
        return path

    def ensure_directory(self, path: str) -> None:
        if not self._filesystem.is_dir(path):
            try:
                self._filesystem.make_dirs(path)
            except OSError as exc:
                raise InvalidPathError(f'Unable to create "{path}" directory.') from exc

        if not self._filesystem.is_writable(path):
            raise PathNotWritableError(f'Directory "{path}" is not writable.')
