"""
Move incoming files into their storage directory.

Planning (naming and collision resolution) is separate from execution so a
whole flush can be planned and checked before the first file is touched.
"""

from __future__ import annotations

import os
from collections.abc import MutableSet
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from uploadable.errors import (
    CantWriteError,
    ExtensionBlockedError,
    FileAlreadyExistsError,
    FileMoveError,
    FormSizeExceededError,
    IniSizeExceededError,
    NoFileUploadedError,
    NoTmpDirError,
    PartialUploadError,
    UnknownUploadError,
)
from uploadable.file_info import FileInfo, UploadErrorCode
from uploadable.naming import NamingPolicy
from uploadable.storage import FileSystem, LocalFileSystem
from uploadable.types import MoveResult, OverwritePolicy


def raise_for_upload_error(file_info: FileInfo) -> None:
    """
    Raise the typed transport error matching a nonzero upload error code.
    """

    code = file_info.error
    if code == UploadErrorCode.OK:
        return
    name = file_info.name
    if code == UploadErrorCode.INI_SIZE:
        raise IniSizeExceededError(
            f'Size of uploaded file "{name}" exceeds the server upload size limit.'
        )
    if code == UploadErrorCode.FORM_SIZE:
        raise FormSizeExceededError(
            f'Size of uploaded file "{name}" exceeds the limit declared by the form.'
        )
    if code == UploadErrorCode.PARTIAL:
        raise PartialUploadError(f'File "{name}" was partially uploaded.')
    if code == UploadErrorCode.NO_FILE:
        raise NoFileUploadedError("No file was uploaded!")
    if code == UploadErrorCode.NO_TMP_DIR:
        raise NoTmpDirError("Upload failed. Temp dir is missing.")
    if code == UploadErrorCode.CANT_WRITE:
        raise CantWriteError(
            f'File "{name}" couldn\'t be uploaded because directory is not writable.'
        )
    if code == UploadErrorCode.EXTENSION:
        raise ExtensionBlockedError(f'A server extension stopped the upload of "{name}".')
    raise UnknownUploadError(f'There was an unknown problem while uploading file "{name}".')


def split_file_name(file_name: str) -> tuple[str, str]:
    """
    Split a base name into (stem, extension without dot).
    """

    path = Path(file_name)
    return path.stem, path.suffix[1:]


@dataclass(frozen=True)
class MovePlan:
    """
    Destination chosen for one file, not yet executed.
    """

    file_info: FileInfo
    directory: str
    file_name: str
    file_path: str
    original_file_name: str
    file_stem: str
    file_extension: str
    replaces_existing: bool = False


class FileMover:
    """
    Name, deduplicate and move files into a storage directory.
    """

    def __init__(self, filesystem: FileSystem | None = None) -> None:
        self._filesystem = filesystem or LocalFileSystem()

    def plan(
        self,
        file_info: FileInfo,
        directory: str,
        *,
        owner: Any = None,
        naming: NamingPolicy | None = None,
        overwrite: OverwritePolicy = OverwritePolicy.REJECT,
        counter_start: int = 1,
        reserved: MutableSet[str] | None = None,
    ) -> MovePlan:
        """
        Compute the final name and path, resolving collisions.

        Paths in `reserved` count as taken; the chosen path is added to it.
        """

        raise_for_upload_error(file_info)

        original_file_name = Path(file_info.name.replace("\\", "/")).name
        file_name = original_file_name
        file_stem, file_extension = split_file_name(file_name)

        generated = (naming or NamingPolicy.none()).generate(file_stem, file_extension, owner)
        if generated is not None:
            file_name = Path(generated).name
            file_stem = split_file_name(file_name)[0]

        file_path = os.path.join(directory, file_name)
        taken = reserved if reserved is not None else set()
        replaces_existing = False

        if self._is_taken(file_path, taken):
            if overwrite is OverwritePolicy.OVERWRITE:
                replaces_existing = self._filesystem.is_file(file_path)
            elif overwrite is OverwritePolicy.APPEND_COUNTER:
                counter = counter_start
                while True:
                    file_name = self._numbered_name(file_stem, file_extension, counter)
                    file_path = os.path.join(directory, file_name)
                    if not self._is_taken(file_path, taken):
                        break
                    counter += 1
                file_stem = split_file_name(file_name)[0]
            else:
                raise FileAlreadyExistsError(file_path)

        taken.add(file_path)
        return MovePlan(
            file_info=file_info,
            directory=directory,
            file_name=file_name,
            file_path=file_path,
            original_file_name=original_file_name,
            file_stem=file_stem,
            file_extension=file_extension,
            replaces_existing=replaces_existing,
        )

    def execute(self, plan: MovePlan, mime_type: str | None = None) -> MoveResult:
        """
        Perform the planned move and describe the stored file.
        """

        file_info = plan.file_info
        try:
            if plan.replaces_existing and self._filesystem.is_file(plan.file_path):
                self._filesystem.remove(plan.file_path)
            if file_info.is_uploaded_file:
                self._filesystem.move(file_info.tmp_name, plan.file_path)
            else:
                self._filesystem.copy(file_info.tmp_name, plan.file_path)
        except OSError as exc:
            raise FileMoveError(
                f'File "{file_info.name}" was not uploaded, or there was a problem '
                f'moving it to the location "{plan.directory}".'
            ) from exc

        return MoveResult(
            file_name=plan.file_name,
            file_path=plan.file_path,
            original_file_name=plan.original_file_name,
            file_stem=plan.file_stem,
            file_extension=plan.file_extension,
            mime_type=mime_type if mime_type is not None else file_info.type,
            file_size=file_info.size,
        )

    def move(
        self,
        file_info: FileInfo,
        directory: str,
        *,
        mime_type: str | None = None,
        owner: Any = None,
        naming: NamingPolicy | None = None,
        overwrite: OverwritePolicy = OverwritePolicy.REJECT,
        counter_start: int = 1,
    ) -> MoveResult:
        plan = self.plan(
            file_info,
            directory,
            owner=owner,
            naming=naming,
            overwrite=overwrite,
            counter_start=counter_start,
        )
        return self.execute(plan, mime_type)

    def _is_taken(self, path: str, reserved: MutableSet[str]) -> bool:
        return path in reserved or self._filesystem.is_file(path)

    @staticmethod
    def _numbered_name(stem: str, extension: str, counter: int) -> str:
        numbered = f"{stem}-{counter}"
        return f"{numbered}.{extension}" if extension else numbered
