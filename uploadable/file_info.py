"""
Normalized descriptors for incoming files.

Callers hand over either a FileInfo, a multipart-style mapping
(`name`, `type`, `tmp_name`, `error`, `size`) or any object exposing the same
attributes; everything is validated once and frozen.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass
from enum import IntEnum
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from uploadable.errors import InvalidFileInfoError


class UploadErrorCode(IntEnum):
    """Error codes reported by the upload mechanism."""

    OK = 0
    INI_SIZE = 1
    FORM_SIZE = 2
    PARTIAL = 3
    NO_FILE = 4
    NO_TMP_DIR = 6
    CANT_WRITE = 7
    EXTENSION = 8


class _RawFileInfo(BaseModel):
    model_config = ConfigDict(from_attributes=True, extra="ignore")

    name: str = Field(..., min_length=1)
    tmp_name: str = Field(..., min_length=1)
    size: int = Field(..., ge=0)
    type: str | None = None
    error: int = Field(default=UploadErrorCode.OK, ge=0)
    is_uploaded_file: bool = True


@dataclass(frozen=True)
class FileInfo:
    """
    Immutable description of one incoming file.

    is_uploaded_file distinguishes temp files owned by the upload mechanism
    (relocated into storage) from arbitrary readable files (copied).
    """

    name: str
    tmp_name: str
    size: int
    type: str | None = None
    error: int = UploadErrorCode.OK
    is_uploaded_file: bool = True

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> FileInfo:
        """
        Build a descriptor from a multipart-style key/value mapping.
        """

        try:
            raw = _RawFileInfo.model_validate(dict(data))
        except ValidationError as exc:
            raise InvalidFileInfoError(f"Invalid file info mapping: {exc}") from exc
        return cls._from_raw(raw)

    @classmethod
    def from_object(cls, value: Any) -> FileInfo:
        """
        Build a descriptor from any object exposing the descriptor attributes.
        """

        try:
            raw = _RawFileInfo.model_validate(value, from_attributes=True)
        except ValidationError as exc:
            raise InvalidFileInfoError(
                f"Invalid file info object of type {type(value).__name__}: {exc}"
            ) from exc
        return cls._from_raw(raw)

    @classmethod
    def from_path(
        cls,
        path: str | os.PathLike[str],
        *,
        name: str | None = None,
        mime_type: str | None = None,
    ) -> FileInfo:
        """
        Describe an existing local file; it will be copied, not moved.
        """

        source = Path(path)
        try:
            size = source.stat().st_size
        except OSError as exc:
            raise InvalidFileInfoError(f'Cannot read file "{source}".') from exc
        return cls(
            name=name or source.name,
            tmp_name=str(source),
            size=size,
            type=mime_type,
            is_uploaded_file=False,
        )

    @classmethod
    def _from_raw(cls, raw: _RawFileInfo) -> FileInfo:
        return cls(
            name=raw.name,
            tmp_name=raw.tmp_name,
            size=raw.size,
            type=raw.type,
            error=raw.error,
            is_uploaded_file=raw.is_uploaded_file,
        )


def coerce_file_info(value: Any) -> FileInfo:
    """
    Normalize a FileInfo, mapping or attribute-bearing object.
    """

    if isinstance(value, FileInfo):
        return value
    if isinstance(value, Mapping):
        return FileInfo.from_mapping(value)
    if value is None or isinstance(value, (str, bytes, os.PathLike)):
        raise InvalidFileInfoError(
            "You must pass a FileInfo, a mapping or an object with file info "
            f"attributes, got {type(value).__name__}."
        )
    return FileInfo.from_object(value)
