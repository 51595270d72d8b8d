"""
Typed values shared by the upload pipeline.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class UploadAction(str, Enum):
    """Persistence intent under which an upload is processed."""

    INSERT = "INSERT"
    UPDATE = "UPDATE"


class OverwritePolicy(str, Enum):
    """What to do when the destination file already exists."""

    REJECT = "reject"
    OVERWRITE = "overwrite"
    APPEND_COUNTER = "append_counter"


@dataclass(frozen=True)
class MoveResult:
    """
    Outcome of moving one file into storage.

    mime_type is the detected type, never the one declared by the client.
    """

    file_name: str
    file_path: str
    original_file_name: str
    file_stem: str
    file_extension: str
    mime_type: str | None
    file_size: int
