"""
Extension points fired around the processing of each upload.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Protocol

from sqlalchemy.orm import Session

from uploadable.file_info import FileInfo
from uploadable.metadata import UploadableConfig
from uploadable.types import UploadAction


@dataclass(frozen=True)
class UploadProcessEvent:
    """
    Snapshot handed to hooks. Hooks may inspect it or raise to veto the
    upload, which aborts the flush.
    """

    session: Session
    instance: Any
    file_info: FileInfo
    config: UploadableConfig
    action: UploadAction


class UploadProcessHook(Protocol):
    """
    Hook point for host code reacting to processed uploads.
    """

    def before_process(self, event: UploadProcessEvent) -> None:
        ...

    def after_process(self, event: UploadProcessEvent) -> None:
        ...


class NoOpUploadProcessHook:
    def before_process(self, event: UploadProcessEvent) -> None:
        return None

    def after_process(self, event: UploadProcessEvent) -> None:
        return None
