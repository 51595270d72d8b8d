"""
Validation of incoming files against a class configuration.
"""

from __future__ import annotations

from uploadable.errors import (
    MaxSizeExceededError,
    MimeTypeDeniedError,
    MimeTypeNotAllowedError,
    MimeTypeUndeterminedError,
)
from uploadable.file_info import FileInfo
from uploadable.metadata import UploadableConfig
from uploadable.mime import MimeTypeDetector


class UploadValidator:
    """
    Enforce size limits and mime allow/deny lists.

    The mime type is always detected from the temp file content; the type
    declared by the client is ignored.
    """

    def __init__(self, detector: MimeTypeDetector) -> None:
        self._detector = detector

    def validate(self, file_info: FileInfo, config: UploadableConfig) -> str:
        """
        Validate one file and return its detected mime type.
        """

        if config.max_size > 0 and file_info.size > config.max_size:
            raise MaxSizeExceededError(file_info.name, config.max_size, file_info.size)

        mime_type = self._detector.detect(file_info.tmp_name)
        if not mime_type:
            raise MimeTypeUndeterminedError(
                f'Couldn\'t guess mime type for file "{file_info.name}".'
            )
        mime_type = mime_type.strip().lower()

        if config.allowed_types and mime_type not in config.allowed_types:
            raise MimeTypeNotAllowedError(
                f'Invalid mime type "{mime_type}" for file "{file_info.name}", '
                f"allowed are: {', '.join(sorted(config.allowed_types))}.",
                mime_type,
            )

        if config.disallowed_types and mime_type in config.disallowed_types:
            raise MimeTypeDeniedError(
                f'Invalid mime type "{mime_type}" for file "{file_info.name}", '
                f"restricted are: {', '.join(sorted(config.disallowed_types))}.",
                mime_type,
            )

        return mime_type
