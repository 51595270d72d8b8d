"""
Exceptions raised while attaching uploaded files to mapped objects.

Everything derives from UploadableError so callers can catch the whole family,
or one category base to tell configuration mistakes from rejected data.
"""

from __future__ import annotations


class UploadableError(Exception):
    """Base exception for uploadable failures."""


# ── Mapping / configuration ────────────────────────────────────────────────


class UploadableMappingError(UploadableError):
    """Raised when a class carries an invalid uploadable configuration."""


class UploadablePathError(UploadableError):
    """Base for failures while resolving the destination directory."""


class NoPathDefinedError(UploadablePathError):
    """Raised when neither the class nor the listener defines a path."""


class InvalidPathError(UploadablePathError):
    """Raised when the resolved path is not usable or cannot be created."""


class PathNotWritableError(UploadablePathError):
    """Raised when the destination directory exists but is not writable."""


# ── Validation ─────────────────────────────────────────────────────────────


class UploadValidationError(UploadableError):
    """Base for data-driven rejections of an uploaded file."""


class MaxSizeExceededError(UploadValidationError):
    """Raised when a file is larger than the configured maximum size."""

    def __init__(self, file_name: str, max_size: int, size: int) -> None:
        self.file_name = file_name
        self.max_size = max_size
        self.size = size
        super().__init__(
            f'File "{file_name}" exceeds the maximum allowed size of {max_size} bytes. '
            f"File size: {size} bytes"
        )


class MimeTypeUndeterminedError(UploadValidationError):
    """Raised when the mime type of a file cannot be detected."""


class InvalidMimeTypeError(UploadValidationError):
    """Base for mime type allow/deny list rejections."""

    def __init__(self, message: str, mime_type: str) -> None:
        self.mime_type = mime_type
        super().__init__(message)


class MimeTypeNotAllowedError(InvalidMimeTypeError):
    """Raised when the detected mime type is missing from the allow list."""


class MimeTypeDeniedError(InvalidMimeTypeError):
    """Raised when the detected mime type is on the deny list."""


# ── Transport (upload error codes) ─────────────────────────────────────────


class UploadTransferError(UploadableError):
    """Base for failures reported by the upload mechanism itself."""


class IniSizeExceededError(UploadTransferError):
    """Upload exceeded the server-wide size limit."""


class FormSizeExceededError(UploadTransferError):
    """Upload exceeded the size limit declared by the submitting form."""


class PartialUploadError(UploadTransferError):
    """Upload was only partially received."""


class NoFileUploadedError(UploadTransferError):
    """No file was present in the upload."""


class NoTmpDirError(UploadTransferError):
    """The temporary upload directory is missing."""


class CantWriteError(UploadTransferError):
    """The upload could not be written to disk."""


class ExtensionBlockedError(UploadTransferError):
    """A server extension stopped the upload."""


class UnknownUploadError(UploadTransferError):
    """Upload failed with an unrecognized error code."""


# ── Storage ────────────────────────────────────────────────────────────────


class FileAlreadyExistsError(UploadableError):
    """Raised when the destination exists and overwriting is not allowed."""

    def __init__(self, file_path: str) -> None:
        self.file_path = file_path
        super().__init__(f'File "{file_path}" already exists!')


class FileMoveError(UploadableError):
    """Raised when moving or copying the file into storage fails."""


# ── Usage ──────────────────────────────────────────────────────────────────


class UploadUsageError(UploadableError):
    """Base for programmer misuse of the registration API."""


class NoUploadRegisteredError(UploadUsageError):
    """Raised when no upload is registered for an object."""


class InvalidFileInfoError(UploadUsageError):
    """Raised when a file descriptor cannot be built from the given value."""
