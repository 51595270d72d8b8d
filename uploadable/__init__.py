"""
Attach uploaded files to SQLAlchemy-mapped objects as part of the session's
flush/commit cycle.
"""

from uploadable.errors import (
    CantWriteError,
    ExtensionBlockedError,
    FileAlreadyExistsError,
    FileMoveError,
    FormSizeExceededError,
    IniSizeExceededError,
    InvalidFileInfoError,
    InvalidMimeTypeError,
    InvalidPathError,
    MaxSizeExceededError,
    MimeTypeDeniedError,
    MimeTypeNotAllowedError,
    MimeTypeUndeterminedError,
    NoFileUploadedError,
    NoPathDefinedError,
    NoTmpDirError,
    NoUploadRegisteredError,
    PartialUploadError,
    PathNotWritableError,
    UnknownUploadError,
    UploadableError,
    UploadableMappingError,
    UploadablePathError,
    UploadTransferError,
    UploadUsageError,
    UploadValidationError,
)
from uploadable.file_info import FileInfo, UploadErrorCode, coerce_file_info
from uploadable.hooks import NoOpUploadProcessHook, UploadProcessEvent, UploadProcessHook
from uploadable.listener import UploadableListener
from uploadable.metadata import FieldBindings, UploadableConfig, get_uploadable_config, uploadable
from uploadable.mime import MagicMimeTypeDetector, MimeTypeDetector
from uploadable.mover import FileMover, MovePlan
from uploadable.naming import NamingKind, NamingPolicy
from uploadable.paths import PathResolver
from uploadable.storage import FileSystem, LocalFileSystem
from uploadable.types import MoveResult, OverwritePolicy, UploadAction
from uploadable.validators import UploadValidator

__all__ = [
    "UploadableListener",
    "uploadable",
    "get_uploadable_config",
    "UploadableConfig",
    "FieldBindings",
    "FileInfo",
    "UploadErrorCode",
    "coerce_file_info",
    "MoveResult",
    "MovePlan",
    "OverwritePolicy",
    "UploadAction",
    "NamingKind",
    "NamingPolicy",
    "FileMover",
    "PathResolver",
    "UploadValidator",
    "MimeTypeDetector",
    "MagicMimeTypeDetector",
    "FileSystem",
    "LocalFileSystem",
    "UploadProcessEvent",
    "UploadProcessHook",
    "NoOpUploadProcessHook",
    "UploadableError",
    "UploadableMappingError",
    "UploadablePathError",
    "NoPathDefinedError",
    "InvalidPathError",
    "PathNotWritableError",
    "UploadValidationError",
    "MaxSizeExceededError",
    "MimeTypeUndeterminedError",
    "InvalidMimeTypeError",
    "MimeTypeNotAllowedError",
    "MimeTypeDeniedError",
    "UploadTransferError",
    "IniSizeExceededError",
    "FormSizeExceededError",
    "PartialUploadError",
    "NoFileUploadedError",
    "NoTmpDirError",
    "CantWriteError",
    "ExtensionBlockedError",
    "UnknownUploadError",
    "FileAlreadyExistsError",
    "FileMoveError",
    "UploadUsageError",
    "NoUploadRegisteredError",
    "InvalidFileInfoError",
]
