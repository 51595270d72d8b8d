"""
File name generation policies.
"""

from __future__ import annotations

import hashlib
import secrets
import string
import uuid
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any

from uploadable.errors import UploadableMappingError

FilenameGenerator = Callable[[str, str, Any], str]

_ALPHANUMERIC_CHARS = string.ascii_lowercase + string.digits
_ALPHANUMERIC_LENGTH = 16


class NamingKind(str, Enum):
    NONE = "none"
    ALPHANUMERIC = "alphanumeric"
    SHA1 = "sha1"
    CUSTOM = "custom"


def _with_extension(stem: str, extension: str) -> str:
    return f"{stem}.{extension}" if extension else stem


def generate_alphanumeric(stem: str, extension: str, owner: Any = None) -> str:
    """
    Random lowercase alphanumeric name keeping the original extension.
    """

    token = "".join(secrets.choice(_ALPHANUMERIC_CHARS) for _ in range(_ALPHANUMERIC_LENGTH))
    return _with_extension(token, extension)


def generate_sha1(stem: str, extension: str, owner: Any = None) -> str:
    """
    SHA-1 hex name derived from the original name plus a unique salt.
    """

    digest = hashlib.sha1(f"{stem}{extension}{uuid.uuid4().hex}".encode("utf-8")).hexdigest()
    return _with_extension(digest, extension)


@dataclass(frozen=True)
class NamingPolicy:
    """
    Closed set of naming policies: none, alphanumeric, sha1 or a custom
    callable receiving (stem, extension, owner).
    """

    kind: NamingKind = NamingKind.NONE
    generator: FilenameGenerator | None = None

    @classmethod
    def none(cls) -> NamingPolicy:
        return cls(NamingKind.NONE)

    @classmethod
    def alphanumeric(cls) -> NamingPolicy:
        return cls(NamingKind.ALPHANUMERIC, generate_alphanumeric)

    @classmethod
    def sha1(cls) -> NamingPolicy:
        return cls(NamingKind.SHA1, generate_sha1)

    @classmethod
    def custom(cls, generator: FilenameGenerator) -> NamingPolicy:
        if not callable(generator):
            raise UploadableMappingError("Custom filename generator must be callable.")
        return cls(NamingKind.CUSTOM, generator)

    @classmethod
    def coerce(cls, value: NamingPolicy | str | FilenameGenerator | None) -> NamingPolicy:
        """
        Accept the forms allowed in class configuration.
        """

        if isinstance(value, NamingPolicy):
            return value
        if value is None:
            return cls.none()
        if isinstance(value, str):
            try:
                kind = NamingKind(value.strip().lower())
            except ValueError as exc:
                raise UploadableMappingError(
                    f"Unknown filename generator '{value}'. "
                    f"Allowed: {[k.value for k in NamingKind if k is not NamingKind.CUSTOM]}."
                ) from exc
            if kind is NamingKind.ALPHANUMERIC:
                return cls.alphanumeric()
            if kind is NamingKind.SHA1:
                return cls.sha1()
            if kind is NamingKind.NONE:
                return cls.none()
            raise UploadableMappingError("A custom filename generator must be given as a callable.")
        if callable(value):
            return cls.custom(value)
        raise UploadableMappingError(
            f"Invalid filename generator of type {type(value).__name__}."
        )

    @property
    def is_active(self) -> bool:
        return self.kind is not NamingKind.NONE

    def generate(self, stem: str, extension: str, owner: Any) -> str | None:
        """
        Return the generated file name, or None when names are kept as-is.
        """

        if self.generator is None:
            return None
        name = self.generator(stem, extension, owner)
        if not isinstance(name, str) or not name.strip():
            raise UploadableMappingError(
                f"Filename generator returned an invalid name: {name!r}."
            )
        return name
