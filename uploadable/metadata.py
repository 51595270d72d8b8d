"""
uploadable/metadata.py

Per-class upload configuration.

Classes opt in with the `@uploadable(...)` decorator, which only records the
raw options. They are validated against the SQLAlchemy mapper and frozen into
an UploadableConfig the first time the class is looked up.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Any, TypeVar

from sqlalchemy import Integer, Numeric, String, inspect
from sqlalchemy.exc import NoInspectionAvailable
from sqlalchemy.orm import ColumnProperty

from uploadable.errors import UploadableMappingError
from uploadable.naming import FilenameGenerator, NamingPolicy
from uploadable.types import MoveResult, OverwritePolicy

UPLOADABLE_ATTR = "__uploadable__"

T = TypeVar("T", bound=type)

PathMethod = Callable[[Any, str | None], Any]
UploadCallback = Callable[[Any, MoveResult], None]


@dataclass(frozen=True)
class FieldBindings:
    """
    Names of the mapped attributes receiving upload results.
    """

    path: str | None = None
    name: str | None = None
    mime_type: str | None = None
    size: str | None = None


@dataclass(frozen=True)
class UploadableConfig:
    """
    Read-only upload configuration of one mapped class.

    An empty path means the directory is resolved at runtime through
    path_method or the listener default path. max_size 0 means unlimited.
    """

    fields: FieldBindings
    path: str = ""
    path_method: PathMethod | None = None
    naming: NamingPolicy = field(default_factory=NamingPolicy.none)
    overwrite: OverwritePolicy = OverwritePolicy.REJECT
    counter_start: int = 1
    max_size: int = 0
    allowed_types: frozenset[str] = frozenset()
    disallowed_types: frozenset[str] = frozenset()
    callback: UploadCallback | None = None


def uploadable(
    *,
    path: str = "",
    path_method: str | PathMethod | None = None,
    callback: str | UploadCallback | None = None,
    filename_generator: NamingPolicy | str | FilenameGenerator | None = None,
    overwrite: OverwritePolicy | str | None = None,
    allow_overwrite: bool = False,
    append_number: bool = False,
    counter_start: int = 1,
    max_size: int = 0,
    allowed_types: Iterable[str] = (),
    disallowed_types: Iterable[str] = (),
    file_path_field: str | None = None,
    file_name_field: str | None = None,
    file_mime_type_field: str | None = None,
    file_size_field: str | None = None,
) -> Callable[[T], T]:
    """
    Mark a mapped class as upload-enabled.

    path_method and callback may be callables or names of methods on the
    class. path_method receives the listener default path and returns the
    directory; callback receives the MoveResult after the fields are written.
    allow_overwrite and append_number are shorthands for `overwrite`.
    """

    options = {
        "path": path,
        "path_method": path_method,
        "callback": callback,
        "filename_generator": filename_generator,
        "overwrite": overwrite,
        "allow_overwrite": allow_overwrite,
        "append_number": append_number,
        "counter_start": counter_start,
        "max_size": max_size,
        "allowed_types": tuple(allowed_types),
        "disallowed_types": tuple(disallowed_types),
        "file_path_field": file_path_field,
        "file_name_field": file_name_field,
        "file_mime_type_field": file_mime_type_field,
        "file_size_field": file_size_field,
    }

    def decorator(cls: T) -> T:
        setattr(cls, UPLOADABLE_ATTR, options)
        get_uploadable_config.cache_clear()
        return cls

    return decorator


@lru_cache(maxsize=None)
def get_uploadable_config(cls: type) -> UploadableConfig | None:
    """
    Return the validated configuration of a class, or None if the class is
    not upload-enabled. Results are cached per class.
    """

    options = getattr(cls, UPLOADABLE_ATTR, None)
    if options is None:
        return None
    return _build_config(cls, options)


def _build_config(cls: type, options: dict[str, Any]) -> UploadableConfig:
    class_name = cls.__name__

    bindings = FieldBindings(
        path=options["file_path_field"],
        name=options["file_name_field"],
        mime_type=options["file_mime_type_field"],
        size=options["file_size_field"],
    )
    if not bindings.path and not bindings.name:
        raise UploadableMappingError(
            f'Class "{class_name}" must define "file_path_field", "file_name_field" or both.'
        )

    columns = _mapped_columns(cls)
    _validate_field(class_name, columns, bindings.path, "file_path_field", (String,))
    _validate_field(class_name, columns, bindings.name, "file_name_field", (String,))
    _validate_field(class_name, columns, bindings.mime_type, "file_mime_type_field", (String,))
    _validate_field(class_name, columns, bindings.size, "file_size_field", (Integer, Numeric))

    path = options["path"]
    if path is None:
        path = ""
    if not isinstance(path, str):
        raise UploadableMappingError(f'Option "path" of class "{class_name}" must be a string.')

    max_size = options["max_size"]
    if not isinstance(max_size, int) or isinstance(max_size, bool) or max_size < 0:
        raise UploadableMappingError(
            f'Option "max_size" of class "{class_name}" must be a non-negative integer.'
        )

    allowed_types = frozenset(t.strip().lower() for t in options["allowed_types"] if t.strip())
    disallowed_types = frozenset(t.strip().lower() for t in options["disallowed_types"] if t.strip())
    if allowed_types and disallowed_types:
        raise UploadableMappingError(
            f'Class "{class_name}" cannot define "allowed_types" and "disallowed_types" '
            "at the same time."
        )

    counter_start = options["counter_start"]
    if not isinstance(counter_start, int) or counter_start < 0:
        raise UploadableMappingError(
            f'Option "counter_start" of class "{class_name}" must be a non-negative integer.'
        )

    return UploadableConfig(
        fields=bindings,
        path=path,
        path_method=_resolve_method(cls, options["path_method"], "path_method"),
        naming=NamingPolicy.coerce(options["filename_generator"]),
        overwrite=_resolve_overwrite(class_name, options),
        counter_start=counter_start,
        max_size=max_size,
        allowed_types=allowed_types,
        disallowed_types=disallowed_types,
        callback=_resolve_method(cls, options["callback"], "callback"),
    )


def _mapped_columns(cls: type) -> dict[str, ColumnProperty]:
    try:
        mapper = inspect(cls)
    except NoInspectionAvailable as exc:
        raise UploadableMappingError(
            f'Class "{cls.__name__}" is not a mapped SQLAlchemy class.'
        ) from exc
    return {prop.key: prop for prop in mapper.column_attrs}


def _validate_field(
    class_name: str,
    columns: dict[str, ColumnProperty],
    field_name: str | None,
    option: str,
    allowed_types: tuple[type, ...],
) -> None:
    if not field_name:
        return
    prop = columns.get(field_name)
    if prop is None:
        raise UploadableMappingError(
            f'Option "{option}" of class "{class_name}" refers to "{field_name}", '
            "which is not a mapped column."
        )
    column_type = prop.columns[0].type
    if not isinstance(column_type, allowed_types):
        expected = ", ".join(t.__name__ for t in allowed_types)
        raise UploadableMappingError(
            f'Field "{field_name}" of class "{class_name}" used as "{option}" must be of '
            f"type {expected}, got {type(column_type).__name__}."
        )


def _resolve_method(
    cls: type,
    value: str | Callable[..., Any] | None,
    option: str,
) -> Callable[[Any, Any], Any] | None:
    if value is None or value == "":
        return None
    if isinstance(value, str):
        method = getattr(cls, value, None)
        if not callable(method):
            raise UploadableMappingError(
                f'Option "{option}" of class "{cls.__name__}" refers to "{value}", '
                "which is not a method of the class."
            )
        method_name = value

        def call_method(instance: Any, argument: Any) -> Any:
            return getattr(instance, method_name)(argument)

        return call_method
    if callable(value):
        return value
    raise UploadableMappingError(
        f'Option "{option}" of class "{cls.__name__}" must be a method name or a callable.'
    )


def _resolve_overwrite(class_name: str, options: dict[str, Any]) -> OverwritePolicy:
    overwrite = options["overwrite"]
    if overwrite is not None:
        try:
            return OverwritePolicy(overwrite)
        except ValueError as exc:
            raise UploadableMappingError(
                f"Unknown overwrite policy '{overwrite}' on class \"{class_name}\". "
                f"Allowed: {[p.value for p in OverwritePolicy]}."
            ) from exc
    if options["allow_overwrite"]:
        return OverwritePolicy.OVERWRITE
    if options["append_number"]:
        return OverwritePolicy.APPEND_COUNTER
    return OverwritePolicy.REJECT
