"""
Write upload results back onto mapped objects.
"""

from __future__ import annotations

from typing import Any

from uploadable.metadata import FieldBindings
from uploadable.types import MoveResult


def write_upload_fields(
    instance: Any,
    bindings: FieldBindings,
    result: MoveResult,
) -> dict[str, tuple[Any, Any]]:
    """
    Assign path, name, mime type and size to the bound attributes.

    Assignment goes through SQLAlchemy attribute instrumentation, so the
    session records the change for the flush in progress. Returns the
    changes as {field: (old, new)}.
    """

    changes: dict[str, tuple[Any, Any]] = {}
    for field_name, value in (
        (bindings.path, result.file_path),
        (bindings.name, result.file_name),
        (bindings.mime_type, result.mime_type),
        (bindings.size, result.file_size),
    ):
        if not field_name:
            continue
        old_value = getattr(instance, field_name)
        setattr(instance, field_name, value)
        changes[field_name] = (old_value, value)
    return changes
