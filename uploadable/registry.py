"""
Per-cycle state: pending uploads, queued removals and files placed so far.

One UploadCycle lives in `session.info` from the first registration (or
deletion) until the root transaction commits or rolls back. Placements and
removals remember the savepoint they happened in, so a savepoint rollback
only undoes its own work.
"""

from __future__ import annotations

import itertools
from collections.abc import Iterator
from dataclasses import dataclass, field, replace
from typing import Any

from sqlalchemy import inspect
from sqlalchemy.exc import NoInspectionAvailable
from sqlalchemy.orm import Session, SessionTransaction

from uploadable.errors import UploadUsageError
from uploadable.file_info import FileInfo

CYCLE_INFO_KEY = "uploadable.cycle"
HANDLE_INFO_KEY = "uploadable.handle"

_handles = itertools.count(1)
_registry_ids = itertools.count(1)


@dataclass(frozen=True)
class PendingUpload:
    """
    A file waiting to be attached to its owner at the next flush.
    """

    handle: int
    instance: Any
    file_info: FileInfo


@dataclass(frozen=True)
class PlacedFile:
    """
    A file moved into storage during the current cycle.

    replaced_existing is set when the move overwrote a file that was
    already there; such files are not removed on rollback. savepoint is the
    innermost nested transaction active at placement, None for the root.
    """

    path: str
    replaced_existing: bool
    savepoint: SessionTransaction | None = None


@dataclass(frozen=True)
class QueuedRemoval:
    """A stored file to delete once the root transaction commits."""

    path: str
    savepoint: SessionTransaction | None = None


class UploadRegistry:
    """
    Pending uploads keyed by an opaque handle.

    The handle is assigned at registration and kept in the instance state's
    info dict under a key private to this registry, so registering twice for
    the same object replaces the entry and registries of other sessions are
    left alone.
    """

    def __init__(self) -> None:
        self._entries: dict[int, PendingUpload] = {}
        self._state_key = (HANDLE_INFO_KEY, next(_registry_ids))

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[PendingUpload]:
        return iter(list(self._entries.values()))

    def register(self, instance: Any, file_info: FileInfo) -> PendingUpload:
        state_info = _state_info(instance)
        handle = state_info.get(self._state_key)
        if handle is None or handle not in self._entries:
            handle = next(_handles)
            state_info[self._state_key] = handle
        pending = PendingUpload(handle=handle, instance=instance, file_info=file_info)
        self._entries[handle] = pending
        return pending

    def get(self, instance: Any) -> PendingUpload | None:
        handle = _state_info(instance).get(self._state_key)
        if handle is None:
            return None
        return self._entries.get(handle)

    def discard(self, pending: PendingUpload) -> None:
        if self._entries.pop(pending.handle, None) is not None:
            _state_info(pending.instance).pop(self._state_key, None)

    def clear(self) -> None:
        for pending in list(self._entries.values()):
            self.discard(pending)


@dataclass
class UploadCycle:
    registry: UploadRegistry = field(default_factory=UploadRegistry)
    removals: list[QueuedRemoval] = field(default_factory=list)
    placed_files: list[PlacedFile] = field(default_factory=list)

    @property
    def pending_removals(self) -> tuple[str, ...]:
        return tuple(removal.path for removal in self.removals)

    def queue_removal(self, path: str, savepoint: SessionTransaction | None = None) -> bool:
        if path in self.pending_removals:
            return False
        self.removals.append(QueuedRemoval(path=path, savepoint=savepoint))
        return True

    def cancel_removal(self, path: str) -> None:
        self.removals[:] = [removal for removal in self.removals if removal.path != path]

    def release_savepoint(
        self,
        savepoint: SessionTransaction,
        enclosing: SessionTransaction | None,
    ) -> None:
        """Hand work done inside a released savepoint over to its enclosing one."""

        self.removals[:] = [
            replace(removal, savepoint=enclosing) if removal.savepoint is savepoint else removal
            for removal in self.removals
        ]
        self.placed_files[:] = [
            replace(placed, savepoint=enclosing) if placed.savepoint is savepoint else placed
            for placed in self.placed_files
        ]

    def rollback_savepoint(self, savepoint: SessionTransaction) -> list[PlacedFile]:
        """
        Forget removals queued inside a rolled back savepoint and return the
        files it placed.
        """

        self.removals[:] = [r for r in self.removals if r.savepoint is not savepoint]
        undone = [p for p in self.placed_files if p.savepoint is savepoint]
        self.placed_files[:] = [p for p in self.placed_files if p.savepoint is not savepoint]
        return undone


def get_cycle(session: Session, *, create: bool = False) -> UploadCycle | None:
    cycle = session.info.get(CYCLE_INFO_KEY)
    if cycle is None and create:
        cycle = UploadCycle()
        session.info[CYCLE_INFO_KEY] = cycle
    return cycle


def pop_cycle(session: Session) -> UploadCycle | None:
    return session.info.pop(CYCLE_INFO_KEY, None)


def enclosing_savepoint(transaction: SessionTransaction) -> SessionTransaction | None:
    """Return the nearest nested transaction above `transaction`, if any."""

    parent = transaction.parent
    while parent is not None and not parent.nested:
        parent = parent.parent
    return parent


def _state_info(instance: Any) -> dict[Any, Any]:
    try:
        state = inspect(instance)
    except NoInspectionAvailable as exc:
        raise UploadUsageError(
            f"Object of type {type(instance).__name__} is not a mapped instance."
        ) from exc
    return state.info
