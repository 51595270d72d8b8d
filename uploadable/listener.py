"""
uploadable/listener.py

SQLAlchemy session listener attaching uploaded files to mapped objects.

One cycle spans a session transaction:

- before_commit (and the start of before_flush): persistent objects with a
  pending upload are flagged modified, so the flush picks them up even when
  no column changed.
- before_flush: uploads of new and dirty objects are validated and planned
  first, then moved and written back onto the objects. Stored files of
  replaced uploads and deleted objects are queued for removal.
- after_commit of the root transaction: queued files are removed, best
  effort.
- after_rollback of the root transaction: the cycle is dropped and files
  placed during it are removed again.

Savepoints do not end the cycle. Releasing one hands its placements and
removals to the enclosing transaction; rolling one back removes only the
files placed inside it and forgets the removals it queued.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any

from sqlalchemy import event, inspect
from sqlalchemy.orm import Session, SessionTransaction, object_session
from sqlalchemy.orm.attributes import flag_modified

from uploadable.config import UploadableSettings, get_uploadable_settings
from uploadable.errors import NoUploadRegisteredError, UploadUsageError
from uploadable.fields import write_upload_fields
from uploadable.file_info import FileInfo, coerce_file_info
from uploadable.hooks import UploadProcessEvent, UploadProcessHook
from uploadable.logging_utils import log_upload_event
from uploadable.metadata import UploadableConfig, get_uploadable_config
from uploadable.mime import MagicMimeTypeDetector, MimeTypeDetector
from uploadable.mover import FileMover, MovePlan, raise_for_upload_error
from uploadable.paths import PathResolver, strip_trailing_separators
from uploadable.registry import (
    PendingUpload,
    PlacedFile,
    UploadCycle,
    enclosing_savepoint,
    get_cycle,
    pop_cycle,
)
from uploadable.storage import FileSystem, LocalFileSystem
from uploadable.types import UploadAction
from uploadable.validators import UploadValidator

logger = logging.getLogger(__name__)

_SESSION_EVENTS = ("before_commit", "before_flush", "after_commit", "after_rollback")


@dataclass(frozen=True)
class _PreparedUpload:
    pending: PendingUpload
    config: UploadableConfig
    action: UploadAction
    mime_type: str
    plan: MovePlan
    event: UploadProcessEvent


class UploadableListener:
    """
    Coordinates pending uploads with the flush/commit cycle of sessions.

    The listener itself only holds collaborators; all per-transaction state
    lives in `session.info`, so one listener can serve many sessions.
    """

    def __init__(
        self,
        *,
        default_path: str | None = None,
        mime_detector: MimeTypeDetector | None = None,
        filesystem: FileSystem | None = None,
        hooks: Iterable[UploadProcessHook] = (),
        settings: UploadableSettings | None = None,
    ) -> None:
        settings = settings or get_uploadable_settings()
        self._default_path = default_path if default_path is not None else settings.default_path
        self._filesystem = filesystem or LocalFileSystem(settings.file_mode)
        self._path_resolver = PathResolver(self._filesystem)
        self._mover = FileMover(self._filesystem)
        self._hooks: list[UploadProcessHook] = list(hooks)
        self.mime_detector = mime_detector or MagicMimeTypeDetector()

    # ── Configuration ──────────────────────────────────────────────────────

    @property
    def default_path(self) -> str | None:
        return self._default_path

    def set_default_path(self, path: str | None) -> None:
        self._default_path = path

    @property
    def mime_detector(self) -> MimeTypeDetector:
        return self._mime_detector

    @mime_detector.setter
    def mime_detector(self, detector: MimeTypeDetector) -> None:
        self._mime_detector = detector
        self._validator = UploadValidator(detector)

    def add_hook(self, hook: UploadProcessHook) -> None:
        self._hooks.append(hook)

    # ── Session wiring ─────────────────────────────────────────────────────

    def register(self, target: Any) -> None:
        """
        Listen on a Session, sessionmaker, scoped_session or the Session class.
        """

        for name in _SESSION_EVENTS:
            handler = getattr(self, f"_on_{name}")
            if not event.contains(target, name, handler):
                event.listen(target, name, handler)

    def unregister(self, target: Any) -> None:
        for name in _SESSION_EVENTS:
            handler = getattr(self, f"_on_{name}")
            if event.contains(target, name, handler):
                event.remove(target, name, handler)

    def _on_before_commit(self, session: Session) -> None:
        self.mark_pending_updates(session)

    def _on_before_flush(self, session: Session, flush_context: Any, instances: Any) -> None:
        self.process_flush(session)

    def _on_after_commit(self, session: Session) -> None:
        savepoint = session.get_nested_transaction()
        if savepoint is not None:
            self.release_savepoint(session, savepoint)
            return
        self.finalize_commit(session)

    def _on_after_rollback(self, session: Session) -> None:
        savepoint = session.get_nested_transaction()
        if savepoint is not None:
            self.rollback_savepoint(session, savepoint)
            return
        self.discard_cycle(session)

    # ── Registration API ───────────────────────────────────────────────────

    def register_upload(
        self,
        instance: Any,
        file_info: Any,
        *,
        session: Session | None = None,
    ) -> FileInfo:
        """
        Attach a file to an uploadable object for the next flush.

        `file_info` may be a FileInfo, a multipart-style mapping or an object
        with the same attributes. Registering again for the same object
        replaces the previous file.
        """

        if get_uploadable_config(type(instance)) is None:
            raise UploadUsageError(f'Class "{type(instance).__name__}" is not uploadable.')
        session = self._owning_session(instance, session)
        info = coerce_file_info(file_info)
        get_cycle(session, create=True).registry.register(instance, info)
        logger.debug("Registered upload %s for %r", info.name, instance)
        return info

    def get_upload(self, instance: Any, *, session: Session | None = None) -> FileInfo:
        session = self._owning_session(instance, session)
        cycle = get_cycle(session)
        pending = cycle.registry.get(instance) if cycle is not None else None
        if pending is None:
            raise NoUploadRegisteredError(
                f'There\'s no file info registered for object of class "{type(instance).__name__}".'
            )
        return pending.file_info

    def pending_removals(self, session: Session) -> tuple[str, ...]:
        cycle = get_cycle(session)
        return cycle.pending_removals if cycle is not None else ()

    def _owning_session(self, instance: Any, session: Session | None) -> Session:
        if session is None:
            session = object_session(instance)
        if session is None:
            raise UploadUsageError(
                f'Object of class "{type(instance).__name__}" is not attached to a session; '
                "add it to a session or pass one explicitly."
            )
        return session

    # ── Phase 1: mark persistent owners dirty ──────────────────────────────

    def mark_pending_updates(self, session: Session) -> None:
        """
        Flag persistent objects with a pending upload as modified, using the
        current value of the path (or name) field as both old and new value.
        """

        cycle = get_cycle(session)
        if cycle is None or not cycle.registry:
            return

        deleted = session.deleted
        for pending in cycle.registry:
            instance = pending.instance
            if not inspect(instance).persistent or object_session(instance) is not session:
                continue
            if instance in deleted:
                continue
            config = get_uploadable_config(type(instance))
            field_name = config.fields.path or config.fields.name
            getattr(instance, field_name)
            flag_modified(instance, field_name)
            session.add(instance)

    # ── Phase 2: process uploads inside the flush ──────────────────────────

    def process_flush(self, session: Session) -> None:
        self.mark_pending_updates(session)

        cycle = get_cycle(session)
        if cycle is not None and cycle.registry:
            prepared = self._prepare_uploads(session, cycle)
            for item in prepared:
                self._apply_upload(cycle, item)

        self._queue_deleted_files(session)

    def _prepare_uploads(self, session: Session, cycle: UploadCycle) -> list[_PreparedUpload]:
        # Nothing is moved until every upload of the flush passed validation.
        new = session.new
        dirty = session.dirty
        deleted = session.deleted
        reserved: set[str] = set()
        prepared: list[_PreparedUpload] = []

        for pending in cycle.registry:
            instance = pending.instance
            if instance in deleted:
                continue
            if instance in new:
                action = UploadAction.INSERT
            elif instance in dirty:
                action = UploadAction.UPDATE
            else:
                continue

            config = get_uploadable_config(type(instance))
            upload_event = UploadProcessEvent(
                session=session,
                instance=instance,
                file_info=pending.file_info,
                config=config,
                action=action,
            )
            for hook in self._hooks:
                hook.before_process(upload_event)

            raise_for_upload_error(pending.file_info)
            mime_type = self._validator.validate(pending.file_info, config)
            directory = self._path_resolver.resolve(instance, config, self._default_path)
            plan = self._mover.plan(
                pending.file_info,
                directory,
                owner=instance,
                naming=config.naming,
                overwrite=config.overwrite,
                counter_start=config.counter_start,
                reserved=reserved,
            )
            prepared.append(
                _PreparedUpload(
                    pending=pending,
                    config=config,
                    action=action,
                    mime_type=mime_type,
                    plan=plan,
                    event=upload_event,
                )
            )

        return prepared

    def _apply_upload(self, cycle: UploadCycle, item: _PreparedUpload) -> None:
        instance = item.pending.instance
        config = item.config
        savepoint = item.event.session.get_nested_transaction()

        if item.action is UploadAction.UPDATE:
            previous_path = self._stored_file_path(instance, config)
            if previous_path:
                self._queue_removal(cycle, previous_path, savepoint)

        result = self._mover.execute(item.plan, item.mime_type)
        cycle.placed_files.append(
            PlacedFile(
                path=result.file_path,
                replaced_existing=item.plan.replaces_existing,
                savepoint=savepoint,
            )
        )
        # A removal queued earlier for this path would delete the new file.
        cycle.cancel_removal(result.file_path)

        changes = write_upload_fields(instance, config.fields, result)
        if config.callback is not None:
            config.callback(instance, result)

        log_upload_event(
            logger,
            logging.INFO,
            "file_moved",
            instance=instance,
            action=item.action.value,
            file_path=result.file_path,
            original_file_name=result.original_file_name,
            mime_type=result.mime_type,
            file_size=result.file_size,
            fields=sorted(changes),
        )

        for hook in self._hooks:
            hook.after_process(item.event)
        cycle.registry.discard(item.pending)

    def _queue_deleted_files(self, session: Session) -> None:
        for instance in session.deleted:
            config = get_uploadable_config(type(instance))
            if config is None:
                continue
            path = self._stored_file_path(instance, config)
            if path:
                self._queue_removal(
                    get_cycle(session, create=True), path, session.get_nested_transaction()
                )

    def _queue_removal(
        self,
        cycle: UploadCycle,
        path: str,
        savepoint: SessionTransaction | None,
    ) -> None:
        if cycle.queue_removal(path, savepoint):
            log_upload_event(logger, logging.DEBUG, "removal_queued", file_path=path)

    def _stored_file_path(self, instance: Any, config: UploadableConfig) -> str | None:
        if config.fields.path:
            return getattr(instance, config.fields.path) or None

        file_name = getattr(instance, config.fields.name)
        if not file_name:
            return None
        directory = self._path_resolver.select(instance, config, self._default_path)
        if not isinstance(directory, str) or not directory.strip():
            return None
        return os.path.join(strip_trailing_separators(directory), file_name)

    # ── Savepoints ─────────────────────────────────────────────────────────

    def release_savepoint(self, session: Session, savepoint: SessionTransaction) -> None:
        cycle = get_cycle(session)
        if cycle is None:
            return
        cycle.release_savepoint(savepoint, enclosing_savepoint(savepoint))

    def rollback_savepoint(self, session: Session, savepoint: SessionTransaction) -> None:
        """
        Undo the file work of a rolled back savepoint. The enclosing
        transaction keeps its own placements and queued removals.
        """

        cycle = get_cycle(session)
        if cycle is None:
            return

        undone = cycle.rollback_savepoint(savepoint)
        for placed in undone:
            if not placed.replaced_existing:
                self.remove_file(placed.path)
        log_upload_event(
            logger,
            logging.WARNING if undone else logging.DEBUG,
            "savepoint_rolled_back",
            placed=len(undone),
        )

    # ── Phase 3: after the root transaction ────────────────────────────────

    def finalize_commit(self, session: Session) -> None:
        """
        Remove queued files now that the transaction is committed, then drop
        the cycle including registrations that were never processed.
        """

        cycle = pop_cycle(session)
        if cycle is None:
            return

        removed = sum(1 for path in cycle.pending_removals if self.remove_file(path))
        log_upload_event(
            logger,
            logging.INFO,
            "cycle_committed",
            placed=len(cycle.placed_files),
            queued_removals=len(cycle.pending_removals),
            removed=removed,
            dropped_registrations=len(cycle.registry),
        )
        cycle.removals.clear()
        cycle.registry.clear()

    def discard_cycle(self, session: Session) -> None:
        """
        Drop the cycle after a rollback and remove files placed during it,
        except those that replaced an existing file.
        """

        cycle = pop_cycle(session)
        if cycle is None:
            return

        for placed in cycle.placed_files:
            if not placed.replaced_existing:
                self.remove_file(placed.path)
        log_upload_event(
            logger,
            logging.WARNING if cycle.placed_files else logging.INFO,
            "cycle_rolled_back",
            placed=len(cycle.placed_files),
            discarded_removals=len(cycle.pending_removals),
            dropped_registrations=len(cycle.registry),
        )
        cycle.registry.clear()

    def remove_file(self, path: str) -> bool:
        """
        Best-effort removal; failures are logged, never raised.
        """

        try:
            if not self._filesystem.is_file(path):
                logger.warning("File not found in storage (already deleted?): %s", path)
                return False
            self._filesystem.remove(path)
        except OSError:
            logger.exception("Failed to delete file from storage (orphaned): %s", path)
            return False
        logger.info("File deleted from storage: %s", path)
        return True
