"""
Shared fixtures for upload tests.
"""

from __future__ import annotations

import itertools
from collections.abc import Callable, Iterator
from pathlib import Path

import pytest
from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session

from sample_models import Base
from uploadable import FileInfo, LocalFileSystem, UploadableListener, get_uploadable_config
from uploadable.config import UploadableSettings

JPEG_HEADER = b"\xff\xd8\xff\xe0"
PNG_HEADER = b"\x89PNG\r\n\x1a\n"
PDF_HEADER = b"%PDF-1.7\n"
EXE_HEADER = b"MZ\x90\x00"


class FakeMimeDetector:
    """Detects a few types from their magic bytes and records every call."""

    signatures = (
        (JPEG_HEADER, "image/jpeg"),
        (PNG_HEADER, "image/png"),
        (PDF_HEADER, "application/pdf"),
        (EXE_HEADER, "application/x-msdownload"),
    )

    def __init__(self) -> None:
        self.calls: list[str] = []

    def detect(self, path: str) -> str | None:
        self.calls.append(path)
        try:
            head = Path(path).read_bytes()[:16]
        except OSError:
            return None
        for signature, mime_type in self.signatures:
            if head.startswith(signature):
                return mime_type
        return None


class RecordingFileSystem(LocalFileSystem):
    """Local filesystem that remembers which operations were requested."""

    def __init__(self) -> None:
        super().__init__()
        self.calls: list[tuple[str, str]] = []

    def is_file(self, path: str) -> bool:
        self.calls.append(("is_file", path))
        return super().is_file(path)

    def is_dir(self, path: str) -> bool:
        self.calls.append(("is_dir", path))
        return super().is_dir(path)

    def is_writable(self, path: str) -> bool:
        self.calls.append(("is_writable", path))
        return super().is_writable(path)

    def make_dirs(self, path: str) -> None:
        self.calls.append(("make_dirs", path))
        super().make_dirs(path)

    def remove(self, path: str) -> None:
        self.calls.append(("remove", path))
        super().remove(path)

    def move(self, source: str, destination: str) -> None:
        self.calls.append(("move", destination))
        super().move(source, destination)

    def copy(self, source: str, destination: str) -> None:
        self.calls.append(("copy", destination))
        super().copy(source, destination)

    def operations(self, name: str) -> list[str]:
        return [path for operation, path in self.calls if operation == name]


UploadFactory = Callable[..., FileInfo]


@pytest.fixture(autouse=True)
def _clear_config_cache() -> Iterator[None]:
    get_uploadable_config.cache_clear()
    yield
    get_uploadable_config.cache_clear()


@pytest.fixture()
def upload_dir(tmp_path: Path) -> Path:
    """Default storage directory; created on demand by the listener."""
    return tmp_path / "uploads"


@pytest.fixture()
def mime_detector() -> FakeMimeDetector:
    return FakeMimeDetector()


@pytest.fixture()
def filesystem() -> RecordingFileSystem:
    return RecordingFileSystem()


@pytest.fixture()
def listener(
    upload_dir: Path,
    mime_detector: FakeMimeDetector,
    filesystem: RecordingFileSystem,
) -> UploadableListener:
    return UploadableListener(
        default_path=str(upload_dir),
        mime_detector=mime_detector,
        filesystem=filesystem,
        settings=UploadableSettings(),
    )


@pytest.fixture()
def engine(tmp_path: Path) -> Iterator[Engine]:
    db_engine = create_engine(f"sqlite:///{tmp_path / 'uploads.db'}")

    # pysqlite only emits BEGIN before DML; take over so SAVEPOINTs nest properly.
    @event.listens_for(db_engine, "connect")
    def _disable_pysqlite_transactions(dbapi_connection, connection_record) -> None:
        dbapi_connection.isolation_level = None

    @event.listens_for(db_engine, "begin")
    def _emit_begin(connection) -> None:
        connection.exec_driver_sql("BEGIN")

    Base.metadata.create_all(db_engine)
    yield db_engine
    db_engine.dispose()


@pytest.fixture()
def session(engine: Engine, listener: UploadableListener) -> Iterator[Session]:
    db_session = Session(engine)
    listener.register(db_session)
    try:
        yield db_session
    finally:
        db_session.close()


@pytest.fixture()
def make_upload(tmp_path: Path) -> UploadFactory:
    """
    Create a temp file and return a FileInfo describing it.

    Content starts with the magic bytes of the requested kind and is padded
    to `size` bytes.
    """

    incoming = tmp_path / "incoming"
    incoming.mkdir()
    sequence = itertools.count(1)

    def factory(
        name: str,
        header: bytes = JPEG_HEADER,
        *,
        size: int = 2048,
        is_uploaded_file: bool = True,
        error: int = 0,
        declared_type: str | None = None,
    ) -> FileInfo:
        tmp_file = incoming / f"php{next(sequence):04d}.tmp"
        tmp_file.write_bytes(header + b"\0" * max(0, size - len(header)))
        return FileInfo(
            name=name,
            tmp_name=str(tmp_file),
            size=size,
            type=declared_type,
            error=error,
            is_uploaded_file=is_uploaded_file,
        )

    return factory
