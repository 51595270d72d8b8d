"""
uploadable/config.py

Environment-driven settings for the upload listener.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path


ENV_FILENAMES = (".env", ".env.local")


def _parse_env_line(raw_line: str) -> tuple[str, str] | None:
    line = raw_line.strip()
    if not line or line.startswith("#") or "=" not in line:
        return None
    key, value = line.split("=", 1)
    key = key.strip()
    if not key:
        return None
    return key, value.strip().strip('"').strip("'")


def load_env_files(directory: str | Path | None = None) -> None:
    """
    Load KEY=VALUE pairs from `.env` and `.env.local` in `directory`
    (the working directory by default). Variables already present in the
    process environment win.
    """

    base_dir = Path(directory) if directory is not None else Path.cwd()
    for filename in ENV_FILENAMES:
        env_path = base_dir / filename
        if not env_path.is_file():
            continue
        for raw_line in env_path.read_text(encoding="utf-8").splitlines():
            parsed = _parse_env_line(raw_line)
            if parsed is not None:
                os.environ.setdefault(*parsed)


@lru_cache(maxsize=1)
def _load_env_once() -> None:
    """
    Load `.env` files from the working directory once per process.
    """

    load_env_files()


def _get_optional_str_env(name: str) -> str | None:
    """
    Read an optional string value from environment variables.
    """

    _load_env_once()
    value = os.getenv(name)
    if value is None:
        return None
    stripped = value.strip()
    return stripped if stripped else None


def _get_optional_octal_env(name: str) -> int | None:
    """
    Read an optional octal permission value (e.g. `644` or `0o644`).
    """

    raw_value = _get_optional_str_env(name)
    if raw_value is None:
        return None
    try:
        return int(raw_value, 8)
    except ValueError:
        return None


@dataclass(frozen=True)
class UploadableSettings:
    """
    Process-wide defaults for the upload listener.

    default_path is used when an uploadable class defines neither a path nor
    a path method. file_mode is applied to files moved out of the upload
    temp location; None means 0o666 minus the process umask.
    """

    default_path: str | None = None
    file_mode: int | None = None


@lru_cache(maxsize=1)
def get_uploadable_settings() -> UploadableSettings:
    """
    Return cached upload settings from environment variables.
    """

    return UploadableSettings(
        default_path=_get_optional_str_env("UPLOADABLE_DEFAULT_PATH"),
        file_mode=_get_optional_octal_env("UPLOADABLE_FILE_MODE"),
    )
