"""
Content-based mime type detection.
"""

from __future__ import annotations

import logging
from typing import Protocol

logger = logging.getLogger(__name__)


class MimeTypeDetector(Protocol):
    """
    Detect the mime type of a file from its content.
    """

    def detect(self, path: str) -> str | None:
        ...


class MagicMimeTypeDetector:
    """
    Mime detection backed by python-magic (libmagic).

    The library is imported on first use so hosts that inject their own
    detector do not need libmagic installed.
    """

    def detect(self, path: str) -> str | None:
        import magic

        try:
            detected = magic.from_file(path, mime=True)
        except (OSError, magic.MagicException):
            logger.warning("python-magic failed to detect mime type for %s", path, exc_info=True)
            return None
        return detected or None
