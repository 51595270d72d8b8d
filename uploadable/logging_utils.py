"""
Structured logging helpers for upload lifecycle events.
"""

from __future__ import annotations

import json
import logging
from typing import Any

EVENT_NAMESPACE = "uploadable"


def log_upload_event(
    logger: logging.Logger,
    level: int,
    event: str,
    *,
    instance: Any = None,
    **fields: Any,
) -> None:
    """
    Emit one `uploadable.<event>` line as compact JSON.

    When `instance` is given its class name is logged as `entity`.
    """

    if not logger.isEnabledFor(level):
        return
    payload: dict[str, Any] = {"event": f"{EVENT_NAMESPACE}.{event}", **fields}
    if instance is not None:
        payload["entity"] = type(instance).__name__
    logger.log(level, json.dumps(payload, default=str, sort_keys=True, separators=(",", ":")))
