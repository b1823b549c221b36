from __future__ import annotations

import logging
import os
from typing import Any

from velosync.core.audit.jsonl import append_jsonl
from velosync.core.exceptions import ConfigurationError
from velosync.core.utils.time import utc_timestamp

logger = logging.getLogger(__name__)


def audit_event(event: str, **fields: Any) -> None:
    """Emit a single structured audit event as JSONL (fail-open).

    This is separate from stdlib `logging` so JSON-mode CLI output stays pure
    and so the audit trail survives log level changes.
    """
    from velosync.core.config.domains.logging import LoggingConfig

    try:
        cfg = LoggingConfig()
        if not cfg.audit_enabled:
            return
        path = cfg.audit_path
    except (ConfigurationError, OSError) as exc:
        logger.debug("Audit disabled for %s: %s", event, exc)
        return

    payload: dict[str, Any] = {
        "ts": utc_timestamp(),
        "event": event,
        "pid": os.getpid(),
    }
    payload.update(fields)
    append_jsonl(path=path, payload=payload)


__all__ = ["audit_event"]
