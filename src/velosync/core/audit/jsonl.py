from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any

from velosync.core.utils.io import ensure_directory
from velosync.core.utils.io.locking import acquire_file_lock


def _json_safe(value: Any) -> Any:
    if value is None:
        return None
    if isinstance(value, Path):
        return str(value)
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    if isinstance(value, (list, tuple, set, frozenset)):
        return [_json_safe(v) for v in value]
    if isinstance(value, dict):
        return {str(k): _json_safe(v) for k, v in value.items()}
    if hasattr(value, "value") and isinstance(getattr(value, "value"), (str, int)):
        # Enum members.
        return value.value
    return value


def append_jsonl(*, path: Path, payload: dict[str, Any], timeout: float = 2.0) -> None:
    """Append one JSON line to `path` with a file lock + fsync (fail-open)."""
    try:
        ensure_directory(path.parent)
    except OSError:
        return

    try:
        safe = {k: _json_safe(v) for k, v in payload.items()}
        line = json.dumps(safe, ensure_ascii=False, default=str) + "\n"
    except (TypeError, ValueError):
        return

    try:
        with acquire_file_lock(path, timeout=timeout, poll_interval=0.01):
            with path.open("a", encoding="utf-8") as fh:
                fh.write(line)
                fh.flush()
                os.fsync(fh.fileno())
    except (OSError, TimeoutError):
        return


__all__ = ["append_jsonl"]
