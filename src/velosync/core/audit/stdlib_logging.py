from __future__ import annotations

import logging
import sys
from pathlib import Path

from velosync.core.utils.io import ensure_directory

_CONFIGURED_LOG_PATH: str | None = None
_VELOSYNC_FILE_HANDLER: logging.Handler | None = None


def configure_stdlib_logging(*, log_path: Path, level: int = logging.INFO) -> bool:
    """Configure Python stdlib logging to write to `log_path` (no stderr handler).

    Idempotent per-process: if already configured for the same file, no-op.
    Returns False when the log directory or file cannot be opened; logging
    then stays on whatever handlers were already installed.
    """
    global _CONFIGURED_LOG_PATH, _VELOSYNC_FILE_HANDLER

    resolved = str(Path(log_path).resolve())
    if _CONFIGURED_LOG_PATH == resolved and _VELOSYNC_FILE_HANDLER is not None:
        return True

    try:
        ensure_directory(Path(resolved).parent)
        fh = logging.FileHandler(resolved, encoding="utf-8")
    except OSError:
        return False

    root = logging.getLogger()
    root.setLevel(level)

    # FileHandler is also a StreamHandler; only drop the stdout/stderr ones.
    for h in list(root.handlers):
        if isinstance(h, logging.StreamHandler) and getattr(h, "stream", None) in (sys.stdout, sys.stderr):
            root.removeHandler(h)
            h.close()

    if _VELOSYNC_FILE_HANDLER is not None:
        root.removeHandler(_VELOSYNC_FILE_HANDLER)
        _VELOSYNC_FILE_HANDLER.close()
        _VELOSYNC_FILE_HANDLER = None

    fh.setLevel(level)
    fh.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s"))
    root.addHandler(fh)

    _VELOSYNC_FILE_HANDLER = fh
    _CONFIGURED_LOG_PATH = resolved
    return True


def suppress_lastresort() -> None:
    """Keep stdlib's lastResort handler from writing WARNINGs to stderr.

    Hook invocations must not print anything the panel could misread.
    """
    root = logging.getLogger()
    if not root.handlers:
        root.addHandler(logging.NullHandler())


def reset_stdlib_logging_for_tests() -> None:
    """Test-only: drop the handlers installed by this module."""
    global _CONFIGURED_LOG_PATH, _VELOSYNC_FILE_HANDLER
    root = logging.getLogger()
    for h in list(root.handlers):
        if h is _VELOSYNC_FILE_HANDLER or type(h) is logging.NullHandler:
            root.removeHandler(h)
            h.close()
    logging.captureWarnings(False)
    _CONFIGURED_LOG_PATH = None
    _VELOSYNC_FILE_HANDLER = None


__all__ = ["configure_stdlib_logging", "suppress_lastresort", "reset_stdlib_logging_for_tests"]
