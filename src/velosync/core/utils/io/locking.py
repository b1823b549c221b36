"""File locking utilities for atomic I/O operations."""
from __future__ import annotations

import fcntl
import threading
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, Iterator, Optional

from velosync.core.exceptions import LockTimeoutError

from .core import ensure_directory

_THREAD_MUTEXES: dict[str, threading.Lock] = {}
_THREAD_MUTEXES_GUARD = threading.Lock()


def _thread_mutex(path: Path) -> threading.Lock:
    key = str(path.resolve())
    with _THREAD_MUTEXES_GUARD:
        lock = _THREAD_MUTEXES.get(key)
        if lock is None:
            lock = _THREAD_MUTEXES.setdefault(key, threading.Lock())
    return lock


def lock_path_for(file_path: Path | str) -> Path:
    """Return the sidecar ``.lock`` path used for ``file_path``."""
    target = Path(file_path)
    return target.with_suffix(target.suffix + ".lock")


@contextmanager
def acquire_file_lock(
    file_path: Path | str,
    timeout: Optional[float] = None,
    *,
    poll_interval: Optional[float] = None,
) -> Iterator[object]:
    """Acquire an exclusive lock on ``file_path`` with a bounded wait.

    - A sidecar ``<file>.lock`` is locked, never the data file itself, because
      the data file is replaced by rename on every write.
    - Threads of the same process serialize on an in-process mutex first;
      ``fcntl.flock`` then arbitrates between processes.
    - ``fcntl.flock`` is tried with ``LOCK_EX | LOCK_NB`` in a retry loop.

    Args:
        file_path: Target file path to lock.
        timeout: Maximum seconds to wait before raising ``LockTimeoutError``.
            Defaults to ``registry.lock.timeout_seconds`` from configuration.
        poll_interval: Sleep duration between non-blocking attempts. Defaults
            to ``registry.lock.poll_interval_seconds``.

    Yields:
        The opened lock file object, held for the duration of the context.

    Raises:
        LockTimeoutError: When the lock is still held by someone else after
            ``timeout`` seconds.
    """
    cfg = get_file_locking_config() if timeout is None or poll_interval is None else {}
    effective_timeout = timeout if timeout is not None else cfg["timeout_seconds"]
    effective_poll_interval = (
        poll_interval if poll_interval is not None else cfg["poll_interval_seconds"]
    )

    _validate_positive("timeout", effective_timeout)
    _validate_positive("poll_interval", effective_poll_interval)

    start = time.monotonic()
    target = Path(file_path)
    lock_target = lock_path_for(target)
    ensure_directory(lock_target.parent)

    mutex = _thread_mutex(lock_target)
    if not mutex.acquire(timeout=effective_timeout):
        raise LockTimeoutError(
            f"Could not acquire lock on {target} within {effective_timeout}s",
            context={"path": str(target), "timeout": effective_timeout},
        )

    try:
        fh = open(lock_target, "a+")
        try:
            while True:
                try:
                    fcntl.flock(fh.fileno(), fcntl.LOCK_EX | fcntl.LOCK_NB)
                    break
                except OSError:
                    if (time.monotonic() - start) >= effective_timeout:
                        raise LockTimeoutError(
                            f"Could not acquire lock on {target} within {effective_timeout}s",
                            context={"path": str(target), "timeout": effective_timeout},
                        )
                    time.sleep(effective_poll_interval)
            try:
                yield fh
            finally:
                fcntl.flock(fh.fileno(), fcntl.LOCK_UN)
        finally:
            fh.close()
    finally:
        mutex.release()


@contextmanager
def try_file_lock(file_path: Path | str) -> Iterator[bool]:
    """Try once to take the exclusive lock on ``file_path``.

    Yields True when the lock is held for the duration of the context and
    False when another holder (thread or process) already has it.
    """
    target = Path(file_path)
    lock_target = lock_path_for(target)
    ensure_directory(lock_target.parent)

    mutex = _thread_mutex(lock_target)
    if not mutex.acquire(blocking=False):
        yield False
        return
    try:
        with open(lock_target, "a+") as fh:
            try:
                fcntl.flock(fh.fileno(), fcntl.LOCK_EX | fcntl.LOCK_NB)
            except OSError:
                yield False
                return
            try:
                yield True
            finally:
                fcntl.flock(fh.fileno(), fcntl.LOCK_UN)
    finally:
        mutex.release()


def is_locked(file_path: Path | str) -> bool:
    """Return True when another process currently holds the lock on ``file_path``."""
    lock_target = lock_path_for(file_path)
    if not lock_target.exists():
        return False
    with open(lock_target, "a+") as fh:
        try:
            fcntl.flock(fh.fileno(), fcntl.LOCK_SH | fcntl.LOCK_NB)
        except OSError:
            return True
        fcntl.flock(fh.fileno(), fcntl.LOCK_UN)
    return False


def _validate_positive(name: str, value: float) -> None:
    if value <= 0:
        raise ValueError(f"{name} must be positive (got {value})")


def get_file_locking_config() -> Dict[str, Any]:
    """Return the resolved lock timeout settings from configuration."""
    # Lazy import to avoid circular dependency
    from velosync.core.config.domains.registry import RegistryConfig

    cfg = RegistryConfig()
    return {
        "timeout_seconds": cfg.lock_timeout_seconds,
        "poll_interval_seconds": cfg.lock_poll_interval_seconds,
    }


__all__ = [
    "acquire_file_lock",
    "try_file_lock",
    "is_locked",
    "lock_path_for",
    "LockTimeoutError",
    "get_file_locking_config",
]
