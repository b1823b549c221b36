"""I/O utilities for velosync.

This package provides safe, atomic file operations:
- Core: atomic writes, directory management, text I/O
- JSON: read/write with locking
- YAML: read with locking
- Locking: file locking primitives
"""
from __future__ import annotations

from .core import (
    PathLike,
    atomic_write,
    ensure_directory,
    ensure_parent_dir,
    read_text,
    tail_lines,
    write_text,
)
from .json import (
    read_json,
    write_json_atomic,
)
from .locking import (
    LockTimeoutError,
    acquire_file_lock,
    get_file_locking_config,
    is_locked,
    lock_path_for,
    try_file_lock,
)
from .yaml import (
    iter_yaml_files,
    read_yaml,
)

__all__ = [
    # core
    "PathLike",
    "ensure_parent_dir",
    "ensure_directory",
    "atomic_write",
    "read_text",
    "write_text",
    "tail_lines",
    # json
    "read_json",
    "write_json_atomic",
    # yaml
    "read_yaml",
    "iter_yaml_files",
    # locking
    "acquire_file_lock",
    "try_file_lock",
    "is_locked",
    "lock_path_for",
    "LockTimeoutError",
    "get_file_locking_config",
]
