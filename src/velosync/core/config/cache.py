"""Centralized configuration caching.

Provides a single source of truth for loaded configuration across all domain
configs. The cache key includes the config directory, a fingerprint of the
``VELOSYNC_*`` environment and the mtimes of the override files, so edits and
env changes are picked up without an explicit reset.
"""
from __future__ import annotations

import hashlib
import os
from pathlib import Path
from typing import Any, Callable, Dict, Optional

_config_cache: Dict[str, Dict[str, Any]] = {}
_cache_clearers: Dict[str, Callable[[], None]] = {}


def _cache_key(config_dir: Path, validate: bool) -> str:
    env_items = sorted(
        (k, os.environ.get(k, ""))
        for k in os.environ.keys()
        if k.startswith("VELOSYNC_")
    )
    env_fp = hashlib.sha256(repr(env_items).encode("utf-8")).hexdigest()[:12]

    from velosync.core.utils.io import iter_yaml_files

    files: list[tuple[str, int, int]] = []
    for p in iter_yaml_files(config_dir):
        try:
            st = p.stat()
            files.append((p.name, int(st.st_mtime_ns), int(st.st_size)))
        except OSError:
            files.append((p.name, 0, 0))
    cfg_fp = hashlib.sha256(repr(files).encode("utf-8")).hexdigest()[:12]

    suffix = ":validated" if validate else ":raw"
    return f"{config_dir}{suffix}:env={env_fp}:cfg={cfg_fp}"


def get_cached_config(config_dir: Optional[Path] = None, validate: bool = True) -> Dict[str, Any]:
    """Get configuration with caching.

    Returns the same config dict instance for the same inputs, avoiding
    repeated file I/O. The returned dict must be treated as immutable.
    """
    from .manager import ConfigManager, resolve_config_dir

    resolved = resolve_config_dir(config_dir)
    key = _cache_key(resolved, validate)
    if key not in _config_cache:
        manager = ConfigManager(config_dir=resolved)
        _config_cache[key] = manager._load_config_uncached(validate=validate)
    return _config_cache[key]


def clear_all_caches() -> None:
    """Clear the config dict cache and every registered derived cache."""
    _config_cache.clear()
    for clearer in list(_cache_clearers.values()):
        clearer()


def register_cache_clearer(name: str, clearer: Callable[[], None]) -> None:
    """Register an additional cache clearer to run inside ``clear_all_caches()``."""
    _cache_clearers[name] = clearer


__all__ = ["get_cached_config", "clear_all_caches", "register_cache_clearer"]
