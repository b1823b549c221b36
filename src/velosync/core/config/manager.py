"""
velosync configuration management (layered YAML).
"""
from __future__ import annotations

import json
import logging
import os
import re
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Tuple

import jsonschema
import yaml

from velosync.core.exceptions import ConfigurationError
from velosync.core.utils.merge import deep_merge as _deep_merge
from velosync.data import get_data_path
from velosync.data import read_json as read_data_json

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_DIR = Path("/etc/veloserve/velosync.d")
CONFIG_DIR_ENV = "VELOSYNC_CONFIG_DIR"
ENV_PREFIX = "VELOSYNC_"
# Env vars with the prefix that are settings of their own, not overrides.
_RESERVED_ENV_KEYS = frozenset({CONFIG_DIR_ENV})


def resolve_config_dir(config_dir: Optional[Path] = None) -> Path:
    """Return the system override directory (explicit > env > default)."""
    if config_dir is not None:
        return Path(config_dir).expanduser().resolve()
    raw = os.environ.get(CONFIG_DIR_ENV, "").strip()
    if raw:
        return Path(raw).expanduser().resolve()
    return DEFAULT_CONFIG_DIR


class ConfigManager:
    """Load, merge, and validate velosync configuration.

    Configuration sources (highest to lowest priority):
    1. Environment variables: VELOSYNC_<section>__<key>
    2. System overrides: <config-dir>/*.yaml (alphabetical order)
    3. Bundled defaults: velosync.data/config/*.yaml (alphabetical order)
    """

    def __init__(self, config_dir: Optional[Path] = None) -> None:
        self.config_dir = resolve_config_dir(config_dir)
        self.core_config_dir = get_data_path("config")

    def load_yaml(self, path: Path) -> Dict[str, Any]:
        from velosync.core.utils.io import read_yaml

        # Fail closed: configuration must never silently ignore invalid YAML.
        try:
            data = read_yaml(path, default={}, raise_on_error=True)
        except yaml.YAMLError as exc:
            raise ConfigurationError(
                f"Invalid YAML in {path}: {exc}", context={"path": str(path)}
            ) from exc
        if not isinstance(data, dict):
            raise ConfigurationError(
                f"Config file {path} must contain a mapping", context={"path": str(path)}
            )
        return data

    def _load_directory(self, directory: Path, cfg: Dict[str, Any]) -> Dict[str, Any]:
        from velosync.core.utils.io import iter_yaml_files

        for path in iter_yaml_files(directory):
            cfg = _deep_merge(cfg, self.load_yaml(path))
        return cfg

    # ---- environment overrides -------------------------------------------

    def _as_bool(self, v: str) -> Optional[bool]:
        low = v.strip().lower()
        if low in {"true", "false"}:
            return low == "true"
        return None

    def _as_int(self, v: str) -> Optional[int]:
        if re.fullmatch(r"[-+]?\d+", v.strip() or " "):
            return int(v)
        return None

    def _as_float(self, v: str) -> Optional[float]:
        s = v.strip()
        if re.fullmatch(r"[-+]?\d*\.\d+", s) or re.fullmatch(r"[-+]?\d+\.\d*", s):
            return float(s)
        return None

    def _as_json(self, v: str) -> Optional[Any]:
        s = v.strip()
        if (s.startswith("{") and s.endswith("}")) or (s.startswith("[") and s.endswith("]")):
            try:
                return json.loads(s)
            except ValueError:
                return None
        return None

    def _coerce_type(self, value: str) -> Any:
        for caster in (self._as_bool, self._as_int, self._as_float, self._as_json):
            result = caster(value)
            if result is not None:
                return result
        return value.strip()

    def _parse_env_key(self, raw: str) -> List[str]:
        segs = raw.split("__") if "__" in raw else raw.split("_")
        if any(seg == "" for seg in segs):
            raise ConfigurationError(
                f"Malformed {ENV_PREFIX}* key: empty segment in '{raw}'."
            )
        return [seg.lower() for seg in segs]

    def _iter_env_overrides(self) -> Iterator[Tuple[List[str], Any]]:
        for key in sorted(os.environ.keys()):
            if not key.startswith(ENV_PREFIX) or key in _RESERVED_ENV_KEYS:
                continue
            raw = key[len(ENV_PREFIX):]
            if not raw:
                continue
            yield self._parse_env_key(raw), self._coerce_type(os.environ[key])

    def _set_nested(self, root: Dict[str, Any], path: List[str], value: Any) -> None:
        cur: Dict[str, Any] = root
        for part in path[:-1]:
            # Case-insensitive match against existing keys.
            existing = {k.lower(): k for k in cur.keys() if isinstance(k, str)}
            use_key = existing.get(part, part)
            nxt = cur.get(use_key)
            if not isinstance(nxt, dict):
                nxt = {}
                cur[use_key] = nxt
            cur = nxt
        existing = {k.lower(): k for k in cur.keys() if isinstance(k, str)}
        cur[existing.get(path[-1], path[-1])] = value

    def apply_env_overrides(self, cfg: Dict[str, Any]) -> None:
        for path, typed_value in self._iter_env_overrides():
            self._set_nested(cfg, path, typed_value)

    # ---- loading -----------------------------------------------------------

    def validate_schema(self, cfg: Dict[str, Any]) -> None:
        schema = read_data_json("schemas", "config.schema.json")
        try:
            jsonschema.validate(instance=cfg, schema=schema)
        except jsonschema.ValidationError as exc:
            where = ".".join(str(p) for p in exc.absolute_path) or "<root>"
            raise ConfigurationError(
                f"Invalid configuration at {where}: {exc.message}",
                context={"path": where},
            ) from exc

    def _load_config_uncached(self, validate: bool = True) -> Dict[str, Any]:
        cfg: Dict[str, Any] = {}
        cfg = self._load_directory(self.core_config_dir, cfg)
        if self.config_dir.is_dir():
            cfg = self._load_directory(self.config_dir, cfg)
        self.apply_env_overrides(cfg)
        if validate:
            self.validate_schema(cfg)
        return cfg

    def load_config(self, validate: bool = True) -> Dict[str, Any]:
        """Return the merged configuration (cached; treat as read-only)."""
        from .cache import get_cached_config

        return get_cached_config(config_dir=self.config_dir, validate=validate)


__all__ = ["ConfigManager", "resolve_config_dir", "DEFAULT_CONFIG_DIR", "CONFIG_DIR_ENV"]
