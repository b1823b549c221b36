"""Base class for domain-specific configuration accessors.

Provides a standardized pattern for all domain configs with:
- Centralized caching via cache.py
- Consistent config_dir handling
- Type-safe section access
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from functools import cached_property
from pathlib import Path
from typing import Any, Dict, Optional

from velosync.core.exceptions import ConfigurationError

from .cache import get_cached_config


class BaseDomainConfig(ABC):
    """Abstract base class for domain-specific configuration accessors.

    Usage:
        class MyConfig(BaseDomainConfig):
            def _config_section(self) -> str:
                return "mySection"

            @cached_property
            def my_setting(self) -> str:
                return self.section.get("my_setting", "default")
    """

    def __init__(self, config_dir: Optional[Path] = None) -> None:
        self._config_dir = config_dir
        self._config = get_cached_config(config_dir=config_dir)

    @abstractmethod
    def _config_section(self) -> str:
        """Return the top-level config key for this domain."""
        ...

    @cached_property
    def section(self) -> Dict[str, Any]:
        """This domain's configuration section (empty dict if absent)."""
        return self._config.get(self._config_section(), {}) or {}

    def _require(self, *keys: str) -> Any:
        """Return a nested value from this section or raise ConfigurationError."""
        cur: Any = self.section
        for key in keys:
            if not isinstance(cur, dict) or key not in cur:
                dotted = ".".join((self._config_section(),) + keys)
                raise ConfigurationError(f"{dotted} missing from configuration")
            cur = cur[key]
        return cur


__all__ = ["BaseDomainConfig"]
