"""Domain-specific configuration for the virtual-host registry file."""
from __future__ import annotations

from functools import cached_property
from pathlib import Path
from typing import Optional

from ..base import BaseDomainConfig


class RegistryConfig(BaseDomainConfig):
    """Typed access to ``registry.*`` (file path, lock and backup settings)."""

    def _config_section(self) -> str:
        return "registry"

    @cached_property
    def path(self) -> Path:
        return Path(str(self._require("path")))

    @cached_property
    def lock_timeout_seconds(self) -> float:
        return float(self._require("lock", "timeout_seconds"))

    @cached_property
    def lock_poll_interval_seconds(self) -> float:
        return float(self._require("lock", "poll_interval_seconds"))

    @cached_property
    def backup_dir(self) -> Optional[Path]:
        """Directory for timestamped backups; None keeps them beside the registry."""
        raw = (self.section.get("backups") or {}).get("directory")
        return Path(str(raw)) if raw else None

    @cached_property
    def backup_keep(self) -> int:
        return int((self.section.get("backups") or {}).get("keep", 20))


__all__ = ["RegistryConfig"]
