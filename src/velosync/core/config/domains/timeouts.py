"""Domain-specific configuration for operation timeouts.

Provides cached access to timeout settings for external commands.
"""
from __future__ import annotations

from functools import cached_property
from typing import Dict

from ..base import BaseDomainConfig


class TimeoutsConfig(BaseDomainConfig):
    """Timeout buckets from ``timeouts.<bucket>_seconds``."""

    def _config_section(self) -> str:
        return "timeouts"

    @cached_property
    def default_seconds(self) -> float:
        return float(self._require("default_seconds"))

    def get(self, bucket: str) -> float:
        """Return ``<bucket>_seconds``, falling back to ``default_seconds``."""
        key = bucket if bucket.endswith("_seconds") else f"{bucket}_seconds"
        value = self.section.get(key)
        if value is None:
            return self.default_seconds
        return float(value)

    def get_all_settings(self) -> Dict[str, float]:
        return {k: float(v) for k, v in self.section.items()}


__all__ = ["TimeoutsConfig"]
