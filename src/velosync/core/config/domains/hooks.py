"""Domain-specific configuration for hosting-panel hook registration."""
from __future__ import annotations

from functools import cached_property

from ..base import BaseDomainConfig


class HooksConfig(BaseDomainConfig):
    def _config_section(self) -> str:
        return "hooks"

    @cached_property
    def script(self) -> str:
        """Absolute path of the hook entry point the panel invokes."""
        return str(self._require("script"))

    @cached_property
    def stage(self) -> str:
        return str(self.section.get("stage", "post"))

    @cached_property
    def exectype(self) -> str:
        return str(self.section.get("exectype", "script"))


__all__ = ["HooksConfig"]
