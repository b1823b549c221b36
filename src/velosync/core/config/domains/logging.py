"""Domain-specific configuration for velosync logging and audit.

This config controls:
- The level and destination of the stdlib log file
- The separate log file used by hook invocations
- Whether structured audit events are written, and where
"""
from __future__ import annotations

import logging
from functools import cached_property
from pathlib import Path
from typing import Dict

from ..base import BaseDomainConfig


class LoggingConfig(BaseDomainConfig):
    def _config_section(self) -> str:
        return "logging"

    @cached_property
    def level(self) -> int:
        name = str(self.section.get("level", "INFO")).upper()
        return int(getattr(logging, name, logging.INFO))

    @cached_property
    def path(self) -> Path:
        return Path(str(self.section.get("path", "/var/log/veloserve/velosync.log")))

    @cached_property
    def hooks_path(self) -> Path:
        return Path(str(self.section.get("hooks_path", "/var/log/veloserve/hooks.log")))

    @cached_property
    def error_log(self) -> Path:
        """The web engine's own error log (surfaced by ``tail_log``)."""
        return Path(str(self.section.get("error_log", "/var/log/veloserve/error.log")))

    @cached_property
    def audit_enabled(self) -> bool:
        audit = self.section.get("audit") or {}
        return bool(audit.get("enabled", True))

    @cached_property
    def audit_path(self) -> Path:
        audit = self.section.get("audit") or {}
        return Path(str(audit.get("path", "/var/log/veloserve/audit.jsonl")))

    def log_sources(self) -> Dict[str, Path]:
        """Named log files that may be tailed through the admin API."""
        return {
            "velosync": self.path,
            "hooks": self.hooks_path,
            "error": self.error_log,
            "audit": self.audit_path,
        }


__all__ = ["LoggingConfig"]
