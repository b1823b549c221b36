"""Structured audit trail and stdlib logging setup."""
from __future__ import annotations

from .logger import audit_event
from .stdlib_logging import configure_stdlib_logging

__all__ = ["audit_event", "configure_stdlib_logging"]
