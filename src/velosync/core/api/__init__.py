"""Admin API (uniform JSON envelopes)."""
from __future__ import annotations

from .admin import ACTIONS, AdminAPI

__all__ = ["ACTIONS", "AdminAPI"]
