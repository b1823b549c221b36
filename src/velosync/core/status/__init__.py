"""Read-only status/introspection."""
from __future__ import annotations

from .provider import StatusProvider, StatusSnapshot

__all__ = ["StatusProvider", "StatusSnapshot"]
