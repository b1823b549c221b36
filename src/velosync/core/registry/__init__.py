"""Virtual-host registry: model, file format, locked repository."""
from __future__ import annotations

from .models import OpaqueSection, Registry, VirtualHostRecord
from .parser import parse_registry, serialize_registry
from .repository import ConfigRepository
from .ssl import SslBindingResult, SslBindingSynchronizer

__all__ = [
    "ConfigRepository",
    "OpaqueSection",
    "Registry",
    "SslBindingResult",
    "SslBindingSynchronizer",
    "VirtualHostRecord",
    "parse_registry",
    "serialize_registry",
]
