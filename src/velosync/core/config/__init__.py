"""velosync configuration system.

Usage:
    from velosync.core.config import ConfigManager
    from velosync.core.config.domains import RegistryConfig

    config = ConfigManager().load_config()
    registry_path = RegistryConfig().path
"""
from __future__ import annotations

from .base import BaseDomainConfig
from .cache import clear_all_caches, get_cached_config
from .manager import ConfigManager

__all__ = [
    "BaseDomainConfig",
    "ConfigManager",
    "clear_all_caches",
    "get_cached_config",
]
