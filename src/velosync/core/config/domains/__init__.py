"""Domain-specific configuration accessors.

Each domain config extends BaseDomainConfig and provides typed, cached access
to one top-level section of the velosync configuration:

- RegistryConfig: registry file path, locking, backups
- ServicesConfig: Apache/VeloServe units, ports, monitor, switch timeouts
- HooksConfig: hosting-panel hook registration
- ImportConfig: Apache configuration import
- LoggingConfig: log files and audit trail
- TimeoutsConfig: external command timeouts
"""
from __future__ import annotations

from .hooks import HooksConfig
from .importing import ImportConfig
from .logging import LoggingConfig
from .registry import RegistryConfig
from .services import ServicesConfig, ServiceSpec
from .timeouts import TimeoutsConfig

__all__ = [
    "HooksConfig",
    "ImportConfig",
    "LoggingConfig",
    "RegistryConfig",
    "ServicesConfig",
    "ServiceSpec",
    "TimeoutsConfig",
]
