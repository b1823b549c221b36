"""Service supervision and the Apache/VeloServe switchover."""
from __future__ import annotations

from .monitor import MonitorConfig
from .ports import PortOwnership, PortProbe
from .reload import EngineReloader
from .state import ServiceState, SwitchMarker
from .supervisor import ServiceSupervisor, SystemdSupervisor
from .switch import SwitchController, SwitchResult

__all__ = [
    "EngineReloader",
    "MonitorConfig",
    "PortOwnership",
    "PortProbe",
    "ServiceState",
    "ServiceSupervisor",
    "SwitchController",
    "SwitchMarker",
    "SwitchResult",
    "SystemdSupervisor",
]
