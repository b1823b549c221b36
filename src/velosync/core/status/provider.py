"""Read-only snapshot of service and registry state.

Nothing here takes the registry lock: the registry is replaced by rename,
so a read always sees a complete file. Every probe is individually guarded
and degrades to ``None``/UNKNOWN instead of raising, since a switch may be
running concurrently.
"""
from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

from velosync.core.exceptions import ConfigIOError, ServiceControlError
from velosync.core.registry.models import VirtualHostRecord
from velosync.core.registry.repository import ConfigRepository
from velosync.core.services.monitor import MonitorConfig
from velosync.core.services.ports import process_uptime
from velosync.core.services.state import ServiceState
from velosync.core.services.supervisor import ServiceSupervisor
from velosync.core.services.switch import ServiceUnit, SwitchController
from velosync.core.utils.time import utc_timestamp

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ServiceStatus:
    name: str
    unit: str
    active: Optional[bool]
    enabled: Optional[bool]
    pid: Optional[int]
    uptime_seconds: Optional[float]
    monitored: Optional[bool]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "unit": self.unit,
            "active": self.active,
            "enabled": self.enabled,
            "pid": self.pid,
            "uptime_seconds": round(self.uptime_seconds, 1) if self.uptime_seconds is not None else None,
            "monitored": self.monitored,
        }


@dataclass(frozen=True)
class VirtualHostStatus:
    record: VirtualHostRecord
    owner: Optional[str]
    ssl_present: bool

    def to_dict(self) -> Dict[str, Any]:
        data = self.record.to_dict()
        data["owner"] = self.owner
        data["ssl_present"] = self.ssl_present
        return data


@dataclass
class StatusSnapshot:
    state: ServiceState
    services: List[ServiceStatus]
    virtual_hosts: List[VirtualHostStatus]
    registry_path: str
    taken_at: str
    errors: List[str] = field(default_factory=list)

    @property
    def counts(self) -> Dict[str, Any]:
        return {
            "records": len(self.virtual_hosts),
            "with_ssl": sum(1 for v in self.virtual_hosts if v.ssl_present),
            "by_platform": dict(Counter(v.record.platform for v in self.virtual_hosts)),
            "owners": len({v.owner for v in self.virtual_hosts if v.owner}),
        }

    def to_dict(self) -> Dict[str, Any]:
        return {
            "state": self.state.value,
            "active_service": self.state.service,
            "services": [s.to_dict() for s in self.services],
            "virtual_hosts": [v.to_dict() for v in self.virtual_hosts],
            "counts": self.counts,
            "registry_path": self.registry_path,
            "taken_at": self.taken_at,
            "errors": list(self.errors),
        }


def owner_from_root(document_root: str, home_root: Path = Path("/home")) -> Optional[str]:
    """Infer the account from ``<home_root>/<owner>/...``."""
    try:
        rel = Path(document_root).relative_to(home_root)
    except ValueError:
        return None
    return rel.parts[0] if rel.parts else None


def ssl_present(record: VirtualHostRecord) -> bool:
    if not record.has_ssl:
        return False
    return Path(record.ssl_cert_path).is_file() and Path(record.ssl_key_path).is_file()


class StatusProvider:
    def __init__(
        self,
        *,
        controller: SwitchController,
        supervisor: ServiceSupervisor,
        monitor: MonitorConfig,
        repository: ConfigRepository,
        home_root: Path = Path("/home"),
    ) -> None:
        self.controller = controller
        self.supervisor = supervisor
        self.monitor = monitor
        self.repository = repository
        self.home_root = Path(home_root)

    def _guard(self, errors: List[str], label: str, fn: Any) -> Any:
        try:
            return fn()
        except (ServiceControlError, OSError) as exc:
            errors.append(f"{label}: {exc}")
            logger.debug("Status probe %s failed: %s", label, exc)
            return None

    def service_status(self, unit: ServiceUnit, errors: List[str]) -> ServiceStatus:
        active = self._guard(errors, f"{unit.name} active", lambda: self.supervisor.is_active(unit.unit))
        enabled = self._guard(errors, f"{unit.name} enabled", lambda: self.supervisor.is_enabled(unit.unit))
        pid = self._guard(errors, f"{unit.name} pid", lambda: self.supervisor.main_pid(unit.unit)) if active else None
        monitored = self._guard(errors, f"{unit.name} monitor", lambda: self.monitor.is_monitored(unit.monitor_key))
        return ServiceStatus(
            name=unit.name,
            unit=unit.unit,
            active=active,
            enabled=enabled,
            pid=pid,
            uptime_seconds=process_uptime(pid),
            monitored=monitored,
        )

    def virtual_hosts(self) -> List[VirtualHostStatus]:
        registry = self.repository.load()
        return [
            VirtualHostStatus(
                record=rec,
                owner=owner_from_root(rec.document_root, self.home_root),
                ssl_present=ssl_present(rec),
            )
            for rec in registry
        ]

    def snapshot(self) -> StatusSnapshot:
        errors: List[str] = []
        try:
            state = self.controller.active_service()
        except OSError as exc:
            errors.append(f"state: {exc}")
            state = ServiceState.UNKNOWN
        services = [self.service_status(u, errors) for u in self.controller.units.values()]
        try:
            vhosts = self.virtual_hosts()
        except ConfigIOError as exc:
            errors.append(f"registry: {exc}")
            vhosts = []
        return StatusSnapshot(
            state=state,
            services=services,
            virtual_hosts=vhosts,
            registry_path=str(self.repository.path),
            taken_at=utc_timestamp(),
            errors=errors,
        )


__all__ = [
    "ServiceStatus",
    "StatusProvider",
    "StatusSnapshot",
    "VirtualHostStatus",
    "owner_from_root",
    "ssl_present",
]
