"""Switch which web server owns the public HTTP/HTTPS ports.

A switch is a fixed sequence of steps, each with an undo. The first failing
step stops the sequence; its own undo runs, then completed steps are undone in
reverse order and the host is re-probed. The prior state is only reported when the probe confirms
it, otherwise the result is UNKNOWN.
"""
from __future__ import annotations

import copy
import logging
import subprocess
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Callable, Dict, List, Optional, Union

from velosync.core.audit.logger import audit_event
from velosync.core.exceptions import (
    ServiceControlError,
    SwitchConflictError,
    VelosyncError,
)
from velosync.core.registry.apache_import import ApacheImporter, ImportSummary, merge_imported
from velosync.core.registry.models import Registry, VirtualHostRecord
from velosync.core.registry.repository import ConfigRepository
from velosync.core.utils.io import ensure_directory, try_file_lock

from .monitor import MonitorConfig
from .ports import PortProbe
from .state import APACHE, VELOSERVE, ServiceState, SwitchMarker
from .supervisor import ServiceSupervisor

logger = logging.getLogger(__name__)

STEP_IMPORT = "import"
STEP_DISABLE_MONITORING = "disable monitoring"
STEP_STOP_COMPETITOR = "stop competitor"
STEP_START_TARGET = "start target"
STEP_ENABLE_MONITORING = "enable monitoring"
STEP_RESTART_MONITOR = "restart monitor"

# Failures a step may raise; anything else is a bug and propagates untouched.
_STEP_ERRORS = (VelosyncError, OSError, subprocess.SubprocessError)


@dataclass(frozen=True)
class ServiceUnit:
    """What the controller needs to know about one service."""

    name: str
    unit: str
    monitor_key: str


@dataclass
class SwitchResult:
    target: ServiceState
    previous: ServiceState
    state: ServiceState
    changed: bool
    steps: List[str] = field(default_factory=list)
    imported: Optional[ImportSummary] = None

    def to_dict(self) -> Dict[str, object]:
        return {
            "target": self.target.value,
            "previous": self.previous.value,
            "state": self.state.value,
            "changed": self.changed,
            "steps": list(self.steps),
            "imported": self.imported.to_dict() if self.imported else None,
        }


@dataclass
class _Step:
    name: str
    run: Callable[[], None]
    undo: Optional[Callable[[], None]] = None


def _known_fields(record: VirtualHostRecord) -> tuple:
    return (record.document_root, record.platform, record.ssl_cert_path, record.ssl_key_path)


class SwitchController:
    """Finite-state machine over ServiceState.

    All collaborators are passed in so tests can use in-memory fakes; see
    :meth:`from_config` for the production wiring.
    """

    def __init__(
        self,
        *,
        supervisor: ServiceSupervisor,
        probe: PortProbe,
        monitor: MonitorConfig,
        repository: ConfigRepository,
        importer: Optional[ApacheImporter],
        apache: ServiceUnit,
        veloserve: ServiceUnit,
        state_dir: Path,
        http_port: int = 80,
        https_port: int = 443,
        bind_address: str = "0.0.0.0",
    ) -> None:
        self.supervisor = supervisor
        self.probe = probe
        self.monitor = monitor
        self.repository = repository
        self.importer = importer
        self.units = {APACHE: apache, VELOSERVE: veloserve}
        self.state_dir = Path(state_dir)
        self.http_port = http_port
        self.https_port = https_port
        self.bind_address = bind_address
        self.marker = SwitchMarker(self.state_dir / "switch.json")
        self.lock_path = self.state_dir / "switch"

    @classmethod
    def from_config(
        cls,
        *,
        supervisor: ServiceSupervisor,
        repository: Optional[ConfigRepository] = None,
    ) -> "SwitchController":
        from velosync.core.config.domains.services import ServicesConfig

        cfg = ServicesConfig()
        return cls(
            supervisor=supervisor,
            probe=PortProbe(
                {APACHE: cfg.apache.process_names, VELOSERVE: cfg.veloserve.process_names}
            ),
            monitor=MonitorConfig(
                cfg.monitor_config_path,
                cfg.monitor_restart_command,
                timeout=cfg.step_timeout_seconds,
            ),
            repository=repository or ConfigRepository(),
            importer=ApacheImporter.from_config(),
            apache=ServiceUnit(APACHE, cfg.apache.unit, cfg.apache.monitor_key),
            veloserve=ServiceUnit(VELOSERVE, cfg.veloserve.unit, cfg.veloserve.monitor_key),
            state_dir=cfg.state_dir,
            http_port=cfg.http_port,
            https_port=cfg.https_port,
            bind_address=cfg.bind_address,
        )

    # ---- state -------------------------------------------------------------

    def active_service(self) -> ServiceState:
        """The authoritative current state."""
        if self.marker.is_live():
            return ServiceState.TRANSITIONING
        return self._probe_state()

    def _probe_state(self) -> ServiceState:
        ownership = self.probe.probe(self.http_port)
        if ownership.conclusive:
            if ownership.owner is not None:
                return ServiceState.for_service(ownership.owner)
            logger.warning("Port %s claimed by several services: %s", self.http_port, sorted(ownership.owners))
            return ServiceState.UNKNOWN

        try:
            active = [
                name for name, unit in self.units.items() if self.supervisor.is_active(unit.unit)
            ]
        except ServiceControlError as exc:
            logger.warning("Supervisor probe failed: %s", exc)
            return ServiceState.UNKNOWN
        if len(active) == 1:
            return ServiceState.for_service(active[0])
        return ServiceState.UNKNOWN

    # ---- switching ---------------------------------------------------------

    def switch_to(self, target: Union[str, ServiceState]) -> SwitchResult:
        """Make ``target`` the service that owns the public ports.

        Raises:
            SwitchConflictError: Another switch is running.
            ServiceControlError: A step failed; ``step`` names it and
                ``state`` is the state after rollback.
            ValueError: ``target`` is not a known service.
        """
        target_state = target if isinstance(target, ServiceState) else ServiceState.for_service(target)
        if not target_state.is_stable:
            raise ValueError(f"cannot switch to {target_state.value}")

        ensure_directory(self.state_dir)
        with try_file_lock(self.lock_path) as acquired:
            if not acquired:
                raise SwitchConflictError(
                    "a service switch is already in progress",
                    context={"target": target_state.value},
                )
            previous = self._probe_state()
            if previous == target_state:
                logger.info("%s already active; nothing to switch", target_state.service)
                return SwitchResult(
                    target=target_state, previous=previous, state=previous, changed=False
                )

            self.marker.write(source=previous, target=target_state)
            try:
                return self._run_switch(previous, target_state)
            finally:
                self.marker.clear()

    def _run_switch(self, previous: ServiceState, target_state: ServiceState) -> SwitchResult:
        target = self.units[target_state.service]
        competitor = self.units[APACHE if target.name == VELOSERVE else VELOSERVE]
        result = SwitchResult(
            target=target_state, previous=previous, state=ServiceState.TRANSITIONING, changed=True
        )
        steps = self._plan(target, competitor, result)
        logger.info("Switching %s -> %s", previous.value, target_state.value)

        done: List[_Step] = []
        for step in steps:
            try:
                step.run()
            except _STEP_ERRORS as exc:
                audit_event("switch.step", step=step.name, ok=False, error=str(exc))
                logger.error("Switch step '%s' failed: %s", step.name, exc)
                state, rolled_back = self._rollback(done, previous, failed=step)
                audit_event(
                    "switch.result",
                    target=target_state,
                    previous=previous,
                    state=state,
                    ok=False,
                    failed_step=step.name,
                    rolled_back=rolled_back,
                )
                raise ServiceControlError(
                    f"switch to {target.name} failed at '{step.name}': {exc}",
                    step=step.name,
                    state=state.value,
                    rolled_back=rolled_back,
                    context={"target": target_state.value, "previous": previous.value},
                ) from exc
            done.append(step)
            result.steps.append(step.name)
            audit_event("switch.step", step=step.name, ok=True)

        result.state = self._probe_state()
        if result.state != target_state:
            logger.warning(
                "Switch finished but probe reports %s (expected %s)", result.state.value, target_state.value
            )
        audit_event("switch.result", target=target_state, previous=previous, state=result.state, ok=True)
        return result

    def _plan(self, target: ServiceUnit, competitor: ServiceUnit, result: SwitchResult) -> List[_Step]:
        steps: List[_Step] = []
        if target.name == VELOSERVE:
            # Domains the import touched: the record before it (None when the
            # import added the domain) and the record it wrote.
            originals: Dict[str, Optional[VirtualHostRecord]] = {}
            written: Dict[str, VirtualHostRecord] = {}
            # Preamble before the import and, once bind_ports changed it, after.
            preambles: List[List[str]] = []

            def _import() -> None:
                discovered = self.importer.discover() if self.importer is not None else []

                def _apply(registry: Registry) -> ImportSummary:
                    preambles.append(list(registry.preamble))
                    before = {rec.domain: copy.deepcopy(rec) for rec in registry.records}
                    summary = merge_imported(registry, discovered)
                    for domain in summary.added + summary.updated:
                        originals[domain] = before.get(domain)
                        written[domain] = copy.deepcopy(registry.get(domain))
                    return summary

                result.imported = self.repository.update(_apply)
                if self.repository.bind_ports(self.http_port, self.https_port, self.bind_address):
                    preambles.append(list(self.repository.load().preamble))

            def _undo_import() -> None:
                # Reverts only what the import wrote; records changed by a
                # later registry writer keep that writer's values.
                def _revert(registry: Registry) -> None:
                    for domain, ours in written.items():
                        current = registry.get(domain)
                        if current is None or _known_fields(current) != _known_fields(ours):
                            continue
                        original = originals[domain]
                        if original is None:
                            registry.remove(domain)
                        else:
                            registry.replace_record(
                                replace(
                                    current,
                                    document_root=original.document_root,
                                    platform=original.platform,
                                    ssl_cert_path=original.ssl_cert_path,
                                    ssl_key_path=original.ssl_key_path,
                                )
                            )
                    if len(preambles) == 2 and registry.preamble == preambles[1]:
                        registry.preamble = preambles[0]

                if written or len(preambles) == 2:
                    self.repository.update(_revert)

            steps.append(_Step(STEP_IMPORT, _import, _undo_import))

        competitor_flag = self.monitor.is_monitored(competitor.monitor_key)
        target_flag = self.monitor.is_monitored(target.monitor_key)

        steps.append(
            _Step(
                STEP_DISABLE_MONITORING,
                lambda: self.monitor.set_monitored(competitor.monitor_key, False),
                lambda: self.monitor.set_monitored(competitor.monitor_key, competitor_flag),
            )
        )
        steps.append(
            _Step(
                STEP_STOP_COMPETITOR,
                lambda: self._stop(competitor),
                lambda: self._start(competitor),
            )
        )
        steps.append(
            _Step(
                STEP_START_TARGET,
                lambda: self._start(target),
                lambda: self._stop(target),
            )
        )
        steps.append(
            _Step(
                STEP_ENABLE_MONITORING,
                lambda: self.monitor.set_monitored(target.monitor_key, True),
                lambda: self.monitor.set_monitored(target.monitor_key, target_flag),
            )
        )
        steps.append(_Step(STEP_RESTART_MONITOR, self.monitor.restart))
        return steps

    def _start(self, unit: ServiceUnit) -> None:
        self.supervisor.enable(unit.unit)
        self.supervisor.start(unit.unit)
        if not self.supervisor.is_active(unit.unit):
            raise ServiceControlError(f"{unit.unit} is not active after start", step=f"start {unit.unit}")

    def _stop(self, unit: ServiceUnit) -> None:
        self.supervisor.stop(unit.unit)
        self.supervisor.disable(unit.unit)

    def _rollback(
        self, done: List[_Step], previous: ServiceState, failed: Optional[_Step] = None
    ) -> tuple[ServiceState, bool]:
        """Undo ``failed`` and then ``done`` in reverse, and re-probe.

        The failed step may have partly applied (a unit enabled but never
        started), so its own undo runs first. Returns (state, confirmed).
        """
        clean = True
        touched_monitor = False
        pending = ([failed] if failed is not None else []) + list(reversed(done))
        for step in pending:
            if step.undo is None:
                continue
            try:
                step.undo()
                touched_monitor = touched_monitor or "monitoring" in step.name
                audit_event("switch.step", step=f"undo {step.name}", ok=True)
            except _STEP_ERRORS as exc:
                clean = False
                logger.error("Rollback of '%s' failed: %s", step.name, exc)
                audit_event("switch.step", step=f"undo {step.name}", ok=False, error=str(exc))

        if touched_monitor:
            try:
                self.monitor.restart()
            except ServiceControlError as exc:
                logger.warning("Monitor restart during rollback failed: %s", exc)

        observed = self._probe_state()
        if clean and previous.is_stable and observed == previous:
            logger.info("Rolled back to %s", previous.value)
            return previous, True
        logger.error(
            "Rollback not confirmed (previous=%s observed=%s); state is unknown",
            previous.value,
            observed.value,
        )
        return ServiceState.UNKNOWN, False


__all__ = [
    "ServiceUnit",
    "SwitchController",
    "SwitchResult",
    "STEP_IMPORT",
    "STEP_DISABLE_MONITORING",
    "STEP_STOP_COMPETITOR",
    "STEP_START_TARGET",
    "STEP_ENABLE_MONITORING",
    "STEP_RESTART_MONITOR",
]
