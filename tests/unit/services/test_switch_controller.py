from __future__ import annotations

import json
from pathlib import Path

import pytest

from helpers.fakes import FailingMonitor, FakeProbe, FakeSupervisor, make_controller
from velosync.core.exceptions import ServiceControlError, SwitchConflictError
from velosync.core.registry.apache_import import ApacheImporter
from velosync.core.registry.models import VirtualHostRecord
from velosync.core.registry.repository import ConfigRepository
from velosync.core.services.monitor import MonitorConfig
from velosync.core.services.state import ServiceState
from velosync.core.services.switch import (
    STEP_DISABLE_MONITORING,
    STEP_ENABLE_MONITORING,
    STEP_IMPORT,
    STEP_RESTART_MONITOR,
    STEP_START_TARGET,
    STEP_STOP_COMPETITOR,
)
from velosync.core.utils.io import try_file_lock

ALL_STEPS = [
    STEP_IMPORT,
    STEP_DISABLE_MONITORING,
    STEP_STOP_COMPETITOR,
    STEP_START_TARGET,
    STEP_ENABLE_MONITORING,
    STEP_RESTART_MONITOR,
]


@pytest.fixture
def monitor_path(host_root: Path) -> Path:
    path = host_root / "etc" / "chkserv.d" / "chkservd.conf"
    path.parent.mkdir(parents=True)
    path.write_text("httpd:1\nveloserve:0\n", encoding="utf-8")
    return path


@pytest.fixture
def importer(host_root: Path) -> ApacheImporter:
    conf = host_root / "etc" / "apache2" / "conf" / "httpd.conf"
    conf.parent.mkdir(parents=True)
    conf.write_text(
        "<VirtualHost *:80>\nServerName example.com\nDocumentRoot /home/alice/public_html\n</VirtualHost>\n",
        encoding="utf-8",
    )
    return ApacheImporter.from_config()


@pytest.fixture
def seeded_registry(registry_path: Path) -> str:
    ConfigRepository().add_or_update(VirtualHostRecord(domain="existing.test", document_root="/srv/existing"))
    return registry_path.read_text(encoding="utf-8")


def test_switch_to_veloserve_runs_every_step(
    host_root: Path, monitor_path: Path, importer: ApacheImporter, registry_path: Path
) -> None:
    sup = FakeSupervisor(active=["httpd"])
    controller = make_controller(host_root, sup, importer=importer)

    result = controller.switch_to("veloserve")

    assert result.changed
    assert result.previous is ServiceState.APACHE_ACTIVE
    assert result.state is ServiceState.VELOSERVE_ACTIVE
    assert result.steps == ALL_STEPS
    assert result.imported.added == ["example.com"]
    assert sup.active == {"veloserve"}
    assert sup.enabled == {"veloserve"}
    assert MonitorConfig(monitor_path).entries() == {"httpd": False, "veloserve": True}

    text = registry_path.read_text(encoding="utf-8")
    assert 'listen = "0.0.0.0:80"' in text
    assert 'domain = "example.com"' in text
    assert not controller.marker.path.exists()


def test_switch_to_apache_skips_the_import(host_root: Path, monitor_path: Path, registry_path: Path) -> None:
    sup = FakeSupervisor(active=["veloserve"])
    controller = make_controller(host_root, sup)

    result = controller.switch_to(ServiceState.APACHE_ACTIVE)

    assert result.steps == ALL_STEPS[1:]
    assert result.state is ServiceState.APACHE_ACTIVE
    assert result.imported is None
    assert sup.active == {"httpd"}
    assert not registry_path.exists()


def test_switch_to_the_active_service_is_a_noop(host_root: Path, monitor_path: Path) -> None:
    sup = FakeSupervisor(active=["httpd"])
    controller = make_controller(host_root, sup)

    result = controller.switch_to("apache")

    assert not result.changed
    assert result.steps == []
    assert sup.calls == []


def test_failed_start_rolls_back_to_apache(
    host_root: Path, monitor_path: Path, importer: ApacheImporter, registry_path: Path, seeded_registry: str
) -> None:
    sup = FakeSupervisor(active=["httpd"], fail_on=[("start", "veloserve")])
    controller = make_controller(host_root, sup, importer=importer)

    with pytest.raises(ServiceControlError) as excinfo:
        controller.switch_to("veloserve")

    err = excinfo.value
    assert err.step == STEP_START_TARGET
    assert err.rolled_back is True
    assert err.state == ServiceState.APACHE_ACTIVE.value
    assert "httpd" in sup.active and "veloserve" not in sup.active
    assert sup.enabled == {"httpd"}
    assert MonitorConfig(monitor_path).entries() == {"httpd": True, "veloserve": False}
    assert registry_path.read_text(encoding="utf-8") == seeded_registry
    assert controller.active_service() is ServiceState.APACHE_ACTIVE
    assert not controller.marker.path.exists()


class _WritesDuringStart(FakeSupervisor):
    """Commits registry writes right before veloserve fails to start."""

    def __init__(self, writes, **kwargs) -> None:
        super().__init__(**kwargs)
        self.writes = writes

    def start(self, unit: str) -> None:
        if unit == "veloserve":
            for record in self.writes:
                ConfigRepository().add_or_update(record)
        super().start(unit)


def test_rollback_keeps_registry_writes_made_during_the_switch(
    host_root: Path, monitor_path: Path, importer: ApacheImporter, registry_path: Path, seeded_registry: str
) -> None:
    sup = _WritesDuringStart(
        [
            VirtualHostRecord(domain="new-account.test", document_root="/home/carol/public_html"),
            VirtualHostRecord(domain="example.com", document_root="/home/bob/public_html"),
        ],
        active=["httpd"],
        fail_on=[("start", "veloserve")],
    )
    controller = make_controller(host_root, sup, importer=importer)

    with pytest.raises(ServiceControlError) as excinfo:
        controller.switch_to("veloserve")

    assert excinfo.value.state == ServiceState.APACHE_ACTIVE.value
    registry = ConfigRepository().load()
    assert registry.domains() == ["existing.test", "example.com", "new-account.test"]
    # example.com was rewritten after the import, so the later value stands.
    assert registry.get("example.com").document_root == "/home/bob/public_html"
    assert "listen" not in registry_path.read_text(encoding="utf-8")
    assert sup.enabled == {"httpd"}


def test_rollback_restores_fields_the_import_overwrote(
    host_root: Path, monitor_path: Path, importer: ApacheImporter
) -> None:
    repo = ConfigRepository()
    repo.add_or_update(VirtualHostRecord(domain="example.com", document_root="/srv/old", platform="wordpress"))
    sup = _WritesDuringStart(
        [VirtualHostRecord(domain="new-account.test", document_root="/home/carol/public_html")],
        active=["httpd"],
        fail_on=[("start", "veloserve")],
    )
    controller = make_controller(host_root, sup, importer=importer)

    with pytest.raises(ServiceControlError):
        controller.switch_to("veloserve")

    registry = repo.load()
    assert registry.domains() == ["example.com", "new-account.test"]
    restored = registry.get("example.com")
    assert restored.document_root == "/srv/old"
    assert restored.platform == "wordpress"


def test_unit_enabled_by_a_failed_start_is_disabled_again(host_root: Path, monitor_path: Path) -> None:
    sup = FakeSupervisor(active=["veloserve"], dead_on_start=["httpd"])
    controller = make_controller(host_root, sup)

    with pytest.raises(ServiceControlError) as excinfo:
        controller.switch_to("apache")

    assert excinfo.value.step == STEP_START_TARGET
    assert excinfo.value.state == ServiceState.VELOSERVE_ACTIVE.value
    assert sup.active == {"veloserve"}
    assert sup.enabled == {"veloserve"}
    assert sup.actions("disable") == ["veloserve", "httpd"]


def test_unconfirmed_rollback_reports_unknown(host_root: Path, monitor_path: Path) -> None:
    # Neither service comes back up, so the prior state cannot be confirmed.
    sup = FakeSupervisor(active=["veloserve"], dead_on_start=["httpd", "veloserve"])
    controller = make_controller(host_root, sup)

    with pytest.raises(ServiceControlError) as excinfo:
        controller.switch_to("apache")

    assert excinfo.value.step == STEP_START_TARGET
    assert excinfo.value.rolled_back is False
    assert excinfo.value.state == ServiceState.UNKNOWN.value
    assert excinfo.value.to_json_error()["context"]["state"] == "unknown"


def test_failed_monitor_restart_undoes_everything(
    host_root: Path, monitor_path: Path, importer: ApacheImporter, seeded_registry: str, registry_path: Path
) -> None:
    sup = FakeSupervisor(active=["httpd"])
    monitor = FailingMonitor(monitor_path, failures=1)
    controller = make_controller(host_root, sup, monitor=monitor, importer=importer)

    with pytest.raises(ServiceControlError) as excinfo:
        controller.switch_to("veloserve")

    assert excinfo.value.step == STEP_RESTART_MONITOR
    assert excinfo.value.state == ServiceState.APACHE_ACTIVE.value
    assert sup.active == {"httpd"}
    assert monitor.entries() == {"httpd": True, "veloserve": False}
    # One failed restart during the switch, one successful during rollback.
    assert monitor.restarts == 2
    assert registry_path.read_text(encoding="utf-8") == seeded_registry


def test_concurrent_switch_is_rejected(host_root: Path, monitor_path: Path) -> None:
    sup = FakeSupervisor(active=["httpd"])
    controller = make_controller(host_root, sup)

    with try_file_lock(controller.lock_path) as held:
        assert held
        with pytest.raises(SwitchConflictError):
            controller.switch_to("veloserve")
    assert sup.calls == []


def test_live_marker_reports_transitioning(host_root: Path) -> None:
    controller = make_controller(host_root, FakeSupervisor(active=["httpd"]))
    controller.marker.write(source=ServiceState.APACHE_ACTIVE, target=ServiceState.VELOSERVE_ACTIVE)
    try:
        assert controller.active_service() is ServiceState.TRANSITIONING
    finally:
        controller.marker.clear()
    assert controller.active_service() is ServiceState.APACHE_ACTIVE


def test_conclusive_port_owner_wins_over_supervisor(host_root: Path) -> None:
    sup = FakeSupervisor(active=["httpd"])
    assert make_controller(host_root, sup, probe=FakeProbe(["veloserve"])).active_service() is ServiceState.VELOSERVE_ACTIVE
    assert make_controller(host_root, sup, probe=FakeProbe(["apache", "veloserve"])).active_service() is ServiceState.UNKNOWN


@pytest.mark.parametrize("active", [[], ["httpd", "veloserve"]])
def test_ambiguous_supervisor_state_is_unknown(host_root: Path, active: list) -> None:
    controller = make_controller(host_root, FakeSupervisor(active=active))
    assert controller.active_service() is ServiceState.UNKNOWN


def test_switch_from_unknown_state(host_root: Path, monitor_path: Path) -> None:
    sup = FakeSupervisor()
    result = make_controller(host_root, sup).switch_to("apache")
    assert result.previous is ServiceState.UNKNOWN
    assert result.state is ServiceState.APACHE_ACTIVE


@pytest.mark.parametrize("target", ["nginx", ServiceState.UNKNOWN, ServiceState.TRANSITIONING])
def test_invalid_targets(host_root: Path, target) -> None:
    with pytest.raises(ValueError):
        make_controller(host_root, FakeSupervisor()).switch_to(target)


def test_switch_is_audited(host_root: Path, monitor_path: Path, audit_path: Path) -> None:
    make_controller(host_root, FakeSupervisor(active=["veloserve"])).switch_to("apache")

    events = [json.loads(line) for line in audit_path.read_text(encoding="utf-8").splitlines()]
    steps = [e["step"] for e in events if e["event"] == "switch.step"]
    results = [e for e in events if e["event"] == "switch.result"]
    assert steps == ALL_STEPS[1:]
    assert results[-1]["ok"] is True
    assert results[-1]["state"] == "apache_active"
