from __future__ import annotations

import stat
import sys
from pathlib import Path

import pytest

from velosync.core.exceptions import ServiceControlError
from velosync.core.services.monitor import MonitorConfig
from velosync.core.services.supervisor import ServiceSupervisor, SystemdSupervisor

# Stand-in for systemctl: "veloserve" is running with pid 4242, "broken" fails
# every control action, everything else is stopped.
FAKE_SYSTEMCTL = """\
import sys
args = sys.argv[1:]
unit = args[-1]
if args[0] in ("is-active", "is-enabled"):
    sys.exit(0 if unit == "veloserve" else 3)
if args[0] == "show":
    print("4242" if unit == "veloserve" else "0")
    sys.exit(0)
if unit == "broken":
    print("Job failed", file=sys.stderr)
    sys.exit(1)
sys.exit(0)
"""


@pytest.fixture
def systemctl(tmp_path: Path) -> str:
    script = tmp_path / "systemctl"
    script.write_text(f"#!{sys.executable}\n{FAKE_SYSTEMCTL}", encoding="utf-8")
    script.chmod(script.stat().st_mode | stat.S_IXUSR)
    return str(script)


def test_satisfies_the_supervisor_protocol(systemctl: str) -> None:
    assert isinstance(SystemdSupervisor(systemctl=systemctl), ServiceSupervisor)


def test_queries(systemctl: str) -> None:
    sup = SystemdSupervisor(systemctl=systemctl, timeout=10, probe_timeout=10)
    assert sup.is_active("veloserve") is True
    assert sup.is_active("httpd") is False
    assert sup.is_enabled("veloserve") is True
    assert sup.main_pid("veloserve") == 4242
    assert sup.main_pid("httpd") is None


def test_control_failure_raises(systemctl: str) -> None:
    sup = SystemdSupervisor(systemctl=systemctl, timeout=10)
    sup.start("httpd")

    with pytest.raises(ServiceControlError) as excinfo:
        sup.stop("broken")
    assert excinfo.value.step == "stop broken"
    assert excinfo.value.context["exit_code"] == 1
    assert "Job failed" in str(excinfo.value)


def test_missing_systemctl_raises(tmp_path: Path) -> None:
    sup = SystemdSupervisor(systemctl=str(tmp_path / "nope"), timeout=5)
    with pytest.raises(ServiceControlError, match="cannot run"):
        sup.restart("httpd")


def test_monitor_restart_runs_the_configured_command(tmp_path: Path) -> None:
    marker = tmp_path / "restarted"
    ok = MonitorConfig(
        tmp_path / "chkservd.conf",
        [sys.executable, "-c", f"open({str(marker)!r}, 'w').close()"],
        timeout=30,
    )
    ok.restart()
    assert marker.exists()

    failing = MonitorConfig(tmp_path / "chkservd.conf", [sys.executable, "-c", "raise SystemExit(2)"], timeout=30)
    with pytest.raises(ServiceControlError) as excinfo:
        failing.restart()
    assert excinfo.value.step == "restart monitor"
