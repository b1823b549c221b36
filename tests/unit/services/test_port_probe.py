from __future__ import annotations

from types import SimpleNamespace
from typing import Dict, List, Optional

import psutil
import pytest

from velosync.core.services.ports import PortOwnership, PortProbe


def _conn(port: int, pid: Optional[int], status: str = psutil.CONN_LISTEN) -> SimpleNamespace:
    return SimpleNamespace(status=status, laddr=SimpleNamespace(ip="0.0.0.0", port=port), pid=pid)


@pytest.fixture
def fake_psutil(monkeypatch: pytest.MonkeyPatch):
    state: Dict[str, object] = {"conns": [], "names": {}}

    def _net_connections(kind: str = "inet") -> List[SimpleNamespace]:
        conns = state["conns"]
        if isinstance(conns, Exception):
            raise conns
        return conns  # type: ignore[return-value]

    class _Process:
        def __init__(self, pid: int) -> None:
            names = state["names"]
            if pid not in names:  # type: ignore[operator]
                raise psutil.NoSuchProcess(pid)
            self._name = names[pid]  # type: ignore[index]

        def name(self) -> str:
            return self._name

    monkeypatch.setattr(psutil, "net_connections", _net_connections)
    monkeypatch.setattr(psutil, "Process", _Process)
    return state


@pytest.fixture
def probe() -> PortProbe:
    return PortProbe({"apache": ["httpd", "apache2"], "veloserve": ["veloserve"]})


def test_single_known_owner_is_conclusive(fake_psutil, probe: PortProbe) -> None:
    fake_psutil["conns"] = [_conn(80, 100), _conn(80, 101), _conn(8080, 200), _conn(80, 300, "ESTABLISHED")]
    fake_psutil["names"] = {100: "httpd", 101: "httpd", 200: "veloserve", 300: "veloserve"}

    result = probe.probe(80)

    assert result.conclusive
    assert result.owner == "apache"


def test_two_services_on_one_port_have_no_single_owner(fake_psutil, probe: PortProbe) -> None:
    fake_psutil["conns"] = [_conn(80, 100), _conn(80, 200)]
    fake_psutil["names"] = {100: "httpd", 200: "veloserve"}

    result = probe.probe(80)

    assert result.conclusive
    assert result.owners == frozenset({"apache", "veloserve"})
    assert result.owner is None


@pytest.mark.parametrize(
    "conns, names",
    [
        ([_conn(80, None)], {}),
        ([_conn(80, 100)], {}),
        ([_conn(80, 100)], {100: "nginx"}),
        ([], {}),
    ],
)
def test_unknown_listeners_are_inconclusive(fake_psutil, probe: PortProbe, conns, names) -> None:
    fake_psutil["conns"] = conns
    fake_psutil["names"] = names
    assert not probe.probe(80).conclusive


def test_access_denied_is_inconclusive(fake_psutil, probe: PortProbe) -> None:
    fake_psutil["conns"] = psutil.AccessDenied()
    result = probe.probe(443)
    assert result == PortOwnership(port=443, conclusive=False)
    assert result.owner is None
