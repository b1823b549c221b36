"""Which service owns a listening port (psutil)."""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Dict, FrozenSet, Mapping, Optional, Sequence

import psutil

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PortOwnership:
    """Result of probing one port.

    ``owners`` are service names whose processes listen on the port.
    ``conclusive`` is False when sockets or processes could not be
    inspected (typically missing privileges).
    """

    port: int
    owners: FrozenSet[str] = field(default_factory=frozenset)
    conclusive: bool = True

    @property
    def owner(self) -> Optional[str]:
        """The single owning service, or None when zero or several own it."""
        if self.conclusive and len(self.owners) == 1:
            return next(iter(self.owners))
        return None


class PortProbe:
    """Map listening sockets to services by process name.

    Args:
        process_names: service name -> process names belonging to it.
    """

    def __init__(self, process_names: Mapping[str, Sequence[str]]) -> None:
        self._by_process: Dict[str, str] = {}
        for service, names in process_names.items():
            for name in names:
                self._by_process[name.lower()] = service

    def probe(self, port: int) -> PortOwnership:
        try:
            conns = psutil.net_connections(kind="inet")
        except psutil.AccessDenied:
            logger.debug("net_connections denied; port %s ownership inconclusive", port)
            return PortOwnership(port=port, conclusive=False)

        owners: set[str] = set()
        conclusive = True
        for conn in conns:
            if conn.status != psutil.CONN_LISTEN or not conn.laddr or conn.laddr.port != port:
                continue
            if conn.pid is None:
                conclusive = False
                continue
            try:
                name = psutil.Process(conn.pid).name().lower()
            except (psutil.NoSuchProcess, psutil.AccessDenied):
                conclusive = False
                continue
            service = self._by_process.get(name)
            if service is not None:
                owners.add(service)
        # Nobody we recognise listening is no evidence either way.
        return PortOwnership(port=port, owners=frozenset(owners), conclusive=conclusive and bool(owners))


def process_uptime(pid: Optional[int]) -> Optional[float]:
    """Seconds since ``pid`` started, or None when it cannot be inspected."""
    if not pid:
        return None
    try:
        return max(0.0, time.time() - psutil.Process(pid).create_time())
    except (psutil.NoSuchProcess, psutil.AccessDenied):
        return None


__all__ = ["PortOwnership", "PortProbe", "process_uptime"]
