"""Domain-specific configuration for the web services velosync controls.

Covers both engines (Apache and VeloServe), the public ports they compete
for, the external process monitor and the per-step switch timeout.
"""
from __future__ import annotations

from dataclasses import dataclass
from functools import cached_property
from pathlib import Path
from typing import Dict, List, Tuple

from ..base import BaseDomainConfig


@dataclass(frozen=True)
class ServiceSpec:
    """Static description of one controllable service."""

    name: str
    unit: str
    monitor_key: str
    process_names: Tuple[str, ...]


class ServicesConfig(BaseDomainConfig):
    def _config_section(self) -> str:
        return "services"

    def _service(self, name: str) -> ServiceSpec:
        raw = self._require(name)
        return ServiceSpec(
            name=name,
            unit=str(raw["unit"]),
            monitor_key=str(raw["monitor_key"]),
            process_names=tuple(str(p) for p in (raw.get("process_names") or [raw["unit"]])),
        )

    @cached_property
    def apache(self) -> ServiceSpec:
        return self._service("apache")

    @cached_property
    def veloserve(self) -> ServiceSpec:
        return self._service("veloserve")

    @cached_property
    def http_port(self) -> int:
        return int(self._require("ports", "http"))

    @cached_property
    def https_port(self) -> int:
        return int(self._require("ports", "https"))

    @cached_property
    def bind_address(self) -> str:
        return str(self.section.get("bind_address", "0.0.0.0"))

    @cached_property
    def step_timeout_seconds(self) -> float:
        return float(self._require("step_timeout_seconds"))

    @cached_property
    def monitor_config_path(self) -> Path:
        return Path(str(self._require("monitor", "config_path")))

    @cached_property
    def monitor_restart_command(self) -> List[str]:
        monitor = self.section.get("monitor") or {}
        return [str(p) for p in (monitor.get("restart_command") or [])]

    @cached_property
    def state_dir(self) -> Path:
        return Path(str(self._require("state_dir")))

    def get_all_settings(self) -> Dict[str, object]:
        return {
            "apache": self.apache,
            "veloserve": self.veloserve,
            "ports": (self.http_port, self.https_port),
            "step_timeout_seconds": self.step_timeout_seconds,
            "monitor_config_path": str(self.monitor_config_path),
            "state_dir": str(self.state_dir),
        }


__all__ = ["ServicesConfig", "ServiceSpec"]
