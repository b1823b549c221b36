"""Service states and the cross-process switch marker."""
from __future__ import annotations

import logging
import os
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional

import psutil

from velosync.core.utils.io import read_json, write_json_atomic
from velosync.core.utils.time import utc_timestamp

logger = logging.getLogger(__name__)

APACHE = "apache"
VELOSERVE = "veloserve"
SERVICE_NAMES = (APACHE, VELOSERVE)


class ServiceState(str, Enum):
    APACHE_ACTIVE = "apache_active"
    VELOSERVE_ACTIVE = "veloserve_active"
    TRANSITIONING = "transitioning"
    UNKNOWN = "unknown"

    @property
    def is_stable(self) -> bool:
        return self in (ServiceState.APACHE_ACTIVE, ServiceState.VELOSERVE_ACTIVE)

    @property
    def service(self) -> Optional[str]:
        """Name of the active service, or None for non-stable states."""
        return {
            ServiceState.APACHE_ACTIVE: APACHE,
            ServiceState.VELOSERVE_ACTIVE: VELOSERVE,
        }.get(self)

    @classmethod
    def for_service(cls, name: str) -> "ServiceState":
        key = name.strip().lower()
        if key in (APACHE, "httpd", "apache2"):
            return cls.APACHE_ACTIVE
        if key == VELOSERVE:
            return cls.VELOSERVE_ACTIVE
        raise ValueError(f"unknown service {name!r} (expected one of {', '.join(SERVICE_NAMES)})")


class SwitchMarker:
    """A small JSON file that exists only while a switch runs.

    Other processes read it to report TRANSITIONING; a marker whose owning
    process is gone is stale and ignored.
    """

    def __init__(self, path: Path) -> None:
        self.path = Path(path)

    def write(self, *, source: ServiceState, target: ServiceState) -> None:
        write_json_atomic(
            self.path,
            {
                "pid": os.getpid(),
                "source": source.value,
                "target": target.value,
                "started_at": utc_timestamp(),
            },
        )

    def read(self) -> Optional[Dict[str, Any]]:
        try:
            data = read_json(self.path, default=None)
        except (OSError, ValueError):
            # Removed between the exists() check and the read.
            return None
        return data if isinstance(data, dict) else None

    def is_live(self) -> bool:
        data = self.read()
        if data is None:
            return False
        try:
            pid = int(data.get("pid", 0))
        except (TypeError, ValueError):
            return False
        return pid > 0 and psutil.pid_exists(pid)

    def clear(self) -> None:
        try:
            self.path.unlink()
        except FileNotFoundError:
            pass
        except OSError as exc:
            logger.warning("Could not remove switch marker %s: %s", self.path, exc)


__all__ = ["APACHE", "VELOSERVE", "SERVICE_NAMES", "ServiceState", "SwitchMarker"]
