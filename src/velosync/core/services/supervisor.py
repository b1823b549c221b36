"""Process-supervisor seam (start/stop/enable/disable/is-active per unit)."""
from __future__ import annotations

import logging
import subprocess
from typing import List, Optional, Protocol, runtime_checkable

from velosync.core.exceptions import ServiceControlError
from velosync.core.utils.subprocess import run_with_timeout

logger = logging.getLogger(__name__)


@runtime_checkable
class ServiceSupervisor(Protocol):
    def start(self, unit: str) -> None: ...

    def stop(self, unit: str) -> None: ...

    def restart(self, unit: str) -> None: ...

    def reload(self, unit: str) -> None: ...

    def enable(self, unit: str) -> None: ...

    def disable(self, unit: str) -> None: ...

    def is_active(self, unit: str) -> bool: ...

    def is_enabled(self, unit: str) -> bool: ...

    def main_pid(self, unit: str) -> Optional[int]: ...


class SystemdSupervisor:
    """``ServiceSupervisor`` backed by ``systemctl``.

    Control actions raise ``ServiceControlError`` on a non-zero exit, a
    timeout, or a missing ``systemctl``. Queries use the shorter ``probe``
    timeout bucket.
    """

    def __init__(
        self,
        *,
        timeout: Optional[float] = None,
        probe_timeout: Optional[float] = None,
        systemctl: str = "systemctl",
    ) -> None:
        self.timeout = timeout
        self.probe_timeout = probe_timeout
        self.systemctl = systemctl

    def _run(self, args: List[str], *, bucket: str, timeout: Optional[float]) -> subprocess.CompletedProcess:
        cmd = [self.systemctl, *args]
        try:
            return run_with_timeout(cmd, bucket, timeout=timeout)
        except subprocess.TimeoutExpired as exc:
            raise ServiceControlError(
                f"{' '.join(cmd)} timed out after {exc.timeout}s",
                step=" ".join(args),
                context={"cmd": cmd},
            ) from exc
        except OSError as exc:
            raise ServiceControlError(
                f"cannot run {self.systemctl}: {exc}", step=" ".join(args), context={"cmd": cmd}
            ) from exc

    def _control(self, action: str, unit: str) -> None:
        result = self._run([action, unit], bucket="service_control", timeout=self.timeout)
        if result.returncode != 0:
            detail = (result.stderr or result.stdout or "").strip()
            raise ServiceControlError(
                f"systemctl {action} {unit} failed (exit {result.returncode}): {detail}",
                step=f"{action} {unit}",
                context={"exit_code": result.returncode},
            )
        logger.info("systemctl %s %s", action, unit)

    def start(self, unit: str) -> None:
        self._control("start", unit)

    def stop(self, unit: str) -> None:
        self._control("stop", unit)

    def restart(self, unit: str) -> None:
        self._control("restart", unit)

    def reload(self, unit: str) -> None:
        self._control("reload", unit)

    def enable(self, unit: str) -> None:
        self._control("enable", unit)

    def disable(self, unit: str) -> None:
        self._control("disable", unit)

    def is_active(self, unit: str) -> bool:
        result = self._run(["is-active", "--quiet", unit], bucket="probe", timeout=self.probe_timeout)
        return result.returncode == 0

    def is_enabled(self, unit: str) -> bool:
        result = self._run(["is-enabled", "--quiet", unit], bucket="probe", timeout=self.probe_timeout)
        return result.returncode == 0

    def main_pid(self, unit: str) -> Optional[int]:
        result = self._run(
            ["show", "--property=MainPID", "--value", unit], bucket="probe", timeout=self.probe_timeout
        )
        try:
            pid = int((result.stdout or "").strip() or 0)
        except ValueError:
            return None
        return pid or None


__all__ = ["ServiceSupervisor", "SystemdSupervisor"]
