"""The hosting panel's service monitor (chkservd).

Its configuration is a flat file of ``key:flag`` lines; ``1`` means the
service is watched and restarted when it dies. After editing the file the
monitor itself has to be restarted to notice.
"""
from __future__ import annotations

import logging
import subprocess
from pathlib import Path
from typing import Dict, List, Optional, Sequence

from velosync.core.exceptions import ServiceControlError
from velosync.core.utils.io import atomic_write
from velosync.core.utils.subprocess import run_with_timeout

logger = logging.getLogger(__name__)


class MonitorConfig:
    """Read and toggle entries of the monitor's ``key:flag`` file."""

    def __init__(
        self,
        path: Path,
        restart_command: Sequence[str] = (),
        *,
        timeout: Optional[float] = None,
    ) -> None:
        self.path = Path(path)
        self.restart_command = list(restart_command)
        self.timeout = timeout

    def _lines(self) -> List[str]:
        try:
            return self.path.read_text(encoding="utf-8").splitlines()
        except FileNotFoundError:
            return []

    def entries(self) -> Dict[str, bool]:
        out: Dict[str, bool] = {}
        for line in self._lines():
            key, sep, flag = line.partition(":")
            if sep and key.strip() and not key.lstrip().startswith("#"):
                out[key.strip()] = flag.strip() == "1"
        return out

    def is_monitored(self, key: str) -> Optional[bool]:
        """True/False for a listed key, None when the key is absent."""
        return self.entries().get(key)

    def set_monitored(self, key: str, enabled: Optional[bool]) -> bool:
        """Set ``key`` to ``enabled``; ``None`` removes the entry.

        Other lines are kept as they are. Returns True when the file changed.
        """
        lines = self._lines()
        out: List[str] = []
        found = False
        for line in lines:
            k, sep, _ = line.partition(":")
            if sep and k.strip() == key:
                found = True
                if enabled is None:
                    continue
                out.append(f"{key}:{1 if enabled else 0}")
            else:
                out.append(line)
        if not found and enabled is not None:
            out.append(f"{key}:{1 if enabled else 0}")
        if out == lines:
            return False

        text = "\n".join(out) + ("\n" if out else "")
        atomic_write(self.path, lambda f: f.write(text))
        logger.info("Monitor entry %s set to %s", key, enabled)
        return True

    def restart(self) -> None:
        """Restart the monitor so it rereads its configuration."""
        if not self.restart_command:
            logger.debug("No monitor restart command configured")
            return
        cmd = self.restart_command
        try:
            result = run_with_timeout(cmd, "service_control", timeout=self.timeout)
        except subprocess.TimeoutExpired as exc:
            raise ServiceControlError(
                f"monitor restart timed out after {exc.timeout}s", step="restart monitor"
            ) from exc
        except OSError as exc:
            raise ServiceControlError(f"cannot run {cmd[0]}: {exc}", step="restart monitor") from exc
        if result.returncode != 0:
            raise ServiceControlError(
                f"monitor restart failed (exit {result.returncode}): {(result.stderr or '').strip()}",
                step="restart monitor",
                context={"exit_code": result.returncode},
            )


__all__ = ["MonitorConfig"]
