"""Best-effort reload of the serving engine after registry changes."""
from __future__ import annotations

import logging

from velosync.core.exceptions import ServiceControlError

from .supervisor import ServiceSupervisor

logger = logging.getLogger(__name__)


class EngineReloader:
    """Reload ``unit`` if it is running, falling back to a restart.

    Never raises: a failed reload is logged and reported as False, and the
    registry change that prompted it stands.
    """

    def __init__(self, supervisor: ServiceSupervisor, unit: str) -> None:
        self.supervisor = supervisor
        self.unit = unit

    def reload(self) -> bool:
        try:
            if not self.supervisor.is_active(self.unit):
                logger.debug("%s not running; reload skipped", self.unit)
                return False
        except ServiceControlError as exc:
            logger.warning("Could not query %s before reload: %s", self.unit, exc)
            return False

        try:
            self.supervisor.reload(self.unit)
            logger.info("Reloaded %s", self.unit)
            return True
        except ServiceControlError as exc:
            logger.warning("Reload of %s failed (%s); restarting", self.unit, exc)

        try:
            self.supervisor.restart(self.unit)
            logger.info("Restarted %s", self.unit)
            return True
        except ServiceControlError as exc:
            logger.error("Restart of %s failed: %s", self.unit, exc)
            return False


__all__ = ["EngineReloader"]
