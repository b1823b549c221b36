"""Shared wiring for CLI commands."""
from __future__ import annotations

import logging
from typing import Optional

from velosync.core.api.admin import AdminAPI
from velosync.core.audit.stdlib_logging import configure_stdlib_logging, suppress_lastresort
from velosync.core.config.domains.logging import LoggingConfig
from velosync.core.config.domains.services import ServicesConfig
from velosync.core.hooks.dispatcher import HookDispatcher
from velosync.core.services.reload import EngineReloader
from velosync.core.services.supervisor import ServiceSupervisor, SystemdSupervisor


def setup_logging(*, hooks: bool = False) -> bool:
    """Send stdlib logging (and warnings) to the configured log file."""
    cfg = LoggingConfig()
    logging.captureWarnings(True)
    configured = configure_stdlib_logging(
        log_path=cfg.hooks_path if hooks else cfg.path, level=cfg.level
    )
    suppress_lastresort()
    return configured


def build_supervisor() -> ServiceSupervisor:
    return SystemdSupervisor(timeout=ServicesConfig().step_timeout_seconds)


def build_dispatcher(supervisor: Optional[ServiceSupervisor] = None) -> HookDispatcher:
    supervisor = supervisor or build_supervisor()
    reloader = EngineReloader(supervisor, ServicesConfig().veloserve.unit)
    return HookDispatcher.from_config(reloader=reloader)


def build_admin_api(supervisor: Optional[ServiceSupervisor] = None) -> AdminAPI:
    return AdminAPI.from_config(supervisor=supervisor or build_supervisor())


__all__ = ["setup_logging", "build_supervisor", "build_dispatcher", "build_admin_api"]
