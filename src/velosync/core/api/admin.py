"""Admin API surface used by the WHM plugin and ``velosync api call``.

Every method returns an envelope and never raises::

    {"ok": true, "data": {...}}
    {"ok": false, "error": {"message": "...", "code": "...", "context": {...}}}
"""
from __future__ import annotations

import logging
from pathlib import Path, PurePosixPath
from typing import Any, Callable, Dict, Mapping, Optional

from velosync.core.exceptions import VelosyncError
from velosync.core.registry.apache_import import ApacheImporter, detect_platform, merge_imported
from velosync.core.registry.repository import ConfigRepository
from velosync.core.registry.ssl import SslBindingSynchronizer
from velosync.core.services.reload import EngineReloader
from velosync.core.services.supervisor import ServiceSupervisor, SystemdSupervisor
from velosync.core.services.switch import SwitchController
from velosync.core.status.provider import StatusProvider
from velosync.core.utils.io import tail_lines

logger = logging.getLogger(__name__)

Envelope = Dict[str, Any]

MAX_TAIL_LINES = 5000


def ok(data: Any) -> Envelope:
    return {"ok": True, "data": data}


def fail(message: str, code: str, context: Optional[Mapping[str, Any]] = None) -> Envelope:
    return {"ok": False, "error": {"message": message, "code": code, "context": dict(context or {})}}


class AdminAPI:
    def __init__(
        self,
        *,
        repository: ConfigRepository,
        controller: SwitchController,
        status_provider: StatusProvider,
        reloader: EngineReloader,
        importer: Optional[ApacheImporter] = None,
        log_sources: Optional[Mapping[str, Path]] = None,
    ) -> None:
        self.repository = repository
        self.controller = controller
        self.status_provider = status_provider
        self.reloader = reloader
        self.importer = importer
        self.ssl = SslBindingSynchronizer(repository, reloader)
        self.log_sources = dict(log_sources or {})

    @classmethod
    def from_config(cls, *, supervisor: Optional[ServiceSupervisor] = None) -> "AdminAPI":
        from velosync.core.config.domains.importing import ImportConfig
        from velosync.core.config.domains.logging import LoggingConfig
        from velosync.core.config.domains.services import ServicesConfig

        services = ServicesConfig()
        supervisor = supervisor or SystemdSupervisor(timeout=services.step_timeout_seconds)
        repository = ConfigRepository()
        controller = SwitchController.from_config(supervisor=supervisor, repository=repository)
        return cls(
            repository=repository,
            controller=controller,
            status_provider=StatusProvider(
                controller=controller,
                supervisor=supervisor,
                monitor=controller.monitor,
                repository=repository,
                home_root=ImportConfig().home_root,
            ),
            reloader=EngineReloader(supervisor, services.veloserve.unit),
            importer=controller.importer,
            log_sources=LoggingConfig().log_sources(),
        )

    # ---- envelope plumbing -------------------------------------------------

    def _call(self, action: str, fn: Callable[[], Any]) -> Envelope:
        try:
            return ok(fn())
        except VelosyncError as exc:
            logger.warning("%s failed: %s", action, exc)
            err = exc.to_json_error()
            return fail(err["message"], err["code"], err["context"])
        except ValueError as exc:
            return fail(str(exc), "InvalidArgument", {"action": action})
        except Exception as exc:  # noqa: BLE001
            logger.exception("%s crashed", action)
            return fail(str(exc) or exc.__class__.__name__, "InternalError", {"action": action})

    def call(self, action: str, params: Optional[Mapping[str, Any]] = None) -> Envelope:
        """Invoke an action by name (as the WHM plugin does)."""
        method = ACTIONS.get(action)
        if method is None:
            return fail(f"unknown action {action!r}", "UnknownAction", {"actions": sorted(ACTIONS)})
        try:
            return method(self, **dict(params or {}))
        except TypeError as exc:
            return fail(str(exc), "InvalidArgument", {"action": action})

    # ---- actions -----------------------------------------------------------

    def status(self) -> Envelope:
        return self._call("status", lambda: self.status_provider.snapshot().to_dict())

    def list_virtual_hosts(self) -> Envelope:
        return self._call(
            "list_virtual_hosts",
            lambda: [v.to_dict() for v in self.status_provider.virtual_hosts()],
        )

    def add_virtual_host(self, domain: str, root: str, platform: Optional[str] = None) -> Envelope:
        def _add() -> Dict[str, Any]:
            name = (domain or "").strip().lower()
            if not name:
                raise ValueError("domain is required")
            if not root or not PurePosixPath(root).is_absolute():
                raise ValueError("root must be an absolute path")
            plat = platform or detect_platform(root)
            changed = self.repository.update(lambda reg: reg.ensure(name, root, plat))
            reloaded = self.reloader.reload() if changed else False
            return {"domain": name, "root": root, "changed": changed, "reloaded": reloaded}

        return self._call("add_virtual_host", _add)

    def remove_virtual_host(self, domain: str) -> Envelope:
        def _remove() -> Dict[str, Any]:
            removed = self.repository.remove((domain or "").strip().lower())
            reloaded = self.reloader.reload() if removed else False
            return {"removed": removed, "reloaded": reloaded}

        return self._call("remove_virtual_host", _remove)

    def bind_ssl(self, domain: str, cert_path: str, key_path: str) -> Envelope:
        return self._call(
            "bind_ssl",
            lambda: self.ssl.bind_ssl(domain.strip().lower(), cert_path, key_path).to_dict(),
        )

    def switch_to(self, service_name: str) -> Envelope:
        return self._call("switch_to", lambda: self.controller.switch_to(service_name).to_dict())

    def reload(self) -> Envelope:
        return self._call("reload", lambda: {"reloaded": self.reloader.reload()})

    def import_virtual_hosts(self) -> Envelope:
        def _import() -> Dict[str, Any]:
            if self.importer is None:
                raise ValueError("no Apache importer configured")
            discovered = self.importer.discover()
            summary = self.repository.update(lambda reg: merge_imported(reg, discovered))
            reloaded = self.reloader.reload() if summary.changed else False
            return {**summary.to_dict(), "reloaded": reloaded}

        return self._call("import_virtual_hosts", _import)

    def tail_log(self, source: str = "velosync", lines: int = 100) -> Envelope:
        def _tail() -> Dict[str, Any]:
            path = self.log_sources.get(source)
            if path is None:
                raise ValueError(f"unknown log source {source!r}; expected one of {sorted(self.log_sources)}")
            count = max(1, min(int(lines), MAX_TAIL_LINES))
            return {"source": source, "path": str(path), "lines": tail_lines(path, count)}

        return self._call("tail_log", _tail)


ACTIONS: Dict[str, Callable[..., Envelope]] = {
    "status": AdminAPI.status,
    "list_virtual_hosts": AdminAPI.list_virtual_hosts,
    "add_virtual_host": AdminAPI.add_virtual_host,
    "remove_virtual_host": AdminAPI.remove_virtual_host,
    "bind_ssl": AdminAPI.bind_ssl,
    "switch_to": AdminAPI.switch_to,
    "reload": AdminAPI.reload,
    "import_virtual_hosts": AdminAPI.import_virtual_hosts,
    "tail_log": AdminAPI.tail_log,
}


__all__ = ["AdminAPI", "ACTIONS", "Envelope", "ok", "fail"]
