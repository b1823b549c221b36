"""Route lifecycle events to registry mutations.

Events are handled one at a time (a process-wide mutex, plus the registry
file lock for cross-process ordering). Every handler is idempotent: replaying
an event leaves the registry as it was after the first delivery.
"""
from __future__ import annotations

import logging
import threading
import warnings
from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath
from typing import Callable, Dict, List, Optional

from velosync.core.audit.logger import audit_event
from velosync.core.exceptions import UnknownEventWarning
from velosync.core.registry.repository import ConfigRepository
from velosync.core.registry.ssl import Reloader, SslBindingSynchronizer

from .events import HookEvent, LifecycleEvent

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class HookDescriptor:
    """One subscription in the shape ``manage_hooks`` expects."""

    category: str
    event: str
    stage: str
    hook: str
    exectype: str

    def to_dict(self) -> Dict[str, str]:
        return {
            "category": self.category,
            "event": self.event,
            "stage": self.stage,
            "hook": self.hook,
            "exectype": self.exectype,
        }


@dataclass
class DispatchResult:
    event: str
    handled: bool
    changed: bool = False
    domains: List[str] = field(default_factory=list)
    reloaded: bool = False
    message: str = ""

    def to_dict(self) -> Dict[str, object]:
        return {
            "event": self.event,
            "handled": self.handled,
            "changed": self.changed,
            "domains": list(self.domains),
            "reloaded": self.reloaded,
            "message": self.message,
        }


class _Ignored(Exception):
    """Raised by a handler when the payload lacks what it needs."""


class HookDispatcher:
    _dispatch_lock = threading.Lock()

    def __init__(
        self,
        repository: ConfigRepository,
        *,
        reloader: Optional[Reloader] = None,
        home_root: Path = Path("/home"),
        hook_script: str = "/usr/local/bin/velosync-hook",
        stage: str = "post",
        exectype: str = "script",
    ) -> None:
        self.repository = repository
        self.reloader = reloader
        # Reload is issued here once per event, not by the synchronizer.
        self.ssl = SslBindingSynchronizer(repository)
        self.home_root = PurePosixPath(str(home_root))
        self.hook_script = hook_script
        self.stage = stage
        self.exectype = exectype
        self._handlers: Dict[HookEvent, Callable[[LifecycleEvent], DispatchResult]] = {
            HookEvent.ACCOUNT_CREATE: self._account_create,
            HookEvent.ACCOUNT_REMOVE: self._account_remove,
            HookEvent.ADDON_ADD: self._addon_add,
            HookEvent.ADDON_DELETE: self._remove_domain,
            HookEvent.SUBDOMAIN_ADD: self._subdomain_add,
            HookEvent.SUBDOMAIN_DELETE: self._remove_domain,
            HookEvent.PARK: self._park,
            HookEvent.UNPARK: self._remove_domain,
            HookEvent.SSL_ADD: self._ssl_add,
            HookEvent.SSL_DELETE: self._ssl_delete,
        }

    @classmethod
    def from_config(
        cls,
        *,
        repository: Optional[ConfigRepository] = None,
        reloader: Optional[Reloader] = None,
    ) -> "HookDispatcher":
        from velosync.core.config.domains.hooks import HooksConfig
        from velosync.core.config.domains.importing import ImportConfig

        hooks = HooksConfig()
        return cls(
            repository or ConfigRepository(),
            reloader=reloader,
            home_root=ImportConfig().home_root,
            hook_script=hooks.script,
            stage=hooks.stage,
            exectype=hooks.exectype,
        )

    def describe(self) -> List[HookDescriptor]:
        """Static list of subscriptions; touches no state."""
        return [
            HookDescriptor(
                category=kind.category,
                event=kind.value,
                stage=self.stage,
                hook=self.hook_script,
                exectype=self.exectype,
            )
            for kind in self._handlers
        ]

    # ---- dispatch ----------------------------------------------------------

    def dispatch(self, event: LifecycleEvent) -> DispatchResult:
        """Apply ``event`` to the registry.

        Unknown events and events missing required fields emit
        ``UnknownEventWarning`` and are ignored. ``ConfigIOError`` and
        ``LockTimeoutError`` propagate.
        """
        with self._dispatch_lock:
            handler = self._handlers.get(event.kind) if event.kind is not None else None
            if handler is None:
                result = self._ignore(event, f"no handler for {event.category or '-'} {event.event}")
            else:
                try:
                    result = handler(event)
                except _Ignored as exc:
                    result = self._ignore(event, str(exc))

            if result.changed and self.reloader is not None:
                result.reloaded = self.reloader.reload()

        audit_event(
            "hook.dispatch",
            category=event.category,
            hook_event=event.event,
            handled=result.handled,
            changed=result.changed,
            domains=result.domains,
            reloaded=result.reloaded,
        )
        if result.handled:
            logger.info("%s: %s", event.event, result.message)
        return result

    def _ignore(self, event: LifecycleEvent, reason: str) -> DispatchResult:
        warnings.warn(UnknownEventWarning(f"{event.event}: {reason}; ignored"), stacklevel=3)
        return DispatchResult(event=event.event, handled=False, message=reason)

    # ---- helpers -----------------------------------------------------------

    def _home(self, event: LifecycleEvent) -> PurePosixPath:
        if event.home_dir:
            return PurePosixPath(event.home_dir)
        if event.user:
            return self.home_root / self._user(event)
        raise _Ignored("payload has neither homedir nor user")

    def _resolve_dir(self, event: LifecycleEvent, directory: str) -> str:
        path = PurePosixPath(directory)
        if path.is_absolute():
            return str(path)
        if not event.user:
            raise _Ignored(f"relative directory {directory!r} without a user")
        return str(self.home_root / self._user(event) / path)

    def _user(self, event: LifecycleEvent) -> str:
        """The event user as a single path segment under the home root."""
        user = self._require(event.user, "user")
        if "/" in user or user in (".", ".."):
            raise _Ignored(f"invalid user name {user!r}")
        return user

    @staticmethod
    def _require(value: Optional[str], name: str) -> str:
        if not value:
            raise _Ignored(f"payload has no {name}")
        return value

    def _ensure(self, event: LifecycleEvent, domain: str, root: str) -> DispatchResult:
        changed = self.repository.update(lambda reg: reg.ensure(domain, root))
        return DispatchResult(
            event=event.event,
            handled=True,
            changed=changed,
            domains=[domain],
            message=f"{domain} -> {root}" + ("" if changed else " (unchanged)"),
        )

    # ---- handlers ----------------------------------------------------------

    def _account_create(self, event: LifecycleEvent) -> DispatchResult:
        domain = self._require(event.domain, "domain")
        return self._ensure(event, domain, str(self._home(event) / "public_html"))

    def _account_remove(self, event: LifecycleEvent) -> DispatchResult:
        user = self._user(event)
        prefix = f"{self.home_root / user}/"
        removed = self.repository.remove_by_root_prefix(prefix)
        return DispatchResult(
            event=event.event,
            handled=True,
            changed=bool(removed),
            domains=removed,
            message=f"removed {len(removed)} virtual host(s) under {prefix}",
        )

    def _addon_add(self, event: LifecycleEvent) -> DispatchResult:
        domain = self._require(event.domain, "args.newdomain")
        root = self._resolve_dir(event, self._require(event.document_root, "args.dir"))
        return self._ensure(event, domain, root)

    def _subdomain_add(self, event: LifecycleEvent) -> DispatchResult:
        domain = self._require(event.domain, "args.domain")
        if event.root_domain and not domain.endswith(f".{event.root_domain.lower()}"):
            domain = f"{domain}.{event.root_domain.lower()}"
        root = self._resolve_dir(event, self._require(event.document_root, "args.dir"))
        return self._ensure(event, domain, root)

    def _park(self, event: LifecycleEvent) -> DispatchResult:
        domain = self._require(event.domain, "args.domain")
        user = self._user(event)
        return self._ensure(event, domain, str(self.home_root / user / "public_html"))

    def _remove_domain(self, event: LifecycleEvent) -> DispatchResult:
        domain = self._require(event.domain, "args.domain")
        removed = self.repository.remove(domain)
        return DispatchResult(
            event=event.event,
            handled=True,
            changed=bool(removed),
            domains=removed,
            message=f"removed {domain}" if removed else f"{domain} not present",
        )

    def _ssl_add(self, event: LifecycleEvent) -> DispatchResult:
        domain = self._require(event.domain, "domain")
        cert = self._require(event.cert_path, "cert_file")
        key = self._require(event.key_path, "key_file")
        outcome = self.ssl.bind_ssl(domain, cert, key)
        return DispatchResult(
            event=event.event,
            handled=True,
            changed=outcome.changed,
            domains=[domain],
            message=outcome.warning or f"bound SSL for {domain}",
        )

    def _ssl_delete(self, event: LifecycleEvent) -> DispatchResult:
        domain = self._require(event.domain, "domain")
        outcome = self.ssl.unbind_ssl(domain)
        return DispatchResult(
            event=event.event,
            handled=True,
            changed=outcome.changed,
            domains=[domain],
            message=outcome.warning or f"unbound SSL for {domain}",
        )


__all__ = ["DispatchResult", "HookDescriptor", "HookDispatcher"]
