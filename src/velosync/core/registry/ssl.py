"""Apply certificate bindings to existing virtual hosts."""
from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Optional, Protocol

from .models import Registry
from .repository import ConfigRepository

logger = logging.getLogger(__name__)


class Reloader(Protocol):
    def reload(self) -> bool: ...


@dataclass(frozen=True)
class SslBindingResult:
    """Outcome of a bind/unbind request.

    ``applied`` is False when the domain has no record; ``warning`` then says
    why. ``changed`` is True only when the registry file was rewritten.
    """

    domain: str
    applied: bool
    changed: bool = False
    reloaded: bool = False
    warning: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "domain": self.domain,
            "applied": self.applied,
            "changed": self.changed,
            "reloaded": self.reloaded,
            "warning": self.warning,
        }


class SslBindingSynchronizer:
    """Update a record's certificate paths without touching its other fields.

    Domains are matched exactly; aliases and certificate SANs are not
    consulted.
    """

    def __init__(self, repository: ConfigRepository, reloader: Optional[Reloader] = None) -> None:
        self.repository = repository
        self.reloader = reloader

    def bind_ssl(self, domain: str, cert_path: str, key_path: str) -> SslBindingResult:
        return self._apply(domain.strip(), cert_path, key_path)

    def unbind_ssl(self, domain: str) -> SslBindingResult:
        return self._apply(domain.strip(), None, None)

    def _apply(
        self, domain: str, cert_path: Optional[str], key_path: Optional[str]
    ) -> SslBindingResult:
        def _mutate(registry: Registry) -> Optional[bool]:
            record = registry.get(domain)
            if record is None:
                return None
            return registry.replace_record(
                replace(record, ssl_cert_path=cert_path, ssl_key_path=key_path)
            )

        changed = self.repository.update(_mutate)
        if changed is None:
            warning = f"no virtual host for {domain}; SSL binding ignored"
            logger.warning(warning)
            return SslBindingResult(domain=domain, applied=False, warning=warning)

        action = "Bound" if cert_path else "Unbound"
        logger.info("%s SSL for %s (changed=%s)", action, domain, changed)
        reloaded = bool(changed and self.reloader is not None and self.reloader.reload())
        return SslBindingResult(domain=domain, applied=True, changed=bool(changed), reloaded=reloaded)


__all__ = ["SslBindingSynchronizer", "SslBindingResult", "Reloader"]
