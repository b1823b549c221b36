"""Import virtual hosts from an Apache configuration.

Used by the switch-to-VeloServe import step and by ``velosync vhost import``.
Only what the registry needs is read: ``<VirtualHost>`` blocks with their
names, document root, certificate paths and port. ``Include`` and
``IncludeOptional`` are followed (glob patterns, relative to the server root).
"""
from __future__ import annotations

import glob
import logging
import re
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Dict, List, Optional, Set

from .models import DEFAULT_PLATFORM, Registry, VirtualHostRecord

logger = logging.getLogger(__name__)

DEFAULT_DOCUMENT_ROOT = "/var/www/html"

# First match wins.
PLATFORM_MARKERS = (
    ("wp-config.php", "wordpress"),
    ("app/etc/env.php", "magento2"),
    ("artisan", "laravel"),
)

_VHOST_OPEN_RE = re.compile(r"^<\s*VirtualHost\s+([^>]*)>$", re.IGNORECASE)
_VHOST_CLOSE_RE = re.compile(r"^</\s*VirtualHost\s*>$", re.IGNORECASE)


@dataclass
class ApacheVirtualHost:
    """One parsed ``<VirtualHost>`` block."""

    server_name: str
    port: int = 80
    aliases: List[str] = field(default_factory=list)
    document_root: Optional[str] = None
    ssl_cert_path: Optional[str] = None
    ssl_key_path: Optional[str] = None
    source: Optional[Path] = None


@dataclass(frozen=True)
class ImportSummary:
    added: List[str]
    updated: List[str]
    unchanged: List[str]

    @property
    def changed(self) -> bool:
        return bool(self.added or self.updated)

    def to_dict(self) -> Dict[str, List[str]]:
        return {"added": self.added, "updated": self.updated, "unchanged": self.unchanged}


def detect_platform(document_root: str) -> str:
    """Guess the application platform from marker files under ``document_root``."""
    root = Path(document_root)
    for marker, platform in PLATFORM_MARKERS:
        if (root / marker).exists():
            return platform
    return DEFAULT_PLATFORM


def _unquote(value: str) -> str:
    value = value.strip()
    if len(value) >= 2 and value[0] == value[-1] and value[0] in "\"'":
        return value[1:-1]
    return value


def _port_from_addresses(addresses: str) -> int:
    for addr in addresses.split():
        _, sep, port = addr.rpartition(":")
        if sep and port.isdigit():
            return int(port)
    return 80


class ApacheImporter:
    """Discover virtual hosts defined for Apache.

    Args:
        config_path: Main Apache configuration file.
        server_root: Base directory for relative ``Include`` paths.
        ssl_store: cPanel certificate store (``<store>/<domain>/combined``).
        default_root: Document root used when a block declares none.
    """

    def __init__(
        self,
        config_path: Path,
        *,
        server_root: Optional[Path] = None,
        ssl_store: Optional[Path] = None,
        default_root: str = DEFAULT_DOCUMENT_ROOT,
    ) -> None:
        self.config_path = Path(config_path)
        self.server_root = Path(server_root) if server_root else self.config_path.parent
        self.ssl_store = Path(ssl_store) if ssl_store else None
        self.default_root = default_root

    @classmethod
    def from_config(cls) -> "ApacheImporter":
        from velosync.core.config.domains.importing import ImportConfig

        cfg = ImportConfig()
        return cls(
            cfg.apache_config,
            server_root=cfg.server_root,
            ssl_store=cfg.ssl_store,
            default_root=cfg.default_root,
        )

    # ---- parsing -----------------------------------------------------------

    def parse(self) -> List[ApacheVirtualHost]:
        """Parse the main config file and everything it includes."""
        if not self.config_path.exists():
            logger.warning("Apache config %s not found; nothing to import", self.config_path)
            return []
        hosts: List[ApacheVirtualHost] = []
        self._parse_file(self.config_path, hosts, set())
        return hosts

    def _resolve_include(self, pattern: str) -> List[Path]:
        pattern = _unquote(pattern)
        if not Path(pattern).is_absolute():
            pattern = str(self.server_root / pattern)
        return [Path(p) for p in sorted(glob.glob(pattern)) if Path(p).is_file()]

    def _parse_file(self, path: Path, hosts: List[ApacheVirtualHost], seen: Set[Path]) -> None:
        resolved = path.resolve()
        if resolved in seen:
            logger.warning("Circular Include of %s ignored", path)
            return
        seen.add(resolved)
        try:
            text = path.read_text(encoding="utf-8", errors="replace")
        except OSError as exc:
            logger.warning("Cannot read Apache config %s: %s", path, exc)
            return

        current: Optional[ApacheVirtualHost] = None
        current_port = 80
        in_vhost = False
        for raw in text.splitlines():
            line = raw.strip()
            if not line or line.startswith("#"):
                continue
            m = _VHOST_OPEN_RE.match(line)
            if m:
                in_vhost = True
                current_port = _port_from_addresses(m.group(1))
                current = ApacheVirtualHost(server_name="", port=current_port, source=path)
                continue
            if _VHOST_CLOSE_RE.match(line):
                if current is not None and current.server_name:
                    hosts.append(current)
                elif current is not None:
                    logger.debug("Skipping <VirtualHost> without ServerName in %s", path)
                current, in_vhost = None, False
                continue

            parts = line.split(None, 1)
            directive = parts[0].lower()
            value = parts[1].strip() if len(parts) > 1 else ""
            if not in_vhost:
                if directive in ("include", "includeoptional"):
                    matches = self._resolve_include(value)
                    if not matches and directive == "include":
                        logger.warning("Include %s matched no files", value)
                    for inc in matches:
                        self._parse_file(inc, hosts, seen)
                continue
            if current is None:
                continue
            if directive == "servername" and not current.server_name:
                current.server_name = _unquote(value).lower()
            elif directive == "serveralias":
                current.aliases.extend(a.lower() for a in value.split())
            elif directive == "documentroot":
                current.document_root = _unquote(value)
            elif directive == "sslcertificatefile":
                current.ssl_cert_path = _unquote(value)
            elif directive == "sslcertificatekeyfile":
                current.ssl_key_path = _unquote(value)

    # ---- conversion --------------------------------------------------------

    def _store_cert(self, domain: str) -> Optional[str]:
        if self.ssl_store is None:
            return None
        combined = self.ssl_store / domain / "combined"
        return str(combined) if combined.exists() else None

    def discover(self) -> List[VirtualHostRecord]:
        """Return one record per Apache domain, port 80/443 blocks merged."""
        by_domain: Dict[str, VirtualHostRecord] = {}
        for host in self.parse():
            root = host.document_root or self.default_root
            existing = by_domain.get(host.server_name)
            if existing is None:
                existing = VirtualHostRecord(
                    domain=host.server_name,
                    document_root=root,
                    platform=detect_platform(root),
                )
            elif host.document_root and host.port != 443:
                # The plain-HTTP block is authoritative for the root.
                existing = replace(existing, document_root=root, platform=detect_platform(root))
            if host.ssl_cert_path and host.ssl_key_path:
                existing = replace(
                    existing, ssl_cert_path=host.ssl_cert_path, ssl_key_path=host.ssl_key_path
                )
            by_domain[host.server_name] = existing

        records: List[VirtualHostRecord] = []
        for rec in by_domain.values():
            if not rec.has_ssl:
                combined = self._store_cert(rec.domain)
                if combined:
                    rec = replace(rec, ssl_cert_path=combined, ssl_key_path=combined)
            records.append(rec)
        logger.info("Discovered %d Apache virtual hosts in %s", len(records), self.config_path)
        return records


def merge_imported(registry: Registry, imported: List[VirtualHostRecord]) -> ImportSummary:
    """Merge Apache-discovered records into ``registry`` in place.

    New domains are appended. Existing domains take the document root (and
    certificate paths, when Apache has them) and keep their platform and
    unknown directives.
    """
    added: List[str] = []
    updated: List[str] = []
    unchanged: List[str] = []
    for rec in imported:
        existing = registry.get(rec.domain)
        if existing is None:
            registry.sections.append(rec)
            added.append(rec.domain)
            continue
        merged = replace(existing, document_root=rec.document_root)
        if rec.has_ssl:
            merged = replace(merged, ssl_cert_path=rec.ssl_cert_path, ssl_key_path=rec.ssl_key_path)
        if registry.replace_record(merged):
            updated.append(rec.domain)
        else:
            unchanged.append(rec.domain)
    return ImportSummary(added=added, updated=updated, unchanged=unchanged)


__all__ = [
    "ApacheImporter",
    "ApacheVirtualHost",
    "ImportSummary",
    "DEFAULT_DOCUMENT_ROOT",
    "detect_platform",
    "merge_imported",
]
