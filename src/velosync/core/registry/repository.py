"""Locked, atomic access to the registry file.

Every mutation is a full read-modify-write cycle under the registry's
sidecar lock. Writes go through :func:`atomic_write`; the previous file is
copied to a timestamped backup just before the rename.
"""
from __future__ import annotations

import logging
import re
import shutil
from contextlib import contextmanager
from pathlib import Path
from typing import Callable, Iterator, List, Optional, TypeVar

from velosync.core.audit.logger import audit_event
from velosync.core.exceptions import ConfigIOError, ConfigParseError
from velosync.core.utils.io import acquire_file_lock, atomic_write, ensure_directory
from velosync.core.utils.time import file_stamp

from .models import Registry, VirtualHostRecord
from .parser import parse_registry, serialize_registry, toml_string

logger = logging.getLogger(__name__)

T = TypeVar("T")

_SERVER_TABLE_RE = re.compile(r"^\s*\[\s*server\s*\]\s*(#.*)?$")
_ANY_HEADER_RE = re.compile(r"^\s*\[")


class ConfigRepository:
    """Read and mutate the VeloServe virtual-host registry.

    Args:
        path: Registry file. Defaults to ``registry.path`` from configuration.
        lock_timeout: Seconds to wait for the registry lock.
        backup_dir: Where timestamped backups go (default: beside the file).
        backup_keep: Number of backups retained; ``0`` keeps all of them.
    """

    def __init__(
        self,
        path: Optional[Path] = None,
        *,
        lock_timeout: Optional[float] = None,
        backup_dir: Optional[Path] = None,
        backup_keep: Optional[int] = None,
    ) -> None:
        if path is None or lock_timeout is None or backup_keep is None:
            from velosync.core.config.domains.registry import RegistryConfig

            cfg = RegistryConfig()
            path = path or cfg.path
            lock_timeout = lock_timeout if lock_timeout is not None else cfg.lock_timeout_seconds
            backup_keep = backup_keep if backup_keep is not None else cfg.backup_keep
            if backup_dir is None:
                backup_dir = cfg.backup_dir
        self.path = Path(path)
        self.lock_timeout = float(lock_timeout)
        self.backup_dir = Path(backup_dir) if backup_dir else self.path.parent
        self.backup_keep = int(backup_keep)

    # ---- reading -----------------------------------------------------------

    def load(self, strict: bool = False) -> Registry:
        """Read the registry; a missing file is an empty registry.

        Malformed blocks are skipped (and kept as opaque text). With
        ``strict=True`` they raise ``ConfigParseError`` carrying the partial
        registry instead.
        """
        try:
            text = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return Registry()
        except OSError as exc:
            raise ConfigIOError(
                f"Cannot read registry {self.path}: {exc}", context={"path": str(self.path)}
            ) from exc

        result = parse_registry(text)
        if strict and not result.ok:
            line, reason = result.skipped[0]
            raise ConfigParseError(
                f"{len(result.skipped)} malformed block(s) in {self.path}: {reason}",
                partial=result.registry,
                line=line,
                context={"path": str(self.path), "skipped": len(result.skipped)},
            )
        return result.registry

    def list_backups(self) -> List[Path]:
        """Return existing backups, oldest first."""
        if not self.backup_dir.is_dir():
            return []
        return sorted(self.backup_dir.glob(f"{self.path.name}.*.bak"))

    # ---- writing -----------------------------------------------------------

    @contextmanager
    def locked(self) -> Iterator[None]:
        """Hold the registry lock (bounded wait, ``LockTimeoutError``)."""
        with acquire_file_lock(self.path, timeout=self.lock_timeout):
            yield

    def save(self, registry: Registry) -> None:
        """Atomically replace the registry file with ``registry``."""
        with self.locked():
            self._write(registry)

    def update(self, fn: Callable[[Registry], T]) -> T:
        """Run ``fn`` on the current registry under the lock and persist changes.

        ``fn`` mutates the registry in place and returns any value; the file
        is only rewritten when the serialized text actually changed.
        """
        with self.locked():
            registry = self.load()
            before = serialize_registry(registry)
            result = fn(registry)
            if serialize_registry(registry) != before:
                self._write(registry)
            else:
                logger.debug("Registry unchanged; skipping write of %s", self.path)
            return result

    def add_or_update(self, record: VirtualHostRecord) -> bool:
        """Upsert ``record`` by domain. Returns True when the file changed."""
        return self.update(lambda reg: reg.upsert(record))

    def remove(self, domain: str) -> List[str]:
        """Remove ``domain``; absent domains are a no-op. Returns removed domains."""
        return self.update(lambda reg: reg.remove(domain))

    def remove_by_root_prefix(self, prefix: str) -> List[str]:
        """Remove every record whose document root starts with ``prefix``."""
        if not prefix:
            return []
        return self.update(
            lambda reg: reg.remove_where(lambda r: r.document_root.startswith(prefix))
        )

    def bind_ports(self, http_port: int, https_port: int, bind_address: str = "0.0.0.0") -> bool:
        """Point ``[server] listen``/``listen_ssl`` at the shared public ports."""
        listen = f"listen = {toml_string(f'{bind_address}:{http_port}')}"
        listen_ssl = f"listen_ssl = {toml_string(f'{bind_address}:{https_port}')}"

        def _apply(registry: Registry) -> bool:
            new = _rewrite_server_listen(registry.preamble, listen, listen_ssl)
            if new == registry.preamble:
                return False
            registry.preamble = new
            return True

        return self.update(_apply)

    def _write(self, registry: Registry) -> None:
        text = serialize_registry(registry)
        backup: List[Path] = []

        def _backup(target: Path) -> None:
            if not target.exists():
                return
            ensure_directory(self.backup_dir)
            dest = self.backup_dir / f"{target.name}.{file_stamp()}.bak"
            shutil.copy2(target, dest)
            backup.append(dest)

        try:
            atomic_write(self.path, lambda f: f.write(text), before_replace=_backup)
        except OSError as exc:
            raise ConfigIOError(
                f"Failed to write registry {self.path}: {exc}",
                context={"path": str(self.path)},
            ) from exc

        self._prune_backups()
        logger.info("Saved registry %s (%d virtual hosts)", self.path, len(registry))
        audit_event(
            "registry.save",
            path=self.path,
            records=len(registry),
            backup=backup[0] if backup else None,
        )

    def _prune_backups(self) -> None:
        if self.backup_keep <= 0:
            return
        backups = self.list_backups()
        for old in backups[: max(0, len(backups) - self.backup_keep)]:
            try:
                old.unlink()
            except OSError as exc:
                logger.warning("Could not remove old backup %s: %s", old, exc)


def _rewrite_server_listen(preamble: List[str], listen: str, listen_ssl: str) -> List[str]:
    lines = list(preamble)
    start = next((i for i, line in enumerate(lines) if _SERVER_TABLE_RE.match(line)), None)
    if start is None:
        prefix = lines + [""] if lines else []
        return prefix + ["[server]", listen, listen_ssl]

    end = next(
        (i for i in range(start + 1, len(lines)) if _ANY_HEADER_RE.match(lines[i])),
        len(lines),
    )
    wanted = {"listen": listen, "listen_ssl": listen_ssl}
    for i in range(start + 1, end):
        key = lines[i].split("=", 1)[0].strip() if "=" in lines[i] else None
        if key in wanted:
            lines[i] = wanted.pop(key)
    insert_at = start + 1
    for line in wanted.values():
        lines.insert(insert_at, line)
        insert_at += 1
    return lines


__all__ = ["ConfigRepository"]
