"""Typed records for the VeloServe virtual-host registry.

The registry file keeps more than virtual hosts: a preamble with the global
``[server]``/``[php]``/``[cache]`` tables, foreign top-level tables, and any
block we could not parse. Those survive as opaque text so that saving a
registry never deletes something we did not understand.
"""
from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Callable, Dict, Iterator, List, Optional, Union

DEFAULT_PLATFORM = "generic"

KNOWN_KEYS = ("domain", "root", "platform", "ssl_certificate", "ssl_certificate_key")


def _strip_trailing_blank(lines: List[str]) -> List[str]:
    out = list(lines)
    while out and not out[-1].strip():
        out.pop()
    return out


@dataclass
class VirtualHostRecord:
    """One ``[[virtualhost]]`` block.

    ``extra`` holds every line of the block that is not a known key, in file
    order (other keys, comments, ``[virtualhost.*]`` sub-tables).
    """

    domain: str
    document_root: str = ""
    platform: str = DEFAULT_PLATFORM
    ssl_cert_path: Optional[str] = None
    ssl_key_path: Optional[str] = None
    extra: List[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        self.domain = self.domain.strip()
        self.ssl_cert_path = self.ssl_cert_path or None
        self.ssl_key_path = self.ssl_key_path or None
        self.extra = _strip_trailing_blank(self.extra)

    @property
    def has_ssl(self) -> bool:
        return bool(self.ssl_cert_path and self.ssl_key_path)

    def merged_with(self, other: "VirtualHostRecord") -> "VirtualHostRecord":
        """Return this record with the known fields of ``other`` applied.

        Unknown directives of this record are kept; ``other.extra`` is ignored.
        """
        return replace(
            self,
            document_root=other.document_root,
            platform=other.platform,
            ssl_cert_path=other.ssl_cert_path,
            ssl_key_path=other.ssl_key_path,
            extra=list(self.extra),
        )

    def to_dict(self) -> Dict[str, object]:
        return {
            "domain": self.domain,
            "document_root": self.document_root,
            "platform": self.platform,
            "ssl_cert_path": self.ssl_cert_path,
            "ssl_key_path": self.ssl_key_path,
        }


@dataclass
class OpaqueSection:
    """Raw lines kept verbatim (foreign tables, skipped blocks)."""

    lines: List[str]
    reason: str = ""
    line: Optional[int] = None

    def __post_init__(self) -> None:
        self.lines = _strip_trailing_blank(self.lines)

    def __eq__(self, other: object) -> bool:
        # Diagnostics do not take part in equality; the text does.
        if not isinstance(other, OpaqueSection):
            return NotImplemented
        return self.lines == other.lines


Section = Union[VirtualHostRecord, OpaqueSection]


@dataclass
class Registry:
    """Ordered collection of virtual hosts, unique by domain."""

    preamble: List[str] = field(default_factory=list)
    sections: List[Section] = field(default_factory=list)

    def __post_init__(self) -> None:
        self.preamble = _strip_trailing_blank(self.preamble)
        seen: set[str] = set()
        for rec in self.records:
            if rec.domain in seen:
                raise ValueError(f"duplicate domain in registry: {rec.domain}")
            seen.add(rec.domain)

    # ---- queries -----------------------------------------------------------

    @property
    def records(self) -> List[VirtualHostRecord]:
        return [s for s in self.sections if isinstance(s, VirtualHostRecord)]

    @property
    def opaque_sections(self) -> List[OpaqueSection]:
        return [s for s in self.sections if isinstance(s, OpaqueSection)]

    def domains(self) -> List[str]:
        return [r.domain for r in self.records]

    def get(self, domain: str) -> Optional[VirtualHostRecord]:
        for rec in self.records:
            if rec.domain == domain:
                return rec
        return None

    def __contains__(self, domain: object) -> bool:
        return isinstance(domain, str) and self.get(domain) is not None

    def __iter__(self) -> Iterator[VirtualHostRecord]:
        return iter(self.records)

    def __len__(self) -> int:
        return len(self.records)

    # ---- mutations ---------------------------------------------------------

    def upsert(self, record: VirtualHostRecord) -> bool:
        """Insert ``record`` or overwrite the known fields of the existing one.

        Returns True when the registry changed.
        """
        for idx, section in enumerate(self.sections):
            if isinstance(section, VirtualHostRecord) and section.domain == record.domain:
                merged = section.merged_with(record)
                if merged == section:
                    return False
                self.sections[idx] = merged
                return True
        self.sections.append(replace(record, extra=list(record.extra)))
        return True

    def ensure(self, domain: str, document_root: str, platform: str = DEFAULT_PLATFORM) -> bool:
        """Create ``domain`` or point its root at ``document_root``.

        Unlike :meth:`upsert`, an existing record keeps its platform and SSL
        paths. Returns True when the registry changed.
        """
        existing = self.get(domain)
        if existing is None:
            self.sections.append(
                VirtualHostRecord(domain=domain, document_root=document_root, platform=platform)
            )
            return True
        if existing.document_root == document_root:
            return False
        return self.replace_record(replace(existing, document_root=document_root))

    def replace_record(self, record: VirtualHostRecord) -> bool:
        """Swap in ``record`` (extra included) for the block with the same domain."""
        for idx, section in enumerate(self.sections):
            if isinstance(section, VirtualHostRecord) and section.domain == record.domain:
                if section == record:
                    return False
                self.sections[idx] = record
                return True
        return False

    def remove_where(self, predicate: Callable[[VirtualHostRecord], bool]) -> List[str]:
        removed: List[str] = []
        kept: List[Section] = []
        for section in self.sections:
            if isinstance(section, VirtualHostRecord) and predicate(section):
                removed.append(section.domain)
            else:
                kept.append(section)
        self.sections = kept
        return removed

    def remove(self, domain: str) -> List[str]:
        return self.remove_where(lambda r: r.domain == domain)


__all__ = [
    "DEFAULT_PLATFORM",
    "KNOWN_KEYS",
    "OpaqueSection",
    "Registry",
    "Section",
    "VirtualHostRecord",
]
