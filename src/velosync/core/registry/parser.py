"""Parse and serialize the ``veloserve.toml`` virtual-host registry.

The file is not round-tripped through a TOML library: only the five known
keys of each ``[[virtualhost]]`` block are decoded (one line at a time with
``tomllib``), everything else is carried as raw lines so comments, ordering
and keys we do not understand survive a rewrite.
"""
from __future__ import annotations

import json
import logging
import re
import tomllib
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from velosync.core.exceptions import ConfigParseError

from .models import KNOWN_KEYS, OpaqueSection, Registry, Section, VirtualHostRecord

logger = logging.getLogger(__name__)

VHOST_HEADER = "[[virtualhost]]"

_ARRAY_HEADER_RE = re.compile(r"^\s*\[\[\s*([^\[\]]+?)\s*\]\]\s*(#.*)?$")
_TABLE_HEADER_RE = re.compile(r"^\s*\[\s*([^\[\]]+?)\s*\]\s*(#.*)?$")
_KEY_RE = re.compile(r"^\s*([A-Za-z0-9_-]+)\s*=")

_FIELD_FOR_KEY = {
    "domain": "domain",
    "root": "document_root",
    "platform": "platform",
    "ssl_certificate": "ssl_cert_path",
    "ssl_certificate_key": "ssl_key_path",
}


@dataclass
class ParseResult:
    """A parsed registry plus the blocks that had to be skipped."""

    registry: Registry
    skipped: List[Tuple[int, str]] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.skipped


def _header_name(line: str) -> Tuple[Optional[str], bool]:
    """Return (table name, is_array) for a header line, or (None, False)."""
    m = _ARRAY_HEADER_RE.match(line)
    if m:
        return m.group(1).strip(), True
    m = _TABLE_HEADER_RE.match(line)
    if m:
        return m.group(1).strip(), False
    return None, False


def _is_vhost_header(line: str) -> bool:
    name, is_array = _header_name(line)
    return is_array and name == "virtualhost"


def _is_vhost_subtable(line: str) -> bool:
    name, _ = _header_name(line)
    return name is not None and name.startswith("virtualhost.")


def _split_chunks(lines: List[str]) -> Tuple[List[str], List[Tuple[int, str, List[str]]]]:
    """Split the file into the preamble and ("vhost"|"foreign", start, lines) chunks."""
    preamble: List[str] = []
    chunks: List[Tuple[int, str, List[str]]] = []
    current: Optional[Tuple[int, str, List[str]]] = None

    for lineno, line in enumerate(lines, start=1):
        if _is_vhost_header(line):
            current = (lineno, "vhost", [line])
            chunks.append(current)
            continue
        if current is None:
            preamble.append(line)
            continue
        if current[1] == "vhost":
            name, _ = _header_name(line)
            if name is not None and not name.startswith("virtualhost."):
                current = (lineno, "foreign", [line])
                chunks.append(current)
                continue
        current[2].append(line)
    return preamble, chunks


def _decode_value(line: str, lineno: int) -> Tuple[str, str]:
    try:
        parsed = tomllib.loads(line)
    except tomllib.TOMLDecodeError as exc:
        raise ConfigParseError(f"invalid value on line {lineno}: {exc}", line=lineno) from exc
    if len(parsed) != 1:
        raise ConfigParseError(f"unexpected content on line {lineno}", line=lineno)
    key, value = next(iter(parsed.items()))
    if not isinstance(value, str):
        raise ConfigParseError(f"{key} on line {lineno} must be a string", line=lineno)
    return key, value


def _parse_block(start: int, block: List[str]) -> VirtualHostRecord:
    """Build a record from one ``[[virtualhost]]`` chunk (header included)."""
    values: Dict[str, str] = {}
    extra: List[str] = []
    in_subtable = False

    for offset, line in enumerate(block[1:], start=1):
        lineno = start + offset
        if _is_vhost_subtable(line):
            in_subtable = True
        m = _KEY_RE.match(line)
        if not in_subtable and m and m.group(1) in KNOWN_KEYS:
            key, value = _decode_value(line, lineno)
            if key in values:
                raise ConfigParseError(f"duplicate key {key!r} on line {lineno}", line=lineno)
            values[key] = value
            continue
        extra.append(line)

    domain = values.get("domain", "").strip()
    if not domain:
        raise ConfigParseError(f"virtualhost block at line {start} has no domain", line=start)

    kwargs = {_FIELD_FOR_KEY[k]: v for k, v in values.items()}
    kwargs["domain"] = domain
    return VirtualHostRecord(extra=extra, **kwargs)


def parse_registry(text: str) -> ParseResult:
    """Parse registry text, skipping (and preserving) malformed blocks."""
    preamble, chunks = _split_chunks(text.splitlines())
    sections: List[Section] = []
    skipped: List[Tuple[int, str]] = []
    seen: set[str] = set()

    for start, kind, block in chunks:
        if kind == "foreign":
            sections.append(OpaqueSection(lines=block, reason="foreign table", line=start))
            continue
        try:
            record = _parse_block(start, block)
            if record.domain in seen:
                raise ConfigParseError(
                    f"duplicate domain {record.domain!r} at line {start}", line=start
                )
        except ConfigParseError as exc:
            logger.warning("Skipping virtualhost block at line %s: %s", start, exc)
            skipped.append((start, str(exc)))
            sections.append(OpaqueSection(lines=block, reason=str(exc), line=start))
            continue
        seen.add(record.domain)
        sections.append(record)

    return ParseResult(registry=Registry(preamble=preamble, sections=sections), skipped=skipped)


def toml_string(value: str) -> str:
    """Encode ``value`` as a TOML basic string."""
    # JSON string escapes are a subset of TOML basic-string escapes.
    return json.dumps(value, ensure_ascii=False)


def _record_lines(record: VirtualHostRecord) -> List[str]:
    lines = [VHOST_HEADER, f"domain = {toml_string(record.domain)}"]
    lines.append(f"root = {toml_string(record.document_root)}")
    lines.append(f"platform = {toml_string(record.platform)}")
    if record.ssl_cert_path:
        lines.append(f"ssl_certificate = {toml_string(record.ssl_cert_path)}")
    if record.ssl_key_path:
        lines.append(f"ssl_certificate_key = {toml_string(record.ssl_key_path)}")
    lines.extend(record.extra)
    return lines


def serialize_registry(registry: Registry) -> str:
    """Render ``registry``; sections are separated by one blank line."""
    chunks: List[List[str]] = []
    if registry.preamble:
        chunks.append(list(registry.preamble))
    for section in registry.sections:
        if isinstance(section, VirtualHostRecord):
            chunks.append(_record_lines(section))
        else:
            chunks.append(list(section.lines))
    if not chunks:
        return ""
    return "\n\n".join("\n".join(chunk) for chunk in chunks) + "\n"


__all__ = ["ParseResult", "parse_registry", "serialize_registry", "toml_string", "VHOST_HEADER"]
