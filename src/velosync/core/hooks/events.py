"""Typed hosting-panel lifecycle events.

The panel invokes the hook script with a JSON document on stdin::

    {"context": {"category": "Whostmgr", "event": "Accounts::Create", ...},
     "data": {"domain": "example.com", "user": "u1", ...}}

API-driven (``Cpanel``) events nest their arguments under ``data.args``.
"""
from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Tuple, Union


class HookEvent(str, Enum):
    ACCOUNT_CREATE = "Accounts::Create"
    ACCOUNT_REMOVE = "Accounts::Remove"
    ADDON_ADD = "AddonDomain::addaddondomain"
    ADDON_DELETE = "AddonDomain::deladdondomain"
    SUBDOMAIN_ADD = "SubDomain::addsubdomain"
    SUBDOMAIN_DELETE = "SubDomain::delsubdomain"
    PARK = "Park::park"
    UNPARK = "Park::unpark"
    SSL_ADD = "SSLStorage::add_ssl"
    SSL_DELETE = "SSLStorage::delete_ssl"

    @property
    def category(self) -> str:
        return _CATEGORIES[self]

    @property
    def short_name(self) -> str:
        return self.value.split("::", 1)[1]

    @classmethod
    def resolve(cls, category: Optional[str], event: str) -> Optional["HookEvent"]:
        """Match on the event name (full or short); a given category must agree."""
        name = (event or "").strip()
        for member in cls:
            if name in (member.value, member.short_name):
                if category and category != member.category:
                    return None
                return member
        return None


_CATEGORIES: Dict[HookEvent, str] = {
    HookEvent.ACCOUNT_CREATE: "Whostmgr",
    HookEvent.ACCOUNT_REMOVE: "Whostmgr",
    HookEvent.ADDON_ADD: "Cpanel",
    HookEvent.ADDON_DELETE: "Cpanel",
    HookEvent.SUBDOMAIN_ADD: "Cpanel",
    HookEvent.SUBDOMAIN_DELETE: "Cpanel",
    HookEvent.PARK: "Cpanel",
    HookEvent.UNPARK: "Cpanel",
    HookEvent.SSL_ADD: "Whostmgr",
    HookEvent.SSL_DELETE: "Whostmgr",
}


def _str(mapping: Mapping[str, Any], key: str) -> Optional[str]:
    value = mapping.get(key)
    if value is None:
        return None
    text = str(value).strip()
    return text or None


@dataclass(frozen=True)
class LifecycleEvent:
    """One event with its typed payload; ``raw`` keeps the full document."""

    category: Optional[str]
    event: str
    kind: Optional[HookEvent] = None
    domain: Optional[str] = None
    document_root: Optional[str] = None
    home_dir: Optional[str] = None
    user: Optional[str] = None
    root_domain: Optional[str] = None
    cert_path: Optional[str] = None
    key_path: Optional[str] = None
    raw: Mapping[str, Any] = field(default_factory=dict, compare=False)

    @property
    def key(self) -> Tuple[Optional[str], str]:
        return (self.category, self.event)

    @classmethod
    def from_hook_json(cls, payload: Union[str, bytes, Mapping[str, Any]]) -> "LifecycleEvent":
        """Build an event from the panel's stdin document.

        Raises:
            ValueError: The document is not JSON or has no event name.
        """
        if isinstance(payload, (str, bytes)):
            payload = json.loads(payload)
        if not isinstance(payload, Mapping):
            raise ValueError("hook payload must be a JSON object")

        context = payload.get("context") or {}
        data = payload.get("data") or {}
        if not isinstance(context, Mapping) or not isinstance(data, Mapping):
            raise ValueError("hook payload context/data must be objects")
        event = _str(context, "event")
        if not event:
            raise ValueError("hook payload has no context.event")
        category = _str(context, "category")

        args = data.get("args")
        args = args if isinstance(args, Mapping) else {}
        user = _str(data, "user") or _str(args, "user")
        kind = HookEvent.resolve(category, event)

        fields: Dict[str, Optional[str]] = {"user": user}
        if kind is HookEvent.ACCOUNT_CREATE:
            fields.update(domain=_str(data, "domain"), home_dir=_str(data, "homedir"))
        elif kind is HookEvent.ADDON_ADD:
            fields.update(domain=_str(args, "newdomain"), document_root=_str(args, "dir"))
        elif kind is HookEvent.SUBDOMAIN_ADD:
            fields.update(
                domain=_str(args, "domain"),
                root_domain=_str(args, "rootdomain"),
                document_root=_str(args, "dir") or _str(args, "rootdomain_or_dir"),
            )
        elif kind in (HookEvent.SSL_ADD, HookEvent.SSL_DELETE):
            fields.update(
                domain=_str(data, "domain"),
                cert_path=_str(data, "cert_file"),
                key_path=_str(data, "key_file"),
            )
        elif kind is not None and kind is not HookEvent.ACCOUNT_REMOVE:
            fields.update(domain=_str(args, "domain"))

        if fields.get("domain"):
            fields["domain"] = fields["domain"].lower()
        return cls(category=category, event=event, kind=kind, raw=dict(payload), **fields)


__all__ = ["HookEvent", "LifecycleEvent"]
