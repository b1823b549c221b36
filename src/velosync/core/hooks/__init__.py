"""Hosting-panel hook events and their dispatcher."""
from __future__ import annotations

from .dispatcher import DispatchResult, HookDescriptor, HookDispatcher
from .events import HookEvent, LifecycleEvent

__all__ = ["DispatchResult", "HookDescriptor", "HookDispatcher", "HookEvent", "LifecycleEvent"]
