from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict, Mapping, Optional

if TYPE_CHECKING:
    from velosync.core.registry.models import Registry


class VelosyncError(Exception):
    """Base exception for velosync."""

    context: Dict[str, Any]

    def __init__(self, message: str = "", *, context: Mapping[str, Any] | None = None) -> None:
        super().__init__(message)
        if context is not None:
            # Store a shallow copy to avoid accidental mutation.
            self.context = dict(context)
        else:
            self.context = {}

    def to_json_error(self) -> Dict[str, Any]:
        """Return a JSON-serializable error payload."""
        return {
            "message": str(self),
            "code": self.__class__.__name__,
            "context": self.context,
        }


class ConfigurationError(VelosyncError, ValueError):
    """Raised when velosync settings are missing or invalid."""

    def __init__(self, message: str = "", *, context: Mapping[str, Any] | None = None) -> None:
        VelosyncError.__init__(self, message, context=context)
        ValueError.__init__(self, message)


class ConfigParseError(VelosyncError, ValueError):
    """Raised when a registry block cannot be parsed.

    Carries the registry built from the blocks that did parse so callers can
    decide whether partial data is good enough.
    """

    def __init__(
        self,
        message: str = "",
        *,
        partial: Optional["Registry"] = None,
        line: int | None = None,
        context: Mapping[str, Any] | None = None,
    ) -> None:
        ctx = dict(context or {})
        if line is not None:
            ctx["line"] = line
        VelosyncError.__init__(self, message, context=ctx)
        ValueError.__init__(self, message)
        self.partial = partial
        self.line = line


class ConfigIOError(VelosyncError, OSError):
    """Raised when the registry cannot be written. The original file is untouched."""

    def __init__(self, message: str = "", *, context: Mapping[str, Any] | None = None) -> None:
        VelosyncError.__init__(self, message, context=context)
        OSError.__init__(self, message)


class LockTimeoutError(VelosyncError, TimeoutError):
    """Raised when an OS file lock cannot be acquired within timeout."""

    def __init__(self, message: str = "", *, context: Mapping[str, Any] | None = None) -> None:
        VelosyncError.__init__(self, message, context=context)
        TimeoutError.__init__(self, message)


class UnknownEventWarning(UserWarning):
    """Emitted (logged, never raised) for hook events with no handler."""


class ServiceControlError(VelosyncError, RuntimeError):
    """Raised when a service switch step fails."""

    def __init__(
        self,
        message: str,
        *,
        step: str,
        state: str | None = None,
        rolled_back: bool = False,
        context: Mapping[str, Any] | None = None,
    ) -> None:
        ctx = dict(context or {})
        ctx["step"] = step
        ctx["rolled_back"] = rolled_back
        if state is not None:
            ctx["state"] = state
        VelosyncError.__init__(self, message, context=ctx)
        RuntimeError.__init__(self, message)
        self.step = step
        self.state = state
        self.rolled_back = rolled_back


class SwitchConflictError(VelosyncError, RuntimeError):
    """Raised when a switch is requested while another one is running."""

    def __init__(self, message: str = "", *, context: Mapping[str, Any] | None = None) -> None:
        VelosyncError.__init__(self, message, context=context)
        RuntimeError.__init__(self, message)


__all__ = [
    "VelosyncError",
    "ConfigurationError",
    "ConfigParseError",
    "ConfigIOError",
    "LockTimeoutError",
    "UnknownEventWarning",
    "ServiceControlError",
    "SwitchConflictError",
]
