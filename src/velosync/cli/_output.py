"""Unified CLI output formatting utilities.

Supports both JSON and text output modes for all velosync commands.
"""
from __future__ import annotations

import json
import sys
from typing import Any, Dict, Optional

from velosync.core.exceptions import VelosyncError


class OutputFormatter:
    """Unified output formatter for CLI commands."""

    def __init__(self, json_mode: bool = False, indent: int = 2):
        self.json_mode = json_mode
        self.indent = indent

    def success(
        self,
        data: Dict[str, Any],
        message: str,
        *,
        status: str = "success",
    ) -> None:
        """Output success result.

        Args:
            data: Result data dictionary
            message: Human-readable success message (used in text mode)
            status: Status string for JSON output
        """
        if self.json_mode:
            output = {"status": status, **data}
            print(json.dumps(output, indent=self.indent, default=str))
        else:
            print(message)

    def error(
        self,
        error: Exception | str,
        message: Optional[str] = None,
        *,
        error_code: Optional[str] = None,
    ) -> None:
        """Output error result to stderr.

        ``error_code`` defaults to the exception class name for velosync errors.
        """
        msg = message or str(error)
        code = error_code or (error.__class__.__name__ if isinstance(error, VelosyncError) else "error")
        if self.json_mode:
            output: Dict[str, Any] = {"error": code, "message": msg}
            if isinstance(error, VelosyncError) and error.context:
                output["context"] = error.context
            print(json.dumps(output, indent=self.indent, default=str), file=sys.stderr)
        else:
            print(f"Error: {msg}", file=sys.stderr)

    def json_output(self, data: Any) -> None:
        print(json.dumps(data, indent=self.indent, default=str))

    def text(self, message: str) -> None:
        print(message)

    def text_kv(self, key: str, value: Any, prefix: str = "  ") -> None:
        if not self.json_mode:
            print(f"{prefix}{key}: {value}")


__all__ = ["OutputFormatter"]
