"""
velosync api call command.

SUMMARY: Invoke an admin API action and print its JSON envelope

Parameters are passed as ``key=value`` pairs (``lines=50``) or as one JSON
object with ``--params``.
"""

from __future__ import annotations

import argparse
import json
from typing import Any, Dict, List

from velosync.cli import OutputFormatter, add_json_flag
from velosync.core.api.admin import ACTIONS

SUMMARY = "Invoke an admin API action and print its JSON envelope"


def register_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("action", choices=sorted(ACTIONS), help="Action name")
    parser.add_argument("params", nargs="*", metavar="key=value", help="Action parameters")
    parser.add_argument("--params", dest="params_json", help="Parameters as a JSON object")
    add_json_flag(parser)


def _parse_params(pairs: List[str], params_json: str | None) -> Dict[str, Any]:
    params: Dict[str, Any] = {}
    if params_json:
        loaded = json.loads(params_json)
        if not isinstance(loaded, dict):
            raise ValueError("--params must be a JSON object")
        params.update(loaded)
    for pair in pairs:
        key, sep, value = pair.partition("=")
        if not sep or not key:
            raise ValueError(f"expected key=value, got {pair!r}")
        params[key] = int(value) if value.isdigit() else value
    return params


def main(args: argparse.Namespace) -> int:
    formatter = OutputFormatter(json_mode=True)
    try:
        params = _parse_params(args.params, args.params_json)
    except ValueError as exc:
        formatter.json_output(
            {"ok": False, "error": {"message": str(exc), "code": "InvalidArgument", "context": {}}}
        )
        return 1

    from velosync.cli._utils import build_admin_api

    envelope = build_admin_api().call(args.action, params)
    formatter.json_output(envelope)
    return 0 if envelope["ok"] else 1
