"""
velosync service switch command.

SUMMARY: Switch ports 80/443 to Apache or VeloServe
"""

from __future__ import annotations

import argparse

from velosync.cli import OutputFormatter, add_json_flag, add_service_arg

SUMMARY = "Switch ports 80/443 to Apache or VeloServe"


def register_args(parser: argparse.ArgumentParser) -> None:
    add_service_arg(parser)
    add_json_flag(parser)


def main(args: argparse.Namespace) -> int:
    formatter = OutputFormatter(json_mode=getattr(args, "json", False))

    from velosync.cli._utils import build_admin_api

    envelope = build_admin_api().switch_to(args.service)
    if not envelope["ok"]:
        err = envelope["error"]
        ctx = err.get("context") or {}
        detail = f" (failed step: {ctx['step']}, state: {ctx.get('state', 'unknown')})" if "step" in ctx else ""
        formatter.error(err["message"] + ("" if formatter.json_mode else detail), error_code=err["code"])
        return 1
    data = envelope["data"]
    if not data["changed"]:
        formatter.success(data, f"{args.service} is already active")
    else:
        formatter.success(data, f"Switched to {args.service}; state {data['state']}")
    return 0
