"""
velosync service reload command.

SUMMARY: Reload VeloServe (restart if reload fails)
"""

from __future__ import annotations

import argparse

from velosync.cli import OutputFormatter, add_json_flag

SUMMARY = "Reload VeloServe (restart if reload fails)"


def register_args(parser: argparse.ArgumentParser) -> None:
    add_json_flag(parser)


def main(args: argparse.Namespace) -> int:
    formatter = OutputFormatter(json_mode=getattr(args, "json", False))

    from velosync.cli._utils import build_admin_api

    envelope = build_admin_api().reload()
    if not envelope["ok"]:
        formatter.error(envelope["error"]["message"], error_code=envelope["error"]["code"])
        return 1
    if envelope["data"]["reloaded"]:
        formatter.success(envelope["data"], "VeloServe reloaded")
        return 0
    formatter.success(envelope["data"], "VeloServe not reloaded (not running or reload failed)", status="warning")
    return 1
