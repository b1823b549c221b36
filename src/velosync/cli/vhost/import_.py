"""
velosync vhost import command.

SUMMARY: Import Apache virtual hosts into the registry
"""

from __future__ import annotations

import argparse

from velosync.cli import OutputFormatter, add_json_flag

SUMMARY = "Import Apache virtual hosts into the registry"


def register_args(parser: argparse.ArgumentParser) -> None:
    add_json_flag(parser)


def main(args: argparse.Namespace) -> int:
    formatter = OutputFormatter(json_mode=getattr(args, "json", False))

    from velosync.cli._utils import build_admin_api

    envelope = build_admin_api().import_virtual_hosts()
    if not envelope["ok"]:
        formatter.error(envelope["error"]["message"], error_code=envelope["error"]["code"])
        return 1
    data = envelope["data"]
    formatter.success(
        data,
        f"Imported: {len(data['added'])} added, {len(data['updated'])} updated, "
        f"{len(data['unchanged'])} unchanged",
    )
    return 0
