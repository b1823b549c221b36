"""
velosync vhost remove command.

SUMMARY: Remove a virtual host (no-op when absent)
"""

from __future__ import annotations

import argparse

from velosync.cli import OutputFormatter, add_domain_arg, add_json_flag

SUMMARY = "Remove a virtual host (no-op when absent)"


def register_args(parser: argparse.ArgumentParser) -> None:
    add_domain_arg(parser)
    add_json_flag(parser)


def main(args: argparse.Namespace) -> int:
    formatter = OutputFormatter(json_mode=getattr(args, "json", False))

    from velosync.cli._utils import build_admin_api

    envelope = build_admin_api().remove_virtual_host(args.domain)
    if not envelope["ok"]:
        formatter.error(envelope["error"]["message"], error_code=envelope["error"]["code"])
        return 1
    removed = envelope["data"]["removed"]
    formatter.success(
        envelope["data"],
        f"Removed {args.domain}" if removed else f"{args.domain} was not in the registry",
    )
    return 0
