"""
velosync vhost add command.

SUMMARY: Add a virtual host or update its document root
"""

from __future__ import annotations

import argparse

from velosync.cli import OutputFormatter, add_domain_arg, add_json_flag

SUMMARY = "Add a virtual host or update its document root"


def register_args(parser: argparse.ArgumentParser) -> None:
    add_domain_arg(parser)
    parser.add_argument("root", help="Absolute document root")
    parser.add_argument("--platform", help="Platform tag (detected from the root when omitted)")
    add_json_flag(parser)


def main(args: argparse.Namespace) -> int:
    formatter = OutputFormatter(json_mode=getattr(args, "json", False))

    from velosync.cli._utils import build_admin_api

    envelope = build_admin_api().add_virtual_host(args.domain, args.root, args.platform)
    if not envelope["ok"]:
        formatter.error(envelope["error"]["message"], error_code=envelope["error"]["code"])
        return 1
    data = envelope["data"]
    verb = "Added/updated" if data["changed"] else "Unchanged:"
    formatter.success(data, f"{verb} {data['domain']} -> {data['root']}")
    return 0
