"""
velosync vhost list command.

SUMMARY: List virtual hosts in the registry
"""

from __future__ import annotations

import argparse

from velosync.cli import OutputFormatter, add_json_flag

SUMMARY = "List virtual hosts in the registry"


def register_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--owner", help="Only hosts whose document root is under /home/<owner>/")
    add_json_flag(parser)


def main(args: argparse.Namespace) -> int:
    formatter = OutputFormatter(json_mode=getattr(args, "json", False))

    from velosync.cli._utils import build_admin_api

    envelope = build_admin_api().list_virtual_hosts()
    if not envelope["ok"]:
        formatter.error(envelope["error"]["message"], error_code=envelope["error"]["code"])
        return 1

    hosts = envelope["data"]
    if args.owner:
        hosts = [h for h in hosts if h.get("owner") == args.owner]

    if formatter.json_mode:
        formatter.json_output({"virtual_hosts": hosts, "count": len(hosts)})
        return 0
    if not hosts:
        formatter.text("No virtual hosts.")
        return 0
    for h in hosts:
        ssl = "ssl" if h["ssl_present"] else ("ssl-missing" if h["ssl_cert_path"] else "-")
        formatter.text(f"{h['domain']:<40} {h['platform']:<10} {ssl:<11} {h['document_root']}")
    return 0
