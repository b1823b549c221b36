"""
velosync vhost bind-ssl command.

SUMMARY: Set certificate and key paths for an existing virtual host
"""

from __future__ import annotations

import argparse

from velosync.cli import OutputFormatter, add_domain_arg, add_json_flag

SUMMARY = "Set certificate and key paths for an existing virtual host"


def register_args(parser: argparse.ArgumentParser) -> None:
    add_domain_arg(parser)
    parser.add_argument("cert_path", help="Certificate (or combined PEM) path")
    parser.add_argument("key_path", help="Private key path")
    add_json_flag(parser)


def main(args: argparse.Namespace) -> int:
    formatter = OutputFormatter(json_mode=getattr(args, "json", False))

    from velosync.cli._utils import build_admin_api

    envelope = build_admin_api().bind_ssl(args.domain, args.cert_path, args.key_path)
    if not envelope["ok"]:
        formatter.error(envelope["error"]["message"], error_code=envelope["error"]["code"])
        return 1
    data = envelope["data"]
    if not data["applied"]:
        formatter.success(data, f"Warning: {data['warning']}", status="warning")
        return 0
    formatter.success(data, f"SSL bound for {data['domain']}")
    return 0
