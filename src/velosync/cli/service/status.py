"""
velosync service status command.

SUMMARY: Show which web server is active and registry statistics
"""

from __future__ import annotations

import argparse

from velosync.cli import OutputFormatter, add_json_flag

SUMMARY = "Show which web server is active and registry statistics"


def register_args(parser: argparse.ArgumentParser) -> None:
    add_json_flag(parser)


def _flag(value: object) -> str:
    return "?" if value is None else ("yes" if value else "no")


def main(args: argparse.Namespace) -> int:
    formatter = OutputFormatter(json_mode=getattr(args, "json", False))

    from velosync.cli._utils import build_admin_api

    envelope = build_admin_api().status()
    if not envelope["ok"]:
        formatter.error(envelope["error"]["message"], error_code=envelope["error"]["code"])
        return 1
    data = envelope["data"]
    if formatter.json_mode:
        formatter.json_output(data)
        return 0

    formatter.text(f"State: {data['state']}")
    for svc in data["services"]:
        formatter.text(f"{svc['name']} ({svc['unit']}):")
        formatter.text_kv("active", _flag(svc["active"]))
        formatter.text_kv("enabled", _flag(svc["enabled"]))
        formatter.text_kv("monitored", _flag(svc["monitored"]))
        if svc["pid"]:
            formatter.text_kv("pid", svc["pid"])
            formatter.text_kv("uptime", f"{svc['uptime_seconds']}s")
    counts = data["counts"]
    formatter.text(
        f"Virtual hosts: {counts['records']} ({counts['with_ssl']} with SSL, {counts['owners']} owners)"
    )
    for err in data["errors"]:
        formatter.text_kv("warning", err)
    return 0
