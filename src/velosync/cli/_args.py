"""Common CLI argument registration utilities."""
from __future__ import annotations

import argparse


def add_json_flag(parser: argparse.ArgumentParser) -> None:
    """Add --json flag for JSON output mode."""
    parser.add_argument(
        "--json",
        action="store_true",
        help="Output as JSON",
    )


def add_domain_arg(parser: argparse.ArgumentParser, help_text: str = "Virtual host domain") -> None:
    parser.add_argument("domain", help=help_text)


def add_service_arg(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "service",
        choices=["apache", "veloserve"],
        help="Service that should own ports 80/443",
    )


__all__ = ["add_json_flag", "add_domain_arg", "add_service_arg"]
