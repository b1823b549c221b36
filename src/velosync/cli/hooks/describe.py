"""
velosync hooks describe command.

SUMMARY: Print the hook subscriptions for manage_hooks
"""

from __future__ import annotations

import argparse

from velosync.cli import OutputFormatter, add_json_flag

SUMMARY = "Print the hook subscriptions for manage_hooks"


def register_args(parser: argparse.ArgumentParser) -> None:
    # Output is always JSON; the flag is accepted for consistency.
    add_json_flag(parser)


def main(args: argparse.Namespace) -> int:
    from velosync.core.hooks.dispatcher import HookDispatcher

    descriptors = [d.to_dict() for d in HookDispatcher.from_config().describe()]
    OutputFormatter(json_mode=True).json_output(descriptors)
    return 0
