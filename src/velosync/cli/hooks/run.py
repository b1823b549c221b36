"""
velosync hooks run command (also installed as ``velosync-hook``).

SUMMARY: Handle one hosting-panel hook event read from stdin

The panel treats a non-zero exit as a failed hook, so anything short of an
unrecoverable registry I/O failure exits 0: malformed input and events we do
not handle are logged and ignored.
"""

from __future__ import annotations

import argparse
import logging
import sys

from velosync.cli import OutputFormatter, add_json_flag
from velosync.core.exceptions import ConfigIOError, LockTimeoutError, VelosyncError

SUMMARY = "Handle one hosting-panel hook event read from stdin"

logger = logging.getLogger(__name__)


def register_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--describe",
        action="store_true",
        help="Print the hook subscriptions as JSON and exit",
    )
    add_json_flag(parser)


def main(args: argparse.Namespace) -> int:
    from velosync.core.hooks.events import LifecycleEvent

    if getattr(args, "describe", False):
        from velosync.cli.hooks.describe import main as describe_main

        return describe_main(args)

    raw = sys.stdin.buffer.read()
    try:
        event = LifecycleEvent.from_hook_json(raw)
    except ValueError as exc:
        logger.warning("Ignoring malformed hook input (%d bytes): %s", len(raw), exc)
        return 0

    try:
        from velosync.cli._utils import build_dispatcher

        result = build_dispatcher().dispatch(event)
    except (ConfigIOError, LockTimeoutError) as exc:
        logger.error("Hook %s failed: %s", event.event, exc)
        print(f"velosync-hook: {exc}", file=sys.stderr)
        return 1
    except VelosyncError as exc:
        logger.error("Hook %s not applied: %s", event.event, exc)
        return 0

    logger.debug("Hook result: %s", result.to_dict())
    if getattr(args, "json", False):
        OutputFormatter(json_mode=True).json_output(result.to_dict())
    return 0


def entrypoint(argv: list[str] | None = None) -> None:
    """Console script for ``velosync-hook``."""
    parser = argparse.ArgumentParser(prog="velosync-hook", description=SUMMARY)
    register_args(parser)
    args = parser.parse_args(argv)

    if not args.describe:
        from velosync.cli._utils import setup_logging

        try:
            setup_logging(hooks=True)
        except VelosyncError as exc:
            OutputFormatter().error(exc)
    sys.exit(main(args))


if __name__ == "__main__":
    entrypoint()
