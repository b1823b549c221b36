"""velosync command line interface."""
from __future__ import annotations

from ._args import add_domain_arg, add_json_flag, add_service_arg
from ._output import OutputFormatter

__all__ = ["OutputFormatter", "add_domain_arg", "add_json_flag", "add_service_arg"]
