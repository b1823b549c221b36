"""Centralized test timeout configuration.

Environment variables:
- TEST_TIMEOUT_MULTIPLIER: Multiply all timeouts by this factor (default: 1.0)
- TEST_THREAD_JOIN_TIMEOUT: Timeout for thread joins (default: 10.0)
- TEST_LOCK_TIMEOUT: Timeout for file lock operations (default: 2.0)
"""
from __future__ import annotations

import os


def _get_float_env(name: str, default: float) -> float:
    """Get float from environment variable with fallback."""
    try:
        return float(os.environ.get(name, str(default)))
    except (ValueError, TypeError):
        return default


# Global timeout multiplier for CI environments
TIMEOUT_MULTIPLIER = _get_float_env("TEST_TIMEOUT_MULTIPLIER", 1.0)

THREAD_JOIN_TIMEOUT = _get_float_env("TEST_THREAD_JOIN_TIMEOUT", 10.0) * TIMEOUT_MULTIPLIER
LOCK_TIMEOUT = _get_float_env("TEST_LOCK_TIMEOUT", 2.0) * TIMEOUT_MULTIPLIER

# A lock wait that is expected to expire; kept short so tests stay fast.
SHORT_LOCK_TIMEOUT = 0.2 * TIMEOUT_MULTIPLIER
SHORT_SLEEP = 0.05 * TIMEOUT_MULTIPLIER
