from __future__ import annotations

"""Subprocess helpers with config-driven timeouts.

This module provides safe subprocess execution with:
- Config-driven timeout management
- Own process group per command, killed as a group on timeout
- No shell=True (commands are argv lists or shlex-split strings)
"""

import logging
import os
import shlex
import signal
import subprocess
from time import perf_counter
from typing import Any, Sequence

logger = logging.getLogger(__name__)


def _flatten_cmd(cmd: Any) -> Sequence[str]:
    if isinstance(cmd, (list, tuple)):
        return [str(p) for p in cmd]
    return shlex.split(str(cmd))


def _terminate_process_group(proc: subprocess.Popen[Any]) -> None:
    if proc.poll() is not None:
        return
    try:
        os.killpg(proc.pid, signal.SIGTERM)
    except OSError:
        try:
            proc.terminate()
        except OSError:
            pass
    try:
        proc.wait(timeout=0.5)
    except subprocess.TimeoutExpired:
        pass
    if proc.poll() is None:
        try:
            os.killpg(proc.pid, signal.SIGKILL)
        except OSError:
            try:
                proc.kill()
            except OSError:
                pass
        try:
            proc.wait(timeout=0.5)
        except subprocess.TimeoutExpired:
            pass


def _run_capture_output_nohang(
    argv: list[str],
    *,
    timeout: float,
    check: bool = False,
    input_value: str | None = None,
    env: dict[str, str] | None = None,
) -> subprocess.CompletedProcess:
    """Run ``argv`` capturing output; a timed-out command is killed as a group.

    ``subprocess.run`` only kills the direct child on timeout, which leaves
    grandchildren (e.g. ``systemctl`` helpers) holding the pipes open.
    """
    proc = subprocess.Popen(
        argv,
        env=env,
        stdin=subprocess.PIPE if input_value is not None else subprocess.DEVNULL,
        stdout=subprocess.PIPE,
        stderr=subprocess.PIPE,
        text=True,
        start_new_session=True,
    )
    try:
        stdout, stderr = proc.communicate(input=input_value, timeout=timeout)
    except subprocess.TimeoutExpired as exc:
        _terminate_process_group(proc)
        try:
            stdout, stderr = proc.communicate(timeout=0.2)
        except (subprocess.TimeoutExpired, ValueError, OSError):
            stdout = getattr(exc, "output", None)
            stderr = getattr(exc, "stderr", None)
        raise subprocess.TimeoutExpired(argv, timeout, output=stdout, stderr=stderr) from None

    completed = subprocess.CompletedProcess(
        argv,
        proc.returncode if proc.returncode is not None else 0,
        stdout=stdout,
        stderr=stderr,
    )
    if check and completed.returncode != 0:
        raise subprocess.CalledProcessError(
            completed.returncode,
            argv,
            output=stdout,
            stderr=stderr,
        )
    return completed


def configured_timeout(timeout_type: str | None = None) -> float:
    """Return the configured timeout (seconds) for a timeout bucket.

    Unknown buckets fall back to ``timeouts.default_seconds``.
    """
    from velosync.core.config.domains.timeouts import TimeoutsConfig

    return TimeoutsConfig().get(timeout_type or "default")


def run_with_timeout(
    cmd: Any,
    timeout_type: str | None = None,
    *,
    timeout: float | None = None,
    check: bool = False,
    input: str | None = None,
    env: dict[str, str] | None = None,
) -> subprocess.CompletedProcess:
    """Run a command with a bounded timeout and captured text output.

    Args:
        cmd: Command list/str (never passed through a shell).
        timeout_type: Timeout bucket from the ``timeouts`` config section
            (e.g. ``service_control``); ignored when ``timeout`` is given.
        timeout: Explicit timeout in seconds.
        check: Raise ``CalledProcessError`` on a non-zero exit.
        input: Optional text sent to stdin.
        env: Optional environment for the child.

    Returns:
        CompletedProcess with ``stdout``/``stderr`` as text.

    Raises:
        subprocess.TimeoutExpired: When the command exceeds its timeout.
        subprocess.CalledProcessError: When ``check`` is set and the exit code is non-zero.
        FileNotFoundError: When the executable does not exist.
    """
    argv = list(_flatten_cmd(cmd))
    effective_timeout = timeout if timeout is not None else configured_timeout(timeout_type)

    start = perf_counter()
    try:
        result = _run_capture_output_nohang(
            argv,
            timeout=float(effective_timeout),
            check=check,
            input_value=input,
            env=env,
        )
    except subprocess.TimeoutExpired:
        logger.warning("Command timed out after %.1fs: %s", effective_timeout, shlex.join(argv))
        _audit("subprocess.timeout", argv=argv, timeout=effective_timeout)
        raise

    duration_ms = (perf_counter() - start) * 1000.0
    logger.debug(
        "Command exited %s in %.0fms: %s", result.returncode, duration_ms, shlex.join(argv)
    )
    _audit(
        "subprocess.end",
        argv=argv,
        exit_code=result.returncode,
        duration_ms=round(duration_ms, 1),
    )
    return result


def _audit(event: str, **fields: Any) -> None:
    from velosync.core.audit.logger import audit_event

    audit_event(event, **fields)


__all__ = ["run_with_timeout", "configured_timeout"]
