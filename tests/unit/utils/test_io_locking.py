from __future__ import annotations

import threading
from pathlib import Path

import pytest

from helpers.timeouts import SHORT_LOCK_TIMEOUT, THREAD_JOIN_TIMEOUT
from velosync.core.exceptions import LockTimeoutError
from velosync.core.utils.io import (
    acquire_file_lock,
    atomic_write,
    is_locked,
    lock_path_for,
    tail_lines,
    try_file_lock,
)


def test_atomic_write_replaces_content_and_leaves_no_temp_files(tmp_path: Path) -> None:
    target = tmp_path / "nested" / "file.txt"
    atomic_write(target, lambda f: f.write("one\n"))
    atomic_write(target, lambda f: f.write("two\n"))

    assert target.read_text(encoding="utf-8") == "two\n"
    assert [p.name for p in target.parent.iterdir()] == ["file.txt"]


def test_atomic_write_failure_keeps_the_old_file(tmp_path: Path) -> None:
    target = tmp_path / "file.txt"
    target.write_text("original\n", encoding="utf-8")

    def _half_write(f) -> None:
        f.write("partial")
        raise RuntimeError("crash mid-write")

    with pytest.raises(RuntimeError):
        atomic_write(target, _half_write)

    assert target.read_text(encoding="utf-8") == "original\n"
    assert [p.name for p in tmp_path.iterdir()] == ["file.txt"]


def test_before_replace_sees_the_old_file(tmp_path: Path) -> None:
    target = tmp_path / "file.txt"
    target.write_text("old\n", encoding="utf-8")
    seen: list[str] = []

    atomic_write(target, lambda f: f.write("new\n"), before_replace=lambda p: seen.append(p.read_text(encoding="utf-8")))

    assert seen == ["old\n"]
    assert target.read_text(encoding="utf-8") == "new\n"


def test_lock_uses_a_sidecar_file(tmp_path: Path) -> None:
    target = tmp_path / "veloserve.toml"
    assert lock_path_for(target) == tmp_path / "veloserve.toml.lock"
    with acquire_file_lock(target, timeout=SHORT_LOCK_TIMEOUT):
        assert lock_path_for(target).exists()
        assert not target.exists()


def test_lock_wait_is_bounded(tmp_path: Path) -> None:
    target = tmp_path / "veloserve.toml"
    held = threading.Event()
    release = threading.Event()

    def _holder() -> None:
        with acquire_file_lock(target, timeout=SHORT_LOCK_TIMEOUT):
            held.set()
            release.wait(THREAD_JOIN_TIMEOUT)

    t = threading.Thread(target=_holder)
    t.start()
    try:
        assert held.wait(THREAD_JOIN_TIMEOUT)
        with pytest.raises(LockTimeoutError) as excinfo:
            with acquire_file_lock(target, timeout=SHORT_LOCK_TIMEOUT):
                pass
        assert excinfo.value.context["path"] == str(target)
    finally:
        release.set()
        t.join(THREAD_JOIN_TIMEOUT)

    with acquire_file_lock(target, timeout=SHORT_LOCK_TIMEOUT):
        pass


def test_try_file_lock_does_not_wait(tmp_path: Path) -> None:
    target = tmp_path / "switch"
    with try_file_lock(target) as first:
        assert first is True
        with try_file_lock(target) as second:
            assert second is False
    with try_file_lock(target) as again:
        assert again is True


def test_is_locked_without_a_holder(tmp_path: Path) -> None:
    target = tmp_path / "x"
    assert is_locked(target) is False
    with acquire_file_lock(target, timeout=SHORT_LOCK_TIMEOUT):
        pass
    assert is_locked(target) is False


@pytest.mark.parametrize("bad", [0, -1])
def test_non_positive_timeout_is_rejected(tmp_path: Path, bad: float) -> None:
    with pytest.raises(ValueError):
        with acquire_file_lock(tmp_path / "x", timeout=bad):
            pass


def test_tail_lines(tmp_path: Path) -> None:
    log = tmp_path / "app.log"
    log.write_text("a\nb\nc\n", encoding="utf-8")
    assert tail_lines(log, 2) == ["b", "c"]
    assert tail_lines(log, 0) == []
    assert tail_lines(tmp_path / "missing.log", 5) == []
