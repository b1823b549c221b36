from __future__ import annotations

import os
import sys
from pathlib import Path
from typing import Iterator

import pytest
import yaml

# Ensure tests never write .pyc files into the source tree.
sys.dont_write_bytecode = True

REPO_ROOT = Path(__file__).resolve().parent.parent
SRC_ROOT = REPO_ROOT / "src"
TESTS_ROOT = Path(__file__).resolve().parent

# Make src/ importable without an editable install, and tests/ for helpers.
for p in (SRC_ROOT, TESTS_ROOT):
    if str(p) not in sys.path:
        sys.path.insert(0, str(p))

from velosync.core.audit.stdlib_logging import reset_stdlib_logging_for_tests  # noqa: E402
from velosync.core.config import clear_all_caches  # noqa: E402


@pytest.fixture
def host_root(tmp_path_factory: pytest.TempPathFactory) -> Path:
    """A throwaway filesystem root standing in for ``/``."""
    return tmp_path_factory.mktemp("host")


@pytest.fixture(autouse=True)
def isolated_config(host_root: Path, tmp_path_factory: pytest.TempPathFactory, monkeypatch: pytest.MonkeyPatch) -> Iterator[Path]:
    """Point every configured path into ``host_root``.

    Writes a single override file into a temporary config directory and
    drops any ``VELOSYNC_*`` variables leaking in from the environment.
    """
    for key in list(os.environ):
        if key.startswith("VELOSYNC_"):
            monkeypatch.delenv(key, raising=False)

    config_dir = tmp_path_factory.mktemp("config.d")
    overrides = {
        "registry": {
            "path": str(host_root / "etc" / "veloserve" / "veloserve.toml"),
            "lock": {"timeout_seconds": 2, "poll_interval_seconds": 0.01},
            "backups": {"directory": str(host_root / "etc" / "veloserve" / "backups"), "keep": 5},
        },
        "services": {
            "monitor": {
                "config_path": str(host_root / "etc" / "chkserv.d" / "chkservd.conf"),
                "restart_command": [],
            },
            "state_dir": str(host_root / "run" / "veloserve"),
        },
        "import": {
            "apache_config": str(host_root / "etc" / "apache2" / "conf" / "httpd.conf"),
            "server_root": str(host_root / "etc" / "apache2"),
            "ssl_store": str(host_root / "var" / "cpanel" / "ssl" / "apache_tls"),
            "default_root": str(host_root / "var" / "www" / "html"),
            "home_root": str(host_root / "home"),
        },
        "logging": {
            "level": "DEBUG",
            "path": str(host_root / "log" / "velosync.log"),
            "hooks_path": str(host_root / "log" / "hooks.log"),
            "error_log": str(host_root / "log" / "error.log"),
            "audit": {"enabled": True, "path": str(host_root / "log" / "audit.jsonl")},
        },
    }
    (config_dir / "10-tests.yaml").write_text(yaml.safe_dump(overrides), encoding="utf-8")
    monkeypatch.setenv("VELOSYNC_CONFIG_DIR", str(config_dir))

    clear_all_caches()
    yield config_dir
    clear_all_caches()
    reset_stdlib_logging_for_tests()


@pytest.fixture
def registry_path(host_root: Path) -> Path:
    return host_root / "etc" / "veloserve" / "veloserve.toml"


@pytest.fixture
def home_root(host_root: Path) -> Path:
    home = host_root / "home"
    home.mkdir(exist_ok=True)
    return home


@pytest.fixture
def audit_path(host_root: Path) -> Path:
    return host_root / "log" / "audit.jsonl"
