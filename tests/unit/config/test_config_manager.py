from __future__ import annotations

import logging
from pathlib import Path

import pytest

from velosync.core.config import ConfigManager, clear_all_caches, get_cached_config
from velosync.core.config.domains import (
    HooksConfig,
    ImportConfig,
    LoggingConfig,
    RegistryConfig,
    ServicesConfig,
    TimeoutsConfig,
)
from velosync.core.exceptions import ConfigurationError


def test_bundled_defaults_validate_on_their_own(tmp_path: Path) -> None:
    cfg = ConfigManager(config_dir=tmp_path / "empty")._load_config_uncached()
    assert cfg["registry"]["path"] == "/etc/veloserve/veloserve.toml"
    assert cfg["services"]["ports"] == {"http": 80, "https": 443}
    assert cfg["hooks"]["stage"] == "post"


def test_override_directory_is_merged(registry_path: Path, host_root: Path) -> None:
    reg = RegistryConfig()
    assert reg.path == registry_path
    assert reg.lock_timeout_seconds == 2
    # Keys the override file does not mention keep their bundled values.
    assert ServicesConfig().apache.unit == "httpd"
    assert ServicesConfig().veloserve.process_names == ("veloserve",)
    assert ImportConfig().home_root == host_root / "home"


def test_later_override_files_win(isolated_config: Path) -> None:
    (isolated_config / "90-site.yaml").write_text("services:\n  ports:\n    http: 8080\n", encoding="utf-8")
    clear_all_caches()
    assert ServicesConfig().http_port == 8080
    assert ServicesConfig().https_port == 443


def test_env_overrides_are_typed(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("VELOSYNC_registry__backups__keep", "7")
    monkeypatch.setenv("VELOSYNC_services__bind_address", "10.0.0.5")
    monkeypatch.setenv("VELOSYNC_logging__audit__enabled", "false")
    monkeypatch.setenv("VELOSYNC_services__monitor__restart_command", '["/bin/true", "--now"]')

    assert RegistryConfig().backup_keep == 7
    assert ServicesConfig().bind_address == "10.0.0.5"
    assert LoggingConfig().audit_enabled is False
    assert ServicesConfig().monitor_restart_command == ["/bin/true", "--now"]


@pytest.mark.parametrize(
    "raw, expected",
    [("true", True), ("FALSE", False), ("42", 42), ("-3", -3), ("0.5", 0.5), ('{"a": 1}', {"a": 1}), ("plain", "plain")],
)
def test_coerce_type(raw: str, expected: object) -> None:
    assert ConfigManager()._coerce_type(raw) == expected


def test_config_dir_variable_is_not_an_override() -> None:
    cfg = get_cached_config()
    assert "config" not in cfg
    assert "config_dir" not in cfg


def test_malformed_env_key_is_rejected(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("VELOSYNC_registry____path", "/x")
    with pytest.raises(ConfigurationError, match="empty segment"):
        RegistryConfig()


def test_invalid_yaml_fails_closed(isolated_config: Path) -> None:
    (isolated_config / "50-broken.yaml").write_text("registry: [unclosed\n", encoding="utf-8")
    with pytest.raises(ConfigurationError, match="Invalid YAML"):
        RegistryConfig()


def test_non_mapping_yaml_is_rejected(isolated_config: Path) -> None:
    (isolated_config / "50-list.yaml").write_text("- a\n- b\n", encoding="utf-8")
    with pytest.raises(ConfigurationError, match="mapping"):
        RegistryConfig()


def test_schema_violations_name_the_setting(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("VELOSYNC_services__ports__http", "0")
    with pytest.raises(ConfigurationError) as excinfo:
        ServicesConfig()
    assert excinfo.value.context["path"] == "services.ports.http"


def test_bad_hook_stage_is_rejected(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("VELOSYNC_hooks__stage", "during")
    with pytest.raises(ConfigurationError):
        HooksConfig()


def test_config_is_cached_until_inputs_change(monkeypatch: pytest.MonkeyPatch) -> None:
    first = get_cached_config()
    assert get_cached_config() is first

    monkeypatch.setenv("VELOSYNC_timeouts__probe_seconds", "9")
    assert get_cached_config() is not first
    assert TimeoutsConfig().get("probe") == 9


def test_timeout_buckets_fall_back_to_default() -> None:
    timeouts = TimeoutsConfig()
    assert timeouts.get("reload") == 15
    assert timeouts.get("no_such_bucket") == timeouts.default_seconds == 30


def test_logging_level_and_sources(host_root: Path) -> None:
    cfg = LoggingConfig()
    assert cfg.level == logging.DEBUG
    assert cfg.log_sources()["hooks"] == host_root / "log" / "hooks.log"
