from __future__ import annotations

from pathlib import Path

from helpers.fakes import FakeReloader
from velosync.core.registry.models import VirtualHostRecord
from velosync.core.registry.repository import ConfigRepository
from velosync.core.registry.ssl import SslBindingSynchronizer


def _seed(repo: ConfigRepository) -> None:
    repo.add_or_update(
        VirtualHostRecord(
            domain="example.com",
            document_root="/home/alice/public_html",
            platform="wordpress",
            extra=["http2 = true"],
        )
    )


def test_bind_sets_paths_and_keeps_other_fields(registry_path: Path) -> None:
    repo = ConfigRepository()
    _seed(repo)
    reloader = FakeReloader()

    result = SslBindingSynchronizer(repo, reloader).bind_ssl(
        "example.com", "/etc/ssl/example.crt", "/etc/ssl/example.key"
    )

    assert result.applied and result.changed and result.reloaded
    assert reloader.calls == 1
    record = repo.load().get("example.com")
    assert record.ssl_cert_path == "/etc/ssl/example.crt"
    assert record.ssl_key_path == "/etc/ssl/example.key"
    assert record.platform == "wordpress"
    assert record.document_root == "/home/alice/public_html"
    assert record.extra == ["http2 = true"]


def test_rebinding_the_same_paths_changes_nothing() -> None:
    repo = ConfigRepository()
    _seed(repo)
    reloader = FakeReloader()
    sync = SslBindingSynchronizer(repo, reloader)
    sync.bind_ssl("example.com", "/c", "/k")

    again = sync.bind_ssl("example.com", "/c", "/k")

    assert again.applied and not again.changed and not again.reloaded
    assert reloader.calls == 1


def test_bind_for_unknown_domain_is_a_warning_not_an_error(registry_path: Path) -> None:
    repo = ConfigRepository()
    reloader = FakeReloader()

    result = SslBindingSynchronizer(repo, reloader).bind_ssl("nowhere.test", "/c", "/k")

    assert not result.applied
    assert "nowhere.test" in result.warning
    assert reloader.calls == 0
    assert not registry_path.exists()


def test_unbind_clears_both_paths() -> None:
    repo = ConfigRepository()
    _seed(repo)
    sync = SslBindingSynchronizer(repo)
    sync.bind_ssl("example.com", "/c", "/k")

    result = sync.unbind_ssl("example.com")

    assert result.changed and not result.reloaded
    record = repo.load().get("example.com")
    assert not record.has_ssl
    assert record.ssl_cert_path is None and record.ssl_key_path is None
    assert result.to_dict()["warning"] is None
