from __future__ import annotations

from pathlib import Path

import pytest

from velosync.core.registry.apache_import import (
    ApacheImporter,
    detect_platform,
    merge_imported,
)
from velosync.core.registry.models import Registry, VirtualHostRecord


@pytest.fixture
def apache_tree(host_root: Path) -> Path:
    server_root = host_root / "etc" / "apache2"
    (server_root / "conf").mkdir(parents=True)
    (server_root / "conf.d").mkdir()

    shop_root = host_root / "home" / "bob" / "shop"
    shop_root.mkdir(parents=True)
    (shop_root / "wp-config.php").write_text("<?php\n", encoding="utf-8")

    store = host_root / "var" / "cpanel" / "ssl" / "apache_tls" / "nodoc.example.net"
    store.mkdir(parents=True)
    (store / "combined").write_text("PEM\n", encoding="utf-8")

    (server_root / "conf" / "httpd.conf").write_text(
        f"""\
ServerRoot "{server_root}"
Include conf.d/*.conf
IncludeOptional missing.d/*.conf

<VirtualHost 192.0.2.1:80>
    ServerName Example.COM
    ServerAlias www.example.com
    DocumentRoot /home/alice/public_html
</VirtualHost>

<VirtualHost 192.0.2.1:443>
    ServerName example.com
    DocumentRoot "/home/alice/public_html"
    SSLCertificateFile /etc/ssl/example.crt
    SSLCertificateKeyFile /etc/ssl/example.key
</VirtualHost>

<VirtualHost *:80>
    # no ServerName: skipped
    DocumentRoot /srv/anonymous
</VirtualHost>
""",
        encoding="utf-8",
    )
    (server_root / "conf.d" / "loop.conf").write_text(
        "Include conf/httpd.conf\n", encoding="utf-8"
    )
    (server_root / "conf.d" / "shop.conf").write_text(
        f"<VirtualHost *:80>\n\tServerName shop.example.org\n\tDocumentRoot {shop_root}\n</VirtualHost>\n"
        "<VirtualHost *:80>\n  ServerName nodoc.example.net\n</VirtualHost>\n",
        encoding="utf-8",
    )
    return server_root


def test_discover_merges_http_and_https_blocks(apache_tree: Path, host_root: Path) -> None:
    records = {r.domain: r for r in ApacheImporter.from_config().discover()}

    assert set(records) == {"example.com", "shop.example.org", "nodoc.example.net"}

    example = records["example.com"]
    assert example.document_root == "/home/alice/public_html"
    assert example.ssl_cert_path == "/etc/ssl/example.crt"
    assert example.ssl_key_path == "/etc/ssl/example.key"
    assert example.platform == "generic"


def test_discover_detects_platform_and_defaults(apache_tree: Path, host_root: Path) -> None:
    records = {r.domain: r for r in ApacheImporter.from_config().discover()}

    shop = records["shop.example.org"]
    assert shop.platform == "wordpress"
    assert not shop.has_ssl

    nodoc = records["nodoc.example.net"]
    assert nodoc.document_root == str(host_root / "var" / "www" / "html")
    combined = str(host_root / "var" / "cpanel" / "ssl" / "apache_tls" / "nodoc.example.net" / "combined")
    assert nodoc.ssl_cert_path == combined
    assert nodoc.ssl_key_path == combined


def test_circular_include_is_parsed_once(apache_tree: Path) -> None:
    hosts = ApacheImporter.from_config().parse()
    names = [h.server_name for h in hosts]
    assert names.count("shop.example.org") == 1
    assert names.count("example.com") == 2
    assert all(h.server_name for h in hosts)


def test_missing_apache_config_imports_nothing(host_root: Path) -> None:
    assert ApacheImporter(host_root / "nope.conf").discover() == []


def test_detect_platform_markers(tmp_path: Path) -> None:
    assert detect_platform(str(tmp_path)) == "generic"
    (tmp_path / "artisan").write_text("", encoding="utf-8")
    assert detect_platform(str(tmp_path)) == "laravel"
    (tmp_path / "app" / "etc").mkdir(parents=True)
    (tmp_path / "app" / "etc" / "env.php").write_text("", encoding="utf-8")
    assert detect_platform(str(tmp_path)) == "magento2"


def test_merge_imported_keeps_platform_and_extra_of_existing_records() -> None:
    registry = Registry(
        sections=[
            VirtualHostRecord(
                domain="example.com",
                document_root="/old",
                platform="laravel",
                extra=["http2 = true"],
            ),
            VirtualHostRecord(domain="same.test", document_root="/same"),
        ]
    )
    imported = [
        VirtualHostRecord(domain="example.com", document_root="/new", ssl_cert_path="/c", ssl_key_path="/k"),
        VirtualHostRecord(domain="same.test", document_root="/same"),
        VirtualHostRecord(domain="fresh.test", document_root="/fresh", platform="wordpress"),
    ]

    summary = merge_imported(registry, imported)

    assert summary.added == ["fresh.test"]
    assert summary.updated == ["example.com"]
    assert summary.unchanged == ["same.test"]
    assert summary.changed

    example = registry.get("example.com")
    assert example.document_root == "/new"
    assert example.platform == "laravel"
    assert example.extra == ["http2 = true"]
    assert (example.ssl_cert_path, example.ssl_key_path) == ("/c", "/k")
    assert registry.get("fresh.test").platform == "wordpress"
