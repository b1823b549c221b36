"""Domain-specific configuration for importing Apache virtual hosts."""
from __future__ import annotations

from functools import cached_property
from pathlib import Path

from ..base import BaseDomainConfig


class ImportConfig(BaseDomainConfig):
    def _config_section(self) -> str:
        return "import"

    @cached_property
    def apache_config(self) -> Path:
        return Path(str(self.section.get("apache_config", "/etc/apache2/conf/httpd.conf")))

    @cached_property
    def server_root(self) -> Path:
        """Base for relative ``Include`` paths."""
        return Path(str(self.section.get("server_root", "/etc/apache2")))

    @cached_property
    def ssl_store(self) -> Path:
        return Path(str(self.section.get("ssl_store", "/var/cpanel/ssl/apache_tls")))

    @cached_property
    def default_root(self) -> str:
        return str(self.section.get("default_root", "/var/www/html"))

    @cached_property
    def home_root(self) -> Path:
        return Path(str(self.section.get("home_root", "/home")))


__all__ = ["ImportConfig"]
