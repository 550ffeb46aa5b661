"""Optional YAML layer for each settings domain.

For a domain such as ``rabbit`` the files read are ``conf/rabbit.yaml`` and
then every ``conf/rabbit.d/*.yaml`` (``*.yml`` too) in name order, later
files overriding earlier ones. ``RABBIT_CONFIG_DIR`` moves the ``conf``
directory. Absent files are skipped, so environment-only deployments need
no YAML at all.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import TYPE_CHECKING

from pydantic_settings.sources.providers.yaml import YamlConfigSettingsSource

if TYPE_CHECKING:
    from pydantic_settings import BaseSettings


def discover_yaml_files(domain: str, base_dir: str = "conf") -> list[Path]:
    """Config files for ``domain`` in load order."""
    root = Path(os.getenv(f"{domain.upper()}_CONFIG_DIR", base_dir))
    files = [root / f"{domain}.yaml"] if (root / f"{domain}.yaml").is_file() else []

    overrides = root / f"{domain}.d"
    if overrides.is_dir():
        files.extend(sorted(p for p in overrides.iterdir() if p.suffix in (".yaml", ".yml")))
    return files


class DomainYamlSettingsSource(YamlConfigSettingsSource):
    def __init__(self, settings_cls: type[BaseSettings], domain: str) -> None:
        self.domain = domain
        self.files = discover_yaml_files(domain)
        super().__init__(settings_cls, yaml_file=self.files or None, yaml_file_encoding="utf-8")

    def __repr__(self) -> str:
        return f"{type(self).__name__}(domain={self.domain!r}, files={[str(f) for f in self.files]})"


def create_yaml_source(settings_cls: type[BaseSettings], domain: str) -> DomainYamlSettingsSource:
    return DomainYamlSettingsSource(settings_cls, domain)
