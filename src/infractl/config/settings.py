# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/infractl/config/settings.py

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path


def _xdg(var: str, fallback: Path) -> Path:
    value = os.environ.get(var)
    return Path(value) if value else fallback


@dataclass(frozen=True)
class HelmSettings:
    """
    Filesystem locations Helm itself uses, so that repositories registered
    here are visible to ``helm pull`` / ``helm install`` and vice versa.
    """

    repository_config: Path
    repository_cache: Path

    @classmethod
    def from_env(cls) -> "HelmSettings":
        config_home = _xdg("HELM_CONFIG_HOME", _xdg("XDG_CONFIG_HOME", Path.home() / ".config") / "helm")
        cache_home = _xdg("HELM_CACHE_HOME", _xdg("XDG_CACHE_HOME", Path.home() / ".cache") / "helm")

        return cls(
            repository_config=_xdg("HELM_REPOSITORY_CONFIG", config_home / "repositories.yaml"),
            repository_cache=_xdg("HELM_REPOSITORY_CACHE", cache_home / "repository"),
        )

    def helm_env(self) -> dict[str, str]:
        """Environment overrides pinning the helm CLI to these paths."""
        return {
            "HELM_REPOSITORY_CONFIG": str(self.repository_config),
            "HELM_REPOSITORY_CACHE": str(self.repository_cache),
        }
