# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/infractl/helm/charts.py

from __future__ import annotations

import tarfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from infractl.errors import ChartLoadError


@dataclass(frozen=True)
class ChartRef:
    """``<repo>/<chart>`` optionally pinned as ``<repo>/<chart>:<version>``."""

    name: str
    version: Optional[str] = None

    @classmethod
    def parse(cls, ref: str) -> "ChartRef":
        ref = ref.strip()
        head, sep, tail = ref.rpartition(":")
        # oci://host:port/... keeps its colon
        if sep and tail and "/" not in tail:
            return cls(name=head, version=tail)
        return cls(name=ref)

    def __str__(self) -> str:
        return f"{self.name}:{self.version}" if self.version else self.name


@dataclass(frozen=True)
class LoadedChart:
    path: Path
    name: str
    version: str
    app_version: str = ""
    dependencies: List[str] = field(default_factory=list)
    default_values: Dict[str, Any] = field(default_factory=dict)


def _read_member(tf: tarfile.TarFile, member: str) -> Optional[bytes]:
    try:
        info = tf.getmember(member)
    except KeyError:
        return None
    fh = tf.extractfile(info)
    return fh.read() if fh else None


def load_chart(path: str | Path) -> LoadedChart:
    """
    Load chart metadata and default values from a packaged chart (.tgz).
    """
    path = Path(path)
    try:
        with tarfile.open(path, "r:*") as tf:
            roots = {n.split("/", 1)[0] for n in tf.getnames() if "/" in n}
            if len(roots) != 1:
                raise ChartLoadError(f"{path.name}: expected a single chart directory in archive")
            root = roots.pop()

            chart_raw = _read_member(tf, f"{root}/Chart.yaml")
            if chart_raw is None:
                raise ChartLoadError(f"{path.name}: Chart.yaml file is missing")
            values_raw = _read_member(tf, f"{root}/values.yaml")
    except (tarfile.TarError, OSError) as e:
        raise ChartLoadError(f"failed to load chart {path}: {e}") from e

    try:
        meta = yaml.safe_load(chart_raw) or {}
        defaults = yaml.safe_load(values_raw) if values_raw else {}
    except yaml.YAMLError as e:
        raise ChartLoadError(f"failed to parse chart {path.name}: {e}") from e

    if not isinstance(meta, dict) or not meta.get("name") or not meta.get("version"):
        raise ChartLoadError(f"{path.name}: Chart.yaml must define name and version")

    deps = [
        d.get("alias") or d.get("name")
        for d in meta.get("dependencies") or []
        if isinstance(d, dict) and (d.get("alias") or d.get("name"))
    ]

    return LoadedChart(
        path=path,
        name=str(meta["name"]),
        version=str(meta["version"]),
        app_version=str(meta.get("appVersion", "")),
        dependencies=deps,
        default_values=defaults if isinstance(defaults, dict) else {},
    )


def unknown_value_keys(values: Dict[str, Any], chart: LoadedChart) -> List[str]:
    """
    Top-level value keys the chart neither defaults nor routes to a subchart.
    """
    known = set(chart.default_values) | set(chart.dependencies) | {"global"}
    return sorted(k for k in values if k not in known)
