# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/infractl/helm/installer.py

from __future__ import annotations

import logging
import os
import tempfile
import time
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from infractl.errors import ChartNotFoundError, PackageInstallError
from infractl.observers.dispatcher import EventBus
from infractl.observers.events import (
    ChartLoaded,
    ReleaseFailed,
    ReleaseStarted,
    ReleaseSucceeded,
    ValuesContractWarning,
)
from .charts import ChartRef, load_chart, unknown_value_keys
from .cli_runner import HelmCliRunner, Release
from .errors import HelmError

log = logging.getLogger("infractl")

INSTALL_TIMEOUT_SECONDS = 300


def _write_private(path: Path, content: str) -> None:
    fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
    with os.fdopen(fd, "w") as f:
        f.write(content)


class PackageInstaller:
    """
    Fresh-only chart installs.

    There is deliberately no upgrade path: an existing release with the same
    name makes helm refuse the install, which surfaces as PackageInstallError.
    """

    def __init__(
        self,
        helm: HelmCliRunner,
        *,
        bus: Optional[EventBus] = None,
        run_ctx: Optional[dict] = None,
        timeout_seconds: int = INSTALL_TIMEOUT_SECONDS,
    ):
        self.helm = helm
        self.bus = bus or EventBus()
        self.run_ctx = run_ctx or {}
        self.timeout_seconds = timeout_seconds

    def _emit(self, event_cls, **kwargs) -> None:
        if self.run_ctx:
            self.bus.emit(event_cls(**kwargs, **self.run_ctx))

    def install(
        self,
        release_name: str,
        chart_ref: str,
        namespace: str,
        values: Dict[str, Any],
    ) -> Release:
        ref = ChartRef.parse(chart_ref)
        log.info("Installing fresh release %s from %s", release_name, ref)

        with tempfile.TemporaryDirectory(prefix="infractl-") as tmp:
            workdir = Path(tmp)

            try:
                archive = self.helm.pull(ref.name, version=ref.version, destination=workdir / "charts")
            except HelmError as e:
                raise ChartNotFoundError(f"failed to locate chart {ref}: {e}") from e

            chart = load_chart(archive)
            log.debug("Loaded chart %s-%s from %s", chart.name, chart.version, archive)
            self._emit(ChartLoaded, chart=chart.name, version=chart.version, path=str(archive))

            unknown = unknown_value_keys(values, chart)
            if unknown:
                log.warning(
                    "Values for %s set keys the chart does not declare: %s",
                    chart.name, ", ".join(unknown),
                )
                self._emit(ValuesContractWarning, chart=chart.name, unknown_keys=unknown)

            values_file = workdir / "values.yaml"
            _write_private(values_file, yaml.safe_dump(values, sort_keys=False))

            self._emit(ReleaseStarted, name=release_name, chart=str(ref))
            start = time.monotonic()
            try:
                release = self.helm.install(
                    release_name,
                    archive,
                    namespace,
                    values_file=values_file,
                    create_namespace=True,
                    wait=False,
                    timeout_seconds=self.timeout_seconds,
                )
            except HelmError as e:
                self._emit(ReleaseFailed, name=release_name, error=str(e))
                raise PackageInstallError(f"failed to install chart: {e}") from e

        duration_ms = int((time.monotonic() - start) * 1000)
        log.info("Installed release %s (revision %s)", release.name, release.revision)
        self._emit(ReleaseSucceeded, name=release.name, revision=release.revision, duration_ms=duration_ms)
        return release
