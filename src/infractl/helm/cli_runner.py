# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/infractl/helm/cli_runner.py

from __future__ import annotations

import json
import logging
import os
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

from .errors import HelmError, HelmReleaseExistsError

log = logging.getLogger("infractl")

RELEASE_IN_USE = "cannot re-use a name that is still in use"


@dataclass(frozen=True)
class Release:
    name: str
    namespace: str
    chart: str
    version: str
    revision: int
    status: str


class HelmCliRunner:
    """
    A pragmatic wrapper around the `helm` CLI.
    - Only what a first-time bootstrap needs: 'pull' and 'install'.
    - Testable by mocking subprocess.run.
    """

    def __init__(
        self,
        *,
        binary: str = "helm",
        kubeconfig: str | None = None,
        env: dict[str, str] | None = None,
        debug: bool = False,
    ):
        self.binary = binary
        self.kubeconfig = kubeconfig
        self.env = env or {}
        self.debug = debug

    # ------------------------- internal helpers -------------------------

    def _base(self) -> list[str]:
        cmd = [self.binary]
        if self.kubeconfig:
            cmd += ["--kubeconfig", self.kubeconfig]
        return cmd

    def _run(self, argv: List[str], *, timeout: Optional[int] = None) -> subprocess.CompletedProcess:
        if self.debug:
            argv = argv + ["--debug"]
        log.debug("[helm] $ %s", " ".join(argv))

        env = {**os.environ, **self.env} if self.env else None
        try:
            cp = subprocess.run(
                argv,
                check=False,
                text=True,
                capture_output=True,
                env=env,
                timeout=timeout,
            )
        except FileNotFoundError as e:
            raise HelmError(f"helm binary not found: {self.binary}") from e
        except subprocess.TimeoutExpired as e:
            raise HelmError(f"helm timed out after {timeout}s for {argv!r}") from e

        if cp.returncode != 0:
            stderr = (cp.stderr or "").strip()
            if RELEASE_IN_USE in stderr:
                raise HelmReleaseExistsError(stderr)
            raise HelmError(f"helm failed (rc={cp.returncode}) for {argv!r}\n{stderr}")
        return cp

    # ------------------------- commands -------------------------

    def pull(self, chart: str, *, version: Optional[str], destination: Path) -> Path:
        """Download a chart archive into *destination* and return its path."""
        destination.mkdir(parents=True, exist_ok=True)
        argv = self._base() + ["pull", chart, "--destination", str(destination)]
        if version:
            argv += ["--version", version]
        self._run(argv)

        archives = sorted(destination.glob("*.tgz"))
        if not archives:
            raise HelmError(f"helm pull {chart} produced no archive in {destination}")
        return archives[0]

    def install(
        self,
        release_name: str,
        chart_path: Path,
        namespace: str,
        *,
        values_file: Optional[Path] = None,
        create_namespace: bool = True,
        wait: bool = False,
        timeout_seconds: int = 300,
    ) -> Release:
        argv = self._base() + [
            "install",
            release_name,
            str(chart_path),
            "-n",
            namespace,
            "--timeout",
            f"{timeout_seconds}s",
            "-o",
            "json",
        ]
        if values_file:
            argv += ["-f", str(values_file)]
        if create_namespace:
            argv += ["--create-namespace"]
        if wait:
            argv += ["--wait"]

        # helm enforces --timeout on cluster operations; the process itself
        # gets a little slack before it is killed
        cp = self._run(argv, timeout=timeout_seconds + 60)
        return self._parse_release(cp.stdout, release_name, namespace)

    @staticmethod
    def _parse_release(stdout: str, release_name: str, namespace: str) -> Release:
        try:
            data = json.loads(stdout or "{}")
        except json.JSONDecodeError:
            # --debug interleaves text with the JSON document
            log.debug("[helm] non-JSON install output, using defaults")
            data = {}

        meta = (data.get("chart") or {}).get("metadata") or {}
        return Release(
            name=data.get("name", release_name),
            namespace=data.get("namespace", namespace),
            chart=meta.get("name", ""),
            version=meta.get("version", ""),
            revision=int(data.get("version", 1)),
            status=(data.get("info") or {}).get("status", "unknown"),
        )
