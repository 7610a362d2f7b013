# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/infractl/kube/kubectl.py

from __future__ import annotations

import logging
import os
import shlex
import shutil
import subprocess
import sys
import tempfile
import time
from pathlib import Path
from typing import List, Optional

from infractl.errors import ConnectivityError, ManifestApplyError

log = logging.getLogger("infractl")


class KubectlError(RuntimeError):
    pass


def locate_kube_client(explicit: Optional[str] = None) -> List[str]:
    """
    Resolve the kube client command line.

    Order: explicit value / INFRACTL_KUBECTL, a ``k3s`` binary shipped next to
    the infractl entry point (``k3s kubectl``), ``kubectl`` on PATH, ``k3s`` on
    PATH. Falls back to plain ``kubectl`` so the preflight check can report it.
    """
    explicit = explicit or os.environ.get("INFRACTL_KUBECTL")
    if explicit:
        return shlex.split(explicit)

    bundled = Path(sys.argv[0]).resolve().parent / "k3s"
    if bundled.is_file() and os.access(bundled, os.X_OK):
        return [str(bundled), "kubectl"]

    kubectl = shutil.which("kubectl")
    if kubectl:
        return [kubectl]

    k3s = shutil.which("k3s")
    if k3s:
        return [k3s, "kubectl"]

    return ["kubectl"]


class KubectlRunner:
    """
    Local kube client runner (``kubectl`` or ``k3s kubectl``).
    """

    def __init__(
        self,
        *,
        command: Optional[List[str]] = None,
        kubeconfig: Optional[str] = None,
        timeout: int = 120,
    ):
        self.command = list(command) if command else locate_kube_client()
        self.kubeconfig = kubeconfig
        self.timeout = timeout

    @property
    def executable(self) -> str:
        return self.command[0]

    def argv(self, args: List[str]) -> List[str]:
        base = list(self.command)
        if self.kubeconfig:
            base += ["--kubeconfig", self.kubeconfig]
        return base + list(args)

    def run(self, args: List[str]) -> tuple[int, str, str]:
        """
        Run a kube client command.

        Returns:
            (rc, stdout, stderr)
        """
        argv = self.argv(args)
        log.debug("[kubectl] $ %s", " ".join(shlex.quote(a) for a in argv))

        try:
            cp = subprocess.run(
                argv,
                check=False,
                text=True,
                capture_output=True,
                timeout=self.timeout,
            )
        except FileNotFoundError as e:
            raise KubectlError(f"kube client not found: {self.executable}") from e
        except OSError as e:
            raise KubectlError(f"failed to run kube client {self.executable}: {e}") from e
        except subprocess.TimeoutExpired as e:
            raise KubectlError(
                f"kubectl {' '.join(args)} timed out after {self.timeout}s"
            ) from e

        return cp.returncode, (cp.stdout or "").strip(), (cp.stderr or "").strip()

    # ------------------------------------------------------------------
    # Cluster
    # ------------------------------------------------------------------

    def list_nodes(self) -> List[str]:
        rc, out, err = self.run(["get", "nodes", "-o", "name"])
        if rc != 0:
            raise KubectlError(f"kubectl get nodes failed: {err or out}")
        return [line for line in out.splitlines() if line.strip()]

    def check_connectivity(self) -> List[str]:
        try:
            nodes = self.list_nodes()
        except KubectlError as e:
            log.debug("[kubectl] connectivity check failed: %s", e)
            raise ConnectivityError(
                "cannot reach cluster; verify kubeconfig and k3s"
            ) from e

        if not nodes:
            raise ConnectivityError(
                "cannot reach cluster; verify kubeconfig and k3s (no nodes listed)"
            )
        return nodes

    def ensure_namespace(self, name: str) -> bool:
        """
        Create the namespace, ignoring failure (already exists is the usual case).
        Returns True when this call created it.
        """
        try:
            rc, out, err = self.run(["create", "ns", name])
        except KubectlError as e:
            log.debug("[kubectl] create ns %s: %s", name, e)
            return False

        if rc != 0:
            log.debug("[kubectl] create ns %s (ignored): %s", name, err or out)
            return False
        return True

    # ------------------------------------------------------------------
    # Manifests
    # ------------------------------------------------------------------

    def apply_file(self, path: str | Path) -> str:
        rc, out, err = self.run(["apply", "-f", str(path)])
        if rc != 0:
            raise KubectlError(f"kubectl apply failed: {err or out}")
        return out

    def apply_manifest(self, content: str, *, prefix: str = "infractl") -> str:
        """
        Apply a YAML document through a private temporary file.
        The file is removed whatever the outcome.
        """
        path = Path(tempfile.gettempdir()) / f"{prefix}-{time.time_ns()}.yaml"
        log.debug("[kubectl] writing manifest to %s", path)

        try:
            fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_EXCL, 0o600)
            with os.fdopen(fd, "w") as f:
                f.write(content)
            return self.apply_file(path)
        except (KubectlError, OSError) as e:
            raise ManifestApplyError(str(e)) from e
        finally:
            path.unlink(missing_ok=True)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_pods(self, namespace: str, selector: str) -> str:
        rc, out, err = self.run(
            ["get", "pods", "-n", namespace, "-l", selector, "--no-headers"]
        )
        if rc != 0:
            raise KubectlError(f"kubectl get pods failed: {err or out}")
        return out

    def get_secret_field(self, name: str, namespace: str, key: str) -> str:
        """Return the field's raw (base64) value."""
        rc, out, err = self.run(
            [
                "get",
                "secret",
                name,
                "-n",
                namespace,
                "-o",
                f"jsonpath={{.data.{key}}}",
            ]
        )
        if rc != 0:
            raise KubectlError(f"kubectl get secret {name} failed: {err or out}")
        return out
