# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/infractl/bootstrap/services/base.py

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from infractl.config.models import ChartSpec


@dataclass(frozen=True)
class SecretField:
    name: str
    key: str


@dataclass(frozen=True)
class Remediation:
    """A packaged manifest template plus the values substituted into it."""

    name: str
    template: str
    bindings: Dict[str, str] = field(default_factory=dict)


@dataclass
class ServiceComponent(ABC):
    """
    Declarative definition of a bootstrapped service.
    """

    # Identity
    name: str

    # Helm source
    chart: ChartSpec

    # Helm release
    namespace: str
    release_name: str

    # Kubernetes
    kubeconfig: str

    # Post-install observation: readiness poll ceiling, then fixed delay
    # when the API cannot be polled
    readiness_timeout_seconds: int = 120
    settle_seconds: int = 10

    # Where the service keeps a generated credential, if any
    credential: Optional[SecretField] = None

    # Run snapshot file written on success
    snapshot_name: str = "infractl.json"

    @property
    def selector(self) -> str:
        return f"app.kubernetes.io/instance={self.release_name}"

    @property
    def chart_reference(self) -> str:
        return self.chart.reference

    @abstractmethod
    def values(self) -> Dict[str, Any]:
        """Build the Helm values tree. Called once per install."""

    def remediation(self) -> Optional[Remediation]:
        """Optional post-install job. Default: none."""
        return None

    @abstractmethod
    def follow_up(self, credential: str = "") -> List[str]:
        """Human instructions printed after a successful run."""

    @abstractmethod
    def snapshot(self) -> Dict[str, Any]:
        """Configuration persisted after a successful run (credentials redacted)."""
