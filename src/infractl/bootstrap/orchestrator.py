# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/infractl/bootstrap/orchestrator.py

from __future__ import annotations

import json
import logging
import shutil
import time
from contextlib import contextmanager
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Iterator, Optional

from infractl.bootstrap.remediation import PostInstallApplier
from infractl.bootstrap.secrets import SecretRetriever
from infractl.bootstrap.services.base import ServiceComponent
from infractl.errors import BootstrapError, DependencyError
from infractl.helm.cli_runner import Release
from infractl.helm.installer import PackageInstaller
from infractl.helm.repository import RepositoryResolver
from infractl.kube.client import build_client_config, wait_for_pods_ready
from infractl.kube.kubectl import KubectlError, KubectlRunner
from infractl.observers.dispatcher import EventBus
from infractl.observers.events import (
    BootstrapSummary,
    ClusterReachable,
    NamespaceEnsured,
    PodStatus,
    StageFailed,
    StageStarted,
    StageSucceeded,
)
from infractl.observers.redact import redact

log = logging.getLogger("infractl")


class Stage(str, Enum):
    VALIDATING = "validating"
    CONNECTING_CLUSTER = "connecting_cluster"
    ENSURING_NAMESPACE = "ensuring_namespace"
    RESOLVING_REPOSITORY = "resolving_repository"
    INSTALLING = "installing"
    POST_INSTALLING = "post_installing"
    RETRIEVING_CREDENTIAL = "retrieving_credential"
    DONE = "done"
    FAILED = "failed"


@dataclass
class BootstrapReport:
    service: str
    stage: Stage = Stage.VALIDATING
    failed_stage: Optional[Stage] = None
    error: Optional[BootstrapError] = None
    release: Optional[Release] = None
    credential: str = ""
    pods_ready: Optional[bool] = None   # None: readiness not determined

    @property
    def ok(self) -> bool:
        return self.stage is Stage.DONE


class Orchestrator:
    """
    Runs one service through the bootstrap stages, strictly in order.

    The first BootstrapError raised by a stage ends the run in FAILED; the
    error is returned in the report, never raised. Credential retrieval is
    display-only and cannot fail a run.
    """

    def __init__(
        self,
        *,
        kubectl: KubectlRunner,
        resolver: RepositoryResolver,
        installer: PackageInstaller,
        applier: PostInstallApplier,
        secrets: SecretRetriever,
        bus: Optional[EventBus] = None,
        run_ctx: Optional[dict] = None,
        api_client_factory: Callable = build_client_config,
        sleep: Callable[[float], None] = time.sleep,
        poll_interval: float = 5.0,
    ):
        self.kubectl = kubectl
        self.resolver = resolver
        self.installer = installer
        self.applier = applier
        self.secrets = secrets
        self.bus = bus or EventBus()
        self.run_ctx = run_ctx or {}
        self.api_client_factory = api_client_factory
        self.sleep = sleep
        self.poll_interval = poll_interval

    def _emit(self, event_cls, **kwargs) -> None:
        if self.run_ctx:
            self.bus.emit(event_cls(**kwargs, **self.run_ctx))

    @contextmanager
    def _stage(self, report: BootstrapReport, stage: Stage) -> Iterator[None]:
        report.stage = stage
        log.info(">> %s", stage.value.replace("_", " "))
        self._emit(StageStarted, stage=stage.value)
        t0 = time.monotonic()
        try:
            yield
        except BootstrapError as e:
            self._emit(StageFailed, stage=stage.value, kind=e.kind, error=str(e))
            raise
        self._emit(StageSucceeded, stage=stage.value, duration_ms=int((time.monotonic() - t0) * 1000))

    # ------------------------------------------------------------------
    def preflight(self) -> None:
        """Ensure the helm and kube client executables are present."""
        helm_binary = self.installer.helm.binary
        if not shutil.which(helm_binary):
            raise DependencyError(f"required dependency not found: {helm_binary}")
        if not shutil.which(self.kubectl.executable):
            raise DependencyError(
                f"required dependency not found: {self.kubectl.executable} "
                "(install kubectl or k3s, or set INFRACTL_KUBECTL)"
            )

    def run(self, service: ServiceComponent) -> BootstrapReport:
        report = BootstrapReport(service=service.name)
        try:
            with self._stage(report, Stage.VALIDATING):
                self.preflight()
                values = service.values()
                log.debug("Values for %s:\n%s", service.name, json.dumps(redact(values), indent=2))

            with self._stage(report, Stage.CONNECTING_CLUSTER):
                nodes = self.kubectl.check_connectivity()
                log.debug("Cluster nodes: %s", ", ".join(nodes))
                self._emit(ClusterReachable, nodes=nodes)

            with self._stage(report, Stage.ENSURING_NAMESPACE):
                created = self.kubectl.ensure_namespace(service.namespace)
                self._emit(NamespaceEnsured, name=service.namespace, created=created)

            with self._stage(report, Stage.RESOLVING_REPOSITORY):
                repo = service.chart.repo
                self.resolver.add_repository(repo.name, repo.url, spec=repo)

            with self._stage(report, Stage.INSTALLING):
                report.release = self.installer.install(
                    service.release_name,
                    service.chart_reference,
                    service.namespace,
                    values,
                )
                report.pods_ready = self.observe_rollout(service)

            with self._stage(report, Stage.POST_INSTALLING):
                remediation = service.remediation()
                if remediation is not None:
                    self.applier.apply_remediation(
                        remediation.template, remediation.bindings, name=remediation.name
                    )
                else:
                    log.debug("No post-install manifest for %s", service.name)

        except BootstrapError as e:
            report.failed_stage = report.stage
            report.stage = Stage.FAILED
            report.error = e
            log.error("%s failed during %s: %s", service.name, report.failed_stage.value, e)
            self._emit(BootstrapSummary, status="FAILED", stage=report.failed_stage.value, error=str(e))
            return report

        with self._stage(report, Stage.RETRIEVING_CREDENTIAL):
            if service.credential is not None:
                report.credential = self.secrets.fetch_decoded_secret_field(
                    service.credential.name, service.namespace, service.credential.key
                )

        report.stage = Stage.DONE
        self._emit(BootstrapSummary, status="OK", stage=Stage.DONE.value)
        return report

    # ------------------------------------------------------------------
    def observe_rollout(self, service: ServiceComponent) -> Optional[bool]:
        """
        Advisory rollout check: poll pod readiness through the API, or sleep
        the service's settle delay when the API cannot be polled, then read
        the pod listing. Never raises.
        """
        ready: Optional[bool] = None
        try:
            api_client = self.api_client_factory(service.kubeconfig)
            try:
                ready = wait_for_pods_ready(
                    api_client,
                    namespace=service.namespace,
                    selector=service.selector,
                    timeout_seconds=service.readiness_timeout_seconds,
                    interval=self.poll_interval,
                )
            finally:
                api_client.close()
        except Exception as e:
            log.debug("Readiness poll unavailable (%s), waiting %ss", e, service.settle_seconds)
            self.sleep(service.settle_seconds)

        if ready is False:
            log.warning(
                "Pods for %s not ready after %ss; continuing",
                service.release_name, service.readiness_timeout_seconds,
            )

        output = ""
        try:
            output = self.kubectl.get_pods(service.namespace, service.selector)
            if output:
                log.info("Pod status:\n%s", output)
        except KubectlError as e:
            log.debug("Could not read pod status: %s", e)

        self._emit(PodStatus, release=service.release_name, ready=ready, output=output)
        return ready
