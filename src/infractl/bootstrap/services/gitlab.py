# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/infractl/bootstrap/services/gitlab.py

from __future__ import annotations

from typing import Any, Dict, List

from infractl.bootstrap.services.base import SecretField, ServiceComponent
from infractl.bootstrap.values import resources
from infractl.config.models import GitLabConfig

INITIAL_ROOT_PASSWORD_SUFFIX = "gitlab-initial-root-password"
CLUSTER_ISSUER = "letsencrypt-prod"


def _persistent(size: str) -> Dict[str, Any]:
    return {"enabled": True, "size": size}


class GitLabService(ServiceComponent):
    """
    GitLab cloud-native chart with its bundled gitaly, minio, postgresql
    and redis sized for a single node.
    """

    def __init__(self, cfg: GitLabConfig):
        super().__init__(
            name="gitlab",
            chart=cfg.chart,
            namespace=cfg.namespace,
            release_name=cfg.release_name,
            kubeconfig=cfg.kubeconfig,
            readiness_timeout_seconds=300,
            settle_seconds=30,
            credential=SecretField(
                name=f"{cfg.release_name}-{INITIAL_ROOT_PASSWORD_SUFFIX}", key="password"
            ),
            snapshot_name="infractl.gitlab.json",
        )
        self.cfg = cfg

    def values(self) -> Dict[str, Any]:
        cfg = self.cfg
        https = cfg.enable_https

        global_values: Dict[str, Any] = {
            "hosts": {
                "domain": cfg.domain,
                "gitlab": {"name": cfg.hostname},
            },
            "ingress": {
                "configureCertmanager": https,
                "enabled": True,
                "tls": {"enabled": https},
            },
            "gitaly": {"enabled": True},
            "minio": {"enabled": True},
            "postgresql": {"install": True},
            "redis": {"install": True},
            "certmanager": {"install": https},
        }

        if cfg.smtp_enabled:
            global_values["smtp"] = {
                "enabled": True,
                "address": f"{cfg.smtp_host}:{cfg.smtp_port}",
                "user_name": cfg.smtp_user,
                "password": cfg.smtp_password.get_secret_value(),
                "from": cfg.smtp_from,
                "from_name": cfg.smtp_from_name,
            }

        if cfg.storage_class:
            global_values["storageClass"] = cfg.storage_class

        values: Dict[str, Any] = {
            "global": global_values,
            "gitlab": {
                "webservice": {
                    "replicaCount": 1,
                    "resources": resources("500m", "1Gi", "1000m", "2Gi"),
                },
                "sidekiq": {
                    "replicaCount": 1,
                    "resources": resources("300m", "512Mi", "500m", "1Gi"),
                },
            },
            "postgresql": {
                "primary": {
                    "persistence": _persistent("8Gi"),
                    "resources": resources("200m", "256Mi", "500m", "512Mi"),
                },
            },
            "redis": {
                "master": {
                    "persistence": _persistent("2Gi"),
                    "resources": resources("100m", "128Mi", "200m", "256Mi"),
                },
            },
            "minio": {
                "persistence": _persistent("10Gi"),
                "resources": resources("100m", "128Mi", "200m", "256Mi"),
            },
        }

        # Let's Encrypt only when there is an address to register with
        if https and cfg.cert_manager_email:
            global_values["ingress"]["annotations"] = {
                "cert-manager.io/cluster-issuer": CLUSTER_ISSUER,
            }
            values["certmanager-issuer"] = {"email": cfg.cert_manager_email}

        return values

    def follow_up(self, credential: str = "") -> List[str]:
        ns = self.namespace
        lines = [
            "GitLab is being deployed...",
            f"  URL: {self.cfg.url}",
            f"  Namespace: {ns}",
        ]
        if credential:
            lines.append(f"  Initial root password: {credential}")
        lines += [
            "",
            "To access GitLab:",
            f"  kubectl -n {ns} port-forward svc/{self.release_name}-webservice-default 8080:8080",
            "  Then visit: http://localhost:8080",
            "",
            "To get the initial root password:",
            f"  kubectl -n {ns} get secret {self.credential.name} "
            "-o jsonpath='{.data.password}' | base64 -d",
            "",
            "To check GitLab status:",
            f"  kubectl -n {ns} get pods -l {self.selector}",
        ]
        return lines

    def snapshot(self) -> Dict[str, Any]:
        return self.cfg.model_dump(mode="json")
