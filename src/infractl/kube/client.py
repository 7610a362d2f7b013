# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/infractl/kube/client.py
from __future__ import annotations

import logging
import time
from typing import Optional

from kubernetes import client, config
from kubernetes.config.config_exception import ConfigException

from infractl.errors import ClusterConfigError

log = logging.getLogger("infractl")


def build_client_config(kubeconfig_path: Optional[str]) -> client.ApiClient:
    """
    Build an API client for the control plane.

    With a kubeconfig path the file must load; without one the in-cluster
    service account configuration is used (infractl running as a Pod).
    """
    configuration = client.Configuration()

    if kubeconfig_path:
        try:
            config.load_kube_config(
                config_file=kubeconfig_path,
                client_configuration=configuration,
                persist_config=False,
            )
        except (ConfigException, OSError, ValueError) as e:
            raise ClusterConfigError(
                f"failed to build config from kubeconfig file {kubeconfig_path}: {e}"
            ) from e
        log.debug("Loaded kubeconfig %s, server: %s", kubeconfig_path, configuration.host)
    else:
        try:
            config.load_incluster_config(client_configuration=configuration)
        except ConfigException as e:
            raise ClusterConfigError(f"no kubeconfig given and not running in-cluster: {e}") from e
        log.debug("Loaded in-cluster configuration, server: %s", configuration.host)

    return client.ApiClient(configuration)


def _pod_ready(pod) -> bool:
    for cond in (pod.status.conditions or []) if pod.status else []:
        if cond.type == "Ready":
            return cond.status == "True"
    return False


def wait_for_pods_ready(
    api_client: client.ApiClient,
    *,
    namespace: str,
    selector: str,
    timeout_seconds: int = 120,
    interval: float = 5.0,
) -> bool:
    """
    Poll pods matching *selector* until all report Ready=True.

    Returns False on timeout. API errors propagate so callers can fall back.
    """
    api = client.CoreV1Api(api_client)

    end = time.monotonic() + timeout_seconds
    while True:
        resp = api.list_namespaced_pod(namespace=namespace, label_selector=selector)
        pods = resp.items or []
        if pods and all(_pod_ready(p) for p in pods):
            return True
        if time.monotonic() >= end:
            return False
        time.sleep(interval)
