# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/infractl/bootstrap/secrets.py

from __future__ import annotations

import base64
import binascii
import logging
from typing import Optional

from infractl.kube.kubectl import KubectlError, KubectlRunner
from infractl.observers.dispatcher import EventBus
from infractl.observers.events import CredentialRetrieved

log = logging.getLogger("infractl")


class SecretRetriever:
    """Best-effort read of generated credentials for display."""

    def __init__(
        self,
        kubectl: KubectlRunner,
        *,
        bus: Optional[EventBus] = None,
        run_ctx: Optional[dict] = None,
    ):
        self.kubectl = kubectl
        self.bus = bus or EventBus()
        self.run_ctx = run_ctx or {}

    def fetch_decoded_secret_field(self, name: str, namespace: str, key: str) -> str:
        """
        Return the decoded value of ``<namespace>/<name>`` field *key*.

        Any failure (missing secret or field, kube client error, bad
        encoding) yields an empty string; this never raises.
        """
        value = ""
        try:
            raw = self.kubectl.get_secret_field(name, namespace, key)
            if raw:
                value = base64.b64decode(raw, validate=True).decode("utf-8")
        except (KubectlError, binascii.Error, UnicodeDecodeError) as e:
            log.debug("Could not read secret %s/%s[%s]: %s", namespace, name, key, e)

        if self.run_ctx:
            self.bus.emit(CredentialRetrieved(secret=name, key=key, found=bool(value), **self.run_ctx))
        return value
