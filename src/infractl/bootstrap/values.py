# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/infractl/bootstrap/values.py

from __future__ import annotations

from dataclasses import dataclass

# Reuse images already present on the node; required for disconnected installs
PULL_IF_NOT_PRESENT = "IfNotPresent"


@dataclass(frozen=True)
class ImageRef:
    repository: str
    tag: str
    pull_policy: str = PULL_IF_NOT_PRESENT

    def values(self) -> dict:
        return {
            "repository": self.repository,
            "tag": self.tag,
            "pullPolicy": self.pull_policy,
        }


def resources(cpu_request: str, memory_request: str, cpu_limit: str, memory_limit: str) -> dict:
    return {
        "requests": {"cpu": cpu_request, "memory": memory_request},
        "limits": {"cpu": cpu_limit, "memory": memory_limit},
    }
