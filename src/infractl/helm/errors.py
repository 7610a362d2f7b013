# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/infractl/helm/errors.py
class HelmError(RuntimeError):
    """Base class for Helm-related failures."""

class HelmReleaseExistsError(HelmError):
    """Raised when helm refuses to install over an existing release name."""
