# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/infractl/errors.py

from __future__ import annotations


class BootstrapError(RuntimeError):
    """Base class for failures that abort a bootstrap run."""

    kind = "bootstrap"


class InputValidationError(BootstrapError):
    """Operator input is malformed or out of policy."""

    kind = "input_validation"


class DependencyError(BootstrapError):
    """A required executable is missing on the host."""

    kind = "dependency"


class ConnectivityError(BootstrapError):
    """The cluster cannot be reached."""

    kind = "connectivity"


class ClusterConfigError(ConnectivityError):
    """A client configuration could not be built from the kubeconfig."""


class RepositoryResolutionError(BootstrapError):
    """Neither the direct nor the fallback index download succeeded."""

    kind = "repository_resolution"


class PackageInstallError(BootstrapError):
    kind = "package_install"


class ChartNotFoundError(PackageInstallError):
    pass


class ChartLoadError(PackageInstallError):
    pass


class ManifestApplyError(BootstrapError):
    kind = "manifest_apply"
