# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/infractl/config/models.py

from __future__ import annotations

from typing import Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    SecretStr,
    computed_field,
    field_validator,
    model_validator,
)

from infractl.errors import InputValidationError

from .validation import base_dn_from_domain, validate_network_block

DEFAULT_KUBECONFIG = "/etc/rancher/k3s/k3s.yaml"


class RepoSpec(BaseModel):
    name: str
    url: str
    username: Optional[str] = None
    password: Optional[SecretStr] = None
    ca_file: Optional[str] = None
    insecure_skip_tls_verify: bool = False


class ChartSpec(BaseModel):
    """Where a service's chart comes from."""

    repo: RepoSpec
    chart: str                       # <repo>/<chart>
    version: Optional[str] = None    # optional pin

    @property
    def reference(self) -> str:
        if self.version:
            return f"{self.chart}:{self.version}"
        return self.chart


def _openldap_chart() -> ChartSpec:
    return ChartSpec(
        repo=RepoSpec(
            name="helm-openldap",
            url="https://jp-gouin.github.io/helm-openldap/",
        ),
        chart="helm-openldap/openldap-stack-ha",
    )


def _gitlab_chart() -> ChartSpec:
    return ChartSpec(
        repo=RepoSpec(name="gitlab", url="https://charts.gitlab.io/"),
        chart="gitlab/gitlab",
    )


class BootstrapConfig(BaseModel):
    """
    Single source of truth threaded through every bootstrap stage.

    ``base_dn`` is derived from ``domain`` on every access and is never stored.
    ``network_cidr`` is validated eagerly but not consumed yet (reserved for
    NetworkPolicy / service source ranges).
    """

    model_config = ConfigDict(validate_assignment=True)

    namespace: str = "infra"
    network_cidr: str
    domain: str
    admin_password: SecretStr
    config_password: SecretStr = SecretStr("")
    kubeconfig: str = DEFAULT_KUBECONFIG
    release_name: str = "ldap"
    openldap: ChartSpec = Field(default_factory=_openldap_chart)

    @field_validator("namespace", "release_name")
    @classmethod
    def _not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("must not be empty")
        return v

    @field_validator("network_cidr")
    @classmethod
    def _valid_cidr(cls, v: str) -> str:
        try:
            validate_network_block(v)
        except InputValidationError as e:
            raise ValueError(str(e)) from e
        return v.strip()

    @field_validator("domain")
    @classmethod
    def _valid_domain(cls, v: str) -> str:
        v = v.strip()
        if not base_dn_from_domain(v):
            raise ValueError("domain is required")
        return v

    @field_validator("admin_password")
    @classmethod
    def _admin_password_required(cls, v: SecretStr) -> SecretStr:
        if not v.get_secret_value():
            raise ValueError("admin password required")
        return v

    @model_validator(mode="after")
    def _default_config_password(self) -> "BootstrapConfig":
        if not self.config_password.get_secret_value():
            # assignment re-runs validation; bypass it to avoid recursion
            object.__setattr__(self, "config_password", self.admin_password)
        return self

    @computed_field  # type: ignore[prop-decorator]
    @property
    def base_dn(self) -> str:
        return base_dn_from_domain(self.domain)

    @property
    def admin_dn(self) -> str:
        return f"cn=admin,{self.base_dn}"


class GitLabConfig(BaseModel):
    """Settings for the GitLab chart install."""

    namespace: str = "infra"
    kubeconfig: str = DEFAULT_KUBECONFIG
    domain: str
    hostname: str = ""
    release_name: str = "gitlab"
    smtp_enabled: bool = False
    smtp_host: str = ""
    smtp_port: int = 587
    smtp_user: str = ""
    smtp_password: SecretStr = SecretStr("")
    smtp_from: str = ""
    smtp_from_name: str = "GitLab"
    enable_https: bool = False
    cert_manager_email: str = ""
    storage_class: str = ""
    chart: ChartSpec = Field(default_factory=_gitlab_chart)

    @field_validator("namespace", "release_name", "domain")
    @classmethod
    def _not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("must not be empty")
        return v

    @model_validator(mode="after")
    def _default_hostname(self) -> "GitLabConfig":
        if not self.hostname:
            self.hostname = f"gitlab.{self.domain}"
        return self

    @property
    def url(self) -> str:
        scheme = "https" if self.enable_https else "http"
        return f"{scheme}://{self.hostname}"
