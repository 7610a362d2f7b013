# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/infractl/cli/prompts.py

from __future__ import annotations

from typing import Any, Dict, Protocol

import typer

from infractl.config.loader import build_config, build_gitlab_config
from infractl.config.models import BootstrapConfig, GitLabConfig
from infractl.config.validation import base_dn_from_domain, validate_network_block
from infractl.errors import InputValidationError


class OperatorInput(Protocol):
    def ask(self, prompt: str) -> str: ...

    def ask_secret(self, prompt: str) -> str: ...

    def say(self, message: str) -> None: ...


class TyperPrompter:
    """Terminal prompts; secrets are read without echo when stdin is a TTY."""

    def ask(self, prompt: str) -> str:
        return typer.prompt(prompt, default="", show_default=False).strip()

    def ask_secret(self, prompt: str) -> str:
        return typer.prompt(prompt, default="", show_default=False, hide_input=True)

    def say(self, message: str) -> None:
        typer.echo(message)


def _missing(data: Dict[str, Any], key: str) -> bool:
    return data.get(key) in (None, "")


def prompt_network_cidr(prompter: OperatorInput) -> str:
    while True:
        cidr = prompter.ask("Network CIDR (e.g. 192.168.100.0/24)")
        try:
            validate_network_block(cidr)
        except InputValidationError as e:
            prompter.say(f"Invalid CIDR: {e}")
            prompter.say("   Please enter a valid private network CIDR (e.g., 192.168.100.0/24)")
            continue
        return cidr


def collect_bootstrap_config(data: Dict[str, Any], prompter: OperatorInput) -> BootstrapConfig:
    """
    Fill in whatever the config file and flags left out, then validate.

    Values supplied up front are never re-prompted; an invalid one fails
    validation instead.
    """
    data = dict(data)

    if _missing(data, "network_cidr"):
        data["network_cidr"] = prompt_network_cidr(prompter)

    if _missing(data, "domain"):
        data["domain"] = prompter.ask("Domain (e.g. example.lab)")
        if not base_dn_from_domain(data["domain"]):
            raise InputValidationError("domain is required")

    base_dn = base_dn_from_domain(str(data["domain"]))
    prompter.say(f"LDAP admin DN will be: cn=admin,{base_dn}")

    if _missing(data, "admin_password"):
        data["admin_password"] = prompter.ask_secret(f"LDAP admin password (for cn=admin,{base_dn})")
        if not data["admin_password"]:
            raise InputValidationError("admin password required")

    if "config_password" not in data:
        # blank reuses the admin password (model default)
        data["config_password"] = prompter.ask_secret(
            "LDAP *config* admin password (cn=admin,cn=config) [enter to reuse same]"
        )

    return build_config(data)


def collect_gitlab_config(data: Dict[str, Any], prompter: OperatorInput) -> GitLabConfig:
    data = dict(data)

    if _missing(data, "domain"):
        data["domain"] = prompter.ask("Domain (e.g. example.lab)")
        if not data["domain"]:
            raise InputValidationError("domain is required")

    return build_gitlab_config(data)
