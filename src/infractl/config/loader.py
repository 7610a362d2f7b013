# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/infractl/config/loader.py

import logging
import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from infractl.errors import InputValidationError
from .models import BootstrapConfig, GitLabConfig

log = logging.getLogger("infractl")


def _deep_merge(base: dict, override: dict) -> dict:
    """
    Recursively merge *override* into *base* (mutates base).
    Only overwrites when the override value is non-empty.
    """
    for key, value in override.items():
        if (
            key in base
            and isinstance(base[key], dict)
            and isinstance(value, dict)
        ):
            _deep_merge(base[key], value)
        else:
            if value not in (None, ""):
                base[key] = value
    return base


def _find_secrets_file(config_path: Path) -> Path | None:
    """
    Locate secrets.yaml using this priority:

    1. INFRACTL_SECRETS_FILE environment variable (explicit override)
    2. secrets.yaml in the same directory as the bootstrap config
    """
    env = os.environ.get("INFRACTL_SECRETS_FILE")
    if env:
        p = Path(env)
        if p.is_file():
            return p
        log.warning("INFRACTL_SECRETS_FILE=%s does not exist, skipping", env)
        return None

    p = config_path.parent / "secrets.yaml"
    if p.is_file():
        return p

    return None


def _load_yaml(path: Path) -> dict:
    """Load a YAML file, expanding ${ENV_VAR} references."""
    try:
        raw = path.read_text()
        data = yaml.safe_load(os.path.expandvars(raw)) or {}
    except (OSError, UnicodeDecodeError, yaml.YAMLError) as e:
        raise InputValidationError(f"failed to read {path}: {e}") from e
    if not isinstance(data, dict):
        raise InputValidationError(
            f"Expected mapping in {path}, got {type(data).__name__}"
        )
    return data


def load_config_data(path: str | Path) -> dict[str, Any]:
    """
    Read a bootstrap config file into a plain dict.

    Values are not validated here: the CLI prompts for anything missing
    and then calls ``build_config``. Secrets can live in a sibling
    ``secrets.yaml`` (or ``INFRACTL_SECRETS_FILE``) with the same structure,
    or be referenced as ``${ENV_VAR}`` placeholders.
    """
    path = Path(path)
    if not path.is_file():
        raise InputValidationError(f"config file not found: {path}")

    data = _load_yaml(path)

    secrets_path = _find_secrets_file(path)
    if secrets_path:
        log.debug("Merging secrets from %s", secrets_path)
        _deep_merge(data, _load_yaml(secrets_path))

    return data


def _first_error(e: ValidationError) -> str:
    err = e.errors()[0]
    loc = ".".join(str(x) for x in err.get("loc", ())) or "config"
    msg = err.get("msg", "invalid value")
    # pydantic prefixes messages raised from validators
    msg = msg.removeprefix("Value error, ")
    return f"{loc}: {msg}"


def build_config(data: dict[str, Any]) -> BootstrapConfig:
    try:
        return BootstrapConfig.model_validate(data)
    except ValidationError as e:
        raise InputValidationError(_first_error(e)) from e


def build_gitlab_config(data: dict[str, Any]) -> GitLabConfig:
    try:
        return GitLabConfig.model_validate(data)
    except ValidationError as e:
        raise InputValidationError(_first_error(e)) from e
