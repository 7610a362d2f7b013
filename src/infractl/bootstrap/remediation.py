# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/infractl/bootstrap/remediation.py

from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, Optional

from jinja2 import Environment, FileSystemLoader, StrictUndefined, TemplateError, meta

from infractl.errors import ManifestApplyError
from infractl.kube.kubectl import KubectlRunner
from infractl.observers.dispatcher import EventBus
from infractl.observers.events import ManifestApplied

log = logging.getLogger("infractl")

TEMPLATES_DIR = Path(__file__).parent / "templates"


class PostInstallApplier:
    """
    Renders packaged manifest templates and applies them with the kube client.

    Used for configuration a chart cannot express through its own values,
    e.g. enabling OpenLDAP overlays once the directory is up.
    """

    def __init__(
        self,
        kubectl: KubectlRunner,
        *,
        templates_dir: Path = TEMPLATES_DIR,
        bus: Optional[EventBus] = None,
        run_ctx: Optional[dict] = None,
    ):
        self.kubectl = kubectl
        self.env = Environment(
            loader=FileSystemLoader(str(templates_dir)),
            undefined=StrictUndefined,
            autoescape=False,
            keep_trailing_newline=True,
        )
        self.bus = bus or EventBus()
        self.run_ctx = run_ctx or {}

    def render(self, template_name: str, bindings: Dict[str, str]) -> str:
        try:
            source, _, _ = self.env.loader.get_source(self.env, template_name)
            missing = meta.find_undeclared_variables(self.env.parse(source)) - set(bindings)
            if missing:
                raise ManifestApplyError(
                    f"failed to render {template_name}: missing bindings {', '.join(sorted(missing))}"
                )
            template = self.env.get_template(template_name)
            rendered = template.render(**bindings)
            # leftover tokens are checked on a neutral render; values may contain braces
            neutral = template.render(**{k: "x" for k in bindings})
        except (TemplateError, TypeError) as e:
            raise ManifestApplyError(f"failed to render {template_name}: {e}") from e

        if "{{" in neutral or "}}" in neutral:
            raise ManifestApplyError(f"unresolved placeholder in rendered {template_name}")
        return rendered

    def apply_remediation(self, template_name: str, bindings: Dict[str, str], *, name: str = "") -> str:
        manifest = self.render(template_name, bindings)
        name = name or template_name
        log.info("Applying post-install manifest %s", name)

        out = self.kubectl.apply_manifest(manifest)
        log.debug("[kubectl] %s", out)
        if self.run_ctx:
            self.bus.emit(ManifestApplied(name=name, output=out, **self.run_ctx))
        return out
