# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/infractl/cli/app.py
from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, NoReturn, Optional

import typer

from infractl.bootstrap.orchestrator import Orchestrator
from infractl.bootstrap.remediation import PostInstallApplier
from infractl.bootstrap.secrets import SecretRetriever
from infractl.bootstrap.services.base import ServiceComponent
from infractl.bootstrap.services.gitlab import GitLabService
from infractl.bootstrap.services.openldap import OpenLDAPService
from infractl.bootstrap.snapshot import write_snapshot
from infractl.cli.prompts import TyperPrompter, collect_bootstrap_config, collect_gitlab_config
from infractl.config.loader import load_config_data
from infractl.config.settings import HelmSettings
from infractl.errors import BootstrapError
from infractl.helm.cli_runner import HelmCliRunner
from infractl.helm.installer import PackageInstaller
from infractl.helm.repository import RepositoryResolver
from infractl.kube.kubectl import KubectlRunner, locate_kube_client
from infractl.logging.log import init_logging
from infractl.observers.console import ConsoleObserver
from infractl.observers.dispatcher import EventBus
from infractl.observers.events import new_ctx
from infractl.observers.jsonfile import JsonFileObserver
from infractl.observers.logger import LoggerObserver

# ------------------------------------------------------------------------------
# CLI setup
# ------------------------------------------------------------------------------

app = typer.Typer(
    help="infractl: bootstrap identity and collaboration services onto k3s",
    no_args_is_help=True,
)


def _fatal(err: object) -> NoReturn:
    typer.echo(f"fatal: {err}", err=True)
    raise typer.Exit(code=1)


def _read_config(config: Optional[Path], overrides: Dict[str, Any]) -> Dict[str, Any]:
    data = load_config_data(config) if config else {}
    data.update({k: v for k, v in overrides.items() if v not in (None, "")})
    return data


def _execute(
    service: ServiceComponent,
    *,
    logger: logging.Logger,
    run_id: str,
    log_dir: Path,
    kubectl_cmd: Optional[str],
    snapshot: Optional[Path],
    debug: bool,
) -> None:
    bus = EventBus(observers=[LoggerObserver(logger), JsonFileObserver(log_dir / f"{run_id}.jsonl")])
    if debug:
        bus.subscribe(ConsoleObserver())
    run_ctx = new_ctx(service=service.name, namespace=service.namespace, run_id=run_id)

    settings = HelmSettings.from_env()
    helm = HelmCliRunner(kubeconfig=service.kubeconfig, env=settings.helm_env(), debug=debug)
    kubectl = KubectlRunner(command=locate_kube_client(kubectl_cmd), kubeconfig=service.kubeconfig)
    logger.debug("kube client: %s", " ".join(kubectl.command))

    orchestrator = Orchestrator(
        kubectl=kubectl,
        resolver=RepositoryResolver(settings, bus=bus, run_ctx=run_ctx),
        installer=PackageInstaller(helm, bus=bus, run_ctx=run_ctx),
        applier=PostInstallApplier(kubectl, bus=bus, run_ctx=run_ctx),
        secrets=SecretRetriever(kubectl, bus=bus, run_ctx=run_ctx),
        bus=bus,
        run_ctx=run_ctx,
    )

    report = orchestrator.run(service)
    if not report.ok:
        _fatal(report.error)

    typer.echo("")
    typer.secho("Done.", bold=True)
    for line in service.follow_up(report.credential):
        typer.echo(line)

    try:
        path = write_snapshot(snapshot or Path(service.snapshot_name), service.snapshot())
    except OSError as e:
        _fatal(f"failed to write snapshot: {e}")
    typer.echo(f"\nConfiguration snapshot (credentials redacted): {path}")


def _banner(title: str, debug: bool) -> tuple[logging.Logger, str, Path]:
    logger, run_id, log_path = init_logging(verbose=debug)
    typer.secho(title, bold=True)
    typer.echo(f"  Run ID   : {run_id}")
    typer.echo(f"  Logs     : {log_path}")
    typer.echo("")
    return logger, run_id, log_path


# ------------------------------------------------------------------------------
# Commands
# ------------------------------------------------------------------------------

@app.command()
def openldap(
    config: Optional[Path] = typer.Option(None, "--config", "-c", help="Bootstrap config YAML"),
    kubeconfig: Optional[str] = typer.Option(None, "--kubeconfig"),
    namespace: Optional[str] = typer.Option(None, "--namespace", "-n"),
    release: Optional[str] = typer.Option(None, "--release", help="Helm release name (default: ldap)"),
    chart_version: Optional[str] = typer.Option(None, "--chart-version", help="Pin openldap-stack-ha version"),
    kubectl: Optional[str] = typer.Option(None, "--kubectl", help="Kube client command, e.g. 'k3s kubectl'"),
    snapshot: Optional[Path] = typer.Option(None, "--snapshot", help="Snapshot path (default: infractl.step1.json)"),
    debug: bool = typer.Option(False, "--debug"),
):
    """Install OpenLDAP and enable memberOf (+refint) with a post-install Job."""
    logger, run_id, log_path = _banner("=== Infra bootstrap (Step 1: OpenLDAP + memberOf) ===", debug)

    try:
        data = _read_config(
            config,
            {"kubeconfig": kubeconfig, "namespace": namespace, "release_name": release},
        )
        cfg = collect_bootstrap_config(data, TyperPrompter())
        if chart_version:
            cfg.openldap = cfg.openldap.model_copy(update={"version": chart_version})
    except BootstrapError as e:
        _fatal(e)

    logger.debug("config: %s", cfg.model_dump(mode="json"))
    _execute(
        OpenLDAPService(cfg),
        logger=logger,
        run_id=run_id,
        log_dir=log_path.parent,
        kubectl_cmd=kubectl,
        snapshot=snapshot,
        debug=debug,
    )


@app.command()
def gitlab(
    config: Optional[Path] = typer.Option(None, "--config", "-c", help="GitLab config YAML"),
    kubeconfig: Optional[str] = typer.Option(None, "--kubeconfig"),
    namespace: Optional[str] = typer.Option(None, "--namespace", "-n"),
    release: Optional[str] = typer.Option(None, "--release", help="Helm release name (default: gitlab)"),
    chart_version: Optional[str] = typer.Option(None, "--chart-version", help="Pin gitlab chart version"),
    kubectl: Optional[str] = typer.Option(None, "--kubectl", help="Kube client command, e.g. 'k3s kubectl'"),
    snapshot: Optional[Path] = typer.Option(None, "--snapshot", help="Snapshot path (default: infractl.gitlab.json)"),
    debug: bool = typer.Option(False, "--debug"),
):
    """Install GitLab from the official chart."""
    logger, run_id, log_path = _banner("=== Infra bootstrap: GitLab ===", debug)

    try:
        data = _read_config(
            config,
            {"kubeconfig": kubeconfig, "namespace": namespace, "release_name": release},
        )
        cfg = collect_gitlab_config(data, TyperPrompter())
        if chart_version:
            cfg.chart = cfg.chart.model_copy(update={"version": chart_version})
    except BootstrapError as e:
        _fatal(e)

    logger.debug("config: %s", cfg.model_dump(mode="json"))
    _execute(
        GitLabService(cfg),
        logger=logger,
        run_id=run_id,
        log_dir=log_path.parent,
        kubectl_cmd=kubectl,
        snapshot=snapshot,
        debug=debug,
    )
