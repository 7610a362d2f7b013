import json
import logging
import os
import textwrap
from pathlib import Path

import pytest
from typer.testing import CliRunner

from infractl.bootstrap.orchestrator import BootstrapReport, Stage
from infractl.cli import app as app_mod
from infractl.errors import ConnectivityError
from infractl.observers.events import StageStarted

runner = CliRunner()


class FakeOrchestrator:
    """Replaces the real pipeline; returns a canned report."""

    report = None
    services = []

    def __init__(self, **kwargs):
        self.kwargs = kwargs

    def run(self, service):
        FakeOrchestrator.services.append(service)
        self.kwargs["bus"].emit(StageStarted(stage="validating", **self.kwargs["run_ctx"]))
        report = FakeOrchestrator.report
        report.service = service.name
        return report


@pytest.fixture(autouse=True)
def _isolated(monkeypatch, tmp_path: Path):
    real_init = app_mod.init_logging

    def init_logging(**kw):
        return real_init(base_dir=tmp_path / "logs", name="infractl-cli-test", verbose=kw.get("verbose", False))

    monkeypatch.setattr(app_mod, "init_logging", init_logging)
    monkeypatch.setattr(app_mod, "Orchestrator", FakeOrchestrator)
    monkeypatch.setenv("HELM_REPOSITORY_CONFIG", str(tmp_path / "helm" / "repositories.yaml"))
    monkeypatch.setenv("HELM_REPOSITORY_CACHE", str(tmp_path / "helm" / "cache"))
    FakeOrchestrator.report = BootstrapReport(service="", stage=Stage.DONE, credential="S3cret!")
    FakeOrchestrator.services = []
    yield
    logger = logging.getLogger("infractl-cli-test")
    for h in list(logger.handlers):
        h.close()
        logger.removeHandler(h)


def _config(tmp_path: Path, body: str) -> Path:
    f = tmp_path / "bootstrap.yaml"
    f.write_text(textwrap.dedent(body))
    return f


def test_openldap_from_config_file(tmp_path: Path):
    cfg = _config(tmp_path, """
        network_cidr: 192.168.100.0/24
        domain: armani.lab
        admin_password: S3cret!
        config_password: ""
    """)
    snap = tmp_path / "out" / "infractl.step1.json"
    snap.parent.mkdir()

    result = runner.invoke(
        app_mod.app,
        ["openldap", "--config", str(cfg), "--snapshot", str(snap), "--namespace", "directory",
         "--chart-version", "4.3.3", "--kubectl", "k3s kubectl"],
    )

    assert result.exit_code == 0, result.output
    assert "kubectl -n directory logs job/ldap-memberof-setup" in result.output

    svc = FakeOrchestrator.services[0]
    assert svc.namespace == "directory"
    assert svc.chart_reference == "helm-openldap/openldap-stack-ha:4.3.3"

    assert os.stat(snap).st_mode & 0o777 == 0o600
    data = json.loads(snap.read_text())
    assert data["base_dn"] == "dc=armani,dc=lab"
    assert data["namespace"] == "directory"
    assert "S3cret!" not in snap.read_text()


def test_openldap_prompts_when_no_config(tmp_path: Path):
    snap = tmp_path / "snap.json"
    result = runner.invoke(
        app_mod.app,
        ["openldap", "--snapshot", str(snap)],
        input="8.8.8.0/24\n192.168.100.0/24\narmani.lab\nS3cret!\n\n",
    )

    assert result.exit_code == 0, result.output
    assert "Invalid CIDR" in result.output
    assert "LDAP admin DN will be: cn=admin,dc=armani,dc=lab" in result.output
    svc = FakeOrchestrator.services[0]
    assert svc.cfg.config_password.get_secret_value() == "S3cret!"


def test_invalid_cidr_in_config_is_fatal(tmp_path: Path):
    cfg = _config(tmp_path, """
        network_cidr: 192.168.100.0/25
        domain: armani.lab
        admin_password: S3cret!
        config_password: ""
    """)
    result = runner.invoke(app_mod.app, ["openldap", "--config", str(cfg)])

    assert result.exit_code == 1
    assert "fatal: network_cidr: CIDR subnet too small" in result.output
    assert FakeOrchestrator.services == []


def test_missing_config_file_is_fatal(tmp_path: Path):
    result = runner.invoke(app_mod.app, ["openldap", "--config", str(tmp_path / "nope.yaml")])
    assert result.exit_code == 1
    assert "fatal: config file not found" in result.output


def test_malformed_config_is_fatal(tmp_path: Path):
    cfg = _config(tmp_path, "domain: [unclosed\n")
    result = runner.invoke(app_mod.app, ["openldap", "--config", str(cfg)])

    assert result.exit_code == 1
    assert "fatal: failed to read" in result.output
    assert FakeOrchestrator.services == []


def test_failed_run_exits_1_without_snapshot(tmp_path: Path):
    FakeOrchestrator.report = BootstrapReport(
        service="",
        stage=Stage.FAILED,
        failed_stage=Stage.CONNECTING_CLUSTER,
        error=ConnectivityError("cannot reach cluster; verify kubeconfig and k3s"),
    )
    cfg = _config(tmp_path, """
        network_cidr: 10.0.0.0/16
        domain: example.lab
        admin_password: pw
        config_password: ""
    """)
    snap = tmp_path / "snap.json"
    result = runner.invoke(app_mod.app, ["openldap", "--config", str(cfg), "--snapshot", str(snap)])

    assert result.exit_code == 1
    assert "fatal: cannot reach cluster; verify kubeconfig and k3s" in result.output
    assert not snap.exists()


def test_gitlab_command(tmp_path: Path):
    FakeOrchestrator.report = BootstrapReport(service="", stage=Stage.DONE, credential="rootpw")
    cfg = _config(tmp_path, """
        domain: example.lab
        enable_https: true
        cert_manager_email: ops@example.lab
        smtp_password: mailpw
    """)
    snap = tmp_path / "infractl.gitlab.json"
    result = runner.invoke(app_mod.app, ["gitlab", "--config", str(cfg), "--snapshot", str(snap)])

    assert result.exit_code == 0, result.output
    assert "URL: https://gitlab.example.lab" in result.output
    assert "Initial root password: rootpw" in result.output
    assert "mailpw" not in snap.read_text()
    assert FakeOrchestrator.services[0].name == "gitlab"


def _ldap_config(tmp_path: Path) -> Path:
    return _config(tmp_path, """
        network_cidr: 10.0.0.0/16
        domain: example.lab
        admin_password: pw
        config_password: ""
    """)


def test_debug_adds_console_observer(tmp_path: Path):
    snap = tmp_path / "snap.json"
    result = runner.invoke(app_mod.app, ["openldap", "--config", str(_ldap_config(tmp_path)),
                                         "--snapshot", str(snap), "--debug"])

    assert result.exit_code == 0, result.output
    assert "StageStarted run=" in result.output
    assert "service=openldap" in result.output


def test_events_go_to_jsonl_without_console(tmp_path: Path):
    snap = tmp_path / "snap.json"
    result = runner.invoke(app_mod.app, ["openldap", "--config", str(_ldap_config(tmp_path)),
                                         "--snapshot", str(snap)])

    assert result.exit_code == 0, result.output
    assert "StageStarted run=" not in result.output
    lines = [json.loads(x) for f in (tmp_path / "logs").glob("*.jsonl") for x in f.read_text().splitlines()]
    assert [x["type"] for x in lines] == ["StageStarted"]
