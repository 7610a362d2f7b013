import pytest

from infractl.bootstrap import orchestrator as orch_mod
from infractl.bootstrap.orchestrator import Orchestrator, Stage
from infractl.bootstrap.services.gitlab import GitLabService
from infractl.bootstrap.services.openldap import OpenLDAPService
from infractl.config.models import BootstrapConfig, GitLabConfig
from infractl.errors import (
    ChartNotFoundError,
    ClusterConfigError,
    ConnectivityError,
    ManifestApplyError,
    PackageInstallError,
    RepositoryResolutionError,
)
from infractl.helm.cli_runner import Release
from infractl.kube.kubectl import KubectlError
from infractl.observers.dispatcher import EventBus
from infractl.observers.events import (
    BootstrapSummary,
    PodStatus,
    StageFailed,
    StageStarted,
)


class FakeKubectl:
    executable = "kubectl"

    def __init__(self, *, reachable=True, pods="ldap-0   1/1   Running   0   1m"):
        self.reachable = reachable
        self.pods = pods
        self.calls = []

    def check_connectivity(self):
        self.calls.append("connectivity")
        if not self.reachable:
            raise ConnectivityError("cannot reach cluster; verify kubeconfig and k3s")
        return ["node/k3s-1"]

    def ensure_namespace(self, name):
        self.calls.append(f"ns:{name}")
        return True

    def get_pods(self, namespace, selector):
        self.calls.append(f"pods:{selector}")
        if self.pods is None:
            raise KubectlError("get pods failed")
        return self.pods


class FakeResolver:
    def __init__(self, error=None):
        self.error = error
        self.added = []

    def add_repository(self, name, url, *, spec=None):
        if self.error:
            raise self.error
        self.added.append((name, url))


class FakeHelm:
    binary = "helm"


class FakeInstaller:
    def __init__(self, error=None):
        self.helm = FakeHelm()
        self.error = error
        self.installs = []

    def install(self, release_name, chart_ref, namespace, values):
        self.installs.append((release_name, chart_ref, namespace, values))
        if self.error:
            raise self.error
        return Release(release_name, namespace, "chart", "1.0.0", 1, "deployed")


class FakeApplier:
    def __init__(self, error=None):
        self.error = error
        self.applied = []

    def apply_remediation(self, template, bindings, *, name=""):
        if self.error:
            raise self.error
        self.applied.append((template, name))
        return "applied"


class FakeSecrets:
    def __init__(self, value=""):
        self.value = value
        self.calls = []

    def fetch_decoded_secret_field(self, name, namespace, key):
        self.calls.append((name, namespace, key))
        return self.value


@pytest.fixture(autouse=True)
def _tools_present(monkeypatch):
    monkeypatch.setattr(orch_mod.shutil, "which", lambda name: f"/usr/bin/{name}")


@pytest.fixture
def service():
    return OpenLDAPService(
        BootstrapConfig(network_cidr="192.168.100.0/24", domain="armani.lab", admin_password="S3cret!")
    )


def _no_api(kubeconfig):
    raise ClusterConfigError("no cluster")


def _orchestrator(capture, run_ctx, sleeps=None, **parts):
    api_client_factory = parts.pop("api_client_factory", _no_api)
    defaults = dict(
        kubectl=FakeKubectl(),
        resolver=FakeResolver(),
        installer=FakeInstaller(),
        applier=FakeApplier(),
        secrets=FakeSecrets("S3cret!"),
    )
    defaults.update(parts)
    sleeps = sleeps if sleeps is not None else []
    return Orchestrator(
        **defaults,
        bus=EventBus([capture]),
        run_ctx=run_ctx,
        api_client_factory=api_client_factory,
        sleep=sleeps.append,
        poll_interval=0,
    )


def test_happy_path_runs_every_stage_in_order(service, capture, run_ctx):
    sleeps = []
    o = _orchestrator(capture, run_ctx, sleeps)
    report = o.run(service)

    assert report.ok
    assert report.stage is Stage.DONE
    assert report.error is None
    assert report.credential == "S3cret!"
    assert report.release.name == "ldap"

    started = [e.stage for e in capture.of(StageStarted)]
    assert started == [
        "validating",
        "connecting_cluster",
        "ensuring_namespace",
        "resolving_repository",
        "installing",
        "post_installing",
        "retrieving_credential",
    ]
    assert o.kubectl.calls[:2] == ["connectivity", "ns:infra"]
    assert o.resolver.added == [("helm-openldap", "https://jp-gouin.github.io/helm-openldap/")]
    release, chart_ref, ns, values = o.installer.installs[0]
    assert (release, chart_ref, ns) == ("ldap", "helm-openldap/openldap-stack-ha", "infra")
    assert values["global"]["ldapDomain"] == "armani.lab"
    assert o.applier.applied == [("memberof-job.yaml.j2", "ldap-memberof-setup")]
    assert o.secrets.calls == [("ldap", "infra", "LDAP_ADMIN_PASSWORD")]

    summary = capture.of(BootstrapSummary)[-1]
    assert summary.status == "OK"


def test_fixed_delay_fallback_when_api_unavailable(service, capture, run_ctx):
    sleeps = []
    report = _orchestrator(capture, run_ctx, sleeps).run(service)

    assert sleeps == [10]
    assert report.pods_ready is None
    status = capture.of(PodStatus)[0]
    assert status.ready is None
    assert "Running" in status.output


def test_readiness_poll_is_used_when_api_available(service, capture, run_ctx, monkeypatch):
    closed = []

    class FakeApi:
        def close(self):
            closed.append(True)

    seen = {}

    def fake_wait(api, *, namespace, selector, timeout_seconds, interval):
        seen.update(namespace=namespace, selector=selector, timeout=timeout_seconds)
        return True

    monkeypatch.setattr(orch_mod, "wait_for_pods_ready", fake_wait)
    sleeps = []
    o = _orchestrator(capture, run_ctx, sleeps, api_client_factory=lambda kc: FakeApi())
    report = o.run(service)

    assert report.pods_ready is True
    assert sleeps == []
    assert closed == [True]
    assert seen == {"namespace": "infra", "selector": "app.kubernetes.io/instance=ldap", "timeout": 120}


def test_pod_status_read_failure_is_swallowed(service, capture, run_ctx):
    report = _orchestrator(capture, run_ctx, kubectl=FakeKubectl(pods=None)).run(service)
    assert report.ok
    assert capture.of(PodStatus)[0].output == ""


def test_empty_credential_does_not_fail_the_run(service, capture, run_ctx):
    report = _orchestrator(capture, run_ctx, secrets=FakeSecrets("")).run(service)
    assert report.ok
    assert report.credential == ""


def test_missing_dependency_fails_validation(service, capture, run_ctx, monkeypatch):
    monkeypatch.setattr(orch_mod.shutil, "which", lambda name: None if name == "helm" else name)
    o = _orchestrator(capture, run_ctx)
    report = o.run(service)

    assert report.stage is Stage.FAILED
    assert report.failed_stage is Stage.VALIDATING
    assert report.error.kind == "dependency"
    assert o.kubectl.calls == []


@pytest.mark.parametrize(
    "parts, failed_stage, kind",
    [
        ({"kubectl": FakeKubectl(reachable=False)}, Stage.CONNECTING_CLUSTER, "connectivity"),
        ({"resolver": FakeResolver(RepositoryResolutionError("both paths failed"))},
         Stage.RESOLVING_REPOSITORY, "repository_resolution"),
        ({"installer": FakeInstaller(ChartNotFoundError("failed to locate chart"))},
         Stage.INSTALLING, "package_install"),
        ({"installer": FakeInstaller(PackageInstallError("cannot re-use a name that is still in use"))},
         Stage.INSTALLING, "package_install"),
        ({"applier": FakeApplier(ManifestApplyError("kubectl apply failed"))},
         Stage.POST_INSTALLING, "manifest_apply"),
    ],
)
def test_first_error_fails_fast(service, capture, run_ctx, parts, failed_stage, kind):
    secrets = FakeSecrets("S3cret!")
    report = _orchestrator(capture, run_ctx, secrets=secrets, **parts).run(service)

    assert report.stage is Stage.FAILED
    assert report.failed_stage is failed_stage
    assert report.error.kind == kind
    # nothing after the failing stage runs
    assert secrets.calls == []
    started = [e.stage for e in capture.of(StageStarted)]
    assert started[-1] == failed_stage.value

    failed = capture.of(StageFailed)
    assert len(failed) == 1 and failed[0].kind == kind
    summary = capture.of(BootstrapSummary)[-1]
    assert summary.status == "FAILED"
    assert summary.stage == failed_stage.value


def test_service_without_remediation_skips_apply(capture, run_ctx):
    svc = GitLabService(GitLabConfig(domain="example.lab"))
    sleeps = []
    o = _orchestrator(capture, run_ctx, sleeps)
    report = o.run(svc)

    assert report.ok
    assert o.applier.applied == []
    assert sleeps == [30]
    assert o.secrets.calls == [("gitlab-gitlab-initial-root-password", "infra", "password")]
