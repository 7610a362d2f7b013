import io
import tarfile
from pathlib import Path
from typing import Optional

import pytest
import yaml


def build_chart_archive(
    dest: Path,
    *,
    name: str = "openldap-stack-ha",
    version: str = "4.3.3",
    values: Optional[dict] = None,
    dependencies: Optional[list] = None,
) -> Path:
    """Write a minimal packaged chart (<name>-<version>.tgz) into *dest*."""
    dest.mkdir(parents=True, exist_ok=True)
    meta = {"apiVersion": "v2", "name": name, "version": version, "appVersion": "2.6.9"}
    if dependencies:
        meta["dependencies"] = dependencies

    files = {f"{name}/Chart.yaml": yaml.safe_dump(meta)}
    if values is not None:
        files[f"{name}/values.yaml"] = yaml.safe_dump(values)

    archive = dest / f"{name}-{version}.tgz"
    with tarfile.open(archive, "w:gz") as tf:
        for member, text in files.items():
            data = text.encode()
            info = tarfile.TarInfo(member)
            info.size = len(data)
            tf.addfile(info, io.BytesIO(data))
    return archive


@pytest.fixture
def chart_builder():
    return build_chart_archive


@pytest.fixture
def make_chart(tmp_path: Path):
    def _make(**kw):
        return build_chart_archive(tmp_path / "charts", **kw)
    return _make


class Capture:
    """Observer that records every event it is notified of."""

    def __init__(self):
        self.events = []

    def notify(self, event):
        self.events.append(event)

    def names(self):
        return [e.__class__.__name__ for e in self.events]

    def of(self, cls):
        return [e for e in self.events if isinstance(e, cls)]


@pytest.fixture
def capture():
    return Capture()


@pytest.fixture
def run_ctx():
    return {"run_id": "run-1", "service": "openldap", "namespace": "infra"}
