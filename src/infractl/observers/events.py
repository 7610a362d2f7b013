# src/infractl/observers/events.py

from __future__ import annotations
from dataclasses import dataclass, asdict, field
from typing import List, Dict, Any, Optional
from datetime import datetime, timezone
import uuid


def _utcnow() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="seconds").replace("+00:00", "Z")


# ---------------------------------------------------------------------
# Base context and helper
# ---------------------------------------------------------------------
@dataclass(frozen=True, kw_only=True)
class BaseEvent:
    run_id: str       # correlates all events in a single bootstrap invocation
    service: str      # openldap/gitlab
    namespace: str    # target namespace
    ts: str = field(default_factory=_utcnow)

    def dict(self) -> Dict[str, Any]:
        return asdict(self)


def new_ctx(service: str, namespace: str, run_id: Optional[str] = None) -> Dict[str, Any]:
    return {
        "run_id": run_id or str(uuid.uuid4()),
        "service": service,
        "namespace": namespace,
    }


# ---------------------------------------------------------------------
# Stage lifecycle (orchestrator)
# ---------------------------------------------------------------------
@dataclass(frozen=True)
class StageStarted(BaseEvent):
    stage: str

@dataclass(frozen=True)
class StageSucceeded(BaseEvent):
    stage: str
    duration_ms: int

@dataclass(frozen=True)
class StageFailed(BaseEvent):
    stage: str
    kind: str
    error: str


# ---------------------------------------------------------------------
# Cluster
# ---------------------------------------------------------------------
@dataclass(frozen=True)
class ClusterReachable(BaseEvent):
    nodes: List[str]

@dataclass(frozen=True)
class NamespaceEnsured(BaseEvent):
    name: str
    created: bool

@dataclass(frozen=True)
class ManifestApplied(BaseEvent):
    name: str          # logical manifest name
    output: str


# ---------------------------------------------------------------------
# Repository lifecycle
# ---------------------------------------------------------------------
@dataclass(frozen=True)
class RepoIndexDirectFailed(BaseEvent):
    name: str
    url: str
    error: str

@dataclass(frozen=True)
class RepoIndexFetched(BaseEvent):
    name: str
    path: str
    via: str          # "direct" | "fallback"

@dataclass(frozen=True)
class RepoAdded(BaseEvent):
    name: str
    url: str


# ---------------------------------------------------------------------
# Release lifecycle (Helm)
# ---------------------------------------------------------------------
@dataclass(frozen=True)
class ChartLoaded(BaseEvent):
    chart: str
    version: str
    path: str

@dataclass(frozen=True)
class ValuesContractWarning(BaseEvent):
    chart: str
    unknown_keys: List[str]

@dataclass(frozen=True)
class ReleaseStarted(BaseEvent):
    name: str
    chart: str

@dataclass(frozen=True)
class ReleaseSucceeded(BaseEvent):
    name: str
    revision: int
    duration_ms: int

@dataclass(frozen=True)
class ReleaseFailed(BaseEvent):
    name: str
    error: str

@dataclass(frozen=True)
class PodStatus(BaseEvent):
    release: str
    ready: Optional[bool]   # None when readiness could not be determined
    output: str


# ---------------------------------------------------------------------
# Credential & summary
# ---------------------------------------------------------------------
@dataclass(frozen=True)
class CredentialRetrieved(BaseEvent):
    secret: str
    key: str
    found: bool

@dataclass(frozen=True)
class BootstrapSummary(BaseEvent):
    status: str          # "OK" or "FAILED"
    stage: str
    error: Optional[str] = None
