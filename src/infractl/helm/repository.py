# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/infractl/helm/repository.py

from __future__ import annotations

import logging
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Dict, List, Optional
from urllib.parse import urlparse

import requests
import yaml
from pydantic import BaseModel, ConfigDict, Field, field_validator

from infractl.config.models import RepoSpec
from infractl.config.settings import HelmSettings
from infractl.errors import RepositoryResolutionError
from infractl.observers.dispatcher import EventBus
from infractl.observers.events import RepoAdded, RepoIndexDirectFailed, RepoIndexFetched

log = logging.getLogger("infractl")

USER_AGENT = "infractl (helm-compatible repository client)"


class InvalidIndexError(ValueError):
    pass


class RepoEntry(BaseModel):
    """One entry of Helm's repositories.yaml."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    name: str
    url: str
    username: Optional[str] = None
    password: Optional[str] = None
    ca_file: Optional[str] = Field(default=None, alias="caFile")
    cert_file: Optional[str] = Field(default=None, alias="certFile")
    key_file: Optional[str] = Field(default=None, alias="keyFile")
    insecure_skip_tls_verify: bool = False
    pass_credentials_all: bool = False

    @classmethod
    def from_spec(cls, spec: RepoSpec) -> "RepoEntry":
        return cls(
            name=spec.name,
            url=spec.url,
            username=spec.username,
            password=spec.password.get_secret_value() if spec.password else None,
            ca_file=spec.ca_file,
            insecure_skip_tls_verify=spec.insecure_skip_tls_verify,
        )


class RepositoryFile(BaseModel):
    """Helm's repository registration file, keyed by entry name."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    api_version: str = Field(default="", alias="apiVersion")
    generated: str = ""
    repositories: List[RepoEntry] = Field(default_factory=list)

    @field_validator("generated", mode="before")
    @classmethod
    def _generated_as_text(cls, v):
        # yaml may already have parsed the timestamp
        if isinstance(v, datetime):
            return v.isoformat()
        return v or ""

    @classmethod
    def load(cls, path: Path) -> "RepositoryFile":
        """A missing file is an empty registration set."""
        if not path.exists():
            return cls()
        data = yaml.safe_load(path.read_text()) or {}
        if not isinstance(data, dict):
            raise ValueError(f"Expected mapping in {path}, got {type(data).__name__}")
        return cls.model_validate(data)

    def get(self, name: str) -> Optional[RepoEntry]:
        for entry in self.repositories:
            if entry.name == name:
                return entry
        return None

    def update(self, *entries: RepoEntry) -> None:
        """Insert or replace entries by name (last write wins)."""
        for entry in entries:
            for i, existing in enumerate(self.repositories):
                if existing.name == entry.name:
                    self.repositories[i] = entry
                    break
            else:
                self.repositories.append(entry)

    def write(self, path: Path, mode: int = 0o600) -> None:
        self.generated = datetime.now(timezone.utc).isoformat()
        path.parent.mkdir(parents=True, exist_ok=True)
        data = self.model_dump(by_alias=True, exclude_none=True)
        fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, mode)
        with os.fdopen(fd, "w") as f:
            f.write(yaml.safe_dump(data, sort_keys=False))
        # an existing file keeps its old mode through O_CREAT
        os.chmod(path, mode)


# ----------------------------------------------------------------------
# Transports
# ----------------------------------------------------------------------

class HTTPGetter:
    """http(s) transport honouring the entry's credentials and TLS options."""

    def __init__(self, entry: RepoEntry, *, timeout: int = 30, session: Optional[requests.Session] = None):
        self.entry = entry
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.setdefault("User-Agent", USER_AGENT)

        if entry.username and entry.password:
            self.session.auth = (entry.username, entry.password)
        if entry.insecure_skip_tls_verify:
            self.session.verify = False
        elif entry.ca_file:
            self.session.verify = entry.ca_file
        if entry.cert_file and entry.key_file:
            self.session.cert = (entry.cert_file, entry.key_file)

    def get(self, url: str) -> bytes:
        resp = self.session.get(url, timeout=self.timeout)
        resp.raise_for_status()
        return resp.content


Getter = Callable[[RepoEntry], HTTPGetter]


def all_getters() -> Dict[str, Getter]:
    return {"http": HTTPGetter, "https": HTTPGetter}


def index_url(repo_url: str) -> str:
    return repo_url.rstrip("/") + "/index.yaml"


def load_index(raw: bytes) -> dict:
    try:
        data = yaml.safe_load(raw)
    except yaml.YAMLError as e:
        raise InvalidIndexError(f"index is not valid YAML: {e}") from e
    if not isinstance(data, dict):
        raise InvalidIndexError("index is not a mapping")
    if not data.get("apiVersion"):
        raise InvalidIndexError("no API version specified")
    if not isinstance(data.get("entries") or {}, dict):
        raise InvalidIndexError("index entries is not a mapping")
    return data


def index_cache_path(cache_dir: Path, name: str) -> Path:
    return cache_dir / f"{name}-index.yaml"


class ChartRepository:
    def __init__(self, entry: RepoEntry, getters: Dict[str, Getter], cache_dir: Path):
        scheme = urlparse(entry.url).scheme
        factory = getters.get(scheme)
        if factory is None:
            raise RepositoryResolutionError(
                f"could not find protocol handler for: {scheme or entry.url}"
            )
        self.entry = entry
        self.cache_dir = cache_dir
        self.client = factory(entry)

    def download_index_file(self) -> Path:
        """
        Fetch and validate the repository index, then cache it
        (``<name>-index.yaml`` plus ``<name>-charts.txt``).
        """
        raw = self.client.get(index_url(self.entry.url))
        index = load_index(raw)

        self.cache_dir.mkdir(parents=True, exist_ok=True)
        charts = sorted((index.get("entries") or {}).keys())
        (self.cache_dir / f"{self.entry.name}-charts.txt").write_text("\n".join(charts) + "\n")

        path = index_cache_path(self.cache_dir, self.entry.name)
        path.write_bytes(raw)
        return path


def fetch_index(repo_url: str, *, timeout: int = 30) -> bytes:
    """Plain HTTP GET of ``<repo_url>/index.yaml`` (redirects followed)."""
    resp = requests.get(index_url(repo_url), timeout=timeout, allow_redirects=True)
    resp.raise_for_status()
    return resp.content


class RepositoryResolver:
    """
    Registers Helm repositories the way ``helm repo add`` does, with a
    fallback for hosts that cannot use the repository transport directly
    but can still reach the raw index file.
    """

    def __init__(
        self,
        settings: HelmSettings,
        *,
        bus: Optional[EventBus] = None,
        run_ctx: Optional[dict] = None,
        getters: Optional[Dict[str, Getter]] = None,
        timeout: int = 30,
    ):
        self.settings = settings
        self.bus = bus or EventBus()
        self.run_ctx = run_ctx or {}
        self.getters = getters if getters is not None else all_getters()
        self.timeout = timeout

    def _emit(self, event_cls, **kwargs) -> None:
        if self.run_ctx:
            self.bus.emit(event_cls(**kwargs, **self.run_ctx))

    def add_repository(self, name: str, url: str, *, spec: Optional[RepoSpec] = None) -> RepoEntry:
        entry = RepoEntry.from_spec(spec) if spec else RepoEntry(name=name, url=url)
        entry.name, entry.url = name, url

        repo = ChartRepository(entry, self.getters, self.settings.repository_cache)

        log.debug("Attempting to download index file from %s", url)
        try:
            path = repo.download_index_file()
            via = "direct"
        except (requests.RequestException, InvalidIndexError, OSError) as e:
            log.debug("Failed to download index file directly: %s", e)
            self._emit(RepoIndexDirectFailed, name=name, url=url, error=str(e))
            path = self._fallback_download(name, url)
            via = "fallback"

        log.debug("Index for %s cached at %s (%s)", name, path, via)
        self._emit(RepoIndexFetched, name=name, path=str(path), via=via)

        repo_file_path = self.settings.repository_config
        try:
            repo_file = RepositoryFile.load(repo_file_path)
        except (ValueError, yaml.YAMLError) as e:
            log.warning("Ignoring unreadable repository file %s: %s", repo_file_path, e)
            repo_file = RepositoryFile()

        repo_file.update(entry)
        try:
            repo_file.write(repo_file_path)
        except OSError as e:
            raise RepositoryResolutionError(f"failed to write repository file: {e}") from e

        log.info("Added Helm repository: %s", name)
        self._emit(RepoAdded, name=name, url=url)
        return entry

    def _fallback_download(self, name: str, url: str) -> Path:
        log.debug("Attempting to download index file over plain HTTP...")
        try:
            raw = fetch_index(url, timeout=self.timeout)
        except requests.RequestException as e:
            raise RepositoryResolutionError(
                f"failed to download index file for {name} ({index_url(url)}): {e}"
            ) from e

        cache_dir = self.settings.repository_cache
        path = index_cache_path(cache_dir, name)
        try:
            cache_dir.mkdir(parents=True, exist_ok=True)
            path.write_bytes(raw)
        except OSError as e:
            raise RepositoryResolutionError(f"failed to write index file: {e}") from e

        return path
