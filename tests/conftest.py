"""
Shared pytest fixtures for alpine-pm tests.

Nothing here touches the real system: package and service backends are
fakes, and adapters only record what they were asked to do.
"""

import logging
from pathlib import Path
from typing import Dict, List, Optional, Set

import pytest

from alpine_pm.catalog import Catalog, parse_catalog
from alpine_pm.errors import InstallError
from alpine_pm.records import RecordStore


SAMPLE_CATALOG = """\
components:
  base-tools:
    name: "Base Tools"
    description: "Core utilities"
    category: "system"
    priority: 5
    dependencies: []
  web-server:
    name: "Web Server"
    description: "HTTP server"
    category: "network"
    priority: 20
    dependencies: [base-tools]
  web-app:
    name: "Web App"
    description: "Application behind the web server"
    category: "network"
    priority: 30
    dependencies: "[web-server, base-tools]"
  editor:
    name: "Editor"
    category: "editor"
    priority: 10
"""


class FakePackages:
    """In-memory package backend."""

    def __init__(self, dry_run: bool = False):
        self.dry_run = dry_run
        self.installed: Set[str] = set()
        self.failing: Set[str] = set()
        self.update_ok = True
        self.calls: List[str] = []

    def update_index(self) -> bool:
        self.calls.append("update")
        return self.update_ok

    def install(self, packages) -> bool:
        pkgs = [packages] if isinstance(packages, str) else list(packages)
        self.calls.extend(f"add {p}" for p in pkgs)
        if any(p in self.failing for p in pkgs):
            return False
        self.installed.update(pkgs)
        return True

    def is_installed(self, package: str) -> bool:
        return package in self.installed

    def remove(self, package: str) -> bool:
        self.calls.append(f"del {package}")
        self.installed.discard(package)
        return True

    def installed_count(self) -> int:
        return len(self.installed)


class FakeServices:
    """In-memory OpenRC stand-in."""

    def __init__(self, dry_run: bool = False):
        self.dry_run = dry_run
        self.enabled: Set[str] = set()
        self.running: Set[str] = set()
        self.ok = True

    def enable(self, service: str, runlevel: str = "default") -> bool:
        self.enabled.add(service)
        return self.ok

    def disable(self, service: str, runlevel: str = "default") -> bool:
        self.enabled.discard(service)
        return self.ok

    def start(self, service: str) -> bool:
        self.running.add(service)
        return self.ok

    def stop(self, service: str) -> bool:
        self.running.discard(service)
        return self.ok

    def status(self, service: str) -> str:
        return "running" if service in self.running else "stopped"


class FakeAdapter:
    """Component adapter that records calls; optionally fails or reports installed."""

    def __init__(self, component_id: str, *, fail: bool = False, installed: bool = False, log: Optional[List[str]] = None):
        self.component_id = component_id
        self.fail = fail
        self.installed = installed
        self.log = log if log is not None else []

    def install(self, ctx) -> None:
        self.log.append(f"install {self.component_id}")
        if self.fail:
            raise InstallError(self.component_id, "simulated failure")
        self.installed = True

    def status(self, ctx) -> bool:
        return self.installed

    def uninstall(self, ctx) -> None:
        self.log.append(f"uninstall {self.component_id}")
        self.installed = False


@pytest.fixture(autouse=True)
def wide_console(monkeypatch):
    """Keep rich from wrapping table cells in captured output."""
    monkeypatch.setenv("COLUMNS", "200")


@pytest.fixture(autouse=True)
def reset_logging():
    """Undo configure_logging() between tests."""
    root = logging.getLogger()
    level = root.level
    yield
    root.setLevel(level)
    for h in list(root.handlers):
        # pytest's own capture handlers are StreamHandler subclasses; leave them.
        if isinstance(h, logging.FileHandler) or type(h) is logging.StreamHandler:
            root.removeHandler(h)
            h.close()
    for attr in ("_alpine_pm_configured", "_alpine_pm_log_path"):
        if hasattr(root, attr):
            delattr(root, attr)


@pytest.fixture
def catalog() -> Catalog:
    return parse_catalog(SAMPLE_CATALOG, source="sample")


@pytest.fixture
def catalog_file(tmp_path: Path) -> str:
    p = tmp_path / "components.yaml"
    p.write_text(SAMPLE_CATALOG, encoding="utf-8")
    return str(p)


@pytest.fixture
def records(tmp_path: Path) -> RecordStore:
    return RecordStore(str(tmp_path / "installed"))


@pytest.fixture
def packages() -> FakePackages:
    return FakePackages()


@pytest.fixture
def services() -> FakeServices:
    return FakeServices()


@pytest.fixture
def call_log() -> List[str]:
    return []


@pytest.fixture
def adapters(catalog: Catalog, call_log: List[str]) -> Dict[str, FakeAdapter]:
    return {cid: FakeAdapter(cid, log=call_log) for cid in catalog.ids()}
