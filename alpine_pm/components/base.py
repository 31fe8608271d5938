from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Protocol

from ..catalog import Component
from ..errors import AlpinePMError, InstallError

logger = logging.getLogger(__name__)


class PackageBackend(Protocol):
    def update_index(self) -> bool:
        ...

    def install(self, packages: Any) -> bool:
        ...

    def is_installed(self, package: str) -> bool:
        ...

    def remove(self, package: str) -> bool:
        ...


class ServiceBackend(Protocol):
    def enable(self, service: str, runlevel: str = "default") -> bool:
        ...

    def disable(self, service: str, runlevel: str = "default") -> bool:
        ...

    def start(self, service: str) -> bool:
        ...

    def stop(self, service: str) -> bool:
        ...

    def status(self, service: str) -> str:
        ...


@dataclass(frozen=True)
class InstallContext:
    component: Component
    packages: PackageBackend
    services: ServiceBackend
    dry_run: bool = False

    def option(self, key: str, default: Any) -> Any:
        return (self.component.options or {}).get(key, default)


class ComponentAdapter(Protocol):
    """Installer for one catalog component id.

    install() raises InstallError (or any RuntimeError/OSError) on failure;
    status() is the live "already installed" probe.
    """

    component_id: str

    def install(self, ctx: InstallContext) -> None:
        ...

    def status(self, ctx: InstallContext) -> bool:
        ...

    def uninstall(self, ctx: InstallContext) -> None:
        ...


def write_file(path: str, contents: str, *, dry_run: bool, append: bool = False) -> None:
    p = Path(path)
    if dry_run:
        logger.info("Would %s %s", "append to" if append else "write", str(p))
        return
    p.parent.mkdir(parents=True, exist_ok=True)
    if append:
        with p.open("a", encoding="utf-8") as f:
            f.write(contents)
    else:
        p.write_text(contents, encoding="utf-8")


class PackageComponent:
    """A component that is one apk package plus optional configuration."""

    component_id = ""
    package = ""

    def install(self, ctx: InstallContext) -> None:
        if not ctx.packages.install(self.package):
            raise InstallError(self.component_id, f"apk add {self.package} failed")
        self.configure(ctx)

    def configure(self, ctx: InstallContext) -> None:
        pass

    def status(self, ctx: InstallContext) -> bool:
        return ctx.packages.is_installed(self.package)

    def uninstall(self, ctx: InstallContext) -> None:
        if not ctx.packages.remove(self.package):
            raise AlpinePMError(f"Failed to remove package {self.package}")
