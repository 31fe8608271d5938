from __future__ import annotations

import logging
import re
from pathlib import Path

from ..errors import AlpinePMError, InstallError
from ..lib.env import PATHS
from ..lib.system import alpine_version, backup_file, restore_file
from .base import InstallContext, write_file

logger = logging.getLogger(__name__)

DEFAULT_MIRROR = "http://dl-cdn.alpinelinux.org/alpine"
FALLBACK_STABLE = "3.18"


def render_edge(mirror: str, *, testing: bool) -> str:
    return "\n".join(
        [
            "# Alpine Edge repositories - configured by Alpine Package Manager",
            f"{mirror}/edge/main",
            f"{mirror}/edge/community",
            ("" if testing else "#") + f"{mirror}/edge/testing",
            "",
        ]
    )


def render_stable(mirror: str, version: str) -> str:
    return "\n".join(
        [
            f"# Alpine stable repositories - v{version}",
            f"{mirror}/v{version}/main",
            f"{mirror}/v{version}/community",
            "",
        ]
    )


def stable_branch(release: str) -> str:
    m = re.match(r"^(\d+)\.(\d+)", release)
    return f"{m.group(1)}.{m.group(2)}" if m else FALLBACK_STABLE


class EdgeRepositories:
    component_id = "edge-repositories"

    def __init__(
        self,
        repositories_file: str = PATHS.apk_repositories,
        release_file: str = PATHS.alpine_release,
        backup_dir: str = PATHS.backup_dir,
    ):
        self.repositories_file = repositories_file
        self.release_file = release_file
        self.backup_dir = backup_dir

    def _active_lines(self) -> list[str]:
        p = Path(self.repositories_file)
        if not p.exists():
            return []
        lines = [ln.strip() for ln in p.read_text(encoding="utf-8").splitlines()]
        return [ln for ln in lines if ln and not ln.startswith("#")]

    def status(self, ctx: InstallContext) -> bool:
        lines = self._active_lines()
        return any(ln.endswith("/edge/main") for ln in lines) and any(
            ln.endswith("/edge/community") for ln in lines
        )

    def _switch(self, ctx: InstallContext, contents: str) -> None:
        backup = None if ctx.dry_run else backup_file(self.repositories_file, backup_dir=self.backup_dir)
        write_file(self.repositories_file, contents, dry_run=ctx.dry_run)
        if not ctx.packages.update_index():
            if backup:
                restore_file(self.repositories_file, backup)
            raise InstallError(self.component_id, "failed to update package index with new repositories")

    def install(self, ctx: InstallContext) -> None:
        if self.status(ctx):
            logger.info("Edge repositories are already configured")
            return
        mirror = str(ctx.option("mirror", DEFAULT_MIRROR)).rstrip("/")
        testing = bool(ctx.option("testing", False))
        self._switch(ctx, render_edge(mirror, testing=testing))
        logger.info("Edge repositories configured (testing=%s)", testing)

    def uninstall(self, ctx: InstallContext) -> None:
        mirror = str(ctx.option("mirror", DEFAULT_MIRROR)).rstrip("/")
        version = stable_branch(alpine_version(self.release_file))
        try:
            self._switch(ctx, render_stable(mirror, version))
        except InstallError as e:
            raise AlpinePMError(f"Failed to restore stable repositories: {e.reason}") from e
        logger.info("Stable repositories restored (v%s)", version)
