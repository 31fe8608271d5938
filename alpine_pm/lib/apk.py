from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Sequence

from .command import run_cmd

logger = logging.getLogger(__name__)


@dataclass
class ApkBackend:
    """Package backend on top of Alpine's apk."""

    dry_run: bool = False

    def update_index(self) -> bool:
        logger.info("Updating package index")
        r = run_cmd(["apk", "update"], check=False, dry_run=self.dry_run)
        if not r.ok:
            logger.error("apk update failed: %s", r.stderr.strip())
        return r.ok

    def install(self, packages: Sequence[str] | str) -> bool:
        pkgs = [packages] if isinstance(packages, str) else list(packages)
        if not pkgs:
            return True
        r = run_cmd(["apk", "add", "--no-cache", *pkgs], check=False, dry_run=self.dry_run)
        if not r.ok:
            logger.error("apk add %s failed: %s", " ".join(pkgs), r.stderr.strip())
        return r.ok

    def is_installed(self, package: str) -> bool:
        if self.dry_run:
            # Nothing was really installed in dry-run.
            return False
        r = run_cmd(["apk", "info", "--installed", package], check=False)
        return r.ok and bool(r.stdout.strip())

    def remove(self, package: str) -> bool:
        r = run_cmd(["apk", "del", package], check=False, dry_run=self.dry_run)
        if not r.ok:
            logger.error("apk del %s failed: %s", package, r.stderr.strip())
        return r.ok

    def installed_count(self) -> int:
        r = run_cmd(["apk", "info"], check=False, dry_run=self.dry_run)
        return len([ln for ln in r.stdout.splitlines() if ln.strip()])
