from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List, Sequence

from .components.base import PackageBackend
from .errors import PrerequisiteError
from .lib import system
from .lib.env import PATHS
from .lib.net import is_online

logger = logging.getLogger(__name__)

REQUIRED_TOOLS = ("apk", "rc-service", "rc-update")
MIN_MEMORY_MB = 256
MIN_DISK_MB = 500


@dataclass
class PrerequisiteChecker:
    """Checks run before any queue is built; every failure is fatal."""

    packages: PackageBackend
    tools: Sequence[str] = field(default_factory=lambda: list(REQUIRED_TOOLS))
    min_memory_mb: int = MIN_MEMORY_MB
    min_disk_mb: int = MIN_DISK_MB
    release_file: str = PATHS.alpine_release
    dry_run: bool = False

    def environment_failures(self) -> List[str]:
        """Local checks that need no network: privileges, OS, tooling."""

        out: List[str] = []
        if not system.is_root():
            out.append("must be run as root")
        if not system.is_alpine(self.release_file):
            out.append("not running on Alpine Linux")
        missing = system.missing_commands(self.tools)
        if missing:
            out.append("missing required commands: " + ", ".join(missing))
        return out

    def failures(self) -> List[str]:
        out = self.environment_failures()
        if not is_online(dry_run=self.dry_run):
            out.append("no internet connectivity")

        mem = system.memory_mb()
        if mem and mem < self.min_memory_mb:
            out.append(f"insufficient memory: {mem} MB (need {self.min_memory_mb} MB)")
        disk = system.disk_free_mb("/")
        if disk < self.min_disk_mb:
            out.append(f"insufficient disk space: {disk} MB free (need {self.min_disk_mb} MB)")
        return out

    def _raise_for(self, failures: List[str]) -> None:
        if failures:
            for f in failures:
                logger.error("Prerequisite failed: %s", f)
            raise PrerequisiteError(failures)

    def check_environment(self) -> None:
        logger.info("Checking installer environment")
        self._raise_for(self.environment_failures())

    def verify(self) -> None:
        logger.info("Checking system prerequisites")
        self._raise_for(self.failures())

        if not self.packages.update_index():
            raise PrerequisiteError(["failed to update package repository"])
        logger.info("System prerequisites satisfied")
