from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Literal

from .command import run_cmd

logger = logging.getLogger(__name__)

ServiceStatus = Literal["running", "stopped"]


@dataclass
class OpenRCBackend:
    """Service backend on top of rc-service / rc-update."""

    dry_run: bool = False

    def enable(self, service: str, runlevel: str = "default") -> bool:
        return run_cmd(["rc-update", "add", service, runlevel], check=False, dry_run=self.dry_run).ok

    def disable(self, service: str, runlevel: str = "default") -> bool:
        return run_cmd(["rc-update", "del", service, runlevel], check=False, dry_run=self.dry_run).ok

    def start(self, service: str) -> bool:
        return run_cmd(["rc-service", service, "start"], check=False, dry_run=self.dry_run).ok

    def stop(self, service: str) -> bool:
        return run_cmd(["rc-service", service, "stop"], check=False, dry_run=self.dry_run).ok

    def status(self, service: str) -> ServiceStatus:
        if self.dry_run:
            return "stopped"
        r = run_cmd(["rc-service", service, "status"], check=False)
        return "running" if r.ok and "started" in r.stdout else "stopped"
