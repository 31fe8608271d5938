from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class Paths:
    records_dir: str = "/etc/alpine-pm/installed"
    log_default: str = "/var/log/alpine-package-manager.log"
    backup_dir: str = "/tmp/alpine-pm-backup"
    alpine_release: str = "/etc/alpine-release"
    apk_repositories: str = "/etc/apk/repositories"


PATHS = Paths()
