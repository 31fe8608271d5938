from __future__ import annotations

import logging
import os
import platform
import shutil
import time
from pathlib import Path
from typing import Iterable, List

from .env import PATHS

logger = logging.getLogger(__name__)


def is_root() -> bool:
    return hasattr(os, "geteuid") and os.geteuid() == 0


def alpine_version(release_file: str = PATHS.alpine_release) -> str:
    p = Path(release_file)
    if not p.exists():
        return "unknown"
    return p.read_text(encoding="utf-8").strip() or "unknown"


def is_alpine(release_file: str = PATHS.alpine_release) -> bool:
    return Path(release_file).exists()


def arch() -> str:
    return platform.machine()


def memory_mb(meminfo: str = "/proc/meminfo") -> int:
    p = Path(meminfo)
    if not p.exists():
        return 0
    for line in p.read_text(encoding="utf-8").splitlines():
        if line.startswith("MemTotal:"):
            parts = line.split()
            return int(parts[1]) // 1024
    return 0


def disk_free_mb(path: str = "/") -> int:
    return shutil.disk_usage(path).free // (1024 * 1024)


def missing_commands(names: Iterable[str]) -> List[str]:
    return [n for n in names if shutil.which(n) is None]


def backup_file(path: str, *, backup_dir: str = PATHS.backup_dir) -> str | None:
    """Copy *path* into backup_dir with a timestamp suffix; returns the backup path."""

    src = Path(path)
    if not src.exists():
        return None
    dst_dir = Path(backup_dir)
    dst_dir.mkdir(parents=True, exist_ok=True)
    dst = dst_dir / f"{src.name}.{time.strftime('%Y%m%d_%H%M%S')}.bak"
    shutil.copy2(src, dst)
    logger.debug("Backed up %s to %s", src, dst)
    return str(dst)


def restore_file(path: str, backup: str) -> None:
    shutil.copy2(backup, path)
    logger.info("Restored %s from %s", path, backup)
