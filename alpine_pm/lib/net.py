from __future__ import annotations

import logging
from .command import run_cmd

logger = logging.getLogger(__name__)


def is_online(*, host: str = "8.8.8.8", dry_run: bool = False) -> bool:
    """Best-effort online check (single ping)."""

    r = run_cmd(["ping", "-c", "1", "-W", "5", host], check=False, dry_run=dry_run)
    if r.ok:
        logger.debug("Connectivity confirmed via ping to %s", host)
    return r.ok
