from __future__ import annotations

import logging
import time

from ..errors import ConfigError
from .command import run_cmd

logger = logging.getLogger(__name__)


def is_url(source: str) -> bool:
    return source.startswith(("http://", "https://"))


def fetch_text(url: str, *, retries: int = 3, delay_s: float = 2.0) -> str:
    """Download *url* with curl, retrying a few times before giving up."""

    for attempt in range(1, retries + 1):
        r = run_cmd(
            ["curl", "-fsSL", "--connect-timeout", "10", "--max-time", "60", url],
            check=False,
        )
        if r.ok:
            logger.debug("Downloaded %s (%d bytes)", url, len(r.stdout))
            return r.stdout
        logger.warning("Download attempt %d failed for %s", attempt, url)
        if attempt < retries:
            time.sleep(delay_s)

    raise ConfigError(f"Failed to download configuration from {url} after {retries} attempts")
