from __future__ import annotations

import logging
from pathlib import Path

from ..lib.env import PATHS
from ..lib.system import backup_file
from .base import InstallContext, PackageComponent, write_file

logger = logging.getLogger(__name__)

MARKER = "# alpine-pm nano config"

NANORC_BLOCK = f"""
{MARKER}
include "/usr/share/nano/*.nanorc"
set linenumbers
set mouse
set tabsize 4
set tabstospaces
set autoindent
set constantshow
set softwrap
set backup
set backupdir "/tmp"
"""


class NanoEditor(PackageComponent):
    component_id = "nano-editor"
    package = "nano"

    def __init__(self, nanorc: str = "/etc/nanorc", backup_dir: str = PATHS.backup_dir):
        self.nanorc = nanorc
        self.backup_dir = backup_dir

    def configure(self, ctx: InstallContext) -> None:
        if not ctx.option("configure", True):
            return
        p = Path(self.nanorc)
        if p.exists() and MARKER in p.read_text(encoding="utf-8"):
            logger.info("Nano configuration already present in %s", p)
            return
        if not ctx.dry_run:
            backup_file(self.nanorc, backup_dir=self.backup_dir)
        write_file(self.nanorc, NANORC_BLOCK, dry_run=ctx.dry_run, append=True)
        logger.info("Nano configuration written to %s", p)
