from __future__ import annotations

import logging
import shutil
from pathlib import Path
from typing import List

from ..lib.command import run_cmd
from .base import InstallContext, PackageComponent, write_file

logger = logging.getLogger(__name__)

FISHER_BOOTSTRAP = "curl -sL https://git.io/fisher | source && fisher install jorgebucaran/fisher"

FISH_CONFIG = """\
# Fish shell configuration (alpine-pm)
set fish_greeting "Welcome to Fish shell on Alpine Linux!"

alias ll='ls -la'
alias la='ls -A'
alias ..='cd ..'
alias grep='grep --color=auto'

set -gx PATH /usr/local/bin /usr/bin /bin /usr/local/sbin /usr/sbin /sbin

function fish_prompt
    set_color $fish_color_cwd
    echo -n (basename (prompt_pwd))
    set_color normal
    echo -n ' $ '
end
"""


class FishShell(PackageComponent):
    component_id = "fish-shell"
    package = "fish"

    def __init__(self, shells_file: str = "/etc/shells", config_dir: str = "/root/.config/fish"):
        self.shells_file = shells_file
        self.config_dir = config_dir

    def _fish_path(self) -> str:
        return shutil.which("fish") or "/usr/bin/fish"

    def _register_shell(self, fish_path: str, *, dry_run: bool) -> None:
        p = Path(self.shells_file)
        if p.exists() and fish_path in p.read_text(encoding="utf-8").split():
            logger.info("Fish shell already listed in %s", p)
            return
        write_file(self.shells_file, fish_path + "\n", dry_run=dry_run, append=True)

    def _install_plugins(self, plugins: List[str], *, dry_run: bool) -> None:
        r = run_cmd(["fish", "-c", FISHER_BOOTSTRAP], check=False, dry_run=dry_run)
        if not r.ok:
            logger.warning("Failed to install Fisher package manager; skipping plugins")
            return
        for plugin in plugins:
            if not run_cmd(["fish", "-c", f"fisher install {plugin}"], check=False, dry_run=dry_run).ok:
                logger.warning("Fish plugin %s failed to install", plugin)

    def configure(self, ctx: InstallContext) -> None:
        fish_path = self._fish_path()
        self._register_shell(fish_path, dry_run=ctx.dry_run)

        if ctx.option("default_shell", False):
            r = run_cmd(["chsh", "-s", fish_path, "root"], check=False, dry_run=ctx.dry_run)
            if r.ok:
                logger.info("Fish set as default shell for root")
            else:
                logger.warning("Failed to set Fish as default shell for root")

        config_file = Path(self.config_dir) / "config.fish"
        if config_file.exists():
            logger.info("Fish configuration already exists: %s", config_file)
        else:
            write_file(str(config_file), FISH_CONFIG, dry_run=ctx.dry_run)

        plugins = [str(p) for p in (ctx.option("plugins", []) or [])]
        if plugins:
            self._install_plugins(plugins, dry_run=ctx.dry_run)
