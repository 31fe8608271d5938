from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import List

from ..errors import InstallError
from ..lib.command import run_cmd
from .base import InstallContext, PackageComponent, write_file

logger = logging.getLogger(__name__)

SERVICE = "dropbear"
DEFAULT_PORT = 22

# (key type, file name, size argument)
HOST_KEYS = [
    ("rsa", "dropbear_rsa_host_key", "2048"),
    ("ecdsa", "dropbear_ecdsa_host_key", "256"),
]


def parse_port(value: object) -> int:
    try:
        port = int(str(value))
    except ValueError:
        port = -1
    if not 1 <= port <= 65535:
        logger.warning("Invalid SSH port %r, using %d", value, DEFAULT_PORT)
        return DEFAULT_PORT
    return port


def render_conf(
    *,
    port: int,
    disable_root_password: bool,
    key_only: bool,
    disable_root_login: bool,
) -> str:
    # -g: no password login for root, -s: no password auth at all, -w: no root login
    flags: List[str] = ["-p ${DROPBEAR_PORT}"]
    if disable_root_password:
        flags.append("-g")
    if key_only:
        flags.append("-s")
    if disable_root_login:
        flags.append("-w")
    return "\n".join(
        [
            "# Dropbear SSH server configuration (alpine-pm)",
            f'DROPBEAR_PORT="{port}"',
            f'DROPBEAR_OPTS="{" ".join(flags)}"',
            "",
        ]
    )


class DropbearSSH(PackageComponent):
    component_id = "dropbear-ssh"
    package = "dropbear"

    def __init__(self, keys_dir: str = "/etc/dropbear", conf_file: str = "/etc/conf.d/dropbear"):
        self.keys_dir = keys_dir
        self.conf_file = conf_file

    def _generate_host_keys(self, *, dry_run: bool) -> None:
        if not dry_run:
            Path(self.keys_dir).mkdir(parents=True, exist_ok=True)
        for key_type, name, size in HOST_KEYS:
            key_path = Path(self.keys_dir) / name
            if key_path.exists():
                logger.info("%s host key already exists", key_type.upper())
                continue
            r = run_cmd(["dropbearkey", "-t", key_type, "-f", str(key_path), "-s", size], check=False, dry_run=dry_run)
            if not r.ok:
                raise InstallError(self.component_id, f"failed to generate {key_type} host key")
            if not dry_run:
                os.chmod(key_path, 0o600)

    def configure(self, ctx: InstallContext) -> None:
        self._generate_host_keys(dry_run=ctx.dry_run)

        conf = render_conf(
            port=parse_port(ctx.option("port", DEFAULT_PORT)),
            disable_root_password=bool(ctx.option("disable_root_password", True)),
            key_only=bool(ctx.option("key_only", False)),
            disable_root_login=bool(ctx.option("disable_root_login", False)),
        )
        write_file(self.conf_file, conf, dry_run=ctx.dry_run)

        if not ctx.option("start_service", True):
            logger.info("Dropbear service not started (start_service=false)")
            return
        if not (ctx.services.enable(SERVICE) and ctx.services.start(SERVICE)):
            raise InstallError(self.component_id, "failed to enable/start dropbear service")
        logger.info("Dropbear SSH service status: %s", ctx.services.status(SERVICE))

    def uninstall(self, ctx: InstallContext) -> None:
        # Stopping a service that never ran is not an error.
        if not ctx.services.stop(SERVICE):
            logger.warning("Could not stop %s service", SERVICE)
        if not ctx.services.disable(SERVICE):
            logger.warning("Could not disable %s service", SERVICE)
        super().uninstall(ctx)
