from __future__ import annotations

from typing import Dict

from .base import ComponentAdapter, InstallContext, PackageComponent
from .dropbear_ssh import DropbearSSH
from .edge_repositories import EdgeRepositories
from .fish_shell import FishShell
from .nano_editor import NanoEditor


def build_registry() -> Dict[str, ComponentAdapter]:
    """Explicit component id -> adapter mapping."""

    adapters = [
        EdgeRepositories(),
        FishShell(),
        NanoEditor(),
        DropbearSSH(),
    ]
    return {a.component_id: a for a in adapters}


__all__ = [
    "ComponentAdapter",
    "DropbearSSH",
    "EdgeRepositories",
    "FishShell",
    "InstallContext",
    "NanoEditor",
    "PackageComponent",
    "build_registry",
]
