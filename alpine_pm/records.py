from __future__ import annotations

import getpass
import logging
import os
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional

from .catalog import Component, valid_id
from .errors import RecordError
from .lib.env import PATHS

logger = logging.getLogger(__name__)

_HEADER = "# Alpine Package Manager - Component Installation Record"


@dataclass(frozen=True)
class InstalledRecord:
    component_id: str
    name: str
    category: str
    installed_at: str
    os_version: str
    description: str = ""
    installed_by: str = ""

    def render(self) -> str:
        fields = [
            ("component", self.component_id),
            ("name", self.name),
            ("description", self.description),
            ("category", self.category),
            ("installed_date", self.installed_at),
            ("installed_by", self.installed_by),
            ("alpine_version", self.os_version),
        ]
        return "\n".join([_HEADER, *(f"{k}={v}" for k, v in fields)]) + "\n"

    @classmethod
    def parse(cls, component_id: str, text: str) -> "InstalledRecord":
        values: Dict[str, str] = {}
        for line in text.splitlines():
            line = line.strip()
            if not line or line.startswith("#") or "=" not in line:
                continue
            key, value = line.split("=", 1)
            values[key.strip()] = value.strip()
        return cls(
            component_id=values.get("component") or component_id,
            name=values.get("name") or component_id,
            category=values.get("category") or "misc",
            installed_at=values.get("installed_date") or "unknown",
            os_version=values.get("alpine_version") or "unknown",
            description=values.get("description", ""),
            installed_by=values.get("installed_by", ""),
        )


def _current_user() -> str:
    try:
        return getpass.getuser()
    except (KeyError, OSError):
        return "unknown"


class RecordStore:
    """Installed records: one marker file per component id under *root*."""

    def __init__(self, root: str = PATHS.records_dir):
        self.root = Path(root)

    def path_for(self, component_id: str) -> Path:
        if not valid_id(component_id):
            raise RecordError(component_id, "invalid component id")
        return self.root / component_id

    def exists(self, component_id: str) -> bool:
        return self.path_for(component_id).is_file()

    def get(self, component_id: str) -> Optional[InstalledRecord]:
        p = self.path_for(component_id)
        if not p.is_file():
            return None
        return InstalledRecord.parse(component_id, p.read_text(encoding="utf-8"))

    def all(self) -> List[InstalledRecord]:
        if not self.root.is_dir():
            return []
        out: List[InstalledRecord] = []
        for p in sorted(self.root.iterdir()):
            if p.is_file() and valid_id(p.name):
                out.append(InstalledRecord.parse(p.name, p.read_text(encoding="utf-8")))
        return out

    def write(self, component: Component, *, os_version: str) -> InstalledRecord:
        record = InstalledRecord(
            component_id=component.id,
            name=component.name,
            category=component.category,
            installed_at=time.strftime("%Y-%m-%d %H:%M:%S"),
            os_version=os_version,
            description=component.description,
            installed_by=_current_user(),
        )
        target = self.path_for(component.id)
        tmp = target.with_name(f".{component.id}.tmp")
        try:
            self.root.mkdir(parents=True, exist_ok=True)
            tmp.write_text(record.render(), encoding="utf-8")
            os.replace(tmp, target)
        except OSError as e:
            raise RecordError(component.id, str(e)) from e
        logger.debug("Marked component as installed: %s", component.id)
        return record

    def remove(self, component_id: str) -> None:
        p = self.path_for(component_id)
        if not p.is_file():
            raise RecordError(component_id, "not installed (no installation record found)")
        try:
            p.unlink()
        except OSError as e:
            raise RecordError(component_id, str(e)) from e
        logger.debug("Removed installation record: %s", component_id)
