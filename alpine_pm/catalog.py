from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterator, List, Mapping, Optional, Tuple

import yaml

from .errors import ConfigError, NotFoundError, UnknownIdError
from .lib.fetch import fetch_text, is_url

logger = logging.getLogger(__name__)

DEFAULT_PRIORITY = 999
DEFAULT_CATEGORY = "misc"
DEFAULT_DESCRIPTION = "No description available"

DEFAULT_CATALOG_PATH = str(Path(__file__).resolve().parent / "configs" / "components.yaml")

EXPORT_FORMATS = ("json", "env")

_ID_RE = re.compile(r"^[A-Za-z0-9_-]+$")
_KNOWN_KEYS = {"name", "description", "category", "priority", "dependencies", "options"}


def valid_id(component_id: str) -> bool:
    return bool(_ID_RE.match(component_id))


@dataclass(frozen=True)
class Component:
    id: str
    name: str
    description: str = DEFAULT_DESCRIPTION
    category: str = DEFAULT_CATEGORY
    priority: int = DEFAULT_PRIORITY
    dependencies: Tuple[str, ...] = ()
    # Free-form settings handed to the component's installer.
    options: Mapping[str, Any] = field(default_factory=dict, compare=False, hash=False)

    def to_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {
            "name": self.name,
            "description": self.description,
            "category": self.category,
            "priority": self.priority,
            "dependencies": list(self.dependencies),
        }
        if self.options:
            d["options"] = dict(self.options)
        return d


@dataclass(frozen=True)
class Catalog:
    """Immutable set of known components, keyed by id."""

    components: Mapping[str, Component]
    source: str = "<memory>"

    def get(self, component_id: str) -> Component:
        try:
            return self.components[component_id]
        except KeyError:
            raise NotFoundError(component_id) from None

    def __contains__(self, component_id: object) -> bool:
        return component_id in self.components

    def __len__(self) -> int:
        return len(self.components)

    def __iter__(self) -> Iterator[Component]:
        return iter(self.all())

    def ids(self) -> List[str]:
        return sorted(self.components)

    def all(self) -> List[Component]:
        return [self.components[cid] for cid in self.ids()]

    def by_category(self, category: str) -> List[Component]:
        return [c for c in self.all() if c.category == category]

    def categories(self) -> List[str]:
        return sorted({c.category for c in self.components.values()})

    def grouped(self) -> List[Tuple[str, List[Component]]]:
        return [(cat, self.by_category(cat)) for cat in self.categories()]

    def to_dict(self) -> Dict[str, Any]:
        return {"components": {c.id: c.to_dict() for c in self.all()}}


class _CatalogLoader(yaml.SafeLoader):
    """SafeLoader that refuses duplicate mapping keys.

    Plain safe_load keeps the last duplicate silently; a duplicated component
    id has to be a hard error instead.
    """


def _construct_unique_mapping(loader: _CatalogLoader, node: yaml.MappingNode, deep: bool = False) -> Dict[Any, Any]:
    loader.flatten_mapping(node)
    seen: Dict[Any, Any] = {}
    for key_node, value_node in node.value:
        key = loader.construct_object(key_node, deep=deep)
        if key in seen:
            line = key_node.start_mark.line + 1
            raise ConfigError(f"Duplicate key {key!r} (line {line})")
        seen[key] = loader.construct_object(value_node, deep=deep)
    return seen


_CatalogLoader.add_constructor(yaml.resolver.BaseResolver.DEFAULT_MAPPING_TAG, _construct_unique_mapping)


def _parse_dependencies(value: Any) -> Optional[Tuple[str, ...]]:
    """Normalize a dependency declaration; None means malformed."""

    if value is None:
        return ()
    if isinstance(value, (list, tuple)):
        items = [str(v).strip() for v in value if v is not None]
    elif isinstance(value, str):
        # Inline form as written by hand: "[a, b]" or "a, b" or "a b".
        raw = value.strip()
        if raw.startswith("[") and raw.endswith("]"):
            raw = raw[1:-1]
        items = [p.strip().strip("\"'") for p in re.split(r"[,\s]+", raw)]
    else:
        return None

    deps: List[str] = []
    for item in items:
        if item and item not in deps:
            deps.append(item)
    return tuple(deps)


def _parse_priority(component_id: str, value: Any) -> int:
    if value is None:
        return DEFAULT_PRIORITY
    if isinstance(value, bool):
        logger.warning("Component %s: invalid priority %r, using %d", component_id, value, DEFAULT_PRIORITY)
        return DEFAULT_PRIORITY
    try:
        return int(str(value).strip())
    except ValueError:
        logger.warning("Component %s: invalid priority %r, using %d", component_id, value, DEFAULT_PRIORITY)
        return DEFAULT_PRIORITY


def _text(component_id: str, key: str, value: Any, default: str) -> str:
    if value is None:
        return default
    if isinstance(value, (dict, list)):
        logger.warning("Component %s: %s must be a string, using default", component_id, key)
        return default
    return str(value).strip() or default


def _parse_component(component_id: Any, body: Any) -> Optional[Component]:
    if not isinstance(component_id, str) or not _ID_RE.match(component_id):
        logger.warning("Skipping catalog entry with invalid id %r", component_id)
        return None
    if body is None:
        body = {}
    if not isinstance(body, dict):
        logger.warning("Skipping component %s: entry must be a mapping", component_id)
        return None

    unknown = sorted(str(k) for k in body if k not in _KNOWN_KEYS)
    if unknown:
        logger.warning("Component %s: ignoring unknown keys %s", component_id, ", ".join(unknown))

    deps = _parse_dependencies(body.get("dependencies"))
    if deps is None:
        logger.warning("Skipping component %s: malformed dependencies %r", component_id, body.get("dependencies"))
        return None

    options = body.get("options") or {}
    if not isinstance(options, dict):
        logger.warning("Component %s: options must be a mapping, ignoring", component_id)
        options = {}

    return Component(
        id=component_id,
        name=_text(component_id, "name", body.get("name"), component_id),
        description=_text(component_id, "description", body.get("description"), DEFAULT_DESCRIPTION),
        category=_text(component_id, "category", body.get("category"), DEFAULT_CATEGORY),
        priority=_parse_priority(component_id, body.get("priority")),
        dependencies=deps,
        options=options,
    )


def check_references(components: Mapping[str, Component]) -> None:
    """Raise UnknownIdError for the first dependency that names no component."""

    for cid in sorted(components):
        for dep in components[cid].dependencies:
            if dep not in components:
                raise UnknownIdError(dep, required_by=cid)


def parse_catalog(text: str, *, source: str = "<string>") -> Catalog:
    """Parse catalog text (YAML, or JSON as exported) into a Catalog.

    Malformed entries are skipped with a warning. Duplicate ids, unknown
    dependency ids and an empty result are hard errors; nothing partial is
    returned.
    """

    try:
        data = yaml.load(text, Loader=_CatalogLoader) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"{source}: invalid catalog syntax: {e}") from e

    if not isinstance(data, dict):
        raise ConfigError(f"{source}: catalog must be a mapping/object")
    entries = data.get("components")
    if not isinstance(entries, dict):
        raise ConfigError(f"{source}: 'components' must be a mapping")

    components: Dict[str, Component] = {}
    for cid, body in entries.items():
        comp = _parse_component(cid, body)
        if comp is not None:
            components[comp.id] = comp

    if not components:
        raise ConfigError(f"{source}: no components found")

    check_references(components)

    logger.debug("Parsed %d components from %s", len(components), source)
    return Catalog(components=components, source=source)


def load_catalog(source: str = DEFAULT_CATALOG_PATH) -> Catalog:
    """Load a catalog from a local path or an http(s) URL."""

    if is_url(source):
        text = fetch_text(source)
    else:
        p = Path(source)
        if not p.exists():
            raise ConfigError(f"Configuration file not found: {source}")
        text = p.read_text(encoding="utf-8")

    catalog = parse_catalog(text, source=source)
    logger.info("Configuration loaded from %s (%d components)", source, len(catalog))
    return catalog


def export_json(catalog: Catalog) -> str:
    return json.dumps(catalog.to_dict(), indent=2) + "\n"


def _env_quote(value: str) -> str:
    escaped = value.replace("\\", "\\\\").replace('"', '\\"').replace("$", "\\$").replace("`", "\\`")
    return f'"{escaped}"'


def export_env(catalog: Catalog) -> str:
    lines: List[str] = []
    for c in catalog.all():
        prefix = "COMPONENT_" + c.id.upper().replace("-", "_")
        lines.append(f"{prefix}_NAME={_env_quote(c.name)}")
        lines.append(f"{prefix}_DESCRIPTION={_env_quote(c.description)}")
        lines.append(f"{prefix}_CATEGORY={_env_quote(c.category)}")
        lines.append(f"{prefix}_PRIORITY={_env_quote(str(c.priority))}")
        lines.append(f"{prefix}_DEPENDENCIES={_env_quote(' '.join(c.dependencies))}")
        lines.append("")
    return "\n".join(lines)


def export_catalog(catalog: Catalog, fmt: str) -> str:
    if fmt == "json":
        return export_json(catalog)
    if fmt == "env":
        return export_env(catalog)
    raise ConfigError(f"Unsupported export format: {fmt} (expected one of {', '.join(EXPORT_FORMATS)})")
