from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Optional

from .catalog import Catalog
from .errors import CycleError, UnknownIdError

logger = logging.getLogger(__name__)


def resolve(catalog: Catalog, requested: Iterable[str]) -> List[str]:
    """Return the dependency closure of *requested*.

    Depth-first, post-order: every dependency comes before the components
    that need it, each id appears exactly once, and requested ids are
    processed in the order given. The first cycle or unknown id aborts the
    whole call.
    """

    resolved: Dict[str, None] = {}  # insertion-ordered set
    path: List[str] = []

    def visit(cid: str, required_by: Optional[str]) -> None:
        if cid in path:
            raise CycleError(path[path.index(cid):] + [cid])
        if cid in resolved:
            return
        if cid not in catalog:
            raise UnknownIdError(cid, required_by=required_by)

        path.append(cid)
        for dep in catalog.get(cid).dependencies:
            visit(dep, cid)
        path.pop()
        resolved[cid] = None

    requested_ids = list(requested)
    for cid in requested_ids:
        visit(cid, None)

    logger.debug("Resolved %s -> %s", requested_ids, list(resolved))
    return list(resolved)


def find_cycle(catalog: Catalog, component_id: str) -> Optional[List[str]]:
    """Return a dependency cycle reachable from *component_id*, if any."""

    try:
        resolve(catalog, [component_id])
    except CycleError as e:
        return e.path
    return None
