from __future__ import annotations

import logging
from typing import Dict, List, Sequence, Set

from .catalog import Catalog

logger = logging.getLogger(__name__)


def order(catalog: Catalog, resolved: Sequence[str]) -> List[str]:
    """Order a resolved id set into the installation queue.

    Ascending priority, ties kept in resolver order. A component is never
    placed before one of its own dependencies: among the ids whose
    dependencies are already queued, the lowest (priority, resolver position)
    goes next. When priorities agree with the dependency graph this is
    exactly a stable sort by priority.
    """

    position: Dict[str, int] = {cid: i for i, cid in enumerate(resolved)}
    members: Set[str] = set(position)

    pending: Dict[str, Set[str]] = {
        cid: {d for d in catalog.get(cid).dependencies if d in members} for cid in resolved
    }
    queue: List[str] = []
    done: Set[str] = set()

    while pending:
        ready = [cid for cid, deps in pending.items() if deps <= done]
        if not ready:
            # Only reachable with a cyclic input; the resolver rejects those.
            raise ValueError(f"Cannot order components with unresolved dependencies: {sorted(pending)}")
        nxt = min(ready, key=lambda cid: (catalog.get(cid).priority, position[cid]))
        queue.append(nxt)
        done.add(nxt)
        del pending[nxt]

    stable = sorted(resolved, key=lambda cid: catalog.get(cid).priority)
    if queue != stable:
        logger.info("Priority order adjusted so dependencies install first: %s", " ".join(queue))
    return queue
