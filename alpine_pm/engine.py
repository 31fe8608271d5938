from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, Iterable, List, Mapping, Optional

from .catalog import Catalog
from .components.base import ComponentAdapter, InstallContext, PackageBackend, ServiceBackend
from .errors import InstallError, RecordError, SelectionError
from .install_queue import order
from .records import RecordStore
from .resolver import resolve

logger = logging.getLogger(__name__)


class EngineState(str, Enum):
    IDLE = "idle"
    INITIALIZING = "initializing"
    BUILDING_QUEUE = "building_queue"
    EXECUTING = "executing"
    REPORTING = "reporting"
    DONE = "done"
    ABORTED = "aborted"


class ItemStatus(str, Enum):
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass
class RunOutcome:
    queue: List[str] = field(default_factory=list)
    succeeded: List[str] = field(default_factory=list)
    failed: List[str] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)
    # Installed but the record could not be written.
    unrecorded: List[str] = field(default_factory=list)
    errors: Dict[str, str] = field(default_factory=dict)
    aborted: bool = False

    @property
    def ok(self) -> bool:
        return not self.failed

    @property
    def not_attempted(self) -> List[str]:
        seen = set(self.succeeded) | set(self.failed) | set(self.skipped)
        return [cid for cid in self.queue if cid not in seen]


# Called after a failed item; True means continue with the rest of the queue.
FailureHandler = Callable[[str, Exception], bool]
# Called once per queue item with (position, total, component_id, status).
ProgressHandler = Callable[[int, int, str, ItemStatus], None]


def _abort_on_failure(component_id: str, error: Exception) -> bool:
    return False


class InstallEngine:
    """Resolve, order and execute an installation run.

    Idle -> Initializing -> BuildingQueue -> Executing -> Reporting -> Done,
    or Executing -> Aborted when the failure handler declines to continue.
    """

    def __init__(
        self,
        *,
        catalog: Catalog,
        adapters: Mapping[str, ComponentAdapter],
        records: RecordStore,
        packages: PackageBackend,
        services: ServiceBackend,
        prerequisites: Optional[Callable[[], None]] = None,
        on_failure: FailureHandler = _abort_on_failure,
        on_progress: Optional[ProgressHandler] = None,
        os_version: str = "unknown",
        dry_run: bool = False,
    ):
        self.catalog = catalog
        self.adapters = dict(adapters)
        self.records = records
        self.packages = packages
        self.services = services
        self.prerequisites = prerequisites
        self.on_failure = on_failure
        self.on_progress = on_progress
        self.os_version = os_version
        self.dry_run = dry_run
        self.state = EngineState.IDLE

    def context(self, component_id: str) -> InstallContext:
        return InstallContext(
            component=self.catalog.get(component_id),
            packages=self.packages,
            services=self.services,
            dry_run=self.dry_run,
        )

    def plan(self, requested: Iterable[str]) -> List[str]:
        """Resolver + Queue Builder; raises CycleError / UnknownIdError."""

        return order(self.catalog, resolve(self.catalog, requested))

    def is_installed(self, component_id: str) -> bool:
        if self.records.exists(component_id):
            return True
        adapter = self.adapters.get(component_id)
        if adapter is None:
            return False
        try:
            return bool(adapter.status(self.context(component_id)))
        except Exception as e:
            logger.debug("Status probe for %s failed: %s", component_id, e)
            return False

    def _install_one(self, component_id: str) -> None:
        adapter = self.adapters.get(component_id)
        if adapter is None:
            raise InstallError(component_id, "no installer registered for this component")
        adapter.install(self.context(component_id))

    def _record(self, component_id: str, outcome: RunOutcome) -> None:
        if self.dry_run:
            logger.info("Would record %s as installed", component_id)
            return
        try:
            self.records.write(self.catalog.get(component_id), os_version=self.os_version)
        except RecordError as e:
            # The package is installed regardless; report the gap.
            logger.warning("%s", e)
            outcome.unrecorded.append(component_id)

    def _notify(self, position: int, total: int, component_id: str, status: ItemStatus) -> None:
        if self.on_progress is not None:
            self.on_progress(position, total, component_id, status)

    def run(self, requested: Iterable[str]) -> RunOutcome:
        requested_ids = list(requested)
        if not requested_ids:
            raise SelectionError("No components selected for installation")
        logger.info("Starting installation for %d component(s): %s", len(requested_ids), " ".join(requested_ids))

        self.state = EngineState.INITIALIZING
        if self.prerequisites is not None:
            self.prerequisites()

        self.state = EngineState.BUILDING_QUEUE
        queue = self.plan(requested_ids)
        logger.info("Installation queue built with %d component(s): %s", len(queue), " ".join(queue))

        self.state = EngineState.EXECUTING
        outcome = RunOutcome(queue=list(queue))
        total = len(queue)
        for position, cid in enumerate(queue, start=1):
            if self.is_installed(cid):
                logger.info("[%d/%d] %s is already installed, skipping", position, total, cid)
                outcome.skipped.append(cid)
                self._notify(position, total, cid, ItemStatus.SKIPPED)
                continue

            logger.info("[%d/%d] Installing %s", position, total, cid)
            try:
                self._install_one(cid)
            except Exception as e:
                logger.error("[%d/%d] Failed to install %s: %s", position, total, cid, e)
                outcome.failed.append(cid)
                outcome.errors[cid] = str(e)
                self._notify(position, total, cid, ItemStatus.FAILED)
                if not self.on_failure(cid, e):
                    logger.error("Installation aborted by user after %s failed", cid)
                    outcome.aborted = True
                    self.state = EngineState.ABORTED
                    break
                continue

            self._record(cid, outcome)
            outcome.succeeded.append(cid)
            logger.info("[%d/%d] %s installed successfully", position, total, cid)
            self._notify(position, total, cid, ItemStatus.SUCCEEDED)

        if self.state is not EngineState.ABORTED:
            self.state = EngineState.REPORTING
        logger.info(
            "Installation finished: %d succeeded, %d skipped, %d failed%s",
            len(outcome.succeeded),
            len(outcome.skipped),
            len(outcome.failed),
            " (aborted)" if outcome.aborted else "",
        )
        if self.state is EngineState.REPORTING:
            self.state = EngineState.DONE
        return outcome

    def uninstall(self, component_id: str) -> None:
        """Tear down a recorded component and delete its record."""

        if not self.records.exists(component_id):
            raise RecordError(component_id, "not installed (no installation record found)")
        logger.info("Uninstalling component: %s", component_id)

        adapter = self.adapters.get(component_id)
        if adapter is None or component_id not in self.catalog:
            logger.warning("No specific uninstall procedure for: %s", component_id)
        else:
            adapter.uninstall(self.context(component_id))

        if self.dry_run:
            logger.info("Would remove installation record for %s", component_id)
            return
        self.records.remove(component_id)
        logger.info("Component %s uninstalled", component_id)
