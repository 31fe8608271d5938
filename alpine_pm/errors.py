from __future__ import annotations

from typing import Sequence


class AlpinePMError(RuntimeError):
    """Base class for every error the CLI reports as a clean failure."""


class ConfigError(AlpinePMError):
    pass


class NotFoundError(AlpinePMError, KeyError):
    def __init__(self, component_id: str):
        super().__init__(f"Unknown component: {component_id}")
        self.component_id = component_id

    def __str__(self) -> str:
        return self.args[0]


class UnknownIdError(ConfigError):
    def __init__(self, component_id: str, required_by: str | None = None):
        msg = f"Unknown component id: {component_id}"
        if required_by:
            msg += f" (required by {required_by})"
        super().__init__(msg)
        self.component_id = component_id
        self.required_by = required_by


class CycleError(AlpinePMError):
    def __init__(self, path: Sequence[str]):
        self.path = list(path)
        super().__init__("Circular dependency detected: " + " -> ".join(self.path))


class PrerequisiteError(AlpinePMError):
    def __init__(self, failures: Sequence[str]):
        self.failures = list(failures)
        super().__init__("Prerequisite check failed: " + "; ".join(self.failures))


class InstallError(AlpinePMError):
    def __init__(self, component_id: str, reason: str):
        super().__init__(f"Failed to install {component_id}: {reason}")
        self.component_id = component_id
        self.reason = reason


class RecordError(AlpinePMError):
    def __init__(self, component_id: str, reason: str):
        super().__init__(f"Installation record error for {component_id}: {reason}")
        self.component_id = component_id
        self.reason = reason


class SelectionError(AlpinePMError):
    pass
