"""Exception types raised by the workflow core."""

from __future__ import annotations


class BeaconError(Exception):
    """Base class for failures that abort a workflow run."""


class WorkflowValidationError(BeaconError):
    """Raised when a workflow definition fails validation."""

    def __init__(self, errors: list[str]) -> None:
        self.errors = list(errors)
        super().__init__("Workflow validation failed:\n" + "\n".join(f"  - {e}" for e in errors))


class AIServiceError(BeaconError):
    """Raised when the AI process cannot be spawned or exits non-zero."""

    def __init__(self, message: str, *, exit_code: int | None = None, stderr: str = "") -> None:
        self.exit_code = exit_code
        self.stderr = stderr
        super().__init__(message)


class UnsupportedStageTypeError(BeaconError):
    def __init__(self, stage_type: object) -> None:
        self.stage_type = stage_type
        super().__init__(f"Unsupported stage type: {stage_type}")
