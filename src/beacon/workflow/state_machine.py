"""Lifecycle of a single workflow run.

    created -> validated -> running -> completed
        \\           \\          \\
         `-----------`----------`---> failed

Only the terminal states are persisted (as `RunStatus`); the intermediate
states exist so the engine can assert it never finalises a run twice.
"""

from __future__ import annotations

from enum import Enum

from beacon.workflow.models import RunStatus


class RunState(str, Enum):
    CREATED = "created"
    VALIDATED = "validated"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


ALLOWED_TRANSITIONS: dict[RunState, set[RunState]] = {
    RunState.CREATED: {RunState.VALIDATED, RunState.FAILED},
    RunState.VALIDATED: {RunState.RUNNING, RunState.FAILED},
    RunState.RUNNING: {RunState.COMPLETED, RunState.FAILED},
    RunState.COMPLETED: set(),
    RunState.FAILED: set(),
}

TERMINAL_STATES: frozenset[RunState] = frozenset({RunState.COMPLETED, RunState.FAILED})


class IllegalTransitionError(ValueError):
    pass


def transition(*, current: RunState, to: RunState) -> RunState:
    allowed = ALLOWED_TRANSITIONS.get(current, set())
    if to not in allowed:
        raise IllegalTransitionError(f"Illegal transition: {current.value} -> {to.value}")
    return to


def persisted_status(state: RunState) -> RunStatus:
    """Map a lifecycle state onto the status stored for the run."""

    if state is RunState.COMPLETED:
        return RunStatus.COMPLETED
    if state is RunState.FAILED:
        return RunStatus.FAILED
    return RunStatus.RUNNING
