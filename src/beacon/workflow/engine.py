"""Workflow execution engine.

Runs the stages of a workflow definition strictly in order. Every invocation
creates a `workflow_runs` row up front, so a missing or invalid workflow still
leaves an auditable failed run behind. Notes extracted from each stage are
accumulated and handed to later stages through their `ExecutionContext`.

Failure handling:
- workflow not found: printed, run marked failed, returns normally
- validation, AI process or stage-type failures: run marked failed, re-raised
- audit log failures: logged and ignored
"""

from __future__ import annotations

import logging
import sys
from typing import Protocol, TextIO

from beacon.ai.service import AIService
from beacon.display import PLAIN, Palette
from beacon.errors import WorkflowValidationError
from beacon.storage.log_store import LogRepository
from beacon.storage.note_store import NoteRepository
from beacon.workflow.executors import ExecutorFactory, create_stage_executor
from beacon.workflow.models import ExecutionContext, Note, WorkflowDefinition, WorkflowRun
from beacon.workflow.state_machine import (
    TERMINAL_STATES,
    RunState,
    persisted_status,
    transition,
)
from beacon.workflow.validator import WorkflowValidator

logger = logging.getLogger(__name__)


class WorkflowSource(Protocol):
    def get_workflow_definition(self, workflow_name: str) -> WorkflowDefinition | None: ...


class WorkflowEngine:
    """Top-level orchestrator for a single workflow run."""

    def __init__(
        self,
        *,
        workflow_source: WorkflowSource,
        store: NoteRepository,
        ai_service: AIService,
        log_repository: LogRepository | None = None,
        executor_factory: ExecutorFactory = create_stage_executor,
        out: TextIO | None = None,
        palette: Palette = PLAIN,
    ) -> None:
        self._source = workflow_source
        self._store = store
        self._ai = ai_service
        self._logs = log_repository
        self._executor_factory = executor_factory
        self._out = out if out is not None else sys.stdout
        self._palette = palette

    def _print(self, text: str = "") -> None:
        self._out.write(text + "\n")
        self._out.flush()

    def _audit(self, workflow_name: str) -> None:
        if self._logs is None:
            return
        try:
            self._logs.create(command="new", args={"name": workflow_name})
        except Exception:
            logger.warning(
                "Failed to write audit log entry",
                exc_info=True,
                extra={"workflow": workflow_name},
            )

    def _finish(self, run_id: int, current: RunState, to: RunState) -> RunState:
        state = transition(current=current, to=to)
        self._store.update_run_status(run_id, persisted_status(state))
        logger.info("Workflow run finished", extra={"run_id": run_id, "status": state.value})
        return state

    def run_workflow(self, workflow_name: str) -> WorkflowRun:
        """Execute every stage of `workflow_name` and return the finished run.

        Raises:
            WorkflowValidationError: If the definition is invalid.
            AIServiceError: If a stage's AI process fails.
            UnsupportedStageTypeError: If a stage has no executor.
        """
        self._audit(workflow_name)

        run_id = self._store.create_workflow_run(workflow_name)
        state = RunState.CREATED
        logger.info("Workflow run started", extra={"run_id": run_id, "workflow": workflow_name})

        stage_count = 0
        accumulated: list[Note] = []
        try:
            definition = self._source.get_workflow_definition(workflow_name)
            if definition is None:
                state = self._finish(run_id, state, RunState.FAILED)
                self._print(f"Workflow '{workflow_name}' not found")
                return self._load_run(run_id)

            result = WorkflowValidator.validate(definition)
            if not result.valid:
                state = self._finish(run_id, state, RunState.FAILED)
                self._print(f"Workflow '{workflow_name}' is invalid:")
                for error in result.errors:
                    self._print(f"  - {error}")
                raise WorkflowValidationError(result.errors)

            state = transition(current=state, to=RunState.VALIDATED)
            state = transition(current=state, to=RunState.RUNNING)

            for index, stage in enumerate(definition.stages):
                executor = self._executor_factory(
                    stage, self._ai, self._store, out=self._out, palette=self._palette
                )
                stage_id = self._store.create_stage_execution(run_id, index, stage.title)
                context = ExecutionContext(
                    run_id=run_id,
                    stage_id=stage_id,
                    previous_notes=tuple(accumulated),
                    system_prompt=definition.system_prompt,
                )
                executor.execute(stage, context)
                accumulated.extend(self._store.get_notes_for_stage(stage_id))
                stage_count += 1

        except Exception:
            if state not in TERMINAL_STATES:
                state = self._finish(run_id, state, RunState.FAILED)
            raise

        self._finish(run_id, state, RunState.COMPLETED)
        self._print(
            self._palette.render(
                ("✔", "stage.ok"),
                f" Workflow '{workflow_name}' completed "
                f"({stage_count} stages, {len(accumulated)} notes)",
            )
        )
        return self._load_run(run_id)

    def _load_run(self, run_id: int) -> WorkflowRun:
        run = self._store.get_run(run_id)
        if run is None:
            raise LookupError(f"Workflow run {run_id} disappeared from the store")
        return run
