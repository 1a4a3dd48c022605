"""Unit tests for the workflow execution engine."""

from __future__ import annotations

import io
from pathlib import Path
from typing import TextIO
from unittest.mock import Mock

import pytest

from beacon.ai.service import AIService
from beacon.display import PLAIN, Palette
from beacon.errors import AIServiceError, UnsupportedStageTypeError, WorkflowValidationError
from beacon.storage.log_store import LogRepository
from beacon.storage.note_store import NoteRepository
from beacon.workflow.engine import WorkflowEngine
from beacon.workflow.executors import StageExecutor, create_stage_executor
from beacon.workflow.models import (
    ExecutionContext,
    RunStatus,
    Stage,
    WorkflowDefinition,
)
from beacon.workflow.repository import WorkflowRepository
from tests.conftest import FakeAIService

TWO_STAGES = (
    "stages:\n"
    "  - title: A\n"
    "    type: prompt\n"
    "    prompt: Do the first thing now\n"
    "  - title: B\n"
    "    type: prompt\n"
    "    prompt: Do the second thing now\n"
)


class RecordingFactory:
    """Wraps the real factory and records each stage's context."""

    def __init__(self) -> None:
        self.contexts: list[ExecutionContext] = []

    def __call__(
        self,
        stage: Stage,
        ai_service: AIService,
        store: NoteRepository,
        *,
        out: TextIO | None = None,
        palette: Palette = PLAIN,
    ) -> StageExecutor:
        inner = create_stage_executor(stage, ai_service, store, out=out, palette=palette)
        contexts = self.contexts

        class Recording(StageExecutor):
            def execute(self, stage: Stage, context: ExecutionContext | None = None) -> None:
                assert context is not None
                contexts.append(context)
                inner.execute(stage, context)

        return Recording()


def _engine(
    workflows_dir: Path,
    store: NoteRepository,
    ai: AIService,
    **kwargs: object,
) -> WorkflowEngine:
    return WorkflowEngine(
        workflow_source=WorkflowRepository(workflows_dir),
        store=store,
        ai_service=ai,
        out=io.StringIO(),
        **kwargs,  # type: ignore[arg-type]
    )


def test_notes_flow_into_the_next_stage(workflows_dir: Path, store: NoteRepository) -> None:
    (workflows_dir / "two.yml").write_text(TWO_STAGES, encoding="utf-8")
    ai = FakeAIService([["```note\nHello\n```"], ["```note\nHello\n```"]])
    factory = RecordingFactory()

    run = _engine(workflows_dir, store, ai, executor_factory=factory).run_workflow("two")

    assert run.status is RunStatus.COMPLETED
    assert run.completed_at is not None

    stages = store.get_stage_executions(run.id)
    assert [s.stage_title for s in stages] == ["A", "B"]
    assert all(s.completed_at is not None for s in stages)
    assert [n.content for n in store.get_notes_for_stage(stages[0].id)] == ["Hello"]

    assert factory.contexts[0].previous_notes == ()
    assert [n.content for n in factory.contexts[1].previous_notes] == ["Hello"]
    assert factory.contexts[1].previous_notes[0].stage_execution_id == stages[0].id
    assert factory.contexts[1].stage_id == stages[1].id

    assert "```note\nHello\n```" in ai.prompts[1]
    assert ai.prompts[0] == "Do the first thing now"


def test_stage_failure_aborts_run(workflows_dir: Path, store: NoteRepository) -> None:
    (workflows_dir / "two.yml").write_text(TWO_STAGES, encoding="utf-8")
    error = AIServiceError("Claude CLI exited with code 1\nboom", exit_code=1, stderr="boom")
    ai = FakeAIService([error, ["never"]])
    engine = _engine(workflows_dir, store, ai)

    with pytest.raises(AIServiceError) as excinfo:
        engine.run_workflow("two")

    assert "1" in str(excinfo.value)
    assert "boom" in str(excinfo.value)
    assert len(ai.prompts) == 1

    (run,) = store.get_recent_runs(1)
    assert run.status is RunStatus.FAILED
    stages = store.get_stage_executions(run.id)
    assert len(stages) == 1
    assert stages[0].completed_at is None


def test_short_prompt_fails_validation_before_any_ai_call(
    workflows_dir: Path, store: NoteRepository
) -> None:
    (workflows_dir / "short.yml").write_text(
        "stages:\n  - title: A\n    type: prompt\n    prompt: '  tiny  '\n", encoding="utf-8"
    )
    ai = FakeAIService([])
    engine = _engine(workflows_dir, store, ai)

    with pytest.raises(WorkflowValidationError) as excinfo:
        engine.run_workflow("short")

    assert excinfo.value.errors == ["Stage 1: prompt is too short (minimum 10 characters, got 4)"]
    assert ai.prompts == []
    (run,) = store.get_recent_runs(1)
    assert run.status is RunStatus.FAILED
    assert store.get_stage_executions(run.id) == []


def test_missing_workflow_is_a_soft_failure(workflows_dir: Path, store: NoteRepository) -> None:
    out = io.StringIO()
    engine = WorkflowEngine(
        workflow_source=WorkflowRepository(workflows_dir),
        store=store,
        ai_service=FakeAIService([]),
        out=out,
    )

    run = engine.run_workflow("ghost")

    assert run.status is RunStatus.FAILED
    assert run.workflow_name == "ghost"
    assert "Workflow 'ghost' not found" in out.getvalue()


def test_run_is_marked_failed_exactly_once(store: NoteRepository) -> None:
    source = Mock()
    source.get_workflow_definition.return_value = WorkflowDefinition(
        stages=[Stage(title="A", type="prompt", prompt="Do the first thing now")]
    )
    spy = Mock(wraps=store)
    engine = WorkflowEngine(
        workflow_source=source,
        store=spy,
        ai_service=FakeAIService([AIServiceError("Claude CLI exited with code 3", exit_code=3)]),
        out=io.StringIO(),
    )

    with pytest.raises(AIServiceError):
        engine.run_workflow("wf")

    spy.update_run_status.assert_called_once()
    assert spy.update_run_status.call_args.args[1] is RunStatus.FAILED


def test_unsupported_stage_type_fails_before_stage_is_recorded(store: NoteRepository) -> None:
    source = Mock()
    source.get_workflow_definition.return_value = WorkflowDefinition(
        stages=[Stage(title="A", type="prompt", prompt="Do the first thing now")]
    )

    def factory(*_args: object, **_kwargs: object) -> StageExecutor:
        raise UnsupportedStageTypeError("loop")

    engine = WorkflowEngine(
        workflow_source=source,
        store=store,
        ai_service=FakeAIService([]),
        executor_factory=factory,  # type: ignore[arg-type]
        out=io.StringIO(),
    )

    with pytest.raises(UnsupportedStageTypeError):
        engine.run_workflow("wf")

    (run,) = store.get_recent_runs(1)
    assert run.status is RunStatus.FAILED
    assert store.get_stage_executions(run.id) == []


def test_audit_log_written_and_failures_ignored(
    workflows_dir: Path, store: NoteRepository, log_repository: LogRepository
) -> None:
    (workflows_dir / "two.yml").write_text(TWO_STAGES, encoding="utf-8")

    _engine(
        workflows_dir, store, FakeAIService([["a"], ["b"]]), log_repository=log_repository
    ).run_workflow("two")

    (entry,) = log_repository.find_recent(1)
    assert entry.command == "new"
    assert entry.args == {"name": "two"}

    broken = Mock(spec=LogRepository)
    broken.create.side_effect = RuntimeError("database is locked")
    run = _engine(
        workflows_dir, store, FakeAIService([["a"], ["b"]]), log_repository=broken
    ).run_workflow("two")

    assert run.status is RunStatus.COMPLETED


def test_system_prompt_is_passed_to_every_stage(
    workflows_dir: Path, store: NoteRepository
) -> None:
    (workflows_dir / "sys.yml").write_text("system_prompt: Be brief.\n" + TWO_STAGES, encoding="utf-8")
    ai = FakeAIService([["a"], ["b"]])

    _engine(workflows_dir, store, ai).run_workflow("sys")

    assert all(p.startswith("Be brief.\n\n") for p in ai.prompts)


def test_completion_summary_is_printed(workflows_dir: Path, store: NoteRepository) -> None:
    (workflows_dir / "two.yml").write_text(TWO_STAGES, encoding="utf-8")
    out = io.StringIO()
    engine = WorkflowEngine(
        workflow_source=WorkflowRepository(workflows_dir),
        store=store,
        ai_service=FakeAIService([["```note\nx\n```"], ["no notes"]]),
        out=out,
    )

    engine.run_workflow("two")

    text = out.getvalue()
    assert text.index("▶ Stage: A") < text.index("✔ Stage: A") < text.index("▶ Stage: B")
    assert text.rstrip().endswith("✔ Workflow 'two' completed (2 stages, 1 notes)")
