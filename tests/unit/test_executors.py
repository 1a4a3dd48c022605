"""Unit tests for stage executors."""

from __future__ import annotations

import io
from datetime import UTC, datetime

import pytest

from beacon.errors import AIServiceError, UnsupportedStageTypeError
from beacon.storage.note_store import NoteRepository
from beacon.workflow.executors import (
    PromptStageExecutor,
    build_stage_prompt,
    create_stage_executor,
)
from beacon.workflow.models import ExecutionContext, Note, Stage
from tests.conftest import FakeAIService


def _note(content: str) -> Note:
    return Note(
        id=1, workflow_run_id=1, stage_execution_id=1, content=content, created_at=datetime.now(UTC)
    )


STAGE = Stage(title="Survey", type="prompt", prompt="List the modules please")


def test_output_ordering_on_success(store: NoteRepository) -> None:
    out = io.StringIO()
    ai = FakeAIService([["Hello", " there"]])

    PromptStageExecutor(ai, store, out=out).execute(STAGE)

    assert out.getvalue() == (
        "▶ Stage: Survey\n"
        "\n"
        "Hello there"
        "\n\n"
        "✔ Stage: Survey\n"
        "\n"
    )


def test_no_blank_line_without_output(store: NoteRepository) -> None:
    out = io.StringIO()

    PromptStageExecutor(FakeAIService([[]]), store, out=out).execute(STAGE)

    assert out.getvalue() == "▶ Stage: Survey\n✔ Stage: Survey\n\n"


def test_failure_prints_indicator_and_propagates(store: NoteRepository) -> None:
    out = io.StringIO()
    error = AIServiceError("Claude CLI exited with code 1", exit_code=1)

    with pytest.raises(AIServiceError):
        PromptStageExecutor(FakeAIService([error]), store, out=out).execute(STAGE)

    assert out.getvalue() == "▶ Stage: Survey\n✖ Stage: Survey\n"


def test_notes_persisted_and_stage_completed(store: NoteRepository) -> None:
    run_id = store.create_workflow_run("wf")
    stage_id = store.create_stage_execution(run_id, 0, "Survey")
    ai = FakeAIService([["Intro\n```no", "te\nFirst\n```\n", "```note\nSecond\n```"]])

    PromptStageExecutor(ai, store, out=io.StringIO()).execute(
        STAGE, ExecutionContext(run_id=run_id, stage_id=stage_id)
    )

    assert [n.content for n in store.get_notes_for_stage(stage_id)] == ["First", "Second"]
    assert store.get_stage_executions(run_id)[0].completed_at is not None


def test_without_context_nothing_is_persisted(store: NoteRepository) -> None:
    run_id = store.create_workflow_run("wf")

    PromptStageExecutor(FakeAIService([["```note\nx\n```"]]), store, out=io.StringIO()).execute(
        STAGE
    )

    assert store.get_notes_for_run(run_id) == []


def test_prompt_includes_system_prompt_and_previous_notes() -> None:
    context = ExecutionContext(
        run_id=1, stage_id=2, previous_notes=(_note("Earlier"),), system_prompt="Be brief."
    )

    assert build_stage_prompt(STAGE, context) == (
        "Be brief.\n\n"
        "Previous notes from earlier stages:\n\n"
        "```note\nEarlier\n```\n\n"
        "---\n\n"
        "List the modules please"
    )


def test_prompt_without_context_is_stage_prompt() -> None:
    assert build_stage_prompt(STAGE, None) == "List the modules please"
    assert build_stage_prompt(STAGE, ExecutionContext(run_id=1, stage_id=1)) == (
        "List the modules please"
    )


def test_factory_dispatches_prompt_stages(store: NoteRepository) -> None:
    executor = create_stage_executor(STAGE, FakeAIService([]), store)

    assert isinstance(executor, PromptStageExecutor)


def test_factory_rejects_unknown_stage_type(store: NoteRepository) -> None:
    ai = FakeAIService([])

    with pytest.raises(UnsupportedStageTypeError, match="Unsupported stage type: shell"):
        create_stage_executor(Stage(title="T", type="shell", prompt="echo hello"), ai, store)

    assert ai.prompts == []
