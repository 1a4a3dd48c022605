"""Stage executors.

Each stage type maps to one executor. Only `prompt` stages exist today; the
factory rejects anything else before any subprocess or database work happens.
"""

from __future__ import annotations

import logging
import sys
from abc import ABC, abstractmethod
from typing import Protocol, TextIO

from beacon.ai.service import AIService, StreamCallbacks
from beacon.display import PLAIN, Palette, stage_failed, stage_started, stage_succeeded
from beacon.errors import UnsupportedStageTypeError
from beacon.notes import extract_notes, format_notes_for_context
from beacon.storage.note_store import NoteRepository
from beacon.workflow.models import ExecutionContext, Stage

logger = logging.getLogger(__name__)


class StageExecutor(ABC):
    @abstractmethod
    def execute(self, stage: Stage, context: ExecutionContext | None = None) -> None:
        """Run one stage to completion.

        Raises:
            BeaconError: If the stage fails; the caller decides the run outcome.
        """


def build_stage_prompt(stage: Stage, context: ExecutionContext | None) -> str:
    """Prefix the stage prompt with the system prompt and prior notes."""

    parts: list[str] = []
    if context is not None and context.system_prompt and context.system_prompt.strip():
        parts.append(context.system_prompt.strip() + "\n\n")
    if context is not None:
        parts.append(format_notes_for_context(context.previous_notes))
    parts.append(stage.prompt)
    return "".join(parts)


class PromptStageExecutor(StageExecutor):
    """Send a single prompt to the AI and harvest note blocks from the reply."""

    def __init__(
        self,
        ai_service: AIService,
        store: NoteRepository,
        *,
        out: TextIO | None = None,
        palette: Palette = PLAIN,
    ) -> None:
        self._ai = ai_service
        self._store = store
        self._out = out if out is not None else sys.stdout
        self._palette = palette

    def _write(self, text: str) -> None:
        self._out.write(text)
        self._out.flush()

    def execute(self, stage: Stage, context: ExecutionContext | None = None) -> None:
        self._write(stage_started(stage.title, self._palette) + "\n")

        has_output = False
        response: list[str] = []

        def on_start() -> None:
            nonlocal has_output
            if not has_output:
                has_output = True
                # Content starts below the stage indicator.
                self._write("\n")

        def on_token(text: str) -> None:
            response.append(text)
            self._write(text)

        def on_complete() -> None:
            if has_output:
                self._write("\n\n")
            if context is not None:
                self._persist_notes("".join(response), context)
            self._write(stage_succeeded(stage.title, self._palette) + "\n\n")

        def on_error(_error: Exception) -> None:
            if has_output:
                self._write("\n\n")
            self._write(stage_failed(stage.title, self._palette) + "\n")

        self._ai.execute_prompt(
            build_stage_prompt(stage, context),
            StreamCallbacks(
                on_start=on_start,
                on_token=on_token,
                on_complete=on_complete,
                on_error=on_error,
            ),
        )

    def _persist_notes(self, response: str, context: ExecutionContext) -> None:
        notes = extract_notes(response)
        for content in notes:
            self._store.add_note(context.run_id, context.stage_id, content)
        self._store.complete_stage_execution(context.stage_id)
        logger.info(
            "Stage notes persisted",
            extra={"run_id": context.run_id, "stage_id": context.stage_id, "notes": len(notes)},
        )


class ExecutorFactory(Protocol):
    def __call__(
        self,
        stage: Stage,
        ai_service: AIService,
        store: NoteRepository,
        *,
        out: TextIO | None = ...,
        palette: Palette = ...,
    ) -> StageExecutor: ...


def create_stage_executor(
    stage: Stage,
    ai_service: AIService,
    store: NoteRepository,
    *,
    out: TextIO | None = None,
    palette: Palette = PLAIN,
) -> StageExecutor:
    match stage.type:
        case "prompt":
            return PromptStageExecutor(ai_service, store, out=out, palette=palette)
        case _:
            raise UnsupportedStageTypeError(stage.type)

