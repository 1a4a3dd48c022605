"""Test configuration and fixtures."""

from __future__ import annotations

import json
from collections.abc import Iterator
from pathlib import Path

import pytest

from beacon.ai.service import AIService, StreamCallbacks
from beacon.storage.db import Database
from beacon.storage.log_store import LogRepository
from beacon.storage.note_store import NoteRepository


def stream_line(event: dict[str, object]) -> str:
    return json.dumps({"type": "stream_event", "event": event})


def text_block(index: int, *deltas: str) -> list[str]:
    """Stream-json lines for one text content block."""

    lines = [
        stream_line(
            {
                "type": "content_block_start",
                "index": index,
                "content_block": {"type": "text", "text": ""},
            }
        )
    ]
    for delta in deltas:
        lines.append(
            stream_line(
                {
                    "type": "content_block_delta",
                    "index": index,
                    "delta": {"type": "text_delta", "text": delta},
                }
            )
        )
    lines.append(stream_line({"type": "content_block_stop", "index": index}))
    return lines


def tool_block(index: int, name: str, *fragments: str) -> list[str]:
    """Stream-json lines for one tool_use content block."""

    lines = [
        stream_line(
            {
                "type": "content_block_start",
                "index": index,
                "content_block": {"type": "tool_use", "id": f"toolu_{index}", "name": name},
            }
        )
    ]
    for fragment in fragments:
        lines.append(
            stream_line(
                {
                    "type": "content_block_delta",
                    "index": index,
                    "delta": {"type": "input_json_delta", "partial_json": fragment},
                }
            )
        )
    lines.append(stream_line({"type": "content_block_stop", "index": index}))
    return lines


class FakeAIService(AIService):
    """Scripted AI backend.

    Each call consumes the next script entry: a list of tokens to stream, or an
    exception to report through `on_error` and raise.
    """

    def __init__(self, script: list[list[str] | Exception]) -> None:
        self._script = list(script)
        self.prompts: list[str] = []

    def execute_prompt(self, prompt: str, callbacks: StreamCallbacks) -> None:
        self.prompts.append(prompt)
        step = self._script.pop(0)
        if isinstance(step, Exception):
            if callbacks.on_error:
                callbacks.on_error(step)
            raise step
        for i, token in enumerate(step):
            if i == 0 and callbacks.on_start:
                callbacks.on_start()
            if callbacks.on_token:
                callbacks.on_token(token)
        if callbacks.on_complete:
            callbacks.on_complete()


@pytest.fixture
def db() -> Iterator[Database]:
    database = Database()
    try:
        yield database
    finally:
        database.close()


@pytest.fixture
def store(db: Database) -> NoteRepository:
    return NoteRepository(db)


@pytest.fixture
def log_repository(db: Database) -> LogRepository:
    return LogRepository(db)


@pytest.fixture
def workflows_dir(tmp_path: Path) -> Path:
    path = tmp_path / ".beacon" / "workflows"
    path.mkdir(parents=True)
    return path
