"""Terminal presentation: stage indicators, run listings and note dumps.

Styling goes through a themed rich `Console`; helpers return rendered strings
so they can be interleaved with the raw token stream on the same output.
"""

from __future__ import annotations

import json
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import TextIO

from rich.console import Console
from rich.text import Text
from rich.theme import Theme

from beacon.storage.log_store import CommandLog
from beacon.storage.note_store import NoteRepository
from beacon.workflow.models import Note, RunStatus, StageExecution, WorkflowRun

THEME = Theme(
    {
        "stage.start": "blue",
        "stage.ok": "bold green",
        "stage.failed": "red",
        "status.completed": "bold green",
        "status.failed": "red",
        "status.running": "yellow",
        "heading": "bold",
        "workflow": "bold cyan",
        "stage.title": "bold blue",
        "run.id": "cyan",
        "muted": "bright_black",
        # Pale yellow for tool annotations in the stream.
        "tool": "#d4c5a9",
    }
)

_STATUS_BADGES: dict[RunStatus, tuple[str, str]] = {
    RunStatus.COMPLETED: ("✓ completed", "status.completed"),
    RunStatus.FAILED: ("✗ failed", "status.failed"),
    RunStatus.RUNNING: ("⋯ running", "status.running"),
}


def make_console(
    *,
    color: bool = True,
    file: TextIO | None = None,
    force_terminal: bool | None = None,
) -> Console:
    """Console for beacon output; rich decides whether the stream is a terminal."""

    return Console(
        file=file,
        theme=THEME,
        color_system="auto" if color else None,
        no_color=not color,
        force_terminal=force_terminal,
        highlight=False,
        legacy_windows=False,
    )


class Palette:
    """Renders styled text to strings using a rich console."""

    def __init__(self, console: Console | None = None) -> None:
        self._console = console if console is not None else make_console(color=False)

    @property
    def console(self) -> Console:
        return self._console

    def render(self, *parts: str | Text | tuple[str, str]) -> str:
        text = Text.assemble(*parts)
        with self._console.capture() as capture:
            self._console.print(text, end="", soft_wrap=True)
        return capture.get()

    def tool(self, annotation: str) -> str:
        return self.render((annotation, "tool"))


PLAIN = Palette()


def stage_started(title: str, palette: Palette = PLAIN) -> str:
    return palette.render(("▶", "stage.start"), f" Stage: {title}")


def stage_succeeded(title: str, palette: Palette = PLAIN) -> str:
    return palette.render(("✔", "stage.ok"), f" Stage: {title}")


def stage_failed(title: str, palette: Palette = PLAIN) -> str:
    return palette.render(("✖", "stage.failed"), f" Stage: {title}")


def _status_text(status: RunStatus | str) -> Text:
    try:
        badge = _STATUS_BADGES.get(RunStatus(status))
    except ValueError:
        badge = None
    if badge is None:
        return Text(str(status))
    return Text(*badge)


def format_status(status: RunStatus | str, palette: Palette = PLAIN) -> str:
    return palette.render(_status_text(status))


def _timestamp(run: WorkflowRun) -> str:
    return run.started_at.strftime("%Y-%m-%d %H:%M:%S")


@dataclass(frozen=True, slots=True)
class StageWithNotes:
    stage: StageExecution
    notes: list[Note] = field(default_factory=list)


@dataclass(frozen=True, slots=True)
class RunWithNotes:
    run: WorkflowRun
    stages: list[StageWithNotes] = field(default_factory=list)


class NotesDisplayService:
    """Read-side queries backing the `notes` command."""

    def __init__(self, store: NoteRepository) -> None:
        self._store = store

    def get_recent_runs(self, limit: int = 10) -> list[WorkflowRun]:
        return self._store.get_recent_runs(limit)

    def get_run_with_notes(self, run_id: int) -> RunWithNotes | None:
        run = self._store.get_run(run_id)
        if run is None:
            return None
        stages = [
            StageWithNotes(stage=stage, notes=self._store.get_notes_for_stage(stage.id))
            for stage in self._store.get_stage_executions(run.id)
        ]
        return RunWithNotes(run=run, stages=stages)

    def get_latest_run_with_notes(self) -> RunWithNotes | None:
        runs = self._store.get_recent_runs(1)
        if not runs:
            return None
        return self.get_run_with_notes(runs[0].id)


def render_run_list(runs: Sequence[WorkflowRun], palette: Palette = PLAIN) -> str:
    if not runs:
        return "No workflow runs found."
    lines = [Text("Recent workflow runs:", style="heading"), Text()]
    for run in runs:
        lines.append(
            Text.assemble(
                "  ",
                (str(run.id), "run.id"),
                f" - {run.workflow_name} ",
                _status_text(run.status),
                f" ({_timestamp(run)})",
            )
        )
    return palette.render(Text("\n").join(lines))


def render_run_notes(details: RunWithNotes, palette: Palette = PLAIN) -> str:
    run = details.run
    lines = [
        Text(f"Workflow: {run.workflow_name}", style="workflow"),
        Text.assemble(
            (f"Run ID: {run.id} | Status: ", "muted"),
            _status_text(run.status),
            (f" | {run.started_at.isoformat()}", "muted"),
        ),
        Text(),
    ]

    total = 0
    for entry in details.stages:
        if not entry.notes:
            continue
        lines.append(Text(f"Stage: {entry.stage.stage_title}", style="stage.title"))
        for index, note in enumerate(entry.notes, start=1):
            lines.append(Text(f"  Note {index}:", style="muted"))
            lines.extend(Text(f"    {line}") for line in note.content.split("\n"))
            lines.append(Text())
            total += 1

    if total == 0:
        lines.append(Text("No notes found in this workflow run.", style="muted"))
    return palette.render(Text("\n").join(lines))


def render_logs(logs: Sequence[CommandLog]) -> str:
    if not logs:
        return "No logs found."
    lines = ["Recent command logs:", ""]
    for log in logs:
        stamp = log.timestamp.strftime("%Y-%m-%d %H:%M:%S")
        lines.append(f"[{stamp}] {log.command} {json.dumps(log.args, ensure_ascii=False)}")
    return "\n".join(lines)
