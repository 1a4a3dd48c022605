"""Persistence for workflow runs, stage executions and notes."""

from __future__ import annotations

import logging
from typing import Any

from beacon.storage.db import Database, parse_timestamp, utc_now_iso
from beacon.workflow.models import Note, RunStatus, StageExecution, WorkflowRun

logger = logging.getLogger(__name__)


def _run(row: dict[str, Any]) -> WorkflowRun:
    return WorkflowRun(
        id=row["id"],
        workflow_name=row["workflow_name"],
        started_at=parse_timestamp(row["started_at"]),
        completed_at=parse_timestamp(row["completed_at"]),
        status=RunStatus(row["status"]),
    )


def _stage(row: dict[str, Any]) -> StageExecution:
    return StageExecution(
        id=row["id"],
        workflow_run_id=row["workflow_run_id"],
        stage_index=row["stage_index"],
        stage_title=row["stage_title"],
        started_at=parse_timestamp(row["started_at"]),
        completed_at=parse_timestamp(row["completed_at"]),
    )


def _note(row: dict[str, Any]) -> Note:
    return Note(
        id=row["id"],
        workflow_run_id=row["workflow_run_id"],
        stage_execution_id=row["stage_execution_id"],
        content=row["content"],
        created_at=parse_timestamp(row["created_at"]),
    )


class NoteRepository:
    """Sole writer of run, stage and note state."""

    def __init__(self, db: Database) -> None:
        self._db = db

    def create_workflow_run(self, workflow_name: str) -> int:
        run_id = self._db.execute(
            "INSERT INTO workflow_runs (workflow_name, started_at, status) VALUES (?, ?, ?)",
            (workflow_name, utc_now_iso(), RunStatus.RUNNING.value),
            fetch="lastrowid",
        )
        logger.debug("Workflow run created", extra={"run_id": run_id, "workflow": workflow_name})
        return run_id

    def update_run_status(self, run_id: int, status: RunStatus) -> None:
        self._db.execute(
            "UPDATE workflow_runs SET status = ?, completed_at = ? WHERE id = ?",
            (RunStatus(status).value, utc_now_iso(), run_id),
        )

    def create_stage_execution(self, run_id: int, stage_index: int, stage_title: str) -> int:
        return self._db.execute(
            "INSERT INTO stage_executions "
            "(workflow_run_id, stage_index, stage_title, started_at) VALUES (?, ?, ?, ?)",
            (run_id, stage_index, stage_title, utc_now_iso()),
            fetch="lastrowid",
        )

    def complete_stage_execution(self, stage_id: int) -> None:
        self._db.execute(
            "UPDATE stage_executions SET completed_at = ? WHERE id = ?",
            (utc_now_iso(), stage_id),
        )

    def add_note(self, run_id: int, stage_id: int | None, content: str) -> int:
        return self._db.execute(
            "INSERT INTO notes (workflow_run_id, stage_execution_id, content, created_at) "
            "VALUES (?, ?, ?, ?)",
            (run_id, stage_id, content, utc_now_iso()),
            fetch="lastrowid",
        )

    def get_notes_for_run(self, run_id: int) -> list[Note]:
        rows = self._db.execute(
            "SELECT * FROM notes WHERE workflow_run_id = ? ORDER BY created_at ASC, id ASC",
            (run_id,),
            fetch="all",
        )
        return [_note(row) for row in rows]

    def get_notes_for_stage(self, stage_id: int) -> list[Note]:
        rows = self._db.execute(
            "SELECT * FROM notes WHERE stage_execution_id = ? ORDER BY created_at ASC, id ASC",
            (stage_id,),
            fetch="all",
        )
        return [_note(row) for row in rows]

    def get_run(self, run_id: int) -> WorkflowRun | None:
        row = self._db.execute("SELECT * FROM workflow_runs WHERE id = ?", (run_id,), fetch="one")
        return _run(row) if row else None

    def get_recent_runs(self, limit: int = 10) -> list[WorkflowRun]:
        rows = self._db.execute(
            "SELECT * FROM workflow_runs ORDER BY started_at DESC, id DESC LIMIT ?",
            (limit,),
            fetch="all",
        )
        return [_run(row) for row in rows]

    def get_stage_executions(self, run_id: int) -> list[StageExecution]:
        rows = self._db.execute(
            "SELECT * FROM stage_executions WHERE workflow_run_id = ? ORDER BY stage_index ASC",
            (run_id,),
            fetch="all",
        )
        return [_stage(row) for row in rows]
