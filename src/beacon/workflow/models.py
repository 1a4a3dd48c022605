"""Domain types for workflow definitions, runs, stages and notes."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

PROMPT_STAGE_TYPE = "prompt"


class Stage(BaseModel):
    """One unit of a workflow.

    Fields are kept as loaded from YAML (no coercion) so that the validator can
    report on wrong types instead of the loader rejecting them.
    """

    model_config = ConfigDict(extra="ignore", frozen=True)

    title: Any = None
    type: Any = None
    prompt: Any = None


class WorkflowDefinition(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True)

    system_prompt: Any = None
    stages: list[Stage] = Field(default_factory=list)


class RunStatus(str, Enum):
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class WorkflowRun(BaseModel):
    id: int
    workflow_name: str
    started_at: datetime
    completed_at: datetime | None = None
    status: RunStatus


class StageExecution(BaseModel):
    id: int
    workflow_run_id: int
    stage_index: int
    stage_title: str
    started_at: datetime
    completed_at: datetime | None = None


class Note(BaseModel):
    id: int
    workflow_run_id: int
    stage_execution_id: int | None = None
    content: str
    created_at: datetime


@dataclass(frozen=True, slots=True)
class ExecutionContext:
    """Per-stage view of a run, rebuilt before each stage executes."""

    run_id: int
    stage_id: int
    previous_notes: tuple[Note, ...] = ()
    system_prompt: str | None = None
