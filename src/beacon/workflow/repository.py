"""Workflow definitions stored as YAML files under `.beacon/workflows/`.

A definition looks like::

    system_prompt: You are a careful reviewer.
    stages:
      - title: Survey
        type: prompt
        prompt: List the modules in this repository.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

import yaml
from pydantic import ValidationError

from beacon.workflow.models import Stage, WorkflowDefinition

logger = logging.getLogger(__name__)

WORKFLOW_SUFFIX = ".yml"


@dataclass(frozen=True, slots=True)
class WorkflowInfo:
    file_name: str
    name: str


class WorkflowRepository:
    def __init__(self, workflows_dir: Path) -> None:
        self._dir = workflows_dir

    @property
    def workflows_dir(self) -> Path:
        return self._dir

    def get_workflow_files(self) -> list[str]:
        """Names of the `*.yml` files in the workflows directory.

        A missing directory is not an error; it simply holds no workflows.
        """

        if not self._dir.is_dir():
            return []
        return sorted(
            p.name for p in self._dir.iterdir() if p.is_file() and p.name.endswith(WORKFLOW_SUFFIX)
        )

    def list_workflows(self) -> list[WorkflowInfo]:
        return [
            WorkflowInfo(file_name=f, name=f.removesuffix(WORKFLOW_SUFFIX))
            for f in self.get_workflow_files()
        ]

    def get_workflow_definition(self, workflow_name: str) -> WorkflowDefinition | None:
        path = self._dir / f"{workflow_name}{WORKFLOW_SUFFIX}"
        try:
            with path.open(encoding="utf-8") as f:
                raw = yaml.safe_load(f)
        except FileNotFoundError:
            return None
        except (OSError, yaml.YAMLError) as e:
            logger.warning(
                "Unable to read workflow definition",
                extra={"path": str(path), "error": str(e)},
            )
            return None

        if not isinstance(raw, dict) or not isinstance(raw.get("stages"), list):
            logger.warning("Workflow definition has no stage list", extra={"path": str(path)})
            return None

        # Malformed stage entries are kept as empty stages so validation reports them.
        stages = [
            Stage.model_validate(item) if isinstance(item, dict) else Stage()
            for item in raw["stages"]
        ]
        try:
            return WorkflowDefinition(system_prompt=raw.get("system_prompt"), stages=stages)
        except ValidationError as e:
            logger.warning(
                "Workflow definition has unexpected shape",
                extra={"path": str(path), "error": str(e)},
            )
            return None
