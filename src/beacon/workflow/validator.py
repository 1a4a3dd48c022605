from __future__ import annotations

from dataclasses import dataclass, field

from beacon.workflow.models import PROMPT_STAGE_TYPE, WorkflowDefinition

MIN_PROMPT_LENGTH = 10


@dataclass(frozen=True, slots=True)
class ValidationResult:
    valid: bool
    errors: list[str] = field(default_factory=list)


def _blank(value: object) -> bool:
    return not isinstance(value, str) or not value.strip()


class WorkflowValidator:
    """Structural checks on a loaded workflow definition.

    Every stage is checked and all problems are reported together; only a
    missing stage list short-circuits.
    """

    @staticmethod
    def validate(definition: WorkflowDefinition) -> ValidationResult:
        errors: list[str] = []

        if definition.system_prompt is not None and not isinstance(definition.system_prompt, str):
            errors.append("system_prompt must be a string if provided")

        if not definition.stages:
            errors.append("Workflow must have at least one stage")
            return ValidationResult(valid=False, errors=errors)

        for number, stage in enumerate(definition.stages, start=1):
            if _blank(stage.title):
                errors.append(f"Stage {number}: missing or empty title")

            if stage.type != PROMPT_STAGE_TYPE:
                errors.append(f"Stage {number}: type must be 'prompt' (got '{stage.type}')")

            if _blank(stage.prompt):
                errors.append(f"Stage {number}: missing or empty prompt")
            else:
                length = len(stage.prompt.strip())
                if length < MIN_PROMPT_LENGTH:
                    errors.append(
                        f"Stage {number}: prompt is too short "
                        f"(minimum {MIN_PROMPT_LENGTH} characters, got {length})"
                    )

        return ValidationResult(valid=not errors, errors=errors)
