"""Abstract interface for AI backends that stream a response to a prompt."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class StreamCallbacks:
    """Hooks invoked while a prompt executes.

    `on_complete` and `on_error` are mutually exclusive and each fires at most
    once per `AIService.execute_prompt` call.
    """

    on_start: Callable[[], None] | None = None
    on_token: Callable[[str], None] | None = None
    on_complete: Callable[[], None] | None = None
    on_error: Callable[[Exception], None] | None = None


class AIService(ABC):
    """Abstract base class for AI providers.

    This interface allows pluggable backends (Claude CLI, test doubles, etc.)
    """

    @abstractmethod
    def execute_prompt(self, prompt: str, callbacks: StreamCallbacks) -> None:
        """Execute a prompt, streaming the response through callbacks.

        Args:
            prompt: The prompt text to send to the AI.
            callbacks: Hooks for streamed output and completion.

        Raises:
            AIServiceError: If the backend fails or is unavailable.
        """
