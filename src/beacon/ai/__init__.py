"""AI backend package initialization."""

from beacon.ai.claude_cli import ClaudeCliService
from beacon.ai.service import AIService, StreamCallbacks

__all__ = [
    "AIService",
    "ClaudeCliService",
    "StreamCallbacks",
]
