"""Extraction and formatting of ```note blocks.

The AI marks reusable facts by fencing them with a `note` language tag:

    ```note
    [Label]
    content
    ```

Extracted notes are persisted per stage and injected into later prompts.
"""

from __future__ import annotations

import re
from collections.abc import Iterable

from beacon.workflow.models import Note

# The body is optional so an empty block does not swallow text up to a later fence.
NOTE_BLOCK_RE = re.compile(r"```note\s*?\r?\n(?:(.*?)\r?\n)??```", re.DOTALL)

CONTEXT_HEADER = "Previous notes from earlier stages:"


def extract_notes(text: str) -> list[str]:
    """Return the stripped contents of every non-empty note block, in order."""

    notes: list[str] = []
    for match in NOTE_BLOCK_RE.finditer(text):
        content = (match.group(1) or "").strip()
        if content:
            notes.append(content)
    return notes


def format_notes_for_context(notes: Iterable[Note | str]) -> str:
    """Wrap each note in its own fenced block for injection into a prompt."""

    contents = [n.content if isinstance(n, Note) else n for n in notes]
    if not contents:
        return ""

    blocks = "\n\n".join(f"```note\n{content}\n```" for content in contents)
    return f"{CONTEXT_HEADER}\n\n{blocks}\n\n---\n\n"
