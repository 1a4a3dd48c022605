"""Parser for the Claude CLI `--output-format stream-json` protocol.

The CLI writes one JSON object per line. With `--include-partial-messages` the
interesting lines look like::

    {"type": "stream_event", "event": {"type": "content_block_start",
        "index": 0, "content_block": {"type": "text"}}}
    {"type": "stream_event", "event": {"type": "content_block_delta",
        "index": 0, "delta": {"type": "text_delta", "text": "Hel"}}}
    {"type": "stream_event", "event": {"type": "content_block_stop", "index": 0}}

Tool invocations arrive as a `tool_use` content block whose input is streamed
as `input_json_delta` fragments; the parser collects those and emits a single
one-line annotation such as ``[Reading src/app.py]`` when the block stops.

Chunks handed to `StreamParser.feed` may split lines (and UTF-8 characters)
anywhere. Incomplete lines are carried over to the next call; lines that are
not valid JSON are dropped.
"""

from __future__ import annotations

import codecs
import json
import logging
import posixpath
from collections.abc import Callable, Mapping
from typing import Any

logger = logging.getLogger(__name__)

ToolFormatter = Callable[[dict[str, Any]], str | None]

GENERIC_PARAM_MAX_LENGTH = 60
BASH_COMMAND_PREVIEW_LENGTH = 50


def _format_write(params: dict[str, Any]) -> str:
    return f"[Writing {params.get('file_path')}]"


def _format_read(params: dict[str, Any]) -> str:
    return f"[Reading {params.get('file_path')}]"


def _format_edit(params: dict[str, Any]) -> str:
    path = params.get("file_path")
    name = posixpath.basename(path) if isinstance(path, str) else ""
    return f"[Editing {name or path}]"


def _format_bash(params: dict[str, Any]) -> str:
    description = params.get("description")
    if not description:
        command = params.get("command")
        description = command[:BASH_COMMAND_PREVIEW_LENGTH] if isinstance(command, str) else None
    return f"[Running: {description}]"


def _format_search(params: dict[str, Any]) -> str:
    return f"[Searching: {params.get('pattern') or params.get('path')}]"


TOOL_FORMATS: Mapping[str, ToolFormatter] = {
    "Write": _format_write,
    "Read": _format_read,
    "Edit": _format_edit,
    "Bash": _format_bash,
    "Grep": _format_search,
    "Glob": _format_search,
}


def format_tool_usage(
    tool_name: str,
    input_json: str,
    tool_formats: Mapping[str, ToolFormatter] = TOOL_FORMATS,
) -> str:
    """Render a finished tool invocation as a one-line annotation."""

    try:
        params = json.loads(input_json)
    except ValueError:
        return f"[Using {tool_name}]"
    if not isinstance(params, dict):
        return f"[Using {tool_name}]"

    formatter = tool_formats.get(tool_name)
    if formatter is not None:
        formatted = formatter(params)
        if formatted:
            return formatted

    first = next(iter(params.values()), None)
    if isinstance(first, str) and len(first) < GENERIC_PARAM_MAX_LENGTH:
        return f"[{tool_name}: {first}]"
    return f"[Using {tool_name}]"


def _stream_event(parsed: object) -> dict[str, Any] | None:
    if not isinstance(parsed, dict) or parsed.get("type") != "stream_event":
        return None
    event = parsed.get("event")
    return event if isinstance(event, dict) else None


def _field(obj: dict[str, Any], key: str) -> dict[str, Any]:
    value = obj.get(key)
    return value if isinstance(value, dict) else {}


class StreamParser:
    """Turn raw stdout chunks into text tokens and tool annotations.

    Args:
        on_token: Called with each piece of text, in arrival order.
        on_first_output: Called once, on the first text delta or tool use.
        tool_formats: Per-tool annotation formatters; unknown tools use the
            generic ``[Tool: value]`` / ``[Using Tool]`` form.
        annotation_style: Applied to the annotation text before it is
            emitted, e.g. to colour it for a terminal.
    """

    def __init__(
        self,
        on_token: Callable[[str], None],
        on_first_output: Callable[[], None],
        *,
        tool_formats: Mapping[str, ToolFormatter] | None = None,
        annotation_style: Callable[[str], str] | None = None,
    ) -> None:
        self._on_token = on_token
        self._on_first_output = on_first_output
        self._tool_formats = TOOL_FORMATS if tool_formats is None else tool_formats
        self._style = annotation_style or (lambda text: text)

        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._buffer = ""
        self._has_emitted_first = False
        self._seen_text_block = False
        self._tool_name = ""
        self._tool_input = ""

    def feed(self, data: bytes) -> None:
        self._buffer += self._decoder.decode(data)
        lines = self._buffer.split("\n")
        # The last element is either "" or an incomplete line.
        self._buffer = lines.pop()

        for line in lines:
            if not line.strip():
                continue
            try:
                parsed = json.loads(line)
            except ValueError:
                logger.debug("Ignoring non-JSON line from AI process", extra={"line": line[:200]})
                continue
            event = _stream_event(parsed)
            if event is not None:
                self._handle_event(event)

    def _first_output(self) -> None:
        if not self._has_emitted_first:
            self._has_emitted_first = True
            self._on_first_output()

    def _handle_event(self, event: dict[str, Any]) -> None:
        event_type = event.get("type")
        block = _field(event, "content_block")
        delta = _field(event, "delta")

        if event_type == "content_block_start" and block.get("type") == "text":
            if self._seen_text_block:
                self._on_token("\n")
            self._seen_text_block = True

        if event_type == "content_block_start" and block.get("type") == "tool_use":
            name = block.get("name")
            if name:
                self._first_output()
                self._tool_name = str(name)
                self._tool_input = ""

        if event_type == "content_block_delta" and delta.get("type") == "input_json_delta":
            fragment = delta.get("partial_json")
            if fragment:
                self._tool_input += fragment

        if event_type == "content_block_stop" and self._tool_name:
            annotation = format_tool_usage(self._tool_name, self._tool_input, self._tool_formats)
            self._on_token(f"\n\n{self._style(annotation)}\n")
            self._tool_name = ""
            self._tool_input = ""

        if event_type == "content_block_delta" and delta.get("type") == "text_delta":
            text = delta.get("text")
            if text:
                self._first_output()
                self._on_token(text)
