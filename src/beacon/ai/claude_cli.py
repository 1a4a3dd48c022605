"""AI service backed by the `claude` command-line tool.

The CLI is spawned once per prompt with JSON streaming enabled; its stdout is
parsed incrementally (see `beacon.ai.stream_parser`) so tokens reach the caller
as they are produced. Stderr is passed through to our own stderr unchanged and
kept for error reporting.
"""

from __future__ import annotations

import logging
import signal
import subprocess
import sys
import threading
from collections.abc import Callable, Iterator, Mapping
from contextlib import contextmanager
from typing import IO, TextIO

from beacon.ai.service import AIService, StreamCallbacks
from beacon.ai.stream_parser import StreamParser, ToolFormatter
from beacon.errors import AIServiceError

logger = logging.getLogger(__name__)

READ_CHUNK_SIZE = 64 * 1024

CLAUDE_FLAGS: tuple[str, ...] = (
    "--print",
    "--output-format",
    "stream-json",
    "--verbose",
    "--include-partial-messages",
    "--permission-mode",
    "bypassPermissions",
)

_FORWARDED_SIGNALS: tuple[signal.Signals, ...] = (signal.SIGINT, signal.SIGTERM)


class _ChildTerminator:
    """Forwards an interrupt to the running child, at most once."""

    def __init__(self, process: subprocess.Popen[bytes]) -> None:
        self._process = process
        self._fired = False
        self._lock = threading.Lock()

    def __call__(self, signum: int, _frame: object) -> None:
        with self._lock:
            if self._fired:
                return
            self._fired = True
        logger.info("Terminating AI process on signal", extra={"signal": signum})
        if self._process.poll() is None:
            self._process.terminate()

    @contextmanager
    def installed(self) -> Iterator[None]:
        """Install the handler for SIGINT/SIGTERM and restore the previous ones."""

        # signal.signal() is only allowed on the main thread.
        if threading.current_thread() is not threading.main_thread():
            yield
            return

        previous = {sig: signal.signal(sig, self) for sig in _FORWARDED_SIGNALS}
        try:
            yield
        finally:
            for sig, handler in previous.items():
                signal.signal(sig, handler)


def _write_through(stream: TextIO, chunk: bytes) -> None:
    buffer = getattr(stream, "buffer", None)
    if buffer is not None:
        stream.flush()
        buffer.write(chunk)
        buffer.flush()
    else:
        stream.write(chunk.decode("utf-8", errors="replace"))
        stream.flush()


class ClaudeCliService(AIService):
    """Execute prompts through the Claude CLI with real-time streaming.

    Args:
        executable: Name or path of the CLI binary.
        tool_formats: Override the per-tool annotation formatters.
        annotation_style: Wraps tool annotations for display (e.g. colour).
        stderr: Stream receiving the child's stderr; defaults to `sys.stderr`
            at call time.
    """

    def __init__(
        self,
        *,
        executable: str = "claude",
        tool_formats: Mapping[str, ToolFormatter] | None = None,
        annotation_style: Callable[[str], str] | None = None,
        stderr: TextIO | None = None,
    ) -> None:
        self._executable = executable
        self._tool_formats = tool_formats
        self._annotation_style = annotation_style
        self._stderr = stderr

    def build_command(self, prompt: str) -> list[str]:
        return [self._executable, *CLAUDE_FLAGS, prompt]

    def execute_prompt(self, prompt: str, callbacks: StreamCallbacks) -> None:
        parser = StreamParser(
            on_token=lambda text: callbacks.on_token(text) if callbacks.on_token else None,
            on_first_output=lambda: callbacks.on_start() if callbacks.on_start else None,
            tool_formats=self._tool_formats,
            annotation_style=self._annotation_style,
        )

        command = self.build_command(prompt)
        logger.debug(
            "Spawning AI process",
            extra={"executable": self._executable, "prompt_chars": len(prompt)},
        )
        try:
            process = subprocess.Popen(
                command,
                stdin=None,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                shell=False,
            )
        except OSError as e:
            error = AIServiceError(f"Failed to spawn claude CLI: {e}")
            self._fail(callbacks, error)
            raise error from e

        stderr_chunks: list[bytes] = []
        stderr_thread = threading.Thread(
            target=self._pump_stderr,
            name="claude-stderr",
            daemon=True,
            args=(process.stderr, stderr_chunks),
        )
        stderr_thread.start()

        terminator = _ChildTerminator(process)
        with terminator.installed():
            try:
                assert process.stdout is not None
                while True:
                    chunk = process.stdout.read1(READ_CHUNK_SIZE)
                    if not chunk:
                        break
                    parser.feed(chunk)
                exit_code = process.wait()
            except BaseException:
                # A failing callback must not leave the child running.
                if process.poll() is None:
                    process.kill()
                    process.wait()
                raise
            finally:
                stderr_thread.join()
                if process.stdout is not None:
                    process.stdout.close()

        if exit_code == 0:
            logger.debug("AI process completed", extra={"exit_code": exit_code})
            if callbacks.on_complete:
                callbacks.on_complete()
            return

        stderr_text = b"".join(stderr_chunks).decode("utf-8", errors="replace").strip()
        message = f"Claude CLI exited with code {exit_code}"
        if stderr_text:
            message += f"\n{stderr_text}"
        error = AIServiceError(message, exit_code=exit_code, stderr=stderr_text)
        logger.warning("AI process failed", extra={"exit_code": exit_code})
        self._fail(callbacks, error)
        raise error

    def _pump_stderr(self, pipe: IO[bytes] | None, sink: list[bytes]) -> None:
        if pipe is None:
            return
        stream = self._stderr if self._stderr is not None else sys.stderr
        try:
            while True:
                chunk = pipe.read1(READ_CHUNK_SIZE)  # type: ignore[attr-defined]
                if not chunk:
                    break
                sink.append(chunk)
                _write_through(stream, chunk)
        finally:
            pipe.close()

    @staticmethod
    def _fail(callbacks: StreamCallbacks, error: AIServiceError) -> None:
        if callbacks.on_error:
            callbacks.on_error(error)
