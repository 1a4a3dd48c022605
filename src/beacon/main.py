"""CLI entrypoint for beacon.

Exit codes:
- 0  success
- 1  workflow or command failure
- 2  configuration error
- 3  workflow not found
"""

from __future__ import annotations

import argparse
import logging
import sys

import questionary
from pydantic import ValidationError

from beacon import __version__
from beacon.ai.claude_cli import ClaudeCliService
from beacon.config import BeaconSettings
from beacon.display import (
    NotesDisplayService,
    Palette,
    make_console,
    render_logs,
    render_run_list,
    render_run_notes,
)
from beacon.errors import BeaconError
from beacon.logging import configure_logging
from beacon.storage.db import Database
from beacon.storage.log_store import LogRepository
from beacon.storage.note_store import NoteRepository
from beacon.workflow.engine import WorkflowEngine
from beacon.workflow.models import RunStatus
from beacon.workflow.repository import WorkflowRepository

logger = logging.getLogger(__name__)

EXIT_FAILURE = 1
EXIT_CONFIG = 2
EXIT_NOT_FOUND = 3


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="beacon",
        description="CLI for persistent workflow state management with LLM prompting",
    )
    parser.add_argument("--version", action="version", version=f"beacon {__version__}")

    subparsers = parser.add_subparsers(dest="command")

    hello = subparsers.add_parser("hello", help="Say hello and log the interaction")
    hello.add_argument("-n", "--name", default=None, help="Name to greet")

    logs = subparsers.add_parser("logs", help="View recent command logs")
    logs.add_argument(
        "-l", "--limit", type=int, default=10, help="Number of logs to display"
    )

    subparsers.add_parser("clear-logs", help="Clear all command logs")

    subparsers.add_parser(
        "list-workflows", help="List available workflows in .beacon/workflows/"
    )

    run = subparsers.add_parser("run", aliases=["new"], help="Start a new workflow")
    run.add_argument(
        "workflow",
        nargs="?",
        default=None,
        help="Workflow name (file name without .yml); prompts for one when omitted",
    )

    notes = subparsers.add_parser("notes", help="View notes from workflow runs")
    notes_mode = notes.add_mutually_exclusive_group()
    notes_mode.add_argument(
        "-r", "--run", dest="run_id", type=int, default=None, help="Show notes for a run ID"
    )
    notes_mode.add_argument(
        "-l", "--list", action="store_true", help="List recent workflow runs"
    )
    notes.add_argument(
        "--limit", type=int, default=20, help="Number of runs to list with --list"
    )

    return parser


def _audit(logs: LogRepository, command: str, args: dict[str, object]) -> None:
    try:
        logs.create(command=command, args=args)
    except Exception:
        logger.warning("Failed to write audit log entry", exc_info=True)


def _no_workflows_message(repository: WorkflowRepository) -> str:
    return f"No workflows found. Create {repository.workflows_dir}/ to get started."


def _select_workflow(repository: WorkflowRepository) -> str | None:
    """Ask the user to pick a workflow; `None` when there is none or the prompt is cancelled."""

    workflows = repository.list_workflows()
    if not workflows:
        print(_no_workflows_message(repository))
        return None
    # ask() returns None on Ctrl+C instead of raising.
    return questionary.select(
        "Select a workflow:",
        choices=[questionary.Choice(title=w.name, value=w.name) for w in workflows],
    ).ask()


def _list_workflows(repository: WorkflowRepository) -> int:
    workflows = repository.list_workflows()
    if not workflows:
        print(_no_workflows_message(repository))
        return 0
    print("\n".join(w.name for w in workflows))
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 0

    try:
        settings = BeaconSettings()
    except ValidationError as e:
        # Logging isn't configured yet; keep it simple and actionable.
        print("Configuration error (check your .env):", file=sys.stderr)
        print(e, file=sys.stderr)
        return EXIT_CONFIG

    configure_logging(settings.log_level)
    palette = Palette(make_console(color=settings.color))

    try:
        with Database(settings.database_path) as db:
            logs = LogRepository(db)
            store = NoteRepository(db)
            workflows = WorkflowRepository(settings.workflows_dir)

            if args.command == "hello":
                _audit(logs, "hello", {"name": args.name})
                print(f"Hello, {args.name}!" if args.name else "Hello, World!")
                return 0

            if args.command == "logs":
                print(render_logs(logs.find_recent(args.limit)))
                return 0

            if args.command == "clear-logs":
                count = logs.clear_all()
                print("No logs to clear." if count == 0 else f"Cleared {count} log(s).")
                return 0

            if args.command == "list-workflows":
                _audit(logs, "list-workflows", {})
                return _list_workflows(workflows)

            if args.command in {"run", "new"}:
                workflow_name = args.workflow or _select_workflow(workflows)
                if workflow_name is None:
                    return 0
                engine = WorkflowEngine(
                    workflow_source=workflows,
                    store=store,
                    ai_service=ClaudeCliService(
                        executable=settings.claude_executable,
                        annotation_style=palette.tool,
                    ),
                    log_repository=logs,
                    palette=palette,
                )
                run = engine.run_workflow(workflow_name)
                if run.status is RunStatus.COMPLETED:
                    return 0
                return EXIT_NOT_FOUND

            if args.command == "notes":
                _audit(logs, "notes", {"run": args.run_id, "list": args.list})
                display = NotesDisplayService(store)
                if args.list:
                    print(render_run_list(display.get_recent_runs(args.limit), palette))
                    return 0
                if args.run_id is not None:
                    details = display.get_run_with_notes(args.run_id)
                    if details is None:
                        print(f"Run #{args.run_id} not found.")
                        return EXIT_NOT_FOUND
                else:
                    details = display.get_latest_run_with_notes()
                    if details is None:
                        print("No workflow runs found.")
                        return 0
                print(render_run_notes(details, palette))
                return 0

            logger.error("Unknown command", extra={"command": args.command})
            return EXIT_CONFIG

    except BeaconError as e:
        logger.warning(str(e), extra={"error_type": type(e).__name__})
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_FAILURE

    except Exception:
        logger.exception("Command failed")
        return EXIT_FAILURE


if __name__ == "__main__":
    raise SystemExit(main())
