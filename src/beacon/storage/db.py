"""SQLite connection and schema migrations.

One `Database` wraps a single connection for the lifetime of a CLI invocation.
Writes are serialised through a lock; beacon runs one workflow at a time, so
this is only a guard against stray background callers.

Usage:
    with Database(path) as db:
        db.execute("SELECT ...", (arg,), fetch="all")
"""

from __future__ import annotations

import logging
import sqlite3
import threading
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, Literal

logger = logging.getLogger(__name__)

MEMORY = ":memory:"

# Applied in order, each exactly once. Never edit an entry once released;
# append a new one instead.
MIGRATIONS: list[tuple[str, str]] = [
    (
        "001_command_logs",
        """
        CREATE TABLE IF NOT EXISTS command_logs (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            command TEXT NOT NULL,
            args TEXT NOT NULL,
            timestamp TEXT NOT NULL
        );
        CREATE INDEX IF NOT EXISTS idx_command_logs_timestamp ON command_logs(timestamp);
        """,
    ),
    (
        "002_workflow_runs_and_notes",
        """
        CREATE TABLE IF NOT EXISTS workflow_runs (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            workflow_name TEXT NOT NULL,
            started_at TEXT NOT NULL,
            completed_at TEXT,
            status TEXT NOT NULL CHECK (status IN ('running', 'completed', 'failed'))
        );
        CREATE TABLE IF NOT EXISTS stage_executions (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            workflow_run_id INTEGER NOT NULL REFERENCES workflow_runs(id),
            stage_index INTEGER NOT NULL,
            stage_title TEXT NOT NULL,
            started_at TEXT NOT NULL,
            completed_at TEXT
        );
        CREATE TABLE IF NOT EXISTS notes (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            workflow_run_id INTEGER NOT NULL REFERENCES workflow_runs(id),
            stage_execution_id INTEGER REFERENCES stage_executions(id),
            content TEXT NOT NULL,
            created_at TEXT NOT NULL
        );
        CREATE INDEX IF NOT EXISTS idx_workflow_runs_started_at ON workflow_runs(started_at);
        CREATE INDEX IF NOT EXISTS idx_stage_executions_run ON stage_executions(workflow_run_id);
        CREATE INDEX IF NOT EXISTS idx_notes_run ON notes(workflow_run_id);
        CREATE INDEX IF NOT EXISTS idx_notes_stage ON notes(stage_execution_id);
        """,
    ),
]

Fetch = Literal["none", "one", "all", "lastrowid"]


def utc_now_iso() -> str:
    return datetime.now(tz=UTC).isoformat()


def parse_timestamp(value: str | None) -> datetime | None:
    if value is None:
        return None
    return datetime.fromisoformat(value)


class Database:
    """A migrated SQLite connection."""

    def __init__(self, path: Path | str = MEMORY) -> None:
        self.path = str(path)
        if self.path != MEMORY:
            Path(self.path).parent.mkdir(parents=True, exist_ok=True)

        self._lock = threading.Lock()
        self._conn = sqlite3.connect(self.path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._conn.execute("PRAGMA foreign_keys=ON")
        self.applied_migrations = self._migrate()

    def __enter__(self) -> Database:
        return self

    def __exit__(self, *_exc: object) -> None:
        self.close()

    def close(self) -> None:
        with self._lock:
            self._conn.close()

    def _migrate(self) -> list[str]:
        with self._lock:
            self._conn.execute(
                """
                CREATE TABLE IF NOT EXISTS _migrations (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    name TEXT NOT NULL UNIQUE,
                    applied_at TEXT NOT NULL
                )
                """
            )
            done = {row["name"] for row in self._conn.execute("SELECT name FROM _migrations")}

            applied: list[str] = []
            for name, sql in MIGRATIONS:
                if name in done:
                    continue
                self._conn.executescript(sql)
                self._conn.execute(
                    "INSERT INTO _migrations (name, applied_at) VALUES (?, ?)",
                    (name, utc_now_iso()),
                )
                self._conn.commit()
                applied.append(name)
                logger.info("Applied migration", extra={"migration": name, "db": self.path})
            return applied

    def execute(self, sql: str, params: tuple[Any, ...] = (), fetch: Fetch = "none") -> Any:
        """Execute one statement and commit.

        Args:
            sql: SQL statement with `?` placeholders.
            params: Parameters tuple.
            fetch: "none", "one", "all" or "lastrowid".

        Returns:
            None for "none", a dict (or None) for "one", list[dict] for "all",
            the inserted row id for "lastrowid".
        """
        with self._lock:
            cursor = self._conn.execute(sql, params)
            try:
                if fetch == "one":
                    row = cursor.fetchone()
                    return dict(row) if row is not None else None
                if fetch == "all":
                    return [dict(row) for row in cursor.fetchall()]
                if fetch == "lastrowid":
                    return cursor.lastrowid
                return None
            finally:
                self._conn.commit()
                cursor.close()
