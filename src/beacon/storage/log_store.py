"""Audit log of CLI commands."""

from __future__ import annotations

import json
from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel

from beacon.storage.db import Database


class CommandLog(BaseModel):
    id: int
    command: str
    args: dict[str, Any]
    timestamp: datetime


class LogRepository:
    def __init__(self, db: Database) -> None:
        self._db = db

    def create(
        self, *, command: str, args: dict[str, Any], timestamp: datetime | None = None
    ) -> int:
        ts = timestamp or datetime.now(tz=UTC)
        return self._db.execute(
            "INSERT INTO command_logs (command, args, timestamp) VALUES (?, ?, ?)",
            (command, json.dumps(args, ensure_ascii=False), ts.isoformat()),
            fetch="lastrowid",
        )

    def find_recent(self, limit: int = 10) -> list[CommandLog]:
        rows = self._db.execute(
            "SELECT id, command, args, timestamp FROM command_logs "
            "ORDER BY timestamp DESC, id DESC LIMIT ?",
            (limit,),
            fetch="all",
        )
        return [
            CommandLog(
                id=row["id"],
                command=row["command"],
                args=json.loads(row["args"]),
                timestamp=datetime.fromisoformat(row["timestamp"]),
            )
            for row in rows
        ]

    def count(self) -> int:
        row = self._db.execute("SELECT COUNT(*) AS count FROM command_logs", fetch="one")
        return int(row["count"]) if row else 0

    def clear_all(self) -> int:
        """Delete every log entry and return how many were removed."""

        count = self.count()
        self._db.execute("DELETE FROM command_logs")
        return count
