"""SQLite persistence for command logs, workflow runs, stage executions and notes."""

from beacon.storage.db import Database
from beacon.storage.log_store import CommandLog, LogRepository
from beacon.storage.note_store import NoteRepository

__all__ = [
    "CommandLog",
    "Database",
    "LogRepository",
    "NoteRepository",
]
