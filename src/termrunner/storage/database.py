"""SQLite database management for command history."""

from __future__ import annotations

import logging
from pathlib import Path

import aiosqlite

from termrunner.storage.models import CommandRecord, CommandResult

logger = logging.getLogger(__name__)

SOURCES = ("oneshot", "session")


class HistoryStore:
    """Append-only record of executed commands."""

    def __init__(self, db_path: str) -> None:
        self.db_path = Path(db_path).expanduser().resolve()
        self._db: aiosqlite.Connection | None = None

    async def open(self) -> None:
        """Open the database and create tables."""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

        self._db = await aiosqlite.connect(str(self.db_path))
        self._db.row_factory = aiosqlite.Row
        await self._db.execute("PRAGMA journal_mode = WAL")

        await self._db.execute("""
            CREATE TABLE IF NOT EXISTS commands (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                command TEXT NOT NULL,
                stdout TEXT DEFAULT '',
                stderr TEXT DEFAULT '',
                exit_code INTEGER,
                execution_time_ms INTEGER,
                source TEXT DEFAULT 'oneshot'
                    CHECK(source IN ('oneshot', 'session')),
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        """)
        await self._db.execute("CREATE INDEX IF NOT EXISTS idx_commands_created_at ON commands(created_at)")
        await self._db.commit()
        logger.info("Database initialized: %s", self.db_path)

    async def close(self) -> None:
        if self._db is not None:
            await self._db.close()
            self._db = None
            logger.info("Database closed")

    async def __aenter__(self) -> HistoryStore:
        await self.open()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    def _conn(self) -> aiosqlite.Connection:
        if self._db is None:
            raise RuntimeError("History store is not open. Call open() first.")
        return self._db

    async def save(self, command: str, result: CommandResult, source: str = "oneshot") -> None:
        """Save a command execution to history. Failures are logged, not raised."""
        if source not in SOURCES:
            logger.warning("Unknown history source %r, not saving: %s", source, command)
            return
        try:
            db = self._conn()
            await db.execute(
                """INSERT INTO commands (command, stdout, stderr, exit_code, execution_time_ms, source)
                   VALUES (?, ?, ?, ?, ?, ?)""",
                (command, result.stdout, result.stderr, result.exit_code, result.execution_time_ms, source),
            )
            await db.commit()
        except Exception:
            logger.exception("Failed to save command history")

    async def recent(self, limit: int = 10) -> list[CommandRecord]:
        """Most recent commands first."""
        db = self._conn()
        cursor = await db.execute(
            """SELECT id, command, stdout, stderr, exit_code, execution_time_ms, source, created_at
               FROM commands ORDER BY id DESC LIMIT ?""",
            (limit,),
        )
        rows = await cursor.fetchall()
        return [CommandRecord(**dict(row)) for row in rows]
