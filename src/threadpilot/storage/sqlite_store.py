"""Summary: SQLite storage for Slack channel to Basecamp list bindings.

Importance: Lets each Slack channel file issues into its own Basecamp project and to-do list.
Alternatives: Keep bindings in a JSON file or in environment variables.
"""

from __future__ import annotations

import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

from threadpilot.models import ChannelBinding


class BindingStore:
    """Summary: SQLite-backed channel binding store.

    Importance: Survives restarts and concurrent API and event handlers without extra services.
    Alternatives: Use Postgres and SQLAlchemy.
    """

    def __init__(self, db_path: str) -> None:
        self._db_path = Path(db_path)

    def initialize(self) -> None:
        """Summary: Create tables if they do not exist.

        Importance: Ensures the database is ready before the first event arrives.
        Alternatives: Run migrations using a dedicated migration tool.
        """

        with self._connection() as connection:
            connection.execute(
                """
                CREATE TABLE IF NOT EXISTS channel_bindings (
                    channel_id TEXT PRIMARY KEY,
                    project_id TEXT NOT NULL,
                    todolist_id TEXT NOT NULL,
                    updated_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP
                )
                """
            )
            connection.commit()

    def get_binding(self, channel_id: str) -> ChannelBinding | None:
        with self._connection() as connection:
            row = connection.execute(
                "SELECT channel_id, project_id, todolist_id FROM channel_bindings WHERE channel_id = ?",
                (channel_id,),
            ).fetchone()
        if not row or not row[1] or not row[2]:
            return None
        return ChannelBinding(*row)

    def set_binding(self, channel_id: str, project_id: str, todolist_id: str) -> ChannelBinding:
        """Summary: Bind a channel, replacing any previous binding.

        Importance: Re-binding a channel moves future issues without manual cleanup.
        Alternatives: Reject bindings for channels that already have one.
        """

        binding = ChannelBinding(
            channel_id=channel_id, project_id=str(project_id), todolist_id=str(todolist_id)
        )
        with self._connection() as connection:
            connection.execute(
                """
                INSERT INTO channel_bindings (channel_id, project_id, todolist_id)
                VALUES (?, ?, ?)
                ON CONFLICT(channel_id) DO UPDATE SET
                    project_id = excluded.project_id,
                    todolist_id = excluded.todolist_id,
                    updated_at = CURRENT_TIMESTAMP
                """,
                (binding.channel_id, binding.project_id, binding.todolist_id),
            )
            connection.commit()
        return binding

    def remove_binding(self, channel_id: str) -> bool:
        with self._connection() as connection:
            cursor = connection.execute(
                "DELETE FROM channel_bindings WHERE channel_id = ?", (channel_id,)
            )
            connection.commit()
            return cursor.rowcount > 0

    def list_bindings(self) -> list[ChannelBinding]:
        with self._connection() as connection:
            rows = connection.execute(
                "SELECT channel_id, project_id, todolist_id FROM channel_bindings ORDER BY channel_id"
            ).fetchall()
        return [ChannelBinding(*row) for row in rows]

    @contextmanager
    def _connection(self) -> Iterator[sqlite3.Connection]:
        """Summary: Context manager for SQLite connections.

        Importance: Ensures connections are closed cleanly after use.
        Alternatives: Keep a single long-lived connection.
        """

        connection = sqlite3.connect(self._db_path)
        try:
            yield connection
        finally:
            connection.close()
