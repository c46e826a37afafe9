"""History provider backed by the desktop app's SQLite sessions table."""

import asyncio
import sqlite3
from datetime import datetime
from pathlib import Path
from typing import Optional

from loguru import logger

from persona_router.router.models import UsageRecord


class SQLiteHistoryProvider:
    """
    Reads recent sessions from a ``sessions`` table.

    Expected columns: ``user_id``, ``agent_profile`` (persona active during
    the session) and ``updated_at`` (ISO timestamp or epoch seconds).
    Queries run in a worker thread so the event loop is never blocked.
    """

    def __init__(
        self,
        db_path: Path,
        table: str = "sessions",
        category_column: str = "agent_profile",
    ):
        self.db_path = Path(db_path)
        self.table = table
        self.category_column = category_column

    async def get_recent(self, user_id: str, limit: int) -> list[UsageRecord]:
        return await asyncio.to_thread(self._query, user_id, limit)

    def _query(self, user_id: str, limit: int) -> list[UsageRecord]:
        if not self.db_path.exists():
            raise FileNotFoundError(f"History database not found: {self.db_path}")

        with sqlite3.connect(self.db_path) as conn:
            conn.row_factory = sqlite3.Row
            cursor = conn.execute(
                f"SELECT {self.category_column} AS category, updated_at "
                f"FROM {self.table} WHERE user_id = ? "
                f"ORDER BY updated_at DESC LIMIT ?",
                (user_id, limit),
            )
            rows = cursor.fetchall()

        logger.debug(f"Loaded {len(rows)} sessions for user {user_id} from {self.db_path}")
        return [
            UsageRecord(category=row["category"], timestamp=_parse_timestamp(row["updated_at"]))
            for row in rows
        ]

    def init_schema(self) -> None:
        """Create the sessions table if missing (local installs and tests)."""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        with sqlite3.connect(self.db_path) as conn:
            conn.execute(f"""
                CREATE TABLE IF NOT EXISTS {self.table} (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    user_id TEXT NOT NULL,
                    {self.category_column} TEXT,
                    updated_at TIMESTAMP
                )
            """)
            conn.execute(
                f"CREATE INDEX IF NOT EXISTS idx_{self.table}_user_updated "
                f"ON {self.table}(user_id, updated_at)"
            )

    def add_session(
        self,
        user_id: str,
        category: Optional[str],
        updated_at: Optional[datetime] = None,
    ) -> None:
        """Insert a session row."""
        stamp = (updated_at or datetime.now()).isoformat()
        with sqlite3.connect(self.db_path) as conn:
            conn.execute(
                f"INSERT INTO {self.table} (user_id, {self.category_column}, updated_at) "
                f"VALUES (?, ?, ?)",
                (user_id, category, stamp),
            )


def _parse_timestamp(value) -> Optional[datetime]:
    if value is None:
        return None
    if isinstance(value, (int, float)):
        return datetime.fromtimestamp(value)
    try:
        return datetime.fromisoformat(str(value))
    except ValueError:
        return None
