"""In-process history provider."""

from collections import defaultdict, deque
from datetime import datetime
from threading import Lock
from typing import Optional

from persona_router.router.models import UsageRecord


class InMemoryHistoryProvider:
    """Keeps the most recent sessions per user in memory."""

    def __init__(self, max_per_user: int = 100):
        self.max_per_user = max_per_user
        self._lock = Lock()
        self._records: dict[str, deque[UsageRecord]] = defaultdict(
            lambda: deque(maxlen=self.max_per_user)
        )

    def record_usage(
        self,
        user_id: str,
        category: str,
        timestamp: Optional[datetime] = None,
    ) -> UsageRecord:
        """Record that ``user_id`` had a session with ``category`` active."""
        record = UsageRecord(category=category, timestamp=timestamp or datetime.now())
        with self._lock:
            self._records[user_id].appendleft(record)
        return record

    async def get_recent(self, user_id: str, limit: int) -> list[UsageRecord]:
        with self._lock:
            records = self._records.get(user_id)
            if not records:
                return []
            return list(records)[:limit]

    def clear(self, user_id: Optional[str] = None) -> None:
        with self._lock:
            if user_id is None:
                self._records.clear()
            else:
                self._records.pop(user_id, None)
