"""Usage history providers consulted by the context stage."""

from persona_router.history.base import HistoryProvider
from persona_router.history.memory import InMemoryHistoryProvider
from persona_router.history.sqlite import SQLiteHistoryProvider

__all__ = ["HistoryProvider", "InMemoryHistoryProvider", "SQLiteHistoryProvider"]
