"""History provider interface."""

from typing import Protocol, Sequence, runtime_checkable

from persona_router.router.models import UsageRecord


@runtime_checkable
class HistoryProvider(Protocol):
    """Source of a user's recent sessions and the persona active in each."""

    async def get_recent(self, user_id: str, limit: int) -> Sequence[UsageRecord]:
        """Return up to ``limit`` usage records, most recent first."""
        ...
