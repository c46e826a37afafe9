"""Level 2: bias ambiguous classifications toward the user's habitual persona."""

from __future__ import annotations

import asyncio
import inspect
from collections import Counter
from collections.abc import Sequence
from dataclasses import replace
from typing import TYPE_CHECKING, Any, Optional

from loguru import logger

from .catalog import RuleCatalog
from .errors import HistoryUnavailableError
from .models import ClassificationResult, RoutingReason

if TYPE_CHECKING:
    from persona_router.history.base import HistoryProvider


class ContextEnricher:
    """
    Boosts low-confidence results using recent session history.

    When the prior is below ``max_prior_confidence`` and one persona accounts
    for more than ``min_usage_share`` of the sample, the result is moved to
    that persona and its confidence raised by ``boost`` (capped). This stage
    never raises: any history failure returns the prior unchanged.
    """

    def __init__(
        self,
        catalog: RuleCatalog,
        history: Optional[HistoryProvider] = None,
        history_limit: int = 10,
        timeout_ms: int = 2000,
        max_prior_confidence: float = 0.8,
        min_usage_share: float = 0.6,
        boost: float = 0.15,
        max_confidence: float = 0.9,
    ):
        self.catalog = catalog
        self.history = history
        self.history_limit = history_limit
        self.timeout_ms = timeout_ms
        self.max_prior_confidence = max_prior_confidence
        self.min_usage_share = min_usage_share
        self.boost = boost
        self.max_confidence = max_confidence

    async def enrich(
        self,
        prior: ClassificationResult,
        user_id: Optional[str],
    ) -> ClassificationResult:
        """
        Enrich a Level 1 result with the user's usage habits.

        Args:
            prior: Result from the keyword stage
            user_id: User whose history is consulted

        Returns:
            A boosted copy of ``prior``, or ``prior`` itself
        """
        if self.history is None or not user_id:
            return prior

        try:
            categories = await self._fetch_categories(user_id)
        except HistoryUnavailableError as e:
            logger.warning(f"Context enrichment skipped for user {user_id}: {e}")
            return prior

        if not categories:
            return prior

        frequency = Counter(categories)
        mode, count = frequency.most_common(1)[0]
        share = count / len(categories)

        if prior.confidence < self.max_prior_confidence and share > self.min_usage_share:
            boosted = replace(
                prior,
                category=mode,
                confidence=round(min(self.max_confidence, prior.confidence + self.boost), 4),
                reason=RoutingReason.CONTEXT_BOOST,
                matched_phrases=list(prior.matched_phrases),
                context_info={
                    "usage_frequency": round(share, 2),
                    "sample_size": len(categories),
                },
            )
            logger.debug(
                f"Context boost for {user_id}: {prior.category} -> {mode} "
                f"(usage {share:.2f} over {len(categories)} sessions)"
            )
            return boosted

        return prior

    async def _fetch_categories(self, user_id: str) -> list[str]:
        """Fetch recent sessions and map each to a known category."""
        try:
            pending = self.history.get_recent(user_id, self.history_limit)
            if inspect.isawaitable(pending):
                records = await asyncio.wait_for(
                    asyncio.ensure_future(pending), timeout=self.timeout_ms / 1000.0
                )
            else:
                # Synchronous providers hand back their records directly
                records = pending
        except asyncio.TimeoutError as e:
            raise HistoryUnavailableError(
                f"history lookup timed out after {self.timeout_ms}ms"
            ) from e
        except asyncio.CancelledError:
            if _caller_cancelled():
                raise
            raise HistoryUnavailableError("history lookup was cancelled")
        except Exception as e:
            raise HistoryUnavailableError(f"history provider failed: {e}") from e

        if records is None:
            return []
        if isinstance(records, (str, bytes)) or not isinstance(records, Sequence):
            raise HistoryUnavailableError(
                f"history provider returned {type(records).__name__}, expected a sequence"
            )

        return [self._category_of(record) for record in list(records)[: self.history_limit]]

    def _category_of(self, record: Any) -> str:
        """Category of a usage record; missing or unknown ones count as the default."""
        if isinstance(record, dict):
            category = record.get("category")
        else:
            category = getattr(record, "category", None)

        if isinstance(category, str) and self.catalog.is_known(category):
            return category
        return self.catalog.default_category


def _caller_cancelled() -> bool:
    """True when the task running this coroutine is itself being cancelled."""
    task = asyncio.current_task()
    return task is not None and task.cancelling() > 0
