"""Three-level routing: keywords, then user context, then LLM."""

from typing import Optional

from loguru import logger

from .context import ContextEnricher
from .errors import LLMError
from .keyword import KeywordClassifier
from .llm_router import FallbackClassifier
from .models import ClassificationResult, RoutingLevel, RoutingReason
from .stats import StatsRecorder


class RoutingCoordinator:
    """
    Escalates a query through the classification levels.

    Level 1 results above ``keyword_accept`` are returned directly; otherwise
    the context stage runs and its result is accepted above
    ``context_accept``. Anything still uncertain goes to the LLM. If the LLM
    fails, the keyword category is kept when it beat
    ``fallback_min_confidence``, else the default persona is used.
    """

    def __init__(
        self,
        keyword: KeywordClassifier,
        context: ContextEnricher,
        fallback: FallbackClassifier,
        stats: StatsRecorder,
        keyword_accept: float = 0.9,
        context_accept: float = 0.8,
        fallback_min_confidence: float = 0.5,
        llm_confidence: float = 0.95,
    ):
        self.keyword = keyword
        self.context = context
        self.fallback = fallback
        self.stats = stats
        self.keyword_accept = keyword_accept
        self.context_accept = context_accept
        self.fallback_min_confidence = fallback_min_confidence
        self.llm_confidence = llm_confidence

    async def route(self, query: object, user_id: Optional[str] = None) -> ClassificationResult:
        """
        Route a query to the best persona.

        Args:
            query: Free-text user input
            user_id: User whose history informs Level 2

        Returns:
            The final ClassificationResult; never raises for provider failures
        """
        # Level 1: keyword matching
        keyword_result = self.keyword.classify(query)

        if keyword_result.reason == RoutingReason.INVALID_INPUT:
            return self._finish(keyword_result, RoutingLevel.KEYWORD)

        if keyword_result.confidence > self.keyword_accept:
            logger.debug(
                f"Fast route: {keyword_result.category} "
                f"(confidence: {keyword_result.confidence:.2f})"
            )
            return self._finish(keyword_result, RoutingLevel.KEYWORD)

        # Level 2: user context
        enriched = await self.context.enrich(keyword_result, user_id)

        if enriched.confidence > self.context_accept:
            logger.info(
                f"Context route: {enriched.category} (confidence: {enriched.confidence:.2f})"
            )
            return self._finish(enriched, RoutingLevel.CONTEXT)

        # Level 3: LLM classification
        try:
            category = await self.fallback.classify_with_llm(query)
        except LLMError as e:
            logger.warning(f"LLM classification failed, falling back: {e}")
            return self._finish(
                self._fallback_result(keyword_result),
                RoutingLevel.LLM,
                fallback=True,
            )

        logger.info(f"LLM route: {category} (confidence: {self.llm_confidence:.2f})")
        return self._finish(
            ClassificationResult(
                category=category,
                confidence=self.llm_confidence,
                reason=RoutingReason.LLM_CLASSIFICATION,
            ),
            RoutingLevel.LLM,
        )

    def _fallback_result(self, keyword_result: ClassificationResult) -> ClassificationResult:
        if keyword_result.confidence > self.fallback_min_confidence:
            category = keyword_result.category
        else:
            category = self.keyword.default_category

        return ClassificationResult(
            category=category,
            confidence=keyword_result.confidence,
            reason=RoutingReason.FALLBACK,
            matched_phrases=list(keyword_result.matched_phrases),
        )

    def _finish(
        self,
        result: ClassificationResult,
        level: RoutingLevel,
        fallback: bool = False,
    ) -> ClassificationResult:
        self.stats.record(level, result.category, fallback=fallback)
        return result
