"""RouterContext: the per-deployment entry point to persona routing."""

from __future__ import annotations

from collections import deque
from datetime import datetime
from typing import TYPE_CHECKING, Optional, Union

from loguru import logger

from persona_router.config.schema import RouterSettings, RoutingConfig
from persona_router.providers.base import LLMProvider

from .catalog import RuleCatalog
from .context import ContextEnricher
from .coordinator import RoutingCoordinator
from .keyword import KeywordClassifier
from .llm_router import FallbackClassifier
from .models import (
    DEFAULT_USER_SCOPE,
    ClassificationResult,
    RoutingStats,
    Suggestion,
    SuggestionStats,
    UserOverride,
)
from .stats import StatsRecorder
from .suggestions import PersonaSwitchCallback, SuggestionManager

if TYPE_CHECKING:
    from persona_router.history.base import HistoryProvider


MAX_OVERRIDE_LOG = 100


class RouterContext:
    """
    Wires the routing levels, suggestions and statistics together.

    One instance per deployment (or per user, when suggestion history and
    statistics must not be shared). Nothing here is a module-level
    singleton; callers construct and inject it.
    """

    def __init__(
        self,
        config: Optional[RoutingConfig] = None,
        catalog: Optional[RuleCatalog] = None,
        llm_provider: Optional[LLMProvider] = None,
        history: Optional[HistoryProvider] = None,
        on_persona_switch: Optional[PersonaSwitchCallback] = None,
    ):
        self.config = config or RoutingConfig()
        self.catalog = catalog or RuleCatalog.load(self.config.rules_path)
        if self.config.default_category:
            self.catalog = RuleCatalog(
                list(self.catalog.rules),
                default_category=self.config.default_category,
                version=self.catalog.version,
            )

        self._init_classifiers(llm_provider, history)
        self.suggestions = SuggestionManager(
            keyword=self.keyword,
            enabled=self.config.suggestions.enabled,
            min_query_length=self.config.suggestions.min_query_length,
            min_confidence=self.config.suggestions.min_confidence,
            max_history=self.config.suggestions.max_history,
            excerpt_length=self.config.suggestions.excerpt_length,
            on_persona_switch=on_persona_switch,
        )
        self._overrides: deque[UserOverride] = deque(maxlen=MAX_OVERRIDE_LOG)

    def _init_classifiers(
        self,
        llm_provider: Optional[LLMProvider],
        history: Optional[HistoryProvider],
    ) -> None:
        """Initialize the three classification levels and the coordinator."""
        cfg = self.config

        self.keyword = KeywordClassifier(
            self.catalog,
            max_confidence=cfg.keyword.max_confidence,
            confidence_step=cfg.keyword.confidence_step,
            default_confidence=cfg.keyword.default_confidence,
            max_matched_phrases=cfg.keyword.max_matched_phrases,
        )

        self.context = ContextEnricher(
            self.catalog,
            history=history if cfg.context.enabled else None,
            history_limit=cfg.context.history_limit,
            timeout_ms=cfg.context.timeout_ms,
            max_prior_confidence=cfg.context.max_prior_confidence,
            min_usage_share=cfg.context.min_usage_share,
            boost=cfg.context.boost,
            max_confidence=cfg.context.max_confidence,
        )

        self.fallback = FallbackClassifier(
            self.catalog,
            provider=llm_provider if cfg.llm_classifier.enabled else None,
            model=cfg.llm_classifier.model,
            timeout_ms=cfg.llm_classifier.timeout_ms,
            secondary_model=cfg.llm_classifier.secondary_model,
            max_tokens=cfg.llm_classifier.max_tokens,
            temperature=cfg.llm_classifier.temperature,
        )

        self.stats = StatsRecorder(
            categories=[*self.catalog.categories, self.catalog.default_category]
        )

        self.coordinator = RoutingCoordinator(
            keyword=self.keyword,
            context=self.context,
            fallback=self.fallback,
            stats=self.stats,
            keyword_accept=cfg.thresholds.keyword_accept,
            context_accept=cfg.thresholds.context_accept,
            fallback_min_confidence=cfg.thresholds.fallback_min_confidence,
            llm_confidence=cfg.thresholds.llm_confidence,
        )

    @classmethod
    def from_config(
        cls,
        settings: RouterSettings,
        history: Optional[HistoryProvider] = None,
        on_persona_switch: Optional[PersonaSwitchCallback] = None,
    ) -> "RouterContext":
        """Build a context, creating a LiteLLM provider when one is configured."""
        provider = None
        if settings.routing.llm_classifier.enabled and (
            settings.provider.api_key or settings.provider.api_base
        ):
            from persona_router.providers.litellm_provider import LiteLLMProvider

            provider = LiteLLMProvider(
                api_key=settings.provider.api_key or None,
                api_base=settings.provider.api_base,
                default_model=settings.routing.llm_classifier.model,
                extra_headers=settings.provider.extra_headers,
            )

        return cls(
            config=settings.routing,
            llm_provider=provider,
            history=history,
            on_persona_switch=on_persona_switch,
        )

    @property
    def default_category(self) -> str:
        return self.catalog.default_category

    @property
    def known_categories(self) -> frozenset[str]:
        return self.catalog.known_categories

    async def route(self, query: object, user_id: Optional[str] = None) -> ClassificationResult:
        """Route a query to the best persona (keywords, context, then LLM)."""
        return await self.coordinator.route(query, user_id)

    def analyze_suggestion(
        self,
        query: object,
        current_category: str,
        user_id: str = DEFAULT_USER_SCOPE,
    ) -> Optional[Suggestion]:
        return self.suggestions.analyze(query, current_category, user_id=user_id)

    def accept_suggestion(self, suggestion: Union[Suggestion, dict, None]) -> bool:
        return self.suggestions.accept(suggestion)

    def reject_suggestion(self, suggestion: Union[Suggestion, dict, None]) -> bool:
        return self.suggestions.reject(suggestion)

    def get_suggestion_history(self, limit: int = 10) -> list[Suggestion]:
        return self.suggestions.get_history(limit)

    def get_last_suggestion(self, user_id: str = DEFAULT_USER_SCOPE) -> Optional[Suggestion]:
        return self.suggestions.get_last_suggestion(user_id)

    def clear_last_suggestion(self, user_id: str = DEFAULT_USER_SCOPE) -> None:
        self.suggestions.clear_last_suggestion(user_id)

    def set_suggestions_enabled(self, enabled: bool) -> None:
        self.suggestions.set_enabled(enabled)

    def get_suggestion_stats(self) -> SuggestionStats:
        return self.suggestions.get_stats()

    def get_stats(self) -> RoutingStats:
        """Read-only snapshot of the routing counters."""
        return self.stats.snapshot()

    def reset_stats(self) -> None:
        self.stats.reset()

    def log_user_override(
        self,
        query: str,
        prediction: ClassificationResult,
        user_choice: str,
    ) -> UserOverride:
        """
        Record that the user picked another persona than the router predicted.

        Overrides lower the reported accuracy and are kept (bounded) so the
        rule catalog can be reviewed against real corrections.
        """
        self.stats.record_override()

        entry = UserOverride(
            timestamp=datetime.now(),
            query_excerpt=(query or "")[: self.config.suggestions.excerpt_length],
            predicted_category=prediction.category,
            confidence=prediction.confidence,
            reason=prediction.reason,
            user_choice=user_choice,
            matched_phrases=list(prediction.matched_phrases),
        )
        self._overrides.appendleft(entry)

        logger.info(
            f"User override: predicted {prediction.category} "
            f"({prediction.confidence:.2f}, {prediction.reason.value}), chose {user_choice}"
        )
        return entry

    def get_user_overrides(self, limit: int = 20) -> list[UserOverride]:
        """Most recent overrides first."""
        return list(self._overrides)[:limit]
