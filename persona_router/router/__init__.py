"""
Persona routing package.

Provides three-level classification:
1. Keyword matching against the rule catalog (fast)
2. Context enrichment from the user's recent sessions
3. LLM-assisted classification (fallback for uncertain cases)

Plus non-committal persona switch suggestions with accept/reject tracking.
"""

from .catalog import RuleCatalog
from .context import ContextEnricher
from .coordinator import RoutingCoordinator
from .errors import (
    CatalogError,
    HistoryUnavailableError,
    InvalidInputError,
    LLMError,
    LLMInvalidResponseError,
    LLMTimeoutError,
    LLMUnavailableError,
    RouterError,
)
from .keyword import KeywordClassifier, classify_keywords
from .llm_router import FallbackClassifier
from .models import ClassificationResult, RoutingReason, Suggestion
from .service import RouterContext
from .stats import StatsRecorder
from .suggestions import SuggestionManager

__all__ = [
    "RuleCatalog",
    "KeywordClassifier",
    "classify_keywords",
    "ContextEnricher",
    "FallbackClassifier",
    "RoutingCoordinator",
    "SuggestionManager",
    "StatsRecorder",
    "RouterContext",
    "ClassificationResult",
    "RoutingReason",
    "Suggestion",
    "RouterError",
    "InvalidInputError",
    "HistoryUnavailableError",
    "LLMError",
    "LLMTimeoutError",
    "LLMInvalidResponseError",
    "LLMUnavailableError",
    "CatalogError",
]
