"""Data models for the persona router."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Optional


DEFAULT_USER_SCOPE = "default"


class RoutingReason(str, Enum):
    """Why a classification ended on its category."""
    DEFAULT = "default"
    KEYWORD_MATCH = "keyword_match"
    CONTEXT_BOOST = "context_boost"
    LLM_CLASSIFICATION = "llm_classification"
    FALLBACK = "fallback"
    INVALID_INPUT = "invalid_input"


class RoutingLevel(str, Enum):
    """Classification stage that produced the final result."""
    KEYWORD = "keyword"
    CONTEXT = "context"
    LLM = "llm"


@dataclass(frozen=True)
class Rule:
    """A persona and the trigger phrases that select it."""

    category: str
    trigger_phrases: tuple[str, ...]
    base_confidence: float
    label: str = ""
    suggestion_reason: str = ""


@dataclass
class ClassificationResult:
    """Result of routing a query to a persona."""

    category: str
    confidence: float
    reason: RoutingReason
    matched_phrases: list[str] = field(default_factory=list)

    # Diagnostics attached by the context stage
    context_info: Optional[dict[str, Any]] = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        data = {
            "category": self.category,
            "confidence": self.confidence,
            "reason": self.reason.value,
            "matched_phrases": list(self.matched_phrases),
        }
        if self.context_info is not None:
            data["context_info"] = dict(self.context_info)
        return data


@dataclass
class UsageRecord:
    """One past session, carrying the persona that was active."""

    category: str
    timestamp: Optional[datetime] = None


@dataclass
class Suggestion:
    """A non-committed proposal to switch persona."""

    suggested_category: str
    current_category: str
    confidence: float
    matched_phrases: list[str]
    query_excerpt: str
    created_at: datetime
    reason: str = ""
    user_id: str = DEFAULT_USER_SCOPE

    accepted: bool = False
    rejected: bool = False
    resolved_at: Optional[datetime] = None

    @property
    def is_resolved(self) -> bool:
        return self.accepted or self.rejected

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for the UI bridge."""
        return {
            "suggested_category": self.suggested_category,
            "current_category": self.current_category,
            "confidence": self.confidence,
            "matched_phrases": list(self.matched_phrases),
            "query_excerpt": self.query_excerpt,
            "created_at": self.created_at.isoformat(),
            "reason": self.reason,
            "user_id": self.user_id,
            "accepted": self.accepted,
            "rejected": self.rejected,
            "resolved_at": self.resolved_at.isoformat() if self.resolved_at else None,
        }


@dataclass
class SuggestionStats:
    """Acceptance statistics derived from the suggestion history."""

    total: int
    accepted: int
    rejected: int
    pending: int
    acceptance_rate: str
    per_category_counts: dict[str, int]
    most_suggested_category: Optional[str]


@dataclass
class RoutingStats:
    """Counters for routing outcomes."""

    total_routings: int = 0
    by_level: dict[str, int] = field(
        default_factory=lambda: {level.value: 0 for level in RoutingLevel}
    )
    by_category: dict[str, int] = field(default_factory=dict)
    user_overrides: int = 0
    fallbacks: int = 0

    @property
    def accuracy(self) -> str:
        """Share of routings the user did not override."""
        if self.total_routings == 0:
            return "N/A"
        kept = self.total_routings - self.user_overrides
        return f"{kept / self.total_routings * 100:.1f}%"

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_routings": self.total_routings,
            "by_level": dict(self.by_level),
            "by_category": dict(self.by_category),
            "user_overrides": self.user_overrides,
            "fallbacks": self.fallbacks,
            "accuracy": self.accuracy,
        }


@dataclass
class UserOverride:
    """The user picked another persona than the one predicted."""

    timestamp: datetime
    query_excerpt: str
    predicted_category: str
    confidence: float
    reason: RoutingReason
    user_choice: str
    matched_phrases: list[str] = field(default_factory=list)


@dataclass
class PersonaSwitch:
    """Event emitted when the user agrees to change persona."""

    from_category: str
    to_category: str
    user_id: str
    source: str = "suggestion"
    created_at: datetime = field(default_factory=datetime.now)
