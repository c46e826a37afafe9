"""Configuration schema using Pydantic."""

from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel
from pydantic_settings import BaseSettings


class Base(BaseModel):
    """Base model that accepts both camelCase and snake_case keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class KeywordConfig(Base):
    """Configuration for Level 1 keyword matching."""
    max_confidence: float = Field(0.95, gt=0, le=1)
    confidence_step: float = Field(0.05, ge=0, le=1)
    default_confidence: float = Field(0.5, ge=0, le=1)
    max_matched_phrases: int = Field(5, ge=1)  # Kept short for logging


class ThresholdConfig(Base):
    """Confidence thresholds that stop escalation."""
    keyword_accept: float = Field(0.9, ge=0, le=1)  # Level 1 accepted above this
    context_accept: float = Field(0.8, ge=0, le=1)  # Level 2 accepted above this
    fallback_min_confidence: float = Field(0.5, ge=0, le=1)  # Keyword category kept on LLM failure above this
    llm_confidence: float = Field(0.95, ge=0, le=1)  # Confidence reported for LLM routes


class ContextConfig(Base):
    """Configuration for Level 2 history-based enrichment."""
    enabled: bool = True
    history_limit: int = Field(10, ge=1)
    timeout_ms: int = Field(2000, gt=0)
    max_prior_confidence: float = Field(0.8, ge=0, le=1)  # Only boost results below this
    min_usage_share: float = Field(0.6, ge=0, le=1)
    boost: float = Field(0.15, ge=0, le=1)
    max_confidence: float = Field(0.9, ge=0, le=1)


class LLMClassifierConfig(Base):
    """Configuration for Level 3 LLM-assisted classifier."""
    enabled: bool = True
    model: str = "gpt-4o-mini"
    timeout_ms: int = Field(3000, gt=0)
    # Optional secondary model to use if the primary LLM classifier fails
    secondary_model: str | None = None
    max_tokens: int = 30
    temperature: float = 0.1


class SuggestionConfig(Base):
    """Configuration for persona switch suggestions."""
    enabled: bool = True
    min_query_length: int = Field(10, ge=0)
    min_confidence: float = Field(0.85, ge=0, le=1)
    max_history: int = Field(50, ge=1)
    excerpt_length: int = Field(200, ge=1)  # Truncated for privacy


class RoutingConfig(Base):
    """Configuration for persona routing."""
    default_category: str | None = None  # Overrides the catalog's default persona
    rules_file: str | None = None  # Custom rule catalog; packaged rules if empty
    keyword: KeywordConfig = Field(default_factory=KeywordConfig)
    thresholds: ThresholdConfig = Field(default_factory=ThresholdConfig)
    context: ContextConfig = Field(default_factory=ContextConfig)
    llm_classifier: LLMClassifierConfig = Field(default_factory=LLMClassifierConfig)
    suggestions: SuggestionConfig = Field(default_factory=SuggestionConfig)

    @model_validator(mode="after")
    def _check_thresholds(self) -> "RoutingConfig":
        if self.thresholds.context_accept > self.thresholds.keyword_accept:
            raise ValueError("context_accept must not exceed keyword_accept")
        return self

    @property
    def rules_path(self) -> Path | None:
        return Path(self.rules_file).expanduser() if self.rules_file else None


class ProviderConfig(Base):
    """LLM provider configuration."""
    api_key: str = ""
    api_base: str | None = None
    extra_headers: dict[str, str] | None = None


class RouterSettings(BaseSettings):
    """Root configuration for persona_router."""
    routing: RoutingConfig = Field(default_factory=RoutingConfig)
    provider: ProviderConfig = Field(default_factory=ProviderConfig)

    model_config = ConfigDict(
        env_prefix="PERSONA_ROUTER_",
        env_nested_delimiter="__",
    )
