"""Level 3: LLM-assisted classification for queries the keywords cannot settle."""

import asyncio
from typing import Any, Optional

from loguru import logger

from persona_router.providers.base import LLMProvider

from .catalog import RuleCatalog
from .errors import (
    LLMError,
    LLMInvalidResponseError,
    LLMTimeoutError,
    LLMUnavailableError,
)


CLASSIFICATION_PROMPT = """You are a question classifier for a desktop assistant with specialised personas.

Classify the question into exactly ONE of these categories:

{categories}

Question: "{query}"

Reply with ONLY the category ID (one of: {category_ids}).
"""

SYSTEM_PROMPT = "You are a routing classifier. Respond ONLY with a category ID."


class FallbackClassifier:
    """
    Closed-set persona classification through an LLM provider.

    Unknown labels are coerced to the default category. Transport failures
    (timeout, empty or error response, provider exception, cancellation)
    raise an ``LLMError`` so the coordinator can pick the final fallback.
    """

    def __init__(
        self,
        catalog: RuleCatalog,
        provider: Optional[LLMProvider] = None,
        model: Optional[str] = None,
        timeout_ms: int = 3000,
        secondary_model: Optional[str] = None,
        max_tokens: int = 30,
        temperature: float = 0.1,
    ):
        self.catalog = catalog
        self.provider = provider
        self.model = model
        self.timeout_ms = timeout_ms
        self.secondary_model = secondary_model
        self.max_tokens = max_tokens
        self.temperature = temperature

    @property
    def is_available(self) -> bool:
        return self.provider is not None

    async def classify_with_llm(self, query: str) -> str:
        """
        Classify a query into a known category.

        Args:
            query: The user input

        Returns:
            A category from the catalog, or the default category

        Raises:
            LLMError: on timeout, invalid response or provider failure
        """
        if self.provider is None:
            raise LLMUnavailableError("no LLM provider configured")

        messages = [
            {"role": "system", "content": SYSTEM_PROMPT},
            {"role": "user", "content": self.build_prompt(query)},
        ]

        try:
            raw = await self._call_llm(messages, model=self.model)
        except LLMError as e:
            if not self.secondary_model:
                raise
            logger.warning(
                f"Primary LLM classifier failed ({e}), retrying with {self.secondary_model}"
            )
            raw = await self._call_llm(messages, model=self.secondary_model)

        return self._parse_response(raw)

    def build_prompt(self, query: str) -> str:
        """Build the closed-set classification prompt."""
        lines = [
            f"- {rule.category}: {rule.label or rule.category}"
            for rule in self.catalog
        ]
        lines.append(
            f"- {self.catalog.default_category}: General questions or anything "
            f"that doesn't fit the above"
        )
        category_ids = [*self.catalog.categories, self.catalog.default_category]
        return CLASSIFICATION_PROMPT.format(
            categories="\n".join(lines),
            query=query,
            category_ids=", ".join(category_ids),
        )

    async def _call_llm(self, messages: list[dict[str, Any]], model: Optional[str] = None) -> str:
        """Call the LLM with timeout."""
        try:
            llm_task = asyncio.ensure_future(
                self.provider.chat(
                    messages=messages,
                    model=model,
                    max_tokens=self.max_tokens,
                    temperature=self.temperature,
                )
            )
            response = await asyncio.wait_for(llm_task, timeout=self.timeout_ms / 1000.0)
        except asyncio.TimeoutError as e:
            raise LLMTimeoutError(
                f"LLM classification timed out after {self.timeout_ms}ms"
            ) from e
        except asyncio.CancelledError:
            task = asyncio.current_task()
            if task is not None and task.cancelling() > 0:
                raise
            raise LLMUnavailableError("LLM classification was cancelled")
        except Exception as e:
            raise LLMUnavailableError(f"LLM provider failed: {e}") from e

        if response is None:
            raise LLMInvalidResponseError("LLM provider returned no response")
        if getattr(response, "is_error", False):
            raise LLMInvalidResponseError(response.content or "LLM provider reported an error")

        content = response.content or ""
        if not content.strip():
            raise LLMInvalidResponseError("LLM returned an empty response")
        return content

    def _parse_response(self, content: str) -> str:
        """Normalise the raw label and validate it against the catalog."""
        label = content.strip().strip("`'\".").strip().lower()

        if self.catalog.is_known(label):
            return label

        logger.warning(f"LLM returned unknown persona '{content[:50]}', using default")
        return self.catalog.default_category
