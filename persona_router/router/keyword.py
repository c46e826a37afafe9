"""Level 1: fast keyword classification against the rule catalog."""

import re
from typing import Optional

from loguru import logger

from .catalog import RuleCatalog
from .errors import InvalidInputError
from .models import ClassificationResult, Rule, RoutingReason


MAX_CONFIDENCE = 0.95
CONFIDENCE_STEP = 0.05
DEFAULT_CONFIDENCE = 0.5
MAX_MATCHED_PHRASES = 5


class KeywordClassifier:
    """
    Word-boundary phrase matching over an ordered rule catalog.

    Confidence grows with the number of distinct phrases a rule matches:
    base + step * (matches - 1), capped at max_confidence. The strictly
    highest confidence wins, so on ties the earlier rule is kept.
    """

    def __init__(
        self,
        catalog: RuleCatalog,
        max_confidence: float = MAX_CONFIDENCE,
        confidence_step: float = CONFIDENCE_STEP,
        default_confidence: float = DEFAULT_CONFIDENCE,
        max_matched_phrases: int = MAX_MATCHED_PHRASES,
    ):
        self.catalog = catalog
        self.max_confidence = max_confidence
        self.confidence_step = confidence_step
        self.default_confidence = default_confidence
        self.max_matched_phrases = max_matched_phrases
        self._patterns = self._compile(catalog)

    @property
    def default_category(self) -> str:
        return self.catalog.default_category

    @staticmethod
    def _compile(catalog: RuleCatalog) -> list[tuple[Rule, list[tuple[str, re.Pattern]]]]:
        """Pre-compile one escaped, word-bounded pattern per phrase."""
        return [
            (
                rule,
                [
                    (phrase, re.compile(rf"\b{re.escape(phrase)}\b", re.IGNORECASE))
                    for phrase in rule.trigger_phrases
                ],
            )
            for rule in catalog
        ]

    def classify(self, query: object) -> ClassificationResult:
        """
        Classify a query by keyword matching.

        Args:
            query: Free-text user input

        Returns:
            ClassificationResult; invalid input yields the default category
            with reason INVALID_INPUT
        """
        try:
            text = self._validate(query)
        except InvalidInputError as e:
            logger.warning(f"Invalid query, using default persona: {e}")
            return self.invalid_input_result()

        best = self._default_result()

        for rule, patterns in self._patterns:
            matched = [phrase for phrase, pattern in patterns if pattern.search(text)]
            if not matched:
                continue

            confidence = self.score(rule, len(matched))
            if confidence > best.confidence:
                best = ClassificationResult(
                    category=rule.category,
                    confidence=confidence,
                    reason=RoutingReason.KEYWORD_MATCH,
                    matched_phrases=matched[: self.max_matched_phrases],
                )

        return best

    def score(self, rule: Rule, match_count: int) -> float:
        """Confidence for a rule that matched ``match_count`` distinct phrases."""
        bonus = self.confidence_step * (match_count - 1)
        return round(min(self.max_confidence, rule.base_confidence + bonus), 4)

    def invalid_input_result(self) -> ClassificationResult:
        return ClassificationResult(
            category=self.default_category,
            confidence=1.0,
            reason=RoutingReason.INVALID_INPUT,
        )

    def _default_result(self) -> ClassificationResult:
        return ClassificationResult(
            category=self.default_category,
            confidence=self.default_confidence,
            reason=RoutingReason.DEFAULT,
        )

    @staticmethod
    def _validate(query: object) -> str:
        if not isinstance(query, str):
            raise InvalidInputError(f"expected str, got {type(query).__name__}")
        if not query:
            raise InvalidInputError("empty query")
        return query.lower()


def classify_keywords(
    query: str,
    catalog: Optional[RuleCatalog] = None,
) -> ClassificationResult:
    """
    Convenience function for one-off classifications.

    Args:
        query: The user input to classify
        catalog: Optional catalog; the packaged rules are used if not provided

    Returns:
        Level 1 ClassificationResult
    """
    classifier = KeywordClassifier(catalog or RuleCatalog.load())
    return classifier.classify(query)
