"""Rule catalog: personas and their trigger phrases, loaded from JSON data."""

import json
from pathlib import Path
from typing import Any, Iterator, Optional

from loguru import logger

from .errors import CatalogError
from .models import Rule


BUILTIN_RULES_FILE = Path(__file__).parent / "rules.json"
DEFAULT_CATEGORY = "assistant"


class RuleCatalog:
    """
    Ordered, read-only table of routing rules.

    Order is significant: when two rules reach the same confidence, the one
    declared first wins.
    """

    def __init__(
        self,
        rules: list[Rule],
        default_category: str = DEFAULT_CATEGORY,
        version: str = "1.0",
    ):
        self.default_category = default_category
        self.version = version
        self._rules = tuple(self._validate(rules, default_category))
        self._by_category = {rule.category: rule for rule in self._rules}

    @staticmethod
    def _validate(rules: list[Rule], default_category: str) -> list[Rule]:
        seen: set[str] = set()
        for rule in rules:
            if not 0 < rule.base_confidence <= 1:
                raise CatalogError(
                    f"Rule '{rule.category}' has base confidence {rule.base_confidence}, "
                    f"expected 0 < confidence <= 1"
                )
            if not rule.trigger_phrases:
                raise CatalogError(f"Rule '{rule.category}' has no trigger phrases")
            if rule.category in seen:
                raise CatalogError(f"Duplicate rule for category '{rule.category}'")
            if rule.category == default_category:
                raise CatalogError(
                    f"Default category '{default_category}' cannot have its own rule"
                )
            seen.add(rule.category)
        return rules

    def __iter__(self) -> Iterator[Rule]:
        return iter(self._rules)

    def __len__(self) -> int:
        return len(self._rules)

    @property
    def rules(self) -> tuple[Rule, ...]:
        return self._rules

    @property
    def categories(self) -> list[str]:
        """Rule categories in catalog order (default category excluded)."""
        return [rule.category for rule in self._rules]

    @property
    def known_categories(self) -> frozenset[str]:
        """Every category a classification may return."""
        return frozenset(self.categories) | {self.default_category}

    def get(self, category: str) -> Optional[Rule]:
        return self._by_category.get(category)

    def is_known(self, category: str) -> bool:
        return category in self.known_categories

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "RuleCatalog":
        """Create from the JSON document layout."""
        try:
            rules = [
                Rule(
                    category=item["category"],
                    trigger_phrases=_dedupe_phrases(item["trigger_phrases"]),
                    base_confidence=float(item["base_confidence"]),
                    label=item.get("label", ""),
                    suggestion_reason=item.get("suggestion_reason", ""),
                )
                for item in data["rules"]
            ]
        except (KeyError, TypeError, ValueError) as e:
            raise CatalogError(f"Malformed rule catalog: {e}") from e

        return cls(
            rules=rules,
            default_category=data.get("default_category", DEFAULT_CATEGORY),
            version=str(data.get("version", "1.0")),
        )

    @classmethod
    def load(cls, path: Optional[Path] = None) -> "RuleCatalog":
        """
        Load a catalog from a JSON file.

        Args:
            path: Rules file. Uses the packaged catalog if not provided.

        Returns:
            The loaded catalog.
        """
        path = Path(path).expanduser() if path else BUILTIN_RULES_FILE
        if not path.exists():
            raise CatalogError(f"Rules file not found: {path}")

        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as e:
            raise CatalogError(f"Rules file {path} is not valid JSON: {e}") from e

        catalog = cls.from_dict(data)
        logger.debug(
            f"Loaded rule catalog v{catalog.version} from {path} ({len(catalog)} rules)"
        )
        return catalog

    def to_dict(self) -> dict[str, Any]:
        """Convert back to the JSON document layout."""
        return {
            "version": self.version,
            "default_category": self.default_category,
            "rules": [
                {
                    "category": rule.category,
                    "label": rule.label,
                    "base_confidence": rule.base_confidence,
                    "suggestion_reason": rule.suggestion_reason,
                    "trigger_phrases": list(rule.trigger_phrases),
                }
                for rule in self._rules
            ],
        }


def _dedupe_phrases(phrases: list[str]) -> tuple[str, ...]:
    """Lower-case and de-duplicate phrases, keeping first-seen order."""
    if isinstance(phrases, str):
        raise TypeError("trigger_phrases must be a list of strings")
    seen: dict[str, None] = {}
    for phrase in phrases:
        cleaned = str(phrase).strip().lower()
        if cleaned:
            seen.setdefault(cleaned, None)
    return tuple(seen)
