"""Non-committal persona switch suggestions and their accept/reject lifecycle."""

from collections import Counter, deque
from datetime import datetime, timedelta
from threading import RLock
from typing import Any, Callable, Optional, Union

from loguru import logger

from .keyword import KeywordClassifier
from .models import (
    DEFAULT_USER_SCOPE,
    PersonaSwitch,
    Suggestion,
    SuggestionStats,
)


DEFAULT_SUGGESTION_REASON = "This persona looks better suited to your question"

PersonaSwitchCallback = Callable[[PersonaSwitch], None]


class SuggestionManager:
    """
    Proposes persona switches from Level 1 classification only.

    Suggestions live in a bounded, newest-first history. Each user scope also
    keeps its own last suggestion. A suggestion resolves exactly once, to
    either accepted or rejected.
    """

    def __init__(
        self,
        keyword: KeywordClassifier,
        enabled: bool = True,
        min_query_length: int = 10,
        min_confidence: float = 0.85,
        max_history: int = 50,
        excerpt_length: int = 200,
        on_persona_switch: Optional[PersonaSwitchCallback] = None,
    ):
        self.keyword = keyword
        self.enabled = enabled
        self.min_query_length = min_query_length
        self.min_confidence = min_confidence
        self.max_history = max_history
        self.excerpt_length = excerpt_length
        self.on_persona_switch = on_persona_switch

        self._lock = RLock()
        self._history: deque[Suggestion] = deque(maxlen=max_history)
        self._last: dict[str, Suggestion] = {}
        self._last_created_at: Optional[datetime] = None

    def analyze(
        self,
        query: object,
        current_category: str,
        user_id: str = DEFAULT_USER_SCOPE,
    ) -> Optional[Suggestion]:
        """
        Suggest a persona switch without applying it.

        Args:
            query: The user input
            current_category: Persona currently active
            user_id: Scope for the last-suggestion slot

        Returns:
            A new Suggestion, or None when no switch is worth proposing
        """
        if not self.enabled or not query or not isinstance(query, str):
            return None
        if len(query) < self.min_query_length:
            return None

        detection = self.keyword.classify(query)

        if detection.category == current_category:
            return None
        if detection.confidence < self.min_confidence:
            return None

        rule = self.keyword.catalog.get(detection.category)
        reason = rule.suggestion_reason if rule and rule.suggestion_reason else DEFAULT_SUGGESTION_REASON

        with self._lock:
            suggestion = Suggestion(
                suggested_category=detection.category,
                current_category=current_category,
                confidence=detection.confidence,
                matched_phrases=list(detection.matched_phrases),
                query_excerpt=query[: self.excerpt_length],
                created_at=self._next_timestamp(),
                reason=reason,
                user_id=user_id,
            )
            self._last[user_id] = suggestion
            self._history.appendleft(suggestion)

        logger.info(
            f"Suggestion: switch from {current_category} to {detection.category} "
            f"(confidence: {detection.confidence:.2f})"
        )
        return suggestion

    def accept(self, suggestion: Union[Suggestion, dict, None]) -> bool:
        """Mark a suggestion accepted (user clicked "Switch")."""
        resolved = self._resolve(suggestion, accepted=True)
        if resolved is not None:
            logger.info(f"Suggestion accepted: {resolved.suggested_category}")
            self._emit_switch(resolved)
        return resolved is not None or self._is_in_state(suggestion, accepted=True)

    def reject(self, suggestion: Union[Suggestion, dict, None]) -> bool:
        """Mark a suggestion rejected (user clicked "Dismiss")."""
        resolved = self._resolve(suggestion, accepted=False)
        if resolved is not None:
            logger.info(f"Suggestion rejected: {resolved.suggested_category}")
        return resolved is not None or self._is_in_state(suggestion, accepted=False)

    def _resolve(self, suggestion: object, accepted: bool) -> Optional[Suggestion]:
        """
        Flag every stored copy of ``suggestion`` as resolved.

        Returns the stored suggestion when this call resolved it, None when it
        is unknown or was already resolved.
        """
        if suggestion is None:
            return None

        with self._lock:
            matches = self._find(suggestion)
            if not matches or any(match.is_resolved for match in matches):
                return None

            now = datetime.now()
            for match in matches:
                if accepted:
                    match.accepted = True
                else:
                    match.rejected = True
                match.resolved_at = now
            return matches[0]

    def _is_in_state(self, suggestion: object, accepted: bool) -> bool:
        """Repeating the same resolution is a no-op that still succeeds."""
        if suggestion is None:
            return False
        with self._lock:
            matches = self._find(suggestion)
            if not matches:
                return False
            return all(match.accepted if accepted else match.rejected for match in matches)

    def _find(self, suggestion: object) -> list[Suggestion]:
        """Stored suggestions with the same timestamp (history and last slot)."""
        key = _identity(suggestion)
        if key is None:
            return []
        created_at, user_id = key

        matches: list[Suggestion] = []
        for item in self._history:
            if item.created_at == created_at:
                matches.append(item)
                break

        last = self._last.get(user_id)
        if last is not None and last.created_at == created_at:
            if not any(last is match for match in matches):
                matches.append(last)
        return matches

    def _emit_switch(self, suggestion: Suggestion) -> None:
        if self.on_persona_switch is None:
            return
        event = PersonaSwitch(
            from_category=suggestion.current_category,
            to_category=suggestion.suggested_category,
            user_id=suggestion.user_id,
        )
        try:
            self.on_persona_switch(event)
        except Exception as e:
            logger.error(f"Persona switch callback failed: {e}")

    def _next_timestamp(self) -> datetime:
        """Strictly increasing creation time, so timestamps identify suggestions."""
        now = datetime.now()
        if self._last_created_at is not None and now <= self._last_created_at:
            now = self._last_created_at + timedelta(microseconds=1)
        self._last_created_at = now
        return now

    def get_history(self, limit: int = 10) -> list[Suggestion]:
        """Most recent suggestions first."""
        with self._lock:
            return list(self._history)[:limit]

    def get_last_suggestion(self, user_id: str = DEFAULT_USER_SCOPE) -> Optional[Suggestion]:
        with self._lock:
            return self._last.get(user_id)

    def clear_last_suggestion(self, user_id: str = DEFAULT_USER_SCOPE) -> None:
        with self._lock:
            self._last.pop(user_id, None)

    def set_enabled(self, enabled: bool) -> None:
        self.enabled = enabled
        logger.info(f"Suggestions {'enabled' if enabled else 'disabled'}")

    def get_stats(self) -> SuggestionStats:
        """Acceptance statistics over the current history."""
        with self._lock:
            history = list(self._history)

        total = len(history)
        accepted = sum(1 for s in history if s.accepted)
        rejected = sum(1 for s in history if s.rejected)

        counts = Counter(s.suggested_category for s in history)
        most_suggested = counts.most_common(1)[0][0] if counts else None

        return SuggestionStats(
            total=total,
            accepted=accepted,
            rejected=rejected,
            pending=total - accepted - rejected,
            acceptance_rate=f"{accepted / total * 100:.1f}%" if total > 0 else "0%",
            per_category_counts=dict(counts),
            most_suggested_category=most_suggested,
        )


def _identity(suggestion: Any) -> Optional[tuple[datetime, str]]:
    """
    Creation time and user scope of a suggestion.

    Accepts a Suggestion or its ``to_dict()`` form as sent back by the UI.
    Returns None for anything that cannot identify a suggestion.
    """
    if isinstance(suggestion, Suggestion):
        return suggestion.created_at, suggestion.user_id

    if isinstance(suggestion, dict):
        created_at = suggestion.get("created_at")
        if isinstance(created_at, str):
            try:
                created_at = datetime.fromisoformat(created_at)
            except ValueError:
                return None
        if not isinstance(created_at, datetime):
            return None
        user_id = suggestion.get("user_id") or DEFAULT_USER_SCOPE
        return created_at, str(user_id)

    return None
