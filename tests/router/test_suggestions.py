"""Tests for persona switch suggestions."""

from unittest.mock import Mock

import pytest

from persona_router.router.catalog import RuleCatalog
from persona_router.router.keyword import KeywordClassifier
from persona_router.router.models import PersonaSwitch, Suggestion
from persona_router.router.suggestions import DEFAULT_SUGGESTION_REASON, SuggestionManager


IT_QUERY = "I need to debug this API endpoint error"


@pytest.fixture
def manager():
    return SuggestionManager(KeywordClassifier(RuleCatalog.load()))


class TestAnalyze:
    """Test SuggestionManager.analyze."""

    def test_short_query(self, manager):
        """Test queries under 10 characters never produce a suggestion."""
        assert manager.analyze("hi", "assistant") is None

    def test_invalid_query(self, manager):
        assert manager.analyze("", "assistant") is None
        assert manager.analyze(None, "assistant") is None

    def test_suggests_switch(self, manager):
        suggestion = manager.analyze(IT_QUERY, "assistant")

        assert suggestion.suggested_category == "it_expert"
        assert suggestion.current_category == "assistant"
        assert suggestion.confidence == 0.95
        assert suggestion.reason == "This question is about development, code or technical infrastructure"
        assert "debug" in suggestion.matched_phrases
        assert not suggestion.is_resolved

    def test_same_persona(self, manager):
        """Test no suggestion when the current persona already fits."""
        assert manager.analyze(IT_QUERY, "it_expert") is None

    def test_low_confidence(self, manager):
        """Test 0.85 is the minimum confidence for a suggestion."""
        # Single marketing match: 0.85, just enough
        assert manager.analyze("launch a new campaign", "assistant") is not None
        assert manager.analyze("what time is it right now?", "assistant") is None

    def test_disabled(self, manager):
        manager.set_enabled(False)
        assert manager.analyze(IT_QUERY, "assistant") is None
        manager.set_enabled(True)
        assert manager.analyze(IT_QUERY, "assistant") is not None

    def test_excerpt_truncated(self, manager):
        query = IT_QUERY + " " + "x" * 500
        suggestion = manager.analyze(query, "assistant")
        assert len(suggestion.query_excerpt) == 200

    def test_default_reason(self):
        catalog = RuleCatalog.from_dict({
            "rules": [{"category": "chef", "base_confidence": 0.9, "trigger_phrases": ["recipe"]}],
        })
        manager = SuggestionManager(KeywordClassifier(catalog))

        suggestion = manager.analyze("a recipe for tonight", "assistant")

        assert suggestion.reason == DEFAULT_SUGGESTION_REASON

    def test_history_newest_first(self, manager):
        first = manager.analyze(IT_QUERY, "assistant")
        second = manager.analyze("launch a new campaign", "assistant")

        history = manager.get_history()

        assert history[0] is second
        assert history[1] is first
        assert second.created_at > first.created_at

    def test_history_bounded(self):
        manager = SuggestionManager(KeywordClassifier(RuleCatalog.load()), max_history=50)
        created = [manager.analyze(IT_QUERY, "assistant") for _ in range(55)]

        history = manager.get_history(limit=100)

        assert len(history) == 50
        assert history[0] is created[-1]
        assert created[0] not in history

    def test_last_suggestion_per_user(self, manager):
        """Test each user keeps their own last suggestion."""
        alice = manager.analyze(IT_QUERY, "assistant", user_id="alice")
        bob = manager.analyze("launch a new campaign", "assistant", user_id="bob")

        assert manager.get_last_suggestion("alice") is alice
        assert manager.get_last_suggestion("bob") is bob
        assert manager.get_last_suggestion() is None

        manager.clear_last_suggestion("alice")
        assert manager.get_last_suggestion("alice") is None
        assert manager.get_last_suggestion("bob") is bob


class TestAcceptReject:
    """Test the suggestion lifecycle."""

    def test_accept(self, manager):
        suggestion = manager.analyze(IT_QUERY, "assistant")

        assert manager.accept(suggestion) is True
        assert suggestion.accepted
        assert not suggestion.rejected
        assert suggestion.resolved_at is not None

    def test_reject(self, manager):
        suggestion = manager.analyze(IT_QUERY, "assistant")

        assert manager.reject(suggestion) is True
        assert suggestion.rejected
        assert not suggestion.accepted

    def test_accept_then_reject(self, manager):
        """Test a suggestion cannot be both accepted and rejected."""
        suggestion = manager.analyze(IT_QUERY, "assistant")

        assert manager.accept(suggestion) is True
        assert manager.reject(suggestion) is False
        assert suggestion.accepted
        assert not suggestion.rejected

    def test_repeat_accept(self, manager):
        suggestion = manager.analyze(IT_QUERY, "assistant")
        manager.accept(suggestion)
        resolved_at = suggestion.resolved_at

        assert manager.accept(suggestion) is True
        assert suggestion.resolved_at == resolved_at

    def test_none_and_unknown(self, manager):
        assert manager.accept(None) is False
        assert manager.reject(None) is False

        other = SuggestionManager(KeywordClassifier(RuleCatalog.load()))
        foreign = other.analyze(IT_QUERY, "assistant")
        assert manager.accept(foreign) is False
        assert not foreign.accepted

    def test_copy_resolves_stored_suggestion(self, manager):
        """Test a suggestion is matched by creation time, not identity."""
        stored = manager.analyze(IT_QUERY, "assistant")
        copy = Suggestion(**{**stored.__dict__})

        assert manager.reject(copy) is True
        assert stored.rejected
        assert manager.get_last_suggestion().rejected

    def test_accept_dict_form(self, manager):
        """Test the to_dict() form sent back by the UI resolves the stored suggestion."""
        stored = manager.analyze(IT_QUERY, "assistant", user_id="alice")

        assert manager.accept(stored.to_dict()) is True
        assert stored.accepted
        assert manager.get_last_suggestion("alice").accepted
        assert manager.reject(stored.to_dict()) is False

    def test_reject_dict_form(self, manager):
        stored = manager.analyze(IT_QUERY, "assistant")

        assert manager.reject(stored.to_dict()) is True
        assert stored.rejected
        assert not stored.accepted

    @pytest.mark.parametrize("payload", [
        {},
        {"created_at": "not a date"},
        {"created_at": 12345},
        "it_expert",
        42,
    ])
    def test_unmatchable_payload(self, manager, payload):
        """Test payloads that cannot identify a suggestion return False."""
        manager.analyze(IT_QUERY, "assistant")

        assert manager.accept(payload) is False
        assert manager.reject(payload) is False
        assert manager.get_stats().pending == 1

    def test_callback_fires_on_accept(self):
        """Test accepting emits exactly one persona switch event."""
        callback = Mock()
        manager = SuggestionManager(
            KeywordClassifier(RuleCatalog.load()), on_persona_switch=callback
        )
        suggestion = manager.analyze(IT_QUERY, "assistant", user_id="alice")

        manager.accept(suggestion)
        manager.accept(suggestion)

        callback.assert_called_once()
        event = callback.call_args.args[0]
        assert isinstance(event, PersonaSwitch)
        assert event.from_category == "assistant"
        assert event.to_category == "it_expert"
        assert event.user_id == "alice"

    def test_callback_not_fired_on_reject(self):
        callback = Mock()
        manager = SuggestionManager(
            KeywordClassifier(RuleCatalog.load()), on_persona_switch=callback
        )
        manager.reject(manager.analyze(IT_QUERY, "assistant"))
        callback.assert_not_called()

    def test_callback_error_does_not_break_accept(self):
        manager = SuggestionManager(
            KeywordClassifier(RuleCatalog.load()),
            on_persona_switch=Mock(side_effect=RuntimeError("theme engine down")),
        )
        suggestion = manager.analyze(IT_QUERY, "assistant")

        assert manager.accept(suggestion) is True
        assert suggestion.accepted


class TestSuggestionStats:
    """Test acceptance statistics."""

    def test_empty(self, manager):
        stats = manager.get_stats()

        assert stats.total == 0
        assert stats.acceptance_rate == "0%"
        assert stats.most_suggested_category is None

    def test_acceptance_rate(self, manager):
        """Test 11 suggestions with 5 accepted and 3 rejected."""
        suggestions = [manager.analyze(IT_QUERY, "assistant") for _ in range(11)]
        for suggestion in suggestions[:5]:
            manager.accept(suggestion)
        for suggestion in suggestions[5:8]:
            manager.reject(suggestion)

        stats = manager.get_stats()

        assert stats.total == 11
        assert stats.accepted == 5
        assert stats.rejected == 3
        assert stats.pending == 3
        assert stats.acceptance_rate == "45.5%"

    def test_per_category_counts(self, manager):
        manager.analyze(IT_QUERY, "assistant")
        manager.analyze(IT_QUERY, "assistant")
        manager.analyze("launch a new campaign", "assistant")

        stats = manager.get_stats()

        assert stats.per_category_counts == {"it_expert": 2, "marketing_expert": 1}
        assert stats.most_suggested_category == "it_expert"
