"""Tests for Level 2 context enrichment."""

import asyncio
from unittest.mock import AsyncMock, Mock

import pytest

from persona_router.history.memory import InMemoryHistoryProvider
from persona_router.router.catalog import RuleCatalog
from persona_router.router.context import ContextEnricher
from persona_router.router.models import ClassificationResult, RoutingReason, UsageRecord


def _prior(category="assistant", confidence=0.5, reason=RoutingReason.DEFAULT):
    return ClassificationResult(category=category, confidence=confidence, reason=reason)


def _history(*categories):
    provider = InMemoryHistoryProvider()
    for category in reversed(categories):
        provider.record_usage("alice", category)
    return provider


@pytest.fixture
def catalog():
    return RuleCatalog.load()


class TestContextEnricher:
    """Test ContextEnricher."""

    @pytest.mark.asyncio
    async def test_no_history_provider(self, catalog):
        """Test the prior is returned when no provider is configured."""
        prior = _prior()
        result = await ContextEnricher(catalog).enrich(prior, "alice")
        assert result is prior

    @pytest.mark.asyncio
    async def test_no_user(self, catalog):
        prior = _prior()
        enricher = ContextEnricher(catalog, history=_history("it_expert"))
        assert await enricher.enrich(prior, None) is prior

    @pytest.mark.asyncio
    async def test_empty_history(self, catalog):
        """Test an empty history leaves the prior unchanged."""
        prior = _prior()
        enricher = ContextEnricher(catalog, history=InMemoryHistoryProvider())
        assert await enricher.enrich(prior, "alice") is prior

    @pytest.mark.asyncio
    async def test_boost_toward_dominant_persona(self, catalog):
        """Test 7 of 10 sessions on one persona boosts toward it."""
        history = _history(*(["it_expert"] * 7 + ["hr_specialist"] * 3))
        enricher = ContextEnricher(catalog, history=history)

        result = await enricher.enrich(_prior(confidence=0.7), "alice")

        assert result.category == "it_expert"
        assert result.confidence == 0.85
        assert result.reason == RoutingReason.CONTEXT_BOOST
        assert result.context_info == {"usage_frequency": 0.7, "sample_size": 10}

    @pytest.mark.asyncio
    async def test_boost_is_capped(self, catalog):
        history = _history("it_expert", "it_expert", "it_expert")
        enricher = ContextEnricher(catalog, history=history)

        result = await enricher.enrich(_prior(confidence=0.79), "alice")

        assert result.confidence == 0.9

    @pytest.mark.asyncio
    async def test_no_boost_when_share_not_above_threshold(self, catalog):
        """Test a 60% share is not enough (strictly greater required)."""
        history = _history(*(["it_expert"] * 6 + ["hr_specialist"] * 4))
        prior = _prior(confidence=0.7)

        result = await ContextEnricher(catalog, history=history).enrich(prior, "alice")

        assert result is prior

    @pytest.mark.asyncio
    async def test_no_boost_when_prior_confident(self, catalog):
        history = _history(*(["it_expert"] * 10))
        prior = _prior("hr_specialist", 0.8, RoutingReason.KEYWORD_MATCH)

        result = await ContextEnricher(catalog, history=history).enrich(prior, "alice")

        assert result is prior

    @pytest.mark.asyncio
    async def test_prior_not_mutated(self, catalog):
        history = _history(*(["it_expert"] * 5))
        prior = _prior(confidence=0.5)

        await ContextEnricher(catalog, history=history).enrich(prior, "alice")

        assert prior.category == "assistant"
        assert prior.confidence == 0.5
        assert prior.context_info is None

    @pytest.mark.asyncio
    async def test_requests_history_limit(self, catalog):
        """Test the provider is asked for the configured number of sessions."""
        history = AsyncMock()
        history.get_recent.return_value = []

        await ContextEnricher(catalog, history=history).enrich(_prior(), "alice")

        history.get_recent.assert_awaited_once_with("alice", 10)

    @pytest.mark.asyncio
    async def test_only_first_records_used(self, catalog):
        """Test extra records beyond the limit are ignored."""
        history = AsyncMock()
        history.get_recent.return_value = [UsageRecord("it_expert")] * 3 + [
            UsageRecord("hr_specialist")
        ] * 10
        enricher = ContextEnricher(catalog, history=history, history_limit=3)

        result = await enricher.enrich(_prior(), "alice")

        assert result.category == "it_expert"
        assert result.context_info["sample_size"] == 3

    @pytest.mark.asyncio
    async def test_unknown_categories_count_as_default(self, catalog):
        history = AsyncMock()
        history.get_recent.return_value = [{"category": "astronaut"}] * 4 + [{"category": None}]

        result = await ContextEnricher(catalog, history=history).enrich(
            _prior("it_expert", 0.6, RoutingReason.KEYWORD_MATCH), "alice"
        )

        assert result.category == "assistant"
        assert result.reason == RoutingReason.CONTEXT_BOOST

    @pytest.mark.asyncio
    async def test_provider_error(self, catalog):
        """Test a failing provider returns the prior unchanged."""
        history = AsyncMock()
        history.get_recent.side_effect = RuntimeError("database locked")
        prior = _prior()

        result = await ContextEnricher(catalog, history=history).enrich(prior, "alice")

        assert result is prior

    @pytest.mark.asyncio
    async def test_provider_timeout(self, catalog):
        """Test a slow provider is abandoned after the timeout."""

        async def slow(user_id, limit):
            await asyncio.sleep(5)
            return [UsageRecord("it_expert")] * 10

        history = AsyncMock()
        history.get_recent.side_effect = slow
        prior = _prior()
        enricher = ContextEnricher(catalog, history=history, timeout_ms=50)

        result = await enricher.enrich(prior, "alice")

        assert result is prior

    @pytest.mark.asyncio
    async def test_malformed_history(self, catalog):
        history = AsyncMock()
        history.get_recent.return_value = "it_expert"
        prior = _prior()

        result = await ContextEnricher(catalog, history=history).enrich(prior, "alice")

        assert result is prior

    @pytest.mark.asyncio
    async def test_provider_raises_before_awaiting(self, catalog):
        """Test a provider failing synchronously returns the prior unchanged."""
        history = Mock()
        history.get_recent.side_effect = RuntimeError("db unreachable")
        prior = _prior()

        result = await ContextEnricher(catalog, history=history).enrich(prior, "alice")

        assert result is prior

    @pytest.mark.asyncio
    async def test_synchronous_provider(self, catalog):
        """Test a provider returning a plain list is used as-is."""
        history = Mock()
        history.get_recent.return_value = [UsageRecord("it_expert")] * 4
        enricher = ContextEnricher(catalog, history=history)

        result = await enricher.enrich(_prior(confidence=0.6), "alice")

        assert result.category == "it_expert"
        assert result.reason == RoutingReason.CONTEXT_BOOST
        history.get_recent.assert_called_once_with("alice", 10)

    @pytest.mark.asyncio
    async def test_synchronous_provider_empty(self, catalog):
        history = Mock()
        history.get_recent.return_value = []
        prior = _prior()

        assert await ContextEnricher(catalog, history=history).enrich(prior, "alice") is prior
