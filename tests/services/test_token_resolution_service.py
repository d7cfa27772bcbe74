"""
Tests for the TokenResolutionService.

Covers:
- Symbol search with and without a chain hint
- Address lookups, which always need a chain
- Multiple-match handling
- Provider failures surfacing as structured errors
"""

import pytest
from unittest.mock import AsyncMock

from yield_agent.core.chains import SUPPORTED_CHAINS
from yield_agent.core.errors import ErrorCategory, QuotaError
from yield_agent.core.models import ChainEntry, TokenDescriptor
from yield_agent.core.validation import CHAIN_REQUIRED_MESSAGE
from yield_agent.services.token_resolution import TokenResolutionService

USDC_ETH = "0xA0b86991c6218b36c1d19D4a2e9Eb0cE3606eB48"
USDC_BASE = "0x833589fCD6eDb6E08f4c7C32D4f71b54bdA02913"


def _usdc() -> TokenDescriptor:
    return TokenDescriptor(
        name="USD Coin",
        symbol="usdc",
        decimals=6,
        coingecko_id="usd-coin",
        chains=[
            ChainEntry(chain_id=1, chain_name="Ethereum", address=USDC_ETH, decimals=6),
            ChainEntry(chain_id=8453, chain_name="Base", address=USDC_BASE, decimals=6),
        ],
        verified=True,
    )


def _bridged_usdc() -> TokenDescriptor:
    return TokenDescriptor(
        name="Bridged USDC",
        symbol="usdc.e",
        decimals=6,
        chains=[ChainEntry(chain_id=42161, chain_name="Arbitrum", address="0x" + "ff" * 20, decimals=6)],
    )


@pytest.fixture
def provider() -> AsyncMock:
    mock = AsyncMock()
    mock.resolve_by_query.return_value = [_usdc()]
    mock.resolve_by_address.return_value = _usdc()
    return mock


@pytest.fixture
def service(provider: AsyncMock) -> TokenResolutionService:
    return TokenResolutionService(provider)


class TestSymbolResolution:
    @pytest.mark.asyncio
    async def test_symbol_without_hint_requires_confirmation(self, service, provider):
        result = await service.resolve("USDC")

        assert result.ok
        payload = result.value.to_dict()
        assert payload["requiresConfirmation"] is True
        assert len(payload["token"]["allChains"]) >= 1
        provider.resolve_by_query.assert_awaited_once_with("USDC")

    @pytest.mark.asyncio
    async def test_symbol_with_hint_is_placed_on_that_chain(self, service):
        result = await service.resolve("usdc", "base")

        assert result.ok
        token = result.value.token
        assert token.chain_id == 8453
        assert token.address == USDC_BASE
        assert token.requires_confirmation is False

    @pytest.mark.asyncio
    async def test_symbol_not_on_hinted_chain(self, service):
        result = await service.resolve("USDC", 137)

        assert not result.ok
        assert result.kind == ErrorCategory.VALIDATION
        assert result.extra["availableChains"] == ["Ethereum", "Base"]

    @pytest.mark.asyncio
    async def test_multiple_matches_are_returned_for_selection(self, service, provider):
        provider.resolve_by_query.return_value = [_bridged_usdc(), _usdc()]

        result = await service.resolve("usdc")

        assert result.ok
        resolution = result.value
        assert resolution.multiple_matches
        # exact symbol match sorts first
        assert resolution.candidates[0].symbol == "USDC"
        payload = resolution.to_dict()
        assert payload["multipleMatches"] is True
        assert payload["requiresConfirmation"] is True
        assert payload["message"].startswith("Multiple tokens found")

    @pytest.mark.asyncio
    async def test_chain_hint_narrows_multiple_matches(self, service, provider):
        provider.resolve_by_query.return_value = [_bridged_usdc(), _usdc()]

        result = await service.resolve("usdc", "arbitrum")

        assert result.ok
        assert result.value.token.symbol == "USDC.E"

    @pytest.mark.asyncio
    async def test_unknown_symbol_is_not_found(self, service, provider):
        provider.resolve_by_query.return_value = []

        result = await service.resolve("NOPE")

        assert not result.ok
        assert result.kind == ErrorCategory.NOT_FOUND
        assert result.suggestion


class TestAddressResolution:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("chain", SUPPORTED_CHAINS, ids=lambda c: c.name)
    async def test_address_without_chain_is_always_a_validation_error(self, service, provider, chain):
        provider.resolve_by_address.return_value = TokenDescriptor(
            name="Token",
            symbol="TKN",
            decimals=18,
            chains=[ChainEntry(chain_id=chain.id, chain_name=chain.name, address=USDC_ETH)],
        )

        result = await service.resolve(USDC_ETH)

        assert not result.ok
        assert result.kind == ErrorCategory.VALIDATION
        assert result.detail == CHAIN_REQUIRED_MESSAGE
        provider.resolve_by_address.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_address_with_chain(self, service, provider):
        result = await service.resolve(USDC_BASE.lower(), 8453)

        assert result.ok
        assert result.value.token.chain_id == 8453
        assert result.value.requires_confirmation is False
        provider.resolve_by_address.assert_awaited_once_with(USDC_BASE, 8453)

    @pytest.mark.asyncio
    async def test_address_unknown_on_chain(self, service, provider):
        provider.resolve_by_address.return_value = None

        result = await service.resolve(USDC_ETH, "ethereum")

        assert not result.ok
        assert result.kind == ErrorCategory.NOT_FOUND
        assert "Ethereum" in result.detail


class TestProviderFailures:
    @pytest.mark.asyncio
    async def test_quota_error_becomes_structured(self, service, provider):
        provider.resolve_by_query.side_effect = QuotaError(provider="coingecko")

        result = await service.resolve("USDC")

        assert not result.ok
        assert result.kind == ErrorCategory.QUOTA
        assert "billing" in result.suggestion


class TestSearch:
    @pytest.mark.asyncio
    async def test_search_returns_all_matches(self, service, provider):
        provider.resolve_by_query.return_value = [_bridged_usdc(), _usdc()]

        result = await service.search("usdc")

        assert result.ok
        assert [t.symbol for t in result.value] == ["USDC", "USDC.E"]

    @pytest.mark.asyncio
    async def test_empty_query(self, service, provider):
        result = await service.search("  ")

        assert not result.ok
        assert result.kind == ErrorCategory.VALIDATION
        provider.resolve_by_query.assert_not_awaited()
