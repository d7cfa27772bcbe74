import pytest

import httpx

from yield_agent.core.errors import ExhaustedRetriesError, QuotaError
from yield_agent.core.retry import RetryConfig
from yield_agent.providers import coingecko as cg

USDC_ETH = "0xA0b86991c6218b36c1d19D4a2e9Eb0cE3606eB48"
USDC_BASE = "0x833589fCD6eDb6E08f4c7C32D4f71b54bdA02913"

FAST = RetryConfig(max_attempts=2, initial_delay_seconds=0, max_delay_seconds=0, jitter=False)

USDC_COIN = {
    "id": "usd-coin",
    "symbol": "usdc",
    "name": "USDC",
    "platforms": {
        "ethereum": USDC_ETH,
        "base": USDC_BASE,
        "solana": "EPjFWdd5AufqSSqeM2qN1xzybapC8G4wEGGkZwyTDt1v",
        "": "",
    },
    "detail_platforms": {
        "ethereum": {"decimal_place": 6, "contract_address": USDC_ETH.lower()},
        "base": {"decimal_place": 6, "contract_address": USDC_BASE.lower()},
    },
    "image": {"large": "https://assets.coingecko.com/usdc.png"},
    "description": {"en": "USDC is a fully collateralized US dollar stablecoin. " * 30},
    "market_data": {
        "current_price": {"usd": 0.9998},
        "market_cap": {"usd": 60_000_000_000},
        "total_volume": {"usd": 5_000_000_000},
        "price_change_percentage_24h": 0.01,
    },
}


class _DummyClient:
    routes = {}
    calls = []

    def __init__(self, *_, **__):
        pass

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        return False

    async def get(self, url, headers=None, params=None, timeout=None):
        _DummyClient.calls.append({"url": url, "headers": headers, "params": params})
        request = httpx.Request("GET", url)
        for suffix, (status, payload) in _DummyClient.routes.items():
            if url.endswith(suffix):
                return httpx.Response(status, json=payload, request=request)
        return httpx.Response(404, json={"error": "coin not found"}, request=request)


@pytest.fixture
def client(monkeypatch):
    _DummyClient.routes = {}
    _DummyClient.calls = []
    monkeypatch.setattr(cg.httpx, "AsyncClient", _DummyClient)
    return _DummyClient


def _provider(**kwargs) -> cg.CoingeckoProvider:
    kwargs.setdefault("api_key", "demo-key")
    kwargs.setdefault("pro", False)
    kwargs.setdefault("base_url", "https://api.coingecko.com/api/v3")
    kwargs.setdefault("retry_config", FAST)
    return cg.CoingeckoProvider(**kwargs)


@pytest.mark.asyncio
async def test_resolve_by_query_expands_search_results(client):
    client.routes = {
        "/search": (200, {"coins": [{"id": "usd-coin"}, {"id": "unlisted-thing"}]}),
        "/coins/usd-coin": (200, USDC_COIN),
    }

    tokens = await _provider().resolve_by_query(" usdc ")

    assert len(tokens) == 1
    token = tokens[0]
    assert token.symbol == "USDC"
    assert token.decimals == 6
    assert token.chain_ids() == [1, 8453]
    assert token.coingecko_id == "usd-coin"
    assert token.price == 0.9998
    assert token.verified is True
    assert len(token.description) == cg.DESCRIPTION_MAX_CHARS
    assert client.calls[0]["params"] == {"query": "usdc"}
    assert client.calls[0]["headers"]["x-cg-demo-api-key"] == "demo-key"


@pytest.mark.asyncio
async def test_search_expands_at_most_the_limit(client):
    client.routes = {"/search": (200, {"coins": [{"id": f"coin-{i}"} for i in range(25)]})}

    await _provider(search_limit=10).resolve_by_query("coin")

    detail_calls = [c for c in client.calls if "/coins/" in c["url"]]
    assert len(detail_calls) == 10


@pytest.mark.asyncio
async def test_resolve_by_address_puts_requested_chain_first(client):
    client.routes = {f"/coins/base/contract/{USDC_BASE.lower()}": (200, USDC_COIN)}

    token = await _provider().resolve_by_address(USDC_BASE, 8453)

    assert token is not None
    assert token.chain_id == 8453
    assert token.address == USDC_BASE


@pytest.mark.asyncio
async def test_resolve_by_address_unknown_contract(client):
    assert await _provider().resolve_by_address(USDC_ETH, 1) is None


@pytest.mark.asyncio
async def test_pro_key_header(client):
    client.routes = {"/search": (200, {"coins": []})}

    await _provider(api_key="pro-key", pro=True).resolve_by_query("usdc")

    assert client.calls[0]["headers"]["x-cg-pro-api-key"] == "pro-key"


@pytest.mark.asyncio
async def test_rate_limit_exhausts_retries(client):
    client.routes = {"/search": (429, {"status": {"error_message": "Throttled"}})}

    with pytest.raises(ExhaustedRetriesError):
        await _provider().resolve_by_query("usdc")

    assert len(client.calls) == FAST.max_attempts


@pytest.mark.asyncio
async def test_quota_is_not_retried(client):
    client.routes = {"/search": (429, {"status": {"error_message": "You've exceeded the Rate Limit of your plan"}})}

    with pytest.raises(QuotaError):
        await _provider().resolve_by_query("usdc")

    assert len(client.calls) == 1


@pytest.mark.asyncio
async def test_health_check_healthy(client):
    client.routes = {"/ping": (200, {"gecko_says": "(V3) To the Moon!"})}

    health = await _provider().health_check()

    assert health["status"] == "healthy"
    assert health["latency_ms"] >= 0
    assert client.calls[0]["url"] == "https://api.coingecko.com/api/v3/ping"


@pytest.mark.asyncio
async def test_health_check_reports_errors(client):
    client.routes = {"/ping": (500, {"error": "internal"})}

    health = await _provider().health_check()

    assert health["status"] == "error"
    assert "500" in health["reason"]
