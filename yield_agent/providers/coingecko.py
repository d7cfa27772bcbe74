import logging
import time
from typing import Any, Dict, List, Optional

import httpx

from ..config import settings
from ..core.chains import get_chain_by_id, get_chain_by_platform
from ..core.errors import (
    ExhaustedRetriesError,
    QuotaError,
    YieldAgentError,
    classify_http_error,
)
from ..core.models import ChainEntry, TokenDescriptor
from ..core.retry import RetryConfig, retry_with_backoff
from .base import MetadataProvider

logger = logging.getLogger(__name__)

DESCRIPTION_MAX_CHARS = 500


class CoingeckoProvider(MetadataProvider):
    """Coingecko API provider for token metadata and market data"""

    name = "coingecko"
    timeout_s = 15

    def __init__(
        self,
        *,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        pro: Optional[bool] = None,
        timeout_s: Optional[int] = None,
        search_limit: Optional[int] = None,
        retry_config: Optional[RetryConfig] = None,
    ):
        self.api_key = settings.coingecko_api_key if api_key is None else api_key
        self.pro = settings.coingecko_pro if pro is None else pro
        self.base_url = (base_url or settings.resolved_coingecko_base_url).rstrip("/")
        self.timeout_s = timeout_s or settings.request_timeout_seconds
        self.search_limit = search_limit or settings.search_result_limit
        self.retry_config = retry_config

    def _build_headers(self) -> Dict[str, str]:
        headers: Dict[str, str] = {"accept": "application/json"}
        if self.api_key:
            header = "x-cg-pro-api-key" if self.pro else "x-cg-demo-api-key"
            headers[header] = self.api_key
        return headers

    async def ready(self) -> bool:
        return True  # API key is optional for the public tier

    async def health_check(self) -> Dict[str, Any]:
        started = time.perf_counter()
        try:
            async with httpx.AsyncClient() as client:
                response = await client.get(
                    f"{self.base_url}/ping",
                    headers=self._build_headers(),
                    timeout=self.timeout_s,
                )
                response.raise_for_status()
                return {"status": "healthy", "latency_ms": int((time.perf_counter() - started) * 1000)}
        except httpx.HTTPError as e:
            return {"status": "error", "reason": str(e)}

    async def _get(self, path: str, params: Optional[Dict[str, Any]] = None) -> Optional[Dict[str, Any]]:
        """GET ``path``; ``None`` on 404, classified errors otherwise."""

        async def _call() -> Optional[Dict[str, Any]]:
            try:
                async with httpx.AsyncClient() as client:
                    response = await client.get(
                        f"{self.base_url}{path}",
                        headers=self._build_headers(),
                        params=params,
                        timeout=self.timeout_s,
                    )
                    if response.status_code == 404:
                        return None
                    response.raise_for_status()
                    return response.json()
            except httpx.HTTPError as exc:
                raise classify_http_error(exc, provider=self.name) from exc

        return await retry_with_backoff(_call, self.retry_config, description=f"coingecko {path}")

    async def resolve_by_query(self, text: str) -> List[TokenDescriptor]:
        """Search Coingecko and expand the top results into full descriptors.

        Coins without an address on a supported chain are dropped.
        """
        query = text.strip()
        if not query:
            return []

        data = await self._get("/search", params={"query": query})
        coins = (data or {}).get("coins") or []
        if not coins:
            logger.info(f"No tokens found for query: {query}")
            return []

        descriptors: List[TokenDescriptor] = []
        for coin in coins[: self.search_limit]:
            coin_id = coin.get("id")
            if not coin_id:
                continue
            try:
                coin_data = await self._get(f"/coins/{coin_id}", params=self._coin_params())
            except (QuotaError, ExhaustedRetriesError):
                raise
            except YieldAgentError as e:
                logger.warning(f"Failed to fetch details for coin {coin_id}: {e}")
                continue
            if not coin_data:
                continue
            descriptor = self._descriptor_from_coin(coin_data)
            if descriptor is not None:
                descriptors.append(descriptor)

        logger.info(f"Found {len(descriptors)} tokens for query: {query}")
        return descriptors

    async def resolve_by_address(self, address: str, chain_id: int) -> Optional[TokenDescriptor]:
        chain = get_chain_by_id(chain_id)
        if chain is None:
            return None

        data = await self._get(
            f"/coins/{chain.coingecko_platform}/contract/{address.lower()}",
        )
        if not data:
            return None

        descriptor = self._descriptor_from_coin(data)
        if descriptor is None or descriptor.entry_for(chain_id) is None:
            # Coingecko knows the coin but not on this chain's platform list
            descriptor = self._descriptor_from_coin(
                data,
                extra_entry=ChainEntry(chain_id=chain.id, chain_name=chain.name, address=address),
            )
        if descriptor is None:
            return None
        return descriptor.on_chain(chain_id)

    @staticmethod
    def _coin_params() -> Dict[str, str]:
        return {
            "localization": "false",
            "tickers": "false",
            "market_data": "true",
            "community_data": "false",
            "developer_data": "false",
            "sparkline": "false",
        }

    def _descriptor_from_coin(
        self,
        data: Dict[str, Any],
        extra_entry: Optional[ChainEntry] = None,
    ) -> Optional[TokenDescriptor]:
        platforms: Dict[str, Any] = data.get("platforms") or {}
        detail_platforms: Dict[str, Any] = data.get("detail_platforms") or {}

        entries: List[ChainEntry] = []
        for platform, address in platforms.items():
            if not address:
                continue
            chain = get_chain_by_platform(platform)
            if chain is None:
                continue
            decimals = (detail_platforms.get(platform) or {}).get("decimal_place")
            entries.append(
                ChainEntry(
                    chain_id=chain.id,
                    chain_name=chain.name,
                    address=address,
                    decimals=decimals if isinstance(decimals, int) else None,
                )
            )
        if extra_entry is not None:
            entries.append(extra_entry)
        if not entries:
            return None

        market_data = data.get("market_data") or {}
        description = ((data.get("description") or {}).get("en") or "").strip()
        primary_decimals = entries[0].decimals

        return TokenDescriptor(
            name=data.get("name", ""),
            symbol=data.get("symbol", ""),
            decimals=primary_decimals if primary_decimals is not None else 18,
            chains=entries,
            coingecko_id=data.get("id"),
            price=(market_data.get("current_price") or {}).get("usd"),
            market_cap=(market_data.get("market_cap") or {}).get("usd"),
            price_change_24h=market_data.get("price_change_percentage_24h"),
            volume_24h=(market_data.get("total_volume") or {}).get("usd"),
            logo_url=(data.get("image") or {}).get("large"),
            description=description[:DESCRIPTION_MAX_CHARS] or None,
            verified=True,  # listed on Coingecko
        )
