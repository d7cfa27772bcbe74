"""
Protocol Discovery & Aggregation.

Queries the discovery provider for vaults accepting a token on one chain, or
on every supported chain at once. In multi-chain mode a failing chain
contributes zero results and never aborts the aggregate.
"""

from __future__ import annotations

import asyncio
import logging
from typing import List, Optional, Sequence

from ..config import settings
from ..core.chains import SUPPORTED_CHAINS, ChainDescriptor
from ..core.errors import ErrorCategory, YieldAgentError
from ..core.models import ProtocolVault
from ..core.ranking import RankedProtocols, rank_protocols
from ..core.result import Err, Ok, Result
from ..core.validation import validate_address, validate_chain
from ..providers.base import DiscoveryProvider

logger = logging.getLogger(__name__)

NO_PROTOCOLS_MESSAGE = "No staking protocols found for this token on supported chains."
NO_PROTOCOLS_SUGGESTION = "Try searching on different chains or check if the token supports staking."


def qualifying_vaults(vaults: Sequence[ProtocolVault], token_address: str) -> List[ProtocolVault]:
    """Drop zero-yield vaults and the bare token itself."""

    token = token_address.lower()
    return [v for v in vaults if v.apy > 0 and v.address.lower() != token]


class ProtocolDiscoveryService:
    def __init__(
        self,
        discovery_provider: DiscoveryProvider,
        *,
        max_concurrency: Optional[int] = None,
        scoring_limit: Optional[int] = None,
        result_limit: Optional[int] = None,
        chains: Sequence[ChainDescriptor] = SUPPORTED_CHAINS,
    ):
        self.discovery_provider = discovery_provider
        self.max_concurrency = max_concurrency or settings.discovery_max_concurrency
        self.scoring_limit = scoring_limit or settings.ranking_scoring_limit
        self.result_limit = result_limit or settings.ranking_result_limit
        self.chains = tuple(chains)

    async def discover_on_chain(self, token_address: str, chain_id: int) -> List[ProtocolVault]:
        """Vaults for ``token_address`` on one chain. Provider errors propagate."""

        logger.info(f"Discovering protocols for token {token_address} on chain {chain_id}")
        vaults = await self.discovery_provider.find_vaults(token_address, chain_id)
        found = qualifying_vaults(vaults, token_address)
        logger.info(f"Found {len(found)} protocols for token {token_address} on chain {chain_id}")
        return found

    async def discover_all_chains(self, token_address: str) -> List[ProtocolVault]:
        """Fan out one query per supported chain and concatenate the results."""

        logger.info(f"Discovering protocols for token {token_address} across all chains")
        semaphore = asyncio.Semaphore(self.max_concurrency)

        async def _one(chain: ChainDescriptor) -> List[ProtocolVault]:
            async with semaphore:
                try:
                    return await self.discover_on_chain(token_address, chain.id)
                except Exception as e:
                    logger.warning(f"Failed to discover protocols on {chain.name}: {e}")
                    return []

        results = await asyncio.gather(*(_one(chain) for chain in self.chains))
        found = [vault for chain_vaults in results for vault in chain_vaults]
        logger.info(f"Found {len(found)} total protocols across all chains")
        return found

    async def discover(
        self,
        token_address: str,
        chain_id: Optional[int] = None,
        all_chains: bool = False,
    ) -> Result[RankedProtocols]:
        """Discover, score and rank vaults for a token.

        Zero qualifying vaults is reported as ``NOT_FOUND``, not raised.
        """
        checked_address = validate_address(token_address)
        if not checked_address.ok:
            return checked_address
        address = checked_address.value

        try:
            if all_chains:
                vaults = await self.discover_all_chains(address)
            else:
                if chain_id is None:
                    return Err(
                        ErrorCategory.VALIDATION,
                        "chainId is required when not searching all chains",
                        "Provide a chain id, or search all supported chains",
                    )
                checked_chain = validate_chain(chain_id)
                if not checked_chain.ok:
                    return checked_chain
                vaults = await self.discover_on_chain(address, checked_chain.value.id)
        except YieldAgentError as e:
            logger.error(f"Error discovering protocols: {e.message}")
            return Err.from_exception(e)

        if not vaults:
            return Err(ErrorCategory.NOT_FOUND, NO_PROTOCOLS_MESSAGE, NO_PROTOCOLS_SUGGESTION)

        return Ok(self.rank(vaults))

    def rank(self, vaults: Sequence[ProtocolVault]) -> RankedProtocols:
        return rank_protocols(
            vaults,
            scoring_limit=self.scoring_limit,
            result_limit=self.result_limit,
        )


__all__ = [
    "NO_PROTOCOLS_MESSAGE",
    "NO_PROTOCOLS_SUGGESTION",
    "ProtocolDiscoveryService",
    "qualifying_vaults",
]
