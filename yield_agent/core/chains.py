"""Supported chain registry and lookup helpers."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple, Union

ChainRef = Union[int, str]


@dataclass(frozen=True)
class ChainDescriptor:
    """A chain the agent can discover vaults and build transactions on."""

    id: int
    name: str
    native_symbol: str
    coingecko_platform: str
    aliases: Tuple[str, ...] = field(default_factory=tuple)

    def to_dict(self) -> Dict[str, object]:
        return {
            "id": self.id,
            "name": self.name,
            "nativeSymbol": self.native_symbol,
        }


SUPPORTED_CHAINS: Tuple[ChainDescriptor, ...] = (
    ChainDescriptor(
        id=1,
        name="Ethereum",
        native_symbol="ETH",
        coingecko_platform="ethereum",
        aliases=("ethereum", "eth", "mainnet", "ethereum mainnet", "l1"),
    ),
    ChainDescriptor(
        id=10,
        name="Optimism",
        native_symbol="ETH",
        coingecko_platform="optimistic-ethereum",
        aliases=("optimism", "op", "op mainnet", "optimistic-ethereum"),
    ),
    ChainDescriptor(
        id=56,
        name="BNB Chain",
        native_symbol="BNB",
        coingecko_platform="binance-smart-chain",
        aliases=("bnb chain", "bnb", "bsc", "binance smart chain", "binance-smart-chain"),
    ),
    ChainDescriptor(
        id=137,
        name="Polygon",
        native_symbol="POL",
        coingecko_platform="polygon-pos",
        aliases=("polygon", "matic", "polygon pos", "polygon-pos"),
    ),
    ChainDescriptor(
        id=8453,
        name="Base",
        native_symbol="ETH",
        coingecko_platform="base",
        aliases=("base", "base mainnet"),
    ),
    ChainDescriptor(
        id=42161,
        name="Arbitrum",
        native_symbol="ETH",
        coingecko_platform="arbitrum-one",
        aliases=("arbitrum", "arb", "arbitrum one", "arbitrum-one"),
    ),
    ChainDescriptor(
        id=43114,
        name="Avalanche",
        native_symbol="AVAX",
        coingecko_platform="avalanche",
        aliases=("avalanche", "avax", "avalanche c-chain"),
    ),
)

_BY_ID: Dict[int, ChainDescriptor] = {chain.id: chain for chain in SUPPORTED_CHAINS}

_BY_ALIAS: Dict[str, ChainDescriptor] = {}
for _chain in SUPPORTED_CHAINS:
    _BY_ALIAS[_chain.name.lower()] = _chain
    for _alias in _chain.aliases:
        _BY_ALIAS[_alias] = _chain

_BY_PLATFORM: Dict[str, ChainDescriptor] = {
    chain.coingecko_platform: chain for chain in SUPPORTED_CHAINS
}


def get_chain_by_id(chain_id: int) -> Optional[ChainDescriptor]:
    return _BY_ID.get(chain_id)


def get_chain_by_name(name: str) -> Optional[ChainDescriptor]:
    """Resolve a chain name or alias, ignoring case and surrounding whitespace."""

    if not name:
        return None
    return _BY_ALIAS.get(" ".join(name.lower().split()))


def get_chain_by_platform(platform: str) -> Optional[ChainDescriptor]:
    """Map a Coingecko asset platform slug to a supported chain."""

    if not platform:
        return None
    return _BY_PLATFORM.get(platform.lower())


def resolve_chain(ref: Optional[ChainRef]) -> Optional[ChainDescriptor]:
    """Resolve a chain id, numeric string, name or alias.

    Returns ``None`` for anything outside the supported set; there is no
    partial match.
    """

    if ref is None or isinstance(ref, bool):
        return None
    if isinstance(ref, int):
        return get_chain_by_id(ref)
    text = str(ref).strip()
    if not text:
        return None
    if text.isdigit():
        return get_chain_by_id(int(text))
    return get_chain_by_name(text)


def supported_chain_ids() -> List[int]:
    return [chain.id for chain in SUPPORTED_CHAINS]


def supported_chain_names() -> List[str]:
    return [chain.name for chain in SUPPORTED_CHAINS]


__all__ = [
    "ChainDescriptor",
    "ChainRef",
    "SUPPORTED_CHAINS",
    "get_chain_by_id",
    "get_chain_by_name",
    "get_chain_by_platform",
    "resolve_chain",
    "supported_chain_ids",
    "supported_chain_names",
]
