"""Upstream data providers"""

from .base import DiscoveryProvider, MetadataProvider, Provider, TransactionDataProvider
from .coingecko import CoingeckoProvider
from .enso import EnsoProvider

__all__ = [
    "Provider",
    "MetadataProvider",
    "DiscoveryProvider",
    "TransactionDataProvider",
    "CoingeckoProvider",
    "EnsoProvider",
]
