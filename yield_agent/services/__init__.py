"""Service layer helpers"""

from .discovery import ProtocolDiscoveryService, qualifying_vaults
from .token_resolution import TokenResolution, TokenResolutionService
from .transactions import TransactionBundleService, ensure_safety_warning

__all__ = [
    "ProtocolDiscoveryService",
    "qualifying_vaults",
    "TokenResolution",
    "TokenResolutionService",
    "TransactionBundleService",
    "ensure_safety_warning",
]
