from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from ..core.models import ApprovalResult, ProtocolVault, TokenDescriptor, Transaction


class Provider(ABC):
    """Base provider interface"""

    name: str
    timeout_s: int = 10

    @abstractmethod
    async def ready(self) -> bool:
        """Check if provider is configured to serve requests"""
        pass

    @abstractmethod
    async def health_check(self) -> Dict[str, Any]:
        """Return provider health status"""
        pass


class MetadataProvider(Provider):
    """Provider for token metadata, market data and per-chain addresses"""

    @abstractmethod
    async def resolve_by_query(self, text: str) -> List[TokenDescriptor]:
        """Fuzzy search by symbol or name"""
        pass

    @abstractmethod
    async def resolve_by_address(self, address: str, chain_id: int) -> Optional[TokenDescriptor]:
        """Exact lookup by contract address on one chain"""
        pass


class DiscoveryProvider(Provider):
    """Provider for yield vaults accepting a token"""

    @abstractmethod
    async def find_vaults(self, token_address: str, chain_id: int) -> List[ProtocolVault]:
        """Vaults whose underlying token is ``token_address`` on ``chain_id``"""
        pass


class TransactionDataProvider(Provider):
    """Provider for approval and deposit transaction payloads"""

    @abstractmethod
    async def approval_needed(
        self,
        user: str,
        token: str,
        spender: str,
        chain_id: int,
        amount: int,
    ) -> ApprovalResult:
        """Return whether ``spender`` must be approved and the approval transaction"""
        pass

    @abstractmethod
    async def build_deposit(
        self,
        protocol: str,
        token_in: str,
        amount_in: int,
        chain_id: int,
        receiver: str,
        vault: str,
    ) -> Transaction:
        """Build the deposit transaction into ``vault``"""
        pass
