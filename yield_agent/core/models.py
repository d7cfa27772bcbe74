"""
Yield Agent Models

Tokens, vaults, safety scores and transaction bundles passed between the
providers, the services and the conversation layer.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple


SAFETY_WARNING = (
    "This transaction object was generated by an automated agent. "
    "Verify all details (token address, protocol address, amount, chain) before executing. "
    "Not financial advice."
)


class RiskLevel(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"


class TransactionType(str, Enum):
    APPROVE = "approve"
    DEPOSIT = "deposit"


class ApprovalStatus(str, Enum):
    REQUIRED = "required"
    NOT_REQUIRED = "not_required"
    INDETERMINATE = "indeterminate"


@dataclass(frozen=True)
class ChainEntry:
    """Where a token lives on one chain."""

    chain_id: int
    chain_name: str
    address: str
    decimals: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "chainId": self.chain_id,
            "chainName": self.chain_name,
            "address": self.address,
        }
        if self.decimals is not None:
            payload["decimals"] = self.decimals
        return payload


@dataclass
class TokenDescriptor:
    """A resolved token with market data and every chain it exists on.

    The first entry of ``chains`` is the primary chain; ``address`` and
    ``chain_id`` read from it.
    """

    name: str
    symbol: str
    decimals: int
    chains: List[ChainEntry] = field(default_factory=list)
    coingecko_id: Optional[str] = None
    price: Optional[float] = None
    market_cap: Optional[float] = None
    price_change_24h: Optional[float] = None
    volume_24h: Optional[float] = None
    logo_url: Optional[str] = None
    description: Optional[str] = None
    verified: bool = False
    requires_confirmation: bool = False

    def __post_init__(self) -> None:
        self.symbol = (self.symbol or "").strip().upper()
        # One entry per chain, first one wins
        seen: set[int] = set()
        unique: List[ChainEntry] = []
        for entry in self.chains:
            if entry.chain_id in seen:
                continue
            seen.add(entry.chain_id)
            unique.append(entry)
        self.chains = unique

    @property
    def primary(self) -> Optional[ChainEntry]:
        return self.chains[0] if self.chains else None

    @property
    def address(self) -> Optional[str]:
        return self.primary.address if self.primary else None

    @property
    def chain_id(self) -> Optional[int]:
        return self.primary.chain_id if self.primary else None

    @property
    def chain_name(self) -> Optional[str]:
        return self.primary.chain_name if self.primary else None

    def chain_ids(self) -> List[int]:
        return [entry.chain_id for entry in self.chains]

    def entry_for(self, chain_id: int) -> Optional[ChainEntry]:
        for entry in self.chains:
            if entry.chain_id == chain_id:
                return entry
        return None

    def on_chain(self, chain_id: int) -> "TokenDescriptor":
        """Copy with ``chain_id`` moved to the primary position."""

        entry = self.entry_for(chain_id)
        if entry is None:
            raise KeyError(chain_id)
        others = [e for e in self.chains if e.chain_id != chain_id]
        decimals = entry.decimals if entry.decimals is not None else self.decimals
        return replace(self, chains=[entry, *others], decimals=decimals)

    def matches(self, query: str) -> bool:
        text = query.strip().lower()
        return text == self.symbol.lower() or text == self.name.strip().lower()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "symbol": self.symbol,
            "decimals": self.decimals,
            "address": self.address,
            "chain": self.chain_name,
            "chainId": self.chain_id,
            "coingeckoId": self.coingecko_id,
            "price": self.price,
            "marketCap": self.market_cap,
            "priceChange24h": self.price_change_24h,
            "volume24h": self.volume_24h,
            "logoURI": self.logo_url,
            "description": self.description,
            "verified": self.verified,
            "requiresConfirmation": self.requires_confirmation,
            "allChains": [entry.to_dict() for entry in self.chains],
        }


@dataclass
class SafetyScore:
    score: float
    risk: RiskLevel
    factors: List[str] = field(default_factory=list)

    @property
    def overall(self) -> str:
        """Safety label, the inverse of the risk bucket."""
        return {
            RiskLevel.LOW: "high",
            RiskLevel.MEDIUM: "medium",
            RiskLevel.HIGH: "low",
        }[self.risk]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "score": self.score,
            "risk": self.risk.value,
            "overall": self.overall,
            "factors": list(self.factors),
        }


@dataclass(frozen=True)
class UnderlyingToken:
    address: str
    symbol: Optional[str] = None
    name: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {"address": self.address, "symbol": self.symbol, "name": self.name}


@dataclass
class ProtocolVault:
    """One discovered yield opportunity. Identity is (address, chain)."""

    address: str
    name: str
    protocol: str
    chain_id: int
    chain_name: str
    apy: float = 0.0
    tvl: float = 0.0
    symbol: Optional[str] = None
    underlying_tokens: List[UnderlyingToken] = field(default_factory=list)
    logos_uri: List[str] = field(default_factory=list)
    safety_score: Optional[SafetyScore] = None

    def __post_init__(self) -> None:
        self.apy = max(float(self.apy or 0.0), 0.0)
        self.tvl = max(float(self.tvl or 0.0), 0.0)
        self.protocol = self.protocol or "unknown"

    @property
    def key(self) -> Tuple[str, int]:
        return (self.address.lower(), self.chain_id)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "address": self.address,
            "name": self.name,
            "symbol": self.symbol,
            "protocol": self.protocol,
            "chainId": self.chain_id,
            "chainName": self.chain_name,
            "apy": self.apy,
            "tvl": self.tvl,
            "underlyingTokens": [t.to_dict() for t in self.underlying_tokens],
            "safetyScore": self.safety_score.to_dict() if self.safety_score else None,
        }


@dataclass
class Transaction:
    """An unsigned transaction. Always carries the disclosure string."""

    to: str
    data: str
    chain_id: int
    type: TransactionType
    value: int = 0
    gas_limit: int = 0
    # approve
    token_address: Optional[str] = None
    spender: Optional[str] = None
    amount: Optional[int] = None
    # deposit
    protocol: Optional[str] = None
    token_in: Optional[Dict[str, Any]] = None
    token_out: Optional[Dict[str, Any]] = None
    safety_warning: str = SAFETY_WARNING

    def __post_init__(self) -> None:
        if not self.safety_warning:
            self.safety_warning = SAFETY_WARNING

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "type": self.type.value,
            "to": self.to,
            "data": self.data,
            "value": str(self.value),
            "gasLimit": str(self.gas_limit),
            "chainId": self.chain_id,
        }
        if self.token_address is not None:
            payload["tokenAddress"] = self.token_address
        if self.spender is not None:
            payload["spender"] = self.spender
        if self.amount is not None:
            payload["amount"] = str(self.amount)
        if self.protocol is not None:
            payload["protocol"] = self.protocol
        if self.token_in is not None:
            payload["tokenIn"] = dict(self.token_in)
        if self.token_out is not None:
            payload["tokenOut"] = dict(self.token_out)
        payload["safetyWarning"] = self.safety_warning
        return payload


@dataclass
class ApprovalResult:
    status: ApprovalStatus
    message: str
    approval_transaction: Optional[Transaction] = None
    error: Optional[str] = None

    @property
    def approval_needed(self) -> bool:
        return self.status == ApprovalStatus.REQUIRED

    @classmethod
    def indeterminate(cls, error: str) -> "ApprovalResult":
        return cls(
            status=ApprovalStatus.INDETERMINATE,
            message="Could not verify approval status",
            error=error,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "approvalNeeded": self.approval_needed,
            "status": self.status.value,
            "message": self.message,
            "approvalTransaction": (
                self.approval_transaction.to_dict() if self.approval_transaction else None
            ),
            "error": self.error,
        }


@dataclass
class TransactionBundle:
    """Optional approval plus deposit, in execution order."""

    deposit_transaction: Transaction
    approval_transaction: Optional[Transaction] = None
    approval_status: ApprovalStatus = ApprovalStatus.NOT_REQUIRED
    warnings: List[str] = field(default_factory=list)

    @property
    def execution_order(self) -> List[str]:
        if self.approval_transaction is not None:
            return [TransactionType.APPROVE.value, TransactionType.DEPOSIT.value]
        return [TransactionType.DEPOSIT.value]

    @property
    def transactions(self) -> List[Transaction]:
        if self.approval_transaction is not None:
            return [self.approval_transaction, self.deposit_transaction]
        return [self.deposit_transaction]

    @property
    def total_gas_estimate(self) -> int:
        return sum(tx.gas_limit for tx in self.transactions)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "approvalTransaction": (
                self.approval_transaction.to_dict() if self.approval_transaction else None
            ),
            "depositTransaction": self.deposit_transaction.to_dict(),
            "executionOrder": self.execution_order,
            "totalGasEstimate": str(self.total_gas_estimate),
            "approvalStatus": self.approval_status.value,
            "warnings": list(self.warnings),
            "safetyWarning": SAFETY_WARNING,
        }


__all__ = [
    "SAFETY_WARNING",
    "RiskLevel",
    "TransactionType",
    "ApprovalStatus",
    "ChainEntry",
    "TokenDescriptor",
    "SafetyScore",
    "UnderlyingToken",
    "ProtocolVault",
    "Transaction",
    "ApprovalResult",
    "TransactionBundle",
]
