"""
Conversation Models

Steps, modes and the per-intent state carried between turns.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional

from ..chains import ChainDescriptor
from ..models import ProtocolVault, TokenDescriptor, TransactionBundle

# step, mode, success, message plus the step-relevant payload
ConversationResponse = Dict[str, Any]


class ConversationStep(str, Enum):
    """Where a conversation currently stands."""

    TOKEN_CONFIRMATION = "token_confirmation"    # Resolving the token and its chain
    PROTOCOL_DISCOVERY = "protocol_discovery"    # Ranked list shown, waiting for a pick
    AMOUNT_INPUT = "amount_input"                # Waiting for amount and wallet address
    TRANSACTION_READY = "transaction_ready"      # Bundle produced, terminal for this intent
    ERROR = "error"                              # Unrecoverable, needs reset


class ConversationMode(str, Enum):
    INTERACTIVE = "interactive"
    QUICK = "quick"


class InvalidStepError(Exception):
    """Raised when an operation is attempted from the wrong step."""

    def __init__(self, current: ConversationStep, expected: List[ConversationStep]):
        self.current = current
        self.expected = expected
        allowed = ", ".join(step.value for step in expected)
        super().__init__(f"Cannot do that at step {current.value}. Expected one of: {allowed}")


@dataclass
class StepTransition:
    """Record of a step change."""

    from_step: ConversationStep
    to_step: ConversationStep
    reason: Optional[str] = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "fromStep": self.from_step.value,
            "toStep": self.to_step.value,
            "reason": self.reason,
            "timestamp": self.timestamp.isoformat(),
        }


@dataclass
class ConversationState:
    """State for a single user intent. Fields only ever accumulate."""

    step: ConversationStep = ConversationStep.TOKEN_CONFIRMATION
    mode: ConversationMode = ConversationMode.INTERACTIVE

    token: Optional[TokenDescriptor] = None
    candidates: List[TokenDescriptor] = field(default_factory=list)
    chain: Optional[ChainDescriptor] = None

    protocols: List[ProtocolVault] = field(default_factory=list)
    total_found: int = 0
    protocol: Optional[ProtocolVault] = None

    amount: Optional[Decimal] = None
    user_address: Optional[str] = None

    bundle: Optional[TransactionBundle] = None
    last_error: Optional[Dict[str, Any]] = None
    history: List[StepTransition] = field(default_factory=list)

    @property
    def is_terminal(self) -> bool:
        return self.step in (ConversationStep.TRANSACTION_READY, ConversationStep.ERROR)

    @property
    def missing_fields(self) -> List[str]:
        missing = []
        if self.amount is None:
            missing.append("amount")
        if self.user_address is None:
            missing.append("userAddress")
        return missing

    def to_dict(self) -> Dict[str, Any]:
        return {
            "step": self.step.value,
            "mode": self.mode.value,
            "token": self.token.to_dict() if self.token else None,
            "chain": self.chain.to_dict() if self.chain else None,
            "protocol": self.protocol.to_dict() if self.protocol else None,
            "amount": str(self.amount) if self.amount is not None else None,
            "userAddress": self.user_address,
            "bundle": self.bundle.to_dict() if self.bundle else None,
            "history": [t.to_dict() for t in self.history],
        }
