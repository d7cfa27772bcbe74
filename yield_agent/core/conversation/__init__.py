"""
Conversation Module

Step-by-step and quick-mode sequencing of a deposit intent.
"""

from .models import (
    ConversationMode,
    ConversationResponse,
    ConversationState,
    ConversationStep,
    InvalidStepError,
    StepTransition,
)
from .state_machine import PROTOCOL_REQUIRED_MESSAGE, YieldConversation, match_protocol

__all__ = [
    # State Machine
    "YieldConversation",
    "match_protocol",
    "PROTOCOL_REQUIRED_MESSAGE",
    # Models
    "ConversationMode",
    "ConversationResponse",
    "ConversationState",
    "ConversationStep",
    "StepTransition",
    # Errors
    "InvalidStepError",
]
