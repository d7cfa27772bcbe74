"""
Conversation State Machine

Sequences a deposit intent through token confirmation, protocol discovery,
amount input and transaction assembly, or jumps straight to a bundle in
quick mode. Holds no business logic beyond carrying parameters forward and
checking transition guards; every failure comes back as a response dict.
"""

import functools
import logging
from decimal import Decimal
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence, Set, Union

from ..chains import ChainRef, resolve_chain
from ..errors import ErrorCategory
from ..models import ProtocolVault, TokenDescriptor
from ..result import Err, Ok, Result
from ..validation import (
    to_base_units,
    validate_address,
    validate_amount,
    validate_chain,
)
from .models import (
    ConversationMode,
    ConversationResponse,
    ConversationState,
    ConversationStep,
    InvalidStepError,
    StepTransition,
)

logger = logging.getLogger(__name__)

PROTOCOL_REQUIRED_MESSAGE = "Protocol required"

Selection = Union[int, str]


def _conversation_op(func: Callable[..., Awaitable[ConversationResponse]]):
    """Turn anything raised by an operation into a structured response."""

    @functools.wraps(func)
    async def wrapper(self: "YieldConversation", *args: Any, **kwargs: Any) -> ConversationResponse:
        try:
            return await func(self, *args, **kwargs)
        except InvalidStepError as e:
            return self._failure(Err(ErrorCategory.VALIDATION, str(e), "Call reset() to start over"))
        except Exception as e:
            logger.error(f"Conversation operation {func.__name__} failed: {e}", exc_info=True)
            self.state.step = ConversationStep.ERROR
            return self._failure(
                Err(ErrorCategory.PROVIDER, f"Unexpected error: {e}", "Call reset() to start over")
            )

    return wrapper


def match_protocol(protocols: Sequence[ProtocolVault], selection: Optional[Selection]) -> Result[ProtocolVault]:
    """Find ``selection`` in a ranked list.

    Accepts a 0-based index, or a vault name, protocol identifier or address
    compared case-insensitively. Several exact hits resolve to the best
    ranked one; a substring hit is accepted only when it is unique.
    """
    available = [f"{p.name} ({p.protocol})" for p in protocols]
    if selection is None or (isinstance(selection, str) and not selection.strip()):
        return Err(
            ErrorCategory.VALIDATION,
            PROTOCOL_REQUIRED_MESSAGE,
            "Choose one of the listed protocols",
            {"availableProtocols": available},
        )

    if isinstance(selection, int) and not isinstance(selection, bool):
        if 0 <= selection < len(protocols):
            return Ok(protocols[selection])
        return Err(
            ErrorCategory.NOT_FOUND,
            f"No protocol at position {selection}",
            f"Choose a position between 0 and {len(protocols) - 1}",
            {"availableProtocols": available},
        )

    text = str(selection).strip().lower()
    for vault in protocols:
        if text in (vault.name.lower(), vault.protocol.lower(), vault.address.lower()):
            return Ok(vault)

    partial = [v for v in protocols if text in v.name.lower() or text in v.protocol.lower()]
    if len(partial) == 1:
        return Ok(partial[0])
    if len(partial) > 1:
        return Err(
            ErrorCategory.VALIDATION,
            f"'{selection}' matches several protocols",
            "Use the full vault name or its address",
            {"availableProtocols": [f"{p.name} ({p.protocol})" for p in partial]},
        )
    return Err(
        ErrorCategory.NOT_FOUND,
        f"Protocol '{selection}' is not in the current list",
        f"Available protocols: {', '.join(available)}",
        {"availableProtocols": available},
    )


class YieldConversation:
    """
    Drives one conversation through the deposit flow.

    The services are injected so tests can substitute fakes:
    - token_service: resolve(reference, chain_hint)
    - discovery_service: discover(token_address, chain_id)
    - transaction_service: generate(user, token, protocol_address, ...)
    """

    TRANSITIONS: Dict[ConversationStep, Set[ConversationStep]] = {
        ConversationStep.TOKEN_CONFIRMATION: {
            ConversationStep.TOKEN_CONFIRMATION,
            ConversationStep.PROTOCOL_DISCOVERY,
            ConversationStep.ERROR,
        },
        ConversationStep.PROTOCOL_DISCOVERY: {
            ConversationStep.AMOUNT_INPUT,
            ConversationStep.ERROR,
        },
        ConversationStep.AMOUNT_INPUT: {
            ConversationStep.TRANSACTION_READY,
            ConversationStep.ERROR,
        },
        ConversationStep.TRANSACTION_READY: set(),  # Terminal for this intent
        ConversationStep.ERROR: set(),              # Only reset() leaves it
    }

    def __init__(
        self,
        token_service: Any,
        discovery_service: Any,
        transaction_service: Any,
        state: Optional[ConversationState] = None,
    ):
        self.token_service = token_service
        self.discovery_service = discovery_service
        self.transaction_service = transaction_service
        self.state = state or ConversationState()

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def can_transition_to(self, to_step: ConversationStep) -> bool:
        return to_step in self.TRANSITIONS.get(self.state.step, set())

    def _transition(self, to_step: ConversationStep, reason: Optional[str] = None) -> None:
        from_step = self.state.step
        if not self.can_transition_to(to_step):
            raise InvalidStepError(from_step, [s for s in self.TRANSITIONS if to_step in self.TRANSITIONS[s]])
        self.state.history.append(StepTransition(from_step=from_step, to_step=to_step, reason=reason))
        self.state.step = to_step
        logger.info(f"Conversation {from_step.value} -> {to_step.value}" + (f" ({reason})" if reason else ""))

    def _require_step(self, *steps: ConversationStep) -> None:
        if self.state.step not in steps:
            raise InvalidStepError(self.state.step, list(steps))

    # ------------------------------------------------------------------
    # Responses
    # ------------------------------------------------------------------

    def _response(self, success: bool, message: str, **payload: Any) -> ConversationResponse:
        response: ConversationResponse = {
            "step": self.state.step.value,
            "mode": self.state.mode.value,
            "success": success,
            "message": message,
        }
        response.update({k: v for k, v in payload.items() if v is not None})
        return response

    def _failure(self, err: Err, **payload: Any) -> ConversationResponse:
        error = err.to_dict()
        self.state.last_error = error
        return self._response(False, err.detail, error=error, **payload)

    def _protocols_payload(self) -> Dict[str, Any]:
        return {
            "protocols": [p.to_dict() for p in self.state.protocols],
            "showing": len(self.state.protocols),
            "totalFound": self.state.total_found,
        }

    @staticmethod
    def _chains_payload(token: TokenDescriptor) -> List[Dict[str, Any]]:
        return [entry.to_dict() for entry in token.chains]

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    @_conversation_op
    async def start(self, reference: Any, chain_hint: Optional[ChainRef] = None) -> ConversationResponse:
        """Begin a new intent from a token reference."""

        self.state = ConversationState()
        result = await self.token_service.resolve(reference, chain_hint)
        if not result.ok:
            return self._failure(result)

        resolution = result.value
        if resolution.multiple_matches:
            self.state.candidates = list(resolution.candidates)
            # Remember the hint only when every candidate can use it
            hinted = resolve_chain(chain_hint) if chain_hint is not None else None
            if hinted is not None and all(t.entry_for(hinted.id) is not None for t in self.state.candidates):
                self.state.chain = hinted
            return self._response(
                True,
                resolution.to_dict()["message"],
                requiresConfirmation=True,
                tokens=[t.to_dict() for t in resolution.candidates],
            )

        return await self._accept_token(resolution.token, chain_hint)

    @_conversation_op
    async def select_token(self, selection: Selection) -> ConversationResponse:
        """Pick one of several candidate tokens by 0-based index or symbol/name/address."""

        self._require_step(ConversationStep.TOKEN_CONFIRMATION)
        candidates = self.state.candidates
        if not candidates:
            return self._failure(
                Err(ErrorCategory.VALIDATION, "No token candidates to choose from", "Start with a token first")
            )

        chosen: List[TokenDescriptor]
        if isinstance(selection, int) and not isinstance(selection, bool):
            chosen = [candidates[selection]] if 0 <= selection < len(candidates) else []
        else:
            text = str(selection or "").strip().lower()
            chosen = [
                t
                for t in candidates
                if text in (t.symbol.lower(), t.name.lower(), (t.coingecko_id or "").lower(), (t.address or "").lower())
            ]

        options = [f"{t.name} ({t.symbol})" for t in candidates]
        if len(chosen) != 1:
            detail = "Selection matches several tokens" if chosen else f"No token matches '{selection}'"
            return self._failure(
                Err(ErrorCategory.VALIDATION, detail, f"Choose one of: {', '.join(options)}", {"tokens": options})
            )

        self.state.candidates = []
        hinted = self.state.chain
        return await self._accept_token(chosen[0], hinted.id if hinted is not None else None)

    @_conversation_op
    async def select_chain(self, chain: ChainRef) -> ConversationResponse:
        """Confirm the chain, then discover and rank protocols on it."""

        self._require_step(ConversationStep.TOKEN_CONFIRMATION)
        token = self.state.token
        if token is None:
            return self._failure(
                Err(ErrorCategory.VALIDATION, "No token selected yet", "Start with a token first")
            )

        valid_chains = [entry.chain_name for entry in token.chains]
        descriptor = resolve_chain(chain)
        if descriptor is None or token.entry_for(descriptor.id) is None:
            name = descriptor.name if descriptor else chain
            return self._failure(
                Err(
                    ErrorCategory.VALIDATION,
                    f"{token.symbol} is not available on {name}",
                    f"Valid chains for {token.symbol}: {', '.join(valid_chains)}",
                    {"validChains": valid_chains},
                ),
                token=token.to_dict(),
                chains=self._chains_payload(token),
            )

        token = token.on_chain(descriptor.id)
        ranked = await self.discovery_service.discover(token.address, descriptor.id)
        if not ranked.ok:
            return self._failure(ranked, token=token.to_dict(), chains=self._chains_payload(token))

        self.state.token = token
        self.state.chain = descriptor
        self.state.protocols = list(ranked.value.protocols)
        self.state.total_found = ranked.value.total_found
        self._transition(ConversationStep.PROTOCOL_DISCOVERY, reason=f"chain {descriptor.name} selected")
        return self._response(
            True,
            f"Found {ranked.value.total_found} staking options for {token.symbol} on {descriptor.name}, "
            f"{ranked.value.summary}",
            token=token.to_dict(),
            **self._protocols_payload(),
        )

    @_conversation_op
    async def select_protocol(self, selection: Selection) -> ConversationResponse:
        """Pick a vault from the most recent ranked list."""

        self._require_step(ConversationStep.PROTOCOL_DISCOVERY)
        matched = match_protocol(self.state.protocols, selection)
        if not matched.ok:
            return self._failure(matched, **self._protocols_payload())

        vault = matched.value
        self.state.protocol = vault
        self._transition(ConversationStep.AMOUNT_INPUT, reason=f"protocol {vault.name} selected")
        return self._response(
            True,
            f"Selected {vault.name}. How much {self.state.token.symbol} would you like to deposit, "
            "and from which wallet address?",
            protocol=vault.to_dict(),
            missingFields=self.state.missing_fields,
        )

    @_conversation_op
    async def provide_details(
        self,
        amount: Any = None,
        user_address: Optional[str] = None,
    ) -> ConversationResponse:
        """Merge amount and/or wallet address; build the bundle once both are known."""

        self._require_step(ConversationStep.AMOUNT_INPUT)
        token = self.state.token

        # Keep every field that validates, even when its sibling does not
        failed: Optional[Err] = None
        if amount is not None:
            checked_amount = validate_amount(amount, decimals=token.decimals)
            if checked_amount.ok:
                self.state.amount = checked_amount.value
            else:
                failed = checked_amount
        if user_address is not None:
            checked_address = validate_address(user_address)
            if checked_address.ok:
                self.state.user_address = checked_address.value
            elif failed is None:
                failed = checked_address
        if failed is not None:
            return self._failure(failed, missingFields=self.state.missing_fields)

        missing = self.state.missing_fields
        if missing:
            prompts = {"amount": "the amount to deposit", "userAddress": "your wallet address"}
            return self._response(
                True,
                f"Please provide {' and '.join(prompts[field] for field in missing)}",
                missingFields=missing,
            )

        return await self._build_bundle()

    @_conversation_op
    async def quick(
        self,
        token_address: Any,
        chain: Any,
        protocol: Optional[Selection],
        amount: Any,
        user_address: Any,
    ) -> ConversationResponse:
        """Validate all five parameters together and go straight to a bundle.

        A missing protocol drops back to interactive mode, keeping whatever
        discovery produced.
        """
        self.state = ConversationState(mode=ConversationMode.QUICK)

        errors: Dict[str, Dict[str, Any]] = {}
        checked_token = validate_address(token_address)
        if not checked_token.ok:
            errors["tokenAddress"] = checked_token.to_dict()
        checked_chain = validate_chain(chain)
        if not checked_chain.ok:
            errors["chain"] = checked_chain.to_dict()
        checked_amount = validate_amount(amount)
        if not checked_amount.ok:
            errors["amount"] = checked_amount.to_dict()
        checked_user = validate_address(user_address)
        if not checked_user.ok:
            errors["userAddress"] = checked_user.to_dict()
        protocol_missing = protocol is None or (isinstance(protocol, str) and not protocol.strip())

        if errors:
            if protocol_missing:
                errors["protocol"] = {"kind": ErrorCategory.VALIDATION.value, "error": PROTOCOL_REQUIRED_MESSAGE}
            details = "; ".join(f"{field}: {err['error']}" for field, err in errors.items())
            err = Err(ErrorCategory.VALIDATION, f"Invalid parameters: {details}", None, {"fields": errors})
            return self._fall_back(err) if protocol_missing else self._failure(err)

        chain_descriptor = checked_chain.value
        resolved = await self.token_service.resolve(checked_token.value, chain_descriptor.id)
        if not resolved.ok:
            return self._fall_back(resolved)
        token = resolved.value.token.on_chain(chain_descriptor.id)
        self.state.token = token

        ranked = await self.discovery_service.discover(token.address, chain_descriptor.id)
        if not ranked.ok:
            return self._fall_back(ranked, token=token.to_dict(), chains=self._chains_payload(token))

        self.state.chain = chain_descriptor
        self.state.protocols = list(ranked.value.protocols)
        self.state.total_found = ranked.value.total_found
        self._transition(ConversationStep.PROTOCOL_DISCOVERY, reason="quick mode")

        if protocol_missing:
            return self._fall_back(
                Err(
                    ErrorCategory.VALIDATION,
                    PROTOCOL_REQUIRED_MESSAGE,
                    "Choose one of the listed protocols",
                ),
                **self._protocols_payload(),
            )

        matched = match_protocol(self.state.protocols, protocol)
        if not matched.ok:
            return self._fall_back(matched, **self._protocols_payload())

        checked_precision = validate_amount(checked_amount.value, decimals=token.decimals)
        if not checked_precision.ok:
            return self._fall_back(checked_precision, **self._protocols_payload())

        self.state.protocol = matched.value
        self._transition(ConversationStep.AMOUNT_INPUT, reason="quick mode")
        self.state.amount = checked_precision.value
        self.state.user_address = checked_user.value
        return await self._build_bundle()

    async def reset(self) -> ConversationResponse:
        self.state = ConversationState()
        return self._response(True, "Conversation reset")

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _accept_token(self, token: TokenDescriptor, chain_hint: Optional[ChainRef]) -> ConversationResponse:
        self.state.token = token
        if chain_hint is not None:
            return await self.select_chain(chain_hint)

        chains = [entry.chain_name for entry in token.chains]
        return self._response(
            True,
            f"Found {token.name} ({token.symbol}) on {', '.join(chains)}. Which chain would you like to use?",
            requiresConfirmation=True,
            token=token.to_dict(),
            chains=self._chains_payload(token),
        )

    def _fall_back(self, err: Err, **payload: Any) -> ConversationResponse:
        self.state.mode = ConversationMode.INTERACTIVE
        return self._failure(err, **payload)

    async def _build_bundle(self) -> ConversationResponse:
        state = self.state
        token = state.token
        vault = state.protocol
        try:
            amount_units = to_base_units(state.amount, token.decimals)
        except ValueError as e:
            return self._failure(Err(ErrorCategory.VALIDATION, str(e)), missingFields=["amount"])

        result = await self.transaction_service.generate(
            state.user_address,
            token.address,
            vault.address,
            vault.protocol,
            state.chain.id,
            amount_units,
            token.symbol,
            token.decimals,
        )
        if not result.ok:
            if result.kind != ErrorCategory.VALIDATION:
                self._transition(ConversationStep.ERROR, reason=result.detail)
            return self._failure(result)

        state.bundle = result.value
        self._transition(ConversationStep.TRANSACTION_READY, reason="bundle generated")
        bundle = result.value.to_dict()
        steps = " then ".join(result.value.execution_order)
        return self._response(
            True,
            f"Transaction ready: deposit {_format_amount(state.amount)} {token.symbol} into {vault.name} "
            f"on {state.chain.name} ({steps})",
            bundle=bundle,
            warning=bundle["safetyWarning"],
        )


def _format_amount(amount: Optional[Decimal]) -> str:
    if amount is None:
        return ""
    return format(amount.normalize(), "f")


__all__ = [
    "PROTOCOL_REQUIRED_MESSAGE",
    "YieldConversation",
    "match_protocol",
]
