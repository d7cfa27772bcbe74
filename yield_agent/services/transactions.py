"""
Transaction Bundle Assembly.

Builds the optional approval and the deposit transaction for a vault
deposit. An approval check that cannot be completed is reported as
indeterminate and the bundle continues with the deposit alone; a deposit
failure is fatal.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List

from ..core.errors import ValidationError, YieldAgentError
from ..core.models import (
    SAFETY_WARNING,
    ApprovalResult,
    ApprovalStatus,
    TransactionBundle,
)
from ..core.result import Err, Ok, Result
from ..core.validation import format_units, validate_address, validate_base_units, validate_chain
from ..providers.base import TransactionDataProvider

logger = logging.getLogger(__name__)

APPROVAL_INDETERMINATE_WARNING = (
    "Could not verify approval status. If the deposit fails, approve the token for the spender first."
)

APPROVAL_MISSING_WARNING = (
    "Approval is required but no approval transaction was provided. Approve the token for the spender "
    "before submitting the deposit."
)

_TRANSACTION_KEYS = ("approvalTransaction", "depositTransaction", "transaction")


def ensure_safety_warning(payload: Any) -> Any:
    """Attach the disclosure string to every transaction-shaped dict in ``payload``.

    Mutates and returns ``payload``.
    """

    if isinstance(payload, dict):
        for key, value in payload.items():
            if key in _TRANSACTION_KEYS and isinstance(value, dict) and not value.get("safetyWarning"):
                value["safetyWarning"] = SAFETY_WARNING
            ensure_safety_warning(value)
        if "bundle" in payload and isinstance(payload["bundle"], dict):
            payload["bundle"].setdefault("safetyWarning", SAFETY_WARNING)
            payload.setdefault("warning", SAFETY_WARNING)
    elif isinstance(payload, list):
        for item in payload:
            ensure_safety_warning(item)
    return payload


class TransactionBundleService:
    def __init__(self, transaction_provider: TransactionDataProvider):
        self.transaction_provider = transaction_provider

    async def check_approval(
        self,
        user: str,
        token: str,
        spender: str,
        chain_id: int,
        amount: int,
    ) -> ApprovalResult:
        logger.info(f"Checking approval for token {token}, spender {spender}, amount {amount}")
        try:
            return await self.transaction_provider.approval_needed(user, token, spender, chain_id, amount)
        except Exception as e:
            logger.warning(f"Failed to get approval data: {e}")
            return ApprovalResult.indeterminate(f"Failed to check approval: {e}")

    async def build_bundle(
        self,
        user: str,
        token: str,
        protocol_address: str,
        protocol_name: str,
        chain_id: int,
        amount: Any,
        token_symbol: str,
        decimals: int,
    ) -> TransactionBundle:
        """Assemble approve (when required) + deposit.

        Raises:
            ValidationError: malformed address, chain or amount.
            YieldAgentError: the deposit transaction could not be built.
        """
        user_address = self._checked_address(user, "user")
        token_address = self._checked_address(token, "token")
        vault_address = self._checked_address(protocol_address, "protocol")
        checked_chain = validate_chain(chain_id)
        if not checked_chain.ok:
            raise ValidationError(checked_chain.detail, checked_chain.suggestion)
        checked_amount = validate_base_units(amount)
        if not checked_amount.ok:
            raise ValidationError(checked_amount.detail, checked_amount.suggestion)
        amount_units = checked_amount.value
        chain = checked_chain.value

        logger.info(
            f"Generating transaction bundle for {token_symbol} deposit to {protocol_name} on chain {chain.id}"
        )

        approval = await self.check_approval(user_address, token_address, vault_address, chain.id, amount_units)

        deposit = await self.transaction_provider.build_deposit(
            protocol_name,
            token_address,
            amount_units,
            chain.id,
            user_address,
            vault_address,
        )
        deposit.protocol = protocol_name
        deposit.token_in = {
            "address": token_address,
            "symbol": token_symbol,
            "amount": format_units(amount_units, decimals),
            "amountWei": str(amount_units),
        }
        deposit.token_out = {"address": vault_address, "symbol": protocol_name}

        warnings: List[str] = []
        approval_tx = None
        if approval.approval_needed and approval.approval_transaction is not None:
            approval_tx = approval.approval_transaction
        elif approval.status == ApprovalStatus.INDETERMINATE:
            warnings.append(APPROVAL_INDETERMINATE_WARNING)
        elif approval.approval_needed:
            logger.warning(f"Approval required for token {token_address} but no approval transaction was returned")
            warnings.append(APPROVAL_MISSING_WARNING)

        return TransactionBundle(
            deposit_transaction=deposit,
            approval_transaction=approval_tx,
            approval_status=approval.status,
            warnings=warnings,
        )

    async def generate(
        self,
        user: str,
        token: str,
        protocol_address: str,
        protocol_name: str,
        chain_id: int,
        amount: Any,
        token_symbol: str,
        decimals: int,
    ) -> Result[TransactionBundle]:
        try:
            bundle = await self.build_bundle(
                user,
                token,
                protocol_address,
                protocol_name,
                chain_id,
                amount,
                token_symbol,
                decimals,
            )
        except YieldAgentError as e:
            logger.error(f"Error generating transaction bundle: {e.message}")
            return Err.from_exception(e)
        return Ok(bundle)

    @staticmethod
    def _checked_address(value: Any, label: str) -> str:
        checked = validate_address(value)
        if not checked.ok:
            raise ValidationError(f"{checked.detail} ({label} address)", checked.suggestion)
        return checked.value


def bundle_payload(bundle: TransactionBundle) -> Dict[str, Any]:
    return ensure_safety_warning(
        {
            "success": True,
            "bundle": bundle.to_dict(),
            "warning": SAFETY_WARNING,
        }
    )


__all__ = [
    "APPROVAL_INDETERMINATE_WARNING",
    "APPROVAL_MISSING_WARNING",
    "TransactionBundleService",
    "bundle_payload",
    "ensure_safety_warning",
]
