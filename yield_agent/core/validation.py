"""Input validation for addresses, chains, amounts and token references.

Every validator is pure and returns ``Ok`` with the normalised value or an
``Err`` carrying a remediation hint.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation, localcontext
from typing import Any, List, Optional, Union

from eth_utils import is_address, is_hex_address, to_checksum_address

from .chains import ChainDescriptor, ChainRef, resolve_chain, supported_chain_names
from .errors import ErrorCategory
from .result import Err, Ok, Result

AmountLike = Union[int, str, Decimal, float]

CHAIN_REQUIRED_MESSAGE = "chain required when using a contract address"
AMOUNT_NOT_POSITIVE_MESSAGE = "amount must be positive"
INVALID_ADDRESS_MESSAGE = "Invalid address format"


def _invalid(detail: str, suggestion: Optional[str] = None, **extra: Any) -> Err:
    return Err(ErrorCategory.VALIDATION, detail, suggestion, extra)


def looks_like_address(value: str) -> bool:
    return value.strip().lower().startswith("0x")


def validate_address(value: Any) -> Result[str]:
    """Check ``0x`` + 40 hex chars; mixed case must carry a valid EIP-55 checksum."""

    if not isinstance(value, str) or not value.strip():
        return _invalid(INVALID_ADDRESS_MESSAGE, "Provide a 0x-prefixed 40 character hex address")
    text = value.strip()
    if not is_hex_address(text):
        return _invalid(
            INVALID_ADDRESS_MESSAGE,
            "Provide a 0x-prefixed 40 character hex address",
            value=text,
        )
    if not is_address(text):
        return _invalid(
            "Address checksum is invalid",
            "Copy the address again from a block explorer",
            value=text,
        )
    return Ok(to_checksum_address(text))


def validate_chain(value: Optional[ChainRef]) -> Result[ChainDescriptor]:
    chain = resolve_chain(value)
    if chain is None:
        supported = supported_chain_names()
        return _invalid(
            f"Unsupported chain: {value}" if value not in (None, "") else "Chain is required",
            f"Supported chains: {', '.join(supported)}",
            supportedChains=supported,
        )
    return Ok(chain)


def parse_amount(value: AmountLike) -> Optional[Decimal]:
    if isinstance(value, bool):
        return None
    try:
        if isinstance(value, float):
            amount = Decimal(repr(value))
        else:
            amount = Decimal(str(value).strip().replace(",", "").replace("_", ""))
    except (InvalidOperation, ValueError):
        return None
    if not amount.is_finite():
        return None
    return amount


def validate_amount(
    value: Any,
    decimals: Optional[int] = None,
    max_amount: Optional[AmountLike] = None,
) -> Result[Decimal]:
    """Validate a human-readable token amount."""

    if value is None or (isinstance(value, str) and not value.strip()):
        return _invalid("Amount is required", "Provide the amount to deposit, e.g. 100")
    amount = parse_amount(value)
    if amount is None:
        return _invalid(f"Invalid amount format: {value}", "Provide a plain number, e.g. 100 or 100.5")
    if amount <= 0:
        return _invalid(AMOUNT_NOT_POSITIVE_MESSAGE, "Provide an amount greater than zero")
    if decimals is not None:
        places = -amount.normalize().as_tuple().exponent
        if places > decimals:
            return _invalid(
                f"Amount has more than {decimals} decimal places",
                f"This token supports at most {decimals} decimal places",
            )
    if max_amount is not None:
        limit = parse_amount(max_amount)
        if limit is not None and amount > limit:
            return _invalid(f"Amount exceeds maximum of {limit}", "Reduce the amount")
    return Ok(amount)


def validate_base_units(value: Any) -> Result[int]:
    """Validate an integer amount expressed in the token's smallest unit."""

    if isinstance(value, bool):
        return _invalid(f"Invalid amount format: {value}")
    if isinstance(value, int):
        units = value
    else:
        text = str(value).strip() if value is not None else ""
        sign = text[1:] if text[:1] in "+-" else text
        if not sign.isdigit():
            return _invalid(
                f"Invalid amount format: {value}",
                "Amount must be an integer in the token's base units (wei)",
            )
        units = int(text)
    if units <= 0:
        return _invalid(AMOUNT_NOT_POSITIVE_MESSAGE, "Provide an amount greater than zero")
    return Ok(units)


def to_base_units(amount: AmountLike, decimals: int) -> int:
    """Convert a human amount into base units. Raises ``ValueError`` on excess precision."""

    parsed = parse_amount(amount)
    if parsed is None:
        raise ValueError(f"Invalid amount: {amount}")
    with localcontext() as ctx:
        ctx.prec = 200
        scaled = parsed.scaleb(decimals)
        if scaled != scaled.to_integral_value():
            raise ValueError(f"Amount {amount} has more than {decimals} decimal places")
        return int(scaled)


def format_units(base_units: int, decimals: int) -> str:
    sign = "-" if base_units < 0 else ""
    whole, frac = divmod(abs(base_units), 10 ** decimals)
    frac_text = str(frac).rjust(decimals, "0").rstrip("0") if decimals else ""
    return f"{sign}{whole}.{frac_text}" if frac_text else f"{sign}{whole}"


@dataclass
class TokenInput:
    reference: str
    is_address: bool
    chain: Optional[ChainDescriptor] = None
    warnings: List[str] = field(default_factory=list)


def validate_token_input(
    token: Any,
    chain_id: Optional[int] = None,
    chain_name: Optional[str] = None,
) -> Result[TokenInput]:
    if not isinstance(token, str) or not token.strip():
        return _invalid("Token is required", "Provide a token symbol, name or contract address")
    reference = token.strip()

    chain: Optional[ChainDescriptor] = None
    chain_ref: Optional[ChainRef] = chain_id if chain_id is not None else chain_name
    if chain_ref not in (None, ""):
        checked_chain = validate_chain(chain_ref)
        if not checked_chain.ok:
            return checked_chain
        chain = checked_chain.value

    if looks_like_address(reference):
        checked = validate_address(reference)
        if not checked.ok:
            return checked
        if chain is None:
            return _invalid(
                CHAIN_REQUIRED_MESSAGE,
                "Tell me which chain the contract is deployed on, e.g. Ethereum or Base",
                supportedChains=supported_chain_names(),
            )
        return Ok(TokenInput(reference=checked.value, is_address=True, chain=chain))

    warnings: List[str] = []
    if len(reference) < 2:
        warnings.append("Very short token reference; results may be ambiguous")
    return Ok(TokenInput(reference=reference, is_address=False, chain=chain, warnings=warnings))


VALIDATION_KINDS = ("address", "chain", "amount", "token")


def validate_input(kind: str, value: Any) -> Result[Any]:
    """Dispatch to the validator for ``kind``."""

    normalized = (kind or "").strip().lower()
    if normalized == "address":
        return validate_address(value)
    if normalized == "chain":
        return validate_chain(value)
    if normalized == "amount":
        return validate_amount(value)
    if normalized == "token":
        if isinstance(value, dict):
            return validate_token_input(
                value.get("token"),
                chain_id=value.get("chainId"),
                chain_name=value.get("chainName"),
            )
        return validate_token_input(value)
    return _invalid(
        f"Unknown input type: {kind}",
        f"Use one of: {', '.join(VALIDATION_KINDS)}",
    )


__all__ = [
    "AMOUNT_NOT_POSITIVE_MESSAGE",
    "CHAIN_REQUIRED_MESSAGE",
    "INVALID_ADDRESS_MESSAGE",
    "TokenInput",
    "VALIDATION_KINDS",
    "format_units",
    "looks_like_address",
    "parse_amount",
    "to_base_units",
    "validate_address",
    "validate_amount",
    "validate_base_units",
    "validate_chain",
    "validate_input",
    "validate_token_input",
]
