"""
Tests for input validation.

Covers addresses (including EIP-55 checksums), chains, human and base-unit
amounts, unit conversion and token references.
"""

from decimal import Decimal

import pytest

from yield_agent.core.errors import ErrorCategory
from yield_agent.core.validation import (
    AMOUNT_NOT_POSITIVE_MESSAGE,
    CHAIN_REQUIRED_MESSAGE,
    INVALID_ADDRESS_MESSAGE,
    format_units,
    to_base_units,
    validate_address,
    validate_amount,
    validate_base_units,
    validate_chain,
    validate_input,
    validate_token_input,
)

USDC_ETH = "0xA0b86991c6218b36c1d19D4a2e9Eb0cE3606eB48"


# =============================================================================
# Addresses
# =============================================================================

class TestValidateAddress:
    def test_lowercase_address_is_checksummed(self):
        result = validate_address(USDC_ETH.lower())
        assert result.ok
        assert result.value == USDC_ETH

    def test_checksummed_address_passes_through(self):
        result = validate_address(f"  {USDC_ETH}  ")
        assert result.ok
        assert result.value == USDC_ETH

    def test_bad_checksum_is_rejected(self):
        broken = "0xa0b86991c6218b36c1d19D4a2e9Eb0cE3606eB48"
        result = validate_address(broken)
        assert not result.ok
        assert result.kind == ErrorCategory.VALIDATION
        assert "checksum" in result.detail.lower()

    @pytest.mark.parametrize("value", ["", None, "0x123", "hello", "0x" + "g" * 40, 42])
    def test_malformed_addresses(self, value):
        result = validate_address(value)
        assert not result.ok
        assert result.detail == INVALID_ADDRESS_MESSAGE
        assert result.suggestion


# =============================================================================
# Chains
# =============================================================================

class TestValidateChain:
    def test_supported_chain(self):
        result = validate_chain("base")
        assert result.ok
        assert result.value.id == 8453

    def test_unsupported_chain_lists_supported_chains(self):
        result = validate_chain(12345)
        assert not result.ok
        assert "Ethereum" in result.extra["supportedChains"]
        assert "12345" in result.detail

    def test_missing_chain(self):
        result = validate_chain(None)
        assert not result.ok
        assert result.detail == "Chain is required"


# =============================================================================
# Amounts
# =============================================================================

class TestValidateAmount:
    @pytest.mark.parametrize("value", [0, "0", "-1", -5, "0.0"])
    def test_amount_must_be_positive(self, value):
        result = validate_amount(value)
        assert not result.ok
        assert result.detail == AMOUNT_NOT_POSITIVE_MESSAGE

    @pytest.mark.parametrize("value,expected", [("100", Decimal("100")), ("1,000.5", Decimal("1000.5")), (2.5, Decimal("2.5"))])
    def test_valid_amounts(self, value, expected):
        result = validate_amount(value)
        assert result.ok
        assert result.value == expected

    @pytest.mark.parametrize("value", ["abc", "1e", "NaN", "inf", True])
    def test_invalid_format(self, value):
        result = validate_amount(value)
        assert not result.ok
        assert result.detail.startswith("Invalid amount format")

    def test_missing_amount(self):
        result = validate_amount(None)
        assert not result.ok
        assert result.detail == "Amount is required"

    def test_too_many_decimal_places(self):
        result = validate_amount("1.1234567", decimals=6)
        assert not result.ok
        assert "6 decimal places" in result.detail

    def test_max_amount(self):
        assert not validate_amount("11", max_amount="10").ok
        assert validate_amount("10", max_amount="10").ok


class TestBaseUnits:
    def test_integer_and_string_amounts(self):
        assert validate_base_units(1_000_000).value == 1_000_000
        assert validate_base_units("1000000").value == 1_000_000

    @pytest.mark.parametrize("value", [0, "0", -1, "-10"])
    def test_non_positive(self, value):
        result = validate_base_units(value)
        assert not result.ok
        assert result.detail == AMOUNT_NOT_POSITIVE_MESSAGE

    @pytest.mark.parametrize("value", ["1.5", "abc", None, False])
    def test_not_an_integer(self, value):
        assert not validate_base_units(value).ok

    def test_to_base_units(self):
        assert to_base_units("100", 6) == 100_000_000
        assert to_base_units("1.5", 18) == 1_500_000_000_000_000_000
        assert to_base_units(Decimal("0.000001"), 6) == 1

    def test_to_base_units_rejects_excess_precision(self):
        with pytest.raises(ValueError):
            to_base_units("0.0000001", 6)

    @pytest.mark.parametrize(
        "units,decimals,expected",
        [(100_000_000, 6, "100"), (1_500_000, 6, "1.5"), (1, 18, "0.000000000000000001"), (7, 0, "7")],
    )
    def test_format_units(self, units, decimals, expected):
        assert format_units(units, decimals) == expected


# =============================================================================
# Token references
# =============================================================================

class TestValidateTokenInput:
    def test_address_without_chain_requires_chain(self):
        result = validate_token_input(USDC_ETH)
        assert not result.ok
        assert result.kind == ErrorCategory.VALIDATION
        assert result.detail == CHAIN_REQUIRED_MESSAGE
        assert "Base" in result.extra["supportedChains"]

    def test_address_with_chain(self):
        result = validate_token_input(USDC_ETH.lower(), chain_id=1)
        assert result.ok
        assert result.value.is_address
        assert result.value.reference == USDC_ETH
        assert result.value.chain.id == 1

    def test_symbol_with_chain_name(self):
        result = validate_token_input("usdc", chain_name="Arbitrum")
        assert result.ok
        assert not result.value.is_address
        assert result.value.chain.id == 42161

    def test_malformed_address_is_not_treated_as_symbol(self):
        result = validate_token_input("0x1234", chain_id=1)
        assert not result.ok
        assert result.detail == INVALID_ADDRESS_MESSAGE

    def test_unknown_chain(self):
        result = validate_token_input("USDC", chain_name="solana")
        assert not result.ok

    def test_short_reference_warns(self):
        result = validate_token_input("U")
        assert result.ok
        assert result.value.warnings

    def test_empty_reference(self):
        result = validate_token_input("  ")
        assert not result.ok
        assert result.detail == "Token is required"


class TestValidateInput:
    def test_dispatches_by_kind(self):
        assert validate_input("address", USDC_ETH).ok
        assert validate_input("Chain", "optimism").value.id == 10
        assert validate_input("amount", "5").value == Decimal("5")
        assert validate_input("token", {"token": USDC_ETH, "chainId": 1}).ok

    def test_unknown_kind(self):
        result = validate_input("color", "blue")
        assert not result.ok
        assert "Unknown input type" in result.detail
