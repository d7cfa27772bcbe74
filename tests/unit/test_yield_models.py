import pytest

from yield_agent.core.models import (
    SAFETY_WARNING,
    ApprovalResult,
    ApprovalStatus,
    ChainEntry,
    ProtocolVault,
    TokenDescriptor,
    Transaction,
    TransactionBundle,
    TransactionType,
)

USDC_ETH = "0xA0b86991c6218b36c1d19D4a2e9Eb0cE3606eB48"
USDC_BASE = "0x833589fCD6eDb6E08f4c7C32D4f71b54bdA02913"


def _usdc() -> TokenDescriptor:
    return TokenDescriptor(
        name="USD Coin",
        symbol="usdc",
        decimals=6,
        chains=[
            ChainEntry(chain_id=1, chain_name="Ethereum", address=USDC_ETH, decimals=6),
            ChainEntry(chain_id=8453, chain_name="Base", address=USDC_BASE, decimals=6),
            ChainEntry(chain_id=1, chain_name="Ethereum", address="0x" + "0" * 40),
        ],
    )


def _tx(kind: TransactionType, gas: int) -> Transaction:
    return Transaction(to="0x" + "1" * 40, data="0xdeadbeef", chain_id=1, type=kind, gas_limit=gas)


class TestTokenDescriptor:
    def test_symbol_upper_cased_and_chains_deduplicated(self):
        token = _usdc()
        assert token.symbol == "USDC"
        assert token.chain_ids() == [1, 8453]
        assert token.address == USDC_ETH

    def test_on_chain_moves_entry_first_without_mutating(self):
        token = _usdc()
        on_base = token.on_chain(8453)
        assert on_base.chain_id == 8453
        assert on_base.address == USDC_BASE
        assert on_base.chain_ids() == [8453, 1]
        assert token.chain_id == 1

    def test_on_chain_unknown_chain(self):
        with pytest.raises(KeyError):
            _usdc().on_chain(137)

    def test_matches_symbol_or_name(self):
        token = _usdc()
        assert token.matches("usdc")
        assert token.matches(" USD Coin ")
        assert not token.matches("usd")

    def test_to_dict_lists_all_chains(self):
        payload = _usdc().to_dict()
        assert payload["symbol"] == "USDC"
        assert [c["chainId"] for c in payload["allChains"]] == [1, 8453]


class TestProtocolVault:
    def test_negative_numbers_are_clamped(self):
        vault = ProtocolVault(address="0xAB" + "0" * 38, name="v", protocol="", chain_id=1,
                              chain_name="Ethereum", apy=-1, tvl=None)
        assert vault.apy == 0.0
        assert vault.tvl == 0.0
        assert vault.protocol == "unknown"
        assert vault.key == ("0xab" + "0" * 38, 1)


class TestTransactionBundle:
    def test_every_transaction_carries_the_disclosure(self):
        tx = Transaction(to="0x" + "1" * 40, data="0x", chain_id=1, type=TransactionType.DEPOSIT, safety_warning="")
        assert tx.safety_warning == SAFETY_WARNING
        assert tx.to_dict()["safetyWarning"] == SAFETY_WARNING

    def test_approval_comes_first(self):
        bundle = TransactionBundle(
            deposit_transaction=_tx(TransactionType.DEPOSIT, 250_000),
            approval_transaction=_tx(TransactionType.APPROVE, 60_000),
            approval_status=ApprovalStatus.REQUIRED,
        )
        assert bundle.execution_order[0] == "approve"
        assert bundle.execution_order == ["approve", "deposit"]
        assert bundle.total_gas_estimate == 310_000

        payload = bundle.to_dict()
        assert payload["executionOrder"] == ["approve", "deposit"]
        assert payload["totalGasEstimate"] == "310000"
        assert payload["approvalTransaction"]["safetyWarning"]
        assert payload["depositTransaction"]["safetyWarning"]
        assert payload["safetyWarning"] == SAFETY_WARNING

    def test_deposit_only(self):
        bundle = TransactionBundle(deposit_transaction=_tx(TransactionType.DEPOSIT, 100))
        assert bundle.execution_order == ["deposit"]
        assert bundle.to_dict()["approvalTransaction"] is None


class TestApprovalResult:
    def test_indeterminate(self):
        result = ApprovalResult.indeterminate("boom")
        assert result.status == ApprovalStatus.INDETERMINATE
        assert result.message == "Could not verify approval status"
        assert not result.approval_needed
        assert result.to_dict()["error"] == "boom"
