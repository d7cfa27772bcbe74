import pytest

from yield_agent.core.models import ProtocolVault, RiskLevel
from yield_agent.core.safety import (
    DEFAULT_WEIGHTS,
    SafetyWeights,
    is_audited_protocol,
    normalize_protocol,
    risk_for_score,
    score_protocol,
)


def _vault(protocol: str = "aave-v3", tvl: float = 0.0, apy: float = 5.0) -> ProtocolVault:
    return ProtocolVault(
        address="0x" + "ab" * 20,
        name=f"{protocol} vault",
        protocol=protocol,
        chain_id=1,
        chain_name="Ethereum",
        apy=apy,
        tvl=tvl,
    )


TVL_GRID = [0, 1, 999_999, 1_000_000, 5_000_000, 9_999_999, 10_000_000, 50_000_000, 100_000_000, 5_000_000_000]


@pytest.mark.parametrize("protocol", ["aave-v3", "compound", "some-new-farm", ""])
def test_higher_tvl_never_scores_lower(protocol):
    scores = [score_protocol(_vault(protocol, tvl)).score for tvl in TVL_GRID]
    assert scores == sorted(scores)


@pytest.mark.parametrize("tvl", TVL_GRID)
def test_audited_never_scores_below_unverified(tvl):
    audited = score_protocol(_vault("morpho-blue", tvl)).score
    unverified = score_protocol(_vault("degen-vault", tvl)).score
    assert audited > unverified


def test_large_audited_vault_is_low_risk():
    score = score_protocol(_vault("aave-v3", 2_000_000_000))
    assert score.score == 10.0
    assert score.risk == RiskLevel.LOW
    assert score.overall == "high"
    assert score.factors == ["High TVL (>= $100M)", "Audited protocol (aave-v3)"]


def test_tiny_unknown_vault_is_high_risk():
    score = score_protocol(_vault("unknown-farm", 10_000))
    assert score.score == 2.0
    assert score.risk == RiskLevel.HIGH
    assert score.overall == "low"
    assert "Unverified protocol (unknown-farm)" in score.factors


def test_score_is_clamped_and_rounded():
    weights = SafetyWeights(base=9.87, audited_bonus=5.0)
    score = score_protocol(_vault("aave", 500_000_000), weights)
    assert score.score == 10.0

    harsh = SafetyWeights(base=0.0, unverified_penalty=-4.0)
    assert score_protocol(_vault("x", 0), harsh).score == 0.0


def test_scoring_is_pure():
    vault = _vault("curve", 20_000_000)
    first = score_protocol(vault)
    second = score_protocol(vault)
    assert first == second
    assert vault.safety_score is None
    assert score_protocol(vault, DEFAULT_WEIGHTS) == first


@pytest.mark.parametrize(
    "identifier,expected",
    [("aave-v3", "aave"), ("Compound_V2", "compound"), ("uniswap v4", "uniswap"), ("morpho-blue", "morpho-blue")],
)
def test_normalize_protocol_strips_version(identifier, expected):
    assert normalize_protocol(identifier) == expected
    assert is_audited_protocol(identifier)


@pytest.mark.parametrize("score,risk", [(10, RiskLevel.LOW), (8, RiskLevel.LOW), (7.9, RiskLevel.MEDIUM), (4, RiskLevel.MEDIUM), (3.9, RiskLevel.HIGH), (0, RiskLevel.HIGH)])
def test_risk_thresholds(score, risk):
    assert risk_for_score(score) == risk
