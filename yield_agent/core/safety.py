"""
Protocol safety scoring.

Scores are a pure function of a vault's TVL, its protocol identifier and the
static reputation table below. No network calls happen here, so scoring a
bounded candidate set is cheap.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import FrozenSet, List, Tuple

from .models import ProtocolVault, RiskLevel, SafetyScore

# Protocols with public audits and a multi-year track record. Identifiers
# follow the discovery provider's project slugs, without version suffixes.
AUDITED_PROTOCOLS: FrozenSet[str] = frozenset(
    {
        "aave",
        "compound",
        "morpho",
        "morpho-blue",
        "spark",
        "sky",
        "maker",
        "lido",
        "rocket-pool",
        "yearn",
        "curve",
        "convex",
        "balancer",
        "uniswap",
        "frax",
        "euler",
        "fluid",
        "pendle",
        "gearbox",
        "venus",
        "radiant",
        "benqi",
        "stargate",
        "beefy",
        "sommelier",
        "ethena",
        "etherfi",
        "ether.fi",
        "origin",
        "angle",
    }
)

_VERSION_SUFFIX = re.compile(r"[-_ ]?v\d+$")


def normalize_protocol(identifier: str) -> str:
    """Lower-case a protocol slug and drop a trailing version (``aave-v3`` -> ``aave``)."""

    text = (identifier or "").strip().lower()
    return _VERSION_SUFFIX.sub("", text)


def is_audited_protocol(identifier: str) -> bool:
    return normalize_protocol(identifier) in AUDITED_PROTOCOLS


@dataclass(frozen=True)
class SafetyWeights:
    """Tunable weights. Tiers are ordered so more TVL never lowers a score."""

    base: float = 5.0
    # (minimum TVL in USD, score delta, factor label), highest tier first
    tvl_tiers: Tuple[Tuple[float, float, str], ...] = (
        (100_000_000, 3.0, "High TVL (>= $100M)"),
        (10_000_000, 1.0, "Moderate TVL ($10M - $100M)"),
        (1_000_000, -1.0, "Low TVL (< $10M)"),
        (0, -2.0, "Very low TVL (< $1M)"),
    )
    audited_bonus: float = 2.0
    unverified_penalty: float = -1.0


DEFAULT_WEIGHTS = SafetyWeights()

LOW_RISK_THRESHOLD = 8.0
MEDIUM_RISK_THRESHOLD = 4.0


def risk_for_score(score: float) -> RiskLevel:
    if score >= LOW_RISK_THRESHOLD:
        return RiskLevel.LOW
    if score >= MEDIUM_RISK_THRESHOLD:
        return RiskLevel.MEDIUM
    return RiskLevel.HIGH


def score_protocol(vault: ProtocolVault, weights: SafetyWeights = DEFAULT_WEIGHTS) -> SafetyScore:
    score = weights.base
    factors: List[str] = []

    for minimum, delta, label in weights.tvl_tiers:
        if vault.tvl >= minimum:
            score += delta
            factors.append(label)
            break

    if is_audited_protocol(vault.protocol):
        score += weights.audited_bonus
        factors.append(f"Audited protocol ({vault.protocol})")
    else:
        score += weights.unverified_penalty
        factors.append(f"Unverified protocol ({vault.protocol})")

    score = round(min(max(score, 0.0), 10.0), 1)
    return SafetyScore(score=score, risk=risk_for_score(score), factors=factors)


__all__ = [
    "AUDITED_PROTOCOLS",
    "DEFAULT_WEIGHTS",
    "LOW_RISK_THRESHOLD",
    "MEDIUM_RISK_THRESHOLD",
    "SafetyWeights",
    "is_audited_protocol",
    "normalize_protocol",
    "risk_for_score",
    "score_protocol",
]
