"""
Ranking and truncation of discovered protocols.

Discovery can return far more vaults than are useful. Only the largest
``scoring_limit`` vaults by TVL are scored; the scored set is ordered by
safety then APY and cut to ``result_limit``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Sequence

from .models import ProtocolVault
from .safety import DEFAULT_WEIGHTS, SafetyWeights, score_protocol

DEFAULT_SCORING_LIMIT = 20
DEFAULT_RESULT_LIMIT = 15


@dataclass
class RankedProtocols:
    protocols: List[ProtocolVault] = field(default_factory=list)
    total_found: int = 0

    @property
    def showing(self) -> int:
        return len(self.protocols)

    @property
    def summary(self) -> str:
        return f"showing {self.showing} of {self.total_found}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "count": self.showing,
            "totalFound": self.total_found,
            "summary": self.summary,
            "protocols": [p.to_dict() for p in self.protocols],
        }


def safety_yield_key(vault: ProtocolVault) -> tuple:
    score = vault.safety_score.score if vault.safety_score else 0.0
    return (-score, -vault.apy)


def rank_protocols(
    vaults: Sequence[ProtocolVault],
    scoring_limit: int = DEFAULT_SCORING_LIMIT,
    result_limit: int = DEFAULT_RESULT_LIMIT,
    weights: SafetyWeights = DEFAULT_WEIGHTS,
) -> RankedProtocols:
    """Pre-filter by TVL, score the survivors, sort by (safety, APY) and truncate.

    Sorts are stable, so ranking an already ranked list returns it unchanged.
    """

    by_tvl = sorted(vaults, key=lambda v: -v.tvl)
    candidates = by_tvl[:scoring_limit]

    for vault in candidates:
        if vault.safety_score is None:
            vault.safety_score = score_protocol(vault, weights)

    ranked = sorted(candidates, key=safety_yield_key)
    return RankedProtocols(protocols=ranked[:result_limit], total_found=len(vaults))


__all__ = [
    "DEFAULT_RESULT_LIMIT",
    "DEFAULT_SCORING_LIMIT",
    "RankedProtocols",
    "rank_protocols",
    "safety_yield_key",
]
