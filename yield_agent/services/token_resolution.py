"""
Token Resolution Service.

Maps a free-form token reference (symbol, name or contract address) to
canonical token descriptors annotated with every supported chain the token
exists on.

- Contract addresses must come with a chain; the lookup is exact.
- Symbols and names go through the metadata provider's fuzzy search. One
  match is returned directly, several are handed back for the caller to
  choose from.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from ..core.chains import ChainDescriptor, ChainRef
from ..core.errors import ErrorCategory, YieldAgentError
from ..core.models import TokenDescriptor
from ..core.result import Err, Ok, Result
from ..core.validation import validate_token_input
from ..providers.base import MetadataProvider

logger = logging.getLogger(__name__)

NOT_FOUND_SUGGESTION = "Check the spelling, or provide the token's contract address together with its chain"


@dataclass
class TokenResolution:
    """Outcome of a successful resolution: one token or several candidates."""

    token: Optional[TokenDescriptor] = None
    candidates: List[TokenDescriptor] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    @property
    def multiple_matches(self) -> bool:
        return self.token is None and len(self.candidates) > 1

    @property
    def requires_confirmation(self) -> bool:
        if self.token is not None:
            return self.token.requires_confirmation
        return True

    def to_dict(self) -> Dict[str, Any]:
        if self.multiple_matches:
            options = ", ".join(f"{t.name} ({t.symbol})" for t in self.candidates)
            return {
                "success": True,
                "multipleMatches": True,
                "requiresConfirmation": True,
                "tokens": [t.to_dict() for t in self.candidates],
                "message": f"Multiple tokens found. Please select one: {options}",
            }
        assert self.token is not None
        payload: Dict[str, Any] = {
            "success": True,
            "multipleMatches": False,
            "requiresConfirmation": self.token.requires_confirmation,
            "token": self.token.to_dict(),
            "warning": "Please verify token details before proceeding",
        }
        if self.warnings:
            payload["warnings"] = list(self.warnings)
        return payload


class TokenResolutionService:
    """Resolve token references against a metadata provider."""

    def __init__(self, metadata_provider: MetadataProvider):
        self.metadata_provider = metadata_provider

    async def resolve(
        self,
        reference: Any,
        chain_hint: Optional[ChainRef] = None,
    ) -> Result[TokenResolution]:
        chain_id = chain_hint if isinstance(chain_hint, int) and not isinstance(chain_hint, bool) else None
        chain_name = chain_hint if isinstance(chain_hint, str) else None
        checked = validate_token_input(reference, chain_id=chain_id, chain_name=chain_name)
        if not checked.ok:
            return checked
        token_input = checked.value

        try:
            if token_input.is_address:
                return await self._resolve_address(token_input.reference, token_input.chain)
            return await self._resolve_query(
                token_input.reference,
                token_input.chain,
                warnings=token_input.warnings,
            )
        except YieldAgentError as e:
            logger.error(f"Token resolution failed for {token_input.reference}: {e.message}")
            return Err.from_exception(e)

    async def search(self, query: Any) -> Result[List[TokenDescriptor]]:
        if not isinstance(query, str) or not query.strip():
            return Err(ErrorCategory.VALIDATION, "Search query is required", "Provide a token name or symbol")
        text = query.strip()
        logger.info(f"Searching for token: {text}")
        try:
            found = await self.metadata_provider.resolve_by_query(text)
        except YieldAgentError as e:
            logger.error(f"Token search failed for {text}: {e.message}")
            return Err.from_exception(e)
        tokens = self._order_candidates(text, [t for t in found if t.chains])
        if not tokens:
            return Err(
                ErrorCategory.NOT_FOUND,
                "No tokens found",
                "Try a different search term",
            )
        return Ok(tokens)

    async def _resolve_address(
        self,
        address: str,
        chain: Optional[ChainDescriptor],
    ) -> Result[TokenResolution]:
        assert chain is not None
        logger.info(f"Fetching token info for address {address} on chain {chain.id}")
        token = await self.metadata_provider.resolve_by_address(address, chain.id)
        if token is None or token.entry_for(chain.id) is None:
            return Err(
                ErrorCategory.NOT_FOUND,
                f"Token {address} not found on {chain.name}",
                "Check that the contract is deployed on this chain, or try another chain",
            )
        token = token.on_chain(chain.id)
        token.requires_confirmation = False
        return Ok(TokenResolution(token=token))

    async def _resolve_query(
        self,
        text: str,
        chain: Optional[ChainDescriptor],
        warnings: Optional[List[str]] = None,
    ) -> Result[TokenResolution]:
        found = await self.metadata_provider.resolve_by_query(text)
        candidates = self._order_candidates(text, [t for t in found if t.chains])

        if not candidates:
            return Err(ErrorCategory.NOT_FOUND, f"Token not found: {text}", NOT_FOUND_SUGGESTION)

        if len(candidates) > 1:
            if chain is not None:
                on_chain = [t for t in candidates if t.entry_for(chain.id) is not None]
                candidates = [t.on_chain(chain.id) for t in on_chain] or candidates
            for token in candidates:
                token.requires_confirmation = True
            if len(candidates) > 1:
                return Ok(TokenResolution(candidates=candidates, warnings=list(warnings or [])))

        token = candidates[0]
        if chain is None:
            token.requires_confirmation = True
            return Ok(TokenResolution(token=token, warnings=list(warnings or [])))

        if token.entry_for(chain.id) is None:
            available = [entry.chain_name for entry in token.chains]
            return Err(
                ErrorCategory.VALIDATION,
                f"{token.symbol} is not available on {chain.name}",
                f"Available chains for {token.symbol}: {', '.join(available)}",
                {"availableChains": available},
            )
        token = token.on_chain(chain.id)
        token.requires_confirmation = False
        return Ok(TokenResolution(token=token, warnings=list(warnings or [])))

    @staticmethod
    def _order_candidates(text: str, tokens: List[TokenDescriptor]) -> List[TokenDescriptor]:
        """Exact symbol/name matches first; provider order otherwise."""
        exact = [t for t in tokens if t.matches(text)]
        rest = [t for t in tokens if not t.matches(text)]
        return exact + rest


__all__ = [
    "NOT_FOUND_SUGGESTION",
    "TokenResolution",
    "TokenResolutionService",
]
