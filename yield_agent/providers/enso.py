"""Async client for the Enso API: vault discovery, approvals and deposit bundles."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import httpx

from ..config import settings
from ..core.chains import get_chain_by_id
from ..core.errors import ProviderError, ValidationError, YieldAgentError, classify_http_error
from ..core.models import (
    ApprovalResult,
    ApprovalStatus,
    ProtocolVault,
    Transaction,
    TransactionType,
    UnderlyingToken,
)
from ..core.retry import RetryConfig, retry_with_backoff
from .base import DiscoveryProvider, TransactionDataProvider

logger = logging.getLogger(__name__)

ROUTING_STRATEGY = "router"


def _to_float(value: Any) -> float:
    if value is None:
        return 0.0
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


def _to_int(value: Any) -> int:
    if value is None or value == "":
        return 0
    if isinstance(value, int):
        return value
    text = str(value).strip()
    try:
        return int(text, 16) if text.lower().startswith("0x") else int(text)
    except ValueError:
        return int(_to_float(text))


class EnsoProvider(DiscoveryProvider, TransactionDataProvider):
    """Thin wrapper around https://api.enso.finance endpoints."""

    name = "enso"

    def __init__(
        self,
        *,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout_s: Optional[int] = None,
        retry_config: Optional[RetryConfig] = None,
    ) -> None:
        self.api_key = settings.enso_api_key if api_key is None else api_key
        self.base_url = (base_url or settings.enso_base_url).rstrip("/")
        self.timeout_s = timeout_s or settings.request_timeout_seconds
        self.retry_config = retry_config

    def _headers(self) -> Dict[str, str]:
        headers = {
            "accept": "application/json",
            "content-type": "application/json",
        }
        if self.api_key:
            headers["authorization"] = f"Bearer {self.api_key}"
        return headers

    async def ready(self) -> bool:
        return bool(self.api_key)

    async def health_check(self) -> Dict[str, Any]:
        if not await self.ready():
            return {"status": "unavailable", "reason": "ENSO_API_KEY not set"}
        try:
            await self._request("GET", "/api/v1/networks")
            return {"status": "healthy"}
        except YieldAgentError as e:
            return {"status": "error", "reason": e.message}

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: Optional[Dict[str, Any]] = None,
        json: Optional[Any] = None,
    ) -> Any:
        if not self.api_key:
            raise ProviderError(
                "Enso API key not found",
                suggestion="Set the ENSO_API_KEY environment variable",
            )

        async def _call() -> Any:
            try:
                async with httpx.AsyncClient(base_url=self.base_url, timeout=self.timeout_s) as client:
                    response = await client.request(
                        method,
                        path,
                        params=params,
                        json=json,
                        headers=self._headers(),
                    )
                    response.raise_for_status()
                    return response.json()
            except httpx.HTTPError as exc:
                raise classify_http_error(exc, provider=self.name) from exc

        return await retry_with_backoff(_call, self.retry_config, description=f"enso {path}")

    async def find_vaults(self, token_address: str, chain_id: int) -> List[ProtocolVault]:
        chain = get_chain_by_id(chain_id)
        if chain is None:
            raise ValidationError(f"Unsupported chain ID: {chain_id}")

        payload = await self._request(
            "GET",
            "/api/v1/tokens",
            params={
                "underlyingTokensExact": token_address,
                "chainId": chain_id,
                "type": "defi",
                "includeMetadata": "true",
            },
        )

        vaults: List[ProtocolVault] = []
        for item in (payload or {}).get("data") or []:
            address = item.get("address")
            if not address:
                continue
            vaults.append(
                ProtocolVault(
                    address=address,
                    name=item.get("name") or address,
                    symbol=item.get("symbol"),
                    protocol=item.get("protocolSlug") or item.get("project") or "unknown",
                    chain_id=chain_id,
                    chain_name=chain.name,
                    apy=_to_float(item.get("apy")),
                    tvl=_to_float(item.get("tvl")),
                    underlying_tokens=[
                        UnderlyingToken(
                            address=ut.get("address", ""),
                            symbol=ut.get("symbol"),
                            name=ut.get("name"),
                        )
                        for ut in item.get("underlyingTokens") or []
                    ],
                    logos_uri=list(item.get("logosUri") or []),
                )
            )
        logger.info(f"Enso returned {len(vaults)} vaults for {token_address} on chain {chain_id}")
        return vaults

    async def approval_needed(
        self,
        user: str,
        token: str,
        spender: str,
        chain_id: int,
        amount: int,
    ) -> ApprovalResult:
        """Fetch the ERC-20 approval needed for Enso's router to pull ``amount``.

        Enso returns approval calldata whenever the token is an ERC-20; the
        current on-chain allowance is not consulted.
        """
        payload = await self._request(
            "GET",
            "/api/v1/wallet/approve",
            params={
                "fromAddress": user,
                "tokenAddress": token,
                "chainId": chain_id,
                "amount": str(amount),
                "routingStrategy": ROUTING_STRATEGY,
            },
        )
        tx = (payload or {}).get("tx") or {}
        if not tx.get("to") or not tx.get("data"):
            return ApprovalResult(
                status=ApprovalStatus.NOT_REQUIRED,
                message="No approval transaction returned",
            )
        return ApprovalResult(
            status=ApprovalStatus.REQUIRED,
            message="Approval transaction required before deposit",
            approval_transaction=Transaction(
                to=tx["to"],
                data=tx["data"],
                value=_to_int(tx.get("value")),
                gas_limit=_to_int(payload.get("gas")),
                chain_id=chain_id,
                type=TransactionType.APPROVE,
                token_address=token,
                spender=payload.get("spender") or spender,
                amount=amount,
            ),
        )

    async def build_deposit(
        self,
        protocol: str,
        token_in: str,
        amount_in: int,
        chain_id: int,
        receiver: str,
        vault: str,
    ) -> Transaction:
        actions = [
            {
                "protocol": protocol,
                "action": "deposit",
                "args": {
                    "tokenIn": token_in,
                    "tokenOut": vault,
                    "amountIn": str(amount_in),
                    "primaryAddress": vault,
                },
            }
        ]
        payload = await self._request(
            "POST",
            "/api/v1/shortcuts/bundle",
            params={
                "chainId": chain_id,
                "fromAddress": receiver,
                "routingStrategy": ROUTING_STRATEGY,
                "receiver": receiver,
            },
            json=actions,
        )
        tx = (payload or {}).get("tx") or {}
        if not tx.get("to") or not tx.get("data"):
            raise ProviderError("Enso returned a bundle without transaction data")

        return Transaction(
            to=tx["to"],
            data=tx["data"],
            value=_to_int(tx.get("value")),
            gas_limit=_to_int(payload.get("gas")),
            chain_id=chain_id,
            type=TransactionType.DEPOSIT,
            protocol=protocol,
        )
