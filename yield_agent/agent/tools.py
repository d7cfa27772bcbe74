"""
Tool Registry and Executor for LLM-driven tool calling.

Exposes token resolution, protocol discovery, transaction generation and
input validation as tools with JSON-ready results. Handlers never raise;
failures come back as ``{"success": False, "kind": ..., "error": ...}``.
"""

import asyncio
import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Callable, Coroutine, Dict, List, Optional

from ..core.chains import ChainDescriptor, supported_chain_names
from ..core.errors import ErrorCategory
from ..core.result import Err
from ..core.validation import VALIDATION_KINDS, TokenInput, validate_input
from ..logging_config import tool_call_context
from ..services.discovery import ProtocolDiscoveryService
from ..services.token_resolution import TokenResolutionService
from ..services.transactions import TransactionBundleService, bundle_payload, ensure_safety_warning
from .definitions import ToolCall, ToolDefinition, ToolParameter, ToolParameterType, ToolResult


def _error_payload(err: Err) -> Dict[str, Any]:
    return {"success": False, **err.to_dict()}


def _json_ready(value: Any) -> Any:
    if isinstance(value, Decimal):
        return format(value.normalize(), "f")
    if isinstance(value, ChainDescriptor):
        return value.to_dict()
    if isinstance(value, TokenInput):
        return {
            "reference": value.reference,
            "isAddress": value.is_address,
            "chain": value.chain.to_dict() if value.chain else None,
            "warnings": list(value.warnings),
        }
    return value


@dataclass
class RegisteredTool:
    """A tool registered in the registry with its definition and handler."""
    definition: ToolDefinition
    handler: Callable[..., Coroutine[Any, Any, Dict[str, Any]]]


class ToolRegistry:
    """
    Registry of the yield tools the orchestrating model can call.

    Each tool has a definition (name, description, parameters) and a handler.
    """

    def __init__(
        self,
        token_service: TokenResolutionService,
        discovery_service: ProtocolDiscoveryService,
        transaction_service: TransactionBundleService,
        logger: Optional[logging.Logger] = None,
    ):
        self.token_service = token_service
        self.discovery_service = discovery_service
        self.transaction_service = transaction_service
        self._tools: Dict[str, RegisteredTool] = {}
        self.logger = logger or logging.getLogger(__name__)
        self._register_default_tools()

    def register(
        self,
        name: str,
        definition: ToolDefinition,
        handler: Callable[..., Coroutine[Any, Any, Dict[str, Any]]],
    ) -> None:
        """Register a tool with its definition and handler."""
        self._tools[name] = RegisteredTool(definition=definition, handler=handler)

    def get_definitions(self) -> List[ToolDefinition]:
        """Get all tool definitions for passing to the model."""
        return [tool.definition for tool in self._tools.values()]

    def get_tool(self, name: str) -> Optional[RegisteredTool]:
        return self._tools.get(name)

    def has_tool(self, name: str) -> bool:
        return name in self._tools

    async def execute(self, name: str, arguments: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """Run a tool by name. Always returns a dict; never raises."""
        tool = self.get_tool(name)
        if tool is None:
            return _error_payload(
                Err(
                    ErrorCategory.VALIDATION,
                    f"Unknown tool: {name}",
                    f"Available tools: {', '.join(self._tools)}",
                )
            )

        arguments = arguments or {}
        missing = tool.definition.missing_arguments(arguments)
        unknown = tool.definition.unknown_arguments(arguments)
        if missing or unknown:
            problems = []
            if missing:
                problems.append(f"missing {', '.join(missing)}")
            if unknown:
                problems.append(f"unexpected {', '.join(unknown)}")
            self.logger.warning(f"Bad arguments for tool {name}: {'; '.join(problems)}")
            return _error_payload(
                Err(
                    ErrorCategory.VALIDATION,
                    f"Invalid arguments for {name}: {'; '.join(problems)}",
                    f"Required: {', '.join(tool.definition.required_parameters) or 'none'}",
                )
            )

        try:
            result = await tool.handler(**arguments)
        except TypeError as e:
            self.logger.warning(f"Bad arguments for tool {name}: {e}")
            return _error_payload(Err(ErrorCategory.VALIDATION, f"Invalid arguments for {name}: {e}"))
        except Exception as e:
            self.logger.error(f"Tool execution error for {name}: {e}")
            return _error_payload(Err(ErrorCategory.PROVIDER, str(e)))
        return ensure_safety_warning(result)

    def _register_default_tools(self) -> None:
        """Register the default set of tools."""

        chains_hint = ", ".join(supported_chain_names())

        self.register(
            "resolve_token",
            ToolDefinition(
                name="resolve_token",
                description=(
                    "Resolve a token symbol, name or contract address to canonical token details, "
                    "including every supported chain the token exists on. "
                    "Contract addresses require a chain. When several tokens match, all are returned "
                    "and the user must pick one."
                ),
                parameters=[
                    ToolParameter(
                        name="reference",
                        type=ToolParameterType.STRING,
                        description="Token symbol (USDC), name (USD Coin) or contract address (0x...)",
                    ),
                    ToolParameter(
                        name="chain_hint",
                        type=ToolParameterType.STRING,
                        description=f"Chain name or id to resolve on. Supported: {chains_hint}",
                        required=False,
                    ),
                ],
            ),
            self._handle_resolve_token,
        )

        self.register(
            "search_token",
            ToolDefinition(
                name="search_token",
                description=(
                    "Search tokens by name or symbol. Returns every match with its chains. "
                    "Use this when the user is unsure which token they mean."
                ),
                parameters=[
                    ToolParameter(
                        name="query",
                        type=ToolParameterType.STRING,
                        description="Search text, e.g. 'usd coin' or 'steth'",
                    ),
                ],
            ),
            self._handle_search_token,
        )

        self.register(
            "discover_protocols",
            ToolDefinition(
                name="discover_protocols",
                description=(
                    "Find yield vaults that accept a token as deposit, ranked by safety then APY. "
                    "Searches one chain, or every supported chain when all_chains is true."
                ),
                parameters=[
                    ToolParameter(
                        name="token_address",
                        type=ToolParameterType.STRING,
                        description="Contract address of the deposit token",
                    ),
                    ToolParameter(
                        name="chain_id",
                        type=ToolParameterType.INTEGER,
                        description="Chain id to search. Required unless all_chains is true",
                        required=False,
                    ),
                    ToolParameter(
                        name="all_chains",
                        type=ToolParameterType.BOOLEAN,
                        description="Search every supported chain at once",
                        required=False,
                        default=False,
                    ),
                ],
            ),
            self._handle_discover_protocols,
        )

        self.register(
            "generate_transaction",
            ToolDefinition(
                name="generate_transaction",
                description=(
                    "Build the unsigned transactions for depositing into a vault: an ERC-20 approval "
                    "when needed, followed by the deposit. Nothing is signed or broadcast."
                ),
                parameters=[
                    ToolParameter(
                        name="user",
                        type=ToolParameterType.STRING,
                        description="Wallet address that will sign and receive the vault shares",
                    ),
                    ToolParameter(
                        name="token",
                        type=ToolParameterType.STRING,
                        description="Deposit token contract address",
                    ),
                    ToolParameter(
                        name="protocol",
                        type=ToolParameterType.STRING,
                        description="Vault contract address",
                    ),
                    ToolParameter(
                        name="protocol_name",
                        type=ToolParameterType.STRING,
                        description="Protocol identifier of the vault, e.g. 'aave-v3'",
                    ),
                    ToolParameter(
                        name="chain_id",
                        type=ToolParameterType.INTEGER,
                        description="Chain id the vault lives on",
                    ),
                    ToolParameter(
                        name="amount",
                        type=ToolParameterType.STRING,
                        description="Amount in the token's base units (wei), as an integer string",
                    ),
                    ToolParameter(
                        name="symbol",
                        type=ToolParameterType.STRING,
                        description="Deposit token symbol",
                    ),
                    ToolParameter(
                        name="decimals",
                        type=ToolParameterType.INTEGER,
                        description="Deposit token decimals",
                    ),
                ],
            ),
            self._handle_generate_transaction,
        )

        self.register(
            "validate",
            ToolDefinition(
                name="validate",
                description=(
                    "Validate a single user input before using it: a wallet address, a chain, "
                    "a deposit amount or a token reference."
                ),
                parameters=[
                    ToolParameter(
                        name="kind",
                        type=ToolParameterType.STRING,
                        description="What to validate",
                        enum=list(VALIDATION_KINDS),
                    ),
                    ToolParameter(
                        name="value",
                        type=ToolParameterType.STRING,
                        description="The value to validate",
                    ),
                ],
            ),
            self._handle_validate,
        )

    # ------------------------------------------------------------------
    # Handlers
    # ------------------------------------------------------------------

    async def _handle_resolve_token(self, reference: str, chain_hint: Optional[Any] = None) -> Dict[str, Any]:
        """Handle token resolution."""
        result = await self.token_service.resolve(reference, chain_hint)
        if not result.ok:
            return _error_payload(result)
        return result.value.to_dict()

    async def _handle_search_token(self, query: str) -> Dict[str, Any]:
        """Handle token search."""
        result = await self.token_service.search(query)
        if not result.ok:
            return _error_payload(result)
        return {
            "success": True,
            "count": len(result.value),
            "tokens": [token.to_dict() for token in result.value],
        }

    async def _handle_discover_protocols(
        self,
        token_address: str,
        chain_id: Optional[int] = None,
        all_chains: bool = False,
    ) -> Dict[str, Any]:
        """Handle protocol discovery."""
        result = await self.discovery_service.discover(token_address, chain_id, all_chains=bool(all_chains))
        if not result.ok:
            return _error_payload(result)
        return {"success": True, **result.value.to_dict()}

    async def _handle_generate_transaction(
        self,
        user: str,
        token: str,
        protocol: str,
        chain_id: int,
        amount: Any,
        symbol: str,
        decimals: int,
        protocol_name: str,
    ) -> Dict[str, Any]:
        """Handle transaction bundle generation."""
        result = await self.transaction_service.generate(
            user,
            token,
            protocol,
            protocol_name,
            chain_id,
            amount,
            symbol,
            decimals,
        )
        if not result.ok:
            return _error_payload(result)
        return bundle_payload(result.value)

    async def _handle_validate(self, kind: str, value: Any = None) -> Dict[str, Any]:
        """Handle input validation."""
        result = validate_input(kind, value)
        if not result.ok:
            return {"valid": False, **_error_payload(result)}
        return {"success": True, "valid": True, "value": _json_ready(result.value)}


class ToolExecutor:
    """
    Executes tool calls requested by the model.

    Supports parallel execution of independent tool calls.
    """

    def __init__(
        self,
        registry: ToolRegistry,
        logger: Optional[logging.Logger] = None,
    ):
        self.registry = registry
        self.logger = logger or logging.getLogger(__name__)

    async def execute_single(self, tool_call: ToolCall) -> ToolResult:
        """Execute a single tool call and return the result."""
        if not self.registry.has_tool(tool_call.name):
            return ToolResult(
                tool_call_id=tool_call.id,
                result=None,
                error=f"Unknown tool: {tool_call.name}",
            )

        with tool_call_context(tool_call.id, tool_call.name):
            result = await self.registry.execute(tool_call.name, tool_call.arguments)
        return ToolResult(tool_call_id=tool_call.id, result=result, error=None)

    async def execute_parallel(self, tool_calls: List[ToolCall]) -> List[ToolResult]:
        """Execute multiple tool calls in parallel."""
        if not tool_calls:
            return []

        return list(await asyncio.gather(*(self.execute_single(tc) for tc in tool_calls)))


def create_default_registry() -> ToolRegistry:
    """Registry wired to the CoinGecko and Enso providers from settings."""
    from ..providers.coingecko import CoingeckoProvider
    from ..providers.enso import EnsoProvider

    enso = EnsoProvider()
    return ToolRegistry(
        token_service=TokenResolutionService(CoingeckoProvider()),
        discovery_service=ProtocolDiscoveryService(enso),
        transaction_service=TransactionBundleService(enso),
    )
