"""
Parameter Fetcher - resolves network derived transaction fields.

Gas limit, gas price, pending nonce and chain id are fetched fresh for every
transaction. Nothing is cached: the nonce advances with each submission and
the gas price changes over time.
"""

import asyncio
from dataclasses import dataclass
from typing import Awaitable, Optional, TypeVar

import structlog

from txsender.config import DispatcherConfig, get_config
from txsender.core.intent import ResolvedCall, TransactionIntent
from txsender.node.interface import NodeConnectionError, NodeInterface, RpcError

logger = structlog.get_logger(__name__)

T = TypeVar("T")


class ParameterFetchError(Exception):
    """Raised when a transaction parameter cannot be fetched."""

    def __init__(self, step: str, message: str):
        super().__init__(f"{step}: {message}")
        self.step = step


@dataclass(frozen=True)
class NetworkParams:
    """Parameters fetched in one resolution pass."""
    gas_price: int
    gas_limit: int
    nonce: int
    chain_id: int


class ParameterFetcher:
    """
    Fetches the network parameters of a pending call.

    Each value comes from its own request, bounded by the configured
    request timeout. Any failure aborts the whole fetch.
    """

    def __init__(self, node: NodeInterface, config: Optional[DispatcherConfig] = None):
        self.node = node
        self.config = config or get_config()

    async def fetch(self, intent: TransactionIntent) -> NetworkParams:
        """
        Fetch gas price, gas limit, nonce and chain id for an intent.

        Raises:
            ParameterFetchError: If any of the four lookups fails
        """
        gas_limit = await self._bounded("estimate_gas", self.node.estimate_gas(intent.to_call_message()))
        gas_price = await self._bounded("gas_price", self.node.gas_price())
        nonce = await self._bounded("pending_nonce", self.node.pending_nonce(intent.sender))
        chain_id = await self._bounded("chain_id", self.node.chain_id())

        params = NetworkParams(
            gas_price=gas_price,
            gas_limit=gas_limit,
            nonce=nonce,
            chain_id=chain_id,
        )
        logger.debug(
            "params_fetched",
            sender=intent.sender,
            gas_price=gas_price,
            gas_limit=gas_limit,
            nonce=nonce,
            chain_id=chain_id,
        )
        return params

    async def resolve(self, intent: TransactionIntent) -> ResolvedCall:
        """Complete an intent with freshly fetched parameters."""
        params = await self.fetch(intent)
        return ResolvedCall(
            sender=intent.sender,
            recipient=intent.receiver or None,
            value=intent.value,
            payload=intent.payload_bytes,
            gas_limit=params.gas_limit,
            gas_price=params.gas_price,
            nonce=params.nonce,
            chain_id=params.chain_id,
        )

    async def _bounded(self, step: str, request: Awaitable[T]) -> T:
        try:
            return await asyncio.wait_for(request, timeout=self.config.request_timeout_seconds)
        except asyncio.TimeoutError:
            raise ParameterFetchError(
                step, f"timed out after {self.config.request_timeout_seconds}s"
            )
        except (NodeConnectionError, RpcError, TypeError, ValueError) as e:
            raise ParameterFetchError(step, str(e))
