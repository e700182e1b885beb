"""
JSON-RPC adapter for node integration.

Provides blockchain access over the standard Ethereum JSON-RPC HTTP interface.
"""

import itertools
from typing import Any, Dict, List, Optional

import httpx
import structlog

from txsender.config import DispatcherConfig, get_config
from txsender.node.interface import (
    NodeConnectionError,
    NodeInterface,
    Receipt,
    RpcError,
    TransactionSubmitError,
)

logger = structlog.get_logger(__name__)


class JsonRpcNode(NodeInterface):
    """
    JSON-RPC over HTTP adapter.

    Implements the NodeInterface using the eth_* methods every
    Ethereum client exposes. Timeouts of individual calls are applied by the
    callers; the HTTP client only carries a generous transport timeout.
    """

    def __init__(
        self,
        config: Optional[DispatcherConfig] = None,
        rpc_url: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize the JSON-RPC adapter.

        Args:
            config: Sender configuration. Uses global config if not provided.
            rpc_url: Endpoint overriding the configured one
            transport: Custom httpx transport (used by tests)
        """
        self.config = config or get_config()
        self.rpc_url = rpc_url or self.config.rpc_url
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None
        self._ids = itertools.count(1)

    async def connect(self) -> None:
        """Create the HTTP client."""
        if self._client is not None:
            return

        self._client = httpx.AsyncClient(
            timeout=30.0,
            headers={"Content-Type": "application/json"},
            transport=self._transport,
        )
        logger.info("rpc_client_created", rpc_url=self.rpc_url)

    async def disconnect(self) -> None:
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None
            logger.info("rpc_client_closed")

    async def _request(self, method: str, params: Optional[List[Any]] = None) -> Any:
        """Send a JSON-RPC request and return its result."""
        if not self._client:
            await self.connect()

        request = {
            "jsonrpc": "2.0",
            "method": method,
            "params": params or [],
            "id": next(self._ids),
        }

        try:
            response = await self._client.post(self.rpc_url, json=request)
        except httpx.RequestError as e:
            logger.error("rpc_request_error", method=method, error=str(e))
            raise NodeConnectionError(f"RPC request {method} failed: {e}")

        if response.status_code != 200:
            logger.error(
                "rpc_request_failed",
                method=method,
                status=response.status_code,
                error=response.text,
            )
            raise NodeConnectionError(f"RPC endpoint returned HTTP {response.status_code}: {response.text}")

        try:
            data = response.json()
        except ValueError as e:
            raise NodeConnectionError(f"Invalid JSON-RPC response to {method}: {e}")

        if data.get("error"):
            error = data["error"]
            raise RpcError(
                error.get("message", "Unknown error"),
                code=error.get("code"),
                data=error.get("data"),
            )

        return data.get("result")

    async def estimate_gas(self, call: Dict[str, Any]) -> int:
        result = await self._request("eth_estimateGas", [call])
        return _quantity("eth_estimateGas", result)

    async def gas_price(self) -> int:
        result = await self._request("eth_gasPrice")
        return _quantity("eth_gasPrice", result)

    async def pending_nonce(self, address: str) -> int:
        result = await self._request("eth_getTransactionCount", [address, "pending"])
        return _quantity("eth_getTransactionCount", result)

    async def chain_id(self) -> int:
        result = await self._request("eth_chainId")
        return _quantity("eth_chainId", result)

    async def send_raw_transaction(self, raw_transaction: bytes) -> str:
        try:
            tx_hash = await self._request("eth_sendRawTransaction", ["0x" + raw_transaction.hex()])
        except RpcError as e:
            logger.error("tx_submit_failed", error=str(e), code=e.code)
            raise TransactionSubmitError(f"Transaction submission failed: {e}", error_code=e.code)
        except NodeConnectionError as e:
            raise TransactionSubmitError(f"Transaction submission request failed: {e}")

        logger.debug("tx_submitted", tx_hash=tx_hash)
        return tx_hash

    async def get_transaction_receipt(self, tx_hash: str) -> Optional[Receipt]:
        result = await self._request("eth_getTransactionReceipt", [tx_hash])
        if not result:
            return None
        return Receipt.from_rpc(result)


def _quantity(method: str, result: Any) -> int:
    """Decode a hex encoded JSON-RPC quantity."""
    if not isinstance(result, str) or not result.startswith("0x"):
        raise RpcError(f"{method} returned no quantity: {result!r}")
    try:
        return int(result, 16)
    except ValueError:
        raise RpcError(f"{method} returned an invalid quantity: {result!r}")
