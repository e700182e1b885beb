"""
Abstract interface for node integration.

Defines the contract for blockchain access that all node adapters must implement.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, Optional


@dataclass
class Receipt:
    """Receipt of a mined transaction."""
    transaction_hash: str
    block_number: int
    block_hash: str
    status: Optional[int] = None                # 1 success, 0 reverted
    gas_used: Optional[int] = None
    contract_address: Optional[str] = None      # Set for contract creations

    @property
    def succeeded(self) -> bool:
        return self.status != 0

    @classmethod
    def from_rpc(cls, data: Dict[str, Any]) -> "Receipt":
        """Parse an eth_getTransactionReceipt result."""
        return cls(
            transaction_hash=data["transactionHash"],
            block_number=_to_int(data.get("blockNumber")) or 0,
            block_hash=data.get("blockHash") or "",
            status=_to_int(data.get("status")),
            gas_used=_to_int(data.get("gasUsed")),
            contract_address=data.get("contractAddress"),
        )

    def __str__(self) -> str:
        return (
            f"Receipt(hash={self.transaction_hash}, block={self.block_number}, "
            f"status={self.status}, gas_used={self.gas_used})"
        )


class NodeInterface(ABC):
    """
    Abstract interface for node access.

    This interface defines all blockchain operations needed by the sender:
    - Gas estimation and gas price suggestion
    - Pending nonce and chain id lookup
    - Raw transaction submission
    - Receipt lookup
    """

    @abstractmethod
    async def connect(self) -> None:
        """
        Establish connection to the node.

        Raises:
            NodeConnectionError: If connection cannot be established
        """
        pass

    @abstractmethod
    async def disconnect(self) -> None:
        """Close connection to the node."""
        pass

    @abstractmethod
    async def estimate_gas(self, call: Dict[str, Any]) -> int:
        """
        Estimate the gas needed by a call.

        Args:
            call: JSON-RPC call object (from, to, value, data)

        Returns:
            Estimated gas limit
        """
        pass

    @abstractmethod
    async def gas_price(self) -> int:
        """Suggested gas price in wei."""
        pass

    @abstractmethod
    async def pending_nonce(self, address: str) -> int:
        """
        Get the next nonce of an account, counting pending transactions.

        Args:
            address: Account address
        """
        pass

    @abstractmethod
    async def chain_id(self) -> int:
        """Chain id used for replay protected signatures."""
        pass

    @abstractmethod
    async def send_raw_transaction(self, raw_transaction: bytes) -> str:
        """
        Submit a signed transaction to the network.

        Args:
            raw_transaction: RLP encoded signed transaction

        Returns:
            Transaction hash

        Raises:
            TransactionSubmitError: If submission fails
        """
        pass

    @abstractmethod
    async def get_transaction_receipt(self, tx_hash: str) -> Optional[Receipt]:
        """
        Get the receipt of a transaction.

        Args:
            tx_hash: Transaction hash

        Returns:
            The receipt if the transaction is mined, None otherwise
        """
        pass


class NodeConnectionError(Exception):
    """Raised when connection to node fails."""
    pass


class RpcError(Exception):
    """Raised when the node answers with a JSON-RPC error object."""

    def __init__(self, message: str, code: Optional[int] = None, data: Any = None):
        super().__init__(message)
        self.code = code
        self.data = data


class TransactionSubmitError(Exception):
    """Raised when transaction submission fails."""

    def __init__(self, message: str, error_code: Optional[int] = None):
        super().__init__(message)
        self.error_code = error_code


def _to_int(value: Any) -> Optional[int]:
    if value is None:
        return None
    if isinstance(value, int):
        return value
    return int(value, 16) if str(value).startswith("0x") else int(value)
