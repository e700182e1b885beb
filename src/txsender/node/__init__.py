"""
Node Integration Layer.

Provides abstracted access to an Ethereum node for parameter lookup,
transaction submission and receipt polling.
"""

from txsender.node.interface import (
    NodeConnectionError,
    NodeInterface,
    Receipt,
    RpcError,
    TransactionSubmitError,
)
from txsender.node.jsonrpc import JsonRpcNode

__all__ = [
    "NodeInterface",
    "JsonRpcNode",
    "Receipt",
    "NodeConnectionError",
    "RpcError",
    "TransactionSubmitError",
]
