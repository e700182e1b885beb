"""
txsender

Sends single transactions or batches of transactions read from text or
spreadsheet files to an Ethereum JSON-RPC node, writing the resulting
transaction hashes back into the batch file.
"""

__version__ = "0.1.0"

from txsender.core.dispatcher import Dispatcher
from txsender.core.intent import BatchRange, BatchReport, RowResult, RowStatus, TransactionIntent

__all__ = [
    "Dispatcher",
    "BatchRange",
    "BatchReport",
    "RowResult",
    "RowStatus",
    "TransactionIntent",
]
