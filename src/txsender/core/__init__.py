"""
Core module.

Contains the transaction intent model and the dispatcher orchestrator.
"""

from txsender.core.intent import (
    BatchRange,
    BatchReport,
    InvalidArgumentsError,
    InvalidBatchRangeError,
    ResolvedCall,
    RowResult,
    RowState,
    RowStatus,
    SignedTransaction,
    TransactionIntent,
)

__all__ = [
    "BatchRange",
    "BatchReport",
    "InvalidArgumentsError",
    "InvalidBatchRangeError",
    "ResolvedCall",
    "RowResult",
    "RowState",
    "RowStatus",
    "SignedTransaction",
    "TransactionIntent",
]
