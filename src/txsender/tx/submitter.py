"""
Submission Tracker - submits signed transactions and waits for receipts.
"""

import asyncio
import time
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional

import structlog

from txsender.config import DispatcherConfig, get_config
from txsender.core.intent import SignedTransaction
from txsender.node.interface import (
    NodeConnectionError,
    NodeInterface,
    Receipt,
    RpcError,
    TransactionSubmitError,
)

logger = structlog.get_logger(__name__)


class WaitTimeoutError(Exception):
    """Raised when a transaction is not mined before the deadline."""

    def __init__(self, tx_hash: str, deadline: float, polls: int):
        super().__init__(f"wait transaction mined timeout: {tx_hash} not mined within {deadline}s")
        self.tx_hash = tx_hash
        self.deadline = deadline
        self.polls = polls


@dataclass
class ConfirmationWait:
    """State of a wait for a transaction receipt."""
    tx_hash: str
    deadline: float
    started_at: float
    elapsed: float = 0.0
    polls: int = 0
    last_error: Optional[str] = None

    @property
    def expired(self) -> bool:
        return self.elapsed >= self.deadline

    @property
    def remaining(self) -> float:
        return max(self.deadline - self.elapsed, 0.0)

    def lookup_budget(self, poll_interval: float) -> float:
        """Time a lookup may take without ending the wait past deadline + poll_interval."""
        return max(self.deadline + poll_interval - self.elapsed, 0.0)


class SubmissionTracker:
    """
    Submits transactions and optionally tracks them until mined.

    Clock and sleep are injectable so waits can be driven by a fake clock.
    """

    def __init__(
        self,
        node: NodeInterface,
        config: Optional[DispatcherConfig] = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.node = node
        self.config = config or get_config()
        self._clock = clock
        self._sleep = sleep

    @property
    def poll_interval(self) -> float:
        return self.config.receipt_poll_interval_seconds

    async def submit(self, signed: SignedTransaction) -> str:
        """
        Submit a signed transaction.

        Returns:
            Transaction hash

        Raises:
            TransactionSubmitError: If the node rejects the transaction or
                does not answer in time
        """
        timeout = self.config.request_timeout_seconds
        try:
            tx_hash = await asyncio.wait_for(
                self.node.send_raw_transaction(signed.raw_transaction),
                timeout=timeout,
            )
        except asyncio.TimeoutError:
            raise TransactionSubmitError(f"Transaction submission timed out after {timeout}s")
        except (NodeConnectionError, RpcError) as e:
            raise TransactionSubmitError(f"Transaction submission failed: {e}")

        if tx_hash and tx_hash.lower() != signed.tx_hash.lower():
            logger.warning("tx_hash_mismatch", local=signed.tx_hash, remote=tx_hash)

        logger.info("transaction_sent", tx_hash=signed.tx_hash)
        return signed.tx_hash

    async def wait_mined(self, tx_hash: str, deadline: Optional[float] = None) -> Receipt:
        """
        Poll for the receipt of a transaction until it is mined.

        A missing receipt, a failed lookup or a lookup timeout all mean
        "keep polling"; only the deadline ends the wait.

        Args:
            tx_hash: Hash of the transaction to wait for
            deadline: Seconds to wait (configured default if not provided)

        Raises:
            WaitTimeoutError: If no receipt arrived before the deadline
        """
        if deadline is None:
            deadline = self.config.wait_mined_timeout_seconds

        state = ConfirmationWait(tx_hash=tx_hash, deadline=deadline, started_at=self._clock())

        while True:
            receipt = await self._poll(state)
            if receipt is not None:
                logger.info(
                    "transaction_mined",
                    tx_hash=tx_hash,
                    block_number=receipt.block_number,
                    status=receipt.status,
                    polls=state.polls,
                )
                return receipt

            state.elapsed = self._clock() - state.started_at
            if state.expired:
                logger.warning(
                    "receipt_wait_timeout",
                    tx_hash=tx_hash,
                    elapsed=round(state.elapsed, 3),
                    polls=state.polls,
                    last_error=state.last_error,
                )
                raise WaitTimeoutError(tx_hash, deadline, state.polls)

            await self._sleep(self.poll_interval)

    async def _poll(self, state: ConfirmationWait) -> Optional[Receipt]:
        # A lookup may not run past deadline + one poll interval
        state.elapsed = self._clock() - state.started_at
        timeout = min(self.config.request_timeout_seconds, state.lookup_budget(self.poll_interval))
        if timeout <= 0:
            state.last_error = "no time left for a receipt lookup"
            return None

        state.polls += 1
        try:
            return await asyncio.wait_for(
                self.node.get_transaction_receipt(state.tx_hash),
                timeout=timeout,
            )
        except asyncio.TimeoutError:
            state.last_error = f"receipt lookup timed out after {timeout}s"
        except (NodeConnectionError, RpcError, ValueError, KeyError) as e:
            state.last_error = str(e)

        logger.debug("receipt_not_available", tx_hash=state.tx_hash, polls=state.polls, error=state.last_error)
        return None
