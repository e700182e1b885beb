"""
Test suite for submission and confirmation tracking.

Most waits are driven by a fake clock; only the deadline bound is checked in real time.
"""

import asyncio
import time

import pytest

from txsender.core.intent import ResolvedCall, SignedTransaction
from txsender.node.interface import NodeConnectionError, TransactionSubmitError
from txsender.tx.submitter import ConfirmationWait, SubmissionTracker, WaitTimeoutError

from conftest import CHAIN_ID, RECEIVER, SENDER, MockNodeInterface

TX_HASH = "0x" + "12" * 32


def _signed(raw: bytes = b"\x01\x02", tx_hash: str = TX_HASH) -> SignedTransaction:
    call = ResolvedCall(
        sender=SENDER,
        recipient=RECEIVER,
        value=0,
        payload=b"",
        gas_limit=21_000,
        gas_price=1,
        nonce=0,
        chain_id=CHAIN_ID,
    )
    return SignedTransaction(call=call, raw_transaction=raw, tx_hash=tx_hash)


class RecordingNode(MockNodeInterface):
    """Accepts any raw bytes and answers with a fixed hash."""

    def __init__(self, answer: str = TX_HASH):
        super().__init__()
        self.answer = answer

    async def send_raw_transaction(self, raw_transaction: bytes) -> str:
        self.calls.append("send_raw_transaction")
        self.submitted.append(raw_transaction)
        return self.answer


class HangingNode(MockNodeInterface):
    """Never answers submissions or receipt lookups in time."""

    async def send_raw_transaction(self, raw_transaction: bytes) -> str:
        await asyncio.sleep(10)
        return TX_HASH

    async def get_transaction_receipt(self, tx_hash: str):
        self.receipt_polls += 1
        await asyncio.sleep(10)


class StallingNode(MockNodeInterface):
    """Answers the first receipt lookup, then stops answering."""

    async def get_transaction_receipt(self, tx_hash: str):
        self.receipt_polls += 1
        if self.receipt_polls > 1:
            await asyncio.sleep(10)
        return None


class FlakyNode(MockNodeInterface):
    """Fails the first receipt lookups, then reports the transaction mined."""

    def __init__(self, failures: int):
        super().__init__()
        self.failures = failures

    async def get_transaction_receipt(self, tx_hash: str):
        self.receipt_polls += 1
        if self.receipt_polls <= self.failures:
            raise NodeConnectionError("connection reset")
        return self.mine(tx_hash)


# ============================================================================
# Test Confirmation State
# ============================================================================

class TestConfirmationWait:

    def test_remaining_and_expired(self):
        state = ConfirmationWait(tx_hash=TX_HASH, deadline=5.0, started_at=100.0)

        assert state.remaining == 5.0
        assert state.expired is False

        state.elapsed = 6.0
        assert state.remaining == 0.0
        assert state.expired is True


# ============================================================================
# Test Submission
# ============================================================================

class TestSubmit:
    """Tests for submitting signed transactions."""

    @pytest.mark.asyncio
    async def test_submit_returns_local_hash(self, test_config):
        node = RecordingNode()
        tracker = SubmissionTracker(node, test_config)

        tx_hash = await tracker.submit(_signed())

        assert tx_hash == TX_HASH
        assert node.submitted == [b"\x01\x02"]

    @pytest.mark.asyncio
    async def test_hash_mismatch_keeps_local_hash(self, test_config):
        tracker = SubmissionTracker(RecordingNode(answer="0x" + "34" * 32), test_config)

        assert await tracker.submit(_signed()) == TX_HASH

    @pytest.mark.asyncio
    async def test_rejection(self, mock_node, test_config):
        mock_node.reject_submissions = True
        tracker = SubmissionTracker(mock_node, test_config)

        with pytest.raises(TransactionSubmitError, match="nonce too low"):
            await tracker.submit(_signed())

    @pytest.mark.asyncio
    async def test_connection_failure(self, mock_node, test_config):
        mock_node.failing_methods.add("send_raw_transaction")
        tracker = SubmissionTracker(mock_node, test_config)

        with pytest.raises(TransactionSubmitError, match="submission failed"):
            await tracker.submit(_signed())

    @pytest.mark.asyncio
    async def test_timeout(self, test_config):
        config = test_config.model_copy(update={"request_timeout_seconds": 0.05})
        tracker = SubmissionTracker(HangingNode(), config)

        with pytest.raises(TransactionSubmitError, match="timed out"):
            await tracker.submit(_signed())


# ============================================================================
# Test Waiting For Receipts
# ============================================================================

class TestWaitMined:
    """Tests for polling until a transaction is mined."""

    @pytest.mark.asyncio
    async def test_already_mined(self, mock_node, test_config, fake_clock):
        mock_node.mine(TX_HASH, block_number=42)
        tracker = SubmissionTracker(mock_node, test_config, clock=fake_clock, sleep=fake_clock.sleep)

        receipt = await tracker.wait_mined(TX_HASH)

        assert receipt.block_number == 42
        assert fake_clock.sleeps == []

    @pytest.mark.asyncio
    async def test_polls_until_mined(self, test_config, fake_clock):
        node = FlakyNode(failures=3)
        tracker = SubmissionTracker(node, test_config, clock=fake_clock, sleep=fake_clock.sleep)

        receipt = await tracker.wait_mined(TX_HASH, deadline=10)

        assert receipt.transaction_hash == TX_HASH
        assert node.receipt_polls == 4
        assert fake_clock.sleeps == [1.0, 1.0, 1.0]

    @pytest.mark.asyncio
    async def test_timeout_at_deadline(self, mock_node, test_config, fake_clock):
        tracker = SubmissionTracker(mock_node, test_config, clock=fake_clock, sleep=fake_clock.sleep)

        with pytest.raises(WaitTimeoutError) as exc_info:
            await tracker.wait_mined(TX_HASH, deadline=5)

        assert exc_info.value.tx_hash == TX_HASH
        assert exc_info.value.polls == 6
        assert 5 <= fake_clock.now <= 5 + test_config.receipt_poll_interval_seconds

    @pytest.mark.asyncio
    async def test_timeout_overshoot_is_bounded(self, mock_node, test_config, fake_clock):
        """The wait ends within one poll interval after the deadline."""
        tracker = SubmissionTracker(mock_node, test_config, clock=fake_clock, sleep=fake_clock.sleep)

        with pytest.raises(WaitTimeoutError):
            await tracker.wait_mined(TX_HASH, deadline=4.5)

        assert 4.5 <= fake_clock.now <= 5.5

    @pytest.mark.asyncio
    async def test_default_deadline_from_config(self, mock_node, test_config, fake_clock):
        tracker = SubmissionTracker(mock_node, test_config, clock=fake_clock, sleep=fake_clock.sleep)

        with pytest.raises(WaitTimeoutError) as exc_info:
            await tracker.wait_mined(TX_HASH)

        assert exc_info.value.deadline == test_config.wait_mined_timeout_seconds

    @pytest.mark.asyncio
    async def test_slow_lookup_cannot_stretch_the_wait(self, test_config):
        """A lookup hanging near the deadline is cut at deadline + one interval."""
        config = test_config.model_copy(update={
            "request_timeout_seconds": 2.0,
            "receipt_poll_interval_seconds": 0.2,
        })
        node = StallingNode()
        tracker = SubmissionTracker(node, config)

        started = time.monotonic()
        with pytest.raises(WaitTimeoutError):
            await tracker.wait_mined(TX_HASH, deadline=0.5)
        elapsed = time.monotonic() - started

        assert 0.5 <= elapsed <= 0.5 + 0.2 + 0.1
        assert node.receipt_polls == 2

    def test_lookup_budget(self):
        state = ConfirmationWait(tx_hash=TX_HASH, deadline=5.0, started_at=0.0, elapsed=4.5)

        assert state.lookup_budget(1.0) == 1.5
        state.elapsed = 7.0
        assert state.lookup_budget(1.0) == 0.0

    @pytest.mark.asyncio
    async def test_hanging_lookup_counts_as_not_mined(self, test_config, fake_clock):
        config = test_config.model_copy(update={"request_timeout_seconds": 0.05})
        node = HangingNode()
        tracker = SubmissionTracker(node, config, clock=fake_clock, sleep=fake_clock.sleep)

        with pytest.raises(WaitTimeoutError):
            await tracker.wait_mined(TX_HASH, deadline=2)

        assert node.receipt_polls == 3
