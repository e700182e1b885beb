"""
Pytest configuration and shared fixtures for the test suite.
"""

import json
from pathlib import Path
from typing import Any, Dict, List, Optional, Set

import pytest
from eth_account import Account
from eth_utils import keccak, to_hex

from txsender.config import DispatcherConfig
from txsender.core.intent import TransactionIntent
from txsender.node.interface import NodeInterface, Receipt, RpcError, TransactionSubmitError
from txsender.tx.signer import KeystoreSigner


# ============================================================================
# Accounts
# ============================================================================

PASSPHRASE = "correct horse battery staple"

SENDER_KEY = "0x" + "11" * 32
OTHER_KEY = "0x" + "22" * 32

SENDER = Account.from_key(SENDER_KEY).address
OTHER = Account.from_key(OTHER_KEY).address

RECEIVER = "0x" + "ab" * 20
TOKEN_ADDRESS = "0x" + "cd" * 20

CHAIN_ID = 1337


def write_key_file(directory: Path, private_key: str, passphrase: str) -> Path:
    """Store an encrypted key file the way Ethereum clients do."""
    keyfile = Account.encrypt(private_key, passphrase, kdf="pbkdf2", iterations=2)
    path = directory / f"UTC--2024-01-01T00-00-00.000000000Z--{keyfile['address']}"
    path.write_text(json.dumps(keyfile))
    return path


# ============================================================================
# Configuration Fixtures
# ============================================================================

@pytest.fixture
def keystore_dir(tmp_path) -> Path:
    """Keystore holding the sender key (and another one with a different passphrase)."""
    directory = tmp_path / "keystore"
    directory.mkdir()
    write_key_file(directory, SENDER_KEY, PASSPHRASE)
    write_key_file(directory, OTHER_KEY, "other passphrase")
    return directory


@pytest.fixture
def test_config(keystore_dir) -> DispatcherConfig:
    """Create a test configuration."""
    return DispatcherConfig(
        rpc_url="http://node.test:8545",
        keystore_dir=str(keystore_dir),
        request_timeout_seconds=1.0,
        receipt_poll_interval_seconds=1.0,
        wait_mined_timeout_seconds=5.0,
        log_level="DEBUG",
    )


@pytest.fixture
def signer(keystore_dir) -> KeystoreSigner:
    return KeystoreSigner(str(keystore_dir))


@pytest.fixture
def transfer_intent() -> TransactionIntent:
    return TransactionIntent(sender=SENDER, receiver=RECEIVER, value=1_000, payload="0x")


@pytest.fixture
def token_file(tmp_path) -> Path:
    path = tmp_path / "tokens.json"
    path.write_text(json.dumps({
        "tokens": {
            "USDT": {"address": TOKEN_ADDRESS, "decimals": 6},
        },
        "macros": {
            "mint": "mint(address,uint256)",
        },
    }))
    return path


# ============================================================================
# Mock Node Interface
# ============================================================================

class MockNodeInterface(NodeInterface):
    """In-memory node for testing."""

    def __init__(self):
        self.gas_limit = 21_000
        self.price = 2_000_000_000
        self.network_id = CHAIN_ID
        self.nonces: Dict[str, int] = {}
        self.submitted: List[bytes] = []
        self.receipts: Dict[str, Receipt] = {}
        self.receipt_polls = 0
        self.calls: List[str] = []
        self.failing_methods: Set[str] = set()
        self.fail_estimate_for: Set[str] = set()
        self.reject_submissions = False
        self.auto_mine = False
        self._connected = False

    async def connect(self) -> None:
        self._connected = True

    async def disconnect(self) -> None:
        self._connected = False

    def _record(self, method: str) -> None:
        self.calls.append(method)
        if method in self.failing_methods:
            raise RpcError(f"{method} unavailable", code=-32000)

    async def estimate_gas(self, call: Dict[str, Any]) -> int:
        self._record("estimate_gas")
        if call.get("to", "").lower() in self.fail_estimate_for:
            raise RpcError("execution reverted", code=3)
        return self.gas_limit

    async def gas_price(self) -> int:
        self._record("gas_price")
        return self.price

    async def pending_nonce(self, address: str) -> int:
        self._record("pending_nonce")
        return self.nonces.get(address.lower(), 0)

    async def chain_id(self) -> int:
        self._record("chain_id")
        return self.network_id

    async def send_raw_transaction(self, raw_transaction: bytes) -> str:
        self._record("send_raw_transaction")
        if self.reject_submissions:
            raise TransactionSubmitError("nonce too low", error_code=-32000)
        sender = Account.recover_transaction(raw_transaction).lower()
        self.nonces[sender] = self.nonces.get(sender, 0) + 1
        self.submitted.append(raw_transaction)
        tx_hash = to_hex(keccak(raw_transaction))
        if self.auto_mine:
            self.mine(tx_hash)
        return tx_hash

    async def get_transaction_receipt(self, tx_hash: str) -> Optional[Receipt]:
        self._record("get_transaction_receipt")
        self.receipt_polls += 1
        return self.receipts.get(tx_hash)

    def mine(self, tx_hash: str, block_number: int = 1) -> Receipt:
        """Make a receipt available."""
        receipt = Receipt(
            transaction_hash=tx_hash,
            block_number=block_number,
            block_hash="0x" + "00" * 32,
            status=1,
            gas_used=self.gas_limit,
        )
        self.receipts[tx_hash] = receipt
        return receipt


@pytest.fixture
def mock_node() -> MockNodeInterface:
    """Create a mock node interface."""
    return MockNodeInterface()


# ============================================================================
# Fake Clock
# ============================================================================

class FakeClock:
    """Monotonic clock advanced only by its own sleep."""

    def __init__(self):
        self.now = 0.0
        self.sleeps: List[float] = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()
