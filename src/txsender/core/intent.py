"""
Transaction intent model.

Represents one requested transaction, as read from a batch row or from the
command line, and the values derived from it on its way to the network.
"""

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, List, Optional

from eth_utils import is_address, is_hexstr, to_checksum_address

from txsender.macro.resolver import is_macro_definition


class InvalidArgumentsError(Exception):
    """Raised when transaction or call arguments are malformed."""
    pass


class InvalidBatchRangeError(Exception):
    """Raised when a batch range is empty or out of bounds."""
    pass


@dataclass(frozen=True)
class TransactionIntent:
    """
    A transaction as requested by the user.

    Attributes:
        sender: Hex address of the signing account
        receiver: Hex address of the recipient, None for contract creation
        value: Amount to transfer in wei (raw text when a batch row holds no integer)
        payload: Hex call data, or an unexpanded macro expression
        passphrase: Row specific passphrase, None to use the caller default
    """

    sender: str
    receiver: Optional[str] = None
    value: int = 0
    payload: str = ""
    passphrase: Optional[str] = None

    @property
    def is_contract_creation(self) -> bool:
        return not self.receiver

    @property
    def has_macro(self) -> bool:
        return is_macro_definition(self.payload)

    @property
    def payload_bytes(self) -> bytes:
        """Call data as bytes. Macro payloads must be expanded first."""
        if self.has_macro:
            raise InvalidArgumentsError("payload holds an unexpanded macro expression")
        return decode_payload(self.payload)

    def with_expansion(self, recipient: str, payload: str) -> "TransactionIntent":
        """Derive the intent produced by a macro expansion."""
        return replace(self, receiver=recipient, payload=payload)

    def to_call_message(self) -> dict:
        """JSON-RPC call object used for gas estimation."""
        message = {
            "from": to_checksum_address(self.sender),
            "value": hex(self.value),
            "data": "0x" + self.payload_bytes.hex(),
        }
        if self.receiver:
            message["to"] = to_checksum_address(self.receiver)
        return message


@dataclass(frozen=True)
class ResolvedCall:
    """An intent completed with freshly fetched network parameters."""

    sender: str
    recipient: Optional[str]
    value: int
    payload: bytes
    gas_limit: int
    gas_price: int
    nonce: int
    chain_id: int


@dataclass(frozen=True)
class SignedTransaction:
    """A resolved call with a signature bound to its sender and chain id."""

    call: ResolvedCall
    raw_transaction: bytes
    tx_hash: str


@dataclass(frozen=True)
class BatchRange:
    """
    Half-open range [begin, end) over the rows of a batch file.

    An end of None (or 0) means "up to the last row".
    """

    begin: int = 0
    end: Optional[int] = None

    def check(self) -> None:
        """Validate the bounds that can be checked without the row count."""
        if self.begin < 0:
            raise InvalidBatchRangeError(f"invalid batch index: begin={self.begin}")
        if self.end and self.begin >= self.end:
            raise InvalidBatchRangeError(
                f"invalid batch index: begin={self.begin} end={self.end}"
            )

    def resolve(self, row_count: int) -> "BatchRange":
        """Return a range with a concrete end, validated against row_count."""
        self.check()
        end = self.end or row_count
        if self.begin >= end or end > row_count:
            raise InvalidBatchRangeError(
                f"invalid batch index: begin={self.begin} end={end} rows={row_count}"
            )
        return BatchRange(self.begin, end)

    @property
    def row_count(self) -> Optional[int]:
        """Number of rows covered, None while the end is open."""
        if not self.end:
            return None
        return max(self.end - self.begin, 0)


class RowStatus(str, Enum):
    """Outcome of a batch row."""
    RECORDED = "recorded"     # Transaction submitted and hash written back
    FAILED = "failed"         # Row skipped after a row-local error


class RowState(str, Enum):
    """Processing stage of a batch row."""
    PENDING = "pending"
    MACRO_EXPANDING = "macro_expanding"
    RESOLVING = "resolving"
    SIGNING = "signing"
    SUBMITTING = "submitting"
    RECORDED = "recorded"
    FAILED = "failed"


@dataclass
class RowResult:
    """Result of processing one batch row."""

    index: int
    status: RowStatus
    tx_hash: Optional[str] = None
    coordinate: Optional[str] = None
    error: Optional[str] = None
    failed_stage: Optional[RowState] = None
    write_error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status == RowStatus.RECORDED

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {
            "index": self.index,
            "status": self.status.value,
            "tx_hash": self.tx_hash,
            "coordinate": self.coordinate,
            "error": self.error,
            "failed_stage": self.failed_stage.value if self.failed_stage else None,
            "write_error": self.write_error,
        }


@dataclass
class BatchReport:
    """Results of a batch run, one per row in range."""

    batch_range: BatchRange
    results: List[RowResult] = field(default_factory=list)

    @property
    def recorded(self) -> int:
        return sum(1 for r in self.results if r.status == RowStatus.RECORDED)

    @property
    def failed(self) -> int:
        return sum(1 for r in self.results if r.status == RowStatus.FAILED)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "begin": self.batch_range.begin,
            "end": self.batch_range.end,
            "recorded": self.recorded,
            "failed": self.failed,
            "rows": [r.to_dict() for r in self.results],
        }


def decode_payload(payload: str) -> bytes:
    """Decode a hex payload, with or without 0x prefix. Empty means no data."""
    text = payload.strip()
    if text[:2] in ("0x", "0X"):
        text = text[2:]
    if not text:
        return b""
    try:
        return bytes.fromhex(text)
    except ValueError:
        raise InvalidArgumentsError(f"payload is not valid hex: {payload[:20]!r}")


def check_arguments(
    sender: str,
    receiver: Optional[str],
    value: int,
    payload: str,
) -> bool:
    """Return True if the fields describe a well-formed transaction."""
    if not sender or not is_address(sender):
        return False
    if receiver and not is_address(receiver):
        return False
    if not isinstance(value, int) or value < 0:
        return False
    if not payload or is_macro_definition(payload):
        return True
    text = payload.strip()
    if not (text.startswith("0x") or text.startswith("0X")):
        text = "0x" + text
    return is_hexstr(text) and len(text) % 2 == 0


def validate_intent(intent: TransactionIntent) -> None:
    """Raise InvalidArgumentsError unless the intent is well-formed."""
    if not check_arguments(intent.sender, intent.receiver, intent.value, intent.payload):
        raise InvalidArgumentsError(
            f"invalid transaction or call arguments: sender={intent.sender!r} "
            f"receiver={intent.receiver!r} value={intent.value!r}"
        )
