"""
Main Dispatcher orchestrator.

Coordinates all components to send a single transaction or a batch of
transactions read from a batch file.
"""

from typing import List, Optional, Tuple

import structlog

from txsender.config import DispatcherConfig, get_config
from txsender.core.intent import (
    BatchRange,
    BatchReport,
    InvalidArgumentsError,
    RowResult,
    RowState,
    RowStatus,
    TransactionIntent,
    validate_intent,
)
from txsender.macro.resolver import MacroError, MacroResolver
from txsender.node.interface import NodeInterface, TransactionSubmitError
from txsender.node.jsonrpc import JsonRpcNode
from txsender.rows.interface import RowSource, RowSourceError, output_coordinate
from txsender.tx.builder import TransactionBuilder
from txsender.tx.params import ParameterFetcher, ParameterFetchError
from txsender.tx.signer import KeystoreSigner, SigningError
from txsender.tx.submitter import SubmissionTracker, WaitTimeoutError

logger = structlog.get_logger(__name__)

# Failures that only mark their row as failed
ROW_ERRORS = (
    InvalidArgumentsError,
    MacroError,
    ParameterFetchError,
    SigningError,
    TransactionSubmitError,
)


class Dispatcher:
    """
    Main dispatcher orchestrator.

    Coordinates the sending components:
    - Parameter resolution (gas, nonce, chain id)
    - Transaction construction and signing
    - Submission and optional confirmation tracking
    - Batch iteration with per-row error isolation and write-back

    Usage:
        ```python
        async with Dispatcher(config) as dispatcher:
            tx_hash = await dispatcher.send(intent, passphrase, wait=True)
        ```
    """

    def __init__(
        self,
        config: Optional[DispatcherConfig] = None,
        node: Optional[NodeInterface] = None,
        signer: Optional[KeystoreSigner] = None,
        tracker: Optional[SubmissionTracker] = None,
    ):
        """
        Initialize the dispatcher.

        Args:
            config: Sender configuration
            node: Custom node interface (JSON-RPC adapter if not provided)
            signer: Custom signer (keystore from config if not provided)
            tracker: Custom submission tracker
        """
        self.config = config or get_config()
        self.node = node or JsonRpcNode(self.config)
        self.signer = signer or KeystoreSigner(self.config.keystore_dir)
        self.fetcher = ParameterFetcher(self.node, self.config)
        self.builder = TransactionBuilder(self.fetcher, self.signer)
        self.tracker = tracker or SubmissionTracker(self.node, self.config)

    async def __aenter__(self) -> "Dispatcher":
        await self.node.connect()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.node.disconnect()

    # Single transaction

    async def send_transaction(
        self,
        intent: TransactionIntent,
        passphrase: str,
        wait: bool = False,
    ) -> str:
        """
        Resolve, sign and submit one transaction.

        Waiting is soft: when the receipt does not arrive in time the
        timeout is logged and the hash is still returned.

        Returns:
            Transaction hash
        """
        signed = await self.builder.build_and_sign(intent, passphrase)
        tx_hash = await self.tracker.submit(signed)

        if wait:
            try:
                receipt = await self.tracker.wait_mined(tx_hash, self.config.wait_mined_timeout_seconds)
                logger.info("transaction_receipt", receipt=str(receipt), succeeded=receipt.succeeded)
            except WaitTimeoutError as e:
                logger.warning("wait_transaction_receipt_failed", tx_hash=tx_hash, error=str(e))

        return tx_hash

    async def send(
        self,
        intent: TransactionIntent,
        passphrase: Optional[str],
        wait: bool = False,
    ) -> str:
        """
        Send a single transaction. Any failure propagates to the caller.

        Raises:
            InvalidArgumentsError: If the intent is malformed
            SigningError: If no passphrase is available or signing fails
        """
        validate_intent(intent)
        if intent.has_macro:
            raise InvalidArgumentsError("macro payloads are only supported in batch mode")
        if passphrase is None:
            raise SigningError("No passphrase given")

        logger.info(
            "sending_transaction",
            sender=intent.sender,
            receiver=intent.receiver,
            value=intent.value,
            contract_creation=intent.is_contract_creation,
        )
        return await self.send_transaction(intent, passphrase, wait=wait)

    # Batch

    async def send_batch(
        self,
        source: RowSource,
        batch_range: Optional[BatchRange] = None,
        default_passphrase: Optional[str] = None,
        token_file: Optional[str] = None,
        resolver: Optional[MacroResolver] = None,
    ) -> BatchReport:
        """
        Send the rows [begin, end) of a batch file, never waiting for mining.

        Malformed rows, an invalid range, an unreadable file or a missing
        macro resolver abort the batch before anything is sent. Every other
        failure only marks its row as failed.

        Args:
            source: Batch file to read from and write hashes to
            batch_range: Rows to send (all rows if not provided)
            default_passphrase: Passphrase for rows without their own
            token_file: Token definition file for macro payloads
            resolver: Prebuilt macro resolver (loaded from token_file if not provided)

        Returns:
            Report with one result per row in range
        """
        if batch_range is None:
            batch_range = BatchRange()
        batch_range.check()

        intents = source.read_all()
        batch_range = batch_range.resolve(len(intents))
        rows = list(enumerate(intents[batch_range.begin:batch_range.end], start=batch_range.begin))

        for index, intent in rows:
            try:
                validate_intent(intent)
            except InvalidArgumentsError as e:
                raise InvalidArgumentsError(f"row {index}: {e}")

        if resolver is None:
            resolver = self._load_resolver(rows, token_file)

        logger.info(
            "batch_starting",
            begin=batch_range.begin,
            end=batch_range.end,
            rows=batch_range.row_count,
            source=source.kind.value,
        )

        report = BatchReport(batch_range)
        try:
            for index, intent in rows:
                result = await self._process_row(source, index, intent, default_passphrase, resolver)
                report.results.append(result)
        finally:
            self._flush(source)

        logger.info(
            "batch_finished",
            begin=batch_range.begin,
            end=batch_range.end,
            recorded=report.recorded,
            failed=report.failed,
        )
        return report

    def _load_resolver(
        self,
        rows: List[Tuple[int, TransactionIntent]],
        token_file: Optional[str],
    ) -> Optional[MacroResolver]:
        """Build the macro resolver, only if some row needs it."""
        if not any(intent.has_macro for _, intent in rows):
            return None
        return MacroResolver.from_file(token_file)

    async def _process_row(
        self,
        source: RowSource,
        index: int,
        intent: TransactionIntent,
        default_passphrase: Optional[str],
        resolver: Optional[MacroResolver],
    ) -> RowResult:
        """Process a single row. Never raises for row-local failures."""
        state = RowState.PENDING
        try:
            if intent.has_macro:
                state = self._advance(index, RowState.MACRO_EXPANDING)
                if resolver is None:
                    raise InvalidArgumentsError("macro payload without token definitions")
                expansion = resolver.parse(intent.payload, intent.sender, intent.receiver)
                intent = intent.with_expansion(expansion.recipient, expansion.payload)

            state = self._advance(index, RowState.RESOLVING)
            call = await self.fetcher.resolve(intent)

            state = self._advance(index, RowState.SIGNING)
            passphrase = intent.passphrase if intent.passphrase is not None else default_passphrase
            if passphrase is None:
                raise SigningError("No passphrase for row")
            signed = self.builder.sign(call, passphrase)

            state = self._advance(index, RowState.SUBMITTING)
            tx_hash = await self.tracker.submit(signed)

        except ROW_ERRORS as e:
            logger.error("row_failed", row=index, stage=state.value, error=str(e))
            return RowResult(
                index=index,
                status=RowStatus.FAILED,
                error=str(e),
                failed_stage=state,
            )

        result = RowResult(
            index=index,
            status=RowStatus.RECORDED,
            tx_hash=tx_hash,
            coordinate=output_coordinate(source.kind, index),
        )
        try:
            source.write_string(result.coordinate, tx_hash)
        except RowSourceError as e:
            result.write_error = str(e)
            logger.error("row_write_failed", row=index, coordinate=result.coordinate, error=str(e))

        logger.info("row_recorded", row=index, tx_hash=tx_hash, coordinate=result.coordinate)
        return result

    def _advance(self, index: int, state: RowState) -> RowState:
        logger.debug("row_state", row=index, state=state.value)
        return state

    def _flush(self, source: RowSource) -> None:
        try:
            source.flush()
        except RowSourceError as e:
            logger.error("batch_flush_failed", error=str(e))
            raise
