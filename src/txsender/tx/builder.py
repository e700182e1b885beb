"""
Transaction Builder - constructs and signs transactions.

Turns a transaction intent into a signed legacy transaction: parameters are
resolved from the node, the transaction is built as a contract creation or
a transfer, and signed with the chain id of the same resolution pass.
"""

from typing import Any, Dict

import structlog
from eth_utils import to_checksum_address

from txsender.core.intent import ResolvedCall, SignedTransaction, TransactionIntent
from txsender.tx.params import ParameterFetcher
from txsender.tx.signer import KeystoreSigner

logger = structlog.get_logger(__name__)


class TransactionBuilder:
    """
    Builds and signs transactions.

    Coordinates between the parameter fetcher and the signer to produce
    signed transactions.
    """

    def __init__(self, fetcher: ParameterFetcher, signer: KeystoreSigner):
        """
        Initialize the transaction builder.

        Args:
            fetcher: Resolves gas, nonce and chain id
            signer: Keystore signer
        """
        self.fetcher = fetcher
        self.signer = signer

    @staticmethod
    def build_transaction(call: ResolvedCall) -> Dict[str, Any]:
        """
        Build the unsigned transaction dict of a resolved call.

        Calls without recipient become contract creations, which carry no
        `to` field.
        """
        transaction = {
            "nonce": call.nonce,
            "gasPrice": call.gas_price,
            "gas": call.gas_limit,
            "value": call.value,
            "data": call.payload,
            "chainId": call.chain_id,
        }
        if call.recipient:
            transaction["to"] = to_checksum_address(call.recipient)
        return transaction

    async def build_and_sign(self, intent: TransactionIntent, passphrase: str) -> SignedTransaction:
        """
        Resolve, build and sign the transaction of an intent.

        Raises:
            ParameterFetchError: If network parameters cannot be fetched
            SigningError: If the sender key cannot be unlocked or used
        """
        call = await self.fetcher.resolve(intent)
        return self.sign(call, passphrase)

    def sign(self, call: ResolvedCall, passphrase: str) -> SignedTransaction:
        """
        Build and sign a resolved call.

        The signature is bound to `call.chain_id`, fetched in the same pass
        as `call.nonce`.
        """
        transaction = self.build_transaction(call)
        raw_transaction, tx_hash = self.signer.sign_transaction(transaction, call.sender, passphrase)

        logger.info(
            "transaction_built",
            tx_hash=tx_hash,
            sender=call.sender,
            recipient=call.recipient,
            contract_creation=call.recipient is None,
            nonce=call.nonce,
            chain_id=call.chain_id,
        )
        return SignedTransaction(call=call, raw_transaction=raw_transaction, tx_hash=tx_hash)
