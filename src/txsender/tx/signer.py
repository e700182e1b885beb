"""
Transaction Signer - signs transactions with keystore accounts.

Keys are stored as encrypted JSON key files (Web3 Secret Storage format) in
a keystore directory and unlocked with a passphrase.
"""

import hashlib
import json
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

import structlog
from eth_account import Account
from eth_utils import is_address, to_checksum_address, to_hex
from eth_utils.exceptions import ValidationError

logger = structlog.get_logger(__name__)


class SigningError(Exception):
    """Raised when a transaction cannot be signed."""
    pass


class KeystoreSigner:
    """
    Signs transactions with keys from a keystore directory.

    Unlocked keys are kept in memory for the lifetime of the signer, so a
    batch decrypts each account only once per passphrase.
    """

    def __init__(self, keystore_dir: str):
        """
        Initialize the signer.

        Args:
            keystore_dir: Directory holding encrypted JSON key files
        """
        self.keystore_dir = Path(keystore_dir).expanduser()
        self._unlocked: Dict[Tuple[str, str], bytes] = {}

    def find_key_file(self, address: str) -> Path:
        """
        Locate the key file of an account.

        Raises:
            SigningError: If no key file matches the address
        """
        if not is_address(address):
            raise SigningError(f"Invalid account address: {address}")
        if not self.keystore_dir.is_dir():
            raise SigningError(f"Keystore directory not found: {self.keystore_dir}")

        wanted = address.lower().removeprefix("0x")
        for path in sorted(self.keystore_dir.iterdir()):
            if not path.is_file() or path.name.startswith("."):
                continue
            keyfile = _read_key_file(path)
            if keyfile and str(keyfile.get("address", "")).lower().removeprefix("0x") == wanted:
                return path

        raise SigningError(f"No key for account {to_checksum_address(address)} in {self.keystore_dir}")

    def unlock(self, address: str, passphrase: str) -> bytes:
        """
        Decrypt the private key of an account.

        Raises:
            SigningError: If the key is missing or the passphrase is wrong
        """
        cache_key = (address.lower(), hashlib.sha256(passphrase.encode("utf-8")).hexdigest())
        if cache_key in self._unlocked:
            return self._unlocked[cache_key]

        path = self.find_key_file(address)
        keyfile = _read_key_file(path)
        try:
            private_key = bytes(Account.decrypt(keyfile, passphrase))
        except (ValueError, KeyError, TypeError) as e:
            raise SigningError(f"Cannot unlock account {to_checksum_address(address)}: {e}")

        if Account.from_key(private_key).address.lower() != address.lower():
            raise SigningError(f"Key file {path.name} does not belong to {address}")

        self._unlocked[cache_key] = private_key
        logger.info("account_unlocked", address=to_checksum_address(address), key_file=path.name)
        return private_key

    def sign_transaction(
        self,
        transaction: Dict[str, Any],
        sender: str,
        passphrase: str,
    ) -> Tuple[bytes, str]:
        """
        Sign a transaction dict.

        The dict must carry the chainId the signature is bound to.

        Returns:
            Raw signed transaction and its hash
        """
        if "chainId" not in transaction:
            raise SigningError("Refusing to sign a transaction without chain id")

        private_key = self.unlock(sender, passphrase)
        try:
            signed = Account.sign_transaction(transaction, private_key)
        except (TypeError, ValueError, ValidationError) as e:
            raise SigningError(f"Cannot sign transaction: {e}")

        tx_hash = to_hex(signed.hash)
        logger.debug("transaction_signed", tx_hash=tx_hash)
        return bytes(signed.raw_transaction), tx_hash

    def lock(self) -> None:
        """Forget all unlocked keys."""
        self._unlocked.clear()


def _read_key_file(path: Path) -> Optional[Dict[str, Any]]:
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError):
        return None
    return data if isinstance(data, dict) else None
