"""
Macro Resolver - expands macro payloads into contract calls.

A macro expression such as ``$transfer(USDT, $receiver, 1.5)`` stands in for
the recipient and call data of a transaction. Expansion replaces the
recipient with the target contract and the payload with ABI encoded call
data, using the row's sender and receiver as substitution context.
"""

import csv
import re
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation, localcontext
from typing import Any, Dict, List, Optional, Tuple

import structlog
from eth_abi import encode
from eth_abi.exceptions import EncodingError
from eth_utils import function_signature_to_4byte_selector, is_address, to_checksum_address

from txsender.macro.tokens import (
    MacroDefinitionError,
    TokenDefinition,
    TokenDefinitions,
    load_token_definitions,
)

logger = structlog.get_logger(__name__)

MACRO_PATTERN = re.compile(r"^\s*\$(?P<name>[A-Za-z_]\w*)\s*\((?P<args>.*)\)\s*$", re.DOTALL)
SIGNATURE_PATTERN = re.compile(r"^(?P<function>[A-Za-z_]\w*)\((?P<types>[^()\[\]]*)\)$")

SENDER_VARIABLE = "$sender"
RECEIVER_VARIABLE = "$receiver"

BUILTIN_MACROS = {
    "transfer": "transfer(address,uint256)",
    "approve": "approve(address,uint256)",
    "transferFrom": "transferFrom(address,address,uint256)",
}


class MacroError(Exception):
    """Raised when a macro expression cannot be expanded."""
    pass


def is_macro_definition(payload: Optional[str]) -> bool:
    """Check whether a payload holds a macro expression. Performs no I/O."""
    if not payload:
        return False
    return MACRO_PATTERN.match(payload) is not None


@dataclass(frozen=True)
class MacroExpansion:
    """Concrete recipient and payload produced by expanding a macro."""

    recipient: str
    payload: str
    auxiliary: Dict[str, Any] = field(default_factory=dict)


class MacroResolver:
    """
    Expands macro expressions against a table of token definitions.

    The first macro argument names the target contract, either as a token
    symbol or a literal address. The remaining arguments are encoded according
    to the macro's function signature.

    Usage:
        ```python
        resolver = MacroResolver.from_file("tokens.json")
        expansion = resolver.parse("$transfer(USDT, $receiver, 10)", sender, receiver)
        ```
    """

    def __init__(self, definitions: Optional[TokenDefinitions] = None):
        self.definitions = definitions or TokenDefinitions()
        self.signatures: Dict[str, str] = dict(BUILTIN_MACROS)
        self.signatures.update(self.definitions.macros)

        for name, signature in self.signatures.items():
            if SIGNATURE_PATTERN.match(signature.replace(" ", "")) is None:
                raise MacroDefinitionError(f"Unsupported signature for macro {name}: {signature}")

    @classmethod
    def from_file(cls, path: Optional[str]) -> "MacroResolver":
        """Build a resolver from a token definition file."""
        if not path:
            raise MacroDefinitionError("No token definition file given")
        return cls(load_token_definitions(path))

    def is_macro_definition(self, payload: Optional[str]) -> bool:
        return is_macro_definition(payload)

    def parse(
        self,
        payload: str,
        sender: str,
        receiver: Optional[str] = None,
    ) -> MacroExpansion:
        """
        Expand a macro expression.

        Args:
            payload: The macro expression
            sender: Address substituted for $sender
            receiver: Address substituted for $receiver

        Returns:
            The expanded recipient, hex payload and auxiliary details

        Raises:
            MacroError: If the expression cannot be expanded
        """
        match = MACRO_PATTERN.match(payload or "")
        if match is None:
            raise MacroError(f"Not a macro expression: {payload!r}")

        name = match.group("name")
        signature = self.signatures.get(name)
        if signature is None:
            raise MacroError(f"Unknown macro: ${name}")

        args = _split_arguments(match.group("args"))
        if not args:
            raise MacroError(f"Macro ${name} needs a target contract")

        target_arg = self._substitute(args[0], sender, receiver)
        target, token = self._resolve_target(target_arg)
        function, types = _parse_signature(signature)

        values = args[1:]
        if len(values) != len(types):
            raise MacroError(
                f"Macro ${name} expects {len(types)} argument(s) after the target, got {len(values)}"
            )

        converted = [
            self._convert(abi_type, self._substitute(value, sender, receiver), token)
            for abi_type, value in zip(types, values)
        ]

        try:
            data = function_signature_to_4byte_selector(f"{function}({','.join(types)})")
            data += encode(types, converted)
        except (EncodingError, OverflowError, TypeError, ValueError) as e:
            raise MacroError(f"Cannot encode ${name} arguments: {e}")

        expansion = MacroExpansion(
            recipient=target,
            payload="0x" + data.hex(),
            auxiliary={
                "macro": name,
                "signature": signature,
                "target": target,
                "symbol": self.definitions.find_symbol(target),
                "args": converted,
            },
        )

        logger.debug(
            "macro_expanded",
            macro=name,
            target=target,
            symbol=expansion.auxiliary["symbol"],
        )
        return expansion

    def _substitute(self, value: str, sender: str, receiver: Optional[str]) -> str:
        if value == SENDER_VARIABLE:
            if not sender:
                raise MacroError("$sender used without a sender")
            return sender
        if value == RECEIVER_VARIABLE:
            if not receiver:
                raise MacroError("$receiver used on a row without receiver")
            return receiver
        return value

    def _resolve_target(self, value: str) -> Tuple[str, Optional[TokenDefinition]]:
        token = self.definitions.find_token(value)
        if token is not None:
            return token.address, token
        if is_address(value):
            address = to_checksum_address(value)
            symbol = self.definitions.find_symbol(address)
            return address, self.definitions.tokens[symbol] if symbol else None
        raise MacroError(f"Unknown token or invalid address: {value}")

    def _convert(self, abi_type: str, value: str, token: Optional[TokenDefinition]) -> Any:
        """Convert a textual macro argument to the Python value eth-abi expects."""
        if abi_type == "address":
            if is_address(value):
                return to_checksum_address(value)
            named = self.definitions.find_token(value)
            if named is not None:
                return named.address
            raise MacroError(f"Invalid address argument: {value}")

        if abi_type.startswith("uint") or abi_type.startswith("int"):
            return _parse_amount(value, token)

        if abi_type == "bool":
            lowered = value.lower()
            if lowered in ("true", "1"):
                return True
            if lowered in ("false", "0"):
                return False
            raise MacroError(f"Invalid bool argument: {value}")

        if abi_type.startswith("bytes"):
            text = value[2:] if value[:2] in ("0x", "0X") else value
            try:
                return bytes.fromhex(text)
            except ValueError:
                raise MacroError(f"Invalid bytes argument: {value}")

        if abi_type == "string":
            return value

        raise MacroError(f"Unsupported argument type: {abi_type}")


def _split_arguments(text: str) -> List[str]:
    """Split macro arguments on commas, honouring double quotes."""
    if not text.strip():
        return []
    row = next(csv.reader([text], skipinitialspace=True))
    return [arg.strip() for arg in row]


def _parse_signature(signature: str) -> Tuple[str, List[str]]:
    match = SIGNATURE_PATTERN.match(signature.replace(" ", ""))
    if match is None:
        raise MacroError(f"Unsupported signature: {signature}")
    types = [t for t in match.group("types").split(",") if t]
    return match.group("function"), types


def _parse_amount(value: str, token: Optional[TokenDefinition]) -> int:
    """
    Parse an integer argument.

    Integer literals are taken as raw units. Decimal literals are scaled by
    the target token's decimals.
    """
    text = value.replace("_", "")
    if text[:2] in ("0x", "0X"):
        try:
            return int(text, 16)
        except ValueError:
            raise MacroError(f"Invalid integer argument: {value}")

    if "." not in text:
        try:
            return int(text)
        except ValueError:
            raise MacroError(f"Invalid integer argument: {value}")

    if token is None:
        raise MacroError(f"Decimal amount {value} needs a token with known decimals")
    with localcontext() as ctx:
        ctx.prec = 100
        try:
            scaled = Decimal(text) * (Decimal(10) ** token.decimals)
        except InvalidOperation:
            raise MacroError(f"Invalid amount argument: {value}")
    if scaled != scaled.to_integral_value():
        raise MacroError(f"Amount {value} has more than {token.decimals} decimals")
    return int(scaled)
