"""
Token definition file.

Loads the table of known token contracts and custom macro signatures
used when expanding macro payloads.
"""

import json
from pathlib import Path
from typing import Dict, Optional

import structlog
from eth_utils import is_address, to_checksum_address
from pydantic import BaseModel, Field, ValidationError, field_validator

logger = structlog.get_logger(__name__)


class MacroDefinitionError(Exception):
    """Raised when the token definition file cannot be loaded."""
    pass


class TokenDefinition(BaseModel):
    """A token contract known by symbol."""

    address: str
    decimals: int = Field(default=18, ge=0, le=77)

    @field_validator("address")
    @classmethod
    def _checksum(cls, value: str) -> str:
        if not is_address(value):
            raise ValueError(f"not an address: {value}")
        return to_checksum_address(value)


class TokenDefinitions(BaseModel):
    """
    Contents of a token definition file.

    Example::

        {
            "tokens": {"USDT": {"address": "0xdAC1...", "decimals": 6}},
            "macros": {"mint": "mint(address,uint256)"}
        }
    """

    tokens: Dict[str, TokenDefinition] = Field(default_factory=dict)
    macros: Dict[str, str] = Field(default_factory=dict)

    def find_token(self, symbol: str) -> Optional[TokenDefinition]:
        """Look up a token by symbol, case-insensitively."""
        if symbol in self.tokens:
            return self.tokens[symbol]
        lowered = symbol.lower()
        for name, token in self.tokens.items():
            if name.lower() == lowered:
                return token
        return None

    def find_symbol(self, address: str) -> Optional[str]:
        """Reverse lookup of a token symbol by contract address."""
        for name, token in self.tokens.items():
            if token.address.lower() == address.lower():
                return name
        return None


def load_token_definitions(path: str) -> TokenDefinitions:
    """
    Load and validate a token definition file.

    Args:
        path: Path to the JSON definition file

    Returns:
        Parsed definitions

    Raises:
        MacroDefinitionError: If the file is missing or invalid
    """
    file_path = Path(path)
    if not file_path.exists():
        raise MacroDefinitionError(f"Token definition file not found: {path}")

    try:
        data = json.loads(file_path.read_text(encoding="utf-8"))
        definitions = TokenDefinitions.model_validate(data)
    except (json.JSONDecodeError, ValidationError) as e:
        raise MacroDefinitionError(f"Invalid token definition file {path}: {e}")

    logger.info(
        "token_definitions_loaded",
        path=path,
        tokens=len(definitions.tokens),
        macros=len(definitions.macros),
    )
    return definitions
