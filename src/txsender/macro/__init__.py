"""
Macro module.

Expands macro payloads of batch rows into concrete contract calls.
"""

from txsender.macro.resolver import (
    MacroError,
    MacroExpansion,
    MacroResolver,
    is_macro_definition,
)
from txsender.macro.tokens import MacroDefinitionError, TokenDefinitions, load_token_definitions

__all__ = [
    "MacroError",
    "MacroExpansion",
    "MacroResolver",
    "MacroDefinitionError",
    "TokenDefinitions",
    "is_macro_definition",
    "load_token_definitions",
]
