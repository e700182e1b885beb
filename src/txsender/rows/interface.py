"""
Row source interface.

Defines the contract for batch files: an ordered table of transaction
intents that can be read once and annotated with results by position.
"""

from enum import Enum
from typing import List, Optional, Protocol, Union, runtime_checkable

from txsender.core.intent import TransactionIntent


class RowSourceError(Exception):
    """Raised when a batch file cannot be read, written or flushed."""
    pass


class RowSourceKind(str, Enum):
    """Supported batch file formats."""
    TEXT = "text"
    SPREADSHEET = "spreadsheet"


# Spreadsheet layout: header in row 1, fields in columns A-E, result in F
SPREADSHEET_OUTPUT_COLUMN = "F"
SPREADSHEET_FIRST_DATA_ROW = 2


@runtime_checkable
class RowSource(Protocol):
    """
    Ordered table of transaction intent rows.

    Row order is the unit of correlation between intents and output
    positions, so implementations must preserve it.
    """

    kind: RowSourceKind

    def read_all(self) -> List[TransactionIntent]:
        """
        Read every row of the table.

        Raises:
            RowSourceError: If the table cannot be read
        """
        ...

    def write_string(self, position: str, value: str) -> None:
        """
        Write a value at a source specific position.

        Raises:
            RowSourceError: If the position is unknown
        """
        ...

    def flush(self) -> None:
        """
        Persist all writes.

        Raises:
            RowSourceError: If the table cannot be saved
        """
        ...


def output_coordinate(kind: RowSourceKind, index: int) -> str:
    """
    Position where the result of row `index` is written.

    Text rows are addressed by their index; spreadsheet rows by the output
    cell, e.g. row 5 is written to F7.
    """
    if kind == RowSourceKind.SPREADSHEET:
        return f"{SPREADSHEET_OUTPUT_COLUMN}{index + SPREADSHEET_FIRST_DATA_ROW}"
    return str(index)


def parse_row(fields: List[Optional[object]]) -> TransactionIntent:
    """
    Build an intent from the raw fields of a row.

    Fields: sender, receiver, value, payload, passphrase. Missing trailing
    fields are treated as empty. A value that is not an integer is kept as
    text, so the row is rejected by validate_intent only when it is sent.
    """
    values = [_cell_text(f) for f in list(fields)[:5]]
    values += [""] * (5 - len(values))
    sender, receiver, value, payload, passphrase = values

    return TransactionIntent(
        sender=sender,
        receiver=receiver or None,
        value=_parse_value(value),
        payload=payload,
        passphrase=passphrase or None,
    )


def _parse_value(value: str) -> Union[int, str]:
    if not value:
        return 0
    try:
        return int(value)
    except ValueError:
        pass
    try:
        as_float = float(value)
    except ValueError:
        return value
    return int(as_float) if as_float.is_integer() else value


def _cell_text(value: Optional[object]) -> str:
    if value is None:
        return ""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value).strip()
