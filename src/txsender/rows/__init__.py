"""
Row Source module.

Reads transaction intents from batch files and writes results back by
position. The file format is selected by extension.
"""

from pathlib import Path
from typing import Optional

from txsender.rows.interface import (
    RowSource,
    RowSourceError,
    RowSourceKind,
    output_coordinate,
)
from txsender.rows.spreadsheet import SpreadsheetRowSource
from txsender.rows.text import TextRowSource

SPREADSHEET_SUFFIXES = (".xlsx",)


def open_row_source(
    path: str,
    sheet: Optional[str] = None,
    delimiter: str = ",",
) -> RowSource:
    """
    Open a batch file.

    Args:
        path: Path to the batch file
        sheet: Worksheet for spreadsheet files
        delimiter: Field delimiter for text files

    Raises:
        RowSourceError: If the file does not exist or cannot be opened
    """
    file_path = Path(path)
    if not file_path.is_file():
        raise RowSourceError(f"Batch file not found: {path}")

    if file_path.suffix.lower() in SPREADSHEET_SUFFIXES:
        return SpreadsheetRowSource(path, sheet=sheet)
    return TextRowSource(path, delimiter=delimiter)


__all__ = [
    "RowSource",
    "RowSourceError",
    "RowSourceKind",
    "SpreadsheetRowSource",
    "TextRowSource",
    "open_row_source",
    "output_coordinate",
]
