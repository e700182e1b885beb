"""
Spreadsheet (.xlsx) batch files.

Row 1 holds headers. Each following row holds sender, receiver, value,
payload and passphrase in columns A-E; the transaction hash is written to
column F of the same row.
"""

from pathlib import Path
from typing import List, Optional
from zipfile import BadZipFile

import structlog
from openpyxl import load_workbook
from openpyxl.utils.exceptions import InvalidFileException

from txsender.core.intent import TransactionIntent
from txsender.rows.interface import (
    SPREADSHEET_FIRST_DATA_ROW,
    RowSourceError,
    RowSourceKind,
    parse_row,
)

logger = structlog.get_logger(__name__)


class SpreadsheetRowSource:
    """Row source backed by an Excel workbook."""

    kind = RowSourceKind.SPREADSHEET

    def __init__(self, path: str, sheet: Optional[str] = None):
        """
        Open a workbook.

        Args:
            path: Path to the .xlsx file
            sheet: Worksheet name or zero-based index (first sheet if None)
        """
        self.path = Path(path)
        try:
            self._workbook = load_workbook(str(self.path))
        except (OSError, BadZipFile, InvalidFileException, KeyError, ValueError) as e:
            raise RowSourceError(f"Cannot open workbook {self.path}: {e}")
        self._sheet = self._select_sheet(sheet)

    def _select_sheet(self, sheet: Optional[str]):
        if sheet is None or sheet == "":
            return self._workbook.worksheets[0]
        if sheet in self._workbook.sheetnames:
            return self._workbook[sheet]
        try:
            return self._workbook.worksheets[int(sheet)]
        except (ValueError, IndexError):
            raise RowSourceError(f"Worksheet not found in {self.path}: {sheet}")

    def read_all(self) -> List[TransactionIntent]:
        intents = []
        rows = self._sheet.iter_rows(
            min_row=SPREADSHEET_FIRST_DATA_ROW,
            max_col=5,
            values_only=True,
        )
        for cells in rows:
            if all(cell is None or str(cell).strip() == "" for cell in cells):
                break
            intents.append(parse_row(list(cells)))

        logger.info(
            "batch_file_read",
            path=str(self.path),
            sheet=self._sheet.title,
            rows=len(intents),
        )
        return intents

    def write_string(self, position: str, value: str) -> None:
        try:
            self._sheet[position] = value
        except (ValueError, KeyError) as e:
            raise RowSourceError(f"Unknown cell position {position!r}: {e}")

    def flush(self) -> None:
        try:
            self._workbook.save(str(self.path))
        except OSError as e:
            raise RowSourceError(f"Cannot save workbook {self.path}: {e}")
        logger.info("batch_file_flushed", path=str(self.path), sheet=self._sheet.title)
