"""
Delimited text batch files.

One row per line: sender, receiver, value, payload, passphrase. Blank lines
and lines starting with '#' are kept but are not rows. The transaction hash
of a row is written as a sixth field.
"""

import csv
import io
import os
import tempfile
from pathlib import Path
from typing import Dict, List, Optional

import structlog

from txsender.core.intent import TransactionIntent
from txsender.rows.interface import RowSourceError, RowSourceKind, parse_row

logger = structlog.get_logger(__name__)

OUTPUT_FIELD = 5


class TextRowSource:
    """Row source backed by a delimited text file."""

    kind = RowSourceKind.TEXT

    def __init__(self, path: str, delimiter: str = ","):
        self.path = Path(path)
        self.delimiter = delimiter
        self._lines: List[str] = []
        self._fields: Dict[int, List[str]] = {}
        self._row_lines: List[int] = []
        self._dirty = False

    def read_all(self) -> List[TransactionIntent]:
        try:
            content = self.path.read_text(encoding="utf-8")
        except OSError as e:
            raise RowSourceError(f"Cannot read batch file {self.path}: {e}")

        self._lines = content.splitlines()
        self._fields = {}
        self._row_lines = []

        intents = []
        for line_no, line in enumerate(self._lines):
            stripped = line.strip()
            if not stripped or stripped.startswith("#"):
                continue
            fields = next(csv.reader([line], delimiter=self.delimiter, skipinitialspace=True))
            self._row_lines.append(line_no)
            self._fields[line_no] = fields
            intents.append(parse_row(fields))

        logger.info("batch_file_read", path=str(self.path), rows=len(intents))
        return intents

    def write_string(self, position: str, value: str) -> None:
        try:
            index = int(position)
            line_no = self._row_lines[index]
        except (ValueError, IndexError):
            raise RowSourceError(f"Unknown row position: {position!r}")

        fields = self._fields[line_no]
        fields += [""] * (OUTPUT_FIELD + 1 - len(fields))
        fields[OUTPUT_FIELD] = value
        self._lines[line_no] = self._format(fields)
        self._dirty = True

    def flush(self) -> None:
        if not self._dirty:
            return

        content = "\n".join(self._lines) + "\n"
        tmp_path = None
        try:
            fd, tmp_path = tempfile.mkstemp(dir=self.path.parent, prefix=f".{self.path.name}.", suffix=".tmp")
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(content)
            os.replace(tmp_path, self.path)
        except OSError as e:
            _remove_quietly(tmp_path)
            raise RowSourceError(f"Cannot write batch file {self.path}: {e}")

        self._dirty = False
        logger.info("batch_file_flushed", path=str(self.path))

    def _format(self, fields: List[str]) -> str:
        buffer = io.StringIO()
        writer = csv.writer(buffer, delimiter=self.delimiter, lineterminator="")
        writer.writerow(fields)
        return buffer.getvalue()


def _remove_quietly(path: Optional[str]) -> None:
    if path and os.path.exists(path):
        os.unlink(path)
