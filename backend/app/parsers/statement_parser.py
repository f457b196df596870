"""
Bank Statement Parser

Reads an uploaded bank statement export into raw rows keyed by column header.

Supports:
- CSV format (comma, semicolon or tab delimited; UTF-8 or Windows-1250)
- Excel workbooks (.xlsx, first sheet only)

Croatian bank exports put a few title/metadata rows above the real header, so
the header row is located heuristically (see ``locate_header_row``).
"""

import csv
import io
import re
import unicodedata
from pathlib import Path
from typing import List, Dict, Any, Optional

import pandas as pd
import logging

logger = logging.getLogger(__name__)

CSV_EXTENSIONS = {'.csv'}
EXCEL_EXTENSIONS = {'.xlsx', '.xlsm'}
XLSX_SIGNATURE = b'PK\x03\x04'

# Encodings tried in order when decoding CSV exports
CSV_ENCODINGS = ['utf-8-sig', 'cp1250', 'latin-1']
CSV_DELIMITERS = ',;\t'

MAX_HEADER_SCAN_ROWS = 10
MAX_HEADER_SCAN_COLUMNS = 10
MIN_HEADER_SIGNALS = 2

# Every fragment of a signal must appear in the same header cell
HEADER_SIGNALS = (
    ('date', ('datum', 'knjiženja')),  # "Datum knjiženja", not "Datum i vrijeme kreiranja"
    ('direction', ('uplata', 'isplata')),  # "Uplata/isplata"
    ('amount', ('iznos',)),  # "Iznos uplate" / "Iznos isplate"
)

INVALID_FORMAT_MESSAGE = "Invalid file format. Please upload a valid CSV or Excel file."
NO_DATA_MESSAGE = "No data found in file"


class StatementFileError(Exception):
    """Raised when an uploaded statement cannot be read as a whole."""


def is_empty_cell(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return value == ""
    try:
        return bool(pd.isna(value))
    except (TypeError, ValueError):
        return False


def normalize_header(value: Any) -> str:
    """Collapse whitespace/newlines in a header cell and trim it."""
    text = unicodedata.normalize('NFC', str(value))
    return re.sub(r'\s+', ' ', text).strip()


def locate_header_row(grid: pd.DataFrame) -> int:
    """
    Find the header row of a statement grid.

    Scans the first rows/columns and picks the first row where at least two of
    the date/direction/amount header signals are present. Defaults to row 0.

    Args:
        grid: Cells of the first sheet, no header applied

    Returns:
        Zero-based index of the header row
    """
    row_count = min(MAX_HEADER_SCAN_ROWS, len(grid.index))
    column_count = min(MAX_HEADER_SCAN_COLUMNS, len(grid.columns))

    for row_index in range(row_count):
        found = set()
        for column_index in range(column_count):
            cell = grid.iat[row_index, column_index]
            if is_empty_cell(cell):
                continue
            text = normalize_header(cell).lower()
            for signal, fragments in HEADER_SIGNALS:
                if all(fragment in text for fragment in fragments):
                    found.add(signal)

        if len(found) >= MIN_HEADER_SIGNALS:
            logger.debug(f"Header row detected at index {row_index} (signals: {sorted(found)})")
            return row_index

    return 0


def _header_keys(header_cells: List[Any]) -> List[str]:
    """Build unique row keys from the header row cells."""
    keys = []
    seen: Dict[str, int] = {}
    for cell in header_cells:
        base = '__EMPTY' if is_empty_cell(cell) else normalize_header(cell)
        if not base:
            base = '__EMPTY'
        occurrence = seen.get(base, 0)
        seen[base] = occurrence + 1
        keys.append(base if occurrence == 0 else f"{base}_{occurrence}")
    return keys


def rows_from_grid(grid: pd.DataFrame, header_row: int) -> List[Dict[str, Any]]:
    """Re-read the grid into row dicts keyed by the header row's cells."""
    if len(grid.index) <= header_row:
        return []

    keys = _header_keys(list(grid.iloc[header_row]))
    rows = []
    for _, cells in grid.iloc[header_row + 1:].iterrows():
        row = {}
        for key, value in zip(keys, cells.tolist()):
            row[key] = "" if is_empty_cell(value) else value
        rows.append(row)
    return rows


class StatementParser:
    """Parser for bank statement exports in CSV and XLSX formats."""

    def __init__(self, content: bytes, filename: Optional[str] = None):
        """
        Initialize the parser.

        Args:
            content: Raw bytes of the uploaded file
            filename: Original filename, used for format detection
        """
        self.content = content or b''
        self.filename = filename or ''
        self.file_extension = Path(self.filename).suffix.lower()

    def parse(self) -> List[Dict[str, Any]]:
        """
        Parse the statement file.

        Returns:
            Raw rows below the detected header row

        Raises:
            StatementFileError: unreadable container or no rows after the header
        """
        grid = self.read_grid()
        header_row = locate_header_row(grid)
        rows = rows_from_grid(grid, header_row)

        if not rows:
            raise StatementFileError(NO_DATA_MESSAGE)

        logger.info(f"Parsed {len(rows)} rows from {self.filename or 'upload'} (header row {header_row})")
        logger.debug(f"Normalized column headers: {list(rows[0].keys())}")
        return rows

    def read_grid(self) -> pd.DataFrame:
        file_format = self._detect_format()
        if file_format == 'excel':
            return self._read_excel()
        return self._read_csv()

    def _detect_format(self) -> str:
        if self.content.startswith(XLSX_SIGNATURE) or self.file_extension in EXCEL_EXTENSIONS:
            return 'excel'
        if self.file_extension in CSV_EXTENSIONS or not self.file_extension:
            return 'csv'
        raise StatementFileError(INVALID_FORMAT_MESSAGE)

    def _read_excel(self) -> pd.DataFrame:
        try:
            grid = pd.read_excel(
                io.BytesIO(self.content),
                sheet_name=0,
                header=None,
                dtype=object,
                engine='openpyxl',
            )
        except Exception as e:
            logger.warning(f"Error reading Excel file {self.filename}: {e}")
            raise StatementFileError(INVALID_FORMAT_MESSAGE) from e
        return grid

    def _decode(self) -> str:
        if b'\x00' in self.content:
            raise StatementFileError(INVALID_FORMAT_MESSAGE)

        for encoding in CSV_ENCODINGS:
            try:
                return self.content.decode(encoding)
            except UnicodeDecodeError:
                continue
        raise StatementFileError(INVALID_FORMAT_MESSAGE)

    def _read_csv(self) -> pd.DataFrame:
        """
        Parse CSV statement.

        Rows have different lengths (title rows above the header), so the file
        is read with the csv module and padded into a grid.

        CSV Format:
        Izvod po računu;;;
        Datum knjiženja;Uplata/isplata;Iznos uplate;Iznos isplate;Opis plaćanja
        01/12/2025;Uplata;100,00;;Plaća
        """
        text = self._decode()
        sample = text[:4096]
        try:
            dialect = csv.Sniffer().sniff(sample, delimiters=CSV_DELIMITERS)
            delimiter = dialect.delimiter
        except csv.Error:
            delimiter = ';' if sample.count(';') > sample.count(',') else ','

        try:
            records = list(csv.reader(io.StringIO(text), delimiter=delimiter))
        except csv.Error as e:
            logger.warning(f"Error reading CSV file {self.filename}: {e}")
            raise StatementFileError(INVALID_FORMAT_MESSAGE) from e

        width = max((len(record) for record in records), default=0)
        if width == 0:
            return pd.DataFrame(dtype=object)

        padded = [record + [''] * (width - len(record)) for record in records]
        return pd.DataFrame(padded, dtype=object)


def parse_statement(content: bytes, filename: Optional[str] = None) -> List[Dict[str, Any]]:
    """
    Convenience function to parse a bank statement.

    Args:
        content: Raw bytes of the statement file
        filename: Original filename

    Returns:
        Raw rows keyed by normalized column header
    """
    parser = StatementParser(content, filename)
    return parser.parse()
