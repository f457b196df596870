"""
Statement row normalization

Turns one raw statement row (column header -> cell value) into a normalized
transaction or a skip reason. No database access happens here; persistence is
handled by the importer.
"""
import logging
import math
import numbers
import re
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone, tzinfo
from typing import Any, Dict, Optional, Sequence

import pandas as pd

from app.services.transaction_classifier import transaction_classifier, INCOME

logger = logging.getLogger(__name__)

# Header fragments, most specific first
DATE_FIELDS = ("Datum knjiženja", "Datum")
DIRECTION_FIELDS = ("Uplata/isplata", "Uplata")
INCOME_AMOUNT_FIELDS = ("Iznos uplate", "uplate")
EXPENSE_AMOUNT_FIELDS = ("Iznos isplate", "isplate")
DESCRIPTION_FIELDS = (
    "Opis plaćanja",
    "Opis",
    "Naziv primatelja",
    "Naziv platitelja",
    "Krajnji primatelj",
    "Stvarni dužnik",
)
DEFAULT_DESCRIPTION = "Imported transaction"

MIN_FILLED_CELLS = 3
MIN_YEAR = 1900
MAX_YEAR = 2100

# Spreadsheet serial day of 1970-01-01
SERIAL_EPOCH_DAY = 25569
MS_PER_DAY = 86400 * 1000
UNIX_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

DMY_PATTERN = re.compile(r'^(\d{1,2})/(\d{1,2})/(\d{4})$')
ISO_PATTERN = re.compile(r'^\d{4}-\d{2}-\d{2}(?:$|[T ])')
DIGIT_GROUP_PATTERN = re.compile(r'\d+')
LEADING_NUMBER_PATTERN = re.compile(r'^[+-]?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][+-]?\d+)?')

# Skip reasons
SKIP_BLANK = "blank or summary row"
SKIP_NO_DATE = "no date value"
SKIP_INVALID_DATE = "invalid date"
SKIP_NO_DIRECTION = "no transaction type"
SKIP_INVALID_AMOUNT = "missing or invalid amount"


@dataclass(frozen=True)
class NormalizedTransaction:
    amount: float
    date: date
    kind: str
    description: str


@dataclass(frozen=True)
class RowOutcome:
    """Either an accepted transaction or the reason the row was skipped."""
    transaction: Optional[NormalizedTransaction] = None
    skip_reason: Optional[str] = None

    @property
    def accepted(self) -> bool:
        return self.transaction is not None

    @classmethod
    def accept(cls, transaction: NormalizedTransaction) -> "RowOutcome":
        return cls(transaction=transaction)

    @classmethod
    def skip(cls, reason: str) -> "RowOutcome":
        return cls(skip_reason=reason)


def _is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return value.strip() == ""
    try:
        return bool(pd.isna(value))
    except (TypeError, ValueError):
        return False


def _is_number(value: Any) -> bool:
    return isinstance(value, numbers.Real) and not isinstance(value, bool)


def _round_half_up(value: float) -> float:
    return math.floor(value * 100 + 0.5) / 100


def _year_in_range(value: date) -> bool:
    return MIN_YEAR <= value.year <= MAX_YEAR


def find_column_value(row: Dict[str, Any], fragments: Sequence[str]) -> Any:
    """
    Look up a cell by header fragment.

    For each fragment in order, the first column whose header contains it
    (case-insensitive) is consulted; an empty cell moves on to the next
    fragment. Strings are returned trimmed, other values unchanged.
    """
    for fragment in fragments:
        needle = fragment.lower()
        key = next((k for k in row if needle in str(k).lower()), None)
        if key is None:
            continue
        value = row[key]
        if _is_blank(value):
            continue
        return value.strip() if isinstance(value, str) else value
    return None


def _serial_to_date(serial: float, tz: tzinfo) -> Optional[date]:
    try:
        instant = UNIX_EPOCH + timedelta(milliseconds=(serial - SERIAL_EPOCH_DAY) * MS_PER_DAY)
        return instant.astimezone(tz).date()
    except (OverflowError, ValueError):
        return None


def _parse_date_string(text: str) -> Optional[date]:
    text = text.strip()
    if text.endswith('/'):
        text = text[:-1]

    match = DMY_PATTERN.match(text)
    if match:
        day, month, year = (int(part) for part in match.groups())
        try:
            return date(year, month, day)
        except ValueError:
            pass

    # A lone number ("2025", "12") is a year or a count, not a date
    if len(DIGIT_GROUP_PATTERN.findall(text)) < 2:
        return None

    # ISO dates are year-first even though statements are day-first
    if ISO_PATTERN.match(text):
        try:
            return date.fromisoformat(text[:10])
        except ValueError:
            return None

    try:
        parsed = pd.to_datetime(text, dayfirst=True, errors='coerce')
    except (ValueError, OverflowError, TypeError):
        return None
    if pd.isna(parsed):
        return None
    return parsed.date()


def parse_date(value: Any, tz: tzinfo = timezone.utc) -> Optional[date]:
    """
    Normalize a statement date cell to a calendar day.

    Accepts spreadsheet serial numbers (converted in ``tz``), date/datetime
    values and strings (DD/MM/YYYY first, then ISO, then generic day-first
    parsing of strings with at least two numeric parts).
    Returns None when unparseable or outside [1900, 2100].
    """
    result = None
    if _is_number(value):
        if math.isfinite(value):
            result = _serial_to_date(float(value), tz)
    elif isinstance(value, datetime):
        result = None if pd.isna(value) else value.date()
    elif isinstance(value, date):
        result = value
    elif isinstance(value, str):
        result = _parse_date_string(value)

    if result is None or not _year_in_range(result):
        return None
    return result


def parse_amount(value: Any) -> Optional[float]:
    """
    Normalize an amount cell to a positive value rounded to 2 decimals.

    Strings use the decimal-comma convention: "1.234,56" and "1234,56" both
    give 1234.56. Zero, negative and unparseable amounts return None.
    """
    if _is_number(value):
        amount = float(value)
    elif isinstance(value, str):
        text = re.sub(r'\s', '', value)
        last_comma = text.rfind(',')
        if last_comma > 0 and '.' in text[:last_comma]:
            text = text.replace('.', '')
        text = text.replace(',', '.', 1)
        match = LEADING_NUMBER_PATTERN.match(text)
        if not match:
            return None
        amount = float(match.group(0))
    else:
        return None

    if not math.isfinite(amount) or amount <= 0:
        return None

    amount = _round_half_up(amount)
    return amount if amount > 0 else None


def extract_description(row: Dict[str, Any]) -> str:
    value = find_column_value(row, DESCRIPTION_FIELDS)
    if value is None:
        return DEFAULT_DESCRIPTION
    return str(value).strip() or DEFAULT_DESCRIPTION


def count_filled_cells(row: Dict[str, Any]) -> int:
    return sum(1 for value in row.values() if not _is_blank(value))


def normalize_row(row: Dict[str, Any], tz: tzinfo = timezone.utc) -> RowOutcome:
    """
    Run one raw row through date, kind, amount and description extraction.

    Args:
        row: Raw statement row keyed by normalized header
        tz: Timezone used for spreadsheet serial dates

    Returns:
        RowOutcome with the normalized transaction or a skip reason
    """
    if count_filled_cells(row) < MIN_FILLED_CELLS:
        return RowOutcome.skip(SKIP_BLANK)

    date_value = find_column_value(row, DATE_FIELDS)
    if date_value is None:
        return RowOutcome.skip(SKIP_NO_DATE)

    posted = parse_date(date_value, tz)
    if posted is None:
        return RowOutcome.skip(f"{SKIP_INVALID_DATE}: {date_value!r}")

    direction = find_column_value(row, DIRECTION_FIELDS)
    if direction is None:
        return RowOutcome.skip(SKIP_NO_DIRECTION)

    kind = transaction_classifier.classify_direction(direction)
    amount_fields = INCOME_AMOUNT_FIELDS if kind == INCOME else EXPENSE_AMOUNT_FIELDS
    amount = parse_amount(find_column_value(row, amount_fields))
    if amount is None:
        return RowOutcome.skip(SKIP_INVALID_AMOUNT)

    return RowOutcome.accept(NormalizedTransaction(
        amount=amount,
        date=posted,
        kind=kind,
        description=extract_description(row),
    ))
