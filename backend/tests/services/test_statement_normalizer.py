from datetime import date, datetime, timezone
from zoneinfo import ZoneInfo

import pandas as pd
import pytest

from app.services.statement_normalizer import (
    DEFAULT_DESCRIPTION,
    SKIP_BLANK,
    SKIP_INVALID_AMOUNT,
    SKIP_NO_DATE,
    SKIP_NO_DIRECTION,
    extract_description,
    find_column_value,
    normalize_row,
    parse_amount,
    parse_date,
)


def _row(**overrides):
    row = {
        "Datum knjiženja": "01/12/2025",
        "Uplata/isplata": "Isplata",
        "Iznos uplate": "",
        "Iznos isplate": "45,50",
        "Opis plaćanja": "LIDL HRVATSKA",
    }
    row.update(overrides)
    return row


@pytest.mark.parametrize(
    "serial,expected",
    [
        (25569, date(1970, 1, 1)),
        (25570, date(1970, 1, 2)),
        (25569.75, date(1970, 1, 1)),
        (45000, date(2023, 3, 15)),
    ],
)
def test_parse_date_from_spreadsheet_serial(serial, expected):
    assert parse_date(serial) == expected


def test_parse_date_serial_uses_import_timezone():
    # 23:45 UTC is already the next day in Zagreb
    serial = 25569 + (23 * 60 + 45) / (24 * 60)

    assert parse_date(serial, timezone.utc) == date(1970, 1, 1)
    assert parse_date(serial, ZoneInfo("Europe/Zagreb")) == date(1970, 1, 2)


@pytest.mark.parametrize(
    "value,expected",
    [
        ("01/12/2025", date(2025, 12, 1)),
        ("1/2/2025", date(2025, 2, 1)),
        ("01/12/2025/", date(2025, 12, 1)),
        (" 15/06/2024 ", date(2024, 6, 15)),
        ("2025-12-01", date(2025, 12, 1)),
        ("2025-12-01T10:30:00", date(2025, 12, 1)),
        ("03.04.2025", date(2025, 4, 3)),
        ("5 Dec 2025", date(2025, 12, 5)),
    ],
)
def test_parse_date_from_string(value, expected):
    assert parse_date(value) == expected


def test_parse_date_accepts_native_dates():
    assert parse_date(date(2025, 5, 4)) == date(2025, 5, 4)
    assert parse_date(datetime(2025, 5, 4, 18, 30)) == date(2025, 5, 4)
    assert parse_date(pd.Timestamp("2025-05-04 08:00")) == date(2025, 5, 4)


@pytest.mark.parametrize(
    "value",
    [
        "01/01/1899",
        "01/01/2101",
        0,
        10 ** 9,
        "not a date",
        "2025",
        "12",
        "Dec 2025",
        "",
        None,
        True,
        date(1850, 1, 1),
        float("nan"),
    ],
)
def test_parse_date_rejects_unparseable_or_out_of_range(value):
    assert parse_date(value) is None


@pytest.mark.parametrize(
    "value,expected",
    [
        ("1.234,56", 1234.56),
        ("1234,56", 1234.56),
        (" 1 234,56 ", 1234.56),
        ("45,50", 45.5),
        ("100", 100.0),
        ("12,5 EUR", 12.5),
        (100, 100.0),
        (45.5, 45.5),
        (0.125, 0.13),
        ("0,125", 0.13),
    ],
)
def test_parse_amount(value, expected):
    assert parse_amount(value) == expected


@pytest.mark.parametrize(
    "value",
    ["0", "0,00", "-5,00", "abc", "", None, 0, -3.2, 0.001, True, float("inf")],
)
def test_parse_amount_rejects_non_positive_or_invalid(value):
    assert parse_amount(value) is None


def test_find_column_value_uses_fragment_order_and_skips_empty_cells():
    row = {
        "Datum i vrijeme kreiranja": "30/11/2025",
        "Datum knjiženja": "",
        "Iznos": 5,
    }

    # Empty posting date falls through to the next fragment
    assert find_column_value(row, ["Datum knjiženja", "Datum"]) == "30/11/2025"
    assert find_column_value(row, ["iznos"]) == 5
    assert find_column_value(row, ["Opis"]) is None


def test_find_column_value_trims_strings():
    assert find_column_value({"Opis": "  Kava  "}, ["opis"]) == "Kava"


def test_extract_description_priority_and_fallback():
    row = {"Naziv primatelja": "Konzum d.d.", "Opis plaćanja": "Kupnja"}
    assert extract_description(row) == "Kupnja"

    row = {"Naziv primatelja": "Konzum d.d.", "Opis plaćanja": ""}
    assert extract_description(row) == "Konzum d.d."

    assert extract_description({"Iznos": "1,00"}) == DEFAULT_DESCRIPTION


def test_normalize_row_accepts_expense():
    outcome = normalize_row(_row())

    assert outcome.accepted
    transaction = outcome.transaction
    assert transaction.kind == "expense"
    assert transaction.amount == 45.5
    assert transaction.date == date(2025, 12, 1)
    assert transaction.description == "LIDL HRVATSKA"


def test_normalize_row_income_reads_credit_amount_column():
    outcome = normalize_row(_row(**{
        "Uplata/isplata": "Uplata",
        "Iznos uplate": "100,00",
        "Iznos isplate": "999,00",
    }))

    assert outcome.transaction.kind == "income"
    assert outcome.transaction.amount == 100.0


def test_normalize_row_with_both_keywords_is_expense():
    outcome = normalize_row(_row(**{"Uplata/isplata": "Uplata/isplata"}))

    assert outcome.transaction.kind == "expense"


def test_normalize_row_expense_without_debit_amount_is_skipped():
    outcome = normalize_row(_row(**{"Iznos uplate": "45,50", "Iznos isplate": ""}))

    assert not outcome.accepted
    assert outcome.skip_reason == SKIP_INVALID_AMOUNT


@pytest.mark.parametrize(
    "row,reason",
    [
        ({"Datum knjiženja": "01/12/2025", "Uplata/isplata": "Uplata", "Opis": ""}, SKIP_BLANK),
        ({"a": "", "b": None, "c": float("nan"), "d": "x"}, SKIP_BLANK),
        ({"Opis": "x", "Iznos isplate": "1,00", "Uplata/isplata": "Isplata"}, SKIP_NO_DATE),
        (
            {"Datum knjiženja": "01/12/2025", "Iznos isplate": "1,00", "Opis": "x"},
            SKIP_NO_DIRECTION,
        ),
    ],
)
def test_normalize_row_skip_reasons(row, reason):
    outcome = normalize_row(row)

    assert not outcome.accepted
    assert outcome.skip_reason == reason


def test_normalize_row_rejects_out_of_range_year():
    outcome = normalize_row(_row(**{"Datum knjiženja": "01/12/2150"}))

    assert not outcome.accepted
    assert outcome.skip_reason.startswith("invalid date")


def test_normalize_row_description_fallback():
    outcome = normalize_row(_row(**{"Opis plaćanja": ""}))

    assert outcome.transaction.description == DEFAULT_DESCRIPTION
