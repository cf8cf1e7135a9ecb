import time
from datetime import date, timedelta

from data_loader import parse_csv, parse_dates
from filters import filter_by_date_range, filter_by_values


ROWS = [
    {"Date": "2024-01-01", "Branch": "North", "Sales": 1},
    {"Date": "2024-01-31 18:30", "Branch": "South", "Sales": 2},
    {"Date": "2024-02-01", "Branch": "North", "Sales": 3},
    {"Date": "not a date", "Branch": "East", "Sales": 4},
]


def test_missing_arguments_are_a_no_op():
    assert filter_by_date_range(ROWS, None, "2024-01-01", "2024-01-31").rows is ROWS
    assert filter_by_date_range(ROWS, "Date", "", "2024-01-31").rows is ROWS
    result = filter_by_date_range(ROWS, "Date", "2024-01-01", None)
    assert result.rows is ROWS
    assert not result.applied
    assert result.warnings == []


def test_end_date_includes_the_whole_day():
    result = filter_by_date_range(ROWS, "Date", "2024-01-01", "2024-01-31")
    assert result.applied
    assert [r["Sales"] for r in result.rows] == [1, 2]


def test_invalid_bounds_warn_and_return_rows_unchanged():
    result = filter_by_date_range(ROWS, "Date", "yesterday-ish", "2024-01-31")
    assert result.rows is ROWS
    assert result.warnings


def test_inverted_range_warns_and_returns_rows_unchanged():
    result = filter_by_date_range(ROWS, "Date", "2024-02-01", "2024-01-01")
    assert result.rows is ROWS
    assert result.warnings == ["Start date cannot be after end date."]


def test_same_day_range_is_valid():
    result = filter_by_date_range(ROWS, "Date", "2024-01-31", "2024-01-31")
    assert [r["Sales"] for r in result.rows] == [2]


def test_filtering_with_own_bounds_keeps_every_dated_row():
    dataset = parse_csv(
        "Date,Sales\n2024-03-05,1\n2023-12-31,2\n2024-01-10 23:59:59,3\n2024-02-29,4\n"
    )
    start, end = dataset.date_bounds("Date")
    result = filter_by_date_range(dataset.rows, "Date", start, end)
    assert result.rows == dataset.rows


def test_filter_by_values():
    result = filter_by_values(ROWS, "Branch", [" North ", ""])
    assert [r["Sales"] for r in result.rows] == [1, 3]
    assert filter_by_values(ROWS, "Branch", []).rows is ROWS


def test_mixed_formats_and_time_zones():
    rows = [
        {"Date": "2024-01-15T10:00:00+02:00"},
        {"Date": "01/20/2024"},
        {"Date": 20240125},
        {"Date": ""},
    ]
    result = filter_by_date_range(rows, "Date", "2024-01-01", "2024-01-31")
    assert result.rows == rows[:2]


def test_parse_dates_is_aligned_and_tz_naive():
    dates = parse_dates(["2024-01-15T23:30:00-02:00", "nope", None, "2024-02-01"])
    assert dates.dt.tz is None
    assert str(dates[0]) == "2024-01-16 01:30:00"
    assert dates[1:3].isna().all()
    assert dates[3].day == 1


def test_large_input_is_filtered_in_one_pass():
    first = date(2020, 1, 1)
    rows = [
        {"Date": (first + timedelta(days=i % 1500)).isoformat(), "Sales": i}
        for i in range(20_000)
    ]
    started = time.perf_counter()
    result = filter_by_date_range(rows, "Date", "2021-01-01", "2021-12-31")
    elapsed = time.perf_counter() - started

    assert elapsed < 2.0
    expected = [r for r in rows if "2021-01-01" <= r["Date"] <= "2021-12-31"]
    assert result.rows == expected
