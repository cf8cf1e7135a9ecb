import logging

import pytest
from data_loader import (
    DataStore,
    coerce_value,
    default_axes,
    find_column_like,
    is_numeric,
    parse_csv,
    resolve_column,
    resolve_field,
)


def test_coerce_value_numbers_and_strings():
    assert coerce_value("42") == 42
    assert isinstance(coerce_value("42"), int)
    assert coerce_value(" 7.5 ") == 7.5
    assert coerce_value("-3") == -3
    assert coerce_value("1e3") == 1000.0
    assert coerce_value("3.14abc") == "3.14abc"
    assert coerce_value("") == ""
    assert coerce_value("  North  ") == "North"


def test_coerce_value_does_not_treat_nan_or_inf_text_as_numbers():
    assert coerce_value("nan") == "nan"
    assert coerce_value("inf") == "inf"
    assert coerce_value("1_000") == "1_000"


def test_is_numeric_rejects_bools_strings_and_nan():
    assert is_numeric(3)
    assert is_numeric(2.5)
    assert not is_numeric(True)
    assert not is_numeric("3")
    assert not is_numeric(float("nan"))
    assert not is_numeric(None)


def test_resolve_column_is_case_insensitive_and_follows_alias_priority():
    headers = ["branch name", "Branch ID", "Customers"]
    assert resolve_column(headers, ["Branch ID", "Branch Name"]) == "Branch ID"
    assert resolve_column(headers, ["Branch Name", "Branch ID"]) == "branch name"


def test_resolve_column_absent_and_idempotent():
    headers = ["Region", "Sales"]
    assert resolve_column(headers, ["Branch"]) is None
    first = resolve_field(headers, "customers")
    assert first is None
    headers = ["Date", "CUSTOMERS"]
    assert resolve_field(headers, "customers") == resolve_field(headers, "customers") == "CUSTOMERS"


def test_find_column_like_uses_substrings():
    assert find_column_like(["id", "Branch Location", "Amount"], ["location"]) == "Branch Location"
    assert find_column_like(["id"], ["date"]) is None


def test_parse_csv_coerces_and_drops_malformed_rows(caplog):
    caplog.set_level(logging.WARNING)
    dataset = parse_csv("A,B\n1,2\n3\n4,x\n")

    assert dataset.headers == ["A", "B"]
    assert dataset.rows == [{"A": 1, "B": 2}, {"A": 4, "B": "x"}]
    assert "Skipping malformed row" in caplog.text


def test_parse_csv_honours_quotes_and_trims_headers():
    dataset = parse_csv(' Name , Amount \n"Smith, J",5\n')
    assert dataset.headers == ["Name", "Amount"]
    assert dataset.rows[0] == {"Name": "Smith, J", "Amount": 5}


def test_parse_csv_drops_rows_with_too_many_fields(caplog):
    caplog.set_level(logging.WARNING)
    dataset = parse_csv("A,B\n1,2\n3,4,5\n6,7\n")
    assert dataset.rows == [{"A": 1, "B": 2}, {"A": 6, "B": 7}]
    assert "Skipping malformed row" in caplog.text


def test_parse_csv_drops_long_first_row():
    dataset = parse_csv("A,B\n1,2,3\n4,5\n")
    assert dataset.headers == ["A", "B"]
    assert dataset.rows == [{"A": 4, "B": 5}]


def test_parse_csv_keeps_blank_lines_inside_quoted_fields():
    dataset = parse_csv('A,B\n"line1\n\nline3",2\n\n3,4\n')
    assert dataset.rows == [{"A": "line1\n\nline3", "B": 2}, {"A": 3, "B": 4}]


def test_parse_csv_keeps_empty_cells():
    dataset = parse_csv("A,B,C\n1,,x\n")
    assert dataset.rows == [{"A": 1, "B": "", "C": "x"}]


def test_parse_csv_empty_raises():
    with pytest.raises(ValueError):
        parse_csv("   \n")


def test_dataset_helpers():
    dataset = parse_csv(
        "Date,Branch,Sales\n"
        "2024-03-02,North,10\n"
        "2024-01-15,South,n/a\n"
        "bad,North,5\n"
    )
    assert dataset.numeric_columns() == ["Sales"]
    assert dataset.unique_values("Branch") == ["North", "South"]
    assert dataset.date_bounds("Date") == ("2024-01-15", "2024-03-02")
    assert len(dataset.head(2)) == 2


def test_default_axes_per_page():
    dataset = parse_csv(
        "Employee Name,Branch Location,Amount,Salary,Period\n"
        "Ann,North,10,100,2024-01-01\n"
    )
    assert default_axes(dataset, "branches") == {"x": "Branch Location", "y": "Amount"}
    assert default_axes(dataset, "employees") == {"x": "Employee Name", "y": "Salary"}
    assert default_axes(dataset, "time-series")["x"] == "Period"
    assert default_axes(dataset, "complex-stats") == {"x": "Amount", "y": "Salary"}


def test_data_store_saved_charts_and_active_plots():
    store = DataStore()
    assert not store.is_loaded
    store.load_text("A,B\n1,2\n", filename="t.csv")
    assert store.is_loaded

    first = store.save_chart({"description": "one", "date_saved": "2024-01-01T00:00:00"})
    second = store.save_chart({"description": "two", "date_saved": "2024-02-01T00:00:00"})
    assert [c["id"] for c in store.list_charts()] == [second, first]
    assert store.delete_chart(first)
    assert not store.delete_chart(first)

    store.set_active_plot("home", {"chart": {}})
    assert store.get_active_plot("home")["page_id"] == "home"
    store.clear()
    assert not store.is_loaded
    assert store.get_active_plot("home") is None
