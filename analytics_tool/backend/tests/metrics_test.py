import random

import pytest
from metrics import (
    branch_rollup,
    classify_activation,
    classify_issuance,
    compute_rollup_report,
    employee_rollup,
    rollup_summary_text,
)


HEADERS = ["Branch", "Employee", "Customers", "SimCardsIssued", "AppsIssued"]
ROWS = [
    {"Branch": "A", "Employee": "E1", "Customers": 100, "SimCardsIssued": 20, "AppsIssued": 10},
    {"Branch": "A", "Employee": "E2", "Customers": 50, "SimCardsIssued": 5, "AppsIssued": 5},
]


def test_branch_totals_and_issuance_ratio():
    result = branch_rollup(ROWS, HEADERS)
    a = result["A"]
    assert a.customers == 150
    assert a.sim_cards_issued == 25
    assert a.apps_issued == 15
    assert a.issuance_ratio == pytest.approx(40 / 150)
    # 0.2667 falls in the [0.25, 0.50] band
    assert a.issuance_rating == "Good"
    assert a.sub_entity_count == 2
    assert a.row_count == 2


def test_issuance_boundaries():
    assert classify_issuance(0.0999) == "Poor"
    assert classify_issuance(0.10) == "Not Good"
    assert classify_issuance(0.25) == "Good"
    assert classify_issuance(0.50) == "Good"
    assert classify_issuance(0.5001) == "Great"


def test_activation_boundaries():
    assert classify_activation(0.49) == "Poor"
    assert classify_activation(0.50) == "Not Good"
    assert classify_activation(0.75) == "Good"
    assert classify_activation(0.85) == "Good"
    assert classify_activation(0.86) == "Great"


def test_zero_denominators_give_zero_ratios():
    rows = [{"Branch": "Z", "Customers": 0}]
    z = branch_rollup(rows, ["Branch", "Customers"])["Z"]
    assert z.issuance_ratio == 0
    assert z.activation_ratio == 0
    assert z.conversion_ratio == 0
    assert z.issuance_rating == "Poor"


def test_activation_and_conversion_ratios():
    headers = ["Employee Name", "SimCardsIssued", "AppsIssued", "SimCardsActivated",
               "AppsActivated", "Transactions"]
    rows = [{
        "Employee Name": "Kim",
        "SimCardsIssued": 10,
        "AppsIssued": 10,
        "SimCardsActivated": 8,
        "AppsActivated": 8,
        "Transactions": 9,
    }]
    kim = employee_rollup(rows, headers)["Kim"]
    assert kim.activation_ratio == pytest.approx(0.8)
    assert kim.activation_rating == "Good"
    assert kim.conversion_ratio == pytest.approx(0.9)
    assert kim.conversion_rating == "Great"
    assert kim.sub_entity_count is None


def test_rollup_is_independent_of_row_order():
    rows = [
        {"Branch": f"B{i % 3}", "Employee": f"E{i % 5}", "Customers": i * 1.1,
         "SimCardsIssued": i % 7, "AppsIssued": 0.1 * i}
        for i in range(60)
    ]
    shuffled = list(rows)
    random.Random(7).shuffle(shuffled)

    first = {k: v.model_dump() for k, v in branch_rollup(rows, HEADERS).items()}
    second = {k: v.model_dump() for k, v in branch_rollup(shuffled, HEADERS).items()}
    assert first == second


def test_missing_or_empty_entity_goes_to_unknown():
    rows = [{"Branch": "", "Customers": 5}, {"Branch": "A", "Customers": 1}]
    result = branch_rollup(rows, ["Branch", "Customers"])
    assert result["Unknown Branch"].customers == 5

    no_column = branch_rollup([{"Customers": 5}], ["Customers"])
    assert list(no_column) == ["Unknown Branch"]


def test_distinct_employees_are_trimmed():
    rows = [
        {"Branch": "A", "Employee": " E1"},
        {"Branch": "A", "Employee": "E1"},
        {"Branch": "A", "Employee": "E2"},
        {"Branch": "A", "Employee": ""},
    ]
    assert branch_rollup(rows, ["Branch", "Employee"])["A"].sub_entity_count == 2


def test_alias_resolution_is_case_insensitive():
    headers = ["branch name", "sim cards issued", "CUSTOMERS"]
    rows = [{"branch name": "N", "sim cards issued": 3, "CUSTOMERS": 10}]
    n = branch_rollup(rows, headers)["N"]
    assert n.sim_cards_issued == 3
    assert n.customers == 10


def test_report_warns_about_missing_columns():
    report = compute_rollup_report(ROWS, HEADERS, "branch")
    assert report.entity_column == "Branch"
    assert [r.entity_id for r in report.rollups] == ["A"]
    assert any("transactions" in w for w in report.warnings)

    with pytest.raises(ValueError):
        compute_rollup_report(ROWS, HEADERS, "region")


def test_summary_text_lists_each_entity():
    text = rollup_summary_text(list(branch_rollup(ROWS, HEADERS).values()), "Branch")
    assert "Branch: A" in text
    assert "Employees: 2" in text
    assert "(Good)" in text


def test_float_ids_match_chart_labels():
    rows = [
        {"Branch": 101.0, "Employee": 7.0, "Customers": 10},
        {"Branch": 101, "Employee": 7, "Customers": 5},
    ]
    result = branch_rollup(rows, ["Branch", "Employee", "Customers"])
    assert list(result) == ["101"]
    assert result["101"].customers == 15
    assert result["101"].sub_entity_count == 1
