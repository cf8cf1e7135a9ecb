import math

import pytest
from describe import column_statistics, describe


def test_even_count_median_and_sample_stddev():
    stats = column_statistics([1, 2, 3, 4])
    assert stats.count == 4
    assert stats.median == 2.5
    assert stats.mean == 2.5
    assert stats.sum == 10
    assert stats.stddev == pytest.approx(math.sqrt(5 / 3))


def test_single_value_has_zero_stddev():
    stats = column_statistics([7])
    assert stats.stddev == 0.0
    assert stats.min == stats.max == 7


def test_mode_ties_go_to_first_to_reach_top_count():
    assert column_statistics([3, 1, 3, 1]).mode == 3


def test_describe_skips_non_numeric_columns():
    rows = [{"Name": "a", "Sales": 1}, {"Name": "b", "Sales": "n/a"}, {"Name": "c", "Sales": 5}]
    result = describe(rows, ["Name", "Sales"])
    assert list(result) == ["Sales"]
    assert result["Sales"].count == 2
    assert result["Sales"].mean == 3
