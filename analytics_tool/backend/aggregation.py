"""
Grouping, aggregation and binning of dataset rows into chart series.

All functions are pure: they take the rows they work on and return a new
series object. Non-numeric cells are tolerated everywhere and reported
through warnings rather than exceptions.
"""
import logging
import math
from collections import defaultdict
from typing import Any

import numpy as np

from data_loader import Row, is_missing, is_numeric
from filters import filter_by_date_range, filter_by_values
from models import (
    AGGREGATORS,
    AggregatedSeries,
    CategoryTotals,
    ChartRequest,
    ChartResponse,
    ColumnDistribution,
    HistogramResult,
    ScatterPoint,
)


logger = logging.getLogger(__name__)

AGGREGATOR_SUFFIXES = {
    "sum": " (Sum)",
    "average": " (Average)",
    "count": " (Count)",
    "min": " (Min)",
    "max": " (Max)",
    "mode": " (Mode)",
    "none": "",
}

PART_OF_WHOLE_CHARTS = {"pie", "doughnut", "polarArea"}
BINNED_CHARTS = {"histogram", "density"}

MIN_BINS = 5
MAX_BINS = 20
DISTRIBUTION_BINS = 10


def group_label(value: Any) -> str:
    """Stringify a grouping value; integral floats print without the trailing .0."""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if value is None:
        return ""
    return str(value)


# ============================================================================
# Reducers
# ============================================================================

def mode_of(values: list[Any]) -> Any:
    """Most frequent value; the first value to reach the top frequency wins ties."""
    if not values:
        return None
    frequency: dict[Any, int] = defaultdict(int)
    best = None
    best_count = 0
    for value in values:
        frequency[value] += 1
        if frequency[value] > best_count:
            best_count = frequency[value]
            best = value
    return best


def reduce_group(group: list[Any], aggregator: str) -> tuple[Any, bool]:
    """
    Reduce one group's contributions.

    Returns:
        (value, fell_back) where fell_back is True when a "none" aggregation
        met several numeric values and summed them instead
    """
    numeric = [v for v in group if is_numeric(v)]

    if aggregator == "sum":
        return float(sum(numeric)), False
    if aggregator == "average":
        return (float(sum(numeric)) / len(numeric) if numeric else 0.0), False
    if aggregator == "count":
        return len(group), False
    if aggregator == "min":
        return (min(numeric) if numeric else 0.0), False
    if aggregator == "max":
        return (max(numeric) if numeric else 0.0), False
    if aggregator == "mode":
        return mode_of(group), False
    # none
    if len(numeric) > 1:
        return float(sum(numeric)), True
    return (numeric[0] if numeric else None), False


# ============================================================================
# Aggregation Engine
# ============================================================================

def aggregate(
    rows: list[Row],
    group_by: str,
    value_column: str,
    aggregator: str = "average",
) -> AggregatedSeries:
    """
    Group rows by `group_by` and reduce `value_column` per group.

    Numeric values always contribute. Non-numeric values contribute only to
    "count" (as a placeholder unit) and "none" (raw passthrough); for every
    other aggregator they are skipped with a warning. Labels come back
    sorted ascending.

    Raises:
        ValueError: if the aggregator is unknown
    """
    if aggregator not in AGGREGATORS:
        raise ValueError(f"Unknown aggregator '{aggregator}'. Must be one of: {AGGREGATORS}")

    grouped: dict[str, list[Any]] = defaultdict(list)
    skipped = 0

    for row in rows:
        key = group_label(row.get(group_by))
        value = row.get(value_column)
        if is_numeric(value):
            grouped[key].append(value)
        elif aggregator == "count":
            grouped[key].append(1)
        elif aggregator == "none":
            grouped[key].append(value)
        else:
            skipped += 1

    warnings: list[str] = []
    if skipped:
        msg = (
            f"Skipped {skipped} non-numeric value(s) in '{value_column}' "
            f"for '{aggregator}' aggregation."
        )
        logger.warning("[aggregation] %s", msg)
        warnings.append(msg)

    labels = sorted(grouped.keys())
    values = []
    suffix = AGGREGATOR_SUFFIXES[aggregator]

    summed: list[str] = []

    for label in labels:
        value, fell_back = reduce_group(grouped[label], aggregator)
        if fell_back:
            summed.append(label)
        values.append(value)

    if summed:
        # The series title carries one suffix, so any summed group marks it " (Sum)"
        msg = (
            f"Multiple numeric values with 'none' aggregation for: {', '.join(summed)}. "
            f"Summing them as a fallback."
        )
        logger.warning("[aggregation] %s", msg)
        warnings.append(msg)
        suffix = AGGREGATOR_SUFFIXES["sum"]

    return AggregatedSeries(
        labels=labels,
        values=values,
        aggregator=aggregator,
        label_suffix=suffix,
        warnings=warnings,
    )


def bin_count_for(n: int) -> int:
    """clamp(ceil(sqrt(n)), 5, 20)"""
    return min(MAX_BINS, max(MIN_BINS, math.ceil(math.sqrt(n))))


def _bin_values(values: np.ndarray, bins: int) -> tuple[np.ndarray, float, float]:
    """Assign values to equal-width bins. Returns (counts, min, width)."""
    min_val = float(values.min())
    max_val = float(values.max())
    width = (max_val - min_val) / bins if max_val != min_val else 1.0
    idx = np.floor((values - min_val) / width).astype(int)
    # The maximum lands exactly on the upper edge
    idx = np.clip(idx, 0, bins - 1)
    return np.bincount(idx, minlength=bins), min_val, width


def histogram(rows: list[Row], column: str, density: bool = False) -> HistogramResult:
    """
    Bin the numeric values of a single column.

    Every numeric value lands in exactly one bin, so the counts sum to the
    number of numeric values. A density view is the same histogram flagged
    for curve rendering.
    """
    values = [row.get(column) for row in rows]
    numeric = np.asarray([v for v in values if is_numeric(v)], dtype=float)

    if numeric.size == 0:
        kind = "density" if density else "histogram"
        msg = f"Cannot create a {kind} for non-numeric or empty data in '{column}'."
        logger.warning("[aggregation] %s", msg)
        return HistogramResult(density=density, warnings=[msg])

    bins = bin_count_for(int(numeric.size))
    counts, min_val, width = _bin_values(numeric, bins)
    edges = [min_val + i * width for i in range(bins + 1)]
    labels = [f"{edges[i]:.2f} - {edges[i + 1]:.2f}" for i in range(bins)]

    return HistogramResult(
        labels=labels,
        counts=[int(c) for c in counts],
        bin_edges=edges,
        bin_width=width,
        density=density,
    )


def category_totals(rows: list[Row], category: str, value_column: str) -> CategoryTotals:
    """
    Totals per category for part-of-whole charts.

    Sums the value column when it holds any numbers (non-numeric cells count
    as 0), otherwise counts occurrences. Categories keep first-seen order.
    """
    is_sum = any(is_numeric(row.get(value_column)) for row in rows)
    totals: dict[str, float] = {}

    for row in rows:
        key = group_label(row.get(category))
        if is_sum:
            value = row.get(value_column)
            totals[key] = totals.get(key, 0.0) + (float(value) if is_numeric(value) else 0.0)
        else:
            totals[key] = totals.get(key, 0.0) + 1

    return CategoryTotals(labels=list(totals.keys()), values=list(totals.values()), is_sum=is_sum)


def scatter_points(rows: list[Row], x_column: str, y_column: str) -> list[ScatterPoint]:
    """
    Numeric (x, y) pairs.

    Raises:
        ValueError: if either column has no numeric data at all
    """
    if not any(is_numeric(r.get(x_column)) for r in rows) or not any(
        is_numeric(r.get(y_column)) for r in rows
    ):
        raise ValueError(
            f"For a Scatter Plot, both X-Axis ('{x_column}') and Y-Axis ('{y_column}') "
            f"must contain numeric data."
        )
    return [
        ScatterPoint(x=float(r[x_column]), y=float(r[y_column]))
        for r in rows
        if is_numeric(r.get(x_column)) and is_numeric(r.get(y_column))
    ]


def column_distribution(rows: list[Row], column: str) -> ColumnDistribution:
    """
    Distribution of one column: a fixed 10-bin histogram when every present
    value is numeric, otherwise counts of the distinct trimmed values.
    """
    values = [row.get(column) for row in rows]
    numeric = [v for v in values if is_numeric(v)]
    all_numeric = all(is_numeric(v) or is_missing(v) for v in values)

    if all_numeric and numeric:
        counts, min_val, width = _bin_values(np.asarray(numeric, dtype=float), DISTRIBUTION_BINS)
        labels = [
            f"{min_val + i * width:.2f}-{min_val + (i + 1) * width:.2f}"
            for i in range(DISTRIBUTION_BINS)
        ]
        return ColumnDistribution(
            column=column,
            kind="histogram",
            labels=labels,
            counts=[int(c) for c in counts],
        )

    counts: dict[str, int] = {}
    for value in values:
        text = str(value).strip() if value is not None else ""
        if text:
            counts[text] = counts.get(text, 0) + 1
    return ColumnDistribution(
        column=column,
        kind="categorical",
        labels=list(counts.keys()),
        counts=list(counts.values()),
    )


# ============================================================================
# Chart Dispatch
# ============================================================================

def build_chart_series(rows: list[Row], request: ChartRequest) -> ChartResponse:
    """
    Apply the request's filters and build the series its chart type needs.

    Raises:
        ValueError: for scatter plots over non-numeric columns
    """
    x_col = request.x_column
    y_col = request.y_column
    chart_type = request.chart_type
    warnings: list[str] = []

    filtered = filter_by_values(rows, x_col, request.x_filter).rows
    if request.date_range is not None:
        result = filter_by_date_range(
            filtered,
            request.date_range.date_column or x_col,
            request.date_range.start_date,
            request.date_range.end_date,
        )
        filtered = result.rows
        warnings.extend(result.warnings)

    response = ChartResponse(
        chart_type=chart_type,
        x_column=x_col,
        y_column=y_col,
        aggregator=request.aggregator,
        title=f"{y_col} by {x_col}",
        row_count=len(filtered),
    )

    if not filtered:
        warnings.append("No data matches the selected filters. Please adjust your selections.")
        response.warnings = warnings
        return response

    if chart_type in PART_OF_WHOLE_CHARTS:
        totals = category_totals(filtered, x_col, y_col)
        response.labels = totals.labels
        response.values = totals.values
        response.title = f"Sum of {y_col} by {x_col}" if totals.is_sum else f"Distribution of {x_col}"
    elif chart_type in BINNED_CHARTS:
        density = chart_type == "density"
        binned = histogram(filtered, y_col, density=density)
        response.labels = binned.labels
        response.values = binned.counts
        suffix = " (Density)" if density else " (Frequency)"
        response.title = f"{y_col}{suffix} Distribution"
        warnings.extend(binned.warnings)
    elif chart_type == "scatter":
        response.points = scatter_points(filtered, x_col, y_col)
        response.title = f"{y_col} vs {x_col} (Scatter Plot)"
    else:
        series = aggregate(filtered, x_col, y_col, request.aggregator)
        response.labels = series.labels
        response.values = series.values
        kind = chart_type[0].upper() + chart_type[1:]
        response.title = f"{y_col}{series.label_suffix} by {x_col} ({kind} Chart)"
        warnings.extend(series.warnings)

    response.warnings = warnings
    return response
