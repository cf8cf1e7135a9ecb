"""
Descriptive statistics for the data overview table.
"""
import numpy as np

from aggregation import mode_of
from data_loader import Row, is_numeric
from models import ColumnStatistics


def column_statistics(values: list[float]) -> ColumnStatistics:
    """
    Statistics over a non-empty list of numbers.

    The standard deviation is the sample one (N - 1 divisor), 0 below two values.
    """
    x = np.asarray(values, dtype=float)
    n = int(x.size)
    return ColumnStatistics(
        count=n,
        min=float(x.min()),
        max=float(x.max()),
        sum=float(x.sum()),
        mean=float(x.mean()),
        # np.median averages the two middle values for even counts
        median=float(np.median(x)),
        mode=float(mode_of(values)),
        stddev=float(x.std(ddof=1)) if n > 1 else 0.0,
    )


def describe(rows: list[Row], columns: list[str]) -> dict[str, ColumnStatistics]:
    """Per-column statistics, for columns holding at least one numeric value."""
    result = {}
    for col in columns:
        values = [row[col] for row in rows if is_numeric(row.get(col))]
        if values:
            result[col] = column_statistics(values)
    return result
