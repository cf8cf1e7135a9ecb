"""
Pearson correlation matrix over selected numeric columns.
"""
import logging

import numpy as np

from data_loader import Row, is_numeric
from models import CorrelationPair, CorrelationResult


logger = logging.getLogger(__name__)

ORDER_MODES = ["alphabetical", "strongest-absolute", "strongest-positive", "strongest-negative"]


def pearson(x: np.ndarray | list, y: np.ndarray | list) -> float:
    """
    Pearson correlation coefficient.

    r = (n*Sxy - Sx*Sy) / sqrt((n*Sxx - Sx^2) * (n*Syy - Sy^2))

    Returns:
        NaN for empty or unequal-length input, 0.0 when either side is constant
    """
    x = np.asarray(x, dtype=float)
    y = np.asarray(y, dtype=float)
    n = x.size
    if n == 0 or n != y.size:
        return float("nan")

    sum_x = x.sum()
    sum_y = y.sum()
    numerator = n * (x * y).sum() - sum_x * sum_y
    denominator = np.sqrt((n * (x * x).sum() - sum_x ** 2) * (n * (y * y).sum() - sum_y ** 2))

    if denominator == 0 or np.isnan(denominator):
        return 0.0
    # Guard against rounding pushing |r| slightly past 1
    return float(np.clip(numerator / denominator, -1.0, 1.0))


def correlation_strength(r: float | None) -> tuple[str, str]:
    """Bucket a coefficient for display: (strength, direction)."""
    if r is None or np.isnan(r):
        return "n/a", "none"
    a = abs(r)
    if a >= 0.8:
        strength = "very strong"
    elif a >= 0.6:
        strength = "strong"
    elif a >= 0.4:
        strength = "moderate"
    elif a >= 0.2:
        strength = "weak"
    else:
        strength = "very weak"
    direction = "negative" if r < 0 else "positive" if r > 0 else "none"
    return strength, direction


def _column_vector(rows: list[Row], column: str) -> np.ndarray:
    """Column values as floats, NaN wherever the cell is not numeric."""
    return np.asarray(
        [float(row.get(column)) if is_numeric(row.get(column)) else np.nan for row in rows],
        dtype=float,
    )


def _pair_correlation(a: np.ndarray, b: np.ndarray) -> float | None:
    # Only rows where both cells are numeric contribute to a pair
    mask = ~np.isnan(a) & ~np.isnan(b)
    if mask.sum() < 2:
        return None
    r = pearson(a[mask], b[mask])
    return None if np.isnan(r) else r


def correlation_matrix(
    rows: list[Row],
    columns: list[str],
    order_by: str = "alphabetical",
) -> CorrelationResult:
    """
    Compute the pairwise correlation matrix of the selected columns.

    Columns with fewer than two numeric values are dropped and reported.
    Fewer than two usable columns yields an empty matrix with a message.

    Ordering: "alphabetical" sorts column names; any other mode sorts by
    each column's average absolute correlation with the others, highest first.
    """
    selected = list(dict.fromkeys(columns))
    if len(selected) < 2:
        return CorrelationResult(
            order_by=order_by,
            message="Select at least two numeric columns to calculate correlation.",
        )

    vectors = {col: _column_vector(rows, col) for col in selected}
    valid = [col for col in selected if int((~np.isnan(vectors[col])).sum()) > 1]
    dropped = [col for col in selected if col not in valid]
    if dropped:
        logger.warning("[correlation] Dropped columns without enough numeric data: %s", dropped)

    if len(valid) < 2:
        return CorrelationResult(
            dropped=dropped,
            order_by=order_by,
            message=(
                "Selected columns do not contain enough numeric data for correlation "
                "calculation (at least 2 valid numbers per column)."
            ),
        )

    matrix: dict[str, dict[str, float | None]] = {col: {} for col in valid}
    for i, a in enumerate(valid):
        for b in valid[i:]:
            r = _pair_correlation(vectors[a], vectors[b])
            matrix[a][b] = r
            matrix[b][a] = r

    if order_by == "alphabetical":
        ordered = sorted(valid)
    else:
        def average_abs(col: str) -> float:
            others = [matrix[col][o] for o in valid if o != col and matrix[col][o] is not None]
            return sum(abs(r) for r in others) / len(others) if others else 0.0

        ordered = sorted(valid, key=average_abs, reverse=True)

    pairs = []
    for i, a in enumerate(ordered):
        for b in ordered[i + 1:]:
            strength, direction = correlation_strength(matrix[a][b])
            pairs.append(CorrelationPair(
                first=a, second=b, r=matrix[a][b], strength=strength, direction=direction,
            ))

    return CorrelationResult(
        columns=ordered,
        matrix={row: {col: matrix[row][col] for col in ordered} for row in ordered},
        pairs=pairs,
        dropped=dropped,
        order_by=order_by,
    )
