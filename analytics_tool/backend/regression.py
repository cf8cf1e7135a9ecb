"""
Multiple linear regression over numeric dataset columns.
"""
import logging

import numpy as np

from data_loader import Row, is_numeric
from models import RegressionResult


logger = logging.getLogger(__name__)

NOT_ENOUGH_DATA = (
    "Not enough valid data points for regression. Need at least "
    "(number of independent variables + 2) valid rows."
)


def format_summary(result: RegressionResult) -> str:
    """Human-readable summary, also used as the AI interpretation prompt."""
    if not result.ok:
        return result.message or ""
    lines = [
        "Multiple Linear Regression Results:",
        "",
        f"Dependent Variable (Y): {result.dependent}",
        f"Independent Variables (X): {', '.join(result.independents)}",
        f"Observations: {result.n}",
        "",
        f"Intercept (b0): {result.intercept:.3f}",
    ]
    for i, col in enumerate(result.independents, start=1):
        lines.append(f"Coefficient for {col} (b{i}): {result.coefficients[col]:.3f}")
    lines.append("")
    lines.append(f"R-squared: {result.r_squared:.3f}")
    lines.append(f"Adjusted R-squared: {result.adjusted_r_squared:.3f}")
    return "\n".join(lines)


def regress(rows: list[Row], dependent: str, independents: list[str]) -> RegressionResult:
    """
    Fit dependent = b0 + sum(bi * xi) by ordinary least squares.

    Only rows numeric in every selected column are used, and at least
    len(independents) + 2 of them are required. Shortfalls come back as a
    result with ok=False and a message instead of an exception.
    """
    predictors = [c for c in dict.fromkeys(independents) if c != dependent]
    if not predictors:
        msg = (
            "Please select at least one independent variable that differs "
            "from the dependent variable."
        )
        return RegressionResult(ok=False, dependent=dependent, message=msg, summary=msg)

    selected = [dependent, *predictors]
    valid = [row for row in rows if all(is_numeric(row.get(c)) for c in selected)]
    n = len(valid)
    k = len(predictors)

    if n < k + 2:
        logger.info("[regression] %d valid rows for %d predictors; need %d", n, k, k + 2)
        return RegressionResult(
            ok=False,
            dependent=dependent,
            independents=predictors,
            n=n,
            message=NOT_ENOUGH_DATA,
            summary=NOT_ENOUGH_DATA,
        )

    y = np.asarray([float(row[dependent]) for row in valid])
    X = np.column_stack(
        [np.ones(n)] + [np.asarray([float(row[c]) for row in valid]) for c in predictors]
    )
    beta, _, rank, _ = np.linalg.lstsq(X, y, rcond=None)

    residuals = y - X @ beta
    ss_res = float(residuals @ residuals)
    ss_tot = float(((y - y.mean()) ** 2).sum())
    r_squared = 1.0 - ss_res / ss_tot if ss_tot > 0 else 0.0
    adjusted = 1.0 - (1.0 - r_squared) * (n - 1) / (n - k - 1)

    result = RegressionResult(
        ok=True,
        dependent=dependent,
        independents=predictors,
        n=n,
        intercept=float(beta[0]),
        coefficients={col: float(b) for col, b in zip(predictors, beta[1:])},
        r_squared=r_squared,
        adjusted_r_squared=adjusted,
    )
    if rank < k + 1:
        result.message = "Predictors are collinear; coefficients are a minimum-norm solution."
        logger.warning("[regression] %s", result.message)
    result.summary = format_summary(result)
    return result
