"""
Row filters applied before charting and rollups: an inclusive date window
and an explicit value selection on one column.
"""
import logging
from dataclasses import dataclass, field

import pandas as pd

from data_loader import Row, parse_date, parse_dates


logger = logging.getLogger(__name__)


@dataclass
class FilterResult:
    rows: list[Row]
    applied: bool = False
    warnings: list[str] = field(default_factory=list)


def filter_by_date_range(
    rows: list[Row],
    date_column: str | None,
    start_date: str | None,
    end_date: str | None,
) -> FilterResult:
    """
    Keep rows whose date falls within [start_date, end_date], end inclusive
    to 23:59:59.999.

    Missing arguments, unparseable bounds and inverted ranges leave the rows
    unchanged; the latter two come back with a warning for the user.
    """
    if not date_column or not start_date or not end_date:
        return FilterResult(rows=rows)

    start = parse_date(start_date)
    end = parse_date(end_date)
    if start is None or end is None:
        msg = "Invalid start or end date for time series filtering."
        logger.warning("[filters] %s start=%r end=%r", msg, start_date, end_date)
        return FilterResult(rows=rows, warnings=[msg])

    if start > end:
        msg = "Start date cannot be after end date."
        logger.warning("[filters] %s start=%s end=%s", msg, start_date, end_date)
        return FilterResult(rows=rows, warnings=[msg])

    end_inclusive = end.replace(hour=23, minute=59, second=59, microsecond=999000)

    dates = parse_dates([row.get(date_column) for row in rows])
    # NaT never falls between the bounds
    inside = dates.between(pd.Timestamp(start), pd.Timestamp(end_inclusive)).to_numpy()
    kept = [row for row, keep in zip(rows, inside) if keep]

    return FilterResult(rows=kept, applied=True)


def filter_by_values(rows: list[Row], column: str, selected: list[str]) -> FilterResult:
    """Keep rows whose stringified value in `column` is one of `selected`."""
    wanted = {str(v).strip() for v in selected if str(v).strip()}
    if not wanted:
        return FilterResult(rows=rows)
    kept = [row for row in rows if str(row.get(column, "")).strip() in wanted]
    return FilterResult(rows=kept, applied=True)
