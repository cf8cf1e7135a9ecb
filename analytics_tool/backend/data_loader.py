"""
Data loading and preprocessing for the CSV analytics backend.
Handles CSV parsing, cell coercion, column alias resolution and the
in-memory store that owns the active dataset.
"""
import io
import logging
import math
import re
from dataclasses import dataclass, field
from datetime import date, datetime
from pathlib import Path
from typing import Any

import pandas as pd


logger = logging.getLogger(__name__)

Row = dict[str, Any]


# ============================================================================
# Column Alias Definitions
# ============================================================================

# Logical field -> accepted header spellings, in priority order.
# Matching is case-insensitive and exact (after trimming).
COLUMN_ALIASES: dict[str, list[str]] = {
    "branch": ["Branch ID", "Branch Name", "Branch", "BranchName", "Branch_Name"],
    "employee": [
        "Employee ID",
        "Employee Name",
        "Employee",
        "EmployeeName",
        "EmployeeID",
        "Staff ID",
        "Staff Name",
    ],
    "customers": ["Customers", "Total Customers", "Customer Count", "No. of Customers"],
    "sim_cards_issued": ["SimCardsIssued", "Sim Cards Issued", "SIM Cards Issued", "Sims Issued"],
    "apps_issued": ["AppsIssued", "Apps Issued", "App Issued", "Applications Issued"],
    "sim_cards_activated": [
        "SimCardsActivated",
        "Sim Cards Activated",
        "SIM Cards Activated",
        "Sims Activated",
    ],
    "apps_activated": ["AppsActivated", "Apps Activated", "App Activated", "Applications Activated"],
    "transactions": ["Transactions", "Total Transactions", "Transaction Count", "App Transactions"],
    "date": ["Date", "Transaction Date", "Report Date", "Period"],
}

# Substring hints used to pick default axes for each page
PAGE_AXIS_HINTS: dict[str, dict[str, list[str]]] = {
    "branches": {"x": ["branch", "location", "region"], "y": ["amount", "value"]},
    "employees": {"x": ["employee", "name", "staff"], "y": ["salary", "pay"]},
    "time-series": {"x": ["date", "time", "period"], "y": ["value", "amount"]},
}

_NUMBER_RE = re.compile(r"^[+-]?(\d+\.?\d*|\.\d+)([eE][+-]?\d+)?$")
_INTEGER_RE = re.compile(r"^[+-]?\d+$")


# ============================================================================
# Column Resolution
# ============================================================================

def resolve_column(headers: list[str], aliases: list[str]) -> str | None:
    """
    Find the header denoting a logical field.

    Aliases are tried in priority order; the first alias that matches any
    header (case-insensitive, whitespace-trimmed) wins.

    Returns:
        The header as spelled in the dataset, or None when the field is absent
    """
    normalized = [(str(h).strip().lower(), h) for h in headers]
    for alias in aliases:
        alias_norm = alias.strip().lower()
        for header_norm, header in normalized:
            if header_norm == alias_norm:
                return header
    return None


def resolve_field(headers: list[str], field_name: str) -> str | None:
    """Resolve a logical field from COLUMN_ALIASES against the headers."""
    return resolve_column(headers, COLUMN_ALIASES.get(field_name, []))


def find_column_like(headers: list[str], keywords: list[str]) -> str | None:
    """Return the first header containing any of the keywords (case-insensitive)."""
    for header in headers:
        lowered = header.lower()
        if any(k in lowered for k in keywords):
            return header
    return None


# ============================================================================
# Value Coercion
# ============================================================================

def coerce_value(raw: Any) -> int | float | str:
    """
    Convert a raw CSV cell to a number when it is one.

    "42" -> 42, "3.5" -> 3.5, "3.14abc" -> "3.14abc", "" -> "".
    Non-numeric values come back trimmed.
    """
    if raw is None:
        return ""
    if isinstance(raw, (int, float)) and not isinstance(raw, bool):
        return raw
    text = str(raw).strip()
    if not text or not _NUMBER_RE.match(text):
        return text
    if _INTEGER_RE.match(text):
        return int(text)
    return float(text)


def is_numeric(value: Any) -> bool:
    """True when a coerced cell holds a usable number."""
    if isinstance(value, bool):
        return False
    if isinstance(value, (int, float)):
        return not math.isnan(value)
    return False


def is_missing(value: Any) -> bool:
    return value is None or (isinstance(value, str) and value.strip() == "")


def parse_dates(values: list[Any]) -> pd.Series:
    """
    Parse a column of cells in one pass.

    Returns a tz-naive datetime Series aligned with `values`; cells that are
    not dates (numbers, blanks, free text) come back as NaT. Tz-aware text
    is converted to UTC. ISO 8601 text takes the vectorized path and only
    the leftovers are parsed element by element.
    """
    cells = pd.Series(
        [
            v.isoformat() if isinstance(v, (datetime, date))
            else v.strip() if isinstance(v, str) and v.strip()
            else None
            for v in values
        ],
        dtype=object,
    )
    parsed = pd.to_datetime(cells, errors="coerce", utc=True, format="ISO8601")
    retry = parsed.isna() & cells.notna()
    if retry.any():
        parsed[retry] = pd.to_datetime(cells[retry], errors="coerce", utc=True, format="mixed")
    return parsed.dt.tz_convert(None)


def parse_date(value: Any) -> datetime | None:
    """Parse a single cell or user input as a date/time. None when unparseable."""
    parsed = parse_dates([value]).iloc[0]
    if pd.isna(parsed):
        return None
    return parsed.to_pydatetime()


# ============================================================================
# Dataset
# ============================================================================

@dataclass
class Dataset:
    """Ordered rows plus the header order they were parsed with."""
    headers: list[str]
    rows: list[Row] = field(default_factory=list)
    filename: str | None = None

    def __len__(self) -> int:
        return len(self.rows)

    @property
    def row_count(self) -> int:
        return len(self.rows)

    def numeric_columns(self) -> list[str]:
        """Headers with at least one numeric value, in header order."""
        return [h for h in self.headers if any(is_numeric(row.get(h)) for row in self.rows)]

    def head(self, n: int = 5) -> list[Row]:
        return [dict(row) for row in self.rows[:n]]

    def column_values(self, column: str) -> list[Any]:
        return [row.get(column) for row in self.rows]

    def unique_values(self, column: str) -> list[str]:
        """Sorted distinct non-empty values of a column, stringified and trimmed."""
        values = {str(row.get(column, "")).strip() for row in self.rows}
        values.discard("")
        return sorted(values)

    def date_bounds(self, column: str) -> tuple[str, str] | None:
        """(min, max) parseable dates of a column as ISO day strings."""
        dates = parse_dates(self.column_values(column)).dropna()
        if dates.empty:
            return None
        return dates.min().date().isoformat(), dates.max().date().isoformat()


def _skip_long_row(fields: list[str]) -> None:
    logger.warning(
        "[data_loader] Skipping malformed row with %d fields: %r", len(fields), fields[:3]
    )
    return None


def _read_frame(text: str, skiprows: list[int] | None = None) -> pd.DataFrame:
    try:
        return pd.read_csv(
            io.StringIO(text),
            dtype=str,
            keep_default_na=False,
            skipinitialspace=True,
            skip_blank_lines=True,
            skiprows=skiprows,
            on_bad_lines=_skip_long_row,
            engine="python",
        )
    except pd.errors.EmptyDataError as exc:
        raise ValueError("The CSV file is empty.") from exc
    except pd.errors.ParserError as exc:
        raise ValueError(f"Could not parse CSV: {exc}") from exc


def parse_csv(text: str, filename: str | None = None) -> Dataset:
    """
    Parse CSV text into a Dataset.

    The first line holds the headers. Rows whose field count differs from
    the header count are dropped with a warning. Cells are coerced once here.

    Raises:
        ValueError: if the text has no header line
    """
    if not text or not text.strip():
        raise ValueError("The CSV file is empty.")

    df = _read_frame(text)
    if not isinstance(df.index, pd.RangeIndex):
        # pandas turns a first data row longer than the header into an index
        logger.warning("[data_loader] Skipping malformed row 1: more fields than headers")
        df = _read_frame(text, skiprows=[1])

    headers = [str(c).strip() for c in df.columns]
    df.columns = headers

    # Short rows are padded with NaN; genuine empty cells stay ""
    short = df.isna().any(axis=1)
    if short.any():
        for position, fields in zip(df.index[short], df[short].notna().sum(axis=1)):
            logger.warning(
                "[data_loader] Skipping malformed row %d: expected %d columns, got %d",
                int(position) + 1, len(headers), int(fields),
            )
        df = df[~short]

    rows: list[Row] = [
        {h: coerce_value(v) for h, v in zip(headers, values)}
        for values in df.itertuples(index=False, name=None)
    ]
    return Dataset(headers=headers, rows=rows, filename=filename)


def default_axes(dataset: Dataset, page: str) -> dict[str, str | None]:
    """Pick default X/Y columns for a page from header keywords."""
    numeric = dataset.numeric_columns()
    x = dataset.headers[0] if dataset.headers else None
    y = numeric[0] if numeric else (dataset.headers[1] if len(dataset.headers) > 1 else None)

    if page == "complex-stats":
        return {
            "x": numeric[0] if numeric else x,
            "y": numeric[1] if len(numeric) > 1 else y,
        }

    hints = PAGE_AXIS_HINTS.get(page)
    if hints:
        x = find_column_like(dataset.headers, hints["x"]) or x
        y = find_column_like(numeric, hints["y"]) or y
    return {"x": x, "y": y}


# ============================================================================
# Data Store
# ============================================================================

class DataStore:
    """
    Singleton-like store owned by the web layer: the active dataset, saved
    chart configurations and per-page active plot configurations.
    """

    def __init__(self):
        self.dataset: Dataset | None = None
        self.saved_charts: dict[int, dict] = {}
        self.active_plots: dict[str, dict] = {}
        self._next_chart_id = 1

    @property
    def is_loaded(self) -> bool:
        return self.dataset is not None and self.dataset.row_count > 0

    def load_text(self, text: str, filename: str | None = None) -> Dataset:
        dataset = parse_csv(text, filename=filename)
        self.dataset = dataset
        logger.info(
            "[data_loader] Loaded %s: %d rows, %d columns",
            filename or "dataset", dataset.row_count, len(dataset.headers),
        )
        return dataset

    def load_file(self, csv_path: str | Path) -> Dataset:
        csv_path = Path(csv_path)
        if not csv_path.exists():
            raise FileNotFoundError(f"CSV file not found: {csv_path}")
        return self.load_text(csv_path.read_text(encoding="utf-8-sig"), filename=csv_path.name)

    def clear(self) -> None:
        self.dataset = None
        self.active_plots.clear()

    # Saved charts

    def save_chart(self, config: dict) -> int:
        chart_id = self._next_chart_id
        self._next_chart_id += 1
        self.saved_charts[chart_id] = {**config, "id": chart_id}
        return chart_id

    def list_charts(self) -> list[dict]:
        """Saved charts, most recently saved first."""
        return sorted(
            self.saved_charts.values(),
            key=lambda c: (c.get("date_saved") or "", c["id"]),
            reverse=True,
        )

    def delete_chart(self, chart_id: int) -> bool:
        return self.saved_charts.pop(chart_id, None) is not None

    def clear_charts(self) -> None:
        self.saved_charts.clear()

    # Active plot configuration per page

    def set_active_plot(self, page_id: str, config: dict) -> None:
        self.active_plots[page_id] = {**config, "page_id": page_id}

    def get_active_plot(self, page_id: str) -> dict | None:
        return self.active_plots.get(page_id)

    def clear_active_plots(self) -> None:
        self.active_plots.clear()


# Global data store instance
_data_store = DataStore()


def get_data_store() -> DataStore:
    """Get the global data store instance."""
    return _data_store


def load_csv_data(csv_path: str | Path) -> DataStore:
    """Load CSV data into the global store."""
    _data_store.load_file(csv_path)
    return _data_store
