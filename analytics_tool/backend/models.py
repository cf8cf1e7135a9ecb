"""
Pydantic models for analytic results and API request/response schemas.
"""
from typing import Any, Literal, Optional
from pydantic import BaseModel, Field


Aggregator = Literal["none", "sum", "average", "count", "min", "max", "mode"]
ChartType = Literal[
    "bar", "line", "radar", "scatter", "pie", "doughnut", "polarArea", "histogram", "density"
]
PerformanceLabel = Literal["Poor", "Not Good", "Good", "Great"]
InsightsKind = Literal["dataset", "regression", "rollup"]

AGGREGATORS: list[str] = ["none", "sum", "average", "count", "min", "max", "mode"]
CHART_TYPES: list[str] = [
    "bar", "line", "scatter", "pie", "doughnut", "polarArea", "radar", "histogram", "density"
]


# ============================================================================
# Chart Series
# ============================================================================

class AggregatedSeries(BaseModel):
    """Grouped and reduced values, one per sorted group label."""
    labels: list[str] = Field(default_factory=list)
    values: list[Any] = Field(default_factory=list)
    aggregator: str = "average"
    label_suffix: str = ""
    warnings: list[str] = Field(default_factory=list)


class HistogramResult(BaseModel):
    """Binned frequencies of a numeric column."""
    labels: list[str] = Field(default_factory=list)
    counts: list[int] = Field(default_factory=list)
    bin_edges: list[float] = Field(default_factory=list)
    bin_width: float = 0.0
    # Same bins, rendered as a continuous curve (no kernel estimate)
    density: bool = False
    warnings: list[str] = Field(default_factory=list)


class CategoryTotals(BaseModel):
    """Per-category sums (numeric value column) or occurrence counts."""
    labels: list[str] = Field(default_factory=list)
    values: list[float] = Field(default_factory=list)
    is_sum: bool = True


class ScatterPoint(BaseModel):
    x: float
    y: float


class ColumnDistribution(BaseModel):
    """Distribution of a single column for the data overview."""
    column: str
    kind: Literal["histogram", "categorical"]
    labels: list[str] = Field(default_factory=list)
    counts: list[int] = Field(default_factory=list)


class ChartResponse(BaseModel):
    """Series handed to the rendering layer for one chart request."""
    chart_type: str
    x_column: str
    y_column: str
    aggregator: str
    title: str
    labels: list[str] = Field(default_factory=list)
    values: list[Any] = Field(default_factory=list)
    points: list[ScatterPoint] = Field(default_factory=list)
    row_count: int = 0
    warnings: list[str] = Field(default_factory=list)


# ============================================================================
# Entity Rollups
# ============================================================================

class EntityRollup(BaseModel):
    """Accumulated totals and derived classifications for one branch or employee."""
    entity_id: str
    row_count: int = 0
    customers: float = 0.0
    sim_cards_issued: float = 0.0
    apps_issued: float = 0.0
    sim_cards_activated: float = 0.0
    apps_activated: float = 0.0
    transactions: float = 0.0
    # Distinct related sub-entities (e.g. employees per branch)
    sub_entity_count: Optional[int] = None
    issuance_ratio: float = 0.0
    issuance_rating: PerformanceLabel = "Poor"
    activation_ratio: float = 0.0
    activation_rating: PerformanceLabel = "Poor"
    conversion_ratio: float = 0.0
    conversion_rating: PerformanceLabel = "Poor"


class RollupResponse(BaseModel):
    entity: str
    entity_column: Optional[str] = None
    resolved_columns: dict[str, Optional[str]] = Field(default_factory=dict)
    rollups: list[EntityRollup] = Field(default_factory=list)
    row_count: int = 0
    warnings: list[str] = Field(default_factory=list)


# ============================================================================
# Statistics
# ============================================================================

class CorrelationPair(BaseModel):
    """One off-diagonal cell with its display bucket."""
    first: str
    second: str
    r: Optional[float] = None
    strength: str = "n/a"
    direction: str = "none"


class CorrelationResult(BaseModel):
    """Pairwise Pearson correlation of the valid selected columns."""
    columns: list[str] = Field(default_factory=list)
    matrix: dict[str, dict[str, Optional[float]]] = Field(default_factory=dict)
    pairs: list[CorrelationPair] = Field(default_factory=list)
    dropped: list[str] = Field(default_factory=list)
    order_by: str = "alphabetical"
    message: Optional[str] = None

    @property
    def computable(self) -> bool:
        return len(self.columns) >= 2


class RegressionResult(BaseModel):
    """Ordinary least squares fit of one dependent on several independents."""
    ok: bool
    dependent: str
    independents: list[str] = Field(default_factory=list)
    n: int = 0
    intercept: Optional[float] = None
    coefficients: dict[str, float] = Field(default_factory=dict)
    r_squared: Optional[float] = None
    adjusted_r_squared: Optional[float] = None
    message: Optional[str] = None
    summary: str = ""


class ColumnStatistics(BaseModel):
    """Descriptive statistics over the numeric values of one column."""
    count: int = 0
    min: float = 0.0
    max: float = 0.0
    sum: float = 0.0
    mean: float = 0.0
    median: float = 0.0
    mode: Optional[float] = None
    stddev: float = 0.0


# ============================================================================
# API Requests
# ============================================================================

class DateRange(BaseModel):
    """Inclusive day-level window on a date column."""
    date_column: Optional[str] = None
    start_date: Optional[str] = None
    end_date: Optional[str] = None


class UploadRequest(BaseModel):
    """Request body for POST /dataset."""
    filename: str = Field(default="upload.csv")
    content: str = Field(description="Raw CSV text, first line holds the headers")


class ChartRequest(BaseModel):
    """Request body for POST /chart and the stored form of a chart configuration."""
    x_column: str
    y_column: str
    chart_type: ChartType = "bar"
    aggregator: Aggregator = "average"
    x_filter: list[str] = Field(
        default_factory=list,
        description="Keep only rows whose X value is in this list (empty = all rows)",
    )
    date_range: Optional[DateRange] = None


class RollupRequest(BaseModel):
    """Request body for POST /rollup/{entity}."""
    date_range: Optional[DateRange] = None


class CorrelationRequest(BaseModel):
    columns: list[str] = Field(
        default_factory=list,
        description="Columns to correlate (empty = every numeric column)",
    )
    order_by: str = Field(default="alphabetical")


class RegressionRequest(BaseModel):
    dependent: str
    independents: list[str] = Field(min_length=1)


class InsightsRequest(BaseModel):
    """
    Request body for POST /insights.

    An explicit prompt is sent as is. Otherwise the prompt is built for `kind`:
    a dataset sample, a regression of `dependent` on `independents`, or the
    rollup report for `entity`.
    """
    prompt: Optional[str] = None
    kind: InsightsKind = "dataset"
    sample_size: int = Field(default=50, ge=1, le=500)
    dependent: Optional[str] = None
    independents: list[str] = Field(default_factory=list)
    entity: Optional[str] = None
    date_range: Optional[DateRange] = None


class SavedChartRequest(BaseModel):
    description: str = ""
    chart: ChartRequest
    rendering: dict[str, Any] = Field(default_factory=dict)


class ActivePlotRequest(BaseModel):
    chart: ChartRequest
    rendering: dict[str, Any] = Field(default_factory=dict)


# ============================================================================
# API Responses
# ============================================================================

class DatasetSummary(BaseModel):
    filename: Optional[str] = None
    row_count: int
    headers: list[str]
    numeric_columns: list[str]


class ConfigResponse(BaseModel):
    """Response model for GET /config endpoint."""
    filename: Optional[str] = None
    headers: list[str]
    numeric_columns: list[str]
    aggregators: list[str] = Field(default_factory=lambda: list(AGGREGATORS))
    default_aggregator: str = "average"
    chart_types: list[str] = Field(default_factory=lambda: list(CHART_TYPES))
    page_defaults: dict[str, dict[str, Optional[str]]] = Field(default_factory=dict)
    date_bounds: Optional[dict[str, str]] = None
    # page -> distinct values of that page's default X column, for its value filter
    filter_options: dict[str, list[str]] = Field(default_factory=dict)
    row_count: int


class HeadResponse(BaseModel):
    headers: list[str]
    rows: list[dict[str, Any]]


class DescribeResponse(BaseModel):
    statistics: dict[str, ColumnStatistics]


class SavedChart(BaseModel):
    id: int
    description: str = ""
    chart: ChartRequest
    rendering: dict[str, Any] = Field(default_factory=dict)
    date_saved: str


class ActivePlot(BaseModel):
    page_id: str
    chart: ChartRequest
    rendering: dict[str, Any] = Field(default_factory=dict)


class InsightsResponse(BaseModel):
    text: str


class HealthResponse(BaseModel):
    """Response for GET /health endpoint."""
    status: str = "ok"
    dataset_loaded: bool = False
