"""
FastAPI application for the CSV analytics dashboard.
Provides endpoints for dataset upload, charting series, entity rollups,
correlation, regression and AI summaries.
"""
import logging
import os
from contextlib import asynccontextmanager
from datetime import datetime
from pathlib import Path

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware

from aggregation import build_chart_series, column_distribution
from correlation import ORDER_MODES, correlation_matrix
from data_loader import Dataset, default_axes, get_data_store, load_csv_data, resolve_field
from describe import describe
from filters import filter_by_date_range
from insights import (
    InsightsError,
    dataset_prompt,
    regression_prompt,
    rollup_prompt,
    summarize,
)
from metrics import ENTITY_CONFIGS, compute_rollup_report, rollup_summary_text
from models import (
    ActivePlot,
    ActivePlotRequest,
    ChartRequest,
    ChartResponse,
    ColumnDistribution,
    ConfigResponse,
    CorrelationRequest,
    CorrelationResult,
    DatasetSummary,
    DateRange,
    DescribeResponse,
    HeadResponse,
    HealthResponse,
    InsightsRequest,
    InsightsResponse,
    RegressionRequest,
    RegressionResult,
    RollupRequest,
    RollupResponse,
    SavedChart,
    SavedChartRequest,
    UploadRequest,
)
from regression import regress


logging.basicConfig(
    level=os.environ.get("ANALYTICS_LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

PAGES = ["home", "branches", "employees", "time-series", "complex-stats"]
# Pages whose X axis carries a value filter
FILTERED_PAGES = ["branches", "employees"]
DEFAULT_CORS_ORIGINS = "http://localhost:5173,http://localhost:3000,http://127.0.0.1:5173"


# ============================================================================
# Application Lifecycle
# ============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Preload a CSV on startup when ANALYTICS_CSV_PATH is set."""
    csv_path = os.environ.get("ANALYTICS_CSV_PATH")
    if csv_path:
        path = Path(csv_path)
        logger.info("Looking for CSV at: %s", path)
        if path.exists():
            load_csv_data(path)
        else:
            logger.warning("CSV file not found at %s; upload a dataset via POST /dataset", path)
    yield


# ============================================================================
# FastAPI Application
# ============================================================================

app = FastAPI(
    title="CSV Analytics API",
    description="Backend API for CSV charting, entity reporting and statistics",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        o.strip()
        for o in os.environ.get("ANALYTICS_CORS_ORIGINS", DEFAULT_CORS_ORIGINS).split(",")
        if o.strip()
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def require_dataset() -> Dataset:
    store = get_data_store()
    if not store.is_loaded:
        raise HTTPException(
            status_code=503,
            detail="No data loaded. Please upload a CSV file first.",
        )
    return store.dataset


def require_columns(dataset: Dataset, columns: list[str]) -> None:
    unknown = [c for c in columns if c and c not in dataset.headers]
    if unknown:
        raise HTTPException(
            status_code=400,
            detail=f"Unknown column(s): {unknown}. Must be one of: {dataset.headers}",
        )


def summarize_dataset(dataset: Dataset) -> DatasetSummary:
    return DatasetSummary(
        filename=dataset.filename,
        row_count=dataset.row_count,
        headers=dataset.headers,
        numeric_columns=dataset.numeric_columns(),
    )


# ============================================================================
# Health Check
# ============================================================================

@app.get("/health", response_model=HealthResponse)
async def health_check():
    """Simple health check endpoint."""
    return HealthResponse(status="ok", dataset_loaded=get_data_store().is_loaded)


# ============================================================================
# Dataset
# ============================================================================

@app.post("/dataset", response_model=DatasetSummary)
async def upload_dataset(request: UploadRequest):
    """Parse CSV text and make it the active dataset."""
    store = get_data_store()
    try:
        dataset = store.load_text(request.content, filename=request.filename)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    if dataset.row_count == 0:
        raise HTTPException(
            status_code=400,
            detail="The CSV file is empty or contains no valid data rows after headers.",
        )
    return summarize_dataset(dataset)


@app.delete("/dataset", response_model=HealthResponse)
async def clear_dataset():
    """Drop the active dataset and every page's active plot."""
    get_data_store().clear()
    return HealthResponse(status="ok", dataset_loaded=False)


@app.get("/config", response_model=ConfigResponse)
async def get_config():
    """
    Get column lists, aggregators, chart types and per-page default axes
    for the active dataset.
    """
    dataset = require_dataset()
    page_defaults = {page: default_axes(dataset, page) for page in PAGES}

    date_bounds = None
    date_col = page_defaults["time-series"]["x"]
    if date_col:
        bounds = dataset.date_bounds(date_col)
        if bounds:
            date_bounds = {"column": date_col, "start_date": bounds[0], "end_date": bounds[1]}

    filter_options = {
        page: dataset.unique_values(page_defaults[page]["x"])
        for page in FILTERED_PAGES
        if page_defaults[page]["x"]
    }

    return ConfigResponse(
        filename=dataset.filename,
        headers=dataset.headers,
        numeric_columns=dataset.numeric_columns(),
        page_defaults=page_defaults,
        date_bounds=date_bounds,
        filter_options=filter_options,
        row_count=dataset.row_count,
    )


@app.get("/dataset/head", response_model=HeadResponse)
async def get_head(n: int = 5):
    dataset = require_dataset()
    return HeadResponse(headers=dataset.headers, rows=dataset.head(max(n, 0)))


@app.get("/dataset/describe", response_model=DescribeResponse)
async def get_statistics():
    dataset = require_dataset()
    return DescribeResponse(statistics=describe(dataset.rows, dataset.headers))


@app.get("/dataset/distribution/{column}", response_model=ColumnDistribution)
async def get_distribution(column: str):
    dataset = require_dataset()
    require_columns(dataset, [column])
    return column_distribution(dataset.rows, column)


# ============================================================================
# Charting
# ============================================================================

@app.post("/chart", response_model=ChartResponse)
async def build_chart(request: ChartRequest):
    """Build the series for one chart, applying its value and date filters."""
    dataset = require_dataset()
    columns = [request.x_column, request.y_column]
    if request.date_range and request.date_range.date_column:
        columns.append(request.date_range.date_column)
    require_columns(dataset, columns)

    try:
        return build_chart_series(dataset.rows, request)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


# ============================================================================
# Entity Rollups
# ============================================================================

def build_rollup_report(
    dataset: Dataset, entity: str, date_range: DateRange | None
) -> RollupResponse:
    """Rollup report over the rows inside an optional date window."""
    rows = dataset.rows
    warnings: list[str] = []
    if date_range is not None:
        date_col = date_range.date_column or resolve_field(dataset.headers, "date")
        require_columns(dataset, [date_col] if date_col else [])
        result = filter_by_date_range(rows, date_col, date_range.start_date, date_range.end_date)
        rows = result.rows
        warnings.extend(result.warnings)

    report = compute_rollup_report(rows, dataset.headers, entity)
    report.warnings = warnings + report.warnings
    return report


@app.post("/rollup/{entity}", response_model=RollupResponse)
async def entity_rollup(entity: str, request: RollupRequest | None = None):
    """Per-branch or per-employee totals with performance ratings."""
    if entity not in ENTITY_CONFIGS:
        raise HTTPException(
            status_code=404,
            detail=f"Unknown entity '{entity}'. Must be one of: {sorted(ENTITY_CONFIGS)}",
        )
    dataset = require_dataset()
    return build_rollup_report(dataset, entity, request.date_range if request else None)


# ============================================================================
# Statistics
# ============================================================================

@app.post("/correlation", response_model=CorrelationResult)
async def correlation(request: CorrelationRequest):
    dataset = require_dataset()
    if request.order_by not in ORDER_MODES:
        raise HTTPException(
            status_code=400,
            detail=f"Invalid order_by '{request.order_by}'. Must be one of: {ORDER_MODES}",
        )
    require_columns(dataset, request.columns)
    columns = request.columns or dataset.numeric_columns()
    return correlation_matrix(dataset.rows, columns, request.order_by)


@app.post("/regression", response_model=RegressionResult)
async def regression(request: RegressionRequest):
    dataset = require_dataset()
    require_columns(dataset, [request.dependent, *request.independents])
    return regress(dataset.rows, request.dependent, request.independents)


# ============================================================================
# AI Insights
# ============================================================================

def build_insights_prompt(request: InsightsRequest) -> str:
    if request.prompt:
        return request.prompt

    dataset = require_dataset()
    if request.kind == "regression":
        if not request.dependent or not request.independents:
            raise HTTPException(
                status_code=400,
                detail="Regression insights need a dependent and at least one independent column.",
            )
        require_columns(dataset, [request.dependent, *request.independents])
        result = regress(dataset.rows, request.dependent, request.independents)
        if not result.ok:
            raise HTTPException(status_code=400, detail=result.message)
        return regression_prompt(result)

    if request.kind == "rollup":
        if request.entity not in ENTITY_CONFIGS:
            raise HTTPException(
                status_code=400,
                detail=f"Rollup insights need an entity, one of: {sorted(ENTITY_CONFIGS)}",
            )
        report = build_rollup_report(dataset, request.entity, request.date_range)
        label = ENTITY_CONFIGS[request.entity][1]
        return rollup_prompt(rollup_summary_text(report.rollups, label))

    return dataset_prompt(dataset, request.sample_size)


@app.post("/insights", response_model=InsightsResponse)
async def get_insights(request: InsightsRequest):
    """
    Ask the AI proxy to interpret the supplied text, a dataset sample, a
    regression summary or a rollup report.
    """
    prompt = build_insights_prompt(request)
    try:
        text = await summarize(prompt)
    except InsightsError as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from exc
    return InsightsResponse(text=text)


# ============================================================================
# Saved Charts
# ============================================================================

@app.get("/charts", response_model=list[SavedChart])
async def list_saved_charts():
    return [SavedChart(**c) for c in get_data_store().list_charts()]


@app.post("/charts", response_model=SavedChart)
async def save_chart(request: SavedChartRequest):
    store = get_data_store()
    chart_id = store.save_chart({
        "description": request.description,
        "chart": request.chart.model_dump(),
        "rendering": request.rendering,
        "date_saved": datetime.now().isoformat(),
    })
    return SavedChart(**store.saved_charts[chart_id])


@app.get("/charts/{chart_id}", response_model=SavedChart)
async def get_saved_chart(chart_id: int):
    chart = get_data_store().saved_charts.get(chart_id)
    if chart is None:
        raise HTTPException(status_code=404, detail="Saved chart not found.")
    return SavedChart(**chart)


@app.delete("/charts/{chart_id}", response_model=HealthResponse)
async def delete_saved_chart(chart_id: int):
    store = get_data_store()
    if not store.delete_chart(chart_id):
        raise HTTPException(status_code=404, detail="Saved chart not found.")
    return HealthResponse(status="ok", dataset_loaded=store.is_loaded)


@app.delete("/charts", response_model=HealthResponse)
async def clear_saved_charts():
    store = get_data_store()
    store.clear_charts()
    return HealthResponse(status="ok", dataset_loaded=store.is_loaded)


# ============================================================================
# Active Plot per Page
# ============================================================================

@app.get("/plots/{page_id}", response_model=ActivePlot)
async def get_active_plot(page_id: str):
    plot = get_data_store().get_active_plot(page_id)
    if plot is None:
        raise HTTPException(status_code=404, detail=f"No active plot for page '{page_id}'.")
    return ActivePlot(**plot)


@app.put("/plots/{page_id}", response_model=ActivePlot)
async def set_active_plot(page_id: str, request: ActivePlotRequest):
    store = get_data_store()
    store.set_active_plot(page_id, {
        "chart": request.chart.model_dump(),
        "rendering": request.rendering,
    })
    return ActivePlot(**store.get_active_plot(page_id))


@app.delete("/plots", response_model=HealthResponse)
async def clear_active_plots():
    store = get_data_store()
    store.clear_active_plots()
    return HealthResponse(status="ok", dataset_loaded=store.is_loaded)


# ============================================================================
# Entry Point
# ============================================================================

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
