"""
Per-entity rollups and performance classification.
Folds rows into branch or employee totals, counts distinct sub-entities
and derives issuance, activation and conversion ratings.
"""
import logging
import math
from collections import defaultdict

from aggregation import group_label
from data_loader import COLUMN_ALIASES, Row, is_numeric, resolve_column
from models import EntityRollup, RollupResponse


logger = logging.getLogger(__name__)

# Summed metrics, in report order
METRIC_FIELDS = [
    "customers",
    "sim_cards_issued",
    "apps_issued",
    "sim_cards_activated",
    "apps_activated",
    "transactions",
]

# entity -> (logical field, display label, sub-entity field)
ENTITY_CONFIGS: dict[str, tuple[str, str, str | None]] = {
    "branch": ("branch", "Branch", "employee"),
    "employee": ("employee", "Employee", None),
}


# ============================================================================
# Performance Classification
# ============================================================================

def classify_issuance(ratio: float) -> str:
    """
    Rate an issuance ratio (issued / customers).

    < 0.10 Poor, < 0.25 Not Good, <= 0.50 Good, else Great.
    """
    if ratio < 0.10:
        return "Poor"
    if ratio < 0.25:
        return "Not Good"
    if ratio <= 0.50:
        return "Good"
    return "Great"


def classify_activation(ratio: float) -> str:
    """
    Rate an activation or conversion ratio.

    < 0.50 Poor, < 0.75 Not Good, <= 0.85 Good, else Great.
    """
    if ratio < 0.50:
        return "Poor"
    if ratio < 0.75:
        return "Not Good"
    if ratio <= 0.85:
        return "Good"
    return "Great"


def safe_ratio(numerator: float, denominator: float) -> float:
    return numerator / denominator if denominator != 0 else 0.0


def derive_ratings(rollup: EntityRollup) -> EntityRollup:
    """Fill in the three ratios and their labels from the summed totals."""
    issued = rollup.sim_cards_issued + rollup.apps_issued
    activated = rollup.sim_cards_activated + rollup.apps_activated

    rollup.issuance_ratio = safe_ratio(issued, rollup.customers)
    rollup.issuance_rating = classify_issuance(rollup.issuance_ratio)
    rollup.activation_ratio = safe_ratio(activated, issued)
    rollup.activation_rating = classify_activation(rollup.activation_ratio)
    rollup.conversion_ratio = safe_ratio(rollup.transactions, rollup.apps_issued)
    rollup.conversion_rating = classify_activation(rollup.conversion_ratio)
    return rollup


# ============================================================================
# Rollup Engine
# ============================================================================

def rollup(
    rows: list[Row],
    headers: list[str],
    entity_aliases: list[str],
    metric_aliases: dict[str, list[str]],
    sub_entity_aliases: list[str] | None = None,
    entity_label: str = "Entity",
) -> dict[str, EntityRollup]:
    """
    Aggregate metrics per entity across all rows.

    Args:
        rows: Rows to fold (already filtered)
        headers: Dataset headers, used to resolve every alias set
        entity_aliases: Header spellings of the entity identifier
        metric_aliases: EntityRollup metric field -> header spellings
        sub_entity_aliases: Header spellings of a related identifier whose
            distinct values are counted per entity
        entity_label: Used for the "Unknown <label>" sentinel

    Returns:
        Dict mapping entity id -> EntityRollup with ratios derived
    """
    unknown = f"Unknown {entity_label}"
    entity_col = resolve_column(headers, entity_aliases)
    metric_cols = {name: resolve_column(headers, aliases) for name, aliases in metric_aliases.items()}
    sub_col = resolve_column(headers, sub_entity_aliases) if sub_entity_aliases else None

    # Values are collected and summed with fsum at the end so the totals do
    # not depend on row order.
    contributions: dict[str, dict[str, list[float]]] = defaultdict(lambda: defaultdict(list))
    sub_entities: dict[str, set[str]] = defaultdict(set)
    row_counts: dict[str, int] = defaultdict(int)

    for row in rows:
        entity_id = unknown
        if entity_col is not None:
            # Labelled the same way as chart groups
            text = group_label(row.get(entity_col)).strip()
            if text:
                entity_id = text

        row_counts[entity_id] += 1
        for name, col in metric_cols.items():
            value = row.get(col) if col is not None else None
            contributions[entity_id][name].append(float(value) if is_numeric(value) else 0.0)

        if sub_entity_aliases is not None:
            # Registers the entity even when it has no sub-entity ids
            ids = sub_entities[entity_id]
            if sub_col is not None:
                sub_id = group_label(row.get(sub_col)).strip()
                if sub_id:
                    ids.add(sub_id)

    results: dict[str, EntityRollup] = {}
    for entity_id, count in row_counts.items():
        totals = {name: math.fsum(contributions[entity_id][name]) for name in metric_cols}
        entity = EntityRollup(entity_id=entity_id, row_count=count, **totals)
        if sub_entity_aliases is not None:
            entity.sub_entity_count = len(sub_entities[entity_id])
        results[entity_id] = derive_ratings(entity)

    return results


def _metric_aliases() -> dict[str, list[str]]:
    return {name: COLUMN_ALIASES[name] for name in METRIC_FIELDS}


def branch_rollup(rows: list[Row], headers: list[str]) -> dict[str, EntityRollup]:
    """Rollup per branch, counting distinct employees per branch."""
    return rollup(
        rows,
        headers,
        COLUMN_ALIASES["branch"],
        _metric_aliases(),
        sub_entity_aliases=COLUMN_ALIASES["employee"],
        entity_label="Branch",
    )


def employee_rollup(rows: list[Row], headers: list[str]) -> dict[str, EntityRollup]:
    """Rollup per employee."""
    return rollup(
        rows,
        headers,
        COLUMN_ALIASES["employee"],
        _metric_aliases(),
        entity_label="Employee",
    )


def compute_rollup_report(rows: list[Row], headers: list[str], entity: str) -> RollupResponse:
    """
    Build the per-entity report for "branch" or "employee".

    Raises:
        ValueError: if the entity kind is unknown
    """
    if entity not in ENTITY_CONFIGS:
        raise ValueError(f"Unknown entity '{entity}'. Must be one of: {sorted(ENTITY_CONFIGS)}")

    field_name, label, sub_field = ENTITY_CONFIGS[entity]
    rollups = branch_rollup(rows, headers) if entity == "branch" else employee_rollup(rows, headers)

    resolved = {name: resolve_column(headers, COLUMN_ALIASES[name]) for name in METRIC_FIELDS}
    if sub_field:
        resolved[sub_field] = resolve_column(headers, COLUMN_ALIASES[sub_field])
    entity_col = resolve_column(headers, COLUMN_ALIASES[field_name])

    warnings = []
    if entity_col is None:
        warnings.append(f"No {label.lower()} column found; all rows grouped under 'Unknown {label}'.")
    missing = [name for name in METRIC_FIELDS if resolved[name] is None]
    if missing:
        warnings.append(f"Metric columns not found (counted as 0): {', '.join(missing)}")
    for msg in warnings:
        logger.warning("[metrics] %s", msg)

    return RollupResponse(
        entity=entity,
        entity_column=entity_col,
        resolved_columns=resolved,
        rollups=[rollups[k] for k in sorted(rollups)],
        row_count=len(rows),
        warnings=warnings,
    )


def rollup_summary_text(rollups: list[EntityRollup], entity_label: str) -> str:
    """Plain-text report of rollups, used as the prompt for an AI summary."""
    lines = [f"{entity_label} performance summary ({len(rollups)} {entity_label.lower()}s):", ""]
    for r in rollups:
        lines.append(f"{entity_label}: {r.entity_id}")
        if r.sub_entity_count is not None:
            lines.append(f"  Employees: {r.sub_entity_count}")
        lines.append(
            f"  Customers: {r.customers:g}, SIM cards issued: {r.sim_cards_issued:g}, "
            f"Apps issued: {r.apps_issued:g}"
        )
        lines.append(
            f"  SIM cards activated: {r.sim_cards_activated:g}, "
            f"Apps activated: {r.apps_activated:g}, Transactions: {r.transactions:g}"
        )
        lines.append(f"  Issuance: {r.issuance_ratio:.2%} ({r.issuance_rating})")
        lines.append(f"  Activation: {r.activation_ratio:.2%} ({r.activation_rating})")
        lines.append(f"  Conversion: {r.conversion_ratio:.2%} ({r.conversion_rating})")
    return "\n".join(lines)
