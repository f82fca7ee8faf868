"""
MRP Netting & Rollup Module
===========================
Turns flat time-phased MRP explosion rows into one planning-grid row per
product/location.

Key Features:
- Groups (product, location, week) rows into per-item rollups
- Per-week values for the selected grid view (demand, supply, inventory, orders)
- Worst-case inventory health across the whole horizon
  (stockout > critical > warning > optimal)
- Current stock taken from week 1 beginning inventory
- Stateless: every call rebuilds the rollups from the input records

Author: Supply Planning Team
Version: 1.0
"""

import time
import pandas as pd
import numpy as np
from typing import Dict, Iterator, List, Optional, Tuple

from data_loader import normalize_time_phased_records
from planning_rules import (
    INVENTORY_STATUS_RULES,
    VIEW_MODE_RULES,
    get_status_severity,
    get_view_mode_fields
)

# ===== CONSTANTS =====

STATUS_ORDER = INVENTORY_STATUS_RULES["severity_order"]
DEFAULT_STATUS = INVENTORY_STATUS_RULES["default_status"]
DEFAULT_LEAD_TIME_DAYS = INVENTORY_STATUS_RULES["default_lead_time_days"]
CURRENT_STOCK_WEEK = INVENTORY_STATUS_RULES["current_stock_week"]
STOCKOUT_LEVEL = INVENTORY_STATUS_RULES["thresholds"]["stockout_level"]
WEEK_PREFIX = VIEW_MODE_RULES["week_column_prefix"]

ROLLUP_BASE_COLUMNS = [
    'id',
    'product_id',
    'location_id',
    'inventory_status',
    'current_stock',
    'safety_stock',
    'reorder_point',
    'lead_time_days'
]


def week_column(week_number: int) -> str:
    """Grid column name for a week number (1-based)."""
    return f"{WEEK_PREFIX}{int(week_number)}"


def classify_week_status(
    projected_available: float,
    safety_stock: float,
    reorder_point: float
) -> str:
    """
    Classify the inventory health of a single week.

    Args:
        projected_available: Projected available balance at week end
        safety_stock: Safety stock target
        reorder_point: Reorder point

    Returns:
        'stockout', 'critical', 'warning' or 'optimal'
    """
    if projected_available <= STOCKOUT_LEVEL:
        return 'stockout'
    if projected_available < safety_stock:
        return 'critical'
    if projected_available < reorder_point:
        return 'warning'
    return 'optimal'


def escalate_status(current: str, candidate: str) -> str:
    """Return the more severe of two statuses."""
    if get_status_severity(candidate) > get_status_severity(current):
        return candidate
    return current


def classify_inventory_status(weeks: pd.DataFrame) -> str:
    """
    Worst-case inventory status across an item's weeks.

    Weeks are scanned in ascending week_number order and the status can only
    escalate: a week that recovers never clears an earlier stockout.

    Args:
        weeks: Rows of one product/location with week_number,
               projected_available, safety_stock and reorder_point

    Returns:
        Inventory status string ('optimal' when there are no weeks)
    """
    status = DEFAULT_STATUS
    if weeks.empty:
        return status

    ordered = weeks.sort_values('week_number', kind='mergesort')
    for row in ordered.itertuples(index=False):
        status = escalate_status(status, classify_week_status(
            row.projected_available, row.safety_stock, row.reorder_point
        ))
        if status == STATUS_ORDER[-1]:
            # Stockout is already the most severe state
            break
    return status


def extract_view_value(weeks: pd.DataFrame, fields: List[str]) -> pd.Series:
    """Sum the view-mode source fields row by row."""
    if not fields:
        return pd.Series(0, index=weeks.index, dtype=float)
    return weeks[fields].sum(axis=1)


def build_item_rollup(
    product_id: str,
    location_id: str,
    weeks: pd.DataFrame,
    fields: List[str],
    horizon_weeks: int,
    lead_time_days: float = DEFAULT_LEAD_TIME_DAYS
) -> Dict:
    """
    Build the grid row for one product/location.

    Args:
        product_id: Product identifier
        location_id: Location identifier
        weeks: That item's normalized time-phased rows (may be empty)
        fields: Source fields for the selected view mode
        horizon_weeks: Number of week columns to emit
        lead_time_days: Lead time to display for the item

    Returns:
        Dictionary with rollup fields and week_1..week_N values
        (weeks with no record are 0)
    """
    ordered = weeks.sort_values('week_number', kind='mergesort') if not weeks.empty else weeks

    current_stock = 0
    safety_stock = 0
    reorder_point = 0
    week_values = {}

    if not ordered.empty:
        # Duplicate week rows: the last row for a week supplies every displayed field
        latest = ordered.drop_duplicates('week_number', keep='last')

        first_week = latest[latest['week_number'] == CURRENT_STOCK_WEEK]
        if not first_week.empty:
            current_stock = first_week['beginning_inventory'].iloc[0]

        safety_stock = latest['safety_stock'].iloc[0]
        reorder_point = latest['reorder_point'].iloc[0]

        values = extract_view_value(latest, fields)
        week_values = dict(zip(latest['week_number'], values))

    row = {
        'id': f"{product_id}_{location_id}",
        'product_id': product_id,
        'location_id': location_id,
        'inventory_status': classify_inventory_status(ordered),
        'current_stock': current_stock,
        'safety_stock': safety_stock,
        'reorder_point': reorder_point,
        'lead_time_days': lead_time_days
    }
    for week_number in range(1, horizon_weeks + 1):
        row[week_column(week_number)] = week_values.get(week_number, 0)

    return row


def build_item_rollups(
    records,
    view_mode: str = VIEW_MODE_RULES["default_view"],
    horizon_weeks: Optional[int] = None,
    lead_times: Optional[Dict[Tuple[str, str], float]] = None
) -> Tuple[List[str], pd.DataFrame]:
    """
    Roll time-phased MRP rows up to one row per product/location.

    This is the main entry point for the MRP planning grid.

    Args:
        records: DataFrame or list of dicts of TimePhasedRecord rows
        view_mode: 'demand', 'supply', 'inventory' or 'orders'
        horizon_weeks: Number of week columns (defaults to the highest week in the data)
        lead_times: Optional {(product_id, location_id): lead_time_days}

    Returns:
        tuple: (logs, rollup_df)
        - logs: List of processing messages
        - rollup_df: One row per product/location with week_1..week_N columns
    """
    logs = []
    start_time = time.time()
    logs.append("--- MRP Netting & Rollup ---")

    resolved_view, fields, defaulted = get_view_mode_fields(view_mode)
    if defaulted:
        logs.append(f"WARNING: Unknown view mode '{view_mode}'. Using '{resolved_view}' view.")
    logs.append(f"INFO: View mode: {resolved_view} ({' + '.join(fields)})")

    df = normalize_time_phased_records(records, logs)

    if horizon_weeks is None:
        horizon_weeks = int(df['week_number'].max()) if not df.empty else 0
    horizon_weeks = max(0, int(horizon_weeks))
    logs.append(f"INFO: Planning horizon: {horizon_weeks} weeks")

    week_cols = [week_column(w) for w in range(1, horizon_weeks + 1)]
    if df.empty:
        logs.append("WARNING: No MRP rows to roll up")
        return logs, pd.DataFrame(columns=ROLLUP_BASE_COLUMNS + week_cols)

    outside = int((df['week_number'] > horizon_weeks).sum())
    if outside > 0:
        logs.append(f"INFO: {outside} rows fall beyond the {horizon_weeks}-week horizon and are not shown as columns")

    lead_times = lead_times or {}
    rollups = []
    # sort=False keeps items in first-seen order
    for (product_id, location_id), weeks in df.groupby(['product_id', 'location_id'], sort=False):
        rollups.append(build_item_rollup(
            product_id,
            location_id,
            weeks,
            fields,
            horizon_weeks,
            lead_time_days=lead_times.get((product_id, location_id), DEFAULT_LEAD_TIME_DAYS)
        ))

    rollup_df = pd.DataFrame(rollups, columns=ROLLUP_BASE_COLUMNS + week_cols)

    logs.append(f"INFO: Built {len(rollup_df)} item rollups from {len(df)} rows")
    status_counts = rollup_df['inventory_status'].value_counts()
    for status in reversed(STATUS_ORDER):
        if status in status_counts:
            logs.append(f"INFO: {status}: {status_counts[status]} items")
    logs.append(f"INFO: Rollup finished in {time.time() - start_time:.2f} seconds.")

    return logs, rollup_df


def iter_week_values(rollup_row, horizon_weeks: Optional[int] = None) -> Iterator[Tuple[int, float]]:
    """
    Lazily yield (week_number, value) pairs from a rollup row.

    Args:
        rollup_row: Row from build_item_rollups (Series or dict)
        horizon_weeks: Stop after this many weeks (defaults to every week column present)

    Yields:
        (week_number, value) in ascending week order; missing weeks yield 0
    """
    keys = rollup_row.keys()
    week_number = 1
    while horizon_weeks is None or week_number <= horizon_weeks:
        col = week_column(week_number)
        if col not in keys:
            if horizon_weeks is None:
                return
            yield week_number, 0
        else:
            value = rollup_row[col]
            yield week_number, 0 if pd.isna(value) else value
        week_number += 1


def summarize_rollups(rollup_df: pd.DataFrame) -> pd.DataFrame:
    """
    Count items per inventory status, most severe first.

    Args:
        rollup_df: Output of build_item_rollups

    Returns:
        DataFrame with columns Status, Items, Share (%)
    """
    counts = (
        rollup_df['inventory_status'].value_counts()
        if not rollup_df.empty else pd.Series(dtype=int)
    )
    total = int(counts.sum())

    summary = pd.DataFrame({
        'Status': list(reversed(STATUS_ORDER)),
        'Items': [int(counts.get(status, 0)) for status in reversed(STATUS_ORDER)]
    })
    summary['Share (%)'] = np.where(
        total > 0, (summary['Items'] / max(total, 1) * 100).round(1), 0.0
    )
    return summary
