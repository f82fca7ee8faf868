"""
Collaborative Forecast & Fair-Share Redistribution

Builds the customer x month collaboration grid and applies planner edits:
- Editing a single customer changes only that customer's KAM correction
- Editing the "all customers" row splits the new total across customers in
  proportion to their effective forecast for that month ("fair share"),
  rounding every share up to a whole unit
- When the effective forecast total is zero, every customer receives zero

Writes are produced as one upsert payload per customer; persisting them is
the caller's job and is not atomic across customers, so a failed batch is
recovered by re-running the whole edit.
"""

import math
import pandas as pd
from datetime import datetime
from dateutil.relativedelta import relativedelta
from typing import Dict, List, Optional, Tuple

from data_loader import normalize_collaboration_records
from planning_rules import FAIR_SHARE_RULES, COLLABORATION_RULES

ALL_CUSTOMERS = FAIR_SHARE_RULES["all_customers_key"]
METRICS = COLLABORATION_RULES["metrics"]
EDITABLE_METRIC = COLLABORATION_RULES["editable_metric"]
REFERENCE_METRIC = COLLABORATION_RULES["reference_metric"]
MONTH_FORMAT = COLLABORATION_RULES["month_format"]

GRID_KEY_COLUMNS = ['customer_id', 'product_id', 'month']


def _forecast_value(value) -> float:
    return 0 if value is None or pd.isna(value) else value


def calculate_fair_shares(new_value: float, customer_forecasts: Dict) -> Dict:
    """
    Unrounded proportional shares of a new aggregate value.

    share(c) = forecast(c) / sum(forecast) * V, or 0 for everyone when the
    forecast total is not positive.
    """
    total = sum(_forecast_value(forecast) for forecast in customer_forecasts.values())

    shares = {}
    for customer_id, forecast in customer_forecasts.items():
        share = 0.0
        if total > 0:
            # Multiply before dividing so whole-number splits stay exact
            share = _forecast_value(forecast) * new_value / total
        shares[customer_id] = share
    return shares


def redistribute_fair_share(month: str, new_value: float, customer_forecasts: Dict) -> Dict:
    """
    Split an all-customers override across customers by their forecast share.

    Formula: share(c) = ceil(forecast(c) / sum(forecast) * V)

    For V >= 0, rounding up means the distributed total is never below V.

    Args:
        month: Month key being edited (kept for the caller's bookkeeping)
        new_value: New aggregate value V (may be 0 or negative)
        customer_forecasts: {customer key: effective_forecast for the month}

    Returns:
        {customer key: new integer value} for every customer passed in.
        All values are 0 when the forecast total is 0.
    """
    return {
        customer_id: int(math.ceil(share))
        for customer_id, share in calculate_fair_shares(new_value, customer_forecasts).items()
    }


def build_collaboration_grid(raw_records, logs=None) -> pd.DataFrame:
    """
    Aggregate raw collaboration rows into one row per customer, product and month.

    Source columns are summed per key: forecast_ly -> last_year,
    forecast -> calculated_forecast, approved_sm_kam -> xamview,
    sm_kam_override -> kam_forecast_correction,
    forecast_sales_manager -> sales_manager_view, and effective_forecast.

    Args:
        raw_records: DataFrame or list of dicts with customer_id, product_id, postdate
        logs: Optional list to append logging messages

    Returns:
        DataFrame with customer_id, product_id, month and the grid metrics
    """
    if logs is None:
        logs = []

    df = normalize_collaboration_records(raw_records, logs)
    if df.empty:
        logs.append("WARNING: No collaboration records to build the grid")
        return pd.DataFrame(columns=GRID_KEY_COLUMNS + METRICS)

    df = df.rename(columns=COLLABORATION_RULES["metric_sources"])
    grid = df.groupby(GRID_KEY_COLUMNS, sort=True)[METRICS].sum().reset_index()

    logs.append(
        f"INFO: Collaboration grid: {grid['customer_id'].nunique()} customers x "
        f"{grid['month'].nunique()} months from {len(df)} rows"
    )
    return grid


def aggregate_all_customers(grid_df: pd.DataFrame) -> pd.DataFrame:
    """
    Build the "all customers" pseudo rows: every metric summed per month.

    Args:
        grid_df: Output of build_collaboration_grid

    Returns:
        DataFrame with customer_id = 'all', month and summed metrics
    """
    if grid_df.empty:
        return pd.DataFrame(columns=['customer_id', 'month'] + METRICS)

    totals = grid_df.groupby('month', sort=True)[METRICS].sum().reset_index()
    totals.insert(0, 'customer_id', ALL_CUSTOMERS)
    return totals


def get_month_forecasts(grid_df: pd.DataFrame, month: str, product_id: Optional[str] = None) -> Dict[str, float]:
    """
    Effective forecast per customer for one month.

    Args:
        grid_df: Collaboration grid
        month: Month key (YYYY-MM)
        product_id: Restrict to one product (all products when None)

    Returns:
        {customer_id: effective_forecast} in grid order
    """
    if grid_df.empty:
        return {}

    rows = grid_df[grid_df['month'] == month]
    if product_id is not None:
        rows = rows[rows['product_id'] == product_id]
    return rows.groupby('customer_id', sort=False)[REFERENCE_METRIC].sum().to_dict()


def apply_forecast_edit(
    grid_df: pd.DataFrame,
    customer_id: str,
    month: str,
    new_value: float,
    product_id: Optional[str] = None
) -> Tuple[List[str], pd.DataFrame, List[Dict]]:
    """
    Apply a planner's KAM correction edit to the collaboration grid.

    Editing the 'all' row redistributes the value with the fair-share rule
    across every customer/product row of that month. Editing a single customer
    updates only that customer with the value as entered.

    Args:
        grid_df: Collaboration grid (not modified)
        customer_id: Customer being edited, or 'all'
        month: Month key (YYYY-MM)
        new_value: Value entered by the planner
        product_id: Product the grid is filtered to (all products when None)

    Returns:
        tuple: (logs, updated_grid, updates)
        - logs: List of processing messages
        - updated_grid: Copy of the grid with the new corrections
        - updates: [{'customer_id', 'product_id', 'month', 'value'}], one per write
    """
    logs = []
    updated = grid_df.copy()
    if updated.empty:
        logs.append("WARNING: Collaboration grid is empty; nothing to edit")
        return logs, updated, []

    month_mask = updated['month'] == month
    if product_id is not None:
        month_mask &= updated['product_id'] == product_id

    if customer_id == ALL_CUSTOMERS:
        rows = updated[month_mask]
        if rows.empty:
            logs.append(f"WARNING: No customers have data for {month}")
            return logs, updated, []

        forecasts = {
            (row.customer_id, row.product_id): getattr(row, REFERENCE_METRIC)
            for row in rows.itertuples(index=False)
        }
        if sum(_forecast_value(value) for value in forecasts.values()) <= 0:
            logs.append(
                f"WARNING: Effective forecast total for {month} is 0. "
                f"All customers receive 0 instead of a share of {new_value:,.0f}."
            )
        shares = redistribute_fair_share(month, new_value, forecasts)

        updated.loc[month_mask, EDITABLE_METRIC] = [
            shares[(cust, prod)] for cust, prod in zip(rows['customer_id'], rows['product_id'])
        ]
        updates = [
            {'customer_id': cust, 'product_id': prod, 'month': month, 'value': share}
            for (cust, prod), share in shares.items()
        ]
        logs.append(
            f"INFO: Distributed {new_value:,.0f} across {len(shares)} customer rows for {month} "
            f"(allocated {sum(shares.values()):,.0f})"
        )
        return logs, updated, updates

    customer_mask = month_mask & (updated['customer_id'] == customer_id)
    if not customer_mask.any():
        logs.append(f"WARNING: Customer {customer_id} has no data for {month}")
        return logs, updated, []

    updated.loc[customer_mask, EDITABLE_METRIC] = new_value
    logs.append(f"INFO: Updated customer {customer_id} for {month} to {new_value:,.0f}")
    updates = [
        {'customer_id': customer_id, 'product_id': prod, 'month': month, 'value': new_value}
        for prod in updated.loc[customer_mask, 'product_id']
    ]
    return logs, updated, updates


def month_to_postdate(month: str) -> str:
    """Convert a YYYY-MM month key to the first-of-month postdate (YYYY-MM-DD)."""
    return datetime.strptime(month, MONTH_FORMAT).strftime('%Y-%m-01')


def build_upsert_payloads(updates: List[Dict], location_id: Optional[str] = None) -> List[Dict]:
    """
    One upsert payload per customer update.

    Payloads are keyed by (product_id, customer_id, location_id, postdate) and
    carry the value in commercial_input. They are meant to be written one at a
    time; a partial failure is retried by re-running the whole edit.
    """
    value_field = COLLABORATION_RULES["upsert_value_field"]
    return [
        {
            'product_id': update.get('product_id'),
            'customer_id': update['customer_id'],
            'location_id': location_id,
            'postdate': month_to_postdate(update['month']),
            value_field: update['value']
        }
        for update in updates
    ]


def build_month_horizon(start=None, months: int = COLLABORATION_RULES["default_horizon_months"]) -> List[str]:
    """
    Consecutive month keys starting at the month of `start`.

    Args:
        start: Any date in the first month (defaults to today)
        months: Number of months

    Returns:
        List of YYYY-MM keys
    """
    start = pd.Timestamp(datetime.now() if start is None else start).to_pydatetime()
    first = start.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
    return [(first + relativedelta(months=i)).strftime(MONTH_FORMAT) for i in range(months)]


def calculate_sales_trends(grid_df: pd.DataFrame, months: Optional[List[str]] = None,
                           customer_id: Optional[str] = None) -> Dict:
    """
    Compare the effective forecast against last year's sales.

    Args:
        grid_df: Collaboration grid
        months: Months to include (all when None)
        customer_id: Restrict to one customer ('all' or None for every customer)

    Returns:
        Dictionary with current_period, last_year_period, growth_percentage
        and trend_direction ('up', 'down' or 'neutral')
    """
    rows = grid_df
    if months is not None and not rows.empty:
        rows = rows[rows['month'].isin(months)]
    if customer_id and customer_id != ALL_CUSTOMERS and not rows.empty:
        rows = rows[rows['customer_id'] == customer_id]

    current = float(rows['effective_forecast'].sum()) if not rows.empty else 0.0
    last_year = float(rows['last_year'].sum()) if not rows.empty else 0.0

    growth = 0.0
    direction = 'neutral'
    if last_year > 0:
        growth = (current - last_year) / last_year * 100
        if growth > 0:
            direction = 'up'
        elif growth < 0:
            direction = 'down'

    return {
        'current_period': current,
        'last_year_period': last_year,
        'growth_percentage': growth,
        'trend_direction': direction
    }
