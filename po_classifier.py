"""
Purchase Order Classifier
=========================
Classifies purchase order recommendations for the approval grid.

Key Features:
- Days until the recommended order date (ceiling: a partial day is a full day left)
- Urgency level from one of two configured rule variants:
    A: critical (< 0) / high (<= 2) / medium (<= 7) / low
    B: immediate (<= 0) / urgent (<= 3) / future (> 14) / normal
- Cost category from total order value (strict '>' tiers at 100k / 50k / 10k)
- Recommendation generation from MRP planned order receipts

Author: Supply Planning Team
Version: 1.0
"""

import math
import pandas as pd
import numpy as np
from datetime import datetime, timedelta
from typing import Dict, Optional

from data_loader import (
    normalize_purchase_order_recommendations,
    normalize_time_phased_records,
    safe_numeric_column,
    clean_string_column,
    to_naive_timestamp
)
from planning_rules import PURCHASE_ORDER_RULES, get_urgency_variant

# ===== CONSTANTS =====

SECONDS_PER_DAY = 24 * 60 * 60
DEFAULT_LEAD_TIME_DAYS = PURCHASE_ORDER_RULES["default_lead_time_days"]
APPROVAL_THRESHOLD = PURCHASE_ORDER_RULES["approval_threshold"]


def _resolve_now(now=None):
    return pd.Timestamp(datetime.now()) if now is None else to_naive_timestamp(now)


def _to_number(value):
    if value is None:
        return np.nan
    if isinstance(value, str):
        value = value.replace(',', '')
    return pd.to_numeric(value, errors='coerce')


def calculate_days_until_order(recommended_order_date, now=None) -> int:
    """
    Whole days until the recommended order date.

    Uses ceiling so an order due later today still counts as one day left,
    and an order date that passed a few hours ago counts as 0.

    Args:
        recommended_order_date: Date or timestamp (None/NaT -> 0)
        now: Reference time (defaults to the current time)

    Returns:
        Integer days (negative when overdue)
    """
    order_date = to_naive_timestamp(recommended_order_date)
    if pd.isna(order_date):
        return 0
    delta = order_date - _resolve_now(now)
    return int(math.ceil(delta.total_seconds() / SECONDS_PER_DAY))


def classify_urgency(days_until_order: int, variant: Optional[str] = None) -> str:
    """
    Urgency level for a purchase order.

    Args:
        days_until_order: Output of calculate_days_until_order
        variant: 'A' (critical/high/medium/low) or 'B' (immediate/urgent/normal/future).
                 Defaults to the configured variant.

    Returns:
        Urgency level string

    Raises:
        ValueError: for an unknown variant
    """
    rules = get_urgency_variant(variant)

    if 'overdue_level' in rules:
        if days_until_order < 0:
            return rules["overdue_level"]
        elif days_until_order <= rules["high_max_days"]:
            return 'high'
        elif days_until_order <= rules["medium_max_days"]:
            return 'medium'
        return rules["default_level"]

    if days_until_order <= rules["immediate_max_days"]:
        return 'immediate'
    elif days_until_order <= rules["urgent_max_days"]:
        return 'urgent'
    elif days_until_order > rules["future_min_days"]:
        return 'future'
    return rules["default_level"]


def classify_cost_category(total_value: float) -> str:
    """
    Cost tier of an order's total value.

    Tiers use strict comparisons: exactly 100,000 is 'high', not 'very_high'.
    Missing values count as 0.

    Returns:
        'very_high', 'high', 'medium' or 'low'
    """
    if total_value is None or pd.isna(total_value):
        total_value = 0

    for tier in PURCHASE_ORDER_RULES["cost_tiers"]:
        if total_value > tier["min_exclusive"]:
            return tier["name"]
    return PURCHASE_ORDER_RULES["default_cost_tier"]


def classify_purchase_order(recommendation: Dict, now=None, variant: Optional[str] = None) -> Dict:
    """
    Classify a single purchase order recommendation.

    Args:
        recommendation: Dict with recommended_order_date and total_value
        now: Reference time (defaults to the current time)
        variant: Urgency rule variant

    Returns:
        Dictionary with urgency_level, cost_category and days_until_order
    """
    days_until_order = calculate_days_until_order(
        recommendation.get('recommended_order_date'), now
    )
    total_value = _to_number(recommendation.get('total_value'))

    return {
        'urgency_level': classify_urgency(days_until_order, variant),
        'cost_category': classify_cost_category(total_value),
        'days_until_order': days_until_order
    }


def classify_purchase_orders(recommendations, now=None, variant: Optional[str] = None):
    """
    Classify every recommendation on the purchase order grid.

    Args:
        recommendations: DataFrame or list of dicts of PurchaseOrderRecommendation rows
        now: Reference time (defaults to the current time)
        variant: Urgency rule variant ('A' or 'B')

    Returns:
        tuple: (logs, classified_df)
        - logs: List of processing messages
        - classified_df: Input rows plus days_until_order, urgency_level, cost_category
    """
    logs = []
    logs.append("--- Purchase Order Classifier ---")
    now = _resolve_now(now)
    rules = get_urgency_variant(variant)
    logs.append(f"INFO: Urgency rule: {rules['description']} ({'/'.join(rules['levels'])})")

    df = normalize_purchase_order_recommendations(recommendations, logs)
    if df.empty:
        logs.append("WARNING: No purchase order recommendations provided")
        return logs, pd.DataFrame(columns=['days_until_order', 'urgency_level', 'cost_category'])

    delta_days = (df['recommended_order_date'] - now).dt.total_seconds() / SECONDS_PER_DAY
    df['days_until_order'] = np.ceil(delta_days).fillna(0).astype(int)

    missing_dates = int(df['recommended_order_date'].isna().sum())
    if missing_dates > 0:
        logs.append(f"WARNING: {missing_dates} recommendations have no order date. Treated as due today.")

    df['urgency_level'] = [classify_urgency(days, variant) for days in df['days_until_order']]
    df['cost_category'] = [classify_cost_category(value) for value in df['total_value']]

    logs.append(f"INFO: Classified {len(df)} recommendations")
    logs.append(f"INFO: Total order value: ${df['total_value'].sum():,.0f}")
    return logs, df


def generate_po_recommendations(records, parameters=None, default_lead_time_days: int = DEFAULT_LEAD_TIME_DAYS):
    """
    Generate purchase order recommendations from MRP planned order receipts.

    For every row with planned_order_receipts > 0:
    - Delivery date = week_start_date
    - Order date = week_start_date - lead_time_days
    - Total value = quantity * unit_cost (0 when the cost is unknown)
    - Approval required when total value > 10,000

    Args:
        records: TimePhasedRecord rows with week_start_date
        parameters: Optional MRP parameters (DataFrame or list of dicts) with
                    product_id, location_id and any of lead_time_days, unit_cost,
                    supplier_id, preferred_supplier, minimum_order_quantity, order_multiple
        default_lead_time_days: Lead time when no parameter is available

    Returns:
        tuple: (logs, recommendations_df)
    """
    logs = []
    logs.append("--- Purchase Order Recommendation Generator ---")

    df = normalize_time_phased_records(records, logs)
    columns = [
        'recommendation_id', 'product_id', 'location_id', 'supplier_id', 'supplier_name',
        'week_number', 'week_start_date', 'recommended_quantity', 'minimum_order_quantity',
        'order_multiple', 'final_order_quantity', 'unit_cost', 'total_value', 'lead_time_days',
        'recommended_order_date', 'expected_delivery_date', 'approval_status',
        'approval_threshold_exceeded'
    ]
    if df.empty:
        return logs, pd.DataFrame(columns=columns)

    planned = df[df['planned_order_receipts'] > 0].copy()
    logs.append(f"INFO: Found {len(planned)} rows with planned order receipts")
    if planned.empty:
        return logs, pd.DataFrame(columns=columns)

    if 'week_start_date' not in planned.columns or planned['week_start_date'].isna().all():
        logs.append("ERROR: 'time_phased_records' needs week_start_date to schedule orders")
        return logs, pd.DataFrame(columns=columns)

    undated = int(planned['week_start_date'].isna().sum())
    if undated > 0:
        logs.append(f"WARNING: Skipped {undated} planned receipts without week_start_date")
        planned = planned[planned['week_start_date'].notna()]

    # Parameter lookup: (product, location) -> parameter dict
    param_lookup = {}
    if parameters is not None:
        params_df = pd.DataFrame(parameters) if not isinstance(parameters, pd.DataFrame) else parameters.copy()
        if 'location_node_id' in params_df.columns and 'location_id' not in params_df.columns:
            params_df = params_df.rename(columns={'location_node_id': 'location_id'})
        if not params_df.empty and {'product_id', 'location_id'}.issubset(params_df.columns):
            params_df['product_id'] = clean_string_column(params_df['product_id'])
            params_df['location_id'] = clean_string_column(params_df['location_id'])
            for param in params_df.to_dict('records'):
                param_lookup[(param['product_id'], param['location_id'])] = param
            logs.append(f"INFO: Loaded MRP parameters for {len(param_lookup)} items")

    recommendations = []
    for row in planned.itertuples(index=False):
        param = param_lookup.get((row.product_id, row.location_id), {})

        lead_time = _to_number(param.get('lead_time_days'))
        if pd.isna(lead_time) or lead_time <= 0:
            lead_time = default_lead_time_days
        unit_cost = _to_number(param.get('unit_cost'))
        if pd.isna(unit_cost):
            unit_cost = 0

        quantity = row.planned_order_receipts
        total_value = quantity * unit_cost
        delivery_date = row.week_start_date.normalize()
        order_date = delivery_date - timedelta(days=int(lead_time))

        recommendations.append({
            'recommendation_id': f"REC-{row.product_id}-{row.location_id}-W{row.week_number}",
            'product_id': row.product_id,
            'location_id': row.location_id,
            'supplier_id': param.get('supplier_id'),
            'supplier_name': param.get('preferred_supplier'),
            'week_number': row.week_number,
            'week_start_date': row.week_start_date,
            'recommended_quantity': quantity,
            'minimum_order_quantity': param.get('minimum_order_quantity'),
            'order_multiple': param.get('order_multiple'),
            'final_order_quantity': quantity,
            'unit_cost': unit_cost,
            'total_value': total_value,
            'lead_time_days': int(lead_time),
            'recommended_order_date': order_date,
            'expected_delivery_date': delivery_date,
            'approval_status': PURCHASE_ORDER_RULES["default_approval_status"],
            'approval_threshold_exceeded': total_value > APPROVAL_THRESHOLD
        })

    recommendations_df = pd.DataFrame(recommendations, columns=columns)
    needs_approval = int(recommendations_df['approval_threshold_exceeded'].sum())
    logs.append(f"INFO: Generated {len(recommendations_df)} recommendations")
    logs.append(f"INFO: {needs_approval} recommendations exceed the ${APPROVAL_THRESHOLD:,} approval threshold")

    return logs, recommendations_df


def summarize_purchase_orders(classified_df: pd.DataFrame, variant: Optional[str] = None) -> Dict:
    """
    Summary statistics for the purchase order grid.

    Args:
        classified_df: Output of classify_purchase_orders
        variant: Urgency variant used for classification (for the level list)

    Returns:
        Dictionary with total count, total value, pending approvals and
        counts per urgency level and cost category
    """
    rules = get_urgency_variant(variant)
    cost_levels = [tier["name"] for tier in PURCHASE_ORDER_RULES["cost_tiers"]]
    cost_levels.append(PURCHASE_ORDER_RULES["default_cost_tier"])

    if classified_df.empty:
        return {
            'total': 0,
            'total_value': 0.0,
            'pending_approval': 0,
            'by_urgency': {level: 0 for level in rules["levels"]},
            'by_cost_category': {level: 0 for level in cost_levels}
        }

    urgency_counts = classified_df['urgency_level'].value_counts()
    cost_counts = classified_df['cost_category'].value_counts()
    total_value = safe_numeric_column(classified_df['total_value']).sum()

    pending = 0
    if 'approval_status' in classified_df.columns:
        pending = int((classified_df['approval_status'] == 'pending').sum())

    return {
        'total': len(classified_df),
        'total_value': float(total_value),
        'pending_approval': pending,
        'by_urgency': {level: int(urgency_counts.get(level, 0)) for level in rules["levels"]},
        'by_cost_category': {level: int(cost_counts.get(level, 0)) for level in cost_levels}
    }
