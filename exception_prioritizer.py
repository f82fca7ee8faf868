"""
Planning Exception Prioritizer

Ranks planning exceptions so planners work the most important ones first:
- Age in days since the exception date (ceiling, may be negative)
- Additive priority score: severity weight + type weight + capped age points
- Stable descending sort (equal scores keep their input order)

Also detects exceptions from MRP netting rows and builds the exception
summary and the impact/urgency matrix used on the exception dashboard.
"""

import math
import pandas as pd
import numpy as np
from datetime import datetime

from data_loader import (
    normalize_planning_exceptions,
    normalize_time_phased_records,
    to_naive_timestamp
)
from planning_rules import (
    EXCEPTION_RULES,
    get_severity_weight,
    get_type_weight
)

AGE_POINTS_PER_DAY = EXCEPTION_RULES["age_scoring"]["points_per_day"]
MAX_AGE_POINTS = EXCEPTION_RULES["age_scoring"]["max_points"]
SECONDS_PER_DAY = 24 * 60 * 60


def _resolve_now(now=None):
    return pd.Timestamp(datetime.now()) if now is None else to_naive_timestamp(now)


def calculate_age_days(exception_date, now=None) -> int:
    """
    Days since an exception date, rounded up.

    A partial day counts as a full day. Future-dated exceptions get a
    negative age. Missing dates have age 0.
    """
    exception_date = to_naive_timestamp(exception_date)
    if pd.isna(exception_date):
        return 0
    delta = _resolve_now(now) - exception_date
    return int(math.ceil(delta.total_seconds() / SECONDS_PER_DAY))


def calculate_age_points(age_days: int) -> int:
    """Age contribution to the priority score: 2 points per day, capped at 50."""
    return min(int(age_days) * AGE_POINTS_PER_DAY, MAX_AGE_POINTS)


def calculate_exception_priority(severity, exception_type, age_days: int) -> int:
    """
    Calculate the priority score for a planning exception (higher = more urgent).

    Formula: severity_weight + type_weight + min(age_days * 2, 50)

    Unknown severities and types score as the lowest-weight bucket.

    Args:
        severity: 'critical', 'high', 'medium' or 'low'
        exception_type: 'stockout', 'order_urgency', 'below_safety_stock',
                        'forecast_deviation' or 'excess_inventory'
        age_days: Exception age in whole days

    Returns:
        Integer priority score
    """
    return (
        get_severity_weight(severity)
        + get_type_weight(exception_type)
        + calculate_age_points(age_days)
    )


def prioritize_exceptions(exceptions, now=None):
    """
    Add age_days and priority_score to each exception and rank them.

    Args:
        exceptions: DataFrame or list of dicts of PlanningException rows
        now: Reference time (defaults to the current time)

    Returns:
        tuple: (logs, prioritized_df)
        - logs: List of processing messages
        - prioritized_df: Input rows plus age_days and priority_score, sorted by
          priority_score descending with ties in input order
    """
    logs = []
    logs.append("--- Exception Prioritizer ---")
    now = _resolve_now(now)

    df = normalize_planning_exceptions(exceptions, logs)
    if df.empty:
        logs.append("WARNING: No planning exceptions provided")
        return logs, pd.DataFrame(columns=['age_days', 'priority_score'])

    logs.append(f"INFO: Scoring {len(df)} exceptions as of {now:%Y-%m-%d %H:%M}")

    delta_days = (now - df['exception_date']).dt.total_seconds() / SECONDS_PER_DAY
    df['age_days'] = np.ceil(delta_days).fillna(0).astype(int)

    severity_points = df['severity'].map(EXCEPTION_RULES["severity_weights"])
    type_points = df['exception_type'].map(EXCEPTION_RULES["type_weights"])
    age_points = np.minimum(df['age_days'] * AGE_POINTS_PER_DAY, MAX_AGE_POINTS)
    df['priority_score'] = (severity_points + type_points + age_points).astype(int)

    future_dated = int((df['age_days'] < 0).sum())
    if future_dated > 0:
        logs.append(f"INFO: {future_dated} exceptions are future-dated (negative age)")

    # mergesort is stable, so equal scores keep their input order
    df = df.sort_values('priority_score', ascending=False, kind='mergesort').reset_index(drop=True)

    logs.append(f"INFO: Top priority score: {df['priority_score'].iloc[0]}")
    return logs, df


def detect_planning_exceptions(records, now=None):
    """
    Detect planning exceptions from MRP netting rows.

    Only the first matching rule applies to each row:
    - projected_available < 0 -> stockout (critical)
    - projected_available < safety_stock -> below_safety_stock (high)
    - projected_available > 3x safety_stock -> excess_inventory (low)

    Args:
        records: DataFrame or list of dicts of TimePhasedRecord rows,
                 optionally with week_start_date
        now: Reference time used when a row has no week_start_date

    Returns:
        tuple: (logs, exceptions_df)
    """
    logs = []
    logs.append("--- Exception Detection ---")
    now = _resolve_now(now)

    df = normalize_time_phased_records(records, logs)
    columns = [
        'exception_id', 'exception_type', 'severity', 'product_id', 'location_id',
        'week_number', 'exception_date', 'current_inventory', 'projected_inventory',
        'safety_stock', 'projected_demand', 'shortage_quantity', 'excess_quantity',
        'recommended_action', 'resolution_status'
    ]
    if df.empty:
        return logs, pd.DataFrame(columns=columns)

    detection = EXCEPTION_RULES["detection"]
    excess_multiplier = detection["excess_multiplier"]
    keep_multiplier = detection["excess_keep_multiplier"]

    exceptions = []
    for row in df.itertuples(index=False):
        projected = row.projected_available
        safety = row.safety_stock
        week_start = getattr(row, 'week_start_date', None)
        exception_date = now.normalize() if week_start is None or pd.isna(week_start) else week_start

        base = {
            'product_id': row.product_id,
            'location_id': row.location_id,
            'week_number': row.week_number,
            'exception_date': exception_date,
            'current_inventory': row.beginning_inventory,
            'projected_inventory': projected,
            'safety_stock': safety,
            'projected_demand': row.gross_requirements,
            'shortage_quantity': 0,
            'excess_quantity': 0,
            'resolution_status': EXCEPTION_RULES["default_resolution_status"]
        }

        if projected < 0:
            shortage = abs(projected)
            base.update({
                'exception_type': 'stockout',
                'severity': 'critical',
                'shortage_quantity': shortage,
                'recommended_action': f"Expedite order for {shortage:,.0f} units"
            })
        elif projected < safety:
            base.update({
                'exception_type': 'below_safety_stock',
                'severity': 'high',
                'shortage_quantity': safety - projected,
                'recommended_action': "Review safety stock levels and consider placing order"
            })
        elif projected > safety * excess_multiplier:
            base.update({
                'exception_type': 'excess_inventory',
                'severity': 'low',
                'excess_quantity': projected - safety * keep_multiplier,
                'recommended_action': "Consider reducing orders or redistributing inventory"
            })
        else:
            continue

        base['exception_id'] = (
            f"EXC-{row.product_id}-{row.location_id}-W{row.week_number}-{base['exception_type']}"
        )
        exceptions.append(base)

    exceptions_df = pd.DataFrame(exceptions, columns=columns)
    logs.append(f"INFO: Detected {len(exceptions_df)} exceptions in {len(df)} rows")
    if not exceptions_df.empty:
        for exc_type, count in exceptions_df['exception_type'].value_counts().items():
            logs.append(f"INFO: {exc_type}: {count}")

    return logs, exceptions_df


def get_exception_age_bucket(age_days: int) -> str:
    """
    Age bucket used to highlight old exceptions.

    Returns:
        'aged' (>= 7 days), 'aging' (>= 3 days) or 'fresh'
    """
    buckets = EXCEPTION_RULES["age_buckets"]
    if age_days >= buckets["aged_days"]:
        return 'aged'
    elif age_days >= buckets["aging_days"]:
        return 'aging'
    return 'fresh'


def summarize_exceptions(prioritized_df: pd.DataFrame) -> dict:
    """
    Summary statistics for the exception dashboard header.

    Args:
        prioritized_df: Output of prioritize_exceptions

    Returns:
        Dictionary with total, critical, high, stockouts and aged counts
    """
    if prioritized_df.empty:
        return {'total': 0, 'critical': 0, 'high': 0, 'stockouts': 0, 'aged': 0}

    aged_days = EXCEPTION_RULES["age_buckets"]["aged_days"]
    return {
        'total': len(prioritized_df),
        'critical': int((prioritized_df['severity'] == 'critical').sum()),
        'high': int((prioritized_df['severity'] == 'high').sum()),
        'stockouts': int((prioritized_df['exception_type'] == 'stockout').sum()),
        'aged': int((prioritized_df['age_days'] >= aged_days).sum())
    }


def build_exception_priority_matrix(exceptions_df: pd.DataFrame) -> dict:
    """
    Split exceptions into impact/urgency quadrants.

    High impact: estimated_financial_impact > 5000.
    Urgent: severity is critical or high.

    Args:
        exceptions_df: Exception rows with severity and estimated_financial_impact

    Returns:
        Dictionary of quadrant name -> DataFrame, keys:
        high_impact_urgent, low_impact_urgent, high_impact_not_urgent,
        low_impact_not_urgent
    """
    rules = EXCEPTION_RULES["priority_matrix"]
    quadrants = [
        'high_impact_urgent', 'low_impact_urgent',
        'high_impact_not_urgent', 'low_impact_not_urgent'
    ]
    if exceptions_df.empty:
        return {name: exceptions_df.copy() for name in quadrants}

    if 'estimated_financial_impact' in exceptions_df.columns:
        impact = pd.to_numeric(exceptions_df['estimated_financial_impact'], errors='coerce').fillna(0)
    else:
        impact = pd.Series(0, index=exceptions_df.index)
    high_impact = impact > rules["high_impact_threshold"]
    urgent = exceptions_df['severity'].isin(rules["urgent_severities"])

    return {
        'high_impact_urgent': exceptions_df[high_impact & urgent],
        'low_impact_urgent': exceptions_df[~high_impact & urgent],
        'high_impact_not_urgent': exceptions_df[high_impact & ~urgent],
        'low_impact_not_urgent': exceptions_df[~high_impact & ~urgent]
    }
