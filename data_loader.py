import pandas as pd
import numpy as np
from planning_rules import (
    EXCEPTION_RULES,
    PURCHASE_ORDER_RULES,
    COLLABORATION_RULES
)

# === Helper Functions ===

# Upstream exports name the location column after the supply network node
COLUMN_ALIASES = {
    "location_node_id": "location_id",
    "customer_node_id": "customer_id",
    "severity_level": "severity"
}

TIME_PHASED_ID_COLUMNS = ["product_id", "location_id", "week_number"]
TIME_PHASED_NUMERIC_COLUMNS = [
    "beginning_inventory",
    "gross_requirements",
    "scheduled_receipts",
    "projected_available",
    "net_requirements",
    "planned_order_receipts",
    "planned_order_releases",
    "safety_stock",
    "reorder_point"
]

EXCEPTION_NUMERIC_COLUMNS = [
    "current_inventory",
    "projected_inventory",
    "safety_stock",
    "shortage_quantity",
    "excess_quantity",
    "estimated_financial_impact"
]

PURCHASE_ORDER_NUMERIC_COLUMNS = [
    "recommended_quantity",
    "unit_cost",
    "total_value"
]


def clean_string_column(series: pd.Series) -> pd.Series:
    """
    Strip whitespace and collapse internal runs of spaces in an identifier column.

    Args:
        series: Pandas Series with string data

    Returns:
        Cleaned Series with normalized whitespace
    """
    return series.astype(str).str.strip().str.replace(r'\s+', ' ', regex=True)


def safe_numeric_column(series: pd.Series, remove_commas: bool = False) -> pd.Series:
    """
    Convert a column to numeric, treating anything unparseable as 0.

    Args:
        series: Pandas Series to convert
        remove_commas: If True, remove thousands separators before conversion

    Returns:
        Numeric Series with NaN filled as 0
    """
    if remove_commas:
        series = series.astype(str).str.replace(',', '', regex=False)
    return pd.to_numeric(series, errors='coerce').fillna(0)


def check_columns(df, required_cols, source_name, logs):
    """Helper function to check for missing columns."""
    missing_cols = [col for col in required_cols if col not in df.columns]
    if missing_cols:
        logs.append(f"ERROR: '{source_name}' is missing required columns: {', '.join(missing_cols)}")
        return False
    return True


def to_naive_datetime_column(series: pd.Series) -> pd.Series:
    """
    Parse a date column to naive timestamps.

    Offset-bearing values (e.g. '2024-01-10T00:00:00+00:00') are converted to
    UTC and the zone is dropped; naive values keep their wall time.
    Unparseable values become NaT.
    """
    dates = pd.to_datetime(series, errors='coerce', utc=True)
    return dates.dt.tz_convert(None)


def to_naive_timestamp(value):
    """Scalar counterpart of to_naive_datetime_column (None/NaT -> NaT)."""
    if value is None or pd.isna(value):
        return pd.NaT
    ts = pd.Timestamp(value)
    if ts.tzinfo is not None:
        ts = ts.tz_convert(None)
    return ts


def to_frame(records) -> pd.DataFrame:
    """
    Accept a DataFrame or an iterable of dict records and return a DataFrame copy
    with upstream column aliases applied.
    """
    if records is None:
        df = pd.DataFrame()
    elif isinstance(records, pd.DataFrame):
        df = records.copy()
    else:
        df = pd.DataFrame(list(records))

    rename = {old: new for old, new in COLUMN_ALIASES.items()
              if old in df.columns and new not in df.columns}
    if rename:
        df = df.rename(columns=rename)
    return df


def ensure_numeric_columns(df, columns, remove_commas=False):
    """Coerce the given columns to numeric, adding missing ones as 0."""
    for col in columns:
        if col in df.columns:
            df[col] = safe_numeric_column(df[col], remove_commas=remove_commas)
        else:
            df[col] = 0
    return df


def normalize_tag_column(series, allowed, default, label, logs):
    """
    Normalize an enum column against its vocabulary.

    Unknown or blank tags are replaced by the default and reported once in logs.

    Args:
        series: Raw tag Series
        allowed: Collection of valid lowercase tags
        default: Tag used for unrecognized values
        label: Column name used in the log message
        logs: List to append messages to

    Returns:
        Normalized Series of tags
    """
    tags = series.astype('string').str.strip().str.lower().str.replace(' ', '_', regex=False)
    valid = tags.isin(list(allowed)).fillna(False).astype(bool)
    invalid_count = int((~valid).sum())
    if invalid_count > 0:
        samples = sorted(set(series[~valid].dropna().astype(str)))[:5]
        sample_text = f" (e.g. {', '.join(samples)})" if samples else ""
        logs.append(
            f"WARNING: {invalid_count} rows have an unrecognized {label}{sample_text}. "
            f"Treating them as '{default}'."
        )
    return tags.where(valid, default).astype(object)


# === Record Normalizers ===

def normalize_time_phased_records(records, logs=None):
    """
    Normalize raw MRP explosion rows into TimePhasedRecord columns.

    Args:
        records: DataFrame or list of dicts with one row per (product, location, week)
        logs: Optional list to append logging messages

    Returns:
        DataFrame with cleaned ids, integer week_number and numeric metrics.
        Empty DataFrame when identifier columns are missing.
    """
    if logs is None:
        logs = []

    df = to_frame(records)
    if df.empty:
        logs.append("WARNING: No time-phased records provided")
        return pd.DataFrame(columns=TIME_PHASED_ID_COLUMNS + TIME_PHASED_NUMERIC_COLUMNS)

    if not check_columns(df, TIME_PHASED_ID_COLUMNS, "time_phased_records", logs):
        return pd.DataFrame(columns=TIME_PHASED_ID_COLUMNS + TIME_PHASED_NUMERIC_COLUMNS)

    df['product_id'] = clean_string_column(df['product_id'])
    df['location_id'] = clean_string_column(df['location_id'])

    week = pd.to_numeric(df['week_number'], errors='coerce')
    bad_weeks = int(week.isna().sum())
    if bad_weeks > 0:
        logs.append(f"WARNING: Dropped {bad_weeks} rows with a non-numeric week_number")
        df = df[week.notna()].copy()
        week = week[week.notna()]
    df['week_number'] = week.astype(int)

    df = ensure_numeric_columns(df, TIME_PHASED_NUMERIC_COLUMNS)

    if 'week_start_date' in df.columns:
        df['week_start_date'] = to_naive_datetime_column(df['week_start_date'])

    logs.append(f"INFO: Normalized {len(df)} time-phased records")
    return df.reset_index(drop=True)


def normalize_planning_exceptions(records, logs=None):
    """
    Normalize raw planning exception rows.

    Unknown severities and exception types fall back to the lowest-weight
    bucket so the ranking stays available.

    Args:
        records: DataFrame or list of dicts
        logs: Optional list to append logging messages

    Returns:
        DataFrame with validated tags, numeric quantities and a datetime
        exception_date (NaT when unparseable)
    """
    if logs is None:
        logs = []

    df = to_frame(records)
    if df.empty:
        return df

    df['severity'] = normalize_tag_column(
        df['severity'] if 'severity' in df.columns else pd.Series([None] * len(df), index=df.index),
        EXCEPTION_RULES["severity_weights"],
        EXCEPTION_RULES["default_severity"],
        "severity",
        logs
    )
    df['exception_type'] = normalize_tag_column(
        df['exception_type'] if 'exception_type' in df.columns else pd.Series([None] * len(df), index=df.index),
        EXCEPTION_RULES["type_weights"],
        EXCEPTION_RULES["default_type"],
        "exception_type",
        logs
    )
    if 'resolution_status' in df.columns:
        df['resolution_status'] = normalize_tag_column(
            df['resolution_status'],
            EXCEPTION_RULES["resolution_statuses"],
            EXCEPTION_RULES["default_resolution_status"],
            "resolution_status",
            logs
        )
    else:
        df['resolution_status'] = EXCEPTION_RULES["default_resolution_status"]

    df = ensure_numeric_columns(df, EXCEPTION_NUMERIC_COLUMNS)

    if 'exception_date' in df.columns:
        df['exception_date'] = to_naive_datetime_column(df['exception_date'])
    else:
        df['exception_date'] = pd.NaT

    missing_dates = int(df['exception_date'].isna().sum())
    if missing_dates > 0:
        logs.append(f"WARNING: {missing_dates} exceptions have no valid exception_date. Age will be 0.")

    return df


def normalize_purchase_order_recommendations(records, logs=None):
    """
    Normalize raw purchase order recommendation rows.

    Args:
        records: DataFrame or list of dicts
        logs: Optional list to append logging messages

    Returns:
        DataFrame with numeric quantities/values, datetime order and delivery
        dates, and a validated approval_status
    """
    if logs is None:
        logs = []

    df = to_frame(records)
    if df.empty:
        return df

    # ERP exports format order values with thousands separators (e.g. "150,000")
    df = ensure_numeric_columns(df, PURCHASE_ORDER_NUMERIC_COLUMNS, remove_commas=True)

    for date_col in ['recommended_order_date', 'expected_delivery_date']:
        if date_col in df.columns:
            df[date_col] = to_naive_datetime_column(df[date_col])
        else:
            df[date_col] = pd.NaT

    if 'approval_status' in df.columns:
        df['approval_status'] = normalize_tag_column(
            df['approval_status'],
            PURCHASE_ORDER_RULES["approval_statuses"],
            PURCHASE_ORDER_RULES["default_approval_status"],
            "approval_status",
            logs
        )
    else:
        df['approval_status'] = PURCHASE_ORDER_RULES["default_approval_status"]

    return df


def normalize_collaboration_records(records, logs=None):
    """
    Normalize raw commercial collaboration rows (one per customer/product/postdate).

    Args:
        records: DataFrame or list of dicts
        logs: Optional list to append logging messages

    Returns:
        DataFrame with cleaned ids, a month key, numeric source metrics and
        effective_forecast (commercial_input when non-zero, else forecast).
        Empty DataFrame when customer_id or postdate is missing.
    """
    if logs is None:
        logs = []

    df = to_frame(records)
    if df.empty:
        return df

    if not check_columns(df, ['customer_id', 'postdate'], "collaboration_records", logs):
        return pd.DataFrame()

    df['customer_id'] = clean_string_column(df['customer_id'])
    if 'product_id' in df.columns:
        df['product_id'] = df['product_id'].where(
            df['product_id'].notna(), COLLABORATION_RULES["missing_product_key"]
        )
        df['product_id'] = clean_string_column(df['product_id'])
    else:
        df['product_id'] = COLLABORATION_RULES["missing_product_key"]

    df['postdate'] = to_naive_datetime_column(df['postdate'])
    bad_dates = int(df['postdate'].isna().sum())
    if bad_dates > 0:
        logs.append(f"WARNING: Dropped {bad_dates} collaboration rows with an invalid postdate")
        df = df[df['postdate'].notna()].copy()
    df['month'] = df['postdate'].dt.strftime(COLLABORATION_RULES["month_format"])

    source_cols = list(COLLABORATION_RULES["metric_sources"].keys()) + ['commercial_input']
    df = ensure_numeric_columns(df, source_cols)

    # A zero commercial input means "not entered", so the statistical forecast stands
    df['effective_forecast'] = np.where(
        df['commercial_input'] != 0, df['commercial_input'], df['forecast']
    )

    return df.reset_index(drop=True)
