import pandas as pd
import io # Required for Excel export
from datetime import datetime

# --- Constants ---
DEFAULT_EXPORT_PREFIX = "MRP_Plan"

# --- Data Export Functions ---

def get_planning_data_as_excel(dfs_to_export_dict, logs=None):
    """
    Processes a dictionary of planning dataframes
    and returns an Excel file as a bytes object for download.
    The dictionary format is { "sheet_name": (dataframe, include_index_bool) }

    Only copies a dataframe when datetime columns need to be formatted.
    """
    if logs is None:
        logs = []

    output = io.BytesIO()

    with pd.ExcelWriter(output, engine='xlsxwriter') as writer:
        for sheet_name, (df, include_index) in dfs_to_export_dict.items():

            # Ensure dataframe is not just a placeholder
            if not isinstance(df, pd.DataFrame):
                logs.append(f"WARNING: Skipping {sheet_name}: Not a DataFrame.")
                continue
            if df.empty:
                logs.append(f"WARNING: Skipping {sheet_name}: DataFrame is empty.")
                continue

            df_to_export = df
            datetime_cols = [col for col in df.columns if pd.api.types.is_datetime64_any_dtype(df[col])]

            if datetime_cols:
                df_to_export = df.copy()
                for col in datetime_cols:
                    if df_to_export[col].dt.tz is not None:
                        df_to_export[col] = df_to_export[col].dt.tz_localize(None)
                    df_to_export[col] = df_to_export[col].dt.strftime('%Y-%m-%d')

            # Excel limits sheet names to 31 characters
            safe_sheet_name = str(sheet_name)[:31]
            df_to_export.to_excel(writer, sheet_name=safe_sheet_name, index=include_index)

            # Auto-adjust column widths
            worksheet = writer.sheets[safe_sheet_name]
            offset = 1 if include_index else 0
            for idx, col in enumerate(df_to_export.columns):
                series = df_to_export[col]
                max_len = max(
                    series.astype(str).map(len).max(),  # Data max len
                    len(str(series.name))  # Header len
                ) + 2
                worksheet.set_column(idx + offset, idx + offset, max_len)

            logs.append(f"INFO: Exported {len(df_to_export)} rows to sheet '{safe_sheet_name}'")

    return output.getvalue()


def build_export_filename(prefix=DEFAULT_EXPORT_PREFIX, now=None):
    """File name for a planning export, e.g. MRP_Plan_20240115_093000.xlsx"""
    now = datetime.now() if now is None else now
    return f"{prefix}_{now.strftime('%Y%m%d_%H%M%S')}.xlsx"


def export_planning_grid_to_excel(rollup_df, view_mode, exceptions_df=None, purchase_orders_df=None, logs=None):
    """
    Export the MRP planning grid, with optional exception and purchase order sheets.

    Args:
        rollup_df: Output of build_item_rollups
        view_mode: View the week columns were built for (used in the sheet name)
        exceptions_df: Optional prioritized exceptions
        purchase_orders_df: Optional classified purchase order recommendations
        logs: Optional list to append logging messages

    Returns:
        Excel workbook as bytes
    """
    sheets = {f"MRP Planning - {view_mode}": (rollup_df, False)}
    if exceptions_df is not None:
        sheets["Planning Exceptions"] = (exceptions_df, False)
    if purchase_orders_df is not None:
        sheets["Purchase Orders"] = (purchase_orders_df, False)
    return get_planning_data_as_excel(sheets, logs)
