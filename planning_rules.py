"""
Planning Rules Configuration
Centralized definitions for weights, thresholds, and planning vocabularies.
This file allows rules to be changed in one place without modifying tool code.
"""

from datetime import datetime
import pandas as pd

# ===== INVENTORY HEALTH RULES =====

INVENTORY_STATUS_RULES = {
    # Ordered from least to most severe. A later week can only move an item
    # to the right in this list, never back to the left.
    "severity_order": ["optimal", "warning", "critical", "stockout"],
    "default_status": "optimal",

    "thresholds": {
        # projected_available <= stockout_level -> stockout
        "stockout_level": 0,
        # projected_available < safety_stock -> critical
        # projected_available < reorder_point -> warning
    },

    # Lead time shown on the grid when no MRP parameter is available
    "default_lead_time_days": 14,
    "current_stock_week": 1
}


# ===== VIEW MODE RULES =====

VIEW_MODE_RULES = {
    "default_view": "inventory",
    "modes": {
        "demand": {
            "label": "Demand",
            "fields": ["gross_requirements"]
        },
        "supply": {
            "label": "Supply",
            "fields": ["scheduled_receipts", "planned_order_receipts"]
        },
        "inventory": {
            "label": "Inventory",
            "fields": ["projected_available"]
        },
        "orders": {
            "label": "Planned Orders",
            "fields": ["planned_order_receipts"]
        }
    },
    "week_column_prefix": "week_"
}


# ===== PLANNING EXCEPTION RULES =====

EXCEPTION_RULES = {
    "severity_weights": {
        "critical": 100,
        "high": 75,
        "medium": 50,
        "low": 25
    },
    "type_weights": {
        "stockout": 50,
        "order_urgency": 40,
        "below_safety_stock": 30,
        "forecast_deviation": 20,
        "excess_inventory": 10
    },

    # Unknown tags fall back to the lowest-weight bucket
    "default_severity": "low",
    "default_type": "excess_inventory",

    "resolution_statuses": ["open", "in_progress", "resolved", "ignored"],
    "default_resolution_status": "open",

    "age_scoring": {
        "points_per_day": 2,
        "max_points": 50  # 25 days worth
    },

    "age_buckets": {
        "aged_days": 7,   # Red on the exception grid
        "aging_days": 3   # Orange on the exception grid
    },

    "detection": {
        # projected_available > safety_stock * excess_multiplier -> excess
        "excess_multiplier": 3,
        # Excess quantity is measured above this many safety stocks
        "excess_keep_multiplier": 2
    },

    "priority_matrix": {
        "high_impact_threshold": 5000,
        "urgent_severities": ["critical", "high"]
    }
}


# ===== PURCHASE ORDER RULES =====

PURCHASE_ORDER_RULES = {
    # Two urgency rules exist in the planning screens. Variant A is the one
    # used on the purchase order management grid together with cost tiers.
    "default_urgency_variant": "A",

    "urgency_variants": {
        "A": {
            "description": "Purchase order management grid",
            "levels": ["critical", "high", "medium", "low"],
            "overdue_level": "critical",   # days_until_order < 0
            "high_max_days": 2,            # days_until_order <= 2
            "medium_max_days": 7,          # days_until_order <= 7
            "default_level": "low"
        },
        "B": {
            "description": "MRP purchase order grid",
            "levels": ["immediate", "urgent", "normal", "future"],
            "immediate_max_days": 0,       # days_until_order <= 0
            "urgent_max_days": 3,          # days_until_order <= 3
            "future_min_days": 14,         # days_until_order > 14
            "default_level": "normal"
        }
    },

    # Evaluated top to bottom with strict '>' comparisons
    "cost_tiers": [
        {"name": "very_high", "min_exclusive": 100000},
        {"name": "high", "min_exclusive": 50000},
        {"name": "medium", "min_exclusive": 10000}
    ],
    "default_cost_tier": "low",

    "approval_statuses": ["pending", "approved", "rejected", "modified", "converted"],
    "default_approval_status": "pending",
    "approval_threshold": 10000,

    "default_lead_time_days": 14
}


# ===== COLLABORATIVE FORECAST RULES =====

FAIR_SHARE_RULES = {
    "all_customers_key": "all",
    # Shares are rounded up so the distributed total never falls short
    "rounding": "ceil",
    # When the reference total is zero, every customer receives zero
    "zero_total_policy": "zero"
}

COLLABORATION_RULES = {
    # raw column -> grid metric, summed per (customer, product, month)
    "metric_sources": {
        "forecast_ly": "last_year",
        "forecast_sales_gap": "forecast_sales_gap",
        "forecast": "calculated_forecast",
        "approved_sm_kam": "xamview",
        "sm_kam_override": "kam_forecast_correction",
        "forecast_sales_manager": "sales_manager_view"
    },
    "metrics": [
        "last_year",
        "forecast_sales_gap",
        "calculated_forecast",
        "xamview",
        "kam_forecast_correction",
        "sales_manager_view",
        "effective_forecast"
    ],
    "editable_metric": "kam_forecast_correction",
    "reference_metric": "effective_forecast",
    "upsert_value_field": "commercial_input",
    "month_format": "%Y-%m",
    "default_horizon_months": 12,
    "missing_product_key": "no-product"
}


# ===== CALCULATED FIELD DEFINITIONS =====

CALCULATED_FIELDS = {
    "inventory_status": {
        "name": "Inventory Status",
        "formula": "worst of: stockout (PA <= 0), critical (PA < SS), warning (PA < ROP), optimal",
        "description": "Worst-case inventory health across all weeks of an item",
        "notes": "Evaluated in ascending week order; severity never improves mid-scan"
    },

    "current_stock": {
        "name": "Current Stock",
        "formula": "beginning_inventory of week 1",
        "description": "On-hand inventory at the start of the planning horizon",
        "notes": "0 when week 1 is not present"
    },

    "age_days": {
        "name": "Exception Age",
        "formula": "ceil((now - exception_date) / 1 day)",
        "description": "Days since the exception date",
        "notes": "Negative for future-dated exceptions"
    },

    "priority_score": {
        "name": "Exception Priority Score",
        "formula": "severity_weight + type_weight + min(age_days * 2, 50)",
        "description": "Additive ranking score for planning exceptions",
        "interpretation": {
            "severity_weight": "critical=100, high=75, medium=50, low=25",
            "type_weight": "stockout=50, order_urgency=40, below_safety_stock=30, "
                           "forecast_deviation=20, excess_inventory=10",
            "age": "2 points per day, capped at 50"
        }
    },

    "days_until_order": {
        "name": "Days Until Order",
        "formula": "ceil((recommended_order_date - now) / 1 day)",
        "description": "Whole days remaining before the recommended order date",
        "notes": "Any partial day counts as a full day remaining"
    },

    "cost_category": {
        "name": "Cost Category",
        "formula": "very_high > 100,000 >= high > 50,000 >= medium > 10,000 >= low",
        "description": "Tier of the total order value"
    },

    "fair_share": {
        "name": "Fair Share Allocation",
        "formula": "ceil(effective_forecast(c) * V / sum(effective_forecast))",
        "description": "Proportional split of an all-customers override",
        "notes": "All shares are 0 when the effective forecast total is 0"
    }
}


# ===== HELPER FUNCTIONS =====

def normalize_tag(value, allowed, default):
    """
    Normalize an enum-like tag against an allowed vocabulary.

    Args:
        value: Raw tag (any type, may be None/NaN)
        allowed: Iterable of valid lowercase tags
        default: Tag returned when value is not recognized

    Returns:
        Tuple of (tag, was_defaulted)
    """
    if value is None or pd.isna(value):
        return default, True

    tag = str(value).strip().lower().replace(' ', '_')
    if tag in allowed:
        return tag, False
    return default, True


def get_severity_weight(severity):
    """Weight of an exception severity; unknown severities weigh as 'low'."""
    weights = EXCEPTION_RULES["severity_weights"]
    tag, _ = normalize_tag(severity, weights, EXCEPTION_RULES["default_severity"])
    return weights[tag]


def get_type_weight(exception_type):
    """Weight of an exception type; unknown types weigh as 'excess_inventory'."""
    weights = EXCEPTION_RULES["type_weights"]
    tag, _ = normalize_tag(exception_type, weights, EXCEPTION_RULES["default_type"])
    return weights[tag]


def get_status_severity(status):
    """
    Rank of an inventory status (0 = optimal, 3 = stockout).

    Unknown statuses rank as optimal.
    """
    order = INVENTORY_STATUS_RULES["severity_order"]
    tag, _ = normalize_tag(status, order, INVENTORY_STATUS_RULES["default_status"])
    return order.index(tag)


def get_urgency_variant(variant=None):
    """
    Get the urgency rule set for a variant key.

    Args:
        variant: 'A' or 'B' (defaults to the configured variant)

    Returns:
        Dictionary with the variant's thresholds

    Raises:
        ValueError: if the variant is not configured
    """
    if variant is None:
        variant = PURCHASE_ORDER_RULES["default_urgency_variant"]

    variants = PURCHASE_ORDER_RULES["urgency_variants"]
    key = str(variant).strip().upper()
    if key not in variants:
        raise ValueError(
            f"Unknown urgency variant '{variant}'. Expected one of: {', '.join(variants)}"
        )
    return variants[key]


def get_view_mode_fields(view_mode):
    """
    Get the source fields summed for a grid view mode.

    Returns:
        Tuple of (resolved_view_mode, fields, was_defaulted)
    """
    modes = VIEW_MODE_RULES["modes"]
    tag, defaulted = normalize_tag(view_mode, modes, VIEW_MODE_RULES["default_view"])
    return tag, modes[tag]["fields"], defaulted


def export_planning_rules_documentation(output_path="PLANNING_RULES_DOCUMENTATION.md"):
    """
    Export the planning rules to a markdown documentation file.

    Args:
        output_path: Path for the output markdown file
    """
    with open(output_path, 'w') as f:
        f.write("# Planning Rules Documentation\n\n")
        f.write("Auto-generated documentation of planning rules and calculated fields.\n\n")
        f.write(f"**Generated:** {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}\n\n")

        f.write("---\n\n")
        f.write("## Calculated Fields\n\n")

        for field_info in CALCULATED_FIELDS.values():
            f.write(f"### {field_info['name']}\n\n")
            f.write(f"**Formula:** `{field_info['formula']}`\n\n")
            f.write(f"**Description:** {field_info['description']}\n\n")

            if 'interpretation' in field_info:
                f.write("**Interpretation:**\n\n")
                for key, meaning in field_info['interpretation'].items():
                    f.write(f"- {key}: {meaning}\n")
                f.write("\n")

            if 'notes' in field_info:
                f.write(f"**Notes:** {field_info['notes']}\n\n")

        f.write("---\n\n")
        f.write("## Rule Configurations\n\n")

        rule_sets = [
            ("Inventory Status Rules", INVENTORY_STATUS_RULES),
            ("View Mode Rules", VIEW_MODE_RULES),
            ("Exception Rules", EXCEPTION_RULES),
            ("Purchase Order Rules", PURCHASE_ORDER_RULES),
            ("Fair Share Rules", FAIR_SHARE_RULES),
            ("Collaboration Rules", COLLABORATION_RULES)
        ]
        for title, rules in rule_sets:
            f.write(f"### {title}\n\n")
            f.write("```python\n")
            for key, value in rules.items():
                f.write(f"{key}: {value}\n")
            f.write("```\n\n")
