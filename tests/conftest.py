"""
Pytest configuration and shared fixtures for all tests
Centralized mock planning data and a fixed reference time
"""

import pytest
import pandas as pd
import os
import sys

# Add project root to path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

# ===== SHARED MOCK DATA FIXTURES =====

@pytest.fixture
def fixed_now():
    """Reference 'now' used by every date-dependent test"""
    return pd.Timestamp("2024-06-15 12:00:00")


def make_week(product_id, location_id, week_number, projected_available,
              safety_stock=20, reorder_point=40, **overrides):
    """Build one time-phased MRP row with sensible defaults"""
    row = {
        'product_id': product_id,
        'location_id': location_id,
        'week_number': week_number,
        'beginning_inventory': 100,
        'gross_requirements': 30,
        'scheduled_receipts': 10,
        'projected_available': projected_available,
        'net_requirements': 0,
        'planned_order_receipts': 0,
        'planned_order_releases': 0,
        'safety_stock': safety_stock,
        'reorder_point': reorder_point
    }
    row.update(overrides)
    return row


@pytest.fixture
def mock_time_phased_records():
    """
    Creates mock MRP explosion rows with:
    - P1@L1: healthy for three weeks
    - P2@L1: stockout in week 2 that recovers in week 3
    - P3@L2: below reorder point only (warning)
    - P4@L2: below safety stock (critical), rows out of week order, no week 1
    """
    return pd.DataFrame([
        make_week('P1', 'L1', 1, 120, beginning_inventory=150, planned_order_receipts=50),
        make_week('P1', 'L1', 2, 110),
        make_week('P1', 'L1', 3, 100),
        make_week('P2', 'L1', 1, 50, beginning_inventory=80),
        make_week('P2', 'L1', 2, -10),
        make_week('P2', 'L1', 3, 5),
        make_week('P3', 'L2', 1, 30, beginning_inventory=60),
        make_week('P3', 'L2', 2, 45),
        make_week('P4', 'L2', 3, 25),
        make_week('P4', 'L2', 2, 10),
    ])


@pytest.fixture
def mock_planning_exceptions(fixed_now):
    """
    Creates mock planning exceptions with:
    - Mixed severities and exception types
    - One future-dated exception
    - One very old low-severity exception (age cap)
    - Two exceptions with identical score (stable ordering)
    """
    return pd.DataFrame([
        {'exception_id': 'E1', 'product_id': 'P1', 'location_id': 'L1',
         'exception_type': 'excess_inventory', 'severity': 'low',
         'exception_date': fixed_now - pd.Timedelta(days=30), 'resolution_status': 'open'},
        {'exception_id': 'E2', 'product_id': 'P2', 'location_id': 'L1',
         'exception_type': 'stockout', 'severity': 'critical',
         'exception_date': fixed_now, 'resolution_status': 'open'},
        {'exception_id': 'E3', 'product_id': 'P3', 'location_id': 'L2',
         'exception_type': 'below_safety_stock', 'severity': 'high',
         'exception_date': fixed_now - pd.Timedelta(days=2), 'resolution_status': 'in_progress'},
        {'exception_id': 'E4', 'product_id': 'P4', 'location_id': 'L2',
         'exception_type': 'order_urgency', 'severity': 'medium',
         'exception_date': fixed_now + pd.Timedelta(days=5), 'resolution_status': 'open'},
        {'exception_id': 'E5', 'product_id': 'P5', 'location_id': 'L2',
         'exception_type': 'below_safety_stock', 'severity': 'high',
         'exception_date': fixed_now - pd.Timedelta(days=2), 'resolution_status': 'open'},
    ])


@pytest.fixture
def mock_purchase_orders(fixed_now):
    """
    Creates mock purchase order recommendations across urgency and cost tiers
    """
    return pd.DataFrame([
        {'recommendation_id': 'R1', 'recommended_order_date': fixed_now - pd.Timedelta(days=3),
         'total_value': 150000, 'approval_status': 'pending'},
        {'recommendation_id': 'R2', 'recommended_order_date': fixed_now + pd.Timedelta(days=1),
         'total_value': 100000, 'approval_status': 'approved'},
        {'recommendation_id': 'R3', 'recommended_order_date': fixed_now + pd.Timedelta(days=5),
         'total_value': 20000, 'approval_status': 'pending'},
        {'recommendation_id': 'R4', 'recommended_order_date': fixed_now + pd.Timedelta(days=30),
         'total_value': 500, 'approval_status': 'pending'},
    ])


@pytest.fixture
def mock_collaboration_records():
    """
    Creates mock commercial collaboration rows with:
    - Three customers for one product across two months
    - Duplicate rows for the same customer/month (summed)
    - commercial_input overriding the statistical forecast for C2
    - A month where every effective forecast is 0
    """
    return pd.DataFrame([
        {'customer_node_id': 'C1', 'product_id': 'SKU1', 'postdate': '2024-07-01',
         'forecast': 60, 'forecast_ly': 50, 'commercial_input': 0, 'sm_kam_override': 5},
        {'customer_node_id': 'C1', 'product_id': 'SKU1', 'postdate': '2024-07-01',
         'forecast': 0, 'forecast_ly': 10, 'commercial_input': 0, 'sm_kam_override': 0},
        {'customer_node_id': 'C2', 'product_id': 'SKU1', 'postdate': '2024-07-01',
         'forecast': 10, 'forecast_ly': 40, 'commercial_input': 30, 'sm_kam_override': 0},
        {'customer_node_id': 'C3', 'product_id': 'SKU1', 'postdate': '2024-07-01',
         'forecast': 10, 'forecast_ly': 0, 'commercial_input': 0, 'sm_kam_override': 0},
        {'customer_node_id': 'C1', 'product_id': 'SKU1', 'postdate': '2024-08-01',
         'forecast': 0, 'forecast_ly': 20, 'commercial_input': 0, 'sm_kam_override': 0},
        {'customer_node_id': 'C2', 'product_id': 'SKU1', 'postdate': '2024-08-01',
         'forecast': 0, 'forecast_ly': 20, 'commercial_input': 0, 'sm_kam_override': 0},
    ])


@pytest.fixture
def week_row():
    """Factory for single time-phased MRP rows"""
    return make_week
