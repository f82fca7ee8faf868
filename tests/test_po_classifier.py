"""
Tests for Purchase Order Classifier

Covers:
- Ceiling days until order
- Urgency variants A and B, and rejection of unknown variants
- Strict cost tier boundaries
- Batch classification, recommendation generation and summary
"""

import pytest
import pandas as pd

from po_classifier import (
    calculate_days_until_order,
    classify_cost_category,
    classify_purchase_order,
    classify_purchase_orders,
    classify_urgency,
    generate_po_recommendations,
    summarize_purchase_orders
)


class TestDaysUntilOrder:
    """Tests for days until the recommended order date"""

    def test_whole_days(self, fixed_now):
        assert calculate_days_until_order(fixed_now + pd.Timedelta(days=4), now=fixed_now) == 4

    def test_later_today_counts_as_one_day(self, fixed_now):
        assert calculate_days_until_order(fixed_now + pd.Timedelta(hours=3), now=fixed_now) == 1

    def test_few_hours_overdue_is_zero(self, fixed_now):
        assert calculate_days_until_order(fixed_now - pd.Timedelta(hours=3), now=fixed_now) == 0

    def test_overdue_is_negative(self, fixed_now):
        assert calculate_days_until_order(fixed_now - pd.Timedelta(days=2), now=fixed_now) == -2

    def test_offset_date_strings(self):
        assert calculate_days_until_order('2024-01-20T00:00:00+00:00', now='2024-01-15') == 5
        assert calculate_days_until_order('2024-01-20', now='2024-01-15T00:00:00+00:00') == 5

    def test_missing_date_is_zero(self, fixed_now):
        assert calculate_days_until_order(None, now=fixed_now) == 0


class TestUrgencyVariantA:
    """Tests for the purchase order management grid rule"""

    @pytest.mark.parametrize("days,level", [
        (-1, 'critical'), (0, 'high'), (2, 'high'), (3, 'medium'),
        (7, 'medium'), (8, 'low'), (60, 'low')
    ])
    def test_levels(self, days, level):
        assert classify_urgency(days, 'A') == level

    def test_is_default_variant(self):
        assert classify_urgency(1) == 'high'


class TestUrgencyVariantB:
    """Tests for the MRP purchase order grid rule"""

    @pytest.mark.parametrize("days,level", [
        (-3, 'immediate'), (0, 'immediate'), (1, 'urgent'), (3, 'urgent'),
        (4, 'normal'), (14, 'normal'), (15, 'future')
    ])
    def test_levels(self, days, level):
        assert classify_urgency(days, 'B') == level

    def test_variant_key_is_case_insensitive(self):
        assert classify_urgency(0, 'b') == 'immediate'

    def test_unknown_variant_raises(self):
        with pytest.raises(ValueError, match="Unknown urgency variant"):
            classify_urgency(0, 'C')


class TestCostCategory:
    """Tests for strict cost tiers"""

    @pytest.mark.parametrize("value,category", [
        (100000.01, 'very_high'),
        (100000, 'high'),
        (50000.01, 'high'),
        (50000, 'medium'),
        (10000.01, 'medium'),
        (10000, 'low'),
        (0, 'low'),
        (-5, 'low')
    ])
    def test_boundaries(self, value, category):
        assert classify_cost_category(value) == category

    def test_missing_value_is_low(self):
        assert classify_cost_category(None) == 'low'
        assert classify_cost_category(float('nan')) == 'low'


class TestClassifyPurchaseOrder:
    """Tests for single and batch classification"""

    def test_single_record(self, fixed_now):
        result = classify_purchase_order(
            {'recommended_order_date': fixed_now - pd.Timedelta(days=3), 'total_value': 150000},
            now=fixed_now
        )
        assert result == {'urgency_level': 'critical', 'cost_category': 'very_high', 'days_until_order': -3}

    def test_single_record_with_text_value(self, fixed_now):
        result = classify_purchase_order(
            {'recommended_order_date': fixed_now, 'total_value': 'n/a'}, now=fixed_now
        )
        assert result['cost_category'] == 'low'
        assert result['urgency_level'] == 'high'

    def test_batch_variant_a(self, mock_purchase_orders, fixed_now):
        logs, classified = classify_purchase_orders(mock_purchase_orders, now=fixed_now)
        assert list(classified['days_until_order']) == [-3, 1, 5, 30]
        assert list(classified['urgency_level']) == ['critical', 'high', 'medium', 'low']
        assert list(classified['cost_category']) == ['very_high', 'high', 'medium', 'low']
        assert any('Classified 4 recommendations' in msg for msg in logs)

    def test_batch_variant_b(self, mock_purchase_orders, fixed_now):
        _, classified = classify_purchase_orders(mock_purchase_orders, now=fixed_now, variant='B')
        assert list(classified['urgency_level']) == ['immediate', 'urgent', 'normal', 'future']

    def test_batch_matches_single_record(self, mock_purchase_orders, fixed_now):
        _, classified = classify_purchase_orders(mock_purchase_orders, now=fixed_now)
        for record, row in zip(mock_purchase_orders.to_dict('records'), classified.itertuples(index=False)):
            single = classify_purchase_order(record, now=fixed_now)
            assert single['urgency_level'] == row.urgency_level
            assert single['days_until_order'] == row.days_until_order

    def test_batch_unknown_variant_raises(self, mock_purchase_orders, fixed_now):
        with pytest.raises(ValueError):
            classify_purchase_orders(mock_purchase_orders, now=fixed_now, variant='Z')

    def test_timestamptz_order_dates(self):
        logs, classified = classify_purchase_orders(
            [{'recommended_order_date': '2024-01-20T00:00:00+00:00', 'total_value': 5},
             {'recommended_order_date': '2024-01-14T12:00:00+00:00', 'total_value': 5}],
            now='2024-01-15'
        )
        assert list(classified['days_until_order']) == [5, 0]
        assert list(classified['urgency_level']) == ['medium', 'high']

    def test_single_record_timestamptz(self):
        result = classify_purchase_order(
            {'recommended_order_date': '2024-01-20T00:00:00+00:00', 'total_value': 5},
            now='2024-01-15'
        )
        assert result['days_until_order'] == 5

    def test_values_with_thousands_separators(self, fixed_now):
        _, classified = classify_purchase_orders(
            [{'recommended_order_date': fixed_now, 'total_value': '150,000'}], now=fixed_now
        )
        assert classified.iloc[0]['total_value'] == 150000
        assert classified.iloc[0]['cost_category'] == 'very_high'

        single = classify_purchase_order({'recommended_order_date': fixed_now, 'total_value': '60,000'},
                                         now=fixed_now)
        assert single['cost_category'] == 'high'

    def test_missing_order_date_is_due_today(self, fixed_now):
        logs, classified = classify_purchase_orders(
            [{'recommendation_id': 'X', 'recommended_order_date': None, 'total_value': 10}],
            now=fixed_now
        )
        assert classified.iloc[0]['days_until_order'] == 0
        assert classified.iloc[0]['urgency_level'] == 'high'
        assert any('no order date' in msg for msg in logs)

    def test_empty_input(self, fixed_now):
        _, classified = classify_purchase_orders([], now=fixed_now)
        assert classified.empty
        assert 'urgency_level' in classified.columns


class TestGenerateRecommendations:
    """Tests for recommendations from planned order receipts"""

    def test_generates_from_planned_receipts(self, week_row):
        records = [
            week_row('P', 'L', 1, 50, planned_order_receipts=100, week_start_date='2024-07-01'),
            week_row('P', 'L', 2, 50, week_start_date='2024-07-08'),
        ]
        parameters = [{'product_id': 'P', 'location_node_id': 'L', 'lead_time_days': 7,
                       'unit_cost': 150, 'supplier_id': 'S1'}]
        logs, recs = generate_po_recommendations(records, parameters)

        assert len(recs) == 1
        rec = recs.iloc[0]
        assert rec['recommendation_id'] == 'REC-P-L-W1'
        assert rec['recommended_order_date'] == pd.Timestamp('2024-06-24')
        assert rec['expected_delivery_date'] == pd.Timestamp('2024-07-01')
        assert rec['total_value'] == 15000
        assert rec['supplier_id'] == 'S1'
        assert rec['approval_status'] == 'pending'
        assert bool(rec['approval_threshold_exceeded']) is True
        assert any('1 recommendations exceed' in msg for msg in logs)

    def test_default_lead_time_and_unknown_cost(self, week_row):
        records = [week_row('P', 'L', 1, 50, planned_order_receipts=10, week_start_date='2024-07-15')]
        _, recs = generate_po_recommendations(records)
        rec = recs.iloc[0]
        assert rec['lead_time_days'] == 14
        assert rec['recommended_order_date'] == pd.Timestamp('2024-07-01')
        assert rec['total_value'] == 0
        assert bool(rec['approval_threshold_exceeded']) is False

    def test_requires_week_start_date(self, mock_time_phased_records):
        logs, recs = generate_po_recommendations(mock_time_phased_records)
        assert recs.empty
        assert any(msg.startswith('ERROR:') and 'week_start_date' in msg for msg in logs)

    def test_generated_orders_can_be_classified(self, week_row):
        records = [week_row('P', 'L', 1, 50, planned_order_receipts=100, week_start_date='2024-07-01')]
        _, recs = generate_po_recommendations(records, [{'product_id': 'P', 'location_id': 'L', 'unit_cost': 2000}])
        _, classified = classify_purchase_orders(recs, now=pd.Timestamp('2024-06-15 12:00'))
        assert classified.iloc[0]['days_until_order'] == 2
        assert classified.iloc[0]['urgency_level'] == 'high'
        assert classified.iloc[0]['cost_category'] == 'very_high'


class TestPurchaseOrderSummary:
    """Tests for the purchase order grid summary"""

    def test_summary(self, mock_purchase_orders, fixed_now):
        _, classified = classify_purchase_orders(mock_purchase_orders, now=fixed_now)
        summary = summarize_purchase_orders(classified)
        assert summary['total'] == 4
        assert summary['total_value'] == 270500
        assert summary['pending_approval'] == 3
        assert summary['by_urgency'] == {'critical': 1, 'high': 1, 'medium': 1, 'low': 1}
        assert summary['by_cost_category'] == {'very_high': 1, 'high': 1, 'medium': 1, 'low': 1}

    def test_empty_summary_variant_b(self):
        summary = summarize_purchase_orders(pd.DataFrame(), variant='B')
        assert summary['total'] == 0
        assert list(summary['by_urgency']) == ['immediate', 'urgent', 'normal', 'future']
