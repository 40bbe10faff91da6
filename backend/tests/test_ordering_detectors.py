from datetime import date
from pathlib import Path
import sys

sys.path.append(str(Path(__file__).resolve().parents[2]))

from backend.tests.purchase_factory import line, on, run_detector  # noqa: E402


def test_bulk_consolidation_for_small_frequent_orders():
    quantities = [2, 2, 2, 2, 12]
    lines = [
        line(on(d), "NAP-1", q, 1000, description="Napkins case")
        for d, q in zip((20, 35, 50, 65, 80), quantities)
    ]

    insights = run_detector("bulk_consolidation", lines, on(100))

    assert len(insights) == 1
    bulk = insights[0]
    assert bulk.reasoning["order_days"] == 5
    assert bulk.reasoning["small_order_pattern"] is True
    assert bulk.estimated_value_minor_units == 1400
    assert bulk.suggested_quantity == 12
    assert bulk.urgency == "medium"


def test_bulk_consolidation_requires_enough_orders():
    lines = [line(on(d), "NAP-1", 2, 10000) for d in (50, 80)]

    assert run_detector("bulk_consolidation", lines, on(100)) == []


def test_vendor_consolidation_counts_order_days():
    lines = [line(on(d), f"SKU-{d}", 1, 5000, vendor="Baldor") for d in (75, 80, 85, 90, 95)]

    insights = run_detector("vendor_consolidation", lines, on(100))

    assert len(insights) == 1
    vendor = insights[0]
    assert vendor.vendor_name == "Baldor"
    assert vendor.reasoning["order_days"] == 5
    assert vendor.reasoning["recommended_orders"] == 2
    assert vendor.estimated_value_minor_units == 3 * 1500
    assert vendor.urgency == "medium"


def test_rush_orders_on_repeated_same_day_orders():
    lines = []
    for d in (80, 90):
        lines.append(line(on(d), "ICE-1", 1, 3000, vendor="Ice House", purchase_id=f"am-{d}", hour=8))
        lines.append(line(on(d), "ICE-1", 1, 3000, vendor="Ice House", purchase_id=f"pm-{d}", hour=17))

    insights = run_detector("rush_orders", lines, on(100))

    assert len(insights) == 1
    rush = insights[0]
    assert rush.reasoning["multi_order_days"] == 2
    assert rush.reasoning["total_orders"] == 4
    assert rush.estimated_value_minor_units == 2 * 1500
    assert rush.urgency == "medium"


def test_bulk_discount_annualizes_savings():
    lines = [line(on(d), "BEEF-1", 50, 800, vendor="Sysco") for d in (30, 50, 70)]

    insights = run_detector("bulk_discount", lines, on(100))

    assert len(insights) == 1
    tier = insights[0]
    assert tier.reasoning["discount_per_unit_minor"] == 80
    assert tier.reasoning["annualized_quantity"] == 600
    assert tier.estimated_value_minor_units == 48_000
    assert tier.urgency == "medium"
    assert tier.confidence_score == 70


def test_volume_rebate_for_large_vendor_spend():
    lines = [line(date(2024, 4, 1), None, 1, 150_000, vendor="Sysco", total=150_000)]

    insights = run_detector("volume_rebate", lines, date(2024, 5, 1))

    assert len(insights) == 1
    rebate = insights[0]
    assert rebate.vendor_name == "Sysco"
    assert rebate.estimated_value_minor_units == 3_000
    assert rebate.urgency == "low"
