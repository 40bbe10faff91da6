from datetime import date
from pathlib import Path
import sys

sys.path.append(str(Path(__file__).resolve().parents[2]))

from backend.tests.purchase_factory import line, on, run_detector  # noqa: E402


def test_low_stock_risk_when_usage_outgrows_ordering():
    as_of = on(100)
    lines = [
        line(on(50), "TOM-1", 10, 200, description="Roma tomatoes"),
        line(on(60), "TOM-1", 10, 200, description="Roma tomatoes"),
        line(on(80), "TOM-1", 20, 200, description="Roma tomatoes"),
        line(on(90), "TOM-1", 20, 200, description="Roma tomatoes"),
    ]

    insights = run_detector("low_stock_risk", lines, as_of)

    assert len(insights) == 1
    risk = insights[0]
    assert risk.reasoning["prior_qty"] == 20
    assert risk.reasoning["recent_qty"] == 40
    assert risk.reasoning["change_pct"] == 1.0
    assert risk.suggested_quantity == 50
    assert risk.estimated_value_minor_units == 50 * 200
    assert risk.urgency == "high"


def test_low_stock_risk_quiet_when_order_frequency_kept_pace():
    lines = [
        line(on(50), "TOM-1", 10, 200),
        line(on(72), "TOM-1", 10, 200),
        line(on(80), "TOM-1", 10, 200),
        line(on(90), "TOM-1", 10, 200),
    ]

    assert run_detector("low_stock_risk", lines, on(100)) == []


def test_over_ordering_this_month():
    lines = [
        line(date(2024, 3, 10), "LET-1", 10, 150),
        line(date(2024, 4, 10), "LET-1", 10, 150),
        line(date(2024, 5, 5), "LET-1", 25, 150),
    ]

    insights = run_detector("over_ordering", lines, date(2024, 5, 20))

    assert len(insights) == 1
    waste = insights[0]
    assert waste.reasoning["this_month_qty"] == 25
    assert waste.reasoning["avg_monthly_qty"] == 15
    assert waste.urgency == "high"
    assert waste.estimated_value_minor_units == 10 * 150


def test_inactive_item_after_regular_orders():
    lines = [line(on(d), "SAL-1", 5, 900, description="Salmon fillet") for d in (100, 115, 130)]

    insights = run_detector("inactive_item", lines, on(200))

    assert len(insights) == 1
    inactive = insights[0]
    assert inactive.reasoning["days_inactive"] == 70
    assert inactive.urgency == "medium"
    assert inactive.estimated_value_minor_units == 0


def test_inactive_item_requires_order_history():
    lines = [line(on(d), "SAL-1", 5, 900) for d in (100, 130)]

    assert run_detector("inactive_item", lines, on(200)) == []


def test_new_item_with_material_spend():
    lines = [line(on(195), "TRF-1", 2, 3000, description="Truffle oil", vendor="Specialty Foods")]

    insights = run_detector("new_item", lines, on(200))

    assert len(insights) == 1
    new = insights[0]
    assert new.estimated_value_minor_units == 6000
    assert new.urgency == "high"
    assert new.confidence_score == 95
    assert new.reasoning["days_since_first"] == 5


def test_new_item_ignores_long_running_skus():
    lines = [line(on(20), "TRF-1", 2, 3000), line(on(195), "TRF-1", 2, 3000)]

    assert run_detector("new_item", lines, on(200)) == []


def test_duplicate_item_across_vendors():
    lines = [
        line(on(60), "A-100", 4, 2500, vendor="Sysco", description="Mozzarella shredded 5lb"),
        line(on(80), "A-100", 4, 2500, vendor="Sysco", description="Mozzarella shredded 5lb"),
        line(on(65), "B-200", 4, 2200, vendor="US Foods", description="Mozzarella shredded whole milk"),
        line(on(85), "B-200", 4, 2200, vendor="US Foods", description="Mozzarella shredded whole milk"),
    ]

    insights = run_detector("duplicate_item", lines, on(100))

    assert len(insights) == 1
    duplicate = insights[0]
    assert duplicate.reasoning["cheaper_vendor"] == "US Foods"
    assert duplicate.reasoning["price_diff_minor"] == 300
    assert duplicate.vendor_name == "Sysco"
    assert duplicate.urgency == "medium"
