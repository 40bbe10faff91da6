from pathlib import Path
import sys

sys.path.append(str(Path(__file__).resolve().parents[2]))

from backend.tests.purchase_factory import line, on, run_detector  # noqa: E402

AS_OF = on(100)


def _series(sku, prices, days=(60, 70, 80, 98), qty=10, vendor="Sysco"):
    return [line(on(d), sku, qty, p, vendor=vendor, description=f"{sku} item") for d, p in zip(days, prices)]


def _price_history():
    return _series("UP-1", [1000, 1000, 1000, 1150]) + _series("DOWN-1", [1000, 1000, 1000, 850])


def test_anomaly_flags_only_the_price_increase():
    insights = run_detector("price_anomaly", _price_history(), AS_OF)

    assert [i.sku for i in insights] == ["UP-1"]
    anomaly = insights[0]
    assert anomaly.estimated_value_minor_units == (1150 - 1000) * 10
    assert anomaly.reasoning["trailing_avg_minor"] == 1000
    assert anomaly.reasoning["trailing_points"] == 3
    assert anomaly.reasoning["increase_pct"] == 0.15
    assert anomaly.urgency == "medium"
    assert anomaly.confidence_score == 85


def test_drop_flags_only_the_price_decrease():
    insights = run_detector("price_drop", _price_history(), AS_OF)

    assert [i.sku for i in insights] == ["DOWN-1"]
    drop = insights[0]
    assert drop.suggested_quantity == 20
    assert drop.estimated_value_minor_units == (1000 - 850) * drop.suggested_quantity
    assert drop.reasoning["prior_avg_price_minor"] == 1000
    assert drop.reasoning["recent_avg_price_minor"] == 850
    assert drop.urgency == "medium"
    assert drop.confidence_score == 75


def test_anomaly_ignores_stale_latest_price():
    lines = _series("OLD-1", [1000, 1000, 1400], days=(40, 50, 60))

    assert run_detector("price_anomaly", lines, AS_OF) == []


def test_large_anomaly_is_high_urgency():
    insights = run_detector("price_anomaly", _series("UP-2", [1000, 1000, 1000, 1300]), AS_OF)

    assert insights[0].urgency == "high"


def test_vendor_comparison_flags_the_expensive_vendor():
    lines = [
        line(on(70), "OIL-1", 2, 1000, vendor="Restaurant Depot", description="Fryer oil 35lb"),
        line(on(85), "OIL-1", 2, 1000, vendor="Restaurant Depot", description="Fryer oil 35lb"),
        line(on(72), "OIL-1", 2, 1200, vendor="Sysco", description="Fryer oil 35lb"),
        line(on(90), "OIL-1", 2, 1200, vendor="Sysco", description="Fryer oil 35lb"),
    ]

    insights = run_detector("vendor_comparison", lines, AS_OF)

    assert len(insights) == 1
    comparison = insights[0]
    assert comparison.vendor_name == "Sysco"
    assert comparison.reasoning["cheapest_vendor"] == "Restaurant Depot"
    assert comparison.reasoning["savings_per_unit_minor"] == 200
    assert comparison.estimated_value_minor_units == 2000
    assert comparison.urgency == "medium"


def test_vendor_comparison_needs_a_meaningful_gap():
    lines = [
        line(on(70), "OIL-1", 2, 1000, vendor="Restaurant Depot"),
        line(on(85), "OIL-1", 2, 1000, vendor="Restaurant Depot"),
        line(on(72), "OIL-1", 2, 1050, vendor="Sysco"),
        line(on(90), "OIL-1", 2, 1050, vendor="Sysco"),
    ]

    assert run_detector("vendor_comparison", lines, AS_OF) == []


def test_category_trend_compares_to_last_month():
    lines = [
        line(on(40), None, 1, 100000, category="Meat", total=100000),
        line(on(70), None, 1, 150000, category="Meat", total=150000),
    ]

    insights = run_detector("category_trend", lines, on(75))

    assert len(insights) == 1
    trend = insights[0]
    assert trend.category == "Meat"
    assert trend.reasoning["baseline"] == "last_month"
    assert trend.reasoning["change_pct"] == 0.5
    assert trend.urgency == "high"
    assert trend.estimated_value_minor_units == 50000


def test_price_volatility_flags_wide_swings():
    lines = _series("EGG-1", [400, 520, 380, 500], days=(20, 40, 60, 80))

    insights = run_detector("price_volatility", lines, AS_OF)

    assert len(insights) == 1
    assert insights[0].reasoning["min_price_minor"] == 380
    assert insights[0].reasoning["max_price_minor"] == 520
    assert insights[0].estimated_value_minor_units == 70
    assert insights[0].urgency == "high"


def test_cost_creep_across_months():
    lines = _series("FLR-1", [2000, 2300], days=(20, 70), qty=10)

    insights = run_detector("cost_creep", lines, AS_OF)

    assert len(insights) == 1
    creep = insights[0]
    assert creep.reasoning["increase_pct"] == 0.15
    assert creep.reasoning["months_tracked"] == 2
    assert creep.estimated_value_minor_units == 300 * 10 * 3
    assert creep.urgency == "medium"


def test_historical_low_price():
    lines = _series("CHS-1", [700, 1000, 1000], days=(-20, 60, 90))

    insights = run_detector("historical_low_price", lines, AS_OF)

    assert len(insights) == 1
    low = insights[0]
    assert low.reasoning["historical_low_minor"] == 700
    assert low.reasoning["current_price_minor"] == 1000
    assert low.urgency == "medium"
    assert low.estimated_value_minor_units == 300 * 10
