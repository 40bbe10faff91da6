from datetime import date
from pathlib import Path
import sys

sys.path.append(str(Path(__file__).resolve().parents[2]))

from backend.tests.purchase_factory import line, run_detector  # noqa: E402


def _invoice(when, total, vendor="Sysco", category=None, sku=None):
    return line(when, sku, 1, total, vendor=vendor, category=category, total=total)


def test_vendor_dependency_on_one_supplier():
    lines = [
        _invoice(date(2024, 4, 1), 150_000, vendor="Sysco"),
        _invoice(date(2024, 4, 8), 30_000, vendor="Local Farm"),
    ]

    insights = run_detector("vendor_dependency", lines, date(2024, 5, 1))

    assert len(insights) == 1
    dependency = insights[0]
    assert dependency.vendor_name == "Sysco"
    assert dependency.urgency == "high"
    assert dependency.estimated_value_minor_units == 0
    assert dependency.reasoning["second_vendor"] == "Local Farm"


def test_vendor_dependency_needs_more_than_one_vendor():
    lines = [_invoice(date(2024, 4, 1), 500_000, vendor="Sysco")]

    assert run_detector("vendor_dependency", lines, date(2024, 5, 1)) == []


def test_single_source_item():
    lines = [
        _invoice(date(2024, 3, 1), 15_000, vendor="Sysco", sku="PRIME-1"),
        _invoice(date(2024, 4, 1), 15_000, vendor="Sysco", sku="PRIME-1"),
    ]

    insights = run_detector("single_source_item", lines, date(2024, 5, 1))

    assert [i.sku for i in insights] == ["PRIME-1"]
    assert insights[0].urgency == "low"


def test_category_vendor_sprawl():
    lines = [
        _invoice(date(2024, 4, 1), 30_000, vendor="Sysco", category="Produce"),
        _invoice(date(2024, 4, 2), 20_000, vendor="Local Farm", category="Produce"),
        _invoice(date(2024, 4, 3), 10_000, vendor="Baldor", category="Produce"),
    ]

    insights = run_detector("category_vendor_sprawl", lines, date(2024, 5, 1))

    assert len(insights) == 1
    sprawl = insights[0]
    assert sprawl.category == "Produce"
    assert sprawl.reasoning["vendor_count"] == 3
    assert sprawl.estimated_value_minor_units == 4_800 * 4


def test_usage_forecast_dampens_growth():
    lines = [
        line(date(2024, 4, 10), "FRY-1", 20, 500, description="Fries 6x5lb"),
        line(date(2024, 5, 10), "FRY-1", 30, 500, description="Fries 6x5lb"),
    ]

    insights = run_detector("usage_forecast", lines, date(2024, 5, 20))

    assert len(insights) == 1
    forecast = insights[0]
    assert forecast.reasoning["growth_rate"] == 0.5
    assert forecast.suggested_quantity == 39
    assert forecast.urgency == "medium"
    assert forecast.estimated_value_minor_units == 39 * 500


def test_usage_forecast_skips_flat_usage():
    lines = [
        line(date(2024, 4, 10), "FRY-1", 20, 500),
        line(date(2024, 5, 10), "FRY-1", 22, 500),
    ]

    assert run_detector("usage_forecast", lines, date(2024, 5, 20)) == []


def test_seasonal_buying_ahead_of_produce_season():
    lines = [_invoice(date(2024, 11, 20), 40_000, category="Produce")]

    insights = run_detector("seasonal_buying", lines, date(2024, 12, 5))

    assert len(insights) == 1
    season = insights[0]
    assert season.category == "Produce"
    assert season.reasoning["months_until_increase"] == 1
    assert season.urgency == "high"


def test_seasonal_buying_needs_category_spend():
    assert run_detector("seasonal_buying", [], date(2024, 12, 5)) == []


def test_year_over_year_category_spend():
    lines = [
        _invoice(date(2023, 5, 10), 40_000, category="Seafood"),
        _invoice(date(2024, 5, 10), 60_000, category="Seafood"),
    ]

    insights = run_detector("yoy_spend_change", lines, date(2024, 5, 20))

    assert len(insights) == 1
    yoy = insights[0]
    assert yoy.category == "Seafood"
    assert yoy.reasoning["change_pct"] == 0.5
    assert yoy.urgency == "medium"
    assert yoy.estimated_value_minor_units == 20_000
