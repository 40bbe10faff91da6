from datetime import date, timedelta
from pathlib import Path
import sys

sys.path.append(str(Path(__file__).resolve().parents[2]))

from backend.tests.purchase_factory import line, run_detector  # noqa: E402


def test_day_pattern_announces_the_upcoming_order_day():
    tuesdays = [date(2024, 2, 6), date(2024, 2, 13), date(2024, 2, 20), date(2024, 2, 27)]
    lines = [line(d, "BRD-1", 5, 300) for d in tuesdays] + [line(date(2024, 2, 9), "BRD-1", 5, 300)]

    insights = run_detector("day_pattern", lines, date(2024, 3, 4))

    assert len(insights) == 1
    pattern = insights[0]
    assert pattern.title == "Tuesday is your typical ordering day"
    assert pattern.reasoning["days_until_event"] == 1
    assert pattern.reasoning["share_on_day"] == 0.8
    assert pattern.urgency == "medium"
    assert pattern.confidence_score == 90


def test_day_pattern_quiet_when_the_day_is_far_off():
    tuesdays = [date(2024, 2, 6), date(2024, 2, 13), date(2024, 2, 20), date(2024, 2, 27)]
    lines = [line(d, "BRD-1", 5, 300) for d in tuesdays] + [line(date(2024, 2, 9), "BRD-1", 5, 300)]

    assert run_detector("day_pattern", lines, date(2024, 2, 28)) == []


def test_seasonal_demand_uses_last_year_spend():
    lines = [
        line(date(2023, 12, 18), "HAM-1", 10, 5000, vendor="Sysco"),
        line(date(2023, 12, 19), "PIE-1", 4, 1250, vendor="Bakery Co"),
    ]

    insights = run_detector("seasonal_demand", lines, date(2024, 12, 20))

    assert len(insights) == 1
    christmas = insights[0]
    assert christmas.reasoning["event"] == "christmas"
    assert christmas.reasoning["days_until_event"] == 5
    assert christmas.reasoning["has_historical_data"] is True
    assert christmas.estimated_value_minor_units == 55000
    assert christmas.reasoning["top_vendors"][0]["vendor"] == "Sysco"
    assert christmas.urgency == "medium"
    assert christmas.confidence_score == 80


def test_seasonal_demand_generic_reminder_without_history():
    insights = run_detector("seasonal_demand", [], date(2024, 12, 23))

    assert len(insights) == 1
    reminder = insights[0]
    assert reminder.reasoning["has_historical_data"] is False
    assert reminder.reasoning["days_until_event"] == 2
    assert reminder.urgency == "medium"
    assert reminder.confidence_score == 60
    assert reminder.estimated_value_minor_units == 0


def test_order_timing_prefers_the_cheapest_weekday():
    start = date(2024, 1, 1)
    lines = []
    for week in range(4):
        monday = start + timedelta(days=7 * week)
        lines.append(line(monday, None, 1, 10000, total=10000))
        lines.append(line(monday + timedelta(days=2), None, 1, 12000, total=12000))
        lines.append(line(monday + timedelta(days=4), None, 1, 15000, total=15000))

    insights = run_detector("order_timing", lines, date(2024, 2, 1))

    assert len(insights) == 1
    timing = insights[0]
    assert timing.reasoning["best_day"] == "Monday"
    assert timing.reasoning["worst_day"] == "Friday"
    assert timing.urgency == "medium"
    assert timing.estimated_value_minor_units == 5000 * 4
