from datetime import date
from pathlib import Path
import sys

sys.path.append(str(Path(__file__).resolve().parents[2]))

from backend.app.insights.builders import concentration, cycle_stats, window_deltas  # noqa: E402
from backend.app.insights.stats import (  # noqa: E402
    coefficient_of_variation,
    pct_change,
    population_stddev,
    ratio,
    round_half_up,
    safe_mean,
)
from backend.app.insights.windows import (  # noqa: E402
    days_until_annual,
    months_until,
    prior_window,
    shift_years,
    trailing_window,
)


def test_zero_and_empty_guards():
    assert safe_mean([]) == 0.0
    assert population_stddev([5]) == 0.0
    assert coefficient_of_variation([0, 0]) is None
    assert pct_change(10, 0) is None
    assert ratio(10, 0) is None


def test_round_half_up():
    assert round_half_up(2.5) == 3
    assert round_half_up(29.5) == 30
    assert round_half_up(-2.5) == -2


def test_windows_are_inclusive_and_explicit():
    assert trailing_window(date(2024, 5, 20), 30) == (date(2024, 4, 20), date(2024, 5, 20))
    assert prior_window(date(2024, 5, 20), 60, 30) == (date(2024, 3, 21), date(2024, 4, 19))
    assert shift_years(date(2024, 2, 29), -1) == date(2023, 2, 28)


def test_annual_and_monthly_distance():
    assert days_until_annual(date(2024, 12, 20), 12, 25) == 5
    assert days_until_annual(date(2024, 12, 26), 12, 25) == 364
    assert months_until(12, (1, 2, 3)) == (1, 1)
    assert months_until(12, (12,)) == (12, 12)


def test_cycle_stats_discards_outlier_gaps():
    days = [date(2024, 1, 1), date(2024, 1, 31), date(2024, 7, 1), date(2024, 7, 31)]

    stats = cycle_stats(days, max_gap_days=120)

    assert stats.gaps == (30, 30)
    assert stats.cov == 0
    assert stats.last_date == date(2024, 7, 31)


def test_cycle_stats_needs_two_dates():
    assert cycle_stats([date(2024, 1, 1)], max_gap_days=120) is None


def test_window_deltas_skip_missing_baseline():
    deltas = window_deltas({"a": 15, "b": 5}, {"a": 10, "c": 0})

    assert list(deltas) == ["a"]
    assert deltas["a"].pct == 0.5


def test_concentration_picks_largest_share():
    summary = concentration({"Sysco": 600, "Baldor": 400, "Refund": -50})

    assert summary.top_key == "Sysco"
    assert summary.share == 0.6
    assert summary.count == 2
