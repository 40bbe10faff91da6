from pathlib import Path
import sys

sys.path.append(str(Path(__file__).resolve().parents[2]))

from backend.app.insights.config import InsightConfig  # noqa: E402
from backend.tests.purchase_factory import line, on, run_detector  # noqa: E402


def _cycle(days, qty=20, sku="CHK-01"):
    return [line(on(d), sku, qty, 450, description="Chicken breast 40lb") for d in days]


def test_no_reorder_insight_when_prediction_is_far_out():
    insights = run_detector("reorder_prediction", _cycle([0, 30, 61, 89]), on(93))

    assert insights == []


def test_reorder_insight_inside_alert_window():
    insights = run_detector("reorder_prediction", _cycle([0, 30, 61, 89]), on(115))

    assert len(insights) == 1
    insight = insights[0]
    assert insight.type == "reorder_prediction"
    assert insight.scope == "sku"
    assert insight.sku == "CHK-01"
    assert insight.suggested_quantity == 20
    assert insight.reasoning["gaps_days"] == [31, 28]
    assert insight.reasoning["predicted_order_date"] == on(119).isoformat()
    assert insight.reasoning["days_until_event"] == 4
    assert insight.urgency == "low"
    assert insight.confidence_score == 90


def test_reorder_urgency_tightens_as_the_date_approaches():
    lines = _cycle([0, 30, 61, 89])

    medium = run_detector("reorder_prediction", lines, on(116))
    due = run_detector("reorder_prediction", lines, on(119))
    overdue = run_detector("reorder_prediction", lines, on(125))

    assert [i.urgency for i in medium] == ["medium"]
    assert [i.urgency for i in due] == ["high"]
    assert overdue[0].urgency == "high"
    assert overdue[0].reasoning["days_until_event"] == -8
    assert overdue[0].title.endswith("overdue by 8 days")


def test_reorder_skipped_beyond_overdue_tolerance():
    assert run_detector("reorder_prediction", _cycle([0, 30, 61, 89]), on(134)) == []


def test_single_order_sku_never_predicts():
    lines = [
        line(on(80), "ONCE-1", 20, 450),
        line(on(80), "ONCE-1", 5, 450, purchase_id="second-same-day"),
    ]

    for day in range(80, 130):
        assert run_detector("reorder_prediction", lines, on(day)) == []


def test_irregular_cycle_is_skipped():
    lines = _cycle([10, 12, 60, 64, 100])

    assert run_detector("reorder_prediction", lines, on(104)) == []


def test_gaps_longer_than_cutoff_are_discarded():
    lines = _cycle([0, 30, 60, 90, 211, 241])

    insights = run_detector("reorder_prediction", lines, on(268), config=InsightConfig(analysis_window_days=300))

    assert len(insights) == 1
    assert insights[0].reasoning["gaps_days"] == [30, 30, 30, 30]
    assert insights[0].reasoning["days_until_event"] == 3
