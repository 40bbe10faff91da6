from __future__ import annotations

from typing import Dict, FrozenSet, Iterable, List

from backend.app.insights.schema import URGENCIES, Insight

TIME_SENSITIVE_TYPES: FrozenSet[str] = frozenset(
    {
        "reorder_prediction",
        "price_drop",
        "day_pattern",
        "low_stock_risk",
        "rush_orders",
        "new_item",
    }
)

PLANNING_TYPES: FrozenSet[str] = frozenset(
    {
        "seasonal_demand",
        "seasonal_buying",
        "bulk_consolidation",
        "bulk_discount",
        "vendor_consolidation",
        "budget_pacing",
        "usage_forecast",
        "vendor_comparison",
        "category_trend",
        "cost_creep",
        "volume_rebate",
        "category_vendor_sprawl",
        "order_timing",
    }
)

EVENT_HORIZON_DAYS = 1


def _event_imminent(insight: Insight) -> bool:
    days = insight.reasoning.get("days_until_event")
    if isinstance(days, bool) or not isinstance(days, (int, float)):
        return False
    return days <= EVENT_HORIZON_DAYS


def now_relevant(ranked: Iterable[Insight]) -> List[Insight]:
    """Filters a ranked feed; order is preserved."""
    return [
        insight
        for insight in ranked
        if insight.type in TIME_SENSITIVE_TYPES or insight.urgency == "high" or _event_imminent(insight)
    ]


def week_planning(ranked: Iterable[Insight], materiality_threshold: int) -> List[Insight]:
    return [
        insight
        for insight in ranked
        if insight.type in PLANNING_TYPES
        or insight.urgency in ("high", "medium")
        or insight.estimated_value_minor_units >= materiality_threshold
    ]


def summarize_insights(insights: Iterable[Insight]) -> Dict[str, object]:
    items = list(insights)
    by_type: Dict[str, int] = {}
    for insight in items:
        by_type[insight.type] = by_type.get(insight.type, 0) + 1
    by_urgency = {urgency: 0 for urgency in URGENCIES}
    for insight in items:
        by_urgency[insight.urgency] += 1
    return {
        "total": len(items),
        "by_type": dict(sorted(by_type.items())),
        "by_urgency": by_urgency,
        "high_priority": by_urgency["high"],
        "total_estimated_value_minor_units": sum(i.estimated_value_minor_units for i in items),
    }
