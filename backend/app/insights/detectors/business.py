from __future__ import annotations

from datetime import timedelta
from typing import Dict, List, Optional

from backend.app.insights.builders import Concentration, DetectorContext, concentration_detector
from backend.app.insights.schema import Insight
from backend.app.insights.scoring import money
from backend.app.insights.stats import percent, ratio
from backend.app.insights.windows import month_start, trailing_window


def detect_budget_pacing(ctx: DetectorContext) -> List[Insight]:
    """Month-to-date run rate projected to a full period, against the trailing daily average."""
    cfg = ctx.config
    period_start = month_start(ctx.as_of)
    day_of_period = ctx.as_of.day

    mtd = sum(int(row.total_minor or 0) for row in ctx.history.purchases(ctx.user_id, period_start, ctx.as_of))
    trailing_end = period_start - timedelta(days=1)
    trailing_start = period_start - timedelta(days=cfg.analysis_window_days)
    trailing_total = sum(
        int(row.total_minor or 0)
        for row in ctx.history.purchases(ctx.user_id, trailing_start, trailing_end)
    )
    if mtd <= 0 or trailing_total <= 0:
        return []

    typical = trailing_total * cfg.budget_period_days / cfg.analysis_window_days
    projected = mtd * cfg.budget_period_days / day_of_period
    overrun = ratio(projected, typical)
    if overrun is None or overrun - 1 <= cfg.budget_pacing_threshold:
        return []

    over_pct = overrun - 1
    return [
        ctx.insight(
            scope="global",
            title=f"On pace to exceed typical spend by {percent(over_pct)}%",
            detail=(
                f"{day_of_period} days in, you've spent {money(mtd)} ({percent(mtd / typical)}% of a typical "
                f"month). Projected: {money(projected)} vs typical {money(typical)}."
            ),
            urgency="high" if over_pct > cfg.budget_pacing_high_threshold else "medium",
            confidence=75,
            value=projected - typical,
            reasoning={
                "mtd_spend_minor": mtd,
                "day_of_period": day_of_period,
                "period_days": cfg.budget_period_days,
                "trailing_window": {"start": trailing_start, "end": trailing_end},
                "trailing_total_minor": trailing_total,
                "typical_period_minor": typical,
                "projected_period_minor": projected,
                "projected_over_typical": over_pct,
                "threshold": cfg.budget_pacing_threshold,
            },
        )
    ]


def _category_spend(ctx: DetectorContext) -> Dict[str, int]:
    cfg = ctx.config
    ignored = {c.lower() for c in cfg.ignored_categories}
    start, end = trailing_window(ctx.as_of, cfg.usage_window_days)
    return {
        category: total
        for category, total in ctx.history.category_totals(ctx.user_id, start, end).items()
        if category.lower() not in ignored
    }


def _build_spend_concentration(ctx: DetectorContext, summary: Concentration) -> Optional[Insight]:
    cfg = ctx.config
    savings = summary.top_value * cfg.spend_concentration_savings_rate
    share = percent(summary.share)
    return ctx.insight(
        scope="category",
        title=f"{share}% of spend in {summary.top_key}",
        detail=(
            f"{money(summary.top_value)} spent on {summary.top_key} in the last {cfg.usage_window_days} days. "
            f"This category is your biggest cost driver; even "
            f"{percent(cfg.spend_concentration_savings_rate)}% savings here is {money(savings)}."
        ),
        urgency="high" if summary.share >= cfg.spend_concentration_high_share else "medium",
        confidence=80,
        value=savings,
        category=summary.top_key,
        reasoning={
            "category_spend_minor": summary.top_value,
            "category_share": summary.share,
            "share_threshold": cfg.spend_concentration_share,
            "total_spend_minor": summary.total,
            "category_count": summary.count,
            "assumed_savings_rate": cfg.spend_concentration_savings_rate,
        },
    )


detect_spend_concentration = concentration_detector(
    load=_category_spend,
    share_key="spend_concentration_share",
    min_total_key="spend_concentration_min_spend",
    build=_build_spend_concentration,
)
