from __future__ import annotations

import calendar
from datetime import timedelta
from typing import Any, Dict, Hashable, List

from backend.app.insights.builders import DetectorContext, WindowDelta, window_delta_detector
from backend.app.insights.detectors.inventory import monthly_sku_totals
from backend.app.insights.schema import Insight
from backend.app.insights.scoring import describe, money
from backend.app.insights.stats import percent, round_half_up
from backend.app.insights.windows import month_key, months_until, previous_month_key, trailing_window


def _load_monthly_usage(ctx: DetectorContext):
    cfg = ctx.config
    this_month, last_month = month_key(ctx.as_of), previous_month_key(ctx.as_of)

    current: Dict[Hashable, float] = {}
    baseline: Dict[Hashable, float] = {}
    context: Dict[Hashable, Dict[str, Any]] = {}
    for sku, months in monthly_sku_totals(ctx).items():
        if len(months) < cfg.min_months_for_trend or last_month not in months:
            continue
        last_qty, _, last_line = months[last_month]
        this_qty, _, this_line = months.get(this_month, (0.0, 0, last_line))
        total_qty = sum(q for q, _, _ in months.values())
        total_spend = sum(s for _, s, _ in months.values())
        current[sku] = this_qty
        baseline[sku] = last_qty
        context[sku] = {
            "latest": this_line,
            "months": len(months),
            "avg_price": total_spend / total_qty if total_qty else 0.0,
        }
    return current, baseline, context


def _build_usage_forecast(ctx: DetectorContext, sku: Hashable, delta: WindowDelta, meta: Dict[str, Any]) -> Insight:
    cfg = ctx.config
    growth = delta.pct
    current_qty = delta.current or delta.baseline
    forecast = round_half_up(current_qty * (1 + growth * cfg.forecast_dampening))
    rising = growth > 0
    latest = meta["latest"]
    label = describe(str(sku), latest.description)
    return ctx.insight(
        scope="sku",
        title=f"{label}: {'+' if rising else '-'}{percent(abs(growth))}% trend",
        detail=(
            f"{'Growing' if rising else 'Declining'} usage: {round_half_up(delta.baseline)} to "
            f"{round_half_up(delta.current)} units. Next month forecast: {forecast} units."
        ),
        urgency="medium" if abs(growth) > cfg.forecast_medium_threshold else "low",
        confidence=min(80, 50 + meta["months"] * 8),
        value=forecast * meta["avg_price"],
        suggested_quantity=forecast,
        sku=str(sku),
        description=latest.description,
        vendor_name=latest.vendor_name,
        reasoning={
            "last_month_qty": delta.baseline,
            "this_month_qty": delta.current,
            "growth_rate": growth,
            "threshold": cfg.forecast_growth_threshold,
            "dampening": cfg.forecast_dampening,
            "forecast_qty": forecast,
            "months_of_data": meta["months"],
            "avg_price_minor": meta["avg_price"],
        },
    )


detect_usage_forecast = window_delta_detector(
    load=_load_monthly_usage,
    threshold_key="forecast_growth_threshold",
    build=_build_usage_forecast,
    inclusive=True,
    limit_key="focused_insight_limit",
)


def detect_seasonal_buying(ctx: DetectorContext) -> List[Insight]:
    cfg = ctx.config
    lines = ctx.history.recent_lines(ctx.user_id, ctx.as_of, cfg.analysis_window_days)

    insights: List[Insight] = []
    for season in cfg.category_seasons:
        target, months = months_until(ctx.as_of.month, season.high_months)
        if months > cfg.seasonal_buying_lead_months:
            continue
        spend = sum(
            int(line.line_total_minor or 0)
            for line in lines
            if season.key in (line.category or "").strip().lower()
        )
        if spend <= 0:
            continue
        month_name = calendar.month_name[target]
        insights.append(
            ctx.insight(
                scope="category",
                title=f"Stock up before {season.label} prices rise",
                detail=(
                    f"{season.label} prices typically increase in {month_name}. You spent {money(spend)} on "
                    f"{season.label.lower()} in the last {cfg.analysis_window_days} days; consider ordering ahead "
                    f"to lock in current pricing."
                ),
                urgency="high" if months <= 1 else "medium",
                confidence=60,
                value=0,
                category=season.label,
                reasoning={
                    "season": season.key,
                    "high_price_months": [calendar.month_name[m] for m in season.high_months],
                    "months_until_increase": months,
                    "lead_months": cfg.seasonal_buying_lead_months,
                    "recent_category_spend_minor": spend,
                },
            )
        )
    return insights


def _load_year_over_year(ctx: DetectorContext):
    cfg = ctx.config
    ignored = {c.lower() for c in cfg.ignored_categories}
    start, end = trailing_window(ctx.as_of, cfg.usage_window_days)
    offset = timedelta(days=cfg.year_over_year_days)
    last_start, last_end = start - offset, end - offset

    def totals(a, b) -> Dict[Hashable, float]:
        return {
            category: float(total)
            for category, total in ctx.history.category_totals(ctx.user_id, a, b).items()
            if category.lower() not in ignored
        }

    current = totals(start, end)
    baseline = totals(last_start, last_end)
    window = {
        "current_window": {"start": start, "end": end},
        "last_year_window": {"start": last_start, "end": last_end},
    }
    return current, baseline, {category: window for category in baseline}


def _build_yoy(ctx: DetectorContext, category: Hashable, delta: WindowDelta, meta: Dict[str, Any]) -> Insight:
    cfg = ctx.config
    rising = delta.pct > 0
    return ctx.insight(
        scope="category",
        title=f"{category} spend {'up' if rising else 'down'} {percent(abs(delta.pct))}% vs last year",
        detail=(
            f"You spent {money(delta.current)} on {category} in the last {cfg.usage_window_days} days, "
            f"compared with {money(delta.baseline)} in the same window last year."
        ),
        urgency="medium" if rising else "low",
        confidence=70,
        value=delta.delta if rising else 0,
        category=str(category),
        reasoning={
            "current_spend_minor": delta.current,
            "last_year_spend_minor": delta.baseline,
            "change_pct": delta.pct,
            "threshold": cfg.category_spend_spike_threshold,
            **meta,
        },
    )


detect_yoy_spend_change = window_delta_detector(
    load=_load_year_over_year,
    threshold_key="category_spend_spike_threshold",
    build=_build_yoy,
)
