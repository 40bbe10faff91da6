from __future__ import annotations

import calendar
from datetime import timedelta
from typing import Dict, List

from backend.app.insights.builders import DetectorContext, cycle_stats
from backend.app.insights.history import is_known_vendor
from backend.app.insights.schema import Insight
from backend.app.insights.scoring import describe, money
from backend.app.insights.stats import round_half_up, safe_mean
from backend.app.insights.windows import days_until_annual, shift_years, trailing_window


def _in_days(days: int) -> str:
    if days < 0:
        return f"overdue by {-days} day{'s' if days != -1 else ''}"
    if days == 0:
        return "today"
    return f"in {days} day{'s' if days != 1 else ''}"


def detect_reorder_prediction(ctx: DetectorContext) -> List[Insight]:
    cfg = ctx.config
    daily = ctx.history.sku_daily_orders(ctx.user_id, ctx.as_of, cfg.analysis_window_days)

    insights: List[Insight] = []
    for sku, days in daily.items():
        if len(days) < ctx.min_data_points:
            continue
        stats = cycle_stats([d.order_date for d in days], cfg.max_cycle_gap_days)
        if stats is None or stats.cov > cfg.max_cycle_cov:
            continue

        predicted = stats.last_date + timedelta(days=round_half_up(stats.mean_gap))
        days_until = (predicted - ctx.as_of).days
        if days_until < -cfg.reorder_overdue_days or days_until > cfg.reorder_alert_days_before:
            continue

        if days_until <= 0:
            urgency = "high"
        elif days_until <= cfg.reorder_medium_days:
            urgency = "medium"
        else:
            urgency = "low"

        avg_qty = safe_mean(d.total_qty for d in days)
        last = days[-1]
        label = describe(sku, last.description)
        insights.append(
            ctx.insight(
                scope="sku",
                title=f"Reorder {label} {_in_days(days_until)}",
                detail=(
                    f"You order {label} about every {round_half_up(stats.mean_gap)} days "
                    f"(last on {stats.last_date.isoformat()}). Typical order is "
                    f"{round_half_up(avg_qty)} units."
                ),
                urgency=urgency,
                confidence=min(95, 50 + stats.order_count * 4 + (1 - stats.cov) * 30),
                value=avg_qty * last.avg_unit_price,
                suggested_quantity=avg_qty,
                sku=sku,
                description=last.description,
                vendor_name=last.vendor_name,
                reasoning={
                    "order_count": stats.order_count,
                    "gaps_days": list(stats.gaps),
                    "mean_gap_days": stats.mean_gap,
                    "stddev_gap_days": stats.stddev_gap,
                    "coefficient_of_variation": stats.cov,
                    "max_cov": cfg.max_cycle_cov,
                    "last_order_date": stats.last_date,
                    "predicted_order_date": predicted,
                    "days_until_event": days_until,
                    "avg_quantity": avg_qty,
                    "last_unit_price_minor": last.avg_unit_price,
                },
            )
        )
    insights.sort(key=lambda i: (i.reasoning["days_until_event"], i.sku or ""))
    return insights


def detect_day_pattern(ctx: DetectorContext) -> List[Insight]:
    cfg = ctx.config
    purchases = ctx.history.recent_purchases(ctx.user_id, ctx.as_of, cfg.day_pattern_window_days)

    order_days: Dict[int, set] = {}
    for row in purchases:
        order_days.setdefault(row.order_date.weekday(), set()).add(row.order_date)
    counts = {weekday: len(dates) for weekday, dates in order_days.items()}
    if len(counts) < 2:
        return []

    total = sum(counts.values())
    top_day, top_count = sorted(counts.items(), key=lambda kv: (-kv[1], kv[0]))[0]
    share = top_count / total
    if share < cfg.day_pattern_min_share or total < cfg.day_pattern_min_orders:
        return []

    days_until = (top_day - ctx.as_of.weekday()) % 7 or 7
    if days_until > cfg.day_pattern_lead_days:
        return []

    name = calendar.day_name[top_day]
    return [
        ctx.insight(
            scope="global",
            title=f"{name} is your typical ordering day",
            detail=f"{round_half_up(share * 100)}% of your orders are placed on {name}s. Next {name} is {_in_days(days_until)}.",
            urgency="medium",
            confidence=min(90, 50 + round_half_up(share * 100 / 2)),
            reasoning={
                "primary_order_day": name,
                "share_on_day": share,
                "min_share": cfg.day_pattern_min_share,
                "orders_on_day": top_count,
                "total_order_days": total,
                "days_until_event": days_until,
            },
        )
    ]


def detect_seasonal_demand(ctx: DetectorContext) -> List[Insight]:
    cfg = ctx.config
    margin = cfg.seasonal_lookback_margin_days

    insights: List[Insight] = []
    for event in cfg.seasonal_events:
        days_until = days_until_annual(ctx.as_of, event.month, event.day)
        if not 0 < days_until <= event.prep_days:
            continue

        last_year = shift_years(ctx.as_of, -1)
        start, end = last_year - timedelta(days=margin), last_year + timedelta(days=margin)
        by_vendor: Dict[str, Dict[str, object]] = {}
        for line in ctx.history.line_items(ctx.user_id, start, end):
            bucket = by_vendor.setdefault(line.vendor_name, {"spend": 0, "skus": set()})
            bucket["spend"] += int(line.line_total_minor or 0)
            if line.has_sku:
                bucket["skus"].add(line.sku)

        if by_vendor:
            total = sum(int(v["spend"]) for v in by_vendor.values())
            items = len({sku for v in by_vendor.values() for sku in v["skus"]})
            top = sorted(by_vendor.items(), key=lambda kv: (-int(kv[1]["spend"]), kv[0]))[:3]
            top_names = ", ".join(name for name, _ in top[:2])
            insights.append(
                ctx.insight(
                    scope="global",
                    title=f"{event.name} in {days_until} days, prep time",
                    detail=(
                        f"Last year around {event.name} you spent {money(total)} across {items} items. "
                        f"Top vendors: {top_names}. Consider ordering ahead."
                    ),
                    urgency="high" if days_until <= cfg.reorder_medium_days else "medium",
                    confidence=80,
                    value=total,
                    reasoning={
                        "event": event.key,
                        "days_until_event": days_until,
                        "prep_days": event.prep_days,
                        "has_historical_data": True,
                        "last_year_window": {"start": start, "end": end},
                        "last_year_spend_minor": total,
                        "top_vendors": [
                            {"vendor": name, "spend_minor": int(v["spend"]), "items": len(v["skus"])}
                            for name, v in top
                        ],
                    },
                )
            )
        else:
            insights.append(
                ctx.insight(
                    scope="global",
                    title=f"{event.name} is in {days_until} days",
                    detail=f"{event.name} is coming up. Review inventory and consider placing orders early.",
                    urgency="medium" if days_until <= cfg.reorder_medium_days else "low",
                    confidence=60,
                    reasoning={
                        "event": event.key,
                        "days_until_event": days_until,
                        "prep_days": event.prep_days,
                        "has_historical_data": False,
                    },
                )
            )
    return insights


def detect_order_timing(ctx: DetectorContext) -> List[Insight]:
    cfg = ctx.config
    purchases = ctx.history.recent_purchases(ctx.user_id, ctx.as_of, cfg.analysis_window_days)

    by_weekday: Dict[int, List[int]] = {}
    for row in purchases:
        if not is_known_vendor(row.vendor_name):
            continue
        by_weekday.setdefault(row.order_date.weekday(), []).append(int(row.total_minor or 0))

    averages = {
        weekday: safe_mean(totals)
        for weekday, totals in by_weekday.items()
        if len(totals) >= cfg.order_timing_min_orders
    }
    if len(averages) < cfg.order_timing_min_weekdays:
        return []

    avg_of_averages = safe_mean(averages.values())
    if avg_of_averages <= 0:
        return []
    ranked = sorted(averages.items(), key=lambda kv: (kv[1], kv[0]))
    best_day, best_avg = ranked[0]
    worst_day, worst_avg = ranked[-1]
    spread = (worst_avg - best_avg) / avg_of_averages
    if spread <= cfg.order_timing_min_spread:
        return []

    data_points = sum(len(by_weekday[d]) for d in averages)
    best, worst = calendar.day_name[best_day], calendar.day_name[worst_day]
    return [
        ctx.insight(
            scope="global",
            title=f"{best}s have {round_half_up(spread * 100)}% lower order values",
            detail=(
                f"Orders on {best} average {money(best_avg)} vs {money(worst_avg)} on {worst}. "
                f"Schedule regular orders for {best}s when possible."
            ),
            urgency="medium" if spread > cfg.order_timing_medium_spread else "low",
            confidence=min(75, 40 + data_points),
            value=(worst_avg - best_avg) * cfg.orders_per_month,
            reasoning={
                "best_day": best,
                "best_day_avg_minor": best_avg,
                "worst_day": worst,
                "worst_day_avg_minor": worst_avg,
                "avg_of_averages_minor": avg_of_averages,
                "spread": spread,
                "min_spread": cfg.order_timing_min_spread,
                "data_points": data_points,
                "window": trailing_window(ctx.as_of, cfg.analysis_window_days),
            },
        )
    ]
