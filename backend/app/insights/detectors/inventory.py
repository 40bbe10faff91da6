from __future__ import annotations

from typing import Any, Dict, Hashable, List, Optional, Tuple

from backend.app.insights.builders import DetectorContext, WindowDelta, window_delta_detector
from backend.app.insights.history import OrderLine
from backend.app.insights.schema import Insight
from backend.app.insights.scoring import describe, money
from backend.app.insights.stats import percent, round_half_up, safe_mean
from backend.app.insights.windows import month_key, prior_window, trailing_window


def _sku_lines(ctx: DetectorContext, start, end) -> Dict[str, List[OrderLine]]:
    by_sku: Dict[str, List[OrderLine]] = {}
    for line in ctx.history.line_items(ctx.user_id, start, end):
        if line.has_sku:
            by_sku.setdefault(line.sku, []).append(line)
    return by_sku


def _load_usage_windows(ctx: DetectorContext):
    cfg = ctx.config
    days = cfg.usage_window_days
    recent = _sku_lines(ctx, *trailing_window(ctx.as_of, days))
    prior = _sku_lines(ctx, *prior_window(ctx.as_of, days * 2, days))

    current: Dict[Hashable, float] = {}
    baseline: Dict[Hashable, float] = {}
    context: Dict[Hashable, Dict[str, Any]] = {}
    for sku, lines in recent.items():
        prior_lines = prior.get(sku)
        if not prior_lines:
            continue
        current[sku] = sum(float(line.quantity or 0.0) for line in lines)
        baseline[sku] = sum(float(line.quantity or 0.0) for line in prior_lines)
        context[sku] = {
            "latest": lines[-1],
            "recent_order_days": len({line.order_date for line in lines}),
            "prior_order_days": len({line.order_date for line in prior_lines}),
            "avg_price": safe_mean(line.unit_price_minor for line in lines),
        }
    return current, baseline, context


def _build_low_stock(ctx: DetectorContext, sku: Hashable, delta: WindowDelta, meta: Dict[str, Any]) -> Optional[Insight]:
    cfg = ctx.config
    prior_days = meta["prior_order_days"]
    freq_change = (meta["recent_order_days"] - prior_days) / prior_days if prior_days else 0.0
    # ordering kept pace with usage
    if freq_change >= delta.pct * 0.5:
        return None

    latest = meta["latest"]
    suggested = delta.current * cfg.restock_buffer
    label = describe(str(sku), latest.description)
    return ctx.insight(
        scope="sku",
        title=f"{label}: usage up {percent(delta.pct)}%",
        detail=(
            f"Increased from {round_half_up(delta.baseline)} to {round_half_up(delta.current)} units per "
            f"{cfg.usage_window_days} days. Ordering hasn't caught up; increase the next order to avoid stockouts."
        ),
        urgency="high" if delta.pct > cfg.usage_change_high_threshold else "medium",
        confidence=80,
        value=suggested * meta["avg_price"],
        suggested_quantity=suggested,
        sku=str(sku),
        description=latest.description,
        vendor_name=latest.vendor_name,
        reasoning={
            "prior_qty": delta.baseline,
            "recent_qty": delta.current,
            "change_pct": delta.pct,
            "threshold": cfg.stockout_growth_threshold,
            "recent_order_days": meta["recent_order_days"],
            "prior_order_days": prior_days,
            "order_frequency_change": freq_change,
            "avg_price_minor": meta["avg_price"],
        },
    )


detect_low_stock_risk = window_delta_detector(
    load=_load_usage_windows,
    threshold_key="stockout_growth_threshold",
    build=_build_low_stock,
    direction="up",
)


def monthly_sku_totals(ctx: DetectorContext) -> Dict[str, Dict[str, Tuple[float, int, OrderLine]]]:
    out: Dict[str, Dict[str, Tuple[float, int, OrderLine]]] = {}
    lines = ctx.history.recent_lines(ctx.user_id, ctx.as_of, ctx.config.analysis_window_days, with_sku=True)
    for line in lines:
        months = out.setdefault(line.sku, {})
        key = month_key(line.order_date)
        qty, spend, _ = months.get(key, (0.0, 0, line))
        months[key] = (qty + float(line.quantity or 0.0), spend + int(line.line_total_minor or 0), line)
    return out


def _load_monthly_quantities(ctx: DetectorContext):
    cfg = ctx.config
    this_month = month_key(ctx.as_of)

    current: Dict[Hashable, float] = {}
    baseline: Dict[Hashable, float] = {}
    context: Dict[Hashable, Dict[str, Any]] = {}
    for sku, months in monthly_sku_totals(ctx).items():
        if len(months) < cfg.min_months_for_trend or this_month not in months:
            continue
        qty, spend, latest = months[this_month]
        if qty <= cfg.over_ordering_min_quantity:
            continue
        current[sku] = qty
        baseline[sku] = safe_mean(q for q, _, _ in months.values())
        context[sku] = {"latest": latest, "spend": spend, "months": len(months)}
    return current, baseline, context


def _build_over_ordering(ctx: DetectorContext, sku: Hashable, delta: WindowDelta, meta: Dict[str, Any]) -> Insight:
    cfg = ctx.config
    latest = meta["latest"]
    unit_cost = meta["spend"] / delta.current if delta.current else 0.0
    label = describe(str(sku), latest.description)
    return ctx.insight(
        scope="sku",
        title=f"{label}: {percent(delta.pct)}% above normal",
        detail=(
            f"This month: {round_half_up(delta.current)} units vs avg {round_half_up(delta.baseline)}. "
            f"That's {round_half_up(delta.delta)} extra units. Check for waste or adjust future orders."
        ),
        urgency="high" if delta.pct > cfg.over_ordering_high_threshold else "medium",
        confidence=70,
        value=delta.delta * unit_cost,
        sku=str(sku),
        description=latest.description,
        vendor_name=latest.vendor_name,
        reasoning={
            "this_month_qty": delta.current,
            "avg_monthly_qty": delta.baseline,
            "excess_qty": delta.delta,
            "excess_pct": delta.pct,
            "threshold": cfg.over_ordering_threshold,
            "months_observed": meta["months"],
            "unit_cost_minor": unit_cost,
        },
    )


detect_over_ordering = window_delta_detector(
    load=_load_monthly_quantities,
    threshold_key="over_ordering_threshold",
    build=_build_over_ordering,
    direction="up",
    limit_key="focused_insight_limit",
)


def detect_inactive_item(ctx: DetectorContext) -> List[Insight]:
    cfg = ctx.config
    by_sku = _sku_lines(ctx, *trailing_window(ctx.as_of, cfg.inactivity_window_days))

    candidates = []
    for sku, lines in by_sku.items():
        order_days = len({line.order_date for line in lines})
        if order_days < ctx.min_data_points:
            continue
        last = max(lines, key=lambda l: l.occurred_at)
        days_since = (ctx.as_of - last.order_date).days
        if days_since <= cfg.inactive_item_days:
            continue
        candidates.append((sku, last, order_days, days_since, safe_mean(float(l.quantity or 0.0) for l in lines)))

    candidates.sort(key=lambda c: (-c[3], c[0]))
    insights: List[Insight] = []
    for sku, last, order_days, days_since, avg_qty in candidates[: cfg.focused_insight_limit]:
        label = describe(sku, last.description)
        insights.append(
            ctx.insight(
                scope="sku",
                title=f"{label}: {days_since} days since last order",
                detail=(
                    f"You used to order this regularly ({order_days} times), but haven't in {days_since} days. "
                    f"Check if you still have stock or if it's been replaced."
                ),
                urgency="low" if days_since > cfg.inactive_item_low_days else "medium",
                confidence=65,
                value=0,
                sku=sku,
                description=last.description,
                vendor_name=last.vendor_name,
                reasoning={
                    "last_order_date": last.order_date,
                    "days_inactive": days_since,
                    "inactive_threshold_days": cfg.inactive_item_days,
                    "historical_orders": order_days,
                    "avg_qty": avg_qty,
                },
            )
        )
    return insights


def detect_new_item(ctx: DetectorContext) -> List[Insight]:
    cfg = ctx.config
    by_sku = _sku_lines(ctx, *trailing_window(ctx.as_of, cfg.history_lookback_days))

    candidates = []
    for sku, lines in by_sku.items():
        first = min(lines, key=lambda l: l.occurred_at)
        days_since_first = (ctx.as_of - first.order_date).days
        if days_since_first > cfg.new_item_days:
            continue
        spend = sum(int(line.line_total_minor or 0) for line in lines)
        if spend <= cfg.new_item_min_spend:
            continue
        candidates.append((sku, first, days_since_first, spend, lines))

    candidates.sort(key=lambda c: (-c[3], c[0]))
    insights: List[Insight] = []
    for sku, first, days_since_first, spend, lines in candidates[: ctx.limit]:
        label = describe(sku, first.description)
        count = len(lines)
        insights.append(
            ctx.insight(
                scope="sku",
                title=f"New item: {label}",
                detail=(
                    f"First ordered {days_since_first} days ago from {first.vendor_name}. Total spend: {money(spend)} "
                    f"({count} order{'s' if count > 1 else ''}). Verify this is an approved purchase."
                ),
                urgency="high" if spend > cfg.new_item_high_spend else "low",
                confidence=95,
                value=spend,
                sku=sku,
                description=first.description,
                vendor_name=first.vendor_name,
                reasoning={
                    "first_ordered": first.order_date,
                    "days_since_first": days_since_first,
                    "total_spend_minor": spend,
                    "order_count": count,
                    "total_qty": sum(float(line.quantity or 0.0) for line in lines),
                    "min_spend_minor": cfg.new_item_min_spend,
                },
            )
        )
    return insights


def detect_duplicate_item(ctx: DetectorContext) -> List[Insight]:
    cfg = ctx.config
    by_sku = _sku_lines(ctx, *trailing_window(ctx.as_of, cfg.analysis_window_days))

    summaries = []
    for sku in sorted(by_sku.keys()):
        lines = [
            line
            for line in by_sku[sku]
            if line.unit_price_minor > 0 and len((line.description or "").strip()) > cfg.duplicate_min_description_length
        ]
        if len(lines) < ctx.min_data_points:
            continue
        summaries.append(
            {
                "sku": sku,
                "description": lines[-1].description.strip(),
                "vendor": lines[-1].vendor_name,
                "price": safe_mean(line.unit_price_minor for line in lines),
            }
        )

    prefix = cfg.duplicate_prefix_length
    pairs = []
    for i, a in enumerate(summaries):
        for b in summaries[i + 1:]:
            if a["vendor"] == b["vendor"]:
                continue
            diff = abs(a["price"] - b["price"])
            same_prefix = a["description"][:prefix].lower() == b["description"][:prefix].lower()
            close_price = diff < a["price"] * cfg.vendor_price_diff_threshold
            if not (same_prefix or close_price):
                continue
            if diff / max(a["price"], b["price"]) >= cfg.duplicate_price_gap:
                continue
            pairs.append((diff, a, b))

    pairs.sort(key=lambda p: (p[0], p[1]["sku"], p[2]["sku"]))
    insights: List[Insight] = []
    for diff, a, b in pairs[: cfg.focused_insight_limit]:
        cheaper, dearer = (a, b) if a["price"] <= b["price"] else (b, a)
        saving_pct = diff / dearer["price"]
        insights.append(
            ctx.insight(
                scope="sku",
                title=f'Possible duplicate: "{a["description"]}"',
                detail=(
                    f"Similar items from different vendors: {a['vendor']} ({money(a['price'])}) vs "
                    f"{b['vendor']} ({money(b['price'])}). {cheaper['vendor']} is {percent(saving_pct)}% cheaper."
                ),
                urgency="medium" if diff > cfg.duplicate_medium_diff else "low",
                confidence=65,
                value=diff * cfg.assumed_comparison_units,
                sku=a["sku"],
                description=a["description"],
                vendor_name=dearer["vendor"],
                reasoning={
                    "item_a": {"sku": a["sku"], "vendor": a["vendor"], "avg_price_minor": a["price"]},
                    "item_b": {"sku": b["sku"], "vendor": b["vendor"], "avg_price_minor": b["price"]},
                    "price_diff_minor": diff,
                    "cheaper_vendor": cheaper["vendor"],
                    "assumed_units": cfg.assumed_comparison_units,
                },
            )
        )
    return insights
