from __future__ import annotations

from datetime import timedelta
from typing import Any, Dict, Hashable, List, Optional, Tuple

from backend.app.insights.builders import DetectorContext, WindowDelta, trailing_outliers, window_delta_detector
from backend.app.insights.history import is_known_vendor
from backend.app.insights.schema import Insight
from backend.app.insights.scoring import band, describe, money
from backend.app.insights.stats import percent, round_half_up, safe_mean
from backend.app.insights.windows import month_key, previous_month_key, trailing_window


def detect_price_anomaly(ctx: DetectorContext) -> List[Insight]:
    cfg = ctx.config
    series = ctx.history.sku_price_series(ctx.user_id, ctx.as_of, cfg.analysis_window_days)
    window_start, _ = trailing_window(ctx.as_of, cfg.analysis_window_days)
    recent_start, _ = trailing_window(ctx.as_of, cfg.recent_window_days)

    outliers = trailing_outliers(
        series,
        trailing_points=cfg.price_anomaly_trailing_points,
        recent_since=recent_start,
        baseline_since=window_start,
    )
    flagged = [o for o in outliers if o.pct > cfg.price_anomaly_threshold]
    flagged.sort(key=lambda o: (-o.pct, o.latest.sku))

    insights: List[Insight] = []
    for outlier in flagged[: ctx.limit]:
        point = outlier.latest
        label = describe(point.sku, point.description)
        per_unit = point.unit_price_minor - outlier.trailing_avg
        insights.append(
            ctx.insight(
                scope="sku",
                title=f"{label}: {percent(outlier.pct)}% above normal",
                detail=(
                    f"Current price {money(point.unit_price_minor)} is {percent(outlier.pct)}% higher than "
                    f"your trailing average {money(outlier.trailing_avg)}. Consider negotiating or finding alternatives."
                ),
                urgency=band(outlier.pct, cfg.price_anomaly_high_threshold),
                confidence=85,
                value=per_unit * point.quantity,
                sku=point.sku,
                description=point.description,
                vendor_name=point.vendor_name,
                reasoning={
                    "current_price_minor": point.unit_price_minor,
                    "trailing_avg_minor": outlier.trailing_avg,
                    "trailing_points": outlier.trailing_count,
                    "increase_pct": outlier.pct,
                    "threshold": cfg.price_anomaly_threshold,
                    "overpayment_per_unit_minor": per_unit,
                    "recent_quantity": point.quantity,
                    "observed_at": point.occurred_at,
                },
            )
        )
    return insights


def _load_price_windows(ctx: DetectorContext) -> Tuple[Dict[Hashable, float], Dict[Hashable, float], Dict[Hashable, Dict[str, Any]]]:
    cfg = ctx.config
    recent_start, end = trailing_window(ctx.as_of, cfg.recent_window_days)
    series = ctx.history.sku_price_series(ctx.user_id, ctx.as_of, cfg.analysis_window_days)

    current: Dict[Hashable, float] = {}
    baseline: Dict[Hashable, float] = {}
    context: Dict[Hashable, Dict[str, Any]] = {}
    for sku, points in series.items():
        recent = [p for p in points if p.order_date >= recent_start]
        prior = [p for p in points if p.order_date < recent_start]
        if not recent or len(prior) < ctx.min_data_points:
            continue
        current[sku] = safe_mean(p.unit_price_minor for p in recent)
        baseline[sku] = safe_mean(p.unit_price_minor for p in prior)
        context[sku] = {
            "latest": recent[-1],
            "recent_qty": safe_mean(p.quantity for p in recent),
            "prior_count": len(prior),
        }
    return current, baseline, context


def _build_price_drop(ctx: DetectorContext, sku: Hashable, delta: WindowDelta, meta: Dict[str, Any]) -> Optional[Insight]:
    cfg = ctx.config
    latest = meta["latest"]
    drop = -delta.pct
    per_unit = delta.baseline - delta.current
    recent_qty = meta["recent_qty"] or cfg.default_restock_quantity
    suggested = round_half_up(recent_qty * 2)
    label = describe(str(sku), latest.description)
    return ctx.insight(
        scope="sku",
        title=f"{label}: {percent(drop)}% price drop",
        detail=(
            f"This item dropped from {money(delta.baseline)} to {money(delta.current)} "
            f"({percent(drop)}% savings). Consider stocking up while the price is low."
        ),
        urgency=band(drop, cfg.price_drop_high_threshold),
        confidence=min(90, 60 + meta["prior_count"] * 5),
        value=per_unit * suggested,
        suggested_quantity=suggested,
        sku=str(sku),
        description=latest.description,
        vendor_name=latest.vendor_name,
        reasoning={
            "recent_avg_price_minor": delta.current,
            "prior_avg_price_minor": delta.baseline,
            "drop_pct": drop,
            "threshold": cfg.price_drop_threshold,
            "savings_per_unit_minor": per_unit,
            "prior_orders": meta["prior_count"],
            "recent_avg_quantity": meta["recent_qty"],
        },
    )


detect_price_drop = window_delta_detector(
    load=_load_price_windows,
    threshold_key="price_drop_threshold",
    build=_build_price_drop,
    direction="down",
)


def detect_vendor_comparison(ctx: DetectorContext) -> List[Insight]:
    cfg = ctx.config
    lines = ctx.history.recent_lines(ctx.user_id, ctx.as_of, cfg.analysis_window_days, with_sku=True)

    prices: Dict[str, Dict[str, List[int]]] = {}
    descriptions: Dict[str, Optional[str]] = {}
    for line in lines:
        if line.unit_price_minor <= 0 or not is_known_vendor(line.vendor_name):
            continue
        prices.setdefault(line.sku, {}).setdefault(line.vendor_name, []).append(line.unit_price_minor)
        descriptions[line.sku] = line.description or descriptions.get(line.sku)

    candidates = []
    for sku, by_vendor in prices.items():
        averages = {
            vendor: (safe_mean(points), len(points))
            for vendor, points in by_vendor.items()
            if len(points) >= ctx.min_data_points
        }
        if len(averages) < 2:
            continue
        cheapest_vendor, (cheapest, _) = sorted(averages.items(), key=lambda kv: (kv[1][0], kv[0]))[0]
        for vendor, (avg, count) in averages.items():
            if vendor == cheapest_vendor:
                continue
            diff = avg - cheapest
            if avg <= cheapest * (1 + cfg.vendor_price_diff_threshold) or diff <= cfg.min_vendor_price_diff:
                continue
            candidates.append((sku, vendor, avg, count, cheapest_vendor, cheapest, diff))

    candidates.sort(key=lambda c: (-c[6], c[0], c[1]))
    insights: List[Insight] = []
    for sku, vendor, avg, count, cheapest_vendor, cheapest, diff in candidates[: ctx.limit]:
        diff_pct = diff / avg
        label = describe(sku, descriptions.get(sku))
        insights.append(
            ctx.insight(
                scope="sku",
                title=f"{label}: {percent(diff_pct)}% cheaper elsewhere",
                detail=(
                    f"You're paying {money(avg)} at {vendor}, but {cheapest_vendor} has it for "
                    f"{money(cheapest)} ({percent(diff_pct)}% less)."
                ),
                urgency=band(diff_pct, cfg.vendor_price_high_threshold),
                confidence=min(85, 50 + count * 5),
                value=diff * cfg.assumed_comparison_units,
                sku=sku,
                description=descriptions.get(sku),
                vendor_name=vendor,
                reasoning={
                    "current_vendor": vendor,
                    "current_avg_price_minor": avg,
                    "current_vendor_orders": count,
                    "cheapest_vendor": cheapest_vendor,
                    "cheapest_avg_price_minor": cheapest,
                    "savings_per_unit_minor": diff,
                    "savings_pct": diff_pct,
                    "threshold": cfg.vendor_price_diff_threshold,
                    "assumed_units": cfg.assumed_comparison_units,
                },
            )
        )
    return insights


def _load_category_months(ctx: DetectorContext):
    cfg = ctx.config
    ignored = {c.lower() for c in cfg.ignored_categories}
    monthly: Dict[str, Dict[str, int]] = {}
    for line in ctx.history.recent_lines(ctx.user_id, ctx.as_of, cfg.analysis_window_days):
        category = (line.category or "").strip()
        if not category or category.lower() in ignored:
            continue
        months = monthly.setdefault(category, {})
        key = month_key(line.order_date)
        months[key] = months.get(key, 0) + int(line.line_total_minor or 0)

    this_month, last_month = month_key(ctx.as_of), previous_month_key(ctx.as_of)
    current: Dict[Hashable, float] = {}
    baseline: Dict[Hashable, float] = {}
    context: Dict[Hashable, Dict[str, Any]] = {}
    for category, months in monthly.items():
        if len(months) < cfg.min_months_for_trend or this_month not in months:
            continue
        avg_monthly = safe_mean(months.values())
        current[category] = months[this_month]
        baseline[category] = months.get(last_month) or avg_monthly
        context[category] = {
            "avg_monthly": avg_monthly,
            "compared_to": "last_month" if months.get(last_month) else "monthly_average",
            "months": len(months),
        }
    return current, baseline, context


def _build_category_trend(ctx: DetectorContext, category: Hashable, delta: WindowDelta, meta: Dict[str, Any]) -> Insight:
    cfg = ctx.config
    rising = delta.pct > 0
    direction = "up" if rising else "down"
    return ctx.insight(
        scope="category",
        title=f"{category} spending {direction} {percent(abs(delta.pct))}%",
        detail=(
            f"Your {category} spending {'increased' if rising else 'decreased'} from {money(delta.baseline)} "
            f"to {money(delta.current)} this month. "
            + ("Review for unnecessary expenses." if rising else "Good cost control.")
        ),
        urgency="high" if rising and delta.pct > cfg.category_spend_high_threshold else "medium",
        confidence=75,
        value=delta.delta if rising else 0,
        category=str(category),
        reasoning={
            "this_month_minor": delta.current,
            "baseline_minor": delta.baseline,
            "baseline": meta["compared_to"],
            "avg_monthly_minor": meta["avg_monthly"],
            "months_observed": meta["months"],
            "change_pct": delta.pct,
            "threshold": cfg.category_spend_spike_threshold,
        },
    )


detect_category_trend = window_delta_detector(
    load=_load_category_months,
    threshold_key="category_spend_spike_threshold",
    build=_build_category_trend,
    limit_key="focused_insight_limit",
)


def detect_price_volatility(ctx: DetectorContext) -> List[Insight]:
    cfg = ctx.config
    series = ctx.history.sku_price_series(ctx.user_id, ctx.as_of, cfg.analysis_window_days)

    candidates = []
    for sku, points in series.items():
        if len(points) < ctx.min_data_points:
            continue
        prices = [p.unit_price_minor for p in points]
        avg = safe_mean(prices)
        if avg <= 0:
            continue
        swing = max(prices) - min(prices)
        range_pct = swing / avg
        if range_pct <= cfg.price_volatility_threshold:
            continue
        candidates.append((sku, points, avg, swing, range_pct))

    candidates.sort(key=lambda c: (-c[4], c[0]))
    insights: List[Insight] = []
    for sku, points, avg, swing, range_pct in candidates[: cfg.focused_insight_limit]:
        prices = [p.unit_price_minor for p in points]
        latest = points[-1]
        label = describe(sku, latest.description)
        insights.append(
            ctx.insight(
                scope="sku",
                title=f"{label}: {percent(range_pct)}% price swings",
                detail=(
                    f"Price varies from {money(min(prices))} to {money(max(prices))} (avg {money(avg)}). "
                    f"Consider locking in a contract price or finding a more stable supplier."
                ),
                urgency=band(range_pct, cfg.price_volatility_high_threshold),
                confidence=min(85, 50 + len(points) * 5),
                value=swing * cfg.volatility_capture_rate,
                sku=sku,
                description=latest.description,
                vendor_name=latest.vendor_name,
                reasoning={
                    "min_price_minor": min(prices),
                    "max_price_minor": max(prices),
                    "avg_price_minor": avg,
                    "range_pct": range_pct,
                    "threshold": cfg.price_volatility_threshold,
                    "order_count": len(points),
                },
            )
        )
    return insights


def detect_cost_creep(ctx: DetectorContext) -> List[Insight]:
    cfg = ctx.config
    series = ctx.history.sku_price_series(ctx.user_id, ctx.as_of, cfg.analysis_window_days)

    candidates = []
    for sku, points in series.items():
        months: Dict[str, List] = {}
        for p in points:
            months.setdefault(month_key(p.order_date), []).append(p)
        if len(months) < cfg.min_months_for_trend:
            continue
        ordered = sorted(months.keys())
        first_price = safe_mean(p.unit_price_minor for p in months[ordered[0]])
        last_price = safe_mean(p.unit_price_minor for p in months[ordered[-1]])
        avg_monthly_qty = safe_mean(sum(p.quantity for p in months[m]) for m in ordered)
        if first_price <= 0 or last_price <= first_price or avg_monthly_qty <= 1:
            continue
        increase = (last_price - first_price) / first_price
        if increase <= cfg.cost_creep_threshold:
            continue
        monthly_impact = (last_price - first_price) * avg_monthly_qty
        candidates.append((sku, points[-1], len(ordered), first_price, last_price, avg_monthly_qty, increase, monthly_impact))

    candidates.sort(key=lambda c: (-c[7], c[0]))
    insights: List[Insight] = []
    for sku, latest, month_count, first_price, last_price, qty, increase, impact in candidates[: cfg.focused_insight_limit]:
        label = describe(sku, latest.description)
        insights.append(
            ctx.insight(
                scope="sku",
                title=f"{label}: +{percent(increase)}% cost creep",
                detail=(
                    f"Unit price rose from {money(first_price)} to {money(last_price)} over {month_count} months. "
                    f"That's about {money(impact)}/month extra."
                ),
                urgency=band(increase, cfg.cost_creep_high_threshold),
                confidence=min(85, 55 + month_count * 10),
                value=round_half_up(impact) * cfg.cost_creep_horizon_months,
                sku=sku,
                description=latest.description,
                vendor_name=latest.vendor_name,
                reasoning={
                    "first_month_price_minor": first_price,
                    "last_month_price_minor": last_price,
                    "increase_pct": increase,
                    "threshold": cfg.cost_creep_threshold,
                    "months_tracked": month_count,
                    "avg_monthly_quantity": qty,
                    "monthly_impact_minor": impact,
                },
            )
        )
    return insights


def detect_historical_low_price(ctx: DetectorContext) -> List[Insight]:
    cfg = ctx.config
    history = ctx.history.sku_price_series(ctx.user_id, ctx.as_of, cfg.inactivity_window_days)
    recent_start, _ = trailing_window(ctx.as_of, cfg.usage_window_days)
    typical_start = ctx.as_of - timedelta(days=cfg.analysis_window_days)

    candidates = []
    for sku, points in history.items():
        recent = [p for p in points if p.order_date >= recent_start]
        if not recent or len(points) < ctx.min_data_points:
            continue
        current = max(p.unit_price_minor for p in recent)
        low_point = min(points, key=lambda p: (p.unit_price_minor, p.occurred_at))
        if low_point.unit_price_minor >= current * cfg.historical_low_ratio:
            continue
        typical_qty = safe_mean(p.quantity for p in points if p.order_date >= typical_start)
        candidates.append((sku, recent[-1], current, low_point, typical_qty))

    candidates.sort(key=lambda c: (c[3].unit_price_minor / c[2], c[0]))
    insights: List[Insight] = []
    for sku, latest, current, low_point, typical_qty in candidates[: ctx.limit]:
        discount = 1 - low_point.unit_price_minor / current
        label = describe(sku, latest.description)
        insights.append(
            ctx.insight(
                scope="sku",
                title=f"Historical low price: {label}",
                detail=(
                    f"{label} cost {money(low_point.unit_price_minor)} on {low_point.order_date.isoformat()}, "
                    f"{percent(discount)}% below the current {money(current)}. Ask the vendor to match it."
                ),
                urgency="medium",
                confidence=75,
                value=(current - low_point.unit_price_minor) * typical_qty,
                sku=sku,
                description=latest.description,
                vendor_name=latest.vendor_name,
                reasoning={
                    "current_price_minor": current,
                    "historical_low_minor": low_point.unit_price_minor,
                    "historical_low_date": low_point.order_date,
                    "historical_low_vendor": low_point.vendor_name,
                    "discount_pct": discount,
                    "ratio_threshold": cfg.historical_low_ratio,
                    "typical_quantity": typical_qty,
                },
            )
        )
    return insights
