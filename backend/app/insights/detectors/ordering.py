from __future__ import annotations

import math
from typing import Dict, List, Tuple

from backend.app.insights.builders import DetectorContext
from backend.app.insights.history import OrderLine, PurchaseRow, is_known_vendor
from backend.app.insights.schema import Insight
from backend.app.insights.scoring import describe, money
from backend.app.insights.stats import round_half_up, safe_mean
from backend.app.insights.windows import trailing_window


def detect_bulk_consolidation(ctx: DetectorContext) -> List[Insight]:
    cfg = ctx.config
    lines = ctx.history.recent_lines(ctx.user_id, ctx.as_of, cfg.analysis_window_days, with_sku=True)

    by_sku: Dict[str, List[OrderLine]] = {}
    for line in lines:
        by_sku.setdefault(line.sku, []).append(line)

    candidates = []
    for sku, sku_lines in by_sku.items():
        order_days = len({line.order_date for line in sku_lines})
        if order_days < ctx.min_data_points:
            continue
        quantities = [float(line.quantity or 0.0) for line in sku_lines]
        avg_qty = safe_mean(quantities)
        max_qty = max(quantities)
        small_orders = avg_qty < max_qty * cfg.small_order_threshold
        if not small_orders and order_days < cfg.small_order_min_days:
            continue
        total_spend = sum(int(line.line_total_minor or 0) for line in sku_lines)
        savings = round_half_up(total_spend * cfg.bulk_discount_rate)
        if savings < cfg.min_savings_for_insight:
            continue
        candidates.append((sku, sku_lines[-1], order_days, avg_qty, max_qty, total_spend, savings, small_orders))

    candidates.sort(key=lambda c: (-c[6], c[0]))
    insights: List[Insight] = []
    for sku, latest, order_days, avg_qty, max_qty, total_spend, savings, small_orders in candidates[: ctx.limit]:
        consolidated = round_half_up(avg_qty * cfg.bulk_order_multiplier)
        label = describe(sku, latest.description)
        insights.append(
            ctx.insight(
                scope="sku",
                title=f"Consolidate {label} orders",
                detail=(
                    f"You ordered this {order_days} times (avg {round_half_up(avg_qty)} units). "
                    f"Order {consolidated} at once to save about {money(savings)} through bulk pricing and fewer orders."
                ),
                urgency="high" if savings > cfg.bulk_high_savings else "medium",
                confidence=min(85, 50 + order_days * 4),
                value=savings,
                suggested_quantity=consolidated,
                sku=sku,
                description=latest.description,
                vendor_name=latest.vendor_name,
                reasoning={
                    "order_days": order_days,
                    "avg_qty_per_order": avg_qty,
                    "max_qty_per_order": max_qty,
                    "small_order_pattern": small_orders,
                    "small_order_threshold": cfg.small_order_threshold,
                    "total_spend_minor": total_spend,
                    "assumed_discount_rate": cfg.bulk_discount_rate,
                },
            )
        )
    return insights


def _purchases_by_vendor(ctx: DetectorContext, days: int) -> Dict[str, List[PurchaseRow]]:
    by_vendor: Dict[str, List[PurchaseRow]] = {}
    for row in ctx.history.recent_purchases(ctx.user_id, ctx.as_of, days):
        if is_known_vendor(row.vendor_name):
            by_vendor.setdefault(row.vendor_name, []).append(row)
    return by_vendor


def detect_vendor_consolidation(ctx: DetectorContext) -> List[Insight]:
    cfg = ctx.config
    candidates = []
    for vendor, rows in _purchases_by_vendor(ctx, cfg.usage_window_days).items():
        order_days = len({row.order_date for row in rows})
        if order_days < cfg.vendor_consolidation_min_days:
            continue
        consolidated = math.ceil(order_days / cfg.vendor_consolidation_batch)
        saved = order_days - consolidated
        savings = saved * cfg.order_admin_cost
        if savings < cfg.min_savings_for_insight:
            continue
        candidates.append((vendor, rows, order_days, consolidated, saved, savings))

    candidates.sort(key=lambda c: (-c[2], c[0]))
    insights: List[Insight] = []
    for vendor, rows, order_days, consolidated, saved, savings in candidates[: cfg.focused_insight_limit]:
        per_week = order_days / (cfg.usage_window_days / 7)
        insights.append(
            ctx.insight(
                scope="vendor",
                title=f"Consolidate {vendor} orders",
                detail=(
                    f"You placed orders to {vendor} on {order_days} days in the last {cfg.usage_window_days} days "
                    f"(about {per_week:.1f}/week). Consolidating to {consolidated} larger orders could save "
                    f"about {money(savings)} in processing and delivery."
                ),
                urgency="high" if order_days >= cfg.vendor_consolidation_high_days else "medium",
                confidence=70,
                value=savings,
                vendor_name=vendor,
                reasoning={
                    "order_days": order_days,
                    "orders_per_week": per_week,
                    "recommended_orders": consolidated,
                    "orders_eliminated": saved,
                    "admin_cost_per_order_minor": cfg.order_admin_cost,
                    "avg_invoice_minor": safe_mean(row.total_minor for row in rows),
                },
            )
        )
    return insights


def detect_rush_orders(ctx: DetectorContext) -> List[Insight]:
    cfg = ctx.config
    candidates = []
    for vendor, rows in _purchases_by_vendor(ctx, cfg.usage_window_days).items():
        per_day: Dict[object, List[PurchaseRow]] = {}
        for row in rows:
            per_day.setdefault(row.order_date, []).append(row)
        busy = {day: day_rows for day, day_rows in per_day.items() if len(day_rows) >= cfg.rush_orders_per_day}
        if len(busy) < cfg.rush_min_days:
            continue
        total_orders = sum(len(day_rows) for day_rows in busy.values())
        avg_daily = safe_mean(sum(r.total_minor for r in day_rows) for day_rows in busy.values())
        candidates.append((vendor, len(busy), total_orders, avg_daily))

    candidates.sort(key=lambda c: (-c[1], c[0]))
    insights: List[Insight] = []
    for vendor, multi_days, total_orders, avg_daily in candidates[: cfg.focused_insight_limit]:
        extra_cost = multi_days * cfg.order_admin_cost
        insights.append(
            ctx.insight(
                scope="vendor",
                title=f"Multiple same-day orders to {vendor}",
                detail=(
                    f"You placed {total_orders} orders across {multi_days} days with multiple orders each. "
                    f"This costs about {money(extra_cost)} extra in processing and delivery. Plan ahead to consolidate."
                ),
                urgency="high" if multi_days >= cfg.rush_high_days else "medium",
                confidence=85,
                value=extra_cost,
                vendor_name=vendor,
                reasoning={
                    "multi_order_days": multi_days,
                    "min_days": cfg.rush_min_days,
                    "total_orders": total_orders,
                    "avg_daily_spend_minor": avg_daily,
                    "admin_cost_per_order_minor": cfg.order_admin_cost,
                },
            )
        )
    return insights


def detect_bulk_discount(ctx: DetectorContext) -> List[Insight]:
    cfg = ctx.config
    lines = ctx.history.recent_lines(ctx.user_id, ctx.as_of, cfg.analysis_window_days, with_sku=True)

    groups: Dict[Tuple[str, str], List[OrderLine]] = {}
    for line in lines:
        if line.unit_price_minor > 0 and is_known_vendor(line.vendor_name):
            groups.setdefault((line.vendor_name, line.sku), []).append(line)

    candidates = []
    for (vendor, sku), group in groups.items():
        if len(group) < ctx.min_data_points:
            continue
        total_qty = sum(float(line.quantity or 0.0) for line in group)
        avg_price = safe_mean(line.unit_price_minor for line in group)
        discount_per_unit = round_half_up(avg_price * cfg.bulk_tier_discount_rate)
        annual_qty = total_qty * cfg.quarters_per_year
        savings = round_half_up(discount_per_unit * annual_qty)
        if savings <= cfg.bulk_tier_min_annual_savings:
            continue
        candidates.append((vendor, sku, group, total_qty, avg_price, discount_per_unit, annual_qty, savings))

    candidates.sort(key=lambda c: (-c[3], c[1], c[0]))
    insights: List[Insight] = []
    for vendor, sku, group, total_qty, avg_price, discount, annual_qty, savings in candidates[: ctx.limit]:
        prices = [line.unit_price_minor for line in group]
        label = describe(sku, group[-1].description)
        insights.append(
            ctx.insight(
                scope="sku",
                title=f"Bulk discount opportunity: {label}",
                detail=(
                    f"You order {label} frequently from {vendor}. Negotiating a bulk pricing tier "
                    f"could save an estimated {money(savings)}/year."
                ),
                urgency="medium",
                confidence=70,
                value=savings,
                suggested_quantity=annual_qty / cfg.quarters_per_year,
                sku=sku,
                description=group[-1].description,
                vendor_name=vendor,
                reasoning={
                    "order_count": len(group),
                    "total_quantity": total_qty,
                    "avg_price_minor": avg_price,
                    "price_variance_minor": max(prices) - min(prices),
                    "assumed_discount_rate": cfg.bulk_tier_discount_rate,
                    "discount_per_unit_minor": discount,
                    "annualized_quantity": annual_qty,
                    "target_price_minor": avg_price - discount,
                },
            )
        )
    return insights


def detect_volume_rebate(ctx: DetectorContext) -> List[Insight]:
    cfg = ctx.config
    start, end = trailing_window(ctx.as_of, cfg.analysis_window_days)
    totals = ctx.history.vendor_totals(ctx.user_id, start, end)

    candidates = []
    for vendor, spend in totals.items():
        if spend < cfg.volume_rebate_min_spend:
            continue
        rebate = round_half_up(spend * cfg.volume_rebate_rate)
        if rebate < cfg.min_savings_for_insight:
            continue
        candidates.append((vendor, spend, rebate))

    candidates.sort(key=lambda c: (-c[1], c[0]))
    insights: List[Insight] = []
    for vendor, spend, rebate in candidates[: ctx.limit]:
        insights.append(
            ctx.insight(
                scope="vendor",
                title=f"Ask {vendor} about a volume rebate",
                detail=(
                    f"You spent {money(spend)} with {vendor} in the last {cfg.analysis_window_days} days. "
                    f"A {round_half_up(cfg.volume_rebate_rate * 100)}% volume rebate would return about {money(rebate)}."
                ),
                urgency="low",
                confidence=60,
                value=rebate,
                vendor_name=vendor,
                reasoning={
                    "vendor_spend_minor": spend,
                    "min_spend_minor": cfg.volume_rebate_min_spend,
                    "assumed_rebate_rate": cfg.volume_rebate_rate,
                    "window": {"start": start, "end": end},
                },
            )
        )
    return insights
