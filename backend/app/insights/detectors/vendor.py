from __future__ import annotations

from typing import Dict, List, Optional, Set

from backend.app.insights.builders import Concentration, DetectorContext, concentration_detector
from backend.app.insights.history import OrderLine, is_known_vendor
from backend.app.insights.schema import Insight
from backend.app.insights.scoring import describe, money
from backend.app.insights.stats import percent, round_half_up
from backend.app.insights.windows import trailing_window


def _vendor_spend(ctx: DetectorContext) -> Dict[str, int]:
    start, end = trailing_window(ctx.as_of, ctx.config.analysis_window_days)
    return ctx.history.vendor_totals(ctx.user_id, start, end)


def _build_vendor_dependency(ctx: DetectorContext, summary: Concentration) -> Optional[Insight]:
    cfg = ctx.config
    totals = _vendor_spend(ctx)
    runner_up = sorted(
        ((v, s) for v, s in totals.items() if v != summary.top_key),
        key=lambda kv: (-kv[1], kv[0]),
    )
    second_vendor, second_spend = runner_up[0] if runner_up else (None, 0)
    share = percent(summary.share)
    return ctx.insight(
        scope="vendor",
        title=f"{share}% of spend with {summary.top_key}",
        detail=(
            f"Heavy reliance on one vendor creates supply chain risk. If {summary.top_key} has issues, "
            f"it could disrupt {share}% of your purchasing. Consider diversifying."
        ),
        urgency="high" if summary.share >= cfg.vendor_dependency_high_share else "medium",
        confidence=90,
        value=0,
        vendor_name=summary.top_key,
        reasoning={
            "top_vendor_spend_minor": summary.top_value,
            "top_vendor_share": summary.share,
            "share_threshold": cfg.vendor_dependency_share,
            "second_vendor": second_vendor,
            "second_vendor_share": second_spend / summary.total if summary.total else 0.0,
            "total_spend_minor": summary.total,
            "vendor_count": summary.count,
        },
    )


detect_vendor_dependency = concentration_detector(
    load=_vendor_spend,
    share_key="vendor_dependency_share",
    min_total_key="vendor_dependency_min_spend",
    build=_build_vendor_dependency,
)


def detect_single_source_item(ctx: DetectorContext) -> List[Insight]:
    cfg = ctx.config
    lines = ctx.history.recent_lines(ctx.user_id, ctx.as_of, cfg.analysis_window_days, with_sku=True)

    vendors: Dict[str, Set[str]] = {}
    spend: Dict[str, int] = {}
    latest: Dict[str, OrderLine] = {}
    order_days: Dict[str, Set] = {}
    for line in lines:
        if not is_known_vendor(line.vendor_name):
            continue
        order_days.setdefault(line.sku, set()).add(line.order_date)
        vendors.setdefault(line.sku, set()).add(line.vendor_name)
        spend[line.sku] = spend.get(line.sku, 0) + int(line.line_total_minor or 0)
        latest[line.sku] = line

    candidates = [
        (sku, spend[sku])
        for sku, names in vendors.items()
        if len(names) == 1
        and spend[sku] >= cfg.single_source_min_spend
        and len(order_days.get(sku, ())) >= ctx.min_data_points
    ]
    candidates.sort(key=lambda c: (-c[1], c[0]))

    insights: List[Insight] = []
    for sku, total in candidates[: ctx.limit]:
        line = latest[sku]
        label = describe(sku, line.description)
        insights.append(
            ctx.insight(
                scope="sku",
                title=f"{label} comes from a single vendor",
                detail=(
                    f"All {money(total)} of {label} in the last {cfg.analysis_window_days} days came from "
                    f"{line.vendor_name}. Line up a backup supplier."
                ),
                urgency="low",
                confidence=70,
                value=0,
                sku=sku,
                description=line.description,
                vendor_name=line.vendor_name,
                reasoning={
                    "sku_spend_minor": total,
                    "min_spend_minor": cfg.single_source_min_spend,
                    "vendor_count": 1,
                    "order_days": len(order_days[sku]),
                },
            )
        )
    return insights


def detect_category_vendor_sprawl(ctx: DetectorContext) -> List[Insight]:
    cfg = ctx.config
    ignored = {c.lower() for c in cfg.ignored_categories}
    lines = ctx.history.recent_lines(ctx.user_id, ctx.as_of, cfg.analysis_window_days)

    vendors: Dict[str, Set[str]] = {}
    spend: Dict[str, int] = {}
    for line in lines:
        category = (line.category or "").strip()
        if not category or category.lower() in ignored or not is_known_vendor(line.vendor_name):
            continue
        vendors.setdefault(category, set()).add(line.vendor_name)
        spend[category] = spend.get(category, 0) + int(line.line_total_minor or 0)

    candidates = [
        (category, sorted(names), spend[category])
        for category, names in vendors.items()
        if len(names) >= cfg.category_sprawl_min_vendors and spend[category] > cfg.category_sprawl_min_spend
    ]
    candidates.sort(key=lambda c: (-c[2], c[0]))

    insights: List[Insight] = []
    for category, names, total in candidates[: ctx.limit]:
        quarterly = round_half_up(total * cfg.category_consolidation_rate)
        annual = quarterly * cfg.quarters_per_year
        insights.append(
            ctx.insight(
                scope="category",
                title=f"Consolidate {category} vendors",
                detail=(
                    f"You're using {len(names)} different vendors for {category}. Consolidating could improve "
                    f"pricing power, worth about {money(annual)} a year."
                ),
                urgency="low",
                confidence=65,
                value=annual,
                category=category,
                reasoning={
                    "vendor_count": len(names),
                    "vendors": names,
                    "quarterly_spend_minor": total,
                    "assumed_savings_rate": cfg.category_consolidation_rate,
                    "min_spend_minor": cfg.category_sprawl_min_spend,
                },
            )
        )
    return insights
