"""
Shared shapes behind the detector catalog.

Most detectors are one of: recent window vs prior window, latest point vs its trailing
average, top share of a total, or regularity of an order cycle. The helpers below compute
those shapes once; the two combinators turn a loader plus a build function into a runner.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Any, Callable, Dict, Hashable, List, Mapping, Optional, Sequence, Tuple

from backend.app.insights.config import InsightConfig
from backend.app.insights.history import HistoryRepository, PricePoint
from backend.app.insights.schema import Insight
from backend.app.insights.scoring import make_insight
from backend.app.insights.stats import coefficient_of_variation, pct_change, population_stddev, safe_mean


@dataclass(frozen=True)
class DetectorContext:
    user_id: str
    as_of: date
    config: InsightConfig
    history: HistoryRepository
    min_data_points: int
    detector_id: str = ""
    insight_type: str = ""

    @property
    def limit(self) -> int:
        return self.config.max_insights_per_detector

    def insight(self, **kwargs: Any) -> Insight:
        kwargs.setdefault("insight_type", self.insight_type)
        return make_insight(detector_id=self.detector_id, **kwargs)


Runner = Callable[[DetectorContext], List[Insight]]


@dataclass(frozen=True)
class WindowDelta:
    current: float
    baseline: float
    delta: float
    pct: float


@dataclass(frozen=True)
class Concentration:
    top_key: str
    top_value: float
    total: float
    share: float
    count: int


@dataclass(frozen=True)
class TrailingOutlier:
    latest: PricePoint
    trailing_avg: float
    trailing_count: int
    pct: float


@dataclass(frozen=True)
class CycleStats:
    order_count: int
    gaps: Tuple[int, ...]
    mean_gap: float
    stddev_gap: float
    cov: float
    last_date: date


def window_deltas(
    current: Mapping[Hashable, float],
    baseline: Mapping[Hashable, float],
) -> Dict[Hashable, WindowDelta]:
    """Relative change per key; keys without a positive baseline are skipped."""
    out: Dict[Hashable, WindowDelta] = {}
    for key, base in baseline.items():
        cur = float(current.get(key, 0.0) or 0.0)
        pct = pct_change(cur, float(base or 0.0))
        if pct is None:
            continue
        out[key] = WindowDelta(current=cur, baseline=float(base), delta=cur - float(base), pct=pct)
    return out


def concentration(totals: Mapping[str, float]) -> Optional[Concentration]:
    positive = {k: float(v) for k, v in totals.items() if v and v > 0}
    if not positive:
        return None
    total = sum(positive.values())
    top_key = sorted(positive.items(), key=lambda kv: (-kv[1], kv[0]))[0][0]
    return Concentration(
        top_key=top_key,
        top_value=positive[top_key],
        total=total,
        share=positive[top_key] / total,
        count=len(positive),
    )


def trailing_outliers(
    series: Mapping[str, Sequence[PricePoint]],
    *,
    trailing_points: int,
    recent_since: date,
    baseline_since: date,
) -> List[TrailingOutlier]:
    """Latest point per SKU (inside the recent slice) against the mean of up to N earlier points."""
    out: List[TrailingOutlier] = []
    for sku in sorted(series.keys()):
        points = list(series[sku])
        if len(points) < 2:
            continue
        latest = points[-1]
        if latest.order_date < recent_since:
            continue
        prior = [p for p in points[:-1] if p.order_date >= baseline_since][-trailing_points:]
        if not prior:
            continue
        avg = safe_mean(p.unit_price_minor for p in prior)
        pct = pct_change(latest.unit_price_minor, avg)
        if pct is None:
            continue
        out.append(TrailingOutlier(latest=latest, trailing_avg=avg, trailing_count=len(prior), pct=pct))
    return out


def cycle_stats(dates: Sequence[date], max_gap_days: int) -> Optional[CycleStats]:
    ordered = sorted(set(dates))
    gaps = [
        (b - a).days
        for a, b in zip(ordered, ordered[1:])
        if 0 < (b - a).days <= max_gap_days
    ]
    if not gaps:
        return None
    cov = coefficient_of_variation(gaps)
    if cov is None:
        return None
    return CycleStats(
        order_count=len(ordered),
        gaps=tuple(gaps),
        mean_gap=safe_mean(gaps),
        stddev_gap=population_stddev(gaps),
        cov=cov,
        last_date=ordered[-1],
    )


def _passes(pct: float, threshold: float, direction: str, inclusive: bool) -> bool:
    if direction == "up":
        moved = pct
    elif direction == "down":
        moved = -pct
    else:
        moved = abs(pct)
    return moved >= threshold if inclusive else moved > threshold


WindowLoader = Callable[[DetectorContext], Tuple[Dict[Hashable, float], Dict[Hashable, float], Dict[Hashable, Dict[str, Any]]]]
DeltaBuilder = Callable[[DetectorContext, Hashable, WindowDelta, Dict[str, Any]], Optional[Insight]]


def window_delta_detector(
    *,
    load: WindowLoader,
    threshold_key: str,
    build: DeltaBuilder,
    direction: str = "both",
    inclusive: bool = False,
    limit_key: Optional[str] = None,
) -> Runner:
    """Compare a current window to a baseline per key and build an insight where the move clears a threshold."""

    def runner(ctx: DetectorContext) -> List[Insight]:
        current, baseline, context = load(ctx)
        threshold = getattr(ctx.config, threshold_key)
        deltas = window_deltas(current, baseline)
        ordered = sorted(deltas.items(), key=lambda kv: (-abs(kv[1].pct), str(kv[0])))

        insights: List[Insight] = []
        for key, delta in ordered:
            if not _passes(delta.pct, threshold, direction, inclusive):
                continue
            insight = build(ctx, key, delta, context.get(key, {}))
            if insight is not None:
                insights.append(insight)
        limit = getattr(ctx.config, limit_key) if limit_key else ctx.limit
        return insights[:limit]

    return runner


ConcentrationLoader = Callable[[DetectorContext], Mapping[str, float]]
ConcentrationBuilder = Callable[[DetectorContext, Concentration], Optional[Insight]]


def concentration_detector(
    *,
    load: ConcentrationLoader,
    share_key: str,
    min_total_key: str,
    build: ConcentrationBuilder,
    min_count: int = 2,
) -> Runner:
    """Flag when the largest key holds at least a configured share of a material total."""

    def runner(ctx: DetectorContext) -> List[Insight]:
        summary = concentration(load(ctx))
        if summary is None or summary.count < min_count:
            return []
        if summary.share < getattr(ctx.config, share_key):
            return []
        if summary.total <= getattr(ctx.config, min_total_key):
            return []
        insight = build(ctx, summary)
        return [insight] if insight is not None else []

    return runner
