from __future__ import annotations

from datetime import date, datetime, timezone
from functools import lru_cache
import logging
from typing import Any, Dict, List, Optional

from fastapi import HTTPException
from sqlalchemy.orm import Session

from backend.app.domain.contracts import (
    DetectorRunContract,
    InsightFeed,
    InsightResult,
    InsightSummary,
    PurchaseContract,
)
from backend.app.insights.config import InsightConfig
from backend.app.insights.detectors import DETECTOR_DEFINITIONS
from backend.app.insights.engine import InsightEngine
from backend.app.insights.history import VendorExclusionPolicy
from backend.app.insights.schema import URGENCIES, Insight
from backend.app.insights.sql_history import SqlHistoryRepository
from backend.app.insights.stats import round_half_up
from backend.app.insights.views import now_relevant, summarize_insights, week_planning
from backend.app.models import LineItem, PurchaseRecord, utcnow


logger = logging.getLogger(__name__)

KNOWN_TYPES = {d.insight_type for d in DETECTOR_DEFINITIONS}


@lru_cache(maxsize=1)
def get_insight_config() -> InsightConfig:
    return InsightConfig.from_env().validate()


def build_engine(db: Session, config: Optional[InsightConfig] = None) -> InsightEngine:
    config = config or get_insight_config()
    policy = VendorExclusionPolicy.of(config.excluded_vendors)
    return InsightEngine(SqlHistoryRepository(db, policy), config)


def _resolve_as_of(as_of: Optional[date]) -> date:
    # The request boundary is the only place a clock is read.
    return as_of or utcnow().date()


def _filter(
    insights: List[Insight],
    insight_type: Optional[str],
    urgency: Optional[str],
    limit: Optional[int],
) -> List[Insight]:
    if insight_type is not None and insight_type not in KNOWN_TYPES:
        raise HTTPException(status_code=400, detail=f"unknown insight type: {insight_type}")
    if urgency is not None and urgency not in URGENCIES:
        raise HTTPException(status_code=400, detail=f"unknown urgency: {urgency}")
    out = [
        i
        for i in insights
        if (insight_type is None or i.type == insight_type) and (urgency is None or i.urgency == urgency)
    ]
    if limit is not None:
        out = out[:limit]
    return out


def list_insights(
    db: Session,
    user_id: str,
    *,
    as_of: Optional[date] = None,
    view: str = "all",
    insight_type: Optional[str] = None,
    urgency: Optional[str] = None,
    limit: Optional[int] = None,
    include_detectors: bool = False,
    config: Optional[InsightConfig] = None,
) -> Dict[str, Any]:
    day = _resolve_as_of(as_of)
    engine = build_engine(db, config)
    run = engine.run_with_summary(user_id, day)

    ranked = run.insights
    if view == "now":
        ranked = now_relevant(ranked)
    elif view == "week":
        ranked = week_planning(ranked, engine.config.materiality_threshold)
    elif view != "all":
        raise HTTPException(status_code=400, detail=f"unknown view: {view}")

    selected = _filter(ranked, insight_type, urgency, limit)
    if run.failed:
        logger.warning(
            "[insights] partial run user=%s as_of=%s failed=%s",
            user_id,
            day.isoformat(),
            ",".join(run.failed),
        )

    feed = InsightFeed(
        user_id=user_id,
        as_of=day,
        view=view,
        count=len(selected),
        insights=[InsightResult(**i.as_dict()) for i in selected],
        detectors=[DetectorRunContract(**vars(d)) for d in run.detectors] if include_detectors else None,
    )
    return feed.model_dump(mode="json")


def insight_summary(
    db: Session,
    user_id: str,
    *,
    as_of: Optional[date] = None,
    config: Optional[InsightConfig] = None,
) -> Dict[str, Any]:
    day = _resolve_as_of(as_of)
    insights = build_engine(db, config).generate_insights(user_id, day)
    summary = InsightSummary(user_id=user_id, as_of=day, **summarize_insights(insights))
    return summary.model_dump(mode="json")


def available_insight_types() -> List[Dict[str, Any]]:
    return [
        {
            "detector_id": d.detector_id,
            "type": d.insight_type,
            "category": d.category,
            "min_data_points_key": d.min_data_points_key,
        }
        for d in DETECTOR_DEFINITIONS
    ]


def record_purchase(db: Session, purchase: PurchaseContract, *, commit: bool = True) -> PurchaseRecord:
    """Stores one purchase and its line items. Missing totals are derived from the lines."""
    items: List[LineItem] = []
    for item in purchase.items:
        total = item.total_cents
        if total is None:
            total = round_half_up(item.quantity * item.unit_price_cents)
        items.append(
            LineItem(
                sku=item.sku,
                description=item.description,
                quantity=float(item.quantity),
                unit_price_cents=int(item.unit_price_cents),
                total_cents=int(total),
                category=item.category,
            )
        )

    invoice_total = purchase.invoice_total_cents
    if invoice_total is None:
        invoice_total = sum(i.total_cents for i in items)

    occurred_at: datetime = purchase.occurred_at
    if occurred_at.tzinfo is not None:
        occurred_at = occurred_at.astimezone(timezone.utc).replace(tzinfo=None)
    record = PurchaseRecord(
        user_id=purchase.user_id,
        vendor_name=purchase.vendor_name,
        account_name=purchase.account_name,
        status=purchase.status,
        invoice_total_cents=int(invoice_total),
        created_at=occurred_at,
        completed_at=occurred_at if purchase.status == "completed" else None,
        items=items,
    )
    if purchase.id:
        record.id = purchase.id
    db.add(record)
    if commit:
        db.commit()
        db.refresh(record)
    else:
        db.flush()
    return record
