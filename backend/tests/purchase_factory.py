"""Builders for purchase history used across the insight tests."""
from __future__ import annotations

from datetime import date, datetime, time, timedelta
from typing import Dict, Iterable, List, Optional

from backend.app.insights.config import InsightConfig
from backend.app.insights.detectors import DETECTOR_DEFINITIONS
from backend.app.insights.engine import InsightEngine
from backend.app.insights.history import InMemoryHistoryRepository, OrderLine, PurchaseRow
from backend.app.insights.schema import Insight

USER = "user-1"
DAY_ZERO = date(2024, 1, 1)


def on(day: int) -> date:
    return DAY_ZERO + timedelta(days=day)


def line(
    when: date,
    sku: Optional[str],
    qty: float,
    price: int,
    *,
    vendor: str = "Sysco",
    description: Optional[str] = None,
    category: Optional[str] = None,
    purchase_id: Optional[str] = None,
    user_id: str = USER,
    status: str = "completed",
    total: Optional[int] = None,
    hour: int = 12,
) -> OrderLine:
    return OrderLine(
        purchase_id=purchase_id or f"{vendor}-{when.isoformat()}",
        user_id=user_id,
        vendor_name=vendor,
        occurred_at=datetime.combine(when, time(hour, 0)),
        sku=sku,
        description=description,
        quantity=qty,
        unit_price_minor=price,
        line_total_minor=total if total is not None else int(round(qty * price)),
        category=category,
        status=status,
    )


def purchases_from(lines: Iterable[OrderLine]) -> List[PurchaseRow]:
    grouped: Dict[str, List[OrderLine]] = {}
    for item in lines:
        grouped.setdefault(item.purchase_id, []).append(item)
    out = []
    for purchase_id, items in grouped.items():
        first = items[0]
        out.append(
            PurchaseRow(
                purchase_id=purchase_id,
                user_id=first.user_id,
                vendor_name=first.vendor_name,
                occurred_at=first.occurred_at,
                total_minor=sum(i.line_total_minor for i in items),
                status=first.status,
            )
        )
    return out


def history(lines: List[OrderLine], purchases: Optional[List[PurchaseRow]] = None) -> InMemoryHistoryRepository:
    return InMemoryHistoryRepository(lines, purchases if purchases is not None else purchases_from(lines))


def definition(detector_id: str):
    return next(d for d in DETECTOR_DEFINITIONS if d.detector_id == detector_id)


def run_detector(
    detector_id: str,
    lines: List[OrderLine],
    as_of: date,
    *,
    config: Optional[InsightConfig] = None,
    purchases: Optional[List[PurchaseRow]] = None,
) -> List[Insight]:
    engine = InsightEngine(history(lines, purchases), config, detectors=[definition(detector_id)])
    run = engine.run_with_summary(USER, as_of)
    assert run.failed == [], [d.error for d in run.detectors if d.failed]
    return run.insights


def run_all(lines: List[OrderLine], as_of: date, *, config: Optional[InsightConfig] = None) -> List[Insight]:
    run = InsightEngine(history(lines), config).run_with_summary(USER, as_of)
    assert run.failed == [], [d.error for d in run.detectors if d.failed]
    return run.insights
