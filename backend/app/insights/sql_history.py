from __future__ import annotations

from datetime import date, datetime, time, timedelta
from typing import Iterable, List, Optional

from sqlalchemy import String, and_, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from backend.app.insights.errors import DataAccessError
from backend.app.insights.history import (
    COMPLETED,
    UNKNOWN_VENDOR,
    HistoryRepository,
    OrderLine,
    PurchaseRow,
    VendorExclusionPolicy,
)
from backend.app.models import LineItem, PurchaseRecord


def _bounds(start: date, end: date):
    return datetime.combine(start, time.min), datetime.combine(end + timedelta(days=1), time.min)


class SqlHistoryRepository(HistoryRepository):
    """Completed purchase history read through a SQLAlchemy session."""

    def __init__(self, db: Session, policy: Optional[VendorExclusionPolicy] = None):
        super().__init__(policy)
        self.db = db

    def _filters(self, user_id: str, start: date, end: date) -> List:
        lo, hi = _bounds(start, end)
        clauses = [
            PurchaseRecord.user_id == user_id,
            PurchaseRecord.status == COMPLETED,
            PurchaseRecord.created_at >= lo,
            PurchaseRecord.created_at < hi,
        ]
        vendor = func.lower(func.coalesce(PurchaseRecord.vendor_name, ""), type_=String)
        for pattern in self.policy.patterns:
            clauses.append(~vendor.contains(pattern, autoescape=True))
        return clauses

    def _fetch_lines(self, user_id: str, start: date, end: date) -> Iterable[OrderLine]:
        stmt = (
            select(LineItem, PurchaseRecord)
            .join(PurchaseRecord, LineItem.purchase_id == PurchaseRecord.id)
            .where(and_(*self._filters(user_id, start, end)))
            .order_by(PurchaseRecord.created_at.asc(), PurchaseRecord.id.asc(), LineItem.id.asc())
        )
        try:
            rows = self.db.execute(stmt).all()
        except SQLAlchemyError as exc:
            raise DataAccessError(str(exc), query="line_items") from exc

        return [
            OrderLine(
                purchase_id=purchase.id,
                user_id=purchase.user_id,
                vendor_name=purchase.vendor_name or UNKNOWN_VENDOR,
                occurred_at=purchase.created_at,
                sku=item.sku,
                description=item.description,
                quantity=float(item.quantity or 0.0),
                unit_price_minor=int(item.unit_price_cents or 0),
                line_total_minor=int(item.total_cents or 0),
                category=item.category,
                account_name=purchase.account_name,
                status=purchase.status,
            )
            for item, purchase in rows
        ]

    def _fetch_purchases(self, user_id: str, start: date, end: date) -> Iterable[PurchaseRow]:
        stmt = (
            select(PurchaseRecord)
            .where(and_(*self._filters(user_id, start, end)))
            .order_by(PurchaseRecord.created_at.asc(), PurchaseRecord.id.asc())
        )
        try:
            rows = self.db.execute(stmt).scalars().all()
        except SQLAlchemyError as exc:
            raise DataAccessError(str(exc), query="purchases") from exc

        return [
            PurchaseRow(
                purchase_id=row.id,
                user_id=row.user_id,
                vendor_name=row.vendor_name or UNKNOWN_VENDOR,
                occurred_at=row.created_at,
                total_minor=int(row.invoice_total_cents or 0),
                account_name=row.account_name,
                status=row.status,
            )
            for row in rows
        ]
