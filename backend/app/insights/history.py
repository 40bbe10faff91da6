from __future__ import annotations

import copy
from dataclasses import dataclass
from datetime import date, datetime
import logging
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Tuple

from backend.app.insights.errors import DataAccessError
from backend.app.insights.windows import AsOf, trailing_window

logger = logging.getLogger(__name__)

COMPLETED = "completed"
UNKNOWN_VENDOR = "Unknown Vendor"


@dataclass(frozen=True)
class OrderLine:
    purchase_id: str
    user_id: str
    vendor_name: str
    occurred_at: datetime
    sku: Optional[str]
    description: Optional[str]
    quantity: float
    unit_price_minor: int
    line_total_minor: int
    category: Optional[str] = None
    account_name: Optional[str] = None
    status: str = COMPLETED

    @property
    def order_date(self) -> date:
        return self.occurred_at.date()

    @property
    def has_sku(self) -> bool:
        return bool(self.sku and self.sku.strip())


@dataclass(frozen=True)
class PurchaseRow:
    purchase_id: str
    user_id: str
    vendor_name: str
    occurred_at: datetime
    total_minor: int
    account_name: Optional[str] = None
    status: str = COMPLETED

    @property
    def order_date(self) -> date:
        return self.occurred_at.date()


@dataclass(frozen=True)
class SkuDay:
    """All completed lines for one SKU on one calendar day."""

    sku: str
    order_date: date
    description: Optional[str]
    vendor_name: str
    total_qty: float
    avg_unit_price: float
    total_minor: int
    line_count: int


@dataclass(frozen=True)
class PricePoint:
    sku: str
    occurred_at: datetime
    vendor_name: str
    description: Optional[str]
    unit_price_minor: int
    quantity: float

    @property
    def order_date(self) -> date:
        return self.occurred_at.date()


@dataclass(frozen=True)
class VendorExclusionPolicy:
    """Case-insensitive vendor-name substrings removed from every analysis."""

    patterns: Tuple[str, ...] = ()

    @classmethod
    def of(cls, patterns: Iterable[str]) -> "VendorExclusionPolicy":
        return cls(tuple(p.strip().lower() for p in patterns if p and p.strip()))

    def excludes(self, vendor_name: Optional[str]) -> bool:
        lowered = (vendor_name or "").lower()
        return any(p in lowered for p in self.patterns)


def is_known_vendor(vendor_name: Optional[str]) -> bool:
    return bool(vendor_name) and vendor_name != UNKNOWN_VENDOR


class HistoryRepository:
    """
    Windowed reads over completed purchase history.

    Subclasses implement the two primitives; they may raise DataAccessError.
    Every public query is guarded: any failed read is logged as a DataAccessError
    and yields an empty result.
    """

    caller: str = "engine"

    def __init__(self, policy: Optional[VendorExclusionPolicy] = None):
        self.policy = policy or VendorExclusionPolicy()

    # primitives
    def _fetch_lines(self, user_id: str, start: date, end: date) -> Iterable[OrderLine]:
        raise NotImplementedError

    def _fetch_purchases(self, user_id: str, start: date, end: date) -> Iterable[PurchaseRow]:
        raise NotImplementedError

    def for_caller(self, caller: str) -> "HistoryRepository":
        scoped = copy.copy(self)
        scoped.caller = caller
        return scoped

    def _guarded(self, query: str, fn: Callable[[], Iterable]) -> List:
        try:
            return list(fn())
        except Exception as exc:
            if not isinstance(exc, DataAccessError):
                exc = DataAccessError(f"{type(exc).__name__}: {exc}", query=query)
            logger.warning(
                "[insights] history query failed query=%s caller=%s error=%s",
                query,
                self.caller,
                str(exc),
            )
            return []

    # public contract
    def line_items(self, user_id: str, start: date, end: date) -> List[OrderLine]:
        return self._guarded("line_items", lambda: self._fetch_lines(user_id, start, end))

    def purchases(self, user_id: str, start: date, end: date) -> List[PurchaseRow]:
        return self._guarded("purchases", lambda: self._fetch_purchases(user_id, start, end))

    def recent_lines(self, user_id: str, as_of: AsOf, days: int, *, with_sku: bool = False) -> List[OrderLine]:
        start, end = trailing_window(as_of, days)
        lines = self.line_items(user_id, start, end)
        if with_sku:
            lines = [line for line in lines if line.has_sku]
        return lines

    def recent_purchases(self, user_id: str, as_of: AsOf, days: int) -> List[PurchaseRow]:
        start, end = trailing_window(as_of, days)
        return self.purchases(user_id, start, end)

    def sku_daily_orders(self, user_id: str, as_of: AsOf, days: int) -> Dict[str, List[SkuDay]]:
        """Per-SKU, per-day aggregates, each SKU's days in date order."""
        buckets: Dict[Tuple[str, date], List[OrderLine]] = {}
        for line in self.recent_lines(user_id, as_of, days, with_sku=True):
            buckets.setdefault((line.sku.strip(), line.order_date), []).append(line)

        out: Dict[str, List[SkuDay]] = {}
        for (sku, day) in sorted(buckets.keys()):
            lines = sorted(buckets[(sku, day)], key=lambda l: (l.occurred_at, l.purchase_id))
            last = lines[-1]
            out.setdefault(sku, []).append(
                SkuDay(
                    sku=sku,
                    order_date=day,
                    description=last.description,
                    vendor_name=last.vendor_name,
                    total_qty=sum(float(l.quantity or 0.0) for l in lines),
                    avg_unit_price=sum(l.unit_price_minor for l in lines) / len(lines),
                    total_minor=sum(l.line_total_minor for l in lines),
                    line_count=len(lines),
                )
            )
        return out

    def sku_price_series(self, user_id: str, as_of: AsOf, days: int) -> Dict[str, List[PricePoint]]:
        """Per-SKU priced lines (unit price > 0) in time order."""
        out: Dict[str, List[PricePoint]] = {}
        lines = self.recent_lines(user_id, as_of, days, with_sku=True)
        for line in sorted(lines, key=lambda l: (l.sku.strip(), l.occurred_at, l.purchase_id)):
            if line.unit_price_minor <= 0:
                continue
            out.setdefault(line.sku.strip(), []).append(
                PricePoint(
                    sku=line.sku.strip(),
                    occurred_at=line.occurred_at,
                    vendor_name=line.vendor_name,
                    description=line.description,
                    unit_price_minor=line.unit_price_minor,
                    quantity=float(line.quantity or 0.0),
                )
            )
        return out

    def vendor_totals(self, user_id: str, start: date, end: date) -> Dict[str, int]:
        totals: Dict[str, int] = {}
        for row in self.purchases(user_id, start, end):
            if not is_known_vendor(row.vendor_name):
                continue
            totals[row.vendor_name] = totals.get(row.vendor_name, 0) + int(row.total_minor or 0)
        return totals

    def category_totals(self, user_id: str, start: date, end: date) -> Dict[str, int]:
        totals: Dict[str, int] = {}
        for line in self.line_items(user_id, start, end):
            category = (line.category or "").strip()
            if not category:
                continue
            totals[category] = totals.get(category, 0) + int(line.line_total_minor or 0)
        return totals

    def snapshot(
        self,
        user_id: str,
        as_of: AsOf,
        lookback_days: int,
        *,
        policy: Optional[VendorExclusionPolicy] = None,
    ) -> "InMemoryHistoryRepository":
        """One read of the lookback window; every detector in a run queries the returned copy."""
        start, end = trailing_window(as_of, lookback_days)
        return InMemoryHistoryRepository(
            self.line_items(user_id, start, end),
            self.purchases(user_id, start, end),
            policy=policy or self.policy,
        )


class InMemoryHistoryRepository(HistoryRepository):
    """Immutable rows held in memory; applies the same filters as the SQL repository."""

    def __init__(
        self,
        lines: Sequence[OrderLine] = (),
        purchases: Sequence[PurchaseRow] = (),
        *,
        policy: Optional[VendorExclusionPolicy] = None,
    ):
        super().__init__(policy)
        self._lines: Tuple[OrderLine, ...] = tuple(
            sorted(lines, key=lambda l: (l.occurred_at, l.purchase_id, l.sku or ""))
        )
        self._purchases: Tuple[PurchaseRow, ...] = tuple(
            sorted(purchases, key=lambda p: (p.occurred_at, p.purchase_id))
        )

    def _keep(self, row, user_id: str, start: date, end: date) -> bool:
        return (
            row.user_id == user_id
            and row.status == COMPLETED
            and start <= row.order_date <= end
            and not self.policy.excludes(row.vendor_name)
        )

    def _fetch_lines(self, user_id: str, start: date, end: date) -> Iterable[OrderLine]:
        return [line for line in self._lines if self._keep(line, user_id, start, end)]

    def _fetch_purchases(self, user_id: str, start: date, end: date) -> Iterable[PurchaseRow]:
        return [row for row in self._purchases if self._keep(row, user_id, start, end)]
