from __future__ import annotations

from datetime import date, datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field


class LineItemContract(BaseModel):
    sku: Optional[str] = None
    description: Optional[str] = None
    quantity: float = 0.0
    unit_price_cents: int = 0
    total_cents: Optional[int] = None
    category: Optional[str] = None


class PurchaseContract(BaseModel):
    id: Optional[str] = None
    user_id: str
    vendor_name: Optional[str] = None
    account_name: Optional[str] = None
    status: Literal["pending", "completed", "failed"] = "completed"
    occurred_at: datetime
    invoice_total_cents: Optional[int] = None
    items: List[LineItemContract] = Field(default_factory=list)


class InsightResult(BaseModel):
    type: str
    scope: Literal["sku", "vendor", "category", "global"]
    title: str
    detail: str
    urgency: Literal["high", "medium", "low"]
    confidence_score: int = Field(ge=0, le=100)
    estimated_value_minor_units: int = Field(ge=0)
    suggested_quantity: Optional[int] = None
    reasoning: Dict[str, Any] = Field(default_factory=dict)

    detector_id: Optional[str] = None
    sku: Optional[str] = None
    description: Optional[str] = None
    vendor_name: Optional[str] = None
    category: Optional[str] = None


class DetectorRunContract(BaseModel):
    detector_id: str
    insight_type: str
    category: str
    ran: bool
    fired: bool
    failed: bool
    error: Optional[str] = None
    count: int = 0


class InsightFeed(BaseModel):
    user_id: str
    as_of: date
    view: Literal["all", "now", "week"] = "all"
    count: int
    insights: List[InsightResult]
    detectors: Optional[List[DetectorRunContract]] = None


class InsightSummary(BaseModel):
    user_id: str
    as_of: date
    total: int
    by_type: Dict[str, int]
    by_urgency: Dict[str, int]
    high_priority: int
    total_estimated_value_minor_units: int
