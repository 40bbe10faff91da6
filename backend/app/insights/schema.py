from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Literal, Optional

Urgency = Literal["high", "medium", "low"]
Scope = Literal["sku", "vendor", "category", "global"]

URGENCIES = ("high", "medium", "low")
SCOPES = ("sku", "vendor", "category", "global")


@dataclass(frozen=True)
class Insight:
    type: str
    scope: Scope
    title: str
    detail: str
    urgency: Urgency
    confidence_score: int
    estimated_value_minor_units: int
    reasoning: Dict[str, Any] = field(default_factory=dict)
    suggested_quantity: Optional[int] = None

    detector_id: Optional[str] = None
    sku: Optional[str] = None
    description: Optional[str] = None
    vendor_name: Optional[str] = None
    category: Optional[str] = None

    @property
    def subject(self) -> str:
        if self.scope == "sku":
            return self.sku or ""
        if self.scope == "vendor":
            return self.vendor_name or ""
        if self.scope == "category":
            return self.category or ""
        return ""

    def as_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type,
            "scope": self.scope,
            "title": self.title,
            "detail": self.detail,
            "urgency": self.urgency,
            "suggested_quantity": self.suggested_quantity,
            "estimated_value_minor_units": self.estimated_value_minor_units,
            "confidence_score": self.confidence_score,
            "reasoning": dict(self.reasoning),
            "detector_id": self.detector_id,
            "sku": self.sku,
            "description": self.description,
            "vendor_name": self.vendor_name,
            "category": self.category,
        }
