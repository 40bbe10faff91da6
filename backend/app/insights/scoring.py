from __future__ import annotations

from datetime import date, datetime
import math
from typing import Any, Mapping, Optional

from backend.app.insights.errors import ComputationError
from backend.app.insights.schema import SCOPES, URGENCIES, Insight
from backend.app.insights.stats import clamp, round_half_up


def band(value: float, high_above: float, medium_above: Optional[float] = None) -> str:
    """high when value > high_above; medium when above medium_above (or no lower band); else low."""
    if value > high_above:
        return "high"
    if medium_above is None or value > medium_above:
        return "medium"
    return "low"


def score_confidence(raw: Optional[float]) -> int:
    if raw is None or (isinstance(raw, float) and math.isnan(raw)):
        return 0
    return int(clamp(round_half_up(raw), 0, 100))


def _clean(value: Any) -> Any:
    if isinstance(value, bool) or value is None:
        return value
    if isinstance(value, float):
        if math.isnan(value) or math.isinf(value):
            return None
        return round(value, 4)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Mapping):
        return {str(k): _clean(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_clean(v) for v in value]
    return value


def make_insight(
    *,
    insight_type: str,
    scope: str,
    title: str,
    detail: str,
    urgency: str,
    confidence: float,
    value: float = 0,
    reasoning: Optional[Mapping[str, Any]] = None,
    suggested_quantity: Optional[float] = None,
    detector_id: Optional[str] = None,
    sku: Optional[str] = None,
    description: Optional[str] = None,
    vendor_name: Optional[str] = None,
    category: Optional[str] = None,
) -> Insight:
    if urgency not in URGENCIES:
        raise ComputationError(f"unknown urgency {urgency!r} from {insight_type}")
    if scope not in SCOPES:
        raise ComputationError(f"unknown scope {scope!r} from {insight_type}")

    impact = 0
    if value is not None and not (isinstance(value, float) and math.isnan(value)):
        impact = max(0, round_half_up(value))

    quantity = None
    if suggested_quantity is not None:
        quantity = max(0, round_half_up(suggested_quantity))

    return Insight(
        type=insight_type,
        scope=scope,
        title=title,
        detail=detail,
        urgency=urgency,
        confidence_score=score_confidence(confidence),
        estimated_value_minor_units=impact,
        reasoning=_clean(dict(reasoning or {})),
        suggested_quantity=quantity,
        detector_id=detector_id,
        sku=sku,
        description=description,
        vendor_name=vendor_name,
        category=category,
    )


def money(minor: float) -> str:
    """Format minor units as a currency string for titles and details."""
    return f"${round_half_up(minor) / 100:,.2f}"


def describe(sku: Optional[str], description: Optional[str]) -> str:
    text = (description or "").strip()
    return text or (sku or "item")
