from __future__ import annotations

from typing import Dict, Iterable, List, Optional, Sequence

from backend.app.insights.schema import Insight

URGENCY_RANK: Dict[str, int] = {"high": 0, "medium": 1, "low": 2}


def rank_insights(insights: Iterable[Insight], detector_order: Optional[Sequence[str]] = None) -> List[Insight]:
    """
    Deterministic feed order: urgency, confidence (desc), detector registration order,
    then the insight's own identity fields so equal-scored records never depend on input order.
    """
    registration = {detector_id: index for index, detector_id in enumerate(detector_order or [])}
    unregistered = len(registration)

    def _key(insight: Insight):
        return (
            URGENCY_RANK.get(insight.urgency, len(URGENCY_RANK)),
            -insight.confidence_score,
            registration.get(insight.detector_id or insight.type, unregistered),
            insight.type,
            insight.subject,
            insight.title,
            insight.detail,
            -insight.estimated_value_minor_units,
        )

    return sorted(insights, key=_key)
