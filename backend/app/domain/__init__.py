"""Domain contracts and shared types."""

from backend.app.domain.contracts import (  # noqa: F401
    DetectorRunContract,
    InsightFeed,
    InsightResult,
    InsightSummary,
    LineItemContract,
    PurchaseContract,
)
