"""Procurement insights: detectors over purchase history, ranked into one feed."""

from backend.app.insights.config import InsightConfig  # noqa: F401
from backend.app.insights.engine import (  # noqa: F401
    DetectorRunResult,
    InsightEngine,
    InsightRunSummary,
)
from backend.app.insights.errors import (  # noqa: F401
    ComputationError,
    ConfigurationError,
    DataAccessError,
    InsightError,
)
from backend.app.insights.history import (  # noqa: F401
    HistoryRepository,
    InMemoryHistoryRepository,
    OrderLine,
    PurchaseRow,
    VendorExclusionPolicy,
)
from backend.app.insights.ranking import rank_insights  # noqa: F401
from backend.app.insights.schema import Insight  # noqa: F401
from backend.app.insights.views import now_relevant, summarize_insights, week_planning  # noqa: F401
