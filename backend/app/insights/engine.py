from __future__ import annotations

from dataclasses import dataclass
import logging
from typing import List, Optional, Sequence

from backend.app.insights.builders import DetectorContext
from backend.app.insights.config import InsightConfig
from backend.app.insights.detectors import DETECTOR_DEFINITIONS, DetectorDefinition, detector_order
from backend.app.insights.errors import ConfigurationError
from backend.app.insights.history import HistoryRepository, VendorExclusionPolicy
from backend.app.insights.ranking import rank_insights
from backend.app.insights.schema import Insight
from backend.app.insights.views import now_relevant, week_planning
from backend.app.insights.windows import AsOf, as_of_date

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DetectorRunResult:
    detector_id: str
    insight_type: str
    category: str
    ran: bool
    fired: bool
    failed: bool
    error: Optional[str]
    count: int


@dataclass(frozen=True)
class InsightRunSummary:
    insights: List[Insight]
    detectors: List[DetectorRunResult]

    @property
    def failed(self) -> List[str]:
        return [d.detector_id for d in self.detectors if d.failed]


class InsightEngine:
    """
    Runs every registered detector over one history snapshot and returns a ranked feed.

    Configuration is validated here, once. Per-request failures never escape: a detector
    that raises contributes zero insights and is reported in the run summary.
    """

    def __init__(
        self,
        repository: HistoryRepository,
        config: Optional[InsightConfig] = None,
        detectors: Optional[Sequence[DetectorDefinition]] = None,
    ):
        self.config = (config or InsightConfig()).validate()
        self.repository = repository
        self.policy = VendorExclusionPolicy.of(self.config.excluded_vendors)
        self.detectors: List[DetectorDefinition] = list(detectors if detectors is not None else DETECTOR_DEFINITIONS)

        ids = [d.detector_id for d in self.detectors]
        duplicates = sorted({i for i in ids if ids.count(i) > 1})
        problems = [f"duplicate detector id {i}" for i in duplicates]
        for d in self.detectors:
            if not hasattr(self.config, d.min_data_points_key):
                problems.append(f"detector {d.detector_id} names unknown setting {d.min_data_points_key}")
        if problems:
            raise ConfigurationError(problems)
        self.detector_order = detector_order(self.detectors)

    def run_with_summary(self, user_id: str, as_of: AsOf) -> InsightRunSummary:
        day = as_of_date(as_of)
        snapshot = self.repository.for_caller("snapshot").snapshot(
            user_id,
            day,
            self.config.history_lookback_days,
            policy=self.policy,
        )

        insights: List[Insight] = []
        results: List[DetectorRunResult] = []
        for definition in self.detectors:
            ctx = DetectorContext(
                user_id=user_id,
                as_of=day,
                config=self.config,
                history=snapshot.for_caller(definition.detector_id),
                min_data_points=getattr(self.config, definition.min_data_points_key),
                detector_id=definition.detector_id,
                insight_type=definition.insight_type,
            )
            try:
                found = list(definition.runner(ctx))
            except Exception as exc:
                logger.warning(
                    "[insights] detector failed detector=%s user=%s error=%s",
                    definition.detector_id,
                    user_id,
                    str(exc),
                )
                results.append(
                    DetectorRunResult(
                        detector_id=definition.detector_id,
                        insight_type=definition.insight_type,
                        category=definition.category,
                        ran=True,
                        fired=False,
                        failed=True,
                        error=str(exc),
                        count=0,
                    )
                )
                continue

            results.append(
                DetectorRunResult(
                    detector_id=definition.detector_id,
                    insight_type=definition.insight_type,
                    category=definition.category,
                    ran=True,
                    fired=bool(found),
                    failed=False,
                    error=None,
                    count=len(found),
                )
            )
            insights.extend(found)

        ranked = rank_insights(insights, self.detector_order)
        logger.info(
            "[insights] run complete user=%s as_of=%s insights=%s failed=%s",
            user_id,
            day.isoformat(),
            len(ranked),
            sum(1 for r in results if r.failed),
        )
        return InsightRunSummary(insights=ranked, detectors=results)

    def generate_insights(self, user_id: str, as_of: AsOf) -> List[Insight]:
        return self.run_with_summary(user_id, as_of).insights

    def get_now_relevant_insights(self, user_id: str, as_of: AsOf) -> List[Insight]:
        return now_relevant(self.generate_insights(user_id, as_of))

    def get_week_planning_insights(self, user_id: str, as_of: AsOf) -> List[Insight]:
        return week_planning(self.generate_insights(user_id, as_of), self.config.materiality_threshold)
