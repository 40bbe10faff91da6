from __future__ import annotations

from dataclasses import dataclass
from typing import List, Sequence

from backend.app.insights.builders import DetectorContext, Runner
from backend.app.insights.detectors.business import detect_budget_pacing, detect_spend_concentration
from backend.app.insights.detectors.forecasting import (
    detect_seasonal_buying,
    detect_usage_forecast,
    detect_yoy_spend_change,
)
from backend.app.insights.detectors.inventory import (
    detect_duplicate_item,
    detect_inactive_item,
    detect_low_stock_risk,
    detect_new_item,
    detect_over_ordering,
)
from backend.app.insights.detectors.ordering import (
    detect_bulk_consolidation,
    detect_bulk_discount,
    detect_rush_orders,
    detect_vendor_consolidation,
    detect_volume_rebate,
)
from backend.app.insights.detectors.pricing import (
    detect_category_trend,
    detect_cost_creep,
    detect_historical_low_price,
    detect_price_anomaly,
    detect_price_drop,
    detect_price_volatility,
    detect_vendor_comparison,
)
from backend.app.insights.detectors.timing import (
    detect_day_pattern,
    detect_order_timing,
    detect_reorder_prediction,
    detect_seasonal_demand,
)
from backend.app.insights.detectors.vendor import (
    detect_category_vendor_sprawl,
    detect_single_source_item,
    detect_vendor_dependency,
)


@dataclass(frozen=True)
class DetectorDefinition:
    detector_id: str
    insight_type: str
    category: str
    runner: Runner
    min_data_points_key: str = "min_data_points_for_analysis"


# List order is the registration order the ranker uses to break ties.
DETECTOR_DEFINITIONS: List[DetectorDefinition] = [
    DetectorDefinition("reorder_prediction", "reorder_prediction", "timing", detect_reorder_prediction),
    DetectorDefinition("day_pattern", "day_pattern", "timing", detect_day_pattern),
    DetectorDefinition("seasonal_demand", "seasonal_demand", "timing", detect_seasonal_demand),
    DetectorDefinition("price_anomaly", "price_anomaly", "pricing", detect_price_anomaly),
    DetectorDefinition("price_drop", "price_drop", "pricing", detect_price_drop),
    DetectorDefinition("vendor_comparison", "vendor_comparison", "pricing", detect_vendor_comparison),
    DetectorDefinition("category_trend", "category_trend", "pricing", detect_category_trend),
    DetectorDefinition("bulk_consolidation", "bulk_consolidation", "ordering", detect_bulk_consolidation, "min_orders_for_bulk_analysis"),
    DetectorDefinition("vendor_consolidation", "vendor_consolidation", "ordering", detect_vendor_consolidation),
    DetectorDefinition("low_stock_risk", "low_stock_risk", "inventory", detect_low_stock_risk),
    DetectorDefinition("over_ordering", "over_ordering", "inventory", detect_over_ordering),
    DetectorDefinition("inactive_item", "inactive_item", "inventory", detect_inactive_item, "min_orders_for_inactive"),
    DetectorDefinition("budget_pacing", "budget_pacing", "business", detect_budget_pacing),
    DetectorDefinition("usage_forecast", "usage_forecast", "forecasting", detect_usage_forecast),
    DetectorDefinition("price_volatility", "price_volatility", "pricing", detect_price_volatility, "min_orders_for_volatility"),
    DetectorDefinition("vendor_dependency", "vendor_dependency", "vendor", detect_vendor_dependency),
    DetectorDefinition("new_item", "new_item", "inventory", detect_new_item),
    DetectorDefinition("rush_orders", "rush_orders", "ordering", detect_rush_orders),
    DetectorDefinition("cost_creep", "cost_creep", "pricing", detect_cost_creep),
    DetectorDefinition("spend_concentration", "spend_concentration", "business", detect_spend_concentration),
    DetectorDefinition("duplicate_item", "duplicate_item", "inventory", detect_duplicate_item),
    DetectorDefinition("order_timing", "order_timing", "timing", detect_order_timing),
    DetectorDefinition("historical_low_price", "historical_low_price", "pricing", detect_historical_low_price),
    DetectorDefinition("bulk_discount", "bulk_discount", "ordering", detect_bulk_discount, "min_orders_for_bulk_analysis"),
    DetectorDefinition("volume_rebate", "volume_rebate", "ordering", detect_volume_rebate),
    DetectorDefinition("single_source_item", "single_source_item", "vendor", detect_single_source_item),
    DetectorDefinition("category_vendor_sprawl", "category_vendor_sprawl", "vendor", detect_category_vendor_sprawl),
    DetectorDefinition("seasonal_buying", "seasonal_buying", "forecasting", detect_seasonal_buying),
    DetectorDefinition("yoy_spend_change", "yoy_spend_change", "forecasting", detect_yoy_spend_change),
]


def detector_order(definitions: Sequence[DetectorDefinition] = DETECTOR_DEFINITIONS) -> List[str]:
    return [d.detector_id for d in definitions]


__all__ = [
    "DETECTOR_DEFINITIONS",
    "DetectorContext",
    "DetectorDefinition",
    "detector_order",
]
