from __future__ import annotations

from dataclasses import dataclass, fields, replace
import os
from typing import Dict, List, Mapping, Optional, Tuple

from dotenv import load_dotenv

from backend.app.insights.errors import ConfigurationError

ENV_PREFIX = "INSIGHTS_"


@dataclass(frozen=True)
class SeasonalEvent:
    key: str
    name: str
    month: int
    day: int
    prep_days: int


@dataclass(frozen=True)
class CategorySeason:
    key: str
    label: str
    high_months: Tuple[int, ...]


# Fixed dates; movable holidays use their usual approximate date.
SEASONAL_EVENTS: Tuple[SeasonalEvent, ...] = (
    SeasonalEvent("new_years", "New Year's", 1, 1, 7),
    SeasonalEvent("super_bowl", "Super Bowl", 2, 11, 10),
    SeasonalEvent("valentines", "Valentine's Day", 2, 14, 7),
    SeasonalEvent("st_patricks", "St. Patrick's Day", 3, 17, 5),
    SeasonalEvent("easter", "Easter", 4, 20, 7),
    SeasonalEvent("cinco_de_mayo", "Cinco de Mayo", 5, 5, 5),
    SeasonalEvent("mothers_day", "Mother's Day", 5, 11, 7),
    SeasonalEvent("memorial_day", "Memorial Day", 5, 26, 7),
    SeasonalEvent("fathers_day", "Father's Day", 6, 15, 5),
    SeasonalEvent("july_4th", "Independence Day", 7, 4, 10),
    SeasonalEvent("labor_day", "Labor Day", 9, 1, 7),
    SeasonalEvent("halloween", "Halloween", 10, 31, 14),
    SeasonalEvent("thanksgiving", "Thanksgiving", 11, 27, 14),
    SeasonalEvent("christmas", "Christmas", 12, 25, 21),
    SeasonalEvent("new_years_eve", "New Year's Eve", 12, 31, 7),
)

CATEGORY_SEASONS: Tuple[CategorySeason, ...] = (
    CategorySeason("beverages", "Beverages", (6, 7, 8)),
    CategorySeason("produce", "Produce", (1, 2, 3)),
    CategorySeason("seafood", "Seafood", (12,)),
    CategorySeason("beef", "Beef/Meat", (5, 6, 7)),
)

DEFAULT_EXCLUDED_VENDORS: Tuple[str, ...] = ("cintas", "unifirst", "aramark uniform")


@dataclass(frozen=True)
class InsightConfig:
    # minimum data requirements
    min_data_points_for_analysis: int = 2
    min_data_points_for_high_confidence: int = 5
    min_orders_for_bulk_analysis: int = 3
    min_orders_for_inactive: int = 3
    min_orders_for_volatility: int = 4
    min_months_for_trend: int = 2

    # windows (days)
    analysis_window_days: int = 90
    recent_window_days: int = 14
    usage_window_days: int = 30
    day_pattern_window_days: int = 60
    inactivity_window_days: int = 180
    year_over_year_days: int = 365
    history_lookback_days: int = 400

    # timing
    reorder_alert_days_before: int = 7
    reorder_overdue_days: int = 14
    reorder_medium_days: int = 3
    max_cycle_gap_days: int = 120
    max_cycle_cov: float = 0.6
    day_pattern_min_share: float = 0.40
    day_pattern_min_orders: int = 4
    day_pattern_lead_days: int = 3
    order_timing_min_spread: float = 0.10
    order_timing_medium_spread: float = 0.20
    order_timing_min_orders: int = 3
    order_timing_min_weekdays: int = 3
    orders_per_month: int = 4
    seasonal_lookback_margin_days: int = 7
    seasonal_buying_lead_months: int = 2

    # pricing
    price_anomaly_threshold: float = 0.10
    price_anomaly_high_threshold: float = 0.20
    price_anomaly_trailing_points: int = 10
    price_drop_threshold: float = 0.08
    price_drop_high_threshold: float = 0.15
    default_restock_quantity: float = 10.0
    vendor_price_diff_threshold: float = 0.10
    vendor_price_high_threshold: float = 0.20
    min_vendor_price_diff: int = 50
    assumed_comparison_units: int = 10
    price_volatility_threshold: float = 0.15
    price_volatility_high_threshold: float = 0.30
    volatility_capture_rate: float = 0.5
    cost_creep_threshold: float = 0.05
    cost_creep_high_threshold: float = 0.15
    cost_creep_horizon_months: int = 3
    historical_low_ratio: float = 0.85

    # usage and waste
    usage_change_threshold: float = 0.20
    stockout_growth_threshold: float = 0.25
    usage_change_high_threshold: float = 0.50
    restock_buffer: float = 1.25
    over_ordering_threshold: float = 0.30
    over_ordering_high_threshold: float = 0.50
    over_ordering_min_quantity: float = 5.0
    inactive_item_days: int = 60
    inactive_item_low_days: int = 90
    new_item_days: int = 14
    new_item_min_spend: int = 500
    new_item_high_spend: int = 5000
    duplicate_min_description_length: int = 10
    duplicate_prefix_length: int = 15
    duplicate_price_gap: float = 0.25
    duplicate_medium_diff: int = 200

    # consolidation and savings assumptions
    small_order_threshold: float = 0.4
    small_order_min_days: int = 5
    bulk_order_multiplier: int = 3
    bulk_high_savings: int = 1500
    vendor_consolidation_min_days: int = 4
    vendor_consolidation_high_days: int = 6
    vendor_consolidation_batch: int = 3
    rush_orders_per_day: int = 2
    rush_min_days: int = 2
    rush_high_days: int = 4
    bulk_discount_rate: float = 0.07
    bulk_tier_discount_rate: float = 0.10
    bulk_tier_min_annual_savings: int = 10000
    quarters_per_year: int = 4
    min_savings_for_insight: int = 300
    order_admin_cost: int = 1500
    volume_rebate_rate: float = 0.02
    volume_rebate_min_spend: int = 100000
    category_consolidation_rate: float = 0.08
    category_sprawl_min_spend: int = 50000
    category_sprawl_min_vendors: int = 3

    # category and budget
    category_spend_spike_threshold: float = 0.25
    category_spend_high_threshold: float = 0.40
    focused_insight_limit: int = 3
    budget_pacing_threshold: float = 0.15
    budget_pacing_high_threshold: float = 0.30
    budget_period_days: int = 30

    # concentration
    vendor_dependency_share: float = 0.60
    vendor_dependency_high_share: float = 0.75
    vendor_dependency_min_spend: int = 100000
    spend_concentration_share: float = 0.50
    spend_concentration_high_share: float = 0.65
    spend_concentration_min_spend: int = 50000
    spend_concentration_savings_rate: float = 0.05
    single_source_min_spend: int = 20000

    # forecasting
    forecast_growth_threshold: float = 0.20
    forecast_dampening: float = 0.6
    forecast_medium_threshold: float = 0.35

    # output
    materiality_threshold: int = 5000
    max_insights_per_detector: int = 5

    excluded_vendors: Tuple[str, ...] = DEFAULT_EXCLUDED_VENDORS
    seasonal_events: Tuple[SeasonalEvent, ...] = SEASONAL_EVENTS
    category_seasons: Tuple[CategorySeason, ...] = CATEGORY_SEASONS
    ignored_categories: Tuple[str, ...] = ("general",)

    def validate(self) -> "InsightConfig":
        problems: List[str] = []
        for f in fields(self):
            value = getattr(self, f.name)
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                continue
            if value < 0:
                problems.append(f"{f.name} must be >= 0 (got {value})")
            elif f.name.endswith("_days") and value == 0:
                problems.append(f"{f.name} must be > 0")

        if self.analysis_window_days <= self.recent_window_days:
            problems.append("analysis_window_days must exceed recent_window_days")
        needed = max(
            self.analysis_window_days,
            self.inactivity_window_days,
            self.year_over_year_days + self.usage_window_days,
            self.year_over_year_days + 1 + self.seasonal_lookback_margin_days,
        )
        if self.history_lookback_days < needed:
            problems.append(f"history_lookback_days must be >= {needed} to cover every detector window")
        if self.min_data_points_for_analysis < 2:
            problems.append("min_data_points_for_analysis must be >= 2 to form a cycle")
        if not 0 < self.forecast_dampening <= 1:
            problems.append("forecast_dampening must be in (0, 1]")
        if self.max_insights_per_detector < 1:
            problems.append("max_insights_per_detector must be >= 1")
        for event in self.seasonal_events:
            if not 1 <= event.month <= 12 or not 1 <= event.day <= 31:
                problems.append(f"seasonal event {event.key} has an invalid date")
            if event.prep_days < 1:
                problems.append(f"seasonal event {event.key} needs prep_days >= 1")
        for season in self.category_seasons:
            if not season.high_months or any(not 1 <= m <= 12 for m in season.high_months):
                problems.append(f"category season {season.key} has invalid months")
        if any(not v.strip() for v in self.excluded_vendors):
            problems.append("excluded_vendors entries must be non-empty")

        if problems:
            raise ConfigurationError(problems)
        return self

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "InsightConfig":
        if environ is None:
            load_dotenv()
            environ = os.environ

        overrides: Dict[str, object] = {}
        problems: List[str] = []
        for f in fields(cls):
            raw = environ.get(f"{ENV_PREFIX}{f.name.upper()}")
            if raw is None or raw.strip() == "":
                continue
            default = f.default
            try:
                if f.name == "excluded_vendors":
                    overrides[f.name] = tuple(v.strip().lower() for v in raw.split(",") if v.strip())
                elif isinstance(default, tuple) and all(isinstance(v, str) for v in default):
                    overrides[f.name] = tuple(v.strip() for v in raw.split(",") if v.strip())
                elif isinstance(default, tuple):
                    problems.append(f"{ENV_PREFIX}{f.name.upper()} cannot be set from the environment")
                elif isinstance(default, bool):
                    overrides[f.name] = raw.strip().lower() in {"1", "true", "yes", "on"}
                elif isinstance(default, int):
                    overrides[f.name] = int(raw)
                elif isinstance(default, float):
                    overrides[f.name] = float(raw)
            except ValueError:
                problems.append(f"{ENV_PREFIX}{f.name.upper()} is not a number: {raw!r}")

        if problems:
            raise ConfigurationError(problems)
        return replace(cls(), **overrides)
