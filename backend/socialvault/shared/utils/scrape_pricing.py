"""
Scrape provider pricing.

Cost model:
===========
    timeline      = base + max(0, items - included) * extra_per_item   (0 items → 0)
    social graph  = items * per_item

All results are rounded to cents. Constants come from settings so a
provider price change is a configuration change.
"""

import math
import sys
from dataclasses import dataclass

from socialvault.config.settings import Settings


def _non_negative(value: float) -> float:
    if not isinstance(value, (int, float)) or not math.isfinite(value) or value <= 0:
        return 0.0
    return float(value)


def round_usd(value: float) -> float:
    """Round a dollar amount to cents; negatives and NaN become 0."""
    return round(_non_negative(value) * 100) / 100


@dataclass(frozen=True)
class ScrapePricing:
    """Per-item prices of the scrape provider."""

    profile_query_base_usd: float
    profile_included_items: int
    profile_extra_item_usd: float
    social_graph_item_usd: float

    @classmethod
    def from_settings(cls, settings: Settings) -> "ScrapePricing":
        return cls(
            profile_query_base_usd=settings.SCRAPE_PROFILE_QUERY_BASE_USD,
            profile_included_items=settings.SCRAPE_PROFILE_INCLUDED_ITEMS,
            profile_extra_item_usd=settings.SCRAPE_PROFILE_EXTRA_ITEM_USD,
            social_graph_item_usd=settings.SCRAPE_SOCIAL_GRAPH_ITEM_USD,
        )

    def timeline_cost_usd(self, items: int) -> float:
        safe_items = max(0, int(_non_negative(items)))
        if safe_items <= 0:
            return 0.0
        extra_items = max(0, safe_items - self.profile_included_items)
        return round_usd(self.profile_query_base_usd + extra_items * self.profile_extra_item_usd)

    def social_graph_cost_usd(self, items: int) -> float:
        safe_items = max(0, int(_non_negative(items)))
        if safe_items <= 0:
            return 0.0
        return round_usd(safe_items * self.social_graph_item_usd)

    def max_social_graph_items_for_budget(self, budget_usd: float) -> int:
        safe_budget = _non_negative(budget_usd)
        if safe_budget <= 0 or self.social_graph_item_usd <= 0:
            return 0
        # Round first so 4.788 / 0.0002 does not land on 23939.999...
        return max(0, math.floor(round(safe_budget / self.social_graph_item_usd, 6)))

    def max_timeline_items_for_budget(self, budget_usd: float) -> int:
        safe_budget = _non_negative(budget_usd)
        if safe_budget <= 0:
            return 0

        base = self.profile_query_base_usd
        included = max(1, self.profile_included_items)
        extra_per_item = self.profile_extra_item_usd

        if base <= 0:
            if extra_per_item <= 0:
                return sys.maxsize
            return max(0, math.floor(round(safe_budget / extra_per_item, 6)))

        if safe_budget < base:
            return 0
        if extra_per_item <= 0:
            return sys.maxsize

        extra_items = max(0, math.floor(round((safe_budget - base) / extra_per_item, 6)))
        return included + extra_items
