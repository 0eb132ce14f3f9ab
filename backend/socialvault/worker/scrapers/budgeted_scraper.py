"""
Budget-enforcing scraper wrapper.

The allocation fixed at request time is the contract; this wrapper keeps
the running total of provider spend under ``effective_run_budget_usd``:

- the timeline is fetched only if its estimate fits, else the run fails
- each social graph call is trimmed to what still fits; when nothing fits
  the call is skipped and the run is marked partial
- spend uses the provider's reported cost, or the estimate when the
  provider reports none

A retried job starts from the ``api_cost_usd`` already recorded on it, so
retries never get a fresh budget.
"""

import logging
from typing import Awaitable, Callable, Optional

from socialvault.shared.services.budget_service import ScrapeTargets, format_usd
from socialvault.shared.utils.scrape_pricing import ScrapePricing, round_usd
from socialvault.worker.scrapers.base_scraper import (
    BaseScraper,
    ScrapeProgress,
    ScrapeResult,
    SocialGraphBatch,
    TimelineBatch,
    split_social_graph_items,
)

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[ScrapeProgress], Awaitable[None]]


class ScrapeBudgetExhausted(Exception):
    """The next provider call would cross the run budget."""

    def __init__(self, message: str, spent_usd: float, budget_usd: float):
        self.message = message
        self.spent_usd = spent_usd
        self.budget_usd = budget_usd
        super().__init__(message)


class BudgetedScraper:
    """Wraps a scraper and refuses calls the run budget cannot cover."""

    def __init__(
        self,
        inner: BaseScraper,
        pricing: ScrapePricing,
        effective_budget_usd: float,
        spent_usd: float = 0.0,
    ) -> None:
        self.inner = inner
        self.pricing = pricing
        self.budget_usd = round_usd(max(0.0, effective_budget_usd))
        self.spent_usd = round_usd(max(0.0, spent_usd))

    @property
    def remaining_usd(self) -> float:
        return round_usd(max(0.0, self.budget_usd - self.spent_usd))

    def _charge(self, reported: float, estimated: float) -> None:
        cost = reported if reported and reported > 0 else estimated
        self.spent_usd = round_usd(self.spent_usd + cost)

    async def fetch_timeline(
        self,
        username: str,
        max_items: int,
        include_tweets: bool = True,
        include_replies: bool = True,
    ) -> TimelineBatch:
        estimate = self.pricing.timeline_cost_usd(max_items)
        if round_usd(self.spent_usd + estimate) > self.budget_usd:
            raise ScrapeBudgetExhausted(
                f"Snapshot token budget exhausted before the timeline fetch "
                f"({format_usd(self.spent_usd)} spent of {format_usd(self.budget_usd)}).",
                spent_usd=self.spent_usd,
                budget_usd=self.budget_usd,
            )

        batch = await self.inner.fetch_timeline(username, max_items, include_tweets, include_replies)
        self._charge(batch.cost_usd, estimate)
        return batch

    async def fetch_social_graph(self, username: str, relation: str, max_items: int) -> SocialGraphBatch:
        affordable = self.pricing.max_social_graph_items_for_budget(self.remaining_usd)
        while affordable > 0 and round_usd(self.spent_usd + self.pricing.social_graph_cost_usd(affordable)) > self.budget_usd:
            affordable -= 1
        items = min(max_items, affordable)
        if items <= 0:
            raise ScrapeBudgetExhausted(
                f"Snapshot token budget exhausted before fetching {relation}.",
                spent_usd=self.spent_usd,
                budget_usd=self.budget_usd,
            )

        batch = await self.inner.fetch_social_graph(username, relation, items)
        self._charge(batch.cost_usd, self.pricing.social_graph_cost_usd(items))
        if items < max_items:
            batch.limit_hit = True
        return batch

    async def scrape_all(
        self,
        username: str,
        tweets_to_scrape: int,
        targets: ScrapeTargets,
        social_graph_max_items: Optional[int] = None,
        on_progress: Optional[ProgressCallback] = None,
    ) -> ScrapeResult:
        """
        Fetch everything the targets ask for.

        Raises:
            ScrapeBudgetExhausted: The timeline/profile fetch does not fit
        """
        result = ScrapeResult(username=username, provider=self.inner.provider_name)
        progress = ScrapeProgress(api_cost_usd=self.spent_usd)
        start_spent = self.spent_usd

        async def report() -> None:
            progress.api_cost_usd = self.spent_usd
            if on_progress is not None:
                await on_progress(progress)

        if targets.needs_timeline or targets.profile:
            # Profile-only runs read the author block of a single item
            items = max(1, tweets_to_scrape) if targets.needs_timeline else 1
            timeline = await self.fetch_timeline(
                username,
                items,
                include_tweets=targets.tweets,
                include_replies=targets.replies,
            )
            result.tweets = timeline.tweets
            result.replies = timeline.replies
            result.profile = timeline.profile if targets.profile else {"username": username}
            result.timeline_limit_hit = timeline.limit_hit
            progress.tweets_fetched = len(result.tweets)
            progress.replies_fetched = len(result.replies)
            await report()

        allowances = split_social_graph_items(social_graph_max_items, targets.followers, targets.following)
        for relation, allowance in allowances.items():
            try:
                batch = await self.fetch_social_graph(username, relation, allowance)
            except ScrapeBudgetExhausted as e:
                logger.warning(f"Skipping {relation} for @{username}: {e.message}")
                result.partial_reasons.append(f"{relation}_budget_exhausted")
                continue

            setattr(result, relation, batch.users)
            if batch.limit_hit:
                result.social_graph_limit_hit = True
            if relation == "followers":
                progress.followers_fetched = len(batch.users)
            else:
                progress.following_fetched = len(batch.users)
            await report()

        if result.social_graph_limit_hit:
            result.partial_reasons.append("social_graph_limit_reached")
        result.cost_usd = round_usd(self.spent_usd - start_spent)
        return result
