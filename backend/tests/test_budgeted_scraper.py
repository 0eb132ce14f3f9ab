import pytest

from socialvault.shared.services.budget_service import ScrapeTargets
from socialvault.shared.utils.scrape_pricing import ScrapePricing
from socialvault.worker.scrapers.base_scraper import split_social_graph_items
from socialvault.worker.scrapers.budgeted_scraper import BudgetedScraper, ScrapeBudgetExhausted

PRICING = ScrapePricing(
    profile_query_base_usd=0.02,
    profile_included_items=20,
    profile_extra_item_usd=0.0004,
    social_graph_item_usd=0.0002,
)


def test_split_social_graph_items():
    assert split_social_graph_items(101, True, True) == {"followers": 51, "following": 50}
    assert split_social_graph_items(100, False, True) == {"following": 100}
    assert split_social_graph_items(None, True, True) == {}


async def test_full_run_within_budget(scraper):
    guarded = BudgetedScraper(scraper, PRICING, effective_budget_usd=1.0)
    reports = []

    async def on_progress(progress):
        reports.append(progress.api_cost_usd)

    result = await guarded.scrape_all("vaultfan", 500, ScrapeTargets(), social_graph_max_items=100, on_progress=on_progress)

    assert len(result.tweets) == 2
    assert len(result.followers) == 3
    assert len(result.following) == 2
    assert result.profile["username"] == "vaultfan"
    assert result.cost_usd == 0.23
    assert not result.is_partial
    assert reports == [0.21, 0.22, 0.23]
    assert scraper.calls == [("timeline", 500), ("followers", 50), ("following", 50)]


async def test_timeline_over_budget_fails_run(scraper):
    guarded = BudgetedScraper(scraper, PRICING, effective_budget_usd=0.01)

    with pytest.raises(ScrapeBudgetExhausted):
        await guarded.scrape_all("vaultfan", 500, ScrapeTargets())

    assert scraper.calls == []


async def test_retry_spend_counts_against_budget(scraper):
    guarded = BudgetedScraper(scraper, PRICING, effective_budget_usd=0.3, spent_usd=0.2)

    with pytest.raises(ScrapeBudgetExhausted):
        await guarded.fetch_timeline("vaultfan", 500)


async def test_social_graph_skipped_when_budget_runs_out(scraper):
    guarded = BudgetedScraper(scraper, PRICING, effective_budget_usd=0.22)

    result = await guarded.scrape_all("vaultfan", 500, ScrapeTargets(), social_graph_max_items=100)

    assert scraper.calls == [("timeline", 500), ("followers", 50)]
    assert result.following == []
    assert result.partial_reasons == ["following_budget_exhausted"]
    assert guarded.spent_usd == 0.22


async def test_social_graph_trimmed_to_remaining_budget(scraper):
    targets = ScrapeTargets(following=False)
    guarded = BudgetedScraper(scraper, PRICING, effective_budget_usd=0.22)

    result = await guarded.scrape_all("vaultfan", 500, targets, social_graph_max_items=100)

    assert scraper.calls[-1] == ("followers", 50)
    assert result.social_graph_limit_hit is True
    assert "social_graph_limit_reached" in result.partial_reasons


async def test_profile_only_run_reads_one_item(scraper):
    targets = ScrapeTargets(tweets=False, replies=False, followers=False, following=False)
    guarded = BudgetedScraper(scraper, PRICING, effective_budget_usd=1.0)

    result = await guarded.scrape_all("vaultfan", 500, targets)

    assert scraper.calls == [("timeline", 1)]
    assert result.tweets == []
    assert result.profile["displayName"] == "Vault Fan"
