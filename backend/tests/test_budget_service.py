import pytest

from socialvault.shared.core.exceptions import BudgetExceededError, ValidationError
from socialvault.shared.models.enums import JobStatus
from socialvault.shared.services.budget_service import (
    ApiBudget,
    ScrapeTargets,
    ScrapeUsageService,
    allocate_run_budget,
    parse_requested_tweets,
)
from socialvault.shared.utils.scrape_pricing import ScrapePricing
from tests.conftest import USER_ID

PRICING = ScrapePricing(
    profile_query_base_usd=0.02,
    profile_included_items=20,
    profile_extra_item_usd=0.0004,
    social_graph_item_usd=0.0002,
)


def allocate(targets=None, spent=0.0, limit=100.0, per_run=20.0, requested=None):
    return allocate_run_budget(
        targets or ScrapeTargets(),
        monthly_spent_usd=spent,
        monthly_limit_usd=limit,
        per_run_limit_usd=per_run,
        pricing=PRICING,
        requested_tweets=requested,
    )


class TestPricing:
    def test_timeline_cost(self):
        assert PRICING.timeline_cost_usd(0) == 0.0
        assert PRICING.timeline_cost_usd(20) == 0.02
        assert PRICING.timeline_cost_usd(500) == 0.21

    def test_social_graph_cost(self):
        assert PRICING.social_graph_cost_usd(100) == 0.02
        assert PRICING.social_graph_cost_usd(-5) == 0.0

    def test_max_items_for_budget(self):
        assert PRICING.max_timeline_items_for_budget(0.01) == 0
        assert PRICING.max_timeline_items_for_budget(0.02) == 20
        assert PRICING.max_social_graph_items_for_budget(4.79) == 23950


class TestAllocation:
    def test_run_budget_clamped_to_monthly_remaining(self):
        allocation = allocate(spent=95.0, limit=100.0, per_run=20.0)

        assert allocation.budget.monthly_remaining_usd == 5.0
        assert allocation.budget.effective_run_budget_usd == 5.0
        assert allocation.tweets_to_scrape == 500
        assert allocation.social_graph_max_items == 23950
        assert allocation.budget.estimated_max_run_cost_usd <= 5.0

    def test_timeline_only_sizes_from_budget_up_to_max(self):
        targets = ScrapeTargets(followers=False, following=False)

        allocation = allocate(targets, per_run=5.0)

        assert allocation.tweets_to_scrape == 1000
        assert allocation.social_graph_max_items is None
        assert allocation.budget.estimated_social_graph_cost_usd == 0.0

    def test_explicit_tweet_count_wins(self):
        assert allocate(requested=50).tweets_to_scrape == 50

    def test_profile_only_run_costs_one_item(self):
        targets = ScrapeTargets(tweets=False, replies=False, followers=False, following=False)

        allocation = allocate(targets)

        assert allocation.tweets_to_scrape == 1
        assert allocation.budget.estimated_timeline_cost_usd == 0.02

    def test_exhausted_monthly_budget(self):
        with pytest.raises(BudgetExceededError) as exc_info:
            allocate(spent=100.0, limit=100.0)

        assert exc_info.value.status_code == 429
        assert "Monthly snapshot token budget reached ($100.00 / $100.00)" in exc_info.value.message

    def test_timeline_unaffordable(self):
        with pytest.raises(BudgetExceededError, match="at least \\$0.02"):
            allocate(spent=99.99, limit=100.0)

    def test_social_graph_does_not_fit(self):
        targets = ScrapeTargets(tweets=False, replies=False)

        with pytest.raises(BudgetExceededError, match="followers/following"):
            allocate(targets, spent=99.98, limit=100.0)

    def test_budget_round_trips_through_payload(self):
        budget = allocate().budget

        assert ApiBudget.from_payload(budget.to_payload()) == budget
        assert ApiBudget.from_event(budget.to_event()) == budget
        assert ApiBudget.from_payload({}) is None


class TestTargets:
    def test_missing_targets_default_to_everything(self):
        assert ScrapeTargets.parse(None) == ScrapeTargets()
        assert ScrapeTargets.parse({"followers": False}).followers is False
        assert ScrapeTargets.parse({"followers": False}).tweets is True

    def test_non_mapping_rejected(self):
        with pytest.raises(ValidationError):
            ScrapeTargets.parse(["tweets"])

    def test_payload_flags(self):
        targets = ScrapeTargets(replies=False)

        assert targets.to_payload()["target_replies"] is False
        assert ScrapeTargets.from_payload(targets.to_payload()) == targets


class TestRequestedTweets:
    @pytest.mark.parametrize("value", [0, -3, True, "abc", 1.5])
    def test_invalid_values(self, value):
        with pytest.raises(ValidationError):
            parse_requested_tweets(value, 10, 1000)

    def test_out_of_range(self):
        with pytest.raises(ValidationError, match="between 10 and 1000"):
            parse_requested_tweets(5, 10, 1000)

    def test_accepts_numeric_strings(self):
        assert parse_requested_tweets(" 200 ", 10, 1000) == 200
        assert parse_requested_tweets(None, 10, 1000) is None


class TestMonthlySpend:
    async def test_spend_combines_costed_jobs_and_unlinked_backups(self, job_repo, backup_repo, test_settings, make_job, make_backup):
        linked = await make_backup(data={"scrape": {"total_cost": 9.0}})
        await make_backup(data={"scrape": {"total_cost": 0.5}})
        await make_job(
            status=JobStatus.COMPLETED,
            payload={"api_cost_usd": 1.25},
            result_backup_id=linked.id,
        )
        await make_job(job_type="archive_upload", payload={"api_cost_usd": 3.0})

        usage = ScrapeUsageService(job_repo, backup_repo, test_settings)
        summary = await usage.usage_summary(USER_ID)

        assert summary.spent_usd == 1.75
        assert summary.limit_usd == 50.0
        assert summary.remaining_usd == 48.25
