"""
Budget Service

External budget allocation for snapshot scrapes.

BUDGET MODEL:
    monthly_remaining = max(0, monthly_limit - monthly_spent_before_run)
    effective_budget  = min(per_run_limit, monthly_remaining)
    max_run_cost      = timeline_cost + social_graph_cost <= effective_budget

The timeline (tweets/replies/profile) is the primary fetch and is never
reduced to make room; the social graph (followers/following) is
best-effort and shrinks first.

The allocation is computed once when the scrape is requested, stored on
the job as flat ``budget_*`` keys and sent with the queue event. The worker
enforces it (see worker/scrapers/budgeted_scraper.py) and never re-derives it.

Usage:
======
    allocation = allocate_run_budget(
        targets=ScrapeTargets(),
        monthly_spent_usd=12.5,
        monthly_limit_usd=50,
        per_run_limit_usd=10,
        pricing=ScrapePricing.from_settings(settings),
    )
    job_payload.update(allocation.budget.to_payload())
"""

import math
from dataclasses import asdict, dataclass, fields
from datetime import datetime, timezone
from typing import Any, Mapping, Optional

from socialvault.config.settings import Settings, settings as default_settings
from socialvault.shared.core.exceptions import BudgetExceededError, ValidationError
from socialvault.shared.models.base import utc_now
from socialvault.shared.models.enums import JobType
from socialvault.shared.repositories.backup_job_repository import BackupJobRepository
from socialvault.shared.repositories.backup_repository import BackupRepository
from socialvault.shared.repositories.base import RecordId
from socialvault.shared.utils.job_payload import payload_float, referenced_backup_ids
from socialvault.shared.utils.scrape_pricing import ScrapePricing, round_usd


def format_usd(value: float) -> str:
    return f"${round_usd(value):.2f}"


# ═══════════════════════════════════════════════════════════════════════════════
# TARGETS
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class ScrapeTargets:
    """What a snapshot scrape should fetch."""

    profile: bool = True
    tweets: bool = True
    replies: bool = True
    followers: bool = True
    following: bool = True

    @property
    def needs_timeline(self) -> bool:
        return self.tweets or self.replies

    @property
    def includes_social_graph(self) -> bool:
        return self.followers or self.following

    @property
    def any_selected(self) -> bool:
        return any(asdict(self).values())

    @classmethod
    def parse(cls, value: Any) -> "ScrapeTargets":
        """
        Build targets from request data; missing keys default to True.

        Raises:
            ValidationError: If the value is not a mapping of booleans
        """
        if value is None:
            return cls()
        if not isinstance(value, Mapping):
            raise ValidationError(
                "Invalid scrape targets. Use booleans for profile, tweets, replies, followers, and following."
            )
        defaults = cls()
        return cls(**{
            f.name: bool(value[f.name]) if value.get(f.name) is not None else getattr(defaults, f.name)
            for f in fields(cls)
        })

    def to_payload(self) -> dict[str, bool]:
        return {f"target_{name}": enabled for name, enabled in asdict(self).items()}

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "ScrapeTargets":
        return cls(**{f.name: payload.get(f"target_{f.name}") is True for f in fields(cls)})

    def to_event(self) -> dict[str, bool]:
        return asdict(self)


# ═══════════════════════════════════════════════════════════════════════════════
# BUDGET
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class ApiBudget:
    """Immutable spend envelope for one scrape run."""

    monthly_spent_before_run_usd: float
    monthly_limit_usd: float
    monthly_remaining_usd: float
    per_run_limit_usd: float
    effective_run_budget_usd: float
    estimated_timeline_cost_usd: float
    estimated_social_graph_cost_usd: float
    estimated_max_run_cost_usd: float

    def to_payload(self) -> dict[str, float]:
        """Flat ``budget_*`` job payload keys."""
        return {f"budget_{name}": value for name, value in asdict(self).items()}

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> Optional["ApiBudget"]:
        """Rebuild from ``budget_*`` keys; None when the job carries no budget."""
        if "budget_effective_run_budget_usd" not in payload:
            return None
        return cls(**{f.name: payload_float(payload, f"budget_{f.name}") for f in fields(cls)})

    def to_event(self) -> dict[str, float]:
        return asdict(self)

    @classmethod
    def from_event(cls, data: Any) -> Optional["ApiBudget"]:
        if not isinstance(data, Mapping) or "effective_run_budget_usd" not in data:
            return None
        return cls(**{f.name: payload_float(data, f.name) for f in fields(cls)})


@dataclass(frozen=True)
class RunAllocation:
    """Item counts and budget for one scrape run."""

    tweets_to_scrape: int
    social_graph_max_items: Optional[int]
    budget: ApiBudget


def parse_requested_tweets(
    value: Any,
    min_tweets: int,
    max_tweets: int,
) -> Optional[int]:
    """
    Parse an explicit tweet count.

    Returns:
        The count, or None when no explicit value was given

    Raises:
        ValidationError: If the value is not an integer within the limits
    """
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        raise ValidationError("Invalid maxTweets value. It must be a positive integer.")
    if isinstance(value, str):
        try:
            value = int(value.strip())
        except ValueError:
            raise ValidationError("Invalid maxTweets value. It must be a positive integer.")
    if isinstance(value, float):
        if not math.isfinite(value) or not value.is_integer():
            raise ValidationError("Invalid maxTweets value. It must be a positive integer.")
        value = int(value)
    if not isinstance(value, int) or value <= 0:
        raise ValidationError("Invalid maxTweets value. It must be a positive integer.")
    if value < min_tweets or value > max_tweets:
        raise ValidationError(
            f"maxTweets must be between {min_tweets} and {max_tweets}.",
            details={"min": min_tweets, "max": max_tweets},
        )
    return value


def allocate_run_budget(
    targets: ScrapeTargets,
    monthly_spent_usd: float,
    monthly_limit_usd: float,
    per_run_limit_usd: float,
    pricing: ScrapePricing,
    requested_tweets: Optional[int] = None,
    default_tweets: int = 500,
    max_tweets: int = 1000,
) -> RunAllocation:
    """
    Compute the item counts and spend envelope of a scrape run.

    Args:
        targets: What to fetch
        monthly_spent_usd: Spend this month before the run
        monthly_limit_usd: Monthly cap
        per_run_limit_usd: Per-run cap
        pricing: Provider pricing
        requested_tweets: Explicit (already validated) tweet count
        default_tweets: Preferred timeline size for mixed runs
        max_tweets: Largest timeline fetched when sizing from the budget

    Raises:
        BudgetExceededError: Monthly budget used up, timeline unaffordable,
            or no social graph item fits when the social graph was requested
    """
    spent = round_usd(monthly_spent_usd)
    limit = round_usd(monthly_limit_usd)
    remaining = round_usd(max(0.0, limit - spent))
    per_run = round_usd(per_run_limit_usd)

    if remaining <= 0:
        raise BudgetExceededError(
            f"Monthly snapshot token budget reached ({format_usd(spent)} / {format_usd(limit)}).",
            details={"spent_usd": spent, "limit_usd": limit},
        )

    effective = round_usd(min(per_run, remaining))

    if targets.needs_timeline:
        if requested_tweets is not None:
            tweets = requested_tweets
        elif targets.includes_social_graph:
            preferred = max(1, default_tweets)
            if pricing.timeline_cost_usd(preferred) <= effective:
                tweets = preferred
            else:
                tweets = min(max_tweets, pricing.max_timeline_items_for_budget(effective))
        else:
            tweets = min(max_tweets, pricing.max_timeline_items_for_budget(effective))
        tweets = max(1, int(tweets))
        timeline_items = tweets
    elif targets.profile:
        tweets = 1
        timeline_items = 1
    else:
        tweets = 0
        timeline_items = 0

    timeline_cost = pricing.timeline_cost_usd(timeline_items)
    if timeline_cost > effective:
        raise BudgetExceededError(
            f"This request needs at least {format_usd(timeline_cost)} in snapshot tokens for "
            f"timeline/profile data, but only {format_usd(effective)} is currently available for a single run.",
            details={"timeline_cost_usd": timeline_cost, "effective_run_budget_usd": effective},
        )

    social_graph_max_items: Optional[int] = None
    social_cost = 0.0
    if targets.includes_social_graph:
        items = pricing.max_social_graph_items_for_budget(max(0.0, effective - timeline_cost))
        # Cent rounding of the sum can overshoot by one item's worth
        while items > 0 and round_usd(timeline_cost + pricing.social_graph_cost_usd(items)) > effective:
            items -= 1
        if items <= 0:
            raise BudgetExceededError(
                "Current snapshot token budget cannot fetch followers/following in this run. "
                "Increase token limits or uncheck followers/following.",
                details={"effective_run_budget_usd": effective},
            )
        social_graph_max_items = items
        social_cost = pricing.social_graph_cost_usd(items)

    budget = ApiBudget(
        monthly_spent_before_run_usd=spent,
        monthly_limit_usd=limit,
        monthly_remaining_usd=remaining,
        per_run_limit_usd=per_run,
        effective_run_budget_usd=effective,
        estimated_timeline_cost_usd=timeline_cost,
        estimated_social_graph_cost_usd=social_cost,
        estimated_max_run_cost_usd=round_usd(timeline_cost + social_cost),
    )
    return RunAllocation(
        tweets_to_scrape=tweets,
        social_graph_max_items=social_graph_max_items,
        budget=budget,
    )


# ═══════════════════════════════════════════════════════════════════════════════
# MONTHLY USAGE
# ═══════════════════════════════════════════════════════════════════════════════


def month_start_utc(now: Optional[datetime] = None) -> datetime:
    current = (now or utc_now()).astimezone(timezone.utc)
    return current.replace(day=1, hour=0, minute=0, second=0, microsecond=0)


@dataclass
class ApiUsageSummary:
    month_start: datetime
    spent_usd: float
    limit_usd: float
    remaining_usd: float


class ScrapeUsageService:
    """
    Monthly scrape spend per user.

    Spend = ``api_cost_usd`` recorded on this month's snapshot jobs, plus
    ``data.scrape.total_cost`` of this month's snapshot backups that no
    costed job links to (older rows produced before jobs recorded cost).
    """

    def __init__(
        self,
        job_repo: BackupJobRepository,
        backup_repo: BackupRepository,
        settings: Optional[Settings] = None,
    ) -> None:
        self.job_repo = job_repo
        self.backup_repo = backup_repo
        self.settings = settings or default_settings

    async def monthly_spend(self, user_id: RecordId, now: Optional[datetime] = None) -> float:
        since = month_start_utc(now)
        jobs = await self.job_repo.list_created_since(user_id, since)

        job_total = 0.0
        linked_ids: set[str] = set()
        for job in jobs:
            if job.job_type != JobType.SNAPSHOT_SCRAPE.value:
                continue
            cost = payload_float(job.payload, "api_cost_usd")
            if cost <= 0:
                continue
            job_total += cost
            linked_ids |= referenced_backup_ids(job.payload)
            if job.result_backup_id:
                linked_ids.add(str(job.result_backup_id))

        unlinked_total = 0.0
        for backup in await self.backup_repo.list_snapshot_backups_since(user_id, since):
            if str(backup.id) in linked_ids:
                continue
            scrape = (backup.data or {}).get("scrape")
            if isinstance(scrape, Mapping):
                unlinked_total += max(0.0, payload_float(scrape, "total_cost"))

        return round_usd(job_total + unlinked_total)

    async def usage_summary(self, user_id: RecordId, now: Optional[datetime] = None) -> ApiUsageSummary:
        spent = await self.monthly_spend(user_id, now)
        limit = round_usd(self.settings.SCRAPE_MONTHLY_LIMIT_USD)
        return ApiUsageSummary(
            month_start=month_start_utc(now),
            spent_usd=spent,
            limit_usd=limit,
            remaining_usd=round_usd(max(0.0, limit - spent)),
        )
