"""
Scrape Request Service

Turns a snapshot request into a queued ``snapshot_scrape`` job.

Flow:
1. One-active-job gate (409)
2. Username and target validation (400)
3. Storage quota (413)
4. Provider configured (500)
5. Budget allocation (429)
6. Job row with flat payload, then ``snapshot-scrape.requested`` event
"""

import re
from dataclasses import dataclass
from typing import Any, Optional

from socialvault.config.settings import Settings, settings as default_settings
from socialvault.shared.adapters.sqs_adapter import SQSAdapter
from socialvault.shared.core.exceptions import (
    ActiveJobConflictError,
    PayloadTooLargeError,
    UpstreamServiceError,
    ValidationError,
)
from socialvault.shared.core.logging import get_logger
from socialvault.shared.models.backup_job import BackupJob
from socialvault.shared.models.enums import JobEventName, JobType, RetentionMode, ScrapePhase
from socialvault.shared.services.budget_service import (
    ApiUsageSummary,
    RunAllocation,
    ScrapeTargets,
    ScrapeUsageService,
    allocate_run_budget,
    parse_requested_tweets,
)
from socialvault.shared.services.job_service import JobService
from socialvault.shared.services.storage_usage_service import StorageUsageService
from socialvault.shared.utils.scrape_pricing import ScrapePricing

logger = get_logger(__name__)

USERNAME_PATTERN = re.compile(r"^[A-Za-z0-9_]{1,15}$")


@dataclass
class ScrapeRequestResult:
    job: BackupJob
    allocation: RunAllocation
    usage: ApiUsageSummary


class ScrapeRequestService:
    """Validates, budgets and enqueues snapshot scrapes."""

    def __init__(
        self,
        job_service: JobService,
        storage_usage: StorageUsageService,
        scrape_usage: ScrapeUsageService,
        queue: SQSAdapter,
        settings: Optional[Settings] = None,
        provider_configured: Optional[bool] = None,
    ) -> None:
        self.job_service = job_service
        self.storage_usage = storage_usage
        self.scrape_usage = scrape_usage
        self.queue = queue
        self.settings = settings or default_settings
        self.provider_configured = (
            bool(self.settings.APIFY_API_TOKEN) if provider_configured is None else provider_configured
        )

    async def request_snapshot(
        self,
        user_id: str,
        username: Any,
        max_tweets: Any = None,
        targets: Any = None,
        is_guest: bool = False,
    ) -> ScrapeRequestResult:
        """
        Queue a snapshot scrape.

        Raises:
            ActiveJobConflictError: A job is already in progress
            ValidationError: Bad username, targets or tweet count
            PayloadTooLargeError: Storage quota reached
            UpstreamServiceError: Provider not configured, or enqueue failed
            BudgetExceededError: Budget cannot cover the run
        """
        active = await self.job_service.find_active_backup_job_for_user(user_id)
        if active:
            raise ActiveJobConflictError(str(active.id))

        if not username:
            raise ValidationError("Username is required")
        if not isinstance(username, str) or not USERNAME_PATTERN.match(username.strip()):
            raise ValidationError("Invalid username format. Use 1-15 letters, numbers, or underscores.")
        username = username.strip()

        parsed_targets = ScrapeTargets.parse(targets)
        if not parsed_targets.any_selected:
            raise ValidationError("Select at least one type of data to scrape.")

        current_bytes = await self.storage_usage.user_total_bytes(user_id)
        if current_bytes >= self.settings.MAX_USER_STORAGE_BYTES:
            raise PayloadTooLargeError(
                "Storage limit exceeded.",
                details={"current_bytes": current_bytes, "limit_bytes": self.settings.MAX_USER_STORAGE_BYTES},
            )

        requested_tweets = None
        if parsed_targets.needs_timeline:
            requested_tweets = parse_requested_tweets(
                max_tweets,
                self.settings.SCRAPE_MIN_TWEETS,
                self.settings.SCRAPE_MAX_TWEETS,
            )

        if not self.provider_configured:
            raise UpstreamServiceError("scrape_provider", "Scrape provider is not configured.")

        usage = await self.scrape_usage.usage_summary(user_id)
        allocation = allocate_run_budget(
            targets=parsed_targets,
            monthly_spent_usd=usage.spent_usd,
            monthly_limit_usd=usage.limit_usd,
            per_run_limit_usd=self.settings.SCRAPE_MAX_COST_PER_RUN_USD,
            pricing=ScrapePricing.from_settings(self.settings),
            requested_tweets=requested_tweets,
            default_tweets=self.settings.SCRAPE_DEFAULT_TWEETS,
            max_tweets=self.settings.SCRAPE_MAX_TWEETS,
        )

        payload = {
            "username": username,
            "max_tweets": allocation.tweets_to_scrape,
            "social_graph_max_items": allocation.social_graph_max_items,
            "scrape_phase": ScrapePhase.QUEUED.value,
            "api_cost_usd": 0.0,
        }
        payload.update(parsed_targets.to_payload())
        payload.update(allocation.budget.to_payload())

        job = await self.job_service.create_job(
            user_id=user_id,
            job_type=JobType.SNAPSHOT_SCRAPE.value,
            message="Snapshot requested. Waiting to start...",
            payload=payload,
        )

        retention_mode = RetentionMode.GUEST_30D if is_guest else RetentionMode.ACCOUNT
        await self.job_service.commit()
        try:
            await self.queue.publish_event(
                JobEventName.SNAPSHOT_SCRAPE_REQUESTED.value,
                {
                    "job_id": str(job.id),
                    "user_id": str(user_id),
                    "username": username,
                    "tweets_to_scrape": allocation.tweets_to_scrape,
                    "targets": parsed_targets.to_event(),
                    "social_graph_max_items": allocation.social_graph_max_items,
                    "api_budget": allocation.budget.to_event(),
                    "retention_mode": retention_mode.value,
                },
            )
        except Exception as e:
            logger.error("Failed to queue snapshot scrape", job_id=str(job.id), error=str(e))
            await self.job_service.mark_failed(job.id, f"Failed to queue background processing: {e}")
            await self.job_service.commit()
            raise

        logger.info(
            "Snapshot scrape queued",
            job_id=str(job.id),
            user_id=str(user_id),
            tweets=allocation.tweets_to_scrape,
            social_graph_items=allocation.social_graph_max_items,
            effective_budget_usd=allocation.budget.effective_run_budget_usd,
        )
        return ScrapeRequestResult(job=job, allocation=allocation, usage=usage)
