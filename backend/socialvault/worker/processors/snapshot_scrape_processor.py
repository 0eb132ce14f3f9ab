"""
Snapshot scrape processor.

Handles ``snapshot-scrape.requested``: fetches an account through the
scrape provider within the run budget and stores it as a backup.

Phases (``scrape_phase`` on the job) and progress:
    preparing   8
    scraping    20..60
    saving      60      (partial_backup_id recorded)
    media       72..92
    finalizing  94
    completed   100

Live counters are merged as flat ``metric_*`` keys next to
``api_cost_usd``, which the budget allocator reads for monthly spend.
"""

import asyncio
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

from socialvault.shared.core.exceptions import UpstreamServiceError
from socialvault.shared.core.logging import get_logger
from socialvault.shared.models.backup_job import BackupJob
from socialvault.shared.models.enums import BackupType, JobEventName, LifecycleState, MediaType, RetentionMode, ScrapePhase
from socialvault.shared.services.budget_service import ApiBudget, ScrapeTargets
from socialvault.shared.utils.job_payload import now_iso, payload_float, payload_int
from socialvault.shared.utils.scrape_pricing import ScrapePricing, round_usd
from socialvault.shared.utils.storage_paths import build_media_path
from socialvault.worker.processors.base_processor import JobAttempt, JobProcessor, retention_for_event
from socialvault.worker.scrapers.base_scraper import ScrapeProgress, ScrapeResult
from socialvault.worker.scrapers.budgeted_scraper import BudgetedScraper
from socialvault.worker.scrapers.media_fetcher import FetchedMedia

logger = get_logger(__name__)

MEDIA_WORKER_COUNT = 6

SCRAPE_PROGRESS_START = 20
SCRAPE_PROGRESS_END = 60
MEDIA_PROGRESS_START = 72
MEDIA_PROGRESS_SPAN = 20

PHASE_MESSAGES = {
    ScrapePhase.PREPARING: "Preparing snapshot...",
    ScrapePhase.SCRAPING: "Fetching account data...",
    ScrapePhase.SAVING: "Saving backup record...",
    ScrapePhase.MEDIA: "Downloading media...",
    ScrapePhase.FINALIZING: "Finalizing backup...",
}


def media_progress(processed: int, total: int) -> int:
    if total <= 0:
        return MEDIA_PROGRESS_START + MEDIA_PROGRESS_SPAN
    return MEDIA_PROGRESS_START + round(min(processed, total) / total * MEDIA_PROGRESS_SPAN)


def metrics_patch(progress: ScrapeProgress, media_processed: int = 0, media_total: int = 0) -> Dict[str, Any]:
    return {
        "metric_tweets_fetched": progress.tweets_fetched,
        "metric_replies_fetched": progress.replies_fetched,
        "metric_followers_fetched": progress.followers_fetched,
        "metric_following_fetched": progress.following_fetched,
        "metric_media_processed": media_processed,
        "metric_media_total": media_total,
        "api_cost_usd": round_usd(progress.api_cost_usd),
    }


@dataclass
class MediaTarget:
    url: str
    media_type: MediaType
    tweet_media: Optional[Dict[str, Any]] = None
    profile_key: Optional[str] = None


PROFILE_MEDIA_KEYS = (("profileImageUrl", "profileImagePath"), ("coverImageUrl", "coverImagePath"))


def collect_media_targets(result: ScrapeResult, include_profile: bool) -> List[MediaTarget]:
    """Everything worth downloading: profile images first, then tweet media."""
    targets: List[MediaTarget] = []
    if include_profile:
        for url_key, path_key in PROFILE_MEDIA_KEYS:
            url = result.profile.get(url_key)
            if url:
                targets.append(MediaTarget(url, MediaType.PROFILE_MEDIA, profile_key=path_key))
    for item in result.tweets + result.replies:
        for media in item.get("media") or []:
            if isinstance(media, dict) and media.get("media_url"):
                targets.append(MediaTarget(media["media_url"], MediaType.TWEET_MEDIA, tweet_media=media))
    return targets


class SnapshotScrapeProcessor(JobProcessor):
    """Runs a budgeted scrape and stores the result as a backup."""

    event_name = JobEventName.SNAPSHOT_SCRAPE_REQUESTED.value

    async def set_phase(
        self,
        job_id: str,
        phase: ScrapePhase,
        progress: int,
        patch: Optional[Dict[str, Any]] = None,
        message: Optional[str] = None,
    ) -> None:
        payload = {"scrape_phase": phase.value}
        payload.update(patch or {})
        await self.jobs.mark_progress(job_id, progress, message or PHASE_MESSAGES[phase], payload_patch=payload)
        await self.checkpoint()

    async def run(self, job: BackupJob, data: Dict[str, Any], attempt: JobAttempt) -> str:
        job_id = str(job.id)
        user_id = str(job.user_id)
        payload = dict(job.payload or {})
        username = data.get("username") or payload.get("username")

        targets = ScrapeTargets.parse(data["targets"]) if isinstance(data.get("targets"), dict) else ScrapeTargets.from_payload(payload)
        tweets_to_scrape = int(data.get("tweets_to_scrape") or payload_int(payload, "max_tweets"))
        social_graph_max_items = data.get("social_graph_max_items", payload.get("social_graph_max_items"))
        budget = ApiBudget.from_event(data.get("api_budget")) or ApiBudget.from_payload(payload)
        if budget is None:
            raise UpstreamServiceError("scrape_budget", "Snapshot job has no budget allocation.")

        await self.jobs.mark_processing(
            job_id,
            PHASE_MESSAGES[ScrapePhase.PREPARING],
            progress=8,
            payload_patch={"scrape_phase": ScrapePhase.PREPARING.value},
        )
        await self.checkpoint()

        scraper = self.context.adapters.scraper
        if not scraper.is_configured():
            raise UpstreamServiceError("scrape_provider", "Scrape provider is not configured.")

        # Spend from earlier attempts counts against the same budget
        guarded = BudgetedScraper(
            scraper,
            ScrapePricing.from_settings(self.settings),
            budget.effective_run_budget_usd,
            spent_usd=payload_float(payload, "api_cost_usd"),
        )
        steps = 1 + len([r for r in (targets.followers, targets.following) if r])
        done = 0

        async def on_progress(progress: ScrapeProgress) -> None:
            nonlocal done
            done += 1
            value = SCRAPE_PROGRESS_START + round(min(done, steps) / steps * (SCRAPE_PROGRESS_END - SCRAPE_PROGRESS_START))
            await self.set_phase(job_id, ScrapePhase.SCRAPING, min(value, SCRAPE_PROGRESS_END - 1), metrics_patch(progress))

        await self.set_phase(job_id, ScrapePhase.SCRAPING, SCRAPE_PROGRESS_START)
        result = await guarded.scrape_all(
            username,
            tweets_to_scrape,
            targets,
            social_graph_max_items=social_graph_max_items,
            on_progress=on_progress,
        )

        media_targets = collect_media_targets(result, targets.profile)
        progress = ScrapeProgress(
            tweets_fetched=len(result.tweets),
            replies_fetched=len(result.replies),
            followers_fetched=len(result.followers),
            following_fetched=len(result.following),
            api_cost_usd=guarded.spent_usd,
        )
        await self.set_phase(job_id, ScrapePhase.SAVING, SCRAPE_PROGRESS_END, metrics_patch(progress, 0, len(media_targets)))

        backup_data = self.build_backup_data(result, targets, budget, social_graph_max_items, data, len(media_targets))
        backup = await self.context.backup_repo.create_backup(
            user_id=user_id,
            backup_type=BackupType.SNAPSHOT.value,
            data=backup_data,
        )
        backup_id = str(backup.id)
        await self.jobs.merge_payload(job_id, {"partial_backup_id": backup_id})
        await self.checkpoint()

        if media_targets:
            await self.set_phase(job_id, ScrapePhase.MEDIA, MEDIA_PROGRESS_START, metrics_patch(progress, 0, len(media_targets)))
            profile_paths = await self.store_media(job_id, user_id, backup_id, media_targets, progress)
            backup_data["profile"].update(profile_paths)
            backup_data["tweets"] = result.tweets
            backup_data["replies"] = result.replies
            await self.context.backup_repo.update_data(backup_id, backup_data)

        await self.set_phase(job_id, ScrapePhase.FINALIZING, 94)

        await self.jobs.merge_payload(job_id, {
            "lifecycle_state": LifecycleState.COMPLETED.value,
            "partial_backup_id": None,
            "created_backup_id": backup_id,
            "api_cost_usd": round_usd(guarded.spent_usd),
        })
        await self.jobs.mark_completed(job_id, backup_id, message="Snapshot backup completed successfully.")
        logger.info(
            "Snapshot backup completed",
            backup_id=backup_id,
            cost_usd=result.cost_usd,
            partial=result.is_partial,
        )
        return backup_id

    def build_backup_data(
        self,
        result: ScrapeResult,
        targets: ScrapeTargets,
        budget: ApiBudget,
        social_graph_max_items: Optional[int],
        data: Dict[str, Any],
        media_total: int,
    ) -> Dict[str, Any]:
        profile = dict(result.profile)
        retention = retention_for_event(data, self.settings)
        return {
            "tweets": result.tweets,
            "replies": result.replies,
            "followers": result.followers,
            "following": result.following,
            "likes": [],
            "profile": profile,
            "stats": {
                "tweets": len(result.tweets),
                "replies": len(result.replies),
                "followers": max(len(result.followers), int(profile.get("followersCount") or 0)),
                "following": max(len(result.following), int(profile.get("followingCount") or 0)),
                "likes": 0,
                "media_files": media_total,
            },
            "scrape": {
                "provider": result.provider,
                "total_cost": result.cost_usd,
                "scraped_at": now_iso(),
                "is_partial": result.is_partial,
                "partial_reasons": list(result.partial_reasons),
                "timeline_limit_hit": result.timeline_limit_hit,
                "social_graph_limit_hit": result.social_graph_limit_hit,
                "targets": targets.to_event(),
                "budget": {**budget.to_event(), "social_graph_max_items": social_graph_max_items},
            },
            "retention": retention or {"mode": RetentionMode.ACCOUNT.value},
        }

    async def store_media(
        self,
        job_id: str,
        user_id: str,
        backup_id: str,
        media_targets: List[MediaTarget],
        progress: ScrapeProgress,
    ) -> Dict[str, str]:
        """
        Download and store media with a bounded worker pool.

        Network work runs concurrently; rows are written one at a time on
        the job's session. Returns profile image storage paths.
        """
        semaphore = asyncio.Semaphore(MEDIA_WORKER_COUNT)
        total = len(media_targets)
        processed = 0

        async def fetch_and_upload(index: int, target: MediaTarget) -> Optional[Tuple[FetchedMedia, str]]:
            async with semaphore:
                fetched = await self.context.adapters.media_fetcher.fetch(target.url)
                if fetched is None:
                    return None
                path = build_media_path(user_id, backup_id, f"{index:05d}-{fetched.file_name}")
                try:
                    await self.context.storage.upload_object(path, fetched.content, content_type=fetched.content_type)
                except UpstreamServiceError as e:
                    logger.warning("Snapshot media upload failed", url=target.url, error=e.message)
                    return None
                return fetched, path

        profile_paths: Dict[str, str] = {}
        chunk_size = MEDIA_WORKER_COUNT * 4
        for start in range(0, total, chunk_size):
            chunk = media_targets[start:start + chunk_size]
            outcomes = await asyncio.gather(*(
                fetch_and_upload(start + offset, target) for offset, target in enumerate(chunk)
            ))
            for target, outcome in zip(chunk, outcomes):
                processed += 1
                if outcome is None:
                    continue
                fetched, path = outcome
                await self.context.media_repo.create_media_file(
                    backup_id=backup_id,
                    user_id=user_id,
                    file_path=path,
                    file_name=fetched.file_name,
                    file_size=fetched.size,
                    media_type=target.media_type.value,
                    mime_type=fetched.content_type,
                )
                if target.tweet_media is not None:
                    target.tweet_media["storage_path"] = path
                if target.profile_key:
                    profile_paths[target.profile_key] = path

            await self.set_phase(
                job_id,
                ScrapePhase.MEDIA,
                media_progress(processed, total),
                metrics_patch(progress, processed, total),
                message=f"Downloading media ({processed}/{total})...",
            )

        return profile_paths
