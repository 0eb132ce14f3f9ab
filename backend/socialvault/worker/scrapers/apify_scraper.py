"""
Apify scraper - timeline and social graph through Apify actors.

Provides:
- Timeline items (tweets, replies) and the profile block via the tweet actor
- Followers / following via the user actor

Both calls use ``run-sync-get-dataset-items`` so a run finishes inside
one HTTP request. Cost is computed from the returned item counts with the
same pricing the budget allocator uses.
"""

import logging
from typing import Any, Optional

import httpx

from socialvault.config.settings import Settings, settings as default_settings
from socialvault.shared.core.exceptions import UpstreamServiceError
from socialvault.shared.utils.scrape_pricing import ScrapePricing
from socialvault.worker.scrapers.base_scraper import (
    SOCIAL_GRAPH_RELATIONS,
    BaseScraper,
    SocialGraphBatch,
    TimelineBatch,
)

logger = logging.getLogger(__name__)


def _first(item: dict[str, Any], *keys: str) -> Any:
    for key in keys:
        value = item.get(key)
        if value not in (None, ""):
            return value
    return None


def _tweet_media(item: dict[str, Any]) -> list[dict[str, Any]]:
    entities = item.get("extendedEntities") or item.get("extended_entities") or item.get("entities") or {}
    media = []
    for entry in entities.get("media") or []:
        url = _first(entry, "media_url_https", "media_url")
        if not url:
            continue
        kind = entry.get("type") or "photo"
        if kind == "video":
            variants = (entry.get("video_info") or {}).get("variants") or []
            mp4s = [v for v in variants if v.get("content_type") == "video/mp4" and v.get("url")]
            if mp4s:
                url = max(mp4s, key=lambda v: v.get("bitrate") or 0)["url"]
        media.append({"type": kind, "media_url": url, "url": entry.get("expanded_url") or url})
    return media


def _profile_from_author(author: dict[str, Any], username: str) -> dict[str, Any]:
    return {
        "username": _first(author, "userName", "screen_name") or username,
        "displayName": _first(author, "name") or username,
        "bio": _first(author, "description") or "",
        "profileImageUrl": _first(author, "profilePicture", "profile_image_url_https"),
        "coverImageUrl": _first(author, "coverPicture", "profile_banner_url"),
        "followersCount": author.get("followers") or author.get("followers_count"),
        "followingCount": author.get("following") or author.get("friends_count"),
        "statusesCount": author.get("statusesCount") or author.get("statuses_count"),
    }


class ApifyScraper(BaseScraper):
    """
    Scraper backed by Apify actors.

    Handles:
    - Actor runs over the Apify REST API (httpx)
    - Mapping actor items to backup item dicts
    - Per-call cost from item counts
    """

    provider_name = "apify"

    def __init__(
        self,
        settings: Optional[Settings] = None,
        client: Optional[httpx.AsyncClient] = None,
        pricing: Optional[ScrapePricing] = None,
    ) -> None:
        self.settings = settings or default_settings
        self.token = self.settings.APIFY_API_TOKEN
        self.pricing = pricing or ScrapePricing.from_settings(self.settings)
        self._client = client

    @property
    def client(self) -> httpx.AsyncClient:
        """Lazy-load the HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.settings.APIFY_BASE_URL,
                timeout=self.settings.SCRAPER_TIMEOUT_SECONDS,
            )
        return self._client

    def is_configured(self) -> bool:
        return bool(self.token)

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def _run_actor(self, actor_id: str, actor_input: dict[str, Any]) -> list[dict[str, Any]]:
        if not self.is_configured():
            raise UpstreamServiceError("scrape_provider", "Scrape provider is not configured.")

        path = f"/v2/acts/{actor_id.replace('/', '~')}/run-sync-get-dataset-items"
        try:
            response = await self.client.post(
                path,
                params={"token": self.token, "format": "json", "clean": "true"},
                json=actor_input,
            )
            response.raise_for_status()
            items = response.json()
        except httpx.HTTPStatusError as e:
            logger.error(f"Apify actor {actor_id} failed with HTTP {e.response.status_code}")
            raise UpstreamServiceError("scrape_provider", "Scrape provider request failed.") from e
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"Apify actor {actor_id} request failed: {e}")
            raise UpstreamServiceError("scrape_provider", "Scrape provider request failed.") from e

        if not isinstance(items, list):
            logger.warning(f"Apify actor {actor_id} returned a non-list payload")
            return []
        return [item for item in items if isinstance(item, dict) and not item.get("noResults")]

    # ═══════════════════════════════════════════════════════════════════════════
    # TIMELINE
    # ═══════════════════════════════════════════════════════════════════════════

    async def fetch_timeline(
        self,
        username: str,
        max_items: int,
        include_tweets: bool = True,
        include_replies: bool = True,
    ) -> TimelineBatch:
        max_items = max(1, int(max_items))
        items = await self._run_actor(
            self.settings.APIFY_TIMELINE_ACTOR,
            {
                "twitterHandles": [username],
                "maxItems": max_items,
                "sort": "Latest",
                "includeSearchTerms": False,
            },
        )
        items = items[:max_items]

        batch = TimelineBatch(
            cost_usd=self.pricing.timeline_cost_usd(len(items)),
            limit_hit=len(items) >= max_items,
        )
        for item in items:
            tweet_id = str(_first(item, "id", "id_str") or "")
            if not tweet_id:
                continue
            author = item.get("author") or item.get("user") or {}
            if not batch.profile and author:
                batch.profile = _profile_from_author(author, username)

            is_reply = bool(item.get("isReply") or _first(item, "inReplyToId", "in_reply_to_status_id_str"))
            tweet = {
                "id": tweet_id,
                "text": _first(item, "fullText", "full_text", "text") or "",
                "created_at": _first(item, "createdAt", "created_at"),
                "retweet_count": item.get("retweetCount") or 0,
                "favorite_count": item.get("likeCount") or 0,
                "reply_count": item.get("replyCount") or 0,
                "in_reply_to_status_id": _first(item, "inReplyToId", "in_reply_to_status_id_str"),
                "in_reply_to_screen_name": _first(item, "inReplyToUsername", "in_reply_to_screen_name"),
                "tweet_url": _first(item, "url", "twitterUrl"),
                "media": _tweet_media(item),
            }
            if is_reply:
                if include_replies:
                    batch.replies.append(tweet)
            elif include_tweets:
                batch.tweets.append(tweet)

        if not batch.profile:
            batch.profile = {"username": username, "displayName": username}

        logger.info(f"Apify timeline for @{username}: {len(batch.tweets)} tweets, {len(batch.replies)} replies")
        return batch

    # ═══════════════════════════════════════════════════════════════════════════
    # SOCIAL GRAPH
    # ═══════════════════════════════════════════════════════════════════════════

    async def fetch_social_graph(
        self,
        username: str,
        relation: str,
        max_items: int,
    ) -> SocialGraphBatch:
        if relation not in SOCIAL_GRAPH_RELATIONS:
            raise ValueError(f"Unknown social graph relation: {relation}")

        max_items = max(1, int(max_items))
        items = await self._run_actor(
            self.settings.APIFY_SOCIAL_GRAPH_ACTOR,
            {
                "twitterHandles": [username],
                "getFollowers": relation == "followers",
                "getFollowing": relation == "following",
                "maxItems": max_items,
            },
        )
        items = items[:max_items]

        users = []
        for item in items:
            user_id = str(_first(item, "id", "id_str", "userId") or "")
            if not user_id:
                continue
            handle = _first(item, "userName", "screen_name", "username")
            users.append({
                "user_id": user_id,
                "username": handle,
                "name": _first(item, "name") or handle,
                "userLink": _first(item, "url") or (f"https://x.com/{handle}" if handle else None),
                "profileImageUrl": _first(item, "profilePicture", "profile_image_url_https"),
            })

        logger.info(f"Apify {relation} for @{username}: {len(users)} accounts")
        return SocialGraphBatch(
            relation=relation,
            users=users,
            cost_usd=self.pricing.social_graph_cost_usd(len(items)),
            limit_hit=len(items) >= max_items,
        )
