"""
Base scraper interface.

A scraper fetches one account's public data from an external provider.
Timeline and social graph are separate calls because they are priced and
budgeted separately; items are plain dicts in the backup's storage shape.
"""

from dataclasses import dataclass, field
from typing import Any, List, Optional


SOCIAL_GRAPH_RELATIONS = ("followers", "following")


@dataclass
class TimelineBatch:
    """Result of one timeline call."""

    tweets: List[dict[str, Any]] = field(default_factory=list)
    replies: List[dict[str, Any]] = field(default_factory=list)
    profile: dict[str, Any] = field(default_factory=dict)
    cost_usd: float = 0.0
    limit_hit: bool = False


@dataclass
class SocialGraphBatch:
    """Result of one followers/following call."""

    relation: str
    users: List[dict[str, Any]] = field(default_factory=list)
    cost_usd: float = 0.0
    limit_hit: bool = False


@dataclass
class ScrapeResult:
    """Everything one snapshot run collected."""

    username: str
    tweets: List[dict[str, Any]] = field(default_factory=list)
    replies: List[dict[str, Any]] = field(default_factory=list)
    followers: List[dict[str, Any]] = field(default_factory=list)
    following: List[dict[str, Any]] = field(default_factory=list)
    profile: dict[str, Any] = field(default_factory=dict)
    cost_usd: float = 0.0
    provider: str = ""
    partial_reasons: List[str] = field(default_factory=list)
    timeline_limit_hit: bool = False
    social_graph_limit_hit: bool = False

    @property
    def is_partial(self) -> bool:
        return bool(self.partial_reasons)


@dataclass
class ScrapeProgress:
    """Counters reported while a run is in flight."""

    tweets_fetched: int = 0
    replies_fetched: int = 0
    followers_fetched: int = 0
    following_fetched: int = 0
    api_cost_usd: float = 0.0


class BaseScraper:
    """Base interface for account scrapers."""

    provider_name: str = "base"

    def is_configured(self) -> bool:
        return False

    async def fetch_timeline(
        self,
        username: str,
        max_items: int,
        include_tweets: bool = True,
        include_replies: bool = True,
    ) -> TimelineBatch:
        """
        Fetch up to ``max_items`` timeline items plus the profile.

        A profile-only run asks for a single item; the profile comes from
        the author block of the returned items.
        """
        raise NotImplementedError

    async def fetch_social_graph(
        self,
        username: str,
        relation: str,
        max_items: int,
    ) -> SocialGraphBatch:
        """Fetch up to ``max_items`` followers or followed accounts."""
        raise NotImplementedError

    async def aclose(self) -> None:
        """Release network resources."""


def split_social_graph_items(total: Optional[int], followers: bool, following: bool) -> dict[str, int]:
    """Share a social graph item allowance between the selected relations."""
    if not total or total <= 0:
        return {}
    selected = [r for r, enabled in zip(SOCIAL_GRAPH_RELATIONS, (followers, following)) if enabled]
    if not selected:
        return {}
    share, extra = divmod(total, len(selected))
    return {relation: share + (1 if index < extra else 0) for index, relation in enumerate(selected)}
