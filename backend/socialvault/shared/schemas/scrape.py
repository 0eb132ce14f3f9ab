"""
Snapshot scrape request schemas.
"""

from datetime import datetime
from typing import Any, Optional

from pydantic import Field

from socialvault.shared.schemas.common import BaseSchema, SuccessResponse
from socialvault.shared.schemas.job import JobResponse


class ScrapeRequest(BaseSchema):
    username: Any = Field(default=None, description="Handle to scrape, 1-15 of [A-Za-z0-9_]")
    # Validated by the service so bad values produce its own messages
    max_tweets: Any = None
    targets: Optional[dict[str, Any]] = None


class ApiUsageResponse(BaseSchema):
    month_start: datetime
    spent_usd: float
    limit_usd: float
    remaining_usd: float


class ScrapeResponse(SuccessResponse):
    job: JobResponse
    tweets_to_scrape: int
    social_graph_max_items: Optional[int] = None
    api_budget: dict[str, float]
    usage: ApiUsageResponse
