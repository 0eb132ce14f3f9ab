"""
Scrape Handler

POST /scrape queues a budgeted snapshot of a public account.
"""

from fastapi import APIRouter, Depends, status

from socialvault.api.dependencies import CurrentUser
from socialvault.api.dependencies.services import get_scrape_request_service
from socialvault.shared.schemas.job import JobResponse
from socialvault.shared.schemas.scrape import ApiUsageResponse, ScrapeRequest, ScrapeResponse
from socialvault.shared.services.scrape_service import ScrapeRequestService


router = APIRouter()


@router.post(
    "",
    response_model=ScrapeResponse,
    status_code=status.HTTP_202_ACCEPTED,
)
async def request_snapshot(
    request: ScrapeRequest,
    current_user: CurrentUser,
    scrape_service: ScrapeRequestService = Depends(get_scrape_request_service),
):
    """
    Queue a snapshot scrape.

    The run is sized to the smaller of the per-run cap and what is left
    of the caller's monthly budget; the response reports both.
    """
    result = await scrape_service.request_snapshot(
        user_id=current_user["user_id"],
        username=request.username,
        max_tweets=request.max_tweets,
        targets=request.targets,
        is_guest=current_user["is_guest"],
    )
    return ScrapeResponse(
        job=JobResponse.from_job(result.job),
        tweets_to_scrape=result.allocation.tweets_to_scrape,
        social_graph_max_items=result.allocation.social_graph_max_items,
        api_budget=result.allocation.budget.to_event(),
        usage=ApiUsageResponse(
            month_start=result.usage.month_start,
            spent_usd=result.usage.spent_usd,
            limit_usd=result.usage.limit_usd,
            remaining_usd=result.usage.remaining_usd,
        ),
    )
