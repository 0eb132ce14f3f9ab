import json

import httpx
import pytest

from socialvault.shared.core.exceptions import UpstreamServiceError
from socialvault.worker.scrapers.apify_scraper import ApifyScraper
from socialvault.worker.scrapers.media_fetcher import MediaFetcher

TIMELINE_ITEMS = [
    {
        "id": "1001",
        "fullText": "hello",
        "author": {"userName": "vaultfan", "name": "Vault Fan", "followers": 12, "profilePicture": "https://pbs.twimg.com/p.jpg"},
        "extendedEntities": {"media": [{
            "type": "video",
            "media_url_https": "https://pbs.twimg.com/thumb.jpg",
            "video_info": {"variants": [
                {"content_type": "video/mp4", "bitrate": 320, "url": "https://video.twimg.com/low.mp4"},
                {"content_type": "video/mp4", "bitrate": 2176, "url": "https://video.twimg.com/high.mp4"},
            ]},
        }]},
    },
    {"id": "1002", "fullText": "@x reply", "isReply": True, "inReplyToId": "900"},
    {"noResults": True},
]


def apify(handler, test_settings) -> ApifyScraper:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler), base_url="https://api.apify.test")
    return ApifyScraper(test_settings, client=client)


async def test_timeline_maps_items(test_settings):
    requests = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(200, json=TIMELINE_ITEMS)

    batch = await apify(handler, test_settings).fetch_timeline("vaultfan", 50)

    assert [t["id"] for t in batch.tweets] == ["1001"]
    assert [r["id"] for r in batch.replies] == ["1002"]
    assert batch.tweets[0]["media"][0]["media_url"] == "https://video.twimg.com/high.mp4"
    assert batch.profile["followersCount"] == 12
    assert batch.limit_hit is False
    assert batch.cost_usd == 0.02
    assert requests[0].url.params["token"] == "apify-test-token"
    assert json.loads(requests[0].content)["maxItems"] == 50


async def test_timeline_respects_targets(test_settings):
    batch = await apify(lambda request: httpx.Response(200, json=TIMELINE_ITEMS), test_settings).fetch_timeline(
        "vaultfan", 50, include_replies=False
    )

    assert batch.replies == []
    assert len(batch.tweets) == 1


async def test_social_graph_limit_hit(test_settings):
    users = [{"id": str(i), "userName": f"user{i}"} for i in range(5)]
    scraper = apify(lambda request: httpx.Response(200, json=users), test_settings)

    batch = await scraper.fetch_social_graph("vaultfan", "followers", 3)

    assert [u["username"] for u in batch.users] == ["user0", "user1", "user2"]
    assert batch.users[0]["userLink"] == "https://x.com/user0"
    assert batch.limit_hit is True
    assert batch.cost_usd == 0.0


async def test_provider_errors_become_upstream_errors(test_settings):
    scraper = apify(lambda request: httpx.Response(502, text="bad gateway"), test_settings)

    with pytest.raises(UpstreamServiceError):
        await scraper.fetch_timeline("vaultfan", 10)


async def test_unconfigured_provider(test_settings):
    unconfigured = test_settings.model_copy(update={"APIFY_API_TOKEN": ""})
    scraper = ApifyScraper(unconfigured)

    assert scraper.is_configured() is False
    with pytest.raises(UpstreamServiceError):
        await scraper.fetch_social_graph("vaultfan", "following", 10)


async def test_media_fetcher():
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path.endswith("missing.jpg"):
            return httpx.Response(404)
        return httpx.Response(200, content=b"image", headers={"content-type": "image/png; charset=binary"})

    fetcher = MediaFetcher(client=httpx.AsyncClient(transport=httpx.MockTransport(handler)))

    fetched = await fetcher.fetch("https://pbs.twimg.com/profile_banners/42/1500x500")

    assert fetched.file_name == "1500x500.png"
    assert fetched.content_type == "image/png"
    assert fetched.size == 5
    assert await fetcher.fetch("https://pbs.twimg.com/media/missing.jpg") is None
    assert await fetcher.fetch("ftp://example.com/a.jpg") is None
    await fetcher.aclose()
