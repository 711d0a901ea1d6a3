import json
import unittest
from datetime import datetime, timezone
from urllib.parse import parse_qs, urlsplit

import httpx

from crawler.infra.http import HttpFetcher
from miner.adapters.apify import (
    FacebookAdsVideoAdapter,
    InstagramVideoAdapter,
    TikTokVideoAdapter,
    normalize_instagram_item,
    normalize_tiktok_item,
    pick,
)
from miner.adapters.base import AdapterContext
from miner.adapters.search_links import SearchLinkAdapter, build_search_url, search_link_record
from miner.models import ProductIdentity, VideoSource
from miner.settings import MinerSettings
from utils.keywords import generate_keywords

NAME = "Fone de Ouvido Bluetooth"
IDENTITY = ProductIdentity(
    canonical_url="https://shopee.com.br/Fone-de-Ouvido-Bluetooth-i.123.456",
    name=NAME,
    keywords=tuple(generate_keywords(NAME)),
    item_id="456",
    shop_id="123",
)
NOW = datetime(2024, 5, 1, tzinfo=timezone.utc)


def _context(handler, **settings) -> AdapterContext:
    fetcher = HttpFetcher(httpx.AsyncClient(transport=httpx.MockTransport(handler)))
    return AdapterContext.build(MinerSettings(**settings), fetcher, {"limits": {"apify": {"results": 5, "take": 2}}})


def _no_network(request):
    raise AssertionError(f"unexpected request to {request.url}")


class SearchLinkTests(unittest.IsolatedAsyncioTestCase):
    def test_round_trip_recovers_keyword(self):
        for source, param in [
            (VideoSource.TIKTOK, "q"),
            (VideoSource.INSTAGRAM, "q"),
            (VideoSource.YOUTUBE, "search_query"),
            (VideoSource.PINTEREST, "q"),
        ]:
            url = build_search_url(source, "fone ouvido bluetooth")
            self.assertEqual(parse_qs(urlsplit(url).query)[param], ["fone ouvido bluetooth"])

    def test_youtube_link_filters_shorts(self):
        url = build_search_url(VideoSource.YOUTUBE, "fone")
        self.assertEqual(parse_qs(urlsplit(url).query)["sp"], ["EgIYAQ=="])

    def test_record_uses_main_phrase(self):
        record = search_link_record(VideoSource.PINTEREST, IDENTITY)
        self.assertTrue(record.is_search_link)
        self.assertTrue(record.video_url.startswith("https://br.pinterest.com/search/videos/"))
        self.assertIn("fone ouvido bluetooth", record.title)
        self.assertEqual(record.to_dict()["isSearchLink"], True)

    async def test_adapter_emits_single_link(self):
        adapter = SearchLinkAdapter(_context(_no_network), source="youtube")
        records, status = await adapter.fetch(IDENTITY, now=NOW)
        self.assertEqual(len(records), 1)
        self.assertEqual(records[0].source, VideoSource.YOUTUBE)
        self.assertTrue(status.healthy)


class NormalizerTests(unittest.TestCase):
    def test_pick_walks_dotted_paths(self):
        item = {"video": {"playAddr": "https://p"}, "empty": ""}
        self.assertEqual(pick(item, "empty", "video.downloadAddr", "video.playAddr"), "https://p")
        self.assertIsNone(pick(item, "missing.path"))

    def test_tiktok_item(self):
        record = normalize_tiktok_item(
            {
                "webVideoUrl": "https://www.tiktok.com/@ana/video/1",
                "video": {"playAddr": "https://v16.tiktokcdn.com/1.mp4"},
                "text": "Meu fone novo",
                "authorMeta": {"name": "ana"},
                "covers": ["https://p16.tiktokcdn.com/1.jpg"],
                "videoMeta": {"duration": 15},
            },
            "fone",
        )
        self.assertEqual(record.video_url, "https://v16.tiktokcdn.com/1.mp4")
        self.assertEqual(record.author, "ana")
        self.assertEqual(record.duration, "15s")
        self.assertEqual(record.thumbnail_url, "https://p16.tiktokcdn.com/1.jpg")
        self.assertEqual(record.source_url, "https://www.tiktok.com/@ana/video/1")

    def test_tiktok_item_without_video_is_dropped(self):
        self.assertIsNone(normalize_tiktok_item({"text": "sem video"}, "fone"))

    def test_instagram_image_post_is_never_a_video(self):
        item = {"type": "Image", "displayUrl": "https://scontent/1.jpg", "shortCode": "abc"}
        self.assertIsNone(normalize_instagram_item(item, "fone"))

    def test_instagram_reel(self):
        record = normalize_instagram_item(
            {
                "type": "Video",
                "videoUrl": "https://scontent/1.mp4",
                "displayUrl": "https://scontent/1.jpg",
                "shortCode": "abc",
                "ownerUsername": "loja",
            },
            "fone",
        )
        self.assertEqual(record.video_url, "https://scontent/1.mp4")
        self.assertEqual(record.thumbnail_url, "https://scontent/1.jpg")
        self.assertEqual(record.source_url, "https://www.instagram.com/p/abc/")
        self.assertEqual(record.title, "Reel #fone")


class ApifyAdapterTests(unittest.IsolatedAsyncioTestCase):
    async def test_unconfigured_actor_falls_back_to_search_link(self):
        adapter = TikTokVideoAdapter(_context(_no_network))
        records, status = await adapter.fetch(IDENTITY, now=NOW)

        self.assertEqual(len(records), 1)
        self.assertTrue(records[0].is_search_link)
        self.assertTrue(status.healthy)
        self.assertEqual(status.extra["method"], "search-link")

    async def test_actor_results_are_normalised_and_capped(self):
        seen = {}

        def handler(request):
            seen["path"] = request.url.path
            seen["token"] = request.url.params["token"]
            seen["body"] = json.loads(request.content)
            return httpx.Response(
                200,
                json=[
                    {"videoUrl": "https://v/1.mp4", "text": "um"},
                    {"text": "sem video"},
                    {"videoUrl": "https://v/2.mp4", "text": "dois"},
                    {"videoUrl": "https://v/3.mp4", "text": "tres"},
                ],
            )

        adapter = TikTokVideoAdapter(_context(handler, apify_api_token="apify-token"))
        records, status = await adapter.fetch(IDENTITY, now=NOW)

        self.assertEqual(seen["path"], "/v2/acts/clockworks~tiktok-scraper/run-sync-get-dataset-items")
        self.assertEqual(seen["token"], "apify-token")
        self.assertEqual(seen["body"]["searchQueries"], ["Fone de Ouvido Bluetooth"])
        self.assertEqual(seen["body"]["resultsPerPage"], 5)
        # take=2 items are read; the second has no video and is dropped
        self.assertEqual([r.video_url for r in records], ["https://v/1.mp4"])
        self.assertEqual(status.extra["method"], "apify")

    async def test_actor_failure_still_yields_search_link(self):
        def handler(request):
            return httpx.Response(500, text="actor failed token=apify-token")

        adapter = InstagramVideoAdapter(_context(handler, apify_api_token="apify-token"))
        records, status = await adapter.fetch(IDENTITY, now=NOW)

        self.assertTrue(records[0].is_search_link)
        self.assertIn("apify", status.extra["detail"])
        self.assertNotIn("apify-token", status.extra["detail"])

    async def test_facebook_failure_is_reported(self):
        def handler(request):
            return httpx.Response(502, text="bad gateway")

        adapter = FacebookAdsVideoAdapter(_context(handler, apify_api_token="apify-token"))
        records, status = await adapter.fetch(IDENTITY, now=NOW)

        self.assertEqual(records, [])
        self.assertFalse(status.healthy)
        self.assertEqual(status.last_error, "Erro ao buscar anúncios no Facebook")

    async def test_facebook_unconfigured_is_silent(self):
        adapter = FacebookAdsVideoAdapter(_context(_no_network))
        records, status = await adapter.fetch(IDENTITY, now=NOW)
        self.assertEqual(records, [])
        self.assertTrue(status.healthy)


if __name__ == "__main__":
    unittest.main()
