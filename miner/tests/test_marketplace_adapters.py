import json
import unittest
from datetime import datetime, timezone

import httpx

from crawler.infra.http import HttpFetcher
from miner.adapters.aliexpress import AliExpressVideoAdapter, absolute_product_link
from miner.adapters.base import AdapterContext
from miner.adapters.shopee_internal import CDN_BASE, ShopeeItemVideoAdapter, parse_item_payload
from miner.adapters.shopee_videos import ShopeeSearchVideoAdapter, ShopeeShopVideoAdapter, extract_many
from miner.models import ExtractedVideo, ProductIdentity
from miner.settings import MinerSettings

IDENTITY = ProductIdentity(
    canonical_url="https://shopee.com.br/Fone-Bluetooth-i.123.456",
    name="Fone Bluetooth",
    keywords=("fone bluetooth", "fone", "bluetooth"),
    item_id="456",
    shop_id="123",
)
NOW = datetime(2024, 5, 1, tzinfo=timezone.utc)

VIDEO_PAGE = (
    '<meta property="og:title" content="Review do fone">'
    '<script>{"playUrl":"https://sv.shopee.com.br/v/review.mp4"}</script>'
)


def _context(handler, **settings) -> AdapterContext:
    fetcher = HttpFetcher(httpx.AsyncClient(transport=httpx.MockTransport(handler)))
    return AdapterContext.build(MinerSettings(**settings), fetcher, {})


def _firecrawl_html(html):
    return httpx.Response(200, json={"success": True, "data": {"html": html}})


class ShopeeItemVideoTests(unittest.IsolatedAsyncioTestCase):
    def test_parse_item_payload(self):
        item = parse_item_payload(
            {
                "error": 0,
                "data": {
                    "item": {
                        "name": " Fone ",
                        "image": "a1",
                        "images": ["a1", "b2"],
                        "tier_variations": [{"images": ["c3"]}],
                        "video_info_list": [{"url": "https://cvf/v.mp4"}, {"thumb_url": "no-url"}],
                    }
                },
            }
        )
        self.assertEqual(item.title, "Fone")
        self.assertEqual(item.images, [CDN_BASE + "a1", CDN_BASE + "b2", CDN_BASE + "c3"])
        self.assertEqual([v["url"] for v in item.videos], ["https://cvf/v.mp4"])

    def test_error_payload_is_ignored(self):
        self.assertIsNone(parse_item_payload({"error": 90309999, "data": None}))

    async def test_listing_videos_become_records(self):
        def handler(request):
            if request.url.path == "/api/v4/item/get":
                return httpx.Response(
                    200,
                    json={
                        "data": {
                            "name": "Fone Bluetooth",
                            "image": "a1",
                            "video_info_list": [
                                {"default_format": {"url": "https://cvf.shopee.com.br/v1.mp4"}, "thumb_url": "t1", "duration": 12}
                            ],
                        }
                    },
                )
            return httpx.Response(404)

        records, status = await ShopeeItemVideoAdapter(_context(handler)).fetch(IDENTITY, now=NOW)

        self.assertEqual(len(records), 1)
        self.assertEqual(records[0].video_url, "https://cvf.shopee.com.br/v1.mp4")
        self.assertEqual(records[0].thumbnail_url, CDN_BASE + "t1")
        self.assertEqual(records[0].duration, "12s")
        self.assertEqual(status.items_last_fetch, 1)

    async def test_blocked_listing_is_reported(self):
        requested = []

        def handler(request):
            requested.append(request.url.path)
            if request.url.path.startswith("/api/v2"):
                raise httpx.ConnectError("reset", request=request)
            return httpx.Response(403, text="blocked")

        records, status = await ShopeeItemVideoAdapter(_context(handler)).fetch(IDENTITY, now=NOW)

        self.assertEqual(records, [])
        self.assertFalse(status.healthy)
        self.assertEqual(status.last_error, "Erro ao buscar vídeos do produto Shopee")
        self.assertGreater(len(requested), 1)


class ShopeeShopVideoTests(unittest.IsolatedAsyncioTestCase):
    async def test_sibling_products_are_extracted(self):
        extracted = []

        def handler(request):
            if request.url.host == "open-api.affiliate.shopee.com.br":
                nodes = [
                    {"itemId": 456, "productName": "Este produto", "productLink": "https://s.shopee.com.br/SELF"},
                    {"itemId": 777, "productName": "Capinha", "productLink": "https://s.shopee.com.br/AAA", "imageUrl": "https://img/c.jpg"},
                    {"itemId": 888, "productName": "Cabo", "productLink": "https://s.shopee.com.br/BBB"},
                ]
                return httpx.Response(200, json={"data": {"productOfferV2": {"nodes": nodes}}})
            extracted.append(request.url.path)
            if request.url.path == "/AAA":
                return httpx.Response(200, text=VIDEO_PAGE)
            return httpx.Response(200, text="<html></html>")

        adapter = ShopeeShopVideoAdapter(_context(handler, shopee_app_id="app", shopee_app_secret="secret"))
        records, status = await adapter.fetch(IDENTITY, now=NOW)

        self.assertNotIn("/SELF", extracted)
        self.assertEqual(len(records), 1)
        self.assertEqual(records[0].video_url, "https://sv.shopee.com.br/v/review.mp4")
        self.assertEqual(records[0].title, "Review do fone")
        self.assertEqual(records[0].thumbnail_url, "https://img/c.jpg")
        self.assertEqual(records[0].source_url, "https://s.shopee.com.br/AAA")
        self.assertTrue(status.healthy)

    async def test_without_affiliate_credentials_is_skipped(self):
        def handler(request):
            raise AssertionError("no request expected")

        records, status = await ShopeeShopVideoAdapter(_context(handler)).fetch(IDENTITY, now=NOW)
        self.assertEqual(records, [])
        self.assertTrue(status.healthy)

    async def test_affiliate_failure_is_reported(self):
        def handler(request):
            return httpx.Response(500, text="down")

        adapter = ShopeeShopVideoAdapter(_context(handler, shopee_app_id="app", shopee_app_secret="secret"))
        records, status = await adapter.fetch(IDENTITY, now=NOW)
        self.assertEqual(records, [])
        self.assertEqual(status.last_error, "Erro ao buscar vídeos da loja Shopee")


class ShopeeSearchVideoTests(unittest.IsolatedAsyncioTestCase):
    async def test_rendered_search_links_are_extracted(self):
        seen = {}

        def handler(request):
            if request.url.host == "api.firecrawl.dev":
                seen["target"] = json.loads(request.content)["url"]
                return _firecrawl_html(
                    '<a href="https://sv.shopee.com.br/share-video/1">1</a>'
                    '<a href="https://sv.shopee.com.br/share-video/1">dup</a>'
                )
            return httpx.Response(200, text=VIDEO_PAGE)

        adapter = ShopeeSearchVideoAdapter(_context(handler, firecrawl_api_key="fc-key"))
        records, status = await adapter.fetch(IDENTITY, now=NOW)

        self.assertEqual(seen["target"], "https://shopee.com.br/search?keyword=fone+bluetooth&type=video")
        self.assertEqual([r.source_url for r in records], ["https://sv.shopee.com.br/share-video/1"])
        self.assertTrue(status.healthy)

    def test_collect_links_makes_product_hrefs_absolute(self):
        adapter = ShopeeSearchVideoAdapter(_context(lambda r: httpx.Response(404)))
        links = adapter.collect_links('<a href="/Capinha-i.1.2?x=1">c</a> https://s.shopee.com.br/Zz9')
        self.assertEqual(links, ["https://s.shopee.com.br/Zz9", "https://shopee.com.br/Capinha-i.1.2?x=1"])

    async def test_one_broken_link_keeps_the_others(self):
        class _Extractor:
            async def extract(self, link):
                if link.endswith("bad"):
                    raise ValueError("unparseable page")
                return ExtractedVideo(original_url=link, video_url=link + ".mp4", success=True)

        found = await extract_many(_Extractor(), ["https://sv/1", "https://sv/bad", "https://sv/2"])

        self.assertEqual([link for link, _video in found], ["https://sv/1", "https://sv/2"])
        self.assertEqual(found[1][1].video_url, "https://sv/2.mp4")

    async def test_malformed_scraped_link_is_skipped(self):
        def handler(request):
            if request.url.host == "api.firecrawl.dev":
                return _firecrawl_html(
                    '<a href="https://sv.shopee.com.br/share-video/2">ok</a>'
                    '<a href="https://shopee.com.br:abc/Capinha-i.1.2">x</a>'
                )
            return httpx.Response(200, text=VIDEO_PAGE)

        adapter = ShopeeSearchVideoAdapter(_context(handler, firecrawl_api_key="fc-key"))
        records, status = await adapter.fetch(IDENTITY, now=NOW)

        self.assertEqual([r.source_url for r in records], ["https://sv.shopee.com.br/share-video/2"])
        self.assertTrue(status.healthy)

    async def test_firecrawl_failure_is_reported(self):
        def handler(request):
            return httpx.Response(500, text="render failed")

        adapter = ShopeeSearchVideoAdapter(_context(handler, firecrawl_api_key="fc-key"))
        records, status = await adapter.fetch(IDENTITY, now=NOW)
        self.assertEqual(records, [])
        self.assertFalse(status.healthy)


class AliExpressTests(unittest.IsolatedAsyncioTestCase):
    def test_absolute_product_link(self):
        self.assertEqual(absolute_product_link("//pt.aliexpress.com/item/1.html"), "https://pt.aliexpress.com/item/1.html")
        self.assertEqual(absolute_product_link("/item/2.html"), "https://pt.aliexpress.com/item/2.html")

    async def test_search_then_product_pages(self):
        rendered = []

        def handler(request):
            target = json.loads(request.content)["url"]
            rendered.append(target)
            if "wholesale" in target:
                return _firecrawl_html('<a href="//pt.aliexpress.com/item/1005001.html">a</a><a href="/item/1005002.html">b</a>')
            if target.endswith("1005001.html"):
                return _firecrawl_html('<video src="https://video.alicdn.com/play/u/1/p/1/e/6/t/10301/1.mp4"></video>')
            return _firecrawl_html("<html></html>")

        adapter = AliExpressVideoAdapter(_context(handler, firecrawl_api_key="fc-key"))
        records, status = await adapter.fetch(IDENTITY, now=NOW)

        self.assertEqual(rendered[0], "https://pt.aliexpress.com/wholesale?SearchText=fone+bluetooth")
        self.assertEqual(len(rendered), 3)
        self.assertEqual(len(records), 1)
        self.assertEqual(records[0].video_url, "https://video.alicdn.com/play/u/1/p/1/e/6/t/10301/1.mp4")
        self.assertEqual(records[0].source_url, "https://pt.aliexpress.com/item/1005001.html")
        self.assertEqual(records[0].title, "Vídeo AliExpress - fone bluetooth")

    async def test_without_firecrawl_is_skipped(self):
        def handler(request):
            raise AssertionError("no request expected")

        records, status = await AliExpressVideoAdapter(_context(handler)).fetch(IDENTITY, now=NOW)
        self.assertEqual(records, [])
        self.assertTrue(status.healthy)


if __name__ == "__main__":
    unittest.main()
