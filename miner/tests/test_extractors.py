import json
import unittest

import httpx

from crawler.infra.http import HttpFetcher
from miner.adapters.shopee_affiliate import ShopeeAffiliateClient
from miner.errors import UpstreamError
from miner.extractors.shopee_product import INVALID_URL_MESSAGE, NOT_FOUND_MESSAGE, ShopeeProductExtractor
from miner.extractors.shopee_video import (
    FETCH_FAILED_MESSAGE,
    NO_VIDEO_MESSAGE,
    ShopeeVideoExtractor,
    parse_video_page,
    redir_target,
)
from miner.extractors.sora_video import FAILURE_MESSAGE, SoraVideoExtractor, download_video, extract_video_id

CDN = "https://down-br.img.susercontent.com/file/"
AFFILIATE_HOST = "open-api.affiliate.shopee.com.br"

VIDEO_PAGE = """
<html><head>
<meta property="og:title" content="Fone Bluetooth em uso">
<meta property="og:image" content="https://cf.shopee.com.br/file/cover1">
</head><body><script>
window.__DATA__ = {"nickname":"lojaoficial","playUrl":"https:\\/\\/sv.shopee.com.br\\/v\\/abc.mp4"};
</script></body></html>
"""


def _fetcher(handler) -> HttpFetcher:
    return HttpFetcher(httpx.AsyncClient(transport=httpx.MockTransport(handler)))


class ShopeeVideoTests(unittest.IsolatedAsyncioTestCase):
    def test_parse_video_page(self):
        video = parse_video_page("https://sv.shopee.com.br/share-video/1", VIDEO_PAGE)
        self.assertTrue(video.success)
        self.assertEqual(video.video_url, "https://sv.shopee.com.br/v/abc.mp4")
        self.assertEqual(video.title, "Fone Bluetooth em uso")
        self.assertEqual(video.creator, "lojaoficial")
        self.assertEqual(video.thumbnail_url, "https://cf.shopee.com.br/file/cover1")

    def test_page_without_video_is_not_success(self):
        video = parse_video_page("https://sv.shopee.com.br/share-video/1", "<html><title>Shopee</title></html>")
        self.assertFalse(video.success)
        self.assertEqual(video.error, NO_VIDEO_MESSAGE)

    def test_redir_target(self):
        url = "https://shopee.com.br/universal-link?redir=https%3A%2F%2Fsv.shopee.com.br%2Fshare-video%2F9"
        self.assertEqual(redir_target(url), "https://sv.shopee.com.br/share-video/9")
        self.assertIsNone(redir_target("https://shopee.com.br/x"))

    async def test_redir_parameter_is_followed(self):
        requested = []

        def handler(request):
            requested.append(request.url.host)
            if request.url.host == "sv.shopee.com.br":
                return httpx.Response(200, text=VIDEO_PAGE)
            return httpx.Response(200, text="<html></html>")

        url = "https://shopee.com.br/universal-link?redir=https%3A%2F%2Fsv.shopee.com.br%2Fshare-video%2F9"
        async with _fetcher(handler) as fetcher:
            video = await ShopeeVideoExtractor(fetcher).extract(url)

        self.assertEqual(requested, ["shopee.com.br", "sv.shopee.com.br"])
        self.assertTrue(video.success)
        self.assertEqual(video.original_url, url)

    async def test_soft_redirect_is_followed(self):
        def handler(request):
            if request.url.host == "sv.shopee.com.br":
                return httpx.Response(200, text=VIDEO_PAGE)
            return httpx.Response(
                200, text='<meta http-equiv="refresh" content="0;url=https://sv.shopee.com.br/share-video/9">'
            )

        async with _fetcher(handler) as fetcher:
            video = await ShopeeVideoExtractor(fetcher).extract("https://shp.ee/abc")

        self.assertEqual(video.video_url, "https://sv.shopee.com.br/v/abc.mp4")

    async def test_http_error_is_reported(self):
        def handler(request):
            return httpx.Response(404, text="")

        async with _fetcher(handler) as fetcher:
            video = await ShopeeVideoExtractor(fetcher).extract("https://sv.shopee.com.br/share-video/1")

        self.assertFalse(video.success)
        self.assertEqual(video.error, FETCH_FAILED_MESSAGE)

    async def test_malformed_url_is_reported(self):
        def handler(request):
            raise AssertionError("no request expected")

        async with _fetcher(handler) as fetcher:
            video = await ShopeeVideoExtractor(fetcher).extract("https://shopee.com.br:abc/x")

        self.assertFalse(video.success)
        self.assertEqual(video.error, FETCH_FAILED_MESSAGE)


class SoraTests(unittest.IsolatedAsyncioTestCase):
    def test_video_id(self):
        self.assertEqual(extract_video_id("https://sora.chatgpt.com/p/s_68abc123def"), "s_68abc123def")
        self.assertEqual(extract_video_id("https://sora.chatgpt.com/g?id=s_xyz987"), "s_xyz987")
        self.assertIsNone(extract_video_id("https://sora.chatgpt.com/"))

    async def test_mirror_probe_wins(self):
        probed = []

        def handler(request):
            probed.append((request.method, request.url.host))
            if request.method == "HEAD" and request.url.host == "oscdn2.dyysy.com":
                return httpx.Response(200, headers={"content-type": "video/mp4"})
            return httpx.Response(404)

        async with _fetcher(handler) as fetcher:
            data = await SoraVideoExtractor(fetcher).extract("https://sora.chatgpt.com/p/s_68abc123def")

        self.assertTrue(data.success)
        self.assertEqual(data.video_url, "https://oscdn2.dyysy.com/MP4/s_68abc123def.mp4")
        self.assertFalse(data.has_watermark)
        self.assertEqual(data.method, "cdn-direct-dyysy")
        self.assertEqual(probed, [("HEAD", "oscdn2.dyysy.com")])

    async def test_non_video_mirror_falls_through_to_page(self):
        def handler(request):
            if request.method == "HEAD":
                if request.url.host == "oscdn2.dyysy.com":
                    return httpx.Response(200, headers={"content-type": "text/html"})
                return httpx.Response(404)
            return httpx.Response(
                200,
                text='<title>Gato astronauta</title><script>{"videoUrl":"https://videos.example/v.mp4",'
                '"prompt":"um gato flutuando no espaco"}</script>',
            )

        async with _fetcher(handler) as fetcher:
            data = await SoraVideoExtractor(fetcher).extract("https://sora.chatgpt.com/p/s_68abc123def")

        self.assertEqual(data.method, "direct-fetch")
        self.assertEqual(data.video_url, "https://videos.example/v.mp4")
        self.assertEqual(data.title, "Gato astronauta")
        self.assertEqual(data.prompt, "um gato flutuando no espaco")

    async def test_nothing_found(self):
        def handler(request):
            return httpx.Response(404)

        async with _fetcher(handler) as fetcher:
            data = await SoraVideoExtractor(fetcher).extract("https://sora.chatgpt.com/p/s_68abc123def")

        self.assertFalse(data.success)
        self.assertEqual(data.error, FAILURE_MESSAGE)

    async def test_download_unescapes_url(self):
        def handler(request):
            self.assertEqual(request.url.params["y"], "2")
            return httpx.Response(200, content=b"mp4-bytes")

        async with _fetcher(handler) as fetcher:
            content, content_type = await download_video(fetcher, "https://videos.example/v.mp4?x=1&amp;y=2")

        self.assertEqual(content, b"mp4-bytes")
        self.assertEqual(content_type, "video/mp4")

    async def test_download_error(self):
        def handler(request):
            return httpx.Response(403)

        async with _fetcher(handler) as fetcher:
            with self.assertRaises(UpstreamError) as ctx:
                await download_video(fetcher, "https://videos.example/v.mp4")
        self.assertEqual(ctx.exception.status_code, 403)

    async def test_download_unreachable_or_malformed_url(self):
        def handler(request):
            raise httpx.ConnectError("offline", request=request)

        async with _fetcher(handler) as fetcher:
            for url in ("https://videos.example/v.mp4", "https://videos.example:abc/v.mp4"):
                with self.assertRaises(UpstreamError) as ctx:
                    await download_video(fetcher, url)
                self.assertEqual(ctx.exception.status_code, 502)


class ShopeeProductTests(unittest.IsolatedAsyncioTestCase):
    async def test_non_shopee_url_is_rejected(self):
        async with _fetcher(lambda request: httpx.Response(500)) as fetcher:
            product = await ShopeeProductExtractor(fetcher).extract("https://example.com/x")
        self.assertFalse(product.success)
        self.assertEqual(product.error, INVALID_URL_MESSAGE)

    async def test_internal_api_is_tried_first(self):
        def handler(request):
            if request.url.path == "/api/v4/item/get":
                return httpx.Response(
                    200,
                    json={"error": None, "data": {"name": "Fone Bluetooth", "image": "a1b2c3", "images": ["a1b2c3", "d4e5f6"]}},
                )
            return httpx.Response(200, text="<html></html>")

        async with _fetcher(handler) as fetcher:
            product = await ShopeeProductExtractor(fetcher).extract("https://shopee.com.br/Fone-i.123.456")

        self.assertTrue(product.success)
        self.assertEqual(product.method, "internal-api")
        self.assertEqual(product.title, "Fone Bluetooth")
        self.assertEqual(product.images, [CDN + "a1b2c3", CDN + "d4e5f6"])

    async def test_html_scrape_is_last_resort(self):
        page = (
            '<html><head><meta property="og:title" content="Fone Sem Fio | Shopee Brasil">'
            f'<meta property="og:image" content="{CDN}a1b2c3_tn"></head>'
            '<body><img src="/static/logo.png"></body></html>'
        )

        def handler(request):
            if request.url.path.startswith("/api/"):
                return httpx.Response(403)
            return httpx.Response(200, text=page)

        async with _fetcher(handler) as fetcher:
            product = await ShopeeProductExtractor(fetcher).extract("https://shopee.com.br/Fone-i.123.456")

        self.assertEqual(product.method, "html-scrape")
        self.assertEqual(product.title, "Fone Sem Fio")
        self.assertEqual(product.images, [CDN + "a1b2c3"])
        self.assertEqual(product.to_dict()["success"], True)

    async def test_no_images_anywhere(self):
        def handler(request):
            if request.url.path.startswith("/api/"):
                return httpx.Response(403)
            return httpx.Response(200, text="<html></html>")

        async with _fetcher(handler) as fetcher:
            product = await ShopeeProductExtractor(fetcher).extract("https://shopee.com.br/Fone-i.123.456")

        self.assertFalse(product.success)
        self.assertEqual(product.error, NOT_FOUND_MESSAGE)
        self.assertEqual(product.title, "Fone")

    async def test_malformed_url_is_not_found(self):
        def handler(request):
            raise AssertionError("no request expected")

        async with _fetcher(handler) as fetcher:
            product = await ShopeeProductExtractor(fetcher).extract("https://shopee.com.br:abc/x")

        self.assertFalse(product.success)
        self.assertEqual(product.error, NOT_FOUND_MESSAGE)


class ShopeeProductAffiliateTests(unittest.IsolatedAsyncioTestCase):
    """Internal API blocked, so the affiliate steps decide."""

    def _handler(self, shop_nodes, keyword_nodes):
        self.queries = []

        def handler(request):
            if request.url.host == AFFILIATE_HOST:
                self.auth = request.headers["Authorization"]
                query = json.loads(request.content)["query"]
                self.queries.append(query)
                nodes = shop_nodes if "shopId:" in query else keyword_nodes
                return httpx.Response(200, json={"data": {"productOfferV2": {"nodes": nodes}}})
            if request.url.path.startswith("/api/"):
                return httpx.Response(403)
            return httpx.Response(200, text="<html></html>")

        return handler

    async def _extract(self, handler):
        async with _fetcher(handler) as fetcher:
            extractor = ShopeeProductExtractor(fetcher, ShopeeAffiliateClient("app", "secret", fetcher))
            return await extractor.extract("https://shopee.com.br/Fone-i.123.456")

    async def test_shop_lookup_wins(self):
        handler = self._handler(
            [{"itemId": 456, "productName": "Fone Bluetooth", "imageUrl": CDN + "aff1", "shopId": 123}],
            [{"itemId": 456, "productName": "Outro", "imageUrl": CDN + "aff2"}],
        )
        product = await self._extract(handler)

        self.assertTrue(product.success)
        self.assertEqual(product.method, "affiliate-shop")
        self.assertEqual(product.title, "Fone Bluetooth")
        self.assertEqual(product.images, [CDN + "aff1"])
        self.assertEqual(len(self.queries), 1)
        self.assertIn("shopId: 123", self.queries[0])
        self.assertTrue(self.auth.startswith("SHA256 Credential=app, Timestamp="))

    async def test_keyword_lookup_runs_when_shop_has_no_exact_match(self):
        handler = self._handler(
            [{"itemId": 999, "productName": "Capinha", "imageUrl": CDN + "other"}],
            [{"itemId": 456, "productName": "Fone Bluetooth", "imageUrl": CDN + "aff2"}],
        )
        product = await self._extract(handler)

        self.assertTrue(product.success)
        self.assertEqual(product.method, "affiliate-keyword")
        self.assertEqual(product.images, [CDN + "aff2"])
        self.assertEqual(len(self.queries), 2)
        self.assertIn('keyword: "Fone"', self.queries[1])


if __name__ == "__main__":
    unittest.main()
