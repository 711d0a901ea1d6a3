import json
import random
import unittest

import httpx

from crawler.infra.http import HttpFetcher
from miner.errors import ConfigurationError, MalformedPayloadError, RateLimitedError
from miner.gateway import (
    IMAGE_MODEL,
    SCENE_PROMPTS,
    TEXT_MODEL,
    AiGatewayClient,
    choose_scene,
    message_image,
    parse_pin_caption,
)


def _reply(content=None, images=None):
    message = {"role": "assistant", "content": content}
    if images is not None:
        message["images"] = images
    return {"choices": [{"message": message}]}


def _client(handler, key="gw-key") -> AiGatewayClient:
    fetcher = HttpFetcher(httpx.AsyncClient(transport=httpx.MockTransport(handler)))
    return AiGatewayClient(key, fetcher, url="https://gateway.test/v1/chat/completions")


class HelperTests(unittest.TestCase):
    def test_pin_caption_json_inside_prose(self):
        content = 'Claro! {"title": "Look de verão", "description": "Leve e fresco #moda"} Espero ter ajudado.'
        self.assertEqual(
            parse_pin_caption(content, "Vestido"),
            {"title": "Look de verão", "description": "Leve e fresco #moda"},
        )

    def test_pin_caption_fallback(self):
        caption = parse_pin_caption("sem json aqui", "Vestido Floral")
        self.assertEqual(caption["title"], "✨ Vestido Floral")
        self.assertIn("Vestido Floral", caption["description"])
        self.assertIn("#moda", caption["description"])

    def test_message_image_variants(self):
        self.assertEqual(message_image(_reply(images=[{"image_url": {"url": "data:image/png;base64,AA"}}])), "data:image/png;base64,AA")
        self.assertEqual(message_image(_reply(images=[{"url": "https://img/1.png"}])), "https://img/1.png")
        self.assertEqual(
            message_image(_reply(images=[{"inline_data": {"mime_type": "image/jpeg", "data": "BB"}}])),
            "data:image/jpeg;base64,BB",
        )
        self.assertIsNone(message_image(_reply(content="só texto")))
        self.assertIsNone(message_image({}))

    def test_scene_index_wraps(self):
        self.assertEqual(choose_scene(0), SCENE_PROMPTS[0])
        self.assertEqual(choose_scene(len(SCENE_PROMPTS) + 2), SCENE_PROMPTS[2])
        self.assertIn(choose_scene(None, random.Random(7)), SCENE_PROMPTS)


class AiGatewayClientTests(unittest.IsolatedAsyncioTestCase):
    async def test_video_caption(self):
        seen = {}

        def handler(request):
            seen["auth"] = request.headers["Authorization"]
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json=_reply(content="  Confira o link na bio! #achados  "))

        caption = await _client(handler).video_caption("Fone Bluetooth", "unboxing", platform="facebook")

        self.assertEqual(caption, "Confira o link na bio! #achados")
        self.assertEqual(seen["auth"], "Bearer gw-key")
        self.assertEqual(seen["body"]["model"], TEXT_MODEL)
        self.assertEqual(seen["body"]["messages"][0]["role"], "system")
        self.assertIn("Facebook Reels", seen["body"]["messages"][1]["content"])
        self.assertIn("unboxing", seen["body"]["messages"][1]["content"])

    async def test_rate_limit_is_mapped(self):
        def handler(request):
            return httpx.Response(429, json={"error": "slow down"})

        with self.assertRaises(RateLimitedError):
            await _client(handler).rewrite_title("Fone Bluetooth")

    async def test_missing_key(self):
        def handler(request):
            raise AssertionError("no request expected")

        with self.assertRaises(ConfigurationError):
            await _client(handler, key="").rewrite_caption("legenda")

    async def test_reply_without_choices_is_malformed(self):
        def handler(request):
            return httpx.Response(200, json={"id": "x"})

        with self.assertRaises(MalformedPayloadError):
            await _client(handler).rewrite_title("Fone")

    async def test_pinterest_image_with_reference(self):
        seen = {}

        def handler(request):
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json=_reply(images=[{"image_url": {"url": "data:image/png;base64,CC"}}]))

        result = await _client(handler).pinterest_image("Vestido", image_url="https://img/ref.jpg", scene_index=1)

        self.assertEqual(result, {"image": "data:image/png;base64,CC", "sceneUsed": SCENE_PROMPTS[1]})
        body = seen["body"]
        self.assertEqual(body["model"], IMAGE_MODEL)
        self.assertEqual(body["modalities"], ["image", "text"])
        parts = body["messages"][0]["content"]
        self.assertEqual(parts[1], {"type": "image_url", "image_url": {"url": "https://img/ref.jpg"}})

    async def test_pinterest_image_without_image_is_malformed(self):
        def handler(request):
            return httpx.Response(200, json=_reply(content="não consegui"))

        with self.assertRaises(MalformedPayloadError):
            await _client(handler).pinterest_image("Vestido", scene_index=0)


if __name__ == "__main__":
    unittest.main()
