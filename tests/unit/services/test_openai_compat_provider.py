# Copyright (C) 2026 StableLlama
#
# This program is free software: you can redistribute it and/or modify
# it under the terms of the GNU General Public License as published by
# the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.

import json
from unittest import IsolatedAsyncioTestCase

import httpx

from chatcompare.models.chat import ChatMessage, ModelChat
from chatcompare.services.exceptions import UpstreamError
from chatcompare.services.llm.llm_logging import llm_logs
from chatcompare.services.providers.openai_compat import OpenAICompatClient


def _sse(*records) -> bytes:
    return "".join(f"data: {r}\n\n" for r in records).encode("utf-8")


def _delta(text: str) -> str:
    return json.dumps({"choices": [{"delta": {"content": text}}]})


class OpenAICompatClientTest(IsolatedAsyncioTestCase):
    def _client(self, handler, **kwargs) -> OpenAICompatClient:
        params = dict(
            provider_id="openai",
            label="OpenAI",
            api_key="sk-test",
            base_url="https://fake.local/v1",
            transport=httpx.MockTransport(handler),
        )
        params.update(kwargs)
        return OpenAICompatClient(**params)

    async def test_chat_posts_completion_request(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["auth"] = request.headers.get("authorization")
            seen["body"] = json.loads(request.content)
            return httpx.Response(
                200, json={"choices": [{"message": {"content": "Hi there"}}]}
            )

        client = self._client(handler)
        chat = ModelChat(
            provider="openai",
            model="gpt-4o-mini",
            messages=[ChatMessage(role="user", content="Hello")],
            maxTokens=32,
        )

        text = await client.chat(chat)

        self.assertEqual(text, "Hi there")
        self.assertEqual(seen["url"], "https://fake.local/v1/chat/completions")
        self.assertEqual(seen["auth"], "Bearer sk-test")
        self.assertEqual(seen["body"]["model"], "gpt-4o-mini")
        self.assertFalse(seen["body"]["stream"])
        self.assertEqual(seen["body"]["max_tokens"], 32)
        self.assertNotIn("temperature", seen["body"])
        self.assertEqual(
            seen["body"]["messages"], [{"role": "user", "content": "Hello"}]
        )

        self.assertEqual(len(llm_logs), 1)
        self.assertEqual(llm_logs[0]["request"]["headers"]["Authorization"], "***")
        self.assertEqual(llm_logs[0]["response"]["status_code"], 200)

    async def test_chat_error_carries_vendor_message(self):
        def handler(request):
            return httpx.Response(
                401, json={"error": {"message": "Incorrect API key provided"}}
            )

        with self.assertRaises(UpstreamError) as ctx:
            await self._client(handler).chat(
                ModelChat(provider="openai", model="m", messages=[])
            )
        self.assertEqual(str(ctx.exception), "Incorrect API key provided (code: 401)")
        self.assertEqual(
            llm_logs[0]["response"]["error_detail"],
            "Incorrect API key provided (code: 401)",
        )

    async def test_chat_empty_reply(self):
        def handler(request):
            return httpx.Response(200, json={"choices": []})

        with self.assertRaises(UpstreamError) as ctx:
            await self._client(handler).chat(
                ModelChat(provider="openai", model="m", messages=[])
            )
        self.assertEqual(str(ctx.exception), "Empty response from OpenAI")

    async def test_stream_yields_deltas_until_done(self):
        def handler(request):
            body = json.loads(request.content)
            assert body["stream"] is True
            return httpx.Response(
                200,
                content=_sse(
                    json.dumps({"choices": [{"delta": {"role": "assistant"}}]}),
                    _delta("Hel"),
                    _delta("lo"),
                    "[DONE]",
                    _delta("ignored"),
                ),
                headers={"content-type": "text/event-stream"},
            )

        chunks = [
            c
            async for c in self._client(handler).stream_chat(
                [ChatMessage(role="user", content="Hi")], "gpt-4o"
            )
        ]

        self.assertEqual(chunks, [{"content": "Hel"}, {"content": "lo"}])
        self.assertEqual(llm_logs[0]["response"]["full_content"], "Hello")
        self.assertTrue(llm_logs[0]["response"]["streaming"])

    async def test_stream_http_error_status(self):
        def handler(request):
            return httpx.Response(429, json={"error": {"message": "Rate limit"}})

        with self.assertRaises(UpstreamError) as ctx:
            async for _ in self._client(handler).stream_chat([], "m"):
                pass
        self.assertEqual(str(ctx.exception), "Rate limit (code: 429)")

    async def test_stream_transport_failure(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        with self.assertRaises(UpstreamError) as ctx:
            async for _ in self._client(handler).stream_chat([], "m"):
                pass
        self.assertIn("connection refused", str(ctx.exception))

    async def test_text_only_endpoint_drops_images(self):
        seen = {}

        def handler(request):
            seen["body"] = json.loads(request.content)
            return httpx.Response(
                200, json={"choices": [{"message": {"content": "ok"}}]}
            )

        client = self._client(handler, provider_id="deepseek", supports_images=False)
        message = ChatMessage.model_validate(
            {
                "role": "user",
                "content": [
                    {"type": "text", "text": "What is this?"},
                    {"type": "image_url", "image_url": {"url": "https://x/y.png"}},
                ],
            }
        )
        await client.chat(ModelChat(provider="deepseek", model="m", messages=[message]))

        self.assertEqual(
            seen["body"]["messages"], [{"role": "user", "content": "What is this?"}]
        )
