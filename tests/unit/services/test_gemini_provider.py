# Copyright (C) 2026 StableLlama
#
# This program is free software: you can redistribute it and/or modify
# it under the terms of the GNU General Public License as published by
# the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.

import json
from unittest import IsolatedAsyncioTestCase, TestCase

import httpx

from chatcompare.models.chat import ChatMessage, ModelChat
from chatcompare.services.exceptions import UpstreamError
from chatcompare.services.llm.llm_logging import llm_logs
from chatcompare.services.providers.gemini import (
    GeminiClient,
    extract_text,
    to_gemini_contents,
)


def _candidate(text: str) -> dict:
    return {"candidates": [{"content": {"role": "model", "parts": [{"text": text}]}}]}


class GeminiMappingTest(TestCase):
    def test_roles_and_system_instruction(self):
        messages = [
            ChatMessage(role="system", content="Be brief."),
            ChatMessage(role="user", content="Hi"),
            ChatMessage(role="assistant", content="Hello!"),
            ChatMessage(role="user", content="Bye"),
        ]

        contents, system = to_gemini_contents(messages)

        self.assertEqual(system, {"parts": [{"text": "Be brief."}]})
        self.assertEqual([c["role"] for c in contents], ["user", "model", "user"])
        self.assertEqual(contents[1]["parts"], [{"text": "Hello!"}])

    def test_image_parts(self):
        message = ChatMessage.model_validate(
            {
                "role": "user",
                "content": [
                    {"type": "text", "text": "look"},
                    {
                        "type": "image_url",
                        "image_url": {"url": "data:image/png;base64,AAAA"},
                    },
                    {
                        "type": "image_url",
                        "image_url": {"url": "https://example.com/cat.jpg"},
                    },
                ],
            }
        )

        contents, system = to_gemini_contents([message])

        self.assertIsNone(system)
        parts = contents[0]["parts"]
        self.assertEqual(parts[0], {"text": "look"})
        self.assertEqual(
            parts[1], {"inlineData": {"mimeType": "image/png", "data": "AAAA"}}
        )
        self.assertEqual(parts[2]["fileData"]["fileUri"], "https://example.com/cat.jpg")
        self.assertEqual(parts[2]["fileData"]["mimeType"], "image/jpeg")

    def test_extract_text(self):
        data = {
            "candidates": [
                {"content": {"parts": [{"text": "a"}, {"text": "b"}, {"x": 1}]}}
            ]
        }
        self.assertEqual(extract_text(data), "ab")
        self.assertEqual(extract_text({"candidates": []}), "")
        self.assertEqual(extract_text("nope"), "")


class GeminiClientTest(IsolatedAsyncioTestCase):
    def _client(self, handler) -> GeminiClient:
        return GeminiClient(
            api_key="g-key",
            base_url="https://fake.local/v1beta",
            transport=httpx.MockTransport(handler),
        )

    async def test_chat_generate_content(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["key"] = request.headers.get("x-goog-api-key")
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json=_candidate("Hi from Gemini"))

        chat = ModelChat(
            provider="gemini",
            model="gemini-1.5-flash",
            messages=[ChatMessage(role="user", content="Hello")],
            temperature=0.3,
            maxTokens=64,
        )
        text = await self._client(handler).chat(chat)

        self.assertEqual(text, "Hi from Gemini")
        self.assertEqual(
            seen["url"],
            "https://fake.local/v1beta/models/gemini-1.5-flash:generateContent",
        )
        self.assertEqual(seen["key"], "g-key")
        self.assertEqual(
            seen["body"]["generationConfig"],
            {"temperature": 0.3, "maxOutputTokens": 64},
        )
        self.assertEqual(llm_logs[0]["request"]["headers"]["x-goog-api-key"], "***")

    async def test_chat_blocked_prompt(self):
        def handler(request):
            return httpx.Response(200, json={"promptFeedback": {"blockReason": "SAFETY"}})

        with self.assertRaises(UpstreamError) as ctx:
            await self._client(handler).chat(
                ModelChat(
                    provider="gemini",
                    model="m",
                    messages=[ChatMessage(role="user", content="x")],
                )
            )
        self.assertEqual(str(ctx.exception), "Gemini blocked the prompt: SAFETY")

    async def test_chat_without_messages(self):
        def handler(request):
            raise AssertionError("no request expected")

        with self.assertRaises(UpstreamError):
            await self._client(handler).chat(
                ModelChat(provider="gemini", model="m", messages=[])
            )

    async def test_stream_uses_sse_endpoint(self):
        seen = {}

        def handler(request):
            seen["url"] = request.url
            body = "".join(
                f"data: {json.dumps(_candidate(t))}\r\n\r\n" for t in ("Hel", "lo")
            )
            return httpx.Response(
                200,
                content=body.encode("utf-8"),
                headers={"content-type": "text/event-stream"},
            )

        chunks = [
            c
            async for c in self._client(handler).stream_chat(
                [ChatMessage(role="user", content="Hi")], "gemini-1.5-pro"
            )
        ]

        self.assertEqual(chunks, [{"content": "Hel"}, {"content": "lo"}])
        self.assertEqual(
            seen["url"].path, "/v1beta/models/gemini-1.5-pro:streamGenerateContent"
        )
        self.assertEqual(seen["url"].params["alt"], "sse")

    async def test_stream_error_status(self):
        def handler(request):
            return httpx.Response(
                400, json={"error": {"code": 400, "message": "API key not valid"}}
            )

        with self.assertRaises(UpstreamError) as ctx:
            async for _ in self._client(handler).stream_chat(
                [ChatMessage(role="user", content="Hi")], "m"
            ):
                pass
        self.assertEqual(str(ctx.exception), "API key not valid (code: 400)")
