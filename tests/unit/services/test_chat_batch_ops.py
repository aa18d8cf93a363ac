# Copyright (C) 2026 StableLlama
#
# This program is free software: you can redistribute it and/or modify
# it under the terms of the GNU General Public License as published by
# the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.

from unittest import IsolatedAsyncioTestCase

from chatcompare.models.chat import (
    ChatErrorResult,
    ChatMessage,
    ChatSuccessResult,
    ModelChat,
)
from chatcompare.services.chat.chat_batch_ops import run_batch
from chatcompare.services.providers.mock import MockProvider
from chatcompare.services.providers.registry import ProviderRegistry


def _registry(providers, keys=("openai", "gemini", "deepseek")):
    machine = {"providers": {pid: {"api_key": "test-key"} for pid in keys}}
    factories = {pid: (lambda p: lambda k, s: p)(p) for pid, p in providers.items()}
    return ProviderRegistry(machine, factories)


def _chat(provider, text="Hello", model="m"):
    return ModelChat(
        provider=provider,
        model=model,
        messages=[ChatMessage(role="user", content=text)],
    )


class ChatBatchOpsTest(IsolatedAsyncioTestCase):
    async def test_two_providers_keep_order(self):
        openai = MockProvider("openai", reply="Hi from A", delay_s=0.05)
        gemini = MockProvider("gemini", reply="Hi from B")
        registry = _registry({"openai": openai, "gemini": gemini})

        results = await run_batch(registry, [_chat("openai"), _chat("gemini")])

        self.assertEqual(len(results), 2)
        self.assertIsInstance(results[0], ChatSuccessResult)
        self.assertEqual(results[0].provider, "openai")
        self.assertEqual(results[0].text, "Hi from A")
        self.assertEqual(results[1].provider, "gemini")
        self.assertEqual(results[1].text, "Hi from B")
        self.assertGreaterEqual(results[0].elapsed_ms, 0)

    async def test_empty_batch(self):
        self.assertEqual(await run_batch(_registry({}), []), [])

    async def test_unknown_provider_is_per_item_error(self):
        openai = MockProvider("openai", reply="ok")
        registry = _registry({"openai": openai})

        results = await run_batch(registry, [_chat("openai"), _chat("foo")])

        self.assertIsInstance(results[0], ChatSuccessResult)
        self.assertIsInstance(results[1], ChatErrorResult)
        self.assertEqual(results[1].provider, "foo")
        self.assertEqual(results[1].error, "Unknown provider: foo")
        self.assertGreaterEqual(results[1].elapsed_ms, 0)

    async def test_missing_key_is_per_item_error(self):
        gemini = MockProvider("gemini", reply="unused")
        registry = _registry({"gemini": gemini}, keys=())

        (result,) = await run_batch(registry, [_chat("gemini")])

        self.assertIsInstance(result, ChatErrorResult)
        self.assertEqual(result.error, "Missing API key for provider gemini")
        self.assertEqual(gemini.chat_calls, [])

    async def test_upstream_failure_does_not_affect_siblings(self):
        bad = MockProvider("openai", fail_after=0, error="rate limited (code: 429)")
        good = MockProvider("deepseek", reply="fine")
        registry = _registry({"openai": bad, "deepseek": good})

        results = await run_batch(registry, [_chat("openai"), _chat("deepseek")])

        self.assertEqual(results[0].to_wire()["error"], "rate limited (code: 429)")
        self.assertEqual(results[1].to_wire()["text"], "fine")

    async def test_request_is_passed_through(self):
        openai = MockProvider("openai")
        registry = _registry({"openai": openai})
        chat = ModelChat(
            provider="openai",
            model="gpt-4o",
            messages=[ChatMessage(role="user", content="Hello")],
            temperature=0.2,
            maxTokens=50,
        )

        (result,) = await run_batch(registry, [chat])

        self.assertEqual(result.text, "(mock gpt-4o) You said: Hello")
        self.assertEqual(openai.chat_calls[0].max_tokens, 50)
        self.assertEqual(openai.chat_calls[0].temperature, 0.2)
