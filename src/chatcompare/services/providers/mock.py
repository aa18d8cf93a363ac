# Copyright (C) 2026 StableLlama
#
# This program is free software: you can redistribute it and/or modify
# it under the terms of the GNU General Public License as published by
# the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.

"""Defines the mock unit so this responsibility stays isolated, testable, and easy to evolve.

Scripted in-process provider. Used for local runs without vendor credentials
(``CHATCMP_MOCK_PROVIDERS=1``) and as the test double for adapters.
"""

from __future__ import annotations

import asyncio
from typing import Any, AsyncIterator, Dict, List, Sequence

from chatcompare.models.chat import ChatMessage, ModelChat
from chatcompare.models.providers import ProviderModel
from chatcompare.services.exceptions import UnknownProviderError, UpstreamError
from chatcompare.services.providers.catalog import get_catalog


class MockProvider:
    """Replies with fixed text, or echoes the last user message.

    ``fail_after`` makes ``stream_chat`` raise ``error`` once that many chunks
    were produced (0 fails before the first chunk); ``chat`` fails whenever
    ``fail_after`` is set.
    """

    def __init__(
        self,
        provider_id: str,
        *,
        reply: str | None = None,
        chunks: Sequence[str] | None = None,
        fail_after: int | None = None,
        error: str = "Mock provider failure",
        delay_s: float = 0.0,
    ):
        self.provider_id = provider_id
        self.reply = reply
        self.chunks = list(chunks) if chunks is not None else None
        self.fail_after = fail_after
        self.error = error
        self.delay_s = delay_s
        self.chat_calls: List[ModelChat] = []
        self.stream_calls: List[Dict[str, Any]] = []
        self.closed_streams = 0

    def get_models(self) -> List[ProviderModel]:
        try:
            return get_catalog(self.provider_id)
        except UnknownProviderError:
            return []

    def _text_for(self, messages: Sequence[ChatMessage], model: str) -> str:
        if self.reply is not None:
            return self.reply
        if self.chunks is not None:
            return "".join(self.chunks)
        last_user = next(
            (m.text() for m in reversed(messages) if m.role == "user"), ""
        )
        return f"(mock {model}) You said: {last_user}"

    async def chat(self, request: ModelChat) -> str:
        self.chat_calls.append(request)
        if self.delay_s:
            await asyncio.sleep(self.delay_s)
        if self.fail_after is not None:
            raise UpstreamError(self.error)
        return self._text_for(request.messages, request.model)

    async def stream_chat(
        self,
        messages: Sequence[ChatMessage],
        model: str,
        *,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> AsyncIterator[Dict[str, Any]]:
        self.stream_calls.append(
            {
                "messages": list(messages),
                "model": model,
                "temperature": temperature,
                "max_tokens": max_tokens,
            }
        )
        chunks = self.chunks
        if chunks is None:
            chunks = self._text_for(messages, model).split(" ")
            chunks = [c + " " for c in chunks[:-1]] + chunks[-1:]
        try:
            for i, chunk in enumerate(chunks):
                if self.fail_after is not None and i >= self.fail_after:
                    raise UpstreamError(self.error)
                if self.delay_s:
                    await asyncio.sleep(self.delay_s)
                yield {"content": chunk}
            if self.fail_after is not None and self.fail_after >= len(chunks):
                raise UpstreamError(self.error)
        finally:
            self.closed_streams += 1


def build_mock_client(provider_id: str):
    def factory(api_key: str, settings: Dict[str, Any]) -> MockProvider:
        return MockProvider(provider_id, delay_s=0.02)

    return factory
