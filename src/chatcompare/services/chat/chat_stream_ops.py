# Copyright (C) 2026 StableLlama
#
# This program is free software: you can redistribute it and/or modify
# it under the terms of the GNU General Public License as published by
# the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.

"""Defines the chat stream ops unit so this responsibility stays isolated, testable, and easy to evolve.

Server side of the streaming protocol. A ``ChatStreamSession`` drives one
provider's ``stream_chat`` and renders it as SSE records:

    data: {"provider": ..., "type": "content", "content": ...}   (repeated)
    data: {"provider": ..., "type": "done", "elapsedMs": ...}
    data: [DONE]

or, on any failure, a single ``{"type": "error", "error": ...}`` record with
no ``done`` and no sentinel.
"""

from __future__ import annotations

import asyncio
import time
from enum import Enum
from typing import Any, AsyncIterator, Awaitable, Callable, Mapping, Optional

from chatcompare.models.chat import ContentEvent, DoneEvent, ErrorEvent, ModelChat
from chatcompare.models.chat import StreamEvent
from chatcompare.services.chat.chat_api_helpers import elapsed_ms, error_message
from chatcompare.services.providers.registry import ProviderRegistry
from chatcompare.utils.stream_helpers import SSE_DONE_LINE, format_sse

DisconnectProbe = Callable[[], Awaitable[bool]]


class StreamState(str, Enum):
    IDLE = "idle"
    STREAMING = "streaming"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


def _fragment(chunk: Any) -> str:
    if isinstance(chunk, Mapping):
        return chunk.get("content") or ""
    if isinstance(chunk, str):
        return chunk
    return ""


async def _release(chunks: Any) -> None:
    aclose = getattr(chunks, "aclose", None)
    if aclose is not None:
        await aclose()


class ChatStreamSession:
    """One (provider, request) stream. Sessions share no state.

    Every non-empty provider fragment becomes one ``content`` event, in order.
    Empty fragments carry no text and are not forwarded.
    """

    def __init__(
        self,
        registry: ProviderRegistry,
        request: ModelChat,
        is_disconnected: Optional[DisconnectProbe] = None,
    ):
        self._registry = registry
        self.request = request
        self._is_disconnected = is_disconnected
        self.state = StreamState.IDLE

    async def events(self) -> AsyncIterator[StreamEvent]:
        """Yield typed events; exactly one terminal event unless cancelled."""
        if self.state is not StreamState.IDLE:
            raise RuntimeError(f"stream already {self.state.value}")
        self.state = StreamState.STREAMING

        provider = self.request.provider
        start = time.perf_counter()
        chunks = None
        try:
            client = self._registry.resolve(provider)
            chunks = client.stream_chat(
                self.request.messages,
                self.request.model,
                temperature=self.request.temperature,
                max_tokens=self.request.max_tokens,
            )
            async for chunk in chunks:
                if self._is_disconnected is not None and await self._is_disconnected():
                    self.state = StreamState.CANCELLED
                    return
                content = _fragment(chunk)
                if content:
                    yield ContentEvent(provider=provider, content=content)
        except (asyncio.CancelledError, GeneratorExit):
            self.state = StreamState.CANCELLED
            raise
        except Exception as e:
            self.state = StreamState.FAILED
            yield ErrorEvent(provider=provider, error=error_message(e))
            return
        finally:
            if chunks is not None:
                await _release(chunks)

        self.state = StreamState.COMPLETED
        yield DoneEvent(provider=provider, elapsed_ms=elapsed_ms(start))

    async def sse(self) -> AsyncIterator[str]:
        """Wire rendering of ``events``; the sentinel follows ``done`` only."""
        events = self.events()
        try:
            async for event in events:
                yield format_sse(event.to_wire())
        finally:
            await events.aclose()
        if self.state is StreamState.COMPLETED:
            yield SSE_DONE_LINE
