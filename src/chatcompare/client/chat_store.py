# Copyright (C) 2026 StableLlama
#
# This program is free software: you can redistribute it and/or modify
# it under the terms of the GNU General Public License as published by
# the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.

"""Defines the chat store unit so this responsibility stays isolated, testable, and easy to evolve.

Per-provider conversation state on the client. Streamed events are folded into
a placeholder assistant message by ``MessageAccumulator``; at most one stream
runs per provider at a time.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

from chatcompare.client.api_client import ApiClient
from chatcompare.models.chat import (
    ChatErrorResult,
    ChatMessage,
    ContentEvent,
    DoneEvent,
    ErrorEvent,
    ModelChat,
    StreamEvent,
)
from chatcompare.models.providers import ALL_PROVIDERS, ProviderModel

logger = logging.getLogger(__name__)

ERROR_PREFIX = "Error: "


@dataclass
class LocalMessage:
    role: str
    content: str = ""
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    error: bool = False
    elapsed_ms: Optional[int] = None


@dataclass
class ProviderChatState:
    messages: List[LocalMessage] = field(default_factory=list)
    loading: bool = False
    streaming: bool = False


@dataclass
class SendResult:
    message: LocalMessage


class MessageAccumulator:
    """Apply stream events to one assistant message.

    Content events append in order, ``done`` records the elapsed time and an
    ``error`` event replaces whatever partial text arrived with the error text.
    """

    def __init__(self, message: LocalMessage):
        self.message = message
        self.finished = False

    def on_event(self, event: StreamEvent) -> None:
        if self.finished:
            return
        if isinstance(event, ContentEvent):
            self.message.content += event.content
        elif isinstance(event, DoneEvent):
            self.message.elapsed_ms = event.elapsed_ms
            self.finished = True
        elif isinstance(event, ErrorEvent):
            self.fail(event.error)

    def fail(self, error: str) -> None:
        self.message.content = ERROR_PREFIX + error
        self.message.error = True
        self.finished = True

    def interrupted(self) -> None:
        """Mark a stream that closed without ``done`` or ``error``."""
        partial = self.message.content
        if not partial:
            self.fail("Stream ended without a response")
        else:
            self.fail(f"Stream ended before completion. Partial reply: {partial}")


def _busy(state: ProviderChatState) -> bool:
    return state.loading or state.streaming


def _history(messages: Sequence[LocalMessage]) -> List[ChatMessage]:
    return [
        ChatMessage(role=m.role, content=m.content)
        for m in messages
        if not m.error and m.content
    ]


class ChatStore:
    def __init__(self, api: ApiClient):
        self.api = api
        self._states: Dict[str, ProviderChatState] = {}
        self._models: Dict[str, List[ProviderModel]] = {}

    def ensure_provider(self, provider: str) -> ProviderChatState:
        return self._states.setdefault(provider, ProviderChatState())

    def get_messages(self, provider: str) -> List[LocalMessage]:
        return list(self.ensure_provider(provider).messages)

    def is_loading(self, provider: str) -> bool:
        return self.ensure_provider(provider).loading

    def is_streaming(self, provider: str) -> bool:
        return self.ensure_provider(provider).streaming

    def clear(self, provider: Optional[str] = None) -> None:
        """Drop conversation history; a busy slot keeps its state object."""
        targets = list(self._states) if provider is None else [provider]
        for pid in targets:
            state = self._states.get(pid)
            if state is None:
                continue
            if _busy(state):
                # the running call still owns and resets the flags
                state.messages.clear()
            else:
                del self._states[pid]

    async def load_models(
        self, providers: Optional[Sequence[str]] = None
    ) -> Dict[str, List[ProviderModel]]:
        wanted = list(providers) if providers else list(ALL_PROVIDERS)
        for entry in await self.api.get_provider_models(wanted):
            self._models[entry.type] = list(entry.models)
        return dict(self._models)

    def get_models(self, provider: str) -> List[ProviderModel]:
        return list(self._models.get(provider, []))

    def _build_request(
        self,
        state: ProviderChatState,
        provider: str,
        prompt: str,
        model: str,
        temperature: Optional[float],
        max_tokens: Optional[int],
    ) -> ModelChat:
        messages = _history(state.messages)
        messages.append(ChatMessage(role="user", content=prompt))
        return ModelChat(
            provider=provider,
            model=model,
            messages=messages,
            temperature=temperature,
            max_tokens=max_tokens,
        )

    async def send_stream(
        self,
        provider: str,
        prompt: str,
        model: str,
        *,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
    ) -> Optional[SendResult]:
        """Send ``prompt`` and stream the reply into a new assistant message.

        Returns None without side effects while another request for
        ``provider`` is in flight. Transport failures end up as an error
        message rather than propagating.
        """
        state = self.ensure_provider(provider)
        if _busy(state):
            logger.info("Request already running for %s; ignoring send", provider)
            return None

        request = self._build_request(
            state, provider, prompt, model, temperature, max_tokens
        )
        state.messages.append(LocalMessage(role="user", content=prompt))
        reply = LocalMessage(role="assistant")
        state.messages.append(reply)
        accumulator = MessageAccumulator(reply)

        state.streaming = True
        try:
            await self.api.chat_stream(request, accumulator.on_event)
            if not accumulator.finished:
                accumulator.interrupted()
        except Exception as exc:
            logger.error("Streaming chat with %s failed: %s", provider, exc)
            accumulator.fail(str(exc) or type(exc).__name__)
        finally:
            state.streaming = False
        return SendResult(reply)

    async def send(
        self,
        provider: str,
        prompt: str,
        model: str,
        *,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
    ) -> Optional[SendResult]:
        """Single-shot variant of ``send_stream`` backed by the batch endpoint."""
        state = self.ensure_provider(provider)
        if _busy(state):
            logger.info("Request already running for %s; ignoring send", provider)
            return None

        request = self._build_request(
            state, provider, prompt, model, temperature, max_tokens
        )
        state.messages.append(LocalMessage(role="user", content=prompt))
        reply = LocalMessage(role="assistant")
        state.messages.append(reply)

        state.loading = True
        try:
            results = await self.api.chat_batch([request])
            result = results[0]
            if isinstance(result, ChatErrorResult):
                reply.content = ERROR_PREFIX + result.error
                reply.error = True
            else:
                reply.content = result.text
            reply.elapsed_ms = result.elapsed_ms
        except Exception as exc:
            logger.error("Chat with %s failed: %s", provider, exc)
            reply.content = ERROR_PREFIX + (str(exc) or type(exc).__name__)
            reply.error = True
        finally:
            state.loading = False
        return SendResult(reply)
