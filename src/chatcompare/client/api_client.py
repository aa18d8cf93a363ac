# Copyright (C) 2026 StableLlama
#
# This program is free software: you can redistribute it and/or modify
# it under the terms of the GNU General Public License as published by
# the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.

"""Defines the api client unit so this responsibility stays isolated, testable, and easy to evolve.

Async HTTP client for the ChatCompare API. Requests, responses and errors are
logged through ``logging``; ``{"data": ...}`` envelopes are unwrapped.
"""

from __future__ import annotations

import logging
from typing import Any, List, Optional, Sequence

import httpx

from chatcompare.client.stream_reader import EventCallback, dispatch_lines
from chatcompare.models.chat import CHAT_RESULT, ChatResult, ModelChat
from chatcompare.models.providers import ProviderModels

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "http://127.0.0.1:8000"
API_PREFIX = "/api/v1"


class ApiClient:
    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        *,
        timeout_s: int = 60,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout_s = timeout_s
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.base_url,
            timeout=httpx.Timeout(float(self.timeout_s)),
            transport=self._transport,
        )

    async def _request(self, path: str, method: str, body: Any = None) -> Any:
        url = API_PREFIX + path
        logger.debug("API request %s %s body=%s", method, url, body)
        try:
            async with self._client() as client:
                resp = await client.request(method, url, json=body)
                resp.raise_for_status()
                data = resp.json()
        except httpx.HTTPError as exc:
            logger.error("API error %s %s: %s", method, url, exc)
            raise
        logger.debug("API response %s: %s", url, data)

        if isinstance(data, dict) and "data" in data:
            return data["data"]
        return data

    async def chat_batch(self, chats: Sequence[ModelChat]) -> List[ChatResult]:
        data = await self._request(
            "/chat-batch", "POST", [c.to_wire() for c in chats]
        )
        return [CHAT_RESULT.validate_python(item) for item in data]

    async def get_provider_models(
        self, providers: Sequence[str]
    ) -> List[ProviderModels]:
        data = await self._request(
            "/provider-models", "POST", {"providers": list(providers)}
        )
        return [ProviderModels.model_validate(item) for item in data]

    async def compare(
        self, prompt: str, providers: Optional[Sequence[str]] = None
    ) -> List[ChatResult]:
        body: dict[str, Any] = {"prompt": prompt}
        if providers:
            body["providers"] = list(providers)
        data = await self._request("/compare", "POST", body)
        return [CHAT_RESULT.validate_python(item) for item in data["results"]]

    async def chat_stream(self, request: ModelChat, on_event: EventCallback) -> None:
        """Stream one chat, calling ``on_event`` for every event as it arrives.

        Raises ``httpx.HTTPError`` when the connection cannot be opened or the
        server answers with an error status. Once the body is streaming,
        failures reach the caller as an error event and this returns normally.
        """
        url = API_PREFIX + "/chat-stream"
        body = request.to_wire()
        logger.debug("API stream request POST %s body=%s", url, body)

        async with self._client() as client:
            try:
                async with client.stream(
                    "POST", url, json=body, headers={"Accept": "text/event-stream"}
                ) as resp:
                    if resp.status_code >= 400:
                        await resp.aread()
                        resp.raise_for_status()
                    count = await dispatch_lines(
                        resp.aiter_lines(), on_event, request.provider
                    )
            except httpx.HTTPError as exc:
                logger.error("API error POST %s: %s", url, exc)
                raise
        logger.debug("API stream %s finished after %d events", url, count)
