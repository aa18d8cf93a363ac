# Copyright (C) 2026 StableLlama
#
# This program is free software: you can redistribute it and/or modify
# it under the terms of the GNU General Public License as published by
# the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.

"""Defines the openai compat unit so this responsibility stays isolated, testable, and easy to evolve.

Binding for OpenAI-compatible Chat Completions APIs (OpenAI, DeepSeek):
POST {base_url}/chat/completions with {model, messages, stream}; the streamed
variant answers with ``data: {...}`` frames terminated by ``data: [DONE]``.
"""

from __future__ import annotations

import json as _json
from typing import Any, AsyncIterator, Dict, List, Sequence

import httpx

from chatcompare.core.config import coerce_timeout
from chatcompare.models.chat import ChatMessage, ModelChat
from chatcompare.models.providers import ProviderModel, ProviderType
from chatcompare.services.exceptions import UpstreamError
from chatcompare.services.llm.llm_logging import (
    add_llm_log,
    create_log_entry,
    finish_log_entry,
)
from chatcompare.services.llm.llm_request_helpers import (
    build_headers,
    build_timeout,
    decode_body,
    response_body,
    upstream_error_message,
)
from chatcompare.services.providers.catalog import get_catalog
from chatcompare.utils.stream_helpers import DONE_SENTINEL, sse_data

OPENAI_BASE_URL = "https://api.openai.com/v1"
DEEPSEEK_BASE_URL = "https://api.deepseek.com/v1"


class OpenAICompatClient:
    def __init__(
        self,
        *,
        provider_id: str,
        label: str,
        api_key: str,
        base_url: str,
        timeout_s: int = 60,
        supports_images: bool = True,
        models: List[ProviderModel] | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.provider_id = provider_id
        self.label = label
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.timeout_s = timeout_s
        self.supports_images = supports_images
        self._models = list(models or [])
        self._transport = transport

    def get_models(self) -> List[ProviderModel]:
        return list(self._models)

    def _to_openai_messages(self, messages: Sequence[ChatMessage]) -> List[dict]:
        out = []
        for m in messages:
            if isinstance(m.content, str) or self.supports_images:
                out.append(m.to_wire())
            else:
                # text-only endpoint: drop image parts
                out.append({"role": m.role, "content": m.text()})
        return out

    def _prepare(
        self,
        messages: Sequence[ChatMessage],
        model: str,
        temperature: float | None,
        max_tokens: int | None,
        stream: bool,
    ) -> tuple[str, Dict[str, str], Dict[str, Any]]:
        url = f"{self.base_url}/chat/completions"
        body: Dict[str, Any] = {
            "model": model,
            "messages": self._to_openai_messages(messages),
            "stream": stream,
        }
        if isinstance(temperature, (int, float)):
            body["temperature"] = temperature
        if isinstance(max_tokens, int):
            body["max_tokens"] = max_tokens
        return url, build_headers(self.api_key), body

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=build_timeout(self.timeout_s), transport=self._transport
        )

    async def chat(self, request: ModelChat) -> str:
        url, headers, body = self._prepare(
            request.messages,
            request.model,
            request.temperature,
            request.max_tokens,
            stream=False,
        )
        log_entry = create_log_entry(url, "POST", headers, body)
        add_llm_log(log_entry)

        try:
            async with self._client() as client:
                resp = await client.post(url, headers=headers, json=body)
        except httpx.HTTPError as exc:
            finish_log_entry(log_entry, error=str(exc))
            raise UpstreamError(f"{self.label} request failed: {exc}") from exc

        data = response_body(resp)
        log_entry["response"]["status_code"] = resp.status_code
        log_entry["response"]["body"] = data
        if resp.status_code >= 400:
            msg = upstream_error_message(self.label, resp.status_code, data)
            finish_log_entry(log_entry, error=msg)
            raise UpstreamError(msg)
        finish_log_entry(log_entry)

        text = ""
        choices = data.get("choices") if isinstance(data, dict) else None
        if choices:
            text = (choices[0].get("message") or {}).get("content") or ""
        if not text:
            raise UpstreamError(f"Empty response from {self.label}")
        return text

    async def stream_chat(
        self,
        messages: Sequence[ChatMessage],
        model: str,
        *,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> AsyncIterator[Dict[str, Any]]:
        url, headers, body = self._prepare(
            messages, model, temperature, max_tokens, stream=True
        )
        log_entry = create_log_entry(url, "POST", headers, body, streaming=True)
        add_llm_log(log_entry)

        try:
            async with self._client() as client:
                async with client.stream(
                    "POST", url, headers=headers, json=body
                ) as resp:
                    log_entry["response"]["status_code"] = resp.status_code
                    if resp.status_code >= 400:
                        data = decode_body(await resp.aread())
                        msg = upstream_error_message(
                            self.label, resp.status_code, data
                        )
                        finish_log_entry(log_entry, error=msg)
                        raise UpstreamError(msg)

                    async for line in resp.aiter_lines():
                        data_str = sse_data(line)
                        if not data_str:
                            continue
                        if data_str == DONE_SENTINEL:
                            break
                        try:
                            chunk = _json.loads(data_str)
                        except ValueError:
                            continue
                        if not isinstance(chunk, dict):
                            continue
                        if chunk.get("error"):
                            msg = upstream_error_message(
                                self.label, resp.status_code, chunk
                            )
                            finish_log_entry(log_entry, error=msg)
                            raise UpstreamError(msg)

                        choices = chunk.get("choices") or []
                        if not choices:
                            continue
                        content = (choices[0].get("delta") or {}).get("content")
                        if content:
                            log_entry["response"]["full_content"] += content
                            yield {"content": content}
        except httpx.HTTPError as exc:
            finish_log_entry(log_entry, error=str(exc))
            raise UpstreamError(f"{self.label} request failed: {exc}") from exc

        finish_log_entry(log_entry)


def _build(
    provider_id: str,
    label: str,
    default_base_url: str,
    supports_images: bool,
    api_key: str,
    settings: Dict[str, Any],
) -> OpenAICompatClient:
    return OpenAICompatClient(
        provider_id=provider_id,
        label=label,
        api_key=api_key,
        base_url=str(settings.get("base_url") or default_base_url),
        timeout_s=coerce_timeout(settings.get("timeout_s")),
        supports_images=supports_images,
        models=get_catalog(provider_id, {"providers": {provider_id: settings}}),
    )


def build_openai_client(api_key: str, settings: Dict[str, Any]) -> OpenAICompatClient:
    return _build(
        ProviderType.OPENAI.value, "OpenAI", OPENAI_BASE_URL, True, api_key, settings
    )


def build_deepseek_client(
    api_key: str, settings: Dict[str, Any]
) -> OpenAICompatClient:
    return _build(
        ProviderType.DEEPSEEK.value,
        "DeepSeek",
        DEEPSEEK_BASE_URL,
        False,
        api_key,
        settings,
    )
