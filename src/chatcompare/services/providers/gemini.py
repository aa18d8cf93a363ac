# Copyright (C) 2026 StableLlama
#
# This program is free software: you can redistribute it and/or modify
# it under the terms of the GNU General Public License as published by
# the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.

"""Defines the gemini unit so this responsibility stays isolated, testable, and easy to evolve.

Binding for the Gemini REST API (generativelanguage v1beta).

- single shot: POST {base}/models/{model}:generateContent
- streaming:   POST {base}/models/{model}:streamGenerateContent?alt=sse

Chat roles map ``assistant -> model``; system messages are joined into
``systemInstruction``.
"""

from __future__ import annotations

import json as _json
import mimetypes
from typing import Any, AsyncIterator, Dict, List, Sequence

import httpx

from chatcompare.core.config import coerce_timeout
from chatcompare.models.chat import ChatMessage, ImagePart, ModelChat, TextPart
from chatcompare.models.providers import ProviderModel, ProviderType
from chatcompare.services.exceptions import UpstreamError
from chatcompare.services.llm.llm_logging import (
    add_llm_log,
    create_log_entry,
    finish_log_entry,
)
from chatcompare.services.llm.llm_request_helpers import (
    build_timeout,
    decode_body,
    response_body,
    upstream_error_message,
)
from chatcompare.services.providers.catalog import get_catalog
from chatcompare.utils.stream_helpers import sse_data

GEMINI_BASE_URL = "https://generativelanguage.googleapis.com/v1beta"
LABEL = "Gemini"


def _image_part(url: str) -> Dict[str, Any]:
    if url.startswith("data:") and ";base64," in url:
        header, data = url[5:].split(";base64,", 1)
        return {"inlineData": {"mimeType": header or "image/png", "data": data}}
    mime_type, _ = mimetypes.guess_type(url)
    return {"fileData": {"fileUri": url, "mimeType": mime_type or "image/jpeg"}}


def _to_parts(message: ChatMessage) -> List[Dict[str, Any]]:
    if isinstance(message.content, str):
        return [{"text": message.content}]
    parts: List[Dict[str, Any]] = []
    for p in message.content:
        if isinstance(p, TextPart):
            parts.append({"text": p.text})
        elif isinstance(p, ImagePart):
            parts.append(_image_part(p.image_url.url))
    return parts


def to_gemini_contents(
    messages: Sequence[ChatMessage],
) -> tuple[List[Dict[str, Any]], Dict[str, Any] | None]:
    """Split chat messages into Gemini ``contents`` and ``systemInstruction``."""
    contents: List[Dict[str, Any]] = []
    system_parts: List[Dict[str, Any]] = []
    for m in messages:
        if m.role == "system":
            system_parts.append({"text": m.text()})
            continue
        role = "model" if m.role == "assistant" else "user"
        contents.append({"role": role, "parts": _to_parts(m)})
    system = {"parts": system_parts} if system_parts else None
    return contents, system


def extract_text(data: Any) -> str:
    """Concatenate the text parts of the first candidate."""
    if not isinstance(data, dict):
        return ""
    candidates = data.get("candidates") or []
    if not candidates:
        return ""
    parts = ((candidates[0] or {}).get("content") or {}).get("parts") or []
    return "".join(p.get("text", "") for p in parts if isinstance(p, dict))


def _blocked_reason(data: Any) -> str | None:
    if not isinstance(data, dict):
        return None
    feedback = data.get("promptFeedback") or {}
    return feedback.get("blockReason")


class GeminiClient:
    def __init__(
        self,
        *,
        api_key: str,
        base_url: str = GEMINI_BASE_URL,
        timeout_s: int = 60,
        models: List[ProviderModel] | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.provider_id = ProviderType.GEMINI.value
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.timeout_s = timeout_s
        self._models = list(models or [])
        self._transport = transport

    def get_models(self) -> List[ProviderModel]:
        return list(self._models)

    def _headers(self) -> Dict[str, str]:
        return {"Content-Type": "application/json", "x-goog-api-key": self.api_key}

    def _body(
        self,
        messages: Sequence[ChatMessage],
        temperature: float | None,
        max_tokens: int | None,
    ) -> Dict[str, Any]:
        contents, system = to_gemini_contents(messages)
        if not contents:
            raise UpstreamError("No messages provided")
        body: Dict[str, Any] = {"contents": contents}
        if system:
            body["systemInstruction"] = system
        generation: Dict[str, Any] = {}
        if isinstance(temperature, (int, float)):
            generation["temperature"] = temperature
        if isinstance(max_tokens, int):
            generation["maxOutputTokens"] = max_tokens
        if generation:
            body["generationConfig"] = generation
        return body

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=build_timeout(self.timeout_s), transport=self._transport
        )

    async def chat(self, request: ModelChat) -> str:
        url = f"{self.base_url}/models/{request.model}:generateContent"
        headers = self._headers()
        body = self._body(request.messages, request.temperature, request.max_tokens)
        log_entry = create_log_entry(url, "POST", headers, body)
        add_llm_log(log_entry)

        try:
            async with self._client() as client:
                resp = await client.post(url, headers=headers, json=body)
        except httpx.HTTPError as exc:
            finish_log_entry(log_entry, error=str(exc))
            raise UpstreamError(f"{LABEL} request failed: {exc}") from exc

        data = response_body(resp)
        log_entry["response"]["status_code"] = resp.status_code
        log_entry["response"]["body"] = data
        if resp.status_code >= 400:
            msg = upstream_error_message(LABEL, resp.status_code, data)
            finish_log_entry(log_entry, error=msg)
            raise UpstreamError(msg)
        finish_log_entry(log_entry)

        reason = _blocked_reason(data)
        if reason:
            raise UpstreamError(f"{LABEL} blocked the prompt: {reason}")
        text = extract_text(data)
        if not text:
            raise UpstreamError(f"Empty response from {LABEL}")
        return text

    async def stream_chat(
        self,
        messages: Sequence[ChatMessage],
        model: str,
        *,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> AsyncIterator[Dict[str, Any]]:
        url = f"{self.base_url}/models/{model}:streamGenerateContent"
        headers = self._headers()
        body = self._body(messages, temperature, max_tokens)
        log_entry = create_log_entry(url, "POST", headers, body, streaming=True)
        add_llm_log(log_entry)

        try:
            async with self._client() as client:
                async with client.stream(
                    "POST", url, params={"alt": "sse"}, headers=headers, json=body
                ) as resp:
                    log_entry["response"]["status_code"] = resp.status_code
                    if resp.status_code >= 400:
                        data = decode_body(await resp.aread())
                        msg = upstream_error_message(LABEL, resp.status_code, data)
                        finish_log_entry(log_entry, error=msg)
                        raise UpstreamError(msg)

                    async for line in resp.aiter_lines():
                        data_str = sse_data(line)
                        if not data_str:
                            continue
                        try:
                            chunk = _json.loads(data_str)
                        except ValueError:
                            continue
                        if isinstance(chunk, dict) and chunk.get("error"):
                            msg = upstream_error_message(
                                LABEL, resp.status_code, chunk
                            )
                            finish_log_entry(log_entry, error=msg)
                            raise UpstreamError(msg)
                        reason = _blocked_reason(chunk)
                        if reason:
                            msg = f"{LABEL} blocked the prompt: {reason}"
                            finish_log_entry(log_entry, error=msg)
                            raise UpstreamError(msg)

                        content = extract_text(chunk)
                        if content:
                            log_entry["response"]["full_content"] += content
                            yield {"content": content}
        except httpx.HTTPError as exc:
            finish_log_entry(log_entry, error=str(exc))
            raise UpstreamError(f"{LABEL} request failed: {exc}") from exc

        finish_log_entry(log_entry)


def build_gemini_client(api_key: str, settings: Dict[str, Any]) -> GeminiClient:
    provider_id = ProviderType.GEMINI.value
    return GeminiClient(
        api_key=api_key,
        base_url=str(settings.get("base_url") or GEMINI_BASE_URL),
        timeout_s=coerce_timeout(settings.get("timeout_s")),
        models=get_catalog(provider_id, {"providers": {provider_id: settings}}),
    )
