# Copyright (C) 2026 StableLlama
#
# This program is free software: you can redistribute it and/or modify
# it under the terms of the GNU General Public License as published by
# the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.

"""Defines the chat unit so this responsibility stays isolated, testable, and easy to evolve.

API endpoints for batched and streamed chat with the configured providers.
"""

from typing import Any, Dict

from fastapi import APIRouter, Depends, Request
from fastapi.responses import StreamingResponse
from pydantic import ValidationError

from chatcompare.api.v1.common import get_registry, read_json_body
from chatcompare.models.chat import ChatMessage, CompareRequest, ModelChat
from chatcompare.models.providers import ProviderModelsRequest
from chatcompare.services.chat.chat_api_helpers import (
    describe_validation_error,
    parse_model_chat,
    parse_model_chat_list,
)
from chatcompare.services.chat.chat_batch_ops import run_batch
from chatcompare.services.chat.chat_stream_ops import ChatStreamSession
from chatcompare.services.exceptions import BadRequestError
from chatcompare.services.providers.registry import ProviderRegistry
from chatcompare.utils.stream_helpers import SSE_HEADERS

router = APIRouter(tags=["Chat"])


@router.post("/chat-batch")
async def api_chat_batch(
    request: Request, registry: ProviderRegistry = Depends(get_registry)
) -> Dict[str, Any]:
    """Run several single-shot chats concurrently.

    Body JSON: ``[{"provider", "messages", "model", "temperature"?, "maxTokens"?}, ...]``

    Returns ``{"data": [ChatResult, ...]}`` in request order. Provider failures
    are reported per item; only malformed input fails the whole request.
    """
    chats = parse_model_chat_list(await read_json_body(request))
    results = await run_batch(registry, chats)
    return {"data": [r.to_wire() for r in results]}


@router.post("/chat-stream")
async def api_chat_stream(
    request: Request, registry: ProviderRegistry = Depends(get_registry)
) -> StreamingResponse:
    """Stream one provider's reply as Server-Sent Events.

    Body JSON: ``{"provider", "messages", "model", "temperature"?, "maxTokens"?}``
    """
    chat = parse_model_chat(await read_json_body(request))
    session = ChatStreamSession(registry, chat, is_disconnected=request.is_disconnected)
    return StreamingResponse(
        session.sse(), media_type="text/event-stream", headers=SSE_HEADERS
    )


@router.post("/provider-models")
async def api_provider_models(
    request: Request, registry: ProviderRegistry = Depends(get_registry)
) -> Dict[str, Any]:
    payload = await read_json_body(request)
    try:
        body = ProviderModelsRequest.model_validate(payload or {})
    except ValidationError as e:
        raise BadRequestError(describe_validation_error(e)) from e

    data = [
        {"type": p, "models": [m.to_wire() for m in registry.models(p)]}
        for p in body.providers
    ]
    return {"data": data}


@router.post("/compare")
async def api_compare(
    request: Request, registry: ProviderRegistry = Depends(get_registry)
) -> Dict[str, Any]:
    """Send one prompt to several providers using each one's default model."""
    try:
        body = CompareRequest.model_validate(await read_json_body(request))
    except ValidationError as e:
        raise BadRequestError(describe_validation_error(e)) from e

    providers = body.providers or registry.provider_ids
    messages = [ChatMessage(role="user", content=body.prompt)]
    chats = [
        ModelChat(provider=p, messages=messages, model=registry.default_model(p))
        for p in providers
    ]
    results = await run_batch(registry, chats)
    return {"data": {"results": [r.to_wire() for r in results]}}
