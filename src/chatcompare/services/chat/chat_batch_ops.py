# Copyright (C) 2026 StableLlama
#
# This program is free software: you can redistribute it and/or modify
# it under the terms of the GNU General Public License as published by
# the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.

"""Defines the chat batch ops unit so this responsibility stays isolated, testable, and easy to evolve.

Fan-out of independent single-shot chat requests. Every outcome, including
provider resolution failures, is folded into a ``ChatResult``; nothing
raises past ``run_batch``.
"""

from __future__ import annotations

import asyncio
import time
from typing import List, Sequence

from chatcompare.models.chat import ChatErrorResult, ChatResult, ChatSuccessResult
from chatcompare.models.chat import ModelChat
from chatcompare.services.chat.chat_api_helpers import elapsed_ms, error_message
from chatcompare.services.providers.registry import ProviderRegistry


async def run_chat(registry: ProviderRegistry, request: ModelChat) -> ChatResult:
    """Run one request and time it from dispatch to completion."""
    start = time.perf_counter()
    try:
        client = registry.resolve(request.provider)
        text = await client.chat(request)
    except Exception as e:
        return ChatErrorResult(
            provider=request.provider,
            error=error_message(e),
            elapsed_ms=elapsed_ms(start),
        )
    return ChatSuccessResult(
        provider=request.provider, text=text, elapsed_ms=elapsed_ms(start)
    )


async def run_batch(
    registry: ProviderRegistry, requests: Sequence[ModelChat]
) -> List[ChatResult]:
    """Run all requests concurrently; results keep the input order."""
    if not requests:
        return []
    results = await asyncio.gather(*(run_chat(registry, r) for r in requests))
    return list(results)
