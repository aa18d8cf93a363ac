# Copyright (C) 2026 StableLlama
#
# This program is free software: you can redistribute it and/or modify
# it under the terms of the GNU General Public License as published by
# the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.

"""Defines the provider client contract shared by every vendor binding.

Adapters depend only on this capability set, never on a concrete vendor
class. Each binding is built by a free constructor function taking
``(api_key, settings)`` so the registry can treat them uniformly.
"""

from __future__ import annotations

from typing import Any, AsyncIterator, Callable, Dict, List, Protocol, Sequence
from typing import runtime_checkable

from chatcompare.models.chat import ChatMessage, ModelChat
from chatcompare.models.providers import ProviderModel


@runtime_checkable
class ProviderClient(Protocol):
    provider_id: str

    async def chat(self, request: ModelChat) -> str:
        """Return the full assistant reply for a single-shot request."""
        ...

    def stream_chat(
        self,
        messages: Sequence[ChatMessage],
        model: str,
        *,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> AsyncIterator[Dict[str, Any]]:
        """Yield ``{"content": fragment}`` dicts in generation order."""
        ...

    def get_models(self) -> List[ProviderModel]: ...


ProviderFactory = Callable[[str, Dict[str, Any]], ProviderClient]
