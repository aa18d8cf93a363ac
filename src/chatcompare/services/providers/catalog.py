# Copyright (C) 2026 StableLlama
#
# This program is free software: you can redistribute it and/or modify
# it under the terms of the GNU General Public License as published by
# the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.

"""Defines the catalog unit so this responsibility stays isolated, testable, and easy to evolve.

Static per-provider model catalog. ``machine.json`` may replace a provider's
list through ``providers.<id>.models``.
"""

from __future__ import annotations

from typing import Any, Dict, List, Mapping

from pydantic import ValidationError

from chatcompare.core.config import provider_settings
from chatcompare.models.providers import ProviderModel, ProviderType
from chatcompare.services.exceptions import ConfigurationError, UnknownProviderError

PROVIDER_MODELS: Dict[str, List[Dict[str, Any]]] = {
    ProviderType.OPENAI.value: [
        {
            "id": "gpt-4o-mini",
            "label": "GPT-4o mini",
            "default": True,
            "limits": {"maxTokens": 16384},
            "supportsImages": True,
        },
        {
            "id": "gpt-4o",
            "label": "GPT-4o",
            "limits": {"maxTokens": 128000},
            "supportsImages": True,
        },
    ],
    ProviderType.GEMINI.value: [
        {
            "id": "gemini-1.5-flash",
            "label": "Gemini 1.5 Flash",
            "default": True,
            "limits": {"maxTokens": 1000000},
            "supportsImages": True,
        },
        {
            "id": "gemini-1.5-pro",
            "label": "Gemini 1.5 Pro",
            "limits": {"maxTokens": 2000000},
            "supportsImages": True,
        },
    ],
    ProviderType.DEEPSEEK.value: [
        {
            "id": "deepseek-chat",
            "label": "DeepSeek Chat",
            "default": True,
            "limits": {"maxTokens": 32768},
        },
        {
            "id": "deepseek-coder",
            "label": "DeepSeek Coder",
            "limits": {"maxTokens": 16384},
        },
    ],
}


def get_catalog(
    provider_id: str, machine: Mapping[str, Any] | None = None
) -> List[ProviderModel]:
    """Return the models offered for ``provider_id``.

    Raises UnknownProviderError for ids outside the catalog.
    """
    if provider_id not in PROVIDER_MODELS:
        raise UnknownProviderError(f"Unknown provider: {provider_id}")

    raw = PROVIDER_MODELS[provider_id]
    configured = provider_settings(machine or {}, provider_id).get("models")
    if isinstance(configured, list) and configured:
        raw = configured
    try:
        return [ProviderModel.model_validate(m) for m in raw]
    except ValidationError as e:
        raise ConfigurationError(
            f"Invalid model list for provider {provider_id}: {e}"
        ) from e


def default_model_id(
    provider_id: str, machine: Mapping[str, Any] | None = None
) -> str:
    """Return the id flagged as default, falling back to the first entry."""
    models = get_catalog(provider_id, machine)
    if not models:
        raise ConfigurationError(f"No models configured for provider {provider_id}")
    for m in models:
        if m.default:
            return m.id
    return models[0].id
