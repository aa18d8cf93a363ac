# Copyright (C) 2026 StableLlama
#
# This program is free software: you can redistribute it and/or modify
# it under the terms of the GNU General Public License as published by
# the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.

"""Defines the provider registry unit so this responsibility stays isolated, testable, and easy to evolve.

The registry is built once at app start and injected into the routes. It
maps a provider id to a client instance, constructing each client lazily and
caching it per ``(provider_id, api_key)`` for the life of the registry.
"""

from __future__ import annotations

import os
from typing import Any, Dict, List, Mapping, Tuple

from chatcompare.core.config import load_machine_config, provider_settings
from chatcompare.models.providers import ProviderModel, ProviderType
from chatcompare.services.exceptions import ConfigurationError, UnknownProviderError
from chatcompare.services.providers.base import ProviderClient, ProviderFactory
from chatcompare.services.providers.catalog import default_model_id, get_catalog
from chatcompare.services.providers.gemini import build_gemini_client
from chatcompare.services.providers.mock import build_mock_client
from chatcompare.services.providers.openai_compat import (
    build_deepseek_client,
    build_openai_client,
)

DEFAULT_FACTORIES: Dict[str, ProviderFactory] = {
    ProviderType.OPENAI.value: build_openai_client,
    ProviderType.GEMINI.value: build_gemini_client,
    ProviderType.DEEPSEEK.value: build_deepseek_client,
}


def _mock_enabled() -> bool:
    return os.getenv("CHATCMP_MOCK_PROVIDERS", "0") in ("1", "true", "TRUE", "yes", "on")


class ProviderRegistry:
    def __init__(
        self,
        machine: Mapping[str, Any] | None = None,
        factories: Mapping[str, ProviderFactory] | None = None,
        *,
        require_credentials: bool = True,
    ):
        self._machine: Dict[str, Any] = dict(machine or {})
        self._factories: Dict[str, ProviderFactory] = dict(
            DEFAULT_FACTORIES if factories is None else factories
        )
        self._require_credentials = require_credentials
        self._clients: Dict[Tuple[str, str], ProviderClient] = {}

    @classmethod
    def from_config(cls, path=None) -> "ProviderRegistry":
        """Build a registry from machine.json plus environment overrides.

        With ``CHATCMP_MOCK_PROVIDERS=1`` every provider is served by the
        scripted mock client and no credentials are needed.
        """
        machine = load_machine_config(path)
        if _mock_enabled():
            factories = {pid: build_mock_client(pid) for pid in DEFAULT_FACTORIES}
            return cls(machine, factories, require_credentials=False)
        return cls(machine)

    @property
    def provider_ids(self) -> List[str]:
        return list(self._factories)

    def _check_known(self, provider_id: str) -> ProviderFactory:
        factory = self._factories.get(provider_id)
        if factory is None:
            raise UnknownProviderError(f"Unknown provider: {provider_id}")
        return factory

    def _api_key(self, provider_id: str, settings: Mapping[str, Any]) -> str:
        api_key = str(settings.get("api_key") or "").strip()
        # an unresolved ${VAR} placeholder counts as missing
        if api_key.startswith("${"):
            api_key = ""
        if not api_key and self._require_credentials:
            raise ConfigurationError(f"Missing API key for provider {provider_id}")
        return api_key

    def resolve(self, provider_id: str) -> ProviderClient:
        """Return the cached client for ``provider_id``, constructing it once.

        Raises UnknownProviderError for ids without a factory and
        ConfigurationError when no API key is configured. Failures are not
        cached, so a later call re-reads the same configuration and fails
        the same way.
        """
        factory = self._check_known(provider_id)
        settings = provider_settings(self._machine, provider_id)
        api_key = self._api_key(provider_id, settings)

        key = (provider_id, api_key)
        client = self._clients.get(key)
        if client is None:
            client = factory(api_key, settings)
            if not isinstance(client, ProviderClient):
                raise ConfigurationError(
                    f"Factory for provider {provider_id} did not return a provider client"
                )
            self._clients[key] = client
        return client

    def models(self, provider_id: str) -> List[ProviderModel]:
        """Catalog lookup; does not need credentials."""
        self._check_known(provider_id)
        return get_catalog(provider_id, self._machine)

    def default_model(self, provider_id: str) -> str:
        self._check_known(provider_id)
        return default_model_id(provider_id, self._machine)
