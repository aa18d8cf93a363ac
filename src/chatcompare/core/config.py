# Copyright (C) 2026 StableLlama
#
# This program is free software: you can redistribute it and/or modify
# it under the terms of the GNU General Public License as published by
# the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.
# Purpose: Defines the config unit so this responsibility stays isolated, testable, and easy to evolve.

"""
Configuration loading utilities for ChatCompare.

Conventions:
- Machine-specific config: resources/config/machine.json
  (``CHATCMP_MACHINE_CONFIG`` points elsewhere).
- Environment variables override JSON values.
- JSON values can reference environment variables using ${VAR_NAME} placeholders.

Only generic JSON dicts are returned; the provider registry reads the
``providers`` section.
"""

from __future__ import annotations

import json
import os
import re
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

BASE_DIR = Path(__file__).resolve().parent.parent.parent.parent
CONFIG_DIR = BASE_DIR / "resources" / "config"
DATA_DIR = BASE_DIR / "data"
LOGS_DIR = DATA_DIR / "logs"

# Provider id -> environment variable prefix.
PROVIDER_ENV_PREFIXES: Dict[str, str] = {
    "openai": "OPENAI",
    "gemini": "GEMINI",
    "deepseek": "DEEPSEEK",
}

DEFAULT_TIMEOUT_S = 60

_ENV_PATTERN = re.compile(r"\$\{([A-Z0-9_]+)\}")


def machine_config_path() -> Path:
    override = os.getenv("CHATCMP_MACHINE_CONFIG")
    if override:
        return Path(override)
    return CONFIG_DIR / "machine.json"


def _interpolate_env(value: Any) -> Any:
    """Interpolate ${VAR} placeholders within strings using environment variables.

    Non-string types are returned unchanged.
    """
    if isinstance(value, str):

        def replace(match: re.Match[str]) -> str:
            var = match.group(1)
            return os.getenv(var, match.group(0))  # leave placeholder if unset

        return _ENV_PATTERN.sub(replace, value)
    if isinstance(value, dict):
        return {k: _interpolate_env(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_interpolate_env(v) for v in value]
    return value


def _deep_merge(base: Dict[str, Any], override: Mapping[str, Any]) -> Dict[str, Any]:
    """Deeply merge mapping 'override' into dict 'base'. Returns new dict.

    - For dict values, merges recursively.
    - For lists and scalars, override replaces base.
    """
    result: Dict[str, Any] = dict(base)
    for k, v in override.items():
        if isinstance(v, Mapping) and isinstance(result.get(k), Mapping):
            result[k] = _deep_merge(dict(result[k]), v)  # type: ignore[index]
        else:
            result[k] = v
    return result


def load_json_file(path: os.PathLike[str] | str | None) -> Dict[str, Any]:
    """Load JSON from path if it exists; return empty dict if missing.

    Raises ValueError for malformed JSON.
    """
    if path is None:
        return {}
    p = Path(path)
    if not p.exists():
        return {}
    try:
        with p.open("r", encoding="utf-8") as f:
            data = json.load(f)
        return data if isinstance(data, dict) else {}
    except json.JSONDecodeError as e:
        raise ValueError(f"Invalid JSON at {p}: {e}") from e


def _env_overrides_for_providers() -> Dict[str, Any]:
    """Collect provider credentials from the environment into a nested dict.

    Supported variables, per provider prefix (OPENAI, GEMINI, DEEPSEEK):
    - <PREFIX>_API_KEY -> providers.<id>.api_key
    - <PREFIX>_BASE_URL -> providers.<id>.base_url
    - <PREFIX>_TIMEOUT_S -> providers.<id>.timeout_s (int if parseable)
    """
    providers: Dict[str, Any] = {}
    for provider_id, prefix in PROVIDER_ENV_PREFIXES.items():
        entry: Dict[str, Any] = {}
        api_key = os.getenv(f"{prefix}_API_KEY")
        base_url = os.getenv(f"{prefix}_BASE_URL")
        timeout_s = os.getenv(f"{prefix}_TIMEOUT_S")
        if api_key is not None:
            entry["api_key"] = api_key
        if base_url is not None:
            entry["base_url"] = base_url
        if timeout_s is not None:
            try:
                entry["timeout_s"] = int(timeout_s)
            except ValueError:
                entry["timeout_s"] = timeout_s
        if entry:
            providers[provider_id] = entry
    return {"providers": providers} if providers else {}


def load_machine_config(
    path: os.PathLike[str] | str | None = None,
    defaults: Optional[Mapping[str, Any]] = None,
) -> Dict[str, Any]:
    """Load machine configuration applying precedence and interpolation.

    Precedence: env overrides > JSON file > defaults
    """
    if path is None:
        path = machine_config_path()
    defaults = dict(defaults or {})
    json_config = load_json_file(path)
    json_config = _interpolate_env(json_config)
    # Merge JSON over defaults, then env over that
    merged = _deep_merge(defaults, json_config)
    merged = _deep_merge(merged, _env_overrides_for_providers())
    return merged


def provider_settings(machine: Mapping[str, Any], provider_id: str) -> Dict[str, Any]:
    """Return the ``providers.<id>`` section of a machine config, or ``{}``."""
    providers = machine.get("providers") if isinstance(machine, Mapping) else None
    if not isinstance(providers, Mapping):
        return {}
    entry = providers.get(provider_id)
    return dict(entry) if isinstance(entry, Mapping) else {}


def coerce_timeout(value: Any) -> int:
    try:
        return int(value or DEFAULT_TIMEOUT_S)
    except (TypeError, ValueError):
        return DEFAULT_TIMEOUT_S
