# Copyright (C) 2026 StableLlama
#
# This program is free software: you can redistribute it and/or modify
# it under the terms of the GNU General Public License as published by
# the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.

"""Defines the llm request helpers unit so this responsibility stays isolated, testable, and easy to evolve."""

from __future__ import annotations

import json
from typing import Any, Dict

import httpx


def build_headers(api_key: str | None) -> Dict[str, str]:
    headers: Dict[str, str] = {"Content-Type": "application/json"}
    if api_key:
        headers["Authorization"] = f"Bearer {api_key}"
    return headers


def build_timeout(timeout_s: int) -> httpx.Timeout:
    try:
        return httpx.Timeout(float(timeout_s or 60))
    except (TypeError, ValueError):
        return httpx.Timeout(60.0)


def decode_body(raw: bytes) -> Any:
    """Decode an upstream body as JSON, falling back to text."""
    try:
        return json.loads(raw)
    except ValueError:
        return raw.decode("utf-8", errors="ignore")


def response_body(resp: httpx.Response) -> Any:
    if resp.headers.get("content-type", "").startswith("application/json"):
        try:
            return resp.json()
        except ValueError:
            pass
    return resp.text


def upstream_error_message(label: str, status_code: int, data: Any) -> str:
    """Build ``"<vendor message> (code: <status>)"`` from an upstream error body.

    OpenAI, DeepSeek and Gemini all nest the message under ``error.message``;
    anything else falls back to a generic text.
    """
    msg = None
    if isinstance(data, dict):
        err = data.get("error")
        if isinstance(err, dict):
            msg = err.get("message")
        elif isinstance(err, str):
            msg = err
    elif isinstance(data, str) and data.strip():
        msg = data.strip()[:500]
    if not msg:
        msg = f"{label} request failed"
    return f"{msg} (code: {status_code})"
