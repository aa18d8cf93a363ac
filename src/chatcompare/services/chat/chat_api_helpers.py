# Copyright (C) 2026 StableLlama
#
# This program is free software: you can redistribute it and/or modify
# it under the terms of the GNU General Public License as published by
# the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.

"""Defines the chat api helpers unit so this responsibility stays isolated, testable, and easy to evolve."""

from __future__ import annotations

import time
from typing import Any, List

from pydantic import ValidationError

from chatcompare.models.chat import MODEL_CHAT_LIST, ModelChat
from chatcompare.services.exceptions import BadRequestError


def describe_validation_error(exc: ValidationError) -> str:
    """Flatten pydantic errors into ``"0.model: Field required; ..."``."""
    parts = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err.get("loc", ()))
        parts.append(f"{loc}: {err.get('msg')}" if loc else str(err.get("msg")))
    return "; ".join(parts)


def parse_model_chat(payload: Any) -> ModelChat:
    """Validate a stream request body; provider, messages and model are required."""
    if not isinstance(payload, dict):
        raise BadRequestError(
            "Invalid request body: provider, messages, and model are required"
        )
    try:
        return ModelChat.model_validate(payload)
    except ValidationError as e:
        raise BadRequestError(
            f"Invalid request body: {describe_validation_error(e)}"
        ) from e


def parse_model_chat_list(payload: Any) -> List[ModelChat]:
    """Validate a batch body; every item must carry provider, messages and model."""
    if not isinstance(payload, list):
        raise BadRequestError("Request body must be an array of chat requests")
    try:
        return MODEL_CHAT_LIST.validate_python(payload)
    except ValidationError as e:
        raise BadRequestError(
            f"Invalid chat request: {describe_validation_error(e)}"
        ) from e


def error_message(exc: BaseException) -> str:
    return str(exc) or exc.__class__.__name__ or "Unknown error"


def elapsed_ms(start: float) -> int:
    return max(0, int((time.perf_counter() - start) * 1000))
