# Copyright (C) 2026 StableLlama
#
# This program is free software: you can redistribute it and/or modify
# it under the terms of the GNU General Public License as published by
# the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.

"""Defines the chat unit so this responsibility stays isolated, testable, and easy to evolve.

Pydantic models for chat requests, batch results and the stream event wire
format. Wire names are camelCase (``maxTokens``, ``elapsedMs``); Python
attributes are snake_case and populated by either name.
"""

from __future__ import annotations

from typing import Annotated, Any, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter

Role = Literal["system", "user", "assistant"]


class _WireModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class TextPart(_WireModel):
    type: Literal["text"] = "text"
    text: str


class ImageUrl(_WireModel):
    url: str


class ImagePart(_WireModel):
    type: Literal["image_url"] = "image_url"
    image_url: ImageUrl


ContentPart = Annotated[Union[TextPart, ImagePart], Field(discriminator="type")]


class ChatMessage(_WireModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    role: Role
    content: Union[str, List[ContentPart]]

    def text(self) -> str:
        """Return the plain-text portion of the content."""
        if isinstance(self.content, str):
            return self.content
        return "".join(p.text for p in self.content if isinstance(p, TextPart))


class ModelChat(_WireModel):
    """One provider invocation: the request unit for batch and stream calls."""

    provider: str = Field(..., min_length=1)
    messages: List[ChatMessage]
    model: str = Field(..., min_length=1)
    temperature: Optional[float] = None
    max_tokens: Optional[int] = Field(default=None, alias="maxTokens")


MODEL_CHAT_LIST = TypeAdapter(List[ModelChat])


class ChatSuccessResult(_WireModel):
    provider: str
    text: str
    elapsed_ms: int = Field(..., alias="elapsedMs")


class ChatErrorResult(_WireModel):
    provider: str
    error: str
    elapsed_ms: int = Field(..., alias="elapsedMs")


ChatResult = Union[ChatSuccessResult, ChatErrorResult]

CHAT_RESULT = TypeAdapter(ChatResult)


# ---------------------------------------------------------------------------
# Stream events
# ---------------------------------------------------------------------------


class ContentEvent(_WireModel):
    provider: str
    type: Literal["content"] = "content"
    content: str


class DoneEvent(_WireModel):
    provider: str
    type: Literal["done"] = "done"
    elapsed_ms: int = Field(..., alias="elapsedMs")


class ErrorEvent(_WireModel):
    provider: str
    type: Literal["error"] = "error"
    error: str


StreamEvent = Annotated[
    Union[ContentEvent, DoneEvent, ErrorEvent], Field(discriminator="type")
]

STREAM_EVENT = TypeAdapter(StreamEvent)


class CompareRequest(_WireModel):
    prompt: str = Field(..., min_length=1)
    providers: Optional[List[str]] = None
