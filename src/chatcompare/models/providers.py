# Copyright (C) 2026 StableLlama
#
# This program is free software: you can redistribute it and/or modify
# it under the terms of the GNU General Public License as published by
# the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.
# Purpose: Defines the providers unit so this responsibility stays isolated, testable, and easy to evolve.

"""
Pydantic models for the provider model catalog.
"""

from __future__ import annotations

from enum import Enum
from typing import List, Optional

from pydantic import Field

from chatcompare.models.chat import _WireModel


class ProviderType(str, Enum):
    OPENAI = "openai"
    GEMINI = "gemini"
    DEEPSEEK = "deepseek"


ALL_PROVIDERS: List[str] = [p.value for p in ProviderType]


class ModelLimits(_WireModel):
    max_tokens: Optional[int] = Field(default=None, alias="maxTokens")


class ProviderModel(_WireModel):
    """A selectable model of one provider, as shown in the model dropdown."""

    id: str
    label: str
    default: bool = False
    limits: Optional[ModelLimits] = None
    supports_images: Optional[bool] = Field(default=None, alias="supportsImages")


class ProviderModels(_WireModel):
    type: str
    models: List[ProviderModel]


class ProviderModelsRequest(_WireModel):
    providers: List[str] = Field(default_factory=list)
