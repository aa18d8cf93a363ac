# Copyright (C) 2026 StableLlama
#
# This program is free software: you can redistribute it and/or modify
# it under the terms of the GNU General Public License as published by
# the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.

"""Defines the common unit so this responsibility stays isolated, testable, and easy to evolve."""

from typing import Any

from fastapi import Request

from chatcompare.services.exceptions import BadRequestError
from chatcompare.services.providers.registry import ProviderRegistry


async def read_json_body(request: Request) -> Any:
    try:
        return await request.json()
    except ValueError:
        raise BadRequestError("Invalid JSON body")


def get_registry(request: Request) -> ProviderRegistry:
    """FastAPI dependency returning the registry built by ``create_app``."""
    return request.app.state.registry
