# Copyright (C) 2026 StableLlama
#
# This program is free software: you can redistribute it and/or modify
# it under the terms of the GNU General Public License as published by
# the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.

"""Defines the debug unit so this responsibility stays isolated, testable, and easy to evolve.

Read access to the in-memory log of upstream provider requests.
"""

from typing import Optional

from fastapi import APIRouter, Query

from chatcompare.services.llm.llm_logging import llm_logs

router = APIRouter(prefix="/debug", tags=["debug"])


@router.get("/llm_logs")
async def list_llm_logs(limit: Optional[int] = Query(default=None, ge=1)):
    """Return logged upstream requests, oldest first."""
    if limit:
        return llm_logs[-limit:]
    return llm_logs


@router.delete("/llm_logs")
async def clear_llm_logs():
    """Clear the LLM communication logs."""
    cleared = len(llm_logs)
    llm_logs.clear()
    return {"status": "ok", "cleared": cleared}
