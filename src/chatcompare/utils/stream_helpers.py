# Copyright (C) 2026 StableLlama
#
# This program is free software: you can redistribute it and/or modify
# it under the terms of the GNU General Public License as published by
# the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.

"""Defines the stream helpers unit so this responsibility stays isolated, testable, and easy to evolve.

Utility functions for handling server-sent events (SSE): framing records on
the way out and extracting ``data:`` payloads on the way in. Shared by the
upstream provider bindings, the server stream adapter and the client reader.
"""

import json
from typing import Any, Dict, Optional

DONE_SENTINEL = "[DONE]"
SSE_DONE_LINE = f"data: {DONE_SENTINEL}\n\n"

SSE_HEADERS: Dict[str, str] = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",  # disable nginx buffering
}


def format_sse(data: Dict[str, Any]) -> str:
    return f"data: {json.dumps(data, ensure_ascii=False)}\n\n"


def sse_data(line: str) -> Optional[str]:
    """Return the payload of a ``data:`` line, or None for any other line.

    A single space after the colon is part of the field separator and is
    dropped, as the SSE format defines; trailing whitespace is stripped.
    """
    if not line.startswith("data:"):
        return None
    payload = line[5:]
    if payload.startswith(" "):
        payload = payload[1:]
    return payload.rstrip()
