# Copyright (C) 2026 StableLlama
#
# This program is free software: you can redistribute it and/or modify
# it under the terms of the GNU General Public License as published by
# the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.

"""Defines the stream reader unit so this responsibility stays isolated, testable, and easy to evolve.

Client side of the streaming protocol: turns the decoded lines of a chunked
``text/event-stream`` body back into ``StreamEvent`` objects.
"""

from __future__ import annotations

import json
import logging
from typing import AsyncIterable, Callable, Optional

import httpx
from pydantic import ValidationError

from chatcompare.models.chat import STREAM_EVENT, ErrorEvent, StreamEvent
from chatcompare.utils.stream_helpers import DONE_SENTINEL, sse_data

logger = logging.getLogger(__name__)

EventCallback = Callable[[StreamEvent], None]


def parse_event_line(line: str) -> Optional[StreamEvent]:
    """Parse one line; None for non-data lines, the sentinel and malformed data."""
    payload = sse_data(line)
    if not payload or payload == DONE_SENTINEL:
        return None
    try:
        return STREAM_EVENT.validate_python(json.loads(payload))
    except (ValueError, ValidationError) as e:
        logger.warning("Skipping malformed stream line %r: %s", line, e)
        return None


async def dispatch_lines(
    lines: AsyncIterable[str], on_event: EventCallback, provider: str
) -> int:
    """Feed parsed events to ``on_event`` in arrival order; return how many.

    A transport failure after the body started is reported as one error
    event instead of being raised.
    """
    count = 0
    try:
        async for line in lines:
            event = parse_event_line(line)
            if event is None:
                continue
            count += 1
            on_event(event)
    except httpx.HTTPError as exc:
        logger.error("Stream for %s interrupted: %s", provider, exc)
        on_event(ErrorEvent(provider=provider, error=str(exc) or "Stream interrupted"))
    return count
