# Copyright (C) 2026 StableLlama
#
# This program is free software: you can redistribute it and/or modify
# it under the terms of the GNU General Public License as published by
# the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.

"""Defines the llm logging unit so this responsibility stays isolated, testable, and easy to evolve."""

from __future__ import annotations

import datetime
import json
import os
import uuid
from typing import Any, Dict, List

from chatcompare.core.config import LOGS_DIR

MAX_LOG_ENTRIES = 100

# Global list to store upstream LLM communication logs for the current process
llm_logs: List[Dict[str, Any]] = []


def _dump_enabled() -> bool:
    return os.getenv("CHATCMP_LLM_DUMP") == "1"


def add_llm_log(log_entry: Dict[str, Any]):
    """Add a log entry to the global list, keeping only the last 100 entries.

    If CHATCMP_LLM_DUMP is set, also append the raw log to a file.
    """
    if log_entry not in llm_logs:
        llm_logs.append(log_entry)
        if len(llm_logs) > MAX_LOG_ENTRIES:
            llm_logs.pop(0)

    if not _dump_enabled():
        return

    log_path = os.getenv("CHATCMP_LLM_DUMP_PATH") or str(LOGS_DIR / "llm_raw.log")
    try:
        os.makedirs(os.path.dirname(log_path) or ".", exist_ok=True)
        with open(log_path, "a", encoding="utf-8") as f:
            f.write("=" * 80 + "\n")
            f.write(f"TIMESTAMP: {datetime.datetime.now().isoformat()}\n")
            f.write("-" * 80 + "\n")
            f.write(json.dumps(log_entry, indent=2, default=str) + "\n")
            f.write("=" * 80 + "\n\n")
    except OSError:
        # best effort, dev-only
        pass


def create_log_entry(
    url: str, method: str, headers: Dict[str, str], body: Any, streaming: bool = False
) -> Dict[str, Any]:
    """Create a new log entry structure."""
    safe_body = body
    if isinstance(body, dict):
        safe_body = body.copy()
        for key in ["api_key", "secret", "password"]:
            if key in safe_body:
                safe_body[key] = "REDACTED"

    return {
        "id": str(uuid.uuid4()),
        "timestamp_start": datetime.datetime.now().isoformat(),
        "timestamp_end": None,
        "request": {
            "url": url,
            "method": method,
            "headers": {
                k: (
                    "***"
                    if k.lower() in ("authorization", "x-api-key", "x-goog-api-key")
                    else v
                )
                for k, v in headers.items()
            },
            "body": safe_body,
        },
        "response": {
            "status_code": None,
            "streaming": streaming,
            "chunks": [] if streaming else None,
            "full_content": "" if streaming else None,
            "body": None,
            "error_detail": None,
        },
    }


def finish_log_entry(log_entry: Dict[str, Any], error: str | None = None) -> None:
    """Stamp the end time (and optional error) and re-publish the entry."""
    log_entry["timestamp_end"] = datetime.datetime.now().isoformat()
    if error is not None:
        log_entry["response"]["error_detail"] = error
    add_llm_log(log_entry)
