# Copyright (C) 2026 StableLlama
#
# This program is free software: you can redistribute it and/or modify
# it under the terms of the GNU General Public License as published by
# the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.

"""Defines the conftest unit so this responsibility stays isolated, testable, and easy to evolve."""

import os
import tempfile
import pytest
from pathlib import Path

from chatcompare.core.config import PROVIDER_ENV_PREFIXES
from chatcompare.services.llm.llm_logging import llm_logs

# Environment variables that would let tests reach real vendor endpoints or
# write dump files; they are removed for the whole session.
_ISOLATED_VARS = [
    f"{prefix}_{suffix}"
    for prefix in PROVIDER_ENV_PREFIXES.values()
    for suffix in ("API_KEY", "BASE_URL", "TIMEOUT_S")
] + ["CHATCMP_MOCK_PROVIDERS", "CHATCMP_LLM_DUMP", "CHATCMP_LLM_DUMP_PATH"]

_SESSION_TEMP_DIR = None


@pytest.fixture(scope="session", autouse=True)
def session_temp_env():
    global _SESSION_TEMP_DIR
    _SESSION_TEMP_DIR = tempfile.TemporaryDirectory(prefix="chatcmp_test_session_")

    # A machine config path that does not exist yields an empty config.
    temp_config = Path(_SESSION_TEMP_DIR.name) / "machine.json"

    originals = {name: os.environ.get(name) for name in _ISOLATED_VARS}
    orig_config = os.environ.get("CHATCMP_MACHINE_CONFIG")

    for name in _ISOLATED_VARS:
        os.environ.pop(name, None)
    os.environ["CHATCMP_MACHINE_CONFIG"] = str(temp_config)

    yield

    if _SESSION_TEMP_DIR:
        _SESSION_TEMP_DIR.cleanup()

    for name, value in originals.items():
        if value is not None:
            os.environ[name] = value
    if orig_config is not None:
        os.environ["CHATCMP_MACHINE_CONFIG"] = orig_config
    else:
        os.environ.pop("CHATCMP_MACHINE_CONFIG", None)


@pytest.fixture(autouse=True)
def clear_llm_logs():
    llm_logs.clear()
    yield
    llm_logs.clear()
