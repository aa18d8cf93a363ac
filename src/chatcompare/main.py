# Copyright (C) 2026 StableLlama
#
# This program is free software: you can redistribute it and/or modify
# it under the terms of the GNU General Public License as published by
# the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.

"""Defines the main unit so this responsibility stays isolated, testable, and easy to evolve.

Main application entry point for the ChatCompare API server.
Includes provider registry setup, error handling, and router registration.
"""

from __future__ import annotations

import argparse
import os
from typing import Optional

from fastapi import FastAPI, APIRouter, Request
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware

from chatcompare.services.exceptions import ServiceError
from chatcompare.services.providers.registry import ProviderRegistry

# Import API routers
from chatcompare.api.v1.chat import router as chat_router  # noqa: E402
from chatcompare.api.v1.debug import router as debug_router  # noqa: E402


def create_app(registry: Optional[ProviderRegistry] = None) -> FastAPI:
    """Create the FastAPI app.

    Uvicorn's reload mode requires an import string; using an app factory keeps
    route registration consistent across reload subprocesses. Tests pass their
    own ``registry``; otherwise one is built from machine config.
    """

    app = FastAPI(title="ChatCompare")
    app.state.registry = registry or ProviderRegistry.from_config()

    # Allow localhost/127.0.0.1 on any port (the dev frontend)
    app.add_middleware(
        CORSMiddleware,
        allow_origin_regex=r"http://(localhost|127\.0\.0\.1)(:\d+)?",
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    api_v1_router = APIRouter(prefix="/api/v1")
    api_v1_router.include_router(chat_router)
    api_v1_router.include_router(debug_router)

    api_v1_router.add_api_route(
        "/health", endpoint=lambda: {"status": "ok"}, methods=["GET"]
    )

    app.include_router(api_v1_router)

    # --------------- global exception handler ---------------
    @app.exception_handler(ServiceError)
    async def _service_error_handler(
        _request: Request, exc: ServiceError
    ) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content={"ok": False, "detail": exc.detail},
        )

    return app


app = create_app()


def build_arg_parser() -> argparse.ArgumentParser:
    """Build Arg Parser."""
    parser = argparse.ArgumentParser(
        prog="chatcompare",
        description="Run the ChatCompare FastAPI server",
    )
    parser.add_argument(
        "--host", default="127.0.0.1", help="Host to bind (default: 127.0.0.1)"
    )
    parser.add_argument(
        "--port", type=int, default=8000, help="Port to bind (default: 8000)"
    )
    parser.add_argument(
        "--reload",
        action="store_true",
        help="Enable auto-reload (development only)",
    )
    parser.add_argument(
        "--log-level",
        default="info",
        choices=["critical", "error", "warning", "info", "debug", "trace"],
        help="Log level for the server (default: info)",
    )
    parser.add_argument(
        "--config",
        default=None,
        help="Path to machine.json (overrides CHATCMP_MACHINE_CONFIG)",
    )
    parser.add_argument(
        "--mock-providers",
        action="store_true",
        help="Serve every provider from the scripted mock client",
    )
    parser.add_argument(
        "--llm-dump",
        action="store_true",
        help="Dump raw LLM request/response data to a file",
    )
    parser.add_argument(
        "--llm-dump-path",
        default=None,
        help="Path for raw LLM dump file (overrides default)",
    )
    return parser


def main(argv: Optional[list[str]] = None) -> None:
    """CLI entrypoint to run the server via a normal Python invocation.

    Examples:
      python -m chatcompare.main --help
      python -m chatcompare.main --host 0.0.0.0 --port 8000 --reload
    """
    parser = build_arg_parser()
    args = parser.parse_args(argv)

    if args.config:
        os.environ["CHATCMP_MACHINE_CONFIG"] = args.config
    if args.mock_providers:
        os.environ["CHATCMP_MOCK_PROVIDERS"] = "1"
    if args.llm_dump:
        os.environ["CHATCMP_LLM_DUMP"] = "1"
    if args.llm_dump_path:
        os.environ["CHATCMP_LLM_DUMP_PATH"] = args.llm_dump_path

    # Import uvicorn lazily so that importing this module doesn't require it for tests/tools
    import uvicorn  # type: ignore

    # The module-level app was built before the flags above were applied, so
    # always let uvicorn call the factory.
    uvicorn.run(
        "chatcompare.main:create_app",
        host=args.host,
        port=args.port,
        reload=bool(args.reload),
        log_level=args.log_level,
        factory=True,
    )


if __name__ == "__main__":
    main()
