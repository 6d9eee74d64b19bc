# InlinePatch
# Copyright (C) 2025 Phoenix Link (Pty) Ltd. All Rights Reserved.
#
# This file is part of InlinePatch.
#
# InlinePatch is dual-licensed:
#
# 1. Open Source: GNU Affero General Public License v3.0 (AGPL-3.0)
#    You may use, modify, and distribute this file under AGPL-3.0.
#    See LICENSE for the full text.
#
# 2. Commercial: Available from Phoenix Link (Pty) Ltd
#    For proprietary use, SaaS deployment, or enterprise licensing.
#    See LICENSE-ENTERPRISE.md or contact info@phoenixlink.co.za
#
# Contributions require a signed CLA. See COPYRIGHT.md and CLA.md.
"""
InlinePatch -- API Server

FastAPI app receiving edits from the in-page editor.

Run with: uvicorn inlinepatch.api.server:create_app --factory --port 8765
or:       inlinepatch serve
"""

from __future__ import annotations

import logging
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from starlette.middleware.base import BaseHTTPMiddleware

from inlinepatch import __version__
from inlinepatch.api._shared import Services
from inlinepatch.api.routes import health, text_editor
from inlinepatch.config import InlinePatchConfig, load_config
from inlinepatch.core.logging import get_logger

logger = logging.getLogger("inlinepatch.api.server")


# =============================================================================
# HTTP REQUEST LOGGING MIDDLEWARE
# =============================================================================


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Log every HTTP request with method, path, status, and latency."""

    # Probes would drown everything else
    _QUIET_PATHS = {"/health", "/ready"}

    async def dispatch(self, request: Request, call_next):
        start = time.time()
        response = await call_next(request)
        latency_ms = int((time.time() - start) * 1000)
        path = request.url.path
        if path not in self._QUIET_PATHS:
            get_logger().http_request(
                method=request.method,
                path=path,
                status=response.status_code,
                latency_ms=latency_ms,
            )
        return response


# =============================================================================
# APP FACTORY
# =============================================================================


def create_app(config: InlinePatchConfig | None = None) -> FastAPI:
    """Build the API for ``config`` (loaded from disk and environment when omitted)."""
    config = config or load_config()
    services = Services.from_config(config)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        log = get_logger()
        log.server_start(
            host=config.service.host,
            port=config.service.port,
            version=__version__,
            mode=config.service.mode,
            project_root=str(services.engine.project_root),
        )
        yield
        log.server_stop()

    app = FastAPI(
        title="InlinePatch API",
        description="Apply in-page text edits to website source files",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.services = services
    app.add_middleware(RequestLoggingMiddleware)
    app.include_router(health.router)
    app.include_router(text_editor.router)

    logger.info(
        "API ready (mode=%s, project_root=%s, store=%s)",
        config.service.mode,
        services.engine.project_root,
        services.store.path,
    )
    return app
