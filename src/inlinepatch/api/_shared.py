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
InlinePatch -- Shared API Utilities

Pydantic request schemas, origin checks and the per-app service objects
shared across route modules.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional

from fastapi import Request
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel, ValidationError

from inlinepatch.config import InlinePatchConfig
from inlinepatch.core.relocation.engine import TextRelocationEngine
from inlinepatch.integrations.build_trigger import BuildTrigger
from inlinepatch.store.edit_store import EditStore

logger = logging.getLogger("inlinepatch.api.server")


# =============================================================================
# PYDANTIC MODELS (wire names are camelCase, as the browser client sends them)
# =============================================================================


class ElementContextSchema(BaseModel):
    elementTag: str
    elementClasses: Optional[List[str]] = None
    elementId: Optional[str] = None
    heroPageElementId: Optional[str] = None
    cssSelector: str
    elementPath: str


class SurroundingContextSchema(BaseModel):
    parentText: Optional[str] = None
    siblingsBefore: Optional[List[str]] = None
    siblingsAfter: Optional[List[str]] = None
    nearbyUniqueText: Optional[str] = None
    ancestorContext: Optional[List[Dict[str, Any]]] = None
    elementTextIndex: Optional[float] = None
    precedingTextNodes: Optional[List[str]] = None
    followingTextNodes: Optional[List[str]] = None
    uniqueIdentifiers: Optional[List[str]] = None
    detailedPath: Optional[List[Dict[str, Any]]] = None


class PageContextSchema(BaseModel):
    pageUrl: str
    pageTitle: Optional[str] = None
    fullUrl: Optional[str] = None


class ComponentContextSchema(BaseModel):
    componentName: Optional[str] = None
    propName: Optional[str] = None
    componentProps: Optional[Dict[str, Any]] = None


class EditRequestSchema(BaseModel):
    originalText: str
    newText: str
    projectId: str
    elementContext: ElementContextSchema
    surroundingContext: SurroundingContextSchema
    pageContext: PageContextSchema
    componentContext: Optional[ComponentContextSchema] = None


class OriginalTextRequest(BaseModel):
    projectId: str
    pageUrl: str
    cssSelector: Optional[str] = None
    elementId: Optional[str] = None
    elementTag: Optional[str] = None


class DebugRequest(BaseModel):
    originalText: str = ""
    pageUrl: Optional[str] = None


def format_validation_error(exc: ValidationError, prefix: str = "Invalid data format") -> str:
    """``prefix: path: message, path: message`` for every issue pydantic reported."""
    issues = [
        f"{'.'.join(str(part) for part in err['loc'])}: {err['msg']}"
        for err in exc.errors()
    ]
    return f"{prefix}: " + ", ".join(issues)


# =============================================================================
# SERVICES
# =============================================================================


@dataclass
class Services:
    """Everything a route needs, built once per app."""

    config: InlinePatchConfig
    engine: TextRelocationEngine
    store: EditStore
    trigger: BuildTrigger

    @classmethod
    def from_config(cls, config: InlinePatchConfig) -> Services:
        service = config.service
        return cls(
            config=config,
            engine=TextRelocationEngine(Path(service.project_root), config.engine),
            store=EditStore(service.store_path),
            trigger=BuildTrigger(service.github_token, service.github_repository),
        )


def get_services(request: Request) -> Services:
    return request.app.state.services


# =============================================================================
# ORIGIN CHECKS
# =============================================================================

CORS_METHODS = "GET, POST, PUT, DELETE, OPTIONS"
CORS_HEADERS = "Content-Type, Authorization"


def allowed_origins(services: Services) -> list[str]:
    service = services.config.service
    origins = list(service.allowed_origins)
    if service.site_url and service.site_url not in origins:
        origins.append(service.site_url.rstrip("/"))
    return origins


def is_allowed_origin(services: Services, origin: str | None) -> bool:
    """Requests without an Origin header are not cross-site and always pass."""
    if not origin:
        return True
    if not services.config.service.is_production:
        return True
    return origin.rstrip("/") in allowed_origins(services)


def with_cors(response: Response, services: Services, origin: str | None) -> Response:
    if origin and origin.rstrip("/") in allowed_origins(services):
        response.headers["Access-Control-Allow-Origin"] = origin
    response.headers["Access-Control-Allow-Methods"] = CORS_METHODS
    response.headers["Access-Control-Allow-Headers"] = CORS_HEADERS
    response.headers["Access-Control-Allow-Credentials"] = "true"
    return response


def json_response(
    services: Services,
    origin: str | None,
    content: dict[str, Any],
    status_code: int = 200,
) -> JSONResponse:
    return with_cors(JSONResponse(content, status_code=status_code), services, origin)


def preflight(services: Services, origin: str | None) -> Response:
    if not is_allowed_origin(services, origin):
        return Response(status_code=403)
    return with_cors(Response(status_code=200), services, origin)


def forbidden_origin(origin: str | None) -> JSONResponse:
    logger.warning("Origin not allowed: %s", origin)
    return JSONResponse({"error": "CORS not allowed", "success": False}, status_code=403)
