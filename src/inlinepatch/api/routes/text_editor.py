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
InlinePatch -- Text Editor Routes

    POST    /api/text-editor               submit an edit
    OPTIONS /api/text-editor               preflight
    POST    /api/text-editor/debug         dry-run relocation, no write
    GET     /api/text-editor/original      original text of the latest edit
    POST    /api/text-editor/original      same, JSON body
    OPTIONS /api/text-editor/original      preflight
    POST    /api/text-editor/trigger-sync  start the deferred-apply workflow

Development mode applies edits to the working tree straight away.
Production mode only records them as pending and asks the build trigger
to run the deferred-apply workflow.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from pathlib import Path

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse, Response
from pydantic import ValidationError
from starlette.concurrency import run_in_threadpool

from inlinepatch.api._shared import (
    DebugRequest,
    EditRequestSchema,
    OriginalTextRequest,
    Services,
    forbidden_origin,
    format_validation_error,
    get_services,
    is_allowed_origin,
    json_response,
    preflight,
)
from inlinepatch.core.relocation.models import EditRequest
from inlinepatch.integrations.build_trigger import SyncTriggerError
from inlinepatch.store.edit_store import EditRecord, StoreError, result_status

logger = logging.getLogger("inlinepatch.api.routes.text_editor")

router = APIRouter(prefix="/api/text-editor")

PRODUCTION_MESSAGE = "Edit saved to database. Changes will be deployed in 2-5 minutes."
SYNC_MESSAGE = "Sync triggered successfully. Changes will be deployed in ~2-5 minutes."
NOT_FOUND_MESSAGE = "No original text found in database for this project"

# Paths reported by the debug endpoint, relative to the project root.
DEBUG_PATHS = ("src/app/page.tsx", "src/components", "src/lib")


async def _json_body(request: Request) -> dict:
    try:
        body = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise ValueError(f"Request body is not valid JSON: {exc}") from exc
    if not isinstance(body, dict):
        raise ValueError("Request body must be a JSON object")
    return body


# =============================================================================
# SUBMIT
# =============================================================================


@router.options("")
async def text_editor_preflight(request: Request):
    return preflight(get_services(request), request.headers.get("origin"))


@router.post("")
async def submit_edit(request: Request):
    """Record an edit; apply it now (development) or queue it (production)."""
    services = get_services(request)
    origin = request.headers.get("origin")
    if not is_allowed_origin(services, origin):
        return forbidden_origin(origin)

    try:
        body = await _json_body(request)
        data = EditRequestSchema.model_validate(body)
    except ValidationError as exc:
        message = format_validation_error(exc)
        logger.warning("Rejected edit: %s", message)
        return json_response(services, origin, {"error": message, "success": False}, 400)
    except ValueError as exc:
        return json_response(services, origin, {"error": str(exc), "success": False}, 400)

    edit = EditRequest.from_dict(data.model_dump())
    production = services.config.service.is_production
    record = EditRecord.from_request(
        edit,
        status="pending" if production else "processing",
        metadata={
            "userAgent": request.headers.get("user-agent"),
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "origin": origin or "unknown",
        },
    )
    try:
        edit_id = services.store.save_edit(record)
    except StoreError as exc:
        logger.error("Cannot save edit: %s", exc)
        return json_response(services, origin, {"error": str(exc), "success": False}, 500)

    if production:
        return json_response(services, origin, await _queue_for_sync(services, edit_id, edit), 202)

    result = await run_in_threadpool(services.engine.process_text_edit, edit)
    try:
        services.store.update_edit_status(edit_id, result_status(result), result)
    except StoreError as exc:
        logger.error("Cannot update edit %s: %s", edit_id, exc)

    if result.success:
        message = f"Successfully updated text in {result.matched_file_path} at line {result.line_number}"
    else:
        message = result.error_message or "Edit failed"
    content = {
        "success": result.success,
        "editId": edit_id,
        "projectId": edit.project_id,
        "confidence": result.confidence,
        "matchedFilePath": result.matched_file_path,
        "lineNumber": result.line_number,
        "hasConflicts": result.has_conflicts,
        "message": message,
        "alternativeMatches": len(result.alternative_matches),
    }
    if result.failure is not None:
        content["failure"] = result.failure.value
    return json_response(services, origin, content, 200 if result.success else 400)


async def _queue_for_sync(services: Services, edit_id: str, edit: EditRequest) -> dict:
    if services.trigger.configured:
        try:
            await services.trigger.trigger({"editId": edit_id})
        except SyncTriggerError as exc:
            logger.error("Sync trigger failed (non-fatal): %s", exc)
    else:
        logger.info("Build trigger not configured; edit %s waits for the next apply run", edit_id)
    return {
        "success": True,
        "editId": edit_id,
        "projectId": edit.project_id,
        "message": PRODUCTION_MESSAGE,
        "mode": "production",
        "status": "pending",
    }


# =============================================================================
# DEBUG
# =============================================================================


@router.post("/debug")
async def debug_locate(request: Request):
    """Run the relocation pipeline for ``originalText`` without editing anything."""
    services = get_services(request)
    try:
        data = DebugRequest.model_validate(await _json_body(request))
    except ValidationError as exc:
        return JSONResponse({"error": format_validation_error(exc)}, status_code=400)
    except ValueError as exc:
        return JSONResponse({"error": str(exc)}, status_code=400)
    if not data.originalText:
        return JSONResponse({"error": "originalText is required"}, status_code=400)

    engine = services.engine
    edit = EditRequest.from_dict(
        {
            "originalText": data.originalText,
            "newText": data.originalText,
            "projectId": "debug-test",
            "elementContext": {"elementTag": "span", "cssSelector": "span", "elementPath": "span"},
            "pageContext": {"pageUrl": data.pageUrl or "/"},
        }
    )
    report = await run_in_threadpool(engine.locate, edit)
    info = await run_in_threadpool(engine.project_info)
    root: Path = engine.project_root

    file_checks = []
    for rel in DEBUG_PATHS:
        path = root / rel
        kind = "missing"
        if path.exists():
            kind = "directory" if path.is_dir() else "file"
        file_checks.append({"path": str(path), "exists": path.exists(), "type": kind})

    result = report.result
    return {
        "success": True,
        "debug": {
            "searchText": data.originalText,
            "textLength": len(data.originalText),
            "projectRoot": str(root),
            "projectInfo": info.to_dict(),
            "fileChecks": file_checks,
            "variations": report.variations,
            "filesScanned": report.files_scanned,
            "searchResult": {
                "success": result.success,
                "confidence": result.confidence,
                "matchedFile": result.matched_file_path,
                "lineNumber": result.line_number,
                "errorMessage": result.error_message,
                "alternativeMatches": len(result.alternative_matches),
            },
        },
    }


# =============================================================================
# ORIGINAL TEXT
# =============================================================================


def _original_text_response(services: Services, origin: str | None, query: OriginalTextRequest) -> Response:
    try:
        text = services.store.get_original_text(
            query.projectId,
            query.pageUrl,
            css_selector=query.cssSelector,
            element_id=query.elementId,
            element_tag=query.elementTag,
        )
    except StoreError as exc:
        logger.error("Cannot read edit store: %s", exc)
        return json_response(services, origin, {"error": str(exc), "success": False}, 500)
    if text is None:
        return json_response(
            services,
            origin,
            {"error": NOT_FOUND_MESSAGE, "success": False, "projectId": query.projectId},
            404,
        )
    return json_response(services, origin, {"originalText": text, "success": True, "projectId": query.projectId})


@router.options("/original")
async def original_preflight(request: Request):
    return preflight(get_services(request), request.headers.get("origin"))


@router.get("/original")
async def get_original_text(request: Request):
    services = get_services(request)
    origin = request.headers.get("origin")
    if not is_allowed_origin(services, origin):
        return forbidden_origin(origin)

    params = request.query_params
    if not params.get("projectId") or not params.get("pageUrl"):
        return json_response(
            services, origin, {"error": "projectId and pageUrl parameters are required"}, 400
        )
    query = OriginalTextRequest(
        projectId=params["projectId"],
        pageUrl=params["pageUrl"],
        cssSelector=params.get("cssSelector") or None,
        elementId=params.get("elementId") or None,
        elementTag=params.get("elementTag") or None,
    )
    return _original_text_response(services, origin, query)


@router.post("/original")
async def post_original_text(request: Request):
    services = get_services(request)
    origin = request.headers.get("origin")
    if not is_allowed_origin(services, origin):
        return forbidden_origin(origin)
    try:
        query = OriginalTextRequest.model_validate(await _json_body(request))
    except ValidationError as exc:
        message = format_validation_error(exc, prefix="Invalid request format")
        return json_response(services, origin, {"error": message, "success": False}, 400)
    except ValueError as exc:
        return json_response(services, origin, {"error": str(exc), "success": False}, 400)
    return _original_text_response(services, origin, query)


# =============================================================================
# SYNC TRIGGER
# =============================================================================


@router.post("/trigger-sync")
async def trigger_sync(request: Request):
    """Start the deferred-apply workflow. Requires ``Authorization: Bearer <sync token>``."""
    services = get_services(request)
    expected = services.config.service.sync_secret_token
    if not expected or request.headers.get("authorization") != f"Bearer {expected}":
        return JSONResponse({"error": "Unauthorized"}, status_code=401)

    payload = {}
    if await request.body():
        try:
            payload = await _json_body(request)
        except ValueError as exc:
            return JSONResponse({"error": str(exc)}, status_code=400)

    try:
        await services.trigger.trigger(payload)
    except SyncTriggerError as exc:
        content = {"error": str(exc)}
        if exc.details:
            content["details"] = exc.details
        return JSONResponse(content, status_code=500)
    return {"success": True, "message": SYNC_MESSAGE}
