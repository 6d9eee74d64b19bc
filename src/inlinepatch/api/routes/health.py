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
"""InlinePatch -- Health & Runtime Routes."""

from fastapi import APIRouter, Request

from inlinepatch import __version__
from inlinepatch.api._shared import get_services
from inlinepatch.core.logging import get_logger

router = APIRouter()


@router.get("/health")
async def health_check(request: Request):
    """Health check endpoint (K8s compatible)."""
    services = get_services(request)
    return {
        "status": "healthy",
        "version": __version__,
        "mode": services.config.service.mode,
        "project_root": str(services.engine.project_root),
    }


@router.get("/ready")
async def readiness_check():
    """Readiness probe."""
    return {"status": "ready", "version": __version__}


@router.get("/api/runtime")
async def get_runtime_info(request: Request):
    """Project, queue and log statistics."""
    services = get_services(request)
    return {
        "version": __version__,
        "project": services.engine.project_info().to_dict(),
        "edits": services.store.project_summary(),
        "logs": get_logger().get_log_stats(),
    }
