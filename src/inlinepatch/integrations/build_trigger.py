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
InlinePatch -- Build Trigger

Starts the deferred-apply workflow for production deployments by sending a
GitHub ``repository_dispatch`` event. The workflow checks out the site,
runs ``inlinepatch-apply`` against the pending edits and redeploys.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from inlinepatch.core.logging import get_logger

logger = logging.getLogger("inlinepatch.integrations.build_trigger")

GITHUB_API = "https://api.github.com"
GITHUB_API_VERSION = "2022-11-28"
DISPATCH_EVENT = "apply-edits"
REQUEST_TIMEOUT = 15.0


class SyncTriggerError(RuntimeError):
    """The dispatch could not be sent or GitHub refused it."""

    def __init__(self, message: str, status_code: int | None = None, details: str = ""):
        super().__init__(message)
        self.status_code = status_code
        self.details = details


@dataclass
class TriggerResult:
    status_code: int
    repository: str
    event_type: str
    payload: dict[str, Any]

    def to_dict(self) -> dict[str, Any]:
        return {
            "status_code": self.status_code,
            "repository": self.repository,
            "event_type": self.event_type,
            "payload": dict(self.payload),
        }


class BuildTrigger:
    """Send ``repository_dispatch`` events to one GitHub repository."""

    def __init__(
        self,
        github_token: str,
        repository: str,
        api_url: str = GITHUB_API,
        transport: Any = None,
    ):
        self.github_token = github_token
        self.repository = repository
        self.api_url = api_url.rstrip("/")
        self._transport = transport

    @property
    def configured(self) -> bool:
        return bool(self.github_token and self.repository)

    @property
    def dispatch_url(self) -> str:
        return f"{self.api_url}/repos/{self.repository}/dispatches"

    def _headers(self) -> dict[str, str]:
        return {
            "Accept": "application/vnd.github+json",
            "Authorization": f"Bearer {self.github_token}",
            "X-GitHub-Api-Version": GITHUB_API_VERSION,
        }

    async def trigger(self, payload: dict[str, Any] | None = None) -> TriggerResult:
        """Fire the apply-edits workflow. Raises SyncTriggerError on any failure."""
        if not self.configured:
            raise SyncTriggerError(
                "GitHub configuration missing. Set GITHUB_ACTIONS_TOKEN and GITHUB_REPOSITORY"
            )

        import httpx

        client_payload = dict(payload or {})
        client_payload.setdefault("timestamp", datetime.now(timezone.utc).isoformat())
        body = {"event_type": DISPATCH_EVENT, "client_payload": client_payload}

        live = get_logger()
        try:
            async with httpx.AsyncClient(timeout=REQUEST_TIMEOUT, transport=self._transport) as client:
                resp = await client.post(self.dispatch_url, json=body, headers=self._headers())
        except httpx.HTTPError as exc:
            live.sync("dispatch", success=False, repository=self.repository, error=str(exc))
            raise SyncTriggerError(f"Failed to trigger sync: {exc}") from exc

        if not resp.is_success:
            details = resp.text[:500]
            logger.error("GitHub dispatch for %s returned %d: %s", self.repository, resp.status_code, details)
            live.sync("dispatch", success=False, repository=self.repository, status=resp.status_code)
            raise SyncTriggerError("Failed to trigger sync", status_code=resp.status_code, details=details)

        live.sync("dispatch", repository=self.repository, status=resp.status_code)
        return TriggerResult(
            status_code=resp.status_code,
            repository=self.repository,
            event_type=DISPATCH_EVENT,
            payload=client_payload,
        )
