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
"""Edit record store -- queue and audit trail for submitted edits.

Every edit the HTTP API accepts is stored here before anything touches the
source tree. In production the record stays ``pending`` until the
deferred-apply run (``inlinepatch-apply``) picks it up; in development it
is updated with the engine's result straight away.

Storage: one JSON object per line in a JSONL file
(default $INLINEPATCH_HOME/edits.jsonl).

    pending -> processing -> applied | failed | conflict
"""

from __future__ import annotations

import json
import logging
import os
import re
import threading
import time
import uuid
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from inlinepatch.core.relocation.models import EditRequest, ProcessResult

logger = logging.getLogger("inlinepatch.store.edit_store")

STATUSES = ("pending", "processing", "applied", "failed", "conflict")
# Statuses the deferred-apply run retries.
OPEN_STATUSES = ("pending", "processing", "failed")

_DEEP_TEXT_ID = re.compile(r'\[data-deep-text-id="[^"]*"\]')


class StoreError(OSError):
    """The record file could not be read or written."""


class RecordNotFound(KeyError):
    """No record with the given id."""


def result_status(result: ProcessResult) -> str:
    """Record status for an engine result."""
    if result.success:
        return "applied"
    if result.has_conflicts:
        return "conflict"
    return "failed"


@dataclass
class EditRecord:
    """A submitted edit and what became of it."""

    original_text: str
    new_text: str
    project_id: str | None = None
    status: str = "pending"
    confidence: float | None = None
    element_context: dict[str, Any] = field(default_factory=dict)
    surrounding_context: dict[str, Any] = field(default_factory=dict)
    page_context: dict[str, Any] = field(default_factory=dict)
    component_context: dict[str, Any] | None = None
    processing_result: dict[str, Any] | None = None
    metadata: dict[str, Any] = field(default_factory=dict)
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    created_at: float = field(default_factory=time.time)
    updated_at: float = field(default_factory=time.time)

    def __post_init__(self):
        if self.status not in STATUSES:
            raise ValueError(f"Unknown edit status {self.status!r}")

    @property
    def page_url(self) -> str:
        return self.page_context.get("pageUrl", "")

    @classmethod
    def from_request(
        cls,
        request: EditRequest,
        status: str = "pending",
        metadata: dict[str, Any] | None = None,
    ) -> EditRecord:
        data = request.to_dict()
        return cls(
            original_text=request.original_text,
            new_text=request.new_text,
            project_id=request.project_id,
            status=status,
            element_context=data["elementContext"],
            surrounding_context=data["surroundingContext"],
            page_context=data["pageContext"],
            component_context=data["componentContext"],
            metadata=dict(metadata or {}),
        )

    def to_request(self) -> EditRequest:
        return EditRequest.from_dict(
            {
                "originalText": self.original_text,
                "newText": self.new_text,
                "projectId": self.project_id,
                "elementContext": self.element_context,
                "surroundingContext": self.surrounding_context,
                "pageContext": self.page_context,
                "componentContext": self.component_context,
            }
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "project_id": self.project_id,
            "original_text": self.original_text,
            "new_text": self.new_text,
            "status": self.status,
            "confidence": self.confidence,
            "element_context": self.element_context,
            "surrounding_context": self.surrounding_context,
            "page_context": self.page_context,
            "component_context": self.component_context,
            "processing_result": self.processing_result,
            "metadata": self.metadata,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> EditRecord:
        return cls(**{k: v for k, v in data.items() if k in cls.__dataclass_fields__})


class EditStore:
    """JSONL-backed store for EditRecords, safe to share between threads."""

    def __init__(self, path: Path | str):
        self._path = Path(path)
        self._lock = threading.RLock()

    @property
    def path(self) -> Path:
        return self._path

    # =========================================================================
    # WRITE
    # =========================================================================

    def save_edit(self, record: EditRecord) -> str:
        """Append a new record and return its id."""
        with self._lock:
            try:
                self._path.parent.mkdir(parents=True, exist_ok=True)
                with self._path.open("a", encoding="utf-8") as f:
                    f.write(json.dumps(record.to_dict(), ensure_ascii=False) + "\n")
            except OSError as exc:
                raise StoreError(f"Cannot write edit store {self._path}: {exc}") from exc
        logger.info("Saved edit %s (%s) for project %s", record.id, record.status, record.project_id)
        return record.id

    def update_edit_status(
        self,
        edit_id: str,
        status: str,
        result: ProcessResult | dict[str, Any] | None = None,
        error_message: str | None = None,
    ) -> EditRecord:
        """Set a record's status and, optionally, the engine result that produced it."""
        if status not in STATUSES:
            raise ValueError(f"Unknown edit status {status!r}")
        with self._lock:
            records = self._read()
            for record in records:
                if record.id == edit_id:
                    break
            else:
                raise RecordNotFound(edit_id)

            record.status = status
            record.updated_at = time.time()
            if result is not None:
                summary = result.to_dict() if isinstance(result, ProcessResult) else dict(result)
                summary.pop("alternative_matches", None)
                record.processing_result = summary
                if summary.get("confidence") is not None:
                    record.confidence = summary["confidence"]
            if error_message:
                record.metadata["errorMessage"] = error_message
            self._rewrite(records)
        logger.info("Edit %s -> %s", edit_id, status)
        return record

    # =========================================================================
    # READ
    # =========================================================================

    def get_edit(self, edit_id: str) -> EditRecord:
        for record in self._read():
            if record.id == edit_id:
                return record
        raise RecordNotFound(edit_id)

    def get_pending_edits(self, project_id: str | None = None) -> list[EditRecord]:
        """Open edits for ``project_id`` (records without a project id included), oldest first."""
        records = [r for r in self._read() if r.status in OPEN_STATUSES]
        if project_id is not None:
            records = [r for r in records if r.project_id in (project_id, None)]
        return sorted(records, key=lambda r: r.created_at)

    def get_edit_history(self, project_id: str, page_url: str | None = None, limit: int = 50) -> list[EditRecord]:
        """Most recent records for a project (newest first)."""
        records = [r for r in self._read() if r.project_id == project_id]
        if page_url:
            records = [r for r in records if r.page_url == page_url]
        records.sort(key=lambda r: r.created_at, reverse=True)
        return records[:limit]

    def get_original_text(
        self,
        project_id: str,
        page_url: str,
        css_selector: str | None = None,
        element_id: str | None = None,
        element_tag: str | None = None,
    ) -> str | None:
        """Original text of the latest edit on a page; selector, id or tag narrow the choice."""
        records = self.get_edit_history(project_id, page_url, limit=10_000)
        if not records:
            return None
        if len(records) > 1 and css_selector:
            wanted = _DEEP_TEXT_ID.sub("", css_selector)
            for record in records:
                element = record.element_context
                if _DEEP_TEXT_ID.sub("", element.get("cssSelector") or "") == wanted:
                    return record.original_text
                if element_id and element.get("elementId") == element_id:
                    return record.original_text
                if element_tag and element.get("elementTag") == element_tag:
                    return record.original_text
        return records[0].original_text

    def project_summary(self, project_id: str | None = None) -> dict[str, Any]:
        """Record counts by status."""
        records = self._read()
        if project_id is not None:
            records = [r for r in records if r.project_id == project_id]
        counts = {status: 0 for status in STATUSES}
        for record in records:
            counts[record.status] += 1
        return {"project_id": project_id, "total": len(records), "by_status": counts}

    @property
    def count(self) -> int:
        return len(self._read())

    # =========================================================================
    # FILE
    # =========================================================================

    def _read(self) -> list[EditRecord]:
        with self._lock:
            if not self._path.exists():
                return []
            try:
                text = self._path.read_text(encoding="utf-8")
            except OSError as exc:
                raise StoreError(f"Cannot read edit store {self._path}: {exc}") from exc
        results = []
        for n, line in enumerate(text.split("\n"), 1):
            if not line.strip():
                continue
            try:
                results.append(EditRecord.from_dict(json.loads(line)))
            except (json.JSONDecodeError, TypeError, ValueError) as exc:
                logger.warning("Skipping corrupt record at %s:%d: %s", self._path, n, exc)
        return results

    def _rewrite(self, records: list[EditRecord]) -> None:
        tmp = self._path.with_name(f".{self._path.name}.tmp_{os.getpid()}")
        try:
            with tmp.open("w", encoding="utf-8") as f:
                for record in records:
                    f.write(json.dumps(record.to_dict(), ensure_ascii=False) + "\n")
            os.replace(tmp, self._path)
        except OSError as exc:
            raise StoreError(f"Cannot rewrite edit store {self._path}: {exc}") from exc
        finally:
            if tmp.exists():
                tmp.unlink()
