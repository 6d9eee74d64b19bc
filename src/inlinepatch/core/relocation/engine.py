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
InlinePatch -- Text Relocation Engine

Wires the pipeline together:

    EditRequest
      -> variations()                 alternate spellings of the text
      -> CorpusScanner.scan()         bounded matches, one per line
      -> validate()                   hard filter on request context
      -> score()                      confidence per survivor
      -> rank()                       bucket precedence, 0.5 cutoff, conflict factor
      -> patch()                      one line, one file, atomic
    ProcessResult

The engine keeps no state between calls; one instance can serve any number
of requests from any number of threads. Expected failures come back as a
ProcessResult with ``failure`` set, never as an exception.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from inlinepatch.config import EngineConfig
from inlinepatch.core.logging import get_logger
from inlinepatch.core.relocation.discovery import HintSource
from inlinepatch.core.relocation.models import (
    CandidateMatch,
    EditRequest,
    FailureKind,
    ProcessResult,
    ScoredMatch,
)
from inlinepatch.core.relocation.normalizer import normalize
from inlinepatch.core.relocation.patcher import FileLocks, is_jsx_path, patch, rewrite_line
from inlinepatch.core.relocation.ranker import RankOutcome, rank, score
from inlinepatch.core.relocation.scanner import CorpusScanner
from inlinepatch.core.relocation.validator import validate
from inlinepatch.core.relocation.variations import strip_matched_decoration, variations

logger = logging.getLogger("inlinepatch.core.relocation.engine")


@dataclass
class ProjectInfo:
    project_root: str
    source_root: str
    file_count: int
    supported_extensions: list[str]

    def to_dict(self) -> dict[str, Any]:
        return {
            "project_root": self.project_root,
            "source_root": self.source_root,
            "file_count": self.file_count,
            "supported_extensions": list(self.supported_extensions),
        }


@dataclass
class LocateReport:
    """Everything the pipeline decided for one request, without writing anything."""

    result: ProcessResult
    variations: list[str] = field(default_factory=list)
    files_scanned: int = 0
    candidates: list[CandidateMatch] = field(default_factory=list)
    rejected: list[ScoredMatch] = field(default_factory=list)
    outcome: RankOutcome | None = None
    loose_matches: list[str] = field(default_factory=list)
    hints: list[str] = field(default_factory=list)

    @property
    def best(self) -> ScoredMatch | None:
        return self.outcome.best if self.outcome else None

    def to_dict(self) -> dict[str, Any]:
        return {
            "result": self.result.to_dict(),
            "variations": list(self.variations),
            "files_scanned": self.files_scanned,
            "candidates": [c.to_dict() for c in self.candidates],
            "ranked": [m.to_dict() for m in self.outcome.ranked] if self.outcome else [],
            "rejected": [m.to_dict() for m in self.rejected],
            "bucket": self.outcome.bucket if self.outcome else None,
            "loose_matches": list(self.loose_matches),
            "hints": list(self.hints),
        }


class TextRelocationEngine:
    """Locate the source line of a piece of rendered text and rewrite it in place."""

    def __init__(
        self,
        project_root: str | Path,
        config: EngineConfig | None = None,
        hint_source: HintSource | None = None,
        locks: FileLocks | None = None,
    ):
        self.project_root = Path(project_root).resolve()
        self.config = config or EngineConfig()
        self.hint_source = hint_source
        self.scanner = CorpusScanner(self.project_root, self.config)
        self._locks = locks

    # =========================================================================
    # LOCATE (dry run)
    # =========================================================================

    def locate(self, request: EditRequest) -> LocateReport:
        text = request.original_text.strip()
        if not normalize(text):
            return LocateReport(
                result=ProcessResult(False, error_message="Original text is empty", failure=FailureKind.NO_MATCH)
            )

        wanted = variations(text)
        hints = self._discover(request)
        scan = self.scanner.scan(wanted, original_text=text, hints=hints)
        get_logger().scan(files=scan.files_scanned, candidates=len(scan.candidates), text=text[:60])

        report = LocateReport(
            result=ProcessResult(False),
            variations=wanted,
            files_scanned=scan.files_scanned,
            candidates=scan.candidates,
            loose_matches=scan.loose_matches,
            hints=[str(h) for h in hints],
        )
        if not scan.candidates:
            report.result = ProcessResult(
                False,
                error_message=f"No matches found for {text!r} in {scan.files_scanned} files",
                failure=FailureKind.NO_MATCH,
            )
            return report

        unique = len(scan.candidates) == 1
        survivors: list[ScoredMatch] = []
        for candidate in scan.candidates:
            validation = validate(
                candidate,
                request,
                unique,
                file_content=scan.contents.get(candidate.file_path, ""),
                scoring=self.config.scoring,
            )
            if not validation.accept:
                rejected = score(candidate, request, scoring=self.config.scoring)
                rejected.confidence = 0.0
                rejected.reasons.extend(validation.reasons)
                report.rejected.append(rejected)
                continue
            survivors.append(score(candidate, request, validation, self.config.scoring))

        has_conflicts = len(survivors) >= 2
        outcome = rank(survivors, self.config.scoring)
        report.outcome = outcome

        if outcome.best is None:
            top = outcome.ranked[0].confidence if outcome.ranked else 0.0
            if survivors:
                message = f"Low confidence match ({top:.2f}) among {len(survivors)} candidate(s)"
            else:
                message = f"All {len(scan.candidates)} candidate(s) failed context validation"
            report.result = ProcessResult(
                False,
                confidence=top,
                alternative_matches=outcome.ranked + report.rejected,
                has_conflicts=has_conflicts,
                error_message=message,
                failure=FailureKind.LOW_CONFIDENCE,
            )
            return report

        best = outcome.best
        new_text = self._replacement_for(request, best)
        preview = rewrite_line(
            best.original_line, best.matched_text, new_text, jsx=is_jsx_path(best.file_path)
        )
        report.result = ProcessResult(
            True,
            confidence=best.confidence,
            matched_file_path=best.file_path,
            line_number=best.line_number,
            match_context=best.original_line,
            updated_line=preview[0] if preview else None,
            alternative_matches=outcome.alternatives + report.rejected,
            has_conflicts=has_conflicts,
        )
        return report

    # =========================================================================
    # PROCESS (locate + patch)
    # =========================================================================

    def process_text_edit(self, request: EditRequest) -> ProcessResult:
        """Relocate ``request.original_text`` and rewrite it to ``request.new_text``."""
        report = self.locate(request)
        best = report.best
        live = get_logger()
        if best is None or not report.result.success:
            live.edit(
                "rejected",
                confidence=report.result.confidence,
                success=False,
                reason=report.result.failure.value if report.result.failure else "",
            )
            return report.result

        new_text = self._replacement_for(request, best)
        outcome = patch(best, new_text, self.project_root, self._locks)
        if not outcome.success:
            live.error(
                "Patcher",
                outcome.error or "Patch failed",
                file=best.file_path,
                line=best.line_number,
                failure=outcome.failure.value if outcome.failure else "",
            )
            return ProcessResult(
                False,
                confidence=best.confidence,
                matched_file_path=best.file_path,
                line_number=best.line_number,
                match_context=best.original_line,
                alternative_matches=report.result.alternative_matches,
                has_conflicts=report.result.has_conflicts,
                error_message=outcome.error,
                failure=outcome.failure,
            )

        live.edit(
            "applied",
            file_path=best.file_path,
            confidence=best.confidence,
            line=best.line_number,
            strategy=outcome.strategy or "",
        )
        result = report.result
        result.updated_line = outcome.updated_line
        return result

    # =========================================================================
    # PROJECT INFO
    # =========================================================================

    def project_info(self) -> ProjectInfo:
        roots = self.scanner.source_roots()
        return ProjectInfo(
            project_root=str(self.project_root),
            source_root=str(roots[0]),
            file_count=len(self.scanner.files()),
            supported_extensions=list(self.config.extensions),
        )

    # =========================================================================
    # HELPERS
    # =========================================================================

    def _discover(self, request: EditRequest) -> list[str]:
        if self.hint_source is None:
            return []
        hints = self.hint_source.discover(request)
        if hints:
            logger.debug("Discovery produced %d file hint(s)", len(hints))
        return list(hints)

    @staticmethod
    def _replacement_for(request: EditRequest, match: ScoredMatch) -> str:
        return strip_matched_decoration(request.original_text, match.matched_variation, request.new_text)
