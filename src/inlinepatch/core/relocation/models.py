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
"""Data model for the relocation pipeline.

EditRequest and its context records are issued by the caller and never
mutated by the engine. CandidateMatch / ScoredMatch live for a single
``process_text_edit`` call. ProcessResult is what the caller gets back.
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from enum import Enum
from typing import Any


def _pick(data: dict[str, Any], *keys: str, default: Any = None) -> Any:
    """Return the first present key; accepts both camelCase and snake_case wire names."""
    for key in keys:
        if key in data and data[key] is not None:
            return data[key]
    return default


# =============================================================================
# REQUEST
# =============================================================================


@dataclass(frozen=True)
class ElementContext:
    """DOM identity of the edited element."""

    tag: str = ""
    id: str | None = None
    classes: tuple[str, ...] = ()
    css_selector: str = ""
    path: str = ""

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> ElementContext:
        data = data or {}
        return cls(
            tag=_pick(data, "elementTag", "tag", "element_tag", default=""),
            id=_pick(data, "elementId", "id", "element_id") or None,
            classes=tuple(_pick(data, "elementClasses", "classes", "element_classes", default=())),
            css_selector=_pick(data, "cssSelector", "css_selector", default=""),
            path=_pick(data, "elementPath", "path", "element_path", default=""),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "elementTag": self.tag,
            "elementId": self.id,
            "elementClasses": list(self.classes),
            "cssSelector": self.css_selector,
            "elementPath": self.path,
        }


@dataclass(frozen=True)
class SurroundingContext:
    """Text around the edited element, as seen on the rendered page."""

    parent_text: str | None = None
    siblings_before: tuple[str, ...] = ()
    siblings_after: tuple[str, ...] = ()
    nearby_unique_text: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> SurroundingContext:
        data = data or {}
        return cls(
            parent_text=_pick(data, "parentText", "parent_text"),
            siblings_before=tuple(_pick(data, "siblingsBefore", "siblings_before", default=())),
            siblings_after=tuple(_pick(data, "siblingsAfter", "siblings_after", default=())),
            nearby_unique_text=_pick(data, "nearbyUniqueText", "nearby_unique_text"),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "parentText": self.parent_text,
            "siblingsBefore": list(self.siblings_before),
            "siblingsAfter": list(self.siblings_after),
            "nearbyUniqueText": self.nearby_unique_text,
        }


@dataclass(frozen=True)
class PageContext:
    url: str = ""
    title: str | None = None
    full_url: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> PageContext:
        data = data or {}
        return cls(
            url=_pick(data, "pageUrl", "url", "page_url", default=""),
            title=_pick(data, "pageTitle", "title", "page_title"),
            full_url=_pick(data, "fullUrl", "full_url"),
        )

    def to_dict(self) -> dict[str, Any]:
        return {"pageUrl": self.url, "pageTitle": self.title, "fullUrl": self.full_url}


@dataclass(frozen=True)
class ComponentContext:
    component_name: str | None = None
    prop_name: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> ComponentContext | None:
        if not data:
            return None
        return cls(
            component_name=_pick(data, "componentName", "component_name"),
            prop_name=_pick(data, "propName", "prop_name"),
        )

    def to_dict(self) -> dict[str, Any]:
        return {"componentName": self.component_name, "propName": self.prop_name}


@dataclass(frozen=True)
class EditRequest:
    """A user's edit of one piece of rendered text, plus every hint about where it came from."""

    original_text: str
    new_text: str
    element_context: ElementContext = field(default_factory=ElementContext)
    surrounding_context: SurroundingContext = field(default_factory=SurroundingContext)
    page_context: PageContext = field(default_factory=PageContext)
    component_context: ComponentContext | None = None
    project_id: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> EditRequest:
        return cls(
            original_text=_pick(data, "originalText", "original_text", default=""),
            new_text=_pick(data, "newText", "new_text", default=""),
            element_context=ElementContext.from_dict(_pick(data, "elementContext", "element_context")),
            surrounding_context=SurroundingContext.from_dict(
                _pick(data, "surroundingContext", "surrounding_context")
            ),
            page_context=PageContext.from_dict(_pick(data, "pageContext", "page_context")),
            component_context=ComponentContext.from_dict(
                _pick(data, "componentContext", "component_context")
            ),
            project_id=_pick(data, "projectId", "project_id"),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "originalText": self.original_text,
            "newText": self.new_text,
            "projectId": self.project_id,
            "elementContext": self.element_context.to_dict(),
            "surroundingContext": self.surrounding_context.to_dict(),
            "pageContext": self.page_context.to_dict(),
            "componentContext": self.component_context.to_dict() if self.component_context else None,
        }


# =============================================================================
# MATCHES
# =============================================================================


@dataclass
class CandidateMatch:
    """One source line that matched some variation of the target text."""

    file_path: str  # relative to the project root, forward slashes
    line_number: int  # 1-based
    original_line: str
    matched_text: str  # literal on-disk substring
    matched_variation: str
    context_before: list[str] = field(default_factory=list)
    context_after: list[str] = field(default_factory=list)
    is_attribute_match: bool = False
    is_text_content_match: bool = False
    is_exact_match: bool = False
    attribute_keys: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "file_path": self.file_path,
            "line_number": self.line_number,
            "original_line": self.original_line,
            "matched_text": self.matched_text,
            "matched_variation": self.matched_variation,
            "context_before": list(self.context_before),
            "context_after": list(self.context_after),
            "is_attribute_match": self.is_attribute_match,
            "is_text_content_match": self.is_text_content_match,
            "is_exact_match": self.is_exact_match,
            "attribute_keys": list(self.attribute_keys),
        }


@dataclass
class ScoredMatch(CandidateMatch):
    """A candidate that went through validation and scoring."""

    score: float = 0.0
    confidence: float = 0.0
    reasons: list[str] = field(default_factory=list)

    @classmethod
    def from_candidate(
        cls,
        candidate: CandidateMatch,
        score: float = 0.0,
        confidence: float = 0.0,
        reasons: list[str] | None = None,
    ) -> ScoredMatch:
        base = {f.name: getattr(candidate, f.name) for f in fields(CandidateMatch)}
        return cls(**base, score=score, confidence=confidence, reasons=list(reasons or []))

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data.update(score=round(self.score, 3), confidence=round(self.confidence, 4), reasons=list(self.reasons))
        return data


# =============================================================================
# RESULT
# =============================================================================


class FailureKind(str, Enum):
    NO_MATCH = "no_match"
    LOW_CONFIDENCE = "low_confidence"
    STALE_TARGET = "stale_target"
    IO_FAILURE = "io_failure"


@dataclass
class ProcessResult:
    success: bool
    confidence: float = 0.0
    matched_file_path: str | None = None
    line_number: int | None = None
    match_context: str | None = None
    updated_line: str | None = None
    alternative_matches: list[ScoredMatch] = field(default_factory=list)
    has_conflicts: bool = False
    error_message: str | None = None
    failure: FailureKind | None = None

    def __post_init__(self):
        self.confidence = max(0.0, min(1.0, float(self.confidence)))

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "confidence": round(self.confidence, 4),
            "matched_file_path": self.matched_file_path,
            "line_number": self.line_number,
            "match_context": self.match_context,
            "updated_line": self.updated_line,
            "alternative_matches": [m.to_dict() for m in self.alternative_matches],
            "has_conflicts": self.has_conflicts,
            "error_message": self.error_message,
            "failure": self.failure.value if self.failure else None,
        }
