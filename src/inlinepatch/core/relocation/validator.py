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
InlinePatch -- Context Validator

Decides whether a candidate line is plausibly the source of the edited
text, using the weak hints the editor sent along with the request.

EVIDENCE:
    Each kind of evidence is an independent extractor in EVIDENCE_TABLE.
    Extractors return Evidence records; points are summed. An extractor
    may veto, which rejects the candidate whatever the total.

    parent_text       parent text contains the target and so does the file
    siblings          following-sibling text found in the file
    page_url          file path correlates with the page URL
    css_selector      id/class tokens of the selector appear in the file
    minimal_context   parent text adds nothing: needs a specific selector
    uniqueness        only candidate line in the whole corpus
    element_identity  request carries an element id

THRESHOLD:
    1 with an element id, a unique match or >= 3 element classes;
    otherwise 3 when context is minimal; otherwise 2 for text under
    10 characters, else 1. Below threshold the candidate is dropped.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable
from dataclasses import dataclass, field

from inlinepatch.config import ScoringConfig
from inlinepatch.core.relocation.models import CandidateMatch, EditRequest
from inlinepatch.core.relocation.normalizer import normalize

logger = logging.getLogger("inlinepatch.core.relocation.validator")

_SELECTOR_TOKEN = re.compile(r"#[\w-]+|\.[\w-]+")


# =============================================================================
# DATA CLASSES
# =============================================================================


@dataclass(frozen=True)
class Evidence:
    kind: str
    points: float = 0.0
    reason: str = ""
    veto: bool = False


@dataclass
class ValidationContext:
    """Everything an extractor may look at for one candidate."""

    candidate: CandidateMatch
    request: EditRequest
    file_content: str
    is_globally_unique: bool
    scoring: ScoringConfig
    _normalized_content: str | None = field(default=None, repr=False)

    @property
    def normalized_content(self) -> str:
        if self._normalized_content is None:
            self._normalized_content = normalize(self.file_content)
        return self._normalized_content

    @property
    def normalized_target(self) -> str:
        return normalize(self.request.original_text)

    @property
    def has_minimal_context(self) -> bool:
        parent = self.request.surrounding_context.parent_text
        return bool(parent) and normalize(parent) == self.normalized_target


@dataclass
class Validation:
    accept: bool
    score: float
    threshold: float
    reasons: list[str] = field(default_factory=list)
    evidence: list[Evidence] = field(default_factory=list)

    @property
    def vetoed(self) -> bool:
        return any(e.veto for e in self.evidence)


# =============================================================================
# EXTRACTORS
# =============================================================================


def parent_text_evidence(ctx: ValidationContext) -> Evidence | None:
    parent = ctx.request.surrounding_context.parent_text
    if not parent:
        return None
    target = ctx.normalized_target
    if target not in normalize(parent):
        return Evidence("parent_text", veto=True, reason="Text not found in parent context")
    if target not in ctx.normalized_content:
        return Evidence("parent_text", veto=True, reason="Text not found in file content")
    if ctx.has_minimal_context:
        return Evidence(
            "parent_text", ctx.scoring.weak_parent_text_points, "Text found with minimal parent context"
        )
    return Evidence("parent_text", ctx.scoring.parent_text_points, "Text found in parent context and file")


def _sibling_text(descriptor: str) -> str:
    """Text part of a sibling descriptor such as ``p: Some text [2 children]``."""
    if ":" in descriptor:
        descriptor = descriptor.split(":", 1)[1]
    return descriptor.split("[", 1)[0].strip()


def sibling_evidence(ctx: ValidationContext) -> Evidence | None:
    s = ctx.scoring
    checked = found = 0
    for descriptor in ctx.request.surrounding_context.siblings_after:
        text = _sibling_text(descriptor)
        if len(text) <= s.sibling_min_length:
            continue
        checked += 1
        if normalize(text) in ctx.normalized_content:
            found += 1
    if not checked:
        return None
    if found / checked >= s.sibling_match_ratio:
        return Evidence("siblings", s.sibling_points * found, f"{found}/{checked} sibling content matches found")
    return Evidence("siblings", -s.sibling_miss_penalty, f"Poor sibling matching: {found}/{checked}")


def page_url_evidence(ctx: ValidationContext) -> Evidence | None:
    page = ctx.request.page_context
    if not page.url:
        return None
    url = page.url.split("?", 1)[0].split("#", 1)[0]
    path = ctx.candidate.file_path.lower()
    if url.strip("/") == "":
        if any(hint in path for hint in ctx.scoring.home_page_hints):
            return Evidence("page_url", ctx.scoring.home_page_points, "File path matches home page context")
        return None
    segment = url.strip("/").rsplit("/", 1)[-1].lower()
    if segment and segment in path:
        return Evidence("page_url", ctx.scoring.page_segment_points, "File path matches page-specific context")
    return None


def css_selector_evidence(ctx: ValidationContext) -> Evidence | None:
    selector = ctx.request.element_context.css_selector
    if not selector:
        return None
    matched = 0
    for token in _SELECTOR_TOKEN.findall(selector):
        name = token[1:]
        if len(name) >= ctx.scoring.selector_token_min_length and name in ctx.file_content:
            matched += 1
    if not matched:
        return None
    return Evidence(
        "css_selector", matched * ctx.scoring.selector_token_points, f"{matched} CSS selector parts matched"
    )


def minimal_context_evidence(ctx: ValidationContext) -> Evidence | None:
    if not ctx.has_minimal_context:
        return None
    selector = ctx.request.element_context.css_selector or ""
    if len(selector) >= ctx.scoring.specific_selector_length:
        return Evidence(
            "minimal_context",
            ctx.scoring.minimal_context_bonus,
            "Detailed CSS selector provides context for minimal parent text",
        )
    return Evidence(
        "minimal_context",
        -ctx.scoring.minimal_context_penalty,
        "Minimal context with limited CSS specificity",
    )


def uniqueness_evidence(ctx: ValidationContext) -> Evidence | None:
    if not ctx.is_globally_unique:
        return None
    return Evidence("uniqueness", ctx.scoring.uniqueness_points, "Text is unique in codebase")


def element_identity_evidence(ctx: ValidationContext) -> Evidence | None:
    if not ctx.request.element_context.id:
        return None
    return Evidence("element_identity", ctx.scoring.element_id_points, "Element has unique ID")


Extractor = Callable[[ValidationContext], "Evidence | None"]

EVIDENCE_TABLE: dict[str, Extractor] = {
    "parent_text": parent_text_evidence,
    "siblings": sibling_evidence,
    "page_url": page_url_evidence,
    "css_selector": css_selector_evidence,
    "minimal_context": minimal_context_evidence,
    "uniqueness": uniqueness_evidence,
    "element_identity": element_identity_evidence,
}


# =============================================================================
# VALIDATION
# =============================================================================


def acceptance_threshold(ctx: ValidationContext) -> float:
    s = ctx.scoring
    element = ctx.request.element_context
    if element.id or ctx.is_globally_unique or len(element.classes) >= s.strong_class_count:
        return s.strong_context_threshold
    if ctx.has_minimal_context:
        return s.minimal_context_threshold
    if len(ctx.request.original_text.strip()) < s.short_text_length:
        return s.short_text_threshold
    return s.default_threshold


def validate(
    candidate: CandidateMatch,
    request: EditRequest,
    is_globally_unique: bool,
    file_content: str = "",
    scoring: ScoringConfig | None = None,
    table: dict[str, Extractor] | None = None,
) -> Validation:
    """Score ``candidate`` against the request context and apply the hard filter."""
    ctx = ValidationContext(
        candidate=candidate,
        request=request,
        file_content=file_content,
        is_globally_unique=is_globally_unique,
        scoring=scoring or ScoringConfig(),
    )
    threshold = acceptance_threshold(ctx)

    evidence: list[Evidence] = []
    for kind, extractor in (table or EVIDENCE_TABLE).items():
        item = extractor(ctx)
        if item is None:
            continue
        evidence.append(item)
        if item.veto:
            logger.debug("%s:%d vetoed by %s: %s", candidate.file_path, candidate.line_number, kind, item.reason)
            return Validation(False, 0.0, threshold, [item.reason], evidence)

    score = sum(e.points for e in evidence)
    reasons = [e.reason for e in evidence]
    accept = score >= threshold
    if not accept:
        reasons.append(f"Insufficient validation score ({score:g}/{threshold:g})")
    logger.debug(
        "%s:%d validation %s (score %.2f, threshold %.2f)",
        candidate.file_path, candidate.line_number, "passed" if accept else "failed", score, threshold,
    )
    return Validation(accept, score, threshold, reasons, evidence)
