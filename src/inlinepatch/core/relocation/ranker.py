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
"""Scoring and selection of validated candidates."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from inlinepatch.config import ScoringConfig
from inlinepatch.core.relocation.classifier import CONTENT_ATTRIBUTES
from inlinepatch.core.relocation.models import CandidateMatch, EditRequest, ScoredMatch
from inlinepatch.core.relocation.validator import Validation

logger = logging.getLogger("inlinepatch.core.relocation.ranker")


@dataclass
class RankOutcome:
    best: ScoredMatch | None
    ranked: list[ScoredMatch] = field(default_factory=list)
    bucket: str | None = None

    @property
    def alternatives(self) -> list[ScoredMatch]:
        return [m for m in self.ranked if m is not self.best]


def _clamp(value: float) -> float:
    return max(0.0, min(1.0, value))


def score(
    candidate: CandidateMatch,
    request: EditRequest,
    validation: Validation | None = None,
    scoring: ScoringConfig | None = None,
) -> ScoredMatch:
    """Base score of a candidate and its confidence ``clamp(score / 4)``."""
    s = scoring or ScoringConfig()
    path = candidate.file_path.lower()
    total = s.base_score
    reasons = ["Text match found"]
    if validation is not None:
        reasons.append("Context validation passed")

    element = request.element_context
    if element.id or element.tag:
        if any(path.endswith(ext) for ext in s.component_extensions):
            total += s.component_file_bonus
            reasons.append("Component file with DOM context")
        elif any(marker in path for marker in s.mapping_file_markers):
            total -= s.mapping_file_penalty
            reasons.append("Mapping file (lower priority when DOM context available)")

    if "/components/" in f"/{path}":
        total += s.components_dir_bonus
        reasons.append("Component file")

    if candidate.is_exact_match:
        total += s.exact_match_bonus
        reasons.append("Exact text match")
    else:
        total -= s.inexact_match_penalty
        reasons.append("Decorated match (penalty applied)")

    if candidate.is_text_content_match and not candidate.is_attribute_match:
        total += s.pure_text_bonus
        reasons.append("Text content match")

    if validation is not None:
        reasons.extend(validation.reasons)

    return ScoredMatch.from_candidate(
        candidate, score=total, confidence=_clamp(total / s.confidence_divisor), reasons=reasons
    )


def _is_content_attribute(match: ScoredMatch) -> bool:
    return match.is_attribute_match and any(k.lower() in CONTENT_ATTRIBUTES for k in match.attribute_keys)


# Checked in order; the first non-empty bucket wins.
BUCKETS = (
    ("text_content", lambda m: m.is_text_content_match and not m.is_attribute_match),
    ("content_attribute", lambda m: m.is_text_content_match and _is_content_attribute(m)),
    ("mixed", lambda m: m.is_text_content_match and m.is_attribute_match),
    ("confidence", lambda m: True),
)


def _discount_conflicts(ranked: list[ScoredMatch], best: ScoredMatch | None, s: ScoringConfig) -> None:
    """Scale every confidence by the conflict factor when more than one candidate survived.

    The selected match is floored at the acceptance threshold.
    """
    if len(ranked) < 2 or s.conflict_confidence_factor >= 1:
        return
    others = len(ranked) - 1
    for match in ranked:
        discounted = match.confidence * s.conflict_confidence_factor
        if match is best:
            discounted = max(discounted, min(match.confidence, s.acceptance_threshold))
        match.confidence = _clamp(discounted)
        match.reasons.append(f"Conflicts with {others} other candidate(s)")


def rank(scored: list[ScoredMatch], scoring: ScoringConfig | None = None) -> RankOutcome:
    """Order by confidence (stable) and pick one among those above the acceptance threshold.

    Selection uses the undiscounted confidence; the conflict factor is applied afterwards.
    """
    s = scoring or ScoringConfig()
    ranked = sorted(scored, key=lambda m: -m.confidence)
    eligible = [m for m in ranked if m.confidence >= s.acceptance_threshold]
    for name, predicate in BUCKETS:
        bucket = [m for m in eligible if predicate(m)]
        if bucket:
            best = bucket[0]
            _discount_conflicts(ranked, best, s)
            logger.debug(
                "Selected %s:%d from bucket %s (confidence %.3f)",
                best.file_path, best.line_number, name, best.confidence,
            )
            return RankOutcome(best=best, ranked=ranked, bucket=name)
    _discount_conflicts(ranked, None, s)
    return RankOutcome(best=None, ranked=ranked)
