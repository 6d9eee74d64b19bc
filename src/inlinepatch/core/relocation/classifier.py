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
"""Attribute-bound vs. free-text classification of a matched line.

A match can be both at once (``<img alt="Logo" /> Logo``). That is not a
conflict: the ranker uses both flags to order candidates.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

# Attributes whose value is user-visible text.
CONTENT_ATTRIBUTES: frozenset[str] = frozenset(
    {
        "title",
        "alt",
        "placeholder",
        "label",
        "content",
        "description",
        "text",
        "value",
        "message",
        "caption",
        "quote",
    }
)

_QUOTED_SPANS = (
    (re.compile(r'"[^"]*"'), '""'),
    (re.compile(r"'[^']*'"), "''"),
    (re.compile(r"\{[^}]*\}"), "{}"),
)


@dataclass(frozen=True)
class Classification:
    is_attribute_match: bool
    is_text_content_match: bool
    attribute_keys: tuple[str, ...] = ()

    @property
    def attribute_key(self) -> str | None:
        return self.attribute_keys[0] if self.attribute_keys else None

    @property
    def is_content_attribute(self) -> bool:
        return any(key.lower() in CONTENT_ATTRIBUTES for key in self.attribute_keys)


def _attribute_patterns(variation: str) -> list[re.Pattern]:
    v = re.escape(variation)
    return [
        re.compile(rf'(\w+)\s*=\s*"[^"]*{v}[^"]*"', re.IGNORECASE),
        re.compile(rf"(\w+)\s*=\s*'[^']*{v}[^']*'", re.IGNORECASE),
        re.compile(rf"(\w+)\s*=\s*\{{[^}}]*{v}[^}}]*\}}", re.IGNORECASE),
    ]


def attribute_keys(line: str, variation: str) -> tuple[str, ...]:
    """Names of the attributes whose value contains ``variation``, in line order."""
    found: list[tuple[int, str]] = []
    for pattern in _attribute_patterns(variation):
        for m in pattern.finditer(line):
            found.append((m.start(), m.group(1)))
    keys: list[str] = []
    for _, key in sorted(found):
        if key not in keys:
            keys.append(key)
    return tuple(keys)


def blank_quoted_spans(line: str) -> str:
    """Empty every quoted and braced span, keeping the delimiters."""
    for pattern, empty in _QUOTED_SPANS:
        line = pattern.sub(empty, line)
    return line


def classify(line: str, variation: str) -> Classification:
    """Tag a candidate line as attribute-bound, free text, or both."""
    keys = attribute_keys(line, variation)
    if not keys:
        return Classification(is_attribute_match=False, is_text_content_match=True)

    text_bound = any(key.lower() in CONTENT_ATTRIBUTES for key in keys)
    if not text_bound:
        # Also present as bare text outside every attribute?
        text_bound = variation in blank_quoted_spans(line)
    return Classification(
        is_attribute_match=True,
        is_text_content_match=text_bound,
        attribute_keys=keys,
    )
