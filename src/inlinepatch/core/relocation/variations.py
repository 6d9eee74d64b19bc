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
"""Alternate spellings of a target string.

Authored source often wraps the same logical string in different quotes or
decorates it with a bullet, an emoji or list numbering that the page shows
but the user does not consider part of the text. Only bounded prefixes and
suffixes from the fixed vocabularies below are ever removed.
"""

import re

from inlinepatch.core.relocation.normalizer import normalize, normalize_quotes

_WRAP_QUOTES = "\"'„“”‚‘’«»‹›"
_QUOTE_WRAPPING = re.compile(f"^[{_WRAP_QUOTES}]+|[{_WRAP_QUOTES}]+$")

_EMOJI = "❌✅🔥💡📚⭐🎯🚀💪🌟✨🎉🔔📝💰🏆🎁🔍📊🎪🎨🎵🎮🎲"
_SYMBOLS = "✓×•→←↑↓★☆♦♠♣♥"

LEADING_DECORATORS: tuple[re.Pattern, ...] = (
    re.compile(f"^[{_EMOJI}]\\s*"),
    re.compile(f"^[{_SYMBOLS}]\\s*"),
    re.compile(r"^[0-9]+\.\s*"),
    re.compile(r"^[a-zA-Z]\)\s*"),
    re.compile(r"^[-•]\s*"),
)

TRAILING_DECORATORS: tuple[re.Pattern, ...] = (
    re.compile(f"\\s*[{_EMOJI}]$"),
    re.compile(f"\\s*[{_SYMBOLS}]$"),
)


def variations(text: str) -> list[str]:
    """Return the deduplicated variation list for ``text``.

    The first entry is always ``text`` itself (the canonical variation),
    followed by ``normalize(text)``; the list is never empty.
    """
    found: list[str] = [text]

    def add(candidate: str) -> None:
        candidate = candidate.strip()
        if candidate and candidate not in found:
            found.append(candidate)

    def add_with_normalized(candidate: str) -> None:
        add(candidate)
        add(normalize_quotes(candidate))
        add(normalize(candidate))

    add(normalize(text))
    add(normalize_quotes(text))

    without_quotes = _QUOTE_WRAPPING.sub("", text).strip()
    if without_quotes and without_quotes != text:
        add_with_normalized(without_quotes)

    for prefix in LEADING_DECORATORS:
        stripped = prefix.sub("", text, count=1).strip()
        if stripped and stripped != text:
            add_with_normalized(stripped)

    for suffix in TRAILING_DECORATORS:
        stripped = suffix.sub("", text, count=1).strip()
        if stripped and stripped != text:
            add_with_normalized(stripped)

    return found


def is_decorated(original_text: str, variation: str) -> bool:
    """True when ``variation`` only matches after a quote or decorator was stripped."""
    return normalize(variation) != normalize(original_text)


def strip_matched_decoration(original_text: str, variation: str, new_text: str) -> str:
    """Drop from ``new_text`` the decoration that matching dropped from ``original_text``.

    If the page shows ``"🚀 Launch now"`` but the source holds ``Launch now``
    (the emoji comes from elsewhere), an edit to ``"🚀 Go now"`` must write
    ``Go now`` or the emoji would be duplicated.
    """
    for source in (original_text.strip(), normalize_quotes(original_text).strip()):
        head, sep, tail = source.partition(variation)
        if not sep or (not head and not tail):
            continue
        trimmed = new_text.strip()
        if head and trimmed.startswith(head.strip()):
            trimmed = trimmed[len(head.strip()):]
        if tail and trimmed.endswith(tail.strip()):
            trimmed = trimmed[: len(trimmed) - len(tail.strip())]
        return trimmed.strip()
    return new_text
