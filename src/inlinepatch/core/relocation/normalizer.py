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
Text normalisation.

Two strings are "the same text" for matching purposes iff their
``normalize()`` forms are equal. The rendered page hands us text with
curly quotes, NBSPs and decoded entities; source files hold straight
quotes, ``&quot;`` and friends. Both sides go through the same function.

``decode_with_map()`` does the structure-preserving half of the job
(entities, quotes, spaces) and records, for every decoded character, the
span of the raw line it came from, so a match found in decoded text can be
mapped back to the exact bytes on disk.
"""

import re

# &amp; last, so "&amp;quot;" decodes one layer per pass.
HTML_ENTITIES: dict[str, str] = {
    "&ldquo;": '"',
    "&rdquo;": '"',
    "&lsquo;": "'",
    "&rsquo;": "'",
    "&quot;": '"',
    "&#39;": "'",
    "&lt;": "<",
    "&gt;": ">",
    "&ndash;": "-",
    "&mdash;": "-",
    "&nbsp;": " ",
    "&hellip;": "...",
    "&amp;": "&",
}

# Curly and low quotation marks.
QUOTE_MAP: dict[str, str] = {
    "“": '"',
    "”": '"',
    "„": '"',
    "‘": "'",
    "’": "'",
    "‚": "'",
}

GUILLEMET_MAP: dict[str, str] = {
    "«": '"',
    "»": '"',
    "‹": "'",
    "›": "'",
}

# Stripped from both ends by normalize().
EDGE_QUOTES = "\"'“”‘’„‚"

NBSP = "\u00a0"
ELLIPSIS = "\u2026"

_WHITESPACE = re.compile(r"\s+")
_ENTITY = re.compile(r"&[a-zA-Z0-9#]+;")
_QUOTE_TABLE = str.maketrans(QUOTE_MAP)
_LIGHT_TABLE = str.maketrans({**QUOTE_MAP, **GUILLEMET_MAP, NBSP: " "})


def _normalize_once(text: str) -> str:
    cleaned = text.strip()
    for entity, replacement in HTML_ENTITIES.items():
        cleaned = cleaned.replace(entity, replacement)
    cleaned = cleaned.replace(NBSP, " ").replace(ELLIPSIS, "...")
    cleaned = cleaned.translate(_QUOTE_TABLE)
    cleaned = _WHITESPACE.sub(" ", cleaned)
    cleaned = cleaned.strip(EDGE_QUOTES)
    if cleaned.endswith("."):
        cleaned = cleaned[:-1]
    return cleaned.strip()


def normalize(text: str) -> str:
    """Canonicalise entities, quotes and whitespace; strip wrapping quotes and a trailing period.

    Applied until stable, so ``normalize(normalize(x)) == normalize(x)``. After
    the first pass every pass that changes the text also shortens it.
    """
    if not text:
        return ""
    current = text
    while True:
        nxt = _normalize_once(current)
        if nxt == current:
            break
        current = nxt
    return current


def normalize_quotes(text: str) -> str:
    """Light canonicalisation: typographic quotes, guillemets, NBSP, ellipsis, whitespace.

    Dashes are kept as-is and nothing is stripped.
    """
    normalized = text.translate(_LIGHT_TABLE).replace(ELLIPSIS, "...")
    return _WHITESPACE.sub(" ", normalized)


def decode_with_map(line: str) -> tuple[str, list[tuple[int, int]]]:
    """Decode entities/quotes/whitespace in ``line`` without trimming anything.

    Returns ``(decoded, spans)`` where ``spans[i]`` is the ``(start, end)``
    slice of ``line`` that produced ``decoded[i]``. A run of whitespace
    collapses to one space spanning the whole run.
    """
    out: list[str] = []
    spans: list[tuple[int, int]] = []
    i = 0
    n = len(line)
    while i < n:
        ch = line[i]
        if ch == "&":
            m = _ENTITY.match(line, i)
            if m and m.group(0) in HTML_ENTITIES:
                replacement = HTML_ENTITIES[m.group(0)]
                if replacement == " " and out and out[-1] == " " and spans[-1][1] == i:
                    spans[-1] = (spans[-1][0], m.end())
                else:
                    for rch in replacement:
                        out.append(rch)
                        spans.append((i, m.end()))
                i = m.end()
                continue
        if ch.isspace():
            start = i
            while i < n and line[i].isspace():
                i += 1
            if out and out[-1] == " " and spans[-1][1] == start:
                # follows a decoded &nbsp;
                spans[-1] = (spans[-1][0], i)
            else:
                out.append(" ")
                spans.append((start, i))
            continue
        if ch == ELLIPSIS:
            for _ in range(3):
                out.append(".")
                spans.append((i, i + 1))
            i += 1
            continue
        out.append(QUOTE_MAP.get(ch, ch))
        spans.append((i, i + 1))
        i += 1
    return "".join(out), spans


def decode_line(line: str) -> str:
    """Structure-preserving decode of a source line (see ``decode_with_map``)."""
    return decode_with_map(line)[0]
