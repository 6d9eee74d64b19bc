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
InlinePatch -- Source Patcher

Rewrites the one line a relocation settled on, touching only the span
that holds the matched literal.

STRATEGIES (the line's shape picks the first one to try):
    quoted_literal   key: "value" style lines; replace inside the quoted span
    entity_quoted    &quot;...&quot; / &ldquo;...&rdquo; spans
    tag_text         text between > and <, before the first tag or after the last
    bare             first literal occurrence anywhere on the line

If the preferred strategy finds no span holding the literal, the others are
tried in the order above. Replacement is a fixed-string substitution of
the first occurrence inside the chosen span.

SAFETY:
    - The file is re-read; the line must still exist and be unchanged
      since the scan, otherwise the edit fails as STALE_TARGET.
    - The new content is staged in a transient sibling
      (".<name>.inlinepatch_tmp_<pid>_<thread>") and moved over the original
      with os.replace; on any failure the sibling is removed and the
      original stays byte-identical. No file outlives the call, and the
      staging suffix is never an allowed extension, so a concurrent scan
      does not read it.
    - Line endings (\\n or \\r\\n) are preserved per line.
    - Writes to one file are serialised within the process.
"""

from __future__ import annotations

import logging
import os
import re
import shutil
import threading
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path

from inlinepatch.core.relocation.models import CandidateMatch, FailureKind

logger = logging.getLogger("inlinepatch.core.relocation.patcher")


@dataclass
class PatchOutcome:
    success: bool
    updated_line: str | None = None
    strategy: str | None = None
    error: str | None = None
    failure: FailureKind | None = None
    written: bool = False


# =============================================================================
# PER-FILE LOCKS
# =============================================================================


class FileLocks:
    """One lock per resolved path, created on first use."""

    def __init__(self):
        self._guard = threading.Lock()
        self._locks: dict[str, threading.Lock] = {}

    def for_path(self, path: Path) -> threading.Lock:
        key = str(path.resolve())
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = self._locks[key] = threading.Lock()
            return lock


_file_locks = FileLocks()


# =============================================================================
# ESCAPING
# =============================================================================

_ENTITY_FOR = (
    ("&amp;", "&"),
    ("&quot;", '"'),
    ("&#39;", "'"),
    ("&lt;", "<"),
    ("&gt;", ">"),
)
_BARE_AMPERSAND = re.compile(r"&(?![a-zA-Z0-9#]+;)")


def match_escaping(literal: str, new_text: str) -> str:
    """Encode ``new_text`` with the entities the on-disk literal already uses."""
    result = new_text
    for entity, char in _ENTITY_FOR:
        if entity not in literal:
            continue
        if char == "&":
            result = _BARE_AMPERSAND.sub("&amp;", result)
        else:
            result = result.replace(char, entity)
    return result


_ENTITY_LIKE_AMPERSAND = re.compile(r"&(?=[a-zA-Z0-9#]+;)")
_JSX_BRACE = re.compile(r"[{}]")
_JSX_SUFFIXES = (".jsx", ".tsx")


def is_jsx_path(path: str | Path) -> bool:
    return Path(path).suffix.lower() in _JSX_SUFFIXES


def escape_text_content(literal: str, new_text: str, jsx: bool = False) -> str:
    """Encode ``new_text`` for use as element text.

    ``<``, ``>`` and entity-looking ``&`` sequences are always encoded; other
    entities only when the literal already uses them. In JSX, braces become
    string expressions.
    """
    result = _ENTITY_LIKE_AMPERSAND.sub("&amp;", new_text)
    if "&amp;" in literal:
        result = _BARE_AMPERSAND.sub("&amp;", result)
    result = result.replace("<", "&lt;").replace(">", "&gt;")
    for entity, char in (("&quot;", '"'), ("&#39;", "'")):
        if entity in literal:
            result = result.replace(char, entity)
    if jsx:
        result = _JSX_BRACE.sub(lambda m: '{"' + m.group(0) + '"}', result)
    return result


def _escape_for_quote(text: str, quote: str, attribute: bool) -> str:
    if quote not in text:
        return text
    if attribute:
        return text.replace(quote, "&quot;" if quote == '"' else "&#39;")
    return re.sub(r"(?<!\\)" + re.escape(quote), "\\" + quote, text)


# =============================================================================
# STRATEGIES
# =============================================================================

_QUOTED_SPAN = re.compile(r'"((?:[^"\\]|\\.)*)"|\'((?:[^\'\\]|\\.)*)\'|`((?:[^`\\]|\\.)*)`')
_ENTITY_SPAN = re.compile(r"(&quot;|&ldquo;)(.*?)(&quot;|&rdquo;)")
_KEY_VALUE = re.compile(r"""[:]\s*["'`]|["'`]\s*:""")


def _replace_in_span(line: str, start: int, end: int, literal: str, replacement: str) -> str | None:
    inner = line[start:end]
    idx = inner.find(literal)
    if idx == -1:
        return None
    inner = inner[:idx] + replacement + inner[idx + len(literal):]
    return line[:start] + inner + line[end:]


def quoted_literal(line: str, literal: str, new_text: str) -> str | None:
    for m in _QUOTED_SPAN.finditer(line):
        group = next(g for g in (1, 2, 3) if m.group(g) is not None)
        if literal not in m.group(group):
            continue
        quote = line[m.start()]
        attribute = line[:m.start()].rstrip().endswith("=")
        replacement = _escape_for_quote(new_text, quote, attribute)
        return _replace_in_span(line, m.start(group), m.end(group), literal, replacement)
    return None


def entity_quoted(line: str, literal: str, new_text: str) -> str | None:
    for m in _ENTITY_SPAN.finditer(line):
        if literal in m.group(2):
            return _replace_in_span(line, m.start(2), m.end(2), literal, new_text)
    return None


def _text_spans(line: str) -> list[tuple[int, int]]:
    """Spans of ``line`` outside tag syntax, in line order."""
    spans: list[tuple[int, int]] = []
    first_tag = line.find("<")
    if first_tag > 0:
        spans.append((0, first_tag))
    for m in re.finditer(r">([^<>]*)<", line):
        spans.append((m.start(1), m.end(1)))
    last_close = line.rfind(">")
    if last_close != -1 and "<" not in line[last_close:]:
        spans.append((last_close + 1, len(line)))
    return spans


def tag_text(line: str, literal: str, new_text: str) -> str | None:
    for start, end in _text_spans(line):
        updated = _replace_in_span(line, start, end, literal, new_text)
        if updated is not None:
            return updated
    return None


def bare(line: str, literal: str, new_text: str) -> str | None:
    if literal not in line:
        return None
    return line.replace(literal, new_text, 1)


Strategy = Callable[[str, str, str], "str | None"]

STRATEGIES: dict[str, Strategy] = {
    "quoted_literal": quoted_literal,
    "entity_quoted": entity_quoted,
    "tag_text": tag_text,
    "bare": bare,
}


def preferred_strategy(line: str) -> str:
    if _KEY_VALUE.search(line):
        return "quoted_literal"
    if "&quot;" in line or "&ldquo;" in line:
        return "entity_quoted"
    if "<" in line and ">" in line:
        return "tag_text"
    return "bare"


def rewrite_line(line: str, literal: str, new_text: str, jsx: bool = False) -> tuple[str, str] | None:
    """Return ``(updated_line, strategy_name)`` or None when no strategy finds the literal.

    Element text gets markup-safe escaping; every other span keeps the
    literal's own entity style.
    """
    if not literal:
        return None
    plain = match_escaping(literal, new_text)
    markup = escape_text_content(literal, new_text, jsx)
    first = preferred_strategy(line)
    order = [first] + [name for name in STRATEGIES if name != first]
    for name in order:
        replacement = markup if name == "tag_text" else plain
        updated = STRATEGIES[name](line, literal, replacement)
        if updated is not None:
            return updated, name
    return None


# =============================================================================
# FILE WRITE
# =============================================================================


def _read_raw(path: Path) -> str:
    with open(path, encoding="utf-8", newline="") as fh:
        return fh.read()


def temp_path_for(path: Path) -> Path:
    """Sibling path the new content is staged in before the rename."""
    return path.with_name(f".{path.name}.inlinepatch_tmp_{os.getpid()}_{threading.get_ident()}")


def _write_atomic(path: Path, content: str) -> None:
    tmp = temp_path_for(path)
    try:
        with open(tmp, "w", encoding="utf-8", newline="") as fh:
            fh.write(content)
            fh.flush()
            os.fsync(fh.fileno())
        shutil.copymode(path, tmp)
        os.replace(tmp, path)
    finally:
        if tmp.exists():
            tmp.unlink()


def patch(
    match: CandidateMatch,
    new_text: str,
    project_root: str | Path,
    locks: FileLocks | None = None,
) -> PatchOutcome:
    """Rewrite ``match``'s line in place. Never raises for expected failures."""
    root = Path(project_root).resolve()
    target = (root / match.file_path).resolve()
    where = f"{match.file_path}:{match.line_number}"
    try:
        target.relative_to(root)
    except ValueError:
        logger.error("Refusing to patch %s: outside project root", where)
        return PatchOutcome(False, error=f"{match.file_path} is outside the project root",
                            failure=FailureKind.IO_FAILURE)
    if not target.is_file():
        logger.error("Cannot patch %s: file does not exist", where)
        return PatchOutcome(False, error=f"File not found: {match.file_path}", failure=FailureKind.IO_FAILURE)

    with (locks or _file_locks).for_path(target):
        try:
            content = _read_raw(target)
        except (OSError, UnicodeDecodeError) as exc:
            logger.error("Cannot read %s: %s", where, exc)
            return PatchOutcome(False, error=f"Cannot read {match.file_path}: {exc}", failure=FailureKind.IO_FAILURE)

        lines = content.split("\n")
        index = match.line_number - 1
        if index < 0 or index >= len(lines):
            logger.warning("Stale target %s: file has %d lines", where, len(lines))
            return PatchOutcome(
                False,
                error=f"Line number {match.line_number} exceeds file length ({len(lines)} lines)",
                failure=FailureKind.STALE_TARGET,
            )

        raw = lines[index]
        ending = "\r" if raw.endswith("\r") else ""
        line = raw[:-1] if ending else raw
        if line != match.original_line:
            logger.warning("Stale target %s: line changed since scan", where)
            return PatchOutcome(
                False,
                error=f"Line {match.line_number} of {match.file_path} changed since it was scanned",
                failure=FailureKind.STALE_TARGET,
            )

        rewritten = rewrite_line(line, match.matched_text, new_text, jsx=is_jsx_path(match.file_path))
        if rewritten is None:
            logger.warning("Stale target %s: matched text %r not on line", where, match.matched_text)
            return PatchOutcome(
                False,
                error=f"Matched text no longer present on line {match.line_number}",
                failure=FailureKind.STALE_TARGET,
            )
        updated, strategy = rewritten
        if updated == line:
            return PatchOutcome(True, updated_line=updated, strategy=strategy)

        lines[index] = updated + ending
        try:
            _write_atomic(target, "\n".join(lines))
        except OSError as exc:
            logger.error("Write failed for %s: %s", where, exc)
            return PatchOutcome(
                False, error=f"Cannot write {match.file_path}: {exc}", failure=FailureKind.IO_FAILURE
            )

    logger.info("Patched %s using %s", where, strategy)
    return PatchOutcome(True, updated_line=updated, strategy=strategy, written=True)
