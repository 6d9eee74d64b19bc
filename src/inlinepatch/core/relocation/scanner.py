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
InlinePatch -- Corpus Scanner

Walks the project's source roots and reports every line on which some
variation of the target text appears with a syntactic boundary around it:
wrapped in quotes, as a key/value string, as the whole line, or between
``>`` and ``<``. A bare substring hit never qualifies a line; it is only
counted for diagnostics.

For each qualifying line the literal on-disk substring is recovered
(``&quot;`` and friends included) so the patcher can replace exactly those
bytes.

ORDER:
    Source roots in order, then sorted path within a root, then line.
    Files reached from two roots are scanned once (first root wins).
    Parallel file reads never change that order.
"""

from __future__ import annotations

import logging
import os
import re
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Sequence

from inlinepatch.config import DEFAULT_EXCLUDED_DIRS, DEFAULT_SOURCE_DIRS, EngineConfig
from inlinepatch.core.relocation.classifier import classify
from inlinepatch.core.relocation.models import CandidateMatch
from inlinepatch.core.relocation.normalizer import decode_with_map
from inlinepatch.core.relocation.variations import is_decorated

logger = logging.getLogger("inlinepatch.core.relocation.scanner")

# (opening, closing) delimiters that bound an exact match.
BOUNDARIES: tuple[tuple[str, str], ...] = (
    ('"', '"'),
    ("'", "'"),
    ("`", "`"),
    ("&quot;", "&quot;"),
    ("&ldquo;", "&rdquo;"),
    # trailing punctuation inside the quotes
    ('"', '."'),
    ("'", ".'"),
    ('"', '!"'),
    ("'", "!'"),
    ('"', '?"'),
    ("'", "?'"),
    ("&quot;", ".&quot;"),
    ("&ldquo;", ".&rdquo;"),
    ("&ldquo;", "!&rdquo;"),
    # element text
    (">", "<"),
)

_SOLE_LINE_WRAPPERS: tuple[tuple[str, str], ...] = (
    ("", ""),
    ('"', '"'),
    ("'", "'"),
    ("", "."),
    ("", "!"),
    ("", "?"),
)

_ALNUM_RUN = re.compile(r"\w+")


def split_lines(content: str) -> list[str]:
    """Split on ``\\n`` only, dropping a trailing ``\\r`` from each line."""
    return [line[:-1] if line.endswith("\r") else line for line in content.split("\n")]


# =============================================================================
# LINE PREDICATE
# =============================================================================


def exact_match_span(line: str, variation: str) -> tuple[int, int] | None:
    """Return the ``(start, end)`` of ``variation`` in ``line`` if it is syntactically bounded."""
    if not variation:
        return None
    for opening, closing in BOUNDARIES:
        idx = line.find(opening + variation + closing)
        if idx != -1:
            start = idx + len(opening)
            return start, start + len(variation)

    stripped = line.strip()
    offset = line.find(stripped) if stripped else 0
    for prefix, suffix in _SOLE_LINE_WRAPPERS:
        if stripped == prefix + variation + suffix:
            start = offset + len(prefix)
            return start, start + len(variation)
    return None


def has_exact_text_match(line: str, variation: str) -> bool:
    return exact_match_span(line, variation) is not None


def match_line(line: str, variation: str) -> str | None:
    """Literal on-disk substring for ``variation`` if ``line`` qualifies, else None.

    The raw line is tried first; failing that, the line is decoded
    (entities, typographic quotes, whitespace runs) and the match is mapped
    back to the raw characters that produced it.
    """
    span = exact_match_span(line, variation)
    if span is not None:
        return line[span[0]:span[1]]

    decoded, spans = decode_with_map(line)
    if decoded == line:
        return None
    span = exact_match_span(decoded, variation)
    if span is None:
        return None
    start, end = span
    return line[spans[start][0]:spans[end - 1][1]]


def _anchor(variation: str) -> str:
    """Longest word run in ``variation``; entity decoding never creates or splits one."""
    runs = _ALNUM_RUN.findall(variation)
    return max(runs, key=len) if runs else ""


# =============================================================================
# FILE ENUMERATION
# =============================================================================


def resolve_source_roots(project_root: Path, source_dirs: Sequence[str] = DEFAULT_SOURCE_DIRS) -> list[Path]:
    """First existing conventional source dir, then the project root itself."""
    project_root = project_root.resolve()
    for name in source_dirs:
        candidate = project_root / name
        if candidate.is_dir():
            return [candidate, project_root]
    return [project_root]


def _within(path: Path, root: Path) -> bool:
    try:
        path.resolve().relative_to(root)
        return True
    except (OSError, ValueError):
        return False


def iter_files(
    root: Path,
    extensions: Iterable[str],
    excluded_dirs: Iterable[str] = DEFAULT_EXCLUDED_DIRS,
    exclude_dot_dirs: bool = True,
    project_root: Path | None = None,
) -> Iterable[Path]:
    """Yield eligible files under ``root`` in sorted order."""
    exts = {"." + e.lower().lstrip(".") for e in extensions}
    skip = set(excluded_dirs)
    boundary = (project_root or root).resolve()
    for dirpath, dirs, files in os.walk(root):
        dirs[:] = sorted(
            d for d in dirs if d not in skip and not (exclude_dot_dirs and d.startswith("."))
        )
        for name in sorted(files):
            if Path(name).suffix.lower() not in exts:
                continue
            path = Path(dirpath) / name
            if path.is_symlink() and not _within(path, boundary):
                logger.debug("Skipping %s: symlink leaves the project root", path)
                continue
            yield path


# =============================================================================
# SCAN
# =============================================================================


@dataclass
class ScanResult:
    candidates: list[CandidateMatch] = field(default_factory=list)
    files_scanned: int = 0
    # rel path -> content, only for files that produced candidates
    contents: dict[str, str] = field(default_factory=dict)
    # rel path:line for lines that contain the text without a boundary
    loose_matches: list[str] = field(default_factory=list)
    unreadable: list[str] = field(default_factory=list)


@dataclass
class _FileScan:
    rel_path: str
    candidates: list[CandidateMatch] = field(default_factory=list)
    content: str | None = None
    loose: list[int] = field(default_factory=list)
    error: str | None = None


class CorpusScanner:
    """Find candidate source lines for a set of variations under one project root."""

    def __init__(
        self,
        project_root: str | Path,
        config: EngineConfig | None = None,
        roots: Sequence[str | Path] | None = None,
    ):
        self.project_root = Path(project_root).resolve()
        self.config = config or EngineConfig()
        self._roots = [Path(r).resolve() for r in roots] if roots else None

    def source_roots(self) -> list[Path]:
        if self._roots is not None:
            return list(self._roots)
        return resolve_source_roots(self.project_root, self.config.source_dirs)

    def files(self, hints: Iterable[str | Path] = ()) -> list[Path]:
        """Every file to scan: roots in order, deduplicated, then hint paths."""
        seen: set[Path] = set()
        ordered: list[Path] = []

        def add(path: Path) -> None:
            key = path.resolve()
            if key not in seen:
                seen.add(key)
                ordered.append(path)

        for root in self.source_roots():
            for path in iter_files(
                root,
                self.config.extensions,
                self.config.excluded_dirs,
                self.config.exclude_dot_dirs,
                self.project_root,
            ):
                add(path)

        exts = {"." + e for e in self.config.extensions}
        for hint in hints:
            path = Path(hint)
            if not path.is_absolute():
                path = self.project_root / path
            if not path.is_file() or not _within(path, self.project_root):
                logger.info("Dropping file hint outside the project: %s", hint)
                continue
            if path.suffix.lower() not in exts:
                continue
            add(path)
        return ordered

    def relative(self, path: Path) -> str:
        try:
            return path.relative_to(self.project_root).as_posix()
        except ValueError:
            return path.resolve().relative_to(self.project_root).as_posix()

    def scan(
        self,
        variations: Sequence[str],
        original_text: str | None = None,
        hints: Iterable[str | Path] = (),
    ) -> ScanResult:
        """Scan the corpus; ``variations[0]`` is the canonical variation."""
        if not variations:
            return ScanResult()
        canonical = original_text if original_text is not None else variations[0]
        files = self.files(hints)

        def work(path: Path) -> _FileScan:
            return self._scan_file(path, variations, canonical)

        if self.config.max_workers > 1 and len(files) > 1:
            with ThreadPoolExecutor(max_workers=self.config.max_workers) as pool:
                scans = list(pool.map(work, files))
        else:
            scans = [work(path) for path in files]

        result = ScanResult(files_scanned=len(files))
        for fs in scans:
            if fs.error:
                result.unreadable.append(fs.rel_path)
                continue
            result.candidates.extend(fs.candidates)
            result.loose_matches.extend(f"{fs.rel_path}:{n}" for n in fs.loose)
            if fs.candidates and fs.content is not None:
                result.contents[fs.rel_path] = fs.content
        logger.debug(
            "Scanned %d files: %d candidates, %d loose",
            result.files_scanned, len(result.candidates), len(result.loose_matches),
        )
        return result

    def _scan_file(self, path: Path, variations: Sequence[str], canonical: str) -> _FileScan:
        rel = self.relative(path)
        fs = _FileScan(rel_path=rel)
        try:
            with open(path, encoding="utf-8", newline="") as fh:
                content = fh.read()
        except (OSError, UnicodeDecodeError) as exc:
            logger.warning("Skipping unreadable file %s: %s", rel, exc)
            fs.error = str(exc)
            return fs

        anchors = [(v, _anchor(v)) for v in variations]
        live = [(v, a) for v, a in anchors if not a or a in content]
        if not live:
            return fs
        fs.content = content

        lines = split_lines(content)
        window = self.config.context_lines
        for i, line in enumerate(lines):
            loose = False
            for variation, anchor in live:
                if anchor and anchor not in line:
                    continue
                literal = match_line(line, variation)
                if literal is None:
                    loose = loose or variation in line
                    continue
                tags = classify(line, variation)
                fs.candidates.append(
                    CandidateMatch(
                        file_path=rel,
                        line_number=i + 1,
                        original_line=line,
                        matched_text=literal,
                        matched_variation=variation,
                        context_before=lines[max(0, i - window):i],
                        context_after=lines[i + 1:i + 1 + window],
                        is_attribute_match=tags.is_attribute_match,
                        is_text_content_match=tags.is_text_content_match,
                        is_exact_match=not is_decorated(canonical, variation),
                        attribute_keys=tags.attribute_keys,
                    )
                )
                loose = False
                break
            if loose:
                fs.loose.append(i + 1)
        return fs


def scan(
    root_paths: Sequence[str | Path],
    extensions: Iterable[str],
    variations: Sequence[str],
    project_root: str | Path | None = None,
    excluded_dirs: Iterable[str] = DEFAULT_EXCLUDED_DIRS,
) -> list[CandidateMatch]:
    """Scan explicit roots (no source-dir resolution); paths are relative to ``project_root``."""
    if not root_paths:
        return []
    base = Path(project_root or root_paths[0]).resolve()
    config = EngineConfig(extensions=list(extensions), excluded_dirs=list(excluded_dirs))
    return CorpusScanner(base, config, roots=root_paths).scan(variations).candidates
