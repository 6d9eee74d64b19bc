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
Candidate-file hints.

A hint source names files that might hold the edited text. Hints are never
trusted: the scanner reads them like any other file and every candidate
they yield goes through the same validation and ranking.

BrowserHintSource renders the live page with Playwright (``pip install
inlinepatch[browser]``), finds the edited element and lists the files that
mention its text, markup, id or class.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Protocol, Sequence, runtime_checkable
from urllib.parse import urljoin

from inlinepatch.config import DEFAULT_EXCLUDED_DIRS, DEFAULT_EXTENSIONS
from inlinepatch.core.relocation.models import EditRequest
from inlinepatch.core.relocation.scanner import iter_files

logger = logging.getLogger("inlinepatch.core.relocation.discovery")

NAVIGATION_TIMEOUT_MS = 15_000


@runtime_checkable
class HintSource(Protocol):
    def discover(self, request: EditRequest) -> list[str]: ...


class StaticHintSource:
    """Fixed list of paths, mostly for tests and the CLI."""

    def __init__(self, paths: Iterable[str | Path]):
        self.paths = [str(p) for p in paths]

    def discover(self, request: EditRequest) -> list[str]:
        return list(self.paths)


@dataclass
class ElementInfo:
    tag_name: str = ""
    id: str = ""
    class_name: str = ""
    text: str = ""
    inner_html: str = ""

    @classmethod
    def from_dict(cls, data: dict) -> ElementInfo:
        return cls(
            tag_name=data.get("tagName") or "",
            id=data.get("id") or "",
            class_name=data.get("className") or "",
            text=(data.get("textContent") or "").strip(),
            inner_html=data.get("innerHTML") or "",
        )

    def needles(self) -> list[str]:
        """Strings to look for, most specific first."""
        return [n for n in (self.text, self.inner_html, self.id, self.class_name) if n]


def files_referencing(
    element: ElementInfo,
    roots: Sequence[Path],
    extensions: Iterable[str] = DEFAULT_EXTENSIONS,
    excluded_dirs: Iterable[str] = DEFAULT_EXCLUDED_DIRS,
) -> list[str]:
    """Files under ``roots`` containing the element's text, markup, id or class."""
    needles = element.needles()
    if not needles:
        return []
    exts = list(extensions)
    skip = list(excluded_dirs)
    found: list[str] = []
    seen: set[Path] = set()
    for root in roots:
        if not root.is_dir():
            continue
        for path in iter_files(root, exts, skip):
            key = path.resolve()
            if key in seen:
                continue
            seen.add(key)
            try:
                content = path.read_text(encoding="utf-8")
            except (OSError, UnicodeDecodeError):
                continue
            if any(needle in content for needle in needles):
                found.append(str(path))
    return found


class BrowserHintSource:
    """Locate the edited element on the rendered page and name files that reference it."""

    def __init__(
        self,
        base_url: str,
        project_root: str | Path,
        extensions: Iterable[str] = DEFAULT_EXTENSIONS,
        timeout_ms: int = NAVIGATION_TIMEOUT_MS,
    ):
        self.base_url = base_url
        self.project_root = Path(project_root).resolve()
        self.extensions = list(extensions)
        self.timeout_ms = timeout_ms

    def page_url(self, request: EditRequest) -> str:
        page = request.page_context
        if page.full_url:
            return page.full_url
        return urljoin(self.base_url.rstrip("/") + "/", (page.url or "/").lstrip("/"))

    def _selectors(self, request: EditRequest) -> list[str]:
        element = request.element_context
        selectors = []
        if element.css_selector:
            selectors.append(element.css_selector)
        if element.id:
            selectors.append(f"#{element.id}")
        if element.tag:
            selectors.append(element.tag)
        return selectors

    def element_info(self, request: EditRequest) -> ElementInfo | None:
        """Render the page and read the first element any selector resolves to."""
        from playwright.sync_api import sync_playwright

        url = self.page_url(request)
        with sync_playwright() as pw:
            browser = pw.chromium.launch(headless=True, args=["--no-sandbox"])
            try:
                page = browser.new_page()
                page.goto(url, wait_until="networkidle", timeout=self.timeout_ms)
                for selector in self._selectors(request):
                    handle = page.query_selector(selector)
                    if handle is None:
                        continue
                    logger.debug("Element found on %s via %s", url, selector)
                    data = handle.evaluate(
                        "el => ({tagName: el.tagName, id: el.id, className: String(el.className || ''),"
                        " textContent: el.textContent, innerHTML: el.innerHTML})"
                    )
                    return ElementInfo.from_dict(data)
            finally:
                browser.close()
        return None

    def discover(self, request: EditRequest) -> list[str]:
        try:
            info = self.element_info(request)
        except Exception as exc:
            logger.warning("Browser discovery failed for %s: %s", self.page_url(request), exc)
            return []
        if info is None:
            return []
        roots = [self.project_root / d for d in ("src", "public", "components", "app", "pages")]
        roots.append(self.project_root)
        files = files_referencing(info, roots, self.extensions)
        logger.info("Browser discovery suggested %d file(s)", len(files))
        return files
