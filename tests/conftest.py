"""Pytest configuration for inlinepatch tests."""

import os
import sys
import tempfile
from pathlib import Path

import pytest

# Ensure src/inlinepatch is importable
src_path = str(Path(__file__).parent.parent / "src")
if src_path not in sys.path:
    sys.path.insert(0, src_path)

# Keep logs and stores out of the real home directory
os.environ["INLINEPATCH_HOME"] = tempfile.mkdtemp(prefix="inlinepatch-tests-")

from inlinepatch.core.relocation.models import EditRequest  # noqa: E402


@pytest.fixture
def make_project(tmp_path):
    """Write ``{relative_path: content}`` under a fresh project root and return the root."""

    def _make(files: dict, root: Path = None) -> Path:
        root = root or tmp_path / "site"
        for rel, content in files.items():
            path = root / rel
            path.parent.mkdir(parents=True, exist_ok=True)
            with open(path, "w", encoding="utf-8", newline="") as fh:
                fh.write(content)
        return root

    return _make


@pytest.fixture
def make_request():
    """Build an EditRequest from keyword overrides of the wire format."""

    def _make(original_text: str, new_text: str = "", **overrides) -> EditRequest:
        data = {
            "originalText": original_text,
            "newText": new_text,
            "projectId": "test-project",
            "elementContext": {"elementTag": "", "cssSelector": "", "elementPath": ""},
            "surroundingContext": {},
            "pageContext": {"pageUrl": ""},
        }
        for key, value in overrides.items():
            if isinstance(value, dict) and isinstance(data.get(key), dict):
                data[key] = {**data[key], **value}
            else:
                data[key] = value
        return EditRequest.from_dict(data)

    return _make
