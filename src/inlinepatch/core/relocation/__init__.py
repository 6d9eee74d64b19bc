"""Context-aware text relocation: find the source line of rendered text and rewrite it."""

from inlinepatch.core.relocation.engine import LocateReport, ProjectInfo, TextRelocationEngine
from inlinepatch.core.relocation.models import (
    CandidateMatch,
    ComponentContext,
    EditRequest,
    ElementContext,
    FailureKind,
    PageContext,
    ProcessResult,
    ScoredMatch,
    SurroundingContext,
)

__all__ = [
    "CandidateMatch",
    "ComponentContext",
    "EditRequest",
    "ElementContext",
    "FailureKind",
    "LocateReport",
    "PageContext",
    "ProcessResult",
    "ProjectInfo",
    "ScoredMatch",
    "SurroundingContext",
    "TextRelocationEngine",
]
