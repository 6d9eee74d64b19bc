"""Unit tests for candidate scoring, bucket selection and the conflict factor."""

import pytest

from inlinepatch.config import ScoringConfig
from inlinepatch.core.relocation.models import CandidateMatch, ScoredMatch
from inlinepatch.core.relocation.ranker import rank, score
from inlinepatch.core.relocation.validator import Validation


def make_candidate(path="src/app/page.tsx", text_content=True, attribute=False, exact=True, keys=()):
    return CandidateMatch(
        file_path=path,
        line_number=1,
        original_line="<h1>Welcome</h1>",
        matched_text="Welcome",
        matched_variation="Welcome",
        is_text_content_match=text_content,
        is_attribute_match=attribute,
        is_exact_match=exact,
        attribute_keys=tuple(keys),
    )


def scored(confidence, **kwargs):
    return ScoredMatch.from_candidate(make_candidate(**kwargs), confidence=confidence)


class TestScore:
    def test_component_file_with_dom_context(self, make_request):
        request = make_request("Welcome", elementContext={"elementTag": "h1"})
        result = score(make_candidate(), request)
        # base 3 + component 2 + exact 3 + pure text 1
        assert result.score == pytest.approx(9.0)
        assert result.confidence == 1.0

    def test_mapping_file_penalty(self, make_request):
        request = make_request("Welcome", elementContext={"elementTag": "h1"})
        result = score(make_candidate(path="data/element-id.map.json"), request)
        assert result.score == pytest.approx(3 - 1 + 3 + 1)

    def test_decorated_match_penalty(self, make_request):
        result = score(make_candidate(path="content.md", exact=False), make_request("Welcome"))
        # base 3 - decorated 1 + pure text 1
        assert result.score == pytest.approx(3.0)
        assert result.confidence == pytest.approx(0.75)

    def test_components_directory_bonus(self, make_request):
        result = score(make_candidate(path="src/components/Hero.vue"), make_request("Welcome"))
        assert "Component file" in result.reasons

    def test_validation_reasons_are_appended(self, make_request):
        validation = Validation(True, 3.0, 1.0, ["Text is unique in codebase"])
        result = score(make_candidate(), make_request("Welcome"), validation)
        assert "Context validation passed" in result.reasons
        assert result.reasons[-1] == "Text is unique in codebase"


class TestConflictFactor:
    """Two or more survivors each lose a little confidence; selection is unaffected."""

    def test_single_survivor_unchanged(self):
        only = scored(1.0)
        outcome = rank([only])
        assert outcome.best is only
        assert only.confidence == 1.0

    def test_duplicates_are_discounted(self):
        first, second = scored(1.0), scored(1.0, path="src/app/other.tsx")
        outcome = rank([first, second])
        assert outcome.best is first
        assert first.confidence == pytest.approx(0.9)
        assert second.confidence == pytest.approx(0.9)
        assert "Conflicts with 1 other candidate(s)" in first.reasons

    def test_winner_floored_at_threshold(self):
        best, other = scored(0.5), scored(0.5, path="src/app/other.tsx")
        outcome = rank([best, other])
        assert outcome.best is best
        assert best.confidence == pytest.approx(0.5)
        assert other.confidence == pytest.approx(0.45)

    def test_many_duplicates_still_select(self):
        matches = [scored(1.0, path=f"src/data/{n}.json") for n in "abcd"]
        outcome = rank(matches)
        assert outcome.best is matches[0]
        assert outcome.best.confidence == pytest.approx(0.9)

    def test_factor_is_configurable(self):
        first, second = scored(1.0), scored(1.0, path="src/app/other.tsx")
        rank([first, second], ScoringConfig(conflict_confidence_factor=1.0))
        assert [first.confidence, second.confidence] == [1.0, 1.0]


class TestRank:
    def test_below_threshold_selects_nothing(self):
        outcome = rank([scored(0.49), scored(0.3)])
        assert outcome.best is None
        assert [m.confidence for m in outcome.ranked] == pytest.approx([0.441, 0.27])

    def test_pure_text_with_less_evidence_beats_attribute(self):
        text = scored(1.0, path="src/components/Hero.tsx")
        attribute = scored(1.0, text_content=False, attribute=True, keys=("className",), path="src/data/copy.json")
        outcome = rank([attribute, text])
        assert outcome.best is text
        assert text.confidence == pytest.approx(0.9)

    def test_pure_text_beats_higher_confidence_attribute(self):
        attribute = scored(1.0, text_content=False, attribute=True, keys=("className",))
        text = scored(0.6)
        outcome = rank([attribute, text])
        assert outcome.best is text
        assert outcome.bucket == "text_content"
        assert outcome.alternatives == [attribute]

    def test_content_attribute_beats_mixed(self):
        mixed = scored(0.9, attribute=True, keys=("data-id",))
        content = scored(0.7, attribute=True, keys=("title",))
        outcome = rank([mixed, content])
        assert outcome.best is content
        assert outcome.bucket == "content_attribute"

    def test_stable_order_for_ties(self):
        first = scored(0.8, text_content=False, attribute=True, keys=("id",))
        second = scored(0.8, text_content=False, attribute=True, keys=("id",), path="b.tsx")
        outcome = rank([first, second])
        assert outcome.best is first
        assert outcome.bucket == "confidence"
