"""End-to-end tests for TextRelocationEngine -- locate, rank and patch on a real tree."""

import pytest

from inlinepatch.config import EngineConfig
from inlinepatch.core.relocation.discovery import StaticHintSource
from inlinepatch.core.relocation.engine import TextRelocationEngine
from inlinepatch.core.relocation.models import FailureKind

HOME = """export default function Home() {
  return (
    <h1>Welcome</h1>
  );
}
"""

STORY = """export default function Story() {
  return (
    <section>
      <h2 className="section-title">Our Story</h2>
      <p>We started in a small garage back in 2015</p>
    </section>
  );
}
"""

HERO = """export function Hero() {
  return <h1>Welcome to Acme</h1>;
}
"""


def story_request(make_request, new_text="Our Journey"):
    return make_request(
        "Our Story",
        new_text,
        elementContext={
            "elementTag": "h2",
            "elementClasses": ["section-title", "text-xl", "font-bold"],
            "cssSelector": "h2.section-title",
        },
        surroundingContext={"siblingsAfter": ["p: We started in a small garage back in 2015"]},
    )


@pytest.fixture
def welcome_request(make_request):
    return make_request(
        "Welcome",
        "Hello",
        elementContext={"elementTag": "h1"},
        surroundingContext={"parentText": "Welcome"},
    )


class TestWelcomeScenario:
    """Unique text with only minimal parent context."""

    def test_success(self, make_project, welcome_request):
        root = make_project({"src/home.tsx": HOME})
        result = TextRelocationEngine(root).process_text_edit(welcome_request)
        assert result.success is True
        assert result.matched_file_path == "src/home.tsx"
        assert result.line_number == 3
        assert result.confidence == pytest.approx(1.0)
        assert result.has_conflicts is False
        assert result.updated_line.strip() == "<h1>Hello</h1>"

    def test_only_target_line_changes(self, make_project, welcome_request):
        root = make_project({"src/home.tsx": HOME, "src/other.tsx": "<p>Untouched</p>\n"})
        TextRelocationEngine(root).process_text_edit(welcome_request)
        before = HOME.split("\n")
        after = (root / "src/home.tsx").read_text(encoding="utf-8").split("\n")
        changed = [i for i, (a, b) in enumerate(zip(before, after)) if a != b]
        assert changed == [2]
        assert len(before) == len(after)
        assert (root / "src/other.tsx").read_text(encoding="utf-8") == "<p>Untouched</p>\n"

    def test_round_trip_finds_new_text_at_same_place(self, make_project, make_request, welcome_request):
        root = make_project({"src/home.tsx": HOME})
        engine = TextRelocationEngine(root)
        applied = engine.process_text_edit(welcome_request)
        again = engine.locate(make_request("Hello", "Hello")).result
        assert again.success is True
        assert (again.matched_file_path, again.line_number) == (applied.matched_file_path, applied.line_number)

    def test_resubmitting_applied_edit_finds_nothing(self, make_project, welcome_request):
        root = make_project({"src/home.tsx": HOME})
        engine = TextRelocationEngine(root)
        assert engine.process_text_edit(welcome_request).success
        content = (root / "src/home.tsx").read_text(encoding="utf-8")
        second = engine.process_text_edit(welcome_request)
        assert second.success is False
        assert second.failure is FailureKind.NO_MATCH
        assert (root / "src/home.tsx").read_text(encoding="utf-8") == content

    def test_locate_does_not_write(self, make_project, welcome_request):
        root = make_project({"src/home.tsx": HOME})
        report = TextRelocationEngine(root).locate(welcome_request)
        assert report.result.success is True
        assert report.result.updated_line.strip() == "<h1>Hello</h1>"
        assert (root / "src/home.tsx").read_text(encoding="utf-8") == HOME


class TestDuplicates:
    def test_duplicate_text_is_a_conflict(self, make_project, make_request):
        root = make_project({"src/app/page.tsx": STORY, "src/app/about/page.tsx": STORY})
        result = TextRelocationEngine(root).locate(story_request(make_request)).result
        assert result.success is True
        assert result.has_conflicts is True
        assert result.confidence == pytest.approx(0.9)
        assert len(result.alternative_matches) == 1

    def test_many_supported_duplicates_succeed(self, make_project, make_request):
        entry = '  "headline": "Welcome to Acme",\n'
        root = make_project(
            {
                "src/components/Hero.tsx": HERO,
                "src/data/a.json": entry,
                "src/data/b.json": entry,
            }
        )
        request = make_request(
            "Welcome to Acme", "Hello", elementContext={"elementId": "hero-title", "elementTag": "h1"}
        )
        result = TextRelocationEngine(root).locate(request).result
        assert result.success is True
        assert result.has_conflicts is True
        assert result.matched_file_path == "src/components/Hero.tsx"
        assert result.confidence == pytest.approx(0.9)

    def test_selector_evidence_does_not_outrank_text_content(self, make_project, make_request):
        root = make_project(
            {
                "src/components/Hero.tsx": HERO,
                "src/data/home-copy.json": '  "headline": "Welcome to Acme",\n',
            }
        )
        request = make_request(
            "Welcome to Acme",
            "Hello",
            elementContext={"elementTag": "h1", "cssSelector": "h1.headline"},
            pageContext={"pageUrl": "/"},
        )
        result = TextRelocationEngine(root).locate(request).result
        assert result.success is True
        assert result.matched_file_path == "src/components/Hero.tsx"
        assert result.alternative_matches[0].file_path == "src/data/home-copy.json"

    def test_uniqueness_raises_confidence(self, make_project, tmp_path, make_request):
        unique_root = make_project({"src/app/page.tsx": STORY}, root=tmp_path / "unique")
        dup_root = make_project(
            {"src/app/page.tsx": STORY, "src/app/about/page.tsx": STORY}, root=tmp_path / "dup"
        )
        unique = TextRelocationEngine(unique_root).locate(story_request(make_request)).result
        duplicated = TextRelocationEngine(dup_root).locate(story_request(make_request)).result
        assert unique.confidence > duplicated.confidence

    def test_duplicates_without_context_fail(self, make_project, welcome_request):
        root = make_project({"src/home.tsx": HOME, "src/landing.tsx": HOME})
        result = TextRelocationEngine(root).process_text_edit(welcome_request)
        assert result.success is False
        assert result.failure is FailureKind.LOW_CONFIDENCE
        assert result.confidence == 0.0
        assert len(result.alternative_matches) == 2
        assert (root / "src/home.tsx").read_text(encoding="utf-8") == HOME


class TestAttributeScenario:
    def test_title_attribute_rewritten_inside_quotes(self, make_project, make_request):
        root = make_project({"src/nav.tsx": '      <a href="/docs" title="Old Title">Docs</a>\n'})
        engine = TextRelocationEngine(root)
        report = engine.locate(make_request("Old Title", "New Title", elementContext={"elementTag": "a"}))
        best = report.best
        assert best.is_attribute_match is True
        assert best.is_text_content_match is True
        assert report.outcome.bucket == "content_attribute"

        result = engine.process_text_edit(make_request("Old Title", "New Title", elementContext={"elementTag": "a"}))
        assert result.success is True
        assert (root / "src/nav.tsx").read_text(encoding="utf-8") == (
            '      <a href="/docs" title="New Title">Docs</a>\n'
        )


class TestFailures:
    def test_empty_text(self, make_project, make_request):
        root = make_project({"src/home.tsx": HOME})
        result = TextRelocationEngine(root).process_text_edit(make_request("   ", "x"))
        assert result.failure is FailureKind.NO_MATCH

    def test_no_match(self, make_project, make_request):
        root = make_project({"src/home.tsx": HOME})
        result = TextRelocationEngine(root).process_text_edit(make_request("Not on the page", "x"))
        assert result.success is False
        assert result.failure is FailureKind.NO_MATCH
        assert "No matches found" in result.error_message

    def test_stale_target_leaves_file_alone(self, make_project, welcome_request, monkeypatch):
        root = make_project({"src/home.tsx": HOME})
        engine = TextRelocationEngine(root)
        locate = engine.locate
        shrunk = "<h1>Welcome</h1>\n"

        def locate_then_shrink(request):
            report = locate(request)
            (root / "src/home.tsx").write_text(shrunk, encoding="utf-8")
            return report

        monkeypatch.setattr(engine, "locate", locate_then_shrink)
        result = engine.process_text_edit(welcome_request)
        assert result.success is False
        assert result.failure is FailureKind.STALE_TARGET
        assert (root / "src/home.tsx").read_text(encoding="utf-8") == shrunk

    def test_confidence_bound(self, make_project, make_request, welcome_request):
        root = make_project({"src/home.tsx": HOME, "src/app/page.tsx": STORY})
        engine = TextRelocationEngine(root)
        for request in (welcome_request, story_request(make_request), make_request("nothing", "x")):
            result = engine.locate(request).result
            assert 0.0 <= result.confidence <= 1.0
            if result.success:
                assert result.confidence >= 0.5


class TestTextForms:
    def test_entities_are_preserved(self, make_project, make_request):
        root = make_project({"src/cast.html": "<p>Tom &amp; Jerry</p>\n"})
        result = TextRelocationEngine(root).process_text_edit(make_request("Tom & Jerry", "Tom & Spike"))
        assert result.success is True
        assert (root / "src/cast.html").read_text(encoding="utf-8") == "<p>Tom &amp; Spike</p>\n"

    def test_decoration_is_not_duplicated(self, make_project, make_request):
        root = make_project({"src/cta.tsx": "<span>🚀</span> <span>Launch now</span>\n"})
        result = TextRelocationEngine(root).process_text_edit(make_request("🚀 Launch now", "🚀 Go now"))
        assert result.success is True
        assert (root / "src/cta.tsx").read_text(encoding="utf-8") == "<span>🚀</span> <span>Go now</span>\n"

    def test_crlf_file(self, make_project, welcome_request):
        root = make_project({"src/home.tsx": HOME.replace("\n", "\r\n")})
        assert TextRelocationEngine(root).process_text_edit(welcome_request).success
        data = (root / "src/home.tsx").read_bytes()
        assert data == HOME.replace("Welcome", "Hello").replace("\n", "\r\n").encode("utf-8")


class TestHintsAndInfo:
    def test_hint_reaches_excluded_directory(self, make_project, make_request):
        root = make_project({"build/page.html": "<h1>Only in build</h1>\n", "src/home.tsx": HOME})
        request = make_request("Only in build", "Moved")
        assert TextRelocationEngine(root).locate(request).result.failure is FailureKind.NO_MATCH

        engine = TextRelocationEngine(root, hint_source=StaticHintSource(["build/page.html"]))
        report = engine.locate(request)
        assert report.result.success is True
        assert report.result.matched_file_path == "build/page.html"
        assert report.hints == ["build/page.html"]

    def test_project_info(self, make_project):
        root = make_project({"src/home.tsx": HOME, "src/app/page.tsx": STORY, "notes.txt": "x"})
        info = TextRelocationEngine(root, EngineConfig(extensions=["tsx"])).project_info()
        assert info.source_root == str((root / "src").resolve())
        assert info.file_count == 2
        assert info.supported_extensions == ["tsx"]
