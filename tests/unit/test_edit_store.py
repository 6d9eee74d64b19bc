"""Tests for the JSONL edit store."""

import json

import pytest

from inlinepatch.core.relocation.models import FailureKind, ProcessResult
from inlinepatch.store import EditRecord, EditStore, RecordNotFound, StoreError, result_status


@pytest.fixture
def store(tmp_path):
    return EditStore(tmp_path / "edits.jsonl")


def record(original="Welcome", project="site", page="/", created=1.0, selector="", **kwargs):
    return EditRecord(
        original_text=original,
        new_text="Hello",
        project_id=project,
        page_context={"pageUrl": page},
        element_context={"cssSelector": selector, "elementTag": kwargs.pop("tag", "h1")},
        created_at=created,
        **kwargs,
    )


class TestRecord:
    def test_from_request_round_trip(self, make_request):
        request = make_request(
            "Welcome",
            "Hello",
            elementContext={"elementTag": "h1", "cssSelector": "h1.title"},
            pageContext={"pageUrl": "/about"},
        )
        rec = EditRecord.from_request(request, metadata={"origin": "https://site.test"})
        assert rec.status == "pending"
        assert rec.page_url == "/about"
        assert rec.element_context["cssSelector"] == "h1.title"
        assert rec.to_request() == request

    def test_unknown_status_rejected(self):
        with pytest.raises(ValueError):
            EditRecord(original_text="a", new_text="b", status="done")

    def test_result_status(self):
        assert result_status(ProcessResult(success=True, confidence=1.0)) == "applied"
        conflict = ProcessResult(success=False, has_conflicts=True, failure=FailureKind.LOW_CONFIDENCE)
        assert result_status(conflict) == "conflict"
        assert result_status(ProcessResult(success=False, failure=FailureKind.NO_MATCH)) == "failed"


class TestSaveAndUpdate:
    def test_save_and_get(self, store):
        edit_id = store.save_edit(record())
        assert store.get_edit(edit_id).original_text == "Welcome"
        assert store.count == 1

    def test_get_missing(self, store):
        with pytest.raises(RecordNotFound):
            store.get_edit("nope")

    def test_update_with_result(self, store):
        edit_id = store.save_edit(record())
        result = ProcessResult(success=True, confidence=0.75, matched_file_path="src/app/page.tsx", line_number=4)
        updated = store.update_edit_status(edit_id, "applied", result)
        assert updated.status == "applied"
        assert updated.confidence == 0.75
        assert updated.processing_result["matched_file_path"] == "src/app/page.tsx"
        assert "alternative_matches" not in updated.processing_result
        assert store.get_edit(edit_id).status == "applied"

    def test_update_error_message(self, store):
        edit_id = store.save_edit(record())
        store.update_edit_status(edit_id, "failed", error_message="No matches found")
        assert store.get_edit(edit_id).metadata["errorMessage"] == "No matches found"

    def test_update_rejects_unknown_status(self, store):
        edit_id = store.save_edit(record())
        with pytest.raises(ValueError):
            store.update_edit_status(edit_id, "done")

    def test_update_missing(self, store):
        with pytest.raises(RecordNotFound):
            store.update_edit_status("nope", "applied")

    def test_unwritable_path(self, tmp_path):
        blocker = tmp_path / "file"
        blocker.write_text("x", encoding="utf-8")
        with pytest.raises(StoreError):
            EditStore(blocker / "edits.jsonl").save_edit(record())


class TestQueries:
    def test_pending_edits_oldest_first(self, store):
        late = store.save_edit(record(created=3.0))
        early = store.save_edit(record(created=1.0))
        done = store.save_edit(record(created=2.0, status="applied"))
        orphan = store.save_edit(record(created=4.0, project=None))
        other = store.save_edit(record(created=5.0, project="elsewhere"))
        ids = [r.id for r in store.get_pending_edits("site")]
        assert ids == [early, late, orphan]
        assert done not in ids and other not in ids
        assert len(store.get_pending_edits()) == 4

    def test_history_newest_first(self, store):
        store.save_edit(record(original="First", created=1.0))
        store.save_edit(record(original="Second", created=2.0))
        store.save_edit(record(original="Elsewhere", page="/about", created=3.0))
        history = store.get_edit_history("site", "/")
        assert [r.original_text for r in history] == ["Second", "First"]
        assert len(store.get_edit_history("site", limit=1)) == 1

    def test_original_text_latest_by_default(self, store):
        store.save_edit(record(original="First", created=1.0))
        store.save_edit(record(original="Second", created=2.0))
        assert store.get_original_text("site", "/") == "Second"
        assert store.get_original_text("site", "/missing") is None

    def test_original_text_by_selector_ignores_deep_text_id(self, store):
        store.save_edit(record(original="Title", created=1.0, selector='h1[data-deep-text-id="a1"]'))
        store.save_edit(record(original="Body", created=2.0, selector="p", tag="p"))
        assert store.get_original_text("site", "/", css_selector='h1[data-deep-text-id="zz"]') == "Title"

    def test_original_text_by_tag(self, store):
        store.save_edit(record(original="Title", created=1.0, selector="h1.x"))
        store.save_edit(record(original="Body", created=2.0, selector="p.y", tag="p"))
        assert store.get_original_text("site", "/", css_selector="h2", element_tag="h1") == "Title"

    def test_project_summary(self, store):
        store.save_edit(record())
        store.save_edit(record(status="conflict"))
        summary = store.project_summary("site")
        assert summary["total"] == 2
        assert summary["by_status"]["pending"] == 1
        assert summary["by_status"]["conflict"] == 1


def test_corrupt_lines_are_skipped(store):
    store.save_edit(record(original="Good"))
    with store.path.open("a", encoding="utf-8") as f:
        f.write("{not json\n")
        f.write(json.dumps({"original_text": "x", "new_text": "y", "status": "weird"}) + "\n")
    assert [r.original_text for r in store.get_pending_edits()] == ["Good"]
