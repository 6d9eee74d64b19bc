"""Tests for the live event logger."""

import logging

from inlinepatch.core.logging import LiveLogFormatter, LiveLogger, get_logger, log_file


def make_record(message="Corpus scanned", **fields):
    record = logging.LogRecord("inlinepatch.live", logging.INFO, "", 0, message, (), None)
    record.component = "Scanner"
    record.live_level = "SCAN"
    record.fields = fields
    return record


class TestFormatter:
    def test_layout(self):
        line = LiveLogFormatter().format(make_record(files=42, candidates=2))
        parts = [p.strip() for p in line.split(" | ")]
        assert parts[0].endswith("Z")
        assert parts[1:4] == ["SCAN", "Scanner", "Corpus scanned"]
        assert parts[4] == "files=42 candidates=2"

    def test_field_types(self):
        line = LiveLogFormatter().format(make_record(file="src/app/page.tsx", confidence=0.5))
        assert 'file="src/app/page.tsx"' in line
        assert "confidence=0.500" in line

    def test_no_fields(self):
        assert LiveLogFormatter().format(make_record()).endswith("Corpus scanned")


class TestLiveLogger:
    def test_writes_to_log_file(self):
        live = LiveLogger()
        live.edit("applied", file_path="src/home.tsx", confidence=1.0, line=3)
        for handler in logging.getLogger("inlinepatch.live").handlers:
            handler.flush()
        assert live.log_file == str(log_file())
        text = log_file().read_text(encoding="utf-8")
        assert "Edit applied" in text
        assert 'file="src/home.tsx"' in text

    def test_stats_count_events(self):
        live = LiveLogger()
        live.http_request("POST", "/api/text-editor", status=200, latency_ms=5)
        live.edit("located", file_path="src/home.tsx")
        stats = live.get_log_stats()
        assert stats["requests_logged"] == 1
        assert stats["edits_logged"] == 1
        assert stats["file_count"] >= 1

    def test_without_file(self):
        assert LiveLogger(to_file=False).log_file is None

    def test_singleton(self):
        assert get_logger() is get_logger()
