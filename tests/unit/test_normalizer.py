"""Unit tests for text normalisation and entity decoding."""

import pytest

from inlinepatch.core.relocation.normalizer import (
    decode_line,
    decode_with_map,
    normalize,
    normalize_quotes,
)


class TestNormalize:
    """normalize() canonicalises text from both the page and the source."""

    def test_decodes_entities(self):
        assert normalize("Tom &amp; Jerry") == "Tom & Jerry"
        assert normalize("a &lt;b&gt; c") == "a <b> c"

    def test_curly_quotes_become_straight(self):
        assert normalize("It’s “fine” now") == "It's \"fine\" now"

    def test_nbsp_and_ellipsis(self):
        assert normalize("Wait\u00a0for\u2026 it") == "Wait for... it"

    def test_collapses_whitespace(self):
        assert normalize("  one \t two\n three  ") == "one two three"

    def test_strips_wrapping_quotes(self):
        assert normalize('"Quoted text"') == "Quoted text"
        assert normalize("“Quoted text”") == "Quoted text"

    def test_strips_one_trailing_period(self):
        assert normalize("Hello world.") == "Hello world"

    def test_runs_until_stable(self):
        assert normalize("Wait" + "." * 12) == "Wait"
        assert normalize("&" + "amp;" * 10 + "quot;deep&quot;") == "deep"

    def test_entity_wrapped_quote(self):
        assert normalize("&ldquo;Best product ever.&rdquo;") == "Best product ever"

    def test_empty(self):
        assert normalize("") == ""
        assert normalize("   ") == ""

    @pytest.mark.parametrize(
        "text",
        [
            "Hello world.",
            "&amp;quot;nested&amp;quot;",
            "“Quote.”",
            "Wait….",
            "  ‘x’  ",
            '"\'"',
            "Wait" + "." * 12,
            "&" + "amp;" * 10 + "quot;deep&quot;",
        ],
    )
    def test_idempotent(self, text):
        once = normalize(text)
        assert normalize(once) == once


class TestNormalizeQuotes:
    """normalize_quotes() is the light form: nothing is stripped."""

    def test_maps_guillemets(self):
        assert normalize_quotes("«Bonjour»") == '"Bonjour"'

    def test_keeps_dashes_and_edges(self):
        assert normalize_quotes("“Go – now.”") == '"Go – now."'


class TestDecodeWithMap:
    """decode_with_map() keeps a span back into the raw line for every character."""

    def test_entity_span_covers_whole_entity(self):
        decoded, spans = decode_with_map("a &quot;b&quot;")
        assert decoded == 'a "b"'
        assert spans[2] == (2, 8)
        assert len(spans) == len(decoded)

    def test_whitespace_run_is_one_character(self):
        decoded, spans = decode_with_map("a   b")
        assert decoded == "a b"
        assert spans[1] == (1, 4)

    def test_plain_line_unchanged(self):
        assert decode_line("<h1>Welcome</h1>") == "<h1>Welcome</h1>"
