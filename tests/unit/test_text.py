"""
Text Helper Unit Tests

Markup stripping, embedding input, hashing and search preview windows.
"""

import pytest

from notetree.services.text import (
    MAX_EMBEDDING_CHARS,
    build_preview,
    content_hash,
    prepare_note_text,
    strip_markup,
)


@pytest.mark.parametrize(
    "content,expected",
    [
        ("<p>Hello <b>world</b></p>", "Hello world"),
        ("<h1>Title</h1><p>Body</p>", "Title Body"),
        ("Fish &amp; chips&nbsp;today", "Fish & chips today"),
        ("  spaced \n\n out\t", "spaced out"),
        ("", ""),
        (None, ""),
    ],
)
def test_strip_markup(content, expected):
    assert strip_markup(content) == expected


def test_prepare_note_text_joins_title_and_plain_content():
    assert prepare_note_text("Recipe", "<ul><li>eggs</li><li>flour</li></ul>") == (
        "Recipe\n\neggs flour"
    )


def test_prepare_note_text_is_truncated():
    text = prepare_note_text("T", "x" * (MAX_EMBEDDING_CHARS * 2))

    assert len(text) == MAX_EMBEDDING_CHARS


def test_content_hash_is_stable_sha256():
    digest = content_hash("hello")

    assert digest == "2cf24dba5fb0a30e26e83b2ac5b9e29e1b161e5c1fa7425e73043362938b9824"
    assert content_hash("hello") == digest
    assert content_hash("hello ") != digest


class TestBuildPreview:
    def test_short_content_without_match(self):
        assert build_preview("<p>Short note</p>", "missing") == "Short note"

    def test_long_content_without_match_shows_head(self):
        content = "word " * 40

        preview = build_preview(content, "missing", radius=10)

        assert preview == "word word word word ..."

    def test_match_near_start_has_no_leading_ellipsis(self):
        preview = build_preview("needle in a very long haystack of words", "needle", radius=5)

        assert preview == "needle in a..."

    def test_match_in_middle_is_windowed(self):
        preview = build_preview("aaaaaaaaaa needle bbbbbbbbbb", "NEEDLE", radius=3)

        assert preview == "...aa needle bb..."

    def test_match_at_end_has_no_trailing_ellipsis(self):
        preview = build_preview("a long sentence ending with needle", "needle", radius=5)

        assert preview == "...with needle"

    def test_query_is_not_a_regex(self):
        preview = build_preview("costs $5.00 (approx)", "(approx)", radius=2)

        assert preview == "...0 (approx)"
