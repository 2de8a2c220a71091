from datetime import date

import pytest

from quire.errors import MalformedPost, UnterminatedFrontMatter
from quire.extractors import (
    EXCERPT_MARKER,
    ExcerptExtractor,
    dump_frontmatter,
    extract_excerpt,
    extract_frontmatter,
)


def test_extract_frontmatter_parses_header_and_body():
    text = (
        "---\n"
        "layout: post\n"
        'title: "Example: with colon"\n'
        "date: 2023-05-31\n"
        "read_time: '5 min read'\n"
        "---\n"
        "Intro.\n"
    )
    data, body = extract_frontmatter(text)
    assert data == {
        "layout": "post",
        "title": "Example: with colon",
        "date": date(2023, 5, 31),
        "read_time": "5 min read",
    }
    assert body == "Intro.\n"


def test_missing_frontmatter_returns_whole_text():
    text = "Just a body.\n---\nwith a rule\n"
    data, body = extract_frontmatter(text)
    assert data == {}
    assert body == text


def test_empty_text():
    assert extract_frontmatter("") == ({}, "")


def test_unterminated_frontmatter_raises(tmp_path):
    path = tmp_path / "2023-01-01-broken.md"
    with pytest.raises(UnterminatedFrontMatter) as excinfo:
        extract_frontmatter("---\ntitle: Broken\nno closing marker\n", path)
    assert excinfo.value.source_path == path
    assert excinfo.value.fatal


def test_marker_lines_allow_trailing_whitespace_and_dots():
    data, body = extract_frontmatter("---  \ntitle: Dots\n...\nBody")
    assert data == {"title": "Dots"}
    assert body == "Body"


def test_leading_bom_is_ignored():
    data, body = extract_frontmatter("\ufeff---\ntitle: Bom\n---\nBody")
    assert data == {"title": "Bom"}
    assert body == "Body"


def test_empty_block_is_empty_mapping():
    assert extract_frontmatter("---\n---\nBody") == ({}, "Body")


def test_invalid_yaml_is_malformed():
    with pytest.raises(MalformedPost):
        extract_frontmatter("---\ntitle: [unclosed\n---\nBody")


def test_impossible_yaml_date_is_malformed():
    with pytest.raises(MalformedPost) as excinfo:
        extract_frontmatter("---\ndate: 2023-02-30\n---\nBody")
    assert "day is out of range" in excinfo.value.message


def test_non_mapping_yaml_is_malformed():
    with pytest.raises(MalformedPost) as excinfo:
        extract_frontmatter("---\n- one\n- two\n---\nBody")
    assert not excinfo.value.fatal


def test_frontmatter_round_trip():
    mapping = {
        "layout": "post",
        "title": "Pooling: a story",
        "date": date(2023, 5, 31),
        "read_time": "5 min read",
        "tags": ["node", "networking"],
    }
    text = dump_frontmatter(mapping, "Body text\n")
    data, body = extract_frontmatter(text)
    assert data == mapping
    assert body == "Body text\n"


def test_excerpt_single_marker_reassembles_body():
    body = "Intro.\n<!--more-->\nRest."
    excerpt, full = extract_excerpt(body)
    assert excerpt == "Intro.\n"
    assert full == body
    remainder = body[len(excerpt) + len(EXCERPT_MARKER):]
    assert excerpt + EXCERPT_MARKER + remainder == body


def test_excerpt_without_marker_is_empty():
    assert extract_excerpt("No marker here.") == ("", "No marker here.")


def test_only_first_marker_counts():
    body = "One\n<!--more-->\nTwo\n<!--more-->\nThree"
    excerpt, full = extract_excerpt(body)
    assert excerpt == "One\n"
    assert full.count(EXCERPT_MARKER) == 2


def test_marker_is_matched_literally():
    extractor = ExcerptExtractor("[.*]")
    assert extractor.extract("abc [.*] def") == ("abc ", "abc [.*] def")
    assert extractor.extract("abc xx def") == ("", "abc xx def")


def test_empty_marker_rejected():
    with pytest.raises(ValueError):
        ExcerptExtractor("")
