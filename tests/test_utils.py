from pathlib import Path

from quire import utils


def test_slugify_and_titleize():
    assert utils.slugify("Pooling Connections in Node.js!") == "pooling-connections-in-node-js"
    assert utils.slugify("!!!") == "untitled"
    assert utils.titleize("python-module-loading") == "Python Module Loading"
    assert utils.titleize("snake_case_name") == "Snake Case Name"
    assert utils.titleize("") == "Untitled"


def test_first_paragraph_skips_headings_and_cleans_markup():
    text = "# Title\n\n```\ncode\n```\n\nSee [the docs](https://x.test) and <b>*this*</b>.\n\nMore."
    assert utils.first_paragraph(text) == "See the docs and this."
    assert utils.first_paragraph("") == ""
    assert utils.first_paragraph("one two three four", limit=9) == "one two…"


def test_path_helpers(tmp_path):
    assert utils.is_markdown(Path("a.MD"))
    assert utils.is_markdown(Path("a.markdown"))
    assert not utils.is_markdown(Path("a.txt"))
    assert utils.is_hidden(Path("_drafts"))
    assert utils.is_hidden(Path(".git"))
    assert not utils.is_hidden(Path("posts"))

    target = tmp_path / "out"
    target.mkdir()
    (target / "stale.html").write_text("x", encoding="utf-8")
    utils.ensure_clean_dir(target)
    assert target.is_dir()
    assert list(target.iterdir()) == []


def test_join_root_url():
    assert utils.join_root_url("https://example.com/blog/", "/feed.xml") == "https://example.com/blog/feed.xml"
    assert utils.join_root_url("", "/feed.xml") == "/feed.xml"
