from datetime import date, datetime
from pathlib import Path

import pytest

from quire.content import (
    PostBuilder,
    check_site_path,
    coerce_date,
    coerce_published,
    parse_post_filename,
)
from quire.errors import MalformedPost, UnterminatedFrontMatter


def write_post(directory: Path, name: str, text: str) -> Path:
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / name
    path.write_text(text, encoding="utf-8")
    return path


def test_example_post_parses(tmp_path):
    path = write_post(
        tmp_path,
        "2023-05-31-example.md",
        '---\ntitle: "Example"\ndate: 2023-05-31\n---\nIntro.\n<!--more-->\nRest.',
    )
    post = PostBuilder().build(path)
    assert post.slug == "2023-05-31-example"
    assert post.title == "Example"
    assert post.date == date(2023, 5, 31)
    assert post.excerpt == "Intro.\n"
    assert post.body == "Intro.\n<!--more-->\nRest."
    assert post.body.startswith(post.excerpt)
    assert post.layout == "post"
    assert post.read_time is None
    assert post.url == "/2023/05/31/example/"
    assert post.hero_image_path == "assets/images/2023-05-31-example/hero.png"


def test_post_without_frontmatter_uses_filename(tmp_path):
    path = write_post(tmp_path, "2021-02-03-python-module-loading.md", "Plain body.\n")
    post = PostBuilder().build(path)
    assert post.title == "Python Module Loading"
    assert post.date == date(2021, 2, 3)
    assert post.body == "Plain body.\n"
    assert post.excerpt == ""
    assert post.frontmatter == {}


def test_frontmatter_fields(tmp_path):
    path = write_post(
        tmp_path,
        "2022-07-04-mui.md",
        "---\n"
        "layout: wide\n"
        "title: Migrating to MUI v5\n"
        "read_time: 7 min read\n"
        "tags: react mui\n"
        "categories: [frontend]\n"
        "published: false\n"
        "---\n"
        "Body",
    )
    post = PostBuilder().build(path)
    assert post.layout == "wide"
    assert post.read_time == "7 min read"
    assert post.tags == ("react", "mui")
    assert post.categories == ("frontend",)
    assert post.published is False


def test_frontmatter_date_overrides_filename(tmp_path):
    path = write_post(
        tmp_path, "2022-01-01-moved.md", "---\ndate: 2022-03-04 10:00:00 +0000\n---\n"
    )
    post = PostBuilder().build(path)
    assert post.date == date(2022, 3, 4)
    assert post.url == "/2022/03/04/moved/"


def test_unparsable_frontmatter_date(tmp_path):
    path = write_post(tmp_path, "2022-01-01-bad.md", "---\ndate: next tuesday\n---\n")
    with pytest.raises(MalformedPost):
        PostBuilder().build(path)


def test_permalink_overrides_url(tmp_path):
    path = write_post(tmp_path, "2022-01-01-about.md", "---\npermalink: /about\n---\n")
    assert PostBuilder().build(path).url == "/about/"


def test_custom_excerpt_marker(tmp_path):
    path = write_post(tmp_path, "2022-01-01-split.md", "Lead\n<!-- cut -->\nMore")
    post = PostBuilder("<!-- cut -->").build(path)
    assert post.excerpt == "Lead\n"


def test_unterminated_frontmatter_propagates(tmp_path):
    path = write_post(tmp_path, "2022-01-01-open.md", "---\ntitle: Open\n")
    with pytest.raises(UnterminatedFrontMatter):
        PostBuilder().build(path)


def test_parse_post_filename():
    parsed = parse_post_filename("2023-05-31-example.markdown")
    assert parsed.date == date(2023, 5, 31)
    assert parsed.slug == "2023-05-31-example"
    assert parsed.title_segment == "example"
    assert parsed.extension == "markdown"


@pytest.mark.parametrize(
    "name",
    ["example.md", "2023-5-31-example.md", "2023-05-31.md", "2023-05-31-example.txt"],
)
def test_filename_convention_violations(name):
    with pytest.raises(MalformedPost):
        parse_post_filename(name)


def test_impossible_calendar_date():
    with pytest.raises(MalformedPost) as excinfo:
        parse_post_filename("2023-02-30-leap.md")
    assert "Invalid date" in excinfo.value.message


def test_coerce_date_variants():
    assert coerce_date(date(2020, 1, 2)) == date(2020, 1, 2)
    assert coerce_date(datetime(2020, 1, 2, 12, 30)) == date(2020, 1, 2)
    assert coerce_date("2020-01-02") == date(2020, 1, 2)
    with pytest.raises(MalformedPost):
        coerce_date(20200102)
    with pytest.raises(MalformedPost):
        coerce_date("2020-13-01")


def test_coerce_published_variants():
    assert coerce_published(None) is True
    assert coerce_published(False) is False
    assert coerce_published("false") is False
    assert coerce_published(" No ") is False
    assert coerce_published("yes") is True
    with pytest.raises(MalformedPost):
        coerce_published("later")
    with pytest.raises(MalformedPost):
        coerce_published(0)


@pytest.mark.parametrize("permalink", ["../../escaped", "/blog/../../x", "./here", "a\\..\\b"])
def test_permalink_cannot_escape_site_root(tmp_path, permalink):
    path = write_post(
        tmp_path, "2022-01-01-sneaky.md", f"---\npermalink: '{permalink}'\n---\n"
    )
    with pytest.raises(MalformedPost) as excinfo:
        PostBuilder().build(path)
    assert "escapes the site root" in excinfo.value.message


def test_check_site_path_allows_nested_paths():
    assert check_site_path("/2023/05/31/example/") == "/2023/05/31/example/"
    assert check_site_path("/notes/v1.2/") == "/notes/v1.2/"
