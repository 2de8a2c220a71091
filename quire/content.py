"""Post loading for Quire.

This module turns a single ``YYYY-MM-DD-<slug>.md`` file into a Post.

Key classes:
- Post: Immutable dataclass representing one blog entry.
- PostFilename: Structured result of matching the filename convention.
- PostBuilder: Reads a file and assembles a Post from filename, front
  matter and excerpt.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import date, datetime
from pathlib import Path
from typing import Any

from .asset_resolver import hero_image_path
from .errors import MalformedPost, QuireError
from .extractors import EXCERPT_MARKER, ExcerptExtractor, extract_frontmatter
from .utils import titleize

FILENAME_RE = re.compile(
    r"^(?P<year>\d{4})-(?P<month>\d{2})-(?P<day>\d{2})-(?P<title>.+)\.(?P<ext>md|markdown)$",
    re.IGNORECASE,
)
DATE_PREFIX_RE = re.compile(r"^\s*(\d{4})-(\d{2})-(\d{2})")
DEFAULT_LAYOUT = "post"


@dataclass(frozen=True)
class PostFilename:
    """Date and slug parsed from a post filename.

    Attributes:
        date: Calendar date from the ``YYYY-MM-DD`` prefix.
        slug: Filename stem, date included.
        title_segment: The part of the stem after the date.
        extension: File extension without the dot.
    """

    date: date
    slug: str
    title_segment: str
    extension: str


def parse_post_filename(name: str, source_path: Path | None = None) -> PostFilename:
    """Match a filename against ``YYYY-MM-DD-<slug>.<md|markdown>``.

    Args:
        name: Bare filename.
        source_path: Full path used in error messages.

    Returns:
        PostFilename with the parsed parts.

    Raises:
        MalformedPost: The name does not follow the convention or its date
            is not a real calendar date.
    """
    match = FILENAME_RE.match(name)
    if not match:
        raise MalformedPost(
            f"Filename '{name}' does not match YYYY-MM-DD-slug.md", source_path
        )
    try:
        parsed = date(int(match["year"]), int(match["month"]), int(match["day"]))
    except ValueError as exc:
        raise MalformedPost(f"Invalid date in filename '{name}': {exc}", source_path) from exc
    title_segment = match["title"]
    return PostFilename(
        date=parsed,
        slug=f"{match['year']}-{match['month']}-{match['day']}-{title_segment}",
        title_segment=title_segment,
        extension=match["ext"].lower(),
    )


def coerce_date(value: Any, source_path: Path | None = None) -> date:
    """Convert a front matter ``date`` value to a calendar date.

    YAML already turns bare ``2023-05-31`` into a date; quoted strings with a
    leading ``YYYY-MM-DD`` (optionally followed by a time) are accepted too.

    Raises:
        MalformedPost: The value is not a recognizable date.
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        match = DATE_PREFIX_RE.match(value)
        if match:
            try:
                return date(int(match[1]), int(match[2]), int(match[3]))
            except ValueError as exc:
                raise MalformedPost(f"Invalid front matter date '{value}': {exc}", source_path) from exc
    raise MalformedPost(f"Unparsable front matter date: {value!r}", source_path)


PUBLISHED_WORDS = {"true": True, "yes": True, "on": True, "false": False, "no": False, "off": False}


def coerce_published(value: Any, source_path: Path | None = None) -> bool:
    """Convert a front matter ``published`` value to a bool.

    Quoted YAML booleans such as ``"false"`` are accepted.

    Raises:
        MalformedPost: The value is neither a bool nor a boolean word.
    """
    if value is None:
        return True
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().lower() in PUBLISHED_WORDS:
        return PUBLISHED_WORDS[value.strip().lower()]
    raise MalformedPost(f"published must be true or false, got {value!r}", source_path)


def check_site_path(url: str, source_path: Path | None = None) -> str:
    """Reject site paths that would leave the output directory.

    Raises:
        MalformedPost: A path segment is ``.`` or ``..`` or holds a backslash.
    """
    for segment in url.split("/"):
        if segment in (".", "..") or "\\" in segment:
            raise MalformedPost(f"URL '{url}' escapes the site root", source_path)
    return url


def _as_list(value: Any) -> tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, str):
        return tuple(value.split())
    if isinstance(value, (list, tuple)):
        return tuple(str(v) for v in value if v is not None)
    return (str(value),)


@dataclass(frozen=True)
class Post:
    """One blog entry.

    Attributes:
        slug: Filename stem (date + title segment); unique per registry.
        date: Publication date.
        title: Post title, never empty.
        read_time: Optional free-form label such as "5 min read".
        layout: Layout template name.
        excerpt: Body text before the first excerpt marker, or "".
        body: Markdown content without the front matter block.
        path: Source file.
        title_segment: Filename part after the date, used in URLs.
        tags: Tags from front matter.
        categories: Categories from front matter.
        published: False when front matter sets ``published: false``.
        frontmatter: The raw parsed front matter.
    """

    slug: str
    date: date
    title: str
    read_time: str | None
    layout: str
    excerpt: str
    body: str
    path: Path
    title_segment: str
    tags: tuple[str, ...] = ()
    categories: tuple[str, ...] = ()
    published: bool = True
    frontmatter: dict[str, Any] = field(default_factory=dict, compare=False)

    @property
    def filename(self) -> str:
        return self.path.name

    @property
    def url(self) -> str:
        """Site path of the rendered post: ``/YYYY/MM/DD/<title-segment>/``.

        A front matter ``permalink`` replaces the derived path.
        """
        permalink = self.frontmatter.get("permalink")
        if permalink:
            path = "/" + str(permalink).strip("/")
            return path if path == "/" else f"{path}/"
        return f"/{self.date:%Y/%m/%d}/{self.title_segment}/"

    @property
    def hero_image_path(self) -> str:
        """Conventional hero image path, derived from the slug."""
        return hero_image_path(self.slug)


class PostBuilder:
    """Builds Post objects from source files.

    Attributes:
        excerpt_extractor: Splits bodies at the configured marker.
    """

    def __init__(self, excerpt_marker: str = EXCERPT_MARKER):
        self.excerpt_extractor = ExcerptExtractor(excerpt_marker)

    def build(self, path: Path) -> Post:
        """Build a Post from a source file.

        Args:
            path: Path to a ``YYYY-MM-DD-<slug>.md`` file.

        Returns:
            Post object.

        Raises:
            MalformedPost: Filename, date or front matter is invalid.
            UnterminatedFrontMatter: The header block is never closed.
            QuireError: The file cannot be read.
        """
        name = parse_post_filename(path.name, path)
        try:
            text = path.read_text(encoding="utf-8")
        except UnicodeDecodeError as exc:
            raise MalformedPost(f"File is not valid UTF-8: {exc}", path) from exc
        except OSError as exc:
            raise QuireError(f"Cannot read post: {exc}", path) from exc
        return self.build_from_text(text, name, path)

    def build_from_text(self, text: str, name: PostFilename, path: Path) -> Post:
        """Assemble a Post from already-read text."""
        frontmatter, body = extract_frontmatter(text, path)
        excerpt, body = self.excerpt_extractor.extract(body)

        post_date = name.date
        if frontmatter.get("date") is not None:
            post_date = coerce_date(frontmatter["date"], path)

        title = frontmatter.get("title")
        title = str(title).strip() if title is not None else ""
        if not title:
            title = titleize(name.title_segment)

        read_time = frontmatter.get("read_time")
        layout = frontmatter.get("layout") or DEFAULT_LAYOUT

        post = Post(
            slug=name.slug,
            date=post_date,
            title=title,
            read_time=str(read_time) if read_time is not None else None,
            layout=str(layout),
            excerpt=excerpt,
            body=body,
            path=path,
            title_segment=name.title_segment,
            tags=_as_list(frontmatter.get("tags")),
            categories=_as_list(frontmatter.get("categories")),
            published=coerce_published(frontmatter.get("published"), path),
            frontmatter=frontmatter,
        )
        check_site_path(post.url, path)
        return post
