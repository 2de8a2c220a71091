"""Post registry for Quire.

The registry is the ordered, read-only collection of every post parsed in one
build pass. It is rebuilt from scratch on every scan and never mutated; the
dev server swaps whole snapshots through a RegistryStore.

Key functions:
- iter_post_files: Discover post files under a directory.
- scan_posts: Build a PostRegistry, isolating per-file errors.

Key classes:
- PostRegistry: Immutable, date-sorted sequence of posts plus scan errors.
- RegistryStore: Holds the current snapshot and swaps it atomically.
"""

from __future__ import annotations

import threading
from collections.abc import Iterable, Iterator, Mapping, Sequence
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path

from .content import Post, PostBuilder, parse_post_filename
from .errors import DuplicateSlug, DuplicateUrl, MalformedPost, QuireError
from .extractors import EXCERPT_MARKER
from .utils import is_hidden, is_markdown

INDEX_URL = "/"


def sort_posts(posts: Iterable[Post]) -> list[Post]:
    """Sort posts newest first, breaking date ties by filename ascending."""
    by_name = sorted(posts, key=lambda p: p.filename)
    return sorted(by_name, key=lambda p: p.date, reverse=True)


class PostRegistry(Sequence[Post]):
    """Immutable snapshot of all posts from one scan.

    Attributes:
        errors: Per-file errors collected while scanning.
    """

    def __init__(self, posts: Iterable[Post] = (), errors: Iterable[QuireError] = ()):
        self._posts = tuple(sort_posts(posts))
        self._by_slug = {p.slug: p for p in self._posts}
        self.errors = tuple(errors)

    def __iter__(self) -> Iterator[Post]:
        return iter(self._posts)

    def __len__(self) -> int:
        return len(self._posts)

    def __getitem__(self, item):
        return self._posts[item]

    def __contains__(self, item) -> bool:
        if isinstance(item, str):
            return item in self._by_slug
        return item in self._posts

    def get(self, slug: str, default: Post | None = None) -> Post | None:
        return self._by_slug.get(slug, default)

    def latest(self, count: int = 5) -> list[Post]:
        return list(self._posts[:count])

    def with_tag(self, tag: str) -> list[Post]:
        return [p for p in self._posts if tag in p.tags]

    def tags(self) -> Mapping[str, list[Post]]:
        """Map each tag to its posts, both in registry order."""
        index: dict[str, list[Post]] = {}
        for post in self._posts:
            for tag in post.tags:
                index.setdefault(tag, []).append(post)
        return index

    @property
    def has_fatal_errors(self) -> bool:
        return any(err.fatal for err in self.errors)

    def __repr__(self) -> str:  # pragma: no cover - for debugging
        return f"PostRegistry({len(self._posts)} posts, {len(self.errors)} errors)"


def iter_post_files(posts_dir: Path) -> list[Path]:
    """Return every Markdown file under ``posts_dir``.

    Files and folders whose names start with ``.`` or ``_`` are skipped.

    Args:
        posts_dir: Root of the posts directory.

    Returns:
        Paths sorted for deterministic processing; empty if the directory
        does not exist.
    """
    if not posts_dir.is_dir():
        return []
    files: list[Path] = []
    for path in posts_dir.rglob("*"):
        if not path.is_file():
            continue
        rel = path.relative_to(posts_dir)
        if any(is_hidden(Path(part)) for part in rel.parts):
            continue
        if is_markdown(path):
            files.append(path)
    return sorted(files)


def _build_one(builder: PostBuilder, path: Path) -> Post | QuireError:
    try:
        return builder.build(path)
    except QuireError as exc:
        return exc


def _check_unique_slugs(paths: Iterable[Path]) -> None:
    """Raise DuplicateSlug if two well-named files share a slug.

    Only filenames are inspected, so a clash is caught even when one of the
    files has broken content.
    """
    seen: dict[str, list[Path]] = {}
    for path in paths:
        try:
            name = parse_post_filename(path.name, path)
        except MalformedPost:
            continue
        seen.setdefault(name.slug, []).append(path)
    for slug, clashing in seen.items():
        if len(clashing) > 1:
            raise DuplicateSlug(slug, sorted(clashing))


def _check_unique_urls(posts: Iterable[Post]) -> None:
    """Raise DuplicateUrl if two posts would be written to the same place.

    The site root is reserved for the index page.
    """
    seen: dict[str, list[Path]] = {}
    for post in posts:
        seen.setdefault(post.url, []).append(post.path)
    for url, clashing in seen.items():
        if url == INDEX_URL or len(clashing) > 1:
            raise DuplicateUrl(url, sorted(clashing))


def scan_posts(
    posts_dir: Path,
    excerpt_separator: str = EXCERPT_MARKER,
    include_drafts: bool = False,
    workers: int | None = None,
) -> PostRegistry:
    """Discover, parse and sort every post under ``posts_dir``.

    Each file is parsed independently. A file that fails with a QuireError
    is recorded in ``registry.errors`` and the scan carries on.

    Args:
        posts_dir: Root of the posts directory.
        excerpt_separator: Literal excerpt marker.
        include_drafts: Keep posts with ``published: false``.
        workers: Parse files on this many threads when greater than 1.

    Returns:
        A new PostRegistry.

    Raises:
        DuplicateSlug: Two files resolve to the same slug.
        DuplicateUrl: Two posts, or a post and the index page, share a URL.
    """
    builder = PostBuilder(excerpt_separator)
    paths = iter_post_files(posts_dir)
    _check_unique_slugs(paths)

    if workers and workers > 1 and len(paths) > 1:
        with ThreadPoolExecutor(max_workers=workers) as pool:
            results = list(pool.map(lambda p: _build_one(builder, p), paths))
    else:
        results = [_build_one(builder, p) for p in paths]

    posts = [r for r in results if isinstance(r, Post)]
    errors = [r for r in results if isinstance(r, QuireError)]

    if not include_drafts:
        posts = [p for p in posts if p.published]
    _check_unique_urls(posts)
    return PostRegistry(posts, errors)


class RegistryStore:
    """Holds the current registry snapshot for concurrent readers.

    Readers call ``current()`` and keep using the snapshot they received;
    a rebuild publishes a complete new snapshot with ``swap()``.
    """

    def __init__(self, registry: PostRegistry | None = None):
        self._lock = threading.Lock()
        self._registry = registry if registry is not None else PostRegistry()

    def current(self) -> PostRegistry:
        with self._lock:
            return self._registry

    def swap(self, registry: PostRegistry) -> PostRegistry:
        """Publish ``registry`` and return the snapshot it replaced."""
        with self._lock:
            previous = self._registry
            self._registry = registry
            return previous
