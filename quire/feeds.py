"""Feed generation for Quire.

Generates the RSS feed and sitemap from the post registry. Both need an
absolute site URL and are skipped when ``url`` is not configured.

Classes:
    FeedGenerator: Base class for feed generators.
    SitemapGenerator: Generates sitemap.xml.
    RSSGenerator: Generates feed.xml (RSS 2.0).

Functions:
    default_feed_generators: The generators run by a normal build.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Callable, Sequence
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from markupsafe import escape

from .content import Post

RFC822 = "%a, %d %b %Y %H:%M:%S +0000"


class FeedGenerator(ABC):
    """Base class for feed generators."""

    @property
    @abstractmethod
    def filename(self) -> str:
        """Output filename, such as 'sitemap.xml'."""
        ...

    @abstractmethod
    def generate(self, posts: Sequence[Post], config: dict[str, Any]) -> str | None:
        """Generate feed content, or None when it cannot be generated."""
        ...

    def write(self, output_dir: Path, posts: Sequence[Post], config: dict[str, Any]) -> bool:
        """Generate and write the feed.

        Returns:
            True if the feed was written, False if skipped.
        """
        content = self.generate(posts, config)
        if content is None:
            return False
        (output_dir / self.filename).write_text(content, encoding="utf-8")
        return True


def _base_url(config: dict[str, Any]) -> str:
    return str(config.get("url") or "").rstrip("/")


class SitemapGenerator(FeedGenerator):
    """Generates sitemap.xml following the sitemaps.org protocol."""

    @property
    def filename(self) -> str:
        return "sitemap.xml"

    def generate(self, posts: Sequence[Post], config: dict[str, Any]) -> str | None:
        base_url = _base_url(config)
        if not base_url:
            return None
        lines = [
            '<?xml version="1.0" encoding="UTF-8"?>',
            '<urlset xmlns="http://www.sitemaps.org/schemas/sitemap/0.9">',
            f"  <url><loc>{escape(base_url)}/</loc></url>",
        ]
        for post in posts:
            loc = escape(f"{base_url}{post.url}")
            lines.append(
                f"  <url><loc>{loc}</loc><lastmod>{post.date.isoformat()}</lastmod></url>"
            )
        lines.append("</urlset>")
        return "\n".join(lines)


class RSSGenerator(FeedGenerator):
    """Generates an RSS 2.0 feed of the newest posts.

    Attributes:
        describe: Callable giving the plain-text description of a post.
        limit: Maximum number of items.
    """

    def __init__(self, describe: Callable[[Post], str] | None = None, limit: int = 20):
        self.describe = describe or (lambda post: post.title)
        self.limit = limit

    @property
    def filename(self) -> str:
        return "feed.xml"

    def generate(self, posts: Sequence[Post], config: dict[str, Any]) -> str | None:
        base_url = _base_url(config)
        if not base_url:
            return None
        title = config.get("title") or "Quire Feed"

        items = []
        for post in list(posts)[: self.limit]:
            link = escape(f"{base_url}{post.url}")
            pub_date = post.date.strftime(RFC822)
            items.append(
                f"<item><title>{escape(post.title)}</title><link>{link}</link>"
                f"<guid>{link}</guid>"
                f"<description>{escape(self.describe(post))}</description>"
                f"<pubDate>{pub_date}</pubDate></item>"
            )

        build_date = datetime.now(timezone.utc).strftime(RFC822)
        rss = [
            '<?xml version="1.0" encoding="UTF-8"?>',
            '<rss version="2.0"><channel>',
            f"<title>{escape(title)}</title>",
            f"<link>{escape(base_url)}/</link>",
            f"<description>{escape(config.get('description') or title)}</description>",
            f"<lastBuildDate>{build_date}</lastBuildDate>",
        ]
        rss.extend(items)
        rss.append("</channel></rss>")
        return "\n".join(rss)


def default_feed_generators(
    describe: Callable[[Post], str] | None = None,
) -> list[FeedGenerator]:
    """Return the sitemap and RSS generators used by a normal build."""
    return [SitemapGenerator(), RSSGenerator(describe)]
