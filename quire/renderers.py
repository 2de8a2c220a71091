"""Markdown rendering for Quire.

Converts post bodies to HTML with mistune, adding heading anchors, Pygments
syntax highlighting, and per-post image path rewriting.

Key classes:
- MarkdownRenderer: Renders Markdown to HTML.
- Heading: A heading collected during rendering.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import PurePosixPath

import mistune
from pygments import highlight
from pygments.formatters import HtmlFormatter
from pygments.lexers import get_lexer_by_name
from pygments.util import ClassNotFound

from .asset_resolver import DEFAULT_IMAGE_DIR

MARKDOWN_PLUGINS = ["strikethrough", "footnotes", "table", "url"]


@dataclass
class Heading:
    """A heading extracted from Markdown, for tables of contents.

    Attributes:
        id: Anchor ID for the heading.
        text: The heading text.
        level: Heading level (1-6).
    """

    id: str
    text: str
    level: int


def _generate_heading_id(text: str) -> str:
    """Generate a URL-friendly ID from heading text."""
    slug = re.sub(r"<[^>]+>", "", text).lower().strip()
    slug = re.sub(r"[^\w\s-]", "", slug)
    slug = re.sub(r"[-\s]+", "-", slug)
    return slug.strip("-")


def _rewrite_image_path(src: str, image_dir: str | None) -> str:
    """Point relative image sources at the post's image folder.

    Args:
        src: Original image source.
        image_dir: Site directory for the post's images, e.g.
            ``assets/images/2023-05-31-example``; None disables rewriting.

    Returns:
        Rewritten image source path.
    """
    if not image_dir or not src:
        return src
    if src.startswith(("http://", "https://", "//", "/", "data:", "#")):
        return src
    return "/" + str(PurePosixPath(image_dir.strip("/")) / src)


class _HighlightRenderer(mistune.HTMLRenderer):
    """Markdown renderer with heading anchors, highlighting and image rewriting.

    Attributes:
        image_dir: Directory relative images are resolved against.
        headings: Headings collected during rendering.
    """

    def __init__(self, image_dir: str | None = None):
        super().__init__(escape=False)
        self.image_dir = image_dir
        self.headings: list[Heading] = []
        self._heading_id_counts: dict[str, int] = {}

    def heading(self, text: str, level: int, **attrs) -> str:
        base_id = _generate_heading_id(text)

        if base_id in self._heading_id_counts:
            self._heading_id_counts[base_id] += 1
            heading_id = f"{base_id}-{self._heading_id_counts[base_id]}"
        else:
            self._heading_id_counts[base_id] = 0
            heading_id = base_id

        self.headings.append(Heading(id=heading_id, text=text, level=level))
        return f'<h{level} id="{heading_id}">{text}</h{level}>\n'

    def image(self, text: str, url: str, title: str | None = None) -> str:
        return super().image(text, _rewrite_image_path(url, self.image_dir), title)

    def block_code(self, code: str, info: str | None = None) -> str:
        """Render a fenced code block, highlighted when the language is known."""
        lang = info.split()[0] if info and info.strip() else None
        if lang:
            try:
                lexer = get_lexer_by_name(lang, stripall=True)
            except ClassNotFound:
                lexer = None
            if lexer is not None:
                formatter = HtmlFormatter(nowrap=False, cssclass="highlight")
                return highlight(code, lexer, formatter)
        escaped = code.replace("&", "&amp;").replace("<", "&lt;").replace(">", "&gt;")
        lang_class = f' class="language-{lang}"' if lang else ""
        return f"<pre><code{lang_class}>{escaped}</code></pre>\n"


class MarkdownRenderer:
    """Renders Markdown content to HTML.

    Attributes:
        image_prefix: Directory holding per-post image folders.
    """

    def __init__(self, image_prefix: str = DEFAULT_IMAGE_DIR):
        self.image_prefix = image_prefix

    def render(self, content: str, slug: str | None = None) -> tuple[str, list[Heading]]:
        """Render Markdown content to HTML.

        Args:
            content: Markdown source.
            slug: Post slug; relative images resolve to
                ``/<image_prefix>/<slug>/<src>`` when given.

        Returns:
            Tuple of (rendered HTML, headings in document order).
        """
        image_dir = f"{self.image_prefix.strip('/')}/{slug}" if slug else None
        renderer = _HighlightRenderer(image_dir)
        markdown = mistune.create_markdown(renderer=renderer, plugins=MARKDOWN_PLUGINS)
        html = markdown(content)
        return html, renderer.headings


def pygments_css(selector: str = ".highlight") -> str:
    """Return Pygments CSS for highlighted code blocks."""
    return HtmlFormatter().get_style_defs(selector)
