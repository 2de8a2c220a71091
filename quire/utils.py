"""Utility functions for Quire.

String processing and path handling helpers shared across the package.

Key functions:
    slugify: Convert a title to a URL-safe filename segment.
    titleize: Convert a filename segment to a human-readable title.
    first_paragraph: Plain-text first paragraph of Markdown.
    is_markdown: Check if a path is a Markdown file.
    ensure_clean_dir: Ensure a directory exists and is empty.
    join_root_url: Join a base URL and a path.
"""

from __future__ import annotations

import re
import shutil
from pathlib import Path

MARKDOWN_EXTENSIONS = (".md", ".markdown")


def slugify(text: str) -> str:
    """Convert free text to a lowercase, hyphen-separated slug segment.

    Args:
        text: Title or filename stem.

    Returns:
        URL-friendly slug, or "untitled" when nothing usable remains.

    Examples:
        >>> slugify("Pooling Connections in Node.js!")
        'pooling-connections-in-node-js'
    """
    cleaned = re.sub(r"[^a-zA-Z0-9]+", "-", text)
    cleaned = cleaned.strip("-").lower()
    return cleaned or "untitled"


def titleize(segment: str) -> str:
    """Convert a filename segment to a human-readable title.

    Replaces hyphens and underscores with spaces and capitalizes each word.

    Args:
        segment: Filename segment without date prefix or extension.

    Returns:
        Human-readable title string.

    Examples:
        >>> titleize("python-module-loading")
        'Python Module Loading'
    """
    words = re.split(r"[\s\-_]+", segment)
    return " ".join(word.capitalize() for word in words if word) or "Untitled"


def first_paragraph(text: str, limit: int = 200) -> str:
    """Extract and clean the first paragraph from Markdown text.

    Skips headings and fenced code, strips HTML tags and Markdown emphasis,
    collapses whitespace and truncates to ``limit`` characters on a word
    boundary.

    Args:
        text: Markdown text.
        limit: Maximum character length of result.

    Returns:
        Cleaned first paragraph.
    """
    paragraphs = [p.strip() for p in text.split("\n\n") if p.strip()]
    for para in paragraphs:
        if para.startswith(("#", "![", "```", "---", "<!--")):
            continue
        para = re.sub(r"<[^>]+>", "", para)
        para = re.sub(r"!?\[([^\]]*)\]\([^)]*\)", r"\1", para)
        para = re.sub(r"[*_`]", "", para)
        collapsed = " ".join(para.split())
        if not collapsed:
            continue
        if len(collapsed) <= limit:
            return collapsed
        cut = collapsed[:limit].rsplit(" ", 1)[0]
        return f"{cut}…"
    return ""


def is_markdown(path: Path) -> bool:
    """Check if a path is a Markdown file.

    Args:
        path: Path to check.

    Returns:
        True if the file has a .md or .markdown extension (case-insensitive).
    """
    return path.suffix.lower() in MARKDOWN_EXTENSIONS


def is_hidden(path: Path) -> bool:
    """Check if a file name marks it as hidden or internal (``.`` or ``_``)."""
    return path.name.startswith((".", "_"))


def ensure_clean_dir(path: Path) -> None:
    """Ensure a directory exists and is empty.

    Args:
        path: Directory path to clean or create.
    """
    if path.exists():
        shutil.rmtree(str(path))
    path.mkdir(parents=True, exist_ok=True)


def join_root_url(root_url: str, path: str) -> str:
    """Join a base URL and a site path with exactly one slash between them.

    Args:
        root_url: Base URL such as ``https://example.com/blog``.
        path: Site path such as ``/2023/05/31/example/``.

    Returns:
        The combined URL.
    """
    if not root_url:
        return path
    return f"{root_url.rstrip('/')}/{path.lstrip('/')}"
