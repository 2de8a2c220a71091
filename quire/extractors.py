"""Front matter and excerpt extraction for Quire.

Key functions:
- extract_frontmatter: Split a YAML header block off the top of a post.
- dump_frontmatter: Serialize a mapping and body back into post text.
- extract_excerpt: Split a body at the first excerpt marker.

Key classes:
- ExcerptExtractor: Excerpt extraction bound to a configured marker.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml

from .errors import MalformedPost, UnterminatedFrontMatter

FRONTMATTER_OPEN = "---"
FRONTMATTER_CLOSE = ("---", "...")
EXCERPT_MARKER = "<!--more-->"
BOM = "\ufeff"


def extract_frontmatter(
    text: str, source_path: Path | None = None
) -> tuple[dict[str, Any], str]:
    """Extract YAML front matter from the top of a file.

    The block must open on the very first line with ``---`` and close with a
    line holding ``---`` or ``...``. Trailing whitespace on marker lines is
    ignored.

    Args:
        text: Raw file content.
        source_path: File the text came from, used in error messages.

    Returns:
        Tuple of (front matter dict, remaining body). Text without a leading
        marker yields an empty dict and the text unchanged.

    Raises:
        UnterminatedFrontMatter: The opening marker has no closing marker.
        MalformedPost: The header is not valid YAML or not a mapping.
    """
    lines = text.removeprefix(BOM).splitlines(keepends=True)
    if not lines or lines[0].rstrip() != FRONTMATTER_OPEN:
        return {}, text

    for index in range(1, len(lines)):
        if lines[index].rstrip() in FRONTMATTER_CLOSE:
            header = "".join(lines[1:index])
            body = "".join(lines[index + 1 :])
            break
    else:
        raise UnterminatedFrontMatter(
            "Front matter opened with '---' but never closed", source_path
        )

    # Impossible timestamps such as 2023-02-30 fail in the date constructor
    try:
        data = yaml.safe_load(header)
    except (yaml.YAMLError, ValueError, TypeError) as exc:
        raise MalformedPost(f"Invalid front matter: {exc}", source_path) from exc
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise MalformedPost("Front matter must be a key/value mapping", source_path)
    return data, body


def dump_frontmatter(frontmatter: dict[str, Any], body: str = "") -> str:
    """Serialize front matter and a body into post file text.

    ``extract_frontmatter(dump_frontmatter(m, b))`` returns ``(m, b)``.

    Args:
        frontmatter: Mapping to serialize.
        body: Post body appended after the closing marker.

    Returns:
        Complete file text.
    """
    if not frontmatter:
        header = ""
    else:
        header = yaml.safe_dump(
            frontmatter,
            sort_keys=False,
            allow_unicode=True,
            default_flow_style=False,
        )
    return f"{FRONTMATTER_OPEN}\n{header}{FRONTMATTER_OPEN}\n{body}"


def extract_excerpt(body: str, marker: str = EXCERPT_MARKER) -> tuple[str, str]:
    """Split a body at the first literal occurrence of ``marker``.

    Only the first marker counts; any later ones stay in the body as text.

    Args:
        body: Post body (front matter already removed).
        marker: Literal excerpt separator.

    Returns:
        Tuple of (excerpt, body). The excerpt is everything strictly before
        the marker, or an empty string when the marker is absent. The body
        is returned unmodified.
    """
    if not marker:
        raise ValueError("Excerpt marker must be a non-empty string")
    excerpt, found, _ = body.partition(marker)
    if not found:
        return "", body
    return excerpt, body


class ExcerptExtractor:
    """Extracts excerpts using a configured marker.

    Attributes:
        marker: Literal excerpt separator.
    """

    def __init__(self, marker: str = EXCERPT_MARKER):
        if not marker:
            raise ValueError("Excerpt marker must be a non-empty string")
        self.marker = marker

    def extract(self, body: str) -> tuple[str, str]:
        return extract_excerpt(body, self.marker)
